"""Tests for review routing."""

import pytest

from invoice_engine.postprocessor import (
    IssueCode,
    ProcessingDecision,
    ReviewRouter,
    ValidationIssue,
    ValidationKind,
)
from invoice_engine.utils.exceptions import ConfigurationError


MISSING_TOTAL = ValidationIssue(
    'total_amount', ValidationKind.ERROR, IssueCode.MISSING_REQUIRED, "Required field missing"
)
ODD_CURRENCY = ValidationIssue(
    'currency', ValidationKind.WARNING, IssueCode.UNUSUAL_CURRENCY, "Unusual currency"
)


@pytest.fixture
def router():
    return ReviewRouter()


@pytest.mark.parametrize("confidence, expected", [
    (1.0, ProcessingDecision.AUTO_APPROVE),
    (0.9, ProcessingDecision.AUTO_APPROVE),
    (0.89, ProcessingDecision.MANUAL_REVIEW),
    (0.7, ProcessingDecision.MANUAL_REVIEW),
    (0.69, ProcessingDecision.MANUAL_CORRECTION),
    (0.0, ProcessingDecision.MANUAL_CORRECTION),
])
def test_thresholds(router, confidence, expected):
    assert router.route(confidence) == expected


def test_error_forces_manual_correction(router):
    assert router.route(0.99, [MISSING_TOTAL]) == ProcessingDecision.MANUAL_CORRECTION


def test_warnings_do_not_change_the_decision(router):
    assert router.route(0.95, [ODD_CURRENCY]) == ProcessingDecision.AUTO_APPROVE


def test_decision_is_monotonic_in_confidence(router):
    ranks = [router.route(step / 100).trust_rank for step in range(101)]
    assert ranks == sorted(ranks)


def test_custom_thresholds():
    router = ReviewRouter(auto_approve_threshold=0.8, review_threshold=0.5)
    assert router.route(0.85) == ProcessingDecision.AUTO_APPROVE
    assert router.route(0.55) == ProcessingDecision.MANUAL_REVIEW


@pytest.mark.parametrize("auto, review", [(0.6, 0.7), (1.2, 0.7), (0.9, -0.1)])
def test_inconsistent_thresholds_rejected(auto, review):
    with pytest.raises(ConfigurationError):
        ReviewRouter(auto_approve_threshold=auto, review_threshold=review)


class _Record:
    filename = "invoice.pdf"
    overall_confidence = 0.75
    validation_issues = (ODD_CURRENCY,)
    errors = ()


def test_decide_uses_record_confidence_and_issues(router):
    assert router.decide(_Record()) == ProcessingDecision.MANUAL_REVIEW
