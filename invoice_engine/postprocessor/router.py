"""
Review Router Module.

Maps a validated, confidence-scored invoice to a processing decision.
Rules are evaluated in order:

    1. any validation error         -> MANUAL_CORRECTION
    2. confidence >= 0.9            -> AUTO_APPROVE
    3. confidence >= 0.7            -> MANUAL_REVIEW
    4. otherwise                    -> MANUAL_CORRECTION

All three decisions are terminal for the engine; downstream workflow
takes over from here.

Author: ML Engineering Team
"""

from enum import Enum
from typing import Any, Optional, Sequence

from config import get_config
from invoice_engine.utils.exceptions import ConfigurationError
from invoice_engine.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


class ProcessingDecision(Enum):
    """Routing outcome, ordered by how much the result is trusted."""
    AUTO_APPROVE = "auto_approve"
    MANUAL_REVIEW = "manual_review"
    MANUAL_CORRECTION = "manual_correction"

    @property
    def trust_rank(self) -> int:
        """Higher is more trusted: AUTO_APPROVE > MANUAL_REVIEW > MANUAL_CORRECTION."""
        return {
            ProcessingDecision.AUTO_APPROVE: 2,
            ProcessingDecision.MANUAL_REVIEW: 1,
            ProcessingDecision.MANUAL_CORRECTION: 0,
        }[self]


class ReviewRouter:
    """
    Confidence and validation based routing.

    Attributes:
        auto_approve_threshold: Minimum confidence for AUTO_APPROVE
        review_threshold: Minimum confidence for MANUAL_REVIEW

    Example:
        >>> router = ReviewRouter()
        >>> router.route(0.95, [])
        <ProcessingDecision.AUTO_APPROVE: 'auto_approve'>
        >>> router.route(0.95, [missing_total_error])
        <ProcessingDecision.MANUAL_CORRECTION: 'manual_correction'>
    """

    def __init__(
        self,
        auto_approve_threshold: Optional[float] = None,
        review_threshold: Optional[float] = None
    ) -> None:
        self.auto_approve_threshold = (
            auto_approve_threshold if auto_approve_threshold is not None
            else get_config("routing.auto_approve_threshold", 0.9)
        )
        self.review_threshold = (
            review_threshold if review_threshold is not None
            else get_config("routing.review_threshold", 0.7)
        )

        if not 0.0 <= self.review_threshold <= self.auto_approve_threshold <= 1.0:
            raise ConfigurationError(
                f"Routing thresholds must satisfy 0 <= review ({self.review_threshold}) "
                f"<= auto-approve ({self.auto_approve_threshold}) <= 1"
            )

    def route(self, confidence: float, issues: Sequence[Any] = ()) -> ProcessingDecision:
        """
        Decide how an invoice is handled.

        Args:
            confidence: Overall confidence in [0, 1].
            issues: ValidationIssues; any error forces MANUAL_CORRECTION.

        Returns:
            ProcessingDecision.
        """
        if any(issue.is_error for issue in issues):
            return ProcessingDecision.MANUAL_CORRECTION
        if confidence >= self.auto_approve_threshold:
            return ProcessingDecision.AUTO_APPROVE
        if confidence >= self.review_threshold:
            return ProcessingDecision.MANUAL_REVIEW
        return ProcessingDecision.MANUAL_CORRECTION

    def decide(self, extraction: Any) -> ProcessingDecision:
        """Route an InvoiceExtraction using its confidence and issues."""
        decision = self.route(extraction.overall_confidence, extraction.validation_issues)
        logger.info(
            f"{extraction.filename}: {decision.value} "
            f"(confidence={extraction.overall_confidence:.2f}, errors={len(extraction.errors)})"
        )
        return decision
