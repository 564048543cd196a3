"""Tests for vendor template matching and merging."""

from decimal import Decimal

import pytest

from invoice_engine.field_extraction import (
    NOT_FOUND,
    ExtractionStrategy,
    FieldExtractor,
    SpatialContextAnalyzer,
    VendorTemplateMatcher,
)
from invoice_engine.patterns import VendorTemplate


def acme_template(template_id="acme", min_confidence=0.7, identifiers=("acme",), **kwargs):
    return VendorTemplate.from_dict({
        'template_id': template_id,
        'vendor_name': 'Acme Corporation',
        'min_confidence': min_confidence,
        'identifiers': list(identifiers),
        'patterns': [
            {'field_name': 'invoice_number', 'category': 'invoice_number',
             'regex': r'invoice\s+number:\s+(INV-[0-9-]+)'},
            {'field_name': 'purchase_order_number', 'category': 'purchase_order',
             'regex': r'order\s+ref\s+(AC-\d+)'},
        ],
        **kwargs
    })


@pytest.fixture
def matcher():
    return VendorTemplateMatcher()


@pytest.fixture
def generic(snapshot):
    def run(text):
        regions = SpatialContextAnalyzer().segment(text)
        return FieldExtractor().extract_all(text, regions, snapshot)
    return run


class TestMatch:

    def test_sliced_invoice_template(self, matcher, snapshot, sliced_text):
        match = matcher.match(sliced_text, snapshot.active_templates)
        assert match is not None
        assert match.template_id == "sliced_invoices"
        assert match.score == pytest.approx(1.0)
        assert match.fields["invoice_number"].value == "INV-3337"
        assert match.fields["total_amount"].value == Decimal("93.50")

    def test_identifiers_gate_templates(self, matcher, snapshot, sample_text):
        assert matcher.match(sample_text, snapshot.active_templates) is None

    def test_missing_field_counts_as_zero(self, matcher, sample_text):
        # invoice number matches (1.0), order ref does not (0.0): mean 0.5
        template = acme_template()
        evaluated = matcher.evaluate(template, sample_text, SpatialContextAnalyzer().segment(sample_text))
        assert evaluated.score == pytest.approx(0.5)
        assert evaluated.fields["purchase_order_number"] is NOT_FOUND
        assert matcher.match(sample_text, [template]) is None

    def test_threshold_reached(self, matcher, sample_text):
        template = acme_template(min_confidence=0.5)
        match = matcher.match(sample_text, [template])
        assert match is not None
        assert match.score == pytest.approx(0.5)

    def test_first_qualifying_template_wins(self, matcher, sample_text):
        first = acme_template("acme_a", min_confidence=0.4)
        second = acme_template("acme_b", min_confidence=0.4)
        assert matcher.match(sample_text, [first, second]).template_id == "acme_a"

    def test_inactive_templates_are_skipped(self, matcher, sample_text):
        inactive = acme_template("off", min_confidence=0.1, is_active=False)
        active = acme_template("on", min_confidence=0.1)
        assert matcher.match(sample_text, [inactive, active]).template_id == "on"

    def test_empty_text_never_matches(self, matcher):
        assert matcher.match("", [acme_template(identifiers=())]) is None


class TestApply:

    def test_template_fields_override_generic(self, matcher, snapshot, sliced_text, generic):
        match = matcher.match(sliced_text, snapshot.active_templates)
        merged = matcher.apply(generic(sliced_text), match)

        number = merged["invoice_number"]
        assert number.value == "INV-3337"
        assert number.strategy == ExtractionStrategy.TEMPLATE
        assert number.template_id == "sliced_invoices"
        assert merged["total_amount"].value == Decimal("93.50")

    def test_vendor_name_comes_from_template(self, matcher, snapshot, sliced_text, generic):
        match = matcher.match(sliced_text, snapshot.active_templates)
        vendor = matcher.apply(generic(sliced_text), match)["vendor_name"]
        assert vendor.value == "Sliced Invoices"
        assert vendor.strategy == ExtractionStrategy.TEMPLATE
        assert vendor.pattern_id == "template:sliced_invoices"

    def test_fields_outside_template_keep_generic_values(self, matcher, snapshot, sliced_text, generic):
        generic_fields = generic(sliced_text)
        match = matcher.match(sliced_text, snapshot.active_templates)
        merged = matcher.apply(generic_fields, match)
        assert merged["tax_amount"] == generic_fields["tax_amount"]
        assert merged["tax_amount"].strategy == ExtractionStrategy.GENERIC

    def test_unfound_template_field_keeps_generic(self, matcher, sample_text, generic):
        generic_fields = generic(sample_text)
        match = matcher.match(sample_text, [acme_template(min_confidence=0.5)])
        merged = matcher.apply(generic_fields, match)

        assert merged["invoice_number"].strategy == ExtractionStrategy.TEMPLATE
        assert merged["purchase_order_number"] is generic_fields["purchase_order_number"]

    def test_no_match_returns_copy(self, matcher, sample_text, generic):
        generic_fields = generic(sample_text)
        merged = matcher.apply(generic_fields, None)
        assert merged == generic_fields
        assert merged is not generic_fields
