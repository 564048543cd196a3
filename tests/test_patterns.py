"""Tests for field patterns, vendor templates and the versioned library."""

import pytest

from invoice_engine.patterns import (
    FieldPattern,
    PatternCategory,
    PatternLibrary,
    VendorTemplate,
    parse_pattern_set,
)
from invoice_engine.utils.exceptions import (
    InvalidPatternError,
    PatternLibraryError,
    PatternSetLoadError,
)


def total_pattern(pattern_id="total", priority=100, **kwargs):
    return FieldPattern(
        id=pattern_id,
        field_name="total_amount",
        category=PatternCategory.AMOUNT,
        regex=r"total\s*:?\s*\$?([0-9][0-9,.]*)",
        priority=priority,
        **kwargs
    )


class TestFieldPattern:

    def test_search_returns_captured_value(self):
        assert total_pattern().search("Total: $1,250.00") == "1,250.00"

    def test_search_without_match(self):
        assert total_pattern().search("Subject: hello") is None

    def test_regex_without_groups_captures_whole_match(self):
        pattern = FieldPattern("eur", "currency", PatternCategory.CURRENCY, r"EUR")
        assert pattern.capture_group == 0
        assert pattern.search("paid in EUR") == "EUR"

    def test_invalid_regex_is_rejected(self):
        with pytest.raises(InvalidPatternError):
            FieldPattern("bad", "total_amount", PatternCategory.AMOUNT, r"total([0-9")

    def test_unknown_field_is_rejected(self):
        with pytest.raises(InvalidPatternError):
            FieldPattern("x", "shoe_size", PatternCategory.AMOUNT, r"(\d+)")

    def test_missing_capture_group_is_rejected(self):
        with pytest.raises(InvalidPatternError):
            total_pattern(capture_group=3)

    @pytest.mark.parametrize("weight", [5.0, 0.0, 0.05, -1, "heavy"])
    def test_out_of_range_weight_is_rejected(self, weight):
        with pytest.raises(InvalidPatternError):
            total_pattern(confidence_weight=weight)

    def test_weight_bounds_are_inclusive(self):
        assert total_pattern(confidence_weight=0.1).confidence_weight == 0.1
        assert total_pattern(confidence_weight="1").confidence_weight == 1.0

    def test_category_accepts_string(self):
        pattern = FieldPattern.from_dict({
            'id': 'p', 'field_name': 'tax_amount', 'category': 'AMOUNT', 'regex': r'tax\s+(\S+)'
        })
        assert pattern.category == PatternCategory.AMOUNT

    def test_context_keywords(self):
        pattern = total_pattern(context_keywords=["Amount"])
        assert pattern.context_satisfied(("Total", "amount due"))
        assert not pattern.context_satisfied(("Total",))

    def test_context_keyword_does_not_span_lines(self):
        pattern = total_pattern(context_keywords=["amount due"])
        assert pattern.context_satisfied(("Total", "Amount Due: 40.00"))
        assert not pattern.context_satisfied(("Total amount", "due in 30 days"))

    def test_replace_returns_new_object(self):
        pattern = total_pattern()
        inactive = pattern.replace(is_active=False)
        assert pattern.is_active
        assert not inactive.is_active
        assert inactive.id == pattern.id


class TestVendorTemplate:

    def test_from_dict_derives_pattern_ids(self):
        template = VendorTemplate.from_dict({
            'template_id': 'acme',
            'vendor_name': 'Acme',
            'identifiers': ['ACME Corp'],
            'patterns': [{'field_name': 'invoice_number', 'category': 'invoice_number',
                          'regex': r'Ref\s+(AC-\d+)'}],
        })
        assert template.patterns[0].id == "acme.invoice_number.0"
        assert template.identifiers == ("acme corp",)
        assert template.applies_to("Billed by ACME CORP ltd")
        assert not template.applies_to("Globex")

    def test_min_confidence_out_of_range(self):
        with pytest.raises(InvalidPatternError):
            VendorTemplate("t", "Vendor", min_confidence=1.2)


class TestPatternLibrary:

    def test_default_set_loads(self, library):
        snapshot = library.snapshot
        assert "total_amount" in snapshot.field_names()
        assert snapshot.template("sliced_invoices") is not None

    def test_for_field_orders_by_priority_then_registration(self):
        library = PatternLibrary([
            total_pattern("late", priority=50),
            total_pattern("first", priority=10),
            total_pattern("second", priority=10),
        ])
        ids = [p.id for p in library.snapshot.for_field("total_amount")]
        assert ids == ["first", "second", "late"]

    def test_snapshot_is_unchanged_by_later_updates(self, library):
        before = library.snapshot
        library.deactivate_pattern("total_plain")
        after = library.snapshot

        assert before.get("total_plain").is_active
        assert not after.get("total_plain").is_active
        assert before.version != after.version

    def test_deactivated_pattern_excluded_from_lookup(self, library):
        library.deactivate_pattern("total_plain")
        snapshot = library.snapshot
        assert "total_plain" not in [p.id for p in snapshot.for_field("total_amount")]
        assert "total_plain" in [p.id for p in snapshot.for_field("total_amount", include_inactive=True)]

    def test_deactivate_unknown_pattern(self, library):
        version = library.version
        with pytest.raises(PatternLibraryError):
            library.deactivate_pattern("does_not_exist")
        assert library.version == version

    def test_load_dict_rejects_set_with_bad_weight(self):
        library = PatternLibrary([total_pattern("keep")])
        version = library.version
        with pytest.raises(InvalidPatternError):
            library.load_dict({'patterns': [
                {'id': 'ok', 'field_name': 'tax_amount', 'category': 'amount', 'regex': r'tax (\S+)'},
                {'id': 'heavy', 'field_name': 'tax_amount', 'category': 'amount', 'regex': r'vat (\S+)',
                 'confidence_weight': 5.0},
            ]})
        assert library.version == version
        assert [p.id for p in library.snapshot.patterns] == ["keep"]

    def test_upsert_replaces_in_place(self):
        library = PatternLibrary([total_pattern("a", priority=10), total_pattern("b", priority=20)])
        library.upsert_pattern(total_pattern("a", priority=30))
        ids = [p.id for p in library.snapshot.patterns]
        assert ids == ["a", "b"]
        assert library.snapshot.get("a").priority == 30

    def test_upsert_appends_new_pattern(self):
        library = PatternLibrary([total_pattern("a")])
        library.upsert_pattern(total_pattern("b"))
        assert len(library.snapshot.patterns) == 2

    def test_versions_are_unique_and_recorded(self):
        library = PatternLibrary([total_pattern("a")])
        library.upsert_pattern(total_pattern("a"))
        versions = [version for version, _ in library.history()]
        assert len(versions) == 2
        assert len(set(versions)) == 2

    def test_register_and_remove_template(self):
        library = PatternLibrary()
        template = VendorTemplate("acme", "Acme Corporation")
        library.register_template(template)
        assert library.snapshot.active_templates == (template,)

        library.remove_template("acme")
        assert library.snapshot.templates == ()

    def test_inactive_template_not_in_active_list(self):
        library = PatternLibrary(templates=[VendorTemplate("acme", "Acme", is_active=False)])
        assert library.snapshot.active_templates == ()

    def test_duplicate_pattern_ids_rejected(self):
        with pytest.raises(InvalidPatternError):
            PatternLibrary([total_pattern("dup"), total_pattern("dup")])

    def test_publish_keeps_templates_when_omitted(self):
        library = PatternLibrary(templates=[VendorTemplate("acme", "Acme")])
        library.publish([total_pattern("x")])
        assert library.snapshot.template("acme") is not None

    def test_load_dict_rejects_partially_valid_sets(self):
        library = PatternLibrary([total_pattern("keep")])
        version = library.version
        with pytest.raises(InvalidPatternError):
            library.load_dict({'patterns': [
                {'id': 'ok', 'field_name': 'tax_amount', 'category': 'amount', 'regex': r'tax (\S+)'},
                {'id': 'broken', 'field_name': 'tax_amount', 'category': 'amount', 'regex': '('},
            ]})
        assert library.version == version


class TestPatternSetFiles:

    def test_missing_file(self, tmp_path):
        with pytest.raises(PatternSetLoadError):
            PatternLibrary.from_file(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("patterns: [unclosed", encoding="utf-8")
        with pytest.raises(PatternSetLoadError):
            PatternLibrary.from_file(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- one\n- two\n", encoding="utf-8")
        with pytest.raises(PatternSetLoadError):
            PatternLibrary.from_file(path)

    def test_roundtrip_through_yaml(self, tmp_path):
        path = tmp_path / "set.yaml"
        path.write_text(
            "patterns:\n"
            "  - id: tax\n"
            "    field_name: tax_amount\n"
            "    category: amount\n"
            "    regex: 'tax\\s*:?\\s*\\$?([0-9.,]+)'\n"
            "    priority: 5\n",
            encoding="utf-8",
        )
        library = PatternLibrary.from_file(path)
        (pattern,) = library.snapshot.for_field("tax_amount")
        assert pattern.priority == 5
        assert pattern.search("Tax: $8.50") == "8.50"

    def test_parse_requires_mapping(self):
        with pytest.raises(PatternSetLoadError):
            parse_pattern_set(["not", "a", "mapping"])

    def test_load_file_publishes_new_version(self, tmp_path, library):
        path = tmp_path / "update.yaml"
        path.write_text(
            "patterns:\n"
            "  - id: total_only\n"
            "    field_name: total_amount\n"
            "    category: amount\n"
            "    regex: 'total\\s*:?\\s*\\$?([0-9.,]+)'\n",
            encoding="utf-8",
        )
        before = library.version
        snapshot = library.load_file(path)

        assert snapshot.version != before
        assert [p.id for p in snapshot.by_category(PatternCategory.AMOUNT)] == ["total_only"]
        assert snapshot.by_category(PatternCategory.DATE) == ()
        assert snapshot.templates == ()
