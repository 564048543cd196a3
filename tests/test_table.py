"""Tests for line-item table extraction."""

from decimal import Decimal

import pytest

from invoice_engine.field_extraction import LineItem, LineItemTableExtractor, line_items_total
from invoice_engine.field_extraction.table_extractor import ColumnRole


PLAIN_TABLE = """Invoice 1001
Description Qty Price Total
Office Chairs 5 400.00 2000.00
Delivery 1 500.00 500.00
Subtotal 2500.00"""


@pytest.fixture
def extractor():
    return LineItemTableExtractor()


class TestPlainRows:

    def test_rows_are_parsed(self, extractor):
        items = extractor.extract_line_items(PLAIN_TABLE)
        assert [item.description for item in items] == ["Office Chairs", "Delivery"]
        chairs = items[0]
        assert chairs.quantity == Decimal("5.00")
        assert chairs.unit_price == Decimal("400.00")
        assert chairs.line_total == Decimal("2000.00")
        assert chairs.source_line == 2

    def test_sum_matches_subtotal(self, extractor):
        assert line_items_total(extractor.extract_line_items(PLAIN_TABLE)) == Decimal("2500.00")

    def test_missing_trailing_numbers_fill_from_the_right(self, extractor):
        text = "Item Qty Price Amount\nConsulting hours 150.00\nTotal 150.00"
        (item,) = extractor.extract_line_items(text)
        assert item.description == "Consulting hours"
        assert item.line_total == Decimal("150.00")
        assert item.quantity is None

    def test_row_without_numbers_is_kept(self, extractor):
        text = "Item Qty Price Amount\nFree sample included\nTotal 0.00"
        (item,) = extractor.extract_line_items(text)
        assert item.description == "Free sample included"
        assert item.amount is None

    def test_percentages_are_not_amounts(self, extractor):
        text = "Item Qty Price Amount\nSupport plan 2 50.00 10% 100.00\nTotal 100.00"
        (item,) = extractor.extract_line_items(text)
        assert item.description == "Support plan"
        assert item.line_total == Decimal("100.00")
        assert item.quantity == Decimal("2.00")


class TestLayoutRows:

    def test_sample_invoice(self, extractor, sample_text):
        items = extractor.extract_line_items(sample_text)
        assert len(items) == 2
        chairs, desks = items
        assert chairs.description == "Office Chairs"
        assert chairs.quantity == Decimal("5.00")
        assert chairs.unit_price == Decimal("400.00")
        assert chairs.line_total == Decimal("2000.00")
        assert desks.description == "Standing Desks"
        assert line_items_total(items) == Decimal("2500.00")

    def test_sliced_invoice(self, extractor, sliced_text):
        (item,) = extractor.extract_line_items(sliced_text)
        assert item.description == "Web Design"
        assert item.quantity == Decimal("1.00")
        assert item.unit_price == Decimal("85.00")
        assert item.line_total == Decimal("85.00")

    def test_columns_start_at_header_cells(self, extractor):
        columns = extractor.infer_columns("Description   Qty   Unit Price   Total")
        starts = {column.role: column.start for column in columns}
        assert starts == {
            ColumnRole.DESCRIPTION: 0,
            ColumnRole.QUANTITY: 14,
            ColumnRole.UNIT_PRICE: 20,
            ColumnRole.LINE_TOTAL: 33,
        }

    def test_missing_description_column_is_added(self, extractor):
        columns = extractor.infer_columns("Hrs/Qty   Rate   Amount")
        assert columns[0].role == ColumnRole.DESCRIPTION


class TestNoTable:

    def test_no_header_means_no_items(self, extractor):
        assert extractor.extract_line_items("Invoice 7\nTotal: 10.00") == []

    def test_empty_text(self, extractor):
        assert extractor.extract_line_items("") == []

    def test_total_of_no_items(self):
        assert line_items_total([]) is None


class TestLineItem:

    def test_amount_falls_back_to_quantity_times_price(self):
        item = LineItem("Widget", quantity=Decimal("3"), unit_price=Decimal("2.50"))
        assert item.amount == Decimal("7.50")

    def test_to_dict(self):
        item = LineItem("Widget", line_total=Decimal("9.99"), source_line=4)
        assert item.to_dict()["line_total"] == "9.99"
        assert item.to_dict()["source_line"] == 4
