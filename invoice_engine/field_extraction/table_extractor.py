"""
Line-Item Table Extractor Module.

Finds the item table with the same header-keyword test the spatial
analyzer uses, infers column roles from the header's keyword positions,
and parses every row up to the first totals line.

Two row shapes are handled:
    - Layout-preserved rows (cells separated by 2+ spaces): numeric cells
      are assigned to the numeric column whose header starts at or
      before the cell's right edge; text cells form the description.
    - Plain rows (single spaces): trailing numeric tokens are assigned
      right-to-left to the numeric columns, the rest is the description.

A row is kept whenever its description is non-empty; an unparseable
number only leaves that one value empty. Percentage cells (discount or
tax rates) are ignored.

Author: ML Engineering Team
"""

import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from invoice_engine.postprocessor.normalizers import AmountNormalizer
from invoice_engine.utils.helpers import to_serializable
from invoice_engine.utils.logger import get_logger
from .spatial import TableHeaderDetector, split_lines

# Initialize module logger
logger = get_logger(__name__)


CELL_RE = re.compile(r'\S+(?: \S+)*')
LAYOUT_GAP_RE = re.compile(r'\S {2,}\S')
NUMERIC_TOKEN_RE = re.compile(r'^\(?-?(?:[$€£¥₹]|USD|EUR|GBP)?\s?\d[\d,.]*\)?$', re.IGNORECASE)
PERCENT_TOKEN_RE = re.compile(r"^\(?-?\d[\d,.]*\s?%\)?$")


class ColumnRole(Enum):
    DESCRIPTION = "description"
    QUANTITY = "quantity"
    UNIT_PRICE = "unit_price"
    LINE_TOTAL = "line_total"


# Keyword group -> column role
GROUP_ROLES = {
    'description': ColumnRole.DESCRIPTION,
    'quantity': ColumnRole.QUANTITY,
    'price': ColumnRole.UNIT_PRICE,
    'total': ColumnRole.LINE_TOTAL,
}


@dataclass(frozen=True)
class Column:
    role: ColumnRole
    start: int


@dataclass(frozen=True)
class LineItem:
    """
    One row of the item table.

    Attributes:
        description: Item description (never empty)
        quantity: Quantity, when parseable
        unit_price: Unit price, when parseable
        line_total: Row total, when parseable
        source_line: Zero-based line index of the row
    """
    description: str
    quantity: Optional[Decimal] = None
    unit_price: Optional[Decimal] = None
    line_total: Optional[Decimal] = None
    source_line: Optional[int] = None

    @property
    def amount(self) -> Optional[Decimal]:
        """line_total, else quantity * unit_price when both are known."""
        if self.line_total is not None:
            return self.line_total
        if self.quantity is not None and self.unit_price is not None:
            return (self.quantity * self.unit_price).quantize(Decimal('0.01'))
        return None

    def to_dict(self) -> Dict[str, object]:
        return {
            'description': self.description,
            'quantity': to_serializable(self.quantity),
            'unit_price': to_serializable(self.unit_price),
            'line_total': to_serializable(self.line_total),
            'source_line': self.source_line,
        }


def line_items_total(items: Sequence[LineItem]) -> Optional[Decimal]:
    """Sum of known row amounts, or None when no row has one."""
    amounts = [item.amount for item in items if item.amount is not None]
    return sum(amounts, Decimal('0')) if amounts else None


class LineItemTableExtractor:
    """
    Positional line-item table parser.

    Example:
        >>> extractor = LineItemTableExtractor()
        >>> items = extractor.extract_line_items(
        ...     "Description Qty Price Total\\n"
        ...     "Office Chairs 5 400.00 2000.00\\n"
        ...     "Subtotal 2000.00")
        >>> items[0].description, items[0].line_total
        ('Office Chairs', Decimal('2000.00'))
    """

    def __init__(
        self,
        table_detector: Optional[TableHeaderDetector] = None,
        amount_normalizer: Optional[AmountNormalizer] = None
    ) -> None:
        self.table = table_detector or TableHeaderDetector()
        self.amounts = amount_normalizer or AmountNormalizer()

    def extract_line_items(self, text: str) -> List[LineItem]:
        """
        Parse the item table of a document.

        Args:
            text: Document text.

        Returns:
            Line items in document order (empty when no table is found).
        """
        lines = split_lines(text)
        header_index = self.table.find_header(lines)
        if header_index is None:
            logger.debug("No line-item table header found")
            return []

        columns = self.infer_columns(lines[header_index])
        end_index = self.table.find_end(lines, header_index + 1)
        if end_index is None:
            end_index = len(lines)

        items = []
        for index in range(header_index + 1, end_index):
            item = self.parse_row(lines[index], columns, index)
            if item is not None:
                items.append(item)

        logger.debug(
            f"Parsed {len(items)} line items from rows {header_index + 1}-{end_index} "
            f"({', '.join(c.role.value for c in columns)})"
        )
        return items

    def infer_columns(self, header_line: str) -> List[Column]:
        """
        Column roles and start offsets from the header row.

        A column starts where the header cell containing its keyword
        starts, so "Unit Price" begins at "Unit".
        """
        cells = [(m.start(), m.end()) for m in CELL_RE.finditer(header_line)]

        def cell_start(offset: int) -> int:
            for start, end in cells:
                if start <= offset < end:
                    return start
            return offset

        columns = []
        for group, offset in self.table.group_positions(header_line).items():
            role = GROUP_ROLES.get(group)
            if role is not None:
                columns.append(Column(role=role, start=cell_start(offset)))
        columns.sort(key=lambda c: c.start)

        if not any(c.role == ColumnRole.DESCRIPTION for c in columns):
            columns.insert(0, Column(role=ColumnRole.DESCRIPTION, start=0))

        return columns

    def parse_row(self, line: str, columns: Sequence[Column], index: int) -> Optional[LineItem]:
        """Parse one table row; None for blank rows or rows without a description."""
        if not line.strip():
            return None

        if LAYOUT_GAP_RE.search(line):
            description, numbers = self._split_layout_row(line, columns)
        else:
            description, numbers = self._split_plain_row(line, columns)

        description = ' '.join(description.split())
        if not description:
            return None

        return LineItem(
            description=description,
            quantity=self._number(numbers.get(ColumnRole.QUANTITY)),
            unit_price=self._number(numbers.get(ColumnRole.UNIT_PRICE)),
            line_total=self._number(numbers.get(ColumnRole.LINE_TOTAL)),
            source_line=index,
        )

    def _split_layout_row(
        self,
        line: str,
        columns: Sequence[Column]
    ) -> Tuple[str, Dict[ColumnRole, str]]:
        numeric_columns = [c for c in columns if c.role != ColumnRole.DESCRIPTION]
        text_parts: List[str] = []
        numbers: Dict[ColumnRole, str] = {}

        for match in CELL_RE.finditer(line):
            cell = match.group()
            if _is_percentage(cell):
                continue
            if not _is_numeric(cell) or not numeric_columns:
                text_parts.append(cell)
                continue

            right_edge = match.end() - 1
            eligible = [c for c in numeric_columns if c.start <= right_edge]
            column = eligible[-1] if eligible else numeric_columns[0]
            if column.role in numbers:
                # Two numbers landed in one column; keep the rightmost
                logger.debug(f"Column {column.role.value} collision in row: {line.strip()}")
            numbers[column.role] = cell

        return ' '.join(text_parts), numbers

    def _split_plain_row(
        self,
        line: str,
        columns: Sequence[Column]
    ) -> Tuple[str, Dict[ColumnRole, str]]:
        numeric_columns = [c for c in columns if c.role != ColumnRole.DESCRIPTION]
        tokens = [t for t in line.split() if not _is_percentage(t)]

        trailing: List[str] = []
        while tokens and len(trailing) < len(numeric_columns) and _is_numeric(tokens[-1]):
            trailing.insert(0, tokens.pop())

        # Rightmost token goes to the rightmost numeric column
        assigned = numeric_columns[len(numeric_columns) - len(trailing):]
        numbers = {column.role: token for column, token in zip(assigned, trailing)}

        return ' '.join(tokens), numbers

    def _number(self, token: Optional[str]) -> Optional[Decimal]:
        if token is None:
            return None
        return self.amounts.normalize(token)


def _is_numeric(token: str) -> bool:
    return bool(NUMERIC_TOKEN_RE.match(token.strip()))


def _is_percentage(token: str) -> bool:
    return bool(PERCENT_TOKEN_RE.match(token.strip()))
