"""
Spatial Context Analyzer Module.

Splits line-indexed invoice text into four ordered regions so field
patterns can look where a field usually lives first:

    HEADER     - vendor block at the top of the page
    METADATA   - bill-to, invoice number, dates
    LINE_ITEMS - the item table, from its header row to the totals
    FOOTER     - subtotal, tax, total, payment notes

Segmentation is a keyword heuristic. It never fails: undetected regions
are empty (start == end) and the regions always cover every line.

Usage:
    from invoice_engine.field_extraction import SpatialContextAnalyzer

    regions = SpatialContextAnalyzer().segment(text)
    for region in regions:
        print(region.kind.value, region.start_line, region.end_line)

Author: ML Engineering Team
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Pattern, Sequence

from config import get_config
from invoice_engine.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


DEFAULT_HEADER_END_KEYWORDS = [
    "bill to", "billed to", "invoice number", "invoice no", "invoice #", "invoice date",
]

DEFAULT_TABLE_KEYWORD_GROUPS = {
    'description': ["description", "item"],
    'quantity': ["qty", "quantity"],
    'price': ["price", "rate", "unit price"],
    'total': ["total", "amount"],
}

DEFAULT_TABLE_END_KEYWORDS = [
    "subtotal", "sub total", "sub-total", "total", "tax", "vat", "amount due", "balance due",
]


class RegionKind(Enum):
    """Layout regions of an invoice, in document order."""
    HEADER = "header"
    METADATA = "metadata"
    LINE_ITEMS = "line_items"
    FOOTER = "footer"


@dataclass(frozen=True)
class TextRegion:
    """
    Half-open range [start_line, end_line) of text lines.

    Attributes:
        kind: Which region this is
        start_line: First line index (inclusive)
        end_line: Line index after the last line (exclusive)
    """
    kind: RegionKind
    start_line: int
    end_line: int

    @property
    def is_empty(self) -> bool:
        return self.end_line <= self.start_line

    def __len__(self) -> int:
        return max(0, self.end_line - self.start_line)

    def contains(self, line_index: int) -> bool:
        return self.start_line <= line_index < self.end_line

    def line_indices(self) -> range:
        return range(self.start_line, self.end_line)

    def to_dict(self) -> Dict[str, object]:
        return {'kind': self.kind.value, 'start_line': self.start_line, 'end_line': self.end_line}


def split_lines(text: str) -> List[str]:
    """The line indexing every component agrees on."""
    return text.splitlines() if text else []


def keyword_regex(keyword: str) -> Pattern:
    """
    Case-insensitive whole-word match for a keyword (an "s" plural is
    allowed, so "item" also finds "Items"). Parts starting with punctuation
    may follow the previous word directly ("invoice #" finds "Invoice#").
    """
    parts = keyword.split()
    body = re.escape(parts[0]) if parts else ''
    for part in parts[1:]:
        separator = r'\s+' if re.match(r'\w', part) else r'\s*'
        body += separator + re.escape(part)
    return re.compile(rf'(?<![A-Za-z]){body}s?(?![A-Za-z])', re.IGNORECASE)


def region_of(regions: Sequence[TextRegion], line_index: int) -> Optional[RegionKind]:
    """Region containing a line, or None when the index is out of range."""
    for region in regions:
        if region.contains(line_index):
            return region.kind
    return None


class TableHeaderDetector:
    """
    The keyword test that recognizes a line-item table.

    A header row contains keywords from at least ``min_groups`` distinct
    groups (description, quantity, price, total). The table ends at the
    first later line containing a totals keyword.

    Example:
        >>> detector = TableHeaderDetector()
        >>> detector.is_header("Description   Qty   Unit Price   Total")
        True
        >>> detector.is_end("Subtotal: 2,500.00")
        True
    """

    def __init__(
        self,
        keyword_groups: Optional[Dict[str, List[str]]] = None,
        min_groups: Optional[int] = None,
        end_keywords: Optional[List[str]] = None
    ) -> None:
        groups = keyword_groups or get_config("spatial.table_keyword_groups", DEFAULT_TABLE_KEYWORD_GROUPS)
        self.min_groups = min_groups or get_config("spatial.table_min_keyword_groups", 3)
        self._groups = {
            name: [keyword_regex(k) for k in keywords]
            for name, keywords in groups.items()
        }
        self._end = [
            keyword_regex(k)
            for k in (end_keywords or get_config("spatial.table_end_keywords", DEFAULT_TABLE_END_KEYWORDS))
        ]

    @property
    def group_names(self) -> List[str]:
        return list(self._groups)

    def group_positions(self, line: str) -> Dict[str, int]:
        """Offset of the earliest keyword hit per group present in the line."""
        positions = {}
        for name, patterns in self._groups.items():
            starts = [m.start() for p in patterns for m in [p.search(line)] if m]
            if starts:
                positions[name] = min(starts)
        return positions

    def is_header(self, line: str) -> bool:
        return len(self.group_positions(line)) >= self.min_groups

    def is_end(self, line: str) -> bool:
        return any(p.search(line) for p in self._end)

    def find_header(self, lines: Sequence[str], start: int = 0) -> Optional[int]:
        for index in range(start, len(lines)):
            if self.is_header(lines[index]):
                return index
        return None

    def find_end(self, lines: Sequence[str], start: int) -> Optional[int]:
        for index in range(start, len(lines)):
            if self.is_end(lines[index]):
                return index
        return None


class SpatialContextAnalyzer:
    """
    Keyword-driven segmentation of invoice text into regions.

    Attributes:
        default_header_lines: Header size when no header-end keyword exists
        header_end_keywords: Phrases that start the metadata block
        table: Shared TableHeaderDetector

    Example:
        >>> analyzer = SpatialContextAnalyzer()
        >>> [r.kind.value for r in analyzer.segment(text)]
        ['header', 'metadata', 'line_items', 'footer']
    """

    def __init__(
        self,
        default_header_lines: Optional[int] = None,
        header_end_keywords: Optional[List[str]] = None,
        table_detector: Optional[TableHeaderDetector] = None
    ) -> None:
        self.default_header_lines = (
            default_header_lines if default_header_lines is not None
            else get_config("spatial.default_header_lines", 5)
        )
        self.header_end_keywords = header_end_keywords or get_config(
            "spatial.header_end_keywords", DEFAULT_HEADER_END_KEYWORDS
        )
        self._header_end = [keyword_regex(k) for k in self.header_end_keywords]
        self.table = table_detector or TableHeaderDetector()

    def segment(self, text: str) -> List[TextRegion]:
        """
        Segment text into HEADER, METADATA, LINE_ITEMS and FOOTER.

        Args:
            text: Extracted document text.

        Returns:
            Four ordered, non-overlapping regions covering every line.
        """
        lines = split_lines(text)
        total = len(lines)

        header_end = self._find_header_end(lines)
        table_start = self.table.find_header(lines)

        if table_start is not None:
            header_end = min(header_end, table_start)
            table_end = self.table.find_end(lines, table_start + 1)
            if table_end is None:
                table_end = total
            footer_start = table_end
        else:
            footer_start = self.table.find_end(lines, header_end)
            if footer_start is None:
                footer_start = total
            table_start = table_end = footer_start

        regions = [
            TextRegion(RegionKind.HEADER, 0, header_end),
            TextRegion(RegionKind.METADATA, header_end, table_start),
            TextRegion(RegionKind.LINE_ITEMS, table_start, table_end),
            TextRegion(RegionKind.FOOTER, footer_start, total),
        ]

        logger.debug(
            "Regions: " + ", ".join(f"{r.kind.value}[{r.start_line}:{r.end_line})" for r in regions)
        )
        return regions

    def _find_header_end(self, lines: Sequence[str]) -> int:
        for index, line in enumerate(lines):
            if any(p.search(line) for p in self._header_end):
                return index
        return min(self.default_header_lines, len(lines))
