"""
Positioned Text Module.

Words with bounding boxes, grouped into lines and rendered back to plain
text with horizontal spacing that mirrors their position on the page.
Shared by the layout-preserving backend (PyMuPDF word boxes) and the OCR
backend (Tesseract word boxes), so column alignment survives in the text
handed to the line-item parser.

Author: ML Engineering Team
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional


@dataclass
class PositionedWord:
    """
    A single word with its bounding box.

    Attributes:
        text: The word text
        x0, y0, x1, y1: Bounding box (page or image coordinates)
        confidence: Recognition confidence 0-100 (100 for text layers)
        group: Optional line identifier supplied by the source
            (PyMuPDF block/line or Tesseract block/paragraph/line)

    Example:
        >>> word = PositionedWord("Total", 410.0, 700.2, 440.5, 712.0)
        >>> word.center_y
        706.1
    """
    text: str
    x0: float
    y0: float
    x1: float
    y1: float
    confidence: float = 100.0
    group: Optional[tuple] = None

    @property
    def center_y(self) -> float:
        return (self.y0 + self.y1) / 2

    @property
    def width(self) -> float:
        return self.x1 - self.x0

    def __repr__(self) -> str:
        return f"PositionedWord('{self.text}', x0={self.x0:.1f}, y0={self.y0:.1f}, conf={self.confidence:.0f})"


@dataclass
class TextLine:
    """
    Words sharing a baseline, ordered left to right.

    Attributes:
        words: Words on the line
    """
    words: List[PositionedWord] = field(default_factory=list)

    @property
    def text(self) -> str:
        """Words joined by single spaces (no layout)."""
        return ' '.join(word.text for word in self.words)

    @property
    def top(self) -> float:
        return min(w.y0 for w in self.words) if self.words else 0.0

    @property
    def average_confidence(self) -> float:
        if not self.words:
            return 0.0
        return sum(w.confidence for w in self.words) / len(self.words)


def group_words_into_lines(
    words: Iterable[PositionedWord],
    tolerance: float = 3.0
) -> List[TextLine]:
    """
    Group words into lines.

    Words carrying a source-supplied ``group`` are grouped by it; other
    words join the line whose vertical center is within ``tolerance``.
    Lines come back top to bottom, words left to right.

    Args:
        words: Words in any order.
        tolerance: Maximum vertical center distance for the same line.

    Returns:
        Ordered list of TextLine.
    """
    grouped: Dict[tuple, List[PositionedWord]] = {}
    loose: List[PositionedWord] = []

    for word in words:
        if not word.text or not word.text.strip():
            continue
        if word.group is not None:
            grouped.setdefault(word.group, []).append(word)
        else:
            loose.append(word)

    lines = [TextLine(words=ws) for ws in grouped.values()]

    for word in sorted(loose, key=lambda w: (w.center_y, w.x0)):
        for line in lines:
            line_center = sum(w.center_y for w in line.words) / len(line.words)
            if abs(line_center - word.center_y) <= tolerance:
                line.words.append(word)
                break
        else:
            lines.append(TextLine(words=[word]))

    lines = _merge_same_baseline(lines, tolerance)

    for line in lines:
        line.words.sort(key=lambda w: w.x0)

    lines.sort(key=lambda line: line.top)
    return lines


def _merge_same_baseline(lines: List[TextLine], tolerance: float) -> List[TextLine]:
    """
    Merge lines whose vertical centers coincide.

    PDF producers often emit each table cell as its own text block, so
    source groups split one visual row into several lines.
    """
    merged: List[TextLine] = []

    for line in sorted(lines, key=lambda l: sum(w.center_y for w in l.words) / len(l.words)):
        center = sum(w.center_y for w in line.words) / len(line.words)
        if merged:
            last = merged[-1]
            last_center = sum(w.center_y for w in last.words) / len(last.words)
            if abs(last_center - center) <= tolerance:
                last.words.extend(line.words)
                continue
        merged.append(TextLine(words=list(line.words)))

    return merged


def render_layout(
    lines: List[TextLine],
    char_width: float,
    origin_x: Optional[float] = None
) -> str:
    """
    Render lines as text, padding with spaces to keep horizontal positions.

    Each word starts at column ``(x0 - origin_x) / char_width``; at least
    one space always separates consecutive words. Wide gaps therefore
    become runs of spaces that mark column boundaries.

    Args:
        lines: Lines from group_words_into_lines().
        char_width: Page units per character column.
        origin_x: Leftmost x to treat as column 0 (defaults to the
            smallest x0 on the page).

    Returns:
        Layout-preserving text, one output line per TextLine.
    """
    if not lines:
        return ""

    if origin_x is None:
        origin_x = min(line.words[0].x0 for line in lines if line.words)

    char_width = char_width if char_width > 0 else 1.0
    rendered = []

    for line in lines:
        buffer = ""
        for word in line.words:
            column = int(round((word.x0 - origin_x) / char_width))
            if buffer:
                column = max(column, len(buffer) + 1)
            buffer = buffer.ljust(column) + word.text
        rendered.append(buffer.rstrip())

    return '\n'.join(rendered)


def average_confidence(words: Iterable[PositionedWord]) -> float:
    """Mean word confidence on the 0-100 scale (0 for no words)."""
    values = [w.confidence for w in words]
    return sum(values) / len(values) if values else 0.0
