"""
Text Quality Scoring.

Heuristics the PDF text backends use to attach an intrinsic confidence
to the text they read. Scores reward length, invoice vocabulary and
visible table structure, and are always clamped to [0, 1].

Author: ML Engineering Team
"""

import re
from typing import Any, Dict, Optional

from invoice_engine.utils.helpers import clamp_confidence


INVOICE_KEYWORDS = (
    'invoice', 'bill', 'total', 'amount', 'due', 'date', 'tax', 'subtotal',
    'vendor', 'customer', 'payment', 'qty', 'quantity', 'price', 'description',
)

# A row with at least two wide gaps looks like a table row
_COLUMN_ROW = re.compile(r'\S(?:\s{2,}|\t)\S.*\S(?:\s{2,}|\t)\S')
_WORD = re.compile(r'\S+')


def keyword_score(text: str, per_keyword: float = 0.02, cap: float = 0.2) -> float:
    """Bonus for distinct invoice keywords present, capped."""
    lowered = text.lower()
    hits = sum(1 for keyword in INVOICE_KEYWORDS if keyword in lowered)
    return min(cap, hits * per_keyword)


def has_column_structure(text: str, min_rows: int = 3) -> bool:
    """True when enough lines are split into columns by wide gaps or tabs."""
    rows = sum(1 for line in text.splitlines() if _COLUMN_ROW.search(line))
    return rows >= min_rows


def word_count(text: str) -> int:
    return len(_WORD.findall(text))


def structured_text_confidence(
    text: str,
    metadata: Optional[Dict[str, Any]] = None,
    page_text_ratio: float = 1.0
) -> float:
    """
    Confidence for plain text read from a PDF text layer.

    Base 0.5; +0.2 for more than 500 characters (+0.1 above 100);
    +0.1 for more than 50 words; up to +0.2 for invoice keywords;
    +0.05 when the document info names a creator or title; +0.05 for
    column structure. The sum is scaled by the share of pages that
    yielded text, so half-empty documents fall below acceptance.

    Args:
        text: Extracted text.
        metadata: PDF document info dictionary.
        page_text_ratio: Fraction of pages that produced any text.

    Returns:
        Confidence in [0, 1].
    """
    stripped = text.strip()
    if not stripped:
        return 0.0

    score = 0.5
    if len(stripped) > 500:
        score += 0.2
    elif len(stripped) > 100:
        score += 0.1

    if word_count(stripped) > 50:
        score += 0.1

    score += keyword_score(stripped)

    metadata = metadata or {}
    if any(metadata.get(key) for key in ('Creator', 'Title', 'creator', 'title')):
        score += 0.05

    if has_column_structure(stripped):
        score += 0.05

    return clamp_confidence(score * page_text_ratio)


def layout_text_confidence(text: str, page_text_ratio: float = 1.0) -> float:
    """
    Confidence for layout-preserving text.

    Base 0.6; +0.2 when columns survived; +0.1 for "invoice"/"bill";
    +0.1 when both "total" and "amount" appear. Scaled by the share of
    pages that yielded text.
    """
    stripped = text.strip()
    if not stripped:
        return 0.0

    lowered = stripped.lower()
    score = 0.6

    if has_column_structure(stripped):
        score += 0.2
    if 'invoice' in lowered or 'bill' in lowered:
        score += 0.1
    if 'total' in lowered and 'amount' in lowered:
        score += 0.1

    return clamp_confidence(score * page_text_ratio)
