"""
Field Extractor Module.

Applies the pattern library to document text, one field at a time.

For each field, active patterns for that field are tried in ascending
priority order. Each pattern is matched line by line against the field's
preferred regions first and against the whole document only when the
preferred regions yield nothing. Every match becomes a candidate scored
as:

    confidence = 0.6 * pattern weight
               + 0.25 if the value normalizes cleanly (format valid)
               + 0.15 if the line itself carries the field's label

The best candidate wins; ties go to the lower priority number, then the
earlier-registered pattern, then the earlier source line. The result is
deterministic for a given text and pattern snapshot.

Usage:
    from invoice_engine.field_extraction import FieldExtractor

    extractor = FieldExtractor()
    fields = extractor.extract_all(text, regions, library.snapshot)
    print(fields["total_amount"].value)

Author: ML Engineering Team
"""

import re
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from config import get_config
from invoice_engine.patterns import FIELD_TYPES, SUPPORTED_FIELDS, FieldPattern, FieldType, PatternSnapshot
from invoice_engine.postprocessor.normalizers import (
    AmountNormalizer,
    CurrencyNormalizer,
    DateNormalizer,
    IdentifierNormalizer,
)
from invoice_engine.utils.helpers import clamp_confidence, to_serializable
from invoice_engine.utils.logger import get_logger
from .spatial import RegionKind, TextRegion, region_of, split_lines

# Initialize module logger
logger = get_logger(__name__)


DEFAULT_PREFERRED_REGIONS = {
    'invoice_number': ['header', 'metadata'],
    'purchase_order_number': ['header', 'metadata'],
    'invoice_date': ['header', 'metadata'],
    'due_date': ['header', 'metadata'],
    'vendor_name': ['header'],
    'vendor_address': ['header'],
    'vendor_email': ['header', 'footer'],
    'customer_name': ['metadata', 'header'],
    'subtotal_amount': ['footer'],
    'tax_amount': ['footer'],
    'total_amount': ['footer'],
    'currency': ['footer', 'line_items'],
}

DEFAULT_LABELS = {
    'invoice_number': ["invoice number", "invoice no", "invoice #", "inv #", "invoice"],
    'purchase_order_number': ["purchase order", "po number", "po #", "p.o."],
    'invoice_date': ["invoice date", "date of issue", "issue date", "date"],
    'due_date': ["due date", "payment due", "due"],
    'vendor_name': ["from", "vendor", "supplier", "sold by", "remit to"],
    'vendor_address': ["address"],
    'vendor_email': ["email", "e-mail"],
    'customer_name': ["bill to", "billed to", "customer", "sold to"],
    'subtotal_amount': ["subtotal", "sub total", "sub-total"],
    'tax_amount': ["tax", "vat", "gst"],
    'total_amount': ["total", "amount due", "balance due", "grand total"],
    'currency': ["currency"],
}

# Words that mark a line as something other than a party name
NAME_STOPWORDS = (
    'invoice', 'bill to', 'billed to', 'ship to', 'date', 'total', 'amount', 'page',
    'due', 'tax', 'description', 'qty', 'quantity', 'receipt', 'statement', 'balance',
    'payment', 'terms', 'phone', 'fax', 'email', 'www.', 'http',
)

IDENTIFIER_RE = re.compile(r'^[A-Z0-9][A-Z0-9\-/]{2,29}$')
EMAIL_RE = re.compile(r'^[a-z0-9._%+\-]+@[a-z0-9.\-]+\.[a-z]{2,}$')


class ExtractionStrategy(Enum):
    """Which rule set produced a field value."""
    GENERIC = "generic"
    TEMPLATE = "template"


@dataclass(frozen=True)
class ExtractedField:
    """
    One extracted field with its provenance.

    Attributes:
        field_name: Name of the field
        value: Typed value (Decimal for amounts, date for dates, str otherwise)
        raw_value: Text captured by the pattern
        confidence: Candidate confidence in [0, 1]
        pattern_id: Pattern that produced the value
        source_line: Zero-based line index of the match
        region: Region containing the source line
        format_valid: Whether the value normalized cleanly
        strategy: GENERIC or TEMPLATE
        template_id: Template id when strategy is TEMPLATE
    """
    field_name: str
    value: Any
    raw_value: str
    confidence: float
    pattern_id: str
    source_line: Optional[int]
    region: Optional[RegionKind] = None
    format_valid: bool = True
    strategy: ExtractionStrategy = ExtractionStrategy.GENERIC
    template_id: Optional[str] = None

    found = True

    def from_template(self, template_id: str) -> 'ExtractedField':
        return replace(self, strategy=ExtractionStrategy.TEMPLATE, template_id=template_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'field_name': self.field_name,
            'value': to_serializable(self.value),
            'raw_value': self.raw_value,
            'confidence': self.confidence,
            'pattern_id': self.pattern_id,
            'source_line': self.source_line,
            'region': self.region.value if self.region else None,
            'format_valid': self.format_valid,
            'strategy': self.strategy.value,
            'template_id': self.template_id,
        }


class NotFound:
    """Absence of a field. Falsy; a single shared instance is used."""

    _instance: Optional['NotFound'] = None

    found = False
    value = None
    confidence = 0.0
    format_valid = False

    def __new__(cls) -> 'NotFound':
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return 'NOT_FOUND'


NOT_FOUND = NotFound()

FieldResult = Union[ExtractedField, NotFound]


@dataclass(frozen=True)
class _Candidate:
    field: ExtractedField
    priority: int
    registration: int

    @property
    def sort_key(self) -> Tuple[float, int, int, int]:
        return (-self.field.confidence, self.priority, self.registration, self.field.source_line)


class FieldExtractor:
    """
    Pattern-driven extraction of invoice fields.

    Attributes:
        preferred_regions: Field -> list of RegionKind searched first
        labels: Field -> canonical labels used for the proximity bonus
        pattern_weight_share: Share of confidence from the pattern weight
        format_bonus: Bonus for a cleanly normalized value
        label_bonus: Bonus when the match line carries the field label

    Example:
        >>> extractor = FieldExtractor()
        >>> field = extractor.extract_field(
        ...     "invoice_number", text, regions, snapshot.patterns)
        >>> field.value, field.confidence
        ('INV-2024-001', 1.0)
    """

    def __init__(
        self,
        preferred_regions: Optional[Mapping[str, Sequence[str]]] = None,
        labels: Optional[Mapping[str, Sequence[str]]] = None,
        pattern_weight_share: Optional[float] = None,
        format_bonus: Optional[float] = None,
        label_bonus: Optional[float] = None,
        date_normalizer: Optional[DateNormalizer] = None,
        amount_normalizer: Optional[AmountNormalizer] = None
    ) -> None:
        regions = preferred_regions or get_config("fields.preferred_regions", DEFAULT_PREFERRED_REGIONS)
        self.preferred_regions = {
            name: [RegionKind(kind) for kind in kinds] for name, kinds in regions.items()
        }
        labels = labels or get_config("fields.labels", DEFAULT_LABELS)
        self.labels = {name: [l.lower() for l in values] for name, values in labels.items()}

        self.pattern_weight_share = self._share(pattern_weight_share, "pattern_weight_share", 0.6)
        self.format_bonus = self._share(format_bonus, "format_bonus", 0.25)
        self.label_bonus = self._share(label_bonus, "label_bonus", 0.15)

        self.dates = date_normalizer or DateNormalizer()
        self.amounts = amount_normalizer or AmountNormalizer()
        self.identifiers = IdentifierNormalizer()
        self.currencies = CurrencyNormalizer()

    @staticmethod
    def _share(value: Optional[float], key: str, default: float) -> float:
        return value if value is not None else get_config(f"fields.confidence.{key}", default)

    # ========================================================================
    # Public API
    # ========================================================================

    def extract_field(
        self,
        field_name: str,
        text: str,
        regions: Sequence[TextRegion],
        patterns: Sequence[FieldPattern]
    ) -> FieldResult:
        """
        Extract one field.

        Args:
            field_name: Field to extract.
            text: Document text.
            regions: Output of SpatialContextAnalyzer.segment(text).
            patterns: Candidate patterns in registration order; other
                fields' and inactive patterns are ignored.

        Returns:
            The winning ExtractedField, or NOT_FOUND.
        """
        return self._extract(field_name, split_lines(text), regions, patterns)

    def extract_all(
        self,
        text: str,
        regions: Sequence[TextRegion],
        patterns: Union[PatternSnapshot, Sequence[FieldPattern]],
        field_names: Optional[Sequence[str]] = None
    ) -> Dict[str, FieldResult]:
        """
        Extract every supported field (or the given subset).

        Returns:
            Mapping of field name to ExtractedField or NOT_FOUND, in
            SUPPORTED_FIELDS order.
        """
        if isinstance(patterns, PatternSnapshot):
            patterns = patterns.patterns

        lines = split_lines(text)
        results = {
            name: self._extract(name, lines, regions, patterns)
            for name in (field_names or SUPPORTED_FIELDS)
        }

        found = sum(1 for r in results.values() if r.found)
        logger.debug(f"Extracted {found}/{len(results)} fields")
        return results

    # ========================================================================
    # Matching
    # ========================================================================

    def _extract(
        self,
        field_name: str,
        lines: List[str],
        regions: Sequence[TextRegion],
        patterns: Sequence[FieldPattern]
    ) -> FieldResult:
        eligible = [
            (index, pattern) for index, pattern in enumerate(patterns)
            if pattern.is_active and pattern.field_name == field_name
        ]
        eligible.sort(key=lambda item: (item[1].priority, item[0]))

        if not eligible or not lines:
            return NOT_FOUND

        preferred = self._preferred_lines(field_name, regions)
        everywhere = range(len(lines))

        candidates: List[_Candidate] = []
        for registration, pattern in eligible:
            matches = self._scan(pattern, lines, preferred, regions)
            if not matches and len(preferred) < len(lines):
                matches = self._scan(pattern, lines, everywhere, regions)
            candidates.extend(
                _Candidate(field=match, priority=pattern.priority, registration=registration)
                for match in matches
            )

        if not candidates:
            logger.debug(f"{field_name}: no pattern matched")
            return NOT_FOUND

        best = min(candidates, key=lambda c: c.sort_key).field
        logger.debug(
            f"{field_name}: {best.raw_value!r} via {best.pattern_id} "
            f"(line {best.source_line}, confidence {best.confidence:.2f}, "
            f"{len(candidates)} candidates)"
        )
        return best

    def _preferred_lines(self, field_name: str, regions: Sequence[TextRegion]) -> List[int]:
        kinds = self.preferred_regions.get(field_name, [])
        indices: List[int] = []
        for kind in kinds:
            for region in regions:
                if region.kind == kind:
                    indices.extend(region.line_indices())
        return indices

    def _scan(
        self,
        pattern: FieldPattern,
        lines: List[str],
        indices: Sequence[int],
        regions: Sequence[TextRegion]
    ) -> List[ExtractedField]:
        matches = []
        for index in indices:
            raw = pattern.search(lines[index])
            if raw is None:
                continue
            window = tuple(lines[max(0, index - 1):index + 2])
            if not pattern.context_satisfied(window):
                continue
            matches.append(self._candidate(pattern, raw, lines[index], index, regions))
        return matches

    def _candidate(
        self,
        pattern: FieldPattern,
        raw: str,
        line: str,
        index: int,
        regions: Sequence[TextRegion]
    ) -> ExtractedField:
        value, valid = self.normalize(pattern.field_name, raw, pattern.date_format_hint)
        has_label = self._has_label(pattern.field_name, line, raw)

        confidence = clamp_confidence(
            self.pattern_weight_share * pattern.confidence_weight
            + (self.format_bonus if valid else 0.0)
            + (self.label_bonus if has_label else 0.0)
        )

        return ExtractedField(
            field_name=pattern.field_name,
            value=value,
            raw_value=raw,
            confidence=confidence,
            pattern_id=pattern.id,
            source_line=index,
            region=region_of(regions, index),
            format_valid=valid,
        )

    def _has_label(self, field_name: str, line: str, raw: str) -> bool:
        # The label must sit outside the captured value
        remainder = line.lower().replace(raw.lower(), ' ', 1)
        return any(label in remainder for label in self.labels.get(field_name, []))

    # ========================================================================
    # Normalization
    # ========================================================================

    def normalize(self, field_name: str, raw: str, format_hint: Optional[str] = None) -> Tuple[Any, bool]:
        """
        Convert captured text to the field's type.

        Returns:
            (value, format_valid). When normalization fails the cleaned
            raw text is returned with format_valid False.
        """
        field_type = FIELD_TYPES.get(field_name, FieldType.NAME)
        cleaned = ' '.join(raw.split())

        if field_type == FieldType.AMOUNT:
            amount = self.amounts.normalize(cleaned)
            if amount is None:
                return cleaned, False
            minimum_ok = amount >= 0 if field_name == 'tax_amount' else amount > 0
            return amount, minimum_ok

        if field_type == FieldType.DATE:
            parsed = self.dates.normalize(cleaned, format_hint)
            if parsed is None:
                return cleaned, False
            return parsed, _plausible_date(parsed)

        if field_type == FieldType.IDENTIFIER:
            identifier = self.identifiers.normalize(cleaned) or cleaned
            valid = bool(IDENTIFIER_RE.match(identifier)) and any(c.isdigit() for c in identifier)
            return identifier, valid

        if field_type == FieldType.EMAIL:
            email = cleaned.lower()
            return email, bool(EMAIL_RE.match(email))

        if field_type == FieldType.CURRENCY:
            code = self.currencies.normalize(cleaned)
            return (code, True) if code else (cleaned, False)

        if field_type == FieldType.ADDRESS:
            cleaned = cleaned.strip(' ,')
            valid = any(c.isdigit() for c in cleaned) and sum(c.isalpha() for c in cleaned) >= 3
            return cleaned, valid

        cleaned = cleaned.strip(' ,:-')
        return cleaned, is_plausible_name(cleaned)


def is_plausible_name(value: str) -> bool:
    """Heuristic check that a line looks like a company or person name."""
    if not value or len(value) > 80:
        return False
    letters = sum(c.isalpha() for c in value)
    if letters < 2 or letters < len(value.replace(' ', '')) / 2:
        return False
    lowered = value.lower()
    return not any(word in lowered for word in NAME_STOPWORDS)


def _plausible_date(value: date) -> bool:
    return 1950 <= value.year <= 2100


