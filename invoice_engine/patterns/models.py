"""
Field Pattern Models.

Immutable rule objects consumed by the field extractor:

    PatternCategory  - coarse grouping of rules (amounts, dates, ...)
    FieldType        - how a field's value is normalized and validated
    FieldPattern     - one regex rule for one field
    VendorTemplate   - a vendor-specific bundle of FieldPatterns

Patterns are compiled once at construction and never change afterwards;
updates go through the PatternLibrary, which publishes a new snapshot.

Author: ML Engineering Team
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Pattern, Tuple

from invoice_engine.utils.exceptions import InvalidPatternError


class PatternCategory(Enum):
    """Coarse grouping of field patterns, used for lookup and reporting."""
    INVOICE_NUMBER = "invoice_number"
    PURCHASE_ORDER = "purchase_order"
    AMOUNT = "amount"
    DATE = "date"
    VENDOR = "vendor"
    ADDRESS = "address"
    EMAIL = "email"
    CUSTOMER = "customer"
    CURRENCY = "currency"


class FieldType(Enum):
    """Value type of a field, driving normalization and format checks."""
    IDENTIFIER = "identifier"
    DATE = "date"
    AMOUNT = "amount"
    NAME = "name"
    ADDRESS = "address"
    EMAIL = "email"
    CURRENCY = "currency"


# Every field the engine knows how to extract, with its value type
FIELD_TYPES: Dict[str, FieldType] = {
    'invoice_number': FieldType.IDENTIFIER,
    'purchase_order_number': FieldType.IDENTIFIER,
    'invoice_date': FieldType.DATE,
    'due_date': FieldType.DATE,
    'vendor_name': FieldType.NAME,
    'vendor_address': FieldType.ADDRESS,
    'vendor_email': FieldType.EMAIL,
    'customer_name': FieldType.NAME,
    'subtotal_amount': FieldType.AMOUNT,
    'tax_amount': FieldType.AMOUNT,
    'total_amount': FieldType.AMOUNT,
    'currency': FieldType.CURRENCY,
}

SUPPORTED_FIELDS: Tuple[str, ...] = tuple(FIELD_TYPES)

MIN_CONFIDENCE_WEIGHT = 0.1
MAX_CONFIDENCE_WEIGHT = 1.0


def _as_keyword_tuple(values: Optional[Iterable[str]]) -> Tuple[str, ...]:
    if not values:
        return ()
    if isinstance(values, str):
        values = [values]
    return tuple(str(v).strip().lower() for v in values if str(v).strip())


@dataclass(frozen=True)
class FieldPattern:
    """
    A single field-extraction rule.

    Attributes:
        id: Unique pattern identifier (recorded as provenance)
        field_name: Field this pattern extracts (one of SUPPORTED_FIELDS)
        category: PatternCategory of the rule
        regex: Regular expression applied to one line at a time
        context_keywords: At least one must appear on the match line or
            an adjacent line (empty = no context requirement)
        date_format_hint: strptime format tried first for date values
        priority: Lower numbers are tried first and win ties
        is_active: Inactive patterns are ignored by the extractor
        confidence_weight: Pattern reliability, clamped to [0.1, 1.0]
        capture_group: Group holding the value (0 when the regex has none)
        ignore_case: Compile with re.IGNORECASE
        description: Free-text note for pattern maintainers

    Example:
        >>> pattern = FieldPattern(
        ...     id="inv_no_labeled",
        ...     field_name="invoice_number",
        ...     category=PatternCategory.INVOICE_NUMBER,
        ...     regex=r"invoice\\s*#\\s*:?\\s*([A-Z0-9-]+)",
        ...     priority=10,
        ... )
        >>> pattern.search("Invoice #: INV-2024-001")
        'INV-2024-001'

    Raises:
        InvalidPatternError: For unknown fields, empty ids or regexes that
            do not compile or lack the requested capture group.
    """
    id: str
    field_name: str
    category: PatternCategory
    regex: str
    context_keywords: Tuple[str, ...] = ()
    date_format_hint: Optional[str] = None
    priority: int = 100
    is_active: bool = True
    confidence_weight: float = 1.0
    capture_group: int = 1
    ignore_case: bool = True
    description: str = ""
    compiled: Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.id:
            raise InvalidPatternError("<missing>", "pattern id is required")
        if self.field_name not in FIELD_TYPES:
            raise InvalidPatternError(self.id, f"unknown field '{self.field_name}'")
        if not isinstance(self.category, PatternCategory):
            try:
                object.__setattr__(self, 'category', PatternCategory(str(self.category).lower()))
            except ValueError:
                raise InvalidPatternError(self.id, f"unknown category '{self.category}'")

        object.__setattr__(self, 'context_keywords', _as_keyword_tuple(self.context_keywords))
        object.__setattr__(self, 'priority', int(self.priority))
        try:
            weight = float(self.confidence_weight)
        except (TypeError, ValueError):
            raise InvalidPatternError(self.id, f"confidence_weight {self.confidence_weight!r} is not a number")
        if not MIN_CONFIDENCE_WEIGHT <= weight <= MAX_CONFIDENCE_WEIGHT:
            raise InvalidPatternError(
                self.id,
                f"confidence_weight {weight} outside [{MIN_CONFIDENCE_WEIGHT}, {MAX_CONFIDENCE_WEIGHT}]"
            )
        object.__setattr__(self, 'confidence_weight', weight)

        try:
            compiled = re.compile(self.regex, re.IGNORECASE if self.ignore_case else 0)
        except re.error as e:
            raise InvalidPatternError(self.id, f"regex does not compile: {e}")

        if compiled.groups == 0:
            object.__setattr__(self, 'capture_group', 0)
        elif not 0 <= self.capture_group <= compiled.groups:
            raise InvalidPatternError(
                self.id,
                f"capture group {self.capture_group} not in regex ({compiled.groups} groups)"
            )

        object.__setattr__(self, 'compiled', compiled)

    @property
    def field_type(self) -> FieldType:
        return FIELD_TYPES[self.field_name]

    def search(self, line: str) -> Optional[str]:
        """
        Apply the regex to one line.

        Returns:
            The stripped captured value, or None when there is no match
            or the captured group is empty.
        """
        match = self.compiled.search(line)
        if match is None:
            return None
        value = match.group(self.capture_group)
        if value is None:
            return None
        value = value.strip()
        return value or None

    def context_satisfied(self, lines: Tuple[str, ...]) -> bool:
        """True when there are no context keywords or one appears within a single line."""
        if not self.context_keywords:
            return True
        lowered = [line.lower() for line in lines]
        return any(keyword in line for line in lowered for keyword in self.context_keywords)

    def replace(self, **changes: Any) -> 'FieldPattern':
        """Return a copy with some attributes changed."""
        data = self.to_dict()
        data.update(changes)
        return FieldPattern.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'field_name': self.field_name,
            'category': self.category.value,
            'regex': self.regex,
            'context_keywords': list(self.context_keywords),
            'date_format_hint': self.date_format_hint,
            'priority': self.priority,
            'is_active': self.is_active,
            'confidence_weight': self.confidence_weight,
            'capture_group': self.capture_group,
            'ignore_case': self.ignore_case,
            'description': self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_id: Optional[str] = None) -> 'FieldPattern':
        """
        Build a pattern from a pattern-set entry.

        Args:
            data: Mapping with at least field_name, category and regex.
            default_id: Identifier used when the entry has none.

        Raises:
            InvalidPatternError: If required keys are missing or invalid.
        """
        pattern_id = data.get('id') or default_id
        missing = [key for key in ('field_name', 'category', 'regex') if not data.get(key)]
        if missing:
            raise InvalidPatternError(str(pattern_id), f"missing keys: {', '.join(missing)}")

        return cls(
            id=str(pattern_id or ''),
            field_name=data['field_name'],
            category=data['category'],
            regex=data['regex'],
            context_keywords=data.get('context_keywords') or (),
            date_format_hint=data.get('date_format_hint'),
            priority=data.get('priority', 100),
            is_active=data.get('is_active', True),
            confidence_weight=data.get('confidence_weight', 1.0),
            capture_group=data.get('capture_group', 1),
            ignore_case=data.get('ignore_case', True),
            description=data.get('description', ''),
        )


@dataclass(frozen=True)
class VendorTemplate:
    """
    Vendor-specific extraction rules that may override generic patterns.

    Attributes:
        template_id: Unique template identifier
        vendor_name: Canonical vendor name
        patterns: The template's own FieldPatterns
        min_confidence: Mean confidence its fields must reach to apply
        identifiers: Phrases of which at least one must appear in the
            document for the template to be tried (empty = always try)
        is_active: Inactive templates are skipped

    Example:
        >>> template = VendorTemplate.from_dict({
        ...     'template_id': 'acme',
        ...     'vendor_name': 'Acme Corporation',
        ...     'identifiers': ['acme corporation'],
        ...     'patterns': [{'field_name': 'invoice_number',
        ...                   'category': 'invoice_number',
        ...                   'regex': r'Ref\\s+(AC-\\d+)'}],
        ... })
        >>> template.field_names
        ('invoice_number',)
    """
    template_id: str
    vendor_name: str
    patterns: Tuple[FieldPattern, ...] = ()
    min_confidence: float = 0.7
    identifiers: Tuple[str, ...] = ()
    is_active: bool = True

    def __post_init__(self) -> None:
        if not self.template_id:
            raise InvalidPatternError("<template>", "template_id is required")
        if not 0.0 <= float(self.min_confidence) <= 1.0:
            raise InvalidPatternError(self.template_id, "min_confidence must be within [0, 1]")
        object.__setattr__(self, 'patterns', tuple(self.patterns))
        object.__setattr__(self, 'identifiers', _as_keyword_tuple(self.identifiers))

    @property
    def field_names(self) -> Tuple[str, ...]:
        """Fields this template defines, in first-pattern order."""
        seen = []
        for pattern in self.patterns:
            if pattern.field_name not in seen:
                seen.append(pattern.field_name)
        return tuple(seen)

    def applies_to(self, text: str) -> bool:
        """Whether the document text mentions one of the identifiers."""
        if not self.identifiers:
            return True
        lowered = text.lower()
        return any(identifier in lowered for identifier in self.identifiers)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'template_id': self.template_id,
            'vendor_name': self.vendor_name,
            'min_confidence': self.min_confidence,
            'identifiers': list(self.identifiers),
            'is_active': self.is_active,
            'patterns': [p.to_dict() for p in self.patterns],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VendorTemplate':
        """Build a template; unnamed patterns get ids derived from the template id."""
        template_id = data.get('template_id') or data.get('id')
        if not template_id:
            raise InvalidPatternError("<template>", "template_id is required")

        patterns = tuple(
            FieldPattern.from_dict(entry, default_id=f"{template_id}.{entry.get('field_name')}.{index}")
            for index, entry in enumerate(data.get('patterns') or [])
        )

        return cls(
            template_id=str(template_id),
            vendor_name=data.get('vendor_name', ''),
            patterns=patterns,
            min_confidence=data.get('min_confidence', 0.7),
            identifiers=data.get('identifiers') or (),
            is_active=data.get('is_active', True),
        )
