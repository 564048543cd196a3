"""
Confidence Calculator Module.

Combines four signals into one overall confidence in [0, 1]:

    overall = 0.3 * extraction   (chosen backend's confidence)
            + 0.3 * fields       (completeness, format and field confidence)
            + 0.2 * template     (score of the matched vendor template)
            + 0.2 * consistency  (cross-field checks satisfied)

Weights are policy and come from configuration. A component with no data
to judge (no template matched, no cross-field check applicable) is left
out and the remaining weights are renormalized, so missing data is
neutral rather than a penalty. When text extraction was not accepted
the overall score is capped at the extraction confidence.

Author: ML Engineering Team
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from config import get_config
from invoice_engine.text_extraction.base import ExtractionResult, ExtractionStatus
from invoice_engine.utils.exceptions import ConfigurationError
from invoice_engine.utils.helpers import clamp_confidence, field_value
from invoice_engine.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


DEFAULT_WEIGHTS = {
    'extraction': 0.3,
    'fields': 0.3,
    'template': 0.2,
    'consistency': 0.2,
}

DEFAULT_FIELD_BLEND = {
    'completeness': 0.4,
    'format': 0.3,
    'field_confidence': 0.3,
}

DEFAULT_FIELD_WEIGHTS = {
    'invoice_number': 0.25,
    'total_amount': 0.25,
    'vendor_name': 0.20,
    'invoice_date': 0.15,
    'due_date': 0.10,
}

# Weight of any field not listed in field_weights
DEFAULT_OTHER_FIELD_WEIGHT = 0.05

DEFAULT_EXPECTED_FIELDS = [
    'invoice_number', 'invoice_date', 'due_date', 'vendor_name',
    'subtotal_amount', 'tax_amount', 'total_amount',
]


@dataclass(frozen=True)
class ConsistencyCheck:
    """Outcome of one applicable cross-field check."""
    name: str
    satisfied: bool
    detail: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'satisfied': self.satisfied, 'detail': self.detail}


@dataclass(frozen=True)
class ConfidenceBreakdown:
    """
    How the overall confidence was computed.

    Attributes:
        extraction: Extraction component
        fields: Field completeness/format component
        template: Template component (None when no template matched)
        consistency: Consistency component (None when nothing was checkable)
        weights: Configured weights
        applied_weights: Weights after dropping absent components
        overall: Final confidence
        checks: Individual consistency checks
        capped: Whether the unaccepted-extraction cap lowered overall
    """
    extraction: float
    fields: float
    template: Optional[float]
    consistency: Optional[float]
    weights: Mapping[str, float]
    applied_weights: Mapping[str, float]
    overall: float
    checks: Tuple[ConsistencyCheck, ...] = ()
    capped: bool = False

    def contribution(self, component: str) -> float:
        """Weighted share of one component in the overall score."""
        value = getattr(self, component)
        if value is None:
            return 0.0
        return self.applied_weights.get(component, 0.0) * value

    def to_dict(self) -> Dict[str, Any]:
        return {
            'extraction': self.extraction,
            'fields': self.fields,
            'template': self.template,
            'consistency': self.consistency,
            'weights': dict(self.weights),
            'applied_weights': dict(self.applied_weights),
            'overall': self.overall,
            'checks': [c.to_dict() for c in self.checks],
            'capped': self.capped,
        }


class ConfidenceCalculator:
    """
    Weighted overall confidence for one invoice.

    Attributes:
        weights: Component weights (normalized to sum to 1)
        field_blend: Shares of completeness, format and field confidence
        expected_fields: Fields counted for completeness
        field_weights: Importance of each field in completeness and mean
            field confidence; unlisted fields get the "default" entry
        line_item_tolerance: Relative tolerance for line items vs subtotal
        amount_tolerance: Relative tolerance for subtotal + tax vs total
        cap_unaccepted_extraction: Cap overall at extraction confidence
            when extraction needs manual handling

    Example:
        >>> calculator = ConfidenceCalculator()
        >>> breakdown = calculator.calculate(extraction, fields, line_items)
        >>> breakdown.overall
        0.93
    """

    def __init__(
        self,
        weights: Optional[Mapping[str, float]] = None,
        field_blend: Optional[Mapping[str, float]] = None,
        expected_fields: Optional[Sequence[str]] = None,
        field_weights: Optional[Mapping[str, float]] = None,
        line_item_tolerance: Optional[float] = None,
        amount_tolerance: Optional[float] = None,
        cap_unaccepted_extraction: Optional[bool] = None
    ) -> None:
        self.weights = self._normalized(
            weights or get_config("confidence.weights", DEFAULT_WEIGHTS), DEFAULT_WEIGHTS, "weights"
        )
        self.field_blend = self._normalized(
            field_blend or get_config("confidence.field_blend", DEFAULT_FIELD_BLEND),
            DEFAULT_FIELD_BLEND, "field_blend"
        )
        self.expected_fields = list(
            expected_fields or get_config("confidence.expected_fields", DEFAULT_EXPECTED_FIELDS)
        )
        self.field_weights = {
            name: float(weight)
            for name, weight in (
                field_weights or get_config("confidence.field_weights", DEFAULT_FIELD_WEIGHTS)
            ).items()
        }
        self.other_field_weight = self.field_weights.pop('default', DEFAULT_OTHER_FIELD_WEIGHT)
        if self.other_field_weight < 0 or any(w < 0 for w in self.field_weights.values()):
            raise ConfigurationError(f"Field weights must be non-negative: {self.field_weights}")
        self.line_item_tolerance = Decimal(str(
            line_item_tolerance if line_item_tolerance is not None
            else get_config("confidence.line_item_tolerance", 0.05)
        ))
        self.amount_tolerance = Decimal(str(
            amount_tolerance if amount_tolerance is not None
            else get_config("confidence.amount_tolerance", 0.02)
        ))
        self.cap_unaccepted_extraction = (
            cap_unaccepted_extraction if cap_unaccepted_extraction is not None
            else get_config("confidence.cap_unaccepted_extraction", True)
        )

    @staticmethod
    def _normalized(values: Mapping[str, float], defaults: Mapping[str, float], name: str) -> Dict[str, float]:
        unknown = set(values) - set(defaults)
        if unknown:
            raise ConfigurationError(f"Unknown confidence {name}: {', '.join(sorted(unknown))}")

        merged = {key: float(values.get(key, 0.0)) for key in defaults}
        if any(v < 0 for v in merged.values()):
            raise ConfigurationError(f"Confidence {name} must be non-negative: {merged}")

        total = sum(merged.values())
        if total <= 0:
            raise ConfigurationError(f"Confidence {name} must not all be zero")
        return {key: value / total for key, value in merged.items()}

    # ========================================================================
    # Components
    # ========================================================================

    def field_weight(self, field_name: str) -> float:
        return self.field_weights.get(field_name, self.other_field_weight)

    def field_score(self, fields: Mapping[str, Any]) -> float:
        """
        Blend of completeness, format validity and field confidence.

        Completeness is the weighted share of expected_fields that were
        found; format validity is over every found field; mean confidence
        is weighted by field importance.
        """
        found = {name: r for name, r in fields.items() if getattr(r, 'found', False)}

        expected_weight = sum(self.field_weight(name) for name in self.expected_fields)
        completeness = (
            sum(self.field_weight(name) for name in self.expected_fields if name in found)
            / expected_weight
            if expected_weight > 0 else 1.0
        )
        format_pass = sum(1 for r in found.values() if r.format_valid) / len(found) if found else 0.0

        found_weight = sum(self.field_weight(name) for name in found)
        mean_confidence = (
            sum(self.field_weight(name) * r.confidence for name, r in found.items()) / found_weight
            if found_weight > 0 else 0.0
        )

        return clamp_confidence(
            self.field_blend['completeness'] * completeness
            + self.field_blend['format'] * format_pass
            + self.field_blend['field_confidence'] * mean_confidence
        )

    def consistency_checks(
        self,
        fields: Mapping[str, Any],
        line_items: Sequence[Any] = ()
    ) -> List[ConsistencyCheck]:
        """
        Cross-field checks for which data is available.

        Line items are compared with the subtotal (or the total when there
        is no subtotal); due date with invoice date; subtotal + tax with
        total.
        """
        checks = []

        subtotal = field_value(fields, 'subtotal_amount', Decimal)
        tax = field_value(fields, 'tax_amount', Decimal)
        total = field_value(fields, 'total_amount', Decimal)

        items_total = self._line_items_total(line_items)
        reference, reference_name = (subtotal, 'subtotal') if subtotal is not None else (total, 'total')
        if items_total is not None and reference is not None and reference > 0:
            difference = abs(items_total - reference)
            checks.append(ConsistencyCheck(
                name=f"line_items_match_{reference_name}",
                satisfied=difference <= self.line_item_tolerance * reference,
                detail=f"line items {items_total} vs {reference_name} {reference}",
            ))

        invoice_date = field_value(fields, 'invoice_date', date)
        due_date = field_value(fields, 'due_date', date)
        if invoice_date is not None and due_date is not None:
            checks.append(ConsistencyCheck(
                name="due_after_invoice_date",
                satisfied=due_date >= invoice_date,
                detail=f"invoice {invoice_date}, due {due_date}",
            ))

        if subtotal is not None and total is not None and total > 0:
            expected = subtotal + (tax or Decimal('0'))
            checks.append(ConsistencyCheck(
                name="subtotal_plus_tax_matches_total",
                satisfied=abs(expected - total) <= self.amount_tolerance * total,
                detail=f"subtotal + tax {expected} vs total {total}",
            ))

        return checks

    def consistency_score(
        self,
        fields: Mapping[str, Any],
        line_items: Sequence[Any] = ()
    ) -> Optional[float]:
        """Fraction of applicable checks satisfied; None when none apply."""
        checks = self.consistency_checks(fields, line_items)
        if not checks:
            return None
        return clamp_confidence(sum(1 for c in checks if c.satisfied) / len(checks))

    @staticmethod
    def _line_items_total(line_items: Sequence[Any]) -> Optional[Decimal]:
        amounts = [item.amount for item in line_items if item.amount is not None]
        return sum(amounts, Decimal('0')) if amounts else None

    # ========================================================================
    # Overall
    # ========================================================================

    def calculate(
        self,
        extraction: ExtractionResult,
        fields: Mapping[str, Any],
        line_items: Sequence[Any] = (),
        template_score: Optional[float] = None
    ) -> ConfidenceBreakdown:
        """
        Compute the overall confidence.

        Args:
            extraction: Chosen text extraction result.
            fields: Field name -> ExtractedField / NOT_FOUND.
            line_items: Extracted LineItems.
            template_score: Score of the matched template, None if none matched.

        Returns:
            ConfidenceBreakdown with the overall score and its parts.
        """
        checks = self.consistency_checks(fields, line_items)
        consistency = (
            clamp_confidence(sum(1 for c in checks if c.satisfied) / len(checks)) if checks else None
        )

        components = {
            'extraction': clamp_confidence(extraction.confidence),
            'fields': self.field_score(fields),
            'template': clamp_confidence(template_score) if template_score is not None else None,
            'consistency': consistency,
        }

        present = {k: w for k, w in self.weights.items() if components[k] is not None}
        total_weight = sum(present.values())
        applied = {k: (w / total_weight if total_weight else 0.0) for k, w in present.items()}

        overall = clamp_confidence(sum(applied[k] * components[k] for k in applied))

        capped = False
        if (self.cap_unaccepted_extraction
                and extraction.status == ExtractionStatus.REQUIRES_MANUAL_EXTRACTION
                and overall > components['extraction']):
            overall = components['extraction']
            capped = True

        logger.debug(
            f"Confidence: extraction={components['extraction']:.2f} fields={components['fields']:.2f} "
            f"template={components['template']} consistency={consistency} -> {overall:.2f}"
            f"{' (capped)' if capped else ''}"
        )

        return ConfidenceBreakdown(
            extraction=components['extraction'],
            fields=components['fields'],
            template=components['template'],
            consistency=consistency,
            weights=dict(self.weights),
            applied_weights=applied,
            overall=overall,
            checks=tuple(checks),
            capped=capped,
        )
