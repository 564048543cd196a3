"""
Vendor Template Matcher Module.

Vendor templates are bundles of field patterns that override generic
extraction for a known vendor layout. Templates are tried in
registration order; the first whose own fields reach its min_confidence
(mean over the fields it defines, a missing field counting as 0) wins.

The winning template replaces generic results only for the fields it
defines and actually found. Every other field keeps its generic value,
so template coverage can grow one field at a time.

Per-field provenance is a tag (ExtractionStrategy.GENERIC / TEMPLATE),
never a subclass.

Author: ML Engineering Team
"""

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Sequence

from invoice_engine.patterns import VendorTemplate
from invoice_engine.utils.helpers import clamp_confidence
from invoice_engine.utils.logger import get_logger
from .field_extractor import (
    NOT_FOUND,
    ExtractedField,
    ExtractionStrategy,
    FieldExtractor,
    FieldResult,
)
from .spatial import SpatialContextAnalyzer, TextRegion, split_lines

# Initialize module logger
logger = get_logger(__name__)


@dataclass(frozen=True)
class TemplateMatch:
    """
    A template that met its threshold, with the fields it extracted.

    Attributes:
        template: The matched VendorTemplate
        fields: Field name -> result for each field the template defines
        score: Mean confidence over the template's fields
    """
    template: VendorTemplate
    fields: Mapping[str, FieldResult] = field(default_factory=dict)
    score: float = 0.0

    @property
    def template_id(self) -> str:
        return self.template.template_id

    def to_dict(self) -> Dict[str, object]:
        return {
            'template_id': self.template_id,
            'vendor_name': self.template.vendor_name,
            'score': self.score,
            'fields': sorted(self.fields),
        }


class VendorTemplateMatcher:
    """
    Chooses a vendor template and merges its fields over generic ones.

    Example:
        >>> matcher = VendorTemplateMatcher()
        >>> match = matcher.match(text, snapshot.active_templates)
        >>> merged = matcher.apply(generic_fields, match)
        >>> merged["invoice_number"].strategy
        <ExtractionStrategy.TEMPLATE: 'template'>
    """

    def __init__(
        self,
        field_extractor: Optional[FieldExtractor] = None,
        analyzer: Optional[SpatialContextAnalyzer] = None
    ) -> None:
        self.field_extractor = field_extractor or FieldExtractor()
        self.analyzer = analyzer or SpatialContextAnalyzer()

    def evaluate(
        self,
        template: VendorTemplate,
        text: str,
        regions: Sequence[TextRegion]
    ) -> TemplateMatch:
        """Run one template's patterns and score them, whatever the threshold."""
        results = self.field_extractor.extract_all(
            text, regions, template.patterns, field_names=template.field_names
        )
        names = template.field_names
        score = (
            sum(results[name].confidence for name in names) / len(names)
            if names else 0.0
        )
        return TemplateMatch(template=template, fields=results, score=clamp_confidence(score))

    def match(
        self,
        text: str,
        templates: Sequence[VendorTemplate],
        regions: Optional[Sequence[TextRegion]] = None
    ) -> Optional[TemplateMatch]:
        """
        First template, in registration order, meeting its threshold.

        Args:
            text: Document text.
            templates: Candidate templates (inactive ones are skipped).
            regions: Segmentation of text (computed when omitted).

        Returns:
            TemplateMatch, or None when no template qualifies.
        """
        if not split_lines(text):
            return None
        if regions is None:
            regions = self.analyzer.segment(text)

        for template in templates:
            if not template.is_active or not template.patterns:
                continue
            if not template.applies_to(text):
                logger.debug(f"Template {template.template_id}: identifiers not present")
                continue

            candidate = self.evaluate(template, text, regions)
            if candidate.score >= template.min_confidence:
                logger.info(
                    f"Template {template.template_id} matched "
                    f"(score {candidate.score:.2f} >= {template.min_confidence:.2f})"
                )
                return candidate

            logger.debug(
                f"Template {template.template_id} below threshold "
                f"({candidate.score:.2f} < {template.min_confidence:.2f})"
            )

        return None

    def apply(
        self,
        generic_fields: Mapping[str, FieldResult],
        match: Optional[TemplateMatch]
    ) -> Dict[str, FieldResult]:
        """
        Merge a template's fields over the generic ones.

        Args:
            generic_fields: Output of FieldExtractor.extract_all.
            match: Result of match(), or None.

        Returns:
            New mapping; generic_fields is not modified.
        """
        merged = dict(generic_fields)
        if match is None:
            return merged

        for name in match.template.field_names:
            chosen = self._select(generic_fields.get(name, NOT_FOUND), match.fields.get(name, NOT_FOUND), match)
            merged[name] = chosen

        if match.template.vendor_name and 'vendor_name' not in match.template.field_names:
            merged['vendor_name'] = ExtractedField(
                field_name='vendor_name',
                value=match.template.vendor_name,
                raw_value=match.template.vendor_name,
                confidence=match.score,
                pattern_id=f"template:{match.template_id}",
                source_line=None,
                strategy=ExtractionStrategy.TEMPLATE,
                template_id=match.template_id,
            )

        return merged

    @staticmethod
    def _select(
        generic: FieldResult,
        templated: FieldResult,
        match: TemplateMatch
    ) -> FieldResult:
        strategy = ExtractionStrategy.TEMPLATE if templated.found else ExtractionStrategy.GENERIC

        if strategy == ExtractionStrategy.TEMPLATE:
            return templated.from_template(match.template_id)
        return generic
