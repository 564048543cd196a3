"""
Invoice Extraction Record.

The aggregate produced for every processed document: extracted fields
with provenance, line items, the chosen text extraction, the overall
confidence with its breakdown, and validation issues. Built once, after
confidence scoring and validation, and immutable from then on.

Author: ML Engineering Team
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from invoice_engine.input_handler.classifier import ClassificationResult
from invoice_engine.postprocessor.confidence import ConfidenceBreakdown
from invoice_engine.postprocessor.validators import ValidationIssue
from invoice_engine.text_extraction.base import ExtractionResult
from invoice_engine.utils.helpers import to_serializable
from .field_extractor import NOT_FOUND, FieldResult
from .table_extractor import LineItem, line_items_total


@dataclass(frozen=True)
class InvoiceExtraction:
    """
    Structured, confidence-scored invoice record.

    Attributes:
        document_id: Content hash of the source document
        filename: Source filename
        fields: Field name -> ExtractedField or NOT_FOUND
        line_items: Parsed table rows
        extraction: Chosen text extraction (with all attempts)
        overall_confidence: Final confidence in [0, 1]
        confidence_breakdown: Components of overall_confidence
        validation_issues: Errors and warnings
        template_id: Vendor template that matched, if any
        pattern_version: Pattern snapshot version used for the run
        classification: Document classification
        processed_at: When the record was built

    Example:
        >>> record.value("total_amount")
        Decimal('1250.00')
        >>> record.has_errors
        False
        >>> print(record.to_json())
    """
    document_id: str
    filename: str
    fields: Mapping[str, FieldResult]
    line_items: Tuple[LineItem, ...]
    extraction: ExtractionResult
    overall_confidence: float
    confidence_breakdown: ConfidenceBreakdown
    validation_issues: Tuple[ValidationIssue, ...] = ()
    template_id: Optional[str] = None
    pattern_version: Optional[str] = None
    classification: Optional[ClassificationResult] = None
    processed_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        object.__setattr__(self, 'fields', MappingProxyType(dict(self.fields)))
        object.__setattr__(self, 'line_items', tuple(self.line_items))
        object.__setattr__(self, 'validation_issues', tuple(self.validation_issues))

    def get_field(self, name: str) -> FieldResult:
        return self.fields.get(name, NOT_FOUND)

    def value(self, name: str) -> Any:
        """Typed value of a field, or None when it was not found."""
        result = self.get_field(name)
        return result.value if result.found else None

    @property
    def errors(self) -> List[ValidationIssue]:
        return [issue for issue in self.validation_issues if issue.is_error]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [issue for issue in self.validation_issues if not issue.is_error]

    @property
    def has_errors(self) -> bool:
        return any(issue.is_error for issue in self.validation_issues)

    @property
    def missing_fields(self) -> List[str]:
        return [name for name, result in self.fields.items() if not result.found]

    @property
    def line_items_total(self) -> Optional[Decimal]:
        return line_items_total(self.line_items)

    def to_dict(self, include_text: bool = False) -> Dict[str, Any]:
        """
        Convert to a JSON-friendly dictionary.

        Args:
            include_text: Include the extracted text and attempt texts.
        """
        return {
            'document_id': self.document_id,
            'filename': self.filename,
            'fields': {
                name: result.to_dict() if result.found else None
                for name, result in self.fields.items()
            },
            'line_items': [item.to_dict() for item in self.line_items],
            'line_items_total': to_serializable(self.line_items_total),
            'extraction': self.extraction.to_dict(include_text=include_text),
            'overall_confidence': self.overall_confidence,
            'confidence_breakdown': self.confidence_breakdown.to_dict(),
            'validation_issues': [issue.to_dict() for issue in self.validation_issues],
            'template_id': self.template_id,
            'pattern_version': self.pattern_version,
            'classification': self.classification.to_dict() if self.classification else None,
            'processed_at': self.processed_at.isoformat(),
        }

    def to_json(self, indent: int = 2, include_text: bool = False) -> str:
        return json.dumps(self.to_dict(include_text=include_text), indent=indent, ensure_ascii=False)

    def __repr__(self) -> str:
        return (
            f"InvoiceExtraction("
            f"file={self.filename}, "
            f"invoice={self.value('invoice_number')}, "
            f"total={self.value('total_amount')}, "
            f"confidence={self.overall_confidence:.2f})"
        )
