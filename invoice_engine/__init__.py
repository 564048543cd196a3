"""
Invoice Extraction & Confidence Engine.

Turns invoice documents (text PDFs, scanned PDFs, images) into
structured, confidence-scored invoice records and decides whether each
one can be approved automatically or needs a human.

Modules:
    - input_handler: Document loading and classification
    - text_extraction: Extraction backends and the fallback coordinator
    - patterns: Versioned pattern library and vendor templates
    - field_extraction: Spatial analysis, fields, templates, line items
    - postprocessor: Normalization, confidence, validation, routing
    - output_handler: Excel and JSON output
    - pipeline: End-to-end processing of one or many documents

Architecture:
    Classify → Extract Text → Segment → Fields / Template / Line Items
             → Confidence → Validation → Routing → Output
"""

__version__ = "1.0.0"
__author__ = "ML Engineering Team"

from .input_handler import ClassificationResult, DocumentClassifier, DocumentKind, InputHandler, RawDocument
from .patterns import FieldPattern, PatternLibrary, PatternSnapshot, VendorTemplate
from .field_extraction import NOT_FOUND, ExtractedField, InvoiceExtraction, LineItem
from .postprocessor import ConfidenceBreakdown, ProcessingDecision, ValidationIssue
from .pipeline import BatchOutcome, DiagnosticTrace, InvoiceProcessor, PipelineResult

__all__ = [
    'ClassificationResult',
    'DocumentClassifier',
    'DocumentKind',
    'InputHandler',
    'RawDocument',
    'FieldPattern',
    'PatternLibrary',
    'PatternSnapshot',
    'VendorTemplate',
    'NOT_FOUND',
    'ExtractedField',
    'InvoiceExtraction',
    'LineItem',
    'ConfidenceBreakdown',
    'ProcessingDecision',
    'ValidationIssue',
    'BatchOutcome',
    'DiagnosticTrace',
    'InvoiceProcessor',
    'PipelineResult',
]
