"""
Field Extraction Module for the Invoice Engine.

Turns extracted page text into structured invoice data:
    - SpatialContextAnalyzer: header / metadata / line items / footer
    - FieldExtractor: pattern-driven field location and scoring
    - VendorTemplateMatcher: vendor-specific overrides
    - LineItemTableExtractor: positional item-table parsing
    - InvoiceExtraction: the resulting immutable record

Author: ML Engineering Team
"""

from .spatial import (
    RegionKind,
    SpatialContextAnalyzer,
    TableHeaderDetector,
    TextRegion,
    keyword_regex,
    region_of,
    split_lines,
)
from .field_extractor import (
    NOT_FOUND,
    ExtractedField,
    ExtractionStrategy,
    FieldExtractor,
    FieldResult,
    NotFound,
)
from .template_matcher import TemplateMatch, VendorTemplateMatcher
from .table_extractor import LineItem, LineItemTableExtractor, line_items_total
from .extraction_result import InvoiceExtraction

__all__ = [
    'RegionKind',
    'SpatialContextAnalyzer',
    'TableHeaderDetector',
    'TextRegion',
    'keyword_regex',
    'region_of',
    'split_lines',
    'NOT_FOUND',
    'ExtractedField',
    'ExtractionStrategy',
    'FieldExtractor',
    'FieldResult',
    'NotFound',
    'TemplateMatch',
    'VendorTemplateMatcher',
    'LineItem',
    'LineItemTableExtractor',
    'line_items_total',
    'InvoiceExtraction',
]
