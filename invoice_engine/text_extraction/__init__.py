"""
Text Extraction Module for the Invoice Engine.

Three interchangeable backends behind the TextExtractor capability and
the coordinator that chooses between them:

    - FastStructuredExtractor: pdfplumber text layer (digital PDFs)
    - LayoutPreservingExtractor: PyMuPDF word boxes with column spacing
    - OcrExtractor: Tesseract OCR for scanned pages and images

Author: ML Engineering Team
"""

from .base import (
    BackendOutput,
    ExtractionAttempt,
    ExtractionMethod,
    ExtractionResult,
    ExtractionStatus,
    TextExtractor,
)
from .coordinator import ExtractionCoordinator, build_default_backends
from .pdfplumber_backend import FastStructuredExtractor
from .layout_backend import LayoutPreservingExtractor
from .tesseract_backend import OcrExtractor

__all__ = [
    'BackendOutput',
    'ExtractionAttempt',
    'ExtractionMethod',
    'ExtractionResult',
    'ExtractionStatus',
    'TextExtractor',
    'ExtractionCoordinator',
    'build_default_backends',
    'FastStructuredExtractor',
    'LayoutPreservingExtractor',
    'OcrExtractor',
]
