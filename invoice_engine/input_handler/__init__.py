"""
Input Handler Module for the Invoice Engine.

This module provides:
    - RawDocument, the immutable input unit
    - DocumentClassifier (digital / scanned / hybrid / unreadable)
    - Page rendering and image normalization for the OCR backend
    - File loading for the CLI

Supported formats:
    - PDF (digital, scanned and hybrid)
    - Images: JPG, JPEG, PNG, TIFF, BMP

Author: ML Engineering Team
"""

from .document import RawDocument
from .classifier import DocumentClassifier, DocumentKind, ClassificationResult
from .handler import InputHandler
from .pdf_processor import PDFProcessor
from .image_processor import ImageProcessor

__all__ = [
    'RawDocument',
    'DocumentClassifier',
    'DocumentKind',
    'ClassificationResult',
    'InputHandler',
    'PDFProcessor',
    'ImageProcessor',
]
