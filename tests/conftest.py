"""
Shared fixtures for the invoice engine test suite.

Backends and the classifier are replaced by small fakes wherever a test
is about the pipeline logic rather than a parsing library. PDFs are
generated in memory with PyMuPDF.
"""

import io
import time
from datetime import date
from typing import List, Optional

import fitz
import pytest
from PIL import Image

from invoice_engine.input_handler import ClassificationResult, DocumentKind, RawDocument
from invoice_engine.patterns import PatternLibrary
from invoice_engine.text_extraction import BackendOutput, ExtractionMethod, TextExtractor


SAMPLE_INVOICE = """Acme Corporation
123 Main Street
Springfield, IL 62704
billing@acme.example

Invoice Number: INV-2024-001
Invoice Date: 2024-01-15
Due Date: 2024-02-14
Bill To: Globex Corporation

Description   Qty   Unit Price   Total
Office Chairs   5   400.00   2,000.00
Standing Desks   1   500.00   500.00
Subtotal: $2,500.00
Tax: $200.00
Total: $2,700.00
Currency: USD"""


SLICED_INVOICE = """Sliced Invoices
Suite 5A-1204
123 Somewhere Street
Your City AZ 12345
admin@slicedinvoices.com

Invoice Number INV-3337
Order Number 12345
Invoice Date January 25, 2016
Due Date January 31, 2016
Total Due $93.50

Bill To: Test Business
Hrs/Qty   Service   Rate/Price   Adjust   Sub Total
1.00   Web Design   $85.00   0.00%   $85.00
Sub Total $85.00
Tax $8.50
Total Due $93.50"""


REFERENCE_DAY = date(2024, 2, 1)


class FakeBackend(TextExtractor):
    """Backend returning a canned output, optionally slowly or by raising."""

    def __init__(
        self,
        method: ExtractionMethod,
        text: Optional[str] = "",
        confidence: float = 0.9,
        succeeded: bool = True,
        delay: float = 0.0,
        raises: Optional[Exception] = None
    ) -> None:
        self.method = method
        self.text = text
        self.confidence = confidence
        self.succeeded = succeeded
        self.delay = delay
        self.raises = raises
        self.calls = 0

    def extract(self, document: RawDocument) -> BackendOutput:
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.raises is not None:
            raise self.raises
        if not self.succeeded:
            return BackendOutput.failure("canned failure", confidence=self.confidence, text=self.text)
        return BackendOutput(text=self.text, confidence=self.confidence, succeeded=True)


class FixedClassifier:
    """Classifier stand-in that always returns the same kind."""

    def __init__(self, kind: DocumentKind = DocumentKind.DIGITAL) -> None:
        self.kind = kind

    def classify(self, document: RawDocument) -> ClassificationResult:
        coverage = 1.0 if self.kind == DocumentKind.DIGITAL else 0.0
        return ClassificationResult(kind=self.kind, text_coverage=coverage, page_count=1, reason="fixed")


def make_pdf(lines: List[str], pages: int = 1, fontsize: float = 8) -> bytes:
    """Build a PDF whose text layer holds the given lines on every page."""
    doc = fitz.open()
    for _ in range(pages):
        page = doc.new_page()
        y = 40.0
        for line in lines:
            page.insert_text((40, y), line, fontsize=fontsize)
            y += fontsize + 4
    data = doc.tobytes()
    doc.close()
    return data


def make_png(width: int = 200, height: int = 100) -> bytes:
    buffer = io.BytesIO()
    Image.new('RGB', (width, height), 'white').save(buffer, format='PNG')
    return buffer.getvalue()


@pytest.fixture
def sample_text() -> str:
    return SAMPLE_INVOICE


@pytest.fixture
def sliced_text() -> str:
    return SLICED_INVOICE


@pytest.fixture
def library() -> PatternLibrary:
    return PatternLibrary.default()


@pytest.fixture
def snapshot(library):
    return library.snapshot


@pytest.fixture
def today():
    return lambda: REFERENCE_DAY


@pytest.fixture
def document() -> RawDocument:
    return RawDocument(b"%PDF-1.4 placeholder", "invoice.pdf", "application/pdf")


@pytest.fixture
def word_pdf() -> bytes:
    """Single-page PDF with well over a hundred words."""
    words = [f"word{i}" for i in range(150)]
    lines = [' '.join(words[i:i + 10]) for i in range(0, len(words), 10)]
    return make_pdf(lines)


@pytest.fixture
def blank_pdf() -> bytes:
    doc = fitz.open()
    doc.new_page()
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()
