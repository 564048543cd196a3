"""
Document Classifier Module.

Decides how a document exposes its text before any extraction backend
runs. The resulting DocumentKind only drives backend ordering in the
extraction coordinator.

Policy:
    - coverage >= digital threshold (0.8)      -> DIGITAL
    - coverage == 0 and page images present    -> SCANNED
    - 0 < coverage < digital threshold         -> HYBRID
    - not a PDF / unparseable / zero pages     -> UNREADABLE

Coverage is estimated per page from the number of words in the text
layer (pdfplumber) and averaged across pages. Raster images (PNG, JPEG,
TIFF, BMP) are always SCANNED.

Author: ML Engineering Team
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import pdfplumber
from PIL import Image

from config import get_config
from invoice_engine.utils.logger import get_logger
from .document import RawDocument

# Initialize module logger
logger = get_logger(__name__)


DEFAULT_COVERAGE_TIERS = [
    {'min_words': 101, 'coverage': 1.0},
    {'min_words': 31, 'coverage': 0.8},
    {'min_words': 11, 'coverage': 0.5},
    {'min_words': 1, 'coverage': 0.2},
]


class DocumentKind(Enum):
    """How a document exposes its text."""
    DIGITAL = "digital"
    SCANNED = "scanned"
    HYBRID = "hybrid"
    UNREADABLE = "unreadable"


@dataclass
class ClassificationResult:
    """
    Outcome of classifying one document.

    Attributes:
        kind: Detected DocumentKind
        text_coverage: Estimated text-layer coverage in [0, 1]
        page_count: Number of pages (1 for raster images)
        pages_with_images: Pages that carry at least one image stream
        reason: Short human-readable explanation of the decision
        metadata: Document info dictionary (creator, producer, title)
        page_coverages: Per-page coverage estimates
    """
    kind: DocumentKind
    text_coverage: float = 0.0
    page_count: int = 0
    pages_with_images: int = 0
    reason: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)
    page_coverages: List[float] = field(default_factory=list)

    @property
    def is_readable(self) -> bool:
        return self.kind != DocumentKind.UNREADABLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind.value,
            'text_coverage': self.text_coverage,
            'page_count': self.page_count,
            'pages_with_images': self.pages_with_images,
            'reason': self.reason,
            'metadata': {k: str(v) for k, v in self.metadata.items()},
            'page_coverages': list(self.page_coverages),
        }

    def __repr__(self) -> str:
        return (
            f"ClassificationResult(kind={self.kind.value}, "
            f"coverage={self.text_coverage:.2f}, pages={self.page_count})"
        )


class DocumentClassifier:
    """
    Classifies RawDocuments into DIGITAL, SCANNED, HYBRID or UNREADABLE.

    Attributes:
        digital_threshold: Minimum coverage for DIGITAL
        coverage_tiers: Word-count tiers mapping a page to a coverage value
        header_search_bytes: How far into the file the %PDF marker may appear
        image_dominant_ratio: Image area share above which a page's
            coverage is capped
        image_dominant_coverage_cap: The cap applied to such pages

    Example:
        >>> classifier = DocumentClassifier()
        >>> result = classifier.classify(RawDocument(pdf_bytes, "inv.pdf"))
        >>> result.kind
        <DocumentKind.DIGITAL: 'digital'>
    """

    def __init__(
        self,
        digital_threshold: Optional[float] = None,
        coverage_tiers: Optional[List[Dict[str, Any]]] = None,
        header_search_bytes: Optional[int] = None,
        image_dominant_ratio: Optional[float] = None,
        image_dominant_coverage_cap: Optional[float] = None
    ) -> None:
        self.digital_threshold = (
            digital_threshold if digital_threshold is not None
            else get_config("classifier.digital_threshold", 0.8)
        )
        tiers = coverage_tiers or get_config("classifier.coverage_tiers", DEFAULT_COVERAGE_TIERS)
        self.coverage_tiers = sorted(tiers, key=lambda t: t['min_words'], reverse=True)
        self.header_search_bytes = header_search_bytes or get_config(
            "classifier.header_search_bytes", 1024
        )
        self.image_dominant_ratio = (
            image_dominant_ratio if image_dominant_ratio is not None
            else get_config("classifier.image_dominant_ratio", 0.5)
        )
        self.image_dominant_coverage_cap = (
            image_dominant_coverage_cap if image_dominant_coverage_cap is not None
            else get_config("classifier.image_dominant_coverage_cap", 0.5)
        )

    def classify(self, document: RawDocument) -> ClassificationResult:
        """
        Classify a document by how its text can be extracted.

        Never raises for bad content: structural problems produce an
        UNREADABLE result and the caller decides to stop.

        Args:
            document: The raw document.

        Returns:
            ClassificationResult with kind, coverage and page statistics.
        """
        logger.debug(f"Classifying {document!r}")

        if document.sniffed_image_type():
            result = self._classify_image(document)
        elif self._has_pdf_header(document.content):
            result = self._classify_pdf(document)
        elif document.declared_content_type.startswith('image/'):
            result = self._classify_image(document)
        else:
            result = ClassificationResult(
                kind=DocumentKind.UNREADABLE,
                reason="missing %PDF header"
            )

        logger.info(
            f"Classified {document.filename} as {result.kind.value} "
            f"(coverage={result.text_coverage:.2f}, pages={result.page_count}): {result.reason}"
        )
        return result

    def _has_pdf_header(self, content: bytes) -> bool:
        """PDF readers accept the marker anywhere in the first kilobyte."""
        return b'%PDF-' in content[:self.header_search_bytes]

    def _classify_image(self, document: RawDocument) -> ClassificationResult:
        """Raster inputs have no text layer; they go straight to OCR."""
        try:
            with Image.open(document.stream()) as image:
                frames = getattr(image, 'n_frames', 1)
                image.verify()
        except Exception as e:
            return ClassificationResult(
                kind=DocumentKind.UNREADABLE,
                reason=f"image cannot be decoded: {e}"
            )

        return ClassificationResult(
            kind=DocumentKind.SCANNED,
            text_coverage=0.0,
            page_count=frames,
            pages_with_images=frames,
            reason="raster image input",
            page_coverages=[0.0] * frames
        )

    def _classify_pdf(self, document: RawDocument) -> ClassificationResult:
        page_coverages: List[float] = []
        pages_with_images = 0

        try:
            with pdfplumber.open(document.stream()) as pdf:
                metadata = dict(pdf.metadata or {})

                for page in pdf.pages:
                    words = page.extract_words() or []
                    images = page.images or []
                    if images:
                        pages_with_images += 1
                    page_coverages.append(self._page_coverage(page, len(words), images))
        except Exception as e:
            logger.warning(f"PDF structure could not be parsed for {document.filename}: {e}")
            return ClassificationResult(
                kind=DocumentKind.UNREADABLE,
                reason=f"unparseable PDF: {e}"
            )

        page_count = len(page_coverages)
        if page_count == 0:
            return ClassificationResult(kind=DocumentKind.UNREADABLE, reason="PDF has no pages")

        coverage = round(sum(page_coverages) / page_count, 4)
        kind, reason = self._decide(coverage, pages_with_images)

        return ClassificationResult(
            kind=kind,
            text_coverage=coverage,
            page_count=page_count,
            pages_with_images=pages_with_images,
            reason=reason,
            metadata=metadata,
            page_coverages=page_coverages
        )

    def _page_coverage(self, page, word_count: int, images: List[Dict[str, Any]]) -> float:
        """
        Estimate how much of a page's content is in the text layer.

        Args:
            page: pdfplumber page.
            word_count: Number of words in the page's text layer.
            images: pdfplumber image descriptors on the page.

        Returns:
            Coverage estimate in [0, 1].
        """
        coverage = self.coverage_for_word_count(word_count)

        page_area = float(page.width or 0) * float(page.height or 0)
        if coverage > 0 and images and page_area > 0:
            image_area = sum(
                abs(float(img.get('x1', 0)) - float(img.get('x0', 0)))
                * abs(float(img.get('bottom', 0)) - float(img.get('top', 0)))
                for img in images
            )
            if image_area / page_area >= self.image_dominant_ratio:
                coverage = min(coverage, self.image_dominant_coverage_cap)

        return coverage

    def coverage_for_word_count(self, word_count: int) -> float:
        """Map a page word count to a coverage value using the tiers."""
        for tier in self.coverage_tiers:
            if word_count >= tier['min_words']:
                return float(tier['coverage'])
        return 0.0

    def _decide(self, coverage: float, pages_with_images: int):
        if coverage >= self.digital_threshold:
            return DocumentKind.DIGITAL, "text layer covers the document"
        if coverage == 0:
            if pages_with_images:
                return DocumentKind.SCANNED, "no text layer, page images present"
            # Blank text layer and no images: let OCR try before manual handling
            return DocumentKind.SCANNED, "no text layer and no image streams"
        return DocumentKind.HYBRID, "partial text layer"
