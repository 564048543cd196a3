"""
Tesseract OCR Backend.

Image-based extraction for scanned PDFs and raster invoices. Pages are
rendered (PDF) or decoded (images), lightly normalized, and passed to
Tesseract through pytesseract. Glyph recognition itself is entirely
Tesseract's job.

Features:
    - Word-level boxes and confidences from image_to_data
    - Layout-preserving text rebuilt from word positions
    - Confidence = mean word confidence / 100

Requirements:
    - Tesseract OCR installed on the system
    - pytesseract Python package

Author: ML Engineering Team
"""

from statistics import median
from typing import Dict, List, Optional

from PIL import Image

from config import get_config
from invoice_engine.input_handler.document import RawDocument
from invoice_engine.input_handler.image_processor import ImageProcessor
from invoice_engine.input_handler.pdf_processor import PDFProcessor
from invoice_engine.utils.logger import get_logger
from invoice_engine.utils.exceptions import ExtractionBackendFailure, OCREngineNotAvailableError
from .base import BackendOutput, ExtractionMethod, TextExtractor
from .positioned_text import (
    PositionedWord,
    average_confidence,
    group_words_into_lines,
    render_layout,
)

# Initialize module logger
logger = get_logger(__name__)


class OcrExtractor(TextExtractor):
    """
    Tesseract OCR backend.

    Attributes:
        language: Tesseract language code (e.g., "eng")
        psm: Page Segmentation Mode (1-13)
        oem: OCR Engine Mode (0-3)
        extra_config: Additional Tesseract command-line options
        line_tolerance: Vertical pixel distance treated as one line

    Example:
        >>> backend = OcrExtractor()
        >>> output = backend.extract(scanned_document)
        >>> output.confidence
        0.87
    """

    method = ExtractionMethod.OCR

    def __init__(
        self,
        language: Optional[str] = None,
        psm: Optional[int] = None,
        oem: Optional[int] = None,
        extra_config: Optional[str] = None,
        line_tolerance: Optional[float] = None,
        pdf_processor: Optional[PDFProcessor] = None,
        image_processor: Optional[ImageProcessor] = None
    ) -> None:
        self.language = language or get_config("backends.ocr.lang", "eng")
        self.psm = psm or get_config("backends.ocr.psm", 6)
        self.oem = oem if oem is not None else get_config("backends.ocr.oem", 3)
        self.extra_config = extra_config if extra_config is not None else get_config(
            "backends.ocr.config", ""
        )
        self.line_tolerance = line_tolerance or get_config("backends.ocr.line_tolerance", 10)

        self.pdf_processor = pdf_processor or PDFProcessor()
        self.image_processor = image_processor or ImageProcessor()

        self._check_dependencies()

        logger.debug(
            f"OcrExtractor initialized (lang={self.language}, "
            f"psm={self.psm}, oem={self.oem})"
        )

    def _check_dependencies(self) -> None:
        """Import pytesseract; a missing Tesseract binary is detected per call."""
        try:
            import pytesseract
            self._pytesseract = pytesseract
        except ImportError:
            logger.warning("pytesseract not available. Install with: pip install pytesseract")
            self._pytesseract = None

    def _build_config(self) -> str:
        config_parts = [f"--psm {self.psm}", f"--oem {self.oem}"]
        if self.extra_config:
            config_parts.append(self.extra_config)
        return ' '.join(config_parts)

    def extract(self, document: RawDocument) -> BackendOutput:
        """
        OCR every page of a document.

        Args:
            document: Scanned PDF or raster image.

        Returns:
            BackendOutput with layout text and mean word confidence;
            not succeeded when Tesseract is unavailable, pages cannot be
            rendered or nothing is recognized.
        """
        try:
            self._require_engine()
            pages = self._load_pages(document)
        except ExtractionBackendFailure as e:
            logger.warning(f"OCR unavailable for {document.filename}: {e.message}")
            return BackendOutput.failure(e.message)

        page_texts: List[str] = []
        all_words: List[PositionedWord] = []

        try:
            for page_num, image in enumerate(pages, 1):
                words = self._recognize(self.image_processor.prepare(image))
                all_words.extend(words)
                page_texts.append(self._render(words))
                logger.debug(f"OCR page {page_num}/{len(pages)}: {len(words)} words")
        except self._pytesseract.TesseractNotFoundError as e:
            return BackendOutput.failure(f"Tesseract not installed or not in PATH: {e}")
        except Exception as e:
            logger.error(f"OCR processing failed for {document.filename}: {e}")
            return BackendOutput.failure(f"OCR processing failed: {e}")

        text = '\n'.join(t for t in page_texts if t.strip())
        confidence = average_confidence(all_words) / 100.0

        if not text.strip():
            return BackendOutput.failure("no text recognized", confidence=confidence, text="")

        logger.info(
            f"OCR completed for {document.filename}: {len(all_words)} words, "
            f"avg confidence {confidence:.2f}"
        )

        return BackendOutput(
            text=text,
            confidence=confidence,
            succeeded=True,
            details={'pages': len(pages), 'words': len(all_words)}
        )

    def _require_engine(self) -> None:
        if self._pytesseract is None:
            raise OCREngineNotAvailableError("pytesseract (install with: pip install pytesseract)")

    def _load_pages(self, document: RawDocument) -> List[Image.Image]:
        if document.sniffed_image_type() or document.declared_content_type.startswith('image/'):
            return self.image_processor.load_pages(document.stream())
        return self.pdf_processor.render_pages(document.content)

    def _recognize(self, image: Image.Image) -> List[PositionedWord]:
        """Run Tesseract on one page image and parse its word table."""
        data = self._pytesseract.image_to_data(
            image,
            lang=self.language,
            config=self._build_config(),
            output_type=self._pytesseract.Output.DICT
        )
        return self._parse_tesseract_output(data)

    def _parse_tesseract_output(self, data: Dict[str, List]) -> List[PositionedWord]:
        """
        Convert image_to_data output into PositionedWords.

        Empty tokens and zero-size boxes are skipped; Tesseract's -1
        confidences (non-word elements) are treated as 0.
        """
        words = []

        for i, raw_text in enumerate(data['text']):
            text = (raw_text or '').strip()
            if not text:
                continue

            width = data['width'][i]
            height = data['height'][i]
            if width <= 0 or height <= 0:
                continue

            x = data['left'][i]
            y = data['top'][i]
            words.append(PositionedWord(
                text=text,
                x0=x, y0=y, x1=x + width, y1=y + height,
                confidence=max(0.0, float(data['conf'][i])),
                group=(data['block_num'][i], data['par_num'][i], data['line_num'][i])
            ))

        return words

    def _render(self, words: List[PositionedWord]) -> str:
        if not words:
            return ""

        # Column width in pixels estimated from the glyphs on the page
        char_width = median(w.width / len(w.text) for w in words)
        lines = group_words_into_lines(words, tolerance=self.line_tolerance)
        return render_layout(lines, char_width=char_width)
