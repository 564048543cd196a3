"""
Layout-Preserving Backend.

Reads word boxes from the PDF text layer with PyMuPDF and rebuilds each
page as text whose horizontal spacing follows the word positions. Column
layouts (line-item tables, two-column headers) keep their alignment,
which the plain pdfplumber text loses.

Author: ML Engineering Team
"""

from typing import Optional

from config import get_config
from invoice_engine.input_handler.document import RawDocument
from invoice_engine.utils.logger import get_logger
from .base import BackendOutput, ExtractionMethod, TextExtractor
from .positioned_text import PositionedWord, group_words_into_lines, render_layout
from .text_quality import layout_text_confidence, word_count

# Initialize module logger
logger = get_logger(__name__)


class LayoutPreservingExtractor(TextExtractor):
    """
    Positional text extraction with PyMuPDF.

    Attributes:
        char_width: Page units (points) per rendered character column
        line_tolerance: Vertical distance (points) treated as one line
        max_pages: Maximum number of pages read

    Example:
        >>> backend = LayoutPreservingExtractor()
        >>> print(backend.extract(document).text)
        Description          Qty     Price      Total
        Office Chairs          5    400.00    2000.00
    """

    method = ExtractionMethod.LAYOUT_PRESERVING

    def __init__(
        self,
        char_width: Optional[float] = None,
        line_tolerance: Optional[float] = None,
        max_pages: Optional[int] = None
    ) -> None:
        self.char_width = char_width or get_config("backends.layout_preserving.char_width", 4.5)
        self.line_tolerance = line_tolerance or get_config(
            "backends.layout_preserving.line_tolerance", 3.0
        )
        self.max_pages = max_pages or get_config("input.pdf.max_pages", 10)

        self._check_dependencies()

    def _check_dependencies(self) -> None:
        try:
            import fitz  # PyMuPDF
            self._pymupdf = fitz
        except ImportError:
            logger.warning("PyMuPDF not available. Install with: pip install PyMuPDF")
            self._pymupdf = None

    def extract(self, document: RawDocument) -> BackendOutput:
        """
        Extract layout-preserving text.

        Args:
            document: PDF document.

        Returns:
            BackendOutput; not succeeded when PyMuPDF is missing, the PDF
            cannot be opened or no page has words.
        """
        if self._pymupdf is None:
            return BackendOutput.failure("PyMuPDF not installed")

        page_texts = []

        try:
            with self._pymupdf.open(stream=document.content, filetype="pdf") as doc:
                for page_num in range(min(len(doc), self.max_pages)):
                    page_texts.append(self._render_page(doc.load_page(page_num)))
        except Exception as e:
            logger.warning(f"PyMuPDF could not read {document.filename}: {e}")
            return BackendOutput.failure(f"PyMuPDF error: {e}")

        if not page_texts:
            return BackendOutput.failure("document has no pages")

        pages_with_text = sum(1 for t in page_texts if t.strip())
        text = '\n'.join(t for t in page_texts if t.strip())

        if not text.strip():
            return BackendOutput.failure("no positioned words in text layer", text="")

        confidence = layout_text_confidence(text, page_text_ratio=pages_with_text / len(page_texts))

        logger.debug(
            f"Layout extraction produced {len(text.splitlines())} lines "
            f"(confidence={confidence:.2f})"
        )

        return BackendOutput(
            text=text,
            confidence=confidence,
            succeeded=True,
            details={
                'pages': len(page_texts),
                'pages_with_text': pages_with_text,
                'words': word_count(text),
            }
        )

    def _render_page(self, page) -> str:
        """Render one PyMuPDF page as layout-preserving text."""
        # Tuples: (x0, y0, x1, y1, word, block_no, line_no, word_no)
        words = [
            PositionedWord(
                text=w[4],
                x0=w[0], y0=w[1], x1=w[2], y1=w[3],
                group=(w[5], w[6])
            )
            for w in page.get_text("words")
        ]

        lines = group_words_into_lines(words, tolerance=self.line_tolerance)
        return render_layout(lines, char_width=self.char_width)
