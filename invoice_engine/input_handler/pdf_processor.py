"""
PDF Processor Module.

Renders PDF pages to PIL images for the OCR backend. Works on in-memory
bytes so documents never touch disk.

Rendering prefers PyMuPDF and falls back to pdf2image (Poppler) when
PyMuPDF is not installed.

Author: ML Engineering Team
"""

import io
from typing import List, Optional

from PIL import Image

from config import get_config
from invoice_engine.utils.logger import get_logger
from invoice_engine.utils.exceptions import ExtractionBackendFailure

# Initialize module logger
logger = get_logger(__name__)


class PDFProcessor:
    """
    Renders PDF bytes into page images.

    Attributes:
        dpi: Resolution for page rendering
        max_pages: Maximum number of pages rendered per document

    Example:
        >>> processor = PDFProcessor()
        >>> pages = processor.render_pages(document.content)
        >>> print(f"Rendered {len(pages)} pages")
    """

    def __init__(self, dpi: Optional[int] = None, max_pages: Optional[int] = None) -> None:
        """Initialize the PDF processor with configuration."""
        self.dpi = dpi or get_config("input.pdf.dpi", 300)
        self.max_pages = max_pages or get_config("input.pdf.max_pages", 10)

        self._check_dependencies()

        logger.debug(f"PDFProcessor initialized (DPI={self.dpi}, max_pages={self.max_pages})")

    def _check_dependencies(self) -> None:
        """Detect which rendering libraries are installed."""
        try:
            import fitz  # PyMuPDF
            self._pymupdf = fitz
        except ImportError:
            logger.debug("PyMuPDF not available. Using pdf2image for rendering.")
            self._pymupdf = None

        try:
            import pdf2image
            self._pdf2image = pdf2image
        except ImportError:
            logger.debug("pdf2image not available.")
            self._pdf2image = None

    @property
    def available(self) -> bool:
        return self._pymupdf is not None or self._pdf2image is not None

    def render_pages(self, content: bytes) -> List[Image.Image]:
        """
        Render PDF pages to RGB images.

        Args:
            content: PDF bytes.

        Returns:
            One PIL Image per rendered page (at most max_pages).

        Raises:
            ExtractionBackendFailure: If no renderer is installed or the
                PDF cannot be rendered.
        """
        if self._pymupdf is not None:
            images = self._render_with_pymupdf(content)
        elif self._pdf2image is not None:
            images = self._render_with_pdf2image(content)
        else:
            raise ExtractionBackendFailure(
                "ocr", "no PDF renderer available (install PyMuPDF or pdf2image)"
            )

        logger.debug(f"Rendered {len(images)} page(s) at {self.dpi} DPI")
        return images

    def _render_with_pymupdf(self, content: bytes) -> List[Image.Image]:
        images = []
        # PDF user space is 72 DPI
        zoom = self.dpi / 72.0
        matrix = self._pymupdf.Matrix(zoom, zoom)

        try:
            with self._pymupdf.open(stream=content, filetype="pdf") as doc:
                for page_num in range(min(len(doc), self.max_pages)):
                    pix = doc.load_page(page_num).get_pixmap(matrix=matrix)
                    image = Image.open(io.BytesIO(pix.tobytes("png")))
                    images.append(image.convert('RGB') if image.mode != 'RGB' else image)
        except Exception as e:
            logger.error(f"PyMuPDF rendering failed: {e}")
            raise ExtractionBackendFailure("ocr", f"PDF rendering failed: {e}")

        return images

    def _render_with_pdf2image(self, content: bytes) -> List[Image.Image]:
        try:
            images = self._pdf2image.convert_from_bytes(
                content,
                dpi=self.dpi,
                first_page=1,
                last_page=self.max_pages,
                fmt='png'
            )
        except Exception as e:
            logger.error(f"pdf2image rendering failed: {e}")
            raise ExtractionBackendFailure("ocr", f"PDF rendering failed: {e}")

        return [img.convert('RGB') if img.mode != 'RGB' else img for img in images]
