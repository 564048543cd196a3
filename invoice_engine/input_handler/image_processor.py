"""
Image Processor Module.

Light normalization of page images before they are handed to Tesseract.
This is not an image-processing pipeline: it only fixes orientation,
color mode and size, and applies a mild contrast boost.

Author: ML Engineering Team
"""

from typing import List, Optional

from PIL import Image, ImageEnhance, ImageOps, ImageSequence

from config import get_config
from invoice_engine.utils.logger import get_logger
from invoice_engine.utils.exceptions import ExtractionBackendFailure

# Initialize module logger
logger = get_logger(__name__)


class ImageProcessor:
    """
    Loads raster invoices and normalizes page images for OCR.

    Attributes:
        max_width: Maximum image width in pixels
        max_height: Maximum image height in pixels
        auto_orient: Whether to apply EXIF orientation
        enhance_contrast: Whether to apply contrast enhancement

    Example:
        >>> processor = ImageProcessor()
        >>> pages = processor.load_pages(document.stream())
        >>> ready = [processor.prepare(page) for page in pages]
    """

    def __init__(
        self,
        max_width: Optional[int] = None,
        max_height: Optional[int] = None,
        auto_orient: Optional[bool] = None,
        enhance_contrast: Optional[bool] = None,
        max_pages: Optional[int] = None
    ) -> None:
        self.max_width = max_width or get_config("input.image.max_width", 2480)
        self.max_height = max_height or get_config("input.image.max_height", 3508)
        self.auto_orient = (
            auto_orient if auto_orient is not None
            else get_config("input.image.auto_orient", True)
        )
        self.enhance_contrast = (
            enhance_contrast if enhance_contrast is not None
            else get_config("input.image.enhance_contrast", True)
        )
        self.max_pages = max_pages or get_config("input.pdf.max_pages", 10)

    def load_pages(self, stream) -> List[Image.Image]:
        """
        Decode a raster document into page images.

        Multi-frame TIFFs yield one image per frame.

        Raises:
            ExtractionBackendFailure: If the image cannot be decoded.
        """
        try:
            with Image.open(stream) as image:
                pages = [frame.copy() for frame in ImageSequence.Iterator(image)]
        except Exception as e:
            raise ExtractionBackendFailure("ocr", f"image cannot be decoded: {e}")

        return pages[:self.max_pages]

    def prepare(self, image: Image.Image) -> Image.Image:
        """
        Normalize one page image for OCR.

        Steps:
            1. Apply EXIF orientation
            2. Convert to RGB
            3. Downscale if larger than the configured maximum
            4. Mild contrast and sharpness boost (optional)
        """
        if self.auto_orient:
            image = ImageOps.exif_transpose(image)

        image = self._convert_to_rgb(image)
        image = self._resize_if_needed(image)

        if self.enhance_contrast:
            image = ImageEnhance.Contrast(image).enhance(1.2)
            image = ImageEnhance.Sharpness(image).enhance(1.1)

        return image

    def _convert_to_rgb(self, image: Image.Image) -> Image.Image:
        if image.mode == 'RGB':
            return image

        if image.mode == 'RGBA':
            # Flatten transparency onto white paper
            background = Image.new('RGB', image.size, (255, 255, 255))
            background.paste(image, mask=image.split()[3])
            return background

        return image.convert('RGB')

    def _resize_if_needed(self, image: Image.Image) -> Image.Image:
        width, height = image.size
        if width <= self.max_width and height <= self.max_height:
            return image

        ratio = min(self.max_width / width, self.max_height / height)
        new_size = (int(width * ratio), int(height * ratio))
        logger.debug(f"Downscaling page image from {width}x{height} to {new_size[0]}x{new_size[1]}")
        return image.resize(new_size, Image.LANCZOS)
