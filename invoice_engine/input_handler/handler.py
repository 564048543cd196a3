"""
Input Handler Module.

Loads invoice files from disk into RawDocuments for the CLI and for
services that hand the engine file paths instead of bytes.

Usage:
    from invoice_engine.input_handler import InputHandler

    handler = InputHandler()
    document = handler.load("invoice.pdf")
    documents = handler.load_batch("./invoices/")
"""

from pathlib import Path
from typing import List, Union

from config import get_config
from invoice_engine.utils.logger import get_logger
from invoice_engine.utils.helpers import get_file_extension
from invoice_engine.utils.exceptions import (
    InputError,
    UnsupportedFileTypeError,
    DocumentNotFoundError,
)
from .document import RawDocument

# Initialize module logger
logger = get_logger(__name__)


class InputHandler:
    """
    File-system front door of the engine.

    Attributes:
        supported_extensions: Set of accepted file extensions

    Example:
        >>> handler = InputHandler()
        >>> doc = handler.load("invoices/acme-0042.pdf")
        >>> doc.declared_content_type
        'application/pdf'
    """

    DEFAULT_EXTENSIONS = ['.pdf', '.png', '.jpg', '.jpeg', '.tif', '.tiff', '.bmp']

    def __init__(self) -> None:
        extensions = get_config("input.supported_extensions", self.DEFAULT_EXTENSIONS)
        self.supported_extensions = {ext.lower() for ext in extensions}

    def validate_file(self, filepath: Union[str, Path]) -> Path:
        """
        Check that a path exists, is a file and has a supported extension.

        Raises:
            DocumentNotFoundError: If the file doesn't exist.
            InputError: If the path is not a regular file.
            UnsupportedFileTypeError: If the extension is not supported.
        """
        path = Path(filepath)

        if not path.exists():
            raise DocumentNotFoundError(str(filepath))
        if not path.is_file():
            raise InputError(f"Path is not a file: {filepath}")

        extension = get_file_extension(path)
        if extension not in self.supported_extensions:
            raise UnsupportedFileTypeError(extension, sorted(self.supported_extensions))

        return path

    def load(self, filepath: Union[str, Path]) -> RawDocument:
        """
        Load a single file into a RawDocument.

        Raises:
            EmptyDocumentError: If the file is empty.
        """
        path = self.validate_file(filepath)
        document = RawDocument.from_path(path)
        logger.debug(f"Loaded {document!r}")
        return document

    def collect(self, target: Union[str, Path]) -> List[Path]:
        """
        Resolve a file or directory into the list of files to process.

        Directories are scanned non-recursively; unsupported files are
        skipped. Results are sorted by name for stable batch order.
        """
        path = Path(target)
        if not path.exists():
            raise DocumentNotFoundError(str(target))

        if path.is_file():
            return [self.validate_file(path)]

        files = sorted(
            p for p in path.iterdir()
            if p.is_file() and get_file_extension(p) in self.supported_extensions
        )
        logger.info(f"Found {len(files)} supported file(s) in {path}")
        return files

    def load_batch(self, target: Union[str, Path]) -> List[RawDocument]:
        """Load every supported file under a directory (or a single file)."""
        return [self.load(path) for path in self.collect(target)]
