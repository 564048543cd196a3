"""
Raw Document Module.

Defines RawDocument, the immutable unit handed to the engine by the
ingestion collaborator (email poller, upload endpoint, CLI loader).

Author: ML Engineering Team
"""

import hashlib
import io
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from invoice_engine.utils.exceptions import EmptyDocumentError
from invoice_engine.utils.helpers import guess_content_type


# Leading bytes of the raster formats the OCR backend accepts
IMAGE_SIGNATURES = (
    (b'\x89PNG\r\n\x1a\n', 'image/png'),
    (b'\xff\xd8\xff', 'image/jpeg'),
    (b'II*\x00', 'image/tiff'),
    (b'MM\x00*', 'image/tiff'),
    (b'BM', 'image/bmp'),
)


@dataclass(frozen=True)
class RawDocument:
    """
    Immutable document bytes plus the metadata the sender declared.

    Attributes:
        content: Raw file bytes
        filename: Original filename (used for logging and audit only)
        declared_content_type: MIME type claimed by the sender

    Example:
        >>> doc = RawDocument(pdf_bytes, "acme-0042.pdf", "application/pdf")
        >>> doc.size
        48213

    Raises:
        EmptyDocumentError: If content is empty or None.
    """
    content: bytes
    filename: str = "document.pdf"
    declared_content_type: str = "application/pdf"

    def __post_init__(self) -> None:
        if not self.content:
            raise EmptyDocumentError(self.filename)
        if not isinstance(self.content, (bytes, bytearray)):
            raise TypeError(f"content must be bytes, got {type(self.content).__name__}")
        if isinstance(self.content, bytearray):
            object.__setattr__(self, 'content', bytes(self.content))

    @classmethod
    def from_path(cls, filepath: Union[str, Path]) -> 'RawDocument':
        """Read a file from disk into a RawDocument."""
        path = Path(filepath)
        return cls(
            content=path.read_bytes(),
            filename=path.name,
            declared_content_type=guess_content_type(path)
        )

    @property
    def size(self) -> int:
        """Size of the document in bytes."""
        return len(self.content)

    @property
    def document_id(self) -> str:
        """Stable content hash used to identify the document in traces."""
        return hashlib.sha256(self.content).hexdigest()[:16]

    def sniffed_image_type(self) -> str:
        """
        Return the image MIME type detected from magic bytes, or ''.

        The declared content type is only a hint; the bytes decide.
        """
        for signature, mime in IMAGE_SIGNATURES:
            if self.content.startswith(signature):
                return mime
        return ''

    def stream(self) -> io.BytesIO:
        """Open a fresh in-memory stream over the content."""
        return io.BytesIO(self.content)

    def __repr__(self) -> str:
        return (
            f"RawDocument(filename='{self.filename}', "
            f"type='{self.declared_content_type}', size={self.size})"
        )
