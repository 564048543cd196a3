"""
Custom Exceptions Module.

This module defines the exceptions raised by the invoice extraction engine.
Only truly unrecoverable conditions are exceptions: an empty byte buffer,
an unreadable document, a broken pattern set or a bad configuration.
Backend failures, missing fields and validation problems are returned as
data (failed attempts, NOT_FOUND fields, validation issues).

Exception Hierarchy:
    InvoiceEngineError (base)
    ├── InputError
    │   ├── EmptyDocumentError
    │   ├── UnsupportedFileTypeError
    │   └── DocumentNotFoundError
    ├── ClassificationFailure
    ├── ExtractionBackendFailure
    │   └── OCREngineNotAvailableError
    ├── PatternLibraryError
    │   ├── InvalidPatternError
    │   └── PatternSetLoadError
    ├── ConfigurationError
    └── OutputError
        ├── ExcelExportError
        └── JSONExportError
"""


class InvoiceEngineError(Exception):
    """
    Base exception for all invoice engine errors.

    Attributes:
        message: Human-readable error message.
        details: Optional dictionary with additional error details.
    """

    def __init__(self, message: str, details: dict = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# INPUT ERRORS
# =============================================================================

class InputError(InvoiceEngineError):
    """Base exception for document input errors."""
    pass


class EmptyDocumentError(InputError):
    """
    Raised when a document is built from an empty or missing byte buffer.

    This fails fast at the ingestion boundary, before classification.
    """

    def __init__(self, filename: str):
        message = f"Document has no content: {filename}"
        super().__init__(message, {"filename": filename})


class UnsupportedFileTypeError(InputError):
    """
    Raised when the CLI is pointed at a file type the engine cannot read.

    Example:
        >>> raise UnsupportedFileTypeError(".doc", [".pdf", ".png"])
    """

    def __init__(self, file_type: str, supported_types: list):
        message = f"Unsupported file type: '{file_type}'"
        details = {"file_type": file_type, "supported_types": supported_types}
        super().__init__(message, details)


class DocumentNotFoundError(InputError):
    """Raised when an input path does not exist."""

    def __init__(self, filepath: str):
        message = f"File not found: {filepath}"
        super().__init__(message, {"filepath": filepath})


# =============================================================================
# CLASSIFICATION / EXTRACTION ERRORS
# =============================================================================

class ClassificationFailure(InvoiceEngineError):
    """
    Raised when a document is classified as unreadable.

    The run stops here: no extraction backend is invoked.
    """

    def __init__(self, filename: str, reason: str):
        message = f"Unreadable document '{filename}': {reason}"
        super().__init__(message, {"filename": filename, "reason": reason})
        self.reason = reason


class ExtractionBackendFailure(InvoiceEngineError):
    """
    Raised inside an extraction backend.

    The coordinator catches it and records a failed attempt; it never
    escapes the extraction step.
    """

    def __init__(self, backend: str, reason: str):
        message = f"Extraction backend '{backend}' failed: {reason}"
        super().__init__(message, {"backend": backend, "reason": reason})
        self.backend = backend


class OCREngineNotAvailableError(ExtractionBackendFailure):
    """Raised when Tesseract or pytesseract is not installed."""

    def __init__(self, engine: str):
        super().__init__("ocr", f"OCR engine not available: {engine}")


# =============================================================================
# PATTERN LIBRARY ERRORS
# =============================================================================

class PatternLibraryError(InvoiceEngineError):
    """Base exception for pattern and template set problems."""
    pass


class InvalidPatternError(PatternLibraryError):
    """
    Raised when a field pattern or template definition is invalid.

    Example:
        >>> raise InvalidPatternError("inv_no_1", "unbalanced parenthesis")
    """

    def __init__(self, pattern_id: str, reason: str):
        message = f"Invalid pattern '{pattern_id}': {reason}"
        super().__init__(message, {"pattern_id": pattern_id, "reason": reason})


class PatternSetLoadError(PatternLibraryError):
    """Raised when a pattern set file cannot be read or parsed."""

    def __init__(self, source: str, reason: str):
        message = f"Failed to load pattern set from {source}: {reason}"
        super().__init__(message, {"source": source})


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class ConfigurationError(InvoiceEngineError):
    """Raised when policy values (weights, thresholds) are inconsistent."""
    pass


# =============================================================================
# OUTPUT ERRORS
# =============================================================================

class OutputError(InvoiceEngineError):
    """Base exception for output handling errors."""
    pass


class ExcelExportError(OutputError):
    """Raised when Excel export fails."""

    def __init__(self, filepath: str, reason: str):
        message = f"Excel export failed for {filepath}: {reason}"
        super().__init__(message, {"filepath": filepath})


class JSONExportError(OutputError):
    """Raised when JSON export fails."""

    def __init__(self, filepath: str, reason: str):
        message = f"JSON export failed for {filepath}: {reason}"
        super().__init__(message, {"filepath": filepath})
