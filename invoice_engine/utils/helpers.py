"""
Helper Utilities Module.

Small generic helpers shared across the engine.

Functions:
    - ensure_directory: Create directory if it doesn't exist
    - get_file_extension: Extract file extension safely
    - generate_timestamp: Generate formatted timestamps
    - guess_content_type: Map a filename to a declared content type
    - clamp_confidence: Keep a score inside [0, 1]
    - to_serializable: Convert engine values to JSON-friendly types
    - field_value: Typed value of an extracted field
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional, Union


# Extension -> declared content type for the document loader
CONTENT_TYPES = {
    '.pdf': 'application/pdf',
    '.png': 'image/png',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.tif': 'image/tiff',
    '.tiff': 'image/tiff',
    '.bmp': 'image/bmp',
}


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it and its parents if necessary.

    Args:
        path: Directory path to ensure exists.

    Returns:
        Path object pointing to the directory.

    Example:
        >>> ensure_directory("outputs/reports")
        PosixPath('outputs/reports')
    """
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def get_file_extension(filepath: Union[str, Path]) -> str:
    """
    Extract the lowercase file extension, including the dot.

    Example:
        >>> get_file_extension("document.PDF")
        ".pdf"
        >>> get_file_extension("noextension")
        ""
    """
    return Path(filepath).suffix.lower()


def generate_timestamp(format_str: str = "%Y%m%d_%H%M%S") -> str:
    """
    Generate a formatted timestamp string.

    Example:
        >>> generate_timestamp("%Y-%m-%d")
        "2026-01-21"
    """
    return datetime.now().strftime(format_str)


def guess_content_type(filepath: Union[str, Path]) -> str:
    """
    Guess the declared content type of a document from its extension.

    Returns ``application/octet-stream`` for unknown extensions; the
    classifier still sniffs the bytes themselves.
    """
    return CONTENT_TYPES.get(get_file_extension(filepath), 'application/octet-stream')


def clamp_confidence(value: float) -> float:
    """Clamp a confidence score to [0, 1] and round to 4 decimals."""
    return round(min(1.0, max(0.0, float(value))), 4)


def to_serializable(value: Any) -> Any:
    """
    Convert engine values into JSON-serializable primitives.

    Decimals become strings so amounts keep their exact precision;
    dates become ISO strings; enums become their values. Containers are
    converted recursively.
    """
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): to_serializable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_serializable(v) for v in value]
    if hasattr(value, 'to_dict'):
        return value.to_dict()
    return value


def field_value(fields: Mapping[str, Any], name: str, expected_type: Optional[type] = None) -> Any:
    """
    Typed value of an extracted field, or None.

    Args:
        fields: Mapping of field name to ExtractedField / NOT_FOUND.
        name: Field name.
        expected_type: When given, values of any other type yield None.

    Example:
        >>> field_value(fields, "total_amount", Decimal)
        Decimal('1250.00')
    """
    result = fields.get(name)
    if result is None or not getattr(result, 'found', False):
        return None
    value = result.value
    if expected_type is not None and not isinstance(value, expected_type):
        return None
    return value
