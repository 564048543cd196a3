"""
Utility Module for the Invoice Engine.

Common utilities used across all other modules:
    - Logging configuration
    - Exception hierarchy
    - File and serialization helpers
"""

from .logger import setup_logger, setup_logger_from_config, get_logger, set_level
from .helpers import (
    ensure_directory,
    get_file_extension,
    generate_timestamp,
    guess_content_type,
    clamp_confidence,
    to_serializable,
    field_value,
)

__all__ = [
    'setup_logger',
    'setup_logger_from_config',
    'get_logger',
    'set_level',
    'ensure_directory',
    'get_file_extension',
    'generate_timestamp',
    'guess_content_type',
    'clamp_confidence',
    'to_serializable',
    'field_value',
]
