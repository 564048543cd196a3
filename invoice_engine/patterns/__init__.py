"""
Pattern Library for the Invoice Engine.

Field patterns, vendor templates and the versioned library that
publishes them as immutable snapshots.

Author: ML Engineering Team
"""

from .models import (
    FIELD_TYPES,
    SUPPORTED_FIELDS,
    FieldPattern,
    FieldType,
    PatternCategory,
    VendorTemplate,
)
from .library import PatternLibrary, PatternSnapshot, parse_pattern_set

__all__ = [
    'FIELD_TYPES',
    'SUPPORTED_FIELDS',
    'FieldPattern',
    'FieldType',
    'PatternCategory',
    'VendorTemplate',
    'PatternLibrary',
    'PatternSnapshot',
    'parse_pattern_set',
]
