"""
Post-Processing Module for the Invoice Engine.

Everything that happens after fields are located:
    - Normalizers: typed dates, amounts, identifiers and currencies
    - ConfidenceCalculator: overall confidence with its breakdown
    - Validator: error/warning rules over the extracted fields
    - ReviewRouter: auto-approve / review / correction decision

Author: ML Engineering Team
"""

from .normalizers import AmountNormalizer, CurrencyNormalizer, DateNormalizer, IdentifierNormalizer
from .confidence import ConfidenceBreakdown, ConfidenceCalculator, ConsistencyCheck
from .validators import (
    AmountValidator,
    DateValidator,
    DuplicateChecker,
    DuplicateCheckResult,
    FieldValidator,
    IssueCode,
    ValidationIssue,
    ValidationKind,
    Validator,
)
from .router import ProcessingDecision, ReviewRouter

__all__ = [
    'AmountNormalizer',
    'CurrencyNormalizer',
    'DateNormalizer',
    'IdentifierNormalizer',
    'ConfidenceBreakdown',
    'ConfidenceCalculator',
    'ConsistencyCheck',
    'AmountValidator',
    'DateValidator',
    'DuplicateChecker',
    'DuplicateCheckResult',
    'FieldValidator',
    'IssueCode',
    'ValidationIssue',
    'ValidationKind',
    'Validator',
    'ProcessingDecision',
    'ReviewRouter',
]
