"""
Data Validators Module.

Stateless rule evaluation over extracted invoice fields. Every rule
produces ValidationIssue records; nothing raises. Issues come in two
kinds:

    ERROR   - blocks auto-approval (the router forces manual correction)
    WARNING - accompanies any decision, with a suggested value where one
              can be derived

Rule groups:
    - FieldValidator:  required fields, invoice-number shape, email,
                       currency, low field confidence
    - AmountValidator: non-positive total, subtotal vs total, arithmetic
                       mismatch, tax rate, unusually large amounts
    - DateValidator:   due before invoice date, future/old invoices,
                       long payment terms
    - Duplicate check: reported by an external collaborator

Usage:
    from invoice_engine.postprocessor import Validator

    issues = Validator().validate(fields)
    errors = [i for i in issues if i.is_error]

Author: ML Engineering Team
"""

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from config import get_config
from invoice_engine.utils.helpers import field_value, to_serializable
from invoice_engine.utils.logger import get_logger
from .normalizers import IdentifierNormalizer

# Initialize module logger
logger = get_logger(__name__)


class ValidationKind(Enum):
    ERROR = "error"
    WARNING = "warning"


class IssueCode:
    """Machine-readable validation issue codes."""
    MISSING_REQUIRED = "MISSING_REQUIRED"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_DATE_ORDER = "INVALID_DATE_ORDER"
    SUBTOTAL_EXCEEDS_TOTAL = "SUBTOTAL_EXCEEDS_TOTAL"
    DUPLICATE_INVOICE = "DUPLICATE_INVOICE"
    UNUSUAL_FORMAT = "UNUSUAL_FORMAT"
    LARGE_AMOUNT = "LARGE_AMOUNT"
    FUTURE_DATE = "FUTURE_DATE"
    OLD_DATE = "OLD_DATE"
    LONG_PAYMENT_TERMS = "LONG_PAYMENT_TERMS"
    AMOUNT_MISMATCH = "AMOUNT_MISMATCH"
    HIGH_TAX_RATE = "HIGH_TAX_RATE"
    INVALID_EMAIL = "INVALID_EMAIL"
    UNUSUAL_CURRENCY = "UNUSUAL_CURRENCY"
    LOW_CONFIDENCE = "LOW_CONFIDENCE"


@dataclass(frozen=True)
class ValidationIssue:
    """
    One validation finding.

    Attributes:
        field: Field the issue is about ("invoice" for document-level issues)
        kind: ERROR or WARNING
        code: One of IssueCode
        message: Human-readable description
        suggested_value: Corrected value, when derivable
    """
    field: str
    kind: ValidationKind
    code: str
    message: str
    suggested_value: Optional[Any] = None

    @property
    def is_error(self) -> bool:
        return self.kind == ValidationKind.ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {
            'field': self.field,
            'kind': self.kind.value,
            'code': self.code,
            'message': self.message,
            'suggested_value': to_serializable(self.suggested_value),
        }


def error(field: str, code: str, message: str) -> ValidationIssue:
    return ValidationIssue(field, ValidationKind.ERROR, code, message)


def warning(field: str, code: str, message: str, suggested_value: Any = None) -> ValidationIssue:
    return ValidationIssue(field, ValidationKind.WARNING, code, message, suggested_value)


@dataclass(frozen=True)
class DuplicateCheckResult:
    """Answer from the persistence collaborator's duplicate lookup."""
    is_duplicate: bool = False
    matched_id: Optional[str] = None


# Called with {'invoice_number', 'vendor_name', 'total_amount', 'invoice_date'}
DuplicateChecker = Callable[[Mapping[str, Any]], DuplicateCheckResult]


class FieldValidator:
    """
    Presence and shape checks on individual fields.

    Example:
        >>> FieldValidator().validate({})[0].code
        'MISSING_REQUIRED'
    """

    def __init__(
        self,
        required_fields: Optional[Sequence[str]] = None,
        invoice_number_pattern: Optional[str] = None,
        accepted_currencies: Optional[Sequence[str]] = None,
        low_confidence_threshold: Optional[float] = None
    ) -> None:
        self.required_fields = list(required_fields or get_config(
            "validation.required_fields", ["invoice_number", "total_amount", "vendor_name"]
        ))
        self.invoice_number_pattern = re.compile(
            invoice_number_pattern or get_config(
                "validation.invoice_number_pattern", r"^[A-Za-z0-9\-]{3,20}$"
            )
        )
        self.accepted_currencies = {
            c.upper() for c in (accepted_currencies or get_config(
                "validation.accepted_currencies",
                ["USD", "EUR", "GBP", "CAD", "AUD", "JPY", "CHF", "INR"]
            ))
        }
        self.low_confidence_threshold = (
            low_confidence_threshold if low_confidence_threshold is not None
            else get_config("validation.low_confidence_threshold", 0.5)
        )

    def validate(self, fields: Mapping[str, Any]) -> List[ValidationIssue]:
        issues = []

        for name in self.required_fields:
            if field_value(fields, name) in (None, ''):
                issues.append(error(
                    name, IssueCode.MISSING_REQUIRED, f"Required field '{name}' was not found"
                ))

        invoice_number = field_value(fields, 'invoice_number', str)
        if invoice_number and not self.invoice_number_pattern.match(invoice_number):
            suggestion = IdentifierNormalizer.suggest(invoice_number)
            issues.append(warning(
                'invoice_number', IssueCode.UNUSUAL_FORMAT,
                f"Invoice number '{invoice_number}' has an unusual format",
                suggestion or None,
            ))

        email = field_value(fields, 'vendor_email', str)
        vendor_email = fields.get('vendor_email')
        if email and not getattr(vendor_email, 'format_valid', True):
            issues.append(warning('vendor_email', IssueCode.INVALID_EMAIL, f"'{email}' is not a valid email address"))

        currency = field_value(fields, 'currency', str)
        if currency and currency.upper() not in self.accepted_currencies:
            issues.append(warning(
                'currency', IssueCode.UNUSUAL_CURRENCY, f"Currency '{currency}' is not commonly accepted"
            ))

        for name, result in fields.items():
            if getattr(result, 'found', False) and result.confidence < self.low_confidence_threshold:
                issues.append(warning(
                    name, IssueCode.LOW_CONFIDENCE,
                    f"Low extraction confidence for '{name}' ({result.confidence:.2f})"
                ))

        return issues


class AmountValidator:
    """
    Checks on total, subtotal and tax.

    Example:
        >>> validator = AmountValidator()
        >>> [i.code for i in validator.validate(None, None, Decimal("0"))]
        ['INVALID_AMOUNT']
    """

    def __init__(
        self,
        large_amount_threshold: Optional[float] = None,
        mismatch_tolerance: Optional[float] = None,
        max_tax_rate: Optional[float] = None
    ) -> None:
        self.large_amount_threshold = Decimal(str(
            large_amount_threshold if large_amount_threshold is not None
            else get_config("validation.large_amount_threshold", 50000)
        ))
        self.mismatch_tolerance = Decimal(str(
            mismatch_tolerance if mismatch_tolerance is not None
            else get_config("validation.amount_mismatch_tolerance", 0.10)
        ))
        self.max_tax_rate = Decimal(str(
            max_tax_rate if max_tax_rate is not None
            else get_config("validation.max_tax_rate", 0.5)
        ))

    def validate(
        self,
        subtotal: Optional[Decimal],
        tax: Optional[Decimal],
        total: Optional[Decimal]
    ) -> List[ValidationIssue]:
        issues = []

        if total is not None:
            if total <= 0:
                issues.append(error(
                    'total_amount', IssueCode.INVALID_AMOUNT, f"Total amount must be positive, got {total}"
                ))
            elif total > self.large_amount_threshold:
                issues.append(warning(
                    'total_amount', IssueCode.LARGE_AMOUNT,
                    f"Total amount {total} exceeds {self.large_amount_threshold}"
                ))

        if subtotal is not None and total is not None and total > 0:
            if subtotal > total:
                issues.append(error(
                    'subtotal_amount', IssueCode.SUBTOTAL_EXCEEDS_TOTAL,
                    f"Subtotal {subtotal} exceeds total {total}"
                ))
            else:
                expected = subtotal + (tax or Decimal('0'))
                if abs(expected - total) > self.mismatch_tolerance * total:
                    issues.append(warning(
                        'total_amount', IssueCode.AMOUNT_MISMATCH,
                        f"Subtotal + tax ({expected}) does not match total ({total})",
                        expected,
                    ))

        if subtotal is not None and tax is not None and subtotal > 0:
            rate = tax / subtotal
            if rate > self.max_tax_rate:
                issues.append(warning(
                    'tax_amount', IssueCode.HIGH_TAX_RATE,
                    f"Tax rate {rate:.0%} is unusually high"
                ))

        return issues


class DateValidator:
    """
    Date range and ordering checks.

    Attributes:
        today: Callable returning the reference date (injectable for tests)
    """

    def __init__(
        self,
        today: Optional[Callable[[], date]] = None,
        max_invoice_age_days: Optional[int] = None,
        max_future_days: Optional[int] = None,
        max_payment_term_days: Optional[int] = None
    ) -> None:
        self.today = today or date.today
        self.max_invoice_age_days = (
            max_invoice_age_days if max_invoice_age_days is not None
            else get_config("validation.max_invoice_age_days", 730)
        )
        self.max_future_days = (
            max_future_days if max_future_days is not None
            else get_config("validation.max_future_days", 0)
        )
        self.max_payment_term_days = (
            max_payment_term_days if max_payment_term_days is not None
            else get_config("validation.max_payment_term_days", 90)
        )

    def validate(self, invoice_date: Optional[date], due_date: Optional[date]) -> List[ValidationIssue]:
        issues = []
        today = self.today()

        if invoice_date is not None:
            age = (today - invoice_date).days
            if age < -self.max_future_days:
                issues.append(warning(
                    'invoice_date', IssueCode.FUTURE_DATE, f"Invoice date {invoice_date} is in the future"
                ))
            elif age > self.max_invoice_age_days:
                issues.append(warning(
                    'invoice_date', IssueCode.OLD_DATE,
                    f"Invoice date {invoice_date} is more than {self.max_invoice_age_days} days old"
                ))

        if invoice_date is not None and due_date is not None:
            term = (due_date - invoice_date).days
            if term < 0:
                issues.append(error(
                    'due_date', IssueCode.INVALID_DATE_ORDER,
                    f"Due date {due_date} is before invoice date {invoice_date}"
                ))
            elif term > self.max_payment_term_days:
                issues.append(warning(
                    'due_date', IssueCode.LONG_PAYMENT_TERMS,
                    f"Payment term of {term} days exceeds {self.max_payment_term_days}"
                ))

        return issues


class Validator:
    """
    Runs every rule group over one invoice's fields.

    Attributes:
        fields: FieldValidator
        amounts: AmountValidator
        dates: DateValidator

    Example:
        >>> validator = Validator(today=lambda: date(2024, 3, 1))
        >>> issues = validator.validate(fields)
        >>> any(issue.is_error for issue in issues)
        False
    """

    def __init__(
        self,
        field_validator: Optional[FieldValidator] = None,
        amount_validator: Optional[AmountValidator] = None,
        date_validator: Optional[DateValidator] = None,
        today: Optional[Callable[[], date]] = None
    ) -> None:
        self.fields = field_validator or FieldValidator()
        self.amounts = amount_validator or AmountValidator()
        self.dates = date_validator or DateValidator(today=today)

    def validate(
        self,
        fields: Mapping[str, Any],
        duplicate: Optional[Union[DuplicateCheckResult, DuplicateChecker]] = None
    ) -> List[ValidationIssue]:
        """
        Validate extracted fields.

        Args:
            fields: Field name -> ExtractedField / NOT_FOUND.
            duplicate: A DuplicateCheckResult, or a checker callable that
                is asked when an invoice number was found.

        Returns:
            Issues, errors and warnings mixed, in rule order.
        """
        issues: List[ValidationIssue] = []

        issues.extend(self.fields.validate(fields))
        issues.extend(self.amounts.validate(
            field_value(fields, 'subtotal_amount', Decimal),
            field_value(fields, 'tax_amount', Decimal),
            field_value(fields, 'total_amount', Decimal),
        ))
        issues.extend(self.dates.validate(
            field_value(fields, 'invoice_date', date),
            field_value(fields, 'due_date', date),
        ))

        duplicate_issue = self._check_duplicate(fields, duplicate)
        if duplicate_issue is not None:
            issues.append(duplicate_issue)

        errors = sum(1 for i in issues if i.is_error)
        logger.debug(f"Validation produced {errors} errors, {len(issues) - errors} warnings")
        return issues

    @staticmethod
    def _check_duplicate(
        fields: Mapping[str, Any],
        duplicate: Optional[Union[DuplicateCheckResult, DuplicateChecker]]
    ) -> Optional[ValidationIssue]:
        if duplicate is None:
            return None

        if not isinstance(duplicate, DuplicateCheckResult):
            invoice_number = field_value(fields, 'invoice_number')
            if invoice_number is None:
                return None
            duplicate = duplicate({
                'invoice_number': invoice_number,
                'vendor_name': field_value(fields, 'vendor_name'),
                'total_amount': field_value(fields, 'total_amount'),
                'invoice_date': field_value(fields, 'invoice_date'),
            })

        if not duplicate.is_duplicate:
            return None

        matched = f" (matches {duplicate.matched_id})" if duplicate.matched_id else ""
        return error('invoice_number', IssueCode.DUPLICATE_INVOICE, f"Invoice was already processed{matched}")
