"""
Data Normalizers Module.

This module turns captured field text into typed values:
    - Dates -> datetime.date
    - Currency/amount values -> decimal.Decimal
    - Identifiers (invoice / PO numbers) -> cleaned upper-case strings
    - Currency symbols -> ISO codes

Author: ML Engineering Team
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, List

from dateutil import parser as date_parser

from config import get_config
from invoice_engine.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


class DateNormalizer:
    """
    Parses date strings into date objects.

    Explicit strptime formats are tried first (a pattern's own format hint
    ahead of the configured list), then dateutil as a fallback.

    Attributes:
        input_formats: List of recognized input format strings
        dayfirst: Passed to dateutil for ambiguous numeric dates

    Example:
        >>> normalizer = DateNormalizer()
        >>> normalizer.normalize("01/15/2026")
        datetime.date(2026, 1, 15)
        >>> normalizer.normalize("January 15th, 2026")
        datetime.date(2026, 1, 15)
    """

    def __init__(
        self,
        input_formats: Optional[List[str]] = None,
        dayfirst: Optional[bool] = None
    ) -> None:
        """Initialize the date normalizer with configuration."""
        self.input_formats = input_formats or get_config(
            "postprocessing.date.input_formats",
            [
                "%Y-%m-%d",
                "%m/%d/%Y",
                "%m-%d-%Y",
                "%d.%m.%Y",
                "%B %d, %Y",
                "%b %d, %Y",
                "%d %B %Y",
                "%d %b %Y",
            ]
        )
        self.dayfirst = dayfirst if dayfirst is not None else get_config(
            "postprocessing.date.dayfirst", False
        )

    def normalize(self, date_str: str, format_hint: Optional[str] = None) -> Optional[date]:
        """
        Parse a date string.

        Args:
            date_str: Input date string in any recognized format.
            format_hint: strptime format tried before the others.

        Returns:
            The parsed date, or None if parsing fails.
        """
        if not date_str:
            return None

        date_str = self._clean_date_string(date_str)

        formats = [format_hint] + self.input_formats if format_hint else self.input_formats
        parsed = self._try_explicit_formats(date_str, formats)

        if parsed is None:
            parsed = self._try_dateutil_parser(date_str)

        if parsed is None:
            logger.debug(f"Could not parse date: {date_str}")
            return None

        return parsed.date()

    def _clean_date_string(self, date_str: str) -> str:
        """
        Clean and prepare date string for parsing.

        Args:
            date_str: Raw date string.

        Returns:
            Cleaned date string.
        """
        # Remove extra whitespace
        date_str = ' '.join(date_str.split())

        # Remove ordinal suffixes (1st, 2nd, 3rd, 4th, etc.)
        date_str = re.sub(r'(\d+)(st|nd|rd|th)\b', r'\1', date_str, flags=re.IGNORECASE)

        # "Jan. 5" -> "Jan 5"
        date_str = re.sub(r'([A-Za-z]{3,9})\.', r'\1', date_str)

        return date_str.strip(' ,')

    def _try_explicit_formats(self, date_str: str, formats: List[str]) -> Optional[datetime]:
        for fmt in formats:
            try:
                return datetime.strptime(date_str, fmt)
            except ValueError:
                continue
        return None

    def _try_dateutil_parser(self, date_str: str) -> Optional[datetime]:
        # Require at least one digit so bare words never parse as "today"
        if not re.search(r'\d', date_str):
            return None
        try:
            return date_parser.parse(date_str, dayfirst=self.dayfirst)
        except (ValueError, OverflowError):
            return None


class AmountNormalizer:
    """
    Normalizes currency/amount strings to Decimal.

    Handles currency symbols and codes, thousand separators, and
    European decimal commas.

    Attributes:
        decimal_places: Number of decimal places in the result

    Example:
        >>> normalizer = AmountNormalizer()
        >>> normalizer.normalize("$1,234.56")
        Decimal('1234.56')
        >>> normalizer.normalize("€ 1.234,56")
        Decimal('1234.56')
    """

    # Currency symbols and codes to remove
    CURRENCY_SYMBOLS = ['$', '€', '£', '¥', '₹', '₽', '₿', '฿', '₫', '₴', '₦']
    CURRENCY_CODES = ['USD', 'EUR', 'GBP', 'JPY', 'INR', 'CAD', 'AUD', 'CNY', 'RUB', 'CHF']

    def __init__(self, decimal_places: Optional[int] = None) -> None:
        """Initialize the amount normalizer with configuration."""
        self.decimal_places = (
            decimal_places if decimal_places is not None
            else get_config("postprocessing.amount.decimal_places", 2)
        )
        self._quantum = Decimal(1).scaleb(-self.decimal_places)

    def normalize(self, amount_str: str) -> Optional[Decimal]:
        """
        Parse an amount string.

        Args:
            amount_str: Input amount string (e.g., "$1,234.56").

        Returns:
            Decimal rounded to decimal_places, or None.
        """
        if amount_str is None:
            return None

        amount_str = self._clean_amount_string(str(amount_str))
        if not amount_str or not re.search(r'\d', amount_str):
            return None

        amount_str = self._handle_european_format(amount_str)

        # Remove thousand separators
        amount_str = amount_str.replace(',', '')

        try:
            value = Decimal(amount_str)
        except InvalidOperation:
            logger.debug(f"Could not parse amount: {amount_str}")
            return None

        return value.quantize(self._quantum, rounding=ROUND_HALF_UP)

    def _clean_amount_string(self, amount_str: str) -> str:
        # Remove extra whitespace
        amount_str = ' '.join(amount_str.split())

        # Remove currency symbols
        for symbol in self.CURRENCY_SYMBOLS:
            amount_str = amount_str.replace(symbol, '')

        # Remove currency codes (case-insensitive)
        for code in self.CURRENCY_CODES:
            amount_str = re.sub(rf'\b{code}\b', '', amount_str, flags=re.IGNORECASE)

        # Accounting negatives: (123.45)
        negative = amount_str.strip().startswith('(') and amount_str.strip().endswith(')')

        # Keep only digits, comma, dot, and minus
        amount_str = re.sub(r'[^\d,.\-]', '', amount_str)
        amount_str = amount_str.strip('.,')

        if negative and not amount_str.startswith('-'):
            amount_str = '-' + amount_str

        return amount_str

    def _handle_european_format(self, amount_str: str) -> str:
        """
        Convert European format (comma decimal) to US format (dot decimal).

        Args:
            amount_str: Amount string.

        Returns:
            Amount string in US format.
        """
        comma_pos = amount_str.rfind(',')
        dot_pos = amount_str.rfind('.')

        if comma_pos > dot_pos:
            after_comma = amount_str[comma_pos + 1:]
            # A single comma followed by 1-2 digits is a decimal comma
            if len(after_comma) <= 2 and after_comma.isdigit():
                head, _, tail = amount_str.replace('.', '').rpartition(',')
                amount_str = head.replace(',', '') + '.' + tail
        elif dot_pos > comma_pos and amount_str.count('.') > 1:
            # 1.234.567 style thousands with no decimals
            head, _, tail = amount_str.rpartition('.')
            if len(tail) == 3:
                amount_str = amount_str.replace('.', '')
            else:
                amount_str = head.replace('.', '') + '.' + tail

        return amount_str

    def is_valid_amount(self, amount_str: str) -> bool:
        """True for strings that parse to a non-negative amount."""
        value = self.normalize(amount_str)
        return value is not None and value >= 0


class IdentifierNormalizer:
    """
    Cleans invoice and purchase-order numbers.

    Example:
        >>> IdentifierNormalizer().normalize(" inv-2024-001. ")
        'INV-2024-001'
    """

    def normalize(self, value: str) -> Optional[str]:
        if not value:
            return None
        cleaned = value.strip().strip('.,:;#').strip()
        return cleaned.upper() or None

    @staticmethod
    def suggest(value: str) -> str:
        """Canonical form: alphanumerics and hyphens only, upper-cased."""
        return re.sub(r'[^A-Za-z0-9\-]', '', value or '').upper()


class CurrencyNormalizer:
    """Maps currency symbols and codes to ISO 4217 codes."""

    SYMBOL_TO_CODE = {
        '$': 'USD',
        '€': 'EUR',
        '£': 'GBP',
        '¥': 'JPY',
        '₹': 'INR',
    }

    def normalize(self, value: str) -> Optional[str]:
        if not value:
            return None
        value = value.strip()
        if value in self.SYMBOL_TO_CODE:
            return self.SYMBOL_TO_CODE[value]
        if re.fullmatch(r'[A-Za-z]{3}', value):
            return value.upper()
        return None
