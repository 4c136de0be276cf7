"""Abstract base classes and shared normalization for statement parsers."""

import os
import re
from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import List, Optional

from ..models.core import (
    ImportConfig,
    ParsedTransaction,
    ParseResult,
    PLACEHOLDER_DESCRIPTION,
    TransactionType,
)
from ..utils.error_handler import ErrorHandler, ErrorCategory, handle_file_access_error


class FileParser(ABC):
    """Abstract base class for all statement parsers.

    ``parse`` never raises for a readable file: problems with single rows end
    up in ``ParseResult.warnings`` and a file that cannot be read at all ends
    up in ``ParseResult.errors`` with no transactions.
    """

    def __init__(self, config: ImportConfig, error_handler: Optional[ErrorHandler] = None):
        self.config = config
        self.error_handler = error_handler or ErrorHandler()
        self.transformer = DataTransformer(config)

    @abstractmethod
    def parse(self, file_path: str) -> ParseResult:
        """Parse the file and return the parse result"""

    @abstractmethod
    def get_supported_extensions(self) -> List[str]:
        """Return list of supported file extensions"""

    @abstractmethod
    def validate_file(self, file_path: str) -> bool:
        """Validate if file can be processed by this parser"""

    def _has_supported_extension(self, file_path: str) -> bool:
        _, ext = os.path.splitext(file_path.lower())
        return ext in self.get_supported_extensions()

    def _check_readable(self, file_path: str, result: ParseResult) -> bool:
        """Record a fatal error on ``result`` when the file cannot be opened"""
        if not os.path.isfile(file_path):
            self._fail(result, f"File not found: {file_path}", "FILE_NOT_FOUND",
                       file_path, category=ErrorCategory.FILE_ACCESS)
            return False
        if not os.access(file_path, os.R_OK):
            handle_file_access_error(self.error_handler, file_path, PermissionError(file_path))
            result.errors.append(f"Permission denied accessing file: {file_path}")
            return False
        return True

    def _warn(self, result: ParseResult, message: str, warning_type: str, file_path: str,
              line_number: Optional[int] = None):
        result.warnings.append(message)
        self.error_handler.log_warning(
            message,
            warning_type,
            ErrorCategory.DATA_PARSING,
            file_path=file_path,
            line_number=line_number
        )

    def _fail(self, result: ParseResult, message: str, error_type: str, file_path: str,
              exception: Optional[Exception] = None,
              category: ErrorCategory = ErrorCategory.FILE_FORMAT):
        result.errors.append(message)
        result.transactions = []
        self.error_handler.log_error(
            message,
            error_type,
            category,
            file_path=file_path,
            exception=exception
        )


class DataTransformer:
    """Transforms raw statement fields into normalized values"""

    INCOME_KEYWORDS = (
        'salário', 'salario', 'salary', 'payroll', 'pagamento recebido', 'pix recebido',
        'ted recebida', 'transferência recebida', 'transferencia recebida', 'depósito',
        'deposito', 'deposit', 'rendimento', 'dividendo', 'dividend', 'reembolso', 'refund',
        'cashback', 'crédito', 'income', 'received'
    )

    INCOME_MARKERS = {'c', 'cr', 'credit', 'crédito', 'credito', 'dep', 'deposit', 'income',
                      'entrada', 'receita'}
    EXPENSE_MARKERS = {'d', 'dr', 'debit', 'débito', 'debito', 'payment', 'expense',
                       'saída', 'saida', 'despesa', 'withdrawal'}

    EXTENDED_DATE_FORMATS = [
        "%m-%d-%Y", "%d-%m-%Y", "%Y/%m/%d", "%d.%m.%Y",
        "%m-%d-%Y %H:%M:%S", "%d-%m-%Y %H:%M:%S", "%Y/%m/%d %H:%M:%S",
        "%B %d, %Y", "%b %d, %Y", "%d %B %Y", "%d %b %Y"
    ]

    _CURRENCY_SYMBOLS = re.compile(r'(R\$|US\$|C\$|A\$|S/|CHF|[$€£¥₹₽₪₩฿₫])')

    def __init__(self, config: ImportConfig):
        self.config = config

    def normalize_date(self, date_str: str, preferred_format: Optional[str] = None) -> date:
        """Convert various date formats to a calendar date.

        ``preferred_format`` (usually a bank profile's format) is tried first,
        which resolves day/month ambiguity for that institution.
        """
        if date_str is None or not str(date_str).strip():
            raise ValueError("Date string cannot be empty")

        date_str = ' '.join(str(date_str).split())

        formats = []
        if preferred_format:
            formats.append(preferred_format)
        formats.extend(self.config.date_formats)
        formats.extend(self.EXTENDED_DATE_FORMATS)

        for fmt in formats:
            try:
                return datetime.strptime(date_str, fmt).date()
            except ValueError:
                continue

        # ISO with time, e.g. "2023-12-31T00:00:00" or with a zone suffix
        iso_match = re.match(r'(\d{4}-\d{2}-\d{2})T\d{2}:\d{2}', date_str)
        if iso_match:
            return datetime.strptime(iso_match.group(1), "%Y-%m-%d").date()

        # Ordinal indicators (1st, 2nd, 3rd, ...)
        ordinal_cleaned = re.sub(r'(\d+)(st|nd|rd|th)\b', r'\1', date_str)
        if ordinal_cleaned != date_str:
            for fmt in formats:
                try:
                    return datetime.strptime(ordinal_cleaned, fmt).date()
                except ValueError:
                    continue

        raise ValueError(f"Unable to parse date: {date_str} with any supported format")

    def normalize_amount(self, amount_str: str, decimal_separator: Optional[str] = None) -> Decimal:
        """Convert an amount string to a signed Decimal rounded to cents.

        Negative markers: parentheses, a leading or trailing minus, or a
        ``D``/``DR`` suffix. When only one kind of separator occurs exactly
        once with three digits after it, ``decimal_separator`` (the bank's
        locale hint) decides whether it is decimal; without a hint it is read
        as a thousands separator. A single separator followed by any other
        number of digits is decimal.
        """
        if amount_str is None or str(amount_str).strip() == '':
            raise ValueError("Amount string cannot be empty")

        raw = str(amount_str).strip()
        cleaned = self._CURRENCY_SYMBOLS.sub('', raw)
        cleaned = re.sub(r'\s', '', cleaned)

        is_negative = False
        suffix = re.match(r'^(.*\d)(CR|DR|C|D)$', cleaned, re.IGNORECASE)
        if suffix:
            cleaned = suffix.group(1)
            is_negative = suffix.group(2).upper().startswith('D')

        if cleaned.startswith('(') and cleaned.endswith(')'):
            cleaned = cleaned[1:-1]
            is_negative = True
        if cleaned.startswith('-'):
            cleaned = cleaned[1:]
            is_negative = True
        elif cleaned.endswith('-'):
            cleaned = cleaned[:-1]
            is_negative = True
        if cleaned.startswith('+'):
            cleaned = cleaned[1:]

        cleaned = re.sub(r'[^\d.,]', '', cleaned)
        cleaned = self._resolve_separators(cleaned, decimal_separator)

        if not cleaned or cleaned == '.' or not re.search(r'\d', cleaned):
            raise ValueError(f"Unable to parse amount: {amount_str}")

        try:
            amount = Decimal(cleaned)
        except InvalidOperation as e:
            raise ValueError(f"Unable to parse amount: {amount_str}") from e

        if is_negative:
            amount = -amount
        return amount.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)

    def _resolve_separators(self, digits: str, decimal_separator: Optional[str]) -> str:
        """Rewrite ``digits`` so that ``.`` is the only, decimal, separator"""
        has_dot = '.' in digits
        has_comma = ',' in digits

        if has_dot and has_comma:
            decimal = '.' if digits.rfind('.') > digits.rfind(',') else ','
        elif has_dot or has_comma:
            sep = '.' if has_dot else ','
            tail = digits.rsplit(sep, 1)[1]
            if digits.count(sep) > 1:
                decimal = None
            elif len(tail) == 3:
                decimal = sep if decimal_separator == sep else None
            else:
                decimal = sep
        else:
            return digits

        if decimal is None:
            return digits.replace('.', '').replace(',', '')

        thousands = ',' if decimal == '.' else '.'
        return digits.replace(thousands, '').replace(decimal, '.')

    def clean_description(self, description: str) -> str:
        """Clean and standardize transaction descriptions"""
        if description is None:
            return ""

        description = str(description).strip()
        cleaned = ' '.join(description.split())

        prefixes_to_remove = [
            r'^DEBIT\s+',
            r'^CREDIT\s+',
            r'^ACH\s+',
            r'^POS\s+',
            r'^CHECKCARD\s+',
            r'^VISA\s+',
            r'^MASTERCARD\s+',
        ]
        for prefix in prefixes_to_remove:
            cleaned = re.sub(prefix, '', cleaned, flags=re.IGNORECASE)

        # Trailing reference numbers like "REF#123456" or "TXN#ABC123"
        cleaned = re.sub(r'\s+(REF|TXN|TRACE|AUTH)#?\s*[A-Z0-9]+\s*$', '', cleaned, flags=re.IGNORECASE)

        # Trailing dates
        cleaned = re.sub(r'\s+\d{2}/\d{2}/\d{4}\s*$', '', cleaned)
        cleaned = re.sub(r'\s+\d{4}-\d{2}-\d{2}\s*$', '', cleaned)

        cleaned = re.sub(r'[*]{2,}', ' ', cleaned)
        cleaned = re.sub(r'[-]{2,}', ' ', cleaned)
        cleaned = re.sub(r'[.]{2,}', ' ', cleaned)

        cleaned = ' '.join(cleaned.split()).strip()
        return cleaned if cleaned else description

    def type_from_marker(self, marker: Optional[str]) -> Optional[TransactionType]:
        """Interpret a debit/credit column value, None when it says nothing"""
        if marker is None:
            return None
        normalized = str(marker).strip().lower()
        if normalized in self.INCOME_MARKERS:
            return TransactionType.INCOME
        if normalized in self.EXPENSE_MARKERS:
            return TransactionType.EXPENSE
        return None

    def determine_type(self, amount: Decimal, description: str, signed: bool = True) -> TransactionType:
        """Determine transaction type from description and amount sign.

        Income keywords force income whatever the sign. Otherwise a positive
        signed amount is income and everything else is an expense.
        """
        description_lower = (description or '').lower()
        if any(keyword in description_lower for keyword in self.INCOME_KEYWORDS):
            return TransactionType.INCOME
        if signed and amount > 0:
            return TransactionType.INCOME
        return TransactionType.EXPENSE

    def build_transaction(self,
                          transaction_date: date,
                          description: Optional[str],
                          amount: Decimal,
                          transaction_type: Optional[TransactionType] = None,
                          signed: bool = True,
                          **extra) -> ParsedTransaction:
        """Assemble a ParsedTransaction with a positive amount and a type"""
        raw_description = description or ''
        if transaction_type is None:
            transaction_type = self.determine_type(amount, raw_description, signed=signed)

        cleaned = self.clean_description(raw_description)
        return ParsedTransaction(
            date=transaction_date,
            description=cleaned or PLACEHOLDER_DESCRIPTION,
            amount=abs(amount),
            type=transaction_type,
            **extra
        )
