"""PDF parser for extracting transaction data from PDF statements."""

import dataclasses
import logging
import os
import re
from datetime import date, datetime
from typing import List, Dict, Optional, Tuple

import pdfplumber

from .base import FileParser
from ..models.core import (
    BankProfile,
    ImportConfig,
    ParsedTransaction,
    ParseResult,
    PLACEHOLDER_DESCRIPTION,
    StatementPeriod,
)
from ..ports import TextExtractor
from ..utils.bank_profiles import BANK_PROFILES, GENERIC_PROFILE_KEY, detect_bank
from ..utils.error_handler import ErrorHandler, ErrorCategory


logger = logging.getLogger(__name__)


class PDFParser(FileParser):
    """Parser for PDF statements using pdfplumber.

    Extraction order: the injected text extractor (an AI service in
    production) on the statement text, then the tables pdfplumber finds,
    then line patterns for common Brazilian and US layouts.
    """

    MIN_TEXT_LENGTH = 50
    AI_CONFIDENCE = 75
    LOCAL_CONFIDENCE = 60
    MAX_DESCRIPTION_LENGTH = 100

    def __init__(self,
                 config: ImportConfig,
                 error_handler: Optional[ErrorHandler] = None,
                 text_extractor: Optional[TextExtractor] = None):
        super().__init__(config, error_handler)
        self.supported_extensions = ['.pdf']
        self.text_extractor = text_extractor

        # (pattern, day_first) pairs tried against each text line
        self.line_patterns = [
            # DD/MM/YYYY Description 1.234,56
            (re.compile(r'^(\d{1,2}/\d{1,2}/\d{2,4})\s+(.{3,80}?)\s+'
                        r'(\(?[-+]?\s*(?:R\$)?\s*\d{1,3}(?:\.\d{3})*,\d{2}\)?\s*[-DC]?)$'), True),
            # DD/MM Description 1.234,56
            (re.compile(r'^(\d{1,2}/\d{1,2})\s+(.{3,80}?)\s+'
                        r'(\(?[-+]?\s*(?:R\$)?\s*\d{1,3}(?:\.\d{3})*,\d{2}\)?\s*[-DC]?)$'), True),
            # MM/DD[/YYYY] Description 1,234.56
            (re.compile(r'^(\d{1,2}/\d{1,2}(?:/\d{2,4})?)\s+(.{3,80}?)\s+'
                        r'(\(?[-+]?\s*\$?\s*\d{1,3}(?:,\d{3})*\.\d{2}\)?-?)$'), False),
        ]

        self.statement_period_patterns = [
            r'Statement Period[:\s]+(\d{1,2}/\d{1,2}/\d{2,4})\s*(?:[-–]|to)\s*(\d{1,2}/\d{1,2}/\d{2,4})',
            r'Opening/Closing Date\s+(\d{1,2}/\d{1,2}/\d{2,4})\s*[-–]\s*(\d{1,2}/\d{1,2}/\d{2,4})',
            r'Per[ií]odo(?:\s+de)?[:\s]+(\d{1,2}/\d{1,2}/\d{2,4})\s*(?:a|at[eé]|[-–])\s*(\d{1,2}/\d{1,2}/\d{2,4})',
        ]

        self.header_description = re.compile(
            r'^(data|date|valor|amount|descri[çc][ãa]o|description|saldo|balance)', re.IGNORECASE
        )

        self.table_columns = {
            'date': [r'date', r'data'],
            'description': [r'descri', r'hist[óo]rico', r'lan[çc]amento', r'memo', r'details', r'payee'],
            'amount': [r'amount', r'valor', r'debit', r'd[ée]bito', r'credit', r'cr[ée]dito'],
        }

    def get_supported_extensions(self) -> List[str]:
        """Return list of supported file extensions"""
        return self.supported_extensions

    def validate_file(self, file_path: str) -> bool:
        """Validate if file can be opened as a PDF with at least one page"""
        if not os.path.exists(file_path) or not self._has_supported_extension(file_path):
            return False
        try:
            with pdfplumber.open(file_path) as pdf:
                return len(pdf.pages) > 0
        except Exception as e:
            logger.error(f"Error validating PDF file {file_path}: {e}")
            return False

    def parse(self, file_path: str) -> ParseResult:
        """Parse a PDF statement"""
        result = ParseResult()
        if not self._check_readable(file_path, result):
            return result.finalize(self.config.default_currency)

        try:
            text, tables = self._read_pdf(file_path)
        except Exception as e:
            # pdfminer reports broken documents through several exception types
            self._fail(result, f"Could not open PDF: {e}", 'MALFORMED_FILE', file_path, exception=e)
            return result.finalize(self.config.default_currency)

        return self.parse_text(text, file_path, tables)

    def _read_pdf(self, file_path: str) -> Tuple[str, List[List[List[Optional[str]]]]]:
        """Text of all pages joined by newlines, and every table found"""
        page_texts = []
        tables = []
        with pdfplumber.open(file_path) as pdf:
            logger.info(f"Processing PDF file: {file_path} with {len(pdf.pages)} pages")
            for page in pdf.pages:
                page_texts.append(page.extract_text() or '')
                tables.extend(page.extract_tables() or [])
        return '\n'.join(page_texts), tables

    def parse_text(self,
                   text: str,
                   source: str = '<memory>',
                   tables: Optional[List[List[List[Optional[str]]]]] = None) -> ParseResult:
        """Extract transactions from statement text and tables"""
        result = ParseResult()

        if not text or len(text.strip()) < self.MIN_TEXT_LENGTH:
            self._fail(result, "PDF contains no extractable text, possibly a scanned image",
                       'NO_EXTRACTABLE_TEXT', source)
            result.warnings.append("Use a text-based PDF rather than a scanned image")
            return result.finalize(self.config.default_currency)

        profile = detect_bank(text)
        if profile is not BANK_PROFILES[GENERIC_PROFILE_KEY]:
            result.bank_name = profile.name
            result.currency = profile.currency
        currency = result.currency or self.config.default_currency

        period = self._extract_statement_period(text, profile)
        result.period = period

        transactions = self._extract_with_ai(text, currency, result, source)
        if transactions:
            result.transactions = transactions
            return result.finalize(self.config.default_currency)

        self._warn(result, "AI extraction unavailable, using local parser (reduced accuracy)",
                   'AI_EXTRACTION_FAILED', source)

        transactions = self._extract_from_tables(tables or [], profile, currency)
        if not transactions:
            transactions = self._extract_from_text(text, period, currency)
        transactions = self._remove_repeated(transactions)

        if transactions:
            result.transactions = transactions
            result.warnings.append(
                f"Local parser found {len(transactions)} transactions, review the data before importing"
            )
        else:
            self._fail(result, "Could not identify transactions in the PDF", 'MALFORMED_FILE', source)
            result.warnings.append("The statement layout may not be supported by the local parser")

        return result.finalize(self.config.default_currency)

    def _extract_with_ai(self,
                         text: str,
                         currency: str,
                         result: ParseResult,
                         source: str) -> List[ParsedTransaction]:
        """Run the injected extractor; any failure means an empty list"""
        if self.text_extractor is None:
            return []

        try:
            extracted = self.text_extractor(text[:self.config.ai_text_limit]) or []
        except Exception as e:
            self.error_handler.log_warning(
                f"AI extraction failed: {e}",
                'AI_EXTRACTION_FAILED',
                ErrorCategory.DATA_PARSING,
                file_path=source
            )
            return []

        transactions = []
        for item in extracted:
            if not isinstance(item, ParsedTransaction) or item.amount is None or item.date is None:
                logger.debug(f"Discarding malformed extractor item: {item!r}")
                continue
            transactions.append(dataclasses.replace(
                item,
                amount=abs(item.amount),
                description=(item.description or '').strip() or PLACEHOLDER_DESCRIPTION,
                currency=item.currency or currency,
                extraction_confidence=item.extraction_confidence or self.AI_CONFIDENCE,
            ))

        if transactions:
            result.warnings.append("Transactions were interpreted by AI, review them before importing")
            logger.info(f"AI extraction returned {len(transactions)} transactions for {source}")
        return transactions

    def _extract_statement_period(self, text: str, profile: BankProfile) -> Optional[StatementPeriod]:
        """Statement period printed on the document, if any"""
        for pattern in self.statement_period_patterns:
            match = re.search(pattern, text, re.IGNORECASE)
            if not match:
                continue
            try:
                start = self.transformer.normalize_date(match.group(1), profile.date_format)
                end = self.transformer.normalize_date(match.group(2), profile.date_format)
            except ValueError:
                continue
            logger.info(f"Extracted statement period: {start} to {end}")
            return StatementPeriod(start=start, end=end)
        return None

    def _year_for(self, month: int, period: Optional[StatementPeriod]) -> int:
        """Year of a day/month date, taken from the statement period when known.

        A period crossing New Year (e.g. Dec to Jan) puts months at or after
        the start month in the start year.
        """
        if period is None:
            return datetime.now().year
        if period.start.year != period.end.year and month >= period.start.month:
            return period.start.year
        return period.end.year

    def _extract_from_tables(self,
                             tables: List[List[List[Optional[str]]]],
                             profile: BankProfile,
                             currency: str) -> List[ParsedTransaction]:
        """Extract transactions from tables with a recognizable header"""
        transactions = []
        decimal_hint = profile.decimal_separator if profile is not BANK_PROFILES[GENERIC_PROFILE_KEY] else None

        for table_idx, table in enumerate(tables):
            if not table or len(table) < 2:
                continue

            column_mapping = self._identify_columns(table[0])
            if not column_mapping:
                logger.debug(f"Could not identify column structure in table {table_idx + 1}")
                continue

            for row in table[1:]:
                cells = [(cell or '').strip() for cell in row]
                try:
                    date_str = cells[column_mapping['date']]
                    amount_str = cells[column_mapping['amount']]
                    description = cells[column_mapping['description']] if 'description' in column_mapping else ''
                    if not date_str or not amount_str:
                        continue
                    transaction_date = self.transformer.normalize_date(date_str, profile.date_format)
                    amount = self.transformer.normalize_amount(amount_str, decimal_hint)
                except (ValueError, IndexError) as e:
                    logger.debug(f"Skipping table row {cells}: {e}")
                    continue
                transaction = self._local_transaction(transaction_date, description, amount,
                                                      currency, ' | '.join(cells))
                if transaction is not None:
                    transactions.append(transaction)

        return transactions

    def _identify_columns(self, header_row: List[Optional[str]]) -> Optional[Dict[str, int]]:
        """Identify column positions based on the header row"""
        column_mapping: Dict[str, int] = {}
        for col_idx, header in enumerate(header_row):
            if not header:
                continue
            header_lower = header.lower().strip()
            for field_name, field_patterns in self.table_columns.items():
                if field_name in column_mapping:
                    continue
                if any(re.search(pattern, header_lower) for pattern in field_patterns):
                    column_mapping[field_name] = col_idx
                    break

        if 'date' not in column_mapping or 'amount' not in column_mapping:
            return None
        return column_mapping

    def _extract_from_text(self,
                           text: str,
                           period: Optional[StatementPeriod],
                           currency: str) -> List[ParsedTransaction]:
        """Extract transactions from statement lines"""
        transactions = []
        for line in text.split('\n'):
            line = ' '.join(line.split())
            if not line:
                continue
            for pattern, day_first in self.line_patterns:
                match = pattern.match(line)
                if not match:
                    continue
                transaction = self._parse_line_match(match, day_first, period, currency, line)
                if transaction is not None:
                    transactions.append(transaction)
                break
        return transactions

    def _parse_line_match(self,
                          match,
                          day_first: bool,
                          period: Optional[StatementPeriod],
                          currency: str,
                          line: str) -> Optional[ParsedTransaction]:
        date_str, description, amount_str = (g.strip() for g in match.groups())
        try:
            transaction_date = self._line_date(date_str, day_first, period)
            amount = self.transformer.normalize_amount(amount_str, ',' if day_first else '.')
        except ValueError as e:
            logger.debug(f"Could not parse line as transaction: {line} - {e}")
            return None
        return self._local_transaction(transaction_date, description, amount, currency, line)

    def _line_date(self, date_str: str, day_first: bool, period: Optional[StatementPeriod]) -> date:
        parts = [int(p) for p in date_str.split('/')]
        if day_first:
            day, month = parts[0], parts[1]
        else:
            month, day = parts[0], parts[1]

        if len(parts) > 2:
            year = parts[2] + 2000 if parts[2] < 100 else parts[2]
        else:
            year = self._year_for(month, period)
        return date(year, month, day)

    def _local_transaction(self,
                           transaction_date: date,
                           description: str,
                           amount,
                           currency: str,
                           original_line: str) -> Optional[ParsedTransaction]:
        """Build a fallback transaction, None for headers and zero amounts"""
        description = (description or '').strip()
        if len(description) < 3 or self.header_description.match(description) or amount == 0:
            return None

        return self.transformer.build_transaction(
            transaction_date,
            description[:self.MAX_DESCRIPTION_LENGTH],
            amount,
            signed=False,
            original_line=original_line,
            currency=currency,
            extraction_confidence=self.LOCAL_CONFIDENCE,
        )

    @staticmethod
    def _remove_repeated(transactions: List[ParsedTransaction]) -> List[ParsedTransaction]:
        """Drop lines found twice (same date, amount and description)"""
        seen = set()
        unique = []
        for transaction in transactions:
            key = (transaction.date, transaction.amount, transaction.description)
            if key in seen:
                continue
            seen.add(key)
            unique.append(transaction)
        return unique
