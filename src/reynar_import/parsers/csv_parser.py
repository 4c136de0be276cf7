"""CSV statement parser with delimiter, bank and column detection."""

import csv
import io
import logging
import os
import re
from decimal import Decimal
from typing import List, Dict, Optional, Tuple

import pandas as pd

from .base import FileParser
from ..models.core import ImportConfig, ParsedTransaction, ParseResult, TransactionType
from ..utils.bank_profiles import GENERIC_PROFILE_KEY, BANK_PROFILES, detect_bank
from ..utils.error_handler import ErrorHandler, handle_file_access_error, handle_parsing_error


logger = logging.getLogger(__name__)


class RowError(ValueError):
    """A single CSV row could not be converted"""

    def __init__(self, field_name: str, raw_value: str, message: str):
        super().__init__(message)
        self.field_name = field_name
        self.raw_value = raw_value


class CSVParser(FileParser):
    """Parser for delimited bank exports.

    Column positions come from a header row when one is present and from the
    detected bank profile otherwise.
    """

    DELIMITERS = [';', ',', '\t', '|']
    ENCODINGS = ['utf-8-sig', 'cp1252', 'latin-1']
    HEADER_KEYWORDS = ('data', 'date', 'descrição', 'descricao', 'description',
                       'valor', 'amount', 'histórico', 'historico', 'lançamento')
    _AMOUNT_CELL = re.compile(r'^[-+(]?\s*(r\$|us\$|[$€£])?\s*[-+]?\d[\d.,]*\s*\)?-?\s*(cr|dr|c|d)?$')

    def __init__(self, config: ImportConfig, error_handler: Optional[ErrorHandler] = None):
        super().__init__(config, error_handler)
        self.supported_extensions = ['.csv', '.txt']

        # Header names per field, compared case-insensitively
        self.column_mappings: Dict[str, List[str]] = {
            'date': [
                'date', 'transaction date', 'posting date', 'trans date', 'effective date',
                'started date', 'completed date', 'data', 'data lançamento', 'data lancamento',
                'data da transação', 'data movimento', 'datum'
            ],
            'amount': [
                'amount', 'transaction amount', 'amount ($)', 'net amount', 'value',
                'valor', 'valor (r$)', 'quantia', 'montante', 'betrag'
            ],
            'description': [
                'description', 'memo', 'details', 'payee', 'merchant', 'narration',
                'transaction description', 'título', 'titulo', 'descrição', 'descricao',
                'histórico', 'historico', 'lançamento', 'lancamento', 'estabelecimento'
            ],
            'debit': ['debit', 'debit amount', 'paid out', 'money out', 'débito', 'debito', 'saída', 'saida'],
            'credit': ['credit', 'credit amount', 'paid in', 'money in', 'crédito', 'credito', 'entrada'],
            'transaction_type': ['type', 'transaction type', 'trans type', 'tipo', 'd/c', 'dc'],
            'balance': ['balance', 'running balance', 'saldo'],
        }

        for field_name, names in (self.config.column_mappings or {}).items():
            extra = [names] if isinstance(names, str) else list(names)
            self.column_mappings.setdefault(field_name, [])
            self.column_mappings[field_name] = [n.lower() for n in extra] + self.column_mappings[field_name]

    def get_supported_extensions(self) -> List[str]:
        """Return list of supported file extensions"""
        return self.supported_extensions

    def validate_file(self, file_path: str) -> bool:
        """Validate CSV file path and extension"""
        if not os.path.exists(file_path):
            logger.error(f"File does not exist: {file_path}")
            return False

        if not self._has_supported_extension(file_path):
            logger.error(f"Unsupported file extension: {file_path}")
            return False

        return True

    def parse(self, file_path: str) -> ParseResult:
        """Parse a CSV file"""
        result = ParseResult()
        if not self._check_readable(file_path, result):
            return result.finalize(self.config.default_currency)

        try:
            content = self._read_text(file_path)
        except OSError as e:
            handle_file_access_error(self.error_handler, file_path, e)
            result.errors.append(f"Could not read file {os.path.basename(file_path)}: {e}")
            return result.finalize(self.config.default_currency)

        return self.parse_content(content, file_path)

    def _read_text(self, file_path: str) -> str:
        with open(file_path, 'rb') as f:
            raw = f.read()

        for encoding in self.ENCODINGS:
            try:
                return raw.decode(encoding)
            except UnicodeDecodeError:
                continue
        # latin-1 maps every byte, the loop always returns
        raise OSError(f"Unable to decode {file_path}")

    def parse_content(self, content: str, source: str = '<memory>') -> ParseResult:
        """Parse already decoded CSV text"""
        result = ParseResult()

        if not content.strip():
            self._warn(result, "File is empty", 'EMPTY_FILE', source)
            return result.finalize(self.config.default_currency)

        delimiter = self.detect_delimiter(content)
        numbered = [(number, line) for number, line in enumerate(content.splitlines(), start=1)
                    if line.strip()]

        profile = detect_bank('\n'.join(self.preamble([line for _, line in numbered], delimiter)))
        is_generic = profile is BANK_PROFILES[GENERIC_PROFILE_KEY]
        if not is_generic:
            result.bank_name = profile.name
            result.currency = profile.currency
            logger.info(f"Detected bank profile {profile.name} for {source}")

        if profile.skip_rows and not self.looks_like_header(numbered[0][1].split(delimiter)):
            numbered = numbered[profile.skip_rows:]

        # Column 0 carries the physical line number through pandas
        bad_lines: List[List[str]] = []
        try:
            df = pd.read_csv(
                io.StringIO('\n'.join(f"{number}{delimiter}{line}" for number, line in numbered)),
                sep=delimiter,
                header=None,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                engine='python',
                on_bad_lines=lambda bad: bad_lines.append(bad),
            )
        except pd.errors.EmptyDataError:
            self._warn(result, "File contains no data rows", 'EMPTY_FILE', source)
            return result.finalize(self.config.default_currency)
        except (pd.errors.ParserError, csv.Error) as e:
            self._fail(result, f"Unrecognized CSV format: {e}", 'MALFORMED_FILE', source, exception=e)
            return result.finalize(self.config.default_currency)

        rows = []
        for row in df.itertuples(index=False):
            values = self._row_values(row)
            rows.append((int(values[0]), values[1:]))
        if not rows:
            self._warn(result, "File contains no data rows", 'EMPTY_FILE', source)
            return result.finalize(self.config.default_currency)

        if self.looks_like_header(rows[0][1]):
            mapping = self.detect_column_mapping(rows[0][1])
            missing = self._missing_required(mapping)
            if missing:
                self._fail(
                    result,
                    f"CSV header is missing required columns: {', '.join(missing)}",
                    'MISSING_REQUIRED_COLUMNS',
                    source,
                )
                return result.finalize(self.config.default_currency)
            data_rows = rows[1:]
        else:
            mapping = dict(profile.column_mappings)
            data_rows = rows

        decimal_hint = None if is_generic else profile.decimal_separator
        currency = result.currency or self.config.default_currency

        for line_number, values in data_rows:
            if not any(values):
                continue
            try:
                transaction = self._convert_row(values, mapping, profile.date_format,
                                                decimal_hint, currency, delimiter)
                result.transactions.append(transaction)
            except RowError as e:
                handle_parsing_error(self.error_handler, source, e.field_name, e.raw_value,
                                     line_number, e.__cause__)
                result.warnings.append(f"Row {line_number} skipped: {e}")

        for bad in bad_lines:
            self._warn(result,
                       f"Row {bad[0]} skipped: unexpected number of fields ({delimiter.join(bad[1:])})",
                       'MALFORMED_ROW', source, line_number=int(bad[0]))

        if not result.transactions and not data_rows:
            self._warn(result, "File contains a header but no data rows", 'EMPTY_FILE', source)

        logger.info(f"Parsed {len(result.transactions)} transactions from {source}")
        return result.finalize(self.config.default_currency)

    def detect_delimiter(self, content: str) -> str:
        """Pick the delimiter occurring most often in the first five lines"""
        sample = '\n'.join(content.splitlines()[:5])
        best, best_count = ',', 0
        for delimiter in self.DELIMITERS:
            count = sample.count(delimiter)
            if count > best_count:
                best, best_count = delimiter, count
        return best

    def preamble(self, lines: List[str], delimiter: str) -> List[str]:
        """Lines before the first data row: titles, account details and the header"""
        leading = []
        for line in lines:
            if self.is_data_row(line.split(delimiter)):
                break
            leading.append(line)
        return leading

    def is_data_row(self, cells: List[str]) -> bool:
        """True when any cell holds a date or a plain amount"""
        for cell in self._normalized(cells):
            if not cell:
                continue
            if self._AMOUNT_CELL.match(cell):
                return True
            try:
                self.transformer.normalize_date(cell)
                return True
            except ValueError:
                continue
        return False

    def looks_like_header(self, cells: List[str]) -> bool:
        """True when a cell names a known column and no cell holds data"""
        names = set(self.HEADER_KEYWORDS).union(*self.column_mappings.values())
        prefixes = tuple(name for name in names if len(name) > 3)
        names_column = any(cell in names or cell.startswith(prefixes) for cell in self._normalized(cells))
        return names_column and not self.is_data_row(cells)

    @staticmethod
    def _normalized(cells: List[str]) -> List[str]:
        return [str(c).strip().strip('"\'').strip().lower() for c in cells]

    def detect_column_mapping(self, headers: List[str]) -> Dict[str, int]:
        """Map field names to column positions from a header row"""
        normalized = self._normalized(headers)
        mapping: Dict[str, int] = {}

        # Exact names first, then names contained in the header text
        for field_name, names in self.column_mappings.items():
            for position, header in enumerate(normalized):
                if header in names and position not in mapping.values():
                    mapping[field_name] = position
                    break

        for field_name, names in self.column_mappings.items():
            if field_name in mapping:
                continue
            for position, header in enumerate(normalized):
                if position in mapping.values():
                    continue
                if any(len(name) > 3 and name in header for name in names):
                    mapping[field_name] = position
                    break

        logger.debug(f"Detected column mapping: {mapping}")
        return mapping

    def _missing_required(self, mapping: Dict[str, int]) -> List[str]:
        missing = [name for name in ('date', 'description') if name not in mapping]
        if 'amount' not in mapping and 'debit' not in mapping and 'credit' not in mapping:
            missing.append('amount')
        return missing

    @staticmethod
    def _row_values(row: Tuple) -> List[str]:
        values = []
        for value in row:
            if value is None or (isinstance(value, float) and pd.isna(value)):
                values.append('')
            else:
                values.append(str(value).strip().strip('"\'').strip())
        return values

    @staticmethod
    def _cell(values: List[str], mapping: Dict[str, int], field_name: str) -> str:
        position = mapping.get(field_name)
        if position is None or position >= len(values):
            return ''
        return values[position]

    def _convert_row(self,
                     values: List[str],
                     mapping: Dict[str, int],
                     date_format: str,
                     decimal_hint: Optional[str],
                     currency: str,
                     delimiter: str) -> ParsedTransaction:
        """Convert one CSV row to a ParsedTransaction"""
        date_raw = self._cell(values, mapping, 'date')
        if not date_raw:
            raise RowError('date', '', "missing date")
        try:
            transaction_date = self.transformer.normalize_date(date_raw, date_format)
        except ValueError as e:
            raise RowError('date', date_raw, f"invalid date '{date_raw}'") from e

        amount, type_hint = self._extract_amount(values, mapping, decimal_hint)

        marker = self.transformer.type_from_marker(self._cell(values, mapping, 'transaction_type'))
        if marker is not None:
            type_hint = marker

        return self.transformer.build_transaction(
            transaction_date,
            self._cell(values, mapping, 'description'),
            amount,
            transaction_type=type_hint,
            original_line=delimiter.join(values),
            currency=currency,
        )

    def _extract_amount(self,
                        values: List[str],
                        mapping: Dict[str, int],
                        decimal_hint: Optional[str]) -> Tuple[Decimal, Optional[TransactionType]]:
        """Return the signed amount and a type implied by debit/credit columns"""
        amount_raw = self._cell(values, mapping, 'amount')
        if amount_raw:
            try:
                return self.transformer.normalize_amount(amount_raw, decimal_hint), None
            except ValueError as e:
                raise RowError('amount', amount_raw, f"invalid amount '{amount_raw}'") from e

        for column, transaction_type in (('credit', TransactionType.INCOME),
                                         ('debit', TransactionType.EXPENSE)):
            raw = self._cell(values, mapping, column)
            if not raw:
                continue
            try:
                value = self.transformer.normalize_amount(raw, decimal_hint)
            except ValueError as e:
                raise RowError(f'{column} amount', raw, f"invalid {column} amount '{raw}'") from e
            if value != 0:
                return abs(value), transaction_type

        raise RowError('amount', '', "missing amount")

