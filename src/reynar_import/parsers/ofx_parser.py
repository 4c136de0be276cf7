"""OFX/QFX file parser implementation."""

import io
import logging
import os
import re
from decimal import Decimal
from typing import List, Optional

from ofxparse import OfxParser
from ofxparse.ofxparse import OfxParserException

from .base import FileParser
from ..models.core import ImportConfig, ParsedTransaction, ParseResult, StatementPeriod, TransactionType
from ..utils.error_handler import ErrorHandler, handle_file_access_error


logger = logging.getLogger(__name__)


class OFXParser(FileParser):
    """Parser for OFX and QFX files using the ofxparse library"""

    INCOME_TYPES = {'credit', 'dep', 'int', 'div'}
    EXPENSE_TYPES = {'debit', 'payment', 'check', 'fee', 'atm', 'pos'}

    def __init__(self, config: ImportConfig, error_handler: Optional[ErrorHandler] = None):
        super().__init__(config, error_handler)
        self.supported_extensions = ['.ofx', '.qfx']

    def get_supported_extensions(self) -> List[str]:
        """Return list of supported file extensions"""
        return self.supported_extensions

    def validate_file(self, file_path: str) -> bool:
        """Validate OFX/QFX file format by its header"""
        if not os.path.exists(file_path) or not self._has_supported_extension(file_path):
            return False
        try:
            with open(file_path, 'rb') as f:
                return self.has_ofx_header(f.read(1024))
        except OSError as e:
            handle_file_access_error(self.error_handler, file_path, e)
            return False

    @staticmethod
    def has_ofx_header(head: bytes) -> bool:
        text = head.decode('utf-8', errors='ignore').upper()
        return 'OFXHEADER' in text or '<OFX>' in text

    def parse(self, file_path: str) -> ParseResult:
        """Parse an OFX/QFX file"""
        result = ParseResult()
        if not self._check_readable(file_path, result):
            return result.finalize(self.config.default_currency)

        try:
            with open(file_path, 'rb') as f:
                raw = f.read()
        except OSError as e:
            handle_file_access_error(self.error_handler, file_path, e)
            result.errors.append(f"Could not read file {os.path.basename(file_path)}: {e}")
            return result.finalize(self.config.default_currency)

        return self.parse_bytes(raw, file_path)

    def parse_bytes(self, raw: bytes, source: str = '<memory>') -> ParseResult:
        """Parse OFX content held in memory"""
        result = ParseResult()

        if not raw.strip():
            self._warn(result, "File is empty", 'EMPTY_FILE', source)
            return result.finalize(self.config.default_currency)

        if not self.has_ofx_header(raw[:1024]):
            self._fail(result, "File does not contain valid OFX/QFX headers", 'MALFORMED_FILE', source)
            return result.finalize(self.config.default_currency)

        text = raw.decode('utf-8', errors='ignore')
        result.bank_name = self._tag_value(text, 'ORG')
        result.currency = self._tag_value(text, 'CURDEF')

        try:
            ofx = OfxParser.parse(io.BytesIO(raw), fail_fast=False)
        except OfxParserException as e:
            self._fail(result, f"OFX parsing error: {e}", 'MALFORMED_FILE', source, exception=e)
            return result.finalize(self.config.default_currency)
        except Exception as e:
            # ofxparse surfaces structural problems as assorted builtin exceptions
            self._fail(result, f"Unrecognized OFX content: {e}", 'MALFORMED_FILE', source, exception=e)
            return result.finalize(self.config.default_currency)

        accounts = getattr(ofx, 'accounts', None) or []
        for account in accounts:
            statement = getattr(account, 'statement', None)
            if statement is None:
                continue

            if result.account_info is None:
                result.account_info = self.extract_account_info(account)
            if not result.bank_name:
                institution = getattr(account, 'institution', None)
                result.bank_name = getattr(institution, 'organization', None) or None
            if not result.currency and getattr(statement, 'currency', None):
                result.currency = str(statement.currency).upper()

            for warning in getattr(statement, 'warnings', None) or []:
                self._warn(result, f"OFX warning: {warning}", 'MALFORMED_ROW', source)

            start = getattr(statement, 'start_date', None)
            end = getattr(statement, 'end_date', None)
            if start and end and result.period is None:
                result.period = StatementPeriod(start=_as_date(start), end=_as_date(end))

            for index, ofx_transaction in enumerate(statement.transactions):
                try:
                    result.transactions.append(
                        self._convert_ofx_transaction(ofx_transaction, result.currency)
                    )
                except ValueError as e:
                    self._warn(result, f"OFX transaction {index + 1} skipped: {e}",
                               'MISSING_REQUIRED_FIELD', source, line_number=index + 1)

        if not accounts:
            self._warn(result, "OFX file contains no statements", 'EMPTY_FILE', source)

        self.error_handler.log_info(
            f"Parsed {len(result.transactions)} transactions from {source}",
            context={'file_path': source, 'bank_name': result.bank_name}
        )
        return result.finalize(self.config.default_currency)

    @staticmethod
    def _tag_value(text: str, tag: str) -> Optional[str]:
        """Value of the first SGML-style ``<TAG>value`` occurrence"""
        match = re.search(rf'<{tag}>([^<\r\n]+)', text, re.IGNORECASE)
        return match.group(1).strip() if match else None

    def extract_account_info(self, account) -> Optional[str]:
        """Last four digits of the account id, or the id itself when short"""
        account_id = getattr(account, 'account_id', None) or getattr(account, 'number', None)
        if not account_id:
            return None
        account_id = str(account_id)
        if len(account_id) > 4 and account_id.replace('-', '').isdigit():
            return account_id[-4:]
        return account_id

    def _convert_ofx_transaction(self, ofx_transaction, currency: Optional[str]) -> ParsedTransaction:
        """Convert an ofxparse transaction to a ParsedTransaction"""
        posted = getattr(ofx_transaction, 'date', None)
        if not posted:
            raise ValueError("missing DTPOSTED")

        raw_amount = getattr(ofx_transaction, 'amount', None)
        if raw_amount is None:
            raise ValueError("missing TRNAMT")
        amount = Decimal(str(raw_amount))

        trn_type = str(getattr(ofx_transaction, 'type', '') or '').lower()
        if trn_type in self.INCOME_TYPES:
            transaction_type = TransactionType.INCOME
        elif trn_type in self.EXPENSE_TYPES:
            transaction_type = TransactionType.EXPENSE
        else:
            transaction_type = TransactionType.INCOME if amount >= 0 else TransactionType.EXPENSE

        description = (getattr(ofx_transaction, 'payee', None) or '').strip()
        if not description:
            description = (getattr(ofx_transaction, 'memo', None) or '').strip()

        fitid = getattr(ofx_transaction, 'id', None)
        return self.transformer.build_transaction(
            _as_date(posted),
            description,
            amount,
            transaction_type=transaction_type,
            currency=currency or self.config.default_currency,
            bank_reference=str(fitid) if fitid else None,
        )


def _as_date(value):
    """ofxparse yields datetimes; ParsedTransaction carries dates"""
    return value.date() if hasattr(value, 'date') else value
