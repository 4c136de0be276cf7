"""Transaction and key-value stores backing the ports.

The JSON-file stores validate what they read: stored records are coerced
into typed objects, and records that cannot be coerced are skipped with a
warning instead of being trusted.
"""

import json
import logging
import os
import tempfile
import uuid
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models.core import NewTransaction, Transaction, TransactionType
from .utils.error_handler import ErrorHandler, ErrorCategory


logger = logging.getLogger(__name__)


def write_json_atomic(path: Path, data: Any):
    """Write ``data`` as JSON to a temp file, then replace ``path`` with it"""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix='.tmp')
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, path)
    except BaseException:
        os.unlink(tmp_path)
        raise


def _validate_new(transaction: NewTransaction):
    if not transaction.description or not str(transaction.description).strip():
        raise ValueError("Transaction description cannot be empty")
    if Decimal(transaction.amount) < 0:
        raise ValueError("Transaction amount must be a positive magnitude")
    TransactionType.from_value(transaction.type)


class InMemoryTransactionStore:
    """Transaction store held in a list"""

    def __init__(self, transactions: Optional[List[Transaction]] = None):
        self._transactions: List[Transaction] = list(transactions or [])

    def create(self, transaction: NewTransaction) -> Transaction:
        _validate_new(transaction)
        created = Transaction(
            id=str(uuid.uuid4()),
            description=transaction.description,
            amount=Decimal(transaction.amount),
            type=TransactionType.from_value(transaction.type),
            category=transaction.category,
            date=transaction.date,
        )
        self._transactions.append(created)
        return created

    def list(self) -> List[Transaction]:
        return list(self._transactions)


class JsonLedgerStore:
    """Transaction store persisted as a JSON document.

    Layout: ``{"transactions": [{"id", "description", "amount", "type",
    "category", "date"}, ...]}`` with amounts as decimal strings and dates
    in ISO format.
    """

    def __init__(self, path: str, error_handler: Optional[ErrorHandler] = None):
        self.path = Path(os.path.expanduser(path))
        self.error_handler = error_handler or ErrorHandler()

    def list(self) -> List[Transaction]:
        transactions = []
        for position, raw in enumerate(self._read_records()):
            try:
                transactions.append(self.deserialize(raw))
            except (ValueError, TypeError, KeyError, InvalidOperation) as e:
                self.error_handler.log_warning(
                    f"Skipping malformed ledger record at position {position}: {e}",
                    "MALFORMED_RECORD",
                    ErrorCategory.DATA_VALIDATION,
                    file_path=str(self.path),
                    context={'record': raw}
                )
        return transactions

    def create(self, transaction: NewTransaction) -> Transaction:
        _validate_new(transaction)
        created = Transaction(
            id=str(uuid.uuid4()),
            description=transaction.description,
            amount=Decimal(transaction.amount),
            type=TransactionType.from_value(transaction.type),
            category=transaction.category,
            date=transaction.date,
        )
        records = self._read_records()
        records.append(self.serialize(created))
        self._write_records(records)
        logger.debug(f"Stored transaction {created.id} in {self.path}")
        return created

    @staticmethod
    def serialize(transaction: Transaction) -> Dict[str, Any]:
        return {
            'id': transaction.id,
            'description': transaction.description,
            'amount': str(transaction.amount),
            'type': transaction.type.value,
            'category': transaction.category,
            'date': transaction.date.isoformat(),
        }

    @staticmethod
    def deserialize(raw: Any) -> Transaction:
        """Coerce one stored record, raising ValueError when it is malformed"""
        if not isinstance(raw, dict):
            raise ValueError("record is not an object")

        record_id = raw['id']
        description = raw['description']
        category = raw.get('category') or ''
        if not isinstance(record_id, str) or not record_id:
            raise ValueError("id must be a non-empty string")
        if not isinstance(description, str) or not description.strip():
            raise ValueError("description must be a non-empty string")
        if not isinstance(category, str):
            raise ValueError("category must be a string")

        raw_amount = raw['amount']
        if isinstance(raw_amount, bool) or not isinstance(raw_amount, (str, int, float)):
            raise ValueError("amount must be a number")
        amount = Decimal(str(raw_amount))
        if not amount.is_finite() or amount < 0:
            raise ValueError("amount must be a finite positive magnitude")

        raw_date = raw['date']
        if not isinstance(raw_date, str):
            raise ValueError("date must be an ISO string")
        try:
            parsed_date = date.fromisoformat(raw_date)
        except ValueError:
            parsed_date = datetime.fromisoformat(raw_date.replace('Z', '+00:00')).date()

        return Transaction(
            id=record_id,
            description=description,
            amount=amount,
            type=TransactionType.from_value(raw['type']),
            category=category,
            date=parsed_date,
        )

    def _read_records(self) -> List[Any]:
        if not self.path.exists():
            return []
        with open(self.path, 'r', encoding='utf-8') as f:
            content = f.read()
        if not content.strip():
            return []

        data = json.loads(content)
        records = data.get('transactions') if isinstance(data, dict) else data
        if not isinstance(records, list):
            raise ValueError(f"Ledger {self.path} does not contain a transaction list")
        return records

    def _write_records(self, records: List[Any]):
        write_json_atomic(self.path, {'transactions': records})


class InMemoryKeyValueStore:
    """Key-value store held in a dict"""

    def __init__(self, data: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(data or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileKeyValueStore:
    """Key-value store persisted as one JSON object"""

    def __init__(self, path: str, error_handler: Optional[ErrorHandler] = None):
        self.path = Path(os.path.expanduser(path))
        self.error_handler = error_handler or ErrorHandler()

    def get(self, key: str) -> Optional[str]:
        value = self._load().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            self.error_handler.log_warning(
                f"Could not read key-value file {self.path}, starting empty: {e}",
                "MALFORMED_RECORD",
                ErrorCategory.PERSISTENCE,
                file_path=str(self.path)
            )
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, Any]):
        write_json_atomic(self.path, data)
