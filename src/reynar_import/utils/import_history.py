"""History of imported statement files, keyed by content hash."""

import hashlib
import json
import logging
import os
from dataclasses import asdict
from datetime import datetime
from typing import List, Optional

from ..models.core import ImportedFileRecord
from ..ports import KeyValueStore
from .error_handler import ErrorHandler, ErrorCategory


logger = logging.getLogger(__name__)

STORAGE_KEY = 'reynar_import_history'


def calculate_file_hash(file_path: str) -> str:
    """SHA-256 of the file contents as a hex string"""
    hasher = hashlib.sha256()
    with open(file_path, 'rb') as f:
        # Read file in chunks to handle large files
        for chunk in iter(lambda: f.read(4096), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


class ImportHistory:
    """Remembers which statement files were already imported.

    Records are stored newest first as a JSON array under ``STORAGE_KEY``.
    Stored data is validated on the way in: a value that is not a JSON
    array yields an empty history and malformed records are skipped, each
    with a logged warning.
    """

    def __init__(self, store: KeyValueStore, error_handler: Optional[ErrorHandler] = None):
        self.store = store
        self.error_handler = error_handler or ErrorHandler()

    def has_file_been_imported(self, file_hash: str) -> bool:
        return any(record.hash == file_hash for record in self.get_import_history())

    def mark_file_as_imported(self, file_path: str, file_hash: Optional[str] = None) -> ImportedFileRecord:
        """Record a file; marking the same content twice keeps a single record"""
        file_hash = file_hash or calculate_file_hash(file_path)
        history = self.get_import_history()

        for record in history:
            if record.hash == file_hash:
                return record

        record = ImportedFileRecord(
            hash=file_hash,
            file_name=os.path.basename(file_path),
            date=datetime.now().isoformat(),
            size=os.path.getsize(file_path),
        )
        self._save([record] + history)
        logger.info(f"Recorded {record.file_name} in import history")
        return record

    def get_import_history(self) -> List[ImportedFileRecord]:
        """All records, newest first"""
        stored = self.store.get(STORAGE_KEY)
        if not stored:
            return []

        try:
            raw_records = json.loads(stored)
        except (json.JSONDecodeError, TypeError) as e:
            self.error_handler.log_warning(
                f"Import history is not valid JSON, ignoring it: {e}",
                "MALFORMED_RECORD",
                ErrorCategory.DATA_VALIDATION
            )
            return []

        if not isinstance(raw_records, list):
            self.error_handler.log_warning(
                "Import history is not a list, ignoring it",
                "MALFORMED_RECORD",
                ErrorCategory.DATA_VALIDATION
            )
            return []

        records = []
        for position, raw in enumerate(raw_records):
            record = self._parse_record(raw)
            if record is None:
                self.error_handler.log_warning(
                    f"Skipping malformed import history record at position {position}",
                    "MALFORMED_RECORD",
                    ErrorCategory.DATA_VALIDATION,
                    context={'record': raw}
                )
                continue
            records.append(record)
        return records

    def clear_import_history(self):
        self.store.delete(STORAGE_KEY)

    @staticmethod
    def _parse_record(raw) -> Optional[ImportedFileRecord]:
        if not isinstance(raw, dict):
            return None

        file_hash = raw.get('hash')
        file_name = raw.get('fileName', raw.get('file_name'))
        recorded = raw.get('date')
        size = raw.get('size')

        if not isinstance(file_hash, str) or not file_hash:
            return None
        if not isinstance(file_name, str):
            return None
        if not isinstance(size, int) or isinstance(size, bool) or size < 0:
            return None
        if not isinstance(recorded, str):
            return None
        try:
            datetime.fromisoformat(recorded.replace('Z', '+00:00'))
        except ValueError:
            return None

        return ImportedFileRecord(hash=file_hash, file_name=file_name, date=recorded, size=size)

    def _save(self, records: List[ImportedFileRecord]):
        payload = []
        for record in records:
            data = asdict(record)
            data['fileName'] = data.pop('file_name')
            payload.append(data)
        self.store.set(STORAGE_KEY, json.dumps(payload))
