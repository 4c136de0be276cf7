"""Tests for the import history"""

import hashlib
import json
import os
import tempfile

import pytest

from reynar_import.stores import InMemoryKeyValueStore
from reynar_import.utils.error_handler import ErrorHandler
from reynar_import.utils.import_history import STORAGE_KEY, ImportHistory, calculate_file_hash


class TestImportHistory:
    """Test cases for ImportHistory"""

    def setup_method(self):
        self.store = InMemoryKeyValueStore()
        self.error_handler = ErrorHandler()
        self.history = ImportHistory(self.store, self.error_handler)
        with tempfile.NamedTemporaryFile(mode='wb', suffix='.csv', delete=False) as f:
            f.write(b'Date,Description,Amount\n2024-01-05,Salary,5000.00\n')
            self.file_path = f.name

    def teardown_method(self):
        os.unlink(self.file_path)

    def test_calculate_file_hash(self):
        with open(self.file_path, 'rb') as f:
            expected = hashlib.sha256(f.read()).hexdigest()

        assert calculate_file_hash(self.file_path) == expected

    def test_mark_and_check(self):
        file_hash = calculate_file_hash(self.file_path)
        assert not self.history.has_file_been_imported(file_hash)

        record = self.history.mark_file_as_imported(self.file_path)

        assert self.history.has_file_been_imported(file_hash)
        assert record.hash == file_hash
        assert record.file_name == os.path.basename(self.file_path)
        assert record.size == os.path.getsize(self.file_path)

    def test_mark_twice_keeps_one_record(self):
        self.history.mark_file_as_imported(self.file_path)
        self.history.mark_file_as_imported(self.file_path)

        assert len(self.history.get_import_history()) == 1

    def test_newest_first_and_stored_layout(self):
        self.history.mark_file_as_imported(self.file_path, file_hash='a' * 64)
        self.history.mark_file_as_imported(self.file_path, file_hash='b' * 64)

        assert [r.hash[0] for r in self.history.get_import_history()] == ['b', 'a']
        stored = json.loads(self.store.get(STORAGE_KEY))
        assert set(stored[0]) == {'hash', 'fileName', 'date', 'size'}

    def test_clear(self):
        self.history.mark_file_as_imported(self.file_path)

        self.history.clear_import_history()

        assert self.history.get_import_history() == []
        assert self.store.get(STORAGE_KEY) is None

    def test_malformed_records_are_skipped(self):
        self.store.set(STORAGE_KEY, json.dumps([
            {'hash': 'abc', 'fileName': 'jan.csv', 'date': '2024-02-01T10:00:00', 'size': 120},
            {'hash': 'def', 'file_name': 'feb.csv', 'date': '2024-03-01T10:00:00Z', 'size': 80},
            {'hash': '', 'fileName': 'x.csv', 'date': '2024-02-01T10:00:00', 'size': 1},
            {'hash': 'ghi', 'fileName': 'y.csv', 'date': 'last week', 'size': 1},
            {'hash': 'jkl', 'fileName': 'z.csv', 'date': '2024-02-01T10:00:00', 'size': '1'},
            42,
        ]))

        records = self.history.get_import_history()

        assert [r.file_name for r in records] == ['jan.csv', 'feb.csv']
        assert len(self.error_handler.warnings) == 4

    @pytest.mark.parametrize("stored", ['not json', '{"hash": "abc"}'])
    def test_unusable_history_is_empty(self, stored):
        self.store.set(STORAGE_KEY, stored)

        assert self.history.get_import_history() == []
        assert self.error_handler.has_warnings()
