"""Tests for committing transactions to a store"""

from datetime import date
from decimal import Decimal

from reynar_import.models.core import ParsedTransaction, TransactionType
from reynar_import.stores import InMemoryTransactionStore
from reynar_import.utils.error_handler import ErrorHandler
from reynar_import.utils.importer import ImportResult, StatementImportError, TransactionImporter


class RefusingStore(InMemoryTransactionStore):
    def create(self, transaction):
        if transaction.amount > Decimal('1000'):
            raise ValueError("amount above limit")
        return super().create(transaction)


def item(description: str, amount: str, category=None) -> ParsedTransaction:
    return ParsedTransaction(date=date(2024, 3, 1), description=description, amount=Decimal(amount),
                             type=TransactionType.EXPENSE, category=category)


class TestTransactionImporter:
    """Test cases for TransactionImporter"""

    def setup_method(self):
        self.error_handler = ErrorHandler()
        self.store = RefusingStore()
        self.importer = TransactionImporter(self.store, "Uncategorized", self.error_handler)

    def test_to_new_transaction(self):
        payload = self.importer.to_new_transaction(item('Bakery', '8.00', '  '))

        assert payload.category == 'Uncategorized'
        assert payload.amount == Decimal('8.00')
        assert payload.date == date(2024, 3, 1)

    def test_apply_in_order(self):
        result = self.importer.apply([item('Bakery', '8.00', 'Food'), item('Books', '30.00')])

        assert result.success
        assert result.summary == "2 of 2 imported"
        assert [t.description for t in self.store.list()] == ['Bakery', 'Books']
        assert [t.category for t in result.created] == ['Food', 'Uncategorized']

    def test_failures_do_not_stop_the_batch(self):
        result = self.importer.apply([item('TV', '2500.00'), item('Bakery', '8.00')])

        assert not result.success
        assert result.imported == 1
        assert result.failures[0].index == 0
        assert result.failures[0].message == "amount above limit"
        assert self.error_handler.errors[-1].error_code == 'P001'

    def test_empty_batch(self):
        result = self.importer.apply([])

        assert result == ImportResult()
        assert result.success


def test_statement_import_error_context():
    error = StatementImportError("Configuration file not found", file_path="conf.json", field="ledger_path")

    assert str(error) == "Configuration file not found (file: conf.json, field: ledger_path)"
    assert error.file_path == "conf.json"
