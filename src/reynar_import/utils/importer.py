"""Commits confirmed statement candidates to the transaction store.

Writes are sequential and independent: a failed ``create`` is recorded and
the batch continues, so a commit of N items where K fail reports N-K
imported.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..models.core import NewTransaction, ParsedTransaction, Transaction
from ..ports import TransactionStore
from .error_handler import ErrorHandler, ErrorCategory


logger = logging.getLogger(__name__)


class StatementImportError(Exception):
    """Import operation failure with context.

    Raised only at the command-line and configuration boundary; the import
    pipeline itself reports problems through result objects.
    """

    def __init__(self, message: str, file_path: Optional[str] = None, field: Optional[str] = None):
        """Create import error with optional context.

        Args:
            message: Error description
            file_path: Path to the file that caused the error
            field: Field or setting name that caused the error
        """
        self.file_path = file_path
        self.field = field

        context_parts = []
        if file_path:
            context_parts.append(f"file: {file_path}")
        if field:
            context_parts.append(f"field: {field}")

        context = f" ({', '.join(context_parts)})" if context_parts else ""
        super().__init__(f"{message}{context}")


@dataclass
class ImportFailure:
    """One item the store refused"""
    index: int
    description: str
    message: str


@dataclass
class ImportResult:
    """Result of a commit.

    ``created`` holds the stored transactions in commit order; ``failures``
    indexes into the committed item list.
    """
    attempted: int = 0
    imported: int = 0
    failures: List[ImportFailure] = field(default_factory=list)
    created: List[Transaction] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failures and not self.errors

    @property
    def summary(self) -> str:
        return f"{self.imported} of {self.attempted} imported"


class TransactionImporter:
    """Persists ParsedTransactions through a TransactionStore"""

    def __init__(self,
                 store: TransactionStore,
                 default_category: str = "Uncategorized",
                 error_handler: Optional[ErrorHandler] = None):
        """Initialize importer.

        Args:
            store: Destination ledger
            default_category: Category used for items without one
            error_handler: Collects per-item persistence failures
        """
        self.store = store
        self.default_category = default_category
        self.error_handler = error_handler or ErrorHandler()

    def to_new_transaction(self, item: ParsedTransaction) -> NewTransaction:
        """Payload for the store; empty categories fall back to the default"""
        category = (item.category or '').strip() or self.default_category
        return NewTransaction(
            description=item.description,
            amount=item.amount,
            type=item.type,
            category=category,
            date=item.date,
        )

    def apply(self, items: List[ParsedTransaction]) -> ImportResult:
        """Create one store transaction per item, in order"""
        result = ImportResult(attempted=len(items))

        for index, item in enumerate(items):
            try:
                created = self.store.create(self.to_new_transaction(item))
            except Exception as e:
                message = str(e) or type(e).__name__
                result.failures.append(ImportFailure(index, item.description, message))
                self.error_handler.log_error(
                    f"Failed to import '{item.description}': {message}",
                    "PERSIST_FAILED",
                    ErrorCategory.PERSISTENCE,
                    exception=e,
                    context={'index': index}
                )
                continue

            result.created.append(created)
            result.imported += 1

        logger.info(f"Commit finished: {result.summary}")
        return result
