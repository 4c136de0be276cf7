"""Review/selection state machine between parsing and commit."""

import dataclasses
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Set

from .models.core import (
    CategorizationRequest,
    ImportConfig,
    ParsedTransaction,
    ParseResult,
    Transaction,
    TransactionType,
)
from .ports import Categorizer, TransactionStore
from .utils.duplicate_detector import DuplicateDetector
from .utils.error_handler import ErrorHandler, ErrorCategory
from .utils.importer import ImportResult, TransactionImporter


logger = logging.getLogger(__name__)


class SessionState(Enum):
    REVIEWING = "reviewing"
    CATEGORIZING = "categorizing"
    COMMITTING = "committing"
    COMMITTED = "committed"
    CANCELLED = "cancelled"


@dataclass
class SessionSummary:
    """Figures shown next to the review list"""
    total_count: int
    selected_count: int
    income_total: Decimal
    expense_total: Decimal
    duplicate_count: int
    possible_duplicate_count: int


class ImportSession:
    """One import review, from scored candidates to a commit.

    Positions into ``transactions`` are stable for the session's lifetime.
    The initial selection is every candidate not flagged as a duplicate.
    Operations never raise: invalid calls return False (or an ImportResult
    carrying the error) and are logged.

    States: REVIEWING -> CATEGORIZING -> REVIEWING, REVIEWING -> COMMITTING ->
    COMMITTED, and REVIEWING -> CANCELLED.
    """

    def __init__(self,
                 parse_result: ParseResult,
                 existing: List[Transaction],
                 store: TransactionStore,
                 categorizer: Optional[Categorizer] = None,
                 config: Optional[ImportConfig] = None,
                 error_handler: Optional[ErrorHandler] = None):
        self.config = config or ImportConfig()
        self.error_handler = error_handler or ErrorHandler()
        self.parse_result = parse_result
        self.categorizer = categorizer
        self.importer = TransactionImporter(store, self.config.default_category, self.error_handler)

        detector = DuplicateDetector.from_config(self.config)
        self._transactions: List[ParsedTransaction] = detector.detect_duplicates(
            parse_result.transactions, existing
        )
        self._selected: Set[int] = {
            i for i, t in enumerate(self._transactions) if t.confidence != 0
        }
        self.edits: Dict[int, str] = {}
        self.state = SessionState.REVIEWING
        self.last_error: Optional[str] = None
        self.warnings: List[str] = []
        self.result: Optional[ImportResult] = None

    @classmethod
    def start(cls,
              parse_result: ParseResult,
              store: TransactionStore,
              categorizer: Optional[Categorizer] = None,
              config: Optional[ImportConfig] = None,
              error_handler: Optional[ErrorHandler] = None) -> 'ImportSession':
        """Open a session against a snapshot of the store taken now"""
        snapshot = store.list()
        return cls(parse_result, snapshot, store, categorizer, config, error_handler)

    @property
    def transactions(self) -> List[ParsedTransaction]:
        """Candidates with category edits applied, in file order"""
        return [self._effective(i) for i in range(len(self._transactions))]

    @property
    def selected_indices(self) -> Set[int]:
        return set(self._selected)

    def selected_transactions(self) -> List[ParsedTransaction]:
        return [self._effective(i) for i in sorted(self._selected)]

    def _effective(self, index: int) -> ParsedTransaction:
        transaction = self._transactions[index]
        if index in self.edits:
            return dataclasses.replace(transaction, category=self.edits[index])
        return transaction

    def _check(self, operation: str, index: Optional[int] = None) -> bool:
        if self.state != SessionState.REVIEWING:
            self.error_handler.log_warning(
                f"Cannot {operation} while session is {self.state.value}",
                "INVALID_SESSION_STATE",
                ErrorCategory.DATA_VALIDATION
            )
            return False
        if index is not None and not 0 <= index < len(self._transactions):
            self.error_handler.log_warning(
                f"Cannot {operation}: index {index} out of range",
                "INVALID_INDEX",
                ErrorCategory.DATA_VALIDATION
            )
            return False
        return True

    def toggle_select(self, index: int) -> bool:
        """Flip one candidate in or out of the selection, duplicates included"""
        if not self._check('toggle selection', index):
            return False
        if index in self._selected:
            self._selected.discard(index)
        else:
            self._selected.add(index)
        return True

    def toggle_select_all(self) -> bool:
        """Clear the selection when everything is selected, otherwise select everything"""
        if not self._check('toggle all'):
            return False
        if len(self._selected) == len(self._transactions):
            self._selected.clear()
        else:
            self._selected = set(range(len(self._transactions)))
        return True

    def update_category(self, index: int, category: str) -> bool:
        if not self._check('update category', index):
            return False
        self.edits[index] = category
        return True

    def categorize_all(self) -> bool:
        """Ask the categorizer for every candidate and replace their categories.

        Failures are soft: categories stay as they were, the message lands in
        ``last_error`` and the session returns to REVIEWING.
        """
        if not self._check('categorize'):
            return False
        if self.categorizer is None:
            self.last_error = "No categorizer configured"
            return False

        self.state = SessionState.CATEGORIZING
        self.last_error = None
        current = self.transactions
        requests = [CategorizationRequest(description=t.description, amount=t.amount) for t in current]

        try:
            suggestions = list(self.categorizer(requests))
        except Exception as e:
            self.last_error = f"Categorization failed: {e}"
            self.error_handler.log_warning(
                self.last_error,
                "CATEGORIZATION_FAILED",
                ErrorCategory.CATEGORIZATION
            )
            self.state = SessionState.REVIEWING
            return False

        if len(suggestions) != len(requests):
            message = (f"Categorizer returned {len(suggestions)} suggestions "
                       f"for {len(requests)} transactions")
            self.warnings.append(message)
            self.error_handler.log_warning(message, "CATEGORIZATION_FAILED", ErrorCategory.CATEGORIZATION)

        for index, suggestion in enumerate(suggestions[:len(requests)]):
            category = (getattr(suggestion, 'category', None) or '').strip()
            if not category:
                continue
            confidence = getattr(suggestion, 'confidence', None)
            if isinstance(confidence, (int, float)) and not isinstance(confidence, bool):
                confidence = max(0, min(100, int(confidence)))
            else:
                confidence = None
            self._transactions[index] = dataclasses.replace(
                self._transactions[index], category=category, confidence_category=confidence
            )
            self.edits.pop(index, None)

        self.state = SessionState.REVIEWING
        return True

    def commit(self) -> ImportResult:
        """Persist the selected candidates in file order"""
        if not self._check('commit'):
            return ImportResult(errors=[f"Session is {self.state.value}, nothing was committed"])

        self.state = SessionState.COMMITTING
        items = self.selected_transactions()
        try:
            self.result = self.importer.apply(items)
        except Exception as e:
            self.error_handler.log_error(
                f"Commit aborted: {e}",
                "UNEXPECTED_ERROR",
                ErrorCategory.SYSTEM,
                exception=e
            )
            self.result = ImportResult(attempted=len(items), errors=[str(e)])
        self.state = SessionState.COMMITTED
        return self.result

    def cancel(self) -> bool:
        """Discard the session; nothing has been written"""
        if not self._check('cancel'):
            return False
        self.state = SessionState.CANCELLED
        logger.info("Import session cancelled")
        return True

    def summary(self) -> SessionSummary:
        selected = self.selected_transactions()
        return SessionSummary(
            total_count=len(self._transactions),
            selected_count=len(selected),
            income_total=sum((t.amount for t in selected if t.type == TransactionType.INCOME), Decimal('0')),
            expense_total=sum((t.amount for t in selected if t.type == TransactionType.EXPENSE), Decimal('0')),
            duplicate_count=sum(1 for t in self._transactions if t.confidence == 0),
            possible_duplicate_count=sum(
                1 for t in self._transactions if t.confidence is not None and 0 < t.confidence < 100
            ),
        )
