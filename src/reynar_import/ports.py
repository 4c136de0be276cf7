"""Interfaces of the collaborators the import pipeline depends on.

Everything that talks to the outside world (the ledger, the AI services and
the key-value storage behind the import history) is injected through these
protocols so that tests can substitute deterministic stubs.
"""

from typing import List, Optional, Protocol

from .models.core import (
    CategorizationRequest,
    CategorySuggestion,
    NewTransaction,
    ParsedTransaction,
    Transaction,
)


class TransactionStore(Protocol):
    """Persistent ledger of transactions"""

    def create(self, transaction: NewTransaction) -> Transaction:
        """Persist one transaction; may raise on failure"""
        ...

    def list(self) -> List[Transaction]:
        """All stored transactions"""
        ...


class Categorizer(Protocol):
    """Suggests a category per item, positionally aligned with the input; may raise"""

    def __call__(self, items: List[CategorizationRequest]) -> List[CategorySuggestion]:
        ...


class TextExtractor(Protocol):
    """Turns unstructured statement text into transactions; may return an empty list"""

    def __call__(self, text: str) -> List[ParsedTransaction]:
        ...


class KeyValueStore(Protocol):
    """String-keyed string storage"""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...
