"""Data models and structures"""

from .core import (
    BankProfile,
    CategorizationRequest,
    CategorySuggestion,
    CurrencyConfig,
    ImportConfig,
    ImportedFileRecord,
    NewTransaction,
    ParsedTransaction,
    ParseResult,
    PLACEHOLDER_DESCRIPTION,
    StatementPeriod,
    Transaction,
    TransactionType,
)

__all__ = [
    'BankProfile',
    'CategorizationRequest',
    'CategorySuggestion',
    'CurrencyConfig',
    'ImportConfig',
    'ImportedFileRecord',
    'NewTransaction',
    'ParsedTransaction',
    'ParseResult',
    'PLACEHOLDER_DESCRIPTION',
    'StatementPeriod',
    'Transaction',
    'TransactionType',
]
