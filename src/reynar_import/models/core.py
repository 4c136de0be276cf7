"""Core data models for statement import and reconciliation."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Dict, Optional


PLACEHOLDER_DESCRIPTION = "Transaction without description"


class TransactionType(Enum):
    """Direction of money flow; the sign of a transaction lives here, not in its amount"""
    INCOME = "income"
    EXPENSE = "expense"

    @classmethod
    def from_value(cls, value) -> 'TransactionType':
        """Coerce a string or enum member into a TransactionType"""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown transaction type: {value!r}")


@dataclass
class ParsedTransaction:
    """A transaction candidate extracted from an imported statement.

    Attributes:
        date: Calendar date of the statement line
        description: Merchant or memo text, never empty after parsing
        amount: Positive magnitude, the direction is carried by ``type``
        type: Income or expense
        category: Optional category, usually filled by a categorizer
        confidence_category: Categorizer confidence (0-100) for ``category``
        confidence: Duplicate confidence (0-100) assigned by the duplicate
            detector; 0 means "flagged as likely duplicate", None means the
            candidate has not been checked yet
        original_line: Raw source line the candidate came from
        currency: Currency code of the statement
        bank_reference: Institution-side identifier (OFX FITID)
        extraction_confidence: Quality of the extraction itself (AI or regex
            based PDF parsing), unrelated to duplicate confidence
    """
    date: date
    description: str
    amount: Decimal
    type: TransactionType
    category: Optional[str] = None
    confidence_category: Optional[int] = None
    confidence: Optional[int] = None
    original_line: Optional[str] = None
    currency: Optional[str] = None
    bank_reference: Optional[str] = None
    extraction_confidence: Optional[int] = None

    @property
    def signed_amount(self) -> Decimal:
        """Amount with the sign implied by the transaction type"""
        return self.amount if self.type == TransactionType.INCOME else -self.amount

    @property
    def is_flagged_duplicate(self) -> bool:
        return self.confidence == 0


@dataclass
class StatementPeriod:
    """Date range covered by a statement"""
    start: date
    end: date


@dataclass
class ParseResult:
    """Outcome of parsing one statement file.

    ``transactions`` keeps file order. A result with neither transactions nor
    errors must explain itself with at least one warning; ``finalize`` takes
    care of that.
    """
    transactions: List[ParsedTransaction] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    bank_name: Optional[str] = None
    account_info: Optional[str] = None
    period: Optional[StatementPeriod] = None
    currency: Optional[str] = None

    @property
    def failed(self) -> bool:
        """True when the file could not be parsed at all"""
        return bool(self.errors) and not self.transactions

    def compute_period(self) -> Optional[StatementPeriod]:
        """Derive the statement period from the parsed transaction dates"""
        if not self.transactions:
            return None
        dates = [t.date for t in self.transactions]
        return StatementPeriod(start=min(dates), end=max(dates))

    def finalize(self, default_currency: str = "USD") -> 'ParseResult':
        """Fill derived fields and enforce the empty-result invariant"""
        if self.period is None:
            self.period = self.compute_period()
        if not self.currency:
            self.currency = default_currency
        if not self.transactions and not self.errors and not self.warnings:
            self.warnings.append("No transactions found in file")
        return self


@dataclass
class Transaction:
    """A transaction owned by the transaction store"""
    id: str
    description: str
    amount: Decimal
    type: TransactionType
    category: str
    date: date

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.type == TransactionType.INCOME else -self.amount


@dataclass
class NewTransaction:
    """Payload for creating a transaction; the store assigns the id"""
    description: str
    amount: Decimal
    type: TransactionType
    category: str
    date: date


@dataclass
class BankProfile:
    """Statement layout conventions of one institution.

    ``column_mappings`` holds positional column indexes used when a CSV has no
    header row.
    """
    name: str
    country: str
    currency: str
    date_format: str
    decimal_separator: str
    thousands_separator: str
    column_mappings: Dict[str, int]
    skip_rows: int = 0
    detect_pattern: Optional[str] = None


@dataclass
class CurrencyConfig:
    """Display settings for a currency"""
    symbol: str
    locale: str
    decimal_places: int


@dataclass
class CategorizationRequest:
    """Item sent to a categorizer"""
    description: str
    amount: Decimal


@dataclass
class CategorySuggestion:
    """Categorizer answer, positionally aligned with its request"""
    category: str
    confidence: int


@dataclass
class ImportedFileRecord:
    """Entry of the import history"""
    hash: str
    file_name: str
    date: str  # ISO timestamp
    size: int


@dataclass
class ImportConfig:
    """Configuration for parsing and reconciliation behavior"""
    date_formats: Optional[List[str]] = None
    default_currency: str = "USD"
    default_category: str = "Uncategorized"
    date_tolerance_days: int = 1
    strong_similarity_threshold: int = 90
    weak_similarity_threshold: int = 60
    weak_match_confidence: int = 40
    amount_match_confidence: int = 60
    description_match_confidence: int = 80
    contested_confidence: int = 50
    ai_text_limit: int = 15000
    column_mappings: Optional[Dict[str, List[str]]] = None
    history_path: str = "~/.reynar_import/history.json"
    ledger_path: str = "ledger.json"

    def __post_init__(self):
        if self.date_formats is None:
            self.date_formats = [
                "%Y-%m-%d", "%d/%m/%Y", "%m/%d/%Y",
                "%Y-%m-%d %H:%M:%S", "%d/%m/%Y %H:%M:%S",
                "%d/%m/%y", "%m/%d/%y", "%Y%m%d"
            ]
        if self.column_mappings is None:
            self.column_mappings = {}
