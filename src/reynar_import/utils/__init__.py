"""Utility functions and helpers"""

from .bank_profiles import BANK_PROFILES, CURRENCY_CONFIG, detect_bank, format_amount, get_currency_config
from .categorizer import KeywordCategorizer
from .config_manager import ConfigManager
from .duplicate_detector import DuplicateDetector
from .error_handler import ErrorHandler, ErrorCategory, ErrorSeverity, handle_file_access_error, handle_parsing_error
from .import_history import ImportHistory, calculate_file_hash
from .importer import ImportFailure, ImportResult, StatementImportError, TransactionImporter

__all__ = [
    'BANK_PROFILES',
    'CURRENCY_CONFIG',
    'detect_bank',
    'format_amount',
    'get_currency_config',
    'KeywordCategorizer',
    'ConfigManager',
    'DuplicateDetector',
    'ErrorHandler',
    'ErrorCategory',
    'ErrorSeverity',
    'handle_file_access_error',
    'handle_parsing_error',
    'ImportHistory',
    'calculate_file_hash',
    'ImportFailure',
    'ImportResult',
    'StatementImportError',
    'TransactionImporter',
]
