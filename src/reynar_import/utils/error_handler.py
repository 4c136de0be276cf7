"""Error handling and structured logging for statement imports."""

import json
import logging
import traceback
from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Any


class ErrorSeverity(Enum):
    """Error severity levels"""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification"""
    FILE_ACCESS = "file_access"
    FILE_FORMAT = "file_format"
    DATA_PARSING = "data_parsing"
    DATA_VALIDATION = "data_validation"
    CONFIGURATION = "configuration"
    CATEGORIZATION = "categorization"
    PERSISTENCE = "persistence"
    SYSTEM = "system"


@dataclass
class ErrorDetail:
    """Detailed error information"""
    timestamp: str
    severity: str
    category: str
    error_code: str
    message: str
    file_path: Optional[str] = None
    line_number: Optional[int] = None
    field_name: Optional[str] = None
    raw_value: Optional[str] = None
    stack_trace: Optional[str] = None
    context: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return asdict(self)


class JSONFormatter(logging.Formatter):
    """One JSON object per log record"""

    def format(self, record):
        log_entry = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        for extra in ('error_code', 'file_path', 'category', 'context'):
            if hasattr(record, extra):
                log_entry[extra] = getattr(record, extra)

        return json.dumps(log_entry, default=str)


class ErrorHandler:
    """Collects classified errors and warnings and forwards them to logging.

    With ``log_directory`` set, records are also written as JSON lines to
    ``import_YYYYMMDD.jsonl`` in that directory.
    """

    ERROR_CODES = {
        # File access errors
        "FILE_NOT_FOUND": "F001",
        "FILE_PERMISSION_DENIED": "F002",
        "FILE_UNREADABLE": "F003",

        # File format errors
        "UNSUPPORTED_FORMAT": "F101",
        "MALFORMED_FILE": "F102",
        "MISSING_REQUIRED_COLUMNS": "F104",
        "ENCODING_ERROR": "F105",
        "NO_EXTRACTABLE_TEXT": "F106",
        "EMPTY_FILE": "F107",

        # Data parsing errors
        "DATE_PARSE_ERROR": "D001",
        "AMOUNT_PARSE_ERROR": "D002",
        "MISSING_REQUIRED_FIELD": "D004",
        "MALFORMED_ROW": "D005",
        "AI_EXTRACTION_FAILED": "D006",

        # Data validation errors
        "DUPLICATE_FILE": "V001",
        "MALFORMED_RECORD": "V002",

        # Configuration errors
        "CONFIG_FILE_NOT_FOUND": "C001",
        "INVALID_CONFIG_FORMAT": "C002",
        "INVALID_CONFIG_VALUE": "C004",

        # Session errors
        "CATEGORIZATION_FAILED": "A001",
        "INVALID_SESSION_STATE": "A002",
        "INVALID_INDEX": "A003",
        "PERSIST_FAILED": "P001",

        "UNEXPECTED_ERROR": "S999"
    }

    def __init__(self, log_directory: Optional[str] = None, logger_name: str = 'reynar_import.errors'):
        self.errors: List[ErrorDetail] = []
        self.warnings: List[ErrorDetail] = []
        self.logger = logging.getLogger(logger_name)
        self._file_handler: Optional[logging.Handler] = None

        if log_directory:
            self._setup_file_logging(Path(log_directory))

    def _setup_file_logging(self, log_directory: Path):
        """Attach a JSON-lines file handler"""
        log_directory.mkdir(parents=True, exist_ok=True)
        log_file = log_directory / f"import_{datetime.now().strftime('%Y%m%d')}.jsonl"
        self._file_handler = logging.FileHandler(log_file)
        self._file_handler.setLevel(logging.DEBUG)
        self._file_handler.setFormatter(JSONFormatter())
        self.logger.addHandler(self._file_handler)

    def close(self):
        """Detach and close the file handler, if any"""
        if self._file_handler is not None:
            self.logger.removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None

    def log_error(self,
                  message: str,
                  error_type: str,
                  category: ErrorCategory = ErrorCategory.SYSTEM,
                  file_path: Optional[str] = None,
                  line_number: Optional[int] = None,
                  field_name: Optional[str] = None,
                  raw_value: Optional[str] = None,
                  exception: Optional[BaseException] = None,
                  context: Optional[Dict[str, Any]] = None) -> ErrorDetail:
        """Log an error with detailed information"""
        error_code = self.ERROR_CODES.get(error_type, "S999")
        stack_trace = None

        if exception is not None:
            stack_trace = ''.join(traceback.format_exception(
                type(exception), exception, exception.__traceback__
            ))

        error_detail = ErrorDetail(
            timestamp=datetime.now().isoformat(),
            severity=ErrorSeverity.ERROR.value,
            category=category.value,
            error_code=error_code,
            message=message,
            file_path=file_path,
            line_number=line_number,
            field_name=field_name,
            raw_value=raw_value,
            stack_trace=stack_trace,
            context=context or {}
        )
        self.errors.append(error_detail)

        self.logger.error(
            message,
            extra={
                'error_code': error_code,
                'category': category.value,
                'file_path': file_path,
                'context': context or {}
            }
        )
        return error_detail

    def log_warning(self,
                    message: str,
                    warning_type: str,
                    category: ErrorCategory = ErrorCategory.SYSTEM,
                    file_path: Optional[str] = None,
                    line_number: Optional[int] = None,
                    context: Optional[Dict[str, Any]] = None) -> ErrorDetail:
        """Log a warning with detailed information"""
        warning_code = self.ERROR_CODES.get(warning_type, "W999")

        warning_detail = ErrorDetail(
            timestamp=datetime.now().isoformat(),
            severity=ErrorSeverity.WARNING.value,
            category=category.value,
            error_code=warning_code,
            message=message,
            file_path=file_path,
            line_number=line_number,
            context=context or {}
        )
        self.warnings.append(warning_detail)

        self.logger.warning(
            message,
            extra={
                'error_code': warning_code,
                'category': category.value,
                'file_path': file_path,
                'context': context or {}
            }
        )
        return warning_detail

    def log_info(self, message: str, context: Optional[Dict[str, Any]] = None):
        """Log informational message"""
        self.logger.info(message, extra={'context': context or {}})

    def log_debug(self, message: str, context: Optional[Dict[str, Any]] = None):
        """Log debug message"""
        self.logger.debug(message, extra={'context': context or {}})

    def get_error_summary(self) -> Dict[str, Any]:
        """Get summary of all errors and warnings"""
        errors_by_category: Dict[str, int] = {}
        warnings_by_category: Dict[str, int] = {}

        for error in self.errors:
            errors_by_category[error.category] = errors_by_category.get(error.category, 0) + 1
        for warning in self.warnings:
            warnings_by_category[warning.category] = warnings_by_category.get(warning.category, 0) + 1

        return {
            'total_errors': len(self.errors),
            'total_warnings': len(self.warnings),
            'errors_by_category': errors_by_category,
            'warnings_by_category': warnings_by_category,
            'files_with_errors': len(set(e.file_path for e in self.errors if e.file_path)),
        }

    def clear_errors(self):
        """Clear all accumulated errors and warnings"""
        self.errors.clear()
        self.warnings.clear()

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    def get_errors_for_file(self, file_path: str) -> List[ErrorDetail]:
        """Get all errors for a specific file"""
        return [error for error in self.errors if error.file_path == file_path]

    def get_warnings_for_file(self, file_path: str) -> List[ErrorDetail]:
        """Get all warnings for a specific file"""
        return [warning for warning in self.warnings if warning.file_path == file_path]


def handle_file_access_error(error_handler: ErrorHandler,
                             file_path: str,
                             exception: Exception) -> ErrorDetail:
    """Handle common file access errors"""
    if isinstance(exception, FileNotFoundError):
        return error_handler.log_error(
            f"File not found: {file_path}",
            "FILE_NOT_FOUND",
            ErrorCategory.FILE_ACCESS,
            file_path=file_path,
            exception=exception
        )
    elif isinstance(exception, PermissionError):
        return error_handler.log_error(
            f"Permission denied accessing file: {file_path}",
            "FILE_PERMISSION_DENIED",
            ErrorCategory.FILE_ACCESS,
            file_path=file_path,
            exception=exception
        )
    else:
        return error_handler.log_error(
            f"File access error: {str(exception)}",
            "FILE_UNREADABLE",
            ErrorCategory.FILE_ACCESS,
            file_path=file_path,
            exception=exception
        )


def handle_parsing_error(error_handler: ErrorHandler,
                         file_path: str,
                         field_name: str,
                         raw_value: str,
                         line_number: Optional[int] = None,
                         exception: Optional[Exception] = None) -> ErrorDetail:
    """Record a field that could not be parsed as a warning.

    A bad field only costs its row, so this is never an error.
    """
    if 'date' in field_name.lower():
        warning_type = "DATE_PARSE_ERROR"
    elif 'amount' in field_name.lower():
        warning_type = "AMOUNT_PARSE_ERROR"
    else:
        warning_type = "MALFORMED_ROW"

    message = f"Failed to parse {field_name}: '{raw_value}'"
    if exception is not None:
        message = f"{message} ({exception})"

    return error_handler.log_warning(
        message,
        warning_type,
        ErrorCategory.DATA_PARSING,
        file_path=file_path,
        line_number=line_number,
        context={'field_name': field_name, 'raw_value': raw_value}
    )
