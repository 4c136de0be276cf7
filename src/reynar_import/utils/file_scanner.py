"""Statement format detection and parser selection."""

import logging
import os
from typing import List, Dict, Optional

from ..models.core import ImportConfig, ParseResult
from ..parsers.base import FileParser
from ..parsers.csv_parser import CSVParser
from ..parsers.ofx_parser import OFXParser
from ..parsers.pdf_parser import PDFParser
from ..ports import TextExtractor
from .error_handler import ErrorHandler, ErrorCategory


logger = logging.getLogger(__name__)


class FormatDetector:
    """Detects statement format from the extension, then from content"""

    def __init__(self, config: ImportConfig):
        self.config = config
        self.extension_map = {
            '.ofx': 'ofx',
            '.qfx': 'ofx',
            '.csv': 'csv',
            '.pdf': 'pdf',
        }

    def detect_format(self, file_path: str) -> Optional[str]:
        """
        Detect file format

        Args:
            file_path: Path to the file to analyze

        Returns:
            'csv', 'ofx' or 'pdf', or None when the format is not recognized
        """
        if not os.path.exists(file_path):
            return None

        _, ext = os.path.splitext(file_path.lower())
        format_type = self.extension_map.get(ext)
        if format_type:
            return format_type

        return self._detect_by_content(file_path)

    def _detect_by_content(self, file_path: str) -> Optional[str]:
        """Detect format by content analysis when the extension is unclear"""
        try:
            with open(file_path, 'rb') as f:
                head = f.read(2048)
        except OSError:
            return None

        if head.startswith(b'%PDF-'):
            return 'pdf'
        if OFXParser.has_ofx_header(head):
            return 'ofx'

        first_lines = head.decode('utf-8', errors='ignore').splitlines()[:5]
        if self._is_csv_content(first_lines):
            return 'csv'
        return None

    def _is_csv_content(self, lines: List[str]) -> bool:
        """Check if content appears to be delimited text"""
        if not lines:
            return False
        first_line = lines[0]
        return any(first_line.count(delimiter) >= 2 for delimiter in CSVParser.DELIMITERS)


class ParserFactory:
    """Factory for creating appropriate parser instances based on file format"""

    def __init__(self,
                 config: ImportConfig,
                 error_handler: Optional[ErrorHandler] = None,
                 text_extractor: Optional[TextExtractor] = None):
        self.config = config
        self.error_handler = error_handler or ErrorHandler()
        self.text_extractor = text_extractor
        self.format_detector = FormatDetector(config)
        self._parser_classes: Dict[str, type] = {
            'csv': CSVParser,
            'ofx': OFXParser,
            'pdf': PDFParser,
        }

    def register_parser(self, format_type: str, parser_class):
        """Register a parser class for a specific format"""
        self._parser_classes[format_type] = parser_class

    def get_parser_by_format(self, format_type: str) -> Optional[FileParser]:
        """Parser instance for a format type, or None if the format is not supported"""
        parser_class = self._parser_classes.get(format_type)
        if parser_class is None:
            return None
        if format_type == 'pdf':
            return parser_class(self.config, self.error_handler, text_extractor=self.text_extractor)
        return parser_class(self.config, self.error_handler)

    def get_parser_for_file(self, file_path: str) -> Optional[FileParser]:
        """Parser instance for a file, or None if no suitable parser exists"""
        format_type = self.format_detector.detect_format(file_path)
        if format_type is None:
            return None
        return self.get_parser_by_format(format_type)

    def get_supported_formats(self) -> List[str]:
        return sorted(self._parser_classes)


def parse_statement(file_path: str,
                    config: Optional[ImportConfig] = None,
                    text_extractor: Optional[TextExtractor] = None,
                    error_handler: Optional[ErrorHandler] = None) -> ParseResult:
    """Parse any supported statement file into a ParseResult.

    Never raises for file problems: a missing file or an unrecognized format
    is reported through ``ParseResult.errors``.
    """
    config = config or ImportConfig()
    error_handler = error_handler or ErrorHandler()

    if not os.path.isfile(file_path):
        message = f"File not found: {file_path}"
        error_handler.log_error(message, "FILE_NOT_FOUND", ErrorCategory.FILE_ACCESS, file_path=file_path)
        return ParseResult(errors=[message]).finalize(config.default_currency)

    factory = ParserFactory(config, error_handler, text_extractor)
    parser = factory.get_parser_for_file(file_path)
    if parser is None:
        message = f"Unsupported file format: {os.path.basename(file_path)}"
        error_handler.log_error(message, "UNSUPPORTED_FORMAT", ErrorCategory.FILE_FORMAT, file_path=file_path)
        return ParseResult(errors=[message]).finalize(config.default_currency)

    logger.info(f"Parsing {file_path} with {type(parser).__name__}")
    return parser.parse(file_path)
