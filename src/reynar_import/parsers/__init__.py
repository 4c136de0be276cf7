"""Statement parsers"""

from .base import FileParser, DataTransformer
from .csv_parser import CSVParser
from .ofx_parser import OFXParser
from .pdf_parser import PDFParser

__all__ = ['FileParser', 'DataTransformer', 'CSVParser', 'OFXParser', 'PDFParser']
