"""Tests for PDF parser functionality."""

import os
import tempfile
import unittest
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import MagicMock, patch

from reynar_import.models.core import ImportConfig, ParsedTransaction, StatementPeriod, TransactionType
from reynar_import.parsers.pdf_parser import PDFParser


BRAZILIAN_STATEMENT = """Nubank
Extrato de conta corrente
Período: 01/12/2023 a 31/01/2024
Data Descrição Valor
28/12 Supermercado Extra 150,00-
05/01 Salario Empresa 5.000,00
05/01 Salario Empresa 5.000,00
10/01 Farmacia Popular 45,90
"""

US_STATEMENT = """CHASE
Statement Period: 12/01/2023 - 12/31/2023
Date Description Amount
12/05 AMAZON MKTPLACE 45.99
12/07 PAYROLL DEPOSIT 2,500.00
12/09 GAS STATION (38.20)
"""


class FakeExtractor:
    """Text extractor returning canned transactions"""

    def __init__(self, transactions=None, error=None):
        self.transactions = transactions or []
        self.error = error
        self.received = []

    def __call__(self, text):
        self.received.append(text)
        if self.error is not None:
            raise self.error
        return self.transactions


class TestPDFParser(unittest.TestCase):
    """Test cases for PDFParser class."""

    def setUp(self):
        """Set up test fixtures."""
        self.config = ImportConfig()
        self.parser = PDFParser(self.config)

    def test_supported_extensions(self):
        """Test that PDF parser supports correct extensions."""
        self.assertEqual(self.parser.get_supported_extensions(), ['.pdf'])

    def test_validate_file_nonexistent(self):
        """Test validation of non-existent file."""
        self.assertFalse(self.parser.validate_file('nonexistent.pdf'))

    def test_validate_file_wrong_extension(self):
        """Test validation of file with wrong extension."""
        with tempfile.NamedTemporaryFile(suffix='.txt', delete=False) as tmp:
            tmp.write(b'test content')
            tmp_path = tmp.name

        try:
            self.assertFalse(self.parser.validate_file(tmp_path))
        finally:
            os.unlink(tmp_path)

    def test_short_text_is_fatal(self):
        """Test that image-only PDFs are rejected with a tip"""
        result = self.parser.parse_text("   scanned   ")

        self.assertTrue(result.failed)
        self.assertIn("no extractable text", result.errors[0])
        self.assertEqual(len(result.warnings), 1)

    def test_local_parser_brazilian_lines(self):
        """Test day-first lines with comma decimals and a year-crossing period"""
        result = self.parser.parse_text(BRAZILIAN_STATEMENT)

        self.assertEqual(result.errors, [])
        self.assertEqual(result.bank_name, 'Nubank')
        self.assertEqual(result.currency, 'BRL')
        self.assertEqual(result.period, StatementPeriod(date(2023, 12, 1), date(2024, 1, 31)))

        self.assertEqual(len(result.transactions), 3)
        market, salary, pharmacy = result.transactions

        self.assertEqual(market.date, date(2023, 12, 28))
        self.assertEqual(market.amount, Decimal('150.00'))
        self.assertEqual(market.type, TransactionType.EXPENSE)

        self.assertEqual(salary.date, date(2024, 1, 5))
        self.assertEqual(salary.amount, Decimal('5000.00'))
        self.assertEqual(salary.type, TransactionType.INCOME)

        self.assertEqual(pharmacy.amount, Decimal('45.90'))
        self.assertEqual(pharmacy.type, TransactionType.EXPENSE)

        for transaction in result.transactions:
            self.assertEqual(transaction.extraction_confidence, PDFParser.LOCAL_CONFIDENCE)
            self.assertIsNone(transaction.confidence)

        self.assertTrue(any("using local parser" in w for w in result.warnings))
        self.assertTrue(any("Local parser found 3 transactions" in w for w in result.warnings))

    def test_local_parser_us_lines(self):
        """Test month-first lines with dot decimals"""
        result = self.parser.parse_text(US_STATEMENT)

        self.assertEqual(result.bank_name, 'Chase')
        self.assertEqual([t.date for t in result.transactions],
                         [date(2023, 12, 5), date(2023, 12, 7), date(2023, 12, 9)])
        self.assertEqual([t.amount for t in result.transactions],
                         [Decimal('45.99'), Decimal('2500.00'), Decimal('38.20')])
        self.assertEqual([t.type for t in result.transactions],
                         [TransactionType.EXPENSE, TransactionType.INCOME, TransactionType.EXPENSE])

    def test_tables_preferred_over_lines(self):
        """Test extraction from tables found by pdfplumber"""
        tables = [[
            ['Data', 'Descrição', 'Valor'],
            ['05/01/2024', 'Padaria Central', '12,50'],
            ['06/01/2024', 'Reembolso despesas', '1.200,00'],
            ['', '', ''],
        ]]
        result = self.parser.parse_text(BRAZILIAN_STATEMENT, tables=tables)

        self.assertEqual([t.description for t in result.transactions],
                         ['Padaria Central', 'Reembolso despesas'])
        self.assertEqual(result.transactions[0].amount, Decimal('12.50'))
        self.assertEqual(result.transactions[0].type, TransactionType.EXPENSE)
        self.assertEqual(result.transactions[1].amount, Decimal('1200.00'))
        self.assertEqual(result.transactions[1].type, TransactionType.INCOME)

    def test_unrecognized_layout_is_fatal(self):
        """Test that text without transaction lines fails the file"""
        text = "This document is a letter about account terms and conditions.\nNothing else here."
        result = self.parser.parse_text(text)

        self.assertTrue(result.failed)
        self.assertIn("Could not identify transactions", result.errors[0])

    def test_extractor_results_are_used(self):
        """Test that extractor output replaces the local parser"""
        extractor = FakeExtractor([
            ParsedTransaction(date=date(2024, 1, 5), description='  Salary ',
                              amount=Decimal('-5000.00'), type=TransactionType.INCOME),
        ])
        parser = PDFParser(ImportConfig(ai_text_limit=100), text_extractor=extractor)

        result = parser.parse_text(BRAZILIAN_STATEMENT)

        self.assertEqual(len(extractor.received), 1)
        self.assertEqual(extractor.received[0], BRAZILIAN_STATEMENT[:100])
        self.assertEqual(len(result.transactions), 1)
        salary = result.transactions[0]
        self.assertEqual(salary.description, 'Salary')
        self.assertEqual(salary.amount, Decimal('5000.00'))
        self.assertEqual(salary.extraction_confidence, PDFParser.AI_CONFIDENCE)
        self.assertEqual(salary.currency, 'BRL')
        self.assertTrue(any("interpreted by AI" in w for w in result.warnings))

    def test_failing_extractor_falls_back(self):
        """Test that extractor errors are never fatal"""
        parser = PDFParser(self.config, text_extractor=FakeExtractor(error=RuntimeError("timeout")))

        result = parser.parse_text(BRAZILIAN_STATEMENT)

        self.assertEqual(len(result.transactions), 3)
        self.assertTrue(any("using local parser" in w for w in result.warnings))
        self.assertTrue(parser.error_handler.has_warnings())

    def test_empty_extractor_falls_back(self):
        parser = PDFParser(self.config, text_extractor=FakeExtractor([]))

        result = parser.parse_text(BRAZILIAN_STATEMENT)

        self.assertEqual(len(result.transactions), 3)

    def test_year_without_period_is_current_year(self):
        self.assertEqual(self.parser._year_for(3, None), datetime.now().year)

    def test_year_from_period(self):
        period = StatementPeriod(date(2023, 11, 15), date(2024, 2, 14))
        self.assertEqual(self.parser._year_for(12, period), 2023)
        self.assertEqual(self.parser._year_for(1, period), 2024)

    def test_parse_reads_pages_with_pdfplumber(self):
        """Test the full parse path with pdfplumber mocked"""
        page = MagicMock()
        page.extract_text.return_value = BRAZILIAN_STATEMENT
        page.extract_tables.return_value = []
        pdf = MagicMock()
        pdf.pages = [page]

        with tempfile.NamedTemporaryFile(suffix='.pdf', delete=False) as tmp:
            tmp.write(b'%PDF-1.4 placeholder')
            tmp_path = tmp.name

        try:
            with patch('reynar_import.parsers.pdf_parser.pdfplumber.open') as mock_open:
                mock_open.return_value.__enter__.return_value = pdf
                result = self.parser.parse(tmp_path)

            self.assertEqual(len(result.transactions), 3)
            mock_open.assert_called_once_with(tmp_path)
        finally:
            os.unlink(tmp_path)

    def test_unreadable_pdf_is_fatal(self):
        with tempfile.NamedTemporaryFile(suffix='.pdf', delete=False) as tmp:
            tmp.write(b'%PDF-1.4 placeholder')
            tmp_path = tmp.name

        try:
            with patch('reynar_import.parsers.pdf_parser.pdfplumber.open', side_effect=ValueError("broken")):
                result = self.parser.parse(tmp_path)

            self.assertTrue(result.failed)
            self.assertIn("Could not open PDF", result.errors[0])
        finally:
            os.unlink(tmp_path)


if __name__ == '__main__':
    unittest.main()
