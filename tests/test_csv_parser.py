"""Tests for CSV parser functionality."""

import os
import tempfile
from datetime import date
from decimal import Decimal

import pytest

from reynar_import.models.core import ImportConfig, PLACEHOLDER_DESCRIPTION, TransactionType
from reynar_import.parsers.base import DataTransformer
from reynar_import.parsers.csv_parser import CSVParser


def write_temp(content: str, suffix: str = '.csv', encoding: str = 'utf-8') -> str:
    with tempfile.NamedTemporaryFile(mode='w', suffix=suffix, delete=False, encoding=encoding) as f:
        f.write(content)
        return f.name


class TestCSVParser:
    """Test cases for CSV parser"""

    def setup_method(self):
        """Set up test fixtures"""
        self.config = ImportConfig()
        self.parser = CSVParser(self.config)

    def test_supported_extensions(self):
        """Test that CSV parser supports correct extensions"""
        extensions = self.parser.get_supported_extensions()
        assert '.csv' in extensions
        assert '.txt' in extensions

    def test_column_mapping_detection(self):
        """Test automatic column mapping detection"""
        headers = ['Date', 'Description', 'Amount', 'Balance']
        mapping = self.parser.detect_column_mapping(headers)

        assert mapping['date'] == 0
        assert mapping['description'] == 1
        assert mapping['amount'] == 2
        assert mapping['balance'] == 3

    def test_portuguese_column_mapping_detection(self):
        """Test mapping of Brazilian header names"""
        mapping = self.parser.detect_column_mapping(['Data', 'Histórico', 'Valor (R$)'])

        assert mapping == {'date': 0, 'description': 1, 'amount': 2}

    def test_debit_credit_column_detection(self):
        """Test detection of separate debit/credit columns"""
        headers = ['Date', 'Debit', 'Credit', 'Description']
        mapping = self.parser.detect_column_mapping(headers)

        assert mapping['date'] == 0
        assert mapping['debit'] == 1
        assert mapping['credit'] == 2
        assert mapping['description'] == 3
        assert 'amount' not in mapping

    def test_delimiter_detection(self):
        """Test that the most frequent delimiter wins"""
        assert self.parser.detect_delimiter("a;b;c\n1;2;3") == ';'
        assert self.parser.detect_delimiter("a,b,c\n1,2,3") == ','
        assert self.parser.detect_delimiter("a\tb\tc\n1\t2\t3") == '\t'

    def test_parse_salary_and_market(self):
        """Test parsing a signed amount CSV in file order"""
        path = write_temp("Date,Description,Amount\n"
                          "2024-01-05,Salary,5000.00\n"
                          "2024-01-06,Market,-120.50\n")
        try:
            result = self.parser.parse(path)

            assert result.errors == []
            assert len(result.transactions) == 2

            salary, market = result.transactions
            assert salary.date == date(2024, 1, 5)
            assert salary.description == 'Salary'
            assert salary.amount == Decimal('5000.00')
            assert salary.type == TransactionType.INCOME

            assert market.date == date(2024, 1, 6)
            assert market.amount == Decimal('120.50')
            assert market.type == TransactionType.EXPENSE
            assert market.confidence is None
            assert market.currency == 'USD'

            assert result.period.start == date(2024, 1, 5)
            assert result.period.end == date(2024, 1, 6)
        finally:
            os.unlink(path)

    def test_parse_is_repeatable(self):
        """Test that parsing the same file twice yields equal results"""
        path = write_temp("Date,Description,Amount\n"
                          "2024-02-01,Coffee,-3.50\n"
                          "2024-02-02,Refund,3.50\n")
        try:
            assert self.parser.parse(path) == self.parser.parse(path)
        finally:
            os.unlink(path)

    def test_parse_brazilian_semicolon_csv(self):
        """Test comma decimals, thousands dots and day-first dates"""
        path = write_temp("Data;Descrição;Valor\n"
                          "15/01/2024;Mercado Pão de Açúcar;-1.234,56\n"
                          "16/01/2024;PIX recebido;500,00\n")
        try:
            result = self.parser.parse(path)

            assert len(result.transactions) == 2
            first, second = result.transactions
            assert first.date == date(2024, 1, 15)
            assert first.amount == Decimal('1234.56')
            assert first.type == TransactionType.EXPENSE
            assert first.description == 'Mercado Pão de Açúcar'

            assert second.amount == Decimal('500.00')
            assert second.type == TransactionType.INCOME
        finally:
            os.unlink(path)

    def test_parse_headerless_bank_profile(self):
        """Test a known bank export without a header row"""
        path = write_temp("Extrato Banco do Brasil;;;\n"
                          "02/01/2024;0001;PIX ENVIADO;-1.500,00\n"
                          "03/01/2024;0002;SALARIO;3.000,50\n"
                          "04/01/2024;0003;TRANSFERENCIA;1.500\n")
        try:
            result = self.parser.parse(path)

            assert result.bank_name == 'Banco do Brasil'
            assert result.currency == 'BRL'
            assert [t.amount for t in result.transactions] == [
                Decimal('1500.00'), Decimal('3000.50'), Decimal('1500.00')
            ]
            assert [t.type for t in result.transactions] == [
                TransactionType.EXPENSE, TransactionType.INCOME, TransactionType.INCOME
            ]
            assert result.transactions[0].date == date(2024, 1, 2)
            assert result.transactions[0].currency == 'BRL'
        finally:
            os.unlink(path)

    def test_parse_debit_credit_csv(self):
        """Test parsing CSV with separate debit/credit columns"""
        path = write_temp("Date,Description,Debit,Credit\n"
                          "2024-01-01,Deposit,,100.50\n"
                          "2024-01-02,Coffee Shop,4.75,\n")
        try:
            result = self.parser.parse(path)

            assert len(result.transactions) == 2
            deposit, coffee = result.transactions
            assert deposit.amount == Decimal('100.50')
            assert deposit.type == TransactionType.INCOME
            assert coffee.amount == Decimal('4.75')
            assert coffee.type == TransactionType.EXPENSE
        finally:
            os.unlink(path)

    def test_type_column_overrides_sign(self):
        """Test that a D/C column decides the transaction type"""
        result = self.parser.parse_content("Date,Description,Amount,Type\n"
                                           "2024-03-01,Card payment,80.00,D\n"
                                           "2024-03-02,Cashback,5.00,C\n")

        assert [t.type for t in result.transactions] == [TransactionType.EXPENSE, TransactionType.INCOME]
        assert all(t.amount > 0 for t in result.transactions)

    def test_bad_rows_become_warnings(self):
        """Test that unparsable rows are skipped with warnings"""
        path = write_temp("Date,Description,Amount\n"
                          "2024-01-01,Coffee,-3.50\n"
                          "2024-01-02,Bad,row,extra,-1\n"
                          "not-a-date,Broken,-2.00\n"
                          "2024-01-03,Lunch,-12.00\n")
        try:
            result = self.parser.parse(path)

            assert result.errors == []
            assert [t.description for t in result.transactions] == ['Coffee', 'Lunch']
            assert sorted(result.warnings) == [
                "Row 3 skipped: unexpected number of fields (2024-01-02,Bad,row,extra,-1)",
                "Row 4 skipped: invalid date 'not-a-date'",
            ]
        finally:
            os.unlink(path)

    def test_row_numbers_count_blank_lines(self):
        """Test that warnings cite the line number in the file"""
        result = self.parser.parse_content("Date,Description,Amount\n"
                                           "\n"
                                           "2024-01-01,Coffee,-3.50\n"
                                           "\n"
                                           "not-a-date,Broken,-2.00\n")

        assert [t.description for t in result.transactions] == ['Coffee']
        assert result.warnings == ["Row 5 skipped: invalid date 'not-a-date'"]
        assert self.parser.error_handler.warnings[-1].line_number == 5

    @pytest.mark.parametrize("description", ["Software Update", "Dropbox data plan", "Valor Imobiliaria"])
    def test_headerless_file_with_column_words(self, description):
        """Test that a first data row mentioning column names is still data"""
        result = self.parser.parse_content(f"2024-01-05,{description},-9.99\n"
                                           "2024-01-06,Market,-120.50\n")

        assert result.errors == []
        assert [t.description for t in result.transactions] == [description, 'Market']
        assert result.transactions[0].amount == Decimal('9.99')

    def test_header_detection(self):
        assert self.parser.looks_like_header(['Date', 'Description', 'Amount'])
        assert self.parser.looks_like_header(['Data', 'Histórico', 'Valor (R$)'])
        assert self.parser.looks_like_header(['"Transaction Date"', 'Memo', 'Amount ($)'])
        assert not self.parser.looks_like_header(['2024-01-05', 'Software Update', '-9.99'])
        assert not self.parser.looks_like_header(['Update', '1.234,56'])
        assert not self.parser.looks_like_header(['Extrato Banco do Brasil', '', ''])

    def test_bank_names_in_descriptions_are_ignored(self):
        """Test that only the lines above the data pick the bank profile"""
        result = self.parser.parse_content("Date;Description;Amount\n"
                                           "2024-01-05;Chase card payment;1,234\n"
                                           "2024-01-06;Nubank fatura;-10,50\n")

        assert result.bank_name is None
        assert result.currency == 'USD'
        assert [t.amount for t in result.transactions] == [Decimal('1234.00'), Decimal('10.50')]

    def test_empty_file_is_a_warning(self):
        """Test that an empty file is not fatal"""
        path = write_temp("")
        try:
            result = self.parser.parse(path)

            assert result.transactions == []
            assert result.errors == []
            assert result.warnings == ["File is empty"]
            assert not result.failed
        finally:
            os.unlink(path)

    def test_header_only_file_is_a_warning(self):
        """Test that a header without rows explains itself"""
        result = self.parser.parse_content("Date,Description,Amount\n")

        assert result.transactions == []
        assert result.errors == []
        assert result.warnings == ["File contains a header but no data rows"]

    def test_missing_required_columns_is_fatal(self):
        """Test that a header lacking description and amount fails the file"""
        result = self.parser.parse_content("Foo,Bar,Date\n1,2,2024-01-01\n")

        assert result.failed
        assert result.transactions == []
        assert "missing required columns" in result.errors[0]

    def test_missing_file_is_fatal(self):
        """Test that a missing file yields an error result"""
        result = self.parser.parse('does-not-exist.csv')

        assert result.failed
        assert "File not found" in result.errors[0]

    def test_cp1252_file(self):
        """Test decoding fallback for legacy encodings"""
        path = write_temp("Data;Descrição;Valor\n10/02/2024;Café;-7,90\n", encoding='cp1252')
        try:
            result = self.parser.parse(path)

            assert len(result.transactions) == 1
            assert result.transactions[0].description == 'Café'
        finally:
            os.unlink(path)

    def test_configured_column_names(self):
        """Test that configured header names are recognized"""
        parser = CSVParser(ImportConfig(column_mappings={'date': ['Posted On']}))
        result = parser.parse_content("Posted On,Payee,Amount\n2024-04-01,Bookstore,-20.00\n")

        assert len(result.transactions) == 1
        assert result.transactions[0].date == date(2024, 4, 1)
        assert result.transactions[0].description == 'Bookstore'

    def test_blank_description_gets_placeholder(self):
        """Test that empty descriptions are replaced"""
        result = self.parser.parse_content("Date,Description,Amount\n2024-04-01,,-20.00\n")

        assert result.transactions[0].description == PLACEHOLDER_DESCRIPTION


class TestDataTransformer:
    """Test cases for amount, date and type normalization"""

    def setup_method(self):
        self.transformer = DataTransformer(ImportConfig())

    @pytest.mark.parametrize("raw,expected", [
        ("1.234,56", Decimal('1234.56')),
        ("1,234.56", Decimal('1234.56')),
        ("R$ 1.234,56", Decimal('1234.56')),
        ("$12.50", Decimal('12.50')),
        ("(45.00)", Decimal('-45.00')),
        ("45.00-", Decimal('-45.00')),
        ("-45", Decimal('-45.00')),
        ("100.00 DR", Decimal('-100.00')),
        ("100.00 CR", Decimal('100.00')),
        ("1.234.567", Decimal('1234567.00')),
        ("1,5", Decimal('1.50')),
        ("10.005,10", Decimal('10005.10')),
    ])
    def test_normalize_amount(self, raw, expected):
        assert self.transformer.normalize_amount(raw) == expected

    def test_single_separator_with_three_digits_uses_hint(self):
        """Test that the locale hint resolves 1.234 style values"""
        assert self.transformer.normalize_amount("1.234") == Decimal('1234.00')
        assert self.transformer.normalize_amount("1.234", ',') == Decimal('1234.00')
        assert self.transformer.normalize_amount("1,234", ',') == Decimal('1.23')

    def test_amounts_round_half_up(self):
        assert self.transformer.normalize_amount("2.345", '.') == Decimal('2.35')

    @pytest.mark.parametrize("raw", ["", "   ", "abc", None])
    def test_invalid_amount(self, raw):
        with pytest.raises(ValueError):
            self.transformer.normalize_amount(raw)

    def test_normalize_date(self):
        assert self.transformer.normalize_date("2024-01-15") == date(2024, 1, 15)
        assert self.transformer.normalize_date("15/01/2024") == date(2024, 1, 15)
        assert self.transformer.normalize_date("01/02/2024", "%m/%d/%Y") == date(2024, 1, 2)
        assert self.transformer.normalize_date("2024-01-15T10:00:00Z") == date(2024, 1, 15)
        assert self.transformer.normalize_date("January 5th, 2024") == date(2024, 1, 5)

    def test_invalid_date(self):
        with pytest.raises(ValueError):
            self.transformer.normalize_date("not-a-date")

    def test_determine_type(self):
        assert self.transformer.determine_type(Decimal('10'), 'anything') == TransactionType.INCOME
        assert self.transformer.determine_type(Decimal('-10'), 'Padaria') == TransactionType.EXPENSE
        assert self.transformer.determine_type(Decimal('0'), 'Padaria') == TransactionType.EXPENSE
        assert self.transformer.determine_type(Decimal('10'), 'Salário março', signed=False) == TransactionType.INCOME
        assert self.transformer.determine_type(Decimal('10'), 'Padaria', signed=False) == TransactionType.EXPENSE

    @pytest.mark.parametrize("description", ["salary", "Refund Amazon", "PIX recebido Joao", "Depósito"])
    def test_income_keywords_override_negative_sign(self, description):
        assert self.transformer.determine_type(Decimal('-50'), description) == TransactionType.INCOME

    def test_build_transaction_keeps_magnitude(self):
        transaction = self.transformer.build_transaction(date(2024, 1, 1), 'POS Coffee', Decimal('-3.50'))

        assert transaction.amount == Decimal('3.50')
        assert transaction.type == TransactionType.EXPENSE
        assert transaction.description == 'Coffee'
