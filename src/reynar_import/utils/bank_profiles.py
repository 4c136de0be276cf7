"""Known institution layouts and currency display settings."""

import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional

from ..models.core import BankProfile, CurrencyConfig, TransactionType


def _profile(name, country, currency, date_format, decimal_separator, thousands_separator,
             column_mappings, detect_pattern=None, skip_rows=0) -> BankProfile:
    return BankProfile(
        name=name,
        country=country,
        currency=currency,
        date_format=date_format,
        decimal_separator=decimal_separator,
        thousands_separator=thousands_separator,
        column_mappings=column_mappings,
        skip_rows=skip_rows,
        detect_pattern=detect_pattern,
    )


# Detection runs in insertion order; the first matching pattern wins.
BANK_PROFILES: Dict[str, BankProfile] = {
    # Brazil
    'nubank': _profile('Nubank', 'BR', 'BRL', '%d/%m/%Y', ',', '.',
                       {'date': 0, 'amount': 1, 'description': 2}, r'nubank|nu pagamentos'),
    'itau': _profile('Itaú', 'BR', 'BRL', '%d/%m/%Y', ',', '.',
                     {'date': 0, 'description': 1, 'amount': 2}, r'\bita[uú]\b'),
    'bradesco': _profile('Bradesco', 'BR', 'BRL', '%d/%m/%Y', ',', '.',
                         {'date': 0, 'description': 1, 'amount': 2, 'balance': 3}, r'bradesco'),
    'bb': _profile('Banco do Brasil', 'BR', 'BRL', '%d/%m/%Y', ',', '.',
                   {'date': 0, 'description': 2, 'amount': 3}, r'banco do brasil', skip_rows=1),
    'inter': _profile('Banco Inter', 'BR', 'BRL', '%d/%m/%Y', ',', '.',
                      {'date': 0, 'description': 1, 'amount': 2, 'balance': 3}, r'banco inter\b'),
    'c6': _profile('C6 Bank', 'BR', 'BRL', '%d/%m/%Y', ',', '.',
                   {'date': 0, 'description': 1, 'amount': 2}, r'\bc6 ?bank\b'),
    'santander_br': _profile('Santander Brasil', 'BR', 'BRL', '%d/%m/%Y', ',', '.',
                             {'date': 0, 'description': 1, 'amount': 2}, r'santander'),
    'caixa': _profile('Caixa Econômica', 'BR', 'BRL', '%d/%m/%Y', ',', '.',
                      {'date': 0, 'description': 1, 'amount': 2}, r'caixa econ[oô]mica|\bcef\b'),

    # United States
    'chase': _profile('Chase', 'US', 'USD', '%m/%d/%Y', '.', ',',
                      {'date': 0, 'description': 1, 'amount': 2}, r'\bchase\b'),
    'bofa': _profile('Bank of America', 'US', 'USD', '%m/%d/%Y', '.', ',',
                     {'date': 0, 'description': 1, 'amount': 2}, r'bank of america|\bbofa\b'),
    'wells_fargo': _profile('Wells Fargo', 'US', 'USD', '%m/%d/%Y', '.', ',',
                            {'date': 0, 'description': 1, 'amount': 2}, r'wells fargo'),
    'citi': _profile('Citibank', 'US', 'USD', '%m/%d/%Y', '.', ',',
                     {'date': 0, 'description': 1, 'amount': 2}, r'\bciti(bank)?\b'),

    # Europe
    'revolut': _profile('Revolut', 'EU', 'EUR', '%Y-%m-%d', '.', ',',
                        {'date': 0, 'description': 1, 'amount': 2}, r'revolut'),
    'n26': _profile('N26', 'EU', 'EUR', '%Y-%m-%d', '.', ',',
                    {'date': 0, 'description': 1, 'amount': 2}, r'\bn26\b'),
    'wise': _profile('Wise (TransferWise)', 'EU', 'EUR', '%d-%m-%Y', '.', ',',
                     {'date': 0, 'description': 3, 'amount': 2}, r'transferwise|\bwise\b'),

    # United Kingdom
    'hsbc_uk': _profile('HSBC UK', 'UK', 'GBP', '%d/%m/%Y', '.', ',',
                        {'date': 0, 'description': 1, 'amount': 2}, r'\bhsbc\b'),
    'barclays': _profile('Barclays', 'UK', 'GBP', '%d/%m/%Y', '.', ',',
                         {'date': 0, 'description': 1, 'amount': 2}, r'barclays'),
    'monzo': _profile('Monzo', 'UK', 'GBP', '%d/%m/%Y', '.', ',',
                      {'date': 0, 'description': 1, 'amount': 2}, r'monzo'),

    # Portugal
    'millennium_pt': _profile('Millennium BCP', 'PT', 'EUR', '%d/%m/%Y', ',', '.',
                              {'date': 0, 'description': 1, 'amount': 2}, r'millennium|\bbcp\b'),
    'caixa_pt': _profile('Caixa Geral de Depósitos', 'PT', 'EUR', '%d/%m/%Y', ',', '.',
                         {'date': 0, 'description': 1, 'amount': 2}, r'\bcgd\b|caixa geral'),

    # Fallback
    'generic': _profile('Generic Bank', 'INTL', 'USD', '%Y-%m-%d', '.', ',',
                        {'date': 0, 'description': 1, 'amount': 2}),
}

GENERIC_PROFILE_KEY = 'generic'


CURRENCY_CONFIG: Dict[str, CurrencyConfig] = {
    'BRL': CurrencyConfig(symbol='R$', locale='pt-BR', decimal_places=2),
    'USD': CurrencyConfig(symbol='$', locale='en-US', decimal_places=2),
    'EUR': CurrencyConfig(symbol='€', locale='de-DE', decimal_places=2),
    'GBP': CurrencyConfig(symbol='£', locale='en-GB', decimal_places=2),
    'JPY': CurrencyConfig(symbol='¥', locale='ja-JP', decimal_places=0),
    'CAD': CurrencyConfig(symbol='C$', locale='en-CA', decimal_places=2),
    'AUD': CurrencyConfig(symbol='A$', locale='en-AU', decimal_places=2),
    'CHF': CurrencyConfig(symbol='CHF', locale='de-CH', decimal_places=2),
    'CNY': CurrencyConfig(symbol='¥', locale='zh-CN', decimal_places=2),
    'MXN': CurrencyConfig(symbol='$', locale='es-MX', decimal_places=2),
    'ARS': CurrencyConfig(symbol='$', locale='es-AR', decimal_places=2),
    'CLP': CurrencyConfig(symbol='$', locale='es-CL', decimal_places=0),
    'COP': CurrencyConfig(symbol='$', locale='es-CO', decimal_places=0),
    'PEN': CurrencyConfig(symbol='S/', locale='es-PE', decimal_places=2),
}

# Locales that write 1.234,56 rather than 1,234.56
_COMMA_DECIMAL_LOCALES = {'pt-BR', 'de-DE', 'de-CH', 'es-AR', 'es-CL', 'es-CO'}


def detect_bank(content: str) -> BankProfile:
    """Return the first profile whose pattern occurs in ``content``, else the generic one"""
    for profile in BANK_PROFILES.values():
        if profile.detect_pattern and re.search(profile.detect_pattern, content, re.IGNORECASE):
            return profile
    return BANK_PROFILES[GENERIC_PROFILE_KEY]


def get_currency_config(currency: Optional[str], default: str = 'USD') -> CurrencyConfig:
    """Look up display settings, falling back to ``default`` for unknown codes"""
    code = (currency or '').strip().upper()
    return CURRENCY_CONFIG.get(code) or CURRENCY_CONFIG[default]


def format_amount(amount: Decimal, transaction_type: TransactionType, currency: Optional[str]) -> str:
    """Render ``+ R$ 1.234,56`` / ``- $ 12.50`` style display strings"""
    config = get_currency_config(currency)
    quantum = Decimal(1).scaleb(-config.decimal_places)
    rounded = Decimal(amount).quantize(quantum, rounding=ROUND_HALF_UP)

    formatted = f"{rounded:,.{config.decimal_places}f}"
    if config.locale in _COMMA_DECIMAL_LOCALES:
        formatted = formatted.replace(',', '\x00').replace('.', ',').replace('\x00', '.')

    sign = '+' if transaction_type == TransactionType.INCOME else '-'
    return f"{sign} {config.symbol} {formatted}"
