"""Offline keyword categorizer.

Fills the categorizer port when no AI service is configured. Suggestions
are positionally aligned with the requests.
"""

import logging
from typing import List, Dict, Tuple

from ..models.core import CategorizationRequest, CategorySuggestion


logger = logging.getLogger(__name__)

FALLBACK_CATEGORY = 'Other'
KEYWORD_CONFIDENCE = 80
FALLBACK_CONFIDENCE = 30


class KeywordCategorizer:
    """Maps descriptions to categories by keyword; first matching category wins"""

    CATEGORY_KEYWORDS: Dict[str, Tuple[str, ...]] = {
        'Salary': ('salary', 'payroll', 'salário', 'salario', 'folha', 'pró-labore', 'pro labore'),
        'Transfer': ('pix', 'ted ', 'doc ', 'transfer', 'transferência', 'transferencia', 'zelle', 'venmo'),
        'Food': ('restaurant', 'restaurante', 'ifood', 'mercado', 'supermercado', 'market', 'padaria',
                 'bakery', 'grocery', 'starbucks', 'mcdonald', 'burger', 'pizza', 'café', 'coffee',
                 'doordash', 'uber eats', 'lanchonete'),
        'Transport': ('uber', '99app', '99 pop', 'taxi', 'lyft', 'metro', 'metrô', 'ônibus',
                      'onibus', 'posto', 'shell', 'ipiranga', 'gas station', 'fuel', 'combustível',
                      'estacionamento', 'parking', 'pedágio', 'toll'),
        'Housing': (' rent', 'aluguel', 'condomínio', 'condominio', 'mortgage', 'iptu', 'imobiliária'),
        'Bills': ('energia', 'electric', 'enel', 'cemig', 'sabesp', 'water', 'água', 'internet',
                  'vivo', 'claro', 'tim ', 'comcast', 'at&t', 'verizon', 'boleto', 'utility'),
        'Health': ('farmácia', 'farmacia', 'drogaria', 'pharmacy', 'cvs', 'walgreens', 'hospital',
                   'clínica', 'clinica', 'médico', 'medico', 'dentist', 'unimed', 'laboratório'),
        'Education': ('escola', 'school', 'faculdade', 'university', 'curso', 'course', 'udemy',
                      'coursera', 'livraria', 'bookstore', 'tuition'),
        'Leisure': ('netflix', 'spotify', 'cinema', 'disney', 'hbo', 'prime video', 'steam',
                    'playstation', 'xbox', 'show', 'ingresso', 'ticket', 'bar '),
        'Investments': ('corretora', 'broker', 'tesouro', 'cdb', 'investimento', 'investment',
                        'dividend', 'dividendo', 'rendimento'),
        'Clothing': ('renner', 'riachuelo', 'c&a', 'zara', 'h&m', 'nike', 'adidas', 'roupa', 'clothing'),
        'Shopping': ('amazon', 'mercado livre', 'mercadolivre', 'shopee', 'aliexpress', 'magazine luiza',
                     'magalu', 'americanas', 'walmart', 'target', 'ebay', 'shopping'),
        'Services': ('assinatura', 'subscription', 'lavanderia', 'laundry', 'salão', 'barbearia',
                     'barber', 'google', 'apple.com', 'microsoft', 'icloud'),
    }

    def __call__(self, items: List[CategorizationRequest]) -> List[CategorySuggestion]:
        return [self.categorize(item.description) for item in items]

    def categorize(self, description: str) -> CategorySuggestion:
        """Suggest a category for a single description"""
        text = f" {(description or '').lower()} "
        for category, keywords in self.CATEGORY_KEYWORDS.items():
            if any(keyword in text for keyword in keywords):
                return CategorySuggestion(category=category, confidence=KEYWORD_CONFIDENCE)

        logger.debug(f"No category keyword in '{description}'")
        return CategorySuggestion(category=FALLBACK_CATEGORY, confidence=FALLBACK_CONFIDENCE)
