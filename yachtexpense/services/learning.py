"""
Learning feedback: turn a user-confirmed (merchant, category) pair into
reinforced learned keywords.

Merchant names are upper-cased and split on anything that is not a letter or
digit. Short tokens, purely numeric tokens and generic words (legal-entity
suffixes, articles, address words, fiscal boilerplate) are never learned.
"""

import logging
import re
from typing import FrozenSet, List, Optional

from yachtexpense.services.keywords import KeywordStore

logger = logging.getLogger(__name__)


STOPWORDS: FrozenSet[str] = frozenset({
    # Legal-entity suffixes
    "SRL", "SPA", "SAS", "SNC", "SRLS", "SARL", "EURL", "GMBH", "KG", "OHG",
    "SL", "SA", "SLU", "LTD", "LIMITED", "INC", "LLC", "PLC", "CORP",
    # Articles and prepositions (IT / FR / DE / ES / EN)
    "DI", "DA", "DEL", "DELLA", "DELLO", "DEGLI", "DELLE", "DEI",
    "IL", "LA", "LO", "LE", "GLI", "UN", "UNA", "CON", "PER",
    "LES", "DES", "DU", "AU", "AUX", "ET",
    "DER", "DIE", "DAS", "UND", "VON", "ZUM", "ZUR",
    "EL", "LOS", "LAS", "Y",
    "THE", "AND", "OF",
    # Address words
    "VIA", "VIALE", "PIAZZA", "CORSO", "LARGO", "LOCALITA", "RUE", "AVENUE",
    "BOULEVARD", "PLACE", "STRASSE", "PLATZ", "CALLE", "AVENIDA", "PLAZA",
    "STREET", "ROAD",
    # Fiscal boilerplate
    "TEL", "FAX", "IVA", "PIVA", "NR", "RICEVUTA", "SCONTRINO", "FISCALE",
    "DOCUMENTO", "COMMERCIALE", "FATTURA", "SIRET", "TVA", "USTID", "MWST",
    "NIF", "CIF", "VAT", "RECEIPT", "INVOICE",
})

TOKEN_PATTERN = re.compile(r'[^\W_]+')


class LearningFeedback:
    """Reinforces learned keywords from confirmed categorizations."""

    def __init__(
        self,
        keyword_store: KeywordStore,
        min_keyword_length: int = 3,
        max_keywords: int = 3,
    ):
        self.keyword_store = keyword_store
        self.min_keyword_length = min_keyword_length
        self.max_keywords = max_keywords

    def extract_keywords(self, merchant_name: Optional[str]) -> List[str]:
        """
        Significant tokens of a merchant name, in order of appearance.

        Examples:
            >>> LearningFeedback(KeywordStore()).extract_keywords("ENI Station SRL")
            ['ENI', 'STATION']
        """
        if not merchant_name:
            return []

        keywords: List[str] = []
        for token in TOKEN_PATTERN.findall(merchant_name.upper()):
            if len(token) < self.min_keyword_length:
                continue
            if token.isdigit() or token in STOPWORDS:
                continue
            if token in keywords:
                continue
            keywords.append(token)
            if len(keywords) >= self.max_keywords:
                break

        return keywords

    def learn(self, merchant_name: Optional[str], confirmed_category: str) -> List[str]:
        """
        Record a user-confirmed category for a merchant.

        Args:
            merchant_name: Merchant as shown to the user
            confirmed_category: One of the valid categories

        Returns:
            The keywords that were reinforced (empty for an empty merchant)

        Raises:
            ValueError: confirmed_category is not a valid category
        """
        if not self.keyword_store.is_known_category(confirmed_category):
            raise ValueError(f"Unknown category: {confirmed_category!r}")

        keywords = self.extract_keywords(merchant_name)
        if not keywords:
            logger.debug("Nothing to learn from merchant", extra={
                "merchant_name": merchant_name
            })
            return []

        for keyword in keywords:
            entry = self.keyword_store.record_usage(keyword, confirmed_category)
            logger.debug("Learned keyword reinforced", extra={
                "keyword": keyword,
                "category": confirmed_category,
                "usage_count": entry.usage_count
            })

        logger.info("Learned keywords from confirmation", extra={
            "merchant_name": merchant_name,
            "category": confirmed_category,
            "keywords": keywords
        })
        return keywords

    def reset(self, category: Optional[str] = None) -> int:
        """Forget learned keywords, all of them or one category's."""
        if category is not None and not self.keyword_store.is_known_category(category):
            raise ValueError(f"Unknown category: {category!r}")

        removed = self.keyword_store.reset(category)
        logger.info("Learned keywords reset", extra={
            "category": category,
            "removed": removed
        })
        return removed
