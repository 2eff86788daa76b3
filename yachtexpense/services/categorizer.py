"""
Category matcher scoring OCR text against static and learned keywords.

Scoring per category:
    static  : sum of len(keyword) for every keyword found in the text
    learned : len(keyword) + min(usage_count, usage_cap) for every learned
              keyword found in the text

Keywords match as substrings of the upper-cased text. Highest score wins,
ties go to the alphabetically first category name.
"""

import logging
from typing import Dict, Iterable, List, Optional

from yachtexpense.models.extraction import CategoryMatch, LearnedKeyword, MatchStrength
from yachtexpense.services.keywords import KeywordStore
from yachtexpense.utils.scoring import classify_strength

logger = logging.getLogger(__name__)


class CategoryMatcher:
    """Scores text against the keyword store. Never writes to it."""

    def __init__(
        self,
        keyword_store: KeywordStore,
        strong_threshold: int = 20,
        usage_cap: int = 5,
    ):
        self.keyword_store = keyword_store
        self.strong_threshold = strong_threshold
        self.usage_cap = usage_cap

    def score_categories(
        self,
        text: Optional[str],
        learned_keywords: Optional[Iterable[LearnedKeyword]] = None,
    ) -> Dict[str, int]:
        """Per-category scores for text; only categories with hits appear."""
        if not text:
            return {}

        haystack = text.upper()
        if learned_keywords is None:
            learned_keywords = self.keyword_store.learned_keywords()

        scores: Dict[str, int] = {}

        for category, keywords in self.keyword_store.static_keywords.items():
            score = sum(len(keyword) for keyword in keywords if keyword in haystack)
            if score:
                scores[category] = score

        for learned in learned_keywords:
            keyword = learned.keyword.upper()
            if not keyword or keyword not in haystack:
                continue
            # A learned row may outlive a vocabulary change
            if not self.keyword_store.is_known_category(learned.category_name):
                continue
            bonus = len(keyword) + min(learned.usage_count, self.usage_cap)
            scores[learned.category_name] = scores.get(learned.category_name, 0) + bonus

        return scores

    def match_category(
        self,
        text: Optional[str],
        learned_keywords: Optional[Iterable[LearnedKeyword]] = None,
    ) -> CategoryMatch:
        """
        Best category for text.

        Args:
            text: OCR text (any case)
            learned_keywords: Learned rows to score with; None reads the store

        Returns:
            CategoryMatch with category_name None and strength none when no
            keyword matched
        """
        scores = self.score_categories(text, learned_keywords)
        if not scores:
            return CategoryMatch(
                category_name=None,
                score=0,
                strength=MatchStrength.NONE,
                scores={},
            )

        best_category = min(scores, key=lambda name: (-scores[name], name))
        best_score = scores[best_category]
        strength = classify_strength(best_score, self.strong_threshold)

        logger.debug("Category matched", extra={
            "category": best_category,
            "score": best_score,
            "strength": strength.value,
            "candidates": len(scores)
        })

        return CategoryMatch(
            category_name=best_category,
            score=best_score,
            strength=strength,
            scores=scores,
        )

    def match_merchant(
        self,
        merchant_name: Optional[str],
        learned_keywords: Optional[Iterable[LearnedKeyword]] = None,
    ) -> Optional[str]:
        """
        Category of the strongest learned keyword found in a merchant name.

        Used to override a remote category suggestion with what the user has
        confirmed before. Ranking: highest usage_count, then longer keyword,
        then category name.
        """
        if not merchant_name:
            return None

        haystack = merchant_name.upper()
        if learned_keywords is None:
            learned_keywords = self.keyword_store.learned_keywords()

        hits: List[LearnedKeyword] = [
            learned for learned in learned_keywords
            if learned.keyword
            and learned.keyword.upper() in haystack
            and self.keyword_store.is_known_category(learned.category_name)
        ]
        if not hits:
            return None

        best = min(hits, key=lambda k: (-k.usage_count, -len(k.keyword), k.category_name))
        return best.category_name
