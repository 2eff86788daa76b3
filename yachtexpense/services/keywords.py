"""
Keyword store: the static category table plus the learned keyword collection.

Learned keywords are the only state the engine keeps between scans. Every
backend serializes the increment-or-insert of a (keyword, category) pair so
concurrent confirmations never lose an increment.
"""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from yachtexpense.config import settings
from yachtexpense.models.extraction import LearnedKeyword
from yachtexpense.utils.categories import STATIC_KEYWORDS, VALID_CATEGORIES

logger = logging.getLogger(__name__)


class KeywordStoreError(Exception):
    """Raised when the learned keyword backend cannot be written."""


class LearnedKeywordStore(ABC):
    """Persistence for learned (keyword, category, usage) rows."""

    @abstractmethod
    def all(self) -> List[LearnedKeyword]:
        """Return every learned keyword."""

    @abstractmethod
    def record_usage(
        self,
        keyword: str,
        category_name: str,
        used_at: Optional[datetime] = None,
    ) -> LearnedKeyword:
        """Increment usage of (keyword, category), inserting it on first use."""

    @abstractmethod
    def reset(self, category_name: Optional[str] = None) -> int:
        """Delete learned keywords (all, or one category). Returns rows removed."""


class InMemoryLearnedKeywordStore(LearnedKeywordStore):
    """Thread-safe in-process store, the default backend."""

    def __init__(self, entries: Optional[List[LearnedKeyword]] = None):
        self._lock = threading.Lock()
        self._entries: Dict[Tuple[str, str], LearnedKeyword] = {}
        for entry in entries or []:
            self._entries[(entry.keyword, entry.category_name)] = entry

    def all(self) -> List[LearnedKeyword]:
        with self._lock:
            return [_copy(entry) for entry in self._entries.values()]

    def record_usage(
        self,
        keyword: str,
        category_name: str,
        used_at: Optional[datetime] = None,
    ) -> LearnedKeyword:
        used_at = used_at or _utcnow()
        key = (keyword, category_name)

        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                entry = LearnedKeyword(
                    category_name=category_name,
                    keyword=keyword,
                    usage_count=1,
                    learned_at=used_at,
                    last_used_at=used_at,
                )
                self._entries[key] = entry
            else:
                entry.usage_count += 1
                entry.last_used_at = used_at
            return _copy(entry)

    def reset(self, category_name: Optional[str] = None) -> int:
        with self._lock:
            if category_name is None:
                removed = len(self._entries)
                self._entries.clear()
                return removed

            doomed = [key for key in self._entries if key[1] == category_name]
            for key in doomed:
                del self._entries[key]
            return len(doomed)


class SupabaseLearnedKeywordStore(LearnedKeywordStore):
    """
    Learned keywords persisted in a Supabase table.

    Table columns: keyword, category_name, usage_count, learned_at, last_used_at,
    unique on (keyword, category_name). The increment-or-insert is a single
    INSERT ... ON CONFLICT statement behind the record_learned_keyword function
    (see migrations/001_learned_keywords.sql), so concurrent workers never lose
    an increment or duplicate a row.
    """

    def __init__(
        self,
        client: Any = None,
        table_name: Optional[str] = None,
        record_function: Optional[str] = None,
    ):
        """Initialize with an explicit client or one built from settings."""
        if client is None:
            from yachtexpense.utils.supabase import get_supabase_client
            client = get_supabase_client()
        self.supabase = client
        self.table_name = table_name or settings.LEARNED_KEYWORDS_TABLE
        self.record_function = record_function or settings.LEARNED_KEYWORDS_RECORD_FUNCTION

    def all(self) -> List[LearnedKeyword]:
        try:
            response = self.supabase.table(self.table_name).select('*').execute()
        except Exception as e:
            # Matching must keep working on static keywords alone
            logger.error("Error fetching learned keywords", extra={
                "table": self.table_name,
                "error": str(e)
            }, exc_info=True)
            return []

        return [_row_to_keyword(row) for row in response.data or []]

    def record_usage(
        self,
        keyword: str,
        category_name: str,
        used_at: Optional[datetime] = None,
    ) -> LearnedKeyword:
        used_at = used_at or _utcnow()

        try:
            response = self.supabase.rpc(self.record_function, {
                'p_keyword': keyword,
                'p_category_name': category_name,
                'p_used_at': used_at.isoformat(),
            }).execute()
        except Exception as e:
            logger.error("Error recording learned keyword", extra={
                "keyword": keyword,
                "category_name": category_name,
                "error": str(e)
            }, exc_info=True)
            raise KeywordStoreError(f"Could not record keyword '{keyword}'") from e

        # A set-returning function comes back as a list, a single row as a dict
        data = response.data
        row = data[0] if isinstance(data, list) and data else data
        if not isinstance(row, dict):
            logger.error("Learned keyword function returned no row", extra={
                "keyword": keyword,
                "category_name": category_name,
                "function": self.record_function
            })
            raise KeywordStoreError(f"Could not record keyword '{keyword}'")

        return _row_to_keyword(row)

    def reset(self, category_name: Optional[str] = None) -> int:
        try:
            query = self.supabase.table(self.table_name).delete()
            if category_name is None:
                # Supabase refuses unfiltered deletes
                query = query.neq('keyword', '')
            else:
                query = query.eq('category_name', category_name)
            response = query.execute()
        except Exception as e:
            logger.error("Error resetting learned keywords", extra={
                "category_name": category_name,
                "error": str(e)
            }, exc_info=True)
            raise KeywordStoreError("Could not reset learned keywords") from e

        return len(response.data or [])


class KeywordStore:
    """Static keyword table plus the learned keyword backend."""

    def __init__(
        self,
        learned: Optional[LearnedKeywordStore] = None,
        static_keywords: Mapping[str, Tuple[str, ...]] = STATIC_KEYWORDS,
        categories: Tuple[str, ...] = VALID_CATEGORIES,
    ):
        self.learned = learned if learned is not None else InMemoryLearnedKeywordStore()
        self.static_keywords = static_keywords
        self.categories = categories

    def is_known_category(self, name: Optional[str]) -> bool:
        return name in self.categories

    def learned_keywords(self) -> List[LearnedKeyword]:
        return self.learned.all()

    def record_usage(
        self,
        keyword: str,
        category_name: str,
        used_at: Optional[datetime] = None,
    ) -> LearnedKeyword:
        return self.learned.record_usage(keyword, category_name, used_at)

    def reset(self, category_name: Optional[str] = None) -> int:
        return self.learned.reset(category_name)


def build_learned_store(backend: Optional[str] = None) -> LearnedKeywordStore:
    """Create the learned keyword backend named in settings."""
    backend = (backend or settings.KEYWORD_STORE_BACKEND).lower()
    if backend == 'supabase':
        return SupabaseLearnedKeywordStore()
    if backend == 'memory':
        return InMemoryLearnedKeywordStore()
    raise ValueError(f"Unknown keyword store backend: {backend}")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _copy(entry: LearnedKeyword) -> LearnedKeyword:
    return LearnedKeyword(
        category_name=entry.category_name,
        keyword=entry.keyword,
        usage_count=entry.usage_count,
        learned_at=entry.learned_at,
        last_used_at=entry.last_used_at,
    )


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            pass
    return _utcnow()


def _row_to_keyword(row: Dict[str, Any]) -> LearnedKeyword:
    return LearnedKeyword(
        category_name=row['category_name'],
        keyword=row['keyword'],
        usage_count=max(1, int(row.get('usage_count') or 1)),
        learned_at=_parse_timestamp(row.get('learned_at')),
        last_used_at=_parse_timestamp(row.get('last_used_at')),
    )
