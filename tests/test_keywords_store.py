"""
Tests for the learned keyword backends.
"""

import threading
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from yachtexpense.services.keywords import (
    InMemoryLearnedKeywordStore,
    KeywordStore,
    KeywordStoreError,
    SupabaseLearnedKeywordStore,
    build_learned_store,
)
from yachtexpense.utils.categories import STATIC_KEYWORDS, VALID_CATEGORIES


class TestInMemoryStore:

    def test_insert_then_increment(self):
        store = InMemoryLearnedKeywordStore()
        first = store.record_usage("ENI", "Fuel")
        second = store.record_usage("ENI", "Fuel")

        assert first.usage_count == 1
        assert second.usage_count == 2
        assert len(store.all()) == 1

    def test_returned_entries_are_copies(self):
        store = InMemoryLearnedKeywordStore()
        entry = store.record_usage("ENI", "Fuel")
        entry.usage_count = 99

        assert store.all()[0].usage_count == 1

    def test_concurrent_increments_are_not_lost(self):
        store = InMemoryLearnedKeywordStore()

        def confirm():
            for _ in range(50):
                store.record_usage("MARIO", "Food")

        threads = [threading.Thread(target=confirm) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert store.all()[0].usage_count == 400

    def test_reset_returns_removed_count(self):
        store = InMemoryLearnedKeywordStore()
        store.record_usage("ENI", "Fuel")
        store.record_usage("BAR", "Food")

        assert store.reset("Food") == 1
        assert store.reset() == 1
        assert store.all() == []


class TestSupabaseStore:
    """Supabase client is mocked; only the query shape is checked."""

    def make_store(self):
        client = MagicMock()
        return client, SupabaseLearnedKeywordStore(client=client, table_name="learned_keywords")

    def test_all_maps_rows(self):
        client, store = self.make_store()
        client.table.return_value.select.return_value.execute.return_value.data = [{
            "keyword": "ENI",
            "category_name": "Fuel",
            "usage_count": 3,
            "learned_at": "2024-01-05T10:00:00Z",
            "last_used_at": "2024-02-01T09:30:00+00:00",
        }]

        entries = store.all()

        client.table.assert_called_with("learned_keywords")
        assert len(entries) == 1
        assert entries[0].keyword == "ENI"
        assert entries[0].usage_count == 3
        assert entries[0].learned_at == datetime(2024, 1, 5, 10, 0, tzinfo=timezone.utc)

    def test_all_degrades_to_empty_on_error(self):
        client, store = self.make_store()
        client.table.side_effect = Exception("connection refused")

        assert store.all() == []

    def test_record_usage_calls_upsert_function(self):
        client, store = self.make_store()
        used_at = datetime(2024, 1, 5, 10, 0, tzinfo=timezone.utc)
        client.rpc.return_value.execute.return_value.data = [{
            "keyword": "ENI",
            "category_name": "Fuel",
            "usage_count": 1,
            "learned_at": "2024-01-05T10:00:00+00:00",
            "last_used_at": "2024-01-05T10:00:00+00:00",
        }]

        entry = store.record_usage("ENI", "Fuel", used_at)

        client.rpc.assert_called_once_with("record_learned_keyword", {
            "p_keyword": "ENI",
            "p_category_name": "Fuel",
            "p_used_at": "2024-01-05T10:00:00+00:00",
        })
        client.table.assert_not_called()
        assert entry.keyword == "ENI"
        assert entry.usage_count == 1

    def test_record_usage_returns_incremented_row(self):
        client, store = self.make_store()
        client.rpc.return_value.execute.return_value.data = {
            "keyword": "ENI",
            "category_name": "Fuel",
            "usage_count": 3,
            "learned_at": "2024-01-05T10:00:00+00:00",
            "last_used_at": "2024-02-01T09:30:00+00:00",
        }

        entry = store.record_usage("ENI", "Fuel")

        assert entry.usage_count == 3
        assert entry.learned_at == datetime(2024, 1, 5, 10, 0, tzinfo=timezone.utc)

    def test_record_usage_empty_reply_raises_store_error(self):
        client, store = self.make_store()
        client.rpc.return_value.execute.return_value.data = []

        with pytest.raises(KeywordStoreError):
            store.record_usage("ENI", "Fuel")

    def test_record_usage_failure_raises_store_error(self):
        client, store = self.make_store()
        client.rpc.side_effect = Exception("timeout")

        with pytest.raises(KeywordStoreError):
            store.record_usage("ENI", "Fuel")

    def test_reset_category(self):
        client, store = self.make_store()
        delete = client.table.return_value.delete.return_value
        delete.eq.return_value.execute.return_value.data = [{}, {}]

        assert store.reset("Fuel") == 2
        delete.eq.assert_called_once_with("category_name", "Fuel")

    def test_reset_all_uses_filter(self):
        client, store = self.make_store()
        delete = client.table.return_value.delete.return_value
        delete.neq.return_value.execute.return_value.data = [{}]

        assert store.reset() == 1
        delete.neq.assert_called_once_with("keyword", "")


class TestKeywordStore:

    def test_defaults(self):
        store = KeywordStore()
        assert store.static_keywords is STATIC_KEYWORDS
        assert store.categories == VALID_CATEGORIES
        assert store.learned_keywords() == []

    def test_known_category(self):
        store = KeywordStore()
        assert store.is_known_category("Tender Fuel")
        assert not store.is_known_category("tender fuel")
        assert not store.is_known_category(None)

    def test_static_table_covers_vocabulary(self):
        assert set(STATIC_KEYWORDS) == set(VALID_CATEGORIES)
        for keywords in STATIC_KEYWORDS.values():
            assert all(keyword == keyword.upper() for keyword in keywords)

    def test_build_learned_store(self):
        assert isinstance(build_learned_store("memory"), InMemoryLearnedKeywordStore)
        with pytest.raises(ValueError):
            build_learned_store("redis")
