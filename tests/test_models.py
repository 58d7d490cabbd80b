"""Tests for the SQLite and in-memory record stores."""

import sqlite3
from unittest.mock import patch

import pytest

from models import InMemoryRecordStore, RecordStoreError, SqliteRecordStore


class TestSqliteRecordStore:
    def test_missing_field_is_none(self, store):
        assert store.get("1", "price") is None

    def test_round_trip_types(self, store):
        store.set("1", "price", 425000)
        store.set("1", "city", "Dover")
        store.set("1", "meets_one_percent_rule", True)
        store.set("1", "price_history", [{"old_price": 1, "new_price": 2}])

        assert store.get("1", "price") == 425000
        assert store.get("1", "city") == "Dover"
        assert store.get("1", "meets_one_percent_rule") is True
        assert store.get("1", "price_history") == [{"old_price": 1, "new_price": 2}]

    def test_overwrite(self, store):
        store.set("1", "price", 1)
        store.set("1", "price", 2)
        assert store.get("1", "price") == 2

    def test_none_deletes(self, store):
        store.set("1", "street_suffix", "St")
        store.set("1", "street_suffix", None)
        assert store.get("1", "street_suffix") is None
        assert "street_suffix" not in store.get_fields("1")

    def test_listings_isolated(self, store):
        store.set("1", "price", 1)
        store.set(2, "price", 2)
        assert store.get("1", "price") == 1
        assert store.get("2", "price") == 2

    def test_meta_separate_from_fields(self, store):
        store.set_meta("1", "_address_hash", "abc")
        assert store.get_meta("1", "_address_hash") == "abc"
        assert store.get("1", "_address_hash") is None
        assert store.get_fields("1") == {}

    def test_set_fields_bulk(self, store):
        store.set_fields("1", {"price": 400000, "city": "Dover"})
        assert store.get_fields("1") == {"city": "Dover", "price": 400000}

    def test_init_db_idempotent(self, store):
        store.set("1", "price", 1)
        store.init_db()
        assert store.get("1", "price") == 1

    def test_corrupted_value_reads_as_none(self, store):
        conn = store._get_db()
        conn.execute(
            "INSERT INTO listing_fields (listing_id, field_name, value_json, updated_at) VALUES (?, ?, ?, ?)",
            ("1", "price", "{not json", "2024-01-01"),
        )
        conn.commit()
        conn.close()
        assert store.get("1", "price") is None

    def test_sqlite_errors_wrapped(self, store):
        with patch.object(store, "_get_db", side_effect=sqlite3.OperationalError("disk I/O error")):
            with pytest.raises(RecordStoreError):
                store.get("1", "price")
            with pytest.raises(RecordStoreError):
                store.set("1", "price", 1)

    def test_unwritable_path(self, tmp_path):
        s = SqliteRecordStore(str(tmp_path / "missing-dir" / "listings.db"))
        with pytest.raises(RecordStoreError):
            s.init_db()


class TestInMemoryRecordStore:
    def test_seeded_listing(self):
        s = InMemoryRecordStore({1: {"price": 5}})
        assert s.get("1", "price") == 5

    def test_none_deletes(self):
        s = InMemoryRecordStore({"1": {"price": 5}})
        s.set("1", "price", None)
        assert s.get("1", "price") is None
        assert "price" not in s.listings["1"]

    def test_meta(self):
        s = InMemoryRecordStore()
        s.set_meta("1", "_previous_price", 5)
        assert s.get_meta("1", "_previous_price") == 5
        assert s.get("1", "_previous_price") is None
