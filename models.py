"""
SQLite record store for listing fields.

Lightweight key/value design: one row per (listing_id, field_name) with
the value JSON-encoded.  No ORM, just raw sqlite3.  A second table holds
auxiliary per-listing metadata (previous price, previous status, address
hash) that is not part of the visible field set.

The enrichment engine only ever calls get/set (and get_meta/set_meta);
any sqlite3 failure is re-raised as RecordStoreError, the one error
class that propagates out of enrich().
"""

import sqlite3
import os
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DB_PATH = os.environ.get("LISTINGS_DB_PATH", "listings.db")


class RecordStoreError(Exception):
    """The record store could not read or persist a value."""

    pass


class RecordStore:
    """Interface the enrichment engine needs from a listing store."""

    def get(self, listing_id, field_name: str) -> Any:
        raise NotImplementedError

    def set(self, listing_id, field_name: str, value: Any) -> None:
        raise NotImplementedError

    def get_meta(self, listing_id, key: str) -> Any:
        raise NotImplementedError

    def set_meta(self, listing_id, key: str, value: Any) -> None:
        raise NotImplementedError


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _encode(value: Any) -> str:
    return json.dumps(value, default=str)


def _decode(raw: Optional[str], listing_id, name: str) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        logger.error("Corrupted value for listing %s field %s: %s", listing_id, name, e)
        return None


class SqliteRecordStore(RecordStore):
    """Listing fields persisted in a local SQLite database (WAL mode)."""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or DB_PATH

    def _get_db(self):
        """Get a sqlite3 connection with WAL mode for concurrent reads."""
        conn = sqlite3.connect(self.db_path, timeout=10)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def init_db(self):
        """Create tables if they don't exist. Safe to call on every startup."""
        try:
            conn = self._get_db()
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS listing_fields (
                    listing_id  TEXT NOT NULL,
                    field_name  TEXT NOT NULL,
                    value_json  TEXT,
                    updated_at  TEXT NOT NULL,
                    PRIMARY KEY (listing_id, field_name)
                );

                CREATE TABLE IF NOT EXISTS listing_meta (
                    listing_id  TEXT NOT NULL,
                    meta_key    TEXT NOT NULL,
                    value_json  TEXT,
                    updated_at  TEXT NOT NULL,
                    PRIMARY KEY (listing_id, meta_key)
                );

                CREATE INDEX IF NOT EXISTS idx_fields_listing ON listing_fields(listing_id);
            """)
            conn.commit()
            conn.close()
        except sqlite3.Error as e:
            raise RecordStoreError(f"Could not initialise {self.db_path}: {e}") from e

    # ------------------------------------------------------------------
    # Fields
    # ------------------------------------------------------------------

    def get(self, listing_id, field_name: str) -> Any:
        return self._read("listing_fields", "field_name", listing_id, field_name)

    def set(self, listing_id, field_name: str, value: Any) -> None:
        self._write("listing_fields", "field_name", listing_id, field_name, value)

    def get_fields(self, listing_id) -> Dict[str, Any]:
        """All stored fields for a listing (inspection / debugging)."""
        try:
            conn = self._get_db()
            rows = conn.execute(
                "SELECT field_name, value_json FROM listing_fields WHERE listing_id = ? ORDER BY field_name",
                (str(listing_id),),
            ).fetchall()
            conn.close()
        except sqlite3.Error as e:
            raise RecordStoreError(f"Could not read listing {listing_id}: {e}") from e
        return {row["field_name"]: _decode(row["value_json"], listing_id, row["field_name"]) for row in rows}

    def set_fields(self, listing_id, values: Dict[str, Any]) -> None:
        """Write several raw fields in one transaction (imports, tests)."""
        now = _now()
        try:
            conn = self._get_db()
            conn.executemany(
                """INSERT OR REPLACE INTO listing_fields (listing_id, field_name, value_json, updated_at)
                   VALUES (?, ?, ?, ?)""",
                [(str(listing_id), name, _encode(value), now) for name, value in values.items()],
            )
            conn.commit()
            conn.close()
        except sqlite3.Error as e:
            raise RecordStoreError(f"Could not write listing {listing_id}: {e}") from e

    # ------------------------------------------------------------------
    # Auxiliary metadata
    # ------------------------------------------------------------------

    def get_meta(self, listing_id, key: str) -> Any:
        return self._read("listing_meta", "meta_key", listing_id, key)

    def set_meta(self, listing_id, key: str, value: Any) -> None:
        self._write("listing_meta", "meta_key", listing_id, key, value)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _read(self, table: str, key_col: str, listing_id, name: str) -> Any:
        try:
            conn = self._get_db()
            row = conn.execute(
                f"SELECT value_json FROM {table} WHERE listing_id = ? AND {key_col} = ?",
                (str(listing_id), name),
            ).fetchone()
            conn.close()
        except sqlite3.Error as e:
            raise RecordStoreError(f"Could not read {name} for listing {listing_id}: {e}") from e
        if not row:
            return None
        return _decode(row["value_json"], listing_id, name)

    def _write(self, table: str, key_col: str, listing_id, name: str, value: Any) -> None:
        try:
            conn = self._get_db()
            if value is None:
                conn.execute(
                    f"DELETE FROM {table} WHERE listing_id = ? AND {key_col} = ?",
                    (str(listing_id), name),
                )
            else:
                conn.execute(
                    f"""INSERT OR REPLACE INTO {table} (listing_id, {key_col}, value_json, updated_at)
                        VALUES (?, ?, ?, ?)""",
                    (str(listing_id), name, _encode(value), _now()),
                )
            conn.commit()
            conn.close()
        except sqlite3.Error as e:
            raise RecordStoreError(f"Could not write {name} for listing {listing_id}: {e}") from e


class InMemoryRecordStore(RecordStore):
    """Dict-backed store for callers that hold listings in memory."""

    def __init__(self, listings: Optional[Dict[Any, Dict[str, Any]]] = None):
        self.listings: Dict[str, Dict[str, Any]] = {
            str(k): dict(v) for k, v in (listings or {}).items()
        }
        self.meta: Dict[str, Dict[str, Any]] = {}

    def get(self, listing_id, field_name: str) -> Any:
        return self.listings.get(str(listing_id), {}).get(field_name)

    def set(self, listing_id, field_name: str, value: Any) -> None:
        fields = self.listings.setdefault(str(listing_id), {})
        if value is None:
            fields.pop(field_name, None)
        else:
            fields[field_name] = value

    def get_meta(self, listing_id, key: str) -> Any:
        return self.meta.get(str(listing_id), {}).get(key)

    def set_meta(self, listing_id, key: str, value: Any) -> None:
        self.meta.setdefault(str(listing_id), {})[key] = value
