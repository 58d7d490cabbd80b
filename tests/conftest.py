"""Shared fixtures for the listing enrichment test suite.

Provides a SQLite record store on a temporary database, a fixed clock,
and a geocoding resolver whose providers never touch the network.
"""

import atexit
import os
import tempfile
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

# Point the DB at a temp file BEFORE importing models (it reads DB_PATH at import time)
_test_db_fd, _test_db_path = tempfile.mkstemp(suffix=".db")
os.close(_test_db_fd)  # close the fd immediately; sqlite3 opens its own handle
os.environ["LISTINGS_DB_PATH"] = _test_db_path
atexit.register(lambda: os.unlink(_test_db_path) if os.path.exists(_test_db_path) else None)

# Provider keys must never leak in from the developer's shell.
os.environ.pop("GOOGLE_MAPS_API_KEY", None)
os.environ.pop("OPENCAGE_API_KEY", None)

from models import SqliteRecordStore  # noqa: E402
from geocoding import GeocodeAccuracy, GeocodeResult, GeocodeSource, GeocodingResolver  # noqa: E402

FIXED_NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def store():
    """Empty SqliteRecordStore on the shared temp database."""
    s = SqliteRecordStore(_test_db_path)
    s.init_db()
    conn = s._get_db()
    for table in ("listing_fields", "listing_meta"):
        conn.execute(f"DELETE FROM {table}")
    conn.commit()
    conn.close()
    yield s


@pytest.fixture()
def clock():
    return lambda: FIXED_NOW


def make_provider(name="nominatim", result=None, error=None):
    """A provider stub whose geocode() returns `result` or raises `error`."""
    provider = MagicMock()
    provider.name = name
    if error is not None:
        provider.geocode.side_effect = error
    else:
        provider.geocode.return_value = result
    return provider


def dover_result(source=GeocodeSource.NOMINATIM, county="Kent"):
    return GeocodeResult(
        latitude=39.158168,
        longitude=-75.524368,
        accuracy=GeocodeAccuracy.APPROXIMATE,
        source=source,
        county=county,
    )


@pytest.fixture()
def offline_resolver():
    """Resolver with one stub provider that always returns a Dover, DE point."""
    return GeocodingResolver([make_provider(result=dover_result())])
