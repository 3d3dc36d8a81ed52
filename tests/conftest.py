"""Shared test fixtures and configuration.

Points the data directory at a temp dir before any kaffa imports and
provides a fresh SQLite file per test, an API client and an entry factory.
"""

import os
import tempfile

# Patch env vars BEFORE any kaffa imports
os.environ.setdefault("KAFFA_DATA_DIR", tempfile.mkdtemp(prefix="kaffa-tests-"))
os.environ["KAFFA_API_KEY"] = ""
os.environ["TZ"] = "Europe/London"

from datetime import datetime

import pytest

from kaffa import config
from kaffa.core.entries import CoffeeEntry, date_key


@pytest.fixture
def db(tmp_path, monkeypatch):
    """Fresh database file for one test."""
    from kaffa.core import database

    monkeypatch.setattr(config, "DB_PATH", tmp_path / "kaffa.db")
    database.init_db()
    return database


@pytest.fixture
def client(db):
    from fastapi.testclient import TestClient

    from kaffa.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_entry():
    """Build a CoffeeEntry directly, bypassing validation."""
    counter = iter(range(1, 10_000))

    def _make(
        consumed_at: datetime,
        caffeine_mg: float = 75.0,
        effective_caffeine_mg=None,
        milk_type: str = "No Milk",
        drink_type: str = "Espresso",
        volume_ml: float = 30.0,
    ) -> CoffeeEntry:
        return CoffeeEntry(
            id=f"test-{next(counter):04d}",
            drink_type=drink_type,
            volume_ml=volume_ml,
            caffeine_mg=caffeine_mg,
            effective_caffeine_mg=(
                caffeine_mg if effective_caffeine_mg is None else effective_caffeine_mg
            ),
            consumed_at=consumed_at,
            milk_type=milk_type,
            date_key=date_key(consumed_at),
        )

    return _make
