"""Shared test fixtures and configuration.

Sets environment variables before any src imports so settings are
predictable, and provides common fixtures like a temp snapshot DB.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("DATABASE_PATH", "data/test-contextflow.db")
os.environ.setdefault("TIMEZONE", "UTC")
os.environ.setdefault("NEGLECT_HOURS", "48")
os.environ.setdefault("STALE_TASK_HOURS", "24")
os.environ.setdefault("FORGOTTEN_REFINE_HOURS", "168")

from datetime import timezone

import pytest

from helpers import NOW


@pytest.fixture
def utc():
    return timezone.utc


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_contextflow.db")


@pytest.fixture
def snapshot_db(tmp_db_path):
    """Return a SnapshotDB instance backed by a temp file."""
    from src.data.db import SnapshotDB
    return SnapshotDB(db_path=tmp_db_path, storage_key="test_slot")


@pytest.fixture
def seed_snapshot():
    from src.data.seed import build_seed_snapshot
    return build_seed_snapshot(NOW)


@pytest.fixture
def store(snapshot_db, seed_snapshot):
    """Return a Store over the seed snapshot, persisting to a temp DB."""
    from src.core.store import Store
    return Store(snapshot_db, snapshot=seed_snapshot, tz=timezone.utc)
