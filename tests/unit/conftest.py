"""Shared test fixtures."""

import sqlite3
from pathlib import Path

import pytest

from topic_watch.core.database.schema import create_schema


@pytest.fixture
def db() -> sqlite3.Connection:
    """Return an in-memory DB with the current schema."""
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    return conn


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Return a data directory with an initialized database file."""
    data = tmp_path / "data"
    data.mkdir()
    conn = sqlite3.connect(str(data / "topic-watch.db"))
    create_schema(conn)
    conn.close()
    return data
