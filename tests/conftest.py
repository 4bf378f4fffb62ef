"""Shared fixtures: one open store per engine, closed after each test."""

from collections.abc import Iterator
from pathlib import Path

import pytest

from bucket_shell.store import MemoryStore, SqliteStore, Store

ENGINES = ["memory", "sqlite"]


@pytest.fixture(params=ENGINES)
def store(request: pytest.FixtureRequest, tmp_path: Path) -> Iterator[Store]:
    """Return an empty store of each engine in turn."""
    opened: Store = MemoryStore() if request.param == "memory" else SqliteStore.open(tmp_path / "store.db")
    yield opened
    opened.close()
