"""Shared fixtures for domain and core tests."""

from pathlib import Path
from typing import Callable

import pytest

from car_audio.core.database import StateStore, get_db_connection


@pytest.fixture
def anyio_backend():
    # Tuning and streaming run on asyncio tasks
    return "asyncio"


@pytest.fixture
def state_store(tmp_path: Path) -> StateStore:
    """StateStore backed by a throwaway SQLite file."""
    return StateStore(tmp_path / "state.db")


@pytest.fixture
def write_raw_state(state_store: StateStore) -> Callable[[str, str], None]:
    """Write a kv_state row verbatim, bypassing JSON encoding."""

    def write(key: str, raw: str) -> None:
        with get_db_connection(state_store.db_path) as conn:
            conn.execute(
                "INSERT OR REPLACE INTO kv_state (key, value) VALUES (?, ?)",
                (key, raw),
            )
            conn.commit()

    return write
