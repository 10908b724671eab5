"""
SQLite key/value persistence for client state (presets, history, hotkeys)
"""

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

from loguru import logger

from .config import Config, StorageConfig, get_data_dir

# Database schema version for migrations
SCHEMA_VERSION = 1


def get_database_path(storage: Optional[StorageConfig] = None) -> Path:
    """Get the path to the SQLite database file.

    Uses storage.database_path when configured, else <data dir>/car-audio.db.
    """
    if storage and storage.database_path:
        return Path(storage.database_path).expanduser()
    return get_data_dir() / "car-audio.db"


@contextmanager
def get_db_connection(db_path: Optional[Path] = None) -> Iterator[sqlite3.Connection]:
    """Get a database connection with proper cleanup."""
    db_path = db_path or get_database_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, timeout=30.0)
    conn.row_factory = sqlite3.Row  # Enable dict-like access

    try:
        yield conn
    finally:
        conn.close()


def init_database(db_path: Optional[Path] = None) -> None:
    """Create tables and record the schema version."""
    with get_db_connection(db_path) as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS kv_state (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        row = conn.execute("SELECT MAX(version) AS version FROM schema_version").fetchone()
        if row["version"] is None:
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
            )
        conn.commit()


class StateStore:
    """JSON-valued key/value store backed by the kv_state table.

    Values that fail to decode are reported as absent so that a corrupt
    entry never blocks startup.
    """

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path or get_database_path()
        init_database(self.db_path)

    def get(self, key: str, default: Any = None) -> Any:
        with get_db_connection(self.db_path) as conn:
            row = conn.execute(
                "SELECT value FROM kv_state WHERE key = ?", (key,)
            ).fetchone()

        if row is None:
            return default

        try:
            return json.loads(row["value"])
        except (TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed persisted value for '{key}': {e}")
            return default

    def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value, ensure_ascii=False)
        with get_db_connection(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO kv_state (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (key, payload),
            )
            conn.commit()

    def delete(self, key: str) -> None:
        with get_db_connection(self.db_path) as conn:
            conn.execute("DELETE FROM kv_state WHERE key = ?", (key,))
            conn.commit()


def open_state_store(config: Config) -> StateStore:
    """Open the state store at the configured database path."""
    db_path = get_database_path(config.storage)
    logger.debug(f"Opening state store at {db_path}")
    return StateStore(db_path)
