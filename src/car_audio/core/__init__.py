"""Core infrastructure layer - no business logic dependencies.

This module provides foundation-level services:
- Configuration management (TOML)
- Logging (loguru)
- Persisted client state (SQLite)

Clean architecture principle: The core layer has no dependencies on
domain or application layers.
"""

from .config import (
    Config,
    LoggingConfig,
    RelayConfig,
    ServerConfig,
    StorageConfig,
    TuningConfig,
    create_default_config,
    ensure_directories,
    get_config_dir,
    get_config_path,
    get_data_dir,
    load_config,
)
from .database import (
    StateStore,
    get_database_path,
    get_db_connection,
    init_database,
    open_state_store,
)
from .logging import get_log_file_path, setup_logging

__all__ = [
    # Config
    "Config",
    "LoggingConfig",
    "RelayConfig",
    "ServerConfig",
    "StorageConfig",
    "TuningConfig",
    "create_default_config",
    "ensure_directories",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "load_config",
    # Database
    "StateStore",
    "get_database_path",
    "get_db_connection",
    "init_database",
    "open_state_store",
    # Logging
    "get_log_file_path",
    "setup_logging",
]
