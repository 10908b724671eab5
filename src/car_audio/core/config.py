"""
Configuration management for car-audio
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from loguru import logger


@dataclass
class RelayConfig:
    """Configuration for the commercial-network auth relay."""

    origin_base: str = "https://radiko.jp"
    playlist_base: str = "https://si-f-radiko.smartstream.ne.jp/so/playlist.m3u8"
    # Public, fixed key shipped with the network's HTML5 player
    auth_key: str = "bcd151073c03b352e1ef2fd66c32209da9ca0afa"
    app_name: str = "pc_html5"
    app_version: str = "0.0.1"
    device: str = "pc"
    user: str = "dummy_user"
    lsid: str = "11cbd3124cef9e8004f9b5e9f77b66"
    default_region: str = "JP13"
    # Shorter than the upstream token lifetime to force proactive renewal
    token_ttl_seconds: int = 480
    request_timeout: float = 10.0


@dataclass
class TuningConfig:
    """Configuration for the tuning animation and station history."""

    interval_ms: int = 100
    history_size: int = 20


@dataclass
class ServerConfig:
    """Configuration for the FastAPI relay server."""

    host: str = "127.0.0.1"
    port: int = 8642
    allowed_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:5173"]
    )
    frequencies_dir: Optional[str] = None
    relay_url: str = "http://127.0.0.1:8642"


@dataclass
class StorageConfig:
    """Configuration for persisted client state."""

    database_path: Optional[str] = None  # default: <data dir>/car-audio.db


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = (
        None  # Custom log file path (default: ~/.local/share/car-audio/car-audio.log)
    )
    max_file_size_mb: int = 10  # Maximum log file size before rotation
    backup_count: int = 5  # Number of backup files to keep
    console_output: bool = False  # Also output to console (for debugging)

    def validate(self) -> None:
        """Validate logging configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        valid_levels = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
        if self.level.upper() not in valid_levels:
            raise ValueError(
                f"Invalid log level: {self.level}. Valid levels are: {sorted(valid_levels)}"
            )


@dataclass
class Config:
    """Main configuration object."""

    relay: RelayConfig = field(default_factory=RelayConfig)
    tuning: TuningConfig = field(default_factory=TuningConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "car-audio"
    return Path.home() / ".config" / "car-audio"


def _find_project_config() -> Optional[Path]:
    """Find config.toml in project root by looking for pyproject.toml.

    Used during development so the project's config file is picked up
    even when the server is started from another working directory.

    Returns:
        Path to config.toml in project root, or None if not found
    """
    current = Path(__file__).resolve().parent
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            config_path = parent / "config.toml"
            if config_path.exists():
                return config_path
            return None
    return None


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks for config.toml in the following order:
    1. CAR_AUDIO_CONFIG environment variable
    2. Project root (detected via pyproject.toml) - for development
    3. Current working directory
    4. XDG_CONFIG_HOME/car-audio (or ~/.config/car-audio)
    """
    explicit = os.environ.get("CAR_AUDIO_CONFIG")
    if explicit:
        return Path(explicit).expanduser()

    project_config = _find_project_config()
    if project_config:
        return project_config

    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config

    return get_config_dir() / "config.toml"


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "car-audio"
    return Path.home() / ".local" / "share" / "car-audio"


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return """
# car-audio Configuration

[relay]
# Origin of the commercial radio network
origin_base = "https://radiko.jp"

# Streaming tier serving the per-station master playlists
playlist_base = "https://si-f-radiko.smartstream.ne.jp/so/playlist.m3u8"

# Region used when the auth origin's area response cannot be parsed
default_region = "JP13"

# Seconds a playback token is treated as fresh (upstream expiry is longer)
token_ttl_seconds = 480

# Timeout for each upstream request in seconds
request_timeout = 10.0

[tuning]
# Tuning animation tick in milliseconds
interval_ms = 100

# Number of recently played stations to remember
history_size = 20

[server]
host = "127.0.0.1"
port = 8642

# Origins allowed by CORS
allowed_origins = ["http://localhost:5173"]

# Directory holding <region>.json frequency directories
# frequencies_dir = "~/car-audio/frequencies"

# Base URL clients use to reach this relay
relay_url = "http://127.0.0.1:8642"

[storage]
# SQLite file for presets, history and hotkeys (default: data dir)
# database_path = "~/.local/share/car-audio/car-audio.db"

[logging]
# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
level = "INFO"

# Custom log file path (default: ~/.local/share/car-audio/car-audio.log)
# log_file = "/path/to/custom/car-audio.log"

# Maximum log file size in MB before rotation
max_file_size_mb = 10

# Number of backup log files to keep
backup_count = 5

# Also output logs to console (useful for debugging)
console_output = false
""".strip()


def _parse_relay(data: dict, default: RelayConfig) -> RelayConfig:
    return RelayConfig(
        origin_base=data.get("origin_base", default.origin_base).rstrip("/"),
        playlist_base=data.get("playlist_base", default.playlist_base),
        auth_key=data.get("auth_key", default.auth_key),
        app_name=data.get("app_name", default.app_name),
        app_version=data.get("app_version", default.app_version),
        device=data.get("device", default.device),
        user=data.get("user", default.user),
        lsid=data.get("lsid", default.lsid),
        default_region=data.get("default_region", default.default_region),
        token_ttl_seconds=int(
            data.get("token_ttl_seconds", default.token_ttl_seconds)
        ),
        request_timeout=float(data.get("request_timeout", default.request_timeout)),
    )


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file or create default.

    Environment variables override TOML values:
    - CAR_AUDIO_ORIGIN_BASE
    - ALLOWED_ORIGINS (comma separated)
    """
    from dotenv import load_dotenv

    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config_path = config_path or get_config_path()

    if not config_path.exists():
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(config_path, "w", encoding="utf-8") as f:
                f.write(create_default_config())
            logger.info(f"Created default configuration at: {config_path}")
        except OSError as e:
            logger.warning(f"Could not write default configuration to {config_path}: {e}")
        config = Config()
        _apply_env_overrides(config)
        return config

    try:
        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Error loading configuration from {config_path}: {e}")
        logger.warning("Using default configuration.")
        config = Config()
        _apply_env_overrides(config)
        return config

    config = Config()

    if "relay" in toml_data:
        try:
            config.relay = _parse_relay(toml_data["relay"], config.relay)
        except (TypeError, ValueError) as e:
            logger.warning(f"Invalid [relay] configuration, using defaults: {e}")

    if "tuning" in toml_data:
        tuning_data = toml_data["tuning"]
        config.tuning = TuningConfig(
            interval_ms=tuning_data.get("interval_ms", config.tuning.interval_ms),
            history_size=tuning_data.get("history_size", config.tuning.history_size),
        )

    if "server" in toml_data:
        server_data = toml_data["server"]
        frequencies_dir = server_data.get("frequencies_dir")
        if frequencies_dir:
            frequencies_dir = str(Path(frequencies_dir).expanduser())
        config.server = ServerConfig(
            host=server_data.get("host", config.server.host),
            port=server_data.get("port", config.server.port),
            allowed_origins=server_data.get(
                "allowed_origins", config.server.allowed_origins
            ),
            frequencies_dir=frequencies_dir,
            relay_url=server_data.get("relay_url", config.server.relay_url),
        )

    if "storage" in toml_data:
        database_path = toml_data["storage"].get("database_path")
        if database_path:
            database_path = str(Path(database_path).expanduser())
        config.storage = StorageConfig(database_path=database_path)

    if "logging" in toml_data:
        logging_data = toml_data["logging"]
        log_file = logging_data.get("log_file")
        if log_file:
            log_file = str(Path(log_file).expanduser())
        config.logging = LoggingConfig(
            level=logging_data.get("level", config.logging.level).upper(),
            log_file=log_file,
            max_file_size_mb=logging_data.get(
                "max_file_size_mb", config.logging.max_file_size_mb
            ),
            backup_count=logging_data.get(
                "backup_count", config.logging.backup_count
            ),
            console_output=logging_data.get(
                "console_output", config.logging.console_output
            ),
        )
        try:
            config.logging.validate()
        except ValueError as e:
            logger.warning(f"Invalid logging configuration: {e}")
            logger.warning("Using default logging configuration.")
            config.logging = LoggingConfig()

    _apply_env_overrides(config)
    return config


def _apply_env_overrides(config: Config) -> None:
    origin_base = os.environ.get("CAR_AUDIO_ORIGIN_BASE")
    if origin_base:
        config.relay.origin_base = origin_base.rstrip("/")

    allowed_origins = os.environ.get("ALLOWED_ORIGINS")
    if allowed_origins:
        config.server.allowed_origins = [
            origin.strip() for origin in allowed_origins.split(",") if origin.strip()
        ]


def ensure_directories() -> None:
    """Ensure all necessary directories exist."""
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_data_dir().mkdir(parents=True, exist_ok=True)
