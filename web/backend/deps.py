from functools import lru_cache

from car_audio.core.config import Config, load_config
from car_audio.domain.radio.auth import AuthRelay
from car_audio.domain.radio.playlist import PlaylistResolver


@lru_cache
def get_config() -> Config:
    """FastAPI dependency for configuration."""
    return load_config()


@lru_cache
def get_auth_relay() -> AuthRelay:
    """FastAPI dependency for the shared relay (one requests.Session per process)."""
    return AuthRelay(get_config().relay)


def get_playlist_resolver() -> PlaylistResolver:
    """FastAPI dependency for the playlist resolver bound to the shared relay."""
    return PlaylistResolver(get_auth_relay())
