"""Radio-specific exceptions for error handling."""

from typing import Optional


class RadioError(Exception):
    """Base exception for radio operations."""

    pass


class UpstreamError(RadioError):
    """Raised when an origin, streaming tier or relay leg returns a non-success status."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message if status is None else f"{message} (status {status})")


class BadResponse(RadioError):
    """Raised when an upstream response is missing an expected field."""

    pass


class NotFound(RadioError):
    """Raised when the requested playable resource does not exist."""

    pass


class PlaylistNotFound(NotFound):
    """Raised when a master playlist contains no bitrate variant."""

    pass


class StationNotFound(NotFound):
    """Raised when a target station is missing from the tunable list."""

    pass
