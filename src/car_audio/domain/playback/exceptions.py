"""Playback-specific exceptions for error handling."""


class PlaybackError(Exception):
    """Base exception for audio output operations."""

    pass


class PlaybackRejected(PlaybackError):
    """Raised when the audio element refuses to start (autoplay policy, suspended context)."""

    pass


class PermissionDenied(PlaybackError):
    """Raised when the user declines microphone, screen-share or file access."""

    pass
