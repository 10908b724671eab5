"""
Playback domain module.

Shared audio output, the streaming session manager and aux capture.
"""

from .audio import RouteHandle, SharedAudio
from .aux import AuxCaptureConnector
from .exceptions import PermissionDenied, PlaybackError, PlaybackRejected
from .session import (
    MEDIA_ATTACHED,
    SessionKind,
    SessionState,
    StreamingSession,
    StreamingSessionManager,
)

__all__ = [
    "RouteHandle",
    "SharedAudio",
    "AuxCaptureConnector",
    "PermissionDenied",
    "PlaybackError",
    "PlaybackRejected",
    "MEDIA_ATTACHED",
    "SessionKind",
    "SessionState",
    "StreamingSession",
    "StreamingSessionManager",
]
