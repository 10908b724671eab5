"""Auxiliary capture input (microphone or screen audio)."""

from typing import Any, Optional, Protocol

from loguru import logger

from .audio import RouteHandle, SharedAudio
from .exceptions import PermissionDenied

ROUTE_OWNER = "aux"
CAPTURE_GAIN = 3.0

CAPTURE_MICROPHONE = "microphone"
CAPTURE_SCREEN = "screen"


class MediaStream(Protocol):
    def stop_tracks(self) -> None: ...


class MediaDevices(Protocol):
    async def get_user_media(self, constraints: dict) -> MediaStream: ...
    async def get_display_media(self, constraints: dict) -> MediaStream: ...


def display_media_constraints() -> dict:
    """Screen-share capture with all voice processing off."""
    return {
        "audio": {
            "echoCancellation": False,
            "noiseSuppression": False,
            "autoGainControl": False,
        },
        "video": {"displaySurface": "monitor"},
    }


def user_media_constraints(device_id: Optional[str] = None) -> dict:
    """Microphone/line-in capture, optionally pinned to one device."""
    if device_id is None:
        return {"audio": True, "video": False}
    return {
        "audio": {
            "deviceId": {"exact": device_id},
            "echoCancellation": False,
            "noiseSuppression": False,
            "autoGainControl": False,
        },
        "video": False,
    }


def input_device_label(label: str, index: int) -> str:
    return label or f"Audio Input {index + 1}"


class AuxCaptureConnector:
    """Routes a captured stream into the analyzer.

    Only ever removes the route it registered itself.
    """

    def __init__(self, audio: SharedAudio):
        self.audio = audio
        self.stream: Optional[MediaStream] = None
        self._route: Optional[RouteHandle] = None
        self._previous_volume: Optional[float] = None

    @property
    def is_connected(self) -> bool:
        return self._route is not None

    async def capture(
        self,
        devices: MediaDevices,
        kind: str = CAPTURE_MICROPHONE,
        device_id: Optional[str] = None,
    ) -> MediaStream:
        """Ask the platform for a capture stream and connect it.

        Raises:
            PermissionDenied: If the user declines; never retried
        """
        try:
            if kind == CAPTURE_SCREEN:
                stream = await devices.get_display_media(display_media_constraints())
            else:
                stream = await devices.get_user_media(user_media_constraints(device_id))
        except PermissionError as e:
            logger.warning(f"{kind} capture declined: {e}")
            raise PermissionDenied(f"{kind} capture was declined") from e

        self.connect(stream)
        return stream

    def connect(self, stream: MediaStream) -> RouteHandle:
        self._stop_stream()
        self._release_route()

        context = self.audio.context
        source = context.create_media_stream_source(stream)
        gain = context.create_gain(CAPTURE_GAIN)
        source.connect(gain)

        # Monitor only; captured audio must not be played back out loud
        if self._previous_volume is None:
            self._previous_volume = self.audio.analyzer.volume
        self.audio.analyzer.volume = 0
        self._route = self.audio.connect(ROUTE_OWNER, gain)
        self.audio.analyzer.start()
        self.stream = stream
        logger.info("Aux capture connected")
        return self._route

    def disconnect(self) -> None:
        self._stop_stream()
        self._release_route()
        if self._previous_volume is not None:
            self.audio.analyzer.volume = self._previous_volume
            self._previous_volume = None
        self.stream = None

    def _stop_stream(self) -> None:
        if self.stream is not None:
            self.stream.stop_tracks()

    def _release_route(self) -> None:
        if self._route is not None:
            self.audio.disconnect(self._route)
            self._route = None
            logger.debug("Aux capture route released")
