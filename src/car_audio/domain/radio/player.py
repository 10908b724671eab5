"""
Radio player controller.

Ties source-mode switching, station selection, tuning and presets to the
streaming session manager. Every user-triggered selection resumes the audio
context before its first await, and a selection that loses a race with a
newer one is dropped instead of committed.
"""

from enum import Enum
from typing import Awaitable, Callable, Optional, Sequence

from loguru import logger

from car_audio.core.config import Config
from car_audio.core.database import StateStore
from car_audio.domain.playback.aux import (
    CAPTURE_MICROPHONE,
    AuxCaptureConnector,
    MediaDevices,
    MediaStream,
)
from car_audio.domain.playback.exceptions import PlaybackError
from car_audio.domain.playback.session import StreamingSessionManager

from .exceptions import NotFound, RadioError, StationNotFound
from .history import RecentStations
from .models import Band, ChannelPreset, Network, StationDescriptor, TunableEntry
from .presets import ChannelPresetStore
from .tuning import DEFAULT_INTERVAL_SECONDS, TuningEngine, preset_target


class SourceMode(str, Enum):
    OFF = "off"
    FILE = "file"
    RADIO = "radio"
    AUX = "aux"


StreamResolver = Callable[[str], Awaitable[str]]


class RadioPlayer:
    """One per app: owns the current station, the tuner and the source mode."""

    def __init__(
        self,
        session: StreamingSessionManager,
        resolve_stream: StreamResolver,
        history: Optional[RecentStations] = None,
        presets: Optional[ChannelPresetStore] = None,
        aux: Optional[AuxCaptureConnector] = None,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        on_display: Optional[Callable[[Optional[float]], None]] = None,
    ):
        self.session = session
        self.resolve_stream = resolve_stream
        self.history = history
        self.presets = presets
        self.aux = aux
        self.on_display = on_display

        self.mode = SourceMode.OFF
        self.entries: list[TunableEntry] = []
        self.current_station: Optional[StationDescriptor] = (
            history.last_station() if history else None
        )
        self.display_freq: Optional[float] = None
        self.last_error: Optional[Exception] = None
        self._selection = 0

        self.tuner = TuningEngine(
            commit=self.select_station,
            on_display=self._on_display,
            before_tune=self.session.unload,
            interval=interval,
        )

    def _on_display(self, freq: Optional[float]) -> None:
        self.display_freq = freq
        if self.on_display:
            self.on_display(freq)

    def set_entries(self, entries: Sequence[TunableEntry]) -> None:
        """Replace the tunable list (recomputed whenever a directory changes)."""
        self.entries = list(entries)

    def set_presets(self, presets: ChannelPresetStore) -> None:
        self.presets = presets

    @property
    def is_playing(self) -> bool:
        return self.session.is_playing

    # === Source mode ===

    def set_source(self, mode: SourceMode) -> None:
        """Switch between off/file/radio/aux.

        Leaving radio cancels tuning and any in-flight selection and
        releases the stream; leaving aux disconnects only the aux route.
        """
        if mode is self.mode:
            return

        if self.mode is SourceMode.AUX and self.aux is not None:
            self.aux.disconnect()

        if mode is not SourceMode.RADIO:
            self.tuner.cancel()
            self._selection += 1
            self.session.unload()

        logger.info(f"Source {self.mode.value} -> {mode.value}")
        self.mode = mode

    def _enter_radio(self) -> None:
        if self.mode is not SourceMode.RADIO:
            self.set_source(SourceMode.RADIO)

    async def capture_aux(
        self,
        devices: MediaDevices,
        kind: str = CAPTURE_MICROPHONE,
        device_id: Optional[str] = None,
    ) -> MediaStream:
        """Switch to aux and route a capture stream into the analyzer.

        The radio stream is unloaded before the capture route is added, so
        the analyzer never has two sources.

        Raises:
            PlaybackError: If no aux connector is configured
            PermissionDenied: If the user declines the capture
        """
        if self.aux is None:
            raise PlaybackError("Aux capture is not available")
        self.session.unlock_audio()
        self.set_source(SourceMode.AUX)
        return await self.aux.capture(devices, kind, device_id)

    # === Selection ===

    async def select_station(self, station: StationDescriptor) -> bool:
        """Make station current and start streaming it.

        Returns False when the selection was superseded or failed. On
        NotFound the previous session is left as it was.
        """
        self.session.unlock_audio()
        self.tuner.cancel()
        self._enter_radio()

        self._selection += 1
        ticket = self._selection

        if station.network is Network.COMMERCIAL:
            try:
                uri = await self.resolve_stream(station.id)
            except NotFound as e:
                logger.warning(f"No playable stream for {station.name}: {e}")
                self.last_error = e
                return False
            except RadioError as e:
                if ticket != self._selection:
                    return False
                logger.error(f"Could not resolve {station.name}: {e}")
                self.last_error = e
                self.session.unload()
                return False
            if ticket != self._selection:
                logger.debug(f"Dropping stale selection of {station.name}")
                return False
        else:
            uri = station.url

        self.last_error = None
        self.current_station = station
        self.session.load(uri)
        if self.history is not None:
            self.history.record(station)
        return True

    async def play_radio(self) -> bool:
        """Reload and play the current station after a stop."""
        if self.current_station is None:
            return False
        return await self.select_station(self.current_station)

    def stop_radio(self) -> None:
        self.tuner.cancel()
        self._selection += 1
        self.session.unload()

    def tune(self, direction: int) -> bool:
        """Step to the next (+1) or previous (-1) station of the current band."""
        if self.mode is not SourceMode.RADIO:
            return False
        self.session.unlock_audio()
        # A pending resolution must not land after the dial moved on
        self._selection += 1
        band = self.current_station.band if self.current_station else Band.FM
        job = self.tuner.tune(self.current_station, direction, self.entries, band)
        return job is not None

    # === Presets ===

    def assign_preset(self, slot: int) -> ChannelPreset:
        if self.presets is None:
            raise RadioError("Presets are not available until the region is known")
        if self.current_station is None:
            raise StationNotFound("No station selected to assign")
        return self.presets.assign(slot, self.current_station)

    async def select_preset_slot(self, slot: int, band: Optional[Band] = None) -> bool:
        """Jump to a preset, bypassing the tuning animation.

        An empty slot falls back to the station nearest the band's default
        frequency.

        Raises:
            StationNotFound: If the band has nothing to select
        """
        self.session.unlock_audio()
        if band is None:
            band = self.current_station.band if self.current_station else Band.FM
        preset = self.presets.get(band, slot) if self.presets is not None else None
        target = preset_target(preset, self.entries, band)
        if target is None:
            raise StationNotFound(f"No {band.value} station for preset {slot}")
        return await self.select_station(target)


def build_radio_player(
    config: Config,
    session: StreamingSessionManager,
    resolve_stream: StreamResolver,
    store: StateStore,
    region: Optional[str] = None,
    aux: Optional[AuxCaptureConnector] = None,
    on_display: Optional[Callable[[Optional[float]], None]] = None,
) -> RadioPlayer:
    """Create the app's player with tuning and history settings from config.

    Presets are attached once the region is known (here or via set_presets).
    """
    return RadioPlayer(
        session,
        resolve_stream,
        history=RecentStations(store, limit=config.tuning.history_size),
        presets=ChannelPresetStore(store, region) if region else None,
        aux=aux,
        interval=config.tuning.interval_ms / 1000,
        on_display=on_display,
    )
