"""
Streaming session manager.

Owns the single active stream (HLS-demuxed or natively played) attached to
the shared audio element. A new load() always destroys the previous
session before attaching the next one, so two sessions never buffer or
emit audio at the same time.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Protocol

from loguru import logger

from .audio import (
    CONTEXT_INTERRUPTED,
    CONTEXT_RUNNING,
    CONTEXT_SUSPENDED,
    RouteHandle,
    SharedAudio,
)
from .exceptions import PlaybackRejected

MEDIA_ATTACHED = "mediaAttached"
ROUTE_OWNER = "stream"


class Demuxer(Protocol):
    """Client-side HLS demuxer bound to one stream."""

    def on(self, event: str, callback: Callable[..., None]) -> None: ...
    def load_source(self, url: str) -> None: ...
    def attach_media(self, element: Any) -> None: ...
    def destroy(self) -> None: ...


class SessionKind(str, Enum):
    DEMUXED = "demuxed"
    NATIVE = "native"
    NONE = "none"


class SessionState(str, Enum):
    IDLE = "idle"
    ATTACHING = "attaching"
    PLAYING = "playing"
    STOPPED = "stopped"


@dataclass(frozen=True)
class StreamingSession:
    """The stream currently attached to the audio element."""

    kind: SessionKind
    handle: Optional[Demuxer] = None
    source: Optional[str] = None
    generation: int = 0


NO_SESSION = StreamingSession(kind=SessionKind.NONE)


class StreamingSessionManager:
    """Lifecycle of exactly one stream on the shared audio element.

    Args:
        audio: Shared element/context/analyzer
        demuxer_factory: Builds a fresh demuxer per session
        demux_supported: Whether the platform can use the demuxer; when it
            can't, streams are handed to the element natively
        on_playing_changed: Called with the new is-playing flag
    """

    def __init__(
        self,
        audio: SharedAudio,
        demuxer_factory: Callable[[], Demuxer],
        demux_supported: Callable[[], bool] = lambda: True,
        on_playing_changed: Optional[Callable[[bool], None]] = None,
    ):
        self.audio = audio
        self.demuxer_factory = demuxer_factory
        self.demux_supported = demux_supported
        self.on_playing_changed = on_playing_changed

        self.session: StreamingSession = NO_SESSION
        self.state = SessionState.IDLE
        self.last_error: Optional[Exception] = None
        self.is_playing = False

        self._generation = 0
        self._route: Optional[RouteHandle] = None
        self._start_task: Optional[asyncio.Task] = None
        self._recovery_task: Optional[asyncio.Task] = None
        self._interrupted = False
        self._resume_after_interruption = False

        self.audio.context.add_state_listener(self._on_context_state)

    # === Public API ===

    def unlock_audio(self) -> Optional[asyncio.Task]:
        """Speculatively resume the context from a user-gesture call stack."""
        return self.audio.unlock()

    def load(self, source: str) -> StreamingSession:
        """Replace whatever is playing with source.

        The previous session is fully torn down before this returns control
        to the new one's attach step.
        """
        self.audio.unlock()
        self._teardown()

        self._generation += 1
        generation = self._generation
        self.last_error = None
        self._set_state(SessionState.ATTACHING)
        self._ensure_route()

        if self.demux_supported():
            demuxer = self.demuxer_factory()
            self.session = StreamingSession(
                kind=SessionKind.DEMUXED,
                handle=demuxer,
                source=source,
                generation=generation,
            )
            demuxer.on(MEDIA_ATTACHED, lambda *_: self._on_media_attached(generation))
            demuxer.load_source(source)
            demuxer.attach_media(self.audio.element)
            logger.info(f"Demuxed stream loading: {source}")
        else:
            self.session = StreamingSession(
                kind=SessionKind.NATIVE, source=source, generation=generation
            )
            self.audio.element.src = source
            logger.info(f"Native stream loading: {source}")
            self._schedule_start(generation)

        return self.session

    def unload(self) -> None:
        """Stop and detach the active stream. Safe to call with nothing loaded."""
        self._teardown()
        if self.state is not SessionState.STOPPED:
            self._set_state(SessionState.IDLE)

    async def wait_until_settled(self) -> SessionState:
        """Wait for any pending playback start to finish (or fail)."""
        while self._start_task is not None and not self._start_task.done():
            await asyncio.gather(self._start_task, return_exceptions=True)
        if self._recovery_task is not None and not self._recovery_task.done():
            await asyncio.gather(self._recovery_task, return_exceptions=True)
        return self.state

    @property
    def is_attached(self) -> bool:
        return self.session.kind is not SessionKind.NONE

    # === Internals ===

    def _teardown(self) -> None:
        if self._start_task is not None and not self._start_task.done():
            self._start_task.cancel()
        self._start_task = None

        previous = self.session
        self.session = NO_SESSION
        self._generation += 1

        if previous.kind is SessionKind.DEMUXED and previous.handle is not None:
            # destroy() drops buffers, listeners and the media source in one go
            previous.handle.destroy()
            self.audio.element.remove_source()
            self.audio.element.load()
            logger.debug(f"Destroyed demuxed session for {previous.source}")
        else:
            self.audio.element.pause()

        self._release_route()
        self._set_playing(False)

    def _ensure_route(self) -> None:
        if self._route is None:
            self._route = self.audio.connect(ROUTE_OWNER, self.audio.element)

    def _release_route(self) -> None:
        if self._route is not None:
            self.audio.disconnect(self._route)
            self._route = None

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and self.is_attached

    def _on_media_attached(self, generation: int) -> None:
        if not self._is_current(generation):
            logger.debug("Ignoring media-attached signal from a replaced session")
            return
        self._schedule_start(generation)

    def _schedule_start(self, generation: int) -> None:
        loop = asyncio.get_running_loop()
        self._start_task = loop.create_task(self._start_playback(generation))

    async def _start_playback(self, generation: int) -> None:
        await self.audio.context.resume()
        if not self._is_current(generation):
            return

        try:
            await self._play_with_retry(generation)
        except PlaybackRejected as e:
            if not self._is_current(generation):
                return
            logger.warning(
                f"Playback rejected (context state={self.audio.context.state}): {e}"
            )
            self.last_error = e
            self._set_playing(False)
            self._set_state(SessionState.STOPPED)
            return

        if not self._is_current(generation):
            return
        self.audio.analyzer.start()
        self._set_playing(True)
        self._set_state(SessionState.PLAYING)
        logger.info(f"Playing {self.session.source}")

    async def _play_with_retry(self, generation: int) -> None:
        try:
            await self.audio.element.play()
        except PlaybackRejected as e:
            logger.debug(f"play() rejected, resuming context and retrying once: {e}")
            await self.audio.context.resume()
            if not self._is_current(generation):
                return
            await self.audio.element.play()

    # === Power-management recovery ===

    def _on_context_state(self, state: str) -> None:
        logger.debug(f"Audio context state -> {state}")
        if state == CONTEXT_INTERRUPTED or (
            state == CONTEXT_SUSPENDED and not self._interrupted and self.is_playing
        ):
            if not self._interrupted:
                self._interrupted = True
                self._resume_after_interruption = self.is_playing
            return

        if self._interrupted and state in (CONTEXT_SUSPENDED, CONTEXT_RUNNING):
            self._interrupted = False
            should_resume = self._resume_after_interruption
            self._resume_after_interruption = False
            if should_resume and self.is_attached:
                try:
                    loop = asyncio.get_running_loop()
                except RuntimeError:
                    logger.warning("Audio context recovered without an event loop")
                    return
                self._recovery_task = loop.create_task(
                    self._recover(self._generation)
                )

    async def _recover(self, generation: int) -> None:
        logger.info("Audio context recovered from interruption, resuming playback")
        await self.audio.context.resume()
        if not self._is_current(generation):
            return
        try:
            if self.audio.element.paused:
                await self._play_with_retry(generation)
        except PlaybackRejected as e:
            logger.warning(f"Could not resume playback after interruption: {e}")
            self.last_error = e
            self._set_playing(False)
            self._set_state(SessionState.STOPPED)
            return
        if not self._is_current(generation):
            return
        self.audio.analyzer.start()
        self._set_playing(True)
        self._set_state(SessionState.PLAYING)

    def _set_state(self, state: SessionState) -> None:
        if state is not self.state:
            logger.debug(f"Session {self.state.value} -> {state.value}")
            self.state = state

    def _set_playing(self, playing: bool) -> None:
        if playing != self.is_playing:
            self.is_playing = playing
            if self.on_playing_changed:
                self.on_playing_changed(playing)
