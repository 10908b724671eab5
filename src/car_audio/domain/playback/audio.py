"""
Shared audio output resources.

There is exactly one audio element and one analysis context for the whole
app; file, radio and aux sources take turns feeding them. Sources register
their input node through SharedAudio.connect() and get a RouteHandle back;
disconnect() accepts only that handle, so a source ceding control can never
tear down a sibling's wiring.
"""

import asyncio
import itertools
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from loguru import logger

# Context states reported by the platform. "interrupted" is WebKit-only.
CONTEXT_SUSPENDED = "suspended"
CONTEXT_RUNNING = "running"
CONTEXT_INTERRUPTED = "interrupted"
CONTEXT_CLOSED = "closed"


class AudioElement(Protocol):
    """The single media element all sources play through."""

    src: Optional[str]
    paused: bool

    async def play(self) -> None: ...  # raises PlaybackRejected
    def pause(self) -> None: ...
    def remove_source(self) -> None: ...
    def load(self) -> None: ...


class AudioContext(Protocol):
    """Audio graph context shared with the spectrum analyzer."""

    state: str

    async def resume(self) -> None: ...
    def add_state_listener(self, callback: Callable[[str], None]) -> None: ...
    def create_media_stream_source(self, stream: Any) -> Any: ...
    def create_gain(self, gain: float) -> Any: ...


class SpectrumAnalyzer(Protocol):
    """Analyzer whose numeric output the visualizer reads each frame."""

    volume: float

    def connect_input(self, node: Any) -> None: ...
    def disconnect_input(self, node: Any) -> None: ...
    def start(self) -> None: ...


@dataclass(frozen=True)
class RouteHandle:
    """Capability returned by SharedAudio.connect(); the only key disconnect() accepts."""

    owner: str
    node: Any
    token: int


class SharedAudio:
    """Explicitly owned audio element + context + analyzer."""

    def __init__(
        self,
        element: AudioElement,
        context: AudioContext,
        analyzer: SpectrumAnalyzer,
    ):
        self.element = element
        self.context = context
        self.analyzer = analyzer
        self._routes: dict[int, RouteHandle] = {}
        self._tokens = itertools.count(1)

    def connect(self, owner: str, node: Any) -> RouteHandle:
        handle = RouteHandle(owner=owner, node=node, token=next(self._tokens))
        self.analyzer.connect_input(node)
        self._routes[handle.token] = handle
        logger.debug(f"Audio route {handle.token} connected for {owner}")
        return handle

    def disconnect(self, handle: RouteHandle) -> bool:
        """Remove one route. Returns False for a handle that is no longer registered."""
        registered = self._routes.get(handle.token)
        if registered is None or registered is not handle:
            logger.debug(f"Ignoring stale audio route handle {handle.token} ({handle.owner})")
            return False
        del self._routes[handle.token]
        self.analyzer.disconnect_input(handle.node)
        logger.debug(f"Audio route {handle.token} disconnected for {handle.owner}")
        return True

    @property
    def routes(self) -> list[RouteHandle]:
        return list(self._routes.values())

    def routes_for(self, owner: str) -> list[RouteHandle]:
        return [route for route in self._routes.values() if route.owner == owner]

    def unlock(self) -> Optional[asyncio.Task]:
        """Start resuming the context right now, inside the caller's stack.

        Platforms only honour a resume issued synchronously from a user
        gesture, so callers invoke this before their first await.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; skipping speculative audio unlock")
            return None
        logger.debug(f"Unlocking audio context (state={self.context.state})")
        return loop.create_task(self.context.resume())
