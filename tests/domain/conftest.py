"""In-memory stand-ins for the platform audio objects."""

from typing import Any, Callable, Optional

import pytest

from car_audio.domain.playback.audio import CONTEXT_RUNNING, CONTEXT_SUSPENDED, SharedAudio
from car_audio.domain.playback.exceptions import PlaybackRejected
from car_audio.domain.playback.session import MEDIA_ATTACHED, StreamingSessionManager


class FakeElement:
    def __init__(self):
        self.src: Optional[str] = None
        self.paused = True
        self.reject_plays = 0
        self.play_calls = 0
        self.attached: list["FakeDemuxer"] = []

    async def play(self) -> None:
        self.play_calls += 1
        if self.reject_plays > 0:
            self.reject_plays -= 1
            raise PlaybackRejected("NotAllowedError")
        self.paused = False

    def pause(self) -> None:
        self.paused = True

    def remove_source(self) -> None:
        self.src = None

    def load(self) -> None:
        self.paused = True


class FakeContext:
    def __init__(self, state: str = CONTEXT_SUSPENDED):
        self.state = state
        self.resume_calls = 0
        self.listeners: list[Callable[[str], None]] = []

    async def resume(self) -> None:
        self.resume_calls += 1
        self.state = CONTEXT_RUNNING

    def add_state_listener(self, callback: Callable[[str], None]) -> None:
        self.listeners.append(callback)

    def emit(self, state: str) -> None:
        self.state = state
        for listener in list(self.listeners):
            listener(state)

    def create_media_stream_source(self, stream: Any) -> "FakeNode":
        return FakeNode("source", stream)

    def create_gain(self, gain: float) -> "FakeNode":
        return FakeNode("gain", gain)


class FakeNode:
    def __init__(self, kind: str, value: Any):
        self.kind = kind
        self.value = value
        self.outputs: list["FakeNode"] = []

    def connect(self, node: "FakeNode") -> None:
        self.outputs.append(node)


class FakeAnalyzer:
    def __init__(self):
        self.volume = 1.0
        self.inputs: list[Any] = []
        self.started = 0

    def connect_input(self, node: Any) -> None:
        self.inputs.append(node)

    def disconnect_input(self, node: Any) -> None:
        self.inputs.remove(node)

    def start(self) -> None:
        self.started += 1


class FakeDemuxer:
    def __init__(self):
        self.handlers: dict[str, Callable[..., None]] = {}
        self.source: Optional[str] = None
        self.element: Optional[FakeElement] = None
        self.destroyed = False

    def on(self, event: str, callback: Callable[..., None]) -> None:
        self.handlers[event] = callback

    def load_source(self, url: str) -> None:
        self.source = url

    def attach_media(self, element: FakeElement) -> None:
        self.element = element
        element.attached.append(self)

    def fire_attached(self) -> None:
        self.handlers[MEDIA_ATTACHED]()

    def destroy(self) -> None:
        self.destroyed = True
        if self.element is not None:
            self.element.attached.remove(self)
            self.element = None


@pytest.fixture
def element() -> FakeElement:
    return FakeElement()


@pytest.fixture
def context() -> FakeContext:
    return FakeContext()


@pytest.fixture
def analyzer() -> FakeAnalyzer:
    return FakeAnalyzer()


@pytest.fixture
def shared_audio(element, context, analyzer) -> SharedAudio:
    return SharedAudio(element, context, analyzer)


@pytest.fixture
def demuxers() -> list[FakeDemuxer]:
    """Every demuxer the session manager has created, in order."""
    return []


@pytest.fixture
def session_manager(shared_audio, demuxers) -> StreamingSessionManager:
    def factory() -> FakeDemuxer:
        demuxer = FakeDemuxer()
        demuxers.append(demuxer)
        return demuxer

    return StreamingSessionManager(shared_audio, factory)
