"""Tests for the streaming session manager."""

import asyncio

import pytest

from car_audio.domain.playback.audio import (
    CONTEXT_INTERRUPTED,
    CONTEXT_RUNNING,
    CONTEXT_SUSPENDED,
)
from car_audio.domain.playback.session import (
    SessionKind,
    SessionState,
    StreamingSessionManager,
)


async def _play(manager, demuxers, source):
    manager.load(source)
    demuxers[-1].fire_attached()
    return await manager.wait_until_settled()


class TestLoad:
    @pytest.mark.anyio
    async def test_demuxed_load_plays_after_attach(self, session_manager, demuxers, element, analyzer):
        session = session_manager.load("https://cdn.test/a.m3u8")

        assert session.kind is SessionKind.DEMUXED
        assert session_manager.state is SessionState.ATTACHING
        assert demuxers[0].source == "https://cdn.test/a.m3u8"
        assert demuxers[0].element is element

        demuxers[0].fire_attached()
        assert await session_manager.wait_until_settled() is SessionState.PLAYING
        assert session_manager.is_playing is True
        assert element.paused is False
        assert analyzer.started == 1
        assert analyzer.inputs == [element]

    @pytest.mark.anyio
    async def test_second_load_destroys_first(self, session_manager, demuxers, element, analyzer):
        session_manager.load("https://cdn.test/a.m3u8")
        session_manager.load("https://cdn.test/b.m3u8")

        assert demuxers[0].destroyed is True
        assert element.attached == [demuxers[1]]
        assert analyzer.inputs == [element]

    @pytest.mark.anyio
    async def test_stale_attach_signal_is_ignored(self, session_manager, demuxers, element):
        session_manager.load("https://cdn.test/a.m3u8")
        first = demuxers[0]
        session_manager.load("https://cdn.test/b.m3u8")

        first.fire_attached()
        await session_manager.wait_until_settled()

        assert element.play_calls == 0
        assert session_manager.state is SessionState.ATTACHING

    @pytest.mark.anyio
    async def test_native_playback_when_demuxer_unsupported(self, shared_audio, element):
        manager = StreamingSessionManager(
            shared_audio, demuxer_factory=lambda: None, demux_supported=lambda: False
        )

        session = manager.load("https://cdn.test/native.m3u8")

        assert session.kind is SessionKind.NATIVE
        assert element.src == "https://cdn.test/native.m3u8"
        assert await manager.wait_until_settled() is SessionState.PLAYING


class TestUnload:
    def test_unload_when_idle_is_noop(self, session_manager, element, analyzer):
        session_manager.unload()

        assert session_manager.state is SessionState.IDLE
        assert element.paused is True
        assert analyzer.inputs == []

    @pytest.mark.anyio
    async def test_unload_releases_everything(self, session_manager, demuxers, element, analyzer):
        await _play(session_manager, demuxers, "https://cdn.test/a.m3u8")

        session_manager.unload()

        assert demuxers[0].destroyed is True
        assert element.attached == []
        assert element.src is None
        assert analyzer.inputs == []
        assert session_manager.is_playing is False
        assert session_manager.is_attached is False
        assert session_manager.state is SessionState.IDLE

    @pytest.mark.anyio
    async def test_unload_before_attach_cancels_start(self, session_manager, demuxers, element):
        session_manager.load("https://cdn.test/a.m3u8")
        demuxers[0].fire_attached()
        session_manager.unload()

        await asyncio.sleep(0)
        await session_manager.wait_until_settled()

        assert element.play_calls == 0
        assert session_manager.is_playing is False


class TestPlaybackRejection:
    @pytest.mark.anyio
    async def test_retries_once_after_resume(self, session_manager, demuxers, element, context):
        element.reject_plays = 1

        state = await _play(session_manager, demuxers, "https://cdn.test/a.m3u8")

        assert state is SessionState.PLAYING
        assert element.play_calls == 2
        assert context.resume_calls >= 2

    @pytest.mark.anyio
    async def test_second_rejection_stops(self, session_manager, demuxers, element):
        element.reject_plays = 2
        changes = []
        session_manager.on_playing_changed = changes.append

        state = await _play(session_manager, demuxers, "https://cdn.test/a.m3u8")

        assert state is SessionState.STOPPED
        assert element.play_calls == 2
        assert session_manager.is_playing is False
        assert session_manager.last_error is not None
        assert changes == []

    @pytest.mark.anyio
    async def test_stopped_survives_unload(self, session_manager, demuxers, element):
        element.reject_plays = 2
        await _play(session_manager, demuxers, "https://cdn.test/a.m3u8")

        session_manager.unload()

        assert session_manager.state is SessionState.STOPPED


class TestInterruption:
    @pytest.mark.anyio
    async def test_recovers_when_playing(self, session_manager, demuxers, element, context, analyzer):
        await _play(session_manager, demuxers, "https://cdn.test/a.m3u8")

        context.emit(CONTEXT_INTERRUPTED)
        element.paused = True
        context.emit(CONTEXT_SUSPENDED)
        await session_manager.wait_until_settled()

        assert element.play_calls == 2
        assert element.paused is False
        assert analyzer.started == 2
        assert session_manager.state is SessionState.PLAYING

    @pytest.mark.anyio
    async def test_no_recovery_when_not_playing(self, session_manager, element, context):
        context.emit(CONTEXT_INTERRUPTED)
        context.emit(CONTEXT_RUNNING)
        await session_manager.wait_until_settled()

        assert element.play_calls == 0
        assert context.resume_calls == 0

    @pytest.mark.anyio
    async def test_plain_suspend_while_playing_counts_as_interruption(
        self, session_manager, demuxers, element, context
    ):
        await _play(session_manager, demuxers, "https://cdn.test/a.m3u8")

        context.emit(CONTEXT_SUSPENDED)
        element.paused = True
        context.emit(CONTEXT_RUNNING)
        await session_manager.wait_until_settled()

        assert element.paused is False
