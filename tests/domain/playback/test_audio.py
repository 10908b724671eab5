"""Tests for shared audio route ownership."""

import pytest

from car_audio.domain.playback.audio import CONTEXT_RUNNING


def test_disconnect_only_removes_own_route(shared_audio, analyzer):
    stream = shared_audio.connect("stream", "element-node")
    aux = shared_audio.connect("aux", "gain-node")

    assert shared_audio.disconnect(aux) is True

    assert shared_audio.routes == [stream]
    assert analyzer.inputs == ["element-node"]


def test_stale_handle_is_ignored(shared_audio, analyzer):
    handle = shared_audio.connect("aux", "gain-node")
    shared_audio.disconnect(handle)

    assert shared_audio.disconnect(handle) is False
    assert analyzer.inputs == []


def test_routes_for_owner(shared_audio):
    shared_audio.connect("stream", "a")
    shared_audio.connect("aux", "b")
    assert [r.node for r in shared_audio.routes_for("aux")] == ["b"]


def test_unlock_without_loop_is_noop(shared_audio, context):
    assert shared_audio.unlock() is None
    assert context.resume_calls == 0


@pytest.mark.anyio
async def test_unlock_resumes_context(shared_audio, context):
    task = shared_audio.unlock()
    await task
    assert context.state == CONTEXT_RUNNING
