"""Pytest configuration for backend tests."""

import sys
from pathlib import Path
from unittest import mock

import pytest

# Add repository root to path so `web.backend` imports resolve
repo_root = Path(__file__).parent.parent.parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))


def _response(status: int = 200, headers=None, text: str = "") -> mock.MagicMock:
    response = mock.MagicMock()
    response.status_code = status
    response.ok = status < 400
    response.headers = headers or {}
    response.text = text
    response.content = text.encode("utf-8")
    return response


@pytest.fixture
def make_response():
    """Factory for stand-ins of requests.Response."""
    return _response


@pytest.fixture
def upstream_session() -> mock.MagicMock:
    """A requests.Session whose get() is scripted per test."""
    return mock.MagicMock()
