"""Tests for the two-leg auth relay."""

import base64
import threading
from unittest.mock import MagicMock

import pytest
import requests

from car_audio.core.config import RelayConfig
from car_audio.domain.radio.auth import AuthRelay, derive_partial_key, parse_region_code
from car_audio.domain.radio.exceptions import BadResponse, UpstreamError

AUTH_KEY = "bcd151073c03b352e1ef2fd66c32209da9ca0afa"


def _response(status=200, headers=None, text=""):
    response = MagicMock()
    response.status_code = status
    response.ok = status < 400
    response.headers = headers or {}
    response.text = text
    return response


def _auth1_ok(offset="8", length="16"):
    return _response(
        200,
        {
            "X-Radiko-AuthToken": "tok-1",
            "X-Radiko-KeyOffset": offset,
            "X-Radiko-KeyLength": length,
        },
    )


@pytest.fixture
def session() -> MagicMock:
    return MagicMock()


@pytest.fixture
def relay(session) -> AuthRelay:
    return AuthRelay(RelayConfig(origin_base="https://origin.test"), session=session)


class TestPartialKey:
    def test_slices_and_encodes(self):
        expected = base64.b64encode(AUTH_KEY[8:24].encode("ascii")).decode("ascii")
        assert derive_partial_key(AUTH_KEY, 8, 16) == expected

    def test_zero_length(self):
        assert derive_partial_key(AUTH_KEY, 0, 0) == ""

    def test_negative_window_rejected(self):
        with pytest.raises(BadResponse):
            derive_partial_key(AUTH_KEY, -1, 4)


class TestParseRegionCode:
    def test_first_field(self):
        assert parse_region_code("JP27,OSAKA,osaka Japan\r\n", "JP13") == "JP27"

    def test_empty_body_uses_default(self):
        assert parse_region_code("  \n", "JP13") == "JP13"


class TestHandshake:
    def test_success(self, relay, session):
        session.get.side_effect = [_auth1_ok(), _response(200, text="JP13,TOKYO,tokyo Japan")]

        auth = relay.authenticate("198.51.100.4")

        assert auth.token == "tok-1"
        assert auth.region_code == "JP13"
        auth1_call, auth2_call = session.get.call_args_list
        assert auth1_call.args[0] == "https://origin.test/v2/api/auth1"
        assert auth1_call.kwargs["headers"]["X-Radiko-App"] == "pc_html5"
        assert auth1_call.kwargs["headers"]["X-Real-IP"] == "198.51.100.4"
        assert auth2_call.args[0] == "https://origin.test/v2/api/auth2"
        assert auth2_call.kwargs["headers"]["X-Radiko-PartialKey"] == derive_partial_key(
            AUTH_KEY, 8, 16
        )

    def test_no_ip_header_without_client_ip(self, relay, session):
        session.get.side_effect = [_auth1_ok(), _response(200, text="JP13")]

        relay.authenticate("")

        for call in session.get.call_args_list:
            assert "X-Real-IP" not in call.kwargs["headers"]

    def test_auth1_failure_never_attempts_auth2(self, relay, session):
        session.get.side_effect = [_response(500)]

        with pytest.raises(UpstreamError) as exc_info:
            relay.authenticate("198.51.100.4")

        assert exc_info.value.status == 500
        assert session.get.call_count == 1

    def test_auth2_failure(self, relay, session):
        session.get.side_effect = [_auth1_ok(), _response(401)]

        with pytest.raises(UpstreamError) as exc_info:
            relay.authenticate("198.51.100.4")

        assert exc_info.value.status == 401

    def test_missing_token_is_bad_response(self, relay, session):
        session.get.side_effect = [
            _response(200, {"X-Radiko-KeyOffset": "0", "X-Radiko-KeyLength": "4"})
        ]

        with pytest.raises(BadResponse):
            relay.authenticate("198.51.100.4")
        assert session.get.call_count == 1

    def test_non_numeric_key_window_is_bad_response(self, relay, session):
        session.get.side_effect = [_auth1_ok(offset="abc")]

        with pytest.raises(BadResponse):
            relay.authenticate("198.51.100.4")

    def test_network_error_is_upstream_error(self, relay, session):
        session.get.side_effect = requests.Timeout("slow")

        with pytest.raises(UpstreamError):
            relay.authenticate("198.51.100.4")

    def test_no_state_between_calls(self, relay, session):
        session.get.side_effect = [
            _auth1_ok(),
            _response(200, text="JP13"),
            _auth1_ok(),
            _response(200, text="JP14"),
        ]

        first = relay.authenticate("198.51.100.4")
        second = relay.authenticate("198.51.100.4")

        assert first.region_code == "JP13"
        assert second.region_code == "JP14"
        assert session.get.call_count == 4


def test_concurrent_callers_share_one_handshake(relay, session):
    release = threading.Event()
    auth1_started = threading.Event()

    def slow_get(url, headers, timeout):
        if url.endswith("auth1"):
            auth1_started.set()
            release.wait(timeout=5)
            return _auth1_ok()
        return _response(200, text="JP13")

    session.get.side_effect = slow_get
    results = []

    def call():
        results.append(relay.authenticate("198.51.100.4"))

    owner = threading.Thread(target=call)
    owner.start()
    assert auth1_started.wait(timeout=5)
    joiner = threading.Thread(target=call)
    joiner.start()
    # Give the joiner time to attach to the in-flight future
    joiner.join(timeout=0.2)
    release.set()
    owner.join(timeout=5)
    joiner.join(timeout=5)

    assert len(results) == 2
    assert results[0] is results[1]
    assert session.get.call_count == 2
