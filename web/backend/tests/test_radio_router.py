"""Tests for the radio relay endpoints."""

import json

import pytest
import requests
from fastapi.testclient import TestClient

from car_audio.core.config import Config, RelayConfig
from car_audio.domain.radio.auth import AuthRelay
from car_audio.domain.radio.playlist import PlaylistResolver
from web.backend.deps import get_auth_relay, get_config, get_playlist_resolver
from web.backend.main import app

MASTER_PLAYLIST = """#EXTM3U
#EXT-X-VERSION:3
#EXT-X-STREAM-INF:BANDWIDTH=52973,CODECS="mp4a.40.5"
https://example-cdn.test/so/live/TBS/chunklist.m3u8
"""

AUTH1_HEADERS = {
    "X-Radiko-AuthToken": "tok-123",
    "X-Radiko-KeyOffset": "8",
    "X-Radiko-KeyLength": "16",
}


@pytest.fixture
def relay(upstream_session) -> AuthRelay:
    return AuthRelay(RelayConfig(origin_base="https://origin.test"), session=upstream_session)


@pytest.fixture
def client(relay, tmp_path):
    config = Config()
    config.server.frequencies_dir = str(tmp_path)
    app.dependency_overrides[get_auth_relay] = lambda: relay
    app.dependency_overrides[get_playlist_resolver] = lambda: PlaylistResolver(relay)
    app.dependency_overrides[get_config] = lambda: config
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestAuthEndpoint:
    def test_missing_ip_is_rejected(self, client, upstream_session):
        response = client.get("/auth")
        assert response.status_code == 400
        assert "error" in response.json()
        upstream_session.get.assert_not_called()

    def test_successful_handshake(self, client, upstream_session, make_response):
        upstream_session.get.side_effect = [
            make_response(200, AUTH1_HEADERS),
            make_response(200, text="JP13,Tokyo,tokyo Japan\r\n"),
        ]

        response = client.get("/auth", params={"ip": "203.0.113.7"})

        assert response.status_code == 200
        assert response.json() == {"token": "tok-123", "regionCode": "JP13"}
        assert response.headers["cache-control"] == "private, max-age=480"

        auth1_call, auth2_call = upstream_session.get.call_args_list
        assert auth1_call.args[0] == "https://origin.test/v2/api/auth1"
        assert auth1_call.kwargs["headers"]["X-Real-IP"] == "203.0.113.7"
        assert auth2_call.kwargs["headers"]["X-Radiko-AuthToken"] == "tok-123"
        assert auth2_call.kwargs["headers"]["X-Real-IP"] == "203.0.113.7"

    def test_auth1_failure_skips_auth2(self, client, upstream_session, make_response):
        upstream_session.get.side_effect = [make_response(500)]

        response = client.get("/auth", params={"ip": "203.0.113.7"})

        assert response.status_code == 502
        body = response.json()
        assert body["status"] == 500
        assert body["code"] == "upstream"
        assert upstream_session.get.call_count == 1

    def test_missing_token_is_bad_response(self, client, upstream_session, make_response):
        upstream_session.get.side_effect = [
            make_response(200, {"X-Radiko-KeyOffset": "0", "X-Radiko-KeyLength": "4"})
        ]

        response = client.get("/auth", params={"ip": "203.0.113.7"})

        assert response.status_code == 502
        assert response.json()["code"] == "bad_response"

    def test_network_error_maps_to_502(self, client, upstream_session):
        upstream_session.get.side_effect = requests.ConnectionError("unreachable")

        response = client.get("/auth", params={"ip": "203.0.113.7"})

        assert response.status_code == 502
        assert response.json()["code"] == "upstream"


class TestStreamEndpoint:
    def test_missing_station_id_is_rejected(self, client, upstream_session):
        response = client.get("/stream", params={"ip": "203.0.113.7"})
        assert response.status_code == 400
        upstream_session.get.assert_not_called()

    def test_resolves_stream_uri(self, client, upstream_session, make_response):
        upstream_session.get.side_effect = [
            make_response(200, AUTH1_HEADERS),
            make_response(200, text="JP13,Tokyo"),
            make_response(200, text=MASTER_PLAYLIST),
        ]

        response = client.get("/stream", params={"station_id": "TBS", "ip": "203.0.113.7"})

        assert response.status_code == 200
        assert response.json() == {
            "streamUri": "https://example-cdn.test/so/live/TBS/chunklist.m3u8"
        }
        playlist_call = upstream_session.get.call_args_list[2]
        assert playlist_call.kwargs["params"]["station_id"] == "TBS"
        assert playlist_call.kwargs["headers"] == {"X-Radiko-AuthToken": "tok-123"}

    def test_playlist_without_variant_is_not_found(
        self, client, upstream_session, make_response
    ):
        upstream_session.get.side_effect = [
            make_response(200, AUTH1_HEADERS),
            make_response(200, text="JP13"),
            make_response(200, text="#EXTM3U\n"),
        ]

        response = client.get("/stream", params={"station_id": "TBS"})

        assert response.status_code == 502
        assert response.json()["code"] == "not_found"


class TestPassthroughEndpoints:
    def test_playlist_forwards_token_and_params(
        self, client, upstream_session, make_response
    ):
        upstream_session.get.return_value = make_response(
            200, {"Content-Type": "application/x-mpegURL"}, MASTER_PLAYLIST
        )

        response = client.get(
            "/playlist",
            params={"station_id": "TBS", "l": "15"},
            headers={"X-Radiko-AuthToken": "tok-abc"},
        )

        assert response.status_code == 200
        assert "EXT-X-STREAM-INF" in response.text
        call = upstream_session.get.call_args
        assert call.kwargs["params"] == {"station_id": "TBS", "l": "15"}
        assert call.kwargs["headers"] == {"X-Radiko-AuthToken": "tok-abc"}

    def test_proxy_strips_origin_headers(self, client, upstream_session, make_response):
        upstream_session.get.return_value = make_response(
            200, {"Content-Type": "text/xml"}, "<stations/>"
        )

        response = client.get(
            "/proxy/v3/station/list/JP13.xml",
            headers={"Origin": "http://localhost:5173", "Referer": "http://x.test/"},
        )

        assert response.status_code == 200
        assert response.text == "<stations/>"
        call = upstream_session.get.call_args
        assert call.args[0] == "https://origin.test/v3/station/list/JP13.xml"
        forwarded = {key.lower() for key in call.kwargs["headers"]}
        assert not forwarded & {"host", "origin", "referer"}

    def test_proxy_passes_upstream_status(self, client, upstream_session, make_response):
        upstream_session.get.return_value = make_response(404, text="missing")

        response = client.get("/proxy/v3/station/list/XX.xml")

        assert response.status_code == 404


class TestFrequenciesEndpoint:
    def test_serves_region_file(self, client, tmp_path):
        data = {"TBS": [{"type": "FM", "frequency": 90.5, "primary": True}]}
        (tmp_path / "JP13.json").write_text(json.dumps(data), encoding="utf-8")

        response = client.get("/frequencies/JP13.json")

        assert response.status_code == 200
        assert response.json() == data

    def test_unknown_region_is_404(self, client):
        response = client.get("/frequencies/JP99.json")
        assert response.status_code == 404
