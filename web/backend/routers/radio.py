"""
Radio relay API endpoints.

The commercial network binds its playback token to the caller's IP, so the
whole handshake (and the playlist fetch that uses the token) runs inside a
single handler on this process's shared requests.Session.
"""

import json
import re
from pathlib import Path
from typing import Optional

import requests
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from loguru import logger

from car_audio.core.config import Config
from car_audio.domain.radio.auth import AuthRelay
from car_audio.domain.radio.exceptions import (
    BadResponse,
    NotFound,
    RadioError,
    UpstreamError,
)
from car_audio.domain.radio.playlist import PlaylistResolver

from ..deps import get_auth_relay, get_config, get_playlist_resolver
from ..schemas import AuthResponse, ErrorResponse, StreamResponse

router = APIRouter()

# Matches the token's freshness window on the client
AUTH_CACHE_CONTROL = "private, max-age={ttl}"
REGION_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
DROPPED_PROXY_HEADERS = {"host", "origin", "referer"}


# === Helper Functions ===


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    body = ErrorResponse(error=message, **extra).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


def _radio_error_response(e: RadioError) -> JSONResponse:
    """Map domain errors to a 502 JSON body."""
    if isinstance(e, UpstreamError):
        return _error(502, str(e), status=e.status, code="upstream")
    if isinstance(e, BadResponse):
        return _error(502, str(e), code="bad_response")
    if isinstance(e, NotFound):
        return _error(502, str(e), code="not_found")
    return _error(502, str(e))


# === Auth relay ===


@router.get(
    "/auth",
    response_model=AuthResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
def authenticate(
    ip: Optional[str] = None,
    relay: AuthRelay = Depends(get_auth_relay),
):
    """Run auth1 + auth2 for the client's IP and return token + region."""
    if not ip:
        return _error(400, "Missing ip query parameter")

    try:
        auth = relay.authenticate(ip)
    except RadioError as e:
        logger.error(f"Auth relay failed for {ip}: {e}")
        return _radio_error_response(e)

    return JSONResponse(
        content=AuthResponse(token=auth.token, regionCode=auth.region_code).model_dump(),
        headers={
            "Cache-Control": AUTH_CACHE_CONTROL.format(
                ttl=relay.config.token_ttl_seconds
            )
        },
    )


@router.get(
    "/stream",
    response_model=StreamResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
def stream(
    station_id: Optional[str] = None,
    ip: Optional[str] = None,
    resolver: PlaylistResolver = Depends(get_playlist_resolver),
):
    """Authenticate and resolve a station's stream URI from one egress."""
    if not station_id:
        return _error(400, "Missing station_id query parameter")

    try:
        stream_uri = resolver.resolve_for_client(station_id, ip or "")
    except RadioError as e:
        logger.error(f"Stream resolution failed for {station_id}: {e}")
        return _radio_error_response(e)

    return StreamResponse(streamUri=stream_uri)


@router.get("/playlist")
def playlist(
    request: Request,
    resolver: PlaylistResolver = Depends(get_playlist_resolver),
):
    """Forward a master playlist request with the caller's auth token."""
    token = request.headers.get("x-radiko-authtoken", "")
    params = dict(request.query_params)

    try:
        upstream = resolver.fetch_master_playlist(params, token)
    except UpstreamError as e:
        return _radio_error_response(e)

    return Response(
        content=upstream.content,
        media_type=upstream.headers.get("Content-Type", "application/vnd.apple.mpegurl"),
        headers={"Access-Control-Allow-Origin": "*"},
    )


@router.get("/proxy/{path:path}")
def proxy(
    path: str,
    request: Request,
    relay: AuthRelay = Depends(get_auth_relay),
):
    """Plain GET passthrough to the origin (station lists and the like)."""
    url = f"{relay.config.origin_base.rstrip('/')}/{path}"
    headers = {
        key: value
        for key, value in request.headers.items()
        if key.lower() not in DROPPED_PROXY_HEADERS
    }

    try:
        upstream = relay.session.get(
            url,
            params=dict(request.query_params),
            headers=headers,
            timeout=relay.config.request_timeout,
        )
    except requests.RequestException as e:
        logger.warning(f"Proxy request to {url} failed: {e}")
        return _error(502, f"Proxy request failed: {e}", code="upstream")

    return Response(
        content=upstream.content,
        status_code=upstream.status_code,
        media_type=upstream.headers.get("Content-Type"),
        headers={"Access-Control-Allow-Origin": "*"},
    )


# === Frequency directory ===


@router.get("/frequencies/{region}.json")
def frequencies(region: str, config: Config = Depends(get_config)):
    """Serve <frequencies_dir>/<region>.json."""
    if not REGION_PATTERN.match(region):
        return _error(400, "Invalid region")
    if not config.server.frequencies_dir:
        return _error(404, "Frequency directory not configured")

    path = Path(config.server.frequencies_dir) / f"{region}.json"
    if not path.exists():
        return _error(404, f"No frequency directory for {region}")

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.error(f"Unreadable frequency directory {path}: {e}")
        return _error(500, "Frequency directory is unreadable")

    return JSONResponse(content=data)
