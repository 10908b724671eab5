"""HLS playlist resolution for commercial-network stations.

The streaming tier checks the token against the calling IP, so the
resolver shares the AuthRelay's requests.Session.
"""

from typing import Optional

import requests
from loguru import logger

from .auth import AuthRelay
from .exceptions import PlaylistNotFound, UpstreamError
from .models import MediaPlaylistInfo

STREAM_INF_TAG = "#EXT-X-STREAM-INF"


def parse_master_playlist(text: str) -> str:
    """Return the first variant URI of a master playlist.

    The URI is the first line starting with "http" after an
    #EXT-X-STREAM-INF tag.

    Raises:
        PlaylistNotFound: If no variant stream is listed
    """
    seen_variant_tag = False
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if line.startswith(STREAM_INF_TAG):
            seen_variant_tag = True
        elif seen_variant_tag and line.startswith("http"):
            return line
    raise PlaylistNotFound("Stream URI not found in playlist")


def parse_media_playlist(text: str) -> MediaPlaylistInfo:
    """Summarize a media playlist: segment count, target duration, liveness."""
    segment_count = 0
    target_duration: Optional[float] = None
    ended = False

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if line.startswith("#EXTINF:"):
            segment_count += 1
        elif line.startswith("#EXT-X-TARGETDURATION:"):
            try:
                target_duration = float(line.split(":", 1)[1])
            except ValueError:
                logger.debug(f"Ignoring unparseable target duration: {line}")
        elif line == "#EXT-X-ENDLIST":
            ended = True

    return MediaPlaylistInfo(
        segment_count=segment_count,
        target_duration=target_duration,
        is_live=not ended,
    )


class PlaylistResolver:
    """Resolves a station's playable stream URI from the streaming tier."""

    def __init__(self, relay: AuthRelay):
        self.relay = relay
        self.config = relay.config

    def fetch_master_playlist(
        self, params: dict[str, str], token: str
    ) -> requests.Response:
        """Fetch the master playlist with the given query params.

        Raises:
            UpstreamError: On network failure or non-success status
        """
        try:
            response = self.relay.session.get(
                self.config.playlist_base,
                params=params,
                headers={"X-Radiko-AuthToken": token},
                timeout=self.config.request_timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"Playlist request failed: {e}")
            raise UpstreamError(f"Playlist fetch failed: {e}") from e

        if not response.ok:
            logger.warning(f"Playlist fetch failed with status {response.status_code}")
            raise UpstreamError("Playlist fetch failed", status=response.status_code)
        return response

    def resolve(self, station_id: str, token: str) -> str:
        """Resolve the stream URI for station_id using an auth token.

        Raises:
            UpstreamError: On non-success HTTP status
            PlaylistNotFound: If the playlist has no bitrate variant
        """
        params = {
            "station_id": station_id,
            "type": "b",
            "l": "15",
            "lsid": self.config.lsid,
        }
        response = self.fetch_master_playlist(params, token)
        stream_uri = parse_master_playlist(response.text)
        logger.debug(f"Resolved stream for {station_id}: {stream_uri}")
        return stream_uri

    def resolve_for_client(self, station_id: str, client_ip: str = "") -> str:
        """Authenticate and resolve in one call from the relay's egress."""
        auth = self.relay.authenticate(client_ip)
        return self.resolve(station_id, auth.token)
