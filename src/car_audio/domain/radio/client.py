"""HTTP client for the relay server.

Caches the playback token for the configured TTL. A failed refresh keeps
serving the previously cached token until it is actually rejected, rather
than dropping it preemptively.
"""

import asyncio
import time
from typing import Callable, Optional

import requests
from loguru import logger

from .directory import (
    PUBLIC_CONFIG_URL,
    build_tunable_entries,
    parse_frequency_directory,
    parse_public_config,
    parse_station_list,
    public_descriptors,
)
from .exceptions import (
    BadResponse,
    PlaylistNotFound,
    RadioError,
    StationNotFound,
    UpstreamError,
)
from .models import (
    AuthSession,
    CommercialStation,
    PublicRegion,
    StationDescriptor,
    TunableEntry,
)

DEFAULT_TTL_SECONDS = 480


class RelayClient:
    """Talks to the relay's /auth, /stream, /proxy and /frequencies endpoints.

    The public broadcaster's config is fetched from its own host directly.
    """

    def __init__(
        self,
        base_url: str,
        client_ip: str = "",
        session: Optional[requests.Session] = None,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        timeout: float = 10.0,
        clock: Callable[[], float] = time.time,
    ):
        self.base_url = base_url.rstrip("/")
        self.client_ip = client_ip
        self.session = session or requests.Session()
        self.ttl_seconds = ttl_seconds
        self.timeout = timeout
        self.clock = clock
        self._auth: Optional[AuthSession] = None

    def _get(self, path: str, params: Optional[dict] = None) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise UpstreamError(f"Relay request to {path} failed: {e}") from e

        if not response.ok:
            body = {}
            try:
                body = response.json()
            except ValueError:
                pass
            if not isinstance(body, dict):
                body = {}
            detail = body.get("error", "")
            if body.get("code") == "not_found":
                raise PlaylistNotFound(detail or f"Relay {path}: not found")
            raise UpstreamError(
                f"Relay {path} failed{': ' + detail if detail else ''}",
                status=response.status_code,
            )
        return response

    def _json(self, response: requests.Response, path: str) -> dict:
        try:
            data = response.json()
        except ValueError as e:
            raise BadResponse(f"Relay {path} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise BadResponse(f"Relay {path} returned unexpected payload")
        return data

    # === Auth ===

    @property
    def cached_auth(self) -> Optional[AuthSession]:
        return self._auth

    def get_auth(self, force_refresh: bool = False) -> AuthSession:
        """Return a fresh AuthSession, refreshing after the TTL.

        Raises:
            UpstreamError/BadResponse: Only when no cached session exists
        """
        now = self.clock()
        if (
            not force_refresh
            and self._auth is not None
            and self._auth.is_fresh(now, self.ttl_seconds)
        ):
            return self._auth

        try:
            data = self._json(self._get("/auth", {"ip": self.client_ip}), "/auth")
            token = data.get("token")
            region_code = data.get("regionCode")
            if not token or not region_code:
                raise BadResponse("Relay /auth response missing token or regionCode")
        except RadioError as e:
            if self._auth is None:
                raise
            logger.warning(f"Token refresh failed, keeping cached token: {e}")
            return self._auth

        self._auth = AuthSession(token=token, region_code=region_code, issued_at=now)
        logger.debug(f"Relay token refreshed for area {region_code}")
        return self._auth

    def invalidate(self) -> None:
        """Drop the cached token (after the stream tier rejected it)."""
        self._auth = None

    @property
    def region_code(self) -> Optional[str]:
        return self._auth.region_code if self._auth else None

    # === Stream / directories ===

    def fetch_stream_uri(self, station_id: str) -> str:
        params = {"station_id": station_id}
        if self.client_ip:
            params["ip"] = self.client_ip
        data = self._json(self._get("/stream", params), "/stream")
        stream_uri = data.get("streamUri")
        if not stream_uri:
            raise BadResponse("Relay /stream response missing streamUri")
        return stream_uri

    def fetch_station_list(self, region: str) -> list[CommercialStation]:
        response = self._get(f"/proxy/v3/station/list/{region}.xml")
        return parse_station_list(response.text)

    def fetch_frequencies(self, region: str) -> dict[str, dict]:
        response = self._get(f"/frequencies/{region}.json")
        try:
            data = response.json()
        except ValueError as e:
            raise BadResponse("Frequency directory is not valid JSON") from e
        return parse_frequency_directory(data)

    def fetch_tunable_entries(self, region: Optional[str] = None) -> list[TunableEntry]:
        region = region or self.get_auth().region_code
        stations = self.fetch_station_list(region)
        frequencies = self.fetch_frequencies(region)
        return build_tunable_entries(stations, frequencies, region)

    # === Public broadcaster (fetched directly, no relay or token) ===

    def fetch_public_regions(self, url: str = PUBLIC_CONFIG_URL) -> list[PublicRegion]:
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise UpstreamError(f"Public config request failed: {e}") from e
        if not response.ok:
            raise UpstreamError(
                "Public config request failed", status=response.status_code
            )
        return parse_public_config(response.text)

    def fetch_public_stations(
        self, area: str, url: str = PUBLIC_CONFIG_URL
    ) -> list[StationDescriptor]:
        """Return the R1, R2 and FM descriptors for one area (e.g. "tokyo").

        Raises:
            StationNotFound: If the config has no such area
        """
        for region in self.fetch_public_regions(url):
            if region.area == area:
                return public_descriptors(region)
        raise StationNotFound(f"No public broadcaster streams for area {area}")

    # === Async wrappers for the event loop ===

    async def get_auth_async(self) -> AuthSession:
        return await asyncio.to_thread(self.get_auth)

    async def resolve_stream(self, station_id: str) -> str:
        return await asyncio.to_thread(self.fetch_stream_uri, station_id)

    async def fetch_tunable_entries_async(
        self, region: Optional[str] = None
    ) -> list[TunableEntry]:
        return await asyncio.to_thread(self.fetch_tunable_entries, region)

    async def fetch_public_stations_async(self, area: str) -> list[StationDescriptor]:
        return await asyncio.to_thread(self.fetch_public_stations, area)
