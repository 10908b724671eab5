"""Auth relay for the commercial radio network.

Runs the auth1 -> partial key -> auth2 handshake as one server-side
operation. The origin binds the issued token to the IP that called auth1,
so both legs (and the playlist fetch that follows) go out through the same
requests.Session rather than through separate request handlers.
"""

import base64
import threading
import time
from concurrent.futures import Future
from typing import Optional

import requests
from loguru import logger

from car_audio.core.config import RelayConfig

from .exceptions import BadResponse, UpstreamError
from .models import AuthSession

AUTH1_PATH = "/v2/api/auth1"
AUTH2_PATH = "/v2/api/auth2"


def derive_partial_key(auth_key: str, offset: int, length: int) -> str:
    """Slice the shared secret at offset/length and base64-encode the slice.

    Args:
        auth_key: Publicly known shared secret
        offset: Byte offset from the X-Radiko-KeyOffset header
        length: Byte length from the X-Radiko-KeyLength header

    Returns:
        Base64 partial key for the auth2 leg
    """
    if offset < 0 or length < 0:
        raise BadResponse(f"Invalid key window offset={offset} length={length}")
    key_slice = auth_key.encode("ascii")[offset : offset + length]
    return base64.b64encode(key_slice).decode("ascii")


def parse_region_code(body: str, default_region: str) -> str:
    """Extract the area code from the auth2 body (first comma-separated field)."""
    first = body.strip().split(",")[0].strip()
    return first or default_region


class AuthRelay:
    """Performs the two-leg handshake and issues an AuthSession.

    Concurrent callers for the same client IP share one in-flight
    handshake. No state survives a completed call.
    """

    def __init__(
        self,
        config: Optional[RelayConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config or RelayConfig()
        self.session = session or requests.Session()
        self._lock = threading.Lock()
        self._in_flight: dict[str, Future] = {}

    def _device_headers(self, client_ip: str) -> dict[str, str]:
        headers = {
            "X-Radiko-Device": self.config.device,
            "X-Radiko-User": self.config.user,
        }
        if client_ip:
            headers["X-Real-IP"] = client_ip
        return headers

    def authenticate(self, client_ip: str) -> AuthSession:
        """Obtain a playback token and region code for client_ip.

        Raises:
            UpstreamError: If either leg returns a non-success status
            BadResponse: If auth1 omits the token or key window headers
        """
        with self._lock:
            future = self._in_flight.get(client_ip)
            owner = future is None
            if owner:
                future = Future()
                self._in_flight[client_ip] = future

        if not owner:
            logger.debug(f"Joining in-flight handshake for {client_ip}")
            return future.result()

        try:
            result = self._handshake(client_ip)
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._lock:
                self._in_flight.pop(client_ip, None)

    def _get(self, url: str, headers: dict[str, str], leg: str) -> requests.Response:
        try:
            response = self.session.get(
                url, headers=headers, timeout=self.config.request_timeout
            )
        except requests.RequestException as e:
            logger.warning(f"{leg} request failed: {e}")
            raise UpstreamError(f"{leg} request failed: {e}") from e

        if not response.ok:
            logger.warning(f"{leg} failed with status {response.status_code}")
            raise UpstreamError(f"{leg} failed", status=response.status_code)
        return response

    def _handshake(self, client_ip: str) -> AuthSession:
        base = self.config.origin_base.rstrip("/")

        # --- auth1 ---
        headers = {
            "X-Radiko-App": self.config.app_name,
            "X-Radiko-App-Version": self.config.app_version,
            **self._device_headers(client_ip),
        }
        res_auth1 = self._get(base + AUTH1_PATH, headers, "Auth1")

        token = res_auth1.headers.get("X-Radiko-AuthToken")
        if not token:
            raise BadResponse("No X-Radiko-AuthToken in auth1 response")

        try:
            offset = int(res_auth1.headers.get("X-Radiko-KeyOffset", ""))
            length = int(res_auth1.headers.get("X-Radiko-KeyLength", ""))
        except ValueError as e:
            raise BadResponse("Missing or invalid key window in auth1 response") from e

        partial_key = derive_partial_key(self.config.auth_key, offset, length)

        # --- auth2 (same session, same forwarded IP) ---
        headers = {
            "X-Radiko-AuthToken": token,
            "X-Radiko-PartialKey": partial_key,
            **self._device_headers(client_ip),
        }
        res_auth2 = self._get(base + AUTH2_PATH, headers, "Auth2")

        region_code = parse_region_code(res_auth2.text, self.config.default_region)
        logger.info(f"Authenticated {client_ip or 'relay egress'} for area {region_code}")
        return AuthSession(token=token, region_code=region_code, issued_at=time.time())
