"""
IoT platform REST client.

Wraps the telemetry, attribute, one-way RPC and authentication endpoints the
gateway relies on. Reads are retried on transient failures; RPC calls are not,
since a repeated command is not guaranteed to be harmless.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from voicelink.core.config import PlatformSettings
from voicelink.core.errors import DeviceOfflineError, PlatformError, UnauthorizedError
from voicelink.models.platform import PlatformUser
from voicelink.utils.http import RetryConfig, request_with_retry

logger = logging.getLogger(__name__)

AUTH_HEADER = "X-Authorization"
_RPC_TIMEOUT_MARGIN_SECONDS = 2.0


class PlatformClient:
    """Async client for the platform's REST API."""

    def __init__(
        self,
        settings: PlatformSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._base_url = str(settings.base_url).rstrip("/")
        self._transport = transport
        self._retry = RetryConfig(attempts=settings.read_attempts)

    @property
    def rpc_timeout_seconds(self) -> float:
        return self._settings.rpc_timeout_seconds

    def _client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout or self._settings.http_timeout_seconds,
            transport=self._transport,
        )

    def _service_headers(self) -> Dict[str, str]:
        if not self._settings.api_token:
            return {}
        return {AUTH_HEADER: f"Bearer {self._settings.api_token}"}

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Any:
        try:
            async with self._client() as client:
                response = await request_with_retry(
                    client.get,
                    path,
                    params=params,
                    headers=self._service_headers(),
                    retry_config=self._retry,
                )
        except httpx.HTTPError as exc:
            raise PlatformError(f"GET {path} failed: {exc}") from exc
        return response.json()

    # Telemetry -----------------------------------------------------------

    async def get_latest_timeseries(
        self, device_id: str, key: str, *, start_ts: int, end_ts: int
    ) -> Optional[Any]:
        """Return the newest value of ``key`` inside the window, or None."""
        payload = await self._get_json(
            f"/api/plugins/telemetry/DEVICE/{device_id}/values/timeseries",
            {
                "keys": key,
                "startTs": start_ts,
                "endTs": end_ts,
                "limit": 1,
                "orderBy": "DESC",
            },
        )
        points = payload.get(key) if isinstance(payload, dict) else None
        if not points:
            return None
        return points[0].get("value")

    async def get_latest_telemetry(
        self, device_id: str, keys: Optional[Sequence[str]] = None
    ) -> Dict[str, List[Dict[str, Any]]]:
        """Return the latest point of each key as ``{key: [{ts, value}]}``."""
        params: Dict[str, Any] = {}
        if keys:
            params["keys"] = ",".join(keys)
        payload = await self._get_json(
            f"/api/plugins/telemetry/DEVICE/{device_id}/values/timeseries", params
        )
        if not isinstance(payload, dict):
            return {}
        return payload

    async def get_client_attribute(self, device_id: str, key: str) -> Optional[Any]:
        payload = await self._get_json(
            f"/api/plugins/telemetry/DEVICE/{device_id}/values/attributes/CLIENT_SCOPE",
            {"keys": key},
        )
        if not isinstance(payload, list):
            return None
        for entry in payload:
            if entry.get("key") == key:
                return entry.get("value")
        return None

    # RPC -----------------------------------------------------------------

    async def send_oneway_rpc(self, device_id: str, method: str, params: Any) -> None:
        """Deliver a one-way RPC; raises DeviceOfflineError if it cannot be sent."""
        timeout = self._settings.rpc_timeout_seconds
        body = {"method": method, "params": params, "timeout": int(timeout * 1000)}
        try:
            async with self._client(timeout + _RPC_TIMEOUT_MARGIN_SECONDS) as client:
                response = await client.post(
                    f"/api/plugins/rpc/oneway/{device_id}",
                    json=body,
                    headers=self._service_headers(),
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise DeviceOfflineError(
                device_id, f"RPC rejected with {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise DeviceOfflineError(device_id, str(exc) or type(exc).__name__) from exc
        logger.debug(
            "Sent one-way RPC",
            extra={"device_id": device_id, "rpc_method": method},
        )

    # Authentication ------------------------------------------------------

    async def get_current_user(self, session_token: str) -> PlatformUser:
        """Resolve the user behind a platform session JWT."""
        try:
            async with self._client() as client:
                response = await client.get(
                    "/api/auth/user",
                    headers={AUTH_HEADER: f"Bearer {session_token}"},
                )
        except httpx.HTTPError as exc:
            raise PlatformError(f"Session lookup failed: {exc}") from exc
        if response.status_code == httpx.codes.UNAUTHORIZED:
            raise UnauthorizedError("Platform session is invalid or expired")
        if response.is_error:
            raise PlatformError(f"Session lookup returned {response.status_code}")
        return PlatformUser.from_platform(response.json())

    async def login(self, username: str, password: str) -> str:
        """Authenticate with username/password and return a session JWT."""
        try:
            async with self._client() as client:
                response = await client.post(
                    "/api/auth/login",
                    json={"username": username, "password": password},
                )
        except httpx.HTTPError as exc:
            raise PlatformError(f"Login request failed: {exc}") from exc
        if response.status_code == httpx.codes.UNAUTHORIZED:
            raise UnauthorizedError("Invalid username or password")
        if response.is_error:
            raise PlatformError(f"Login returned {response.status_code}")
        token = response.json().get("token")
        if not token:
            raise PlatformError("Login response did not include a token")
        return token


__all__ = ["AUTH_HEADER", "PlatformClient"]
