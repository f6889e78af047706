try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json

import httpx
import pytest

from voicelink.clients.platform import PlatformClient
from voicelink.core.config import PlatformSettings
from voicelink.core.errors import DeviceOfflineError, PlatformError, UnauthorizedError
from voicelink.models.platform import NULL_UUID, Authority


def _client(handler) -> PlatformClient:
    settings = PlatformSettings(
        base_url="https://platform.example.com",
        api_token="service-token",
        rpc_timeout_seconds=7.5,
        read_attempts=2,
    )
    return PlatformClient(settings, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_latest_timeseries_queries_newest_point() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        seen["auth"] = request.headers.get("X-Authorization")
        return httpx.Response(200, json={"on": [{"ts": 1, "value": "true"}]})

    value = await _client(handler).get_latest_timeseries(
        "dev-1", "on", start_ts=100, end_ts=200
    )

    assert value == "true"
    assert seen["path"] == "/api/plugins/telemetry/DEVICE/dev-1/values/timeseries"
    assert seen["params"] == {
        "keys": "on",
        "startTs": "100",
        "endTs": "200",
        "limit": "1",
        "orderBy": "DESC",
    }
    assert seen["auth"] == "Bearer service-token"


@pytest.mark.asyncio
async def test_latest_timeseries_without_points_is_none() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={})

    value = await _client(handler).get_latest_timeseries(
        "dev-1", "on", start_ts=0, end_ts=1
    )

    assert value is None


@pytest.mark.asyncio
async def test_reads_retry_server_errors() -> None:
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        if len(attempts) == 1:
            return httpx.Response(503)
        return httpx.Response(200, json=[{"key": "mode", "value": "cool"}])

    value = await _client(handler).get_client_attribute("dev-1", "mode")

    assert value == "cool"
    assert len(attempts) == 2


@pytest.mark.asyncio
async def test_client_errors_are_not_retried() -> None:
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        return httpx.Response(404)

    with pytest.raises(PlatformError):
        await _client(handler).get_client_attribute("dev-1", "mode")
    assert len(attempts) == 1


@pytest.mark.asyncio
async def test_client_attribute_matches_key() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path.endswith("/values/attributes/CLIENT_SCOPE")
        return httpx.Response(
            200,
            json=[{"key": "firmware", "value": "1.2"}, {"key": "locked", "value": True}],
        )

    client = _client(handler)

    assert await client.get_client_attribute("dev-1", "locked") is True
    assert await client.get_client_attribute("dev-1", "color") is None


@pytest.mark.asyncio
async def test_oneway_rpc_body_carries_timeout_in_ms() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200)

    await _client(handler).send_oneway_rpc("dev-1", "setPower", {"state": True})

    assert seen["path"] == "/api/plugins/rpc/oneway/dev-1"
    assert seen["body"] == {
        "method": "setPower",
        "params": {"state": True},
        "timeout": 7500,
    }


@pytest.mark.asyncio
async def test_oneway_rpc_failure_means_device_offline() -> None:
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        return httpx.Response(504)

    with pytest.raises(DeviceOfflineError) as excinfo:
        await _client(handler).send_oneway_rpc("dev-1", "setPower", 1)

    assert excinfo.value.device_id == "dev-1"
    assert len(attempts) == 1


@pytest.mark.asyncio
async def test_current_user_parses_platform_ids() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["X-Authorization"] == "Bearer session-jwt"
        return httpx.Response(
            200,
            json={
                "id": {"entityType": "USER", "id": "user-1"},
                "tenantId": {"entityType": "TENANT", "id": "tenant-1"},
                "customerId": {"entityType": "CUSTOMER", "id": NULL_UUID},
                "authority": "TENANT_ADMIN",
                "email": "admin@example.com",
            },
        )

    user = await _client(handler).get_current_user("session-jwt")

    assert user.user_id == "user-1"
    assert user.tenant_id == "tenant-1"
    assert user.customer_id is None
    assert user.authority is Authority.TENANT_ADMIN


@pytest.mark.asyncio
async def test_expired_session_is_unauthorized() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401)

    with pytest.raises(UnauthorizedError):
        await _client(handler).get_current_user("stale")


@pytest.mark.asyncio
async def test_login_returns_session_token() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content) == {"username": "ann", "password": "pw"}
        return httpx.Response(200, json={"token": "jwt", "refreshToken": "r"})

    assert await _client(handler).login("ann", "pw") == "jwt"


@pytest.mark.asyncio
async def test_login_with_bad_credentials_is_unauthorized() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"message": "Invalid username or password"})

    with pytest.raises(UnauthorizedError):
        await _client(handler).login("ann", "wrong")
