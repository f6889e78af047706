try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import base64
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from voicelink.clients import DeviceRegistry, TokenStore
from voicelink.core.config import AlexaOAuthSettings, GoogleOAuthSettings, OAuthSettings
from voicelink.core.errors import UnauthorizedError
from voicelink.main import app
from voicelink.models.device import Assistant, Device
from voicelink.models.platform import Authority, PlatformUser
from voicelink.services import (
    CapabilityService,
    CommandTranslator,
    FulfillmentRouter,
    OAuthAuthority,
    SkillService,
    StateQueryEngine,
    external_user_id_for,
)

REDIRECT_URI = "https://oauth-redirect.example.com/r/project"


class StubPlatform:
    def __init__(self) -> None:
        self.rpc_calls = []
        self.users = {
            "admin-session": PlatformUser(
                user_id="admin-1", tenant_id="tenant-1", authority=Authority.TENANT_ADMIN
            ),
            "customer-session": PlatformUser(
                user_id="cust-1",
                tenant_id="tenant-1",
                customer_id="customer-1",
                authority=Authority.CUSTOMER_USER,
            ),
        }

    async def get_current_user(self, session_token: str) -> PlatformUser:
        try:
            return self.users[session_token]
        except KeyError:
            raise UnauthorizedError("Platform session is invalid or expired") from None

    async def login(self, username: str, password: str) -> str:
        if (username, password) != ("admin@example.com", "secret"):
            raise UnauthorizedError("Invalid username or password")
        return "admin-session"

    async def send_oneway_rpc(self, device_id, method, params) -> None:
        self.rpc_calls.append((device_id, method, params))

    async def get_latest_telemetry(self, device_id, keys=None):
        return {"temperature": [{"ts": 1, "value": "21.5"}]}


pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture()
def env(tmp_path):
    from voicelink import dependencies
    from voicelink.api import security

    db_path = str(tmp_path / "gateway.db")
    authorities = {
        Assistant.GOOGLE: OAuthAuthority(
            TokenStore(db_path, "google"),
            GoogleOAuthSettings(client_id="google-client", client_secret="google-secret"),
            OAuthSettings(),
        ),
        Assistant.ALEXA: OAuthAuthority(
            TokenStore(db_path, "alexa"),
            AlexaOAuthSettings(
                client_id="alexa-client",
                client_secret="alexa-secret",
                redirect_uris=REDIRECT_URI,
            ),
            OAuthSettings(),
        ),
    }
    registry = DeviceRegistry(db_path)
    registry.save_device(
        Device(
            id="plug-1",
            tenant_id="tenant-1",
            customer_id="customer-1",
            name="Kettle plug",
            type="outlet",
            additional_info={
                "alexaCapabilities": {
                    "enabled": True,
                    "deviceType": "SMARTPLUG",
                    "traits": ["OnOff"],
                }
            },
        )
    )
    registry.save_device(
        Device(id="lamp-1", tenant_id="tenant-1", name="Desk lamp", type="light")
    )
    capabilities = CapabilityService(registry)
    platform = StubPlatform()
    translator = CommandTranslator()

    def authority_for(assistant: Assistant) -> OAuthAuthority:
        return authorities[assistant]

    app.dependency_overrides.clear()
    app.dependency_overrides.update(
        {
            security.resolve_authority: authority_for,
            dependencies.get_platform_client: lambda: platform,
            dependencies.get_capability_service: lambda: capabilities,
            dependencies.get_fulfillment_router: lambda: FulfillmentRouter(
                authorities[Assistant.GOOGLE],
                capabilities,
                StateQueryEngine(platform),
                translator,
                platform,
            ),
            dependencies.get_skill_service: lambda: SkillService(
                authorities[Assistant.ALEXA], capabilities, translator, platform
            ),
        }
    )
    try:
        yield {"authorities": authorities, "platform": platform, "registry": registry}
    finally:
        app.dependency_overrides.clear()


async def _request(method: str, url: str, **kwargs) -> httpx.Response:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport, base_url="http://testserver"
    ) as client:
        return await client.request(method, url, **kwargs)


def _basic(client_id: str, client_secret: str) -> str:
    raw = f"{client_id}:{client_secret}".encode("utf-8")
    return "Basic " + base64.b64encode(raw).decode("ascii")


def _link(authority: OAuthAuthority, assistant: str = "google") -> str:
    return authority.issue_authorization_code(
        "tenant-1", "admin-1", external_user_id_for(assistant, "tenant-1", "admin-1")
    )


async def test_health() -> None:
    response = await _request("GET", "/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "environment": "test"}


async def test_token_endpoint_accepts_basic_auth(env) -> None:
    code = _link(env["authorities"][Assistant.GOOGLE])

    response = await _request(
        "POST",
        "/api/google/oauth/token",
        data={"grant_type": "authorization_code", "code": code},
        headers={"Authorization": _basic("google-client", "google-secret")},
    )

    assert response.status_code == 200
    assert response.headers["cache-control"] == "no-store"
    body = response.json()
    assert body["token_type"] == "Bearer"
    assert body["expires_in"] == 3600
    assert body["access_token"] and body["refresh_token"]


async def test_token_endpoint_reports_oauth_errors(env) -> None:
    response = await _request(
        "POST",
        "/api/google/oauth/token",
        data={
            "grant_type": "client_credentials",
            "client_id": "google-client",
            "client_secret": "google-secret",
        },
    )

    assert response.status_code == 400
    assert response.json() == {
        "error": "unsupported_grant_type",
        "error_description": "Grant type not supported: client_credentials",
    }


async def test_token_endpoint_rejects_wrong_secret(env) -> None:
    code = _link(env["authorities"][Assistant.GOOGLE])

    response = await _request(
        "POST",
        "/api/google/oauth/token",
        data={
            "grant_type": "authorization_code",
            "code": code,
            "client_id": "google-client",
            "client_secret": "nope",
        },
    )

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_client"


async def test_refresh_grant_omits_refresh_token(env) -> None:
    authority = env["authorities"][Assistant.GOOGLE]
    issued = authority.exchange_code(_link(authority), "google-client", "google-secret")

    response = await _request(
        "POST",
        "/api/google/oauth/token",
        data={
            "grant_type": "refresh_token",
            "refresh_token": issued.refresh_token,
            "client_id": "google-client",
            "client_secret": "google-secret",
        },
    )

    assert response.status_code == 200
    assert "refresh_token" not in response.json()


async def test_revoke_returns_empty_body(env) -> None:
    authority = env["authorities"][Assistant.GOOGLE]
    issued = authority.exchange_code(_link(authority), "google-client", "google-secret")

    first = await _request(
        "POST", "/api/google/oauth/revoke", data={"token": issued.access_token}
    )
    second = await _request(
        "POST", "/api/google/oauth/revoke", data={"token": issued.access_token}
    )

    assert first.status_code == 200
    assert first.content == b""
    assert second.status_code == 200


async def test_authorize_with_session_redirects_with_code(env) -> None:
    response = await _request(
        "POST",
        "/api/alexa/oauth/authorize",
        params={
            "client_id": "alexa-client",
            "redirect_uri": REDIRECT_URI,
            "state": "xyz",
        },
        headers={"X-Authorization": "Bearer admin-session"},
    )

    assert response.status_code == 302
    location = urlsplit(response.headers["location"])
    query = parse_qs(location.query)
    assert f"{location.scheme}://{location.netloc}{location.path}" == REDIRECT_URI
    assert query["state"] == ["xyz"]
    issued = env["authorities"][Assistant.ALEXA].exchange_code(
        query["code"][0], "alexa-client", "alexa-secret"
    )
    assert not issued.is_error


async def test_authorize_rejects_unlisted_redirect(env) -> None:
    response = await _request(
        "GET",
        "/api/alexa/oauth/authorize",
        params={"client_id": "alexa-client", "redirect_uri": "https://evil.example"},
    )

    assert response.status_code == 400


async def test_authorize_describes_login_form(env) -> None:
    response = await _request(
        "GET",
        "/api/google/oauth/authorize",
        params={"client_id": "google-client", "redirect_uri": REDIRECT_URI, "state": "s"},
    )

    assert response.status_code == 200
    assert response.json()["login_url"] == "/api/google/oauth/login"


async def test_login_with_bad_credentials_is_unauthorized(env) -> None:
    response = await _request(
        "POST",
        "/api/google/oauth/login",
        params={"client_id": "google-client", "redirect_uri": REDIRECT_URI},
        data={"username": "admin@example.com", "password": "wrong"},
    )

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


async def test_login_issues_code(env) -> None:
    response = await _request(
        "POST",
        "/api/google/oauth/login",
        params={"client_id": "google-client", "redirect_uri": REDIRECT_URI, "state": "s"},
        data={"username": "admin@example.com", "password": "secret"},
    )

    assert response.status_code == 302
    assert "code=" in response.headers["location"]


async def test_fulfillment_without_bearer_is_unauthorized(env) -> None:
    response = await _request(
        "POST",
        "/api/google/fulfillment",
        json={"requestId": "r", "inputs": [{"intent": "action.devices.SYNC"}]},
    )

    assert response.status_code == 401


async def test_fulfillment_unknown_intent_is_bad_request(env) -> None:
    authority = env["authorities"][Assistant.GOOGLE]
    issued = authority.exchange_code(_link(authority), "google-client", "google-secret")

    response = await _request(
        "POST",
        "/api/google/fulfillment",
        json={"requestId": "r", "inputs": [{"intent": "action.devices.REBOOT"}]},
        headers={"Authorization": f"Bearer {issued.access_token}"},
    )

    assert response.status_code == 400


async def test_skill_lists_and_commands_enabled_devices(env) -> None:
    authority = env["authorities"][Assistant.ALEXA]
    issued = authority.exchange_code(
        _link(authority, "alexa"), "alexa-client", "alexa-secret"
    )
    headers = {"Authorization": f"Bearer {issued.access_token}"}

    listed = await _request("GET", "/api/alexa/skill/devices", headers=headers)
    command = await _request(
        "POST",
        "/api/alexa/skill/devices/plug-1/command",
        json={"command": "Alexa.PowerController.SetPower", "value": "ON"},
        headers=headers,
    )
    disabled = await _request(
        "POST",
        "/api/alexa/skill/devices/lamp-1/command",
        json={"command": "SetPower", "value": True},
        headers=headers,
    )

    assert listed.status_code == 200
    assert [device["id"] for device in listed.json()] == ["plug-1"]
    assert command.status_code == 200
    assert command.json() == {"status": "ok"}
    assert disabled.status_code == 404
    assert env["platform"].rpc_calls == [("plug-1", "setPower", {"state": True})]


async def test_skill_command_rejects_unparseable_value(env) -> None:
    authority = env["authorities"][Assistant.ALEXA]
    issued = authority.exchange_code(
        _link(authority, "alexa"), "alexa-client", "alexa-secret"
    )

    response = await _request(
        "POST",
        "/api/alexa/skill/devices/plug-1/command",
        json={"command": "setBrightness", "value": "abc"},
        headers={"Authorization": f"Bearer {issued.access_token}"},
    )

    assert response.status_code == 400
    assert env["platform"].rpc_calls == []


async def test_skill_telemetry(env) -> None:
    authority = env["authorities"][Assistant.ALEXA]
    issued = authority.exchange_code(
        _link(authority, "alexa"), "alexa-client", "alexa-secret"
    )

    response = await _request(
        "GET",
        "/api/alexa/skill/devices/plug-1/telemetry",
        params={"keys": "temperature"},
        headers={"Authorization": f"Bearer {issued.access_token}"},
    )

    assert response.status_code == 200
    assert response.json() == {"temperature": [{"ts": 1, "value": "21.5"}]}


async def test_device_management_requires_session(env) -> None:
    response = await _request("GET", "/api/google/devices")

    assert response.status_code == 401


async def test_admin_enables_device_with_defaults(env) -> None:
    response = await _request(
        "POST",
        "/api/google/devices/lamp-1/enabled",
        json={"enabled": True},
        headers={"X-Authorization": "Bearer admin-session"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["enabled"] is True
    assert body["capabilities"]["deviceType"] == "action.devices.types.LIGHT"
    assert env["registry"].find_device("lamp-1").is_enabled_for(Assistant.GOOGLE)


async def test_customer_cannot_configure_devices(env) -> None:
    response = await _request(
        "POST",
        "/api/google/devices/plug-1/enabled",
        json={"enabled": True},
        headers={"X-Authorization": "Bearer customer-session"},
    )

    assert response.status_code == 403


async def test_customer_sees_only_assigned_devices(env) -> None:
    response = await _request(
        "GET",
        "/api/alexa/devices",
        headers={"X-Authorization": "Bearer customer-session"},
    )

    assert response.status_code == 200
    assert [device["id"] for device in response.json()] == ["plug-1"]
