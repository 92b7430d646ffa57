try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import copy
from datetime import timedelta
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from _fakes import InMemoryCredentialStore, oauth_settings, token_expiring_in
from oauth_broker.clients.oauth_state import OAuthStateEncoder
from oauth_broker.clients.provider_directory import ProviderDirectory
from oauth_broker.clients.provider_oauth import ProviderOAuthClient
from oauth_broker.main import app
from oauth_broker.models.oauth import TokenIdentity
from oauth_broker.models.providers import Provider
from oauth_broker.services.token_manager import TokenLifecycleManager
from oauth_broker.services.token_service import TokenService


class DummyProvider:
    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(
            200, json={"access_token": "route-access", "refresh_token": "r", "expires_in": 3600}
        )


@pytest.fixture()
def broker():
    from oauth_broker import dependencies
    from oauth_broker.core.config import get_settings

    provider = DummyProvider()
    store = InMemoryCredentialStore()
    settings = oauth_settings()
    directory = ProviderDirectory(settings)
    oauth_client = ProviderOAuthClient(transport=httpx.MockTransport(provider))
    service = TokenService(
        store=store,
        oauth_client=oauth_client,
        directory=directory,
        state_encoder=OAuthStateEncoder(secret_key="route-secret"),
        manager=TokenLifecycleManager(store, oauth_client, directory),
        oauth_settings=settings,
    )
    base_settings = copy.deepcopy(get_settings())
    base_settings.frontend_base_url = None
    base_settings.environment = "development"

    app.dependency_overrides.update(
        {
            dependencies.get_token_service: lambda: service,
            dependencies.get_app_settings: lambda: base_settings,
        }
    )

    yield provider, store, base_settings

    app.dependency_overrides.clear()


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


def _state_from(url: str) -> str:
    return parse_qs(urlsplit(url).query)["state"][0]


@pytest.mark.anyio
async def test_health_reports_store_state(broker):
    _, store, _ = broker
    async with _client() as client:
        ok = await client.get("/api/health")
        store.healthy = False
        down = await client.get("/api/health")

    assert ok.status_code == 200
    assert down.status_code == 503
    assert down.json()["detail"]["code"] == "SERVICE_UNAVAILABLE"


@pytest.mark.anyio
async def test_start_returns_auth_url(broker):
    _, store, _ = broker
    async with _client() as client:
        response = await client.post(
            "/api/auth/start",
            json={"provider": "x", "tenant": "tenant-x", "user_id": "u1"},
        )

    assert response.status_code == 200
    data = response.json()
    assert data["provider"] == "x"
    assert data["tenant"] == "tenant-x"
    assert data["auth_url"].startswith("https://x.com/i/oauth2/authorize?")
    assert data["state"] in store.verifiers


@pytest.mark.anyio
async def test_start_rejects_unknown_provider(broker):
    async with _client() as client:
        response = await client.post(
            "/api/auth/start", json={"provider": "myspace", "user_id": "u1"}
        )

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["code"] == "INVALID_PROVIDER"
    assert "myspace" in detail["detail"]


@pytest.mark.anyio
async def test_error_detail_hidden_in_production(broker):
    _, _, settings = broker
    settings.environment = "production"
    async with _client() as client:
        response = await client.post(
            "/api/auth/start", json={"provider": "myspace", "user_id": "u1"}
        )

    assert response.json()["detail"] == {"code": "INVALID_PROVIDER", "message": "Invalid OAuth provider"}


@pytest.mark.anyio
async def test_authorize_redirects_for_html_accept(broker):
    async with _client() as client:
        response = await client.get(
            "/api/auth/youtube/authorize",
            params={"user_id": "u1"},
            headers={"accept": "text/html"},
        )

    assert response.status_code == 307
    assert response.headers["location"].startswith("https://accounts.google.com/o/oauth2/auth")


@pytest.mark.anyio
async def test_callback_flow_stores_token(broker):
    provider, store, _ = broker
    async with _client() as client:
        started = await client.get("/api/auth/tiktok/authorize", params={"user_id": "u1"})
        state = started.json()["state"]
        callback = await client.get(
            "/api/auth/tiktok/callback", params={"state": state, "code": "oauth-code"}
        )

    assert callback.status_code == 200
    data = callback.json()
    assert data["user_id"] == "u1"
    assert data["tenant"] == "default"
    assert data["expires_at"] > 0
    assert len(provider.requests) == 1
    identity = TokenIdentity(user_id="u1", provider=Provider.TIKTOK, tenant="default")
    assert store.get_token(identity).access_token == "route-access"


@pytest.mark.anyio
async def test_callback_redirects_when_frontend_available(broker):
    _, _, settings = broker
    settings.frontend_base_url = "https://app.example.com/oauth/success"
    async with _client() as client:
        started = await client.post(
            "/api/auth/start", json={"provider": "tiktok", "user_id": "u1"}
        )
        callback = await client.get(
            "/api/auth/tiktok/callback",
            params={"state": _state_from(started.json()["auth_url"]), "code": "c"},
            headers={"accept": "text/html"},
        )

    assert callback.status_code == 307
    assert callback.headers["location"] == "https://app.example.com/oauth/success"


@pytest.mark.anyio
async def test_callback_tenant_mismatch(broker):
    provider, store, _ = broker
    async with _client() as client:
        started = await client.post(
            "/api/auth/start", json={"provider": "x", "tenant": "tenant-x", "user_id": "u1"}
        )
        callback = await client.post(
            "/api/auth/callback",
            json={"provider": "x", "tenant": "default", "state": started.json()["state"], "code": "c"},
        )

    assert callback.status_code == 400
    assert callback.json()["detail"]["code"] == "TENANT_MISMATCH"
    assert provider.requests == []
    assert store.tokens == {}


@pytest.mark.anyio
async def test_token_routes(broker):
    provider, store, _ = broker
    identity = TokenIdentity(user_id="u1", provider=Provider.YOUTUBE, tenant="default")
    body = {"provider": "youtube", "user_id": "u1"}

    async with _client() as client:
        missing = await client.post("/api/auth/refresh-token", json=body)
        unauthorized = await client.post("/api/auth/is-authorized", json=body)

        store.tokens[identity] = token_expiring_in(timedelta(hours=1))
        authorized = await client.post("/api/auth/is-authorized", json=body)
        status = await client.post("/api/auth/token-status", json=body)
        refreshed = await client.post("/api/auth/refresh-token", json=body)
        revoked = await client.post("/api/auth/revoke", json=body)
        after = await client.post("/api/auth/token-status", json=body)

    assert missing.status_code == 401
    assert missing.json()["detail"]["code"] == "TOKEN_NOT_FOUND"
    assert unauthorized.json()["is_authorized"] is False
    assert authorized.json()["is_authorized"] is True
    assert status.json()["exists"] is True and status.json()["is_valid"] is True
    assert refreshed.status_code == 200
    assert refreshed.json()["expires_at"] > 0
    assert len(provider.requests) == 1
    assert revoked.status_code == 200
    assert after.json() == {"exists": False, "is_valid": False, "expires_at": 0, "message": "No token stored"}
