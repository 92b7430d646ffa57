try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import base64
import json
import logging
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from _fakes import oauth_settings
from oauth_broker.clients.provider_directory import ProviderDirectory
from oauth_broker.clients.provider_oauth import ProviderOAuthClient
from oauth_broker.core.errors import (
    OAuthTokenExchangeError,
    OAuthTokenRefreshError,
    RefreshCredentialUnavailableError,
)
from oauth_broker.models.providers import Provider

REDIRECT = "https://broker.example.com/callback"


class TokenEndpoint:
    """Records requests and answers them from a queue of canned responses."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)

    def form(self, index: int = 0) -> dict[str, str]:
        return {k: v[0] for k, v in parse_qs(self.requests[index].content.decode()).items()}

    def query(self, index: int = 0) -> dict[str, str]:
        return dict(self.requests[index].url.params)


def _client(endpoint: TokenEndpoint) -> ProviderOAuthClient:
    return ProviderOAuthClient(timeout_seconds=2, transport=httpx.MockTransport(endpoint))


def _resolve(provider: Provider):
    return ProviderDirectory(oauth_settings()).resolve(provider, "default", REDIRECT)


def test_youtube_authorization_url_forces_consent() -> None:
    url = ProviderOAuthClient().build_authorization_url(_resolve(Provider.YOUTUBE), "state-1")

    parts = urlsplit(url)
    params = {k: v[0] for k, v in parse_qs(parts.query).items()}
    assert url.startswith("https://accounts.google.com/o/oauth2/auth?")
    assert params["access_type"] == "offline"
    assert params["prompt"] == "consent"
    assert params["scope"] == "scope.a scope.b"
    assert params["redirect_uri"] == REDIRECT
    assert params["state"] == "state-1"
    assert "code_challenge" not in params


def test_pkce_authorization_url_carries_challenge() -> None:
    url = ProviderOAuthClient().build_authorization_url(_resolve(Provider.X), "s", "challenge-value")

    params = {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}
    assert params["code_challenge"] == "challenge-value"
    assert params["code_challenge_method"] == "S256"
    assert "prompt" not in params


@pytest.mark.asyncio
async def test_x_exchange_uses_basic_auth_and_verifier() -> None:
    endpoint = TokenEndpoint(
        httpx.Response(
            200,
            json={
                "access_token": "x-access",
                "refresh_token": "x-refresh",
                "token_type": "bearer",
                "expires_in": 7200,
            },
        )
    )

    token = await _client(endpoint).exchange_authorization_code(
        _resolve(Provider.X), "abc", "verifier-123"
    )

    request = endpoint.requests[0]
    expected = base64.b64encode(b"x-client:x-secret").decode()
    assert request.headers["Authorization"] == f"Basic {expected}"
    form = endpoint.form()
    assert form["code_verifier"] == "verifier-123"
    assert form["client_id"] == "x-client"
    assert form["grant_type"] == "authorization_code"
    assert "client_secret" not in form
    assert token.access_token == "x-access"
    assert token.refresh_token == "x-refresh"
    assert token.expiry > datetime.now(timezone.utc) + timedelta(minutes=110)


@pytest.mark.asyncio
async def test_pkce_exchange_without_verifier_fails_before_network() -> None:
    endpoint = TokenEndpoint()

    with pytest.raises(OAuthTokenExchangeError):
        await _client(endpoint).exchange_authorization_code(_resolve(Provider.X), "abc")

    assert endpoint.requests == []


@pytest.mark.asyncio
async def test_form_exchange_sends_client_secret_and_keeps_unset_expiry() -> None:
    endpoint = TokenEndpoint(httpx.Response(200, json={"access_token": "yt-access"}))

    token = await _client(endpoint).exchange_authorization_code(_resolve(Provider.YOUTUBE), "code-1")

    form = endpoint.form()
    assert form["client_secret"] == "youtube-secret"
    assert form["code"] == "code-1"
    assert "code_verifier" not in form
    assert "Authorization" not in endpoint.requests[0].headers
    assert token.expiry is None
    assert token.refresh_token == ""


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(400, json={"error": "invalid_grant"}),
        httpx.Response(200, text="<html>not json</html>"),
        httpx.Response(200, json=["unexpected"]),
        httpx.Response(200, json={"token_type": "bearer"}),
    ],
)
async def test_exchange_failures_are_wrapped(response: httpx.Response) -> None:
    endpoint = TokenEndpoint(response)

    with pytest.raises(OAuthTokenExchangeError) as excinfo:
        await _client(endpoint).exchange_authorization_code(_resolve(Provider.TIKTOK), "c")

    assert excinfo.value.detail


@pytest.mark.asyncio
async def test_exchange_error_detail_includes_provider_body() -> None:
    endpoint = TokenEndpoint(httpx.Response(401, json={"error": "invalid_client"}))

    with pytest.raises(OAuthTokenExchangeError) as excinfo:
        await _client(endpoint).exchange_authorization_code(_resolve(Provider.TIKTOK), "c")

    assert "status=401" in excinfo.value.detail
    assert "invalid_client" in excinfo.value.detail


@pytest.mark.asyncio
async def test_transport_failure_is_wrapped() -> None:
    def broken(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    client = ProviderOAuthClient(transport=httpx.MockTransport(broken))

    with pytest.raises(OAuthTokenRefreshError) as excinfo:
        await client.refresh_token(_resolve(Provider.TIKTOK), "refresh")

    assert isinstance(excinfo.value.__cause__, httpx.ConnectTimeout)


@pytest.mark.asyncio
async def test_facebook_exchange_upgrades_to_long_lived_token() -> None:
    endpoint = TokenEndpoint(
        httpx.Response(200, json={"access_token": "short", "expires_in": 3600}),
        httpx.Response(200, json={"access_token": "long", "expires_in": 5184000}),
    )

    token = await _client(endpoint).exchange_authorization_code(_resolve(Provider.FACEBOOK), "c")

    upgrade = endpoint.requests[1]
    assert upgrade.method == "GET"
    assert upgrade.url.host == "graph.facebook.com"
    params = endpoint.query(1)
    assert params["grant_type"] == "fb_exchange_token"
    assert params["fb_exchange_token"] == "short"
    assert params["client_id"] == "facebook-client"
    assert params["client_secret"] == "facebook-secret"
    assert token.access_token == "long"
    assert token.refresh_token == "long"
    assert token.expiry > datetime.now(timezone.utc) + timedelta(days=59)


@pytest.mark.asyncio
async def test_instagram_upgrade_failure_falls_back_to_short_lived_token(caplog) -> None:
    endpoint = TokenEndpoint(
        httpx.Response(200, json={"access_token": "short-ig", "expires_in": 3600}),
        httpx.Response(500, text="upstream unavailable"),
    )

    with caplog.at_level(logging.WARNING, logger="oauth_broker.clients.provider_oauth"):
        token = await _client(endpoint).exchange_authorization_code(
            _resolve(Provider.INSTAGRAM), "c"
        )

    params = endpoint.query(1)
    assert params["grant_type"] == "ig_exchange_token"
    assert params["access_token"] == "short-ig"
    assert "client_id" not in params
    assert token.access_token == "short-ig"
    assert token.refresh_token == ""
    assert any("falling back" in record.getMessage() for record in caplog.records)
    assert all("short-ig" not in record.getMessage() for record in caplog.records)


@pytest.mark.asyncio
async def test_instagram_refresh_copies_access_token_into_refresh_token() -> None:
    endpoint = TokenEndpoint(
        httpx.Response(200, json={"access_token": "ig-new", "expires_in": 5184000})
    )

    token = await _client(endpoint).refresh_token(_resolve(Provider.INSTAGRAM), "tok123")

    request = endpoint.requests[0]
    assert request.method == "GET"
    assert request.url.path == "/refresh_access_token"
    assert endpoint.query() == {"grant_type": "ig_refresh_token", "access_token": "tok123"}
    assert token.access_token == "ig-new"
    assert token.refresh_token == "ig-new"


@pytest.mark.asyncio
async def test_x_refresh_uses_basic_auth_form() -> None:
    endpoint = TokenEndpoint(
        httpx.Response(200, json={"access_token": "a2", "refresh_token": "r2", "expires_in": 7200})
    )

    token = await _client(endpoint).refresh_token(_resolve(Provider.X), "r1")

    assert endpoint.requests[0].headers["Authorization"].startswith("Basic ")
    assert endpoint.form() == {"grant_type": "refresh_token", "refresh_token": "r1", "client_id": "x-client"}
    assert token.refresh_token == "r2"


@pytest.mark.asyncio
async def test_standard_refresh_keeps_previous_refresh_token_and_assumes_lifetime(caplog) -> None:
    endpoint = TokenEndpoint(httpx.Response(200, content=json.dumps({"access_token": "a2"})))

    with caplog.at_level(logging.WARNING):
        token = await _client(endpoint).refresh_token(_resolve(Provider.YOUTUBE), "keep-me")

    assert endpoint.form()["client_secret"] == "youtube-secret"
    assert token.refresh_token == "keep-me"
    remaining = token.expiry - datetime.now(timezone.utc)
    assert timedelta(minutes=55) < remaining <= timedelta(hours=1)
    assert any("expires_in" in record.getMessage() for record in caplog.records)


@pytest.mark.asyncio
async def test_refresh_without_credential_fails_fast() -> None:
    endpoint = TokenEndpoint()

    with pytest.raises(RefreshCredentialUnavailableError):
        await _client(endpoint).refresh_token(_resolve(Provider.YOUTUBE), "")

    assert endpoint.requests == []


@pytest.mark.asyncio
async def test_facebook_refresh_exchanges_current_token() -> None:
    endpoint = TokenEndpoint(
        httpx.Response(200, json={"access_token": "fb-new", "expires_in": 5184000})
    )

    token = await _client(endpoint).refresh_token(_resolve(Provider.FACEBOOK), "fb-current")

    request = endpoint.requests[0]
    assert request.method == "GET"
    assert request.url.host == "graph.facebook.com"
    assert request.url.path == "/oauth/access_token"
    assert endpoint.query() == {
        "grant_type": "fb_exchange_token",
        "fb_exchange_token": "fb-current",
        "client_id": "facebook-client",
        "client_secret": "facebook-secret",
    }
    assert token.access_token == "fb-new"
    assert token.refresh_token == "fb-new"
    assert token.expiry > datetime.now(timezone.utc) + timedelta(days=59)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "provider, response, expected",
    [
        (Provider.TIKTOK, httpx.Response(400, json={"error": "invalid_grant"}), "invalid_grant"),
        (Provider.TIKTOK, httpx.Response(200, text="<html>oops</html>"), "malformed JSON"),
        (Provider.INSTAGRAM, httpx.Response(200, json={"expires_in": 60}), "missing access_token"),
        (Provider.X, httpx.Response(401, text="unauthorized client"), "unauthorized client"),
    ],
)
async def test_refresh_failures_are_wrapped(
    provider: Provider, response: httpx.Response, expected: str
) -> None:
    endpoint = TokenEndpoint(response)

    with pytest.raises(OAuthTokenRefreshError) as excinfo:
        await _client(endpoint).refresh_token(_resolve(provider), "refresh-credential")

    assert expected in excinfo.value.detail
    assert len(endpoint.requests) == 1
