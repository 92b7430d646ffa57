"""
Provider OAuth utilities.

Builds authorization URLs and performs the code exchange and refresh calls
for every provider row, including the provider-specific request shapes:
Basic-auth form posts for X and the long-lived token exchanges used by
Facebook and Instagram.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Type
from urllib.parse import urlencode

import httpx

from oauth_broker.clients.provider_directory import ResolvedProvider
from oauth_broker.core.errors import (
    OAuthBrokerError,
    OAuthTokenExchangeError,
    OAuthTokenRefreshError,
    RefreshCredentialUnavailableError,
)
from oauth_broker.core.logging import mask_secret
from oauth_broker.models.oauth import OAuthToken
from oauth_broker.models.providers import RefreshStyle, TokenAuthStyle, TokenUpgrade
from oauth_broker.utils.http import request_token_payload, token_from_payload

logger = logging.getLogger(__name__)


class ProviderOAuthClient:
    """Build authorization URLs, exchange authorization codes and refresh tokens."""

    def __init__(
        self,
        *,
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = timeout_seconds
        self._transport = transport

    def build_authorization_url(
        self,
        provider: ResolvedProvider,
        state: str,
        code_challenge: Optional[str] = None,
    ) -> str:
        """Construct the provider consent URL."""
        params = {
            "client_id": provider.client_id,
            "response_type": "code",
            "scope": " ".join(provider.scopes),
            "state": state,
        }
        if provider.redirect_uri:
            params["redirect_uri"] = provider.redirect_uri
        if code_challenge:
            params["code_challenge"] = code_challenge
            params["code_challenge_method"] = "S256"
        else:
            params["access_type"] = "offline"
            if provider.endpoints.force_consent:
                # Google only issues a refresh token when consent is shown again.
                params["prompt"] = "consent"
        return f"{provider.auth_url}?{urlencode(params)}"

    async def exchange_authorization_code(
        self,
        provider: ResolvedProvider,
        code: str,
        verifier: str = "",
    ) -> OAuthToken:
        """Exchange an authorization code for a token, upgrading it when the provider supports it."""
        endpoints = provider.endpoints
        if endpoints.uses_pkce and not verifier:
            raise OAuthTokenExchangeError(
                detail=f"{provider.provider.value} requires a PKCE verifier"
            )

        data = {
            "code": code,
            "grant_type": "authorization_code",
            "client_id": provider.client_id,
            "redirect_uri": provider.redirect_uri,
        }
        if verifier:
            data["code_verifier"] = verifier

        logger.info(
            "Exchanging authorization code for %s (tenant=%s, pkce=%s)",
            provider.provider.value,
            provider.tenant,
            bool(verifier),
        )
        payload = await self._post_to_token_endpoint(provider, data, OAuthTokenExchangeError)
        token = token_from_payload(payload, error_cls=OAuthTokenExchangeError)

        if endpoints.needs_long_lived_exchange:
            token = await self._upgrade_to_long_lived(provider, endpoints.upgrade, token)

        logger.info(
            "Token exchange for %s succeeded (access_token=%s, expires_at=%s)",
            provider.provider.value,
            mask_secret(token.access_token),
            token.expiry.isoformat() if token.expiry else "unset",
        )
        return token

    async def refresh_token(self, provider: ResolvedProvider, refresh_credential: str) -> OAuthToken:
        """Refresh a token using the provider's refresh shape."""
        if not refresh_credential:
            raise RefreshCredentialUnavailableError(
                detail=f"no refresh credential for {provider.provider.value}"
            )

        endpoints = provider.endpoints
        logger.info(
            "Refreshing %s token via %s (credential=%s)",
            provider.provider.value,
            endpoints.refresh_style.value,
            mask_secret(refresh_credential),
        )

        if endpoints.refresh_style is RefreshStyle.EXCHANGE_TOKEN:
            if endpoints.refresh_call is None:  # pragma: no cover - table invariant
                raise OAuthTokenRefreshError(detail="exchange-token refresh has no endpoint")
            payload = await self._exchange_token_get(
                provider, endpoints.refresh_call, refresh_credential, OAuthTokenRefreshError
            )
            token = token_from_payload(
                payload,
                error_cls=OAuthTokenRefreshError,
                refresh_token=payload.get("access_token"),
            )
        else:
            data = {
                "grant_type": "refresh_token",
                "refresh_token": refresh_credential,
                "client_id": provider.client_id,
            }
            payload = await self._post_to_token_endpoint(provider, data, OAuthTokenRefreshError)
            token = token_from_payload(
                payload,
                error_cls=OAuthTokenRefreshError,
                refresh_token=payload.get("refresh_token") or refresh_credential,
            )

        if token.expiry is None:
            fallback = datetime.now(timezone.utc) + endpoints.typical_lifetime
            logger.warning(
                "Refresh response for %s carried no expires_in; assuming typical lifetime until %s",
                provider.provider.value,
                fallback.isoformat(),
            )
            token = token.model_copy(update={"expiry": fallback})
        return token

    async def _post_to_token_endpoint(
        self,
        provider: ResolvedProvider,
        data: Dict[str, str],
        error_cls: Type[OAuthBrokerError],
    ) -> Dict[str, Any]:
        form = {key: value for key, value in data.items() if value}
        kwargs: Dict[str, Any] = {"data": form}
        if provider.endpoints.token_auth is TokenAuthStyle.BASIC:
            # Client id stays in the body; the secret only travels in the header.
            kwargs["auth"] = httpx.BasicAuth(provider.client_id, provider.client_secret)
        else:
            form["client_secret"] = provider.client_secret
        return await request_token_payload(
            "POST",
            provider.token_url,
            error_cls=error_cls,
            timeout=self._timeout,
            transport=self._transport,
            **kwargs,
        )

    async def _exchange_token_get(
        self,
        provider: ResolvedProvider,
        call: TokenUpgrade,
        access_token: str,
        error_cls: Type[OAuthBrokerError],
    ) -> Dict[str, Any]:
        params = {"grant_type": call.grant_type, call.token_param: access_token}
        if call.include_client_id:
            params["client_id"] = provider.client_id
        if call.include_client_secret:
            params["client_secret"] = provider.client_secret
        return await request_token_payload(
            "GET",
            call.url,
            error_cls=error_cls,
            timeout=self._timeout,
            transport=self._transport,
            params=params,
        )

    async def _upgrade_to_long_lived(
        self,
        provider: ResolvedProvider,
        upgrade: TokenUpgrade,
        token: OAuthToken,
    ) -> OAuthToken:
        try:
            payload = await self._exchange_token_get(
                provider, upgrade, token.access_token, OAuthTokenExchangeError
            )
            upgraded = token_from_payload(
                payload,
                error_cls=OAuthTokenExchangeError,
                refresh_token=payload.get("access_token"),
            )
        except OAuthTokenExchangeError as exc:
            logger.warning(
                "Long-lived token upgrade failed for %s (tenant=%s); falling back to the "
                "short-lived token expiring at %s: %s",
                provider.provider.value,
                provider.tenant,
                token.expiry.isoformat() if token.expiry else "unset",
                exc,
            )
            return token
        logger.info("Upgraded %s token to a long-lived token", provider.provider.value)
        return upgraded


__all__ = ["ProviderOAuthClient"]
