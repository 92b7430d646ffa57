"""
Lifecycle management for persisted provider tokens.

Tokens are refreshed lazily: a caller asking for a token gets the stored one
while it is comfortably inside its lifetime, and a refreshed one otherwise.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx

from oauth_broker.clients.credential_store import CredentialStore
from oauth_broker.clients.provider_directory import ProviderDirectory
from oauth_broker.clients.provider_oauth import ProviderOAuthClient
from oauth_broker.core.errors import OAuthTokenNotFoundError, RefreshCredentialUnavailableError
from oauth_broker.core.logging import mask_secret
from oauth_broker.models.oauth import OAuthToken, TokenIdentity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenStatus:
    exists: bool
    is_valid: bool
    expires_at: int = 0


class TokenLifecycleManager:
    """Serve valid tokens per (user, provider, tenant), refreshing on demand."""

    _REFRESH_WINDOW = timedelta(minutes=5)

    def __init__(
        self,
        store: CredentialStore,
        oauth_client: ProviderOAuthClient,
        directory: ProviderDirectory,
        *,
        client_timeout_seconds: float = 15.0,
    ) -> None:
        self._store = store
        self._oauth = oauth_client
        self._directory = directory
        self._client_timeout = client_timeout_seconds
        self._locks: "weakref.WeakValueDictionary[TokenIdentity, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, identity: TokenIdentity) -> asyncio.Lock:
        lock = self._locks.get(identity)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[identity] = lock
        return lock

    def _load(self, identity: TokenIdentity) -> OAuthToken:
        token = self._store.get_token(identity)
        if token is None:
            raise OAuthTokenNotFoundError(
                detail=f"no token stored for {identity.provider.value} "
                f"(user={identity.user_id}, tenant={identity.tenant})"
            )
        return token

    def _is_fresh(self, token: OAuthToken) -> bool:
        return not token.is_stale(self._REFRESH_WINDOW, now=datetime.now(timezone.utc))

    async def _refresh(self, identity: TokenIdentity, token: OAuthToken) -> OAuthToken:
        provider = self._directory.resolve(identity.provider, identity.tenant)
        credential = token.refresh_token
        if not credential and provider.endpoints.refresh_credential_is_access_token:
            # The current access token doubles as the refresh input here.
            credential = token.access_token
        if not credential:
            raise RefreshCredentialUnavailableError(
                detail=f"{identity.provider.value} token for user {identity.user_id} "
                "has no refresh credential; re-authorization required"
            )

        refreshed = await self._oauth.refresh_token(provider, credential)
        self._store.save_token(identity, refreshed)
        logger.info(
            "Refreshed %s token for user=%s tenant=%s (access_token=%s, expires_at=%s)",
            identity.provider.value,
            identity.user_id,
            identity.tenant,
            mask_secret(refreshed.access_token),
            refreshed.expiry.isoformat() if refreshed.expiry else "unset",
        )
        return refreshed

    async def get_valid_token(self, identity: TokenIdentity) -> OAuthToken:
        """Return a token valid for at least the refresh window, refreshing if needed."""
        token = self._load(identity)
        if self._is_fresh(token):
            return token

        async with self._lock_for(identity):
            # Another task may have refreshed while this one waited.
            token = self._load(identity)
            if self._is_fresh(token):
                return token
            return await self._refresh(identity, token)

    async def create_authenticated_client(
        self,
        identity: TokenIdentity,
        *,
        base_url: str = "",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> httpx.AsyncClient:
        """Return an HTTP client that sends the identity's access token on every request."""
        token = await self.get_valid_token(identity)
        return httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": token.authorization_header()},
            timeout=self._client_timeout,
            transport=transport,
        )

    def is_token_valid(self, identity: TokenIdentity) -> bool:
        """Check validity without refreshing; a missing token is simply invalid."""
        token = self._store.get_token(identity)
        return token is not None and self._is_fresh(token)

    async def force_refresh_token(self, identity: TokenIdentity) -> OAuthToken:
        async with self._lock_for(identity):
            token = self._load(identity)
            return await self._refresh(identity, token)

    def token_status(self, identity: TokenIdentity) -> TokenStatus:
        token = self._store.get_token(identity)
        if token is None:
            return TokenStatus(exists=False, is_valid=False)
        return TokenStatus(exists=True, is_valid=self._is_fresh(token), expires_at=token.expires_at)

    def revoke(self, identity: TokenIdentity) -> None:
        self._store.delete_token(identity)
        logger.info(
            "Revoked %s token for user=%s tenant=%s",
            identity.provider.value,
            identity.user_id,
            identity.tenant,
        )


__all__ = ["TokenLifecycleManager", "TokenStatus"]
