"""
Authorization flow orchestration.

``TokenService`` is the surface handed to route handlers: it starts and
completes authorization-code flows and delegates lifecycle operations on
stored tokens to the ``TokenLifecycleManager``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

import httpx

from oauth_broker.clients.credential_store import CredentialStore
from oauth_broker.clients.oauth_state import OAuthStateEncoder
from oauth_broker.clients.pkce import code_challenge, generate_code_verifier
from oauth_broker.clients.provider_directory import ProviderDirectory, ResolvedProvider
from oauth_broker.clients.provider_oauth import ProviderOAuthClient
from oauth_broker.core.config import OAuthSettings
from oauth_broker.core.errors import PKCEVerifierNotFoundError, TenantMismatchError
from oauth_broker.core.logging import mask_secret
from oauth_broker.models.oauth import OAuthToken, TokenIdentity
from oauth_broker.models.providers import Provider
from oauth_broker.services.token_manager import TokenLifecycleManager, TokenStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthStart:
    auth_url: str
    state: str
    provider: Provider
    tenant: str
    user_id: str
    pkce_verifier_stored: bool = False


@dataclass(frozen=True)
class CallbackResult:
    identity: TokenIdentity
    token: OAuthToken


def _strip_query(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


class TokenService:
    """Begin and complete OAuth flows and expose the token lifecycle operations."""

    def __init__(
        self,
        store: CredentialStore,
        oauth_client: ProviderOAuthClient,
        directory: ProviderDirectory,
        state_encoder: OAuthStateEncoder,
        manager: TokenLifecycleManager,
        oauth_settings: OAuthSettings,
    ) -> None:
        self._store = store
        self._oauth = oauth_client
        self._directory = directory
        self._state = state_encoder
        self._manager = manager
        self._settings = oauth_settings

    def _resolve(
        self, provider: Provider | str, tenant: Optional[str], redirect_uri: Optional[str]
    ) -> ResolvedProvider:
        redirect = redirect_uri or (
            str(self._settings.default_redirect_uri) if self._settings.default_redirect_uri else ""
        )
        resolved = self._directory.resolve(provider, tenant, redirect)
        if redirect and resolved.endpoints.strip_redirect_query:
            # X compares redirect URIs exactly and the callback URL carries code/state.
            resolved = replace(resolved, redirect_uri=_strip_query(redirect))
        return resolved

    def identity(self, provider: Provider | str, tenant: Optional[str], user_id: str) -> TokenIdentity:
        """Build the storage identity after validating provider and tenant."""
        resolved = self._directory.resolve(provider, tenant)
        return TokenIdentity(user_id=user_id, provider=resolved.provider, tenant=resolved.tenant)

    def begin_auth(
        self,
        provider: Provider | str,
        tenant: Optional[str],
        redirect_uri: Optional[str],
        user_id: str,
    ) -> AuthStart:
        """Create the state (and PKCE verifier when required) and return the consent URL."""
        resolved = self._resolve(provider, tenant, redirect_uri)
        state = self._state.encode_state(user_id, resolved.tenant)

        challenge = None
        if resolved.endpoints.uses_pkce:
            verifier = generate_code_verifier()
            self._store.save_pkce_verifier(state, verifier)
            challenge = code_challenge(verifier)

        auth_url = self._oauth.build_authorization_url(resolved, state, challenge)
        logger.info(
            "Started %s authorization for user=%s tenant=%s (state=%s, pkce=%s)",
            resolved.provider.value,
            user_id,
            resolved.tenant,
            mask_secret(state),
            challenge is not None,
        )
        return AuthStart(
            auth_url=auth_url,
            state=state,
            provider=resolved.provider,
            tenant=resolved.tenant,
            user_id=user_id,
            pkce_verifier_stored=challenge is not None,
        )

    async def complete_callback(
        self,
        provider: Provider | str,
        tenant: Optional[str],
        code: str,
        state: str,
        redirect_uri: Optional[str] = None,
    ) -> CallbackResult:
        """Validate the callback, exchange the code and persist the token for the user in state."""
        payload = self._state.decode_state(state)
        requested_tenant = self._directory.normalize_tenant(tenant)
        if payload.tenant != requested_tenant:
            logger.warning(
                "Tenant mismatch on %s callback: request=%s state=%s",
                getattr(provider, "value", provider),
                requested_tenant,
                payload.tenant,
            )
            raise TenantMismatchError(
                detail=f"callback tenant {requested_tenant!r} != state tenant {payload.tenant!r}"
            )

        resolved = self._resolve(provider, requested_tenant, redirect_uri)

        verifier = ""
        if resolved.endpoints.uses_pkce:
            verifier = self._store.get_and_delete_pkce_verifier(state) or ""
            if not verifier:
                raise PKCEVerifierNotFoundError(detail=f"no verifier for state {mask_secret(state)}")

        token = await self._oauth.exchange_authorization_code(resolved, code, verifier)
        identity = TokenIdentity(
            user_id=payload.user_id, provider=resolved.provider, tenant=resolved.tenant
        )
        self._store.save_token(identity, token)
        logger.info(
            "Stored %s token for user=%s tenant=%s (expires_at=%s)",
            resolved.provider.value,
            identity.user_id,
            identity.tenant,
            token.expiry.isoformat() if token.expiry else "unset",
        )
        return CallbackResult(identity=identity, token=token)

    async def get_valid_token(self, identity: TokenIdentity) -> OAuthToken:
        return await self._manager.get_valid_token(identity)

    async def create_authenticated_client(self, identity: TokenIdentity) -> httpx.AsyncClient:
        return await self._manager.create_authenticated_client(identity)

    def is_token_valid(self, identity: TokenIdentity) -> bool:
        return self._manager.is_token_valid(identity)

    async def force_refresh_token(self, identity: TokenIdentity) -> OAuthToken:
        return await self._manager.force_refresh_token(identity)

    def token_status(self, identity: TokenIdentity) -> TokenStatus:
        return self._manager.token_status(identity)

    def revoke(self, identity: TokenIdentity) -> None:
        self._manager.revoke(identity)

    def health(self) -> None:
        self._store.health()


__all__ = ["AuthStart", "CallbackResult", "TokenService"]
