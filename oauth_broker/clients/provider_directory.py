"""Resolve a (provider, tenant) pair to endpoints and client credentials."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from oauth_broker.core.config import OAuthSettings
from oauth_broker.core.errors import TenantNotConfiguredError, UnknownProviderError
from oauth_broker.models.providers import Provider, ProviderEndpoints, get_endpoints


@dataclass(frozen=True)
class ResolvedProvider:
    """Everything needed to talk to one provider on behalf of one tenant."""

    endpoints: ProviderEndpoints
    tenant: str
    client_id: str
    client_secret: str
    scopes: tuple[str, ...]
    redirect_uri: str = ""

    @property
    def provider(self) -> Provider:
        return self.endpoints.provider

    @property
    def auth_url(self) -> str:
        return self.endpoints.auth_url

    @property
    def token_url(self) -> str:
        return self.endpoints.token_url


class ProviderDirectory:
    """Look up provider rows and per-tenant OAuth applications."""

    def __init__(self, oauth_settings: OAuthSettings) -> None:
        self._settings = oauth_settings

    def normalize_tenant(self, tenant: Optional[str]) -> str:
        return (tenant or "").strip() or self._settings.default_tenant

    def parse_provider(self, provider: Provider | str) -> Provider:
        try:
            return Provider(str(getattr(provider, "value", provider)).strip().lower())
        except ValueError as exc:
            raise UnknownProviderError(detail=f"unknown provider: {provider}") from exc

    def resolve(
        self,
        provider: Provider | str,
        tenant: Optional[str],
        redirect_uri: Optional[str] = None,
    ) -> ResolvedProvider:
        parsed = self.parse_provider(provider)
        tenant_name = self.normalize_tenant(tenant)
        credentials = self._settings.credentials_for(parsed, tenant_name)
        if credentials is None:
            raise TenantNotConfiguredError(
                detail=f"tenant {tenant_name!r} has no {parsed.value} configuration"
            )
        return ResolvedProvider(
            endpoints=get_endpoints(parsed),
            tenant=tenant_name,
            client_id=credentials.client_id,
            client_secret=credentials.client_secret,
            scopes=credentials.scopes,
            redirect_uri=redirect_uri or "",
        )


__all__ = ["ProviderDirectory", "ResolvedProvider"]
