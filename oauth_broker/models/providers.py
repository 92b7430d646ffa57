"""
Static endpoint table for the supported OAuth providers.

Each row captures the provider quirks that drive the exchange and refresh
code paths, so adding a provider means adding a row here plus any new
request shape in the token client.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional


class Provider(str, Enum):
    YOUTUBE = "youtube"
    X = "x"
    FACEBOOK = "facebook"
    TIKTOK = "tiktok"
    INSTAGRAM = "instagram"


class TokenAuthStyle(str, Enum):
    """How client credentials reach the token endpoint."""

    FORM = "form"
    BASIC = "basic"


class RefreshStyle(str, Enum):
    STANDARD = "standard"
    BASIC_AUTH_FORM = "basic_auth_form"
    EXCHANGE_TOKEN = "exchange_token"


@dataclass(frozen=True)
class TokenUpgrade:
    """GET call trading a current access token for a longer-lived one."""

    url: str
    grant_type: str
    token_param: str
    include_client_id: bool = False
    include_client_secret: bool = False


@dataclass(frozen=True)
class ProviderEndpoints:
    provider: Provider
    auth_url: str
    token_url: str
    uses_pkce: bool
    token_auth: TokenAuthStyle
    refresh_style: RefreshStyle
    typical_lifetime: timedelta
    upgrade: Optional[TokenUpgrade] = None
    refresh_call: Optional[TokenUpgrade] = None
    refresh_credential_is_access_token: bool = False
    force_consent: bool = False
    strip_redirect_query: bool = False

    @property
    def needs_long_lived_exchange(self) -> bool:
        return self.upgrade is not None


_FACEBOOK_EXCHANGE = TokenUpgrade(
    url="https://graph.facebook.com/oauth/access_token",
    grant_type="fb_exchange_token",
    token_param="fb_exchange_token",
    include_client_id=True,
    include_client_secret=True,
)

PROVIDER_ENDPOINTS: Mapping[Provider, ProviderEndpoints] = MappingProxyType(
    {
        Provider.YOUTUBE: ProviderEndpoints(
            provider=Provider.YOUTUBE,
            auth_url="https://accounts.google.com/o/oauth2/auth",
            token_url="https://oauth2.googleapis.com/token",
            uses_pkce=False,
            token_auth=TokenAuthStyle.FORM,
            refresh_style=RefreshStyle.STANDARD,
            typical_lifetime=timedelta(hours=1),
            force_consent=True,
        ),
        Provider.X: ProviderEndpoints(
            provider=Provider.X,
            auth_url="https://x.com/i/oauth2/authorize",
            token_url="https://api.x.com/2/oauth2/token",
            uses_pkce=True,
            token_auth=TokenAuthStyle.BASIC,
            refresh_style=RefreshStyle.BASIC_AUTH_FORM,
            typical_lifetime=timedelta(hours=2),
            strip_redirect_query=True,
        ),
        Provider.FACEBOOK: ProviderEndpoints(
            provider=Provider.FACEBOOK,
            auth_url="https://www.facebook.com/v18.0/dialog/oauth",
            token_url="https://graph.facebook.com/v18.0/oauth/access_token",
            uses_pkce=False,
            token_auth=TokenAuthStyle.FORM,
            refresh_style=RefreshStyle.EXCHANGE_TOKEN,
            typical_lifetime=timedelta(days=60),
            upgrade=_FACEBOOK_EXCHANGE,
            refresh_call=_FACEBOOK_EXCHANGE,
        ),
        Provider.TIKTOK: ProviderEndpoints(
            provider=Provider.TIKTOK,
            auth_url="https://www.tiktok.com/v2/auth/authorize/",
            token_url="https://open.tiktokapis.com/v2/oauth/token/",
            uses_pkce=False,
            token_auth=TokenAuthStyle.FORM,
            refresh_style=RefreshStyle.STANDARD,
            typical_lifetime=timedelta(hours=24),
        ),
        Provider.INSTAGRAM: ProviderEndpoints(
            provider=Provider.INSTAGRAM,
            auth_url="https://api.instagram.com/oauth/authorize",
            token_url="https://api.instagram.com/oauth/access_token",
            uses_pkce=False,
            token_auth=TokenAuthStyle.FORM,
            refresh_style=RefreshStyle.EXCHANGE_TOKEN,
            typical_lifetime=timedelta(days=60),
            upgrade=TokenUpgrade(
                url="https://graph.instagram.com/access_token",
                grant_type="ig_exchange_token",
                token_param="access_token",
                include_client_secret=True,
            ),
            refresh_call=TokenUpgrade(
                url="https://graph.instagram.com/refresh_access_token",
                grant_type="ig_refresh_token",
                token_param="access_token",
            ),
            refresh_credential_is_access_token=True,
        ),
    }
)


def get_endpoints(provider: Provider | str) -> ProviderEndpoints:
    """Return the endpoint row for ``provider``; raises ``ValueError`` if unknown."""
    return PROVIDER_ENDPOINTS[Provider(provider)]


__all__ = [
    "PROVIDER_ENDPOINTS",
    "Provider",
    "ProviderEndpoints",
    "RefreshStyle",
    "TokenAuthStyle",
    "TokenUpgrade",
    "get_endpoints",
]
