"""
Exception hierarchy for the OAuth token lifecycle.

Every error carries a stable ``code`` and an HTTP status so route handlers can
translate failures without inspecting messages. ``detail`` holds diagnostic
text (provider status codes, response bodies) meant for operators.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Optional


class OAuthBrokerError(Exception):
    """Base class for all broker failures."""

    code = "INTERNAL_SERVER_ERROR"
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, *, detail: Optional[str] = None) -> None:
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message


class OAuthStateError(OAuthBrokerError):
    """Raised when the ``state`` parameter cannot be decoded."""

    code = "INVALID_STATE"
    status_code = HTTPStatus.BAD_REQUEST
    default_message = "Invalid OAuth state parameter"


class TenantMismatchError(OAuthBrokerError):
    """Raised when the callback tenant differs from the one embedded in state."""

    code = "TENANT_MISMATCH"
    status_code = HTTPStatus.BAD_REQUEST
    default_message = "Tenant does not match the OAuth state"


class PKCEVerifierNotFoundError(OAuthBrokerError):
    """Raised when no PKCE verifier is stored for a callback's state."""

    code = "PKCE_VERIFIER_NOT_FOUND"
    status_code = HTTPStatus.BAD_REQUEST
    default_message = "PKCE verifier not found or expired"


class OAuthTokenExchangeError(OAuthBrokerError):
    """Raised when an authorization code cannot be turned into a token."""

    code = "TOKEN_EXCHANGE_FAILED"
    status_code = HTTPStatus.BAD_GATEWAY
    default_message = "OAuth token exchange failed"


class OAuthTokenNotFoundError(OAuthBrokerError):
    """Raised when no persisted OAuth token is available for an identity."""

    code = "TOKEN_NOT_FOUND"
    status_code = HTTPStatus.UNAUTHORIZED
    default_message = "OAuth token not found"


class OAuthTokenRefreshError(OAuthBrokerError):
    """Raised when the provider rejects or fails a refresh call."""

    code = "TOKEN_REFRESH_FAILED"
    status_code = HTTPStatus.BAD_GATEWAY
    default_message = "OAuth token refresh failed"


class RefreshCredentialUnavailableError(OAuthBrokerError):
    """Raised when a stale token has nothing to refresh it with."""

    code = "REFRESH_CREDENTIAL_UNAVAILABLE"
    status_code = HTTPStatus.UNAUTHORIZED
    default_message = "Refresh credential unavailable; re-authorization required"


class UnknownProviderError(OAuthBrokerError):
    """Raised when a request names a provider outside the endpoint table."""

    code = "INVALID_PROVIDER"
    status_code = HTTPStatus.BAD_REQUEST
    default_message = "Invalid OAuth provider"


class TenantNotConfiguredError(OAuthBrokerError):
    """Raised when a tenant has no OAuth application for the requested provider."""

    code = "TENANT_NOT_CONFIGURED"
    status_code = HTTPStatus.BAD_REQUEST
    default_message = "Tenant is not configured for this provider"


class CredentialStoreError(OAuthBrokerError):
    """Raised when the credential store backend fails or times out."""

    code = "SERVICE_UNAVAILABLE"
    status_code = HTTPStatus.SERVICE_UNAVAILABLE
    default_message = "Credential store unavailable"


__all__ = [
    "CredentialStoreError",
    "OAuthBrokerError",
    "OAuthStateError",
    "OAuthTokenExchangeError",
    "OAuthTokenNotFoundError",
    "OAuthTokenRefreshError",
    "PKCEVerifierNotFoundError",
    "RefreshCredentialUnavailableError",
    "TenantMismatchError",
    "TenantNotConfiguredError",
    "UnknownProviderError",
]
