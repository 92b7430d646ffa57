"""Public schema exports."""

from .auth import (
    AuthorizationStatusResponse,
    CallbackResponse,
    OAuthCallbackPayload,
    RefreshTokenResponse,
    RevokeResponse,
    StartAuthRequest,
    StartAuthResponse,
    TokenIdentityRequest,
    TokenStatusResponse,
)

__all__ = [
    "AuthorizationStatusResponse",
    "CallbackResponse",
    "OAuthCallbackPayload",
    "RefreshTokenResponse",
    "RevokeResponse",
    "StartAuthRequest",
    "StartAuthResponse",
    "TokenIdentityRequest",
    "TokenStatusResponse",
]
