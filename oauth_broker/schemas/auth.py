"""Schemas related to OAuth flows."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class StartAuthRequest(BaseModel):
    """Payload sent to begin an OAuth authorization flow."""

    provider: str = Field(..., description="Provider identifier, e.g. youtube or x.")
    tenant: Optional[str] = Field(None, description="Tenant whose OAuth application to use.")
    user_id: str = Field(..., min_length=1, description="User initiating authentication.")
    redirect_uri: Optional[str] = Field(None, description="Redirect URI registered with the provider.")


class StartAuthResponse(BaseModel):
    auth_url: str
    provider: str
    user_id: str
    tenant: str
    state: str


class OAuthCallbackPayload(BaseModel):
    """Payload sent to complete the OAuth callback exchange."""

    provider: str
    tenant: Optional[str] = None
    code: str = Field(..., min_length=1, description="Authorization code returned by the provider.")
    state: str = Field(..., min_length=1, description="Opaque state token issued when starting OAuth.")
    redirect_uri: Optional[str] = None


class CallbackResponse(BaseModel):
    provider: str
    user_id: str
    tenant: str
    expires_at: int
    refer_at: int = Field(..., description="Epoch seconds when the token was stored.")
    message: str


class TokenIdentityRequest(BaseModel):
    """Identifies one stored token."""

    provider: str
    tenant: Optional[str] = None
    user_id: str = Field(..., min_length=1)


class AuthorizationStatusResponse(BaseModel):
    provider: str
    user_id: str
    tenant: str
    is_authorized: bool


class RefreshTokenResponse(BaseModel):
    expires_at: int
    refreshed_at: int
    message: str


class TokenStatusResponse(BaseModel):
    exists: bool
    is_valid: bool
    expires_at: int
    message: str


class RevokeResponse(BaseModel):
    message: str


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
