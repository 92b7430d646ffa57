"""
FastAPI routes for the OAuth broker.
"""

from __future__ import annotations

import logging
import time
from http import HTTPStatus
from typing import Annotated, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from oauth_broker.core.config import AppSettings
from oauth_broker.core.errors import CredentialStoreError, OAuthBrokerError
from oauth_broker.dependencies import get_app_settings, get_token_service
from oauth_broker.schemas import (
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
from oauth_broker.services import TokenService

router = APIRouter()
logger = logging.getLogger(__name__)

ServiceDependency = Annotated[TokenService, Depends(get_token_service)]
Settings = Annotated[AppSettings, Depends(get_app_settings)]


def _raise_http(exc: OAuthBrokerError, settings: AppSettings) -> NoReturn:
    if exc.status_code >= HTTPStatus.INTERNAL_SERVER_ERROR:
        logger.error("Request failed with %s: %s", exc.code, exc)
    else:
        logger.warning("Request rejected with %s: %s", exc.code, exc)
    detail = {"code": exc.code, "message": exc.message}
    if exc.detail and not settings.is_production:
        detail["detail"] = exc.detail
    raise HTTPException(status_code=exc.status_code, detail=detail) from exc


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "").lower()


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck(service: ServiceDependency, settings: Settings) -> dict:
    """Report whether the credential store is reachable."""
    try:
        service.health()
    except CredentialStoreError as exc:
        _raise_http(exc, settings)
    return {"status": "ok"}


@router.post("/auth/start", status_code=HTTPStatus.OK, response_model=StartAuthResponse)
async def start_oauth_flow(
    payload: StartAuthRequest,
    service: ServiceDependency,
    settings: Settings,
) -> StartAuthResponse:
    """Kick off the OAuth flow by generating a state token and authorization URL."""
    try:
        started = service.begin_auth(
            payload.provider, payload.tenant, payload.redirect_uri, payload.user_id
        )
    except OAuthBrokerError as exc:
        _raise_http(exc, settings)
    return StartAuthResponse(
        auth_url=started.auth_url,
        provider=started.provider.value,
        user_id=started.user_id,
        tenant=started.tenant,
        state=started.state,
    )


@router.get("/auth/{provider}/authorize", status_code=HTTPStatus.OK)
async def start_oauth_flow_get(
    request: Request,
    provider: str,
    service: ServiceDependency,
    settings: Settings,
    user_id: str = Query(..., min_length=1, description="User identifier initiating authentication."),
    tenant: str | None = Query(default=None, description="Tenant whose OAuth application to use."),
    redirect_uri: str | None = Query(default=None),
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the provider consent screen.",
    ),
) -> Response:
    started = await start_oauth_flow(
        StartAuthRequest(provider=provider, tenant=tenant, user_id=user_id, redirect_uri=redirect_uri),
        service=service,
        settings=settings,
    )
    if redirect or _wants_html(request):
        return RedirectResponse(url=started.auth_url, status_code=HTTPStatus.TEMPORARY_REDIRECT)
    return JSONResponse(content=started.model_dump())


@router.post("/auth/callback", status_code=HTTPStatus.OK, response_model=CallbackResponse)
async def handle_oauth_callback(
    payload: OAuthCallbackPayload,
    service: ServiceDependency,
    settings: Settings,
) -> CallbackResponse:
    """Complete the OAuth exchange and store the resulting token."""
    try:
        result = await service.complete_callback(
            payload.provider,
            payload.tenant,
            payload.code,
            payload.state,
            payload.redirect_uri,
        )
    except OAuthBrokerError as exc:
        _raise_http(exc, settings)
    identity = result.identity
    return CallbackResponse(
        provider=identity.provider.value,
        user_id=identity.user_id,
        tenant=identity.tenant,
        expires_at=result.token.expires_at,
        refer_at=int(time.time()),
        message="Authorization successful",
    )


@router.get("/auth/{provider}/callback", status_code=HTTPStatus.OK)
async def handle_oauth_callback_get(
    request: Request,
    provider: str,
    service: ServiceDependency,
    settings: Settings,
    state: str = Query(..., description="OAuth state token."),
    code: str = Query(..., description="Authorization code returned by the provider."),
    tenant: str | None = Query(default=None),
    redirect_uri: str | None = Query(default=None),
    redirect: bool = Query(
        default=False,
        description="When true, redirect browser clients instead of returning JSON.",
    ),
) -> Response:
    result = await handle_oauth_callback(
        OAuthCallbackPayload(
            provider=provider,
            tenant=tenant,
            code=code,
            state=state,
            redirect_uri=redirect_uri,
        ),
        service=service,
        settings=settings,
    )
    redirect_target = settings.frontend_base_url
    if redirect_target and (redirect or _wants_html(request)):
        return RedirectResponse(url=str(redirect_target), status_code=HTTPStatus.TEMPORARY_REDIRECT)
    return JSONResponse(content=result.model_dump())


@router.post("/auth/is-authorized", response_model=AuthorizationStatusResponse)
async def is_authorized(
    payload: TokenIdentityRequest,
    service: ServiceDependency,
    settings: Settings,
) -> AuthorizationStatusResponse:
    try:
        identity = service.identity(payload.provider, payload.tenant, payload.user_id)
        valid = service.is_token_valid(identity)
    except OAuthBrokerError as exc:
        _raise_http(exc, settings)
    return AuthorizationStatusResponse(
        provider=identity.provider.value,
        user_id=identity.user_id,
        tenant=identity.tenant,
        is_authorized=valid,
    )


@router.post("/auth/refresh-token", response_model=RefreshTokenResponse)
async def refresh_token(
    payload: TokenIdentityRequest,
    service: ServiceDependency,
    settings: Settings,
) -> RefreshTokenResponse:
    """Rotate the stored token regardless of its remaining lifetime."""
    try:
        identity = service.identity(payload.provider, payload.tenant, payload.user_id)
        token = await service.force_refresh_token(identity)
    except OAuthBrokerError as exc:
        _raise_http(exc, settings)
    return RefreshTokenResponse(
        expires_at=token.expires_at,
        refreshed_at=int(time.time()),
        message="Token refreshed successfully",
    )


@router.post("/auth/token-status", response_model=TokenStatusResponse)
async def token_status(
    payload: TokenIdentityRequest,
    service: ServiceDependency,
    settings: Settings,
) -> TokenStatusResponse:
    try:
        identity = service.identity(payload.provider, payload.tenant, payload.user_id)
        status = service.token_status(identity)
    except OAuthBrokerError as exc:
        _raise_http(exc, settings)
    if not status.exists:
        message = "No token stored"
    elif status.is_valid:
        message = "Token is valid"
    else:
        message = "Token is expired or about to expire"
    return TokenStatusResponse(
        exists=status.exists,
        is_valid=status.is_valid,
        expires_at=status.expires_at,
        message=message,
    )


@router.post("/auth/revoke", response_model=RevokeResponse)
async def revoke_token(
    payload: TokenIdentityRequest,
    service: ServiceDependency,
    settings: Settings,
) -> RevokeResponse:
    try:
        identity = service.identity(payload.provider, payload.tenant, payload.user_id)
        service.revoke(identity)
    except OAuthBrokerError as exc:
        _raise_http(exc, settings)
    return RevokeResponse(message="Token revoked")


__all__ = ["router"]
