"""HTTP utilities for talking to provider token endpoints."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Type

import httpx

from oauth_broker.core.errors import OAuthBrokerError
from oauth_broker.models.oauth import OAuthToken

_BODY_PREVIEW = 512


async def request_token_payload(
    method: str,
    url: str,
    *,
    error_cls: Type[OAuthBrokerError],
    timeout: float,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    **kwargs: Any,
) -> Dict[str, Any]:
    """
    Send one token-endpoint request and return its decoded JSON object.

    Transport failures (timeouts included), non-2xx statuses and malformed
    bodies are all raised as ``error_cls`` with the underlying detail attached.
    """
    headers = {"Accept": "application/json", **kwargs.pop("headers", {})}
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.request(method, url, headers=headers, **kwargs)
    except httpx.HTTPError as exc:
        raise error_cls(detail=f"transport failure calling {url}: {exc!r}") from exc

    if not response.is_success:
        raise error_cls(
            detail=f"status={response.status_code} body={response.text[:_BODY_PREVIEW]}"
        )

    try:
        payload = response.json()
    except ValueError as exc:
        raise error_cls(
            detail=f"malformed JSON from {url}: {response.text[:_BODY_PREVIEW]}"
        ) from exc
    if not isinstance(payload, dict):
        raise error_cls(detail=f"unexpected token payload type {type(payload).__name__}")
    return payload


def parse_expires_in(value: Any) -> Optional[int]:
    """Return a positive lifetime in seconds, or None when absent or unusable."""
    if value in (None, ""):
        return None
    try:
        seconds = int(value)
    except (TypeError, ValueError):
        return None
    return seconds if seconds > 0 else None


def token_from_payload(
    payload: Dict[str, Any],
    *,
    error_cls: Type[OAuthBrokerError],
    refresh_token: Optional[str] = None,
    issued_at: Optional[datetime] = None,
) -> OAuthToken:
    """
    Build a token from a provider response.

    ``refresh_token`` overrides whatever the payload carries. Expiry is
    ``issued_at + expires_in`` and stays unset when the provider omits it.
    """
    access_token = payload.get("access_token")
    if not access_token or not isinstance(access_token, str):
        raise error_cls(detail="token payload is missing access_token")

    expiry = None
    expires_in = parse_expires_in(payload.get("expires_in"))
    if expires_in is not None:
        expiry = (issued_at or datetime.now(timezone.utc)) + timedelta(seconds=expires_in)

    if refresh_token is None:
        refresh_token = payload.get("refresh_token") or ""

    return OAuthToken(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type=payload.get("token_type") or "Bearer",
        expiry=expiry,
    )


__all__ = ["parse_expires_in", "request_token_payload", "token_from_payload"]
