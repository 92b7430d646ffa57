"""
Domain models for OAuth token persistence.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from oauth_broker.models.providers import Provider


@dataclass(frozen=True)
class TokenIdentity:
    """The (user, provider, tenant) key a token is stored under."""

    user_id: str
    provider: Provider
    tenant: str

    @property
    def partition_key(self) -> str:
        return f"user#{self.user_id}"

    @property
    def sort_key(self) -> str:
        return f"oauth#{self.tenant}#{self.provider.value}"


class OAuthToken(BaseModel):
    """Provider-agnostic token record, replaced wholesale on every refresh."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str = ""
    token_type: str = "Bearer"
    expiry: Optional[datetime] = Field(
        None, description="Absolute expiry; None means the provider gave no lifetime."
    )

    @field_validator("expiry")
    @classmethod
    def _ensure_aware(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def is_stale(self, margin: timedelta, *, now: Optional[datetime] = None) -> bool:
        """True when the token is missing an expiry or expires within ``margin``."""
        if self.expiry is None or self.expiry.timestamp() <= 0:
            return True
        current = now or datetime.now(timezone.utc)
        return self.expiry <= current + margin

    @property
    def expires_at(self) -> int:
        """Expiry as epoch seconds, 0 when unset."""
        if self.expiry is None:
            return 0
        return int(self.expiry.timestamp())

    def authorization_header(self) -> str:
        scheme = self.token_type or "Bearer"
        if scheme.lower() in ("bearer", "mac", "basic"):
            scheme = scheme.capitalize()
        return f"{scheme} {self.access_token}"


__all__ = ["OAuthToken", "TokenIdentity"]
