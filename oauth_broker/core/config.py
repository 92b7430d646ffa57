"""
Application configuration models and helpers.

Centralizes settings for the HTTP layer, the credential store and the
per-tenant OAuth application registry so every component reads one
consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
import json
import os
import re
from typing import Dict, List, Literal, Optional

from pydantic import AnyHttpUrl, BaseModel, Field, HttpUrl, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from oauth_broker.models.providers import Provider

_TENANT_NAME = re.compile(r"^[A-Za-z0-9-]+$")


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class ProviderCredentials(BaseModel):
    """OAuth application registered with one provider for one tenant."""

    client_id: str
    client_secret: str
    scopes: tuple[str, ...]

    @field_validator("client_id", "client_secret")
    @classmethod
    def _require_value(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value.strip()

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(cls, value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        if isinstance(value, str):
            value = [scope.strip() for scope in value.split(",")]
        scopes = tuple(scope for scope in value if scope)
        if not scopes:
            raise ValueError("at least one scope is required")
        return scopes


class OAuthSettings(BaseSettings):
    """Tenants, their provider applications and OAuth flow tuning."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    tenants: Dict[str, Dict[Provider, ProviderCredentials]] = Field(
        default_factory=dict,
        validation_alias="OAUTH_TENANTS",
        description="JSON mapping of tenant -> provider -> credentials.",
    )
    tenants_file: Optional[Path] = Field(
        None,
        validation_alias="OAUTH_TENANTS_FILE",
        description="Optional JSON file with the same shape as OAUTH_TENANTS.",
    )
    default_tenant: str = Field("default", validation_alias="OAUTH_DEFAULT_TENANT")
    default_redirect_uri: Optional[AnyHttpUrl] = Field(
        None, validation_alias="OAUTH_DEFAULT_REDIRECT_URI"
    )
    pkce_ttl_seconds: int = Field(1800, validation_alias="OAUTH_PKCE_TTL")
    provider_timeout_seconds: float = Field(15.0, validation_alias="OAUTH_PROVIDER_TIMEOUT")

    @model_validator(mode="after")
    def _merge_tenants_file(self) -> "OAuthSettings":
        if self.tenants_file is None:
            return self
        raw = json.loads(Path(self.tenants_file).read_text(encoding="utf-8"))
        merged: Dict[str, Dict[Provider, ProviderCredentials]] = {}
        for tenant, providers in raw.items():
            merged[tenant] = {
                Provider(name): ProviderCredentials.model_validate(creds)
                for name, creds in providers.items()
            }
        for tenant, providers in self.tenants.items():
            merged.setdefault(tenant, {}).update(providers)
        self.tenants = merged
        return self

    @model_validator(mode="after")
    def _validate_tenant_names(self) -> "OAuthSettings":
        for tenant in self.tenants:
            if not _TENANT_NAME.match(tenant):
                raise ValueError(f"invalid tenant name format: {tenant!r}")
        return self

    def credentials_for(self, provider: Provider, tenant: str) -> Optional[ProviderCredentials]:
        return self.tenants.get(tenant, {}).get(provider)


class StorageSettings(BaseSettings):
    """Credential store backend selection and limits."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    backend: Literal["sqlite", "dynamodb"] = Field(
        "sqlite", validation_alias="CREDENTIAL_STORE_BACKEND"
    )
    sqlite_path: str = Field("data/credentials.db", validation_alias="CREDENTIAL_STORE_PATH")
    dynamodb_table_name: Optional[str] = Field(None, validation_alias="DYNAMODB_TABLE_NAME")
    region_name: str = Field("us-east-1", validation_alias="AWS_REGION")
    operation_timeout_seconds: float = Field(5.0, validation_alias="CREDENTIAL_STORE_TIMEOUT")
    token_ttl_seconds: int = Field(
        30 * 24 * 3600,
        validation_alias="CREDENTIAL_TOKEN_TTL",
        description="Lifetime of a stored token record; tokens refresh well before this.",
    )

    @model_validator(mode="after")
    def _require_table_for_dynamodb(self) -> "StorageSettings":
        if self.backend == "dynamodb" and not self.dynamodb_table_name:
            raise ValueError("DYNAMODB_TABLE_NAME is required for the dynamodb backend")
        return self


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    token_encryption_secret: str = Field(
        ...,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description="Secret used to derive the symmetric key for encrypting stored tokens.",
    )


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", populate_by_name=True, extra="ignore"
    )

    environment: Literal["development", "staging", "production"] = Field(
        "development", validation_alias="APP_ENV"
    )
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    frontend_base_url: Optional[HttpUrl] = Field(
        None,
        validation_alias="FRONTEND_BASE_URL",
        description="Optional URL for redirecting users back to the front-end.",
    )
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    @field_validator("environment", mode="before")
    @classmethod
    def _normalize_environment(cls, value: str) -> str:
        aliases = {"dev": "development", "stage": "staging", "prod": "production"}
        normalized = str(value).strip().lower()
        return aliases.get(normalized, normalized)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def configured_tenants(self) -> List[str]:
        return sorted(self.oauth.tenants)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "OAuthSettings",
    "ProviderCredentials",
    "SecuritySettings",
    "StorageSettings",
    "get_settings",
]
