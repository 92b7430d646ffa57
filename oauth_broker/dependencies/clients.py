"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from oauth_broker.clients import (
    CredentialStore,
    DynamoDBCredentialStore,
    OAuthStateEncoder,
    ProviderDirectory,
    ProviderOAuthClient,
    SQLiteCredentialStore,
)
from oauth_broker.core.config import get_settings
from oauth_broker.services import TokenCipherService, TokenLifecycleManager, TokenService


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    return TokenCipherService(secret=get_settings().security.token_encryption_secret)


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide an OAuth state encoder keyed by the token encryption secret."""
    return OAuthStateEncoder(secret_key=get_settings().security.token_encryption_secret)


@lru_cache()
def get_credential_store() -> CredentialStore:
    """Provide the configured credential store backend."""
    settings = get_settings()
    storage = settings.storage
    if storage.backend == "dynamodb":
        return DynamoDBCredentialStore(
            storage,
            cipher=get_token_cipher_service(),
            pkce_ttl_seconds=settings.oauth.pkce_ttl_seconds,
        )
    return SQLiteCredentialStore(
        storage.sqlite_path,
        cipher=get_token_cipher_service(),
        timeout_seconds=storage.operation_timeout_seconds,
        pkce_ttl_seconds=settings.oauth.pkce_ttl_seconds,
        token_ttl_seconds=storage.token_ttl_seconds,
    )


@lru_cache()
def get_provider_directory() -> ProviderDirectory:
    return ProviderDirectory(get_settings().oauth)


@lru_cache()
def get_provider_oauth_client() -> ProviderOAuthClient:
    """Create a singleton provider OAuth client."""
    return ProviderOAuthClient(timeout_seconds=get_settings().oauth.provider_timeout_seconds)


@lru_cache()
def get_token_manager() -> TokenLifecycleManager:
    """Provide the process-wide token lifecycle manager."""
    return TokenLifecycleManager(
        store=get_credential_store(),
        oauth_client=get_provider_oauth_client(),
        directory=get_provider_directory(),
        client_timeout_seconds=get_settings().oauth.provider_timeout_seconds,
    )


@lru_cache()
def get_token_service() -> TokenService:
    """Provide the OAuth flow service used by the routes."""
    return TokenService(
        store=get_credential_store(),
        oauth_client=get_provider_oauth_client(),
        directory=get_provider_directory(),
        state_encoder=get_oauth_state_encoder(),
        manager=get_token_manager(),
        oauth_settings=get_settings().oauth,
    )


__all__ = [
    "get_credential_store",
    "get_oauth_state_encoder",
    "get_provider_directory",
    "get_provider_oauth_client",
    "get_token_cipher_service",
    "get_token_manager",
    "get_token_service",
]
