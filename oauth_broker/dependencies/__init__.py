"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_credential_store,
    get_oauth_state_encoder,
    get_provider_directory,
    get_provider_oauth_client,
    get_token_cipher_service,
    get_token_manager,
    get_token_service,
)
from .config import SettingsDependency, get_app_settings

__all__ = [
    "SettingsDependency",
    "get_app_settings",
    "get_credential_store",
    "get_oauth_state_encoder",
    "get_provider_directory",
    "get_provider_oauth_client",
    "get_token_cipher_service",
    "get_token_manager",
    "get_token_service",
]
