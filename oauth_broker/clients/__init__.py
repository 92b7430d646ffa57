"""Expose constructed client wrappers."""

from .credential_store import CredentialStore
from .dynamodb import DynamoDBCredentialStore
from .oauth_state import OAuthStateEncoder, StatePayload
from .provider_directory import ProviderDirectory, ResolvedProvider
from .provider_oauth import ProviderOAuthClient
from .sqlite_store import SQLiteCredentialStore

__all__ = [
    "CredentialStore",
    "DynamoDBCredentialStore",
    "OAuthStateEncoder",
    "ProviderDirectory",
    "ProviderOAuthClient",
    "ResolvedProvider",
    "SQLiteCredentialStore",
    "StatePayload",
]
