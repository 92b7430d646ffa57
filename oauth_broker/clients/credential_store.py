"""Contract shared by the credential store backends."""

from __future__ import annotations

from typing import Optional, Protocol

from oauth_broker.models.oauth import OAuthToken, TokenIdentity

PKCE_SORT_KEY = "verifier"


def pkce_partition_key(state: str) -> str:
    return f"pkce#{state}"


class CredentialStore(Protocol):
    """
    Persistence for token records and one-shot PKCE verifiers.

    Missing records are reported as ``None``; backend faults raise
    ``CredentialStoreError``.
    """

    def save_token(self, identity: TokenIdentity, token: OAuthToken) -> None: ...

    def get_token(self, identity: TokenIdentity) -> Optional[OAuthToken]: ...

    def delete_token(self, identity: TokenIdentity) -> None: ...

    def save_pkce_verifier(self, state: str, verifier: str) -> None: ...

    def get_and_delete_pkce_verifier(self, state: str) -> Optional[str]: ...

    def health(self) -> None: ...


__all__ = ["CredentialStore", "PKCE_SORT_KEY", "pkce_partition_key"]
