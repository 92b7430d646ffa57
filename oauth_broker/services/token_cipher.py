"""Symmetric encryption of token records before they reach the credential store."""

from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken
from pydantic import ValidationError

from oauth_broker.models.oauth import OAuthToken


class TokenCipherService:
    """Seal and unseal ``OAuthToken`` records using a derived Fernet key."""

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    def seal(self, token: OAuthToken) -> str:
        """Serialize ``token`` to JSON and return the ciphertext."""
        return self._fernet.encrypt(token.model_dump_json().encode("utf-8")).decode("utf-8")

    def unseal(self, ciphertext: str) -> OAuthToken:
        """Decrypt a sealed record back into a token."""
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as exc:
            raise ValueError("Failed to decrypt token record; invalid ciphertext provided.") from exc
        try:
            return OAuthToken.model_validate_json(plaintext)
        except ValidationError as exc:
            raise ValueError("Decrypted token record is not well-formed.") from exc


__all__ = ["TokenCipherService"]
