"""
PKCE (RFC 7636) helpers.

The verifier is a high-entropy URL-safe string kept server-side; the
challenge sent with the authorization request is
``BASE64URL(SHA256(verifier))`` without padding.
"""

from __future__ import annotations

import base64
import hashlib
import secrets

VERIFIER_LENGTH = 64


def random_url_safe_string(length: int) -> str:
    """Return ``length`` random characters from the URL-safe base64 alphabet."""
    if length <= 0:
        raise ValueError("length must be positive")
    return secrets.token_urlsafe(length)[:length]


def generate_code_verifier(length: int = VERIFIER_LENGTH) -> str:
    if not 43 <= length <= 128:
        raise ValueError("PKCE verifier length must be between 43 and 128")
    return random_url_safe_string(length)


def code_challenge(verifier: str) -> str:
    """S256 transform of ``verifier``."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


__all__ = [
    "VERIFIER_LENGTH",
    "code_challenge",
    "generate_code_verifier",
    "random_url_safe_string",
]
