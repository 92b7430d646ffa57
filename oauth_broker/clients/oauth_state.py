"""
Encoding of the OAuth ``state`` parameter.

The state round-trips the initiating user and tenant through the provider
redirect. It is a URL-safe base64 string (no padding) of an HMAC-SHA256
signature followed by a compact JSON payload, so it cannot be forged or
edited in transit.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
from dataclasses import dataclass
from hashlib import sha256

from oauth_broker.clients.pkce import random_url_safe_string
from oauth_broker.core.errors import OAuthStateError

NONCE_LENGTH = 16
_SIGNATURE_SIZE = 32


@dataclass(frozen=True)
class StatePayload:
    user_id: str
    tenant: str
    nonce: str


class OAuthStateEncoder:
    """Encode and decode OAuth state values to guard against tampering."""

    def __init__(self, secret_key: str) -> None:
        if not secret_key:
            raise ValueError("State signing secret must be provided.")
        self._secret_key = secret_key.encode("utf-8")

    def encode_state(self, user_id: str, tenant: str) -> str:
        payload = {"uid": user_id, "tenant": tenant, "n": random_url_safe_string(NONCE_LENGTH)}
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
        signature = hmac.new(self._secret_key, serialized, sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized).decode("ascii").rstrip("=")

    def decode_state(self, state: str) -> StatePayload:
        if not state:
            raise OAuthStateError(detail="state is empty")
        padded = state + "=" * (-len(state) % 4)
        try:
            decoded = base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True)
        except (binascii.Error, UnicodeEncodeError, ValueError) as exc:
            raise OAuthStateError(detail="state is not valid base64") from exc

        signature, serialized = decoded[:_SIGNATURE_SIZE], decoded[_SIGNATURE_SIZE:]
        expected = hmac.new(self._secret_key, serialized, sha256).digest()
        if len(signature) != _SIGNATURE_SIZE or not hmac.compare_digest(signature, expected):
            raise OAuthStateError(detail="state signature mismatch")

        try:
            data = json.loads(serialized)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:  # pragma: no cover - signed payloads are ours
            raise OAuthStateError(detail="state payload is not well-formed") from exc
        if (
            not isinstance(data, dict)
            or not isinstance(data.get("uid"), str)
            or not isinstance(data.get("tenant"), str)
        ):
            raise OAuthStateError(detail="state payload is missing fields")

        return StatePayload(
            user_id=str(data["uid"]),
            tenant=str(data["tenant"]),
            nonce=str(data.get("n", "")),
        )


__all__ = ["NONCE_LENGTH", "OAuthStateEncoder", "StatePayload"]
