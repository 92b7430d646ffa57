"""
DynamoDB-backed credential store.

Token records and PKCE verifiers share one table keyed by ``pk``/``sk``.
Expiry is written to a numeric ``ttl`` attribute for DynamoDB's TTL sweeper;
reads also check it because the sweeper runs lazily.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from oauth_broker.clients.credential_store import PKCE_SORT_KEY, pkce_partition_key
from oauth_broker.core.config import StorageSettings
from oauth_broker.core.errors import CredentialStoreError
from oauth_broker.core.logging import mask_secret
from oauth_broker.models.oauth import OAuthToken, TokenIdentity
from oauth_broker.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)

_BACKEND_ERRORS = (BotoCoreError, ClientError)


class DynamoDBCredentialStore:
    """Credential store on a single DynamoDB table."""

    def __init__(
        self,
        settings: StorageSettings,
        *,
        cipher: TokenCipherService,
        pkce_ttl_seconds: int = 1800,
        table: Any = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._cipher = cipher
        self._pkce_ttl = pkce_ttl_seconds
        self._token_ttl = settings.token_ttl_seconds
        self._clock = clock
        if table is None:
            timeout = settings.operation_timeout_seconds
            resource = boto3.resource(
                "dynamodb",
                region_name=settings.region_name,
                config=Config(
                    connect_timeout=timeout,
                    read_timeout=timeout,
                    retries={"max_attempts": 2},
                ),
            )
            table = resource.Table(settings.dynamodb_table_name)
        self._table = table

    def _expires_at(self, ttl_seconds: int) -> int:
        return int(self._clock()) + ttl_seconds

    def _is_live(self, item: Dict[str, Any]) -> bool:
        ttl = item.get("ttl")
        return ttl is None or int(ttl) > self._clock()

    def _call(self, operation: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            return getattr(self._table, operation)(**kwargs)
        except _BACKEND_ERRORS as exc:
            raise CredentialStoreError(detail=f"dynamodb {operation} failed: {exc}") from exc

    def save_token(self, identity: TokenIdentity, token: OAuthToken) -> None:
        self._call(
            "put_item",
            Item={
                "pk": identity.partition_key,
                "sk": identity.sort_key,
                "data": self._cipher.seal(token),
                "ttl": self._expires_at(self._token_ttl),
            },
        )
        logger.debug("Stored token record %s/%s", identity.partition_key, identity.sort_key)

    def get_token(self, identity: TokenIdentity) -> Optional[OAuthToken]:
        response = self._call(
            "get_item",
            Key={"pk": identity.partition_key, "sk": identity.sort_key},
            ConsistentRead=True,
        )
        item = response.get("Item")
        if not item or not self._is_live(item):
            return None
        try:
            return self._cipher.unseal(item["data"])
        except (KeyError, ValueError) as exc:
            raise CredentialStoreError(detail=f"unreadable token record: {exc}") from exc

    def delete_token(self, identity: TokenIdentity) -> None:
        self._call("delete_item", Key={"pk": identity.partition_key, "sk": identity.sort_key})

    def save_pkce_verifier(self, state: str, verifier: str) -> None:
        self._call(
            "put_item",
            Item={
                "pk": pkce_partition_key(state),
                "sk": PKCE_SORT_KEY,
                "data": verifier,
                "ttl": self._expires_at(self._pkce_ttl),
            },
        )
        logger.debug("Stored PKCE verifier %s", mask_secret(verifier))

    def get_and_delete_pkce_verifier(self, state: str) -> Optional[str]:
        # A single delete returning the old image is atomic on DynamoDB.
        response = self._call(
            "delete_item",
            Key={"pk": pkce_partition_key(state), "sk": PKCE_SORT_KEY},
            ReturnValues="ALL_OLD",
        )
        item = response.get("Attributes")
        if not item or not self._is_live(item):
            return None
        return item.get("data")

    def health(self) -> None:
        self._call("get_item", Key={"pk": "health#probe", "sk": "probe"})


__all__ = ["DynamoDBCredentialStore"]
