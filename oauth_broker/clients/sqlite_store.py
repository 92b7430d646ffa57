"""SQLite-backed credential store for single-node deployments and development."""

from __future__ import annotations

import logging
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional

from oauth_broker.clients.credential_store import PKCE_SORT_KEY, pkce_partition_key
from oauth_broker.core.errors import CredentialStoreError
from oauth_broker.core.logging import mask_secret
from oauth_broker.models.oauth import OAuthToken, TokenIdentity
from oauth_broker.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)


class SQLiteCredentialStore:
    """Key-value records keyed by (pk, sk) with optional expiry."""

    def __init__(
        self,
        db_path: str,
        *,
        cipher: TokenCipherService,
        timeout_seconds: float = 5.0,
        pkce_ttl_seconds: int = 1800,
        token_ttl_seconds: int = 30 * 24 * 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._db_path = Path(db_path)
        self._cipher = cipher
        self._timeout = timeout_seconds
        self._pkce_ttl = pkce_ttl_seconds
        self._token_ttl = token_ttl_seconds
        self._clock = clock
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        # Autocommit mode: multi-statement sections open their own transaction.
        return sqlite3.connect(
            self._db_path,
            timeout=self._timeout,
            isolation_level=None,
            check_same_thread=False,
        )

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise CredentialStoreError(detail=f"cannot open {self._db_path}: {exc}") from exc
        try:
            yield conn
        except sqlite3.Error as exc:
            raise CredentialStoreError(detail=str(exc)) from exc
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._session() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS credential_records (
                    pk TEXT NOT NULL,
                    sk TEXT NOT NULL,
                    data TEXT NOT NULL,
                    expires_at REAL,
                    PRIMARY KEY (pk, sk)
                )
                """
            )

    def _put(self, conn: sqlite3.Connection, pk: str, sk: str, data: str, ttl: int) -> None:
        conn.execute(
            """
            INSERT INTO credential_records (pk, sk, data, expires_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(pk, sk) DO UPDATE SET
                data = excluded.data,
                expires_at = excluded.expires_at
            """,
            (pk, sk, data, self._clock() + ttl),
        )

    def _is_live(self, expires_at: Optional[float]) -> bool:
        return expires_at is None or expires_at > self._clock()

    def save_token(self, identity: TokenIdentity, token: OAuthToken) -> None:
        sealed = self._cipher.seal(token)
        with self._session() as conn:
            self._put(conn, identity.partition_key, identity.sort_key, sealed, self._token_ttl)
        logger.debug("Stored token record %s/%s", identity.partition_key, identity.sort_key)

    def get_token(self, identity: TokenIdentity) -> Optional[OAuthToken]:
        with self._session() as conn:
            row = conn.execute(
                "SELECT data, expires_at FROM credential_records WHERE pk = ? AND sk = ?",
                (identity.partition_key, identity.sort_key),
            ).fetchone()
        if not row or not self._is_live(row[1]):
            return None
        try:
            return self._cipher.unseal(row[0])
        except ValueError as exc:
            raise CredentialStoreError(detail=f"unreadable token record: {exc}") from exc

    def delete_token(self, identity: TokenIdentity) -> None:
        with self._session() as conn:
            conn.execute(
                "DELETE FROM credential_records WHERE pk = ? AND sk = ?",
                (identity.partition_key, identity.sort_key),
            )

    def save_pkce_verifier(self, state: str, verifier: str) -> None:
        with self._session() as conn:
            # Every new flow sweeps records left behind by abandoned ones.
            purged = self._delete_expired(conn)
            self._put(conn, pkce_partition_key(state), PKCE_SORT_KEY, verifier, self._pkce_ttl)
        if purged:
            logger.info("Purged %d expired credential records", purged)
        logger.debug("Stored PKCE verifier %s", mask_secret(verifier))

    def get_and_delete_pkce_verifier(self, state: str) -> Optional[str]:
        key = (pkce_partition_key(state), PKCE_SORT_KEY)
        with self._session() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                row = conn.execute(
                    "SELECT data, expires_at FROM credential_records WHERE pk = ? AND sk = ?",
                    key,
                ).fetchone()
                if row:
                    conn.execute(
                        "DELETE FROM credential_records WHERE pk = ? AND sk = ?", key
                    )
                conn.execute("COMMIT")
            except sqlite3.Error:
                conn.execute("ROLLBACK")
                raise
        if not row or not self._is_live(row[1]):
            return None
        return row[0]

    def _delete_expired(self, conn: sqlite3.Connection) -> int:
        cursor = conn.execute(
            "DELETE FROM credential_records WHERE expires_at IS NOT NULL AND expires_at <= ?",
            (self._clock(),),
        )
        return cursor.rowcount

    def purge_expired(self) -> int:
        """Delete expired records; returns how many were removed."""
        with self._session() as conn:
            return self._delete_expired(conn)

    def health(self) -> None:
        with self._session() as conn:
            conn.execute("SELECT 1").fetchone()


__all__ = ["SQLiteCredentialStore"]
