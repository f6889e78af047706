"""SQLite-backed storage for OAuth authorization codes and tokens."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from voicelink.models.oauth import AuthorizationCode, TokenRecord


def _to_epoch(value: Optional[datetime]) -> Optional[float]:
    if value is None:
        return None
    return value.timestamp()


def _from_epoch(value: Optional[float]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


class TokenStore:
    """Keyed storage for codes and tokens, partitioned by assistant namespace.

    Each authority owns one namespace, so Google and Alexa links never see
    each other's records even though they share a database file.
    """

    def __init__(self, db_path: str, namespace: str) -> None:
        self._db_path = Path(db_path)
        self._namespace = namespace
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    @property
    def namespace(self) -> str:
        return self._namespace

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False, timeout=30.0)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS oauth_codes (
                    namespace TEXT NOT NULL,
                    code TEXT NOT NULL,
                    tenant_id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    external_user_id TEXT NOT NULL,
                    expires_at REAL NOT NULL,
                    used INTEGER NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL,
                    PRIMARY KEY (namespace, code)
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS oauth_tokens (
                    namespace TEXT NOT NULL,
                    access_token TEXT NOT NULL,
                    refresh_token TEXT NOT NULL,
                    tenant_id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    external_user_id TEXT NOT NULL,
                    access_token_expires_at REAL NOT NULL,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    PRIMARY KEY (namespace, access_token),
                    UNIQUE (namespace, refresh_token)
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS oauth_tokens_external_user
                ON oauth_tokens (namespace, external_user_id)
                """
            )

    # Authorization codes -------------------------------------------------

    def save_code(self, code: AuthorizationCode) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO oauth_codes (
                    namespace, code, tenant_id, user_id, external_user_id,
                    expires_at, used, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    self._namespace,
                    code.code,
                    code.tenant_id,
                    code.user_id,
                    code.external_user_id,
                    _to_epoch(code.expires_at),
                    int(code.used),
                    _to_epoch(code.created_at),
                ),
            )

    def find_unused_code(self, code: str) -> Optional[AuthorizationCode]:
        with self._transaction() as conn:
            row = conn.execute(
                """
                SELECT * FROM oauth_codes
                WHERE namespace = ? AND code = ? AND used = 0
                """,
                (self._namespace, code),
            ).fetchone()
        if not row:
            return None
        return AuthorizationCode(
            code=row["code"],
            tenant_id=row["tenant_id"],
            user_id=row["user_id"],
            external_user_id=row["external_user_id"],
            expires_at=_from_epoch(row["expires_at"]),
            used=bool(row["used"]),
            created_at=_from_epoch(row["created_at"]),
        )

    def mark_code_used(self, code: str) -> bool:
        """Flip ``used`` in one conditional update; only one caller gets True."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE oauth_codes SET used = 1
                WHERE namespace = ? AND code = ? AND used = 0
                """,
                (self._namespace, code),
            )
            return cursor.rowcount == 1

    def delete_code(self, code: str) -> None:
        with self._transaction() as conn:
            conn.execute(
                "DELETE FROM oauth_codes WHERE namespace = ? AND code = ?",
                (self._namespace, code),
            )

    def delete_expired_codes(self, now: datetime) -> int:
        with self._transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM oauth_codes WHERE namespace = ? AND expires_at <= ?",
                (self._namespace, _to_epoch(now)),
            )
            return cursor.rowcount

    # Tokens --------------------------------------------------------------

    @staticmethod
    def _token_from_row(row: sqlite3.Row) -> TokenRecord:
        return TokenRecord(
            access_token=row["access_token"],
            refresh_token=row["refresh_token"],
            tenant_id=row["tenant_id"],
            user_id=row["user_id"],
            external_user_id=row["external_user_id"],
            access_token_expires_at=_from_epoch(row["access_token_expires_at"]),
            created_at=_from_epoch(row["created_at"]),
            updated_at=_from_epoch(row["updated_at"]),
        )

    def replace_token_for_external_user(self, token: TokenRecord) -> int:
        """Delete prior tokens for the identity and insert ``token`` atomically.

        Returns the number of prior tokens removed.
        """
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                DELETE FROM oauth_tokens
                WHERE namespace = ? AND external_user_id = ?
                """,
                (self._namespace, token.external_user_id),
            )
            removed = cursor.rowcount
            conn.execute(
                """
                INSERT INTO oauth_tokens (
                    namespace, access_token, refresh_token, tenant_id, user_id,
                    external_user_id, access_token_expires_at, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    self._namespace,
                    token.access_token,
                    token.refresh_token,
                    token.tenant_id,
                    token.user_id,
                    token.external_user_id,
                    _to_epoch(token.access_token_expires_at),
                    _to_epoch(token.created_at),
                    _to_epoch(token.updated_at),
                ),
            )
        return removed

    def find_token_by_access(self, access_token: str) -> Optional[TokenRecord]:
        with self._transaction() as conn:
            row = conn.execute(
                """
                SELECT * FROM oauth_tokens
                WHERE namespace = ? AND access_token = ?
                """,
                (self._namespace, access_token),
            ).fetchone()
        return self._token_from_row(row) if row else None

    def find_token_by_refresh(self, refresh_token: str) -> Optional[TokenRecord]:
        with self._transaction() as conn:
            row = conn.execute(
                """
                SELECT * FROM oauth_tokens
                WHERE namespace = ? AND refresh_token = ?
                """,
                (self._namespace, refresh_token),
            ).fetchone()
        return self._token_from_row(row) if row else None

    def rotate_access_token(
        self,
        *,
        refresh_token: str,
        access_token: str,
        access_token_expires_at: datetime,
        updated_at: datetime,
    ) -> bool:
        """Swap the access token bound to a refresh token. False if it vanished."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE oauth_tokens
                SET access_token = ?, access_token_expires_at = ?, updated_at = ?
                WHERE namespace = ? AND refresh_token = ?
                """,
                (
                    access_token,
                    _to_epoch(access_token_expires_at),
                    _to_epoch(updated_at),
                    self._namespace,
                    refresh_token,
                ),
            )
            return cursor.rowcount == 1

    def delete_token_by_access(self, access_token: str) -> int:
        with self._transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM oauth_tokens WHERE namespace = ? AND access_token = ?",
                (self._namespace, access_token),
            )
            return cursor.rowcount

    def delete_tokens_for_external_user(self, external_user_id: str) -> int:
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                DELETE FROM oauth_tokens
                WHERE namespace = ? AND external_user_id = ?
                """,
                (self._namespace, external_user_id),
            )
            return cursor.rowcount

    def delete_expired_tokens(self, now: datetime) -> int:
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                DELETE FROM oauth_tokens
                WHERE namespace = ? AND access_token_expires_at <= ?
                """,
                (self._namespace, _to_epoch(now)),
            )
            return cursor.rowcount


__all__ = ["TokenStore"]
