"""
OAuth2 account-linking authority.

Issues single-use authorization codes, exchanges them for access/refresh token
pairs, rotates access tokens, revokes links and validates bearer tokens for
one assistant platform. Each assistant gets its own instance bound to its own
client credentials and store namespace.
"""

from __future__ import annotations

import hmac
import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from voicelink.clients.token_store import TokenStore
from voicelink.core.config import OAuthClientSettings, OAuthSettings
from voicelink.core.errors import (
    InvalidClientError,
    InvalidGrantError,
    InvalidTokenError,
    OAuthError,
    UnsupportedGrantTypeError,
)
from voicelink.core.logging import redact
from voicelink.models.oauth import AuthorizationCode, TokenRecord
from voicelink.schemas.oauth import TokenResponse

logger = logging.getLogger(__name__)

CODE_BYTES = 32
TOKEN_BYTES = 64

GRANT_AUTHORIZATION_CODE = "authorization_code"
GRANT_REFRESH_TOKEN = "refresh_token"

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def external_user_id_for(assistant: str, tenant_id: str, user_id: str) -> str:
    """Stable link identity, so re-linking the same account replaces its token."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{assistant}:{tenant_id}:{user_id}"))


class OAuthAuthority:
    """Authorization-code grant state machine for a single assistant."""

    def __init__(
        self,
        store: TokenStore,
        client_settings: OAuthClientSettings,
        oauth_settings: OAuthSettings,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._client = client_settings
        self._code_ttl = timedelta(seconds=oauth_settings.code_ttl_seconds)
        self._access_ttl = timedelta(seconds=oauth_settings.access_token_ttl_seconds)
        self._clock = clock
        if self._client.development_mode:
            logger.warning(
                "No OAuth client credentials configured for %s; "
                "any client id and secret will be accepted (development mode)",
                store.namespace,
            )

    @property
    def namespace(self) -> str:
        return self._store.namespace

    @property
    def development_mode(self) -> bool:
        return self._client.development_mode

    def is_redirect_allowed(self, redirect_uri: str) -> bool:
        allowed = self._client.redirect_uris
        return not allowed or redirect_uri in allowed

    def is_known_client(self, client_id: Optional[str]) -> bool:
        if self._client.development_mode:
            return True
        return hmac.compare_digest(
            (client_id or "").encode("utf-8"), self._client.client_id.encode("utf-8")
        )

    # Codes ---------------------------------------------------------------

    def issue_authorization_code(
        self,
        tenant_id: str,
        user_id: str,
        external_user_id: str,
    ) -> str:
        now = self._clock()
        code = AuthorizationCode(
            code=secrets.token_urlsafe(CODE_BYTES),
            tenant_id=tenant_id,
            user_id=user_id,
            external_user_id=external_user_id,
            expires_at=now + self._code_ttl,
            created_at=now,
        )
        self._store.save_code(code)
        logger.info(
            "Issued authorization code %s",
            redact(code.code),
            extra={
                "assistant": self.namespace,
                "tenant_id": tenant_id,
                "user_id": user_id,
                "external_user_id": external_user_id,
            },
        )
        return code.code

    # Token endpoint ------------------------------------------------------

    def handle_token_request(
        self,
        grant_type: Optional[str],
        *,
        code: Optional[str] = None,
        refresh_token: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
    ) -> TokenResponse:
        """Dispatch a token-endpoint request on its ``grant_type``."""
        if grant_type == GRANT_AUTHORIZATION_CODE:
            return self.exchange_code(code or "", client_id, client_secret)
        if grant_type == GRANT_REFRESH_TOKEN:
            return self.refresh_token(refresh_token or "", client_id, client_secret)
        error = UnsupportedGrantTypeError(grant_type or "")
        return TokenResponse.failed(error.error_code, error.message)

    def exchange_code(
        self, code: str, client_id: Optional[str], client_secret: Optional[str]
    ) -> TokenResponse:
        try:
            return self._exchange_code(code, client_id, client_secret)
        except OAuthError as exc:
            return TokenResponse.failed(exc.error_code, exc.message)

    def _exchange_code(
        self, code: str, client_id: Optional[str], client_secret: Optional[str]
    ) -> TokenResponse:
        self._authenticate_client(client_id, client_secret)

        record = self._store.find_unused_code(code)
        if record is None:
            logger.warning(
                "Authorization code %s not found or already used", redact(code)
            )
            raise InvalidGrantError("Authorization code is invalid or expired")

        now = self._clock()
        if record.is_expired(now):
            logger.warning("Authorization code %s expired", redact(code))
            self._store.delete_code(code)
            raise InvalidGrantError("Authorization code has expired")

        if not self._store.mark_code_used(code):
            logger.warning(
                "Authorization code %s was consumed concurrently", redact(code)
            )
            raise InvalidGrantError("Authorization code is invalid or expired")

        token = TokenRecord(
            access_token=secrets.token_urlsafe(TOKEN_BYTES),
            refresh_token=secrets.token_urlsafe(TOKEN_BYTES),
            tenant_id=record.tenant_id,
            user_id=record.user_id,
            external_user_id=record.external_user_id,
            access_token_expires_at=now + self._access_ttl,
            created_at=now,
            updated_at=now,
        )
        replaced = self._store.replace_token_for_external_user(token)
        logger.info(
            "Issued token pair",
            extra={
                "assistant": self.namespace,
                "tenant_id": record.tenant_id,
                "external_user_id": record.external_user_id,
                "replaced_tokens": replaced,
            },
        )
        return TokenResponse.granted(
            token.access_token,
            int(self._access_ttl.total_seconds()),
            refresh_token=token.refresh_token,
        )

    def refresh_token(
        self,
        refresh_token: str,
        client_id: Optional[str],
        client_secret: Optional[str],
    ) -> TokenResponse:
        try:
            return self._refresh_token(refresh_token, client_id, client_secret)
        except OAuthError as exc:
            return TokenResponse.failed(exc.error_code, exc.message)

    def _refresh_token(
        self,
        refresh_token: str,
        client_id: Optional[str],
        client_secret: Optional[str],
    ) -> TokenResponse:
        self._authenticate_client(client_id, client_secret)

        record = self._store.find_token_by_refresh(refresh_token)
        if record is None:
            logger.warning("Refresh token %s not found", redact(refresh_token))
            raise InvalidGrantError("Refresh token is invalid")

        now = self._clock()
        access_token = secrets.token_urlsafe(TOKEN_BYTES)
        rotated = self._store.rotate_access_token(
            refresh_token=refresh_token,
            access_token=access_token,
            access_token_expires_at=now + self._access_ttl,
            updated_at=now,
        )
        if not rotated:
            raise InvalidGrantError("Refresh token is invalid")

        logger.info(
            "Rotated access token",
            extra={
                "assistant": self.namespace,
                "tenant_id": record.tenant_id,
                "external_user_id": record.external_user_id,
            },
        )
        return TokenResponse.granted(access_token, int(self._access_ttl.total_seconds()))

    def _authenticate_client(
        self, client_id: Optional[str], client_secret: Optional[str]
    ) -> None:
        if self._client.development_mode:
            logger.warning(
                "Accepting unverified client credentials for %s (development mode)",
                self.namespace,
            )
            return
        # Evaluate both comparisons so timing does not reveal which one failed.
        id_matches = hmac.compare_digest(
            (client_id or "").encode("utf-8"), self._client.client_id.encode("utf-8")
        )
        secret_matches = hmac.compare_digest(
            (client_secret or "").encode("utf-8"),
            self._client.client_secret.encode("utf-8"),
        )
        if not (id_matches and secret_matches):
            logger.warning("Invalid client credentials for %s", self.namespace)
            raise InvalidClientError()

    # Revocation and validation -------------------------------------------

    def revoke_token(self, access_token: str) -> None:
        removed = self._store.delete_token_by_access(access_token)
        logger.info(
            "Revoked access token %s",
            redact(access_token),
            extra={"assistant": self.namespace, "removed": removed},
        )

    def revoke_all_for_external_user(self, external_user_id: str) -> int:
        removed = self._store.delete_tokens_for_external_user(external_user_id)
        logger.info(
            "Revoked tokens for linked account",
            extra={
                "assistant": self.namespace,
                "external_user_id": external_user_id,
                "removed": removed,
            },
        )
        return removed

    def validate_token(self, access_token: str) -> TokenRecord:
        """Return the live record for ``access_token`` or raise InvalidTokenError."""
        if not access_token:
            raise InvalidTokenError("Invalid access token")
        record = self._store.find_token_by_access(access_token)
        if record is None:
            raise InvalidTokenError("Invalid access token")
        if record.is_access_expired(self._clock()):
            raise InvalidTokenError("Access token has expired")
        return record

    def cleanup_expired(self) -> int:
        now = self._clock()
        expired_tokens = self._store.delete_expired_tokens(now)
        expired_codes = self._store.delete_expired_codes(now)
        total = expired_tokens + expired_codes
        if total:
            logger.info(
                "Cleaned up %d expired tokens and %d expired authorization codes",
                expired_tokens,
                expired_codes,
                extra={"assistant": self.namespace},
            )
        return total


__all__ = [
    "GRANT_AUTHORIZATION_CODE",
    "GRANT_REFRESH_TOKEN",
    "OAuthAuthority",
    "external_user_id_for",
    "utc_now",
]
