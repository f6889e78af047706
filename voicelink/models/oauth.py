"""
Domain models for OAuth account-linking persistence.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class AuthorizationCode(BaseModel):
    """Short-lived grant handed to the assistant after the user logs in."""

    code: str = Field(..., description="Opaque URL-safe code value.")
    tenant_id: str
    user_id: str
    external_user_id: str = Field(
        ..., description="Stable identifier of the linked account on our side."
    )
    expires_at: datetime
    used: bool = False
    created_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class TokenRecord(BaseModel):
    """Represents an access/refresh token pair for one linked account."""

    access_token: str
    refresh_token: str
    tenant_id: str
    user_id: str
    external_user_id: str
    access_token_expires_at: datetime
    created_at: datetime
    updated_at: datetime

    def is_access_expired(self, now: datetime) -> bool:
        return now >= self.access_token_expires_at


__all__ = ["AuthorizationCode", "TokenRecord"]
