"""Schemas exchanged on the OAuth account-linking endpoints."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class TokenResponse(BaseModel):
    """Token endpoint body: either a token grant or an OAuth error."""

    access_token: Optional[str] = None
    token_type: Optional[str] = None
    expires_in: Optional[int] = None
    refresh_token: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None

    @classmethod
    def granted(
        cls, access_token: str, expires_in: int, refresh_token: Optional[str] = None
    ) -> "TokenResponse":
        return cls(
            access_token=access_token,
            token_type="Bearer",
            expires_in=expires_in,
            refresh_token=refresh_token,
        )

    @classmethod
    def failed(cls, error: str, description: str) -> "TokenResponse":
        return cls(error=error, error_description=description)

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class AuthorizationRequest(BaseModel):
    """Pending authorization echoed back by ``GET /oauth/authorize``."""

    assistant: str
    client_id: str
    redirect_uri: str
    state: Optional[str] = None
    response_type: str = Field("code")
    login_url: str = Field(
        ..., description="Form endpoint that completes the login and issues a code."
    )


__all__ = ["AuthorizationRequest", "TokenResponse"]
