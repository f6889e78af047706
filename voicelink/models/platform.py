"""
Models describing identities resolved through the IoT platform.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel

# The platform uses this id in place of null for "no customer".
NULL_UUID = "13814000-1dd2-11b2-8080-808080808080"


class Authority(str, Enum):
    SYS_ADMIN = "SYS_ADMIN"
    TENANT_ADMIN = "TENANT_ADMIN"
    CUSTOMER_USER = "CUSTOMER_USER"


def _entity_id(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        value = value.get("id")
    if not value or value == NULL_UUID:
        return None
    return str(value)


class PlatformUser(BaseModel):
    """Platform account that owns a session or an account link."""

    user_id: str
    tenant_id: str
    customer_id: Optional[str] = None
    authority: Authority
    email: Optional[str] = None

    @classmethod
    def from_platform(cls, payload: Dict[str, Any]) -> "PlatformUser":
        """Build from the platform's ``/api/auth/user`` JSON body."""
        return cls(
            user_id=_entity_id(payload.get("id")) or "",
            tenant_id=_entity_id(payload.get("tenantId")) or "",
            customer_id=_entity_id(payload.get("customerId")),
            authority=Authority(payload.get("authority", Authority.CUSTOMER_USER)),
            email=payload.get("email"),
        )


__all__ = ["Authority", "NULL_UUID", "PlatformUser"]
