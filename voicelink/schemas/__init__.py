"""Public schema exports."""

from .fulfillment import FulfillmentRequest, FulfillmentResponse, IntentInput
from .oauth import AuthorizationRequest, TokenResponse
from .skill import (
    DeviceCapabilitiesView,
    DeviceRegistration,
    EnableRequest,
    SkillCommandRequest,
    SkillDevice,
)

__all__ = [
    "AuthorizationRequest",
    "DeviceCapabilitiesView",
    "DeviceRegistration",
    "EnableRequest",
    "FulfillmentRequest",
    "FulfillmentResponse",
    "IntentInput",
    "SkillCommandRequest",
    "SkillDevice",
    "TokenResponse",
]
