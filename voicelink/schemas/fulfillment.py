"""Schemas for the smart-home fulfillment envelope."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class IntentInput(BaseModel):
    model_config = ConfigDict(extra="allow")

    intent: str
    payload: Dict[str, Any] = Field(default_factory=dict)


class FulfillmentRequest(BaseModel):
    """Inbound envelope: ``{requestId, inputs: [{intent, payload}]}``."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    request_id: str = Field("", alias="requestId")
    inputs: Optional[List[IntentInput]] = None


class FulfillmentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    request_id: str = Field(..., alias="requestId")
    payload: Dict[str, Any] = Field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


__all__ = ["FulfillmentRequest", "FulfillmentResponse", "IntentInput"]
