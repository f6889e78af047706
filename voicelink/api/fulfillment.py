"""Google smart-home fulfillment endpoint."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Header

from voicelink.api.security import extract_bearer, http_error
from voicelink.core.errors import GatewayError
from voicelink.dependencies import get_fulfillment_router
from voicelink.services import FulfillmentRouter

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/google/fulfillment", status_code=HTTPStatus.OK)
async def fulfill(
    fulfillment: Annotated[FulfillmentRouter, Depends(get_fulfillment_router)],
    body: Annotated[Dict[str, Any], Body()],
    authorization: Annotated[Optional[str], Header()] = None,
) -> Dict[str, Any]:
    """Handle a SYNC, QUERY, EXECUTE or DISCONNECT intent envelope."""
    try:
        return await fulfillment.handle(body, extract_bearer(authorization))
    except GatewayError as exc:
        logger.warning(
            "Rejected fulfillment request: %s",
            exc.message,
            extra={"request_id": body.get("requestId")},
        )
        raise http_error(exc) from exc


__all__ = ["router"]
