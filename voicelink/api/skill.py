"""Alexa skill REST endpoints authenticated with linked-account bearer tokens."""

from __future__ import annotations

from http import HTTPStatus
from typing import Annotated, Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, Query

from voicelink.api.security import extract_bearer, http_error
from voicelink.core.errors import GatewayError
from voicelink.dependencies import get_skill_service
from voicelink.models.oauth import TokenRecord
from voicelink.schemas import SkillCommandRequest, SkillDevice
from voicelink.services import SkillService

router = APIRouter(prefix="/alexa/skill")

SkillDependency = Annotated[SkillService, Depends(get_skill_service)]


def get_skill_token(
    skill: SkillDependency,
    authorization: Annotated[Optional[str], Header()] = None,
) -> TokenRecord:
    try:
        return skill.authenticate(extract_bearer(authorization))
    except GatewayError as exc:
        raise http_error(exc) from exc


TokenDependency = Annotated[TokenRecord, Depends(get_skill_token)]


@router.get("/devices", status_code=HTTPStatus.OK)
async def list_skill_devices(
    skill: SkillDependency, token: TokenDependency
) -> List[SkillDevice]:
    return skill.list_devices(token)


@router.get("/devices/{device_id}", status_code=HTTPStatus.OK)
async def get_skill_device(
    device_id: str, skill: SkillDependency, token: TokenDependency
) -> SkillDevice:
    try:
        return skill.get_device(token, device_id)
    except GatewayError as exc:
        raise http_error(exc) from exc


@router.post("/devices/{device_id}/command", status_code=HTTPStatus.OK)
async def execute_skill_command(
    device_id: str,
    payload: SkillCommandRequest,
    skill: SkillDependency,
    token: TokenDependency,
) -> Dict[str, Any]:
    try:
        return await skill.execute(token, device_id, payload)
    except GatewayError as exc:
        raise http_error(exc) from exc


@router.get("/devices/{device_id}/telemetry", status_code=HTTPStatus.OK)
async def get_skill_telemetry(
    device_id: str,
    skill: SkillDependency,
    token: TokenDependency,
    keys: Optional[str] = Query(None, description="Comma-separated telemetry keys."),
) -> Dict[str, Any]:
    """Latest telemetry values as ``{key: [{ts, value}]}``."""
    key_list = [key.strip() for key in keys.split(",") if key.strip()] if keys else None
    try:
        return await skill.latest_telemetry(token, device_id, key_list)
    except GatewayError as exc:
        raise http_error(exc) from exc


__all__ = ["router"]
