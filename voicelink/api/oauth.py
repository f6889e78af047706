"""
OAuth2 account-linking endpoints, one set per assistant under ``/{assistant}/oauth``.
"""

from __future__ import annotations

import logging
import sqlite3
from http import HTTPStatus
from typing import Annotated, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from fastapi import APIRouter, Depends, Form, Header, HTTPException, Query, Response
from fastapi.responses import JSONResponse, RedirectResponse

from voicelink.api.security import (
    get_platform_user,
    http_error,
    parse_basic_credentials,
    resolve_authority,
)
from voicelink.clients import PlatformClient
from voicelink.core.errors import GatewayError, UnauthorizedError
from voicelink.dependencies import get_platform_client
from voicelink.models.device import Assistant
from voicelink.models.platform import PlatformUser
from voicelink.schemas import AuthorizationRequest
from voicelink.services import OAuthAuthority, external_user_id_for

router = APIRouter()
logger = logging.getLogger(__name__)

_NO_STORE = {"Cache-Control": "no-store", "Pragma": "no-cache"}


def _with_query(url: str, **params: Optional[str]) -> str:
    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.extend((key, value) for key, value in params.items() if value is not None)
    return urlunsplit(parts._replace(query=urlencode(query)))


def _validate_authorization_request(
    authority: OAuthAuthority,
    response_type: str,
    client_id: str,
    redirect_uri: str,
) -> None:
    if response_type != "code":
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=f"Unsupported response_type: {response_type}",
        )
    if not authority.is_known_client(client_id):
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="Unknown client_id"
        )
    if not authority.is_redirect_allowed(redirect_uri):
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="redirect_uri is not allowed"
        )


def _issue_and_redirect(
    assistant: Assistant,
    authority: OAuthAuthority,
    user: PlatformUser,
    redirect_uri: str,
    state: Optional[str],
) -> RedirectResponse:
    try:
        code = authority.issue_authorization_code(
            user.tenant_id,
            user.user_id,
            external_user_id_for(assistant.value, user.tenant_id, user.user_id),
        )
    except sqlite3.Error:
        logger.exception(
            "Failed to issue authorization code",
            extra={"assistant": assistant.value, "tenant_id": user.tenant_id},
        )
        return RedirectResponse(
            url=_with_query(redirect_uri, error="server_error", state=state),
            status_code=HTTPStatus.FOUND,
        )
    return RedirectResponse(
        url=_with_query(redirect_uri, code=code, state=state),
        status_code=HTTPStatus.FOUND,
    )


@router.get("/{assistant}/oauth/authorize", status_code=HTTPStatus.OK)
async def describe_authorization(
    assistant: Assistant,
    authority: Annotated[OAuthAuthority, Depends(resolve_authority)],
    client_id: str = Query(...),
    redirect_uri: str = Query(...),
    response_type: str = Query("code"),
    state: Optional[str] = Query(None),
) -> AuthorizationRequest:
    """Validate an authorization request and describe how to complete it."""
    _validate_authorization_request(authority, response_type, client_id, redirect_uri)
    return AuthorizationRequest(
        assistant=assistant.value,
        client_id=client_id,
        redirect_uri=redirect_uri,
        state=state,
        response_type=response_type,
        login_url=f"/api/{assistant.value}/oauth/login",
    )


@router.post("/{assistant}/oauth/authorize")
async def authorize_session(
    assistant: Assistant,
    authority: Annotated[OAuthAuthority, Depends(resolve_authority)],
    user: Annotated[PlatformUser, Depends(get_platform_user)],
    client_id: str = Query(...),
    redirect_uri: str = Query(...),
    response_type: str = Query("code"),
    state: Optional[str] = Query(None),
) -> RedirectResponse:
    """Issue a code for an already-authenticated platform session."""
    _validate_authorization_request(authority, response_type, client_id, redirect_uri)
    return _issue_and_redirect(assistant, authority, user, redirect_uri, state)


@router.post("/{assistant}/oauth/login")
async def login_and_authorize(
    assistant: Assistant,
    authority: Annotated[OAuthAuthority, Depends(resolve_authority)],
    platform: Annotated[PlatformClient, Depends(get_platform_client)],
    username: Annotated[str, Form()],
    password: Annotated[str, Form()],
    client_id: str = Query(...),
    redirect_uri: str = Query(...),
    response_type: str = Query("code"),
    state: Optional[str] = Query(None),
) -> RedirectResponse:
    """Authenticate platform credentials from the login form, then issue a code."""
    _validate_authorization_request(authority, response_type, client_id, redirect_uri)
    try:
        session_token = await platform.login(username, password)
        user = await platform.get_current_user(session_token)
    except UnauthorizedError as exc:
        logger.warning(
            "Account-linking login rejected", extra={"assistant": assistant.value}
        )
        raise http_error(exc) from exc
    except GatewayError as exc:
        raise http_error(exc) from exc
    return _issue_and_redirect(assistant, authority, user, redirect_uri, state)


@router.post("/{assistant}/oauth/token")
async def issue_token(
    assistant: Assistant,
    authority: Annotated[OAuthAuthority, Depends(resolve_authority)],
    grant_type: Annotated[Optional[str], Form()] = None,
    code: Annotated[Optional[str], Form()] = None,
    refresh_token: Annotated[Optional[str], Form()] = None,
    client_id: Annotated[Optional[str], Form()] = None,
    client_secret: Annotated[Optional[str], Form()] = None,
    authorization: Annotated[Optional[str], Header()] = None,
) -> JSONResponse:
    """Token endpoint for the authorization_code and refresh_token grants."""
    if client_id is None and client_secret is None:
        basic = parse_basic_credentials(authorization)
        if basic is not None:
            client_id, client_secret = basic

    try:
        result = authority.handle_token_request(
            grant_type,
            code=code,
            refresh_token=refresh_token,
            client_id=client_id,
            client_secret=client_secret,
        )
    except sqlite3.Error:
        logger.exception(
            "Token endpoint storage failure",
            extra={"assistant": assistant.value, "grant_type": grant_type},
        )
        return JSONResponse(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            content={
                "error": "server_error",
                "error_description": "Token storage is unavailable",
            },
            headers=_NO_STORE,
        )

    status = HTTPStatus.BAD_REQUEST if result.is_error else HTTPStatus.OK
    return JSONResponse(
        status_code=status, content=result.to_payload(), headers=_NO_STORE
    )


@router.post("/{assistant}/oauth/revoke", status_code=HTTPStatus.OK)
async def revoke_token(
    authority: Annotated[OAuthAuthority, Depends(resolve_authority)],
    token: Annotated[str, Form()] = "",
) -> Response:
    """Revoke an access token. Unknown tokens are ignored."""
    if token:
        authority.revoke_token(token)
    return Response(status_code=HTTPStatus.OK)


__all__ = ["router"]
