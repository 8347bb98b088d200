"""Authentication routes.

Endpoints:
    - POST /auth/login: email + password, returns access and refresh tokens
    - POST /auth/refresh: exchange a refresh token for a new access token
    - POST /auth/logout: revoke a refresh token (always succeeds)
    - POST /auth/logout-all: revoke every refresh token of the caller
    - GET /auth/me: claims of the current access token
    - GET /auth/sessions: live refresh sessions of the caller
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from corredora.core.auth_helper import CurrentClaims, get_auth_service
from corredora.core.logging import logger
from corredora.schemas.auth import (
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    OkResponse,
    RefreshRequest,
    RefreshResponse,
    Session,
    SessionsResponse,
    User,
)
from corredora.services.auth import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])

AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, auth: AuthServiceDep):
    """Authenticate and issue an access token plus a refresh token.

    Returns 401 with a generic message for both unknown email and wrong
    password.
    """
    result = await auth.login(body.email, body.password)
    return LoginResponse(
        user=result.user,
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        expires_in_seconds=result.expires_in_seconds,
    )


@router.post("/refresh", response_model=RefreshResponse, response_model_exclude_none=True)
async def refresh(body: RefreshRequest, auth: AuthServiceDep):
    """Exchange a refresh token for a new access token."""
    result = await auth.refresh(body.refresh_token)
    return RefreshResponse(
        access_token=result.access_token,
        expires_in_seconds=result.expires_in_seconds,
        refresh_token=result.refresh_token,
    )


@router.post("/logout", response_model=OkResponse)
async def logout(request: Request, auth: AuthServiceDep):
    """Revoke the refresh token in the body, if any.

    The body is optional and parsed leniently: logout never fails the
    caller.
    """
    raw = await request.body()
    refresh_token = None
    if raw:
        try:
            refresh_token = LogoutRequest.model_validate_json(raw).refresh_token
        except ValidationError:
            logger.debug("Ignoring malformed logout body")
    await auth.logout(refresh_token)
    return OkResponse()


@router.post("/logout-all", response_model=OkResponse)
async def logout_all(claims: CurrentClaims, auth: AuthServiceDep):
    """Revoke every refresh session of the current account."""
    await auth.logout_all(claims.sub)
    return OkResponse()


@router.get("/me", response_model=User)
async def read_me(claims: CurrentClaims):
    """Return the identity asserted by the current access token."""
    return User(id=claims.sub, email=claims.email, name=claims.name, role=claims.role)


@router.get("/sessions", response_model=SessionsResponse)
async def list_sessions(claims: CurrentClaims, auth: AuthServiceDep):
    """List the caller's unexpired refresh sessions, without token values."""
    rows = await auth.sessions(claims.sub)
    return SessionsResponse(
        items=[Session(created_at=row.created_at, expires_at=row.expires_at) for row in rows]
    )
