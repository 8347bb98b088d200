"""Request guard and dependency providers for authenticated routes.

Protected routes depend on :func:`get_current_claims`: the bearer access
token from the ``Authorization`` header is verified with the application's
:class:`~corredora.core.security.TokenIssuer` and the decoded claims are
attached to ``request.state.claims``. The account is not re-read; a token
is trusted until it expires.
"""

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from corredora.config.config import Settings
from corredora.core.errors import Forbidden, InvalidToken, Unauthenticated
from corredora.core.logging import logger
from corredora.core.security import TokenIssuer
from corredora.db.session import get_db
from corredora.schemas.auth import AccessClaims, Role
from corredora.services.accounts import AccountStore
from corredora.services.auth import AuthService
from corredora.services.refresh_tokens import RefreshTokenStore

bearer_scheme = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


def get_account_store(
    db: Annotated[AsyncSession, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> AccountStore:
    return AccountStore(db, timeout=settings.STORE_TIMEOUT_SECONDS)


def get_refresh_token_store(
    db: Annotated[AsyncSession, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> RefreshTokenStore:
    return RefreshTokenStore(
        db,
        ttl_seconds=settings.REFRESH_TOKEN_TTL_SECONDS,
        timeout=settings.STORE_TIMEOUT_SECONDS,
    )


def get_auth_service(
    accounts: Annotated[AccountStore, Depends(get_account_store)],
    refresh_tokens: Annotated[RefreshTokenStore, Depends(get_refresh_token_store)],
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> AuthService:
    return AuthService(
        accounts,
        refresh_tokens,
        issuer,
        rotate_refresh_tokens=settings.REFRESH_TOKEN_ROTATION,
    )


async def get_current_claims(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
) -> AccessClaims:
    """Verify the bearer access token and return its claims.

    Raises:
        Unauthenticated: Missing or non-bearer header, bad signature,
            malformed token or expired token.
    """
    if credentials is None or not credentials.credentials:
        raise Unauthenticated()
    try:
        claims = issuer.verify(credentials.credentials)
    except InvalidToken as exc:
        logger.debug("Rejected access token: {}", exc)
        raise Unauthenticated() from exc
    request.state.claims = claims
    return claims


def require_admin(
    claims: Annotated[AccessClaims, Depends(get_current_claims)],
) -> AccessClaims:
    """Require an authenticated caller holding the admin role."""
    if claims.role is not Role.ADMIN:
        raise Forbidden()
    return claims


CurrentClaims = Annotated[AccessClaims, Depends(get_current_claims)]
AdminClaims = Annotated[AccessClaims, Depends(require_admin)]
