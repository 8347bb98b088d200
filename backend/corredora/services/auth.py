"""Login, refresh and logout orchestration.

REFRESH TOKEN FLOW:

1. LOGIN: the email is looked up, the password verified, then an access
   token is signed and a refresh token stored. Nothing is issued unless
   both checks pass.
2. REFRESH: the refresh token must exist and be unexpired, and its account
   must still exist. A new access token is signed; the refresh token is
   kept unless rotation is enabled.
3. LOGOUT: the refresh token row is deleted. Logout never fails the caller.

Unknown email and wrong password raise the same error after the same
amount of hashing work.
"""

import asyncio
from dataclasses import dataclass

from pydantic import ValidationError

from corredora.core.errors import CorredoraError, InvalidCredentials, InvalidRefreshToken, Unavailable
from corredora.core.logging import logger
from corredora.core.security import DUMMY_CREDENTIAL, IssuedAccessToken, TokenIssuer, verify_password
from corredora.models.auth import RefreshToken
from corredora.models.auth import User as UserRow
from corredora.schemas.auth import User
from corredora.services.accounts import AccountStore, normalize_email
from corredora.services.refresh_tokens import RefreshTokenStore


@dataclass(frozen=True)
class LoginResult:
    user: User
    access_token: str
    refresh_token: str
    expires_in_seconds: int


@dataclass(frozen=True)
class RefreshResult:
    access_token: str
    expires_in_seconds: int
    refresh_token: str | None = None


class AuthService:
    """Authenticator composed of the credential store, token store and issuer.

    Args:
        accounts: Credential store.
        refresh_tokens: Refresh token store.
        issuer: Access token issuer.
        rotate_refresh_tokens: Replace the refresh token on every refresh.
    """

    def __init__(
        self,
        accounts: AccountStore,
        refresh_tokens: RefreshTokenStore,
        issuer: TokenIssuer,
        rotate_refresh_tokens: bool = False,
    ):
        self.accounts = accounts
        self.refresh_tokens = refresh_tokens
        self.issuer = issuer
        self.rotate_refresh_tokens = rotate_refresh_tokens

    def _sign(self, user: UserRow, error: type[CorredoraError]) -> tuple[IssuedAccessToken, User]:
        # Rows written outside the API may carry a role the claims do not accept.
        try:
            return self.issuer.issue(user), User.model_validate(user)
        except ValidationError as exc:
            logger.error("Account id={} cannot be signed in with role={!r}", user.id, user.role)
            raise error() from exc

    async def login(self, email: str, password: str) -> LoginResult:
        """Authenticate with email and password.

        Raises:
            InvalidCredentials: Unknown email, wrong password, or an
                account whose stored role is not supported.
            Unavailable: The store could not be reached.
        """
        email = normalize_email(email)
        user = await self.accounts.get_by_email(email)
        if user is None:
            await asyncio.to_thread(verify_password, password, DUMMY_CREDENTIAL)
            logger.warning("Failed login attempt for email={}", email)
            raise InvalidCredentials()

        if not await asyncio.to_thread(verify_password, password, user.password_hash):
            logger.warning("Failed login attempt for email={}", email)
            raise InvalidCredentials()

        issued, profile = self._sign(user, InvalidCredentials)
        refresh_token, _ = await self.refresh_tokens.create(user.id)
        logger.info("User id={} logged in", user.id)
        return LoginResult(
            user=profile,
            access_token=issued.token,
            refresh_token=refresh_token,
            expires_in_seconds=self.issuer.ttl_seconds,
        )

    async def refresh(self, refresh_token: str) -> RefreshResult:
        """Exchange a refresh token for a new access token.

        Raises:
            InvalidRefreshToken: Absent, expired or revoked token, or the
                account was deleted after the token was issued.
            Unavailable: The store could not be reached.
        """
        user_id = await self.refresh_tokens.validate(refresh_token)
        if user_id is None:
            raise InvalidRefreshToken()

        user = await self.accounts.get_by_id(user_id)
        if user is None:
            logger.warning("Refresh token bound to missing account user_id={}", user_id)
            try:
                await self.refresh_tokens.revoke(refresh_token)
            except Unavailable:
                logger.warning("Could not revoke refresh token of missing account user_id={}", user_id)
            raise InvalidRefreshToken()

        issued, _ = self._sign(user, InvalidRefreshToken)
        rotated = None
        if self.rotate_refresh_tokens:
            await self.refresh_tokens.revoke(refresh_token)
            rotated, _ = await self.refresh_tokens.create(user.id)
        logger.info("Refresh token used for user id={} rotated={}", user.id, rotated is not None)
        return RefreshResult(
            access_token=issued.token,
            expires_in_seconds=self.issuer.ttl_seconds,
            refresh_token=rotated,
        )

    async def logout(self, refresh_token: str | None) -> None:
        """Revoke ``refresh_token``; absent tokens and store failures are ignored."""
        if not refresh_token:
            return
        try:
            await self.refresh_tokens.revoke(refresh_token)
        except Unavailable:
            logger.warning("Logout could not revoke refresh token; store unavailable")
            return
        logger.info("Refresh token revoked on logout")

    async def logout_all(self, user_id: str) -> int:
        """Revoke every refresh session of ``user_id``."""
        return await self.refresh_tokens.revoke_all(user_id)

    async def sessions(self, user_id: str) -> list[RefreshToken]:
        return await self.refresh_tokens.list_active(user_id)
