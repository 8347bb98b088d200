"""Refresh token store over the ``refresh_tokens`` table.

Rows are keyed by the opaque token value. Expiry is enforced lazily: a
token read after its ``expires_at`` is deleted and reported as invalid, so
correctness never depends on :meth:`RefreshTokenStore.purge_expired`
having run.
"""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from corredora.core.errors import Unavailable
from corredora.core.logging import logger
from corredora.core.security import generate_refresh_token
from corredora.db.session import store_call
from corredora.models.auth import RefreshToken


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RefreshTokenStore:
    """Create, validate and revoke refresh tokens.

    Args:
        db: Session for the current request or job.
        ttl_seconds: Lifetime of newly created tokens.
        timeout: Upper bound in seconds for each store operation.
        clock: Returns the current UTC time.
    """

    def __init__(
        self,
        db: AsyncSession,
        ttl_seconds: int = 86400,
        timeout: float = 5.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.ttl_seconds = ttl_seconds
        self.timeout = timeout
        self.clock = clock

    async def create(self, user_id: str) -> tuple[str, datetime]:
        """Persist a new token for ``user_id``; returns ``(token, expires_at)``.

        Raises:
            Unavailable: The row could not be stored, including when the
                account was removed concurrently.
        """
        token = generate_refresh_token()
        expires_at = self.clock() + timedelta(seconds=self.ttl_seconds)

        async def op():
            self.db.add(RefreshToken(token=token, user_id=str(user_id), expires_at=expires_at))
            await self.db.commit()

        try:
            await store_call(op(), self.timeout, "refresh_tokens.insert")
        except IntegrityError as exc:
            await self.db.rollback()
            logger.warning("Refresh token insert rejected for user_id={}: {}", user_id, exc.orig)
            raise Unavailable() from exc
        logger.debug("Stored refresh token for user_id={} expires_at={}", user_id, expires_at)
        return token, expires_at

    async def validate(self, token: str) -> str | None:
        """Return the owning account id, or None when absent or expired."""
        if not token:
            return None

        async def op():
            result = await self.db.execute(select(RefreshToken).where(RefreshToken.token == token))
            return result.scalars().first()

        entry = await store_call(op(), self.timeout, "refresh_tokens.find")
        if entry is None:
            return None
        if as_utc(entry.expires_at) < self.clock():
            logger.debug("Refresh token expired for user_id={}", entry.user_id)
            try:
                await self.revoke(token)
            except Unavailable:
                logger.warning("Could not delete expired refresh token for user_id={}", entry.user_id)
            return None
        return entry.user_id

    async def _delete_where(self, criterion, what: str) -> int:
        # Readers always re-select, so the identity map is not synchronised.
        statement = delete(RefreshToken).where(criterion).execution_options(synchronize_session=False)

        async def op():
            result = await self.db.execute(statement)
            await self.db.commit()
            return result.rowcount or 0

        return await store_call(op(), self.timeout, what)

    async def revoke(self, token: str) -> None:
        """Delete the token if present; revoking an absent token is a no-op."""
        await self._delete_where(RefreshToken.token == token, "refresh_tokens.delete")

    async def revoke_all(self, user_id: str) -> int:
        """Delete every token of ``user_id``; returns how many were removed."""
        count = await self._delete_where(RefreshToken.user_id == str(user_id), "refresh_tokens.delete_for_user")
        logger.info("Revoked refresh tokens for user_id={} count={}", user_id, count)
        return count

    async def purge_expired(self) -> int:
        """Remove rows past their expiry."""
        return await self._delete_where(RefreshToken.expires_at < self.clock(), "refresh_tokens.purge")

    async def list_active(self, user_id: str) -> list[RefreshToken]:
        """Unexpired sessions of ``user_id``, newest expiry first."""

        async def op():
            result = await self.db.execute(
                select(RefreshToken)
                .where(RefreshToken.user_id == str(user_id), RefreshToken.expires_at > self.clock())
                .order_by(RefreshToken.expires_at.desc())
            )
            return list(result.scalars().all())

        return await store_call(op(), self.timeout, "refresh_tokens.list_for_user")
