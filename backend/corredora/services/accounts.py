"""Credential store: account lookup and maintenance over the ``users`` table."""

import asyncio
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from corredora.core.errors import Conflict
from corredora.core.logging import logger
from corredora.core.security import hash_password
from corredora.db.session import store_call
from corredora.models.auth import User
from corredora.schemas.auth import Role


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AccountStore:
    """Account persistence bound to one session.

    Args:
        db: Session for the current request or job.
        timeout: Upper bound in seconds for each store operation.
    """

    def __init__(self, db: AsyncSession, timeout: float = 5.0):
        self.db = db
        self.timeout = timeout

    async def get_by_email(self, email: str) -> User | None:
        """Case-insensitive lookup by email."""

        async def op():
            result = await self.db.execute(select(User).where(User.email == normalize_email(email)))
            return result.scalars().first()

        return await store_call(op(), self.timeout, "users.find_by_email")

    async def get_by_id(self, user_id: str) -> User | None:
        return await store_call(self.db.get(User, str(user_id)), self.timeout, "users.find_by_id")

    async def list_all(self) -> list[User]:
        async def op():
            result = await self.db.execute(select(User).order_by(User.name))
            return list(result.scalars().all())

        return await store_call(op(), self.timeout, "users.list")

    async def create(self, *, name: str, email: str, password: str, role: Role) -> User:
        """Insert a new account with a freshly hashed password.

        Raises:
            Conflict: The email is already registered.
        """
        email = normalize_email(email)
        if await self.get_by_email(email) is not None:
            raise Conflict("El email ya está registrado")

        credential = await asyncio.to_thread(hash_password, password)
        user = User(name=name, email=email, password_hash=credential, role=Role(role).value)

        async def op():
            self.db.add(user)
            await self.db.commit()
            return user

        try:
            created = await store_call(op(), self.timeout, "users.insert")
        except IntegrityError as exc:
            # Concurrent insert of the same email won the race.
            await self.db.rollback()
            raise Conflict("El email ya está registrado") from exc
        logger.info("Created account id={} role={}", created.id, created.role)
        return created

    async def update(
        self,
        user_id: str,
        *,
        name: str | None = None,
        password: str | None = None,
        role: Role | None = None,
    ) -> User | None:
        """Apply the given changes; returns None when the account does not exist."""
        user = await self.get_by_id(user_id)
        if user is None:
            return None
        if name is not None:
            user.name = name
        if role is not None:
            user.role = Role(role).value
        if password is not None:
            user.password_hash = await asyncio.to_thread(hash_password, password)
        user.updated_at = datetime.now(timezone.utc)

        async def op():
            await self.db.commit()
            return user

        return await store_call(op(), self.timeout, "users.update")

    async def delete(self, user_id: str) -> bool:
        user = await self.get_by_id(user_id)
        if user is None:
            return False

        async def op():
            await self.db.delete(user)
            await self.db.commit()

        await store_call(op(), self.timeout, "users.delete")
        logger.info("Deleted account id={}", user_id)
        return True
