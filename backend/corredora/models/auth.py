"""Authentication models: accounts and refresh tokens.

``users`` is the credential store; ``refresh_tokens`` holds one row per
live session, keyed by the opaque token value.
"""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.sql import func

from corredora.db.session import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """Database model representing an account that can sign in.

    Attributes:
        id: Opaque identifier (UUID text).
        email: Unique login email, stored lower-case.
        name: Display name.
        password_hash: ``salt:hash`` credential; never serialised.
        role: One of the values of ``corredora.schemas.auth.Role``.
        created_at: Account creation timestamp.
        updated_at: Last profile or credential change.
    """

    __tablename__ = "users"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(320), nullable=False, unique=True, index=True)
    name = Column(String(200), nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)


class RefreshToken(Base):
    """A refresh session.

    Attributes:
        token: Opaque random token value; the lookup key.
        user_id: Owning account.
        expires_at: Absolute expiry (UTC). Rows past it are invalid even
            before they are purged.
        created_at: Issue timestamp.
    """

    __tablename__ = "refresh_tokens"
    __mapper_args__ = {"eager_defaults": True}

    token = Column(String(128), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
