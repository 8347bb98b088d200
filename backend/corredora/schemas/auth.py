"""Pydantic schemas for authentication endpoints.

Request bodies and responses use camelCase on the wire (``accessToken``,
``expiresInSeconds``) to match the browser client; Python code uses the
snake_case field names.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel

EmailText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=320)]
PasswordText = Annotated[str, StringConstraints(min_length=1, max_length=1024)]


class Role(str, Enum):
    """Closed set of roles an account can hold."""

    ADMIN = "admin"
    OPERADOR = "operador"
    CONSULTA = "consulta"


class CamelModel(BaseModel):
    """Base model serialising to camelCase while accepting either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class User(CamelModel):
    """Public account representation; never carries the password credential."""

    id: str
    email: str
    name: str
    role: Role

    model_config = ConfigDict(from_attributes=True)


class AccessClaims(BaseModel):
    """Claims carried by a signed access token.

    Attributes:
        sub: Account id the token was issued for.
        email: Account email at issue time.
        name: Display name at issue time.
        role: Role at issue time; trusted for the token's lifetime.
        iat: Issued-at, seconds since the epoch.
        exp: Expiry, seconds since the epoch.
        jti: Random token id, unique per issued token.
    """

    sub: str
    email: str
    name: str
    role: Role
    iat: int
    exp: int
    jti: str


class LoginRequest(CamelModel):
    email: EmailText
    password: PasswordText


class LoginResponse(CamelModel):
    user: User
    access_token: str
    refresh_token: str
    expires_in_seconds: int


class RefreshRequest(CamelModel):
    refresh_token: Annotated[str, StringConstraints(min_length=1, max_length=512)]


class RefreshResponse(CamelModel):
    """New access token; ``refresh_token`` is set only when rotation is enabled."""

    access_token: str
    expires_in_seconds: int
    refresh_token: str | None = None


class LogoutRequest(CamelModel):
    refresh_token: str | None = None


class OkResponse(BaseModel):
    ok: bool = True


class Session(CamelModel):
    """A live refresh session, listed without its token value."""

    created_at: datetime | None = None
    expires_at: datetime


class SessionsResponse(BaseModel):
    items: list[Session] = Field(default_factory=list)
