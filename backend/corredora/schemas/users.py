"""Schemas for the admin user-management endpoints."""

from typing import Annotated

from pydantic import BaseModel, StringConstraints

from corredora.schemas.auth import CamelModel, EmailText, PasswordText, Role, User

NameText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]


class UserCreate(CamelModel):
    """Request body for creating an account."""

    name: NameText
    email: EmailText
    password: PasswordText
    role: Role


class UserUpdate(CamelModel):
    """Partial update; at least one field must be present."""

    name: NameText | None = None
    password: PasswordText | None = None
    role: Role | None = None


class UsersListResponse(BaseModel):
    items: list[User]


class UserDeleted(BaseModel):
    ok: bool = True
    id: str
