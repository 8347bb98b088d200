"""Account maintenance routes, restricted to administrators."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from corredora.core.auth_helper import AdminClaims, get_account_store, get_refresh_token_store
from corredora.core.errors import MalformedRequest, NotFound
from corredora.core.logging import logger
from corredora.schemas.auth import User
from corredora.schemas.users import UserCreate, UserDeleted, UsersListResponse, UserUpdate
from corredora.services.accounts import AccountStore
from corredora.services.refresh_tokens import RefreshTokenStore

router = APIRouter(prefix="/users", tags=["users"])

Accounts = Annotated[AccountStore, Depends(get_account_store)]
RefreshTokens = Annotated[RefreshTokenStore, Depends(get_refresh_token_store)]

USER_NOT_FOUND = "Usuario no encontrado"


@router.get("", response_model=UsersListResponse)
async def list_users(_admin: AdminClaims, accounts: Accounts):
    """List all accounts sorted by name; credentials are never included."""
    users = await accounts.list_all()
    return UsersListResponse(items=[User.model_validate(u) for u in users])


@router.post("", response_model=User, status_code=status.HTTP_201_CREATED)
async def create_user(body: UserCreate, admin: AdminClaims, accounts: Accounts):
    """Create an account. Returns 409 when the email is already registered."""
    user = await accounts.create(name=body.name, email=body.email, password=body.password, role=body.role)
    logger.info("Account id={} created by admin id={}", user.id, admin.sub)
    return User.model_validate(user)


@router.patch("/{user_id}", response_model=User)
async def update_user(
    user_id: str,
    body: UserUpdate,
    admin: AdminClaims,
    accounts: Accounts,
    refresh_tokens: RefreshTokens,
):
    """Change name, role or password.

    A password change revokes the account's refresh sessions; access
    tokens already issued stay valid until they expire.
    """
    changes = body.model_dump(exclude_none=True)
    if not changes:
        raise MalformedRequest("Sin cambios")

    user = await accounts.update(user_id, **changes)
    if user is None:
        raise NotFound(USER_NOT_FOUND)
    if body.password is not None:
        await refresh_tokens.revoke_all(user_id)
    logger.info("Account id={} updated by admin id={} fields={}", user_id, admin.sub, sorted(changes))
    return User.model_validate(user)


@router.delete("/{user_id}", response_model=UserDeleted)
async def delete_user(
    user_id: str,
    admin: AdminClaims,
    accounts: Accounts,
    refresh_tokens: RefreshTokens,
):
    """Delete an account and its refresh sessions."""
    if await accounts.get_by_id(user_id) is None:
        raise NotFound(USER_NOT_FOUND)
    await refresh_tokens.revoke_all(user_id)
    await accounts.delete(user_id)
    logger.info("Account id={} deleted by admin id={}", user_id, admin.sub)
    return UserDeleted(id=user_id)
