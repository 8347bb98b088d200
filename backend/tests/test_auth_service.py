"""Tests for the login / refresh / logout orchestration."""

import pytest
from sqlalchemy import update

from corredora.core.errors import InvalidCredentials, InvalidRefreshToken, Unavailable
from corredora.core.security import TokenIssuer
from corredora.db.session import Database
from corredora.models.auth import User as UserRow
from corredora.schemas.auth import Role
from corredora.services import auth as auth_module
from corredora.services.accounts import AccountStore
from corredora.services.auth import AuthService
from corredora.services.refresh_tokens import RefreshTokenStore

SECRET = "service-test-secret"


async def setup(url, rotate=False):
    database = Database(url)
    await database.create_all()
    session = database.session()
    accounts = AccountStore(session)
    user = await accounts.create(name="Admin Demo", email="demo@seguros.test", password="Demo1234", role=Role.ADMIN)
    service = AuthService(
        accounts,
        RefreshTokenStore(session),
        TokenIssuer(SECRET, ttl_seconds=7200),
        rotate_refresh_tokens=rotate,
    )
    return database, session, service, user


async def teardown(database, session):
    await session.close()
    await database.dispose()


async def test_login_returns_tokens_and_sanitized_user(database_url):
    database, session, service, user = await setup(database_url)
    try:
        result = await service.login("demo@seguros.test", "Demo1234")
        assert result.user.id == user.id
        assert result.user.role is Role.ADMIN
        assert "password_hash" not in result.user.model_dump()
        assert result.expires_in_seconds == 7200
        assert await service.refresh_tokens.validate(result.refresh_token) == user.id
        assert service.issuer.verify(result.access_token).sub == user.id
    finally:
        await teardown(database, session)


async def test_login_email_lookup_is_case_insensitive(database_url):
    database, session, service, user = await setup(database_url)
    try:
        result = await service.login("  Demo@Seguros.TEST ", "Demo1234")
        assert result.user.id == user.id
    finally:
        await teardown(database, session)


async def test_wrong_password_and_unknown_email_fail_identically(database_url):
    database, session, service, _ = await setup(database_url)
    try:
        with pytest.raises(InvalidCredentials) as wrong_password:
            await service.login("demo@seguros.test", "wrong")
        with pytest.raises(InvalidCredentials) as unknown_email:
            await service.login("nadie@seguros.test", "Demo1234")
        assert str(wrong_password.value) == str(unknown_email.value)
        assert type(wrong_password.value) is type(unknown_email.value)
    finally:
        await teardown(database, session)


async def test_unknown_email_still_pays_for_a_password_check(database_url, monkeypatch):
    database, session, service, _ = await setup(database_url)
    checked = []
    original = auth_module.verify_password

    def spy(password, stored):
        checked.append(stored)
        return original(password, stored)

    monkeypatch.setattr(auth_module, "verify_password", spy)
    try:
        with pytest.raises(InvalidCredentials):
            await service.login("nadie@seguros.test", "Demo1234")
        assert checked == [auth_module.DUMMY_CREDENTIAL]
    finally:
        await teardown(database, session)


async def test_failed_login_issues_no_refresh_token(database_url, monkeypatch):
    database, session, service, _ = await setup(database_url)
    created = []

    async def record(user_id):
        created.append(user_id)
        return "t", None

    monkeypatch.setattr(service.refresh_tokens, "create", record)
    try:
        with pytest.raises(InvalidCredentials):
            await service.login("demo@seguros.test", "wrong")
        assert created == []
    finally:
        await teardown(database, session)


async def test_refresh_issues_new_access_token_and_keeps_refresh_token(database_url):
    database, session, service, user = await setup(database_url)
    try:
        login = await service.login("demo@seguros.test", "Demo1234")
        first = await service.refresh(login.refresh_token)
        second = await service.refresh(login.refresh_token)
        assert first.access_token != login.access_token
        assert second.access_token != first.access_token
        assert first.expires_in_seconds == 7200
        assert first.refresh_token is None
        assert service.issuer.verify(first.access_token).sub == user.id
    finally:
        await teardown(database, session)


async def test_refresh_after_logout_fails(database_url):
    database, session, service, _ = await setup(database_url)
    try:
        login = await service.login("demo@seguros.test", "Demo1234")
        await service.logout(login.refresh_token)
        with pytest.raises(InvalidRefreshToken):
            await service.refresh(login.refresh_token)
    finally:
        await teardown(database, session)


async def test_refresh_with_unknown_token_fails(database_url):
    database, session, service, _ = await setup(database_url)
    try:
        with pytest.raises(InvalidRefreshToken):
            await service.refresh("forged")
    finally:
        await teardown(database, session)


async def test_refresh_for_deleted_account_fails(database_url):
    database, session, service, user = await setup(database_url)
    try:
        login = await service.login("demo@seguros.test", "Demo1234")
        assert await service.accounts.delete(user.id) is True
        with pytest.raises(InvalidRefreshToken):
            await service.refresh(login.refresh_token)
    finally:
        await teardown(database, session)


async def test_refresh_for_deleted_account_fails_even_if_cleanup_fails(database_url, monkeypatch):
    database, session, service, user = await setup(database_url)
    try:
        login = await service.login("demo@seguros.test", "Demo1234")
        assert await service.accounts.delete(user.id) is True

        async def unavailable(token):
            raise Unavailable()

        monkeypatch.setattr(service.refresh_tokens, "revoke", unavailable)
        with pytest.raises(InvalidRefreshToken):
            await service.refresh(login.refresh_token)
    finally:
        await teardown(database, session)


async def set_role(session, user_id, role):
    await session.execute(update(UserRow).where(UserRow.id == user_id).values(role=role))
    await session.commit()


async def test_login_with_unsupported_stored_role_is_rejected(database_url):
    database, session, service, user = await setup(database_url)
    try:
        await set_role(session, user.id, "viewer")
        with pytest.raises(InvalidCredentials):
            await service.login("demo@seguros.test", "Demo1234")
        assert await service.sessions(user.id) == []
    finally:
        await teardown(database, session)


async def test_refresh_with_unsupported_stored_role_is_rejected(database_url):
    database, session, service, user = await setup(database_url)
    try:
        login = await service.login("demo@seguros.test", "Demo1234")
        await set_role(session, user.id, "viewer")
        with pytest.raises(InvalidRefreshToken):
            await service.refresh(login.refresh_token)
    finally:
        await teardown(database, session)


async def test_rotation_replaces_the_refresh_token(database_url):
    database, session, service, user = await setup(database_url, rotate=True)
    try:
        login = await service.login("demo@seguros.test", "Demo1234")
        result = await service.refresh(login.refresh_token)
        assert result.refresh_token is not None
        assert result.refresh_token != login.refresh_token
        with pytest.raises(InvalidRefreshToken):
            await service.refresh(login.refresh_token)
        assert await service.refresh_tokens.validate(result.refresh_token) == user.id
    finally:
        await teardown(database, session)


async def test_logout_never_fails(database_url, monkeypatch):
    database, session, service, _ = await setup(database_url)
    try:
        await service.logout(None)
        await service.logout("")
        await service.logout("never-issued")

        async def unavailable(token):
            raise Unavailable()

        monkeypatch.setattr(service.refresh_tokens, "revoke", unavailable)
        await service.logout("any")
    finally:
        await teardown(database, session)


async def test_store_outage_is_not_reported_as_bad_credentials(database_url, monkeypatch):
    database, session, service, _ = await setup(database_url)

    async def unavailable(email):
        raise Unavailable()

    monkeypatch.setattr(service.accounts, "get_by_email", unavailable)
    try:
        with pytest.raises(Unavailable):
            await service.login("demo@seguros.test", "Demo1234")
    finally:
        await teardown(database, session)


async def test_logout_all_and_sessions(database_url):
    database, session, service, user = await setup(database_url)
    try:
        first = await service.login("demo@seguros.test", "Demo1234")
        await service.login("demo@seguros.test", "Demo1234")
        assert len(await service.sessions(user.id)) == 2
        assert await service.logout_all(user.id) == 2
        assert await service.sessions(user.id) == []
        with pytest.raises(InvalidRefreshToken):
            await service.refresh(first.refresh_token)
    finally:
        await teardown(database, session)
