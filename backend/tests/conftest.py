import asyncio
import inspect

import pytest
from fastapi.testclient import TestClient

from corredora.config.config import Settings
from corredora.main import create_app
from corredora.schemas.auth import Role
from corredora.scripts.create_user import create_user

TEST_SECRET = "test-secret-key-for-testing-only-do-not-use-in-production"

DEMO_EMAIL = "demo@seguros.test"
DEMO_PASSWORD = "Demo1234"
DEMO_NAME = "Admin Demo"


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'corredora.db'}"


@pytest.fixture
def settings(database_url):
    return Settings(
        DATABASE_URL_ASYNC=database_url,
        SECRET_KEY=TEST_SECRET,
        ROOT_PATH="",
        STORE_TIMEOUT_SECONDS=5.0,
    )


@pytest.fixture
def demo_user_id(database_url):
    """Seed the demo admin account; returns its id."""
    return asyncio.run(create_user(database_url, DEMO_EMAIL, DEMO_NAME, DEMO_PASSWORD, Role.ADMIN))


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app, demo_user_id):
    with TestClient(app) as test_client:
        yield test_client


def login(client, email=DEMO_EMAIL, password=DEMO_PASSWORD):
    resp = client.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def pytest_pyfunc_call(pyfuncitem):
    if inspect.iscoroutinefunction(pyfuncitem.obj):
        call_kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in pyfuncitem._fixtureinfo.argnames
            if name in pyfuncitem.funcargs
        }
        asyncio.run(pyfuncitem.obj(**call_kwargs))
        return True
    return None
