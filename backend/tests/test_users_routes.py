"""HTTP tests for admin account maintenance."""

import pytest

from conftest import DEMO_EMAIL, bearer, login


@pytest.fixture
def admin_headers(client):
    return bearer(login(client)["accessToken"])


def create(client, headers, **overrides):
    payload = {"name": "Operador Backoffice", "email": "ops@seguros.test", "password": "Operaciones!", "role": "operador"}
    payload.update(overrides)
    return client.post("/users", json=payload, headers=headers)


def test_list_users_never_exposes_credentials(client, admin_headers):
    create(client, admin_headers, name="Zoe", email="zoe@seguros.test")
    create(client, admin_headers, name="Ana", email="ana@seguros.test")
    resp = client.get("/users", headers=admin_headers)
    assert resp.status_code == 200
    items = resp.json()["items"]
    assert [u["name"] for u in items] == ["Admin Demo", "Ana", "Zoe"]
    assert all(set(u) == {"id", "email", "name", "role"} for u in items)


def test_create_user_and_login_with_it(client, admin_headers):
    resp = create(client, admin_headers, email="Ops@Seguros.TEST")
    assert resp.status_code == 201
    body = resp.json()
    assert body["email"] == "ops@seguros.test"
    assert body["role"] == "operador"
    assert "password" not in body and "passwordHash" not in body

    tokens = login(client, "ops@seguros.test", "Operaciones!")
    assert tokens["user"]["id"] == body["id"]


def test_duplicate_email_is_409(client, admin_headers):
    assert create(client, admin_headers).status_code == 201
    resp = create(client, admin_headers, email="OPS@seguros.test")
    assert resp.status_code == 409
    assert resp.json() == {"error": "El email ya está registrado"}
    assert create(client, admin_headers, email=DEMO_EMAIL).status_code == 409


def test_invalid_role_or_missing_fields_is_400(client, admin_headers):
    assert create(client, admin_headers, role="superuser").status_code == 400
    assert client.post("/users", json={"name": "x"}, headers=admin_headers).status_code == 400


def test_non_admin_is_forbidden(client, admin_headers):
    create(client, admin_headers, email="consulta@seguros.test", password="Consulta1", role="consulta")
    viewer = bearer(login(client, "consulta@seguros.test", "Consulta1")["accessToken"])
    resp = client.get("/users", headers=viewer)
    assert resp.status_code == 403
    assert resp.json() == {"error": "Requiere rol de administrador"}
    assert create(client, viewer, email="otro@seguros.test").status_code == 403


def test_anonymous_is_unauthenticated(client):
    assert client.get("/users").status_code == 401


def test_update_name_and_role(client, admin_headers):
    user_id = create(client, admin_headers).json()["id"]
    resp = client.patch(f"/users/{user_id}", json={"name": "Nuevo Nombre", "role": "consulta"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["name"] == "Nuevo Nombre"
    assert resp.json()["role"] == "consulta"


def test_update_without_changes_is_400(client, admin_headers):
    user_id = create(client, admin_headers).json()["id"]
    resp = client.patch(f"/users/{user_id}", json={}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json() == {"error": "Sin cambios"}


def test_update_unknown_user_is_404(client, admin_headers):
    resp = client.patch("/users/does-not-exist", json={"name": "x"}, headers=admin_headers)
    assert resp.status_code == 404


def test_password_change_revokes_refresh_sessions(client, admin_headers):
    user_id = create(client, admin_headers).json()["id"]
    tokens = login(client, "ops@seguros.test", "Operaciones!")

    resp = client.patch(f"/users/{user_id}", json={"password": "OtraClave9"}, headers=admin_headers)
    assert resp.status_code == 200

    assert client.post("/auth/refresh", json={"refreshToken": tokens["refreshToken"]}).status_code == 401
    old = client.post("/auth/login", json={"email": "ops@seguros.test", "password": "Operaciones!"})
    assert old.status_code == 401
    login(client, "ops@seguros.test", "OtraClave9")


def test_delete_user_invalidates_refresh_token(client, admin_headers):
    user_id = create(client, admin_headers).json()["id"]
    tokens = login(client, "ops@seguros.test", "Operaciones!")

    resp = client.delete(f"/users/{user_id}", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "id": user_id}

    assert client.post("/auth/refresh", json={"refreshToken": tokens["refreshToken"]}).status_code == 401
    assert client.delete(f"/users/{user_id}", headers=admin_headers).status_code == 404
