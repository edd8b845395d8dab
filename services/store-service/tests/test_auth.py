from datetime import timedelta

import pytest
from jose import jwt

from auth import create_access_token, decode_session, is_admin
from errors import UnauthorizedError
from tests.conftest import TEST_PASSWORD, auth_headers


def test_register_login_and_me(client):
    response = client.post("/auth/register", json={
        "name": "Ana Santos",
        "email": "Ana@Example.com",
        "password": "hunter22"
    })
    assert response.status_code == 201
    body = response.json()
    assert body["user"]["email"] == "ana@example.com"
    assert body["user"]["role"] == "user"
    assert "password_hash" not in body["user"]

    response = client.post("/auth/login", json={"email": "ana@example.com", "password": "hunter22"})
    assert response.status_code == 200
    token = response.json()["token"]

    response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.json()["name"] == "Ana Santos"


def test_duplicate_email_conflicts(client, make_user):
    user = make_user()

    response = client.post("/auth/register", json={
        "name": "Again",
        "email": user.email,
        "password": "hunter22"
    })

    assert response.status_code == 409


def test_wrong_password_is_unauthorized(client, make_user):
    user = make_user()

    response = client.post("/auth/login", json={"email": user.email, "password": "wrong-one"})
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"

    response = client.post("/auth/login", json={"email": user.email, "password": TEST_PASSWORD})
    assert response.status_code == 200


def test_session_claims_round_trip(make_user):
    admin = make_user(name="Root", role="admin")

    session = decode_session(create_access_token(admin.id, admin.name, admin.email, admin.role))

    assert session.user_id == admin.id
    assert session.name == "Root"
    assert is_admin(session)
    assert not is_admin(None)


def test_expired_token_is_rejected(client, make_user):
    user = make_user()
    token = create_access_token(user.id, user.name, user.email, user.role, expires_delta=timedelta(minutes=-1))

    with pytest.raises(UnauthorizedError):
        decode_session(token)
    assert client.get("/auth/me", headers={"Authorization": f"Bearer {token}"}).status_code == 401


@pytest.mark.parametrize("header", ["Bearer not-a-token", "Token abc", "Bearer"])
def test_malformed_authorization_is_rejected(client, header):
    response = client.get("/cart", headers={"Authorization": header})

    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHORIZED"


def test_forged_admin_token_is_rejected(client, make_user):
    user = make_user()
    forged = jwt.encode(
        {"sub": user.id, "name": user.name, "email": user.email, "role": "admin"},
        "not-the-server-secret",
        algorithm="HS256"
    )

    response = client.get("/admin/products", headers={"Authorization": f"Bearer {forged}"})

    assert response.status_code == 401
    assert client.get("/admin/products", headers=auth_headers(user)).status_code == 403
