from datetime import timedelta

import pytest
from jose import jwt

from fintrack.auth import authenticate_user, create_access_token, decode_access_token
from fintrack.config import settings
from fintrack.crud import get_user_by_email

from .conftest import PASSWORD


# ============================================
# Registration
# ============================================

def test_register_creates_account(client):
    response = client.post(
        "/api/register",
        json={"email": "new@example.com", "password": "long-enough-pw"},
    )
    assert response.status_code == 201
    assert response.json() == {"email": "new@example.com", "is_admin": False}


def test_register_does_not_store_plaintext_password(client, session):
    client.post("/api/register", json={"email": "new@example.com", "password": "long-enough-pw"})
    user = get_user_by_email(session, "new@example.com")
    assert user.hashed_password != "long-enough-pw"
    assert user.hashed_password.startswith("$2")


def test_register_duplicate_email_conflicts(client, make_user):
    make_user("taken@example.com")
    response = client.post(
        "/api/register",
        json={"email": "taken@example.com", "password": "long-enough-pw"},
    )
    assert response.status_code == 409


def test_register_reports_all_invalid_fields(client):
    response = client.post("/api/register", json={"email": "not-an-email", "password": "short"})
    assert response.status_code == 400
    fields = {error["field"] for error in response.json()["errors"]}
    assert fields == {"email", "password"}


def test_register_admin_email_gets_flag(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_EMAILS", ["boss@example.com"])
    response = client.post(
        "/api/register",
        json={"email": "boss@example.com", "password": "long-enough-pw"},
    )
    assert response.json()["is_admin"] is True


# ============================================
# Login
# ============================================

def test_login_returns_token_for_account(client, make_user):
    make_user("alice@example.com")
    response = client.post(
        "/api/login",
        json={"email": "alice@example.com", "password": PASSWORD},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["expires_in"] == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    assert decode_access_token(body["access_token"]) == "alice@example.com"


def test_login_token_expires_after_ttl(client, make_user):
    make_user("alice@example.com")
    token = client.post(
        "/api/login",
        json={"email": "alice@example.com", "password": PASSWORD},
    ).json()["access_token"]
    claims = jwt.get_unverified_claims(token)
    assert claims["exp"] - claims["iat"] == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60


def test_login_failures_are_indistinguishable(client, make_user):
    make_user("alice@example.com")
    wrong_password = client.post(
        "/api/login",
        json={"email": "alice@example.com", "password": "nope-nope-nope"},
    )
    unknown_email = client.post(
        "/api/login",
        json={"email": "ghost@example.com", "password": PASSWORD},
    )
    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()


def test_login_missing_fields_is_authentication_failure(client):
    response = client.post("/api/login", json={"email": "alice@example.com"})
    assert response.status_code == 401


def test_authenticate_user_is_case_sensitive(session, make_user):
    make_user("alice@example.com")
    assert authenticate_user(session, "alice@example.com", PASSWORD) is not None
    assert authenticate_user(session, "Alice@example.com", PASSWORD) is None


# ============================================
# Token verification
# ============================================

def test_missing_token_is_unauthenticated(client):
    response = client.get("/api/income")
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_non_bearer_scheme_is_unauthenticated(client):
    response = client.get("/api/income", headers={"Authorization": "Basic YWxpY2U6cHc="})
    assert response.status_code == 401


def test_token_valid_within_window(client, make_user):
    make_user("alice@example.com")
    token = create_access_token("alice@example.com", expires_delta=timedelta(seconds=30))
    response = client.get("/api/income", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200


def test_expired_token_is_rejected(client, make_user):
    make_user("alice@example.com")
    token = create_access_token("alice@example.com", expires_delta=timedelta(seconds=-5))
    response = client.get("/api/income", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid or expired token."


def test_token_signed_with_other_key_is_rejected(client, make_user):
    make_user("alice@example.com")
    forged = jwt.encode({"sub": "alice@example.com"}, "someone-else", algorithm="HS256")
    response = client.get("/api/income", headers={"Authorization": f"Bearer {forged}"})
    assert response.status_code == 401


def test_garbage_token_is_rejected(client):
    response = client.get("/api/income", headers={"Authorization": "Bearer not.a.jwt"})
    assert response.status_code == 401


def test_token_of_deleted_account_is_rejected(client, session, make_user, login):
    user = make_user("alice@example.com")
    headers = login("alice@example.com")
    assert client.get("/api/income", headers=headers).status_code == 200

    session.delete(user)
    session.commit()

    response = client.get("/api/income", headers=headers)
    assert response.status_code == 403


def test_users_me_returns_identity(client, alice):
    response = client.get("/api/users/me", headers=alice)
    assert response.status_code == 200
    assert response.json() == {"email": "alice@example.com", "is_admin": False}


# ============================================
# Email handling and malformed logins
# ============================================

def test_register_stores_email_as_submitted(client):
    response = client.post(
        "/api/register",
        json={"email": "Bob@Example.COM", "password": "long-enough-pw"},
    )
    assert response.status_code == 201
    assert response.json()["email"] == "Bob@Example.COM"

    login = client.post(
        "/api/login",
        json={"email": "Bob@Example.COM", "password": "long-enough-pw"},
    )
    assert login.status_code == 200
    assert decode_access_token(login.json()["access_token"]) == "Bob@Example.COM"


def test_register_admin_email_matches_as_submitted(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_EMAILS", ["Boss@Example.COM"])
    response = client.post(
        "/api/register",
        json={"email": "Boss@Example.COM", "password": "long-enough-pw"},
    )
    assert response.json() == {"email": "Boss@Example.COM", "is_admin": True}


@pytest.mark.parametrize("kwargs", [
    {},
    {"json": ["alice@example.com", PASSWORD]},
    {"json": "alice@example.com"},
    {"json": {"email": 5, "password": PASSWORD}},
    {"json": {"email": "alice@example.com", "password": None}},
    {"json": {"email": "", "password": ""}},
    {"content": b"{not json", "headers": {"Content-Type": "application/json"}},
])
def test_malformed_login_is_authentication_failure(client, make_user, kwargs):
    make_user("alice@example.com")
    response = client.post("/api/login", **kwargs)
    assert response.status_code == 401
    assert response.json() == {"detail": "Invalid email or password."}
