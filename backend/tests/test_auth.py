"""
Authentication tests.

Verifies:
- login by username or email returns a session token
- logout revokes the token
- every mutating route answers 401 without a valid bearer token
"""

from datetime import timedelta

import pytest

from backoffice.services import session_service

TEST_PASSWORD = "Password123!"


def get_auth_token(client, username: str, password: str):
    response = client.post("/api/auth/login", json={"username": username, "password": password})
    if response.status_code == 200:
        return response.json.get("token")
    return None


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class TestLogin:

    def test_login_with_username(self, client, admin_user):
        resp = client.post("/api/auth/login", json={"username": "admin", "password": TEST_PASSWORD})
        assert resp.status_code == 200
        assert resp.json["user"]["username"] == "admin"
        assert len(resp.json["token"]) == 64

    def test_login_with_email(self, client, admin_user):
        token = get_auth_token(client, "admin@backoffice.local", TEST_PASSWORD)
        assert token is not None

    def test_wrong_password(self, client, admin_user):
        resp = client.post("/api/auth/login", json={"username": "admin", "password": "Wrong123!"})
        assert resp.status_code == 401

    def test_missing_fields(self, client, db_session):
        assert client.post("/api/auth/login", json={"username": "admin"}).status_code == 400

    def test_inactive_user_cannot_login(self, client, admin_user, db_session):
        admin_user.is_active = False
        db_session.commit()
        assert get_auth_token(client, "admin", TEST_PASSWORD) is None


class TestSession:

    def test_me(self, client, headers):
        resp = client.get("/api/auth/me", headers=headers)
        assert resp.status_code == 200
        assert resp.json["user"]["username"] == "admin"

    def test_logout_revokes_token(self, client, admin_user):
        token = get_auth_token(client, "admin", TEST_PASSWORD)
        resp = client.post("/api/auth/logout", headers=auth_headers(token))
        assert resp.status_code == 200

        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401
        assert client.post("/api/auth/logout", headers=auth_headers(token)).status_code == 401

    def test_deactivated_user_loses_session(self, client, admin_user, headers, db_session):
        admin_user.is_active = False
        db_session.commit()
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_revoke_all_sessions(self, client, admin_user):
        _, first = session_service.create_session(admin_user.id)
        _, second = session_service.create_session(admin_user.id)

        assert session_service.revoke_all_user_sessions(admin_user.id) == 2
        assert session_service.validate_session(first) is None
        assert session_service.validate_session(second) is None


@pytest.mark.parametrize("method,path", [
    ("post", "/api/clients"),
    ("patch", "/api/clients/1"),
    ("delete", "/api/clients/1"),
    ("post", "/api/debtors"),
    ("post", "/api/debtors/1/payment"),
    ("patch", "/api/debtors/1"),
    ("delete", "/api/debtors/1"),
    ("post", "/api/transactions/cash-in"),
    ("post", "/api/transactions/cash-out"),
    ("put", "/api/transactions/1"),
    ("delete", "/api/transactions/1"),
    ("post", "/api/products"),
    ("patch", "/api/products/1"),
    ("delete", "/api/products/1"),
    ("post", "/api/orders"),
    ("patch", "/api/orders/1"),
    ("delete", "/api/orders/1"),
])
@pytest.mark.parametrize("header", [None, "Bearer not-a-real-token", "Token abc"])
def test_mutations_require_auth(client, db_session, method, path, header):
    headers = {"Authorization": header} if header else {}
    resp = getattr(client, method)(path, json={}, headers=headers)
    assert resp.status_code == 401
    assert resp.json["error"]


class TestSessionTimeouts:

    def test_idle_session_is_revoked(self, admin_user, db_session):
        record, token = session_service.create_session(admin_user.id)
        record.last_used_at = record.last_used_at - timedelta(hours=3)
        db_session.commit()

        assert session_service.validate_session(token) is None
        db_session.refresh(record)
        assert record.is_revoked is True
        assert record.revoked_reason == "Idle timeout"

    def test_expired_session_is_refused(self, admin_user, db_session):
        record, token = session_service.create_session(admin_user.id)
        record.expires_at = record.created_at - timedelta(seconds=1)
        db_session.commit()

        assert session_service.validate_session(token) is None
