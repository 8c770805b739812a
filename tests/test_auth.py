"""
Tests for bearer-token authentication.
"""

import time

from jose import jwt

from nextrounds.core import auth
from nextrounds.main import app
from nextrounds.services.usage_service import get_usage_service

from conftest import USER_ID


def make_token(secret, **claims):
    payload = {
        "sub": USER_ID,
        "email": "candidate@example.com",
        "aud": "authenticated",
        "exp": int(time.time()) + 3600,
    }
    payload.update(claims)
    return jwt.encode(payload, secret, algorithm="HS256")


def test_missing_header_returns_401(anonymous_client):
    response = anonymous_client.get("/api/usage")
    assert response.status_code == 401
    assert response.json()["detail"] == "Authentication required"


def test_non_bearer_header_returns_401(anonymous_client):
    response = anonymous_client.get("/api/usage", headers={"Authorization": "Basic abc"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Authentication required"


def test_protected_routes_require_auth(anonymous_client):
    assert anonymous_client.post("/api/generate-questions").status_code == 401
    assert anonymous_client.post("/api/create-checkout").status_code == 401
    assert anonymous_client.post("/api/sync-subscription").status_code == 401
    assert anonymous_client.post("/api/export/pdf", json={"questions": {}}).status_code == 401


def test_local_jwt_verification(anonymous_client, usage_service, monkeypatch):
    monkeypatch.setattr(auth.settings, "supabase_jwt_secret", "test-secret")
    app.dependency_overrides[get_usage_service] = lambda: usage_service

    token = make_token("test-secret")
    response = anonymous_client.get("/api/usage", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json()["usage"]["limit"] == 3


def test_local_jwt_wrong_secret_rejected(anonymous_client, monkeypatch):
    monkeypatch.setattr(auth.settings, "supabase_jwt_secret", "test-secret")

    token = make_token("other-secret")
    response = anonymous_client.get("/api/usage", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid authentication token"


def test_local_jwt_wrong_audience_rejected(monkeypatch):
    monkeypatch.setattr(auth.settings, "supabase_jwt_secret", "test-secret")
    token = make_token("test-secret", aud="anon")
    assert auth.resolve_user(token) is None


def test_expired_jwt_rejected(monkeypatch):
    monkeypatch.setattr(auth.settings, "supabase_jwt_secret", "test-secret")
    token = make_token("test-secret", exp=int(time.time()) - 60)
    assert auth.resolve_user(token) is None


class _RejectingAuth:
    def get_user(self, token):
        raise RuntimeError("invalid JWT")


class _AcceptingAuth:
    class _Response:
        class user:
            id = USER_ID
            email = "candidate@example.com"

    def get_user(self, token):
        return self._Response()


class _FakeSupabase:
    def __init__(self, auth_api):
        self.auth = auth_api


def test_remote_verification_rejects_bad_token(anonymous_client, monkeypatch):
    monkeypatch.setattr(auth, "get_supabase_client", lambda: _FakeSupabase(_RejectingAuth()))

    response = anonymous_client.get("/api/usage", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid authentication token"


def test_remote_verification_returns_user(monkeypatch):
    monkeypatch.setattr(auth, "get_supabase_client", lambda: _FakeSupabase(_AcceptingAuth()))

    user = auth.resolve_user("some-token")

    assert user == {"id": USER_ID, "email": "candidate@example.com"}
