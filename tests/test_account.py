"""
Tests for account lookups and password reset, against fake Supabase clients and real ones over mocked HTTP.
"""

from types import SimpleNamespace

import pytest
import respx
from jose import jwt
from supabase import create_client

from nextrounds.api.routes import account_routes
from nextrounds.db import supabase as supabase_db
from nextrounds.db.supabase import create_recovery_client, get_supabase_admin
from nextrounds.main import app


class FakeAdminAPI:
    def __init__(self, emails, fail_list=False, fail_update=False):
        self.users = [SimpleNamespace(id=f"u{i}", email=e) for i, e in enumerate(emails)]
        self.fail_list = fail_list
        self.fail_update = fail_update
        self.pages_requested = []
        self.updates = []

    def list_users(self, page=1, per_page=50):
        if self.fail_list:
            raise RuntimeError("service unavailable")
        self.pages_requested.append(page)
        start = (page - 1) * per_page
        return self.users[start:start + per_page]

    def update_user_by_id(self, uid, attributes):
        if self.fail_update:
            raise RuntimeError("update failed")
        self.updates.append((uid, attributes))


class FakeAuth:
    def __init__(self, admin, valid_token="good-hash"):
        self.admin = admin
        self.valid_token = valid_token
        self.verified = []

    def verify_otp(self, params):
        self.verified.append(params)
        if params["token_hash"] != self.valid_token:
            raise RuntimeError("Token has expired or is invalid")
        return SimpleNamespace(user=SimpleNamespace(id="u0", email="jane@gmail.com"))


@pytest.fixture
def admin_api():
    return FakeAdminAPI(["jdoe@gmail.com", "sam@company.io", None])


@pytest.fixture
def supabase_auth(admin_api):
    return FakeAuth(admin_api)


@pytest.fixture
def account_client(client, supabase_auth):
    app.dependency_overrides[get_supabase_admin] = lambda: SimpleNamespace(auth=supabase_auth)
    app.dependency_overrides[create_recovery_client] = lambda: SimpleNamespace(auth=supabase_auth)
    return client


# ============================================================
# CHECK USER EXISTS
# ============================================================

@pytest.mark.parametrize("email,exists", [
    ("jdoe@gmail.com", True),
    ("J.Doe+jobs@gmail.com", True),
    ("SAM@company.io", True),
    ("sam+x@company.io", False),
    ("nobody@gmail.com", False),
])
def test_check_user_exists(account_client, email, exists):
    response = account_client.post("/api/check-user-exists", json={"email": email})

    assert response.status_code == 200
    assert response.json() == {"exists": exists}


def test_check_user_exists_pages_through_users(account_client, admin_api, monkeypatch):
    monkeypatch.setattr(account_routes, "USERS_PAGE_SIZE", 2)

    response = account_client.post("/api/check-user-exists", json={"email": "missing@gmail.com"})

    assert response.json() == {"exists": False}
    assert admin_api.pages_requested == [1, 2]


def test_check_user_exists_failure(account_client, admin_api):
    admin_api.fail_list = True

    response = account_client.post("/api/check-user-exists", json={"email": "jdoe@gmail.com"})

    assert response.status_code == 500


# ============================================================
# PASSWORD RESET
# ============================================================

def test_password_reset_success(account_client, supabase_auth, admin_api):
    response = account_client.post(
        "/api/auth/password-reset", json={"token": "good-hash", "password": "hunter22"}
    )

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert supabase_auth.verified == [{"token_hash": "good-hash", "type": "recovery"}]
    assert admin_api.updates == [("u0", {"password": "hunter22"})]


def test_password_reset_short_password(account_client, admin_api):
    response = account_client.post("/api/auth/password-reset", json={"token": "good-hash", "password": "abc"})

    assert response.status_code == 400
    assert "at least 6 characters" in response.json()["detail"]
    assert admin_api.updates == []


def test_password_reset_bad_token(account_client):
    response = account_client.post("/api/auth/password-reset", json={"token": "stale", "password": "hunter22"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid or expired reset token"


def test_password_reset_missing_token_is_400(account_client):
    response = account_client.post("/api/auth/password-reset", json={"password": "hunter22"})
    assert response.status_code == 400


def test_password_reset_update_failure(account_client, admin_api):
    admin_api.fail_update = True

    response = account_client.post(
        "/api/auth/password-reset", json={"token": "good-hash", "password": "hunter22"}
    )

    assert response.status_code == 500


# ============================================================
# REAL SUPABASE CLIENTS OVER MOCKED HTTP
# ============================================================

SUPABASE_URL = "https://project.supabase.co"
RECOVERED_USER_ID = "22222222-2222-2222-2222-222222222222"


def auth_user_json(user_id, email):
    return {
        "id": user_id,
        "aud": "authenticated",
        "role": "authenticated",
        "email": email,
        "app_metadata": {},
        "user_metadata": {},
        "created_at": "2026-01-01T00:00:00Z",
    }


@pytest.fixture
def service_key(monkeypatch):
    key = jwt.encode({"role": "service_role"}, "not-the-real-secret", algorithm="HS256")
    monkeypatch.setattr(supabase_db.settings, "supabase_url", SUPABASE_URL)
    monkeypatch.setattr(supabase_db.settings, "supabase_service_role_key", key)
    return key


def test_admin_client_keeps_service_role_after_password_reset(client, service_key):
    user_token = jwt.encode({"sub": RECOVERED_USER_ID, "role": "authenticated"}, "user", algorithm="HS256")
    admin = create_client(SUPABASE_URL, service_key)
    app.dependency_overrides[get_supabase_admin] = lambda: admin

    with respx.mock(assert_all_called=True) as mock:
        mock.post(f"{SUPABASE_URL}/auth/v1/verify").respond(json={
            "access_token": user_token,
            "refresh_token": "refresh",
            "expires_in": 3600,
            "expires_at": 4102444800,
            "token_type": "bearer",
            "user": auth_user_json(RECOVERED_USER_ID, "jane@gmail.com"),
        })
        update = mock.put(f"{SUPABASE_URL}/auth/v1/admin/users/{RECOVERED_USER_ID}").respond(
            json=auth_user_json(RECOVERED_USER_ID, "jane@gmail.com")
        )
        listing = mock.get(f"{SUPABASE_URL}/auth/v1/admin/users").respond(json={"users": []})

        reset = client.post("/api/auth/password-reset", json={"token": "hash", "password": "hunter22"})
        lookup = client.post("/api/check-user-exists", json={"email": "someone@gmail.com"})

    assert reset.status_code == 200
    assert lookup.json() == {"exists": False}
    assert update.calls.last.request.headers["Authorization"] == f"Bearer {service_key}"
    assert listing.calls.last.request.headers["Authorization"] == f"Bearer {service_key}"
