from datetime import timedelta

import pytest

from trust_site.config import settings
from trust_site.utils.auth import hash_password, verify_admin_password, verify_password
from trust_site.utils.jwt_auth import COOKIE_NAME, create_access_token

PASSWORD = "correct horse"


@pytest.fixture(scope="module")
def password_hash():
    return hash_password(PASSWORD)


@pytest.fixture
def admin_password(monkeypatch, password_hash):
    monkeypatch.setattr(settings, "ADMIN_PASSWORD_HASH", password_hash)


def test_hash_and_verify(password_hash):
    assert password_hash.startswith("$2")
    assert verify_password(PASSWORD, password_hash)
    assert not verify_password("wrong", password_hash)


def test_malformed_hash_never_matches():
    assert verify_password(PASSWORD, "not-a-bcrypt-hash") is False


def test_unconfigured_admin_password(monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_PASSWORD_HASH", "")
    with pytest.raises(ValueError):
        verify_admin_password(PASSWORD)


def test_login_sets_session_cookie(anon_client, admin_password):
    response = anon_client.post("/api/cms/login", json={"password": PASSWORD})

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["expires_in"] == settings.JWT_EXPIRE_MINUTES * 60
    assert response.cookies.get(COOKIE_NAME) == body["access_token"]

    # The client keeps the cookie, so the session is now authenticated
    assert anon_client.get("/api/cms/session").json() == {"authenticated": True, "role": "admin"}


def test_login_wrong_password(anon_client, admin_password):
    response = anon_client.post("/api/cms/login", json={"password": "nope"})
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid credentials"


def test_login_without_configured_hash(anon_client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_PASSWORD_HASH", "")
    assert anon_client.post("/api/cms/login", json={"password": PASSWORD}).status_code == 500


def test_logout_clears_cookie(anon_client, admin_password):
    anon_client.post("/api/cms/login", json={"password": PASSWORD})
    anon_client.post("/api/cms/logout")
    assert anon_client.get("/api/cms/session").status_code == 401


def test_mutations_require_credentials(anon_client):
    response = anon_client.post("/api/event-photos", json={"action": "create_collection", "name": "Trip"})

    assert response.status_code == 401
    assert response.json()["error"] == "Missing token"
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_public_reads_need_no_credentials(anon_client):
    assert anon_client.get("/api/event-photos").status_code == 200
    assert anon_client.get("/api/event-photos/public").status_code == 200


def test_password_header(anon_client, admin_password):
    response = anon_client.post(
        "/api/event-photos",
        json={"action": "create_collection", "name": "Trip"},
        headers={"X-CMS-Password": PASSWORD},
    )
    assert response.status_code == 200


def test_wrong_password_header(anon_client, admin_password):
    response = anon_client.post(
        "/api/event-photos",
        json={"action": "create_collection", "name": "Trip"},
        headers={"X-CMS-Password": "nope"},
    )
    assert response.status_code == 401


def test_bearer_token(anon_client):
    token = create_access_token({"role": "admin", "sub": "cms_admin"})
    response = anon_client.get("/api/cms/session", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200


def test_expired_token(anon_client):
    token = create_access_token({"role": "admin"}, expires_delta=timedelta(minutes=-1))
    response = anon_client.get("/api/cms/session", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid token"


def test_tampered_token(anon_client):
    token = create_access_token({"role": "admin"}) + "x"
    response = anon_client.get("/api/cms/session", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
