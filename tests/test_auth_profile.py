# tests/test_auth_profile.py
from app import database
from app.auth import ensure_admins
from conftest import signup


def test_signup_login_and_me(client):
    headers, user_id = signup(client, "Alice@Example.com")
    me = client.get("/auth/me", headers=headers).json()
    assert me == {"user_id": user_id, "email": "alice@example.com", "is_admin": False}

    r = client.post("/auth/login", json={"email": "alice@example.com", "password": "secret123"})
    assert r.status_code == 200
    assert r.json()["user_id"] == user_id


def test_duplicate_signup_and_bad_login(client):
    signup(client, "alice@example.com")
    r = client.post("/auth/signup", json={"email": "alice@example.com", "password": "secret123"})
    assert r.status_code == 400
    r = client.post("/auth/login", json={"email": "alice@example.com", "password": "wrong-password"})
    assert r.status_code == 401
    r = client.post("/auth/login", json={"email": "nobody@example.com", "password": "secret123"})
    assert r.status_code == 401


def test_bad_tokens_are_rejected(client):
    assert client.get("/auth/me").status_code == 401
    assert client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401
    assert client.get("/auth/me", headers={"Authorization": "Basic abc"}).status_code == 401

    headers, user_id = signup(client, "alice@example.com")
    database.delete("users", id=user_id)
    assert client.get("/auth/me", headers=headers).status_code == 401


def test_admins_seeded_from_environment(client, monkeypatch):
    monkeypatch.setenv("ADMIN_EMAILS", "Boss@Example.com; ops@example.com")
    ensure_admins()
    ensure_admins()
    assert len(database.select("admins")) == 2
    headers, _ = signup(client, "boss@example.com")
    assert client.get("/auth/me", headers=headers).json()["is_admin"] is True


def test_profile_created_and_updated(client):
    headers, user_id = signup(client, "alice@example.com")
    profile = client.get("/profile", headers=headers).json()
    assert profile["id"] == user_id
    assert profile["full_name"] is None

    r = client.put("/profile", json={"full_name": "Alice Rao"}, headers=headers)
    assert r.json()["full_name"] == "Alice Rao"
    assert client.get("/profile", headers=headers).json()["full_name"] == "Alice Rao"


def test_no_anonymous_endpoint_wipes_data(client):
    signup(client, "alice@example.com")
    assert client.post("/reset").status_code == 404
    assert [u["email"] for u in database.select("users")] == ["alice@example.com"]
