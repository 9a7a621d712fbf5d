"""Tests for signup, login and profile endpoints."""

from datetime import datetime, timedelta, timezone

from kintree.accounts import security


class TestPasswords:

    def test_hash_roundtrip(self):
        stored = security.hash_password("hunter22", iterations=1_000)
        assert stored.startswith("pbkdf2_sha256$1000$")
        assert security.verify_password("hunter22", stored)
        assert not security.verify_password("hunter23", stored)

    def test_salted(self):
        assert security.hash_password("same", 1_000) != security.hash_password("same", 1_000)

    def test_garbage_hash_rejected(self):
        assert not security.verify_password("x", "not-a-hash")


class TestSignupLogin:

    def test_signup_returns_user_and_token(self, client):
        resp = client.post(
            "/api/v1/auth/signup",
            json={"name": "Ada", "email": " Ada@Example.com ", "password": "secret123"},
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["user"]["email"] == "ada@example.com"
        assert body["token"]

    def test_duplicate_email(self, client, owner_headers):
        resp = client.post(
            "/api/v1/auth/signup",
            json={"name": "Again", "email": "olive@example.com", "password": "secret123"},
        )
        assert resp.status_code == 409

    def test_short_password(self, client):
        resp = client.post(
            "/api/v1/auth/signup",
            json={"name": "Ada", "email": "ada@example.com", "password": "123"},
        )
        assert resp.status_code == 422

    def test_login(self, client, owner_headers):
        resp = client.post(
            "/api/v1/auth/login",
            json={"email": "olive@example.com", "password": "secret123"},
        )
        assert resp.status_code == 200
        assert resp.json()["user"]["name"] == "Olive Owner"

    def test_login_wrong_password(self, client, owner_headers):
        resp = client.post(
            "/api/v1/auth/login",
            json={"email": "olive@example.com", "password": "wrong-one"},
        )
        assert resp.status_code == 401

    def test_login_unknown_email(self, client):
        resp = client.post(
            "/api/v1/auth/login",
            json={"email": "nobody@example.com", "password": "secret123"},
        )
        assert resp.status_code == 401


class TestProfile:

    def test_me_requires_token(self, client):
        assert client.get("/api/v1/auth/me").status_code == 401

    def test_bad_token(self, client):
        resp = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_expired_token(self, client, store, owner_headers):
        for session in store.sessions.values():
            session["expires_at"] = datetime.now(timezone.utc) - timedelta(seconds=1)
        assert client.get("/api/v1/auth/me", headers=owner_headers).status_code == 401

    def test_expired_session_is_removed(self, client, store, owner_headers):
        for session in store.sessions.values():
            session["expires_at"] = datetime.now(timezone.utc) - timedelta(seconds=1)
        assert client.get("/api/v1/auth/me", headers=owner_headers).status_code == 401
        assert store.sessions == {}

        resp = client.post(
            "/api/v1/auth/login",
            json={"email": "olive@example.com", "password": "secret123"},
        )
        assert resp.status_code == 200
        assert len(store.sessions) == 1

    def test_login_sweeps_expired_sessions(self, client, store, owner_headers, other_headers):
        stale = {}
        for token_hash, session in store.sessions.items():
            session["expires_at"] = datetime.now(timezone.utc) - timedelta(seconds=1)
            stale[token_hash] = session
        resp = client.post(
            "/api/v1/auth/login",
            json={"email": "olive@example.com", "password": "secret123"},
        )
        assert resp.status_code == 200
        assert len(store.sessions) == 1
        assert not set(stale) & set(store.sessions)

    def test_get_and_update_me(self, client, owner_headers):
        resp = client.get("/api/v1/auth/me", headers=owner_headers)
        assert resp.status_code == 200
        assert resp.json()["email"] == "olive@example.com"

        resp = client.patch(
            "/api/v1/auth/me",
            json={"bio": "Family historian", "reminder_notes": "Call aunt May"},
            headers=owner_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["bio"] == "Family historian"
        assert resp.json()["reminder_notes"] == "Call aunt May"

    def test_null_name_rejected(self, client, owner_headers):
        resp = client.patch("/api/v1/auth/me", json={"name": None}, headers=owner_headers)
        assert resp.status_code == 400

    def test_logout_revokes_token(self, client, owner_headers):
        assert client.post("/api/v1/auth/logout", headers=owner_headers).status_code == 200
        assert client.get("/api/v1/auth/me", headers=owner_headers).status_code == 401
