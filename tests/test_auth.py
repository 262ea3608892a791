"""Tests for registration, login and session tokens."""

from __future__ import annotations

from scribo.core.security import (
    client_id_from_token,
    hash_password,
    issue_client_token,
    sign_session,
    verify_password,
    verify_session,
)
from tests.factories import PASSWORD, auth_headers


class TestSessionToken:
    def test_round_trip(self):
        assert verify_session(sign_session({"client_id": 4})) == {"client_id": 4}

    def test_tampered_token_rejected(self):
        token = sign_session({"client_id": 4})
        assert verify_session(token[:-2] + "xx") is None

    def test_password_hash(self):
        h = hash_password("correct horse")
        assert verify_password("correct horse", h)
        assert not verify_password("wrong", h)
        assert not verify_password("anything", "")
        assert not verify_password("anything", "not-a-hash")

    def test_client_token(self):
        assert client_id_from_token(issue_client_token(7)) == 7
        assert client_id_from_token(sign_session({"other": 1})) is None
        assert client_id_from_token("garbage") is None


class TestRegisterLogin:
    def test_register_sets_cookie_and_returns_token(self, api):
        r = api.post(
            "/api/client/auth/register",
            json={"firstName": "Nadia", "lastName": "Ben", "email": "Nadia@Example.com", "password": "longenough"},
        )
        assert r.status_code == 201
        body = r.json()
        assert body["client"]["email"] == "nadia@example.com"
        assert body["token"]
        assert "sid" in r.cookies

        me = api.get("/api/client/auth/me")
        assert me.status_code == 200
        assert me.json()["client"]["fullName"] == "Nadia Ben"

    def test_duplicate_email(self, api, owner):
        r = api.post(
            "/api/client/auth/register",
            json={"firstName": "A", "lastName": "B", "email": owner.email, "password": "longenough"},
        )
        assert r.status_code == 409

    def test_short_password_rejected(self, api):
        r = api.post(
            "/api/client/auth/register",
            json={"firstName": "A", "lastName": "B", "email": "a@b.fr", "password": "short"},
        )
        assert r.status_code == 422

    def test_malformed_email_rejected(self, api):
        for email in ("x@y..z", "a@-.-", "no-at-sign.fr"):
            r = api.post(
                "/api/client/auth/register",
                json={"firstName": "A", "lastName": "B", "email": email, "password": "longenough"},
            )
            assert r.status_code == 422, email

    def test_login(self, api, owner):
        bad = api.post("/api/client/auth/login", json={"email": owner.email, "password": "nope"})
        assert bad.status_code == 400

        ok = api.post("/api/client/auth/login", json={"email": owner.email, "password": PASSWORD})
        assert ok.status_code == 200
        token = ok.json()["token"]
        me = api.get("/api/client/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.json()["client"]["id"] == owner.id

    def test_logout_clears_cookie(self, api, owner):
        api.post("/api/client/auth/login", json={"email": owner.email, "password": PASSWORD})
        r = api.post("/api/client/auth/logout")
        assert r.status_code == 200
        assert api.get("/api/client/auth/me").status_code == 401


class TestAuthRequired:
    def test_no_token(self, api):
        r = api.get("/api/client/campaigns")
        assert r.status_code == 401
        assert r.json()["detail"] == "Access denied. No token provided."

    def test_invalid_token(self, api):
        r = api.get("/api/client/campaigns", headers={"Authorization": "Bearer not-a-token"})
        assert r.status_code == 401

    def test_unknown_client(self, api, owner):
        headers = {"Authorization": f"Bearer {sign_session({'client_id': owner.id + 100})}"}
        assert api.get("/api/client/campaigns", headers=headers).status_code == 401

    def test_valid_token(self, api, owner):
        assert api.get("/api/client/campaigns", headers=auth_headers(owner)).status_code == 200
