"""
tests/test_api_auth.py -- Integration tests for /api/v1/auth/* routes.

These tests exercise the full stack: middleware (language detection) ->
FastAPI routing -> AccountService -> UserStore -> response model shaping ->
error envelope translation.

Coverage:
  - register -> activate -> login happy path, secrets never in responses
  - Login failures share one generic 401; pending accounts are told to activate
  - forgot-password is identical for known and unknown emails
  - reset-password single use; mail outage is a 503
  - Localized error messages and Content-Language header
  - Request validation failures render as 400 validation_error
"""

from __future__ import annotations

from conftest import ApiContext, bearer

REGISTER = "/api/v1/auth/register"
LOGIN = "/api/v1/auth/login"


def _register(api: ApiContext, email: str, password: str = "campaign-pass1", **extra) -> dict:
    body = {"first_name": "Rosa", "last_name": "Parks", "email": email, "password": password, **extra}
    resp = api.client.post(REGISTER, json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


def _activate(api: ApiContext, email: str) -> dict:
    token = api.stack.mailer.last_token("activation", email)
    resp = api.client.get("/api/v1/auth/activate", params={"token": token})
    assert resp.status_code == 200, resp.text
    return resp.json()


def _login(api: ApiContext, email: str, password: str = "campaign-pass1"):
    return api.client.post(LOGIN, json={"email": email, "password": password})


class TestRegistration:
    def test_register_returns_safe_pending_profile(self, api: ApiContext) -> None:
        data = _register(
            api,
            "rosa@example.com",
            outside_links=[{"title": "Blog", "url": "https://rosa.example.com"}],
        )
        user = data["user"]
        assert user["status"] == "pending"
        assert user["email"] == "rosa@example.com"
        assert user["outside_links"] == [{"title": "Blog", "url": "https://rosa.example.com"}]
        for secret in ("hashed_password", "activation_token_hash", "reset_token_hash", "password"):
            assert secret not in user
        assert data["message"].startswith("Registration successful")

    def test_duplicate_email_is_conflict(self, api: ApiContext) -> None:
        _register(api, "dup@example.com")
        resp = api.client.post(
            REGISTER,
            json={"first_name": "Rosa", "last_name": "Parks", "email": "DUP@example.com", "password": "campaign-pass1"},
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["message_key"] == "auth.email_already_exists"

    def test_invalid_body_is_400(self, api: ApiContext) -> None:
        resp = api.client.post(REGISTER, json={"first_name": "R", "email": "not-an-email", "password": "short"})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"

    def test_multibyte_password_over_72_bytes_is_400(self, api: ApiContext) -> None:
        # 30 characters but 90 bytes in UTF-8
        resp = api.client.post(
            REGISTER,
            json={"first_name": "Rosa", "last_name": "Parks", "email": "cjk@example.com", "password": "密码" * 15},
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"

    def test_multibyte_password_within_72_bytes_registers(self, api: ApiContext) -> None:
        # 24 characters, 72 bytes
        data = _register(api, "cjk-ok@example.com", password="密码" * 12)
        assert data["user"]["email"] == "cjk-ok@example.com"

    def test_activation_link_is_single_use(self, api: ApiContext) -> None:
        _register(api, "once@example.com")
        token = api.stack.mailer.last_token("activation", "once@example.com")
        first = api.client.get("/api/v1/auth/activate", params={"token": token})
        assert first.status_code == 200
        assert first.json()["user"]["status"] == "active"
        second = api.client.get("/api/v1/auth/activate", params={"token": token})
        assert second.status_code == 400
        assert second.json()["error"]["code"] == "invalid_or_expired_token"

    def test_missing_activation_token(self, api: ApiContext) -> None:
        assert api.client.get("/api/v1/auth/activate").status_code == 400


class TestLogin:
    def test_login_happy_path(self, api: ApiContext) -> None:
        _register(api, "login@example.com")
        _activate(api, "login@example.com")
        resp = _login(api, "Login@Example.com")
        assert resp.status_code == 200
        assert resp.headers["Cache-Control"] == "no-store"
        data = resp.json()
        assert data["token_type"] == "bearer"
        assert data["expires_in"] > 0
        assert data["user"]["email"] == "login@example.com"

        me = api.client.get("/api/v1/users/me", headers=bearer(data["access_token"]))
        assert me.status_code == 200
        assert me.json()["user"]["email"] == "login@example.com"

    def test_unknown_email_and_wrong_password_identical(self, api: ApiContext) -> None:
        _register(api, "generic@example.com")
        _activate(api, "generic@example.com")
        unknown = _login(api, "nobody@example.com")
        wrong = _login(api, "generic@example.com", "wrong-password")
        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json()

    def test_pending_account_must_activate(self, api: ApiContext) -> None:
        _register(api, "pending@example.com")
        resp = _login(api, "pending@example.com")
        assert resp.status_code == 401
        assert resp.json()["error"]["message_key"] == "auth.account_not_activated"

    def test_admin_token_is_not_a_user_session(self, api: ApiContext) -> None:
        resp = api.client.get("/api/v1/users/me", headers=api.admin_headers)
        assert resp.status_code == 401

    def test_logout_requires_session(self, api: ApiContext) -> None:
        assert api.client.post("/api/v1/auth/logout").status_code == 401
        _register(api, "bye@example.com")
        _activate(api, "bye@example.com")
        token = _login(api, "bye@example.com").json()["access_token"]
        resp = api.client.post("/api/v1/auth/logout", headers=bearer(token))
        assert resp.status_code == 200


class TestPasswordReset:
    def test_forgot_password_same_answer_for_unknown_email(self, api: ApiContext) -> None:
        _register(api, "forgot@example.com")
        known = api.client.post("/api/v1/auth/forgot-password", json={"email": "forgot@example.com"})
        unknown = api.client.post("/api/v1/auth/forgot-password", json={"email": "ghost@example.com"})
        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json()

    def test_reset_then_login_with_new_password(self, api: ApiContext) -> None:
        _register(api, "reset@example.com")
        _activate(api, "reset@example.com")
        api.client.post("/api/v1/auth/forgot-password", json={"email": "reset@example.com"})
        token = api.stack.mailer.last_token("password_reset", "reset@example.com")

        resp = api.client.post("/api/v1/auth/reset-password", json={"token": token, "password": "brand-new-pass"})
        assert resp.status_code == 200
        assert _login(api, "reset@example.com", "brand-new-pass").status_code == 200
        assert _login(api, "reset@example.com").status_code == 401

        again = api.client.post("/api/v1/auth/reset-password", json={"token": token, "password": "another-pass1"})
        assert again.status_code == 400

    def test_reset_with_multibyte_password_over_limit_is_400(self, api: ApiContext) -> None:
        _register(api, "reset-cjk@example.com")
        api.client.post("/api/v1/auth/forgot-password", json={"email": "reset-cjk@example.com"})
        token = api.stack.mailer.last_token("password_reset", "reset-cjk@example.com")
        resp = api.client.post("/api/v1/auth/reset-password", json={"token": token, "password": "é" * 40})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"

    def test_mail_outage_is_503(self, api: ApiContext) -> None:
        _register(api, "outage@example.com")
        api.stack.mailer.fail = True
        try:
            resp = api.client.post("/api/v1/auth/forgot-password", json={"email": "outage@example.com"})
        finally:
            api.stack.mailer.fail = False
        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "dependency_failure"
        assert resp.json()["error"]["message_key"] == "auth.password_reset_email_failed"


class TestLocalization:
    def test_error_message_follows_accept_language(self, api: ApiContext) -> None:
        resp = api.client.post(
            LOGIN,
            json={"email": "nobody@example.com", "password": "whatever1"},
            headers={"Accept-Language": "es-ES,en;q=0.5"},
        )
        assert resp.status_code == 401
        assert resp.headers["Content-Language"] == "es"
        assert resp.json()["error"]["message"] == "Correo electrónico o contraseña no válidos."

    def test_query_parameter_beats_header(self, api: ApiContext) -> None:
        resp = api.client.post(
            f"{LOGIN}?lang=fr",
            json={"email": "nobody@example.com", "password": "whatever1"},
            headers={"X-Language": "de", "Accept-Language": "es"},
        )
        assert resp.headers["Content-Language"] == "fr"
        assert resp.json()["error"]["message"] == "Adresse e-mail ou mot de passe invalide."

    def test_cors_preflight_still_gets_content_language(self, api: ApiContext) -> None:
        # Language detection wraps CORSMiddleware, so preflights answered
        # there pass back through it.
        resp = api.client.options(
            LOGIN,
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "POST",
                "Accept-Language": "es",
            },
        )
        assert resp.status_code == 200
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:3000"
        assert resp.headers["Content-Language"] == "es"

    def test_missing_translation_falls_back_to_english(self, api: ApiContext) -> None:
        resp = api.client.get("/api/v1/users/me", headers={"X-Language": "it"})
        assert resp.status_code == 401
        assert resp.headers["Content-Language"] == "it"
        assert resp.json()["error"]["message"] == "Authentication required."
