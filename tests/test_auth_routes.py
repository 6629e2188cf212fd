"""Tests for registration, login lockout and session endpoints"""

from datetime import timedelta
from unittest.mock import patch

import pytest

from conftest import NEW_STRONG_PASSWORD, T0, USER_TEST_PASSWORD, login
from models.audit_log import AuditLog

EMAIL = "player@x.com"


def _audit_kinds(app, account_id=EMAIL):
    with app.app_context():
        rows = AuditLog.query.filter_by(account_id=account_id).order_by(AuditLog.id).all()
        return [r.kind for r in rows]


class TestRegister:
    def test_register_and_login(self, client):
        resp = client.post(
            "/auth/register",
            json={"email": " Player@X.com ", "password": USER_TEST_PASSWORD, "name": "P"},
        )
        assert resp.status_code == 201

        assert login(client, EMAIL).status_code == 200
        me = client.get("/auth/me").get_json()
        assert me["email"] == EMAIL
        assert me["roles"] == ["CUSTOMER"]

    def test_weak_password_rejected(self, client):
        resp = client.post("/auth/register", json={"email": EMAIL, "password": "weak"})
        assert resp.status_code == 400
        assert resp.get_json()["details"]

    def test_duplicate_email(self, client, make_user):
        make_user(EMAIL)
        resp = client.post("/auth/register", json={"email": EMAIL, "password": USER_TEST_PASSWORD})
        assert resp.status_code == 409

    def test_invalid_email(self, client):
        resp = client.post("/auth/register", json={"email": "nope", "password": USER_TEST_PASSWORD})
        assert resp.status_code == 400


class TestLoginLockout:
    def test_wrong_password_is_401(self, client, make_user):
        make_user(EMAIL)
        resp = login(client, EMAIL, "WrongPassword1!")
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid credentials"

    def test_fifth_failure_locks(self, client, make_user):
        make_user(EMAIL)
        for _ in range(4):
            assert login(client, EMAIL, "WrongPassword1!").status_code == 401

        resp = login(client, EMAIL, "WrongPassword1!")
        assert resp.status_code == 423
        body = resp.get_json()
        assert body["error_code"] == "account_locked"
        assert body["locked_until"] == (T0 + timedelta(minutes=30)).isoformat()
        assert body["lock_duration_ms"] == 1_800_000

    def test_correct_password_refused_while_locked(self, client, make_user):
        make_user(EMAIL)
        for _ in range(5):
            login(client, EMAIL, "WrongPassword1!")

        with patch("routes.auth.verify_password") as verify:
            resp = login(client, EMAIL, USER_TEST_PASSWORD)

        verify.assert_not_called()
        assert resp.status_code == 423
        assert resp.headers["Retry-After"] == str(30 * 60)
        assert resp.get_json()["retry_after_seconds"] == 30 * 60

    def test_login_works_after_lock_lapses(self, client, make_user, clock):
        make_user(EMAIL)
        for _ in range(5):
            login(client, EMAIL, "WrongPassword1!")
        clock.advance(minutes=30)

        assert login(client, EMAIL, USER_TEST_PASSWORD).status_code == 200

    def test_success_resets_counter(self, client, make_user, services, app):
        make_user(EMAIL)
        for _ in range(3):
            login(client, EMAIL, "WrongPassword1!")
        assert login(client, EMAIL, USER_TEST_PASSWORD).status_code == 200

        with app.app_context():
            assert services.tracker.get_record(EMAIL) is None
        for _ in range(4):
            assert login(client, EMAIL, "WrongPassword1!").status_code == 401

    @pytest.mark.parametrize("password", [12345, ["CorrectHorse1!"], {"p": 1}, None])
    def test_non_string_password_is_a_failed_login(self, client, make_user, services, app, password):
        make_user(EMAIL)
        resp = client.post("/auth/login", json={"email": EMAIL, "password": password})

        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid credentials"
        with app.app_context():
            assert services.tracker.get_record(EMAIL).failure_count == 1

    def test_non_string_current_password_rejected(self, client, make_user):
        make_user(EMAIL)
        login(client, EMAIL)
        resp = client.post(
            "/auth/change_password",
            json={"current_password": 12345, "new_password": NEW_STRONG_PASSWORD},
        )
        assert resp.status_code == 400

    def test_unknown_accounts_lock_too(self, client):
        statuses = [login(client, "ghost@x.com", "WrongPassword1!").status_code for _ in range(5)]
        assert statuses == [401, 401, 401, 401, 423]

    def test_lock_email_failure_still_locks(self, client, make_user):
        from errors import EmailSendError

        make_user(EMAIL)
        with patch("routes.auth.send_account_locked", side_effect=EmailSendError("smtp down")) as send:
            for _ in range(5):
                resp = login(client, EMAIL, "WrongPassword1!")

        send.assert_called_once_with(EMAIL, "Test User")
        assert resp.status_code == 423

    def test_attempts_are_audited_with_client_details(self, client, make_user, app):
        make_user(EMAIL)
        headers = {"X-Forwarded-For": "203.0.113.7, 10.0.0.1", "User-Agent": "pytest-browser"}
        for _ in range(5):
            login(client, EMAIL, "WrongPassword1!", **headers)
        login(client, EMAIL, USER_TEST_PASSWORD, **headers)

        assert _audit_kinds(app) == ["LOGIN_FAILURE"] * 5 + ["ACCOUNT_LOCKED", "LOGIN_BLOCKED"]
        with app.app_context():
            row = AuditLog.query.filter_by(kind="ACCOUNT_LOCKED").one()
            assert row.ip == "203.0.113.7"
            assert row.user_agent == "pytest-browser"
            assert row.timestamp == T0


class TestSession:
    def test_me_requires_login(self, client):
        assert client.get("/auth/me").status_code == 401

    def test_logout(self, client, make_user, app):
        make_user(EMAIL)
        login(client, EMAIL)
        assert client.post("/auth/logout").status_code == 200
        assert client.get("/auth/me").status_code == 401
        assert _audit_kinds(app)[-1] == "LOGOUT"

    def test_new_login_revokes_old_session(self, client, make_user):
        make_user(EMAIL)
        login(client, EMAIL)
        resp = login(client, EMAIL)
        assert resp.get_json()["revoked_sessions"] == 1

    def test_security_headers(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.headers["Cache-Control"] == "no-store"
        assert resp.headers["X-Frame-Options"] == "DENY"


class TestChangePassword:
    def test_requires_current_password(self, client, make_user):
        make_user(EMAIL)
        login(client, EMAIL)
        resp = client.post("/auth/change_password", json={"new_password": NEW_STRONG_PASSWORD})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Current password is required"

    def test_wrong_current_password(self, client, make_user):
        make_user(EMAIL)
        login(client, EMAIL)
        resp = client.post(
            "/auth/change_password",
            json={"current_password": "NotMine123!x", "new_password": NEW_STRONG_PASSWORD},
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Invalid current password"

    def test_new_password_must_differ(self, client, make_user):
        make_user(EMAIL)
        login(client, EMAIL)
        resp = client.post(
            "/auth/change_password",
            json={"current_password": USER_TEST_PASSWORD, "new_password": USER_TEST_PASSWORD},
        )
        assert resp.status_code == 400
        assert resp.get_json()["details"] == ["New password must differ from the current one"]

    def test_change_password(self, client, make_user, app):
        make_user(EMAIL)
        login(client, EMAIL)
        resp = client.post(
            "/auth/change_password",
            json={"current_password": USER_TEST_PASSWORD, "new_password": NEW_STRONG_PASSWORD},
        )
        assert resp.status_code == 200
        assert _audit_kinds(app)[-1] == "PASSWORD_CHANGED"

        client.post("/auth/logout")
        assert login(client, EMAIL, USER_TEST_PASSWORD).status_code == 401
        assert login(client, EMAIL, NEW_STRONG_PASSWORD).status_code == 200
