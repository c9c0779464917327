"""
Authentication and session tests.

Verifies:
- Login/logout/me over the API, with failures recorded
- Token hashing, idle and absolute expiry, revocation and cleanup
- Admin registration by a MODERATOR, with password strength checks
"""

from datetime import timedelta

import pytest

from dryclean.models import User, SessionToken, SecurityEvent
from dryclean.permissions import ROLE_ADMIN
from dryclean.services import auth_service, session_service
from dryclean.services.auth_service import PasswordValidationError
from dryclean.time_utils import utcnow
from dryclean.validation import ConflictError

from conftest import PASSWORD, auth_headers, get_auth_token


class TestLogin:

    def test_login_returns_token_user_and_capabilities(self, client, admin_user):
        resp = client.post("/api/auth/login", json={"email": "ADMIN@example.com ", "password": PASSWORD})
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["token"]
        assert data["user"]["email"] == "admin@example.com"
        assert data["user"]["role"] == ROLE_ADMIN
        assert "MANAGE_INVOICES" in data["capabilities"]

    def test_wrong_password(self, client, db_session, admin_user):
        resp = client.post("/api/auth/login", json={"email": admin_user.email, "password": "nope12345"})
        assert resp.status_code == 401
        assert db_session.query(SecurityEvent).filter_by(event_type="LOGIN_FAILED").count() == 1

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/login", json={"email": "a@b.co"})
        assert resp.status_code == 400

    def test_inactive_user_cannot_login(self, client, db_session, admin_user):
        admin_user.is_active = False
        db_session.commit()
        assert get_auth_token(client, admin_user.email) is None

    def test_me_and_logout(self, client, admin_user):
        token = get_auth_token(client, admin_user.email)
        headers = auth_headers(token)

        me = client.get("/api/auth/me", headers=headers)
        assert me.status_code == 200
        assert me.get_json()["user"]["id"] == admin_user.id

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401


class TestSessions:

    def test_only_hash_stored(self, db_session, admin_user):
        session, token = session_service.create_session(admin_user.id)
        assert session.token_hash == session_service.hash_token(token)
        assert token not in session.token_hash

    def test_idle_timeout_revokes(self, db_session, admin_user):
        session, token = session_service.create_session(admin_user.id)
        session.last_used_at = utcnow() - timedelta(hours=3)
        db_session.commit()

        assert session_service.validate_session(token) is None
        db_session.refresh(session)
        assert session.is_revoked is True
        assert session.revoked_reason == "Idle timeout"

    def test_absolute_timeout(self, db_session, admin_user):
        session, token = session_service.create_session(admin_user.id)
        session.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()
        assert session_service.validate_session(token) is None

    def test_deactivated_user_session_rejected(self, db_session, admin_user):
        _session, token = session_service.create_session(admin_user.id)
        auth_service.deactivate_user(admin_user.email)
        assert session_service.validate_session(token) is None

    def test_revoke_all(self, db_session, admin_user):
        session_service.create_session(admin_user.id)
        session_service.create_session(admin_user.id)
        assert session_service.revoke_all_user_sessions(admin_user.id) == 2

    def test_cleanup_removes_old_revoked_sessions(self, db_session, admin_user):
        old, _token = session_service.create_session(admin_user.id)
        fresh, _token = session_service.create_session(admin_user.id)
        old.created_at = utcnow() - timedelta(days=40)
        old.is_revoked = True
        db_session.commit()

        assert session_service.cleanup_expired_sessions() == 1
        remaining = [s.id for s in db_session.query(SessionToken).all()]
        assert remaining == [fresh.id]


class TestPasswords:

    @pytest.mark.parametrize("password", ["short1", "nodigitshere", "12345678", ""])
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(PasswordValidationError):
            auth_service.validate_password_strength(password)

    def test_hash_roundtrip(self):
        hashed = auth_service.hash_password("Laundry2025")
        assert auth_service.verify_password("Laundry2025", hashed)
        assert not auth_service.verify_password("Laundry2026", hashed)

    def test_malformed_hash_is_mismatch(self):
        assert auth_service.verify_password("anything1", "not-a-bcrypt-hash") is False

    def test_duplicate_email(self, db_session, admin_user):
        with pytest.raises(ConflictError):
            auth_service.create_user("admin@example.com", PASSWORD, ROLE_ADMIN)


class TestRegisterAdmin:

    def test_moderator_registers_admin(self, client, db_session, moderator_headers):
        resp = client.post(
            "/api/auth/register-admin",
            json={"email": "new.admin@example.com", "password": "Laundry2025"},
            headers=moderator_headers,
        )
        assert resp.status_code == 201
        user = db_session.query(User).filter_by(email="new.admin@example.com").one()
        assert user.role == ROLE_ADMIN

    def test_weak_password(self, client, db_session, moderator_headers):
        resp = client.post(
            "/api/auth/register-admin",
            json={"email": "weak@example.com", "password": "weak"},
            headers=moderator_headers,
        )
        assert resp.status_code == 400
        assert "8 characters" in resp.get_json()["error"]

    def test_duplicate(self, client, db_session, admin_user, moderator_headers):
        resp = client.post(
            "/api/auth/register-admin",
            json={"email": admin_user.email, "password": "Laundry2025"},
            headers=moderator_headers,
        )
        assert resp.status_code == 409
