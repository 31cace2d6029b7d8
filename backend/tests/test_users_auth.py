"""
Authentication and user management tests.

Verifies:
- Login / logout / me and session revocation
- Admin-only user creation with password strength rules
- Self-service profile updates vs admin updates
- Admins cannot lock themselves out
"""

import pytest

from app.extensions import db
from app.models import SessionToken, User
from app.services import session_service
from app.services.auth_service import PasswordValidationError, validate_password_strength

from conftest import PASSWORD, auth_headers, get_auth_token


class TestLogin:
    def test_login_returns_token(self, client, staff_user):
        resp = client.post("/api/auth/login", json={"email": "STAFF@test.local", "password": PASSWORD})
        assert resp.status_code == 200
        assert resp.json["user"]["email"] == "staff@test.local"
        assert "password_hash" not in resp.json["user"]
        assert "CREATE_SALE" in resp.json["permissions"]
        assert len(resp.json["token"]) == 64

        stored = db.session.query(SessionToken).filter_by(user_id=staff_user.id).one()
        assert stored.token_hash == session_service.hash_token(resp.json["token"])
        assert db.session.get(User, staff_user.id).last_login_at is not None

    def test_wrong_password(self, client, staff_user):
        resp = client.post("/api/auth/login", json={"email": staff_user.email, "password": "Wrong123!"})
        assert resp.status_code == 401
        assert resp.json["error"] == "Invalid credentials"

    def test_unknown_email(self, client, db_session):
        resp = client.post("/api/auth/login", json={"email": "nobody@test.local", "password": PASSWORD})
        assert resp.status_code == 401

    def test_missing_fields(self, client, db_session):
        assert client.post("/api/auth/login", json={"email": "a@b.c"}).status_code == 400

    def test_inactive_user_cannot_login(self, client, db_session, staff_user):
        staff_user.is_active = False
        db_session.commit()
        resp = client.post("/api/auth/login", json={"email": staff_user.email, "password": PASSWORD})
        assert resp.status_code == 401

    def test_registration_disabled(self, client, db_session):
        resp = client.post("/api/auth/register", json={"email": "x@test.local", "password": PASSWORD})
        assert resp.status_code == 403


class TestSession:
    def test_logout_revokes_token(self, client, staff_headers):
        assert client.get("/api/auth/me", headers=staff_headers).status_code == 200

        resp = client.post("/api/auth/logout", headers=staff_headers)
        assert resp.status_code == 200

        assert client.get("/api/auth/me", headers=staff_headers).status_code == 401

    def test_deactivated_user_token_rejected(self, client, db_session, staff_user, staff_headers):
        staff_user.is_active = False
        db_session.commit()
        resp = client.get("/api/auth/me", headers=staff_headers)
        assert resp.status_code == 401

    def test_create_session_rejects_inactive(self, db_session, staff_user):
        staff_user.is_active = False
        db_session.commit()
        with pytest.raises(ValueError):
            session_service.create_session(staff_user.id)


class TestPasswordStrength:
    @pytest.mark.parametrize("password", ["short1!", "alllowercase1!", "ALLUPPERCASE1!", "NoDigits!!", "NoSpecial123"])
    def test_weak_passwords(self, password):
        with pytest.raises(PasswordValidationError):
            validate_password_strength(password)

    def test_strong_password(self):
        validate_password_strength(PASSWORD)


class TestUserManagement:
    def test_admin_creates_user(self, client, admin_headers):
        resp = client.post("/api/users", json={
            "name": "New Hire", "email": "New.Hire@test.local", "password": "Str0ng!Pass", "role": "manager",
        }, headers=admin_headers)
        assert resp.status_code == 201, resp.json
        assert resp.json["user"]["email"] == "new.hire@test.local"
        assert resp.json["user"]["role"] == "MANAGER"

        token = get_auth_token(client, "new.hire@test.local", "Str0ng!Pass")
        assert token is not None

    def test_default_role_is_staff(self, client, admin_headers):
        resp = client.post("/api/users", json={
            "name": "Default", "email": "default@test.local", "password": "Str0ng!Pass",
        }, headers=admin_headers)
        assert resp.json["user"]["role"] == "STAFF"

    @pytest.mark.parametrize("payload,status", [
        ({"name": "X", "email": "x@test.local"}, 400),
        ({"name": "X", "email": "not-an-email", "password": "Str0ng!Pass"}, 400),
        ({"name": "X", "email": "x@test.local", "password": "weak"}, 400),
        ({"name": "X", "email": "x@test.local", "password": "Str0ng!Pass", "role": "OWNER"}, 400),
        ({"name": "X", "email": "admin@test.local", "password": "Str0ng!Pass"}, 409),
    ])
    def test_create_user_errors(self, client, admin_headers, payload, status):
        resp = client.post("/api/users", json=payload, headers=admin_headers)
        assert resp.status_code == status

    def test_list_users(self, client, admin_headers, staff_user, manager_user):
        resp = client.get("/api/users?role=staff", headers=admin_headers)
        assert resp.status_code == 200
        assert [u["email"] for u in resp.json["users"]] == ["staff@test.local"]
        assert resp.json["pagination"]["total"] == 1

        search = client.get("/api/users?search=manager", headers=admin_headers)
        assert [u["email"] for u in search.json["users"]] == ["manager@test.local"]

    def test_get_self_without_view_users(self, client, staff_user, staff_headers, admin_user):
        assert client.get(f"/api/users/{staff_user.id}", headers=staff_headers).status_code == 200
        resp = client.get(f"/api/users/{admin_user.id}", headers=staff_headers)
        assert resp.status_code == 403

    def test_get_missing_user(self, client, admin_headers):
        assert client.get("/api/users/999999", headers=admin_headers).status_code == 404

    def test_delete_user(self, client, admin_headers, staff_user):
        resp = client.delete(f"/api/users/{staff_user.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert db.session.get(User, staff_user.id) is None

    def test_cannot_delete_self(self, client, admin_headers, admin_user):
        resp = client.delete(f"/api/users/{admin_user.id}", headers=admin_headers)
        assert resp.status_code == 403


class TestUserUpdates:
    def test_self_can_rename(self, client, staff_user, staff_headers):
        resp = client.put(f"/api/users/{staff_user.id}", json={"name": "Renamed"}, headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["user"]["name"] == "Renamed"

    def test_self_password_change_needs_current(self, client, staff_user, staff_headers):
        missing = client.put(f"/api/users/{staff_user.id}", json={"password": "N3w!Password"}, headers=staff_headers)
        assert missing.status_code == 400

        wrong = client.put(f"/api/users/{staff_user.id}", json={
            "password": "N3w!Password", "current_password": "Wrong123!",
        }, headers=staff_headers)
        assert wrong.status_code == 400

        ok = client.put(f"/api/users/{staff_user.id}", json={
            "password": "N3w!Password", "current_password": PASSWORD,
        }, headers=staff_headers)
        assert ok.status_code == 200
        assert get_auth_token(client, staff_user.email, "N3w!Password") is not None

    def test_self_cannot_change_role(self, client, staff_user, staff_headers):
        resp = client.put(f"/api/users/{staff_user.id}", json={"role": "ADMIN"}, headers=staff_headers)
        assert resp.status_code == 403
        assert db.session.get(User, staff_user.id).role == "STAFF"

    def test_cannot_update_other_user(self, client, staff_headers, manager_user):
        resp = client.put(f"/api/users/{manager_user.id}", json={"name": "Hacked"}, headers=staff_headers)
        assert resp.status_code == 403

    def test_unknown_field(self, client, staff_user, staff_headers):
        resp = client.put(f"/api/users/{staff_user.id}", json={"password_hash": "x"}, headers=staff_headers)
        assert resp.status_code == 400

    def test_admin_updates_role_and_email(self, client, admin_headers, staff_user):
        resp = client.put(f"/api/users/{staff_user.id}", json={
            "role": "MANAGER", "email": "promoted@test.local",
        }, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["user"]["role"] == "MANAGER"
        assert resp.json["user"]["email"] == "promoted@test.local"

    def test_admin_email_conflict(self, client, admin_headers, staff_user, manager_user):
        resp = client.put(f"/api/users/{staff_user.id}", json={"email": manager_user.email}, headers=admin_headers)
        assert resp.status_code == 409

    def test_deactivation_revokes_sessions(self, client, admin_headers, staff_user, staff_headers):
        resp = client.put(f"/api/users/{staff_user.id}", json={"is_active": False}, headers=admin_headers)
        assert resp.status_code == 200

        sessions = db.session.query(SessionToken).filter_by(user_id=staff_user.id).all()
        assert sessions and all(s.is_revoked for s in sessions)
        assert client.get("/api/auth/me", headers=staff_headers).status_code == 401

    def test_admin_password_reset_revokes_sessions(self, client, admin_headers, staff_user, staff_headers):
        resp = client.put(f"/api/users/{staff_user.id}", json={"password": "Reset!Pass1"}, headers=admin_headers)
        assert resp.status_code == 200
        assert client.get("/api/auth/me", headers=staff_headers).status_code == 401

    def test_admin_cannot_demote_or_deactivate_self(self, client, admin_headers, admin_user):
        demote = client.put(f"/api/users/{admin_user.id}", json={"role": "STAFF"}, headers=admin_headers)
        assert demote.status_code == 400

        deactivate = client.put(f"/api/users/{admin_user.id}", json={"is_active": False}, headers=admin_headers)
        assert deactivate.status_code == 400

        user = db.session.get(User, admin_user.id)
        assert user.role == "ADMIN"
        assert user.is_active is True

    def test_failed_update_changes_nothing(self, client, admin_headers, staff_user):
        resp = client.put(f"/api/users/{staff_user.id}", json={
            "name": "Partially Applied", "role": "OWNER",
        }, headers=admin_headers)
        assert resp.status_code == 400
        assert db.session.get(User, staff_user.id).name == "Staff"


def test_auth_headers_helper():
    assert auth_headers("abc") == {"Authorization": "Bearer abc"}
