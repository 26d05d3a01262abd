"""
Authentication tests.

Verifies:
- Login returns a bearer token with the caller's permissions and navigation order
- Wrong credentials are rejected without revealing which part was wrong
- Logout revokes the presented token only
- Idle and expired sessions stop validating
"""

from datetime import timedelta

import pytest

from rbac_admin.extensions import db
from rbac_admin.models import SessionToken
from rbac_admin.services import auth_service, session_service
from rbac_admin.time_utils import utcnow

from conftest import make_role, make_user


@pytest.fixture
def jane(permissions):
    role = make_role(
        name="Catalog",
        permission_names=["products.view", "categories.view"],
        module_order=[("products", 1), ("categories", 2)],
    )
    return make_user(name="Jane", email="jane@example.com", password="secret123", roles=[role])


class TestLogin:

    def test_success(self, client, jane):
        resp = client.post("/auth/login", json={"email": "Jane@Example.com", "password": "secret123"})

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["user"]["email"] == "jane@example.com"
        assert body["permissions"] == ["categories.view", "products.view"]
        assert body["roles"] == ["Catalog"]
        assert [entry["module"] for entry in body["moduleOrder"]] == ["products", "categories"]
        assert len(body["token"]) == 64

    def test_token_is_stored_hashed(self, client, jane):
        token = client.post("/auth/login", json={"email": "jane@example.com", "password": "secret123"}).get_json()["token"]

        stored = db.session.query(SessionToken).filter_by(user_id=jane.id).one()
        assert stored.token_hash == session_service.hash_token(token)
        assert stored.token_hash != token

    @pytest.mark.parametrize(
        "email,password",
        [
            ("jane@example.com", "wrong-password"),
            ("nobody@example.com", "secret123"),
        ],
    )
    def test_bad_credentials(self, client, jane, email, password):
        resp = client.post("/auth/login", json={"email": email, "password": password})

        assert resp.status_code == 401
        assert resp.get_json() == {"error": "These credentials do not match our records."}

    @pytest.mark.parametrize("payload", [{}, {"email": "jane@example.com"}, {"password": "secret123"}])
    def test_missing_fields(self, client, db_session, payload):
        resp = client.post("/auth/login", json=payload)
        assert resp.status_code == 400


class TestMeAndLogout:

    def test_me(self, client, jane):
        token = client.post("/auth/login", json={"email": "jane@example.com", "password": "secret123"}).get_json()["token"]
        headers = {"Authorization": f"Bearer {token}"}

        body = client.get("/auth/me", headers=headers).get_json()
        assert body["user"]["id"] == jane.id
        assert "products.view" in body["permissions"]

    def test_logout_revokes_only_that_token(self, client, jane):
        login = {"email": "jane@example.com", "password": "secret123"}
        first = {"Authorization": f"Bearer {client.post('/auth/login', json=login).get_json()['token']}"}
        second = {"Authorization": f"Bearer {client.post('/auth/login', json=login).get_json()['token']}"}

        assert client.post("/auth/logout", headers=first).status_code == 200

        assert client.get("/auth/me", headers=first).status_code == 401
        assert client.get("/auth/me", headers=second).status_code == 200


class TestSessionLifetime:

    def test_idle_session_is_revoked(self, jane):
        session, token = session_service.create_session(jane.id)
        session.last_used_at = utcnow() - timedelta(hours=3)
        db.session.commit()

        assert session_service.validate_session(token) is None
        assert db.session.get(SessionToken, session.id).revoked_reason == "Idle timeout"

    def test_expired_session(self, jane):
        session, token = session_service.create_session(jane.id)
        session.expires_at = utcnow() - timedelta(minutes=1)
        db.session.commit()

        assert session_service.validate_session(token) is None

    def test_valid_session_touches_last_used(self, jane):
        session, token = session_service.create_session(jane.id)
        session.last_used_at = utcnow() - timedelta(minutes=30)
        db.session.commit()
        before = session.last_used_at

        context = session_service.validate_session(token)

        assert context.user.id == jane.id
        assert context.session.last_used_at > before

    def test_cleanup_removes_old_revoked(self, jane):
        session, _token = session_service.create_session(jane.id)
        session.is_revoked = True
        session.created_at = utcnow() - timedelta(days=31)
        db.session.commit()

        assert session_service.cleanup_expired_sessions() == 1


class TestPasswords:

    def test_hash_and_verify(self, app):
        hashed = auth_service.hash_password("secret123")
        assert hashed != "secret123"
        assert auth_service.verify_password("secret123", hashed)
        assert not auth_service.verify_password("secret124", hashed)

    def test_malformed_hash_does_not_verify(self):
        assert auth_service.verify_password("secret123", "not-a-bcrypt-hash") is False

    @pytest.mark.parametrize(
        "password,confirmation,message",
        [
            ("", "", "The password field is required."),
            ("short", "short", "The password must be at least 8 characters."),
            ("longenough", "different", "The password confirmation does not match."),
        ],
    )
    def test_rules(self, password, confirmation, message):
        with pytest.raises(auth_service.PasswordValidationError) as exc:
            auth_service.validate_password(password, confirmation)
        assert exc.value.errors == {"password": message}
