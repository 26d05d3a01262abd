"""
Settings route tests: users, roles and permissions.

Verifies:
- User create/update validation (unique email, password rules, known roles)
- Role assignment order is kept on update; password change revokes sessions
- Self-deletion and deletion of assigned roles/permissions are refused
- Roles carry permissions and a navigation module order
"""

import pytest

from rbac_admin.extensions import db
from rbac_admin.models import Permission, Role, SessionToken, User
from rbac_admin.services import session_service

from conftest import auth_headers, make_role, make_user


def _flash(client, headers, path):
    return client.get(path, headers=headers).get_json()["flash"]


# =============================================================================
# USERS
# =============================================================================


class TestUsers:

    def test_index_lists_roles(self, client, admin):
        _admin, headers = admin
        body = client.get("/settings/users", headers=headers).get_json()

        assert body["component"] == "settings/users/index"
        admin_row = next(u for u in body["props"]["users"]["items"] if u["email"] == "admin@example.com")
        assert admin_row["roles"][0]["name"] == "Super Admin"

    def test_create(self, client, admin):
        _admin, headers = admin
        editor = make_role(name="Editor")

        resp = client.post("/settings/users", json={
            "name": "Jane",
            "email": "Jane@Example.com",
            "password": "secret123",
            "password_confirmation": "secret123",
            "roles": [editor.id],
        }, headers=headers)

        assert resp.status_code == 302
        assert _flash(client, headers, "/settings/users")["success"] == "User created successfully."

        user = db.session.query(User).filter_by(email="jane@example.com").one()
        assert user.is_verified
        assert [role.name for role in user.roles] == ["Editor"]

    def test_create_form_lists_roles(self, client, admin):
        _admin, headers = admin
        make_role(name="Editor")
        body = client.get("/settings/users/create", headers=headers).get_json()
        assert [r["name"] for r in body["props"]["roles"]] == ["Editor", "Super Admin"]

    @pytest.mark.parametrize(
        "overrides,field,message",
        [
            ({"email": "admin@example.com"}, "email", "The email has already been taken."),
            ({"email": "not-an-email"}, "email", "The email must be a valid email address."),
            ({"password": "short", "password_confirmation": "short"}, "password",
             "The password must be at least 8 characters."),
            ({"password_confirmation": "different1"}, "password", "The password confirmation does not match."),
            ({"roles": [999999]}, "roles", "The selected roles are invalid."),
            ({"name": ""}, "name", "The name field is required."),
        ],
    )
    def test_create_validation(self, client, admin, overrides, field, message):
        _admin, headers = admin
        payload = {
            "name": "Jane",
            "email": "jane@example.com",
            "password": "secret123",
            "password_confirmation": "secret123",
        }
        payload.update(overrides)

        resp = client.post("/settings/users", json=payload, headers=headers)

        assert resp.status_code == 422
        assert resp.get_json()["errors"] == {field: message}

    def test_create_requires_password(self, client, admin):
        _admin, headers = admin
        resp = client.post("/settings/users", json={"name": "Jane", "email": "jane@example.com"}, headers=headers)
        assert resp.get_json()["errors"] == {"password": "The password field is required."}

    def test_update_keeps_password_when_blank(self, client, admin):
        _admin, headers = admin
        user = make_user(email="jane@example.com", password="original1")
        old_hash = user.password_hash

        resp = client.put(f"/settings/users/{user.id}", json={
            "name": "Jane Doe",
            "email": "jane@example.com",
            "password": "",
            "password_confirmation": "",
        }, headers=headers)

        assert resp.status_code == 302
        updated = db.session.get(User, user.id)
        assert updated.name == "Jane Doe"
        assert updated.password_hash == old_hash

    def test_update_own_email_is_not_a_duplicate(self, client, admin):
        admin_user, headers = admin
        resp = client.put(f"/settings/users/{admin_user.id}", json={
            "name": "Root",
            "email": "admin@example.com",
        }, headers=headers)
        assert resp.status_code == 302

    def test_password_change_revokes_sessions(self, client, admin):
        _admin, headers = admin
        user = make_user(email="jane@example.com")
        user_headers = auth_headers(user)

        resp = client.put(f"/settings/users/{user.id}", json={
            "name": user.name,
            "email": "jane@example.com",
            "password": "newsecret1",
            "password_confirmation": "newsecret1",
        }, headers=headers)

        assert resp.status_code == 302
        assert client.get("/auth/me", headers=user_headers).status_code == 401
        assert db.session.query(SessionToken).filter_by(user_id=user.id, is_revoked=False).count() == 0

    def test_update_roles_keeps_first_role(self, client, admin):
        _admin, headers = admin
        first = make_role(name="First", module_order=[("products", 1)])
        second = make_role(name="Second")
        third = make_role(name="Third")
        user = make_user(email="jane@example.com", roles=[first, second])

        resp = client.put(f"/settings/users/{user.id}", json={
            "name": user.name,
            "email": "jane@example.com",
            "roles": [third.id, first.id],
        }, headers=headers)

        assert resp.status_code == 302
        updated = db.session.get(User, user.id)
        assert [role.name for role in updated.roles] == ["First", "Third"]

    def test_update_without_roles_key_keeps_roles(self, client, admin):
        _admin, headers = admin
        editor = make_role(name="Editor")
        user = make_user(email="jane@example.com", roles=[editor])

        client.put(f"/settings/users/{user.id}", json={"name": "Jane", "email": "jane@example.com"}, headers=headers)

        assert [role.name for role in db.session.get(User, user.id).roles] == ["Editor"]

    def test_cannot_delete_self(self, client, admin):
        admin_user, headers = admin
        resp = client.delete(f"/settings/users/{admin_user.id}", headers=headers)

        assert resp.status_code == 302
        assert _flash(client, headers, "/settings/users")["error"] == "You cannot delete your own account."
        assert db.session.get(User, admin_user.id) is not None

    def test_delete_other(self, client, admin):
        _admin, headers = admin
        user = make_user()
        user_headers = auth_headers(user)
        resp = client.delete(f"/settings/users/{user.id}", headers=headers)

        assert resp.status_code == 302
        assert _flash(client, headers, "/settings/users")["success"] == "User deleted successfully."
        assert db.session.get(User, user.id) is None
        assert client.get("/auth/me", headers=user_headers).status_code == 401

    def test_show_missing(self, client, admin):
        _admin, headers = admin
        resp = client.get("/settings/users/999999", headers=headers)
        assert resp.status_code == 404
        assert resp.get_json() == {"error": "User not found"}


# =============================================================================
# ROLES
# =============================================================================


class TestRoles:

    def _payload(self, permissions, overrides=None):
        payload = {
            "name": "Catalog Manager",
            "description": "Runs the catalog",
            "permissions": [permissions["categories.view"].id, permissions["products.view"].id],
            "module_order": [
                {"module": "products", "order": 1},
                {"module": "categories", "order": 2},
            ],
        }
        payload.update(overrides or {})
        return payload

    def test_create(self, client, admin, permissions):
        _admin, headers = admin
        resp = client.post("/settings/roles", json=self._payload(permissions), headers=headers)

        assert resp.status_code == 302
        assert _flash(client, headers, "/settings/roles")["success"] == "Role created successfully."

        role = db.session.query(Role).filter_by(name="Catalog Manager").one()
        assert {p.name for p in role.permissions} == {"categories.view", "products.view"}
        assert sorted((row.module, row.order) for row in role.module_orders) == [
            ("categories", 2),
            ("products", 1),
        ]

    def test_create_accepts_camel_case_module_order(self, client, admin, permissions):
        _admin, headers = admin
        payload = self._payload(permissions)
        payload["moduleOrder"] = payload.pop("module_order")

        resp = client.post("/settings/roles", json=payload, headers=headers)
        assert resp.status_code == 302

    def test_module_order_drives_navigation(self, client, admin, permissions):
        _admin, headers = admin
        client.post("/settings/roles", json=self._payload(permissions), headers=headers)
        role = db.session.query(Role).filter_by(name="Catalog Manager").one()
        user = make_user(roles=[role])

        body = client.get("/auth/me", headers=auth_headers(user)).get_json()
        assert [entry["module"] for entry in body["moduleOrder"]] == ["products", "categories"]

    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"name": "Super Admin"}, "name"),
            ({"name": ""}, "name"),
            ({"permissions": []}, "permissions"),
            ({"permissions": [999999]}, "permissions"),
            ({"module_order": []}, "module_order"),
            ({"module_order": [{"module": "reports", "order": 1}]}, "module_order"),
            ({"module_order": [{"module": "products", "order": 0}]}, "module_order"),
            ({"module_order": [{"module": "products", "order": 1}, {"module": "products", "order": 2}]},
             "module_order"),
        ],
    )
    def test_create_validation(self, client, admin, permissions, overrides, field):
        _admin, headers = admin
        resp = client.post("/settings/roles", json=self._payload(permissions, overrides), headers=headers)

        assert resp.status_code == 422
        assert set(resp.get_json()["errors"]) == {field}

    def test_update_replaces_permissions_and_order(self, client, admin, permissions):
        _admin, headers = admin
        role = make_role(
            name="Catalog Manager",
            permission_names=["categories.view"],
            module_order=[("categories", 1)],
        )

        resp = client.put(f"/settings/roles/{role.id}", json={
            "name": "Catalog Manager",
            "permissions": [permissions["products.edit"].id],
            "module_order": [{"module": "products", "order": 1}, {"module": "dashboard", "order": 2}],
        }, headers=headers)

        assert resp.status_code == 302
        role = db.session.get(Role, role.id)
        assert [p.name for p in role.permissions] == ["products.edit"]
        assert sorted(row.module for row in role.module_orders) == ["dashboard", "products"]

    def test_delete_blocked_when_assigned(self, client, admin):
        _admin, headers = admin
        role = make_role(name="Editor")
        make_user(roles=[role])

        resp = client.delete(f"/settings/roles/{role.id}", headers=headers)

        assert resp.status_code == 302
        assert _flash(client, headers, "/settings/roles")["error"] == "Cannot delete role that is assigned to users."
        assert db.session.get(Role, role.id) is not None

    def test_delete_unassigned(self, client, admin):
        _admin, headers = admin
        role = make_role(name="Editor", permission_names=["users.view"], module_order=[("users", 1)])

        resp = client.delete(f"/settings/roles/{role.id}", headers=headers)

        assert resp.status_code == 302
        assert db.session.get(Role, role.id) is None

    def test_index_counts_users(self, client, admin):
        _admin, headers = admin
        role = make_role(name="Editor")
        make_user(roles=[role])
        make_user(roles=[role])

        items = client.get("/settings/roles", headers=headers).get_json()["props"]["roles"]["items"]
        editor = next(item for item in items if item["name"] == "Editor")
        assert editor["users_count"] == 2

    def test_show_and_edit(self, client, admin, permissions):
        _admin, headers = admin
        role = make_role(name="Editor", permission_names=["users.view"], module_order=[("users", 1)])

        show = client.get(f"/settings/roles/{role.id}", headers=headers).get_json()
        assert show["props"]["role"]["permission_ids"] == [permissions["users.view"].id]
        assert show["props"]["role"]["module_order"][0]["module"] == "users"

        edit = client.get(f"/settings/roles/{role.id}/edit", headers=headers).get_json()
        assert "users" in edit["props"]["permissions"]
        assert [m["name"] for m in edit["props"]["modules"]][0] == "dashboard"


# =============================================================================
# PERMISSIONS
# =============================================================================


class TestPermissions:

    def test_create(self, client, admin):
        _admin, headers = admin
        resp = client.post("/settings/permissions", json={
            "name": "reports.view",
            "module": "reports",
            "action": "view",
            "display_name": "View Reports",
        }, headers=headers)

        assert resp.status_code == 302
        assert _flash(client, headers, "/settings/permissions")["success"] == "Permission created successfully."
        assert db.session.query(Permission).filter_by(name="reports.view").count() == 1

    def test_duplicate_name(self, client, admin):
        _admin, headers = admin
        resp = client.post("/settings/permissions", json={
            "name": "users.view",
            "module": "users",
            "action": "view",
            "display_name": "Again",
        }, headers=headers)

        assert resp.status_code == 422
        assert resp.get_json()["errors"] == {"name": "The name has already been taken."}

    def test_patch_display_name(self, client, admin, permissions):
        _admin, headers = admin
        permission = permissions["settings.view"]

        resp = client.patch(
            f"/settings/permissions/{permission.id}",
            json={"display_name": "Open Settings"},
            headers=headers,
        )

        assert resp.status_code == 302
        updated = db.session.get(Permission, permission.id)
        assert updated.display_name == "Open Settings"
        assert updated.name == "settings.view"

    def test_delete_blocked_when_assigned(self, client, admin, permissions):
        _admin, headers = admin
        permission = permissions["users.view"]

        resp = client.delete(f"/settings/permissions/{permission.id}", headers=headers)

        assert resp.status_code == 302
        assert _flash(client, headers, "/settings/permissions")["error"] == (
            "Cannot delete permission that is assigned to roles."
        )
        assert db.session.get(Permission, permission.id) is not None

    def test_delete_unassigned(self, client, admin):
        _admin, headers = admin
        permission = Permission(name="reports.view", module="reports", action="view", display_name="View Reports")
        db.session.add(permission)
        db.session.commit()

        resp = client.delete(f"/settings/permissions/{permission.id}", headers=headers)

        assert resp.status_code == 302
        assert db.session.get(Permission, permission.id) is None

    def test_index_paginates_by_fifteen(self, client, admin, permissions):
        _admin, headers = admin
        listing = client.get("/settings/permissions", headers=headers).get_json()["props"]["permissions"]

        assert listing["pagination"]["per_page"] == 15
        assert listing["pagination"]["total"] == len(permissions)
        assert listing["count"] == 15

    def test_show_lists_roles(self, client, admin, permissions):
        _admin, headers = admin
        body = client.get(f"/settings/permissions/{permissions['users.view'].id}", headers=headers).get_json()
        assert [role["name"] for role in body["props"]["permission"]["roles"]] == ["Super Admin"]


class TestSessions:

    def test_cleanup_keeps_recent_sessions(self, admin):
        admin_user, _headers = admin
        session_service.revoke_all_user_sessions(admin_user.id, reason="test")
        assert session_service.cleanup_expired_sessions() == 0
        assert db.session.query(SessionToken).filter_by(user_id=admin_user.id).count() == 1
