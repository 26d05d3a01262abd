"""
Permission evaluation tests.

Verifies:
- Exact-match grants across the union of a user's roles
- any/all semantics, including empty name lists
- Module order comes from the first assigned role only
- Seeding and permission administration rules
"""

import pytest

from rbac_admin.models import Permission, Role
from rbac_admin.permissions import PERMISSION_DEFINITIONS, SUPER_ADMIN_ROLE, default_module_order, get_permission_definition
from rbac_admin.services import permission_service
from rbac_admin.services.permission_service import (
    get_all_permissions,
    get_module_order,
    has_all_permissions,
    has_any_permission,
    has_permission,
    has_role,
)
from rbac_admin.validation import IntegrityViolation, UniqueConstraintViolation, ValidationError

from conftest import make_role, make_user


# =============================================================================
# EVALUATOR
# =============================================================================


class TestHasPermission:

    def test_user_without_roles_has_nothing(self, permissions):
        user = make_user()
        assert has_permission(user, "dashboard.view") is False
        assert get_all_permissions(user) == set()

    def test_none_user_is_denied(self):
        assert has_permission(None, "dashboard.view") is False
        assert get_all_permissions(None) == set()
        assert get_module_order(None) == []

    def test_granted_permission(self, permissions):
        role = make_role(permission_names=["products.create"])
        user = make_user(roles=[role])

        assert has_permission(user, "products.create") is True
        assert has_permission(user, "nonexistent.permission") is False

    def test_exact_match_only(self, permissions):
        role = make_role(permission_names=["categories.edit"])
        user = make_user(roles=[role])

        assert has_permission(user, "categories.view") is False
        assert has_permission(user, "categories") is False
        assert has_permission(user, "categories.*") is False

    def test_union_across_roles(self, permissions):
        role1 = make_role(permission_names=["users.view"])
        role2 = make_role(permission_names=["roles.view"])
        user = make_user(roles=[role1, role2])

        assert has_permission(user, "users.view")
        assert has_permission(user, "roles.view")

    def test_all_permissions_deduplicated(self, permissions):
        role1 = make_role(permission_names=["users.view", "roles.view"])
        role2 = make_role(permission_names=["roles.view", "permissions.view"])
        user = make_user(roles=[role1, role2])

        assert get_all_permissions(user) == {"users.view", "roles.view", "permissions.view"}


class TestAnyAll:

    @pytest.fixture
    def editor(self, permissions):
        role = make_role(permission_names=["categories.view", "categories.edit"])
        return make_user(roles=[role])

    def test_any_matches_one(self, editor):
        assert has_any_permission(editor, ["products.view", "categories.edit"]) is True

    def test_any_matches_none(self, editor):
        assert has_any_permission(editor, ["products.view", "users.view"]) is False

    def test_any_empty_is_false(self, editor):
        assert has_any_permission(editor, []) is False

    def test_all_requires_every_name(self, editor):
        assert has_all_permissions(editor, ["categories.view", "categories.edit"]) is True
        assert has_all_permissions(editor, ["categories.view", "categories.delete"]) is False

    def test_all_empty_is_true(self, editor):
        assert has_all_permissions(editor, []) is True

    def test_has_role(self, permissions):
        role = make_role(name="Admin")
        user = make_user(roles=[role])
        assert has_role(user, "Admin") is True
        assert has_role(user, "NonExistentRole") is False


class TestModuleOrder:

    def test_empty_without_roles(self, permissions):
        assert get_module_order(make_user()) == []

    def test_sorted_by_order(self, permissions):
        role = make_role(module_order=[("products", 3), ("dashboard", 1), ("users", 2)])
        user = make_user(roles=[role])

        assert get_module_order(user) == [
            {"module": "dashboard", "order": 1},
            {"module": "users", "order": 2},
            {"module": "products", "order": 3},
        ]

    def test_first_role_only(self, permissions):
        first = make_role(module_order=[("dashboard", 1), ("users", 2)])
        second = make_role(module_order=[("products", 1), ("categories", 2), ("roles", 3)])
        user = make_user(roles=[first, second])

        modules = [entry["module"] for entry in get_module_order(user)]
        assert modules == ["dashboard", "users"]

    def test_first_role_without_order_gives_empty(self, permissions):
        first = make_role()
        second = make_role(module_order=[("products", 1)])
        user = make_user(roles=[first, second])

        assert get_module_order(user) == []


# =============================================================================
# SEEDING
# =============================================================================


class TestSeeding:

    def test_initialize_is_idempotent(self, db_session):
        created = permission_service.initialize_permissions()
        assert created == len(PERMISSION_DEFINITIONS)

        assert permission_service.initialize_permissions() == 0
        assert db_session.query(Permission).count() == len(PERMISSION_DEFINITIONS)

    def test_catalogue_labels(self, permissions):
        definition = get_permission_definition("categories.delete")
        stored = permissions["categories.delete"]
        assert stored.module == definition["module"] == "categories"
        assert stored.action == "delete"
        assert stored.display_name == "Delete Categories"

    def test_super_admin_holds_everything(self, permissions):
        role = permission_service.ensure_super_admin_role()
        user = make_user(roles=[role])

        assert role.name == SUPER_ADMIN_ROLE
        assert get_all_permissions(user) == set(permissions)
        assert get_module_order(user) == default_module_order()

    def test_super_admin_keeps_custom_module_order(self, permissions, db_session):
        role = permission_service.ensure_super_admin_role()
        role.module_orders[0].order = 99
        db_session.commit()

        permission_service.ensure_super_admin_role()
        assert db_session.query(Role).filter_by(name=SUPER_ADMIN_ROLE).count() == 1
        assert 99 in [row.order for row in role.module_orders]


class TestSyncRolePermissions:

    def test_replaces_set(self, permissions, db_session):
        role = make_role(permission_names=["users.view", "users.edit"])
        keep, add = permissions["users.view"], permissions["roles.view"]

        permission_service.sync_role_permissions(role, [keep.id, add.id])
        db_session.commit()

        assert {p.name for p in role.permissions} == {"users.view", "roles.view"}

    def test_grant_and_revoke_by_name(self, permissions, db_session):
        make_role(name="Editor")

        permission_service.grant_permission_to_role("Editor", "products.edit")
        permission_service.grant_permission_to_role("Editor", "products.edit")
        user = make_user(roles=[db_session.query(Role).filter_by(name="Editor").one()])
        assert has_permission(user, "products.edit")

        assert permission_service.revoke_permission_from_role("Editor", "products.edit") is True
        assert permission_service.revoke_permission_from_role("Editor", "products.edit") is False

    def test_grant_unknown_permission(self, permissions):
        make_role(name="Editor")
        with pytest.raises(ValueError):
            permission_service.grant_permission_to_role("Editor", "nope.view")


# =============================================================================
# PERMISSION ADMINISTRATION
# =============================================================================


class TestPermissionCrud:

    def test_create(self, permissions):
        permission = permission_service.create_permission({
            "name": "reports.view",
            "module": "reports",
            "action": "view",
            "display_name": "View Reports",
        })
        assert permission.id is not None
        assert permission.description is None

    def test_name_must_be_unique(self, permissions):
        with pytest.raises(UniqueConstraintViolation) as exc:
            permission_service.create_permission({
                "name": "users.view",
                "module": "users",
                "action": "view",
                "display_name": "Duplicate",
            })
        assert exc.value.errors == {"name": "The name has already been taken."}

    def test_required_fields(self, permissions):
        with pytest.raises(ValidationError) as exc:
            permission_service.create_permission({"description": "x"})
        assert set(exc.value.errors) == {"name", "module", "action", "display_name"}

    def test_name_format(self, permissions):
        with pytest.raises(ValidationError) as exc:
            permission_service.create_permission({
                "name": "Reports",
                "module": "reports",
                "action": "view",
                "display_name": "View Reports",
            })
        assert "name" in exc.value.errors

    def test_update_keeps_own_name(self, permissions):
        permission = permissions["users.view"]
        permission_service.update_permission(permission, {
            "name": "users.view",
            "module": "users",
            "action": "view",
            "display_name": "See Users",
        })
        assert permission.display_name == "See Users"

    def test_delete_blocked_when_assigned(self, permissions, db_session):
        make_role(permission_names=["users.view"])
        with pytest.raises(IntegrityViolation):
            permission_service.delete_permission(permissions["users.view"])
        assert db_session.query(Permission).filter_by(name="users.view").count() == 1

    def test_delete_unassigned(self, permissions, db_session):
        permission_service.delete_permission(permissions["settings.edit"])
        assert db_session.query(Permission).filter_by(name="settings.edit").count() == 0

    def test_grouped_by_module(self, permissions):
        grouped = permission_service.permissions_grouped_by_module()
        assert list(grouped) == sorted(grouped)
        assert [p["action"] for p in grouped["users"]] == ["create", "delete", "edit", "view"]
