# Overview: Flask routes for the settings area; user, role and permission administration.

"""
Settings routes: users, roles and permissions.

SECURITY: All routes require authentication. Each page requires the
matching <area>.view/.create/.edit/.delete permission. Email verification is
not required here.
"""
from flask import Blueprint, request, g, current_app

from ..extensions import db
from ..models import User, Role, Permission
from ..services import auth_service, role_service, permission_service
from ..validation import ValidationError, IntegrityViolation
from ..decorators import require_auth, require_permission
from ..pages import render_page, redirect_with, validation_failed, not_found, form_payload


settings_bp = Blueprint("settings", __name__, url_prefix="/settings")


# =============================================================================
# USERS
# =============================================================================

@settings_bp.get("/users")
@require_auth
@require_permission("users.view")
def users_index():
    page = request.args.get("page", 1, type=int)
    return render_page("settings/users/index", users=auth_service.list_users(page=page))


@settings_bp.get("/users/create")
@require_auth
@require_permission("users.create")
def users_create():
    return render_page("settings/users/create", roles=role_service.all_roles())


@settings_bp.post("/users")
@require_auth
@require_permission("users.create")
def users_store():
    try:
        auth_service.create_user(form_payload())
    except ValidationError as e:
        db.session.rollback()
        return validation_failed(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create user")
        return {"error": "Failed to create user"}, 500

    return redirect_with("settings.users_index", "User created successfully.")


@settings_bp.get("/users/<int:user_id>")
@require_auth
@require_permission("users.view")
def users_show(user_id: int):
    user = db.session.get(User, user_id)
    if user is None:
        return not_found("User")
    return render_page("settings/users/show", user=auth_service.user_summary(user))


@settings_bp.get("/users/<int:user_id>/edit")
@require_auth
@require_permission("users.edit")
def users_edit(user_id: int):
    user = db.session.get(User, user_id)
    if user is None:
        return not_found("User")
    return render_page(
        "settings/users/edit",
        user=auth_service.user_summary(user),
        roles=role_service.all_roles(),
    )


@settings_bp.route("/users/<int:user_id>", methods=["PUT", "PATCH"])
@require_auth
@require_permission("users.edit")
def users_update(user_id: int):
    user = db.session.get(User, user_id)
    if user is None:
        return not_found("User")

    try:
        auth_service.update_user(user, form_payload())
    except ValidationError as e:
        db.session.rollback()
        return validation_failed(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update user %s", user_id)
        return {"error": "Failed to update user"}, 500

    return redirect_with("settings.users_index", "User updated successfully.")


@settings_bp.delete("/users/<int:user_id>")
@require_auth
@require_permission("users.delete")
def users_destroy(user_id: int):
    user = db.session.get(User, user_id)
    if user is None:
        return not_found("User")

    try:
        auth_service.delete_user(user, acting_user=g.current_user)
    except IntegrityViolation as e:
        current_app.logger.info("User %s not deleted: %s", user_id, e)
        return redirect_with("settings.users_index", str(e), "error")

    return redirect_with("settings.users_index", "User deleted successfully.")


# =============================================================================
# ROLES
# =============================================================================

@settings_bp.get("/roles")
@require_auth
@require_permission("roles.view")
def roles_index():
    page = request.args.get("page", 1, type=int)
    return render_page("settings/roles/index", roles=role_service.list_roles(page=page))


@settings_bp.get("/roles/create")
@require_auth
@require_permission("roles.create")
def roles_create():
    return render_page(
        "settings/roles/create",
        permissions=permission_service.permissions_grouped_by_module(),
        modules=role_service.available_modules(),
    )


@settings_bp.post("/roles")
@require_auth
@require_permission("roles.create")
def roles_store():
    try:
        role_service.create_role(form_payload())
    except ValidationError as e:
        db.session.rollback()
        return validation_failed(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create role")
        return {"error": "Failed to create role"}, 500

    return redirect_with("settings.roles_index", "Role created successfully.")


@settings_bp.get("/roles/<int:role_id>")
@require_auth
@require_permission("roles.view")
def roles_show(role_id: int):
    role = db.session.get(Role, role_id)
    if role is None:
        return not_found("Role")
    return render_page("settings/roles/show", role=role_service.role_detail(role))


@settings_bp.get("/roles/<int:role_id>/edit")
@require_auth
@require_permission("roles.edit")
def roles_edit(role_id: int):
    role = db.session.get(Role, role_id)
    if role is None:
        return not_found("Role")
    return render_page(
        "settings/roles/edit",
        role=role_service.role_detail(role),
        permissions=permission_service.permissions_grouped_by_module(),
        modules=role_service.available_modules(),
    )


@settings_bp.route("/roles/<int:role_id>", methods=["PUT", "PATCH"])
@require_auth
@require_permission("roles.edit")
def roles_update(role_id: int):
    role = db.session.get(Role, role_id)
    if role is None:
        return not_found("Role")

    try:
        role_service.update_role(role, form_payload())
    except ValidationError as e:
        db.session.rollback()
        return validation_failed(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update role %s", role_id)
        return {"error": "Failed to update role"}, 500

    return redirect_with("settings.roles_index", "Role updated successfully.")


@settings_bp.delete("/roles/<int:role_id>")
@require_auth
@require_permission("roles.delete")
def roles_destroy(role_id: int):
    role = db.session.get(Role, role_id)
    if role is None:
        return not_found("Role")

    try:
        role_service.delete_role(role)
    except IntegrityViolation as e:
        current_app.logger.info("Role %s not deleted: %s", role_id, e)
        return redirect_with("settings.roles_index", str(e), "error")

    return redirect_with("settings.roles_index", "Role deleted successfully.")


# =============================================================================
# PERMISSIONS
# =============================================================================

@settings_bp.get("/permissions")
@require_auth
@require_permission("permissions.view")
def permissions_index():
    page = request.args.get("page", 1, type=int)
    return render_page(
        "settings/permissions/index",
        permissions=permission_service.list_permissions(page=page),
    )


@settings_bp.get("/permissions/create")
@require_auth
@require_permission("permissions.create")
def permissions_create():
    return render_page("settings/permissions/create", modules=role_service.available_modules())


@settings_bp.post("/permissions")
@require_auth
@require_permission("permissions.create")
def permissions_store():
    try:
        permission_service.create_permission(form_payload())
    except ValidationError as e:
        db.session.rollback()
        return validation_failed(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create permission")
        return {"error": "Failed to create permission"}, 500

    return redirect_with("settings.permissions_index", "Permission created successfully.")


@settings_bp.get("/permissions/<int:permission_id>")
@require_auth
@require_permission("permissions.view")
def permissions_show(permission_id: int):
    permission = db.session.get(Permission, permission_id)
    if permission is None:
        return not_found("Permission")

    data = permission.to_dict()
    data["roles"] = [{"id": rp.role.id, "name": rp.role.name} for rp in permission.role_permissions if rp.role]
    return render_page("settings/permissions/show", permission=data)


@settings_bp.get("/permissions/<int:permission_id>/edit")
@require_auth
@require_permission("permissions.edit")
def permissions_edit(permission_id: int):
    permission = db.session.get(Permission, permission_id)
    if permission is None:
        return not_found("Permission")
    return render_page(
        "settings/permissions/edit",
        permission=permission.to_dict(),
        modules=role_service.available_modules(),
    )


@settings_bp.route("/permissions/<int:permission_id>", methods=["PUT", "PATCH"])
@require_auth
@require_permission("permissions.edit")
def permissions_update(permission_id: int):
    permission = db.session.get(Permission, permission_id)
    if permission is None:
        return not_found("Permission")

    try:
        permission_service.update_permission(
            permission,
            form_payload(),
            partial=request.method == "PATCH",
        )
    except ValidationError as e:
        db.session.rollback()
        return validation_failed(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update permission %s", permission_id)
        return {"error": "Failed to update permission"}, 500

    return redirect_with("settings.permissions_index", "Permission updated successfully.")


@settings_bp.delete("/permissions/<int:permission_id>")
@require_auth
@require_permission("permissions.delete")
def permissions_destroy(permission_id: int):
    permission = db.session.get(Permission, permission_id)
    if permission is None:
        return not_found("Permission")

    try:
        permission_service.delete_permission(permission)
    except IntegrityViolation as e:
        current_app.logger.info("Permission %s not deleted: %s", permission_id, e)
        return redirect_with("settings.permissions_index", str(e), "error")

    return redirect_with("settings.permissions_index", "Permission deleted successfully.")
