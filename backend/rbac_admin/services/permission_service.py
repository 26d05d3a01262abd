# Overview: Service-layer operations for permissions; evaluation, seeding and permission administration.

"""
Permission Evaluation and Administration

The evaluator functions answer "may this user do X?" from the user's already
loaded roles. The principal is always passed in explicitly; nothing here reads
request state.

DESIGN PRINCIPLES:
- Fail closed: no user, no roles or no matching grant means False
- Exact match: "categories.edit" never implies "categories.view"
- Evaluator functions never raise and never log; callers decide what a denial means
"""

from __future__ import annotations

from typing import Iterable

from ..extensions import db
from ..models import Permission, Role, RolePermission, RoleModuleOrder, User
from ..permissions import (
    PERMISSION_DEFINITIONS,
    SUPER_ADMIN_ROLE,
    SUPER_ADMIN_DESCRIPTION,
    default_module_order,
    is_valid_permission_name,
)
from ..validation import (
    ValidationError,
    UniqueConstraintViolation,
    IntegrityViolation,
    ModelValidationPolicy,
    unique_fields,
    validate_payload,
)
from .pagination import paginate_query


PERMISSIONS_PER_PAGE = 15

PERMISSION_POLICY = ModelValidationPolicy(
    writable_fields={"name", "module", "action", "display_name", "description"},
    required_on_create={"name", "module", "action", "display_name"},
)


# =============================================================================
# EVALUATION
# =============================================================================

def get_all_permissions(user: User | None) -> set[str]:
    """
    Get all permission names for a user.

    Returns the deduplicated union of permission names across all of the
    user's roles (e.g., {"categories.view", "products.edit"}).
    """
    if user is None:
        return set()

    names: set[str] = set()
    for role in user.roles:
        for permission in role.permissions:
            names.add(permission.name)
    return names


def has_permission(user: User | None, name: str) -> bool:
    """Check if any of the user's roles grants exactly `name`."""
    if not name:
        return False
    return name in get_all_permissions(user)


def has_any_permission(user: User | None, names: Iterable[str]) -> bool:
    """True when at least one of `names` is granted. An empty list is never satisfied."""
    granted = get_all_permissions(user)
    return any(name in granted for name in (names or ()))


def has_all_permissions(user: User | None, names: Iterable[str]) -> bool:
    """True when every one of `names` is granted. An empty list is vacuously satisfied."""
    granted = get_all_permissions(user)
    return all(name in granted for name in (names or ()))


def has_role(user: User | None, role_name: str) -> bool:
    if user is None:
        return False
    return any(role.name == role_name for role in user.roles)


def get_module_order(user: User | None) -> list[dict]:
    """
    Navigation module order for a user.

    Taken from the user's first (earliest assigned) role only, sorted
    ascending by order. Users without roles get an empty list.
    """
    if user is None:
        return []

    roles = user.roles
    if not roles:
        return []

    first_role = roles[0]
    return [
        row.to_dict()
        for row in sorted(first_role.module_orders, key=lambda r: (r.order, r.module))
    ]


# =============================================================================
# SEEDING
# =============================================================================

def initialize_permissions() -> int:
    """
    Initialize all permission definitions in database.

    Creates Permission records for every name in PERMISSION_DEFINITIONS and
    refreshes labels on existing ones. Idempotent: safe to run multiple times.

    Returns the number of newly created permissions.
    """
    created_count = 0

    for name, module, action, display_name, description in PERMISSION_DEFINITIONS:
        existing = db.session.query(Permission).filter_by(name=name).first()

        if existing:
            existing.module = module
            existing.action = action
            existing.display_name = display_name
            existing.description = description
            continue

        db.session.add(Permission(
            name=name,
            module=module,
            action=action,
            display_name=display_name,
            description=description,
        ))
        created_count += 1

    db.session.commit()
    return created_count


def ensure_super_admin_role() -> Role:
    """
    Create (or refresh) the Super Admin role holding every permission.

    A default module order is written only when the role has none yet, so
    an administrator's custom ordering survives re-seeding.
    """
    role = db.session.query(Role).filter_by(name=SUPER_ADMIN_ROLE).first()
    if not role:
        role = Role(name=SUPER_ADMIN_ROLE, description=SUPER_ADMIN_DESCRIPTION)
        db.session.add(role)
        db.session.flush()

    all_ids = [pid for (pid,) in db.session.query(Permission.id).all()]
    sync_role_permissions(role, all_ids)

    if not role.module_orders:
        for entry in default_module_order():
            role.module_orders.append(RoleModuleOrder(module=entry["module"], order=entry["order"]))

    db.session.commit()
    return role


# =============================================================================
# ROLE <-> PERMISSION LINKS
# =============================================================================

def sync_role_permissions(role: Role, permission_ids: Iterable[int]) -> None:
    """
    Replace the role's permission set with exactly `permission_ids`.

    Links outside the new set are removed, missing ones are added, existing
    ones are left untouched. Does not commit.
    """
    wanted = {int(pid) for pid in permission_ids}
    current = {rp.permission_id: rp for rp in role.role_permissions}

    for permission_id, link in current.items():
        if permission_id not in wanted:
            role.role_permissions.remove(link)

    for permission_id in sorted(wanted - set(current)):
        role.role_permissions.append(RolePermission(permission_id=permission_id))

    db.session.flush()


def grant_permission_to_role(role_name: str, permission_name: str) -> RolePermission:
    """Grant a permission to a role."""
    role = db.session.query(Role).filter_by(name=role_name).first()
    if not role:
        raise ValueError(f"Role '{role_name}' not found")

    permission = db.session.query(Permission).filter_by(name=permission_name).first()
    if not permission:
        raise ValueError(f"Permission '{permission_name}' not found")

    existing = db.session.query(RolePermission).filter_by(
        role_id=role.id,
        permission_id=permission.id
    ).first()

    if existing:
        return existing  # Already granted

    role_permission = RolePermission(role_id=role.id, permission_id=permission.id)
    db.session.add(role_permission)
    db.session.commit()

    return role_permission


def revoke_permission_from_role(role_name: str, permission_name: str) -> bool:
    """Revoke a permission from a role."""
    role = db.session.query(Role).filter_by(name=role_name).first()
    if not role:
        raise ValueError(f"Role '{role_name}' not found")

    permission = db.session.query(Permission).filter_by(name=permission_name).first()
    if not permission:
        raise ValueError(f"Permission '{permission_name}' not found")

    role_permission = db.session.query(RolePermission).filter_by(
        role_id=role.id,
        permission_id=permission.id
    ).first()

    if role_permission:
        db.session.delete(role_permission)
        db.session.commit()
        return True

    return False  # Wasn't granted in the first place


# =============================================================================
# PERMISSION ADMINISTRATION
# =============================================================================

def list_permissions(page: int | None = None, per_page: int = PERMISSIONS_PER_PAGE) -> dict:
    query = db.session.query(Permission).order_by(Permission.module.asc(), Permission.action.asc())
    return paginate_query(query, page=page, per_page=per_page, serializer=Permission.to_dict)


def permissions_grouped_by_module() -> dict[str, list[dict]]:
    """Permissions keyed by module (modules and actions in ascending order), for role forms."""
    grouped: dict[str, list[dict]] = {}
    permissions = (
        db.session.query(Permission)
        .order_by(Permission.module.asc(), Permission.action.asc())
        .all()
    )
    for permission in permissions:
        grouped.setdefault(permission.module, []).append(permission.to_dict())
    return grouped


def _check_permission_name(name: str, exclude_id: int | None = None) -> None:
    if not is_valid_permission_name(name):
        raise ValidationError(
            "The name must follow the module.action format (e.g. categories.view).",
            field="name",
        )

    query = db.session.query(Permission).filter(Permission.name == name)
    if exclude_id is not None:
        query = query.filter(Permission.id != exclude_id)
    if db.session.query(query.exists()).scalar():
        raise UniqueConstraintViolation("name")


def create_permission(data: dict) -> Permission:
    patch = validate_payload(model=Permission, payload=data, policy=PERMISSION_POLICY, partial=False)
    _check_permission_name(patch["name"])

    permission = Permission(**patch)
    with unique_fields("name"):
        db.session.add(permission)
        db.session.commit()
    return permission


def update_permission(permission: Permission, data: dict, partial: bool = False) -> Permission:
    patch = validate_payload(model=Permission, payload=data, policy=PERMISSION_POLICY, partial=partial)
    if "name" in patch:
        _check_permission_name(patch["name"], exclude_id=permission.id)

    for key, value in patch.items():
        setattr(permission, key, value)

    with unique_fields("name"):
        db.session.commit()
    return permission


def delete_permission(permission: Permission) -> None:
    """Delete a permission. Blocked while any role still references it."""
    if permission.role_permissions:
        raise IntegrityViolation("Cannot delete permission that is assigned to roles.")

    db.session.delete(permission)
    db.session.commit()
