# Overview: Service-layer operations for roles; permission sets and navigation module order.

from __future__ import annotations

from ..extensions import db
from ..models import Permission, Role, RoleModuleOrder
from ..permissions import AVAILABLE_MODULES, get_module_names
from ..validation import (
    ValidationError,
    UniqueConstraintViolation,
    IntegrityViolation,
    ModelValidationPolicy,
    unique_fields,
    validate_payload,
)
from .permission_service import sync_role_permissions
from .pagination import paginate_query


ROLES_PER_PAGE = 10

ROLE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
    extra_fields={"permissions", "module_order", "moduleOrder"},
)


def available_modules() -> list[dict]:
    return [dict(module) for module in AVAILABLE_MODULES]


def _validate_permission_ids(raw) -> list[int]:
    if not raw or not isinstance(raw, (list, tuple)):
        raise ValidationError("The permissions field is required.", field="permissions")

    try:
        permission_ids = [int(pid) for pid in raw]
    except (TypeError, ValueError):
        raise ValidationError("The selected permissions are invalid.", field="permissions")

    found = {
        pid for (pid,) in db.session.query(Permission.id).filter(Permission.id.in_(permission_ids)).all()
    }
    if set(permission_ids) - found:
        raise ValidationError("The selected permissions are invalid.", field="permissions")
    return permission_ids


def _validate_module_order(raw) -> list[dict]:
    """
    Each entry needs a known module name and an integer order >= 1.
    A module may appear only once.
    """
    if not raw or not isinstance(raw, (list, tuple)):
        raise ValidationError("The module order field is required.", field="module_order")

    known = set(get_module_names())
    entries: list[dict] = []
    seen: set[str] = set()

    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValidationError(f"Module order entry {index} is invalid.", field="module_order")

        module = entry.get("module")
        if not isinstance(module, str) or not module.strip():
            raise ValidationError(f"Module order entry {index} needs a module.", field="module_order")
        module = module.strip()
        if module not in known:
            raise ValidationError(f"Unknown module: {module}.", field="module_order")
        if module in seen:
            raise ValidationError(f"Module {module} is listed more than once.", field="module_order")
        seen.add(module)

        order = entry.get("order")
        if isinstance(order, bool):
            order = None
        elif isinstance(order, str) and order.strip().isdigit():
            order = int(order.strip())
        if not isinstance(order, int) or order < 1:
            raise ValidationError(
                f"The order for {module} must be an integer of at least 1.", field="module_order"
            )

        entries.append({"module": module, "order": order})

    return entries


def _validated_role_form(data: dict, role: Role | None = None) -> tuple[dict, list[int], list[dict]]:
    errors: dict[str, str] = {}
    patch: dict = {}
    permission_ids: list[int] = []
    module_order: list[dict] = []

    try:
        patch = validate_payload(model=Role, payload=data, policy=ROLE_POLICY, partial=False)
    except ValidationError as e:
        errors.update(e.errors)

    if "name" not in errors and patch.get("name"):
        query = db.session.query(Role.id).filter(Role.name == patch["name"])
        if role is not None:
            query = query.filter(Role.id != role.id)
        if query.first() is not None:
            errors["name"] = UniqueConstraintViolation("name").errors["name"]

    for key in ROLE_POLICY.extra_fields:
        patch.pop(key, None)

    try:
        permission_ids = _validate_permission_ids(data.get("permissions"))
    except ValidationError as e:
        errors.update(e.errors)

    raw_order = data.get("module_order")
    camel_order = data.get("moduleOrder")
    try:
        module_order = _validate_module_order(raw_order if raw_order is not None else camel_order)
    except ValidationError as e:
        errors.update(e.errors)

    if errors:
        raise ValidationError(errors=errors)

    return patch, permission_ids, module_order


def replace_module_order(role: Role, entries: list[dict]) -> None:
    """Delete every module order row of the role, then insert `entries`. Does not commit."""
    role.module_orders.clear()
    db.session.flush()

    for entry in entries:
        role.module_orders.append(RoleModuleOrder(module=entry["module"], order=entry["order"]))
    db.session.flush()


def create_role(data: dict) -> Role:
    patch, permission_ids, module_order = _validated_role_form(data)

    role = Role(name=patch["name"], description=patch.get("description"))
    with unique_fields("name"):
        db.session.add(role)
        db.session.flush()

        sync_role_permissions(role, permission_ids)
        replace_module_order(role, module_order)

        db.session.commit()
    return role


def update_role(role: Role, data: dict) -> Role:
    patch, permission_ids, module_order = _validated_role_form(data, role=role)

    role.name = patch["name"]
    role.description = patch.get("description")

    with unique_fields("name"):
        sync_role_permissions(role, permission_ids)
        replace_module_order(role, module_order)

        db.session.commit()
    return role


def delete_role(role: Role) -> None:
    """Delete a role. Blocked while any user holds it."""
    if role.user_roles:
        raise IntegrityViolation("Cannot delete role that is assigned to users.")

    db.session.delete(role)
    db.session.commit()


def role_summary(role: Role) -> dict:
    data = role.to_dict()
    data["users_count"] = len(role.user_roles)
    return data


def role_detail(role: Role) -> dict:
    data = role_summary(role)
    data["permissions"] = [p.to_dict() for p in role.permissions]
    data["permission_ids"] = sorted(p.id for p in role.permissions)
    data["module_order"] = [row.to_dict() for row in role.module_orders]
    data["users"] = [{"id": ur.user.id, "name": ur.user.name} for ur in role.user_roles if ur.user]
    return data


def list_roles(page: int | None = None, per_page: int = ROLES_PER_PAGE) -> dict:
    """Newest first, with the number of users holding each role."""
    query = db.session.query(Role).order_by(Role.created_at.desc(), Role.id.desc())
    return paginate_query(query, page=page, per_page=per_page, serializer=role_summary)


def all_roles() -> list[dict]:
    return [
        {"id": role.id, "name": role.name}
        for role in db.session.query(Role).order_by(Role.name.asc()).all()
    ]
