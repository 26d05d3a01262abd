# Overview: Service-layer operations for auth; password hashing, login and user administration.

"""
Authentication and User Administration Service

Every action must be attributable to a user. Passwords are hashed with bcrypt;
the cost factor comes from BCRYPT_ROUNDS so tests can lower it.

SECURITY NOTES:
- Passwords hashed with bcrypt
- Minimum 8 characters, confirmed on entry
- Session tokens managed separately (see session_service.py)
- Changing a user's password revokes that user's sessions
"""

from __future__ import annotations

from typing import Iterable

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User, Role, UserRole
from ..time_utils import utcnow
from ..validation import (
    ValidationError,
    UniqueConstraintViolation,
    IntegrityViolation,
    ModelValidationPolicy,
    unique_fields,
    validate_payload,
)
from . import session_service
from .pagination import paginate_query


USERS_PER_PAGE = 10
MIN_PASSWORD_LENGTH = 8

USER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email"},
    required_on_create={"name", "email"},
    extra_fields={"password", "password_confirmation", "roles"},
)


class PasswordValidationError(ValidationError):
    """Raised when a password is too short or not confirmed."""
    default_field = "password"


def validate_password(password: str | None, confirmation: str | None) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - Must match the confirmation field

    Raises PasswordValidationError if requirements not met.
    """
    if not password:
        raise PasswordValidationError("The password field is required.")

    if len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"The password must be at least {MIN_PASSWORD_LENGTH} characters."
        )

    if password != confirmation:
        raise PasswordValidationError("The password confirmation does not match.")


def hash_password(password: str) -> str:
    """Hash password using bcrypt with the configured cost factor."""
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() is timing-safe. Malformed hashes verify as False.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials valid, None otherwise.
    """
    if not email:
        return None

    user = db.session.query(User).filter(User.email == email.strip().lower()).first()
    if not user:
        return None

    if verify_password(password, user.password_hash):
        return user

    return None


# =============================================================================
# USER ADMINISTRATION
# =============================================================================

def _normalize_email(email: str) -> str:
    email = email.strip().lower()
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        raise ValidationError("The email must be a valid email address.", field="email")
    return email


def _validate_role_ids(raw) -> list[int]:
    if raw is None or raw == "":
        return []
    if not isinstance(raw, (list, tuple)):
        raise ValidationError("The roles must be a list.", field="roles")

    try:
        role_ids = [int(role_id) for role_id in raw]
    except (TypeError, ValueError):
        raise ValidationError("The selected roles are invalid.", field="roles")

    found = {rid for (rid,) in db.session.query(Role.id).filter(Role.id.in_(role_ids)).all()}
    if set(role_ids) - found:
        raise ValidationError("The selected roles are invalid.", field="roles")
    return role_ids


def _validated_user_form(data: dict, user: User | None = None) -> tuple[dict, list[int] | None, str | None]:
    """
    Validate the user form, collecting every field error.

    Returns (patch, role_ids or None when roles were not submitted, new password or None).
    """
    errors: dict[str, str] = {}
    patch: dict = {}

    try:
        patch = validate_payload(model=User, payload=data, policy=USER_POLICY, partial=False)
    except ValidationError as e:
        errors.update(e.errors)

    if "email" not in errors and patch.get("email"):
        try:
            patch["email"] = _normalize_email(patch["email"])
            query = db.session.query(User.id).filter(User.email == patch["email"])
            if user is not None:
                query = query.filter(User.id != user.id)
            if query.first() is not None:
                raise UniqueConstraintViolation("email")
        except ValidationError as e:
            errors.update(e.errors)

    for key in USER_POLICY.extra_fields:
        patch.pop(key, None)

    password = data.get("password")
    confirmation = data.get("password_confirmation")
    if user is None or password:
        try:
            validate_password(password, confirmation)
        except ValidationError as e:
            errors.update(e.errors)

    role_ids = None
    if "roles" in data:
        try:
            role_ids = _validate_role_ids(data["roles"])
        except ValidationError as e:
            errors.update(e.errors)

    if errors:
        raise ValidationError(errors=errors)

    return patch, role_ids, password or None


def sync_user_roles(user: User, role_ids: Iterable[int]) -> None:
    """
    Replace the user's role set with exactly `role_ids`.

    Surviving assignments keep their position, so the user's first role only
    changes when it is removed. New roles are appended in the given order.
    Does not commit.
    """
    wanted = []
    for role_id in role_ids:
        if int(role_id) not in wanted:
            wanted.append(int(role_id))

    for user_role in list(user.user_roles):
        if user_role.role_id not in wanted:
            user.user_roles.remove(user_role)

    current = {user_role.role_id for user_role in user.user_roles}
    for role_id in wanted:
        if role_id not in current:
            user.user_roles.append(UserRole(role_id=role_id))

    db.session.flush()


def create_user(data: dict) -> User:
    """
    Create a user from the admin form.

    Admin-created accounts are marked verified immediately. Raises
    ValidationError carrying every failing field.
    """
    patch, role_ids, password = _validated_user_form(data)

    user = User(
        name=patch["name"],
        email=patch["email"],
        password_hash=hash_password(password),
        email_verified_at=utcnow(),
    )
    with unique_fields("email"):
        db.session.add(user)
        db.session.flush()

        if role_ids:
            sync_user_roles(user, role_ids)

        db.session.commit()
    return user


def update_user(user: User, data: dict) -> User:
    """
    Update a user from the admin form.

    The password is kept unless a new one is submitted; a new password
    revokes the user's sessions. Roles are only replaced when submitted.
    """
    patch, role_ids, password = _validated_user_form(data, user=user)

    user.name = patch["name"]
    user.email = patch["email"]

    if password:
        user.password_hash = hash_password(password)

    with unique_fields("email"):
        if role_ids is not None:
            sync_user_roles(user, role_ids)

        db.session.commit()

    if password:
        session_service.revoke_all_user_sessions(user.id, reason="Password changed")

    return user


def delete_user(user: User, acting_user: User | None = None) -> None:
    """Delete a user account. Nobody can delete their own account."""
    if acting_user is not None and acting_user.id == user.id:
        raise IntegrityViolation("You cannot delete your own account.")

    db.session.delete(user)
    db.session.commit()


def assign_role(user_id: int, role_name: str) -> UserRole:
    """Assign role to user (appended after any existing roles)."""
    role = db.session.query(Role).filter_by(name=role_name).first()
    if not role:
        raise ValueError(f"Role {role_name} not found")

    existing = db.session.query(UserRole).filter_by(
        user_id=user_id,
        role_id=role.id
    ).first()

    if existing:
        return existing

    user_role = UserRole(user_id=user_id, role_id=role.id)

    db.session.add(user_role)
    db.session.commit()
    return user_role


def list_users(page: int | None = None, per_page: int = USERS_PER_PAGE) -> dict:
    query = db.session.query(User).order_by(User.created_at.desc(), User.id.desc())
    return paginate_query(query, page=page, per_page=per_page, serializer=user_summary)


def user_summary(user: User) -> dict:
    data = user.to_dict()
    data["roles"] = [{"id": role.id, "name": role.name} for role in user.roles]
    return data
