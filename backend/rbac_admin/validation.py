from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeMeta

from .extensions import db


# Numeric(10, 2) upper bound
MAX_PRICE = Decimal("99999999.99")


class ValidationError(ValueError):
    """
    Form-level input problem.

    Carries per-field messages in `errors` so the boundary can attach them to
    the offending inputs. Recoverable: the user fixes the form and resubmits.
    """
    default_field: str | None = None

    def __init__(self, message: str | None = None, field: str | None = None, errors: dict | None = None):
        field = field or self.default_field
        if errors is None:
            errors = {field: message} if field else {}
        if message is None:
            message = next(iter(errors.values()), "The given data was invalid.")
        super().__init__(message)
        self.field = field
        self.errors = errors


class UniqueConstraintViolation(ValidationError):
    """A name, slug, email or permission name is already taken."""

    def __init__(self, field: str, message: str | None = None):
        super().__init__(message or f"The {field} has already been taken.", field=field)


@contextmanager
def unique_fields(*fields: str):
    """
    Wrap a write block. A unique index failure on one of `fields` (a write that
    raced past the pre-checks) is rolled back and becomes
    UniqueConstraintViolation for that field.
    """
    try:
        yield
    except IntegrityError as e:
        db.session.rollback()
        detail = str(e.orig)
        for name in fields:
            if f".{name}" in detail or f"({name})" in detail or f"_{name}\"" in detail:
                raise UniqueConstraintViolation(name) from e
        raise


class SelfParentError(ValidationError):
    default_field = "parent_id"

    def __init__(self, message: str = "A category cannot be its own parent."):
        super().__init__(message)


class CyclicParentError(ValidationError):
    default_field = "parent_id"

    def __init__(self, message: str = "A category cannot have its descendant as a parent."):
        super().__init__(message)


class IntegrityViolation(ValueError):
    """
    Delete blocked by dependent rows (children, users, role assignments).

    Not tied to an input field: surfaced as a flash message on redirect.
    """


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: model columns clients are allowed to set (security boundary)
    - required_on_create: fields required for a full (non-partial) submission
    - extra_fields: non-column form inputs accepted and passed through untouched
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    extra_fields: set[str] = field(default_factory=set)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _label(key: str) -> str:
    return key.replace("_id", "").replace("_", " ")


def _coerce_value(col, value: Any):
    coltype = col.type
    label = _label(col.key)

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                return None
            if 'e' in stripped.lower() or '.' in stripped:
                raise ValidationError(f"The {label} must be an integer.", field=col.key)
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"The {label} must be an integer.", field=col.key)
        raise ValidationError(f"The {label} must be an integer.", field=col.key)

    # Decimals (prices)
    if isinstance(coltype, Numeric):
        if isinstance(value, bool):
            raise ValidationError(f"The {label} must be a number.", field=col.key)
        if isinstance(value, str) and not value.strip():
            return None
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"The {label} must be a number.", field=col.key)
        if not number.is_finite():
            raise ValidationError(f"The {label} must be a number.", field=col.key)
        return number

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if value in (0, 1):
            return bool(value)
        if isinstance(value, str) and value.strip().lower() in {"1", "0", "true", "false"}:
            return value.strip().lower() in {"1", "true"}
        raise ValidationError(f"The {label} field must be true or false.", field=col.key)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        text = str(value).strip()
        if not text:
            return None
        max_len = getattr(coltype, "length", None)
        if max_len and len(text) > max_len:
            raise ValidationError(
                f"The {label} may not be greater than {max_len} characters.", field=col.key
            )
        return text

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming form data against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields / extra_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only accepted fields.

    Every failing field is reported at once; raises ValidationError whose
    `errors` maps field -> message.

    partial=False: full-form semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid form payload")

    cols = _columns_by_key(model)
    errors: dict[str, str] = {}
    patch: dict = {}

    for k in payload.keys():
        if k in policy.extra_fields:
            continue
        if k not in policy.writable_fields or k not in cols:
            errors[k] = f"Field not allowed: {k}"

    for k, raw in payload.items():
        if k in errors:
            continue
        if k in policy.extra_fields:
            patch[k] = raw
            continue

        col = cols[k]
        try:
            value = _coerce_value(col, raw)
        except ValidationError as e:
            errors[k] = str(e)
            continue

        if value is None and not col.nullable:
            if not (partial and k not in policy.required_on_create and col.default is not None):
                errors[k] = f"The {_label(k)} field is required."
                continue

        patch[k] = value

    if not partial:
        for k in sorted(policy.required_on_create):
            if k not in errors and patch.get(k) in (None, ""):
                errors[k] = f"The {_label(k)} field is required."

    if errors:
        raise ValidationError(errors=errors)

    return patch


def enforce_rules_product(patch: dict) -> None:
    """Business-rule checks for products beyond column metadata."""
    errors = {}

    price = patch.get("price")
    if price is not None:
        if price < 0:
            errors["price"] = "The price must be at least 0."
        elif price > MAX_PRICE:
            errors["price"] = f"The price may not be greater than {MAX_PRICE}."

    stock = patch.get("stock")
    if stock is not None and stock < 0:
        errors["stock"] = "The stock must be at least 0."

    if errors:
        raise ValidationError(errors=errors)
