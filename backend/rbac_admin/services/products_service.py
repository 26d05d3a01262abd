# Overview: Service-layer operations for products; validation, CRUD and filtered listing.

from __future__ import annotations

from ..extensions import db
from ..models import Category, Product
from ..validation import (
    ValidationError,
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
)
from .pagination import paginate_query


PRODUCTS_PER_PAGE = 10

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "price", "stock", "category_id"},
    required_on_create={"name", "price", "stock"},
)


def _ensure_category_exists(category_id: int | None) -> None:
    if category_id is not None and db.session.get(Category, category_id) is None:
        raise ValidationError("The selected category is invalid.", field="category_id")


def _validated_patch(data: dict, partial: bool) -> dict:
    errors: dict[str, str] = {}
    patch: dict = {}

    try:
        patch = validate_payload(model=Product, payload=data, policy=PRODUCT_POLICY, partial=partial)
    except ValidationError as e:
        errors.update(e.errors)

    try:
        enforce_rules_product(patch)
    except ValidationError as e:
        errors.update(e.errors)

    if "category_id" not in errors:
        try:
            _ensure_category_exists(patch.get("category_id"))
        except ValidationError as e:
            errors.update(e.errors)

    if errors:
        raise ValidationError(errors=errors)
    return patch


def create_product(data: dict) -> Product:
    """Create a product from a submitted form."""
    patch = _validated_patch(data, partial=False)

    product = Product(
        name=patch["name"],
        description=patch.get("description"),
        price=patch["price"],
        stock=patch["stock"],
        category_id=patch.get("category_id"),
    )
    db.session.add(product)
    db.session.commit()
    return product


def update_product(product: Product, data: dict, partial: bool = False) -> Product:
    """
    Update a product. Full submissions replace every field; description and
    category left out are cleared.
    """
    patch = _validated_patch(data, partial=partial)

    if not partial:
        patch.setdefault("description", None)
        patch.setdefault("category_id", None)

    for key, value in patch.items():
        setattr(product, key, value)

    db.session.commit()
    return product


def delete_product(product: Product) -> None:
    db.session.delete(product)
    db.session.commit()


def list_products(
    page: int | None = None,
    per_page: int = PRODUCTS_PER_PAGE,
    category_id: int | None = None,
) -> dict:
    """
    Product listing, newest first, with optional category filter.

    Each item carries its category summary.
    """
    query = db.session.query(Product)
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    query = query.order_by(Product.created_at.desc(), Product.id.desc())

    return paginate_query(query, page=page, per_page=per_page, serializer=Product.to_dict)


def category_choices() -> list[dict]:
    """Categories for product forms and the listing filter, by name."""
    categories = db.session.query(Category).order_by(Category.name.asc()).all()
    return [c.to_summary() for c in categories]
