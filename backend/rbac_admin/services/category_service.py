# Overview: Service-layer operations for categories; hierarchy guard, slug rules and CRUD.

"""
Category Hierarchy

The category parent graph must stay a forest: a category may not be its own
parent and may not be moved under one of its descendants. Parent checks run
over an in-memory adjacency map (CategoryTree) loaded once per mutation, so
walking a deep tree costs one query instead of one per level.
"""

from __future__ import annotations

from typing import Iterable

from slugify import slugify

from ..extensions import db
from ..models import Category, Product
from ..validation import (
    ValidationError,
    UniqueConstraintViolation,
    SelfParentError,
    CyclicParentError,
    IntegrityViolation,
    ModelValidationPolicy,
    unique_fields,
    validate_payload,
)
from .pagination import paginate_query


CATEGORIES_PER_PAGE = 10

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "slug", "description", "image", "is_active", "parent_id"},
    required_on_create={"name"},
)


class CategoryTree:
    """Adjacency map of the category parent graph, keyed by id."""

    def __init__(self, parent_by_id: dict[int, int | None]):
        self.parent_by_id = dict(parent_by_id)
        self.children_by_id: dict[int | None, list[int]] = {}
        for category_id, parent_id in self.parent_by_id.items():
            self.children_by_id.setdefault(parent_id, []).append(category_id)

    @classmethod
    def load(cls) -> CategoryTree:
        """Snapshot every (id, parent_id) pair in one query."""
        rows = db.session.query(Category.id, Category.parent_id).all()
        return cls({category_id: parent_id for category_id, parent_id in rows})

    @classmethod
    def from_categories(cls, categories: Iterable[Category]) -> CategoryTree:
        return cls({c.id: c.parent_id for c in categories if c.id is not None})

    def __contains__(self, category_id) -> bool:
        return category_id in self.parent_by_id

    def children_of(self, category_id: int | None) -> list[int]:
        return list(self.children_by_id.get(category_id, []))

    def descendants_of(self, category_id: int | None) -> set[int]:
        """
        Every id reachable by repeatedly following children from `category_id`.

        The start id is never part of the result, even if stored data already
        contains a cycle; each id is expanded at most once.
        """
        if category_id is None:
            return set()

        found: set[int] = set()
        stack = self.children_of(category_id)
        while stack:
            current = stack.pop()
            if current == category_id or current in found:
                continue
            found.add(current)
            stack.extend(self.children_of(current))
        return found


# =============================================================================
# HIERARCHY GUARD
# =============================================================================

def descendant_ids(category: Category, tree: CategoryTree | None = None) -> set[int]:
    if tree is None:
        tree = CategoryTree.load()
    return tree.descendants_of(category.id)


def assert_valid_parent(
    category: Category,
    proposed_parent_id: int | None,
    tree: CategoryTree | None = None,
) -> None:
    """
    Reject a parent assignment that would break the forest.

    Raises SelfParentError or CyclicParentError. A None parent (promote to
    root) is always accepted. Existence of the parent is checked by the caller.
    """
    if proposed_parent_id is None:
        return

    if category.id is not None and proposed_parent_id == category.id:
        raise SelfParentError()

    if proposed_parent_id in descendant_ids(category, tree):
        raise CyclicParentError()


def selectable_parents(all_categories: list[Category], category: Category) -> list[Category]:
    """Categories valid as a new parent for `category`, in input order."""
    tree = CategoryTree.from_categories(all_categories)
    excluded = descendant_ids(category, tree)
    excluded.add(category.id)
    return [c for c in all_categories if c.id not in excluded]


def can_delete(category: Category) -> bool:
    """Only categories without direct children may be deleted."""
    return len(category.children) == 0


def derive_slug(name: str | None) -> str:
    """URL-safe slug: lowercase ascii words joined by single hyphens."""
    return slugify(name or "", max_length=255)


def resolve_slug(
    *,
    name: str,
    slug: str | None,
    current_name: str | None = None,
    current_slug: str | None = None,
) -> str:
    """
    Slug a category ends up with after a create or update.

    `slug` is the submitted value (None when omitted or blank). An omitted
    slug on update means "keep the current one". The slug is derived from the
    name when the result would be empty, or when the name changed and the slug
    was not changed in the same submission.
    """
    candidate = slug if slug is not None else current_slug

    if not candidate:
        return derive_slug(name)

    name_changed = current_name is not None and name != current_name
    slug_changed = candidate != current_slug
    if name_changed and not slug_changed:
        return derive_slug(name)

    return candidate


# =============================================================================
# CRUD
# =============================================================================

def _ensure_unique(column, value, field: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Category.id).filter(column == value)
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first() is not None:
        raise UniqueConstraintViolation(field)


def _ensure_parent_exists(parent_id: int | None, tree: CategoryTree) -> None:
    if parent_id is not None and parent_id not in tree:
        raise ValidationError("The selected parent is invalid.", field="parent_id")


def _final_slug(name: str, slug: str, exclude_id: int | None = None) -> str:
    if not slug:
        raise ValidationError("A slug could not be generated from the name.", field="slug")
    _ensure_unique(Category.slug, slug, "slug", exclude_id=exclude_id)
    return slug


def create_category(data: dict) -> Category:
    patch = validate_payload(model=Category, payload=data, policy=CATEGORY_POLICY, partial=False)

    _ensure_unique(Category.name, patch["name"], "name")

    tree = CategoryTree.load()
    _ensure_parent_exists(patch.get("parent_id"), tree)

    slug = _final_slug(patch["name"], resolve_slug(name=patch["name"], slug=patch.get("slug")))

    category = Category(
        name=patch["name"],
        slug=slug,
        description=patch.get("description"),
        image=patch.get("image"),
        is_active=True if patch.get("is_active") is None else patch["is_active"],
        parent_id=patch.get("parent_id"),
    )
    with unique_fields("name", "slug"):
        db.session.add(category)
        db.session.commit()
    return category


def update_category(category: Category, data: dict, partial: bool = False) -> Category:
    """
    Update a category from a submitted form.

    Full submissions (partial=False) replace description, image and parent;
    fields left out are cleared. `is_active` is kept unless provided.
    Partial submissions only touch the keys present.
    """
    patch = validate_payload(model=Category, payload=data, policy=CATEGORY_POLICY, partial=partial)

    name = patch.get("name") or category.name
    if name != category.name:
        _ensure_unique(Category.name, name, "name", exclude_id=category.id)

    if partial and "parent_id" not in patch:
        parent_id = category.parent_id
    else:
        parent_id = patch.get("parent_id")

    tree = CategoryTree.load()
    _ensure_parent_exists(parent_id, tree)
    assert_valid_parent(category, parent_id, tree)

    slug = resolve_slug(
        name=name,
        slug=patch.get("slug"),
        current_name=category.name,
        current_slug=category.slug,
    )
    slug = _final_slug(name, slug, exclude_id=category.id)

    category.name = name
    category.slug = slug
    category.parent_id = parent_id
    for key in ("description", "image"):
        if not partial or key in patch:
            setattr(category, key, patch.get(key))
    if patch.get("is_active") is not None:
        category.is_active = patch["is_active"]

    with unique_fields("name", "slug"):
        db.session.commit()
    return category


def delete_category(category: Category) -> None:
    """
    Delete a category without children.

    Products in the category are kept and become uncategorised.
    """
    if not can_delete(category):
        raise IntegrityViolation(
            "Cannot delete category with subcategories. "
            "Please delete or reassign subcategories first."
        )

    db.session.query(Product).filter(Product.category_id == category.id).update(
        {"category_id": None}, synchronize_session="fetch"
    )
    db.session.delete(category)
    db.session.commit()


# =============================================================================
# QUERIES
# =============================================================================

def list_categories(page: int | None = None, per_page: int = CATEGORIES_PER_PAGE) -> dict:
    """Newest first, with parent and child summaries."""
    query = db.session.query(Category).order_by(Category.created_at.desc(), Category.id.desc())
    return paginate_query(
        query,
        page=page,
        per_page=per_page,
        serializer=lambda c: c.to_dict(include_relations=True),
    )


def categories_by_name() -> list[Category]:
    return db.session.query(Category).order_by(Category.name.asc(), Category.id.asc()).all()


def parent_options(category: Category | None = None) -> list[dict]:
    """Parent choices for the create form (all) or the edit form (minus self and descendants)."""
    categories = categories_by_name()
    if category is not None:
        categories = selectable_parents(categories, category)
    return [c.to_summary() for c in categories]


def category_tree() -> list[dict]:
    """
    Nested category forest for display, siblings ordered by name.

    Nodes caught in a stored cycle are unreachable from any root and are left out.
    """
    categories = categories_by_name()
    by_id = {c.id: c for c in categories}
    tree = CategoryTree.from_categories(categories)
    seen: set[int] = set()

    def build(category_id: int) -> dict:
        seen.add(category_id)
        node = by_id[category_id].to_summary()
        node["is_active"] = by_id[category_id].is_active
        node["children"] = [
            build(child_id)
            for child_id in tree.children_of(category_id)
            if child_id not in seen
        ]
        return node

    return [build(c.id) for c in categories if c.parent_id is None]
