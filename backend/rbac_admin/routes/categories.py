# Overview: Flask routes for category pages; parses input and returns page payloads or redirects.

"""
Category management routes.

SECURITY: All routes require an authenticated, verified user.
- index/show require categories.view
- create/store require categories.create
- edit/update require categories.edit
- destroy requires categories.delete
"""
from flask import Blueprint, request, current_app

from ..extensions import db
from ..models import Category
from ..services import category_service
from ..validation import ValidationError, IntegrityViolation
from ..decorators import require_auth, require_verified, require_permission
from ..pages import render_page, redirect_with, validation_failed, not_found, form_payload


categories_bp = Blueprint("categories", __name__, url_prefix="/categories")


@categories_bp.get("")
@require_auth
@require_verified
@require_permission("categories.view")
def index():
    page = request.args.get("page", 1, type=int)
    return render_page(
        "categories/index",
        categories=category_service.list_categories(page=page),
    )


@categories_bp.get("/tree")
@require_auth
@require_verified
@require_permission("categories.view")
def tree():
    return render_page("categories/tree", tree=category_service.category_tree())


@categories_bp.get("/create")
@require_auth
@require_verified
@require_permission("categories.create")
def create():
    return render_page("categories/create", categories=category_service.parent_options())


@categories_bp.post("")
@require_auth
@require_verified
@require_permission("categories.create")
def store():
    try:
        category_service.create_category(form_payload())
    except ValidationError as e:
        return validation_failed(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create category")
        return {"error": "Failed to create category"}, 500

    return redirect_with("categories.index", "Category created successfully.")


@categories_bp.get("/<int:category_id>")
@require_auth
@require_verified
@require_permission("categories.view")
def show(category_id: int):
    category = db.session.get(Category, category_id)
    if category is None:
        return not_found("Category")
    return render_page("categories/show", category=category.to_dict(include_relations=True))


@categories_bp.get("/<int:category_id>/edit")
@require_auth
@require_verified
@require_permission("categories.edit")
def edit(category_id: int):
    category = db.session.get(Category, category_id)
    if category is None:
        return not_found("Category")
    return render_page(
        "categories/edit",
        category=category.to_dict(include_relations=True),
        categories=category_service.parent_options(category),
    )


@categories_bp.route("/<int:category_id>", methods=["PUT", "PATCH"])
@require_auth
@require_verified
@require_permission("categories.edit")
def update(category_id: int):
    category = db.session.get(Category, category_id)
    if category is None:
        return not_found("Category")

    try:
        category_service.update_category(
            category,
            form_payload(),
            partial=request.method == "PATCH",
        )
    except ValidationError as e:
        db.session.rollback()
        return validation_failed(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update category %s", category_id)
        return {"error": "Failed to update category"}, 500

    return redirect_with("categories.index", "Category updated successfully.")


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_verified
@require_permission("categories.delete")
def destroy(category_id: int):
    category = db.session.get(Category, category_id)
    if category is None:
        return not_found("Category")

    try:
        category_service.delete_category(category)
    except IntegrityViolation as e:
        current_app.logger.info("Category %s not deleted: %s", category_id, e)
        return redirect_with("categories.index", str(e), "error")

    return redirect_with("categories.index", "Category deleted successfully.")
