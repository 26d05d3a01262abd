# Overview: Flask routes for product pages; parses input and returns page payloads or redirects.

"""
Product management routes.

SECURITY: All routes require an authenticated, verified user.
- index/show require products.view
- create/store require products.create
- edit/update require products.edit
- destroy requires products.delete
"""
from flask import Blueprint, request, current_app

from ..extensions import db
from ..models import Product
from ..services import products_service
from ..validation import ValidationError
from ..decorators import require_auth, require_verified, require_permission
from ..pages import render_page, redirect_with, validation_failed, not_found, form_payload


products_bp = Blueprint("products", __name__, url_prefix="/products")


@products_bp.get("")
@require_auth
@require_verified
@require_permission("products.view")
def index():
    """
    Query params:
    - page: int (optional) - page number (1-indexed)
    - category_id: int (optional) - only products in this category
    """
    page = request.args.get("page", 1, type=int)
    category_id = request.args.get("category_id", type=int)

    return render_page(
        "products/index",
        products=products_service.list_products(page=page, category_id=category_id),
        categories=products_service.category_choices(),
        filters={"category_id": category_id},
    )


@products_bp.get("/create")
@require_auth
@require_verified
@require_permission("products.create")
def create():
    return render_page("products/create", categories=products_service.category_choices())


@products_bp.post("")
@require_auth
@require_verified
@require_permission("products.create")
def store():
    try:
        products_service.create_product(form_payload())
    except ValidationError as e:
        return validation_failed(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create product")
        return {"error": "Failed to create product"}, 500

    return redirect_with("products.index", "Product created successfully.")


@products_bp.get("/<int:product_id>")
@require_auth
@require_verified
@require_permission("products.view")
def show(product_id: int):
    product = db.session.get(Product, product_id)
    if product is None:
        return not_found("Product")
    return render_page("products/show", product=product.to_dict())


@products_bp.get("/<int:product_id>/edit")
@require_auth
@require_verified
@require_permission("products.edit")
def edit(product_id: int):
    product = db.session.get(Product, product_id)
    if product is None:
        return not_found("Product")
    return render_page(
        "products/edit",
        product=product.to_dict(),
        categories=products_service.category_choices(),
    )


@products_bp.route("/<int:product_id>", methods=["PUT", "PATCH"])
@require_auth
@require_verified
@require_permission("products.edit")
def update(product_id: int):
    product = db.session.get(Product, product_id)
    if product is None:
        return not_found("Product")

    try:
        products_service.update_product(product, form_payload(), partial=request.method == "PATCH")
    except ValidationError as e:
        db.session.rollback()
        return validation_failed(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update product %s", product_id)
        return {"error": "Failed to update product"}, 500

    return redirect_with("products.index", "Product updated successfully.")


@products_bp.delete("/<int:product_id>")
@require_auth
@require_verified
@require_permission("products.delete")
def destroy(product_id: int):
    product = db.session.get(Product, product_id)
    if product is None:
        return not_found("Product")

    products_service.delete_product(product)
    return redirect_with("products.index", "Product deleted successfully.")
