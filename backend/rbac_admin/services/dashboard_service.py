# Overview: Service-layer operations for the dashboard; catalog and account totals.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Category, Product, Role, User
from . import permission_service


def get_metrics() -> dict:
    """Headline counts shown on the dashboard."""
    total_stock = db.session.query(func.coalesce(func.sum(Product.stock), 0)).scalar()

    return {
        "totalUsers": db.session.query(func.count(User.id)).scalar(),
        "totalRoles": db.session.query(func.count(Role.id)).scalar(),
        "totalCategories": db.session.query(func.count(Category.id)).scalar(),
        "activeCategories": db.session.query(func.count(Category.id))
        .filter(Category.is_active.is_(True))
        .scalar(),
        "totalProducts": db.session.query(func.count(Product.id)).scalar(),
        "totalStock": int(total_stock or 0),
        "outOfStock": db.session.query(func.count(Product.id)).filter(Product.stock == 0).scalar(),
    }


def dashboard_props(user: User) -> dict:
    return {
        "metrics": get_metrics(),
        "moduleOrder": permission_service.get_module_order(user),
    }
