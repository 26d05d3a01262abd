# Overview: Page payloads and post/redirect/get helpers shared by the routes.

"""
Server-driven pages

GET routes answer with a page payload the client renders:

    {"component": "categories/index", "props": {...}, "auth": {...}, "flash": {...}}

Mutations follow post/redirect/get: flash a message and redirect to the
area's index. Validation failures answer 422 with per-field errors so the
form can show them next to the inputs.
"""

from __future__ import annotations

from flask import jsonify, flash, get_flashed_messages, redirect, url_for, request, g

from .services import permission_service
from .validation import ValidationError


def _auth_props() -> dict:
    user = getattr(g, "current_user", None)
    if user is None:
        return {"user": None, "permissions": [], "moduleOrder": []}
    return {
        "user": user.to_dict(),
        "permissions": sorted(permission_service.get_all_permissions(user)),
        "moduleOrder": permission_service.get_module_order(user),
    }


def _flash_props() -> dict:
    messages = {"success": None, "error": None}
    for category, message in get_flashed_messages(with_categories=True):
        messages[category] = message
    return messages


def render_page(component: str, **props):
    return jsonify({
        "component": component,
        "props": props,
        "auth": _auth_props(),
        "flash": _flash_props(),
    })


def redirect_with(endpoint: str, message: str, category: str = "success", **values):
    flash(message, category)
    return redirect(url_for(endpoint, **values))


def validation_failed(error: ValidationError):
    return jsonify({"message": str(error), "errors": error.errors}), 422


def not_found(resource: str):
    return jsonify({"error": f"{resource} not found"}), 404


def form_payload() -> dict:
    """Submitted form data: JSON body, or an urlencoded form with repeated keys as lists."""
    if request.is_json:
        return request.get_json(silent=True) or {}

    data = {}
    for key in request.form.keys():
        values = request.form.getlist(key)
        if key.endswith("[]"):
            data[key[:-2]] = values
        else:
            data[key] = values[0] if len(values) == 1 else values
    return data
