# Overview: Flask route for the dashboard page.

from flask import Blueprint, g

from ..services import dashboard_service
from ..decorators import require_auth, require_verified, require_permission
from ..pages import render_page


dashboard_bp = Blueprint("dashboard", __name__)


@dashboard_bp.get("/dashboard")
@require_auth
@require_verified
@require_permission("dashboard.view")
def index():
    return render_page("dashboard", **dashboard_service.dashboard_props(g.current_user))
