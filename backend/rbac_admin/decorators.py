# Overview: Request and permission decorators for routes.

from functools import wraps
from flask import request, jsonify, g, current_app

from .services import session_service, permission_service


def _is_authenticated() -> bool:
    return getattr(g, 'current_user', None) is not None


def _deny(required, message: str):
    """Log the denial and answer 403. `required` is one name or a list of names."""
    user = g.current_user
    current_app.logger.warning(
        "Permission denied: user_id=%s required=%s path=%s method=%s",
        user.id,
        required,
        request.path,
        request.method,
    )

    body = {"error": "Access Denied", "message": message}
    if isinstance(required, str):
        body["required_permission"] = required
    else:
        body["required_permissions"] = list(required)
    return jsonify(body), 403


def require_auth(f):
    """
    Require a valid bearer session token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_context: The full SessionContext object

    Returns 401 if the Authorization header is missing or the token is
    invalid, expired or revoked.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1].strip()

        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_verified(f):
    """Require the authenticated user's email address to be verified."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401

        if not g.current_user.is_verified:
            return jsonify({
                "error": "Email not verified",
                "message": "Your email address is not verified.",
            }), 403

        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_name: str):
    """Require a specific permission on any of the user's roles."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if not permission_service.has_permission(g.current_user, permission_name):
                return _deny(
                    permission_name,
                    "You do not have permission to access this page.",
                )

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_any_permission(*permission_names):
    """Require any of the specified permissions."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if not permission_service.has_any_permission(g.current_user, permission_names):
                return _deny(
                    permission_names,
                    f"Requires any of: {', '.join(permission_names)}",
                )

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_all_permissions(*permission_names):
    """Require all of the specified permissions."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            user = g.current_user
            if not permission_service.has_all_permissions(user, permission_names):
                granted = permission_service.get_all_permissions(user)
                missing = [name for name in permission_names if name not in granted]
                return _deny(
                    permission_names,
                    f"Missing: {', '.join(missing)}",
                )

            return f(*args, **kwargs)

        return decorated_function
    return decorator
