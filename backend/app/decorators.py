# Overview: Request authentication decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import UnauthorizedError
from .services import auth_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid access token.

    Sets g.current_user to the authenticated User.

    SECURITY: Returns 401 before the route runs if:
    - No Authorization header
    - Invalid, expired or wrong-type token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required", "code": "UNAUTHORIZED"}), 401

        try:
            user = auth_service.resolve_user(token)
        except UnauthorizedError as e:
            return jsonify(e.to_dict()), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Require the authenticated user to be an administrator. Use after @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not hasattr(g, 'current_user'):
            return jsonify({"error": "Authentication required", "code": "UNAUTHORIZED"}), 401
        if not g.current_user.is_admin:
            return jsonify({"error": "Admin access required", "code": "FORBIDDEN"}), 403
        return f(*args, **kwargs)
    return decorated_function
