# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/app/routes/auth.py
"""
Authentication API routes

- Self-registration (optionally joining the loyalty program)
- Email/password login returning a JWT access token
- Stateless logout (the client discards its token)
- Password reset via a short-lived reset token
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..errors import ShopError, error_response
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    data = request.get_json(silent=True) or {}
    try:
        result = auth_service.register(
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password"),
            phone=data.get("phone"),
            address=data.get("address"),
            join_loyalty=bool(data.get("join_loyalty", False)),
        )
        return jsonify(result), 201
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Registration failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """Authenticate with email + password; returns user info and an access token."""
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")

    if not all([email, password]):
        return jsonify({"error": "email and password required", "code": "INVALID_INPUT"}), 400

    try:
        return jsonify(auth_service.login(email, password)), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Login failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/status")
@require_auth
def status_route():
    return jsonify({"authenticated": True, "user": g.current_user.to_dict()}), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    # Tokens are stateless; nothing to revoke server-side
    return jsonify({"message": "Logged out"}), 200


@auth_bp.post("/password-reset/request")
def password_reset_request_route():
    """
    Request a reset token.

    The token is sent to the account's email address. It is echoed in the
    response only when PASSWORD_RESET_RETURN_TOKEN is enabled.
    """
    data = request.get_json(silent=True) or {}
    try:
        token = auth_service.request_password_reset(data.get("email"))
    except Exception:
        current_app.logger.exception("Password reset request failed")
        return jsonify({"error": "Internal server error"}), 500

    body = {"message": "If the email is registered, a reset link has been sent"}
    if token and current_app.config.get("PASSWORD_RESET_RETURN_TOKEN"):
        body["reset_token"] = token
    return jsonify(body), 200


@auth_bp.post("/password-reset/reset")
def password_reset_route():
    data = request.get_json(silent=True) or {}
    token = data.get("token")
    new_password = data.get("password")
    if not token or not new_password:
        return jsonify({"error": "token and password required", "code": "INVALID_INPUT"}), 400

    try:
        auth_service.reset_password(token, new_password)
        return jsonify({"message": "Password has been reset"}), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Password reset failed")
        return jsonify({"error": "Internal server error"}), 500
