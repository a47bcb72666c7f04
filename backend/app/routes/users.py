# Overview: Flask API routes for admin user management; parses input and returns JSON responses.

"""
Admin user management API.

All endpoints require an administrator.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..models import User
from ..services import user_service
from ..errors import ShopError, error_response
from ..decorators import require_auth, require_admin
from ..validation import validate_payload, ADMIN_USER_POLICY


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_admin
def list_users_route():
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    users = user_service.list_users(include_inactive=include_inactive)
    return jsonify({"users": [u.to_dict() for u in users], "count": len(users)}), 200


@users_bp.get("/<int:user_id>")
@require_auth
@require_admin
def get_user_route(user_id: int):
    try:
        return jsonify(user_service.get_user(user_id).to_dict()), 200
    except ShopError as e:
        return error_response(e)


@users_bp.put("/<int:user_id>")
@require_auth
@require_admin
def update_user_route(user_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=User, payload=payload, policy=ADMIN_USER_POLICY, partial=True)
        user = user_service.update_user(user_id, patch, acting_user_id=g.current_user.id)
        return jsonify(user.to_dict()), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("User update failed")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.delete("/<int:user_id>")
@require_auth
@require_admin
def delete_user_route(user_id: int):
    try:
        user_service.delete_user(user_id, acting_user_id=g.current_user.id)
        return jsonify({"ok": True}), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("User delete failed")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.get("/<int:user_id>/cart")
@require_auth
@require_admin
def get_user_cart_route(user_id: int):
    try:
        return jsonify(user_service.get_user_cart(user_id)), 200
    except ShopError as e:
        return error_response(e)


@users_bp.get("/<int:user_id>/reviews")
@require_auth
@require_admin
def get_user_reviews_route(user_id: int):
    try:
        reviews = user_service.get_user_reviews(user_id)
        return jsonify({"reviews": [r.to_dict() for r in reviews]}), 200
    except ShopError as e:
        return error_response(e)
