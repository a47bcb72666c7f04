# Overview: Flask API routes for the signed-in user's profile.

from flask import Blueprint, request, jsonify, current_app, g

from ..models import User
from ..services import user_service
from ..errors import ShopError, error_response
from ..decorators import require_auth
from ..validation import validate_payload, PROFILE_POLICY


profile_bp = Blueprint("profile", __name__, url_prefix="/api/profile")


@profile_bp.get("")
@require_auth
def get_profile_route():
    return jsonify(g.current_user.to_dict()), 200


@profile_bp.put("")
@require_auth
def update_profile_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=User, payload=payload, policy=PROFILE_POLICY, partial=True)
        user = user_service.update_profile(g.current_user.id, patch)
        return jsonify(user.to_dict()), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Profile update failed")
        return jsonify({"error": "Internal server error"}), 500
