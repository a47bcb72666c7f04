# Overview: Flask API routes for the loyalty program; parses input and returns JSON responses.

"""
Loyalty API routes

Member endpoints act on the signed-in user. Ledger writes on behalf of
other users, tier maintenance and reward creation are admin-only.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import loyalty_service, coupon_service
from ..errors import ShopError, ValidationError, error_response
from ..decorators import require_auth, require_admin


loyalty_bp = Blueprint("loyalty", __name__, url_prefix="/api/loyalty")


def _int_field(data: dict, key: str, *, required: bool = True):
    value = data.get(key)
    if value is None and not required:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer")
    return value


@loyalty_bp.get("/status")
@require_auth
def status_route():
    try:
        return jsonify(loyalty_service.get_status(g.current_user.id)), 200
    except ShopError as e:
        return error_response(e)


@loyalty_bp.get("/banner")
@require_auth
def banner_route():
    try:
        return jsonify(loyalty_service.get_banner(g.current_user.id)), 200
    except ShopError as e:
        return error_response(e)


@loyalty_bp.post("/enroll")
@require_auth
def enroll_route():
    try:
        return jsonify(loyalty_service.enroll(g.current_user.id)), 201
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Loyalty enrollment failed")
        return jsonify({"error": "Internal server error"}), 500


@loyalty_bp.get("/transactions")
@require_auth
def list_transactions_route():
    txns = loyalty_service.list_transactions(g.current_user.id)
    return jsonify({"transactions": [t.to_dict() for t in txns], "count": len(txns)}), 200


@loyalty_bp.post("/transactions")
@require_auth
@require_admin
def create_transaction_route():
    """
    Append a ledger row for a member.

    Body: {user_id?, type, points, description, status? (PENDING|COMPLETED)}
    user_id defaults to the caller.
    """
    data = request.get_json(silent=True) or {}
    try:
        user_id = _int_field(data, "user_id", required=False) or g.current_user.id
        txn = loyalty_service.create_transaction(
            user_id,
            data.get("type"),
            data.get("points"),
            data.get("description"),
            status=data.get("status") or loyalty_service.STATUS_COMPLETED,
        )
        return jsonify(txn.to_dict()), 201
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Loyalty transaction create failed")
        return jsonify({"error": "Internal server error"}), 500


@loyalty_bp.patch("/transactions/<int:txn_id>/status")
@require_auth
@require_admin
def update_transaction_status_route(txn_id: int):
    data = request.get_json(silent=True) or {}
    try:
        txn = loyalty_service.update_transaction_status(txn_id, data.get("status"))
        return jsonify(txn.to_dict()), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Loyalty transaction status update failed")
        return jsonify({"error": "Internal server error"}), 500


@loyalty_bp.get("/coupons")
@require_auth
def member_coupons_route():
    coupons = coupon_service.list_member_coupons(g.current_user.id)
    return jsonify({"coupons": [c.to_dict() for c in coupons], "count": len(coupons)}), 200


@loyalty_bp.get("/tiers")
def list_tiers_route():
    tiers = loyalty_service.list_tiers()
    return jsonify({"tiers": [t.to_dict() for t in tiers]}), 200


@loyalty_bp.get("/tiers/<name>")
def get_tier_route(name: str):
    try:
        return jsonify(loyalty_service.get_tier(name).to_dict()), 200
    except ShopError as e:
        return error_response(e)


@loyalty_bp.put("/tiers/<name>")
@require_auth
@require_admin
def upsert_tier_route(name: str):
    data = request.get_json(silent=True) or {}
    try:
        tier = loyalty_service.upsert_tier(
            name,
            data.get("required_points"),
            data.get("multiplier", 1),
            perks=data.get("perks"),
        )
        return jsonify(tier.to_dict()), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Tier upsert failed")
        return jsonify({"error": "Internal server error"}), 500


@loyalty_bp.post("/calculate-tier")
def calculate_tier_route():
    data = request.get_json(silent=True) or {}
    try:
        return jsonify(loyalty_service.calculate_tier(data.get("points"))), 200
    except ShopError as e:
        return error_response(e)


@loyalty_bp.put("/members/<int:user_id>/tier")
@require_auth
@require_admin
def set_member_tier_route(user_id: int):
    data = request.get_json(silent=True) or {}
    try:
        enrollment = loyalty_service.set_member_tier(user_id, data.get("tier"))
        return jsonify(enrollment.to_dict()), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Member tier update failed")
        return jsonify({"error": "Internal server error"}), 500


@loyalty_bp.get("/rewards")
def list_rewards_route():
    rewards = loyalty_service.list_rewards()
    return jsonify({"rewards": [r.to_dict() for r in rewards]}), 200


@loyalty_bp.post("/rewards")
@require_auth
@require_admin
def create_reward_route():
    data = request.get_json(silent=True) or {}
    try:
        return jsonify(loyalty_service.create_reward(data).to_dict()), 201
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Reward create failed")
        return jsonify({"error": "Internal server error"}), 500


@loyalty_bp.patch("/rewards/<int:reward_id>")
@require_auth
@require_admin
def update_reward_route(reward_id: int):
    data = request.get_json(silent=True) or {}
    try:
        if not isinstance(data.get("is_active"), bool):
            raise ValidationError("is_active must be a boolean")
        reward = loyalty_service.set_reward_active(reward_id, data["is_active"])
        return jsonify(reward.to_dict()), 200
    except ShopError as e:
        return error_response(e)


@loyalty_bp.post("/redeem")
@require_auth
def redeem_route():
    """
    Redeem points for a reward.

    Body: {reward_id}
    Returns the REDEEMED transaction, the issued coupon and the new balance.
    """
    data = request.get_json(silent=True) or {}
    try:
        reward_id = _int_field(data, "reward_id")
        return jsonify(loyalty_service.redeem(g.current_user.id, reward_id)), 201
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Loyalty redemption failed")
        return jsonify({"error": "Internal server error"}), 500
