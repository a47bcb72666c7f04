# Overview: Flask API routes for coupons; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..services import coupon_service
from ..errors import ShopError, ValidationError, error_response
from ..decorators import require_auth, require_admin
from app.time_utils import parse_iso_datetime


coupons_bp = Blueprint("coupons", __name__, url_prefix="/api/coupons")


def _parse_is_used(raw):
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in {"true", "1"}:
        return True
    if value in {"false", "0"}:
        return False
    raise ValidationError("is_used must be true or false")


@coupons_bp.get("")
@require_auth
@require_admin
def list_coupons_route():
    try:
        coupons = coupon_service.list_coupons(
            is_used=_parse_is_used(request.args.get("is_used")),
            discount_type=request.args.get("discount_type"),
        )
        return jsonify({"coupons": [c.to_dict() for c in coupons], "count": len(coupons)}), 200
    except ShopError as e:
        return error_response(e)


@coupons_bp.get("/available")
@require_auth
def list_available_coupons_route():
    coupons = coupon_service.list_available_coupons()
    return jsonify({"coupons": [c.to_dict() for c in coupons], "count": len(coupons)}), 200


@coupons_bp.get("/<code>")
@require_auth
def get_coupon_route(code: str):
    try:
        return jsonify(coupon_service.get_coupon(code).to_dict()), 200
    except ShopError as e:
        return error_response(e)


@coupons_bp.post("")
@require_auth
@require_admin
def create_coupon_route():
    """
    Create a coupon.

    Body: {code, discount_type (PERCENTAGE|FIXED), value (bps or cents),
    expires_at (ISO-8601), source?}
    """
    data = request.get_json(silent=True) or {}
    try:
        try:
            expires_at = parse_iso_datetime(data.get("expires_at"))
        except (TypeError, ValueError, AttributeError):
            raise ValidationError("expires_at must be an ISO-8601 datetime")
        if expires_at is None:
            raise ValidationError("expires_at is required")

        coupon = coupon_service.create_coupon(
            code=data.get("code"),
            discount_type=str(data.get("discount_type") or "").upper(),
            value=data.get("value"),
            expires_at=expires_at,
            source=str(data.get("source") or coupon_service.SOURCE_PROMOTION).upper(),
        )
        return jsonify(coupon.to_dict()), 201
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Coupon create failed")
        return jsonify({"error": "Internal server error"}), 500


@coupons_bp.post("/<code>/validate")
@require_auth
def validate_coupon_route(code: str):
    data = request.get_json(silent=True) or {}
    try:
        result = coupon_service.validate(code, data.get("order_amount_cents"))
        return jsonify(result), 200
    except ShopError as e:
        return error_response(e)


@coupons_bp.patch("/<code>/use")
@require_auth
@require_admin
def use_coupon_route(code: str):
    try:
        return jsonify(coupon_service.mark_used(code).to_dict()), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Coupon use failed")
        return jsonify({"error": "Internal server error"}), 500


@coupons_bp.delete("/<code>")
@require_auth
@require_admin
def delete_coupon_route(code: str):
    try:
        coupon_service.delete_coupon(code)
        return jsonify({"ok": True}), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Coupon delete failed")
        return jsonify({"error": "Internal server error"}), 500
