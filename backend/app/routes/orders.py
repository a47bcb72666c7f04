# Overview: Flask API routes for orders; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..services import order_service
from ..errors import ShopError, ValidationError, error_response
from ..decorators import require_auth


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _optional_id(data: dict, key: str):
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer")
    return value


@orders_bp.get("")
@require_auth
def list_orders_route():
    orders = order_service.list_orders(g.current_user.id)
    return jsonify({"orders": [o.to_dict() for o in orders], "count": len(orders)}), 200


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        return jsonify(order_service.get_order(g.current_user.id, order_id).to_dict()), 200
    except ShopError as e:
        return error_response(e)


@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Check out the current cart.

    Body: {shipping_address, payment_method_id?, shipping_option_id?, coupon_code?}
    """
    data = request.get_json(silent=True) or {}
    try:
        order = order_service.create_order(
            g.current_user.id,
            data.get("shipping_address"),
            payment_method_id=_optional_id(data, "payment_method_id"),
            shipping_option_id=_optional_id(data, "shipping_option_id"),
            coupon_code=data.get("coupon_code"),
        )
        return jsonify(order.to_dict()), 201
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Checkout failed")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/cancel")
@require_auth
def cancel_order_route(order_id: int):
    try:
        return jsonify(order_service.cancel_order(g.current_user.id, order_id).to_dict()), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Order cancel failed")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/send-confirmation")
@require_auth
def send_confirmation_route(order_id: int):
    try:
        sent = order_service.send_confirmation(g.current_user.id, order_id)
        return jsonify({"sent": sent}), 200
    except ShopError as e:
        return error_response(e)
