# Overview: Flask API routes for payments; parses input and returns JSON responses.

# backend/app/routes/payments.py
"""
Payment API routes

- GET /methods: active payment methods
- POST /process: pay a PENDING order
- POST /refund: refund a PAID order
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import payment_service
from ..errors import ShopError, ValidationError, error_response
from ..decorators import require_auth


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


def _order_id(data: dict) -> int:
    order_id = data.get("order_id")
    if isinstance(order_id, bool) or not isinstance(order_id, int):
        raise ValidationError("order_id must be an integer")
    return order_id


@payments_bp.get("/methods")
def list_methods_route():
    methods = payment_service.list_methods()
    return jsonify({"methods": [m.to_dict() for m in methods]}), 200


@payments_bp.post("/process")
@require_auth
def process_payment_route():
    """Body: {order_id, payment_method_id?}"""
    data = request.get_json(silent=True) or {}
    try:
        method_id = data.get("payment_method_id")
        if method_id is not None and (isinstance(method_id, bool) or not isinstance(method_id, int)):
            raise ValidationError("payment_method_id must be an integer")
        result = payment_service.process_payment(g.current_user.id, _order_id(data), method_id)
        return jsonify(result), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Payment processing failed")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.post("/refund")
@require_auth
def refund_route():
    """Body: {order_id}"""
    data = request.get_json(silent=True) or {}
    try:
        return jsonify(payment_service.refund(g.current_user.id, _order_id(data))), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Refund failed")
        return jsonify({"error": "Internal server error"}), 500
