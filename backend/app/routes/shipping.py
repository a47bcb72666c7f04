# Overview: Flask API routes for shipping options and quotes.

from flask import Blueprint, request, jsonify

from ..services import shipping_service
from ..errors import ShopError, ValidationError, error_response


shipping_bp = Blueprint("shipping", __name__, url_prefix="/api/shipping")


@shipping_bp.get("/options")
def list_options_route():
    options = shipping_service.list_options()
    return jsonify({"options": [o.to_dict() for o in options]}), 200


@shipping_bp.post("/calculate")
def calculate_route():
    """Body: {shipping_option_id, address}"""
    data = request.get_json(silent=True) or {}
    try:
        option_id = data.get("shipping_option_id")
        if isinstance(option_id, bool) or not isinstance(option_id, int):
            raise ValidationError("shipping_option_id must be an integer")
        return jsonify(shipping_service.calculate(option_id, data.get("address"))), 200
    except ShopError as e:
        return error_response(e)
