# Overview: Flask API routes for the signed-in user's cart; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..services import cart_service
from ..errors import ShopError, ValidationError, error_response
from ..decorators import require_auth


cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")


def _cart_body(user_id: int) -> dict:
    return cart_service.get_or_create_cart(user_id).to_dict()


@cart_bp.get("")
@require_auth
def get_cart_route():
    return jsonify(_cart_body(g.current_user.id)), 200


@cart_bp.get("/summary")
@require_auth
def get_cart_summary_route():
    return jsonify(cart_service.get_cart_summary(g.current_user.id)), 200


@cart_bp.post("/items")
@require_auth
def add_item_route():
    """
    Add a product line.

    Body: {product_id, quantity (default 1), size?, color?}
    """
    data = request.get_json(silent=True) or {}
    product_id = data.get("product_id")

    try:
        if not isinstance(product_id, int) or isinstance(product_id, bool):
            raise ValidationError("product_id must be an integer")
        cart_service.add_item(
            g.current_user.id,
            product_id,
            data.get("quantity", 1),
            size=data.get("size"),
            color=data.get("color"),
        )
        return jsonify(_cart_body(g.current_user.id)), 201
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Add to cart failed")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.put("/items/<int:item_id>")
@require_auth
def update_item_route(item_id: int):
    data = request.get_json(silent=True) or {}
    try:
        cart_service.update_item(
            g.current_user.id,
            item_id,
            quantity=data.get("quantity"),
            size=data.get("size"),
            color=data.get("color"),
        )
        return jsonify(_cart_body(g.current_user.id)), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Cart update failed")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.delete("/items/<int:item_id>")
@require_auth
def remove_item_route(item_id: int):
    try:
        cart_service.remove_item(g.current_user.id, item_id)
        return jsonify(_cart_body(g.current_user.id)), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Cart item removal failed")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.delete("")
@require_auth
def clear_cart_route():
    try:
        cart_service.clear_cart(g.current_user.id)
        return jsonify(_cart_body(g.current_user.id)), 200
    except Exception:
        current_app.logger.exception("Cart clear failed")
        return jsonify({"error": "Internal server error"}), 500
