# Overview: Flask API routes for product reviews; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..models import Review
from ..services import review_service
from ..errors import ShopError, ValidationError, error_response
from ..decorators import require_auth
from ..validation import validate_payload, enforce_rules_review, REVIEW_POLICY


reviews_bp = Blueprint("reviews", __name__, url_prefix="/api/reviews")


@reviews_bp.get("")
def list_reviews_route():
    reviews = review_service.list_reviews()
    return jsonify({"reviews": [r.to_dict() for r in reviews], "count": len(reviews)}), 200


@reviews_bp.get("/<int:review_id>")
def get_review_route(review_id: int):
    try:
        return jsonify(review_service.get_review(review_id).to_dict()), 200
    except ShopError as e:
        return error_response(e)


@reviews_bp.get("/product/<int:product_id>")
def list_product_reviews_route(product_id: int):
    try:
        reviews = review_service.list_product_reviews(product_id)
        return jsonify({"reviews": [r.to_dict() for r in reviews], "count": len(reviews)}), 200
    except ShopError as e:
        return error_response(e)


@reviews_bp.post("")
@require_auth
def create_review_route():
    payload = dict(request.get_json(silent=True) or {})
    product_id = payload.pop("product_id", None)

    try:
        if not isinstance(product_id, int) or isinstance(product_id, bool):
            raise ValidationError("product_id must be an integer")
        patch = validate_payload(model=Review, payload=payload, policy=REVIEW_POLICY, partial=False)
        enforce_rules_review(patch)
        review = review_service.create_review(g.current_user, product_id, patch)
        return jsonify(review.to_dict()), 201
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Review create failed")
        return jsonify({"error": "Internal server error"}), 500


@reviews_bp.put("/<int:review_id>")
@require_auth
def update_review_route(review_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Review, payload=payload, policy=REVIEW_POLICY, partial=True)
        enforce_rules_review(patch)
        review = review_service.update_review(g.current_user, review_id, patch)
        return jsonify(review.to_dict()), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Review update failed")
        return jsonify({"error": "Internal server error"}), 500


@reviews_bp.delete("/<int:review_id>")
@require_auth
def delete_review_route(review_id: int):
    try:
        review_service.delete_review(g.current_user, review_id)
        return jsonify({"ok": True}), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Review delete failed")
        return jsonify({"error": "Internal server error"}), 500
