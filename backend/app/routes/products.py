# Overview: Flask API routes for products; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..models import Product
from ..services import catalog_service
from ..errors import ShopError, error_response
from ..decorators import require_auth, require_admin
from ..validation import validate_payload, enforce_rules_product, PRODUCT_POLICY


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products_route():
    """
    List products.

    Query params:
    - category, min_price_cents, max_price_cents, is_new, is_sale, q
    - sort: newest | price-low | price-high | rating
    - page (1-indexed), per_page (default 20, max 100)
    """
    try:
        filters = catalog_service.parse_filters(request.args)
        return jsonify(catalog_service.list_products(filters)), 200
    except ShopError as e:
        return error_response(e)


@products_bp.get("/search")
def search_products_route():
    try:
        filters = catalog_service.parse_filters(request.args)
        return jsonify(catalog_service.search_products(filters)), 200
    except ShopError as e:
        return error_response(e)


@products_bp.get("/featured")
def featured_products_route():
    limit = request.args.get("limit", default=8, type=int)
    limit = max(1, min(limit, catalog_service.MAX_PER_PAGE))
    products = catalog_service.featured_products(limit)
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        return jsonify(catalog_service.get_product(product_id).to_dict()), 200
    except ShopError as e:
        return error_response(e)


@products_bp.get("/<int:product_id>/images")
def get_product_images_route(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
        return jsonify({"images": [img.to_dict() for img in product.images]}), 200
    except ShopError as e:
        return error_response(e)


@products_bp.get("/<int:product_id>/sizes")
def get_product_sizes_route(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
        return jsonify({"sizes": [s.size for s in product.sizes]}), 200
    except ShopError as e:
        return error_response(e)


@products_bp.get("/<int:product_id>/colors")
def get_product_colors_route(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
        return jsonify({"colors": [c.to_dict() for c in product.colors]}), 200
    except ShopError as e:
        return error_response(e)


@products_bp.post("")
@require_auth
@require_admin
def create_product_route():
    """Create a product. Accepts column fields plus images/sizes/colors lists."""
    payload = request.get_json(silent=True) or {}

    try:
        fields, variants = catalog_service.split_variants(payload)
        patch = validate_payload(model=Product, payload=fields, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        product = catalog_service.create_product(patch=patch, variants=variants)
        return jsonify(product.to_dict()), 201
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Product create failed")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>")
@require_auth
@require_admin
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        fields, variants = catalog_service.split_variants(payload)
        patch = validate_payload(model=Product, payload=fields, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        product = catalog_service.update_product(product_id=product_id, patch=patch, variants=variants)
        return jsonify(product.to_dict()), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Product update failed")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_auth
@require_admin
def delete_product_route(product_id: int):
    try:
        catalog_service.delete_product(product_id)
        return jsonify({"ok": True}), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Product delete failed")
        return jsonify({"error": "Internal server error"}), 500
