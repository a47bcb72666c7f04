# Overview: Flask API routes for derived product categories.

from flask import Blueprint, request, jsonify

from ..services import catalog_service
from ..errors import ShopError, error_response


categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
def list_categories_route():
    categories = catalog_service.list_categories()
    return jsonify({"categories": categories, "count": len(categories)}), 200


@categories_bp.get("/<slug>")
def get_category_route(slug: str):
    try:
        return jsonify(catalog_service.get_category(slug)), 200
    except ShopError as e:
        return error_response(e)


@categories_bp.get("/<slug>/products")
def list_category_products_route(slug: str):
    try:
        filters = catalog_service.parse_filters(request.args)
        return jsonify(catalog_service.list_category_products(slug, filters)), 200
    except ShopError as e:
        return error_response(e)
