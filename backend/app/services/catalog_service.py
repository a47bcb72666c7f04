# Overview: Service-layer operations for the product catalog and derived categories.

"""
Catalog Service

Products are the only catalog table; categories are derived from
Product.category (slug = lower-cased name, spaces -> '-').

Listing supports filters (category, price range, new, sale, free-text q),
sort keys (newest, price-low, price-high, rating) and page/per_page
pagination (per_page capped at 100).
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from sqlalchemy import case, func, or_

from ..extensions import db
from ..models import Product, ProductImage, ProductSize, ProductColor, OrderItem
from ..errors import ValidationError, ConflictError, ProductNotFoundError, CategoryNotFoundError
from . import cart_service
from .concurrency import run_with_retry


PRODUCT_MUTABLE_FIELDS = {
    "name", "description", "price_cents", "original_price_cents", "image_url",
    "category", "loyalty_points", "stock", "rating", "is_new", "is_sale",
}

SORT_NEWEST = "newest"
SORT_PRICE_LOW = "price-low"
SORT_PRICE_HIGH = "price-high"
SORT_RATING = "rating"
VALID_SORTS = {SORT_NEWEST, SORT_PRICE_LOW, SORT_PRICE_HIGH, SORT_RATING}

DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100

HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


@dataclass
class ProductFilters:
    category: str | None = None
    min_price_cents: int | None = None
    max_price_cents: int | None = None
    is_new: bool | None = None
    is_sale: bool | None = None
    q: str | None = None
    sort: str = SORT_NEWEST
    page: int = 1
    per_page: int = DEFAULT_PER_PAGE


def _parse_int(args, key: str) -> int | None:
    raw = args.get(key)
    if raw is None or str(raw).strip() == "":
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        raise ValidationError(f"{key} must be an integer")


def _parse_bool(args, key: str) -> bool | None:
    raw = args.get(key)
    if raw is None or str(raw).strip() == "":
        return None
    value = str(raw).strip().lower()
    if value in {"true", "1", "yes"}:
        return True
    if value in {"false", "0", "no"}:
        return False
    raise ValidationError(f"{key} must be true or false")


def parse_filters(args) -> ProductFilters:
    """Build filters from request query args. Raises ValidationError."""
    filters = ProductFilters(
        category=(args.get("category") or "").strip() or None,
        min_price_cents=_parse_int(args, "min_price_cents"),
        max_price_cents=_parse_int(args, "max_price_cents"),
        is_new=_parse_bool(args, "is_new"),
        is_sale=_parse_bool(args, "is_sale"),
        q=(args.get("q") or "").strip() or None,
        sort=(args.get("sort") or SORT_NEWEST).strip().lower(),
        page=_parse_int(args, "page") or 1,
        per_page=_parse_int(args, "per_page") or DEFAULT_PER_PAGE,
    )
    if filters.sort not in VALID_SORTS:
        raise ValidationError(f"sort must be one of: {', '.join(sorted(VALID_SORTS))}")
    if filters.page < 1:
        raise ValidationError("page must be >= 1")
    if filters.per_page < 1:
        raise ValidationError("per_page must be >= 1")
    filters.per_page = min(filters.per_page, MAX_PER_PAGE)
    if (
        filters.min_price_cents is not None
        and filters.max_price_cents is not None
        and filters.min_price_cents > filters.max_price_cents
    ):
        raise ValidationError("min_price_cents cannot exceed max_price_cents")
    return filters


def _apply_filters(query, filters: ProductFilters):
    if filters.category:
        query = query.filter(func.lower(Product.category) == filters.category.lower())
    if filters.min_price_cents is not None:
        query = query.filter(Product.price_cents >= filters.min_price_cents)
    if filters.max_price_cents is not None:
        query = query.filter(Product.price_cents <= filters.max_price_cents)
    if filters.is_new is not None:
        query = query.filter(Product.is_new.is_(filters.is_new))
    if filters.is_sale is not None:
        query = query.filter(Product.is_sale.is_(filters.is_sale))
    if filters.q:
        pattern = f"%{filters.q.lower()}%"
        query = query.filter(or_(
            func.lower(Product.name).like(pattern),
            func.lower(Product.description).like(pattern),
        ))
    return query


def _apply_sort(query, sort: str):
    if sort == SORT_PRICE_LOW:
        return query.order_by(Product.price_cents.asc(), Product.id.asc())
    if sort == SORT_PRICE_HIGH:
        return query.order_by(Product.price_cents.desc(), Product.id.asc())
    if sort == SORT_RATING:
        return query.order_by(Product.rating.is_(None), Product.rating.desc(), Product.id.asc())
    return query.order_by(Product.created_at.desc(), Product.id.desc())


def _paginate(query, page: int, per_page: int) -> dict:
    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    products = query.offset((page - 1) * per_page).limit(per_page).all()
    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


# =============================================================================
# PRODUCTS
# =============================================================================

def list_products(filters: ProductFilters | None = None) -> dict:
    filters = filters or ProductFilters()
    query = _apply_sort(_apply_filters(db.session.query(Product), filters), filters.sort)
    return _paginate(query, filters.page, filters.per_page)


def search_products(filters: ProductFilters) -> dict:
    """Free-text search over name and description. Raises ValidationError without q."""
    if not filters.q:
        raise ValidationError("q is required")
    return list_products(filters)


def featured_products(limit: int = 8) -> list[Product]:
    """New or on-sale products, best rated first."""
    return (
        db.session.query(Product)
        .filter(or_(Product.is_new.is_(True), Product.is_sale.is_(True)))
        .order_by(Product.rating.is_(None), Product.rating.desc(), Product.created_at.desc(), Product.id.desc())
        .limit(limit)
        .all()
    )


def get_product(product_id: int) -> Product:
    """Raises ProductNotFoundError."""
    product = db.session.get(Product, product_id)
    if not product:
        raise ProductNotFoundError()
    return product


def _validate_variants(payload: dict) -> dict:
    variants = {}
    if "images" in payload:
        images = payload["images"]
        if not isinstance(images, list) or not all(isinstance(i, str) and i.strip() for i in images):
            raise ValidationError("images must be a list of URLs")
        variants["images"] = [i.strip() for i in images]
    if "sizes" in payload:
        sizes = payload["sizes"]
        if not isinstance(sizes, list) or not all(isinstance(s, str) and s.strip() for s in sizes):
            raise ValidationError("sizes must be a list of strings")
        cleaned = [s.strip() for s in sizes]
        if len(set(cleaned)) != len(cleaned):
            raise ValidationError("sizes must be unique")
        variants["sizes"] = cleaned
    if "colors" in payload:
        colors = payload["colors"]
        if not isinstance(colors, list):
            raise ValidationError("colors must be a list of {name, value} objects")
        cleaned = []
        for color in colors:
            if not isinstance(color, dict) or not str(color.get("name") or "").strip():
                raise ValidationError("colors must be a list of {name, value} objects")
            value = str(color.get("value") or "").strip()
            if not HEX_COLOR_RE.match(value):
                raise ValidationError("color value must be a hex color like #000000")
            cleaned.append({"name": str(color["name"]).strip(), "value": value})
        if len({c["name"] for c in cleaned}) != len(cleaned):
            raise ValidationError("color names must be unique")
        variants["colors"] = cleaned
    return variants


def split_variants(payload: dict) -> tuple[dict, dict]:
    """Separate images/sizes/colors lists from column fields. Raises ValidationError."""
    payload = dict(payload or {})
    raw = {k: payload.pop(k) for k in ("images", "sizes", "colors") if k in payload}
    return payload, _validate_variants(raw)


def _apply_variants(product: Product, variants: dict) -> None:
    if "images" in variants:
        product.images.clear()
        db.session.flush()
        for index, url in enumerate(variants["images"]):
            product.images.append(ProductImage(image_url=url, is_primary=index == 0))
    if "sizes" in variants:
        product.sizes.clear()
        db.session.flush()
        for size in variants["sizes"]:
            product.sizes.append(ProductSize(size=size))
    if "colors" in variants:
        product.colors.clear()
        db.session.flush()
        for color in variants["colors"]:
            product.colors.append(ProductColor(name=color["name"], value=color["value"]))


def apply_product_patch(product: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(product, k, v)


def create_product(*, patch: dict, variants: dict | None = None) -> Product:
    """Create from a validated patch (see validation.PRODUCT_POLICY)."""
    product = Product(loyalty_points=0, stock=0, is_new=False, is_sale=False)
    apply_product_patch(product, patch)
    if not product.image_url and variants and variants.get("images"):
        product.image_url = variants["images"][0]
    db.session.add(product)
    db.session.flush()
    _apply_variants(product, variants or {})
    db.session.commit()
    return product


def update_product(*, product_id: int, patch: dict, variants: dict | None = None) -> Product:
    """Raises ProductNotFoundError."""
    def _op():
        product = get_product(product_id)
        apply_product_patch(product, patch)
        _apply_variants(product, variants or {})
        db.session.commit()
        return product

    return run_with_retry(_op)


def delete_product(product_id: int) -> None:
    """
    Delete a product and drop it from any open carts.

    Raises ProductNotFoundError, ConflictError (product appears on orders).
    """
    def _op():
        product = get_product(product_id)
        if db.session.query(OrderItem.id).filter_by(product_id=product.id).first():
            raise ConflictError("Product has been ordered and cannot be deleted")
        cart_service.drop_product_lines(product)
        db.session.delete(product)
        db.session.commit()

    run_with_retry(_op)


# =============================================================================
# CATEGORIES (derived)
# =============================================================================

def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", (name or "").strip().lower()).strip("-")


def _category_rows():
    return (
        db.session.query(
            Product.category,
            func.count(Product.id),
            func.min(Product.price_cents),
            func.max(Product.price_cents),
            func.max(case((Product.is_new.is_(True), 1), else_=0)),
            func.max(case((Product.is_sale.is_(True), 1), else_=0)),
        )
        .group_by(Product.category)
        .order_by(Product.category.asc())
        .all()
    )


def list_categories() -> list[dict]:
    return [
        {"name": name, "slug": slugify(name), "product_count": count}
        for name, count, *_ in _category_rows()
    ]


def get_category(slug: str) -> dict:
    """Category details by slug. Raises CategoryNotFoundError."""
    for name, count, min_price, max_price, has_new, has_sale in _category_rows():
        if slugify(name) == slug:
            return {
                "name": name,
                "slug": slug,
                "product_count": count,
                "min_price_cents": min_price,
                "max_price_cents": max_price,
                "filters": {
                    "is_new": bool(has_new),
                    "is_sale": bool(has_sale),
                },
            }
    raise CategoryNotFoundError()


def list_category_products(slug: str, filters: ProductFilters | None = None) -> dict:
    category = get_category(slug)
    filters = filters or ProductFilters()
    filters.category = category["name"]
    result = list_products(filters)
    result["category"] = {"name": category["name"], "slug": category["slug"]}
    return result
