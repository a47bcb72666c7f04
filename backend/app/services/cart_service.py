# Overview: Service-layer operations for carts; keeps cart aggregates consistent with cart items.

"""
Cart Aggregator

WHY: Cart reads are frequent, so subtotal/total/estimated points are stored
on the cart row instead of being summed over items on every read.

INVARIANTS:
- Every CartItem mutation goes through _apply_line_change(), which updates
  the item and the cart aggregates in the same unit of work.
- subtotal_cents == SUM(unit_price_cents * quantity) over the cart's items
- estimated_loyalty_points == SUM(unit_loyalty_points * quantity)
- total_cents == subtotal_cents
- A cart holds at most one line per product/size/color; adds and variant
  changes merge into it, and stock is checked against the merged quantity.

PRICING: A line is re-priced from its product whenever it is touched, so
the delta applied is (current_price * new_qty) - (applied_price * old_qty).
A product price change therefore reaches open carts on their next write.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Cart, CartItem, Product
from ..errors import (
    ValidationError,
    InsufficientStockError,
    ProductNotFoundError,
    ItemNotFoundError,
)
from .concurrency import lock_for_update, run_with_retry


def _normalize_variant(value) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _validate_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("quantity must be an integer")
    if quantity < 1:
        raise ValidationError("quantity must be at least 1")
    return quantity


def _check_stock(product: Product, quantity: int) -> None:
    if product.stock < quantity:
        raise InsufficientStockError(
            f"Only {product.stock} items available in stock",
            details={
                "product_id": product.id,
                "requested_quantity": quantity,
                "in_stock": product.stock,
            },
        )


def _locked_cart(user_id: int) -> Cart | None:
    return lock_for_update(db.session.query(Cart).filter_by(user_id=user_id)).first()


def _apply_line_change(cart: Cart, item: CartItem, product: Product, new_quantity: int) -> None:
    """
    Single choke point for cart aggregate maintenance.

    Moves `item` from its applied contribution (unit_* x quantity) to the
    product's current price/points x new_quantity. new_quantity == 0 removes
    the line. Caller owns the commit.
    """
    old_price_total = item.unit_price_cents * item.quantity if item.quantity else 0
    old_points_total = item.unit_loyalty_points * item.quantity if item.quantity else 0

    if new_quantity == 0:
        new_price_total = 0
        new_points_total = 0
    else:
        new_price_total = product.price_cents * new_quantity
        new_points_total = product.loyalty_points * new_quantity

    cart.subtotal_cents += new_price_total - old_price_total
    cart.estimated_loyalty_points += new_points_total - old_points_total
    cart.total_cents = cart.subtotal_cents

    if new_quantity == 0:
        cart.items.remove(item)
        db.session.delete(item)
        return

    item.quantity = new_quantity
    item.unit_price_cents = product.price_cents
    item.unit_loyalty_points = product.loyalty_points


def get_cart(user_id: int) -> Cart | None:
    return db.session.query(Cart).filter_by(user_id=user_id).first()


def get_or_create_cart(user_id: int) -> Cart:
    """Return the user's cart, creating an empty one (all aggregates zero)."""
    cart = get_cart(user_id)
    if cart:
        return cart

    cart = Cart(user_id=user_id, subtotal_cents=0, total_cents=0, estimated_loyalty_points=0)
    db.session.add(cart)
    db.session.commit()
    return cart


def get_cart_summary(user_id: int) -> dict:
    """Item count, subtotal and estimated points, served from the stored aggregates."""
    cart = get_cart(user_id)
    if not cart:
        return {"item_count": 0, "subtotal_cents": 0, "total_cents": 0, "estimated_loyalty_points": 0}
    return {
        "item_count": len(cart.items),
        "subtotal_cents": cart.subtotal_cents,
        "total_cents": cart.total_cents,
        "estimated_loyalty_points": cart.estimated_loyalty_points,
    }


def add_item(
    user_id: int,
    product_id: int,
    quantity: int,
    size: str | None = None,
    color: str | None = None,
) -> CartItem:
    """
    Add a product to the user's cart, merging into an identical line.

    Raises:
        ValidationError: quantity is not an integer >= 1
        ProductNotFoundError: product does not exist
        InsufficientStockError: stock < quantity after merge (cart unchanged)
    """
    _validate_quantity(quantity)
    size = _normalize_variant(size)
    color = _normalize_variant(color)

    def _op():
        product = db.session.get(Product, product_id)
        if not product:
            raise ProductNotFoundError()

        cart = _locked_cart(user_id)
        if not cart:
            cart = Cart(user_id=user_id, subtotal_cents=0, total_cents=0, estimated_loyalty_points=0)
            db.session.add(cart)
            db.session.flush()

        item = (
            db.session.query(CartItem)
            .filter_by(cart_id=cart.id, product_id=product.id, size=size, color=color)
            .first()
        )

        new_quantity = item.quantity + quantity if item else quantity
        _check_stock(product, new_quantity)

        if not item:
            item = CartItem(
                cart_id=cart.id,
                product_id=product.id,
                quantity=new_quantity,
                size=size,
                color=color,
                unit_price_cents=0,
                unit_loyalty_points=0,
            )
            cart.items.append(item)

        _apply_line_change(cart, item, product, new_quantity)

        db.session.commit()
        return item

    try:
        return run_with_retry(_op)
    except IntegrityError:
        # A concurrent first add created the cart; merge into it
        return run_with_retry(_op)


def update_item(
    user_id: int,
    item_id: int,
    quantity: int | None = None,
    size: str | None = None,
    color: str | None = None,
) -> CartItem:
    """
    Change quantity and/or variant of a line in the user's cart.

    A variant change onto a product/size/color line already in the cart
    merges the two, and the surviving line is returned.

    Raises:
        ItemNotFoundError: item is not in this user's cart
        ValidationError: quantity provided but not an integer >= 1
        InsufficientStockError: stock < new (or merged) quantity
    """
    if quantity is not None:
        _validate_quantity(quantity)

    def _op():
        cart = _locked_cart(user_id)
        if not cart:
            raise ItemNotFoundError()

        item = db.session.query(CartItem).filter_by(id=item_id, cart_id=cart.id).first()
        if not item:
            raise ItemNotFoundError()

        product = db.session.get(Product, item.product_id)
        if not product:
            raise ProductNotFoundError()

        new_quantity = quantity if quantity is not None else item.quantity
        new_size = _normalize_variant(size) if size is not None else item.size
        new_color = _normalize_variant(color) if color is not None else item.color

        twin = None
        if (new_size, new_color) != (item.size, item.color):
            twin = (
                db.session.query(CartItem)
                .filter_by(cart_id=cart.id, product_id=product.id, size=new_size, color=new_color)
                .filter(CartItem.id != item.id)
                .first()
            )

        if twin:
            # Moving onto an existing variant merges into that line
            merged_quantity = twin.quantity + new_quantity
            _check_stock(product, merged_quantity)
            _apply_line_change(cart, item, product, 0)
            _apply_line_change(cart, twin, product, merged_quantity)
            db.session.commit()
            return twin

        _check_stock(product, new_quantity)
        item.size = new_size
        item.color = new_color
        _apply_line_change(cart, item, product, new_quantity)

        db.session.commit()
        return item

    return run_with_retry(_op)


def remove_item(user_id: int, item_id: int) -> None:
    """
    Remove a line and subtract its contribution from the aggregates.

    Raises ItemNotFoundError if the item is not in this user's cart.
    """
    def _op():
        cart = _locked_cart(user_id)
        if not cart:
            raise ItemNotFoundError()

        item = db.session.query(CartItem).filter_by(id=item_id, cart_id=cart.id).first()
        if not item:
            raise ItemNotFoundError()

        _apply_line_change(cart, item, item.product, 0)
        db.session.commit()

    run_with_retry(_op)


def clear_cart(user_id: int, *, commit: bool = True) -> None:
    """
    Delete every line and zero all aggregates.

    commit=False lets checkout clear the cart inside its own unit of work.
    """
    def _clear():
        cart = _locked_cart(user_id)
        if not cart:
            return
        for item in list(cart.items):
            cart.items.remove(item)
            db.session.delete(item)
        cart.subtotal_cents = 0
        cart.total_cents = 0
        cart.estimated_loyalty_points = 0

    if not commit:
        _clear()
        return

    def _op():
        _clear()
        db.session.commit()

    run_with_retry(_op)


def recompute_aggregates(cart: Cart) -> dict:
    """
    Independently recompute a cart's aggregates from its item rows.

    Used for audits only; regular reads use the stored values.
    """
    subtotal = 0
    points = 0
    for item in db.session.query(CartItem).filter_by(cart_id=cart.id).all():
        subtotal += item.unit_price_cents * item.quantity
        points += item.unit_loyalty_points * item.quantity
    return {
        "subtotal_cents": subtotal,
        "total_cents": subtotal,
        "estimated_loyalty_points": points,
    }


def audit_cart(cart: Cart, *, fix: bool = False) -> dict | None:
    """
    Compare stored aggregates with a recomputation.

    Returns None when consistent, otherwise a drift report. With fix=True the
    stored aggregates are overwritten (caller commits).
    """
    expected = recompute_aggregates(cart)
    stored = {
        "subtotal_cents": cart.subtotal_cents,
        "total_cents": cart.total_cents,
        "estimated_loyalty_points": cart.estimated_loyalty_points,
    }
    if stored == expected:
        return None

    if fix:
        cart.subtotal_cents = expected["subtotal_cents"]
        cart.total_cents = expected["total_cents"]
        cart.estimated_loyalty_points = expected["estimated_loyalty_points"]

    return {"cart_id": cart.id, "user_id": cart.user_id, "stored": stored, "expected": expected}


def drop_product_lines(product: Product) -> int:
    """
    Remove a product from every cart that holds it (caller's unit of work).

    Used before a product is deleted. Returns the number of lines removed.
    """
    items = db.session.query(CartItem).filter_by(product_id=product.id).all()
    for item in items:
        cart = lock_for_update(db.session.query(Cart).filter_by(id=item.cart_id)).first()
        _apply_line_change(cart, item, product, 0)
    return len(items)
