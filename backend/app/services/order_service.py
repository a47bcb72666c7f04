# Overview: Service-layer operations for orders; checkout from the cart and cancellation.

"""
Order Service

Checkout turns the user's cart into an Order in ONE unit of work:

    order row + item rows + stock decrement + coupon use
    + pending loyalty earn + cart clear

Either all of it commits or none of it does. The confirmation notification
is sent only after the commit.

PRICING: order lines use the product's price at checkout (the same price a
cart write would apply). Coupons discount the subtotal; shipping is added
after the discount.

STATUS: PENDING -> PAID (payment_service) -> REFUNDED (payment_service)
        PENDING -> CANCELLED (cancel_order)
Leaving PENDING/PAID through cancel or refund restocks the items and
reverses the loyalty points the order earned. Consumed coupons stay used.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Cart, Order, OrderItem, Product, User
from ..errors import (
    ValidationError,
    InvalidStateError,
    InsufficientStockError,
    OrderNotFoundError,
    ProductNotFoundError,
)
from app.time_utils import utcnow
from . import cart_service, coupon_service, loyalty_service, notification_service
from . import payment_service, shipping_service
from .concurrency import lock_for_update, run_with_retry


ORDER_PENDING = "PENDING"
ORDER_PAID = "PAID"
ORDER_CANCELLED = "CANCELLED"
ORDER_REFUNDED = "REFUNDED"


def list_orders(user_id: int) -> list[Order]:
    return (
        db.session.query(Order)
        .filter_by(user_id=user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def get_order(user_id: int, order_id: int) -> Order:
    """Orders are only visible to their owner. Raises OrderNotFoundError."""
    order = db.session.query(Order).filter_by(id=order_id, user_id=user_id).first()
    if not order:
        raise OrderNotFoundError()
    return order


def locked_order(user_id: int, order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id, user_id=user_id)).first()
    if not order:
        raise OrderNotFoundError()
    return order


def restock_items(order: Order) -> None:
    """Return every line's quantity to stock (caller's unit of work)."""
    for item in order.items:
        product = lock_for_update(db.session.query(Product).filter_by(id=item.product_id)).first()
        if product:
            product.stock += item.quantity


def create_order(
    user_id: int,
    shipping_address: str,
    payment_method_id: int | None = None,
    shipping_option_id: int | None = None,
    coupon_code: str | None = None,
) -> Order:
    """
    Check out the user's cart.

    Raises:
        ValidationError: empty cart or missing shipping address
        InsufficientStockError: a line exceeds current stock (nothing written)
        ProductNotFoundError
        ShippingOptionNotFoundError / PaymentMethodNotFoundError
        CouponNotFoundError / CouponExpiredError / CouponAlreadyUsedError
    """
    shipping_address = str(shipping_address or "").strip()
    if not shipping_address:
        raise ValidationError("shipping_address is required")
    coupon_code = str(coupon_code).strip() if coupon_code else None

    def _op():
        cart = lock_for_update(db.session.query(Cart).filter_by(user_id=user_id)).first()
        if not cart or not cart.items:
            raise ValidationError("Cart is empty")

        shipping_option = shipping_service.get_option(shipping_option_id) if shipping_option_id else None
        payment_method = payment_service.validate_method(payment_method_id) if payment_method_id else None

        order = Order(
            user_id=user_id,
            status=ORDER_PENDING,
            shipping_address=shipping_address,
            shipping_option_id=shipping_option.id if shipping_option else None,
            payment_method_id=payment_method.id if payment_method else None,
        )

        subtotal = 0
        points = 0
        for line in cart.items:
            product = lock_for_update(db.session.query(Product).filter_by(id=line.product_id)).first()
            if not product:
                raise ProductNotFoundError()
            if product.stock < line.quantity:
                raise InsufficientStockError(
                    f"Only {product.stock} of {product.name} available in stock",
                    details={
                        "product_id": product.id,
                        "requested_quantity": line.quantity,
                        "in_stock": product.stock,
                    },
                )

            product.stock -= line.quantity
            line_total = product.price_cents * line.quantity
            line_points = product.loyalty_points * line.quantity
            subtotal += line_total
            points += line_points

            order.items.append(OrderItem(
                product_id=product.id,
                quantity=line.quantity,
                unit_price_cents=product.price_cents,
                line_total_cents=line_total,
                loyalty_points=line_points,
                size=line.size,
                color=line.color,
            ))

        discount = 0
        if coupon_code:
            coupon = coupon_service.consume(coupon_code, user_id=user_id)
            discount = coupon_service.compute_discount(coupon.discount_type, coupon.value, subtotal)
            order.coupon_code = coupon.code

        shipping = shipping_option.price_cents if shipping_option else 0

        order.subtotal_cents = subtotal
        order.discount_cents = discount
        order.shipping_cents = shipping
        order.total_cents = subtotal - discount + shipping
        order.loyalty_points_earned = points

        db.session.add(order)
        db.session.flush()

        loyalty_service.earn_for_order(order)
        cart_service.clear_cart(user_id, commit=False)

        db.session.commit()
        return order

    order = run_with_retry(_op)

    current_app.logger.info(
        "Order placed id=%s user_id=%s total_cents=%s points=%s",
        order.id, user_id, order.total_cents, order.loyalty_points_earned,
    )
    send_confirmation(user_id, order.id)
    return order


def cancel_order(user_id: int, order_id: int) -> Order:
    """
    Cancel a PENDING order; restocks and reverses earned points.

    Raises OrderNotFoundError, InvalidStateError.
    """
    def _op():
        order = locked_order(user_id, order_id)
        if order.status != ORDER_PENDING:
            raise InvalidStateError(f"Cannot cancel a {order.status} order")

        restock_items(order)
        loyalty_service.reverse_for_order(order, reason="Cancelled")
        order.status = ORDER_CANCELLED
        order.cancelled_at = utcnow()
        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Order cancelled id=%s user_id=%s", order.id, user_id)
    return order


def send_confirmation(user_id: int, order_id: int) -> bool:
    """(Re)send the order confirmation. Raises OrderNotFoundError."""
    order = get_order(user_id, order_id)
    user = db.session.get(User, user_id)
    return notification_service.send_notification(
        to=user.email if user else "",
        subject=f"Order Confirmation #{order.id}",
        template="order-confirmation",
        data={"order": order.to_dict()},
    )
