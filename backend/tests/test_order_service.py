"""
Checkout, payment and refund tests.

Verifies:
- Checkout prices lines at checkout time, decrements stock and clears the cart
- Coupons are consumed by checkout
- Members earn PENDING points that complete on payment
- Cancel/refund restock and append a reversal row
"""

import pytest

from app.errors import (
    CouponAlreadyUsedError,
    InsufficientStockError,
    InvalidStateError,
    OrderNotFoundError,
    ValidationError,
)
from app.models import Cart, LoyaltyTransaction, Product
from app.services import (
    cart_service,
    coupon_service,
    loyalty_service,
    order_service,
    payment_service,
    shipping_service,
)
from app.time_utils import days_from_now


ADDRESS = "1 Main St, Springfield"


def _standard_option():
    return next(o for o in shipping_service.list_options() if o.name == "Standard")


def _card():
    return next(m for m in payment_service.list_methods() if m.name == "Credit Card")


def _checkout(user, **kwargs):
    return order_service.create_order(
        user.id,
        ADDRESS,
        payment_method_id=kwargs.pop("payment_method_id", _card().id),
        shipping_option_id=kwargs.pop("shipping_option_id", _standard_option().id),
        **kwargs,
    )


class TestCheckout:
    def test_checkout_totals_stock_and_cart(self, db_session, reference_data, shopper, product, second_product):
        cart_service.add_item(shopper.id, product.id, 2)
        cart_service.add_item(shopper.id, second_product.id, 1)

        order = _checkout(shopper)

        assert order.status == "PENDING"
        assert order.subtotal_cents == 2 * 2000 + 5000
        assert order.shipping_cents == 599
        assert order.discount_cents == 0
        assert order.total_cents == 9000 + 599
        assert order.loyalty_points_earned == 2 * 20 + 50
        assert len(order.items) == 2

        assert db_session.get(Product, product.id).stock == 3
        assert db_session.get(Product, second_product.id).stock == 9

        cart = db_session.query(Cart).filter_by(user_id=shopper.id).one()
        assert cart.items == []
        assert cart.subtotal_cents == 0

    def test_checkout_consumes_coupon(self, db_session, reference_data, shopper, product):
        coupon_service.create_coupon("SAVE5", "FIXED", 500, days_from_now(30))
        cart_service.add_item(shopper.id, product.id, 1)

        order = _checkout(shopper, coupon_code="SAVE5")

        assert order.discount_cents == 500
        assert order.total_cents == 2000 - 500 + 599
        assert coupon_service.get_coupon("SAVE5").is_used is True

        cart_service.add_item(shopper.id, product.id, 1)
        with pytest.raises(CouponAlreadyUsedError):
            _checkout(shopper, coupon_code="SAVE5")

    def test_empty_cart(self, db_session, reference_data, shopper):
        with pytest.raises(ValidationError):
            _checkout(shopper)

    def test_stock_shortfall_writes_nothing(self, db_session, reference_data, shopper, product):
        cart_service.add_item(shopper.id, product.id, 3)
        product.stock = 2
        db_session.commit()

        with pytest.raises(InsufficientStockError):
            _checkout(shopper)

        db_session.expire_all()
        assert db_session.get(Product, product.id).stock == 2
        assert len(cart_service.get_cart(shopper.id).items) == 1
        assert order_service.list_orders(shopper.id) == []

    def test_orders_are_private(self, db_session, reference_data, shopper, other_shopper, product):
        cart_service.add_item(shopper.id, product.id, 1)
        order = _checkout(shopper)

        with pytest.raises(OrderNotFoundError):
            order_service.get_order(other_shopper.id, order.id)


class TestLoyaltyHooks:
    def test_member_earns_pending_then_completed(self, db_session, reference_data, shopper, product):
        loyalty_service.enroll(shopper.id)
        cart_service.add_item(shopper.id, product.id, 2)

        order = _checkout(shopper)
        earned = db_session.query(LoyaltyTransaction).filter_by(order_id=order.id).one()
        assert earned.status == "PENDING"
        assert earned.points == 40

        payment_service.process_payment(shopper.id, order.id)

        db_session.expire_all()
        assert db_session.get(LoyaltyTransaction, earned.id).status == "COMPLETED"
        assert loyalty_service.get_balance(shopper.id) == 40

    def test_non_member_earns_nothing(self, db_session, reference_data, shopper, product):
        cart_service.add_item(shopper.id, product.id, 1)
        order = _checkout(shopper)
        assert db_session.query(LoyaltyTransaction).filter_by(order_id=order.id).count() == 0

    def test_cancel_restocks_and_reverses(self, db_session, reference_data, shopper, product):
        loyalty_service.enroll(shopper.id)
        cart_service.add_item(shopper.id, product.id, 2)
        order = _checkout(shopper)

        cancelled = order_service.cancel_order(shopper.id, order.id)

        assert cancelled.status == "CANCELLED"
        assert cancelled.cancelled_at is not None
        assert db_session.get(Product, product.id).stock == 5

        rows = db_session.query(LoyaltyTransaction).filter_by(order_id=order.id).all()
        by_type = {r.transaction_type: r for r in rows}
        assert by_type["EARNED"].status == "CANCELLED"
        assert by_type["CANCELLED"].points == 40
        assert loyalty_service.get_balance(shopper.id) == 0

        with pytest.raises(InvalidStateError):
            order_service.cancel_order(shopper.id, order.id)


class TestPayments:
    def test_process_payment(self, db_session, reference_data, shopper, product):
        cart_service.add_item(shopper.id, product.id, 1)
        order = _checkout(shopper)

        result = payment_service.process_payment(shopper.id, order.id)

        assert result["order"]["status"] == "PAID"
        assert result["payment"]["status"] == "succeeded"
        assert result["payment"]["amount_cents"] == order.total_cents
        assert result["payment"]["transaction_id"].startswith(f"PAY-{order.id}-")

        with pytest.raises(InvalidStateError):
            payment_service.process_payment(shopper.id, order.id)

    def test_paid_order_cannot_be_cancelled(self, db_session, reference_data, shopper, product):
        cart_service.add_item(shopper.id, product.id, 1)
        order = _checkout(shopper)
        payment_service.process_payment(shopper.id, order.id)

        with pytest.raises(InvalidStateError):
            order_service.cancel_order(shopper.id, order.id)

    def test_refund_restocks_and_reverses(self, db_session, reference_data, shopper, product):
        loyalty_service.enroll(shopper.id)
        cart_service.add_item(shopper.id, product.id, 3)
        order = _checkout(shopper)
        payment_service.process_payment(shopper.id, order.id)

        result = payment_service.refund(shopper.id, order.id)

        assert result["order"]["status"] == "REFUNDED"
        assert db_session.get(Product, product.id).stock == 5
        assert loyalty_service.get_balance(shopper.id) == 0

        with pytest.raises(InvalidStateError):
            payment_service.refund(shopper.id, order.id)

    def test_pending_order_cannot_be_refunded(self, db_session, reference_data, shopper, product):
        cart_service.add_item(shopper.id, product.id, 1)
        order = _checkout(shopper)
        with pytest.raises(InvalidStateError):
            payment_service.refund(shopper.id, order.id)


class TestShipping:
    def test_quote(self, db_session, reference_data):
        option = _standard_option()
        quote = shipping_service.calculate(option.id, ADDRESS)
        assert quote["price_cents"] == 599
        assert quote["estimated_days"] == 5

    def test_quote_requires_address(self, db_session, reference_data):
        with pytest.raises(ValidationError):
            shipping_service.calculate(_standard_option().id, "  ")
