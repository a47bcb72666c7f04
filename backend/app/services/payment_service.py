# Overview: Service-layer operations for payment; encapsulates business logic and database work.

"""
Payment Processing Service

WHY: Orders are placed PENDING and only become PAID once a payment is
recorded against them. No gateway is wired in; a payment succeeds when the
method is active and the order is still PENDING.

STATUS FLOW:
- PENDING -> PAID: process_payment(); pending loyalty earn is confirmed
- PAID -> REFUNDED: refund(); items restocked, earned points reversed

Failures never leak gateway detail; they surface as typed ShopErrors.
"""

from __future__ import annotations

import secrets

from flask import current_app

from ..extensions import db
from ..models import PaymentMethod
from ..errors import ValidationError, InvalidStateError, PaymentMethodNotFoundError
from app.time_utils import utcnow
from . import loyalty_service, order_service
from .concurrency import run_with_retry


def list_methods() -> list[PaymentMethod]:
    return (
        db.session.query(PaymentMethod)
        .filter_by(is_active=True)
        .order_by(PaymentMethod.id.asc())
        .all()
    )


def validate_method(method_id: int) -> PaymentMethod:
    """
    Raises:
        PaymentMethodNotFoundError: unknown method
        ValidationError: method exists but is inactive
    """
    method = db.session.get(PaymentMethod, method_id)
    if not method:
        raise PaymentMethodNotFoundError()
    if not method.is_active:
        raise ValidationError("Payment method is not available")
    return method


def _transaction_reference(order_id: int) -> str:
    return f"PAY-{order_id}-{secrets.token_hex(4).upper()}"


def process_payment(user_id: int, order_id: int, method_id: int | None = None) -> dict:
    """
    Record payment for a PENDING order.

    Falls back to the method chosen at checkout when method_id is omitted.

    Raises OrderNotFoundError, InvalidStateError, ValidationError,
    PaymentMethodNotFoundError.
    """
    def _op():
        order = order_service.locked_order(user_id, order_id)
        if order.status != order_service.ORDER_PENDING:
            raise InvalidStateError(f"Cannot pay a {order.status} order")

        chosen = method_id or order.payment_method_id
        if not chosen:
            raise ValidationError("payment_method_id is required")
        method = validate_method(chosen)

        order.payment_method_id = method.id
        order.status = order_service.ORDER_PAID
        order.paid_at = utcnow()
        loyalty_service.complete_for_order(order)

        db.session.commit()
        return order

    order = run_with_retry(_op)
    reference = _transaction_reference(order.id)
    current_app.logger.info(
        "Payment captured order_id=%s amount_cents=%s reference=%s",
        order.id, order.total_cents, reference,
    )
    return {
        "order": order.to_dict(),
        "payment": {
            "status": "succeeded",
            "transaction_id": reference,
            "amount_cents": order.total_cents,
            "payment_method_id": order.payment_method_id,
        },
    }


def refund(user_id: int, order_id: int) -> dict:
    """
    Refund a PAID order in full.

    Raises OrderNotFoundError, InvalidStateError.
    """
    def _op():
        order = order_service.locked_order(user_id, order_id)
        if order.status != order_service.ORDER_PAID:
            raise InvalidStateError(f"Cannot refund a {order.status} order")

        order_service.restock_items(order)
        loyalty_service.reverse_for_order(order, reason="Refunded")
        order.status = order_service.ORDER_REFUNDED
        order.refunded_at = utcnow()

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Refund issued order_id=%s amount_cents=%s", order.id, order.total_cents)
    return {
        "order": order.to_dict(),
        "refund": {
            "status": "succeeded",
            "amount_cents": order.total_cents,
        },
    }
