# Overview: Service-layer operations for coupons; validation, consumption and issuance.

from __future__ import annotations

import secrets
from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Coupon, LoyaltyTransaction
from ..errors import (
    ValidationError,
    ConflictError,
    CouponNotFoundError,
    CouponAlreadyUsedError,
    CouponExpiredError,
)
from app.time_utils import utcnow, is_past
from .concurrency import lock_for_update, run_with_retry


DISCOUNT_PERCENTAGE = "PERCENTAGE"
DISCOUNT_FIXED = "FIXED"
VALID_DISCOUNT_TYPES = {DISCOUNT_PERCENTAGE, DISCOUNT_FIXED}

SOURCE_LOYALTY = "LOYALTY"
SOURCE_PROMOTION = "PROMOTION"
SOURCE_BIRTHDAY = "BIRTHDAY"
SOURCE_OTHER = "OTHER"
VALID_SOURCES = {SOURCE_LOYALTY, SOURCE_PROMOTION, SOURCE_BIRTHDAY, SOURCE_OTHER}

# Basis points in 100%
FULL_PERCENT_BPS = 10_000


def _normalize_code(code: str) -> str:
    code = (code or "").strip()
    if not code:
        raise ValidationError("code is required")
    return code


def validate_discount(discount_type: str, value) -> None:
    if discount_type not in VALID_DISCOUNT_TYPES:
        raise ValidationError(f"discount_type must be one of: {', '.join(sorted(VALID_DISCOUNT_TYPES))}")
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError("value must be a positive integer")
    if discount_type == DISCOUNT_PERCENTAGE and value > FULL_PERCENT_BPS:
        raise ValidationError("PERCENTAGE value is in basis points and cannot exceed 10000")


def compute_discount(discount_type: str, value: int, order_amount_cents: int) -> int:
    """
    Discount for an order amount, never more than the amount itself.

    PERCENTAGE: amount * bps / 10000, rounded half up to the cent.
    FIXED: value cents.
    """
    if discount_type == DISCOUNT_PERCENTAGE:
        discount = (order_amount_cents * value + FULL_PERCENT_BPS // 2) // FULL_PERCENT_BPS
    else:
        discount = value
    return min(discount, order_amount_cents)


def _check_usable(coupon: Coupon) -> None:
    if coupon.is_used:
        raise CouponAlreadyUsedError("Coupon has already been used")
    if is_past(coupon.expires_at):
        raise CouponExpiredError("Coupon has expired")


def get_coupon(code: str) -> Coupon:
    """Raises CouponNotFoundError."""
    coupon = db.session.query(Coupon).filter_by(code=_normalize_code(code)).first()
    if not coupon:
        raise CouponNotFoundError()
    return coupon


def list_coupons(is_used: bool | None = None, discount_type: str | None = None) -> list[Coupon]:
    q = db.session.query(Coupon)
    if is_used is not None:
        q = q.filter_by(is_used=is_used)
    if discount_type:
        q = q.filter_by(discount_type=discount_type.upper())
    return q.order_by(Coupon.expires_at.asc()).all()


def validate(code: str, order_amount_cents: int) -> dict:
    """
    Check a coupon against an order amount without consuming it.

    Returns {is_valid, discount_amount_cents, final_amount_cents}.
    final_amount_cents is clamped at zero.

    Raises:
        ValidationError: order amount is not a non-negative integer
        CouponNotFoundError / CouponAlreadyUsedError / CouponExpiredError
    """
    if isinstance(order_amount_cents, bool) or not isinstance(order_amount_cents, int) or order_amount_cents < 0:
        raise ValidationError("order_amount_cents must be a non-negative integer")

    coupon = get_coupon(code)
    _check_usable(coupon)

    discount = compute_discount(coupon.discount_type, coupon.value, order_amount_cents)
    return {
        "is_valid": True,
        "code": coupon.code,
        "discount_type": coupon.discount_type,
        "discount_amount_cents": discount,
        "final_amount_cents": order_amount_cents - discount,
    }


def consume(code: str, *, user_id: int | None = None) -> Coupon:
    """
    Lock, re-check and mark a coupon used inside the caller's unit of work.

    Coupons owned by a user (loyalty coupons) can only be used by that user.
    Does not commit.
    """
    coupon = lock_for_update(db.session.query(Coupon).filter_by(code=_normalize_code(code))).first()
    if not coupon:
        raise CouponNotFoundError()
    if coupon.user_id is not None and user_id is not None and coupon.user_id != user_id:
        raise CouponNotFoundError()
    _check_usable(coupon)

    coupon.is_used = True
    coupon.used_at = utcnow()
    return coupon


def mark_used(code: str) -> Coupon:
    """
    Mark a coupon used.

    Raises CouponNotFoundError. Marking an already-used coupon is a no-op.
    """
    def _op():
        coupon = lock_for_update(db.session.query(Coupon).filter_by(code=_normalize_code(code))).first()
        if not coupon:
            raise CouponNotFoundError()
        if not coupon.is_used:
            coupon.is_used = True
            coupon.used_at = utcnow()
        db.session.commit()
        return coupon

    return run_with_retry(_op)


def generate_code(prefix: str | None = None) -> str:
    """LOYALTY-<epoch millis>-<random suffix>; unique with overwhelming probability."""
    if prefix is None:
        prefix = current_app.config.get("LOYALTY_COUPON_PREFIX", "LOYALTY-")
    millis = int(utcnow().timestamp() * 1000)
    return f"{prefix}{millis}-{secrets.token_hex(3).upper()}"


def issue_coupon(
    *,
    discount_type: str,
    value: int,
    expires_at: datetime,
    source: str = SOURCE_OTHER,
    user_id: int | None = None,
    code: str | None = None,
) -> Coupon:
    """
    Create a coupon row in the caller's unit of work (flush, no commit).

    Raises ValidationError, ConflictError (duplicate code).
    """
    validate_discount(discount_type, value)
    if source not in VALID_SOURCES:
        raise ValidationError(f"source must be one of: {', '.join(sorted(VALID_SOURCES))}")

    code = _normalize_code(code) if code is not None else generate_code()
    if db.session.query(Coupon.id).filter_by(code=code).first():
        raise ConflictError("Coupon code already exists")

    coupon = Coupon(
        code=code,
        discount_type=discount_type,
        value=value,
        source=source,
        user_id=user_id,
        expires_at=expires_at,
        is_used=False,
    )
    db.session.add(coupon)
    db.session.flush()
    return coupon


def create_coupon(
    code: str,
    discount_type: str,
    value: int,
    expires_at: datetime,
    source: str = SOURCE_OTHER,
    user_id: int | None = None,
) -> Coupon:
    """Administrative coupon creation. Raises ValidationError, ConflictError."""
    coupon = issue_coupon(
        code=code,
        discount_type=discount_type,
        value=value,
        expires_at=expires_at,
        source=source,
        user_id=user_id,
    )
    db.session.commit()
    return coupon


def delete_coupon(code: str) -> None:
    """Raises CouponNotFoundError, ConflictError (coupon was issued by a redemption)."""
    coupon = get_coupon(code)
    if db.session.query(LoyaltyTransaction.id).filter_by(coupon_id=coupon.id).first():
        raise ConflictError("Coupon is referenced by the loyalty ledger and cannot be deleted")
    db.session.delete(coupon)
    db.session.commit()


def list_member_coupons(user_id: int) -> list[Coupon]:
    """A member's unused, unexpired loyalty coupons, soonest expiry first."""
    return (
        db.session.query(Coupon)
        .filter(
            Coupon.user_id == user_id,
            Coupon.source == SOURCE_LOYALTY,
            Coupon.is_used.is_(False),
            Coupon.expires_at > utcnow(),
        )
        .order_by(Coupon.expires_at.asc())
        .all()
    )


def list_available_coupons() -> list[Coupon]:
    """Unused, unexpired coupons that are not tied to a specific member."""
    return (
        db.session.query(Coupon)
        .filter(
            Coupon.user_id.is_(None),
            Coupon.is_used.is_(False),
            Coupon.expires_at > utcnow(),
        )
        .order_by(Coupon.expires_at.asc())
        .all()
    )
