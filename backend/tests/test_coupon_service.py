"""
Coupon tests.

Verifies:
- FIXED and PERCENTAGE (basis points) discount math
- Expired and used coupons are rejected
- Final amount never goes below zero
- Coupons issued by a redemption cannot be deleted
"""

from datetime import timedelta

import pytest

from app.errors import (
    ConflictError,
    CouponAlreadyUsedError,
    CouponExpiredError,
    CouponNotFoundError,
    ValidationError,
)
from app.services import coupon_service, loyalty_service
from app.time_utils import days_from_now, utcnow


def _coupon(code, discount_type="FIXED", value=500, expires_at=None, **kwargs):
    return coupon_service.create_coupon(
        code=code,
        discount_type=discount_type,
        value=value,
        expires_at=expires_at or days_from_now(30),
        **kwargs,
    )


class TestDiscountMath:
    @pytest.mark.parametrize(
        "discount_type,value,amount,expected",
        [
            ("FIXED", 500, 2000, 500),
            ("FIXED", 500, 300, 300),
            ("PERCENTAGE", 1000, 10000, 1000),
            ("PERCENTAGE", 1000, 1005, 101),
            ("PERCENTAGE", 10000, 4200, 4200),
        ],
    )
    def test_compute_discount(self, discount_type, value, amount, expected):
        assert coupon_service.compute_discount(discount_type, value, amount) == expected

    @pytest.mark.parametrize(
        "discount_type,value",
        [("FIXED", 0), ("FIXED", -5), ("PERCENTAGE", 10001), ("BOGO", 100), ("FIXED", "5")],
    )
    def test_rejects_bad_discounts(self, discount_type, value):
        with pytest.raises(ValidationError):
            coupon_service.validate_discount(discount_type, value)


class TestValidate:
    def test_fixed_coupon(self, db_session):
        _coupon("SAVE5", "FIXED", 500)

        result = coupon_service.validate("SAVE5", 2000)
        assert result["is_valid"] is True
        assert result["discount_amount_cents"] == 500
        assert result["final_amount_cents"] == 1500

    def test_percentage_coupon(self, db_session):
        _coupon("TENPCT", "PERCENTAGE", 1000)

        result = coupon_service.validate("TENPCT", 10000)
        assert result["discount_amount_cents"] == 1000
        assert result["final_amount_cents"] == 9000

    def test_final_amount_clamped_at_zero(self, db_session):
        _coupon("BIG", "FIXED", 5000)

        result = coupon_service.validate("BIG", 1200)
        assert result["discount_amount_cents"] == 1200
        assert result["final_amount_cents"] == 0

    def test_expired(self, db_session):
        _coupon("OLD", expires_at=utcnow() - timedelta(minutes=1))
        with pytest.raises(CouponExpiredError):
            coupon_service.validate("OLD", 2000)

    def test_used(self, db_session):
        _coupon("ONCE")
        coupon_service.mark_used("ONCE")
        with pytest.raises(CouponAlreadyUsedError):
            coupon_service.validate("ONCE", 2000)

    def test_unknown(self, db_session):
        with pytest.raises(CouponNotFoundError):
            coupon_service.validate("NOPE", 2000)

    def test_validate_does_not_consume(self, db_session):
        _coupon("AGAIN")
        coupon_service.validate("AGAIN", 2000)
        assert coupon_service.get_coupon("AGAIN").is_used is False

    @pytest.mark.parametrize("amount", [-1, "2000", None])
    def test_rejects_bad_amount(self, db_session, amount):
        _coupon("SAVE5")
        with pytest.raises(ValidationError):
            coupon_service.validate("SAVE5", amount)


class TestLifecycle:
    def test_mark_used_is_idempotent(self, db_session):
        _coupon("TWICE")
        first = coupon_service.mark_used("TWICE")
        used_at = first.used_at

        second = coupon_service.mark_used("TWICE")
        assert second.is_used is True
        assert second.used_at == used_at

    def test_duplicate_code(self, db_session):
        _coupon("DUP")
        with pytest.raises(ConflictError):
            _coupon("DUP")

    def test_member_coupon_not_usable_by_others(self, db_session, shopper, other_shopper):
        _coupon("MINE", source="LOYALTY", user_id=shopper.id)
        with pytest.raises(CouponNotFoundError):
            coupon_service.consume("MINE", user_id=other_shopper.id)

    def test_available_excludes_member_and_expired(self, db_session, shopper):
        _coupon("PUBLIC")
        _coupon("PRIVATE", source="LOYALTY", user_id=shopper.id)
        _coupon("STALE", expires_at=utcnow() - timedelta(days=1))

        codes = [c.code for c in coupon_service.list_available_coupons()]
        assert codes == ["PUBLIC"]

    def test_redemption_coupon_cannot_be_deleted(self, db_session, reference_data, shopper):
        loyalty_service.enroll(shopper.id)
        loyalty_service.create_transaction(shopper.id, "EARNED", 1000, "Purchase")
        reward = loyalty_service.list_rewards()[0]
        result = loyalty_service.redeem(shopper.id, reward.id)

        with pytest.raises(ConflictError):
            coupon_service.delete_coupon(result["coupon"]["code"])

    def test_delete_plain_coupon(self, db_session):
        _coupon("GONE")
        coupon_service.delete_coupon("GONE")
        with pytest.raises(CouponNotFoundError):
            coupon_service.get_coupon("GONE")
