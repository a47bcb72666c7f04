"""
Loyalty ledger tests.

Verifies:
- Balance is a fold over every ledger row, after any sequence of writes
- Enrollment is single-shot and writes an audit row
- Redemption debits points and issues a coupon atomically
- Transaction status only moves out of PENDING
- Tier lookups never promote an enrollment
"""

import random
from datetime import timedelta

import pytest

from app.errors import (
    AlreadyEnrolledError,
    ConflictError,
    InsufficientPointsError,
    InvalidStateError,
    NotEnrolledError,
    RewardInactiveError,
    TierNotFoundError,
    ValidationError,
)
from app.models import Coupon, LoyaltyEnrollment, LoyaltyTransaction, User
from app.services import coupon_service, loyalty_service
from app.time_utils import as_utc_naive


def _reward(points_required=200, validity_days=7, discount_type="FIXED", value=500):
    return loyalty_service.create_reward({
        "name": f"{value} off",
        "points_required": points_required,
        "validity_days": validity_days,
        "discount_type": discount_type,
        "value": value,
    })


# =============================================================================
# BALANCE FOLD
# =============================================================================


class TestBalanceFold:
    def test_earned_adds_everything_else_subtracts(self):
        rows = [("EARNED", 100), ("REDEEMED", 30), ("CANCELLED", 20), ("EXPIRED", 10)]
        assert loyalty_service._fold_balance(rows) == 40

    def test_empty_ledger_is_zero(self):
        assert loyalty_service._fold_balance([]) == 0

    def test_sql_sum_matches_fold_across_statuses(self, db_session, reference_data, shopper):
        loyalty_service.enroll(shopper.id)
        loyalty_service.create_transaction(shopper.id, "EARNED", 300, "Bonus")
        loyalty_service.create_transaction(shopper.id, "earned", 50, "Pending bonus", status="PENDING")
        loyalty_service.create_transaction(shopper.id, "EXPIRED", 25, "Expiry")

        rows = db_session.query(LoyaltyTransaction).filter_by(user_id=shopper.id).all()
        assert loyalty_service.get_balance(shopper.id) == loyalty_service._fold_balance(rows) == 325


class TestBalanceOverOperationSequences:
    """The stored-ledger balance equals the fold after every step of a random history."""

    @pytest.mark.parametrize("seed", range(8))
    def test_balance_matches_fold_after_every_step(self, db_session, reference_data, shopper, seed):
        rng = random.Random(seed)
        loyalty_service.enroll(shopper.id)
        rewards = loyalty_service.list_rewards()
        pending = []

        for step in range(30):
            action = rng.choice(["append", "append", "settle", "redeem"])
            if action == "settle" and pending:
                txn_id = pending.pop(rng.randrange(len(pending)))
                loyalty_service.update_transaction_status(
                    txn_id, rng.choice(["COMPLETED", "CANCELLED", "FAILED"])
                )
            elif action == "redeem":
                try:
                    loyalty_service.redeem(shopper.id, rng.choice(rewards).id)
                except InsufficientPointsError:
                    pass
            else:
                txn = loyalty_service.create_transaction(
                    shopper.id,
                    rng.choice(["EARNED", "EARNED", "EARNED", "REDEEMED", "CANCELLED", "EXPIRED"]),
                    rng.randint(1, 400),
                    f"Step {step}",
                    status=rng.choice(["PENDING", "COMPLETED"]),
                )
                if txn.status == "PENDING":
                    pending.append(txn.id)

            db_session.expire_all()
            rows = db_session.query(LoyaltyTransaction).filter_by(user_id=shopper.id).all()
            assert loyalty_service.get_balance(shopper.id) == loyalty_service._fold_balance(rows)


# =============================================================================
# ENROLLMENT
# =============================================================================


class TestEnrollment:
    def test_enroll_places_member_in_base_tier(self, db_session, reference_data, shopper):
        result = loyalty_service.enroll(shopper.id)

        assert result["tier"]["name"] == "Bronze"
        assert result["enrollment"]["user_id"] == shopper.id
        assert db_session.get(User, shopper.id).is_loyalty_member is True

        rows = loyalty_service.list_transactions(shopper.id)
        assert len(rows) == 1
        assert rows[0].points == 0
        assert rows[0].status == "COMPLETED"
        assert loyalty_service.get_balance(shopper.id) == 0

    def test_second_enroll_conflicts_without_writing(self, db_session, reference_data, shopper):
        loyalty_service.enroll(shopper.id)

        with pytest.raises(AlreadyEnrolledError):
            loyalty_service.enroll(shopper.id)

        assert db_session.query(LoyaltyEnrollment).filter_by(user_id=shopper.id).count() == 1
        assert db_session.query(LoyaltyTransaction).filter_by(user_id=shopper.id).count() == 1

    def test_balance_requires_enrollment(self, db_session, reference_data, shopper):
        with pytest.raises(NotEnrolledError):
            loyalty_service.get_balance(shopper.id)


# =============================================================================
# TRANSACTIONS
# =============================================================================


class TestTransactions:
    def test_pending_row_can_complete_once(self, db_session, reference_data, shopper):
        loyalty_service.enroll(shopper.id)
        txn = loyalty_service.create_transaction(shopper.id, "EARNED", 100, "Deferred", status="PENDING")

        updated = loyalty_service.update_transaction_status(txn.id, "completed")
        assert updated.status == "COMPLETED"

        with pytest.raises(InvalidStateError):
            loyalty_service.update_transaction_status(txn.id, "CANCELLED")

    def test_pending_is_not_a_target_status(self, db_session, reference_data, shopper):
        loyalty_service.enroll(shopper.id)
        txn = loyalty_service.create_transaction(shopper.id, "EARNED", 100, "Deferred", status="PENDING")

        with pytest.raises(ValidationError):
            loyalty_service.update_transaction_status(txn.id, "PENDING")

    @pytest.mark.parametrize(
        "txn_type,points,status",
        [
            ("BONUS", 10, "COMPLETED"),
            ("EARNED", -5, "COMPLETED"),
            ("EARNED", 10, "FAILED"),
        ],
    )
    def test_rejects_bad_rows(self, db_session, reference_data, shopper, txn_type, points, status):
        loyalty_service.enroll(shopper.id)
        with pytest.raises(ValidationError):
            loyalty_service.create_transaction(shopper.id, txn_type, points, "Bad row", status=status)

    def test_requires_enrollment(self, db_session, reference_data, shopper):
        with pytest.raises(NotEnrolledError):
            loyalty_service.create_transaction(shopper.id, "EARNED", 10, "Not a member")


# =============================================================================
# REDEMPTION
# =============================================================================


class TestRedemption:
    def test_earn_then_redeem(self, db_session, reference_data, shopper):
        loyalty_service.enroll(shopper.id)
        loyalty_service.create_transaction(shopper.id, "EARNED", 250, "Purchase")
        reward = _reward(points_required=200, validity_days=7)

        result = loyalty_service.redeem(shopper.id, reward.id)

        assert result["balance"] == 50
        assert loyalty_service.get_balance(shopper.id) == 50
        assert result["transaction"]["type"] == "REDEEMED"
        assert result["transaction"]["points"] == 200

        coupon = db_session.query(Coupon).filter_by(code=result["coupon"]["code"]).one()
        assert coupon.user_id == shopper.id
        assert coupon.source == "LOYALTY"
        assert coupon.discount_type == "FIXED"
        assert coupon.value == 500
        assert coupon.is_used is False

        txn = db_session.get(LoyaltyTransaction, result["transaction"]["id"])
        assert txn.coupon_id == coupon.id
        assert as_utc_naive(coupon.expires_at) - as_utc_naive(txn.occurred_at) == timedelta(days=7)

    def test_insufficient_points_writes_nothing(self, db_session, reference_data, shopper):
        loyalty_service.enroll(shopper.id)
        loyalty_service.create_transaction(shopper.id, "EARNED", 150, "Purchase")
        reward = _reward(points_required=200)

        with pytest.raises(InsufficientPointsError) as exc:
            loyalty_service.redeem(shopper.id, reward.id)

        assert exc.value.details == {"available": 150, "required": 200}
        assert db_session.query(Coupon).count() == 0
        assert loyalty_service.get_balance(shopper.id) == 150

    def test_coupon_failure_rolls_back_debit(self, db_session, reference_data, shopper, monkeypatch):
        loyalty_service.enroll(shopper.id)
        loyalty_service.create_transaction(shopper.id, "EARNED", 500, "Purchase")
        reward = _reward(points_required=200)

        def _fail(**kwargs):
            raise ConflictError("Coupon code already exists")

        monkeypatch.setattr(coupon_service, "issue_coupon", _fail)

        with pytest.raises(ConflictError):
            loyalty_service.redeem(shopper.id, reward.id)

        assert (
            db_session.query(LoyaltyTransaction)
            .filter_by(user_id=shopper.id, transaction_type="REDEEMED")
            .count()
            == 0
        )
        assert loyalty_service.get_balance(shopper.id) == 500

    def test_inactive_reward(self, db_session, reference_data, shopper):
        loyalty_service.enroll(shopper.id)
        loyalty_service.create_transaction(shopper.id, "EARNED", 500, "Purchase")
        reward = _reward(points_required=200)
        loyalty_service.set_reward_active(reward.id, False)

        with pytest.raises(RewardInactiveError):
            loyalty_service.redeem(shopper.id, reward.id)

    def test_non_member_cannot_redeem(self, db_session, reference_data, shopper):
        reward = _reward(points_required=200)
        with pytest.raises(NotEnrolledError):
            loyalty_service.redeem(shopper.id, reward.id)

    def test_redeemed_coupon_is_listed_for_member(self, db_session, reference_data, shopper):
        loyalty_service.enroll(shopper.id)
        loyalty_service.create_transaction(shopper.id, "EARNED", 500, "Purchase")
        reward = _reward(points_required=200)
        result = loyalty_service.redeem(shopper.id, reward.id)

        codes = [c.code for c in coupon_service.list_member_coupons(shopper.id)]
        assert result["coupon"]["code"] in codes


# =============================================================================
# TIERS
# =============================================================================


class TestTiers:
    def test_calculate_tier_with_next(self, db_session, reference_data):
        result = loyalty_service.calculate_tier(1200)
        assert result["tier"]["name"] == "Silver"
        assert result["next_tier"]["name"] == "Gold"
        assert result["next_tier"]["remaining_points"] == 3800

    def test_calculate_top_tier_has_no_next(self, db_session, reference_data):
        result = loyalty_service.calculate_tier(6000)
        assert result["tier"]["name"] == "Gold"
        assert "next_tier" not in result

    @pytest.mark.parametrize("points", [-1, "100", 1.5, True])
    def test_calculate_tier_rejects_bad_points(self, db_session, reference_data, points):
        with pytest.raises(ValidationError):
            loyalty_service.calculate_tier(points)

    def test_balance_does_not_promote(self, db_session, reference_data, shopper):
        loyalty_service.enroll(shopper.id)
        loyalty_service.create_transaction(shopper.id, "EARNED", 6000, "Big spender")

        status = loyalty_service.get_status(shopper.id)

        assert status["tier"]["name"] == "Bronze"
        assert status["points"]["available"] == 6000
        assert status["next_tier"]["name"] == "Silver"
        assert status["next_tier"]["remaining_points"] == 0

    def test_admin_tier_move(self, db_session, reference_data, shopper):
        loyalty_service.enroll(shopper.id)
        loyalty_service.set_member_tier(shopper.id, "Gold")

        status = loyalty_service.get_status(shopper.id)
        assert status["tier"]["name"] == "Gold"
        assert "next_tier" not in status

    def test_unknown_tier(self, db_session, reference_data):
        with pytest.raises(TierNotFoundError):
            loyalty_service.get_tier("Platinum")

    def test_threshold_clash(self, db_session, reference_data):
        with pytest.raises(ConflictError):
            loyalty_service.upsert_tier("Platinum", 5000, "2.00")

    def test_base_tier_keeps_zero_threshold(self, db_session, reference_data):
        with pytest.raises(ValidationError):
            loyalty_service.upsert_tier("Bronze", 10, "1.00")

    def test_banner_points_to_next_tier(self, db_session, reference_data, shopper):
        loyalty_service.enroll(shopper.id)
        loyalty_service.create_transaction(shopper.id, "EARNED", 400, "Purchase")

        banner = loyalty_service.get_banner(shopper.id)
        assert banner["current_tier"] == "Bronze"
        assert banner["next_tier"] == "Silver"
        assert banner["points_to_next_tier"] == 600
