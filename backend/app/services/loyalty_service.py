# Overview: Service-layer operations for the loyalty ledger; balances, tiers, enrollment and redemption.

"""
Loyalty Ledger

The ledger is the append-only sequence of LoyaltyTransaction rows. A
member's balance is never stored; it is always the fold of their rows:

    EARNED adds points; REDEEMED, CANCELLED and EXPIRED subtract points.

Status does not affect the fold and the tier multiplier is display-only.

INVARIANTS:
- Rows are never deleted; only status moves (PENDING -> COMPLETED |
  CANCELLED | FAILED). COMPLETED is terminal.
- Reversal is modeled by appending a CANCELLED row, never by editing the
  original row's points.
- The enrolled tier is authoritative. Nothing here promotes a member when
  their balance crosses a threshold; set_member_tier() is the only way to
  move them.
- redeem() writes the REDEEMED row and the coupon in one unit of work,
  serialized per member through the enrollment row (lock + version bump),
  and retried on conflict so concurrent redemptions cannot overdraw.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from flask import current_app
from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    User,
    LoyaltyTier,
    LoyaltyTierPerk,
    LoyaltyEnrollment,
    LoyaltyTransaction,
    LoyaltyReward,
    Order,
)
from ..errors import (
    ValidationError,
    ConflictError,
    ConfigurationError,
    InvalidStateError,
    InsufficientPointsError,
    RewardInactiveError,
    RewardNotFoundError,
    TierNotFoundError,
    TransactionNotFoundError,
    UserNotFoundError,
    NotEnrolledError,
    AlreadyEnrolledError,
)
from app.time_utils import utcnow, days_from_now
from . import coupon_service, notification_service
from .concurrency import lock_for_update, run_with_retry


# =============================================================================
# TRANSACTION TYPES / STATUSES (CONSTANTS)
# =============================================================================

TXN_EARNED = "EARNED"
TXN_REDEEMED = "REDEEMED"
TXN_CANCELLED = "CANCELLED"
TXN_EXPIRED = "EXPIRED"
VALID_TXN_TYPES = {TXN_EARNED, TXN_REDEEMED, TXN_CANCELLED, TXN_EXPIRED}

STATUS_PENDING = "PENDING"
STATUS_COMPLETED = "COMPLETED"
STATUS_CANCELLED = "CANCELLED"
STATUS_FAILED = "FAILED"
CREATABLE_STATUSES = {STATUS_PENDING, STATUS_COMPLETED}
PENDING_TRANSITIONS = {STATUS_COMPLETED, STATUS_CANCELLED, STATUS_FAILED}


# =============================================================================
# BALANCE
# =============================================================================

def _signed_points(transaction_type: str, points: int) -> int:
    return points if transaction_type == TXN_EARNED else -points


def _fold_balance(transactions) -> int:
    """Pure fold over (type, points) pairs or LoyaltyTransaction rows."""
    total = 0
    for txn in transactions:
        if isinstance(txn, LoyaltyTransaction):
            total += _signed_points(txn.transaction_type, txn.points)
        else:
            txn_type, points = txn
            total += _signed_points(txn_type, points)
    return total


def _ledger_sum(user_id: int) -> int:
    signed = case(
        (LoyaltyTransaction.transaction_type == TXN_EARNED, LoyaltyTransaction.points),
        else_=-LoyaltyTransaction.points,
    )
    total = (
        db.session.query(func.coalesce(func.sum(signed), 0))
        .filter(LoyaltyTransaction.user_id == user_id)
        .scalar()
    )
    return int(total or 0)


def get_enrollment(user_id: int) -> LoyaltyEnrollment:
    """Raises NotEnrolledError."""
    enrollment = db.session.query(LoyaltyEnrollment).filter_by(user_id=user_id).first()
    if not enrollment:
        raise NotEnrolledError()
    return enrollment


def is_enrolled(user_id: int) -> bool:
    return db.session.query(LoyaltyEnrollment.id).filter_by(user_id=user_id).first() is not None


def get_balance(user_id: int) -> int:
    """Current point balance folded from the ledger. Raises NotEnrolledError."""
    get_enrollment(user_id)
    return _ledger_sum(user_id)


# =============================================================================
# TIERS
# =============================================================================

def list_tiers() -> list[LoyaltyTier]:
    return db.session.query(LoyaltyTier).order_by(LoyaltyTier.required_points.asc()).all()


def get_tier(name: str) -> LoyaltyTier:
    """Raises TierNotFoundError."""
    if not isinstance(name, str) or not name.strip():
        raise TierNotFoundError()
    tier = db.session.get(LoyaltyTier, name.strip())
    if not tier:
        raise TierNotFoundError()
    return tier


def get_base_tier() -> LoyaltyTier:
    """The zero-threshold tier. Its absence is a deployment error."""
    tier = db.session.query(LoyaltyTier).filter_by(required_points=0).first()
    if not tier:
        raise ConfigurationError("Base loyalty tier (required_points = 0) is not configured")
    return tier


def get_next_tier(tier: LoyaltyTier) -> LoyaltyTier | None:
    return (
        db.session.query(LoyaltyTier)
        .filter(LoyaltyTier.required_points > tier.required_points)
        .order_by(LoyaltyTier.required_points.asc())
        .first()
    )


def calculate_tier(points: int) -> dict:
    """
    Informational lookup: the tier a balance of `points` would qualify for.

    Does not change any enrollment.
    """
    if isinstance(points, bool) or not isinstance(points, int) or points < 0:
        raise ValidationError("points must be a non-negative integer")

    tier = (
        db.session.query(LoyaltyTier)
        .filter(LoyaltyTier.required_points <= points)
        .order_by(LoyaltyTier.required_points.desc())
        .first()
    )
    if not tier:
        raise ConfigurationError("Base loyalty tier (required_points = 0) is not configured")

    result = {"points": points, "tier": tier.to_dict()}
    next_tier = get_next_tier(tier)
    if next_tier:
        result["next_tier"] = {
            "name": next_tier.name,
            "required_points": next_tier.required_points,
            "multiplier": float(next_tier.multiplier),
            "remaining_points": next_tier.required_points - points,
        }
    return result


def _parse_multiplier(value) -> Decimal:
    try:
        multiplier = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError("multiplier must be a decimal number")
    if multiplier < 1:
        raise ValidationError("multiplier must be >= 1")
    return multiplier.quantize(Decimal("0.01"))


def upsert_tier(name: str, required_points: int, multiplier, perks: list[str] | None = None) -> LoyaltyTier:
    """
    Create or update a tier (administrative).

    Raises:
        ValidationError: bad name/threshold/multiplier, or the change would
            leave no zero-threshold tier
        ConflictError: another tier already uses this threshold
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    if isinstance(required_points, bool) or not isinstance(required_points, int) or required_points < 0:
        raise ValidationError("required_points must be a non-negative integer")
    multiplier = _parse_multiplier(multiplier)
    if perks is not None and (not isinstance(perks, list) or not all(isinstance(p, str) and p.strip() for p in perks)):
        raise ValidationError("perks must be a list of non-empty strings")

    clash = (
        db.session.query(LoyaltyTier)
        .filter(LoyaltyTier.required_points == required_points, LoyaltyTier.name != name)
        .first()
    )
    if clash:
        raise ConflictError(f"Tier {clash.name} already requires {required_points} points")

    tier = db.session.get(LoyaltyTier, name)
    if tier is None:
        tier = LoyaltyTier(name=name)
        db.session.add(tier)
    elif tier.required_points == 0 and required_points != 0:
        raise ValidationError("The base tier must keep required_points = 0")

    tier.required_points = required_points
    tier.multiplier = multiplier

    if perks is not None:
        for perk in list(tier.perks):
            tier.perks.remove(perk)
        db.session.flush()
        for position, perk in enumerate(perks):
            tier.perks.append(LoyaltyTierPerk(position=position, perk=perk.strip()))

    db.session.commit()
    return tier


def set_member_tier(user_id: int, tier_name: str) -> LoyaltyEnrollment:
    """Explicit administrative tier move. Raises NotEnrolledError, TierNotFoundError."""
    def _op():
        enrollment = lock_for_update(db.session.query(LoyaltyEnrollment).filter_by(user_id=user_id)).first()
        if not enrollment:
            raise NotEnrolledError()
        tier = get_tier(tier_name)
        enrollment.tier_name = tier.name
        db.session.commit()
        return enrollment

    return run_with_retry(_op)


# =============================================================================
# STATUS
# =============================================================================

def get_status(user_id: int) -> dict:
    """
    Enrolled tier, balance and the next tier above the enrolled one.

    The tier is NOT re-derived from the balance.

    Raises NotEnrolledError, TierNotFoundError.
    """
    enrollment = get_enrollment(user_id)
    tier = get_tier(enrollment.tier_name)
    balance = _ledger_sum(user_id)

    status = {
        "tier": {
            "name": tier.name,
            "required_points": tier.required_points,
            "multiplier": float(tier.multiplier),
            "perks": [p.perk for p in tier.perks],
        },
        "points": {
            "available": balance,
            "total": balance,
        },
        "enrolled_at": enrollment.to_dict()["enrolled_at"],
    }

    next_tier = get_next_tier(tier)
    if next_tier:
        status["next_tier"] = {
            "name": next_tier.name,
            "required_points": next_tier.required_points,
            "multiplier": float(next_tier.multiplier),
            "remaining_points": max(0, next_tier.required_points - balance),
        }
    return status


def get_banner(user_id: int) -> dict:
    status = get_status(user_id)
    next_tier = status.get("next_tier")
    if next_tier:
        cta_text = f"Earn {next_tier['remaining_points']} more points to reach {next_tier['name']} Tier"
        cta_link = "/products"
    else:
        cta_text = "You have reached the highest tier!"
        cta_link = None

    return {
        "title": f"Welcome to {status['tier']['name']} Tier!",
        "description": f"You have {status['points']['available']} points available.",
        "cta_text": cta_text,
        "cta_link": cta_link,
        "points_to_next_tier": next_tier["remaining_points"] if next_tier else None,
        "current_tier": status["tier"]["name"],
        "next_tier": next_tier["name"] if next_tier else None,
    }


# =============================================================================
# ENROLLMENT
# =============================================================================

def enroll(user_id: int, *, commit: bool = True) -> dict:
    """
    Enroll a user in the base tier and record a zero-point audit row.

    Raises:
        UserNotFoundError
        AlreadyEnrolledError: enrollment exists (no write performed)
        ConfigurationError: no zero-threshold tier
    """
    user = db.session.get(User, user_id)
    if not user:
        raise UserNotFoundError()
    if is_enrolled(user_id):
        raise AlreadyEnrolledError()

    base_tier = get_base_tier()

    enrollment = LoyaltyEnrollment(user_id=user_id, tier_name=base_tier.name, enrolled_at=utcnow())
    db.session.add(enrollment)
    db.session.add(LoyaltyTransaction(
        user_id=user_id,
        transaction_type=TXN_EARNED,
        points=0,
        description="Enrolled in loyalty program",
        status=STATUS_COMPLETED,
        occurred_at=utcnow(),
    ))
    user.is_loyalty_member = True

    if commit:
        try:
            db.session.commit()
        except IntegrityError:
            # Concurrent enrollment won the unique constraint
            db.session.rollback()
            raise AlreadyEnrolledError()

    return {
        "enrollment": enrollment.to_dict(),
        "tier": base_tier.to_dict(),
    }


# =============================================================================
# TRANSACTIONS
# =============================================================================

def _normalize_txn_type(transaction_type) -> str:
    value = str(transaction_type or "").strip().upper()
    if value not in VALID_TXN_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(sorted(VALID_TXN_TYPES))}")
    return value


def _validate_points(points) -> int:
    if isinstance(points, bool) or not isinstance(points, int) or points < 0:
        raise ValidationError("points must be a non-negative integer")
    return points


def create_transaction(
    user_id: int,
    transaction_type: str,
    points: int,
    description: str,
    status: str = STATUS_COMPLETED,
    *,
    order_id: int | None = None,
    commit: bool = True,
) -> LoyaltyTransaction:
    """
    Append a ledger row.

    Direct writes land COMPLETED; deferred/administrative ones may be
    created PENDING. The balance is not cached anywhere.

    Raises ValidationError, NotEnrolledError.
    """
    transaction_type = _normalize_txn_type(transaction_type)
    points = _validate_points(points)
    description = (description or "").strip()
    if not description:
        raise ValidationError("description is required")
    status = str(status or "").strip().upper()
    if status not in CREATABLE_STATUSES:
        raise ValidationError("status must be PENDING or COMPLETED")

    get_enrollment(user_id)

    txn = LoyaltyTransaction(
        user_id=user_id,
        transaction_type=transaction_type,
        points=points,
        description=description,
        status=status,
        order_id=order_id,
        occurred_at=utcnow(),
    )
    db.session.add(txn)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return txn


def update_transaction_status(txn_id: int, status: str) -> LoyaltyTransaction:
    """
    Move a PENDING row to COMPLETED, CANCELLED or FAILED.

    Raises TransactionNotFoundError, ValidationError, InvalidStateError.
    """
    status = str(status or "").strip().upper()
    if status not in PENDING_TRANSITIONS:
        raise ValidationError("status must be COMPLETED, CANCELLED or FAILED")

    txn = db.session.get(LoyaltyTransaction, txn_id)
    if not txn:
        raise TransactionNotFoundError()
    if txn.status != STATUS_PENDING:
        raise InvalidStateError(f"Cannot change status of a {txn.status} transaction")

    txn.status = status
    db.session.commit()
    return txn


def list_transactions(user_id: int) -> list[LoyaltyTransaction]:
    return (
        db.session.query(LoyaltyTransaction)
        .filter_by(user_id=user_id)
        .order_by(LoyaltyTransaction.occurred_at.desc(), LoyaltyTransaction.id.desc())
        .all()
    )


def earn_for_order(order: Order) -> LoyaltyTransaction | None:
    """Pending EARNED row for a freshly placed order (caller's unit of work)."""
    if order.loyalty_points_earned <= 0 or not is_enrolled(order.user_id):
        return None
    txn = LoyaltyTransaction(
        user_id=order.user_id,
        transaction_type=TXN_EARNED,
        points=order.loyalty_points_earned,
        description=f"Purchase #{order.id}",
        status=STATUS_PENDING,
        order_id=order.id,
        occurred_at=utcnow(),
    )
    db.session.add(txn)
    return txn


def complete_for_order(order: Order) -> int:
    """Confirm an order's pending EARNED rows once it is paid. Returns rows moved."""
    rows = (
        db.session.query(LoyaltyTransaction)
        .filter_by(order_id=order.id, transaction_type=TXN_EARNED, status=STATUS_PENDING)
        .all()
    )
    for row in rows:
        row.status = STATUS_COMPLETED
    return len(rows)


def reverse_for_order(order: Order, reason: str = "Cancelled") -> LoyaltyTransaction | None:
    """
    Reverse the points an order earned by appending a CANCELLED row.

    Pending EARNED rows for the order are also marked CANCELLED. Safe to call
    twice (second call is a no-op). Caller owns the commit.
    """
    rows = db.session.query(LoyaltyTransaction).filter_by(order_id=order.id).all()
    if any(r.transaction_type == TXN_CANCELLED for r in rows):
        return None

    earned = [r for r in rows if r.transaction_type == TXN_EARNED]
    points = sum(r.points for r in earned)
    if points <= 0:
        return None

    for row in earned:
        if row.status == STATUS_PENDING:
            row.status = STATUS_CANCELLED

    txn = LoyaltyTransaction(
        user_id=order.user_id,
        transaction_type=TXN_CANCELLED,
        points=points,
        description=f"{reason}: Purchase #{order.id}",
        status=STATUS_COMPLETED,
        order_id=order.id,
        occurred_at=utcnow(),
    )
    db.session.add(txn)
    return txn


# =============================================================================
# REWARDS & REDEMPTION
# =============================================================================

def list_rewards(active_only: bool = True) -> list[LoyaltyReward]:
    q = db.session.query(LoyaltyReward)
    if active_only:
        q = q.filter_by(is_active=True)
    return q.order_by(LoyaltyReward.points_required.asc(), LoyaltyReward.id.asc()).all()


def create_reward(data: dict) -> LoyaltyReward:
    """Administrative reward creation. Raises ValidationError."""
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required")

    points_required = data.get("points_required")
    if isinstance(points_required, bool) or not isinstance(points_required, int) or points_required <= 0:
        raise ValidationError("points_required must be a positive integer")

    validity_days = data.get("validity_days", 30)
    if isinstance(validity_days, bool) or not isinstance(validity_days, int) or validity_days <= 0:
        raise ValidationError("validity_days must be a positive integer")

    discount_type = str(data.get("discount_type") or "").upper()
    value = data.get("value")
    coupon_service.validate_discount(discount_type, value)

    reward = LoyaltyReward(
        name=name,
        description=data.get("description"),
        points_required=points_required,
        validity_days=validity_days,
        discount_type=discount_type,
        value=value,
        is_active=bool(data.get("is_active", True)),
    )
    db.session.add(reward)
    db.session.commit()
    return reward


def set_reward_active(reward_id: int, is_active: bool) -> LoyaltyReward:
    reward = db.session.get(LoyaltyReward, reward_id)
    if not reward:
        raise RewardNotFoundError()
    reward.is_active = bool(is_active)
    db.session.commit()
    return reward


def redeem(user_id: int, reward_id: int) -> dict:
    """
    Exchange points for a reward coupon.

    Appends a REDEEMED row for reward.points_required and issues a coupon
    (value/type from the reward, expires validity_days from now) in one unit
    of work. The enrollment row is locked and its version bumped, so a
    concurrent redemption for the same member conflicts and is retried
    against the fresh balance.

    Raises:
        RewardNotFoundError, RewardInactiveError, NotEnrolledError,
        InsufficientPointsError
    """
    def _op():
        reward = db.session.get(LoyaltyReward, reward_id)
        if not reward:
            raise RewardNotFoundError()
        if not reward.is_active:
            raise RewardInactiveError("Reward is not active")

        enrollment = lock_for_update(db.session.query(LoyaltyEnrollment).filter_by(user_id=user_id)).first()
        if not enrollment:
            raise NotEnrolledError()

        balance = _ledger_sum(user_id)
        if balance < reward.points_required:
            raise InsufficientPointsError(
                "Insufficient points",
                details={"available": balance, "required": reward.points_required},
            )

        now = utcnow()
        txn = LoyaltyTransaction(
            user_id=user_id,
            transaction_type=TXN_REDEEMED,
            points=reward.points_required,
            description=f"Redeemed: {reward.name}",
            status=STATUS_COMPLETED,
            occurred_at=now,
        )
        db.session.add(txn)
        db.session.flush()

        coupon = coupon_service.issue_coupon(
            discount_type=reward.discount_type,
            value=reward.value,
            expires_at=days_from_now(reward.validity_days, now=now),
            source=coupon_service.SOURCE_LOYALTY,
            user_id=user_id,
        )
        txn.coupon_id = coupon.id

        # Serialization point for this member's ledger
        enrollment.last_redeemed_at = now

        db.session.commit()
        return reward, txn, coupon, balance - reward.points_required

    reward, txn, coupon, remaining = run_with_retry(_op)

    current_app.logger.info(
        "Loyalty redemption user_id=%s reward_id=%s points=%s coupon=%s",
        user_id, reward.id, txn.points, coupon.code,
    )

    user = db.session.get(User, user_id)
    notification_service.send_notification(
        to=user.email if user else "",
        subject="Your loyalty reward",
        template="reward-redeemed",
        data={"reward": reward.to_dict(), "coupon": coupon.to_dict()},
    )

    return {
        "transaction": txn.to_dict(),
        "coupon": coupon.to_dict(),
        "balance": remaining,
    }
