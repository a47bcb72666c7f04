from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class LoyaltyTier(db.Model):
    """
    Named loyalty level.

    Tiers are totally ordered by required_points. A tier with
    required_points = 0 must exist (the base tier new members join).
    multiplier is informational; the ledger never weights points by it.
    """
    __tablename__ = "loyalty_tiers"

    name = db.Column(db.String(50), primary_key=True)
    required_points = db.Column(db.Integer, nullable=False, unique=True)
    multiplier = db.Column(db.Numeric(3, 2), nullable=False, default=1)

    perks = db.relationship(
        "LoyaltyTierPerk", backref="tier", lazy=True,
        cascade="all, delete-orphan", order_by="LoyaltyTierPerk.position",
    )

    def to_dict(self, *, include_perks: bool = True) -> dict:
        data = {
            "name": self.name,
            "required_points": self.required_points,
            "multiplier": float(self.multiplier),
        }
        if include_perks:
            data["perks"] = [p.perk for p in self.perks]
        return data


class LoyaltyTierPerk(db.Model):
    __tablename__ = "loyalty_tier_perks"
    __table_args__ = (
        db.UniqueConstraint("tier_name", "position", name="uq_tier_perks_tier_position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tier_name = db.Column(db.String(50), db.ForeignKey("loyalty_tiers.name"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    perk = db.Column(db.String(255), nullable=False)


class LoyaltyEnrollment(db.Model):
    """
    Binds a user to their current tier.

    The tier is a manually chosen snapshot: nothing advances it as the
    balance grows. The row doubles as the per-user serialization point for
    ledger writes (see loyalty_service.redeem); every redemption bumps
    version_id.
    """
    __tablename__ = "loyalty_enrollments"
    __table_args__ = (
        db.UniqueConstraint("user_id", name="uq_loyalty_enrollments_user"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    tier_name = db.Column(db.String(50), db.ForeignKey("loyalty_tiers.name"), nullable=False)
    enrolled_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_redeemed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("loyalty_enrollment", uselist=False, lazy=True))
    tier = db.relationship("LoyaltyTier")

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "tier_name": self.tier_name,
            "enrolled_at": to_utc_z(self.enrolled_at),
            "last_redeemed_at": to_utc_z(self.last_redeemed_at) if self.last_redeemed_at else None,
        }


class LoyaltyTransaction(db.Model):
    """
    Append-only ledger of loyalty point events.

    TRANSACTION TYPES:
    - EARNED: adds points (purchase, manual credit, enrollment audit row)
    - REDEEMED: points exchanged for a reward coupon
    - CANCELLED: reversal of earlier points (e.g., cancelled order)
    - EXPIRED: points expired per policy

    points is always >= 0; the sign comes from the type.

    IMMUTABLE: Rows are never deleted. Only status moves, and only
    PENDING -> COMPLETED | CANCELLED | FAILED.
    """
    __tablename__ = "loyalty_transactions"
    __table_args__ = (
        db.Index("ix_loyalty_txns_user_occurred", "user_id", "occurred_at"),
        db.CheckConstraint("points >= 0", name="ck_loyalty_txns_points_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    transaction_type = db.Column(db.String(16), nullable=False, index=True)  # EARNED, REDEEMED, CANCELLED, EXPIRED
    points = db.Column(db.Integer, nullable=False)
    description = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="COMPLETED")  # PENDING, COMPLETED, CANCELLED, FAILED

    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    coupon_id = db.Column(db.Integer, db.ForeignKey("coupons.id"), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    user = db.relationship("User", backref=db.backref("loyalty_transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.transaction_type,
            "points": self.points,
            "description": self.description,
            "status": self.status,
            "order_id": self.order_id,
            "coupon_id": self.coupon_id,
            "date": to_utc_z(self.occurred_at),
        }


class LoyaltyReward(db.Model):
    """Catalog of rewards points can be exchanged for. Read-only to the ledger."""
    __tablename__ = "loyalty_rewards"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    points_required = db.Column(db.Integer, nullable=False)
    validity_days = db.Column(db.Integer, nullable=False, default=30)

    discount_type = db.Column(db.String(16), nullable=False)  # PERCENTAGE, FIXED
    value = db.Column(db.Integer, nullable=False)  # cents for FIXED, basis points for PERCENTAGE

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "points_required": self.points_required,
            "validity_days": self.validity_days,
            "discount_type": self.discount_type,
            "value": self.value,
            "is_active": self.is_active,
        }
