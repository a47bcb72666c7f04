from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class Coupon(db.Model):
    """
    Discount coupon.

    Created administratively or by loyalty redemption (code prefix
    LOYALTY-, user_id set to the redeeming member). Only consume and
    mark_used mutate a coupon after creation.
    """
    __tablename__ = "coupons"
    __table_args__ = (
        db.Index("ix_coupons_used_expires", "is_used", "expires_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False, unique=True, index=True)

    discount_type = db.Column(db.String(16), nullable=False)  # PERCENTAGE, FIXED
    value = db.Column(db.Integer, nullable=False)  # cents for FIXED, basis points for PERCENTAGE
    source = db.Column(db.String(16), nullable=False, default="OTHER")  # LOYALTY, PROMOTION, BIRTHDAY, OTHER

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    is_used = db.Column(db.Boolean, nullable=False, default=False)
    used_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Coupon code={self.code!r} used={self.is_used}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "discount_type": self.discount_type,
            "value": self.value,
            "source": self.source,
            "user_id": self.user_id,
            "expires_at": to_utc_z(self.expires_at),
            "is_used": self.is_used,
            "used_at": to_utc_z(self.used_at) if self.used_at else None,
            "created_at": to_utc_z(self.created_at),
        }
