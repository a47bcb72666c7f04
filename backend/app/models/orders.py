from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class ShippingOption(db.Model):
    __tablename__ = "shipping_options"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    description = db.Column(db.String(255), nullable=True)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    estimated_days = db.Column(db.Integer, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "estimated_days": self.estimated_days,
        }


class PaymentMethod(db.Model):
    __tablename__ = "payment_methods"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    icon = db.Column(db.String(100), nullable=True)
    description = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            "description": self.description,
            "is_active": self.is_active,
        }


class Order(db.Model):
    """
    Checked-out order.

    STATUS:
    - PENDING: placed, awaiting payment (cancellable)
    - PAID: payment captured
    - CANCELLED: cancelled while pending (stock returned, points reversed)
    - REFUNDED: payment refunded (stock returned, points reversed)

    Amounts are snapshots taken at checkout.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    shipping_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    loyalty_points_earned = db.Column(db.Integer, nullable=False, default=0)

    shipping_address = db.Column(db.Text, nullable=False)
    shipping_option_id = db.Column(db.Integer, db.ForeignKey("shipping_options.id"), nullable=True)
    payment_method_id = db.Column(db.Integer, db.ForeignKey("payment_methods.id"), nullable=True)
    coupon_code = db.Column(db.String(64), nullable=True)

    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    refunded_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("orders", lazy=True))
    items = db.relationship(
        "OrderItem", backref="order", lazy=True,
        cascade="all, delete-orphan", order_by="OrderItem.id",
    )
    shipping_option = db.relationship("ShippingOption")
    payment_method = db.relationship("PaymentMethod")

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, *, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "status": self.status,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "shipping_cents": self.shipping_cents,
            "total_cents": self.total_cents,
            "loyalty_points_earned": self.loyalty_points_earned,
            "shipping_address": self.shipping_address,
            "shipping_option_id": self.shipping_option_id,
            "payment_method_id": self.payment_method_id,
            "coupon_code": self.coupon_code,
            "paid_at": to_utc_z(self.paid_at) if self.paid_at else None,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "refunded_at": to_utc_z(self.refunded_at) if self.refunded_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)
    loyalty_points = db.Column(db.Integer, nullable=False, default=0)
    size = db.Column(db.String(50), nullable=True)
    color = db.Column(db.String(50), nullable=True)

    product = db.relationship("Product", lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "loyalty_points": self.loyalty_points,
            "size": self.size,
            "color": self.color,
        }
