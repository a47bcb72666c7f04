from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class Cart(db.Model):
    """
    One shopping cart per user.

    Denormalized aggregates (maintained incrementally by cart_service):
    - subtotal_cents = SUM(item.unit_price_cents * item.quantity)
    - estimated_loyalty_points = SUM(item.unit_loyalty_points * item.quantity)
    - total_cents = subtotal_cents (no tax/shipping at this layer)

    INVARIANT: Only cart_service mutates items or aggregates, in the same
    unit of work. version_id guards concurrent writers.
    """
    __tablename__ = "carts"
    __table_args__ = (
        db.UniqueConstraint("user_id", name="uq_carts_user"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    estimated_loyalty_points = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("cart", uselist=False, lazy=True))
    items = db.relationship(
        "CartItem", backref="cart", lazy=True,
        cascade="all, delete-orphan", order_by="CartItem.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Cart id={self.id} user_id={self.user_id} subtotal_cents={self.subtotal_cents}>"

    def to_dict(self, *, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "subtotal_cents": self.subtotal_cents,
            "total_cents": self.total_cents,
            "estimated_loyalty_points": self.estimated_loyalty_points,
            "item_count": len(self.items),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class CartItem(db.Model):
    """
    A product line in a cart.

    unit_price_cents / unit_loyalty_points record what this line last
    contributed to the cart aggregates. They are refreshed from the product
    whenever the line is touched (add/merge/update), so a product price change
    reaches the cart totals on the next write to that line.
    """
    __tablename__ = "cart_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_cart_items_quantity_positive"),
        db.Index("ix_cart_items_cart_product", "cart_id", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cart_id = db.Column(db.Integer, db.ForeignKey("carts.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    size = db.Column(db.String(50), nullable=True)
    color = db.Column(db.String(50), nullable=True)

    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    unit_loyalty_points = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    product = db.relationship("Product", lazy="joined")

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_dict(self) -> dict:
        product = self.product
        return {
            "id": self.id,
            "cart_id": self.cart_id,
            "product": {
                "id": product.id,
                "name": product.name,
                "price_cents": product.price_cents,
                "image_url": product.image_url,
            } if product else None,
            "quantity": self.quantity,
            "size": self.size,
            "color": self.color,
            "unit_price_cents": self.unit_price_cents,
            "unit_loyalty_points": self.unit_loyalty_points,
            "line_total_cents": self.line_total_cents,
        }
