from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class Product(db.Model):
    """
    Sellable catalog item.

    Prices are integer cents. `loyalty_points` is the number of points one
    unit earns; `stock` is the on-hand quantity checked by the cart and
    decremented at checkout.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_price", "category", "price_cents"),
        db.CheckConstraint("stock >= 0", name="ck_products_stock_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    price_cents = db.Column(db.Integer, nullable=False)
    original_price_cents = db.Column(db.Integer, nullable=True)

    image_url = db.Column(db.String(512), nullable=True)
    category = db.Column(db.String(100), nullable=False, index=True)

    loyalty_points = db.Column(db.Integer, nullable=False, default=0)
    stock = db.Column(db.Integer, nullable=False, default=0)
    rating = db.Column(db.Numeric(2, 1), nullable=True)

    is_new = db.Column(db.Boolean, nullable=False, default=False)
    is_sale = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    images = db.relationship(
        "ProductImage", backref="product", lazy=True,
        cascade="all, delete-orphan", order_by="ProductImage.id",
    )
    sizes = db.relationship(
        "ProductSize", backref="product", lazy=True,
        cascade="all, delete-orphan", order_by="ProductSize.id",
    )
    colors = db.relationship(
        "ProductColor", backref="product", lazy=True,
        cascade="all, delete-orphan", order_by="ProductColor.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    def to_dict(self, *, include_variants: bool = True) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "original_price_cents": self.original_price_cents,
            "image_url": self.image_url,
            "category": self.category,
            "loyalty_points": self.loyalty_points,
            "stock": self.stock,
            "rating": float(self.rating) if self.rating is not None else None,
            "is_new": self.is_new,
            "is_sale": self.is_sale,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_variants:
            data["images"] = [img.image_url for img in self.images]
            data["sizes"] = [s.size for s in self.sizes]
            data["colors"] = [c.to_dict() for c in self.colors]
        return data


class ProductImage(db.Model):
    __tablename__ = "product_images"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    image_url = db.Column(db.String(512), nullable=False)
    is_primary = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self) -> dict:
        return {"id": self.id, "image_url": self.image_url, "is_primary": self.is_primary}


class ProductSize(db.Model):
    __tablename__ = "product_sizes"
    __table_args__ = (
        db.UniqueConstraint("product_id", "size", name="uq_product_sizes_product_size"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    size = db.Column(db.String(50), nullable=False)


class ProductColor(db.Model):
    __tablename__ = "product_colors"
    __table_args__ = (
        db.UniqueConstraint("product_id", "name", name="uq_product_colors_product_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    name = db.Column(db.String(50), nullable=False)
    value = db.Column(db.String(50), nullable=False)  # hex color, e.g. "#000000"

    def to_dict(self) -> dict:
        return {"name": self.name, "value": self.value}


class Review(db.Model):
    """Product review. `user_name` is a snapshot of the author's display name."""
    __tablename__ = "reviews"
    __table_args__ = (
        db.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating_range"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    user_name = db.Column(db.String(255), nullable=False)
    rating = db.Column(db.SmallInteger, nullable=False)
    comment = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("reviews", lazy=True))
    product = db.relationship("Product", backref=db.backref("reviews", lazy=True, cascade="all, delete-orphan"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "product_id": self.product_id,
            "user_name": self.user_name,
            "rating": self.rating,
            "comment": self.comment,
            "created_at": to_utc_z(self.created_at),
        }
