# Overview: Reference and demo data plus idempotent seeding helpers used by the CLI.

from __future__ import annotations

from decimal import Decimal

from .extensions import db
from .models import (
    LoyaltyTier,
    LoyaltyTierPerk,
    LoyaltyReward,
    ShippingOption,
    PaymentMethod,
    Product,
    ProductImage,
    ProductSize,
    ProductColor,
    Coupon,
)
from app.time_utils import days_from_now


TIERS = [
    ("Bronze", 0, "1.00", [
        "Earn 1 point per $1 spent",
        "Birthday gift",
        "Early access to sales",
    ]),
    ("Silver", 1000, "1.25", [
        "Earn 1.25 points per $1 spent",
        "Birthday gift",
        "Early access to sales",
        "Free standard shipping",
    ]),
    ("Gold", 5000, "1.50", [
        "Earn 1.5 points per $1 spent",
        "Premium birthday gift",
        "Early access to sales",
        "Free express shipping",
        "Exclusive events",
        "Personal shopping assistant",
    ]),
]

# (name, description, points_required, validity_days, discount_type, value)
REWARDS = [
    ("$5 off", "$5 off your next order", 500, 30, "FIXED", 500),
    ("$10 off", "$10 off your next order", 1000, 30, "FIXED", 1000),
    ("10% off", "10% off your next order", 800, 14, "PERCENTAGE", 1000),
]

# (name, description, price_cents, estimated_days)
SHIPPING_OPTIONS = [
    ("Standard", "Delivered in 5-7 business days", 599, 5),
    ("Express", "Delivered in 2-3 business days", 1499, 2),
    ("Overnight", "Next business day delivery", 2999, 1),
]

# (name, icon, description)
PAYMENT_METHODS = [
    ("Credit Card", "credit-card", "Visa, Mastercard, American Express"),
    ("PayPal", "paypal", "Pay with your PayPal account"),
    ("Apple Pay", "apple", "Pay with Apple Pay"),
]

_IMG = "https://images.unsplash.com/photo-{}?auto=format&fit=crop&w=880&q=80"

# name, price, original, description, image id, category, points, stock, rating, new, sale, sizes, colors
PRODUCTS = [
    ("Classic Cotton T-Shirt", 2499, None, "A comfortable everyday classic t-shirt made from 100% cotton.",
     "1521572163474-6864f9cf17ab", "Clothing", 25, 50, "4.5", True, False,
     ["XS", "S", "M", "L", "XL"], [("White", "#FFFFFF"), ("Black", "#000000"), ("Navy", "#000080")]),
    ("Slim Fit Jeans", 4999, None, "Modern slim fit jeans with a comfortable stretch fabric.",
     "1542272604-787c3835535d", "Clothing", 50, 30, "4.2", False, False,
     ["28", "30", "32", "34", "36"], [("Blue", "#0000FF"), ("Black", "#000000")]),
    ("Running Shoes", 8999, 11999, "Lightweight running shoes with cushioned support.",
     "1542291026-7eec264c27ff", "Shoes", 90, 25, "4.8", False, True,
     ["7", "8", "9", "10", "11"], [("Red", "#FF0000"), ("Blue", "#0000FF"), ("Black", "#000000")]),
    ("Leather Tote Bag", 12999, None, "Spacious leather tote bag with multiple compartments.",
     "1590874103328-eac38a683ce7", "Bags", 130, 15, "4.7", True, False,
     [], [("Brown", "#964B00"), ("Black", "#000000")]),
    ("Gold Hoop Earrings", 3499, None, "Classic gold hoop earrings that go with any outfit.",
     "1589128777073-263566ae5e4d", "Accessories", 35, 40, "4.4", False, False, [], []),
    ("Summer Dress", 5999, 7999, "Lightweight floral summer dress perfect for warm days.",
     "1585487000160-6ebcfceb0d03", "Clothing", 60, 20, "4.3", False, True,
     ["XS", "S", "M", "L"], [("Floral", "#FF69B4"), ("Blue", "#0000FF")]),
    ("Polarized Sunglasses", 7999, None, "UV protective polarized sunglasses with durable frames.",
     "1572635196237-14b3f281503f", "Accessories", 80, 35, "4.6", True, False,
     [], [("Black", "#000000"), ("Tortoise", "#8B4513")]),
    ("Casual Sneakers", 6999, None, "Comfortable everyday sneakers for casual wear.",
     "1600269452121-4f2416e55c28", "Shoes", 70, 45, "4.1", False, False,
     ["7", "8", "9", "10", "11"], [("White", "#FFFFFF"), ("Grey", "#808080")]),
    ("Crossbody Bag", 4999, 6999, "Compact crossbody bag with adjustable strap.",
     "1598532163257-ae3c6b2524b6", "Bags", 50, 25, "4.4", False, True,
     [], [("Black", "#000000"), ("Red", "#FF0000"), ("Tan", "#D2B48C")]),
    ("Wool Blend Sweater", 8999, None, "Soft wool blend sweater for cooler weather.",
     "1576871337632-b9aef4c17ab9", "Clothing", 90, 30, "4.5", False, False,
     ["S", "M", "L", "XL"], [("Cream", "#FFFDD0"), ("Navy", "#000080"), ("Burgundy", "#800020")]),
    ("Leather Wallet", 3999, None, "Genuine leather wallet with multiple card slots.",
     "1627123424574-724758594e93", "Accessories", 40, 50, "4.2", False, False,
     [], [("Brown", "#964B00"), ("Black", "#000000")]),
    ("Ankle Boots", 11999, None, "Stylish ankle boots with a small heel.",
     "1543163521-1bf539c55dd2", "Shoes", 120, 20, "4.7", True, False,
     ["6", "7", "8", "9"], [("Black", "#000000"), ("Brown", "#964B00")]),
]

# (code, discount_type, value, source, valid_days)
DEMO_COUPONS = [
    ("LOYALTY5", "FIXED", 500, "LOYALTY", 30),
    ("LOYALTY10PCT", "PERCENTAGE", 1000, "PROMOTION", 30),
    ("BIRTHDAY20", "PERCENTAGE", 2000, "BIRTHDAY", 30),
]


def seed_reference_data() -> dict:
    """Tiers, perks, rewards, shipping options and payment methods. Idempotent."""
    created = {"tiers": 0, "rewards": 0, "shipping_options": 0, "payment_methods": 0}

    for name, required_points, multiplier, perks in TIERS:
        if db.session.get(LoyaltyTier, name):
            continue
        tier = LoyaltyTier(name=name, required_points=required_points, multiplier=Decimal(multiplier))
        for position, perk in enumerate(perks):
            tier.perks.append(LoyaltyTierPerk(position=position, perk=perk))
        db.session.add(tier)
        created["tiers"] += 1

    for name, description, points, validity_days, discount_type, value in REWARDS:
        if db.session.query(LoyaltyReward.id).filter_by(name=name).first():
            continue
        db.session.add(LoyaltyReward(
            name=name,
            description=description,
            points_required=points,
            validity_days=validity_days,
            discount_type=discount_type,
            value=value,
            is_active=True,
        ))
        created["rewards"] += 1

    for name, description, price_cents, days in SHIPPING_OPTIONS:
        if db.session.query(ShippingOption.id).filter_by(name=name).first():
            continue
        db.session.add(ShippingOption(
            name=name, description=description, price_cents=price_cents,
            estimated_days=days, is_active=True,
        ))
        created["shipping_options"] += 1

    for name, icon, description in PAYMENT_METHODS:
        if db.session.query(PaymentMethod.id).filter_by(name=name).first():
            continue
        db.session.add(PaymentMethod(name=name, icon=icon, description=description, is_active=True))
        created["payment_methods"] += 1

    db.session.commit()
    return created


def seed_catalog() -> dict:
    """Demo products (with images, sizes, colors) and demo coupons. Idempotent by name/code."""
    created = {"products": 0, "coupons": 0}

    for (name, price, original, description, image_id, category, points, stock,
         rating, is_new, is_sale, sizes, colors) in PRODUCTS:
        if db.session.query(Product.id).filter_by(name=name).first():
            continue
        image_url = _IMG.format(image_id)
        product = Product(
            name=name,
            description=description,
            price_cents=price,
            original_price_cents=original,
            image_url=image_url,
            category=category,
            loyalty_points=points,
            stock=stock,
            rating=Decimal(rating),
            is_new=is_new,
            is_sale=is_sale,
        )
        product.images.append(ProductImage(image_url=image_url, is_primary=True))
        for size in sizes:
            product.sizes.append(ProductSize(size=size))
        for color_name, value in colors:
            product.colors.append(ProductColor(name=color_name, value=value))
        db.session.add(product)
        created["products"] += 1

    for code, discount_type, value, source, days in DEMO_COUPONS:
        if db.session.query(Coupon.id).filter_by(code=code).first():
            continue
        db.session.add(Coupon(
            code=code,
            discount_type=discount_type,
            value=value,
            source=source,
            expires_at=days_from_now(days),
            is_used=False,
        ))
        created["coupons"] += 1

    db.session.commit()
    return created
