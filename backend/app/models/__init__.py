from .users import User
from .catalog import Product, ProductImage, ProductSize, ProductColor, Review
from .cart import Cart, CartItem
from .loyalty import LoyaltyTier, LoyaltyTierPerk, LoyaltyEnrollment, LoyaltyTransaction, LoyaltyReward
from .coupons import Coupon
from .orders import Order, OrderItem, ShippingOption, PaymentMethod

__all__ = [
    'User',
    'Product', 'ProductImage', 'ProductSize', 'ProductColor', 'Review',
    'Cart', 'CartItem',
    'LoyaltyTier', 'LoyaltyTierPerk', 'LoyaltyEnrollment', 'LoyaltyTransaction', 'LoyaltyReward',
    'Coupon',
    'Order', 'OrderItem', 'ShippingOption', 'PaymentMethod',
]
