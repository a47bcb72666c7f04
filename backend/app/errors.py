# Overview: Typed error taxonomy shared by services and routes.

"""
Storefront error taxonomy.

Services raise these at the point of detection; routes translate them with
error_response(). Anything that is not a ShopError is an unclassified
failure and is answered with a generic 500 by the route boundary.

KINDS (status):
- UnauthorizedError (401): missing/invalid/expired identity
- ForbiddenError (403): authenticated but not allowed
- NotFoundError (404): entity-qualified lookup miss
- ConflictError (409): duplicate enrollment, coupon code, email
- ValidationError (400): malformed enum, bad quantity, missing field
- InsufficientPointsError / InsufficientStockError (400): business guards
- CouponExpiredError / CouponAlreadyUsedError (400): terminal coupon states
- RewardInactiveError / InvalidStateError (400)
- ConfigurationError (500): deployment precondition missing
"""

from __future__ import annotations

from flask import jsonify


class ShopError(Exception):
    """Base class for classified storefront failures."""
    status_code = 400
    code = "ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


class UnauthorizedError(ShopError):
    status_code = 401
    code = "UNAUTHORIZED"


class ForbiddenError(ShopError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(ShopError):
    """Lookup miss. `entity` names what was looked up (User, Coupon, ...)."""
    status_code = 404
    code = "NOT_FOUND"
    entity = "Resource"

    def __init__(self, message: str | None = None, details: dict | None = None):
        super().__init__(message or f"{self.entity} not found", details)


class ConflictError(ShopError):
    """409-level business rule conflict (e.g., duplicate coupon code)."""
    status_code = 409
    code = "CONFLICT"


class ValidationError(ShopError):
    """400-level input problem."""
    status_code = 400
    code = "INVALID_INPUT"


class InvalidStateError(ShopError):
    status_code = 400
    code = "INVALID_STATE"


class InsufficientPointsError(ShopError):
    status_code = 400
    code = "INSUFFICIENT_POINTS"


class InsufficientStockError(ShopError):
    status_code = 400
    code = "INSUFFICIENT_STOCK"


class CouponExpiredError(ShopError):
    status_code = 400
    code = "COUPON_EXPIRED"


class CouponAlreadyUsedError(ShopError):
    status_code = 400
    code = "COUPON_ALREADY_USED"


class RewardInactiveError(ShopError):
    status_code = 400
    code = "REWARD_INACTIVE"


class ConfigurationError(ShopError):
    """Deployment precondition missing (e.g., no base loyalty tier)."""
    status_code = 500
    code = "CONFIGURATION_ERROR"


# Entity-qualified lookups

class UserNotFoundError(NotFoundError):
    entity = "User"


class ProductNotFoundError(NotFoundError):
    entity = "Product"


class ItemNotFoundError(NotFoundError):
    entity = "Cart item"


class OrderNotFoundError(NotFoundError):
    entity = "Order"


class CouponNotFoundError(NotFoundError):
    entity = "Coupon"


class RewardNotFoundError(NotFoundError):
    entity = "Reward"


class TierNotFoundError(NotFoundError):
    entity = "Tier"


class TransactionNotFoundError(NotFoundError):
    entity = "Transaction"


class ReviewNotFoundError(NotFoundError):
    entity = "Review"


class CategoryNotFoundError(NotFoundError):
    entity = "Category"


class ShippingOptionNotFoundError(NotFoundError):
    entity = "Shipping option"


class PaymentMethodNotFoundError(NotFoundError):
    entity = "Payment method"


class NotEnrolledError(NotFoundError):
    entity = "Loyalty enrollment"
    code = "NOT_ENROLLED"

    def __init__(self, message: str | None = None, details: dict | None = None):
        super().__init__(message or "User not enrolled in loyalty program", details)


class AlreadyEnrolledError(ConflictError):
    code = "ALREADY_ENROLLED"

    def __init__(self, message: str | None = None, details: dict | None = None):
        super().__init__(message or "User already enrolled in loyalty program", details)


def error_response(exc: ShopError):
    """Flask (body, status) tuple for a classified error."""
    return jsonify(exc.to_dict()), exc.status_code
