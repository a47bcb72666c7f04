# Overview: Service-layer operations for shipping options and shipping quotes.

from __future__ import annotations

from datetime import timedelta

from ..extensions import db
from ..models import ShippingOption
from ..errors import ValidationError, ShippingOptionNotFoundError
from app.time_utils import utcnow


def list_options() -> list[ShippingOption]:
    """Active options, cheapest first."""
    return (
        db.session.query(ShippingOption)
        .filter_by(is_active=True)
        .order_by(ShippingOption.price_cents.asc(), ShippingOption.id.asc())
        .all()
    )


def get_option(option_id: int) -> ShippingOption:
    """Raises ShippingOptionNotFoundError for unknown or inactive options."""
    option = db.session.get(ShippingOption, option_id)
    if not option or not option.is_active:
        raise ShippingOptionNotFoundError()
    return option


def calculate(option_id: int, address: str) -> dict:
    """
    Quote for an option. No carrier is consulted; the option's base price
    and estimated days are authoritative.
    """
    if not str(address or "").strip():
        raise ValidationError("address is required")

    option = get_option(option_id)
    estimated_delivery = (utcnow() + timedelta(days=option.estimated_days)).date()
    return {
        "option": option.to_dict(),
        "price_cents": option.price_cents,
        "estimated_days": option.estimated_days,
        "estimated_delivery": estimated_delivery.isoformat(),
    }
