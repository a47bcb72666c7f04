from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text, DateTime

from app.errors import ValidationError
from app.time_utils import parse_iso_datetime


# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

EMAIL_MAX_LENGTH = 255


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = frozenset()


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "name", "description", "price_cents", "original_price_cents", "image_url",
        "category", "loyalty_points", "stock", "rating", "is_new", "is_sale",
    }),
    required_on_create=frozenset({"name", "price_cents", "category"}),
)

REVIEW_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"rating", "comment"}),
    required_on_create=frozenset({"rating", "comment"}),
)

PROFILE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "phone", "address"}),
)

ADMIN_USER_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "email", "phone", "address", "is_admin", "is_active"}),
)


def _columns_by_key(model) -> dict[str, Any]:
    return {c.key: c for c in model.__mapper__.columns}


def _coerce_integer(key: str, value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        # Plain digits only; no "1e3", no "12.5"
        if not stripped or "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{key} must be an integer")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return _coerce_integer(col.key, value)

    if isinstance(coltype, Numeric):
        if isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a number")
        try:
            return Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{col.key} must be a number")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in {"true", "false", "1", "0"}:
            return value.strip().lower() in {"true", "1"}
        raise ValidationError(f"{col.key} must be a boolean")

    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                return parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _check_cents(key: str, value) -> None:
    if value is None:
        return
    if value < 0:
        raise ValidationError(f"{key} must be >= 0")
    if value > MAX_PRICE_CENTS:
        raise ValidationError(f"{key} cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})")


def enforce_rules_product(patch: dict) -> None:
    """Product rules that SQLAlchemy metadata does not capture."""
    _check_cents("price_cents", patch.get("price_cents"))
    _check_cents("original_price_cents", patch.get("original_price_cents"))

    for key in ("stock", "loyalty_points"):
        if key in patch and patch[key] is not None and patch[key] < 0:
            raise ValidationError(f"{key} must be >= 0")

    rating = patch.get("rating")
    if rating is not None and not (Decimal("0") <= rating <= Decimal("5")):
        raise ValidationError("rating must be between 0 and 5")


def enforce_rules_review(patch: dict) -> None:
    if "rating" in patch:
        rating = patch["rating"]
        if rating is None or not 1 <= rating <= 5:
            raise ValidationError("rating must be between 1 and 5")


def normalize_email(email) -> str:
    email = str(email or "").strip().lower()
    if not email or "@" not in email or email.startswith("@") or email.endswith("@"):
        raise ValidationError("A valid email is required")
    if len(email) > EMAIL_MAX_LENGTH:
        raise ValidationError(f"email exceeds max length {EMAIL_MAX_LENGTH}")
    return email
