# Overview: Service-layer operations for user profiles and admin user management.

"""
User Service

Profiles are self-service (name, phone, address). Administrators can list,
edit and deactivate any account. Deleting a user deactivates it: carts,
orders, reviews and ledger rows keep referencing the row.
"""

from __future__ import annotations

from ..extensions import db
from ..models import User
from ..errors import ConflictError, InvalidStateError, UserNotFoundError
from ..validation import normalize_email
from . import cart_service, review_service


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise UserNotFoundError()
    return user


def list_users(include_inactive: bool = False) -> list[User]:
    q = db.session.query(User)
    if not include_inactive:
        q = q.filter(User.is_active.is_(True))
    return q.order_by(User.id.asc()).all()


def update_profile(user_id: int, patch: dict) -> User:
    """Apply a validated patch (validation.PROFILE_POLICY)."""
    user = get_user(user_id)
    if "name" in patch:
        user.name = patch["name"]
    # Blank optional fields are stored as NULL
    for key in ("phone", "address"):
        if key in patch:
            setattr(user, key, patch[key] or None)
    db.session.commit()
    return user


def update_user(user_id: int, patch: dict, *, acting_user_id: int | None = None) -> User:
    """
    Admin edit from a validated patch (validation.ADMIN_USER_POLICY).

    Raises UserNotFoundError, ConflictError (email taken),
    InvalidStateError (admin removing their own admin flag or deactivating themselves).
    """
    user = get_user(user_id)

    if acting_user_id == user.id and (patch.get("is_admin") is False or patch.get("is_active") is False):
        raise InvalidStateError("Administrators cannot demote or deactivate themselves")

    if "email" in patch:
        email = normalize_email(patch["email"])
        clash = db.session.query(User.id).filter(User.email == email, User.id != user.id).first()
        if clash:
            raise ConflictError("Email already registered")
        user.email = email

    for key in ("name", "phone", "address", "is_admin", "is_active"):
        if key in patch:
            setattr(user, key, patch[key])

    db.session.commit()
    return user


def delete_user(user_id: int, *, acting_user_id: int | None = None) -> User:
    """Deactivate an account. Raises UserNotFoundError, InvalidStateError."""
    user = get_user(user_id)
    if acting_user_id == user.id:
        raise InvalidStateError("Administrators cannot delete themselves")
    user.is_active = False
    db.session.commit()
    return user


def get_user_cart(user_id: int) -> dict:
    get_user(user_id)
    cart = cart_service.get_cart(user_id)
    if not cart:
        return {"user_id": user_id, "items": [], **cart_service.get_cart_summary(user_id)}
    return cart.to_dict()


def get_user_reviews(user_id: int) -> list:
    return review_service.list_user_reviews(user_id)
