# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every cart, order and ledger row must be attributable to a user.
Uses bcrypt for password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12, configurable for tests)
- Minimum 8 characters, with upper, lower and digit
- Tokens are stateless JWTs (see token_service.py); logout is client-side
- Password reset uses a short-lived, single-use token of its own type,
  delivered by notification
"""

from __future__ import annotations

import re

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User
from ..errors import ValidationError, ConflictError, UnauthorizedError
from ..validation import normalize_email
from app.time_utils import utcnow
from . import loyalty_service, notification_service, token_service


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    code = "WEAK_PASSWORD"


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """Validate then hash with bcrypt."""
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison. Malformed hashes never verify."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def register(
    name: str,
    email: str,
    password: str,
    *,
    phone: str | None = None,
    address: str | None = None,
    join_loyalty: bool = False,
    is_admin: bool = False,
) -> dict:
    """
    Create a shopper account and sign it in.

    With join_loyalty the user is enrolled in the base tier in the same
    unit of work.

    Raises:
        ValidationError / PasswordValidationError
        ConflictError: email already registered
        ConfigurationError: join_loyalty with no base tier configured
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    email = normalize_email(email)

    if db.session.query(User.id).filter_by(email=email).first():
        raise ConflictError("Email already registered")

    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        phone=(phone or "").strip() or None,
        address=(address or "").strip() or None,
        is_admin=bool(is_admin),
        is_active=True,
    )
    db.session.add(user)

    try:
        db.session.flush()
        if join_loyalty:
            loyalty_service.enroll(user.id, commit=False)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Email already registered")
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Registered user id=%s loyalty=%s", user.id, bool(join_loyalty))
    return {"user": user.to_dict(), "token": token_service.issue_access_token(user)}


def authenticate(email: str, password: str) -> User | None:
    """
    Returns User if credentials valid, None otherwise.

    Updates last_login_at on success.
    """
    email = str(email or "").strip().lower()
    if not email or not password:
        return None

    user = db.session.query(User).filter(User.email == email, User.is_active.is_(True)).first()
    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def login(email: str, password: str) -> dict:
    """Raises UnauthorizedError on bad credentials."""
    user = authenticate(email, password)
    if not user:
        raise UnauthorizedError("Invalid email or password")
    return {"user": user.to_dict(), "token": token_service.issue_access_token(user)}


def resolve_user(token: str) -> User:
    """
    Map an access token to an active user.

    Raises UnauthorizedError.
    """
    claims = token_service.decode_token(token, token_service.TOKEN_TYPE_ACCESS)
    try:
        user_id = int(claims["sub"])
    except (TypeError, ValueError):
        raise UnauthorizedError("Invalid token")

    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        raise UnauthorizedError("Invalid or expired token")
    return user


def request_password_reset(email: str) -> str | None:
    """
    Issue a reset token for a known active email and send it to that address.

    Returns the token (None for unknown emails). Routes answer the same
    either way and only echo the token when PASSWORD_RESET_RETURN_TOKEN is set.
    """
    email = str(email or "").strip().lower()
    user = db.session.query(User).filter(User.email == email, User.is_active.is_(True)).first()
    if not user:
        current_app.logger.info("Password reset requested for unknown email")
        return None

    token = token_service.issue_password_reset_token(user)
    notification_service.send_notification(
        user.email,
        "Reset your password",
        template="password-reset",
        data={
            "name": user.name,
            "token": token,
            "expires_minutes": current_app.config.get("PASSWORD_RESET_EXPIRES_MINUTES", 60),
        },
    )
    current_app.logger.info("Password reset requested user_id=%s", user.id)
    return token


def reset_password(token: str, new_password: str) -> User:
    """
    Set a new password from a reset token. A token works once.

    Raises UnauthorizedError (bad, expired or already used token),
    PasswordValidationError.
    """
    claims = token_service.decode_token(token, token_service.TOKEN_TYPE_PASSWORD_RESET)
    try:
        user_id = int(claims["sub"])
    except (TypeError, ValueError):
        raise UnauthorizedError("Invalid token")

    user = db.session.get(User, user_id)
    if not user or not user.is_active or user.email != claims.get("email"):
        raise UnauthorizedError("Invalid token")
    if claims.get("pwd") != token_service.password_fingerprint(user.password_hash):
        raise UnauthorizedError("Reset token has already been used")

    user.password_hash = hash_password(new_password)
    db.session.commit()
    current_app.logger.info("Password reset completed user_id=%s", user.id)
    return user
