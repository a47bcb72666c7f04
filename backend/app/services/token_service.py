# Overview: Service-layer helpers for signed JSON Web Tokens (access and password reset).

"""
Token Service

Access tokens are stateless HS256 JWTs. Claims:
- sub: user id (string)
- email: user email at issue time
- iat / exp: issue and expiry times
- type: "access" or "password_reset"
- pwd: (reset tokens only) fingerprint of the password hash at issue time

A token of one type is never accepted where the other is expected. A reset
token stops verifying once the password it was issued against changes, so
it can be used at most once.
"""

from __future__ import annotations

import hashlib
from datetime import timedelta, timezone

import jwt
from flask import current_app

from ..errors import UnauthorizedError, ConfigurationError
from app.time_utils import utcnow


TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_PASSWORD_RESET = "password_reset"


def _secret() -> str:
    secret = current_app.config.get("JWT_SECRET_KEY")
    if not secret:
        raise ConfigurationError("JWT_SECRET_KEY is not configured")
    return secret


def _issue(user, token_type: str, lifetime: timedelta, **extra) -> str:
    now = utcnow().replace(tzinfo=timezone.utc)
    claims = {
        "sub": str(user.id),
        "email": user.email,
        "iat": now,
        "exp": now + lifetime,
        "type": token_type,
        **extra,
    }
    return jwt.encode(claims, _secret(), algorithm=current_app.config.get("JWT_ALGORITHM", "HS256"))


def issue_access_token(user) -> str:
    hours = current_app.config.get("JWT_EXPIRES_HOURS", 24)
    return _issue(user, TOKEN_TYPE_ACCESS, timedelta(hours=hours))


def password_fingerprint(password_hash: str) -> str:
    return hashlib.sha256((password_hash or "").encode("utf-8")).hexdigest()[:16]


def issue_password_reset_token(user) -> str:
    minutes = current_app.config.get("PASSWORD_RESET_EXPIRES_MINUTES", 60)
    return _issue(
        user,
        TOKEN_TYPE_PASSWORD_RESET,
        timedelta(minutes=minutes),
        pwd=password_fingerprint(user.password_hash),
    )


def decode_token(token: str, expected_type: str = TOKEN_TYPE_ACCESS) -> dict:
    """
    Verify signature, expiry and token type.

    Raises UnauthorizedError for anything that does not check out.
    """
    if not token:
        raise UnauthorizedError("Authentication required")
    try:
        claims = jwt.decode(
            token,
            _secret(),
            algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
            options={"require": ["sub", "exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token has expired")
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid token")

    if claims.get("type") != expected_type:
        raise UnauthorizedError("Invalid token")
    return claims
