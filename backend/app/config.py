# backend/app/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/zapthatorder.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///zapthatorder.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # JWT access tokens (falls back to SECRET_KEY when unset)
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY") or SECRET_KEY
    JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")
    JWT_EXPIRES_HOURS = int(os.environ.get("JWT_EXPIRES_HOURS", "24"))
    PASSWORD_RESET_EXPIRES_MINUTES = int(os.environ.get("PASSWORD_RESET_EXPIRES_MINUTES", "60"))
    # Echo reset tokens in the API response (tests and local demos only)
    PASSWORD_RESET_RETURN_TOKEN = _env_bool("PASSWORD_RESET_RETURN_TOKEN", False)

    CORS_ALLOWED_ORIGINS = [
        o.strip()
        for o in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if o.strip()
    ]

    LOYALTY_COUPON_PREFIX = os.environ.get("LOYALTY_COUPON_PREFIX", "LOYALTY-")

    # When disabled, notifications are only written to the application log
    NOTIFICATIONS_ENABLED = _env_bool("NOTIFICATIONS_ENABLED", False)
    MAIL_FROM = os.environ.get("MAIL_FROM", "no-reply@zapthatorder.local")

    # bcrypt cost factor (tests lower this to keep hashing fast)
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
