# backend/kora/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() == "true"


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite for local development, Postgres in production via DATABASE_URL
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///kora.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Tenant and boss sessions are signed with independent secrets
    SESSION_SECRET = os.environ.get("SESSION_SECRET", "kora-dev-only-session-secret-change-me")
    BOSS_SESSION_SECRET = os.environ.get("BOSS_SESSION_SECRET", "kora-dev-only-boss-secret-change-me")
    TENANT_SESSION_COOKIE_NAME = "kora_session"
    BOSS_SESSION_COOKIE_NAME = "kora_boss_session"
    SESSION_TTL_DAYS = int(os.environ.get("SESSION_TTL_DAYS", "7"))
    BOSS_SESSION_TTL_DAYS = int(os.environ.get("BOSS_SESSION_TTL_DAYS", "7"))
    COOKIE_SECURE = _env_flag("COOKIE_SECURE")

    # Used to build links in outgoing mail; request host URL when unset
    BASE_URL = os.environ.get("BASE_URL")

    ALLOW_CANCEL_AFTER_SHIP = _env_flag("ALLOW_CANCEL_AFTER_SHIP")

    # Comma-separated browser origins allowed to call the API with credentials
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get("CORS_ORIGINS", "").split(",")
        if origin.strip()
    ]

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
    EMAIL_VERIFY_TTL_HOURS = 24

    TRIAL_DAYS = int(os.environ.get("TRIAL_DAYS", "14"))
    DEFAULT_STAFF_LIMIT = 5
    MAX_STAFF_LIMIT = 500
    DEFAULT_CURRENCY = "NPR"

    # smtp | log | memory
    MAIL_BACKEND = os.environ.get("MAIL_BACKEND", "log")
    MAIL_SERVER = os.environ.get("MAIL_SERVER", "localhost")
    MAIL_PORT = int(os.environ.get("MAIL_PORT", "587"))
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_USE_TLS = _env_flag("MAIL_USE_TLS", "true")
    MAIL_FROM = os.environ.get("MAIL_FROM", "Kora <no-reply@kora.local>")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
