# backend/phoneshop/config.py
from __future__ import annotations
import os


DEFAULT_PUBLIC_PATH_PATTERNS = (
    r"^/health$",
    r"^/api/version$",
    r"^/api/docs(/|$)",
    r"^/api-json$",
)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/phoneshop.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///phoneshop.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session lifetime for bearer tokens issued at login
    SESSION_HOURS = int(os.environ.get("SESSION_HOURS", "24"))
    SESSION_IDLE_HOURS = int(os.environ.get("SESSION_IDLE_HOURS", "2"))

    # Paths that bypass authentication entirely (health checks, API docs)
    PUBLIC_PATH_PATTERNS = tuple(
        p for p in os.environ.get("PUBLIC_PATH_PATTERNS", "").split(",") if p
    ) or DEFAULT_PUBLIC_PATH_PATTERNS

    CORS_ALLOWED_ORIGINS = {
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:4173",
        "http://127.0.0.1:4173",
    }

    # bcrypt cost factor for new passwords (tests lower this)
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    APP_VERSION = os.environ.get("APP_VERSION", "0.1.0")
