# backend/ledgerpos/config.py
from __future__ import annotations
import os


def _csv(value: str) -> tuple[str, ...]:
    return tuple(part.strip().lower() for part in value.split(",") if part.strip())


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/ledgerpos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///ledgerpos.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Reserved identity that bypasses every authorization rule
    SUPER_ADMIN_USERNAME = os.environ.get("SUPER_ADMIN_USERNAME", "admin")

    # Roles that keep working while the global system lock is on
    LOCK_EXEMPT_ROLES = _csv(os.environ.get("LOCK_EXEMPT_ROLES", "admin,it_support"))

    # Serialization conflicts are retried this many times before surfacing
    LEDGER_CONFLICT_RETRIES = int(os.environ.get("LEDGER_CONFLICT_RETRIES", "3"))
    LEDGER_RETRY_BACKOFF = float(os.environ.get("LEDGER_RETRY_BACKOFF", "0.05"))

    DEFAULT_LOW_STOCK_THRESHOLD = 3

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Pluggable collaborators; None selects the built-in defaults
    IDENTITY_PROVIDER = None
    ARCHIVE_SINK = None
