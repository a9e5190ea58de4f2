# backend/supplytrack/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/supplytrack.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///supplytrack.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Conflict handling for lifecycle writes (stale version / lock errors)
    WRITE_RETRY_ATTEMPTS = int(os.environ.get("WRITE_RETRY_ATTEMPTS", "3"))
    WRITE_RETRY_BACKOFF = float(os.environ.get("WRITE_RETRY_BACKOFF", "0.1"))

    # Developer-issued bearer tokens
    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Default page size for list endpoints
    DEFAULT_PAGE_SIZE = 10
    MAX_PAGE_SIZE = 100
