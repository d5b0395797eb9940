# backend/opsdesk/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/opsdesk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///opsdesk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # bcrypt cost factor for password hashing
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "10"))

    # Opaque session cookie
    AUTH_COOKIE_NAME = os.environ.get("AUTH_COOKIE_NAME", "opsdesk_session")
    AUTH_COOKIE_SECURE = os.environ.get("AUTH_COOKIE_SECURE", "false").lower() == "true"
    SESSION_ABSOLUTE_TIMEOUT_HOURS = int(os.environ.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", "24"))
    SESSION_IDLE_TIMEOUT_HOURS = int(os.environ.get("SESSION_IDLE_TIMEOUT_HOURS", "2"))

    # Explicit tenant identifier header (local development, API clients)
    TENANT_HEADER = os.environ.get("TENANT_HEADER", "X-Tenant-ID")

    # Document numbering retry ceiling
    DOCUMENT_NUMBER_ATTEMPTS = int(os.environ.get("DOCUMENT_NUMBER_ATTEMPTS", "3"))
    DOCUMENT_NUMBER_RETRY_DELAY = float(os.environ.get("DOCUMENT_NUMBER_RETRY_DELAY", "0.05"))

    INVOICE_DUE_DAYS = int(os.environ.get("INVOICE_DUE_DAYS", "30"))
