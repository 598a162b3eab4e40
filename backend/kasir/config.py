# backend/kasir/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/kasir.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///kasir.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Store defaults used when a store row does not override them
    DEFAULT_TIMEZONE = os.environ.get("DEFAULT_TIMEZONE", "Asia/Makassar")
    DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "IDR")

    INVOICE_PREFIX = os.environ.get("INVOICE_PREFIX", "INV")

    # Listing limits
    MAX_PER_PAGE = 100
