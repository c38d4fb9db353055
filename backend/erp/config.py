# backend/erp/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/erp.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///erp.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Business calendar: "today" for sale cancellation and daily cash balances
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "America/Managua")

    DEFAULT_CREDIT_DAYS = int(os.environ.get("DEFAULT_CREDIT_DAYS", "30"))
    DEFAULT_MIN_STOCK = int(os.environ.get("DEFAULT_MIN_STOCK", "10"))
    DEFAULT_MAX_STOCK = int(os.environ.get("DEFAULT_MAX_STOCK", "1000"))
    PURCHASE_EDIT_WINDOW_DAYS = int(os.environ.get("PURCHASE_EDIT_WINDOW_DAYS", "7"))

    LOG_TO_FILE = os.environ.get("LOG_TO_FILE", "true").lower() == "true"
    LOG_DIR = os.environ.get("LOG_DIR", "logs")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    LOG_TO_FILE = False
