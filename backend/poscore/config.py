# backend/poscore/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/poscore.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///poscore.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Writers on SQLite wait on the database lock instead of failing at once
    SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 15}} if SQLALCHEMY_DATABASE_URI.startswith("sqlite") else {}

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Sale engine: bounded retries for transient storage failures (pre-commit only)
    SALE_RETRY_ATTEMPTS = int(os.environ.get("SALE_RETRY_ATTEMPTS", "3"))
    SALE_RETRY_BACKOFF_SECONDS = float(os.environ.get("SALE_RETRY_BACKOFF_SECONDS", "0.05"))

    # Card authorization backend ("mock" is the only built-in gateway)
    PAYMENT_GATEWAY = os.environ.get("PAYMENT_GATEWAY", "mock")

    CORS_ALLOWED_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    }


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SALE_RETRY_BACKOFF_SECONDS = 0.0
    LOG_LEVEL = "DEBUG"
