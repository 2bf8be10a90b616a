# backend/nexero/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/nexero.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///nexero.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Browser frontends allowed to call the API
    CORS_ORIGINS = (
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:4173",
        "http://127.0.0.1:4173",
    )

    # Purchase-receipt attachments (filesystem object storage)
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", "uploads")

    # Printable receipt payload
    RECEIPT_HEADER = os.environ.get("RECEIPT_HEADER")  # Falls back to the organization name
    RECEIPT_FOOTER = os.environ.get("RECEIPT_FOOTER", "Obrigado pela preferência!")

    # Transient DB conflicts (locks, stale versions) are retried this many times
    COMMIT_RETRY_ATTEMPTS = int(os.environ.get("COMMIT_RETRY_ATTEMPTS", "3"))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    COMMIT_RETRY_ATTEMPTS = 1
