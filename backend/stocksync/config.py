# backend/stocksync/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Local cache lives in an embedded SQLite file next to the instance
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///stocksync.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Remote source of truth. Unset means the device runs offline only.
    SYNC_REMOTE_URL = os.environ.get("SYNC_REMOTE_URL")
    SYNC_REMOTE_TOKEN = os.environ.get("SYNC_REMOTE_TOKEN")
    SYNC_REMOTE_TIMEOUT = float(os.environ.get("SYNC_REMOTE_TIMEOUT", "10"))
    SYNC_DEVICE_ID = os.environ.get("SYNC_DEVICE_ID", "local-device")

    # Reconciler retry budget (per trigger) and backoff bounds, in seconds
    SYNC_MAX_ATTEMPTS = int(os.environ.get("SYNC_MAX_ATTEMPTS", "3"))
    SYNC_BACKOFF_BASE = float(os.environ.get("SYNC_BACKOFF_BASE", "1.0"))
    SYNC_BACKOFF_MAX = float(os.environ.get("SYNC_BACKOFF_MAX", "60.0"))
    SYNC_INTERVAL_SECONDS = float(os.environ.get("SYNC_INTERVAL_SECONDS", "300"))

    # "drop": rejected actions are marked synced and surfaced in the activity log
    # "hold": rejected actions stay pending and block the queue
    SYNC_REJECT_POLICY = os.environ.get("SYNC_REJECT_POLICY", "drop")
    SYNC_PRUNE_AFTER_PUSH = _env_bool("SYNC_PRUNE_AFTER_PUSH", True)
    SYNC_AUTOSTART = _env_bool("SYNC_AUTOSTART", False)

    # A RemoteBackend instance to use instead of one built from SYNC_REMOTE_URL
    SYNC_REMOTE_BACKEND = None

    # Local store lock contention
    STORE_RETRY_ATTEMPTS = int(os.environ.get("STORE_RETRY_ATTEMPTS", "3"))
    STORE_RETRY_BACKOFF = float(os.environ.get("STORE_RETRY_BACKOFF", "0.1"))

    ACTIVITY_DEFAULT_LIMIT = int(os.environ.get("ACTIVITY_DEFAULT_LIMIT", "50"))
    ACTIVITY_MAX_LIMIT = int(os.environ.get("ACTIVITY_MAX_LIMIT", "500"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
