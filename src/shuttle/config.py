"""
Configuration management for the court rotation service.

Uses environment variables with sensible defaults.
"""
import os


def _env_bool(name, default=False):
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class AppConfig:
    """Configuration for shuttle-app."""

    # Server
    HOST = os.getenv("SHUTTLE_HOST", "0.0.0.0")
    PORT = int(os.getenv("SHUTTLE_PORT", "8000"))

    # Snapshot database
    DB_PATH = os.getenv("SHUTTLE_DB_PATH", "shuttle.db")
    SNAPSHOT_MAX_AGE_HOURS = float(os.getenv("SHUTTLE_SNAPSHOT_MAX_AGE_HOURS", "24"))

    # Engine
    SETTLE_DELAY = float(os.getenv("SHUTTLE_SETTLE_DELAY", "1.0"))  # seconds
    HISTORY_LIMIT = int(os.getenv("SHUTTLE_HISTORY_LIMIT", "50"))
    CHECK_INVARIANTS = _env_bool("SHUTTLE_CHECK_INVARIANTS", False)

    # Used when a session is started without explicit counts
    DEFAULT_COURTS = int(os.getenv("SHUTTLE_DEFAULT_COURTS", "4"))
    DEFAULT_PLAYERS = int(os.getenv("SHUTTLE_DEFAULT_PLAYERS", "0"))


def get_app_config():
    """Get configuration for shuttle-app."""
    return AppConfig


def print_config(config_class):
    """Print configuration for debugging."""
    print(f"\n{'='*60}")
    print(f"{config_class.__name__} Configuration:")
    print(f"{'='*60}")
    for attr in dir(config_class):
        if attr.isupper():
            value = getattr(config_class, attr)
            print(f"  {attr:24} = {value}")
    print(f"{'='*60}\n")
