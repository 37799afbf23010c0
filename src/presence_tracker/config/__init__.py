import os


def get_settings_module() -> str:
    """Settings module for the current ``APP_ENV`` (development by default)."""

    env = os.getenv("APP_ENV", "development").lower()

    if env in {"prod", "production"}:
        return "presence_tracker.config.production"

    if env in {"test", "testing"}:
        return "presence_tracker.config.testing"

    return "presence_tracker.config.development"
