"""Main settings and configuration management.

This module composes the settings from the different modules (app, storage,
rate limiting) into a single, accessible `Settings` class.

It loads settings from environment variables and .env files, validates them,
and provides a single `settings` object for use throughout the package.
"""

from pydantic_settings import SettingsConfigDict

from .app import AppSettings
from .rate_limiting import RateLimitingSettings
from .storage import StorageSettings


class Settings(AppSettings, StorageSettings, RateLimitingSettings):
    """The main settings class that aggregates all configurations.

    It inherits from all the specialized settings classes, providing a unified
    interface to all configuration parameters.

    Usage:
        - Access settings via the singleton instance `settings`, or build a
          fresh `Settings(...)` with overrides for tests and embedding.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )


settings = Settings()
