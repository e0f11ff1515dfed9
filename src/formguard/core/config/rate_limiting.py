"""Rate Limiting Configuration

Centralized configuration for the submission limiters, allowing limits to be
adjusted without code changes. Every value can be overridden from the
environment (prefix-free names, e.g. ``REGISTRATION_MAX_TOKENS=10``).
"""

from typing import Callable, Dict, TypeVar

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from formguard.core.exceptions import ConfigurationError
from formguard.domain.rate_limiting.value_objects import AttemptWindowConfig, TokenBucketConfig

ConfigT = TypeVar("ConfigT")

ADMIN_ACTIONS = ("delete", "update", "bulk")


class RateLimitingSettings(BaseSettings):
    """Configuration for the registration, login and admin limiters."""

    # Registration: token bucket with cooldown
    REGISTRATION_MAX_TOKENS: int = Field(5, gt=0)
    REGISTRATION_REFILL_RATE: int = Field(1, gt=0)
    REGISTRATION_REFILL_INTERVAL_MS: int = Field(60_000, gt=0)
    REGISTRATION_COOLDOWN_MS: int = Field(60_000, ge=0)

    # Login: sliding window with lockout
    LOGIN_MAX_ATTEMPTS: int = Field(3, gt=0)
    LOGIN_WINDOW_MS: int = Field(300_000, gt=0)
    LOGIN_BLOCK_DURATION_MS: int = Field(900_000, gt=0)

    # Admin panel secondary limiters
    ADMIN_DELETE_MAX_ATTEMPTS: int = Field(10, gt=0)
    ADMIN_DELETE_WINDOW_MS: int = Field(60_000, gt=0)
    ADMIN_DELETE_BLOCK_DURATION_MS: int = Field(60_000, gt=0)
    ADMIN_UPDATE_MAX_ATTEMPTS: int = Field(30, gt=0)
    ADMIN_UPDATE_WINDOW_MS: int = Field(60_000, gt=0)
    ADMIN_UPDATE_BLOCK_DURATION_MS: int = Field(30_000, gt=0)
    ADMIN_BULK_MAX_ATTEMPTS: int = Field(5, gt=0)
    ADMIN_BULK_WINDOW_MS: int = Field(60_000, gt=0)
    ADMIN_BULK_BLOCK_DURATION_MS: int = Field(120_000, gt=0)

    # Submit control fallback re-enable
    DEBOUNCE_DURATION_MS: int = Field(2_000, gt=0)

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    @field_validator("REGISTRATION_REFILL_RATE")
    @classmethod
    def refill_rate_within_capacity(cls, value: int, info) -> int:
        """A refill step larger than the bucket would make the cap meaningless."""
        max_tokens = info.data.get("REGISTRATION_MAX_TOKENS")
        if max_tokens is not None and value > max_tokens:
            raise ValueError("REGISTRATION_REFILL_RATE cannot exceed REGISTRATION_MAX_TOKENS")
        return value

    def registration_config(self) -> TokenBucketConfig:
        """Build the registration token bucket configuration."""
        return _build(
            "REGISTRATION",
            TokenBucketConfig,
            max_tokens=self.REGISTRATION_MAX_TOKENS,
            refill_rate=self.REGISTRATION_REFILL_RATE,
            refill_interval_ms=self.REGISTRATION_REFILL_INTERVAL_MS,
            cooldown_ms=self.REGISTRATION_COOLDOWN_MS,
        )

    def login_config(self) -> AttemptWindowConfig:
        """Build the login attempt window configuration."""
        return _build(
            "LOGIN",
            AttemptWindowConfig,
            max_attempts=self.LOGIN_MAX_ATTEMPTS,
            window_ms=self.LOGIN_WINDOW_MS,
            block_duration_ms=self.LOGIN_BLOCK_DURATION_MS,
        )

    def admin_configs(self) -> Dict[str, AttemptWindowConfig]:
        """Build one attempt window configuration per admin action."""
        configs = {}
        for action in ADMIN_ACTIONS:
            prefix = f"ADMIN_{action.upper()}"
            configs[action] = _build(
                prefix,
                AttemptWindowConfig,
                max_attempts=getattr(self, f"{prefix}_MAX_ATTEMPTS"),
                window_ms=getattr(self, f"{prefix}_WINDOW_MS"),
                block_duration_ms=getattr(self, f"{prefix}_BLOCK_DURATION_MS"),
            )
        return configs


def _build(section: str, factory: Callable[..., ConfigT], **values) -> ConfigT:
    """Instantiate a limiter configuration, reporting bad values as configuration errors."""
    try:
        return factory(**values)
    except ValueError as e:
        raise ConfigurationError(f"Invalid {section} rate limiting settings: {e}") from e
