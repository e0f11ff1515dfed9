"""
Key-value storage settings.
"""
import logging

from pydantic import Field, SecretStr, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class StorageSettings(BaseSettings):
    """
    Defines settings for the limiter persistence collaborator.

    Security Note:
        - REDIS_PASSWORD should be set whenever the Redis backend is reachable
          from outside a trusted network.
        - Limiter state is a defense-in-depth convenience; losing it only
          resets buckets, so the in-memory backend is a valid default.
    """
    STORAGE_BACKEND: str = Field(default="memory", pattern="^(memory|redis)$")
    STORAGE_KEY_PREFIX: str = "formguard"

    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = Field(ge=1, le=65535, default=6379)
    REDIS_DB: int = Field(ge=0, default=0)
    REDIS_PASSWORD: SecretStr = SecretStr("")
    REDIS_SSL: bool = False
    REDIS_URL: str = Field(default="", validate_default=True)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    @field_validator("STORAGE_KEY_PREFIX")
    @classmethod
    def validate_key_prefix(cls, value: str) -> str:
        """Key prefixes must be non-empty and free of separators at the edges."""
        value = value.strip(": ")
        if not value:
            raise ValueError("STORAGE_KEY_PREFIX cannot be empty")
        return value

    @field_validator("REDIS_URL", mode="before")
    @classmethod
    def assemble_redis_url(cls, v: str | None, info: ValidationInfo) -> str:
        """
        Assembles the Redis connection URL if not provided explicitly.

        Args:
            v: Explicitly provided URL or None.
            info: Validation context with other field values.

        Returns:
            Assembled or provided Redis URL.
        """
        if v:
            return v

        values = info.data
        protocol = "rediss" if values.get("REDIS_SSL") else "redis"
        redis_password = values.get("REDIS_PASSWORD")
        secret = redis_password.get_secret_value() if redis_password else ""
        password = f":{secret}@" if secret else ""

        url = (
            f"{protocol}://{password}{values.get('REDIS_HOST')}:"
            f"{values.get('REDIS_PORT')}/{values.get('REDIS_DB', 0)}"
        )
        logger.debug("Assembled REDIS_URL (password masked for security).")
        return url
