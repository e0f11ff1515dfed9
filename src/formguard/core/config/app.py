"""
Core application settings.
"""
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Defines general settings for the application.

    These control identification and logging; they carry no secrets.
    """
    PROJECT_NAME: str = "formguard"
    VERSION: str = "0.1.0"
    APP_ENV: str = Field(default="development", pattern="^(development|staging|production|test)$")
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """
        Normalizes the log level and rejects unknown names.

        Args:
            value: Log level name from the environment.

        Returns:
            Upper-cased log level.

        Raises:
            ValueError: If the level is not a standard logging level.
        """
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {value}")
        return level
