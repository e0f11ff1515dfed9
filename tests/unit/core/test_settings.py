"""Unit tests for settings composition and validation."""

import pytest
from pydantic import ValidationError

from formguard.core.config.settings import Settings
from formguard.core.exceptions import ConfigurationError
from formguard.domain.rate_limiting import AttemptWindowConfig, TokenBucketConfig


def make_settings(**overrides):
    return Settings(_env_file=None, **overrides)


class TestDefaults:
    @pytest.mark.unit
    def test_registration_defaults(self):
        config = make_settings().registration_config()

        assert config == TokenBucketConfig(
            max_tokens=5, refill_rate=1, refill_interval_ms=60_000, cooldown_ms=60_000
        )

    @pytest.mark.unit
    def test_login_defaults(self):
        config = make_settings().login_config()

        assert config == AttemptWindowConfig(max_attempts=3, window_ms=300_000, block_duration_ms=900_000)

    @pytest.mark.unit
    def test_admin_defaults(self):
        configs = make_settings().admin_configs()

        assert configs["delete"] == AttemptWindowConfig(10, 60_000, 60_000)
        assert configs["update"] == AttemptWindowConfig(30, 60_000, 30_000)
        assert configs["bulk"] == AttemptWindowConfig(5, 60_000, 120_000)

    @pytest.mark.unit
    def test_debounce_default(self):
        assert make_settings().DEBOUNCE_DURATION_MS == 2_000


class TestValidation:
    @pytest.mark.unit
    def test_refill_rate_cannot_exceed_capacity(self):
        with pytest.raises(ValidationError):
            make_settings(REGISTRATION_MAX_TOKENS=2, REGISTRATION_REFILL_RATE=3)

    @pytest.mark.unit
    def test_non_positive_limits_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(LOGIN_MAX_ATTEMPTS=0)

    @pytest.mark.unit
    def test_log_level_normalized(self):
        assert make_settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

        with pytest.raises(ValidationError):
            make_settings(LOG_LEVEL="verbose")

    @pytest.mark.unit
    def test_unknown_storage_backend_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(STORAGE_BACKEND="sqlite")

    @pytest.mark.unit
    def test_key_prefix_cleaned(self):
        assert make_settings(STORAGE_KEY_PREFIX=":events:").STORAGE_KEY_PREFIX == "events"

        with pytest.raises(ValidationError):
            make_settings(STORAGE_KEY_PREFIX=" : ")


class TestConfigConversion:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "field, build",
        [
            ("REGISTRATION_REFILL_INTERVAL_MS", "registration_config"),
            ("LOGIN_WINDOW_MS", "login_config"),
            ("ADMIN_BULK_MAX_ATTEMPTS", "admin_configs"),
        ],
    )
    def test_unvalidated_values_raise_configuration_error(self, field, build):
        settings = make_settings().model_copy(update={field: 0})

        with pytest.raises(ConfigurationError) as exc_info:
            getattr(settings, build)()

        assert exc_info.value.code == "configuration_error"


class TestRedisUrl:
    @pytest.mark.unit
    def test_assembled_from_parts(self):
        settings = make_settings(REDIS_HOST="cache", REDIS_PORT=6380, REDIS_DB=2)

        assert settings.REDIS_URL == "redis://cache:6380/2"

    @pytest.mark.unit
    def test_password_and_ssl(self):
        settings = make_settings(REDIS_HOST="cache", REDIS_PASSWORD="pw", REDIS_SSL=True)

        assert settings.REDIS_URL == "rediss://:pw@cache:6379/0"

    @pytest.mark.unit
    def test_explicit_url_wins(self):
        settings = make_settings(REDIS_URL="redis://elsewhere:1/0")

        assert settings.REDIS_URL == "redis://elsewhere:1/0"
