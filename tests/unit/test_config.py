"""Tests for environment-driven configuration."""

import importlib
import logging

import pytest

from remlic.core.config import GlobalConfig, get_config, reload_config
from remlic.core.logging_setup import setup_logging
from remlic.core.types import Environment

# ``remlic.core`` re-exports the ``config`` instance, which shadows the submodule.
config_module = importlib.import_module("remlic.core.config")

_ENV_VARS = [
    "NODE_ENV",
    "REMLIC_ENV",
    "DB_HOST",
    "DB_CONNECTION_LIMIT",
    "DB_RETRY_ATTEMPTS",
    "EMAIL_RETRY_ATTEMPTS",
    "EMAIL_RETRY_DELAY",
    "EMAIL_RETRY_MAX_DELAY",
    "EMAIL_SECURE",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestGlobalConfig:
    """Test defaults and environment overrides."""

    def test_documented_defaults(self, clean_env):
        settings = GlobalConfig()

        assert settings.environment == Environment.DEVELOPMENT
        assert settings.db_connection_limit == 10
        assert settings.db_retry_attempts == 3
        assert settings.email_retry_attempts == 3
        assert settings.email_retry_delay == 5000
        assert settings.email_retry_max_delay == 30000
        assert settings.email_secure is True
        assert not settings.is_production

    def test_environment_overrides(self, clean_env):
        clean_env.setenv("NODE_ENV", "production")
        clean_env.setenv("DB_HOST", "db.prod")
        clean_env.setenv("DB_CONNECTION_LIMIT", "25")
        clean_env.setenv("EMAIL_RETRY_ATTEMPTS", "5")
        clean_env.setenv("EMAIL_SECURE", "false")

        settings = GlobalConfig()

        assert settings.is_production
        assert settings.db_host == "db.prod"
        assert settings.db_connection_limit == 25
        assert settings.email_retry_attempts == 5
        assert settings.email_secure is False

    def test_remlic_env_wins_over_node_env(self, clean_env):
        clean_env.setenv("NODE_ENV", "production")
        clean_env.setenv("REMLIC_ENV", "test")

        assert GlobalConfig().environment == Environment.TEST

    @pytest.mark.parametrize("value", ["staging", "dev", "qa"])
    def test_unknown_environment_is_not_production(self, clean_env, value):
        clean_env.setenv("NODE_ENV", value)

        settings = GlobalConfig()

        assert settings.environment == Environment.DEVELOPMENT
        assert settings.is_production is False

    def test_redacted_masks_secrets(self, settings):
        values = settings.redacted()

        assert values["db_password"] == "********"
        assert values["email_password"] == "********"
        assert values["db_host"] == "db.internal"

    def test_reload_config_replaces_global(self, clean_env, monkeypatch):
        original = config_module.config
        monkeypatch.setattr(config_module, "load_dotenv", lambda override=False: None)
        clean_env.setenv("DB_RETRY_ATTEMPTS", "7")

        try:
            reloaded = reload_config()
            assert reloaded.db_retry_attempts == 7
            assert get_config() is reloaded
        finally:
            config_module.config = original


class TestSetupLogging:
    def test_level_from_settings(self, settings):
        setup_logging(settings.model_copy(update={"log_level": "debug"}))

        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self, settings):
        setup_logging(settings.model_copy(update={"log_level": "chatty"}))

        assert logging.getLogger().level == logging.INFO
