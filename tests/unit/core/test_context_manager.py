"""Unit tests for the configuration context."""

from src.devdaily.runtime.config.config_data import ConfigData
from src.devdaily.runtime.context import (
    AppContext,
    get_config,
    get_context,
    load_default_config,
    merge_configs,
    with_context,
)
from src.devdaily.runtime.settings import EnvironmentVariables


class TestContextManager:
    """Test the context manager functionality."""

    def test_default_context_available(self):
        context = get_context()

        assert isinstance(context, AppContext)
        assert isinstance(get_config(), ConfigData)
        assert context.config is get_config()

    def test_with_context_override(self):
        """Should override config for the duration of the block only."""
        original = get_config()
        original_retries = original.transaction.max_retries

        override = ConfigData()
        override.transaction.max_retries = 0

        with with_context(override):
            assert get_config().transaction.max_retries == 0
            assert get_config() is not original

        assert get_config() is original
        assert get_config().transaction.max_retries == original_retries

    def test_nested_overrides_inherit(self):
        level1 = ConfigData()
        level1.transaction.retry_delay_ms = 5

        level2 = ConfigData()
        level2.catalog.price_check_interval_days = 1

        with with_context(level1):
            with with_context(level2):
                config = get_config()
                assert config.transaction.retry_delay_ms == 5
                assert config.catalog.price_check_interval_days == 1
            assert get_config().catalog.price_check_interval_days == 7

    def test_none_override_is_noop(self):
        original = get_config()

        with with_context(None):
            assert get_config() is original

    def test_merge_keeps_unset_fields(self):
        base = ConfigData()
        base.database.url = "postgresql://db/devdaily"

        override = ConfigData()
        override.transaction.lock_timeout = 0

        merged = merge_configs(base, override)

        assert merged.database.url == "postgresql://db/devdaily"
        assert merged.transaction.lock_timeout == 0


class TestLoadDefaultConfig:
    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("config:\n  logging:\n    level: INFO\n")
        monkeypatch.setenv("CONFIG_PATH", str(path))
        monkeypatch.setenv("APP_ENVIRONMENT", "test")
        monkeypatch.setenv("DATABASE_URL", "sqlite:///./override.db")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")

        config = load_default_config(EnvironmentVariables(_env_file=None))

        assert config.app.environment == "test"
        assert config.database.url == "sqlite:///./override.db"
        assert config.logging.level == "DEBUG"

    def test_missing_file_uses_defaults(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CONFIG_PATH", str(tmp_path / "absent.yaml"))
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.delenv("APP_ENVIRONMENT", raising=False)

        config = load_default_config(EnvironmentVariables(_env_file=None))

        assert config.database.url == "sqlite:///./devdaily.db"
        assert config.transaction.max_retries == 3

    def test_default_load_without_overrides(self, monkeypatch):
        for var in ("APP_ENVIRONMENT", "DATABASE_URL", "LOG_LEVEL", "CONFIG_PATH"):
            monkeypatch.delenv(var, raising=False)

        config = load_default_config()

        assert isinstance(config, ConfigData)
        assert config.app.environment == "development"
        assert isinstance(get_context().config, ConfigData)
