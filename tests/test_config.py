"""Unit tests for ItembaseConfig with pydantic-settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from itembase.config import (
    PRODUCTION_ENDPOINTS,
    SANDBOX_ENDPOINTS,
    ItembaseConfig,
    get_config,
    reset_config,
)


class TestItembaseConfig:
    """Defaults, environment loading and validation."""

    def test_defaults(self):
        config = ItembaseConfig(_env_file=None)

        assert config.client_id == ""
        assert config.client_secret.get_secret_value() == ""
        assert config.scopes == []
        assert config.production is False
        assert config.connect_timeout == 120.0
        assert config.read_timeout == 120.0
        assert config.max_retries == 3
        assert config.expiry_leeway_seconds == 10
        assert config.token_store_path is None
        assert config.console_prompt is False
        assert config.log_level == "INFO"
        assert config.log_format == "json"

    def test_environment_variables(self, monkeypatch):
        monkeypatch.setenv("ITEMBASE_CLIENT_ID", "env-client")
        monkeypatch.setenv("ITEMBASE_CLIENT_SECRET", "env-secret")
        monkeypatch.setenv("ITEMBASE_PRODUCTION", "true")
        monkeypatch.setenv("ITEMBASE_MAX_RETRIES", "5")
        monkeypatch.setenv("ITEMBASE_TOKEN_STORE_PATH", "/tmp/tokens.json")

        config = ItembaseConfig(_env_file=None)

        assert config.client_id == "env-client"
        assert config.client_secret.get_secret_value() == "env-secret"
        assert config.production is True
        assert config.max_retries == 5
        assert config.token_store_path == Path("/tmp/tokens.json")

    @pytest.mark.parametrize(
        "raw",
        ["user.minimal,connection.transaction", "user.minimal connection.transaction", " user.minimal , connection.transaction "],
    )
    def test_scopes_from_environment(self, monkeypatch, raw):
        monkeypatch.setenv("ITEMBASE_SCOPES", raw)

        config = ItembaseConfig(_env_file=None)

        assert config.scopes == ["user.minimal", "connection.transaction"]

    def test_env_file(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("ITEMBASE_CLIENT_ID=from-file\nITEMBASE_LOG_LEVEL=debug\n")

        config = ItembaseConfig(_env_file=env_file)

        assert config.client_id == "from-file"
        assert config.log_level == "DEBUG"

    def test_secret_not_in_repr(self):
        config = ItembaseConfig(_env_file=None, client_secret="super-secret")

        assert "super-secret" not in repr(config)

    def test_frozen(self):
        config = ItembaseConfig(_env_file=None)

        with pytest.raises(ValidationError):
            config.client_id = "changed"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"max_retries": -1},
            {"max_retries": 61},
            {"connect_timeout": 0},
            {"log_level": "LOUD"},
            {"log_format": "xml"},
            {"backoff_base": 5.0, "backoff_cap": 1.0},
        ],
    )
    def test_invalid_values(self, overrides):
        with pytest.raises(ValidationError):
            ItembaseConfig(_env_file=None, **overrides)

    def test_endpoints(self):
        assert ItembaseConfig(_env_file=None).endpoints is SANDBOX_ENDPOINTS
        assert ItembaseConfig(_env_file=None, production=True).endpoints is PRODUCTION_ENDPOINTS

    def test_endpoint_urls(self):
        assert PRODUCTION_ENDPOINTS.auth_url == "https://accounts.itembase.com/oauth/v2/auth"
        assert PRODUCTION_ENDPOINTS.token_url == "https://accounts.itembase.com/oauth/v2/token"
        assert PRODUCTION_ENDPOINTS.me_url == "https://users.itembase.com/v1/me"
        assert PRODUCTION_ENDPOINTS.api_root == "https://api.itembase.io/v1"
        assert SANDBOX_ENDPOINTS.api_root == "http://sandbox.api.itembase.io/v1"


class TestGetConfig:
    """Cached singleton."""

    def test_cached(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)

        assert get_config() is get_config()

    def test_reset_picks_up_new_environment(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("ITEMBASE_CLIENT_ID", "first")
        first = get_config()

        monkeypatch.setenv("ITEMBASE_CLIENT_ID", "second")
        reset_config()

        assert first.client_id == "first"
        assert get_config().client_id == "second"
