"""
Tests for engine configuration.
"""

import os
from unittest.mock import patch

import pytest

from oauth2_engine.config import (
    ServerConfig,
    get_server_config,
    reset_server_config,
)
from oauth2_engine.core.exceptions import InvalidArgumentError


class TestServerConfig:
    """Tests for ServerConfig."""

    def test_defaults(self):
        """Test default settings."""
        config = ServerConfig()

        assert config.access_token_lifetime == 3600
        assert config.refresh_token_lifetime == 1209600
        assert config.authorization_code_lifetime == 300
        assert config.always_issue_new_refresh_token is True
        assert config.allow_bearer_tokens_in_query_string is False
        assert config.allow_empty_state is True
        assert config.allow_extended_token_attributes is False
        assert config.default_scope is None
        assert config.realm == "Service"
        assert config.extended_grant_types == {}

    def test_from_env_loads_variables(self):
        """Test loading config from environment variables."""
        env = {
            "OAUTH_ACCESS_TOKEN_LIFETIME": "60",
            "OAUTH_REFRESH_TOKEN_LIFETIME": "120",
            "OAUTH_ALWAYS_ISSUE_NEW_REFRESH_TOKEN": "false",
            "OAUTH_ALLOW_BEARER_TOKENS_IN_QUERY_STRING": "yes",
            "OAUTH_DEFAULT_SCOPE": "read",
            "OAUTH_REALM": "api",
        }

        with patch.dict(os.environ, env, clear=True):
            config = ServerConfig.from_env()

        assert config.access_token_lifetime == 60
        assert config.refresh_token_lifetime == 120
        assert config.always_issue_new_refresh_token is False
        assert config.allow_bearer_tokens_in_query_string is True
        assert config.default_scope == "read"
        assert config.realm == "api"

    def test_from_env_handles_missing(self):
        """Test defaults are used when nothing is set."""
        with patch.dict(os.environ, {}, clear=True):
            config = ServerConfig.from_env()

        assert config == ServerConfig()

    def test_from_env_rejects_non_integer(self):
        """Test a malformed integer raises InvalidArgumentError."""
        with patch.dict(os.environ, {"OAUTH_TOKEN_LENGTH": "long"}, clear=True):
            with pytest.raises(InvalidArgumentError, match="OAUTH_TOKEN_LENGTH"):
                ServerConfig.from_env()

    @pytest.mark.parametrize(
        "field",
        [
            "access_token_lifetime",
            "refresh_token_lifetime",
            "authorization_code_lifetime",
        ],
    )
    def test_lifetimes_must_be_positive(self, field):
        """Test zero lifetimes are rejected."""
        with pytest.raises(InvalidArgumentError, match=field):
            ServerConfig(**{field: 0})

    def test_short_codes_rejected(self):
        """Test generated values must be at least 32 characters."""
        with pytest.raises(InvalidArgumentError):
            ServerConfig(authorization_code_length=16)
        with pytest.raises(InvalidArgumentError):
            ServerConfig(token_length=16)

    def test_with_options_overrides(self):
        """Test per-call overrides return a new config."""
        config = ServerConfig()

        overridden = config.with_options({"access_token_lifetime": 60})

        assert overridden.access_token_lifetime == 60
        assert config.access_token_lifetime == 3600

    def test_with_options_empty_returns_same(self):
        """Test no options is a no-op."""
        config = ServerConfig()

        assert config.with_options(None) is config
        assert config.with_options({}) is config

    def test_with_options_unknown_rejected(self):
        """Test unknown option names raise InvalidArgumentError."""
        with pytest.raises(InvalidArgumentError, match="bogus"):
            ServerConfig().with_options({"bogus": True})

    def test_with_options_revalidates(self):
        """Test overrides go through the same validation."""
        with pytest.raises(InvalidArgumentError):
            ServerConfig().with_options({"access_token_lifetime": -1})

    def test_requires_client_secret(self):
        """Test per-grant client authentication requirements."""
        config = ServerConfig(
            require_client_authentication={
                "password": False,
                "client_credentials": False,
            }
        )

        assert config.requires_client_secret("password") is False
        assert config.requires_client_secret("authorization_code") is True
        # client_credentials can never skip authentication
        assert config.requires_client_secret("client_credentials") is True


class TestServerConfigSingleton:
    """Tests for the cached configuration singleton."""

    def test_get_server_config_is_cached(self):
        """Test repeated calls return the same instance."""
        assert get_server_config() is get_server_config()

    def test_reset_reloads_environment(self):
        """Test reset_server_config picks up new environment values."""
        with patch.dict(os.environ, {"OAUTH_REALM": "first"}, clear=True):
            assert get_server_config().realm == "first"

        with patch.dict(os.environ, {"OAUTH_REALM": "second"}, clear=True):
            assert get_server_config().realm == "first"
            reset_server_config()
            assert get_server_config().realm == "second"
