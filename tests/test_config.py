"""Tests for configuration loading."""

import os
from unittest.mock import patch

import pytest

from d42sync.config import ClientConfig, ConfigurationError


class TestClientConfig:
    """Tests for ClientConfig class."""

    def test_valid_config(self) -> None:
        """Test creating a valid configuration."""
        config = ClientConfig(host="d42.example.com", username="admin", password="secret")

        assert config.base_url == "https://d42.example.com/api"
        assert config.auth == ("admin", "secret")
        assert config.tls_insecure is False
        assert config.read_errors_as_absent is True
        assert config.strict_delete is False

    def test_missing_host(self) -> None:
        """Test that a missing host is fatal at setup."""
        with pytest.raises(ConfigurationError) as exc_info:
            ClientConfig(host="")

        assert "no Device42 host was provided" in str(exc_info.value)

    def test_host_with_port(self) -> None:
        """Test that host:port is accepted."""
        config = ClientConfig(host="10.0.0.5:8443")
        assert config.base_url == "https://10.0.0.5:8443/api"

    @pytest.mark.parametrize("host", ["https://d42.example.com", "d42.example.com/api", "d42 host"])
    def test_host_must_be_bare(self, host: str) -> None:
        """Test that schemes, paths and spaces are rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            ClientConfig(host=host)

        assert "bare hostname" in str(exc_info.value)

    def test_anonymous_auth(self) -> None:
        """Test that no username means no basic auth."""
        config = ClientConfig(host="d42.example.com")
        assert config.auth is None

    def test_password_without_username(self) -> None:
        """Test that a password alone is rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            ClientConfig(host="d42.example.com", password="secret")

        assert "D42_USER" in str(exc_info.value)

    def test_invalid_timeout(self) -> None:
        """Test that out-of-range timeout raises error."""
        with pytest.raises(ConfigurationError) as exc_info:
            ClientConfig(host="d42.example.com", timeout_seconds=0)

        assert "D42_TIMEOUT" in str(exc_info.value)

    def test_invalid_retries(self) -> None:
        """Test that out-of-range retries raise error."""
        with pytest.raises(ConfigurationError) as exc_info:
            ClientConfig(host="d42.example.com", max_retries=10)

        assert "D42_MAX_RETRIES" in str(exc_info.value)

    def test_all_errors_reported_together(self) -> None:
        """Test that validation collects every error before raising."""
        with pytest.raises(ConfigurationError) as exc_info:
            ClientConfig(host="", timeout_seconds=0, max_retries=-1)

        message = str(exc_info.value)
        assert "host" in message
        assert "D42_TIMEOUT" in message
        assert "D42_MAX_RETRIES" in message

    def test_repr_hides_password(self) -> None:
        """Test that the password never shows up in repr."""
        config = ClientConfig(host="d42.example.com", username="admin", password="hunter2")
        assert "hunter2" not in repr(config)
        assert "***" in repr(config)


class TestConfigFromEnv:
    """Tests for loading config from environment."""

    def test_from_env_minimal(self) -> None:
        """Test loading config with only the required host."""
        with patch.dict(os.environ, {"D42_HOST": "d42.example.com"}, clear=True):
            config = ClientConfig.from_env()

        assert config.host == "d42.example.com"
        assert config.username == ""
        assert config.tls_insecure is False
        assert config.timeout_seconds == 30
        assert config.retry_backoff_seconds == 0.5

    def test_from_env_full(self) -> None:
        """Test loading every supported variable."""
        env = {
            "D42_HOST": "d42.example.com",
            "D42_USER": "admin",
            "D42_PASS": "secret",
            "D42_TLS_INSECURE": "true",
            "D42_TIMEOUT": "10",
            "D42_MAX_RETRIES": "2",
            "D42_RETRY_BACKOFF": "1.5",
            "D42_READ_ERRORS_AS_ABSENT": "false",
            "D42_STRICT_DELETE": "yes",
        }
        with patch.dict(os.environ, env, clear=True):
            config = ClientConfig.from_env()

        assert config.auth == ("admin", "secret")
        assert config.tls_insecure is True
        assert config.timeout_seconds == 10
        assert config.max_retries == 2
        assert config.retry_backoff_seconds == 1.5
        assert config.read_errors_as_absent is False
        assert config.strict_delete is True

    def test_from_env_missing_host(self) -> None:
        """Test that a missing D42_HOST fails immediately."""
        with patch.dict(os.environ, {}, clear=True), pytest.raises(ConfigurationError):
            ClientConfig.from_env()

    def test_from_env_invalid_integer(self) -> None:
        """Test that invalid integer values raise error."""
        env = {"D42_HOST": "d42.example.com", "D42_TIMEOUT": "soon"}
        with patch.dict(os.environ, env, clear=True):
            with pytest.raises(ConfigurationError) as exc_info:
                ClientConfig.from_env()

        assert "must be an integer" in str(exc_info.value)

    def test_from_env_invalid_backoff(self) -> None:
        """Test that a non-numeric retry backoff raises error."""
        env = {"D42_HOST": "d42.example.com", "D42_RETRY_BACKOFF": "fast"}
        with patch.dict(os.environ, env, clear=True):
            with pytest.raises(ConfigurationError) as exc_info:
                ClientConfig.from_env()

        assert "D42_RETRY_BACKOFF must be a number" in str(exc_info.value)

    def test_from_env_negative_backoff(self) -> None:
        """Test that a negative retry backoff fails validation."""
        env = {"D42_HOST": "d42.example.com", "D42_RETRY_BACKOFF": "-1"}
        with patch.dict(os.environ, env, clear=True):
            with pytest.raises(ConfigurationError) as exc_info:
                ClientConfig.from_env()

        assert "D42_RETRY_BACKOFF cannot be negative" in str(exc_info.value)
