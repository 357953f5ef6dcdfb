"""Tests for fileserver_sdk/config.py module."""

import pytest

from fileserver_sdk.config import ServerConfig

ENV_VARS = ("FILESERVER_PATHSPEC", "FILESERVER_ZIP", "FILESERVER_DEBUG", "HOST", "PORT")


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestServerConfig:
    """Test suite for ServerConfig.from_env."""

    def test_defaults(self, clean_env):
        """Test the configuration with no environment set."""
        assert ServerConfig.from_env() == ServerConfig(
            pathspec=".", zip_mode=False, debug=False, host="127.0.0.1", port=8000,
        )

    def test_values_from_env(self, clean_env):
        """Test that every field is read from its variable."""
        clean_env.setenv("FILESERVER_PATHSPEC", "/srv/site.zip")
        clean_env.setenv("FILESERVER_ZIP", "true")
        clean_env.setenv("FILESERVER_DEBUG", "1")
        clean_env.setenv("HOST", "0.0.0.0")
        clean_env.setenv("PORT", "8080")
        config = ServerConfig.from_env()
        assert config.pathspec == "/srv/site.zip"
        assert config.zip_mode is True
        assert config.debug is True
        assert config.host == "0.0.0.0"
        assert config.port == 8080

    @pytest.mark.parametrize("value, expected", [("ON", True), (" yes ", True), ("0", False), ("off", False), ("", False)])
    def test_flag_parsing(self, clean_env, value, expected):
        """Test accepted spellings of boolean flags."""
        clean_env.setenv("FILESERVER_DEBUG", value)
        assert ServerConfig.from_env().debug is expected

    def test_invalid_port(self, clean_env):
        """Test that a non-numeric port is rejected."""
        clean_env.setenv("PORT", "http")
        with pytest.raises(ValueError):
            ServerConfig.from_env()
