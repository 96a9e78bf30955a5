"""
Unit tests for server configuration.
"""

import pytest

from userserver.config import ServerConfig


class TestServerConfig:

    def test_defaults(self):
        config = ServerConfig()
        assert config.host == "127.0.0.1"
        assert config.port == 8080
        assert config.keep_alive is True
        assert config.max_request_size == 1024 * 1024
        assert config.log_format == "text"
        config.validate()

    @pytest.mark.parametrize("overrides", [
        {"port": 0},
        {"port": 70000},
        {"min_workers": 0},
        {"min_workers": 8, "max_workers": 4},
        {"queue_size": 0},
        {"buffer_size": 100},
        {"timeout": 0},
        {"log_format": "xml"},
    ])
    def test_validate_rejects(self, overrides):
        with pytest.raises(ValueError):
            ServerConfig(**overrides).validate()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("HTTP_HOST", "0.0.0.0")
        monkeypatch.setenv("HTTP_PORT", "9000")
        monkeypatch.setenv("HTTP_WORKERS", "2")
        monkeypatch.setenv("HTTP_TIMEOUT", "2.5")
        monkeypatch.setenv("HTTP_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("HTTP_LOG_FORMAT", "json")

        config = ServerConfig.from_env()

        assert config.host == "0.0.0.0"
        assert config.port == 9000
        assert config.max_workers == 2
        assert config.min_workers == 2
        assert config.timeout == 2.5
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"
        config.validate()

    def test_from_env_defaults(self, monkeypatch):
        for name in ("HTTP_HOST", "HTTP_PORT", "HTTP_WORKERS", "HTTP_TIMEOUT",
                     "HTTP_LOG_LEVEL", "HTTP_LOG_FORMAT"):
            monkeypatch.delenv(name, raising=False)

        assert ServerConfig.from_env() == ServerConfig()
