"""
Unit tests for relay_mcp.config.manager module

Tests configuration loading, validation, and environment variable handling.
"""

import os
from unittest.mock import patch

import pytest

from relay_mcp.config.manager import (
    CLIENT_LOG_LEVELS,
    ConfigManager,
    ServerConfig,
    SessionConfig,
    get_config,
    init_config
)


@pytest.fixture
def isolated_env():
    """Restore os.environ after tests that load .env files"""
    with patch.dict(os.environ):
        yield


class TestConfigDataClasses:
    """Test configuration dataclass creation"""

    def test_server_config_defaults(self):
        """Test ServerConfig default values"""
        config = ServerConfig()

        assert config.host == "localhost"
        assert config.port == 8080
        assert config.debug_mode == False
        assert config.websocket_path == "/mcp"
        assert config.sse_path == "/sse"
        assert config.message_path == "/msg"

    def test_session_config_defaults(self):
        """Test SessionConfig default values"""
        config = SessionConfig()

        assert config.request_timeout_seconds == 30.0
        assert config.shutdown_timeout_seconds == 5.0
        assert config.default_log_level == "info"
        assert config.max_pending_requests == 100

    def test_client_log_levels_are_ordered(self):
        assert CLIENT_LOG_LEVELS[0] == "debug"
        assert CLIENT_LOG_LEVELS[-1] == "emergency"


class TestEnvironmentLoading:
    """Test environment variable loading"""

    def test_env_variable_override(self, monkeypatch):
        """Test that environment variables override defaults"""
        monkeypatch.setenv("SERVER_PORT", "9000")
        monkeypatch.setenv("SERVER_HOST", "0.0.0.0")

        manager = ConfigManager()

        assert manager.server.port == 9000
        assert manager.server.host == "0.0.0.0"

    def test_session_env_variables(self, monkeypatch):
        """Test session configuration from environment"""
        monkeypatch.setenv("REQUEST_TIMEOUT_SECONDS", "2.5")
        monkeypatch.setenv("SHUTDOWN_TIMEOUT_SECONDS", "1")
        monkeypatch.setenv("DEFAULT_CLIENT_LOG_LEVEL", "WARNING")

        manager = ConfigManager()

        assert manager.session.request_timeout_seconds == 2.5
        assert manager.session.shutdown_timeout_seconds == 1.0
        assert manager.session.default_log_level == "warning"

    def test_boolean_env_variables(self, monkeypatch):
        """Test boolean environment variable parsing"""
        monkeypatch.setenv("DEBUG_MODE", "yes")

        manager = ConfigManager()

        assert manager.server.debug_mode == True

    def test_invalid_int_falls_back_to_default(self, monkeypatch):
        monkeypatch.setenv("SERVER_PORT", "eighty")

        manager = ConfigManager()

        assert manager.server.port == 8080


class TestEnvFileLoading:
    """Test .env file loading"""

    def test_load_from_env_file(self, tmp_path, isolated_env):
        """Test loading configuration from .env file"""
        env_file = tmp_path / ".env"
        env_file.write_text(
            "# Relay settings\n"
            "\n"
            "SERVER_PORT=7777\n"
            "REQUEST_TIMEOUT_SECONDS=12\n"
        )

        manager = ConfigManager(env_file_path=str(env_file))

        assert manager.server.port == 7777
        assert manager.session.request_timeout_seconds == 12.0

    def test_missing_env_file_is_ignored(self, tmp_path):
        manager = ConfigManager(env_file_path=str(tmp_path / "missing.env"))

        assert isinstance(manager.server, ServerConfig)


class TestConfigValidation:
    """Test configuration validation"""

    def test_invalid_port_range(self, monkeypatch):
        """Test validation of port range"""
        monkeypatch.setenv("SERVER_PORT", "70000")

        with pytest.raises(ValueError, match="port"):
            ConfigManager()

    def test_non_positive_timeout(self, monkeypatch):
        monkeypatch.setenv("REQUEST_TIMEOUT_SECONDS", "0")

        with pytest.raises(ValueError, match="request_timeout_seconds"):
            ConfigManager()

    def test_unknown_client_log_level(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_CLIENT_LOG_LEVEL", "verbose")

        with pytest.raises(ValueError, match="default_log_level"):
            ConfigManager()

    def test_paths_must_be_absolute(self, monkeypatch):
        monkeypatch.setenv("SSE_PATH", "sse")

        with pytest.raises(ValueError, match="sse_path"):
            ConfigManager()

    def test_all_errors_reported_together(self, monkeypatch):
        monkeypatch.setenv("SERVER_PORT", "0")
        monkeypatch.setenv("MAX_PENDING_REQUESTS", "0")

        with pytest.raises(ValueError) as exc_info:
            ConfigManager()

        assert "port" in str(exc_info.value)
        assert "max_pending_requests" in str(exc_info.value)


class TestGetConfigSummary:
    """Test configuration summary"""

    def test_summary_contains_key_values(self):
        summary = ConfigManager().get_summary()

        assert summary["endpoints"]["websocket"] == "/mcp"
        assert summary["session"]["request_timeout_seconds"] == 30.0


class TestGlobalConfigFunctions:
    """Test global configuration accessors"""

    def test_get_config_returns_same_instance(self):
        assert get_config() is get_config()

    def test_init_config_creates_new_instance(self):
        first = get_config()
        second = init_config()

        assert second is not first
        assert get_config() is second
