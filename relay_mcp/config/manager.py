"""
Configuration Manager for Relay MCP Server
==========================================

Centralized configuration management with environment variable loading,
validation, and type safety for the hosting process and session defaults.
"""

import os
import logging
from dataclasses import dataclass
from typing import Dict, Any, Optional
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


CLIENT_LOG_LEVELS = (
    "debug", "info", "notice", "warning", "error", "critical", "alert", "emergency"
)


@dataclass
class ServerConfig:
    """Server connection and runtime configuration"""
    host: str = "localhost"
    port: int = 8080
    debug_mode: bool = False
    log_level: str = "INFO"
    log_file: Optional[str] = None
    websocket_path: str = "/mcp"
    sse_path: str = "/sse"
    message_path: str = "/msg"
    server_name: str = "relay-mcp-server"
    server_version: str = "0.1.0"


@dataclass
class SessionConfig:
    """Per-session protocol timing and limits"""
    request_timeout_seconds: float = 30.0
    shutdown_timeout_seconds: float = 5.0
    default_log_level: str = "info"
    max_pending_requests: int = 100


class ConfigManager:
    """
    Centralized configuration manager with environment variable loading
    and runtime validation for all system settings.
    """

    def __init__(self, env_file_path: Optional[str] = None):
        """
        Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file for loading environment variables
        """
        self._load_env_file(env_file_path)

        self.server = self._load_server_config()
        self.session = self._load_session_config()

        self._validate_configuration()

        logger.info("Configuration loaded and validated successfully")

    def _load_env_file(self, env_file_path: Optional[str]) -> None:
        """Load environment variables from .env file if it exists"""
        env_path = Path(env_file_path) if env_file_path else Path(".env")

        if env_path.exists():
            load_dotenv(env_path, override=True)
            logger.info(f"Loaded environment variables from {env_path}")

    def _get_env_bool(self, key: str, default: bool) -> bool:
        """Get boolean environment variable with proper conversion"""
        value = os.getenv(key, str(default)).lower()
        return value in ('true', '1', 'yes', 'on')

    def _get_env_int(self, key: str, default: int) -> int:
        """Get integer environment variable with validation"""
        try:
            return int(os.getenv(key, str(default)))
        except ValueError:
            logger.warning(f"Invalid integer value for {key}, using default: {default}")
            return default

    def _get_env_float(self, key: str, default: float) -> float:
        """Get float environment variable with validation"""
        try:
            return float(os.getenv(key, str(default)))
        except ValueError:
            logger.warning(f"Invalid float value for {key}, using default: {default}")
            return default

    def _load_server_config(self) -> ServerConfig:
        """Load server configuration from environment variables"""
        return ServerConfig(
            host=os.getenv("SERVER_HOST", "localhost"),
            port=self._get_env_int("SERVER_PORT", 8080),
            debug_mode=self._get_env_bool("DEBUG_MODE", False),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE") or None,
            websocket_path=os.getenv("WEBSOCKET_PATH", "/mcp"),
            sse_path=os.getenv("SSE_PATH", "/sse"),
            message_path=os.getenv("MESSAGE_PATH", "/msg"),
            server_name=os.getenv("SERVER_NAME", "relay-mcp-server"),
            server_version=os.getenv("SERVER_VERSION", "0.1.0")
        )

    def _load_session_config(self) -> SessionConfig:
        """Load session configuration from environment variables"""
        return SessionConfig(
            request_timeout_seconds=self._get_env_float("REQUEST_TIMEOUT_SECONDS", 30.0),
            shutdown_timeout_seconds=self._get_env_float("SHUTDOWN_TIMEOUT_SECONDS", 5.0),
            default_log_level=os.getenv("DEFAULT_CLIENT_LOG_LEVEL", "info").lower(),
            max_pending_requests=self._get_env_int("MAX_PENDING_REQUESTS", 100)
        )

    def _validate_configuration(self) -> None:
        """Validate configuration values for consistency and ranges"""
        errors = []

        if not (1 <= self.server.port <= 65535):
            errors.append("Server port must be between 1 and 65535")

        for path_name in ("websocket_path", "sse_path", "message_path"):
            if not getattr(self.server, path_name).startswith("/"):
                errors.append(f"Server {path_name} must start with '/'")

        if self.session.request_timeout_seconds <= 0:
            errors.append("Session request_timeout_seconds must be positive")

        if self.session.shutdown_timeout_seconds <= 0:
            errors.append("Session shutdown_timeout_seconds must be positive")

        if self.session.default_log_level not in CLIENT_LOG_LEVELS:
            errors.append(
                f"Session default_log_level must be one of {', '.join(CLIENT_LOG_LEVELS)}"
            )

        if self.session.max_pending_requests < 1:
            errors.append("Session max_pending_requests must be at least 1")

        if errors:
            error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {error}" for error in errors)
            logger.error(error_msg)
            raise ValueError(error_msg)

    def get_summary(self) -> Dict[str, Any]:
        """Get configuration summary for logging and debugging"""
        return {
            "server": {
                "host": self.server.host,
                "port": self.server.port,
                "debug_mode": self.server.debug_mode,
                "name": self.server.server_name,
                "version": self.server.server_version
            },
            "endpoints": {
                "websocket": self.server.websocket_path,
                "sse": self.server.sse_path,
                "message": self.server.message_path
            },
            "session": {
                "request_timeout_seconds": self.session.request_timeout_seconds,
                "shutdown_timeout_seconds": self.session.shutdown_timeout_seconds,
                "default_log_level": self.session.default_log_level
            }
        }


# Global configuration instance (initialized on first use)
_config_instance: Optional[ConfigManager] = None


def get_config() -> ConfigManager:
    """
    Get the global configuration instance.

    Returns:
        ConfigManager: The global configuration instance
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = ConfigManager()
    return _config_instance


def init_config(env_file_path: Optional[str] = None) -> ConfigManager:
    """
    Initialize the global configuration instance with custom env file.

    Args:
        env_file_path: Optional path to .env file

    Returns:
        ConfigManager: The initialized configuration instance
    """
    global _config_instance
    _config_instance = ConfigManager(env_file_path)
    return _config_instance
