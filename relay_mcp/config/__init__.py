"""
Configuration management package for Relay MCP Server

Provides centralized configuration management with:
- Environment variable loading from .env files
- Runtime configuration validation
- Type-safe configuration classes
- Global configuration access patterns

Usage:
    from relay_mcp.config import get_config

    config = get_config()
    print(f"Server running on {config.server.host}:{config.server.port}")
    print(f"Sampling timeout: {config.session.request_timeout_seconds}s")
"""

from .manager import (
    CLIENT_LOG_LEVELS,
    ConfigManager,
    ServerConfig,
    SessionConfig,
    get_config,
    init_config
)

__all__ = [
    "CLIENT_LOG_LEVELS",
    "ConfigManager",
    "ServerConfig",
    "SessionConfig",
    "get_config",
    "init_config"
]
