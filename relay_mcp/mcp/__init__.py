"""
MCP protocol dispatch core: registries, dispatcher, exchange, sessions and server host
"""

from .features import (
    HandlerMode,
    SyncHandler,
    AsyncHandler,
    ResourceRequest,
    ToolSpecification,
    ResourceSpecification,
    PromptSpecification,
)
from .registry import Registry, ToolRegistry, ResourceRegistry, PromptRegistry
from .pending import PendingRequestTable
from .exchange import Exchange, SyncExchange
from .dispatcher import Dispatcher
from .session import Session, SessionState
from .server import McpServer, McpServerBuilder, default_capabilities

__all__ = [
    "HandlerMode",
    "SyncHandler",
    "AsyncHandler",
    "ResourceRequest",
    "ToolSpecification",
    "ResourceSpecification",
    "PromptSpecification",
    "Registry",
    "ToolRegistry",
    "ResourceRegistry",
    "PromptRegistry",
    "PendingRequestTable",
    "Exchange",
    "SyncExchange",
    "Dispatcher",
    "Session",
    "SessionState",
    "McpServer",
    "McpServerBuilder",
    "default_capabilities",
]
