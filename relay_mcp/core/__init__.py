"""
Shared core foundation for Relay MCP.

Components:
- models: MCP wire models (JSON-RPC envelopes, descriptors, results, sampling)
- capabilities: frozen capability descriptor and its builder
- errors: error kinds raised by the dispatch core
"""

from .models import (
    JSONRPC_VERSION,
    LATEST_PROTOCOL_VERSION,
    SUPPORTED_PROTOCOL_VERSIONS,
    McpMethod,
    negotiate_protocol_version,
    JSONRPCRequest,
    JSONRPCNotification,
    JSONRPCResponse,
    JSONRPCError,
    TextContent,
    ImageContent,
    EmbeddedResource,
    TextResourceContents,
    BlobResourceContents,
    Tool,
    Resource,
    Prompt,
    PromptArgument,
    PromptMessage,
    CallToolResult,
    ReadResourceResult,
    GetPromptResult,
    Implementation,
    ClientCapabilities,
    InitializeParams,
    SamplingMessage,
    ModelHint,
    ModelPreferences,
    CreateMessageRequest,
    CreateMessageResult,
    LoggingLevel,
    LoggingMessageNotification,
    ProgressNotification,
)
from .capabilities import Feature, CapabilitySet, CapabilitySetBuilder
from .errors import (
    MCPServerError,
    NotInitializedError,
    SessionClosedError,
    CapabilityDisabledError,
    NotFoundError,
    ResourceNotFoundError,
    ConfigurationError,
    HandlerFaultError,
    PeerTimeoutError,
    PeerError,
    SessionCorruptedError,
)

__all__ = [
    # Protocol constants
    "JSONRPC_VERSION",
    "LATEST_PROTOCOL_VERSION",
    "SUPPORTED_PROTOCOL_VERSIONS",
    "McpMethod",
    "negotiate_protocol_version",

    # Wire models
    "JSONRPCRequest",
    "JSONRPCNotification",
    "JSONRPCResponse",
    "JSONRPCError",
    "TextContent",
    "ImageContent",
    "EmbeddedResource",
    "TextResourceContents",
    "BlobResourceContents",
    "Tool",
    "Resource",
    "Prompt",
    "PromptArgument",
    "PromptMessage",
    "CallToolResult",
    "ReadResourceResult",
    "GetPromptResult",
    "Implementation",
    "ClientCapabilities",
    "InitializeParams",
    "SamplingMessage",
    "ModelHint",
    "ModelPreferences",
    "CreateMessageRequest",
    "CreateMessageResult",
    "LoggingLevel",
    "LoggingMessageNotification",
    "ProgressNotification",

    # Capabilities
    "Feature",
    "CapabilitySet",
    "CapabilitySetBuilder",

    # Errors
    "MCPServerError",
    "NotInitializedError",
    "SessionClosedError",
    "CapabilityDisabledError",
    "NotFoundError",
    "ResourceNotFoundError",
    "ConfigurationError",
    "HandlerFaultError",
    "PeerTimeoutError",
    "PeerError",
    "SessionCorruptedError",
]
