"""
Wire data models for the Model Context Protocol.

These pydantic models mirror the JSON shapes exchanged with MCP peers. Field
names are snake_case in Python and camelCase on the wire; always serialise
through ``to_wire()`` so aliases are applied and unset optionals are dropped.
"""

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..utils import fast_json as json

JSONRPC_VERSION = "2.0"
LATEST_PROTOCOL_VERSION = "2025-06-18"
SUPPORTED_PROTOCOL_VERSIONS = ("2025-06-18", "2025-03-26", "2024-11-05")

RequestId = Union[str, int]
Role = Literal["user", "assistant"]


class McpMethod:
    """Method names used on the wire"""
    INITIALIZE = "initialize"
    PING = "ping"
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"
    RESOURCES_LIST = "resources/list"
    RESOURCES_READ = "resources/read"
    RESOURCES_TEMPLATES_LIST = "resources/templates/list"
    PROMPTS_LIST = "prompts/list"
    PROMPTS_GET = "prompts/get"
    LOGGING_SET_LEVEL = "logging/setLevel"
    SAMPLING_CREATE_MESSAGE = "sampling/createMessage"

    NOTIFICATION_INITIALIZED = "notifications/initialized"
    NOTIFICATION_CANCELLED = "notifications/cancelled"
    NOTIFICATION_PROGRESS = "notifications/progress"
    NOTIFICATION_MESSAGE = "notifications/message"
    NOTIFICATION_TOOLS_LIST_CHANGED = "notifications/tools/list_changed"
    NOTIFICATION_RESOURCES_LIST_CHANGED = "notifications/resources/list_changed"
    NOTIFICATION_PROMPTS_LIST_CHANGED = "notifications/prompts/list_changed"


def negotiate_protocol_version(requested: Optional[str]) -> str:
    """Echo a supported client version, otherwise answer with the latest one"""
    if requested in SUPPORTED_PROTOCOL_VERSIONS:
        return requested
    return LATEST_PROTOCOL_VERSION


class MCPModel(BaseModel):
    """Base model: accepts both snake_case and camelCase input"""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    def to_wire(self) -> Dict[str, Any]:
        """Dump as a JSON-ready dict using wire field names"""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# ---------------------------------------------------------------------------
# JSON-RPC 2.0 envelopes
# ---------------------------------------------------------------------------

class JSONRPCRequest(MCPModel):
    """JSON-RPC 2.0 request (carries an id, expects a response)"""
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: RequestId
    method: str
    params: Optional[Dict[str, Any]] = None


class JSONRPCNotification(MCPModel):
    """JSON-RPC 2.0 notification (no id, no response)"""
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    method: str
    params: Optional[Dict[str, Any]] = None


class JSONRPCError(MCPModel):
    """JSON-RPC 2.0 error object"""
    code: int
    message: str
    data: Optional[Any] = None


class JSONRPCResponse(MCPModel):
    """JSON-RPC 2.0 response format"""
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: Optional[RequestId] = None
    result: Optional[Any] = None
    error: Optional[JSONRPCError] = None

    def to_wire(self) -> Dict[str, Any]:
        # id must be present even when null, result and error are exclusive
        message: Dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            message["error"] = self.error.to_wire()
        else:
            message["result"] = self.result if self.result is not None else {}
        return message


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------

class TextContent(MCPModel):
    type: Literal["text"] = "text"
    text: str


class ImageContent(MCPModel):
    type: Literal["image"] = "image"
    data: str
    mime_type: str = Field(alias="mimeType")


class TextResourceContents(MCPModel):
    uri: str
    mime_type: Optional[str] = Field(default=None, alias="mimeType")
    text: str


class BlobResourceContents(MCPModel):
    uri: str
    mime_type: Optional[str] = Field(default=None, alias="mimeType")
    blob: str


ResourceContents = Union[TextResourceContents, BlobResourceContents]


class EmbeddedResource(MCPModel):
    type: Literal["resource"] = "resource"
    resource: ResourceContents


Content = Annotated[
    Union[TextContent, ImageContent, EmbeddedResource],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Operation descriptors
# ---------------------------------------------------------------------------

class Tool(MCPModel):
    """Tool descriptor; the input schema is opaque to the server"""
    name: str
    description: Optional[str] = None
    input_schema: Dict[str, Any] = Field(default_factory=lambda: {"type": "object"}, alias="inputSchema")

    @field_validator("input_schema", mode="before")
    @classmethod
    def _parse_schema_text(cls, value: Any) -> Any:
        # Schemas are often authored as JSON text
        if isinstance(value, (str, bytes)):
            return json.loads(value)
        return value


class Resource(MCPModel):
    """Resource descriptor; a URI containing {placeholders} is a template"""
    uri: str
    name: str
    description: Optional[str] = None
    mime_type: Optional[str] = Field(default=None, alias="mimeType")

    @property
    def is_template(self) -> bool:
        return "{" in self.uri

    def to_template_wire(self) -> Dict[str, Any]:
        """Render as a resources/templates/list entry"""
        entry = self.to_wire()
        entry["uriTemplate"] = entry.pop("uri")
        return entry


class PromptArgument(MCPModel):
    name: str
    description: Optional[str] = None
    required: bool = False


class Prompt(MCPModel):
    name: str
    description: Optional[str] = None
    arguments: List[PromptArgument] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class CallToolResult(MCPModel):
    content: List[Content] = Field(default_factory=list)
    is_error: bool = Field(default=False, alias="isError")

    @classmethod
    def text(cls, text: str, is_error: bool = False) -> "CallToolResult":
        """Single text block result, the common case for tools"""
        return cls(content=[TextContent(text=text)], is_error=is_error)


class ReadResourceResult(MCPModel):
    contents: List[ResourceContents] = Field(default_factory=list)


class PromptMessage(MCPModel):
    role: Role
    content: Content


class GetPromptResult(MCPModel):
    description: Optional[str] = None
    messages: List[PromptMessage] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Handshake
# ---------------------------------------------------------------------------

class Implementation(MCPModel):
    """Name and version of a peer (serverInfo / clientInfo)"""
    name: str
    version: str


class ClientCapabilities(MCPModel):
    """What the client advertised; unknown groups are preserved"""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    roots: Optional[Dict[str, Any]] = None
    sampling: Optional[Dict[str, Any]] = None
    experimental: Optional[Dict[str, Any]] = None


class InitializeParams(MCPModel):
    protocol_version: str = Field(alias="protocolVersion")
    capabilities: ClientCapabilities = Field(default_factory=ClientCapabilities)
    client_info: Implementation = Field(alias="clientInfo")


# ---------------------------------------------------------------------------
# Request params
# ---------------------------------------------------------------------------

class CallToolParams(MCPModel):
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class ReadResourceParams(MCPModel):
    uri: str


class GetPromptParams(MCPModel):
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class CancelledParams(MCPModel):
    request_id: RequestId = Field(alias="requestId")
    reason: Optional[str] = None


# ---------------------------------------------------------------------------
# Sampling
# ---------------------------------------------------------------------------

class SamplingMessage(MCPModel):
    role: Role
    content: Union[TextContent, ImageContent]


class ModelHint(MCPModel):
    name: Optional[str] = None

    @classmethod
    def of(cls, name: str) -> "ModelHint":
        return cls(name=name)


class ModelPreferences(MCPModel):
    hints: Optional[List[ModelHint]] = None
    cost_priority: Optional[float] = Field(default=None, ge=0.0, le=1.0, alias="costPriority")
    speed_priority: Optional[float] = Field(default=None, ge=0.0, le=1.0, alias="speedPriority")
    intelligence_priority: Optional[float] = Field(default=None, ge=0.0, le=1.0, alias="intelligencePriority")


class CreateMessageRequest(MCPModel):
    """Params of a sampling/createMessage request sent to the client"""
    messages: List[SamplingMessage]
    model_preferences: Optional[ModelPreferences] = Field(default=None, alias="modelPreferences")
    system_prompt: Optional[str] = Field(default=None, alias="systemPrompt")
    include_context: Optional[Literal["none", "thisServer", "allServers"]] = Field(
        default=None, alias="includeContext"
    )
    temperature: Optional[float] = None
    max_tokens: int = Field(alias="maxTokens")
    stop_sequences: Optional[List[str]] = Field(default=None, alias="stopSequences")
    metadata: Optional[Dict[str, Any]] = None


class CreateMessageResult(MCPModel):
    role: Role
    content: Union[TextContent, ImageContent]
    model: str
    stop_reason: Optional[str] = Field(default=None, alias="stopReason")


# ---------------------------------------------------------------------------
# Logging and progress
# ---------------------------------------------------------------------------

class LoggingLevel(str, Enum):
    """Client-facing log levels (RFC 5424 severities), least severe first"""
    DEBUG = "debug"
    INFO = "info"
    NOTICE = "notice"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"
    ALERT = "alert"
    EMERGENCY = "emergency"

    @property
    def severity(self) -> int:
        return list(LoggingLevel).index(self)


class LoggingMessageNotification(MCPModel):
    level: LoggingLevel
    logger: Optional[str] = None
    data: Any


class SetLevelParams(MCPModel):
    level: LoggingLevel


class ProgressNotification(MCPModel):
    progress_token: RequestId = Field(alias="progressToken")
    progress: float
    total: Optional[float] = None
    message: Optional[str] = None
