"""
Error kinds raised by the protocol dispatch core.

Each exception carries the JSON-RPC error code used when it is reported to
the client as an error response.
"""

from typing import Any, Dict, Optional

# Standard JSON-RPC 2.0 error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# Implementation-defined server error codes
NOT_INITIALIZED = -32000
SESSION_CLOSED = -32001
RESOURCE_NOT_FOUND = -32002
REQUEST_TIMEOUT = -32003


class MCPServerError(Exception):
    """Base class for every error raised by the dispatch core"""

    code: int = INTERNAL_ERROR

    def __init__(self, message: str, data: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.data = data

    def to_error(self) -> Dict[str, Any]:
        """Render as a JSON-RPC error object"""
        error: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error


class NotInitializedError(MCPServerError):
    """A call arrived before the capability handshake completed"""

    code = NOT_INITIALIZED


class SessionClosedError(MCPServerError):
    """A call or pending request met a session that is shutting down or closed"""

    code = SESSION_CLOSED


class CapabilityDisabledError(MCPServerError):
    """The feature group the call needs was not negotiated"""

    code = METHOD_NOT_FOUND


class NotFoundError(MCPServerError):
    """No operation is registered under the requested name"""

    code = INVALID_PARAMS


class ResourceNotFoundError(NotFoundError):
    """No resource or resource template matches the requested URI"""

    code = RESOURCE_NOT_FOUND


class ConfigurationError(MCPServerError):
    """Programmer error: invalid registration, capability change after negotiation, misuse"""


class HandlerFaultError(MCPServerError):
    """A handler raised an unexpected exception"""


class PeerTimeoutError(MCPServerError):
    """The client never answered a server-initiated request in time"""

    code = REQUEST_TIMEOUT


class PeerError(MCPServerError):
    """The client answered a server-initiated request with a JSON-RPC error"""

    def __init__(self, code: int, message: str, data: Optional[Any] = None):
        super().__init__(message, data)
        self.code = code


class SessionCorruptedError(MCPServerError):
    """Fatal: the session can no longer be trusted and must be torn down"""


class InvalidRequestError(MCPServerError):
    """The inbound frame is not a valid JSON-RPC 2.0 message"""

    code = INVALID_REQUEST


class InvalidParamsError(MCPServerError):
    """The request params do not match the method's expected shape"""

    code = INVALID_PARAMS


class MethodNotFoundError(MCPServerError):
    """The request names a method this server does not implement"""

    code = METHOD_NOT_FOUND
