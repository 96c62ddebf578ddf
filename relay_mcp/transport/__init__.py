"""
Transports carrying MCP frames between a client and a session
"""

from .base import Transport, MemoryTransport
from .websocket import WebSocketTransport, WebSocketEndpoint
from .sse import SseTransport, SseEndpoint

__all__ = [
    "Transport",
    "MemoryTransport",
    "WebSocketTransport",
    "WebSocketEndpoint",
    "SseTransport",
    "SseEndpoint",
]
