"""
Test configuration and utilities
"""

import logging
from typing import Any, Dict, Optional

import pytest
import pytest_asyncio

from relay_mcp.config import SessionConfig
from relay_mcp.core import CapabilitySet, Tool, CallToolResult
from relay_mcp.mcp import McpServer, ToolSpecification
from relay_mcp.transport import MemoryTransport

# Configure pytest for async tests
pytest_plugins = ('pytest_asyncio',)


@pytest.fixture(autouse=True)
def setup_test_logging():
    """Setup logging for tests"""
    logging.basicConfig(
        level=logging.DEBUG,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Suppress noisy loggers during tests
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def add_tool_spec(name: str = "add") -> ToolSpecification:
    """Sync tool adding arguments a and b"""

    def add(exchange, arguments):
        total = arguments["a"] + arguments["b"]
        return CallToolResult.text(str(total))

    return ToolSpecification.sync(
        Tool(name=name, description="Add two numbers",
             input_schema={"type": "object", "properties": {"a": {"type": "number"}, "b": {"type": "number"}}}),
        add,
    )


@pytest.fixture
def session_config():
    """Short timeouts so failing tests fail fast"""
    return SessionConfig(request_timeout_seconds=1.0, shutdown_timeout_seconds=0.5)


@pytest.fixture
def full_capabilities():
    return (CapabilitySet.builder()
            .tools(True)
            .resources(False, True)
            .prompts(True)
            .logging()
            .build())


@pytest_asyncio.fixture
async def server(full_capabilities, session_config):
    """Server with every capability enabled and an 'add' tool"""
    server = (McpServer.builder()
              .server_info("test-server", "1.0.0")
              .capabilities(full_capabilities)
              .session_config(session_config)
              .tools(add_tool_spec())
              .build())
    yield server
    await server.shutdown()


@pytest.fixture
def connect():
    """Start a session on a memory transport and complete the handshake"""

    async def _connect(server: McpServer, client_capabilities: Optional[Dict[str, Any]] = None,
                       initialize: bool = True, transport: Optional[MemoryTransport] = None):
        transport = transport or MemoryTransport()
        session = await server.start(transport)
        if initialize:
            await session.receive({
                "jsonrpc": "2.0",
                "id": "init",
                "method": "initialize",
                "params": {
                    "protocolVersion": "2025-06-18",
                    "capabilities": client_capabilities or {},
                    "clientInfo": {"name": "test-client", "version": "1.0.0"},
                },
            })
            response = await transport.next_message()
            assert response["id"] == "init"
            await session.receive({"jsonrpc": "2.0", "method": "notifications/initialized"})
        return transport, session

    return _connect


async def call(session, transport, method: str, params: Optional[Dict[str, Any]] = None,
               request_id: Any = 1, timeout: float = 2.0) -> Dict[str, Any]:
    """Send one request and wait for the frame answering it"""
    frame = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        frame["params"] = params
    await session.receive(frame)
    while True:
        message = await transport.next_message(timeout)
        if message.get("id") == request_id and "method" not in message:
            return message


@pytest.fixture
def rpc():
    return call


@pytest.fixture
def make_add_tool():
    return add_tool_spec
