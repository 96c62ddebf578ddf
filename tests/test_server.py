"""
Tests for the server host: builder, registry mutation and broadcast
"""

import asyncio

import pytest

from relay_mcp.core import (
    CapabilitySet,
    ConfigurationError,
    LoggingLevel,
    LoggingMessageNotification,
    NotFoundError,
    Tool,
)
from relay_mcp.mcp import McpServer, SessionState, ToolSpecification


async def next_notification(transport, timeout=1.0):
    while True:
        message = await transport.next_message(timeout)
        if "method" in message and "id" not in message:
            return message


class TestBuilder:
    """Test building servers"""

    def test_defaults(self):
        server = McpServer.builder().build()

        assert server.server_info.name == "relay-mcp-server"
        assert server.capabilities.supports("tools")
        assert server.capabilities.supports("logging")
        assert not server.capabilities.notifies("tools")

    def test_initial_specs_registered(self, make_add_tool):
        server = McpServer.builder().tools(make_add_tool("add"), make_add_tool("plus")).build()

        assert [spec.key for spec in server.tools.list()] == ["add", "plus"]

    def test_specs_for_disabled_capability_rejected(self, make_add_tool):
        builder = (McpServer.builder()
                   .capabilities(CapabilitySet.builder().prompts().build())
                   .tools(make_add_tool()))

        with pytest.raises(ConfigurationError):
            builder.build()

    def test_request_timeout(self):
        server = McpServer.builder().request_timeout(2.5).build()

        assert server.session_config.request_timeout_seconds == 2.5

    def test_request_timeout_must_be_positive(self):
        with pytest.raises(ConfigurationError):
            McpServer.builder().request_timeout(0)

    def test_capabilities_cannot_be_replaced(self):
        server = McpServer.builder().capabilities(CapabilitySet.builder().tools(True).build()).build()

        with pytest.raises(AttributeError):
            server.capabilities = CapabilitySet.builder().prompts().build()
        with pytest.raises(ConfigurationError):
            server.capabilities.tools = None

        assert server.capabilities.notifies("tools")

    def test_instructions_stored(self):
        server = McpServer.builder().instructions("Use the calculator").build()

        assert server.instructions == "Use the calculator"


class TestRegistryMutation:
    """Test add/remove through the server"""

    def test_add_to_disabled_capability_rejected(self, make_add_tool):
        server = McpServer.builder().capabilities(CapabilitySet.builder().prompts().build()).build()

        with pytest.raises(ConfigurationError):
            server.add_tool(make_add_tool())

    def test_remove_unknown_raises_not_found(self):
        server = McpServer.builder().build()

        with pytest.raises(NotFoundError):
            server.remove_prompt("missing")

    @pytest.mark.asyncio
    async def test_add_broadcasts_list_changed(self, server, connect, make_add_tool):
        first, _ = await connect(server)
        second, _ = await connect(server)

        server.add_tool(make_add_tool("plus"))

        for transport in (first, second):
            notification = await next_notification(transport)
            assert notification == {"jsonrpc": "2.0", "method": "notifications/tools/list_changed"}

    @pytest.mark.asyncio
    async def test_remove_broadcasts_list_changed(self, server, connect):
        transport, _ = await connect(server)

        server.remove_tool("add")

        notification = await next_notification(transport)
        assert notification["method"] == "notifications/tools/list_changed"
        assert len(server.tools) == 0

    @pytest.mark.asyncio
    async def test_no_notification_without_list_changed(self, connect, rpc, session_config, make_add_tool):
        server = (McpServer.builder()
                  .capabilities(CapabilitySet.builder().tools(False).build())
                  .session_config(session_config)
                  .build())
        transport, session = await connect(server)

        server.add_tool(make_add_tool())
        response = await rpc(session, transport, "ping")

        assert response["result"] == {}
        assert transport.drain() == []
        await server.shutdown()

    @pytest.mark.asyncio
    async def test_add_from_sync_handler_thread(self, server, connect, rpc, make_add_tool):
        def installer(exchange, arguments):
            server.add_tool(make_add_tool("installed"))
            return "installed"

        server.add_tool(ToolSpecification.sync(Tool(name="installer"), installer))
        transport, session = await connect(server)

        await session.receive({"jsonrpc": "2.0", "id": 1, "method": "tools/call",
                               "params": {"name": "installer"}})
        messages = [await transport.next_message(), await transport.next_message()]

        methods = [message.get("method") for message in messages]
        assert "notifications/tools/list_changed" in methods
        assert "installed" in server.tools


class TestBroadcast:
    """Test explicit notifications to every session"""

    @pytest.mark.asyncio
    async def test_notify_event(self, server, connect):
        transport, _ = await connect(server)

        await server.notify("prompts")

        notification = await next_notification(transport)
        assert notification["method"] == "notifications/prompts/list_changed"

    @pytest.mark.asyncio
    async def test_notify_rejects_logging(self, server):
        with pytest.raises(ConfigurationError):
            await server.notify("logging")

    @pytest.mark.asyncio
    async def test_logging_notification(self, server, connect):
        first, _ = await connect(server)
        second, _ = await connect(server)

        await server.logging_notification(LoggingMessageNotification(
            level=LoggingLevel.INFO, logger="custom-logger", data="Custom log message"
        ))

        for transport in (first, second):
            notification = await next_notification(transport)
            assert notification["params"] == {
                "level": "info", "logger": "custom-logger", "data": "Custom log message"
            }

    @pytest.mark.asyncio
    async def test_uninitialized_sessions_get_nothing(self, server, connect):
        transport, session = await connect(server, initialize=False)

        await server.notify("tools")
        await asyncio.sleep(0.01)

        assert transport.drain() == []


class TestShutdown:
    """Test closing every session"""

    @pytest.mark.asyncio
    async def test_shutdown_closes_sessions(self, server, connect):
        sessions = [(await connect(server))[1] for _ in range(3)]

        await server.shutdown()

        assert all(session.state is SessionState.CLOSED for session in sessions)
        assert server.sessions == []
