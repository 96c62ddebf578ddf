"""
WebSocket transport for MCP JSON-RPC 2.0 over aiohttp
"""

from typing import Any, Dict

from aiohttp import web, WSMsgType

from ..core.errors import PARSE_ERROR, SessionClosedError
from ..logging import get_logger, set_correlation_id, clear_correlation_id
from ..utils import fast_json as json


class WebSocketTransport:
    """Session transport writing text frames to one WebSocket"""

    def __init__(self, ws: web.WebSocketResponse):
        self.ws = ws

    async def send(self, message: Dict[str, Any]) -> None:
        await self.ws.send_str(json.dumps(message))

    async def close(self) -> None:
        if not self.ws.closed:
            await self.ws.close()


class WebSocketEndpoint:
    """aiohttp request handler: one MCP session per WebSocket connection"""

    def __init__(self, server):
        self.server = server
        self.logger = get_logger(__name__)

    async def handle(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        session = await self.server.start(WebSocketTransport(ws))
        set_correlation_id(session.id)
        self.logger.info(f"New WebSocket connection established: {session.id[:8]}")

        try:
            async for msg in ws:
                if msg.type == WSMsgType.TEXT:
                    try:
                        frame = json.loads(msg.data)
                    except json.JSONDecodeError as e:
                        error_response = {
                            "jsonrpc": "2.0",
                            "error": {
                                "code": PARSE_ERROR,
                                "message": "Parse error",
                                "data": str(e)
                            },
                            "id": None
                        }
                        await ws.send_str(json.dumps(error_response))
                        continue

                    try:
                        await session.receive(frame)
                    except SessionClosedError:
                        break

                elif msg.type == WSMsgType.ERROR:
                    self.logger.error(f"WebSocket error: {ws.exception()}")
                    break

        finally:
            try:
                await session.close()
            finally:
                self.logger.info(f"WebSocket connection closed: {session.id[:8]}")
                clear_correlation_id()

        return ws
