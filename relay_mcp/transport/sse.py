"""
HTTP + Server-Sent Events transport

The client opens ``GET /sse`` and receives an ``endpoint`` event naming the
URL to POST its messages to (``/msg?sessionId=<id>``). Server frames are
pushed down the event stream as ``message`` events; each POST is answered
with 202 Accepted once the frame has been handed to the session.
"""

import asyncio
from typing import Any, Dict

from aiohttp import web

from ..core.errors import PARSE_ERROR, SessionClosedError
from ..logging import get_logger, with_session_id
from ..utils import fast_json as json

KEEPALIVE_SECONDS = 15.0


class SseTransport:
    """Session transport writing events to one open event stream"""

    def __init__(self, response: web.StreamResponse):
        self.response = response
        self.closed = asyncio.Event()

    async def send_event(self, event: str, data: str) -> None:
        if self.closed.is_set():
            raise ConnectionError("Event stream is closed")
        await self.response.write(f"event: {event}\ndata: {data}\n\n".encode("utf-8"))

    async def send(self, message: Dict[str, Any]) -> None:
        await self.send_event("message", json.dumps(message))

    async def close(self) -> None:
        self.closed.set()


class SseEndpoint:
    """aiohttp handlers for the event stream and the message POST endpoint"""

    def __init__(self, server, message_path: str = "/msg"):
        self.server = server
        self.message_path = message_path
        self.logger = get_logger(__name__)

    async def handle_stream(self, request: web.Request) -> web.StreamResponse:
        response = web.StreamResponse(headers={
            "Content-Type": "text/event-stream",
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        })
        await response.prepare(request)

        transport = SseTransport(response)
        session = await self.server.start(transport)

        with with_session_id(session.id):
            self.logger.info(f"New SSE connection established: {session.id[:8]}")
            try:
                await transport.send_event("endpoint", f"{self.message_path}?sessionId={session.id}")
                while not transport.closed.is_set():
                    try:
                        await asyncio.wait_for(transport.closed.wait(), KEEPALIVE_SECONDS)
                    except asyncio.TimeoutError:
                        await response.write(b": keepalive\n\n")
            except (ConnectionResetError, ConnectionError) as e:
                self.logger.info(f"SSE client disconnected: {e}")
            finally:
                await session.close()
                self.logger.info(f"SSE connection closed: {session.id[:8]}")

        return response

    async def handle_message(self, request: web.Request) -> web.Response:
        session_id = request.query.get("sessionId")
        if not session_id:
            return web.json_response({"error": "Missing sessionId parameter"}, status=400,
                                     dumps=json.dumps)

        session = self.server.get_session(session_id)
        if session is None:
            return web.json_response({"error": f"Unknown session: {session_id}"}, status=404,
                                     dumps=json.dumps)

        body = await request.read()
        try:
            frame = json.loads(body)
        except json.JSONDecodeError as e:
            return web.json_response(
                {"jsonrpc": "2.0", "error": {"code": PARSE_ERROR, "message": "Parse error", "data": str(e)},
                 "id": None},
                status=400,
                dumps=json.dumps,
            )

        try:
            await session.receive(frame)
        except SessionClosedError:
            return web.json_response({"error": "Session is closed"}, status=404, dumps=json.dumps)

        return web.Response(status=202)
