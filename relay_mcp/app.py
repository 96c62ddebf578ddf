"""
Hosting entry point: aiohttp application exposing the MCP server.

Endpoints:
    GET  /        health check
    GET  /mcp     WebSocket transport
    GET  /sse     Server-Sent Events stream
    POST /msg     inbound messages for an SSE session (?sessionId=...)
"""

import argparse
import asyncio
import os
import signal
import sys
from typing import Optional

from aiohttp import web

from .config import get_config, init_config
from .examples import example_capabilities, register_examples
from .logging import configure_logging, get_logger
from .mcp import McpServer
from .transport import SseEndpoint, WebSocketEndpoint
from .utils import fast_json as json


def create_server(with_examples: bool = True) -> McpServer:
    """Build the MCP server from configuration, optionally with the example operations"""
    config = get_config()
    server = (McpServer.builder()
              .server_info(config.server.server_name, config.server.server_version)
              .capabilities(example_capabilities())
              .session_config(config.session)
              .build())
    if with_examples:
        register_examples(server)
    return server


def create_app(server: McpServer) -> web.Application:
    """Wire the MCP server's transports into an aiohttp application"""
    config = get_config()
    websocket = WebSocketEndpoint(server)
    sse = SseEndpoint(server, config.server.message_path)

    async def health_check(request: web.Request) -> web.Response:
        return web.json_response({
            "status": "healthy",
            "server": server.server_info.to_wire(),
            "sessions": len(server.sessions),
            "tools": len(server.tools),
            "resources": len(server.resources),
            "prompts": len(server.prompts),
        }, dumps=json.dumps)

    async def on_shutdown(app: web.Application) -> None:
        await server.shutdown()

    app = web.Application()
    app.router.add_get("/", health_check)
    app.router.add_get(config.server.websocket_path, websocket.handle)
    app.router.add_get(config.server.sse_path, sse.handle_stream)
    app.router.add_post(config.server.message_path, sse.handle_message)
    app.on_shutdown.append(on_shutdown)
    return app


async def main_server(host: str, port: int, with_examples: bool = True) -> int:
    """Run the server until a signal asks it to stop"""
    logger = get_logger(__name__)
    config = get_config()
    logger.info("Starting Relay MCP Server...")

    server = create_server(with_examples)
    app = create_app(server)
    runner = web.AppRunner(app)
    await runner.setup()

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop.set)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            signal.signal(signum, lambda *_: loop.call_soon_threadsafe(stop.set))

    try:
        site = web.TCPSite(runner, host, port)
        await site.start()

        logger.info("=" * 50)
        logger.info("[READY] Relay MCP Server is running!")
        logger.info(f"[WEBSOCKET] ws://{host}:{port}{config.server.websocket_path}")
        logger.info(f"[SSE] http://{host}:{port}{config.server.sse_path}")
        logger.info(f"[HEALTH] http://{host}:{port}/")
        logger.info(f"[DEBUG] Debug Mode: {'Enabled' if config.server.debug_mode else 'Disabled'}")
        logger.info("=" * 50)

        await stop.wait()
        logger.info("Shutdown requested")
    except OSError as e:
        logger.error(f"Server error: {e}")
        return 1
    finally:
        await runner.cleanup()
        logger.info("Server shutdown complete")

    return 0


def main(argv: Optional[list] = None) -> None:
    """CLI entry point"""

    parser = argparse.ArgumentParser(
        description="Relay MCP Server - Model Context Protocol dispatch server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  relay-server                                  # Start server on localhost:8080
  relay-server --host 0.0.0.0 --port 9000 --debug  # Custom host/port with debug
  relay-server --no-examples                    # Start without the example operations

Environment Variables:
  SERVER_HOST              Server host (default: localhost)
  SERVER_PORT              Server port (default: 8080)
  LOG_LEVEL                Log level (default: INFO)
  REQUEST_TIMEOUT_SECONDS  Sampling request timeout (default: 30)
        """
    )

    parser.add_argument(
        "--host",
        default=None,
        help="Server host (default: SERVER_HOST or localhost)"
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Server port (default: SERVER_PORT or 8080)"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    parser.add_argument(
        "--no-examples",
        action="store_true",
        help="Do not register the example tools, resource and prompt"
    )

    args = parser.parse_args(argv)

    if args.debug:
        os.environ["DEBUG_MODE"] = "true"
        os.environ["LOG_LEVEL"] = "DEBUG"

    try:
        config = init_config()
    except ValueError as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        sys.exit(1)
    configure_logging()

    host = args.host or config.server.host
    port = args.port or config.server.port

    try:
        exit_code = asyncio.run(main_server(host, port, not args.no_examples))
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\nServer stopped", file=sys.stderr)


if __name__ == "__main__":
    main()
