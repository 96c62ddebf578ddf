"""
Relay MCP Server

A Model Context Protocol server core: capability negotiation, tool/resource/
prompt registries, sync and async handler dispatch, and server-initiated
requests multiplexed over the client connection.
"""

__version__ = "0.1.0"
