#!/usr/bin/env python3
"""
Relay MCP Server - Main Entry Point

Serves the Model Context Protocol over WebSocket (/mcp) and HTTP+SSE
(/sse and /msg), with the example calculator tools registered.

Usage:
    python server.py [--host HOST] [--port PORT] [--debug] [--no-examples]

Example:
    python server.py --host localhost --port 8080 --debug
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from relay_mcp.app import main


if __name__ == "__main__":
    main()
