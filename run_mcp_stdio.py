#!/usr/bin/env python3
"""
SQL Lab MCP Server Startup Script (stdio mode)
Run this script to start the lab's JSON-RPC server over stdio for CLI clients.
"""
import asyncio
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from sqllab.core.logging import setup_logging
from sqllab.mcp_server import run_stdio_server
from sqllab.ui.result_table import use_system_collation

if __name__ == "__main__":
    # stdout is the protocol channel
    setup_logging(stream=sys.stderr)
    use_system_collation()
    print("Starting SQL Lab MCP Server (stdio mode)...", file=sys.stderr)
    print("Protocol: JSON-RPC 2.0 over stdio", file=sys.stderr)
    asyncio.run(run_stdio_server())
