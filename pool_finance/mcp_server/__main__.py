"""
Entry point for running the MCP server as a module.

Usage:
    python -m pool_finance.mcp_server --transport sse --port 8080
    python -m pool_finance.mcp_server --transport stdio
"""

from pool_finance.mcp_server.server import main

if __name__ == "__main__":
    main()
