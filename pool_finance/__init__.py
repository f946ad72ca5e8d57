"""
Pool Finance - personal finance tracking with pool and category reports.

Subpackages:
- database: repository interfaces and SQLite/PostgreSQL stores
- reports: monthly and category report generators
- mcp_server: MCP server exposing the reports as read-only tools
"""

__version__ = "0.1.0"
