"""MCP server exposing the pool-finance reports as read-only tools."""

from .server import PoolFinanceMCP, json_dumps

__all__ = ['PoolFinanceMCP', 'json_dumps']
