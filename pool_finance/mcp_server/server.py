#!/usr/bin/env python3
"""
Pool Finance MCP Server

A Model Context Protocol (MCP) server that exposes the monthly and category
reports, plus read-only lookups, to AI agents and other clients. Supports SSE
(HTTP) transport for remote access and stdio transport for local development.

Usage:
    # SSE mode (for remote/production)
    python -m pool_finance.mcp_server --transport sse --port 8080

    # Stdio mode (for local development)
    python -m pool_finance.mcp_server --transport stdio

Environment Variables:
    DB_TYPE: sqlite (default) or postgres
    DB_PATH: SQLite database file (default: data/finance.db)
    DB_HOST, DB_PORT, DB_NAME, DB_USER, DB_PASSWORD: PostgreSQL settings
    LOG_LEVEL: Logging level (default: INFO)
"""

import argparse
import asyncio
import json
import logging
import os
import traceback
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from dotenv import load_dotenv
from mcp.server import Server
from mcp.server.sse import SseServerTransport
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from pool_finance.database import FinanceRepository, get_repository
from pool_finance.entities import TransactionType, as_datetime
from pool_finance.errors import InvalidInput
from pool_finance.reports import CategoryReportGenerator, MonthlyReportGenerator

logger = logging.getLogger(__name__)


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal and date types."""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, (date, datetime)):
            return obj.isoformat()
        return super().default(obj)


def json_dumps(obj: Any) -> str:
    """JSON serialize with Decimal support."""
    return json.dumps(obj, cls=DecimalEncoder, indent=2)


USER_ID = {"type": "integer", "description": "User ID"}
DATE_RANGE = {
    "start_date": {"type": "string", "description": "Start date (YYYY-MM-DD), inclusive"},
    "end_date": {"type": "string", "description": "End date (YYYY-MM-DD), inclusive"},
}


def _require_int(args: dict, name: str) -> int:
    value = args.get(name)
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"{name} must be an integer")
    return value


class PoolFinanceMCP:
    """
    MCP Server for the pool-finance store.

    Exposes tools:
    - get_monthly_report: Totals by type with category and pool breakdowns
    - get_category_report: Per-category totals, averages and monthly series
    - query_transactions: Filtered transaction listing
    - get_user_categories / get_user_pools: Lookup tables
    - get_pool_budgets: Budgets attached to a pool
    """

    def __init__(self, repository: Optional[FinanceRepository] = None):
        self.server = Server("pool-finance-mcp")
        self.db = repository
        self._setup_tools()

    def _get_db(self) -> FinanceRepository:
        """Get or create database connection."""
        if self.db is None:
            logger.info("Creating new database connection...")
            try:
                self.db = get_repository()
                logger.info("Database connection established successfully")
            except Exception:
                logger.error(f"Failed to connect to database:\n{traceback.format_exc()}")
                raise
        return self.db

    def _setup_tools(self):
        """Register all MCP tools."""

        @self.server.list_tools()
        async def list_tools() -> list[Tool]:
            return [
                Tool(
                    name="get_monthly_report",
                    description="Get income, expense, credit and payment totals, net amount, "
                                "and category/pool breakdowns for one month.",
                    inputSchema={
                        "type": "object",
                        "properties": {
                            "user_id": USER_ID,
                            "year": {"type": "integer", "description": "Year (e.g., 2024)"},
                            "month": {"type": "integer", "description": "Month (1-12)"},
                        },
                        "required": ["user_id", "year", "month"]
                    }
                ),
                Tool(
                    name="get_category_report",
                    description="Get per-category totals, averages and monthly breakdowns, "
                                "optionally limited to a date range.",
                    inputSchema={
                        "type": "object",
                        "properties": {"user_id": USER_ID, **DATE_RANGE},
                        "required": ["user_id"]
                    }
                ),
                Tool(
                    name="query_transactions",
                    description="Query a user's transactions with optional filters.",
                    inputSchema={
                        "type": "object",
                        "properties": {
                            "user_id": USER_ID,
                            "type": {
                                "type": "string",
                                "enum": [t.value for t in TransactionType],
                                "description": "Transaction type"
                            },
                            "pool_id": {"type": "integer", "description": "Filter by pool"},
                            "category_id": {"type": "integer", "description": "Filter by category"},
                            "vendor_id": {"type": "integer", "description": "Filter by vendor"},
                            **DATE_RANGE,
                        },
                        "required": ["user_id"]
                    }
                ),
                Tool(
                    name="get_user_categories",
                    description="List a user's categories.",
                    inputSchema={
                        "type": "object",
                        "properties": {"user_id": USER_ID},
                        "required": ["user_id"]
                    }
                ),
                Tool(
                    name="get_user_pools",
                    description="List a user's pools.",
                    inputSchema={
                        "type": "object",
                        "properties": {"user_id": USER_ID},
                        "required": ["user_id"]
                    }
                ),
                Tool(
                    name="get_pool_budgets",
                    description="List the budgets set for a pool.",
                    inputSchema={
                        "type": "object",
                        "properties": {"pool_id": {"type": "integer", "description": "Pool ID"}},
                        "required": ["pool_id"]
                    }
                ),
            ]

        @self.server.call_tool()
        async def call_tool(name: str, arguments: dict) -> list[TextContent]:
            return await self.handle_call(name, arguments)

    async def handle_call(self, name: str, arguments: dict) -> list[TextContent]:
        """Run a tool and wrap the result (or the error) as JSON text."""
        logger.info(f"Tool called: {name} with args: {arguments}")
        try:
            result = await self._execute_tool(name, arguments or {})
            logger.info(f"Tool {name} completed successfully")
            return [TextContent(type="text", text=json_dumps(result))]
        except Exception as e:
            error_trace = traceback.format_exc()
            logger.error(f"Tool {name} failed with exception:\n{error_trace}")
            return [TextContent(type="text", text=json_dumps({"error": str(e), "traceback": error_trace}))]

    async def _execute_tool(self, name: str, args: dict) -> Any:
        """Execute a tool and return the result."""
        db = self._get_db()

        if name == "get_monthly_report":
            return await self._get_monthly_report(db, args)
        elif name == "get_category_report":
            return await self._get_category_report(db, args)
        elif name == "query_transactions":
            return await self._query_transactions(db, args)
        elif name == "get_user_categories":
            categories = db.get_user_categories(_require_int(args, "user_id"))
            return {"categories": [c.to_dict() for c in categories]}
        elif name == "get_user_pools":
            pools = db.get_user_pools(_require_int(args, "user_id"))
            return {"pools": [p.to_dict() for p in pools]}
        elif name == "get_pool_budgets":
            budgets = db.get_pool_budgets(_require_int(args, "pool_id"))
            return {
                "budgets": [
                    {**b.to_dict(), "target_amount": float(b.target_amount)}
                    for b in budgets
                ]
            }
        else:
            raise ValueError(f"Unknown tool: {name}")

    # ==========================================
    # REPORT TOOL IMPLEMENTATIONS
    # ==========================================

    async def _get_monthly_report(self, db: FinanceRepository, args: dict) -> dict:
        generator = MonthlyReportGenerator(db, db, db)
        report = generator.generate(
            _require_int(args, "user_id"),
            _require_int(args, "year"),
            _require_int(args, "month"),
        )
        return report.to_dict()

    async def _get_category_report(self, db: FinanceRepository, args: dict) -> dict:
        generator = CategoryReportGenerator(db, db, db)
        report = generator.generate(
            _require_int(args, "user_id"),
            start_date=args.get("start_date"),
            end_date=args.get("end_date"),
        )
        return report.to_dict()

    async def _query_transactions(self, db: FinanceRepository, args: dict) -> dict:
        """Query transactions with filters."""
        try:
            transaction_type = TransactionType(args["type"]) if args.get("type") else None
        except ValueError:
            raise InvalidInput(f"Unknown transaction type: {args['type']}")

        transactions = db.get_transactions(
            user_id=_require_int(args, "user_id"),
            transaction_type=transaction_type,
            pool_id=args.get("pool_id"),
            category_id=args.get("category_id"),
            vendor_id=args.get("vendor_id"),
            start_date=as_datetime(args.get("start_date")),
            end_date=as_datetime(args.get("end_date"), end_of_day=True),
        )

        return {
            "count": len(transactions),
            "transactions": [
                {**t.to_dict(), "amount": float(t.amount)}
                for t in transactions
            ]
        }

    # ==========================================
    # TRANSPORTS
    # ==========================================

    async def run_sse(self, host: str = "0.0.0.0", port: int = 8080):
        """Run the server with SSE transport (for remote access)."""
        from starlette.applications import Starlette
        from starlette.responses import Response
        from starlette.routing import Mount, Route
        import uvicorn

        sse_transport = SseServerTransport("/messages/")

        async def handle_sse(request):
            """Handle SSE connections - this is where clients connect to receive events."""
            client_ip = request.client.host if request.client else "unknown"
            logger.info(f"SSE connection from {client_ip}")
            try:
                async with sse_transport.connect_sse(
                    request.scope, request.receive, request._send
                ) as streams:
                    await self.server.run(
                        streams[0], streams[1], self.server.create_initialization_options()
                    )
                logger.info(f"SSE connection closed for {client_ip}")
            except Exception:
                logger.error(f"SSE handler error for {client_ip}:\n{traceback.format_exc()}")
                raise
            return Response()

        app = Starlette(
            routes=[
                Route("/sse", endpoint=handle_sse, methods=["GET"]),
                Mount("/messages/", app=sse_transport.handle_post_message),
            ],
        )

        logger.info(f"Starting MCP server on http://{host}:{port}")
        logger.info(f"SSE endpoint: http://{host}:{port}/sse")
        config = uvicorn.Config(app, host=host, port=port, log_level="info")
        server = uvicorn.Server(config)
        await server.serve()

    async def run_stdio(self):
        """Run the server with stdio transport (for local development)."""
        logger.info("Starting MCP server on stdio")
        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream, write_stream, self.server.create_initialization_options()
            )


def configure_logging() -> None:
    logging.basicConfig(
        level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    # Set MCP SDK logging to WARNING to reduce noise
    logging.getLogger("mcp").setLevel(logging.WARNING)


def main():
    load_dotenv()
    configure_logging()

    parser = argparse.ArgumentParser(description="Pool Finance MCP Server")
    parser.add_argument(
        "--transport",
        choices=["sse", "stdio"],
        default="sse",
        help="Transport type (default: sse)"
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host to bind to (default: 0.0.0.0)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8080,
        help="Port to listen on (default: 8080)"
    )

    args = parser.parse_args()

    mcp = PoolFinanceMCP()

    if args.transport == "sse":
        asyncio.run(mcp.run_sse(args.host, args.port))
    else:
        asyncio.run(mcp.run_stdio())


if __name__ == "__main__":
    main()
