"""
Jira MCP stdio server - Model Context Protocol over stdin/stdout.

Credentials come from JIRA_URL, JIRA_EMAIL and JIRA_API_TOKEN and are held in
the session registry like any other session.
"""
import asyncio
import json
from typing import Any

import structlog
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from jira_mcp.app import JiraMCPApp
from jira_mcp.errors import JiraMCPError
from jira_mcp.tools import JIRA_TOOLS


logger = structlog.get_logger(__name__)

SERVER_NAME = "jira-mcp-server"


def create_mcp_server(app: JiraMCPApp) -> Server:
    """Build an MCP server whose tools dispatch through app."""
    server = Server(SERVER_NAME)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """List available Jira tools."""
        return [
            Tool(name=t["name"], description=t["description"], inputSchema=t["inputSchema"])
            for t in JIRA_TOOLS
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        """Handle tool calls."""
        return await asyncio.to_thread(execute_tool, app, name, arguments)

    return server


def execute_tool(app: JiraMCPApp, name: str, arguments: dict) -> list[TextContent]:
    """Run one tool call against the stdio session; errors propagate to the MCP layer."""
    try:
        session = app.ensure_stdio_session()
        result = app.dispatcher.dispatch(session, name, arguments)
    except JiraMCPError as e:
        logger.warning("stdio_tool_call_failed", tool=name, error=e.message)
        raise
    return [TextContent(type="text", text=json.dumps(result, indent=2))]


async def serve_stdio(app: JiraMCPApp):
    """Run the MCP server on stdio."""
    server = create_mcp_server(app)
    app.start()
    logger.info("stdio_server_started", server=SERVER_NAME)
    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
    finally:
        app.stop()


def run_stdio_server(app: JiraMCPApp):
    asyncio.run(serve_stdio(app))
