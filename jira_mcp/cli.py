#!/usr/bin/env python3
"""
Jira MCP CLI - run the server transports or call a tool directly.
"""
import argparse
import json
import sys

import structlog

from jira_mcp.app import JiraMCPApp
from jira_mcp.config import Settings
from jira_mcp.errors import JiraMCPError
from jira_mcp.log import setup_logging
from jira_mcp.tools import TOOL_CATEGORIES, JIRA_TOOLS


logger = structlog.get_logger(__name__)


def cmd_serve(args, settings: Settings):
    """Run the HTTP/SSE server."""
    from jira_mcp.http_server import run_http_server
    run_http_server(JiraMCPApp(settings), host=args.host, port=args.port)


def cmd_stdio(args, settings: Settings):
    """Run the MCP stdio server."""
    from jira_mcp.mcp_server import run_stdio_server
    run_stdio_server(JiraMCPApp(settings))


def cmd_tools(args, settings: Settings):
    """List available tools."""
    for category, names in TOOL_CATEGORIES.items():
        print(f"{category}:")
        for name in names:
            tool = next(t for t in JIRA_TOOLS if t["name"] == name)
            required = ", ".join(tool["inputSchema"].get("required", [])) or "-"
            print(f"  {name:<24} {tool['description']} (required: {required})")


def cmd_call(args, settings: Settings):
    """Call one tool with the JIRA_* environment credentials."""
    try:
        arguments = json.loads(args.args)
    except ValueError:
        print("Error: --args must be a JSON object", file=sys.stderr)
        return 2

    app = JiraMCPApp(settings)
    try:
        session = app.ensure_stdio_session()
        result = app.dispatcher.dispatch(session, args.tool, arguments)
    except JiraMCPError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jira-mcp-server", description="Multitenant Jira MCP server")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # serve
    p = subparsers.add_parser("serve", help="Run the HTTP/SSE server")
    p.add_argument("--host", help="Bind address (default: HOST or 0.0.0.0)")
    p.add_argument("-p", "--port", type=int, help="Port (default: PORT or 3001)")
    p.set_defaults(func=cmd_serve)

    # stdio
    p = subparsers.add_parser("stdio", help="Run the MCP stdio server")
    p.set_defaults(func=cmd_stdio)

    # tools
    p = subparsers.add_parser("tools", help="List available tools")
    p.set_defaults(func=cmd_tools)

    # call
    p = subparsers.add_parser("call", help="Call a tool using JIRA_URL/JIRA_EMAIL/JIRA_API_TOKEN")
    p.add_argument("tool", help="Tool name")
    p.add_argument("-a", "--args", default="{}", help="Tool arguments as a JSON object")
    p.set_defaults(func=cmd_call)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = Settings.from_env()
    except JiraMCPError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 2

    setup_logging(settings.debug)

    if not args.command:
        # No subcommand: pick the transport from TRANSPORT_MODE
        args = parser.parse_args(["stdio" if settings.transport_mode == "stdio" else "serve"])

    return args.func(args, settings) or 0


if __name__ == "__main__":
    sys.exit(main())
