"""Multitenant Jira MCP server: session-scoped credentials and tool dispatch over stdio and HTTP/SSE."""

__version__ = "0.1.0"
