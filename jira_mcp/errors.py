"""
Error hierarchy for the Jira MCP server.

Every error derived from JiraMCPError carries the HTTP status it maps to and a
message that is safe to show to the caller. Messages must never contain
credentials; use redact() on anything that came back from Jira.
"""


REDACTED = "***"


class JiraMCPError(Exception):
    """Base class for errors reported back to callers."""

    status_code = 500

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class ConfigurationError(JiraMCPError):
    """Raised when the server is missing or has malformed configuration."""


class ValidationError(JiraMCPError):
    """Raised when caller input is missing or malformed."""

    status_code = 400


class UnknownToolError(ValidationError):
    """Raised when a tool name is not in the catalog."""

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Unknown tool: {tool_name}")
        self.tool_name = tool_name


class MissingArgumentError(ValidationError):
    """Raised when a required tool argument is absent."""

    def __init__(self, tool_name: str, argument: str) -> None:
        super().__init__(f"Missing required argument for {tool_name}: {argument}")
        self.tool_name = tool_name
        self.argument = argument


class AuthError(JiraMCPError):
    """Raised when credentials, tokens or sessions are not acceptable."""

    status_code = 401

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message)


class InvalidTokenError(AuthError):
    def __init__(self, message: str = "Invalid token") -> None:
        super().__init__(message)


class TokenExpiredError(AuthError):
    def __init__(self, message: str = "Token expired") -> None:
        super().__init__(message)


class SessionRevokedError(AuthError):
    """Token checks out but its session is no longer registered."""

    def __init__(self, message: str = "Session not found") -> None:
        super().__init__(message)


class NotFoundError(JiraMCPError):
    status_code = 404

    def __init__(self, message: str = "Not found") -> None:
        super().__init__(message)


class SessionNotFoundError(NotFoundError):
    def __init__(self, session_id: str) -> None:
        super().__init__("Session not found")
        self.session_id = session_id


class ToolExecutionError(JiraMCPError):
    """Raised when the outbound Jira call behind a tool fails."""

    def __init__(self, tool_name: str, message: str) -> None:
        super().__init__(f"Jira API error: {message}")
        self.tool_name = tool_name

    def to_dict(self) -> dict:
        return {"error": self.message, "tool": self.tool_name}


def redact(text: str, secrets) -> str:
    """Mask every occurrence of each non-empty secret in text."""
    for secret in secrets:
        if secret:
            text = text.replace(secret, REDACTED)
    return text
