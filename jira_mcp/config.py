"""
Server configuration loaded from environment variables (and an optional .env file).
"""
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from jira_mcp.errors import ConfigurationError


DEFAULT_JWT_SECRET = "your-jwt-secret-change-in-production"


def _int_env(environ: dict, name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def _float_env(environ: dict, name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


@dataclass
class Settings:
    """Runtime settings for both transports."""
    host: str = "0.0.0.0"
    port: int = 3001
    transport_mode: str = "sse"
    jwt_secret: str = DEFAULT_JWT_SECRET
    token_ttl: int = 24 * 60 * 60
    session_timeout: float = 60 * 60
    sweep_interval: float = 5 * 60
    heartbeat_interval: float = 30
    jira_timeout: float = 30
    user_id_header: str = "x-user-id"
    jira_url_header: str = "x-jira-url"
    api_key_header: str = "x-jira-api-token"
    jira_url: str = ""
    jira_email: str = ""
    jira_api_token: str = ""
    debug: bool = False

    @property
    def identity_headers(self) -> tuple:
        return (self.user_id_header, self.jira_url_header, self.api_key_header)

    @property
    def uses_default_secret(self) -> bool:
        return self.jwt_secret == DEFAULT_JWT_SECRET

    @property
    def has_stdio_credentials(self) -> bool:
        return all([self.jira_url, self.jira_email, self.jira_api_token])

    @classmethod
    def from_env(cls, environ: Optional[dict] = None, dotenv: bool = True) -> "Settings":
        """Build settings from environment variables.

        SESSION_TIMEOUT is given in milliseconds, every other duration in seconds.
        """
        if environ is None:
            if dotenv:
                load_dotenv()
            environ = os.environ

        transport_mode = environ.get("TRANSPORT_MODE", "sse").lower()
        if transport_mode not in ("sse", "stdio"):
            raise ConfigurationError(f"TRANSPORT_MODE must be 'sse' or 'stdio', got {transport_mode!r}")

        return cls(
            host=environ.get("HOST", "0.0.0.0"),
            port=_int_env(environ, "PORT", 3001),
            transport_mode=transport_mode,
            jwt_secret=environ.get("JWT_SECRET") or DEFAULT_JWT_SECRET,
            token_ttl=_int_env(environ, "TOKEN_TTL", 24 * 60 * 60),
            session_timeout=_int_env(environ, "SESSION_TIMEOUT", 3600000) / 1000,
            sweep_interval=_float_env(environ, "SESSION_SWEEP_INTERVAL", 5 * 60),
            heartbeat_interval=_float_env(environ, "SSE_HEARTBEAT_INTERVAL", 30),
            jira_timeout=_float_env(environ, "JIRA_REQUEST_TIMEOUT", 30),
            user_id_header=environ.get("USER_ID_HEADER", "x-user-id").lower(),
            jira_url_header=environ.get("JIRA_URL_HEADER", "x-jira-url").lower(),
            api_key_header=environ.get("API_KEY_HEADER", "x-jira-api-token").lower(),
            jira_url=environ.get("JIRA_URL", ""),
            jira_email=environ.get("JIRA_EMAIL", ""),
            jira_api_token=environ.get("JIRA_API_TOKEN", ""),
            debug=environ.get("DEBUG", "").lower() in ("1", "true", "yes"),
        )
