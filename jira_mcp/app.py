"""
Wires settings, session store, token issuer and dispatcher into one object
shared by both transports.
"""
import time
from datetime import datetime, timezone
from functools import partial
from typing import Callable, Optional

import structlog

from jira_mcp.auth import SessionAuthenticator
from jira_mcp.config import Settings
from jira_mcp.dispatcher import ToolDispatcher
from jira_mcp.errors import ConfigurationError
from jira_mcp.jira_client import validate_credentials
from jira_mcp.sessions import InMemorySessionStore, SessionStore, SessionSweeper
from jira_mcp.tokens import TokenIssuer


logger = structlog.get_logger(__name__)

STDIO_SESSION_ID = "default"
STDIO_USER_ID = "stdio-user"


class JiraMCPApp:
    def __init__(self, settings: Settings, store: Optional[SessionStore] = None,
                 validator: Optional[Callable[[str, str, str], None]] = None,
                 client_factory: Optional[Callable] = None,
                 clock: Callable[[], float] = time.time):
        self.settings = settings
        self.store = store or InMemorySessionStore(timeout=settings.session_timeout, clock=clock)
        self.issuer = TokenIssuer(settings.jwt_secret, ttl=settings.token_ttl, clock=clock)
        if validator is None:
            validator = partial(validate_credentials, timeout=settings.jira_timeout)
        self.authenticator = SessionAuthenticator(self.store, self.issuer, validator)
        self.dispatcher = ToolDispatcher(client_factory=client_factory, timeout=settings.jira_timeout)
        self.sweeper = SessionSweeper(self.store, interval=settings.sweep_interval)

        if settings.uses_default_secret:
            logger.warning("default_jwt_secret_in_use", hint="set JWT_SECRET")

    def health(self, mode: str = "multitenant-sse-only") -> dict:
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "activeSessions": self.store.count(),
            "mode": mode,
        }

    def ensure_stdio_session(self):
        """Register (or re-register after a sweep) the env-credential session used by stdio."""
        if not self.settings.has_stdio_credentials:
            raise ConfigurationError(
                "Jira credentials not configured. Set JIRA_URL, JIRA_EMAIL, and JIRA_API_TOKEN environment variables."
            )
        session = self.store.get(STDIO_SESSION_ID)
        if session is None:
            self.store.create(
                STDIO_USER_ID,
                self.settings.jira_url,
                self.settings.jira_email,
                self.settings.jira_api_token,
                session_id=STDIO_SESSION_ID,
            )
        return self.store.touch_and_get(STDIO_SESSION_ID)

    def start(self):
        self.sweeper.start()

    def stop(self):
        self.sweeper.stop(timeout=5)
