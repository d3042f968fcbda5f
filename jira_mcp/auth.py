"""
Session authentication: turning credentials into tokens and tokens back into sessions.
"""
from dataclasses import dataclass
from typing import Callable

import structlog

from jira_mcp.errors import SessionNotFoundError, SessionRevokedError, ValidationError
from jira_mcp.sessions import Session, SessionStore
from jira_mcp.tokens import TokenIssuer


logger = structlog.get_logger(__name__)

LOGIN_FIELDS = ("userId", "jiraUrl", "email", "apiToken")


@dataclass(frozen=True)
class TokenGrant:
    token: str
    session_id: str
    expires_in: str

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "sessionId": self.session_id,
            "expiresIn": self.expires_in,
            "message": "Token created successfully",
        }


class SessionAuthenticator:
    """Ties the credential validator, session store and token issuer together."""

    def __init__(self, store: SessionStore, issuer: TokenIssuer,
                 validator: Callable[[str, str, str], None]):
        self.store = store
        self.issuer = issuer
        self.validator = validator

    def login(self, user_id: str, jira_url: str, email: str, api_token: str) -> TokenGrant:
        """Probe the credentials, open a session and hand out a bearer token.

        Raises ValidationError on missing fields and AuthError when the probe fails;
        nothing is registered in either case.
        """
        values = dict(zip(LOGIN_FIELDS, (user_id, jira_url, email, api_token)))
        missing = [name for name, value in values.items() if not value or not isinstance(value, str)]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        jira_url = jira_url.rstrip("/")
        self.validator(jira_url, email, api_token)

        session_id = self.store.create(user_id, jira_url, email, api_token)
        token = self.issuer.issue(session_id, user_id)
        return TokenGrant(token=token, session_id=session_id, expires_in=self.issuer.describe_ttl())

    def authenticate(self, token: str) -> Session:
        """Resolve a bearer token to its live session, touching it.

        A token with a valid signature whose session was deleted or swept is
        rejected with SessionRevokedError.
        """
        claims = self.issuer.verify(token)
        try:
            return self.store.touch_and_get(claims.session_id)
        except SessionNotFoundError:
            logger.info("token_session_revoked", session_id=claims.session_id, user_id=claims.user_id)
            raise SessionRevokedError()
