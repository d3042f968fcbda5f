"""
Signed bearer tokens binding a caller to a session.

Tokens are HS256 JWTs carrying {sessionId, userId, iat, exp}. Nothing is stored
server-side; the session registry check happens in auth.SessionAuthenticator.
"""
import time
from dataclasses import dataclass
from typing import Callable

import jwt

from jira_mcp.errors import InvalidTokenError, TokenExpiredError


ALGORITHM = "HS256"
DEFAULT_TOKEN_TTL = 24 * 60 * 60


@dataclass(frozen=True)
class TokenClaims:
    session_id: str
    user_id: str
    issued_at: int
    expires_at: int


class TokenIssuer:
    def __init__(self, secret: str, ttl: int = DEFAULT_TOKEN_TTL, clock: Callable[[], float] = time.time):
        self._secret = secret
        self.ttl = ttl
        self._clock = clock

    def issue(self, session_id: str, user_id: str) -> str:
        issued_at = int(self._clock())
        payload = {
            "sessionId": session_id,
            "userId": user_id,
            "iat": issued_at,
            "exp": issued_at + self.ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> TokenClaims:
        """Check signature and expiry.

        Expiry is judged against the issuer's clock, the same one used by issue().
        Raises TokenExpiredError or InvalidTokenError; library errors never escape.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={
                    "require": ["exp", "iat", "sessionId", "userId"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidTokenError:
            raise InvalidTokenError()

        if not isinstance(payload["sessionId"], str) or not isinstance(payload["userId"], str):
            raise InvalidTokenError()
        for claim in ("iat", "exp"):
            if not isinstance(payload[claim], int) or isinstance(payload[claim], bool):
                raise InvalidTokenError()
        if self._clock() >= payload["exp"]:
            raise TokenExpiredError()

        return TokenClaims(
            session_id=payload["sessionId"],
            user_id=payload["userId"],
            issued_at=payload["iat"],
            expires_at=payload["exp"],
        )

    def describe_ttl(self) -> str:
        """Human form of the validity window, e.g. '24h'."""
        if self.ttl % 3600 == 0:
            return f"{self.ttl // 3600}h"
        if self.ttl % 60 == 0:
            return f"{self.ttl // 60}m"
        return f"{self.ttl}s"
