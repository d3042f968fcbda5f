"""
Session registry: binds opaque session ids to per-user Jira credentials.

SessionStore is the interface the rest of the server talks to. The in-process
InMemorySessionStore keeps everything in one dict behind a lock; a shared
backend can be added as another SessionStore without touching callers.
"""
import secrets
import string
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, Optional

import structlog

from jira_mcp.errors import SessionNotFoundError


logger = structlog.get_logger(__name__)

DEFAULT_SESSION_TIMEOUT = 60 * 60
DEFAULT_SWEEP_INTERVAL = 5 * 60

_ID_ALPHABET = string.ascii_lowercase + string.digits


@dataclass
class Session:
    session_id: str
    user_id: str
    jira_url: str
    email: str
    api_token: str = field(repr=False)
    last_access: float = 0.0

    def summary(self) -> "SessionSummary":
        return SessionSummary(
            session_id=self.session_id,
            user_id=self.user_id,
            jira_url=self.jira_url,
            last_access=self.last_access,
        )


@dataclass(frozen=True)
class SessionSummary:
    """Enumeration view of a session. Never carries credentials."""
    session_id: str
    user_id: str
    jira_url: str
    last_access: float

    def to_dict(self) -> dict:
        return {
            "sessionId": self.session_id,
            "userId": self.user_id,
            "jiraUrl": self.jira_url,
            "lastAccess": datetime.fromtimestamp(self.last_access, tz=timezone.utc).isoformat(),
        }


def generate_session_id(now: float) -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"session_{int(now * 1000)}_{suffix}"


class SessionStore(ABC):
    """Capability set every session backend provides."""

    @abstractmethod
    def create(self, user_id: str, jira_url: str, email: str, api_token: str,
               session_id: Optional[str] = None) -> str:
        """Register credentials and return the new session id."""

    @abstractmethod
    def get(self, session_id: str) -> Optional[Session]:
        """Snapshot of a session without touching it, or None."""

    @abstractmethod
    def touch_and_get(self, session_id: str) -> Session:
        """Mark the session used now and return a snapshot.

        Raises SessionNotFoundError when the id is unknown.
        """

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        """Remove a session; returns False when it was not there."""

    @abstractmethod
    def list(self) -> list:
        """SessionSummary for every live session."""

    @abstractmethod
    def sweep(self, now: Optional[float] = None) -> list:
        """Evict idle sessions and return their ids."""

    @abstractmethod
    def count(self) -> int:
        ...

    def __contains__(self, session_id: str) -> bool:
        return self.get(session_id) is not None


class InMemorySessionStore(SessionStore):
    """Process-local session table guarded by a single lock."""

    def __init__(self, timeout: float = DEFAULT_SESSION_TIMEOUT, clock: Callable[[], float] = time.time):
        self.timeout = timeout
        self._clock = clock
        self._sessions = {}
        self._lock = threading.Lock()

    def create(self, user_id: str, jira_url: str, email: str, api_token: str,
               session_id: Optional[str] = None) -> str:
        now = self._clock()
        with self._lock:
            if session_id is None:
                session_id = generate_session_id(now)
                while session_id in self._sessions:
                    session_id = generate_session_id(now)
            self._sessions[session_id] = Session(
                session_id=session_id,
                user_id=user_id,
                jira_url=jira_url.rstrip("/"),
                email=email,
                api_token=api_token,
                last_access=now,
            )
        logger.info("session_created", session_id=session_id, user_id=user_id)
        return session_id

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            session = self._sessions.get(session_id)
            return replace(session) if session else None

    def touch_and_get(self, session_id: str) -> Session:
        now = self._clock()
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            session.last_access = now
            return replace(session)

    def delete(self, session_id: str) -> bool:
        with self._lock:
            removed = self._sessions.pop(session_id, None) is not None
        if removed:
            logger.info("session_deleted", session_id=session_id)
        return removed

    def list(self) -> list:
        with self._lock:
            return [s.summary() for s in self._sessions.values()]

    def sweep(self, now: Optional[float] = None) -> list:
        if now is None:
            now = self._clock()
        with self._lock:
            expired = [sid for sid, s in self._sessions.items() if now - s.last_access > self.timeout]
            for sid in expired:
                del self._sessions[sid]
        for sid in expired:
            logger.info("session_expired", session_id=sid)
        return expired

    def count(self) -> int:
        with self._lock:
            return len(self._sessions)


class SessionSweeper:
    """Background thread that periodically evicts idle sessions."""

    def __init__(self, store: SessionStore, interval: float = DEFAULT_SWEEP_INTERVAL):
        self.store = store
        self.interval = interval
        self._stop = threading.Event()
        self._thread = None

    def start(self):
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="session-sweeper", daemon=True)
        self._thread.start()
        logger.debug("sweeper_started", interval=self.interval)

    def stop(self, timeout: Optional[float] = None):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self):
        while not self._stop.wait(self.interval):
            try:
                removed = self.store.sweep()
            except Exception:
                logger.exception("session_sweep_failed")
                continue
            if removed:
                logger.info("session_sweep_completed", removed=len(removed), remaining=self.store.count())
