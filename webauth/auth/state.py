"""
Session-bound storage for pending login state.

A login attempt issues one state value per browser session. The value is kept
until the provider redirects back to the callback, where it is taken (removed)
and compared exactly once. Two backends are provided:

- SessionStateStore keeps the value inside the session's own signed cookie,
  so every session is isolated and no locking is needed.
- InMemoryStateStore keeps values server-side keyed by session id. Reads and
  removals happen under one lock so two concurrent callbacks for the same
  session cannot both consume the same state.
"""

import hmac
import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, MutableMapping, Optional, Protocol, Tuple

from fastapi import Request

logger = logging.getLogger(__name__)

SESSION_ID_KEY = "sid"
STATE_KEY = "oauth_state"


# =============================================================================
# Session
# =============================================================================

@dataclass
class Session:
    """
    A browser session: a stable identifier plus its mutable data.

    ``data`` is the signed cookie payload managed by Starlette's
    SessionMiddleware, so writes to it are sent back with the response.
    """

    id: str
    data: MutableMapping[str, Any]

    def clear(self) -> None:
        self.data.clear()


def get_session(request: Request) -> Session:
    """
    FastAPI dependency that returns the caller's Session.

    A random session id is assigned on the first request that lacks one.
    """
    data = request.session
    session_id = data.get(SESSION_ID_KEY)
    if not session_id:
        session_id = secrets.token_urlsafe(16)
        data[SESSION_ID_KEY] = session_id
    return Session(id=session_id, data=data)


def states_match(candidate: Optional[str], expected: Optional[str]) -> bool:
    """Constant-time comparison of a received state against the stored one."""
    if not candidate or not expected:
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))


# =============================================================================
# Store Interface
# =============================================================================

class StateStore(Protocol):
    """Associates at most one pending state value with each session."""

    def put(self, session: Session, state: str) -> None:
        """Store state for the session, replacing any pending one."""
        ...

    def take_and_verify(self, session: Session, candidate: Optional[str]) -> bool:
        """Remove the pending state and report whether candidate matched it."""
        ...


# =============================================================================
# Backends
# =============================================================================

class SessionStateStore:
    """State store backed by the signed session cookie."""

    def __init__(self, key: str = STATE_KEY) -> None:
        self._key = key

    def put(self, session: Session, state: str) -> None:
        session.data[self._key] = state

    def take_and_verify(self, session: Session, candidate: Optional[str]) -> bool:
        expected = session.data.pop(self._key, None)
        return states_match(candidate, expected)


class InMemoryStateStore:
    """
    Server-side state store keyed by session id.

    Pending states older than ``ttl_seconds`` are treated as absent. Expired
    entries are pruned whenever a new state is stored.
    """

    def __init__(self, ttl_seconds: float = 600.0) -> None:
        self._ttl = ttl_seconds
        self._pending: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def put(self, session: Session, state: str) -> None:
        now = time.monotonic()
        with self._lock:
            self._prune(now)
            self._pending[session.id] = (state, now)

    def take_and_verify(self, session: Session, candidate: Optional[str]) -> bool:
        with self._lock:
            entry = self._pending.pop(session.id, None)

        if entry is None:
            return False

        expected, issued_at = entry
        if time.monotonic() - issued_at > self._ttl:
            logger.info("Pending login state expired for session %s...", session.id[:8])
            return False

        return states_match(candidate, expected)

    def _prune(self, now: float) -> None:
        expired = [sid for sid, (_, issued_at) in self._pending.items() if now - issued_at > self._ttl]
        for sid in expired:
            del self._pending[sid]
