"""In-memory session store with TTL, intended for development and tests."""

import threading
import time
import uuid
from typing import Any, Optional

from neura_dashboard.domain import AuthSession
from neura_dashboard.session_store.base import SessionStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="session_store/in_memory_session_store")


class InMemorySessionStore(SessionStore):
    """Thread-safe, TTL-aware in-memory store (dev/test)."""

    def __init__(self, ttl_seconds: int = 3600, max_age_seconds: int | None = None) -> None:
        """Initialize the store with a TTL (seconds) and optional absolute max age."""
        logger.debug("Initializing InMemorySessionStore")
        self.ttl = ttl_seconds
        self.max_age = max_age_seconds
        self._sessions: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def _expired(self, exp: float, created_at: float) -> bool:
        now = time.monotonic()
        if exp < now:
            return True
        if self.max_age is None:
            return False
        return now - created_at > self.max_age

    def _next_expiry(self, created_at: float) -> float:
        """Sliding expiry, capped by absolute max age."""
        next_exp = time.monotonic() + self.ttl
        if self.max_age is None:
            return next_exp
        return min(next_exp, created_at + self.max_age)

    def create_session(self, auth: AuthSession) -> str:
        with self._lock:
            sid = str(uuid.uuid4())
            created_at = time.monotonic()
            self._sessions[sid] = {
                "auth": auth,
                "created_at": created_at,
                "exp": self._next_expiry(created_at),
            }
            return sid

    def _live(self, session_id: str) -> Optional[dict[str, Any]]:
        data = self._sessions.get(session_id)
        if not data:
            return None
        if self._expired(data["exp"], data["created_at"]):
            self._sessions.pop(session_id, None)
            return None
        return data

    def get_session(self, session_id: str) -> Optional[AuthSession]:
        """Return the stored tokens, refreshing TTL, or None if missing/expired."""
        with self._lock:
            data = self._live(session_id)
            if data is None:
                return None
            # refresh TTL on access
            data["exp"] = self._next_expiry(data["created_at"])
            return data["auth"]

    def update_session(self, session_id: str, auth: AuthSession) -> None:
        with self._lock:
            data = self._live(session_id)
            if data is None:
                return
            data["auth"] = auth
            data["exp"] = self._next_expiry(data["created_at"])

    def delete_session(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()
