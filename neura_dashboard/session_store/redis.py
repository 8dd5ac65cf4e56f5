"""Redis-backed session store with TTL."""

import json
import time
import uuid
from typing import Optional

import redis
from pydantic import ValidationError

from neura_dashboard.domain import AuthSession
from neura_dashboard.session_store.base import SessionStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="session_store/redis_session_store")


class RedisSessionStore(SessionStore):
    """Redis-backed sessions with TTL. Stores the tokens as JSON."""

    def __init__(
        self,
        client,
        ttl_seconds: int = 3600,
        max_age_seconds: int | None = None,
        prefix: str = "neura:session:",
    ) -> None:
        """Initialize with a Redis client, TTL, and optional absolute max age."""
        logger.debug("Initializing RedisSessionStore")
        self.client = client
        self.ttl = ttl_seconds
        self.max_age = max_age_seconds
        self.prefix = prefix

    def _key(self, session_id: str) -> str:
        return f"{self.prefix}{session_id}"

    @staticmethod
    def _dump(auth: AuthSession, *, created_at: float) -> bytes:
        data = {"auth": auth.model_dump(), "created_at": created_at}
        return json.dumps(data).encode("utf-8")

    @staticmethod
    def _load(raw: bytes) -> Optional[tuple[AuthSession, float]]:
        """Deserialize JSON bytes into tokens and created_at."""
        try:
            data = json.loads(raw.decode("utf-8"))
            auth = AuthSession.model_validate(data.get("auth") or {})
            created_at = data.get("created_at") or time.time()
            return auth, float(created_at)
        except (ValueError, ValidationError) as exc:
            logger.error("Failed to deserialize session payload: %s", exc)
            return None

    def _is_expired(self, created_at: float) -> bool:
        if self.max_age is None:
            return False
        return (time.time() - created_at) > self.max_age

    def _ttl_remaining(self, created_at: float) -> int:
        """Return TTL seconds capped by absolute max age."""
        if self.max_age is None:
            return self.ttl
        remaining = int(max(0.0, (created_at + self.max_age) - time.time()))
        return min(self.ttl, remaining)

    def _read(self, session_id: str) -> Optional[tuple[AuthSession, float]]:
        try:
            raw = self.client.get(self._key(session_id))
        except redis.RedisError as exc:
            logger.error("Failed to read session from Redis: %s", exc)
            return None
        if not raw:
            return None
        loaded = self._load(raw)
        if not loaded:
            return None
        if self._is_expired(loaded[1]):
            self.delete_session(session_id)
            return None
        return loaded

    def create_session(self, auth: AuthSession) -> str:
        sid = str(uuid.uuid4())
        created_at = time.time()
        ttl = self._ttl_remaining(created_at)
        if ttl <= 0:
            raise RuntimeError("Session max age expired before storage")
        try:
            self.client.setex(self._key(sid), ttl, self._dump(auth, created_at=created_at))
        except redis.RedisError as exc:
            logger.error("Failed to write session to Redis: %s", exc)
            raise
        return sid

    def get_session(self, session_id: str) -> Optional[AuthSession]:
        """Fetch the stored tokens, refreshing TTL, or None if missing/invalid."""
        loaded = self._read(session_id)
        if not loaded:
            return None
        auth, created_at = loaded
        try:
            ttl = self._ttl_remaining(created_at)
            if ttl > 0:
                self.client.expire(self._key(session_id), ttl)
        except redis.RedisError as exc:
            logger.warning("Failed to refresh session TTL: %s", exc)
        return auth

    def update_session(self, session_id: str, auth: AuthSession) -> None:
        """Replace the tokens of an existing session; no-op if missing/invalid."""
        loaded = self._read(session_id)
        if not loaded:
            return
        _, created_at = loaded
        ttl = self._ttl_remaining(created_at)
        if ttl <= 0:
            self.delete_session(session_id)
            return
        try:
            self.client.setex(self._key(session_id), ttl, self._dump(auth, created_at=created_at))
        except redis.RedisError as exc:
            logger.error("Failed to update session in Redis: %s", exc)

    def delete_session(self, session_id: str) -> None:
        try:
            self.client.delete(self._key(session_id))
        except redis.RedisError as exc:
            logger.error("Failed to delete session from Redis: %s", exc)

    def clear(self) -> None:
        """Best-effort clear for all sessions under the configured prefix."""
        try:
            for key in self.client.scan_iter(f"{self.prefix}*"):
                self.client.delete(key)
        except redis.RedisError as exc:
            logger.error("Failed to clear sessions from Redis: %s", exc)
