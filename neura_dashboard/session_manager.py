"""Session manager facade over pluggable backends."""
from typing import Optional

import redis

from neura_dashboard.config import settings
from neura_dashboard.domain import AuthSession
from neura_dashboard.session_store import InMemorySessionStore, RedisSessionStore, SessionStore
from utils.logging_utils import get_tagged_logger, mask_url

logger = get_tagged_logger(__name__, tag="session_manager")


def _init_store() -> SessionStore:
    """Initialize the backing session store based on configuration."""
    redis_url = mask_url(settings.session_redis_url) if settings.session_redis_url else "None"
    logger.debug("Initializing session store: redis_url='%s'", redis_url)
    if settings.session_redis_url:
        try:
            client = redis.Redis.from_url(settings.session_redis_url)
            client.ping()
            logger.info("Using RedisSessionStore", extra={"redis_url": redis_url})
            return RedisSessionStore(client, ttl_seconds=settings.session_ttl_seconds)
        except redis.RedisError as exc:
            logger.warning("Falling back to InMemorySessionStore (Redis unavailable)", extra={"error": str(exc)})
    return InMemorySessionStore(ttl_seconds=settings.session_ttl_seconds)


_store: SessionStore = _init_store()


def use_in_memory_store_for_tests(ttl_seconds: int = 3600) -> None:
    """Override store for tests to ensure isolation and determinism."""
    global _store
    _store = InMemorySessionStore(ttl_seconds=ttl_seconds)


def create_session(auth: AuthSession) -> str:
    """Persist tokens for a signed-in user, returning the new session id."""
    return _store.create_session(auth)


def get_session(session_id: Optional[str]) -> Optional[AuthSession]:
    """Fetch the tokens for a session id, refreshing TTL if applicable."""
    if not session_id:
        return None
    return _store.get_session(session_id)


def update_session(session_id: str, auth: AuthSession) -> None:
    """Swap in refreshed tokens."""
    _store.update_session(session_id, auth)


def delete_session(session_id: str) -> None:
    _store.delete_session(session_id)


def clear_sessions() -> None:
    """Clear all sessions from the backing store (dev/testing)."""
    _store.clear()
