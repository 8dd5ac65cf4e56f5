"""Per-session dashboard state: backend client, cache stores, toasts and the running generation job."""

from __future__ import annotations

import threading
import time
from typing import Callable, Dict, Optional

from neura_dashboard.api_client import ApiClient
from neura_dashboard.auth import AuthService, SessionTokenProvider
from neura_dashboard.config import settings
from neura_dashboard.mutations import InsightActions
from neura_dashboard.notifications import QueueNotifier, ToastQueue
from neura_dashboard.poller import GenerationJob
from neura_dashboard.stores import AdminStore, HealthScoreStore, InsightsStore, OverviewStore, SettingsStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="context")


class DashboardContext:
    """Everything one signed-in user's dashboard needs, created lazily per session."""

    def __init__(self, session_id: str, auth_service: AuthService, client: Optional[ApiClient] = None) -> None:
        self.session_id = session_id
        self.client = client or ApiClient(SessionTokenProvider(session_id, auth_service, on_signed_out=self.clear))
        self.toasts = ToastQueue()
        self.notifier = QueueNotifier(self.toasts)
        self.settings = SettingsStore(self.client)
        self.overview = OverviewStore(self.client)
        self.insights = InsightsStore(self.client)
        self.health_score = HealthScoreStore(self.client)
        self.admin = AdminStore(self.client)
        self.actions = InsightActions(self.client, self.overview, self.insights, self.toasts)
        self.job: Optional[GenerationJob] = None
        self._job_lock = threading.Lock()

    def start_generation(self, notify_when_ready: bool = False) -> GenerationJob:
        """Start a new generation run, cancelling any previous one (re-opening the modal)."""
        job = GenerationJob(self.client, self.settings, self.overview, notifier=self.notifier)
        with self._job_lock:
            previous, self.job = self.job, job
        if previous is not None:
            previous.cancel()
        job.start(notify_when_ready=notify_when_ready)
        return job

    def cancel_generation(self) -> None:
        with self._job_lock:
            job = self.job
        if job is not None:
            job.cancel()

    @property
    def is_generating(self) -> bool:
        job = self.job
        return job is not None and job.is_running

    def clear(self) -> None:
        """Drop all cached data (sign-out)."""
        self.cancel_generation()
        for store in (self.settings, self.overview, self.insights, self.health_score, self.admin):
            store.clear()
        self.toasts.drain()

    def close(self) -> None:
        """Clear state and release the backend connection pool."""
        self.clear()
        close = getattr(self.client, "close", None)
        if close is not None:
            close()


class ContextRegistry:
    """Lock-guarded map of session id to DashboardContext.

    Contexts idle for longer than ``idle_ttl_seconds`` are evicted on the next
    ``get``; by then the sliding session TTL has lapsed as well. Contexts with
    a running generation job are kept until the job ends.
    """

    def __init__(
        self,
        auth_service: Optional[AuthService] = None,
        *,
        idle_ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.auth_service = auth_service or AuthService()
        self.idle_ttl = idle_ttl_seconds if idle_ttl_seconds is not None else settings.session_ttl_seconds
        self._clock = clock
        self._contexts: Dict[str, DashboardContext] = {}
        self._last_seen: Dict[str, float] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._contexts)

    def _pop_idle(self, now: float) -> list[DashboardContext]:
        idle = [
            sid for sid, seen in self._last_seen.items()
            if now - seen > self.idle_ttl and not self._contexts[sid].is_generating
        ]
        self._last_seen = {sid: seen for sid, seen in self._last_seen.items() if sid not in idle}
        return [self._contexts.pop(sid) for sid in idle]

    def get(self, session_id: str) -> DashboardContext:
        now = self._clock()
        with self._lock:
            evicted = self._pop_idle(now)
            ctx = self._contexts.get(session_id)
            if ctx is None:
                logger.debug("Creating dashboard context for session %s", session_id[:8])
                ctx = DashboardContext(session_id, self.auth_service)
                self._contexts[session_id] = ctx
            self._last_seen[session_id] = now
        if evicted:
            logger.info("Evicted %d idle dashboard contexts", len(evicted))
        for stale in evicted:
            stale.close()
        return ctx

    def register(self, ctx: DashboardContext) -> DashboardContext:
        """Install a prebuilt context (tests, alternative clients)."""
        with self._lock:
            self._contexts[ctx.session_id] = ctx
            self._last_seen[ctx.session_id] = self._clock()
        return ctx

    def evict_idle(self) -> int:
        with self._lock:
            evicted = self._pop_idle(self._clock())
        for stale in evicted:
            stale.close()
        return len(evicted)

    def drop(self, session_id: str) -> None:
        with self._lock:
            ctx = self._contexts.pop(session_id, None)
            self._last_seen.pop(session_id, None)
        if ctx is not None:
            ctx.close()

    def clear(self) -> None:
        with self._lock:
            contexts = list(self._contexts.values())
            self._contexts.clear()
            self._last_seen.clear()
        for ctx in contexts:
            ctx.close()


registry = ContextRegistry()
