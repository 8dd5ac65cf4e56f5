"""Insight-generation status polling.

The backend keeps a single, mutable job-status row per organisation. After a
user triggers generation the row may still say ``COMPLETED`` from the
previous run, so every snapshot is checked against the moment the user hit
the button before it is shown or allowed to finish the run.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Literal, Optional

from pydantic import ValidationError

from neura_dashboard.config import settings
from neura_dashboard.domain import SyncStatus, SyncStatusSnapshot
from neura_dashboard.errors import ApiError, XeroNotConnected
from neura_dashboard.notifications import Notifier
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="poller")

GENERIC_FAILURE_MESSAGE = (
    "We encountered an issue generating your insights. "
    "Please try again or contact support if the problem persists."
)
READY_TITLE = "Insights Ready"
READY_BODY = "Your financial insights are now available."

Outcome = Literal["running", "completed", "failed", "cancelled"]


class CancellationToken:
    """Cooperative cancellation shared between a poller and its owner."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; returns True if cancelled meanwhile."""
        return self._event.wait(max(seconds, 0.0))


@dataclass(frozen=True)
class PollerConfig:
    fast_interval: float = 2.0
    slow_interval: float = 10.0
    fast_count: int = 3
    completion_margin_ms: int = 1000
    stale_margin_ms: int = 5000
    completion_delay: float = 1.5

    @classmethod
    def from_settings(cls) -> "PollerConfig":
        return cls(
            fast_interval=settings.poll_fast_interval_seconds,
            slow_interval=settings.poll_slow_interval_seconds,
            fast_count=settings.poll_fast_count,
            completion_margin_ms=settings.completion_margin_ms,
            stale_margin_ms=settings.stale_margin_ms,
            completion_delay=settings.completion_delay_seconds,
        )


def now_ms() -> int:
    return int(time.time() * 1000)


def is_fresh_completion(snapshot: SyncStatusSnapshot, trigger_ms: int, margin_ms: int) -> bool:
    """True for a COMPLETED snapshot written at or after ``trigger_ms - margin_ms``.

    Undated completions can't be attributed to this run and are never fresh.
    """
    if snapshot.sync_status != SyncStatus.COMPLETED:
        return False
    updated = snapshot.updated_at_ms()
    return updated is not None and updated >= trigger_ms - margin_ms


class GenerationPoller:
    """Poll the job status until a fresh completion, a failure or cancellation.

    ``run`` blocks the calling thread; all waiting goes through the token so
    ``cancel()`` interrupts a pending wait immediately.
    """

    def __init__(
        self,
        fetch_status: Callable[[], SyncStatusSnapshot],
        trigger_timestamp_ms: int,
        on_complete: Callable[[], None],
        *,
        notifier: Optional[Notifier] = None,
        notify_when_ready: bool = False,
        config: Optional[PollerConfig] = None,
    ) -> None:
        self.fetch_status = fetch_status
        self.trigger_timestamp_ms = trigger_timestamp_ms
        self.on_complete = on_complete
        self.notifier = notifier
        self.notify_when_ready = notify_when_ready
        self.config = config or PollerConfig.from_settings()
        self.snapshot = SyncStatusSnapshot.optimistic()
        self.poll_count = 0
        self.outcome: Outcome = "running"
        self.error_message: Optional[str] = None
        self._lock = threading.Lock()

    def next_interval(self) -> float:
        if self.poll_count < self.config.fast_count:
            return self.config.fast_interval
        return self.config.slow_interval

    def run(self, token: CancellationToken) -> Outcome:
        logger.info("Polling generation status (trigger=%s)", self.trigger_timestamp_ms)
        while not token.cancelled:
            try:
                snapshot = self.fetch_status()
            except (ApiError, ValidationError) as exc:
                snapshot = None
                logger.warning("Failed to fetch status: %s", exc)
            self.poll_count += 1
            if token.cancelled:
                break

            if snapshot is not None and self._handle(snapshot, token):
                return self.outcome

            if token.wait(self.next_interval()):
                break
        return self._finish("cancelled")

    def _handle(self, snapshot: SyncStatusSnapshot, token: CancellationToken) -> bool:
        """Apply one snapshot; True when polling is over."""
        updated = snapshot.updated_at_ms()
        if updated is not None and updated < self.trigger_timestamp_ms - self.config.stale_margin_ms:
            logger.debug("Ignoring stale status from %s", snapshot.updated_at)
            return False

        with self._lock:
            self.snapshot = snapshot

        if snapshot.sync_status == SyncStatus.FAILED:
            self.error_message = snapshot.last_sync_error or GENERIC_FAILURE_MESSAGE
            logger.warning("Insight generation failed: %s", self.error_message)
            self._finish("failed")
            return True

        if snapshot.sync_status == SyncStatus.COMPLETED:
            if not is_fresh_completion(snapshot, self.trigger_timestamp_ms, self.config.completion_margin_ms):
                logger.debug("Completion predates trigger; still polling")
                return False
            if token.wait(self.config.completion_delay):
                self._finish("cancelled")
                return True
            self._finish("completed")
            self.on_complete()
            if self.notify_when_ready and self.notifier is not None:
                self.notifier.notify(READY_TITLE, READY_BODY)
            return True

        return False

    def _finish(self, outcome: Outcome) -> Outcome:
        self.outcome = outcome
        logger.info("Status polling finished: %s after %d polls", outcome, self.poll_count)
        return outcome


class GenerationJob:
    """One "generate insights" run: trigger, poll in the background, refresh.

    Mirrors the overview page's flow. The poller starts before the trigger
    request so the progress view is populated immediately.
    """

    def __init__(self, client, settings_store, overview_store, *, notifier: Optional[Notifier] = None,
                 config: Optional[PollerConfig] = None, clock_ms: Callable[[], int] = now_ms) -> None:
        self.client = client
        self.settings_store = settings_store
        self.overview_store = overview_store
        self.notifier = notifier
        self.config = config
        self.clock_ms = clock_ms
        self.token = CancellationToken()
        self.poller: Optional[GenerationPoller] = None
        self.trigger_error: Optional[str] = None
        self._thread: Optional[threading.Thread] = None

    def _fetch_status(self) -> SyncStatusSnapshot:
        return SyncStatusSnapshot.model_validate(self.client.get("/api/insights/status"))

    def _on_complete(self) -> None:
        logger.info("Generation complete; refreshing overview")
        self.overview_store.fetch_overview(force_refresh=True)

    def start(self, notify_when_ready: bool = False) -> GenerationPoller:
        self.settings_store.fetch_settings()
        if not self.settings_store.xero_connected():
            raise XeroNotConnected()

        trigger_ms = self.clock_ms()
        self.poller = GenerationPoller(
            self._fetch_status,
            trigger_ms,
            self._on_complete,
            notifier=self.notifier,
            notify_when_ready=notify_when_ready,
            config=self.config,
        )
        self._thread = threading.Thread(
            target=self.poller.run, args=(self.token,), name="generation-poller", daemon=True
        )
        self._thread.start()

        try:
            self.client.post("/api/insights/trigger")
        except ApiError as exc:
            logger.error("Failed to trigger insight generation: %s", exc.message)
            self.trigger_error = exc.message
            self.cancel()
            raise
        return self.poller

    def set_notify_when_ready(self, enabled: bool = True) -> None:
        if self.poller is not None:
            self.poller.notify_when_ready = enabled

    def cancel(self) -> None:
        self.token.cancel()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def status(self) -> dict:
        poller = self.poller
        if poller is None:
            return {"outcome": "idle", "snapshot": None, "error": self.trigger_error, "poll_count": 0}
        return {
            "outcome": poller.outcome,
            "snapshot": poller.snapshot.model_dump(mode="json"),
            "error": poller.error_message or self.trigger_error,
            "poll_count": poller.poll_count,
            "trigger_timestamp_ms": poller.trigger_timestamp_ms,
            "notify_when_ready": poller.notify_when_ready,
        }
