"""Optimistic insight mutations with rollback."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, Set, TypeVar

from neura_dashboard.errors import ApiError, MutationInFlight
from neura_dashboard.notifications import ToastQueue
from neura_dashboard.stores.insights import InsightsStore
from neura_dashboard.stores.overview import OverviewStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="mutations")

T = TypeVar("T")


@dataclass
class MutationResult(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[ApiError] = None


class OptimisticTransaction(Generic[T]):
    """apply locally, commit remotely, roll back locally if the commit fails."""

    def __init__(self, apply: Callable[[], Any], commit: Callable[[], T], rollback: Callable[[Any], None]) -> None:
        self.apply = apply
        self.commit = commit
        self.rollback = rollback

    def run(self) -> MutationResult[T]:
        undo = self.apply()
        try:
            value = self.commit()
        except ApiError as exc:
            logger.warning("Commit failed (%s); rolling back", exc.status)
            self.rollback(undo)
            return MutationResult(ok=False, error=exc)
        return MutationResult(ok=True, value=value)


class InsightActions:
    """Acknowledge/resolve/feedback actions for one user's cached insights."""

    def __init__(self, client, overview: OverviewStore, insights: InsightsStore, toasts: ToastQueue) -> None:
        self.client = client
        self.overview = overview
        self.insights = insights
        self.toasts = toasts
        self._pending: Set[str] = set()
        self._lock = threading.Lock()

    def is_pending(self, insight_id: str) -> bool:
        with self._lock:
            return insight_id in self._pending

    def _patch_everywhere(self, insight_id: str, fields: Dict[str, Any]) -> Dict[str, Optional[Dict[str, Any]]]:
        return {
            "overview": self.overview.patch_insight(insight_id, **fields),
            "insights": self.insights.patch_insight(insight_id, **fields),
        }

    def _restore(self, insight_id: str, previous: Dict[str, Optional[Dict[str, Any]]]) -> None:
        if previous["overview"] is not None:
            self.overview.patch_insight(insight_id, **previous["overview"])
        if previous["insights"] is not None:
            self.insights.patch_insight(insight_id, **previous["insights"])

    def _mutate(self, insight_id: str, fields: Dict[str, Any], success: str, failure: str) -> MutationResult:
        with self._lock:
            if insight_id in self._pending:
                raise MutationInFlight(insight_id)
            self._pending.add(insight_id)
        try:
            result = OptimisticTransaction(
                apply=lambda: self._patch_everywhere(insight_id, fields),
                commit=lambda: self.client.patch(f"/api/insights/{insight_id}", json=fields),
                rollback=lambda previous: self._restore(insight_id, previous),
            ).run()
        finally:
            with self._lock:
                self._pending.discard(insight_id)

        if result.ok:
            self.toasts.success(success)
        else:
            self.toasts.error(failure)
        return result

    def acknowledge(self, insight_id: str) -> MutationResult:
        return self._mutate(
            insight_id, {"is_acknowledged": True}, "Insight acknowledged", "Failed to acknowledge insight"
        )

    def resolve(self, insight_id: str) -> MutationResult:
        return self._mutate(
            insight_id, {"is_marked_done": True}, "Insight marked as resolved", "Failed to resolve insight"
        )

    def submit_feedback(self, insight_id: str, is_helpful: bool, comment: Optional[str] = None) -> bool:
        insight = self.overview.find_insight(insight_id) or self.insights.find_insight(insight_id)
        if insight is None:
            self.toasts.error("Insight not found")
            return False
        payload = {
            "insight_id": insight.insight_id,
            "insight_type": insight.insight_type,
            "insight_title": insight.title,
            "is_helpful": is_helpful,
            "comment": (comment or "").strip() or None,
        }
        try:
            self.client.post("/api/feedback/", json=payload)
        except ApiError as exc:
            logger.warning("Feedback for %s failed: %s", insight_id, exc.message)
            self.toasts.error("Failed to submit feedback. Please try again.")
            return False
        self.toasts.success("Thank you for your feedback!")
        return True
