"""Admin dashboard and feedback review data (operational data only)."""

from __future__ import annotations

from typing import Optional

from neura_dashboard.config import settings
from neura_dashboard.domain import AdminDashboardData, FeedbackList, FeedbackSummaryData
from neura_dashboard.stores.base import CachedResource, CachedStore

DASHBOARD_KEY = "admin/dashboard"
FEEDBACK_SUMMARY_KEY = "admin/feedback-summary"


def feedback_list_key(limit: int, offset: int) -> str:
    return f"admin/feedback?limit={limit}&offset={offset}"


class AdminStore(CachedStore):
    """Admin views are always refetched; concurrent requests are still shared."""

    def __init__(self, client, *, ttl: Optional[float] = None, **kwargs) -> None:
        super().__init__(client, ttl=ttl if ttl is not None else settings.admin_ttl_seconds, **kwargs)

    def fetch_dashboard(self, force_refresh: bool = False) -> CachedResource:
        return self.fetch(
            DASHBOARD_KEY,
            lambda: AdminDashboardData.model_validate(self.client.get("/api/admin/dashboard")),
            force_refresh=force_refresh,
            error_message="Failed to load admin dashboard",
        )

    def fetch_feedback_summary(self, force_refresh: bool = False) -> CachedResource:
        return self.fetch(
            FEEDBACK_SUMMARY_KEY,
            lambda: FeedbackSummaryData.model_validate(self.client.get("/api/feedback/admin/summary")),
            force_refresh=force_refresh,
            error_message="Failed to load feedback summary",
        )

    def fetch_feedback_list(self, limit: int = 20, offset: int = 0, force_refresh: bool = False) -> CachedResource:
        return self.fetch(
            feedback_list_key(limit, offset),
            lambda: FeedbackList.model_validate(
                self.client.get("/api/feedback/admin", params={"limit": limit, "offset": offset})
            ),
            force_refresh=force_refresh,
            error_message="Failed to load feedback list",
        )
