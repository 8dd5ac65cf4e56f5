"""Paginated insight listing for the insights page."""

from __future__ import annotations

from typing import Optional

from neura_dashboard.config import settings
from neura_dashboard.domain import InsightsPage
from neura_dashboard.stores.base import _UNSET, CachedResource, CachedStore, InsightCollectionMixin

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def page_key(page: int, limit: int) -> str:
    return f"insights?page={page}&limit={limit}"


class InsightsStore(InsightCollectionMixin, CachedStore):
    """One cached resource per (page, limit); the last requested page is "current"."""

    def __init__(self, client, *, ttl: Optional[float] = _UNSET, **kwargs) -> None:
        super().__init__(client, ttl=settings.insights_ttl_seconds if ttl is _UNSET else ttl, **kwargs)
        self.current_key: Optional[str] = None

    @property
    def current(self) -> Optional[InsightsPage]:
        return self.get(self.current_key) if self.current_key else None

    def fetch_insights(self, page: int = 1, limit: int = DEFAULT_PAGE_SIZE, force_refresh: bool = False) -> CachedResource:
        key = page_key(page, limit)
        self.current_key = key
        return self.fetch(
            key,
            lambda: InsightsPage.model_validate(
                self.client.get("/api/insights/", params={"page": page, "limit": limit})
            ),
            force_refresh=force_refresh,
            error_message="Failed to load insights",
        )

    def refetch_insights(self, page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> CachedResource:
        return self.fetch_insights(page, limit, force_refresh=True)

    def clear(self) -> None:
        super().clear()
        self.current_key = None
