"""Overview payload: headline metrics plus the insights shown on the dashboard."""

from __future__ import annotations

from typing import Optional

from neura_dashboard.config import settings
from neura_dashboard.domain import OverviewData
from neura_dashboard.stores.base import _UNSET, CachedResource, CachedStore, InsightCollectionMixin

OVERVIEW_KEY = "overview"


class OverviewStore(InsightCollectionMixin, CachedStore):
    """Overview is cached until forced (new insights only appear after a sync)."""

    def __init__(self, client, *, ttl: Optional[float] = _UNSET, **kwargs) -> None:
        super().__init__(client, ttl=settings.overview_ttl_seconds if ttl is _UNSET else ttl, **kwargs)

    @property
    def data(self) -> Optional[OverviewData]:
        return self.get(OVERVIEW_KEY)

    def fetch_overview(self, force_refresh: bool = False) -> CachedResource:
        return self.fetch(
            OVERVIEW_KEY,
            lambda: OverviewData.model_validate(self.client.get("/api/insights/")),
            force_refresh=force_refresh,
            error_message="Failed to load overview data",
        )

    def update_overview(self, data: OverviewData) -> None:
        self.set_data(OVERVIEW_KEY, data)
