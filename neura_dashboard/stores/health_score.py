"""Health score breakdown (changes only after a sync)."""

from __future__ import annotations

from typing import Optional

from neura_dashboard.config import settings
from neura_dashboard.domain import HealthScoreData
from neura_dashboard.stores.base import CachedResource, CachedStore

HEALTH_SCORE_KEY = "health-score"


class HealthScoreStore(CachedStore):

    def __init__(self, client, *, ttl: Optional[float] = None, **kwargs) -> None:
        super().__init__(client, ttl=ttl if ttl is not None else settings.cache_ttl_seconds, **kwargs)

    @property
    def data(self) -> Optional[HealthScoreData]:
        return self.get(HEALTH_SCORE_KEY)

    def fetch_health_score(self, force_refresh: bool = False) -> CachedResource:
        return self.fetch(
            HEALTH_SCORE_KEY,
            lambda: HealthScoreData.model_validate(self.client.get("/api/insights/health-score")),
            force_refresh=force_refresh,
            error_message="Failed to load health score",
        )
