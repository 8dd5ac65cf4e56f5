"""Per-user cache stores over the insights backend."""

from .admin import AdminStore
from .base import CachedResource, CachedStore
from .health_score import HealthScoreStore
from .insights import InsightsStore
from .overview import OverviewStore
from .settings import SettingsStore

__all__ = [
    "AdminStore",
    "CachedResource",
    "CachedStore",
    "HealthScoreStore",
    "InsightsStore",
    "OverviewStore",
    "SettingsStore",
]
