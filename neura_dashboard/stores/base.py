"""TTL cache with per-key request de-duplication, shared by the domain stores."""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from pydantic import ValidationError

from neura_dashboard.api_client import ApiClient
from neura_dashboard.domain import Insight
from neura_dashboard.errors import ApiError
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="stores/base")

T = TypeVar("T")

_UNSET: Any = object()


@dataclass
class CachedResource(Generic[T]):
    """Last fetched payload plus its loading/error state.

    ``last_fetched`` (epoch seconds) is set only by a successful fetch or an
    explicit ``set_data``; a failed fetch keeps the previous data visible.
    """
    data: Optional[T] = None
    is_loading: bool = False
    last_fetched: Optional[float] = None
    error: Optional[str] = None

    def is_fresh(self, now: float, ttl: Optional[float]) -> bool:
        """True when cached data can be served without a network call."""
        if self.data is None or self.last_fetched is None:
            return False
        if ttl is None:
            return True
        return (now - self.last_fetched) < ttl


class CachedStore:
    """Keyed TTL cache whose concurrent fetches share one backend request.

    Each store instance owns its resources and its in-flight map, so two
    users (or two tests) never share state.
    """

    def __init__(
        self,
        client: ApiClient,
        *,
        ttl: Optional[float],
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client = client
        self.ttl = ttl
        self._clock = clock
        self._resources: Dict[str, CachedResource] = {}
        self._in_flight: Dict[str, Future] = {}
        self._lock = threading.Lock()

    def resource(self, key: str) -> CachedResource:
        """Return a copy of the resource state for ``key``."""
        with self._lock:
            return replace(self._resources.get(key) or CachedResource())

    def get(self, key: str) -> Any:
        with self._lock:
            res = self._resources.get(key)
            return res.data if res else None

    def fetch(
        self,
        key: str,
        loader: Callable[[], T],
        *,
        force_refresh: bool = False,
        ttl: Optional[float] = _UNSET,
        error_message: str = "Failed to load data",
    ) -> CachedResource:
        """Populate ``key`` via ``loader`` unless fresh data is cached.

        Callers arriving while a fetch for ``key`` is running wait for that
        fetch instead of starting another one. Backend and payload errors are
        recorded on the resource and never raised.
        """
        ttl = self.ttl if ttl is _UNSET else ttl
        with self._lock:
            res = self._resources.setdefault(key, CachedResource())
            if not force_refresh and res.is_fresh(self._clock(), ttl):
                logger.debug("Serving %s from cache", key)
                return replace(res)
            pending = self._in_flight.get(key)
            is_leader = pending is None
            if is_leader:
                pending = Future()
                self._in_flight[key] = pending
                res.is_loading = True
                res.error = None

        if not is_leader:
            logger.debug("Joining in-flight fetch for %s", key)
            pending.result()
            return self.resource(key)

        try:
            data = loader()
        except ApiError as exc:
            logger.warning("Fetching %s failed: %s", key, exc.message)
            self._record_error(res, exc.message or error_message)
        except ValidationError as exc:
            logger.warning("Backend payload for %s did not validate: %s", key, exc)
            self._record_error(res, error_message)
        else:
            with self._lock:
                res.data = data
                res.last_fetched = self._clock()
                res.error = None
        finally:
            with self._lock:
                res.is_loading = False
                self._in_flight.pop(key, None)
            pending.set_result(None)
        return self.resource(key)

    def _record_error(self, res: CachedResource, message: str) -> None:
        with self._lock:
            res.error = message

    def set_data(self, key: str, data: Any) -> None:
        """Store data obtained elsewhere (e.g. from a mutation response) as fresh."""
        with self._lock:
            res = self._resources.setdefault(key, CachedResource())
            res.data = data
            res.last_fetched = self._clock()
            res.error = None

    def invalidate(self, key: str) -> None:
        """Mark ``key`` stale; its data stays visible until the next fetch."""
        with self._lock:
            res = self._resources.get(key)
            if res:
                res.last_fetched = None

    def is_in_flight(self, key: str) -> bool:
        with self._lock:
            return key in self._in_flight

    def clear(self) -> None:
        """Forget everything (sign-out). Fetches still running land on detached resources."""
        with self._lock:
            self._resources.clear()


class InsightCollectionMixin:
    """Find and patch insights inside whatever cached payloads hold them.

    Payloads must be pydantic models with an ``insights`` list.
    """

    _resources: Dict[str, CachedResource]
    _lock: threading.Lock

    def find_insight(self, insight_id: str) -> Optional[Insight]:
        with self._lock:
            for res in self._resources.values():
                for insight in getattr(res.data, "insights", None) or []:
                    if insight.insight_id == insight_id:
                        return insight
        return None

    def patch_insight(self, insight_id: str, **fields: Any) -> Optional[Dict[str, Any]]:
        """Apply ``fields`` to every cached copy of an insight.

        Returns the previous values of the patched fields (from the first copy
        found) so the caller can undo the change, or None if nothing matched.
        """
        previous: Optional[Dict[str, Any]] = None
        with self._lock:
            for res in self._resources.values():
                insights = getattr(res.data, "insights", None)
                if not insights:
                    continue
                changed = False
                patched = []
                for insight in insights:
                    if insight.insight_id == insight_id:
                        if previous is None:
                            previous = {name: getattr(insight, name) for name in fields}
                        insight = insight.model_copy(update=fields)
                        changed = True
                    patched.append(insight)
                if changed:
                    res.data = res.data.model_copy(update={"insights": patched})
        return previous
