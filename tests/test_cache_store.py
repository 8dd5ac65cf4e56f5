import threading
import time
import unittest

from pydantic import BaseModel

from neura_dashboard.errors import ApiError
from neura_dashboard.stores.base import CachedResource, CachedStore


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class _Payload(BaseModel):
    value: int


class TestCachedResource(unittest.TestCase):
    def test_freshness(self):
        res = CachedResource(data={"a": 1}, last_fetched=100.0)
        self.assertTrue(res.is_fresh(150.0, 60))
        self.assertFalse(res.is_fresh(160.0, 60))
        self.assertTrue(res.is_fresh(10_000.0, None))
        self.assertFalse(CachedResource().is_fresh(0.0, None))


class TestCachedStore(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.store = CachedStore(client=None, ttl=1200, clock=self.clock)
        self.calls = 0

    def _loader(self, value=1):
        def load():
            self.calls += 1
            return _Payload(value=value)
        return load

    def test_fetch_populates_resource(self):
        res = self.store.fetch("settings", self._loader(7))
        self.assertEqual(res.data.value, 7)
        self.assertFalse(res.is_loading)
        self.assertEqual(res.last_fetched, 1000.0)
        self.assertIsNone(res.error)

    def test_fresh_data_skips_network(self):
        self.store.fetch("settings", self._loader())
        self.clock.now += 1199
        self.store.fetch("settings", self._loader())
        self.assertEqual(self.calls, 1)

    def test_stale_data_refetches(self):
        self.store.fetch("settings", self._loader(1))
        self.clock.now += 1200
        res = self.store.fetch("settings", self._loader(2))
        self.assertEqual(self.calls, 2)
        self.assertEqual(res.data.value, 2)

    def test_force_refresh_always_fetches(self):
        self.store.fetch("settings", self._loader())
        self.store.fetch("settings", self._loader(), force_refresh=True)
        self.assertEqual(self.calls, 2)

    def test_zero_ttl_always_fetches(self):
        self.store.fetch("admin", self._loader(), ttl=0)
        self.store.fetch("admin", self._loader(), ttl=0)
        self.assertEqual(self.calls, 2)

    def test_error_is_recorded_and_stale_data_kept(self):
        self.store.fetch("settings", self._loader(5))
        self.clock.now += 5000

        def failing():
            raise ApiError("backend down", 503, "Service Unavailable")

        res = self.store.fetch("settings", failing)
        self.assertEqual(res.error, "backend down")
        self.assertEqual(res.data.value, 5)
        self.assertEqual(res.last_fetched, 1000.0)
        self.assertFalse(res.is_loading)
        self.assertFalse(self.store.is_in_flight("settings"))

    def test_invalid_payload_uses_fallback_message(self):
        def bad():
            return _Payload.model_validate({"value": "not-a-number"})

        res = self.store.fetch("settings", bad, error_message="Failed to load settings")
        self.assertEqual(res.error, "Failed to load settings")
        self.assertIsNone(res.data)
        self.assertIsNone(res.last_fetched)

    def test_error_then_success_clears_error(self):
        def failing():
            raise ApiError("nope", 500, "")

        self.store.fetch("k", failing)
        res = self.store.fetch("k", self._loader(3))
        self.assertIsNone(res.error)
        self.assertEqual(res.data.value, 3)

    def test_concurrent_fetches_share_one_request(self):
        release = threading.Event()
        started = []
        results = []

        def slow_loader():
            self.calls += 1
            release.wait(5)
            return _Payload(value=42)

        def call(ready=None):
            if ready is not None:
                ready.set()
            results.append(self.store.fetch("overview", slow_loader, ttl=0))

        leader = threading.Thread(target=call)
        leader.start()
        deadline = time.time() + 5
        while not self.store.is_in_flight("overview") and time.time() < deadline:
            time.sleep(0.005)

        followers = []
        for _ in range(4):
            ready = threading.Event()
            started.append(ready)
            t = threading.Thread(target=call, args=(ready,))
            t.start()
            followers.append(t)
        for ready in started:
            ready.wait(5)
        time.sleep(0.05)
        release.set()

        leader.join(5)
        for t in followers:
            t.join(5)

        self.assertEqual(self.calls, 1)
        self.assertEqual(len(results), 5)
        self.assertTrue(all(r.data.value == 42 for r in results))
        self.assertFalse(self.store.is_in_flight("overview"))

    def test_set_data_and_invalidate(self):
        self.store.set_data("settings", _Payload(value=9))
        self.assertEqual(self.store.get("settings").value, 9)
        self.store.fetch("settings", self._loader())
        self.assertEqual(self.calls, 0)

        self.store.invalidate("settings")
        self.assertEqual(self.store.get("settings").value, 9)
        self.store.fetch("settings", self._loader(10))
        self.assertEqual(self.calls, 1)
        self.assertEqual(self.store.get("settings").value, 10)

    def test_clear_forgets_everything(self):
        self.store.fetch("settings", self._loader())
        self.store.clear()
        self.assertIsNone(self.store.get("settings"))
        self.assertIsNone(self.store.resource("settings").data)

    def test_resource_returns_copy(self):
        self.store.fetch("settings", self._loader())
        snapshot = self.store.resource("settings")
        snapshot.error = "changed"
        self.assertIsNone(self.store.resource("settings").error)


if __name__ == "__main__":
    unittest.main()
