import time

import unittest

from neura_dashboard.domain import AuthSession
from neura_dashboard.session_store.memory import InMemorySessionStore


def _auth(access="access-1"):
    return AuthSession(access_token=access, refresh_token="refresh-1", user_id="u1", email="owner@acme.test")


class TestInMemorySessionStore(unittest.TestCase):
    def test_create_and_get_refreshes_ttl(self):
        store = InMemorySessionStore(ttl_seconds=2)
        sid = store.create_session(_auth())
        self.assertIsNotNone(store.get_session(sid))
        time.sleep(1.2)
        # Access should refresh TTL; should still exist
        self.assertIsNotNone(store.get_session(sid))
        time.sleep(2.1)
        # After another sleep without access, it should expire
        self.assertIsNone(store.get_session(sid))

    def test_update_replaces_tokens(self):
        store = InMemorySessionStore(ttl_seconds=5)
        sid = store.create_session(_auth())
        store.update_session(sid, _auth("access-2"))
        auth = store.get_session(sid)
        self.assertEqual(auth.access_token, "access-2")
        self.assertEqual(auth.email, "owner@acme.test")

    def test_update_unknown_session_is_noop(self):
        store = InMemorySessionStore(ttl_seconds=5)
        store.update_session("missing", _auth())
        self.assertIsNone(store.get_session("missing"))

    def test_max_age_expires_even_with_access(self):
        store = InMemorySessionStore(ttl_seconds=5, max_age_seconds=1)
        sid = store.create_session(_auth())
        self.assertIsNotNone(store.get_session(sid))
        time.sleep(0.6)
        self.assertIsNotNone(store.get_session(sid))
        time.sleep(0.6)
        self.assertIsNone(store.get_session(sid))

    def test_delete_and_clear(self):
        store = InMemorySessionStore()
        sid1 = store.create_session(_auth())
        sid2 = store.create_session(_auth())
        store.delete_session(sid1)
        self.assertIsNone(store.get_session(sid1))
        store.clear()
        self.assertIsNone(store.get_session(sid2))


if __name__ == "__main__":
    unittest.main()
