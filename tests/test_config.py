import os
import unittest

from neura_dashboard.config import Settings


class _EnvOverride:
    """Temporarily set environment variables."""

    def __init__(self, **values):
        self.values = values
        self.previous = {}

    def __enter__(self):
        for key, value in self.values.items():
            self.previous[key] = os.environ.get(key)
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value

    def __exit__(self, *exc):
        for key, value in self.previous.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value


class TestConfig(unittest.TestCase):
    def test_settings_defaults(self):
        with _EnvOverride(NEURA_API_URL=None, NEXT_PUBLIC_API_URL=None, NEURA_COMPLETION_MARGIN_MS=None):
            s = Settings()
            self.assertEqual(s.api_url, "http://localhost:8000")
            self.assertEqual(s.cache_ttl_seconds, 1200)
            self.assertIsNone(s.overview_ttl_seconds)
            self.assertEqual(s.poll_fast_interval_seconds, 2.0)
            self.assertEqual(s.poll_slow_interval_seconds, 10.0)
            self.assertEqual(s.poll_fast_count, 3)
            self.assertEqual(s.completion_margin_ms, 1000)
            self.assertEqual(s.stale_margin_ms, 5000)
            self.assertEqual(s.completion_delay_seconds, 1.5)

    def test_api_url_env_override_strips_trailing_slash(self):
        with _EnvOverride(NEURA_API_URL="http://backend.example.com/", NEXT_PUBLIC_API_URL=None):
            s = Settings()
            self.assertEqual(s.api_url, "http://backend.example.com")

    def test_next_public_names_are_accepted(self):
        with _EnvOverride(
            NEURA_API_URL=None,
            NEXT_PUBLIC_API_URL="https://api.neura.test",
            NEURA_SUPABASE_URL=None,
            NEXT_PUBLIC_SUPABASE_URL="https://proj.supabase.co/",
        ):
            s = Settings()
            self.assertEqual(s.api_url, "https://api.neura.test")
            self.assertEqual(s.supabase_url, "https://proj.supabase.co")

    def test_margins_are_configurable(self):
        with _EnvOverride(NEURA_COMPLETION_MARGIN_MS="0", NEURA_STALE_MARGIN_MS="2500"):
            s = Settings()
            self.assertEqual(s.completion_margin_ms, 0)
            self.assertEqual(s.stale_margin_ms, 2500)


if __name__ == "__main__":
    unittest.main()
