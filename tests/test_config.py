import os
import unittest
from datetime import timedelta
from unittest.mock import patch

from workload_api import config
from workload_engine import ApportionPolicy


def _clear_caches():
    config.get_database_config.cache_clear()
    config.get_api_config.cache_clear()
    config.get_engine_settings.cache_clear()
    config.get_cache_config.cache_clear()


class TestConfig(unittest.TestCase):
    def setUp(self):
        _clear_caches()
        self.addCleanup(_clear_caches)

    @patch.dict(os.environ, {"WORKLOAD_APPORTION_POLICY": " None ", "WORKLOAD_SCALE_MAX": "2.0"})
    def test_engine_settings_from_environment(self):
        settings = config.get_engine_settings()

        self.assertEqual(settings.apportion_policy, ApportionPolicy.NONE)
        self.assertEqual(settings.scale_max, 2.0)
        self.assertEqual(settings.lookback_weeks, 4)

    @patch.dict(os.environ, {"WORKLOAD_APPORTION_POLICY": "round_robin"})
    def test_unknown_policy_fails_fast(self):
        with self.assertRaises(ValueError):
            config.get_engine_settings()

    @patch.dict(os.environ, {"SNAPSHOT_TTL_MINUTES": "2", "SNAPSHOT_REFRESH_ENABLED": "Yes"})
    def test_cache_config(self):
        cache = config.get_cache_config()

        self.assertEqual(cache.ttl, timedelta(minutes=2))
        self.assertTrue(cache.refresh_enabled)

    @patch.dict(os.environ, {"ALLOWED_ORIGINS": "https://a.example, ,https://b.example"})
    def test_allowed_origins(self):
        self.assertEqual(config.get_api_config().allowed_origins, ["https://a.example", "https://b.example"])

    @patch.dict(os.environ, {"DB_HOST": "db.internal", "DB_MAX_RETRIES": "5"})
    def test_database_config(self):
        db = config.get_database_config()

        self.assertEqual(db.max_retries, 5)
        self.assertEqual(db.connect_kwargs()["host"], "db.internal")


if __name__ == "__main__":
    unittest.main()
