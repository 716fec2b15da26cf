import os
import unittest
from unittest.mock import patch

from pydantic import ValidationError

from stocktool.config.settings import DEFAULT_SHELL_ASSETS, DEFAULT_SYMBOLS, Settings


class TestSettings(unittest.TestCase):
    def test_empty_env_uses_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings.from_env()

        self.assertEqual(settings.QUOTE_PROVIDER, "finnhub")
        self.assertEqual(settings.QUOTE_SYMBOLS, DEFAULT_SYMBOLS)
        self.assertIsNone(settings.FINNHUB_API_KEY)
        self.assertIsNone(settings.QUOTE_CACHE_POLICY)
        self.assertEqual(settings.UPSTREAM_TIMEOUT_SEC, 5.0)
        self.assertEqual(settings.UPSTREAM_MAX_CONCURRENCY, 8)
        self.assertEqual(settings.SHELL_CACHE_NAME, "stocktool-cache-v1")
        self.assertEqual(settings.SHELL_ASSETS, DEFAULT_SHELL_ASSETS)
        self.assertEqual(settings.SHELL_API_POLICY, "no_fallback")

    def test_symbols_parse_comma_separated_values(self):
        with patch.dict(os.environ, {"QUOTE_SYMBOLS": " AAPL, MSFT ,, TSLA "}, clear=True):
            settings = Settings.from_env()

        self.assertEqual(settings.QUOTE_SYMBOLS, ["AAPL", "MSFT", "TSLA"])

    def test_blank_symbols_fall_back_to_default(self):
        with patch.dict(os.environ, {"QUOTE_SYMBOLS": " , "}, clear=True):
            settings = Settings.from_env()

        self.assertEqual(settings.QUOTE_SYMBOLS, DEFAULT_SYMBOLS)

    def test_typed_values_are_coerced(self):
        env = {
            "QUOTE_PROVIDER": "alpha_vantage",
            "ALPHA_VANTAGE_API_KEY": "av-key",
            "QUOTE_INCLUDE_HISTORY": "false",
            "QUOTE_HISTORY_DAYS": "10",
            "QUOTE_CACHE_POLICY": "no-store",
            "UPSTREAM_TIMEOUT_SEC": "2.5",
            "SHELL_API_POLICY": "cache_bust",
            "SHELL_POPULATE_ON_MISS": "true",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings.from_env()

        self.assertEqual(settings.QUOTE_PROVIDER, "alpha_vantage")
        self.assertEqual(settings.ALPHA_VANTAGE_API_KEY, "av-key")
        self.assertFalse(settings.QUOTE_INCLUDE_HISTORY)
        self.assertEqual(settings.QUOTE_HISTORY_DAYS, 10)
        self.assertEqual(settings.QUOTE_CACHE_POLICY, "no-store")
        self.assertEqual(settings.UPSTREAM_TIMEOUT_SEC, 2.5)
        self.assertEqual(settings.SHELL_API_POLICY, "cache_bust")
        self.assertTrue(settings.SHELL_POPULATE_ON_MISS)

    def test_unknown_provider_fails_validation(self):
        with patch.dict(os.environ, {"QUOTE_PROVIDER": "bloomberg"}, clear=True):
            with self.assertRaises(ValidationError):
                Settings.from_env()

    def test_unknown_display_timezone_fails_validation(self):
        with patch.dict(os.environ, {"QUOTE_DISPLAY_TZ": "Not/AZone"}, clear=True):
            with self.assertRaises(ValidationError):
                Settings.from_env()

    def test_display_timezone_accepts_iana_name(self):
        with patch.dict(os.environ, {"QUOTE_DISPLAY_TZ": "Asia/Seoul"}, clear=True):
            settings = Settings.from_env()

        self.assertEqual(settings.QUOTE_DISPLAY_TZ, "Asia/Seoul")

    def test_non_positive_concurrency_fails_validation(self):
        with patch.dict(os.environ, {"UPSTREAM_MAX_CONCURRENCY": "0"}, clear=True):
            with self.assertRaises(ValidationError):
                Settings.from_env()


if __name__ == "__main__":
    unittest.main()
