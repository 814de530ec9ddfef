import os
import unittest
from unittest.mock import patch

from mindbridge.config import CompilerSettings, origin_of


class CompilerSettingsTests(unittest.TestCase):
    def test_defaults_match_compiler_timing(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            settings = CompilerSettings.from_env()
        self.assertEqual(settings.strategy, "dom")
        self.assertEqual(settings.trusted_origin, "https://hiukim.github.io")
        self.assertEqual(settings.global_timeout_seconds, 300.0)
        self.assertEqual(settings.retrieval_timeout_seconds, 30.0)
        self.assertEqual(settings.poll_interval_ms, 2000)
        self.assertEqual(settings.max_polls, 150)
        self.assertTrue(settings.headless)

    def test_env_overrides(self) -> None:
        env = {
            "MINDBRIDGE_STRATEGY": "Message",
            "MINDBRIDGE_COMPILER_URL": "http://127.0.0.1:5181/compile",
            "MINDBRIDGE_HEADLESS": "0",
            "MINDBRIDGE_POLL_INTERVAL_MS": "500",
            "MINDBRIDGE_GLOBAL_TIMEOUT_SECONDS": "12",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = CompilerSettings.from_env()
        self.assertEqual(settings.strategy, "message")
        self.assertEqual(settings.trusted_origin, "http://127.0.0.1:5181")
        self.assertFalse(settings.headless)
        self.assertEqual(settings.max_polls, 24)

    def test_invalid_numbers_fall_back_to_defaults(self) -> None:
        env = {"MINDBRIDGE_POLL_INTERVAL_MS": "fast", "MINDBRIDGE_GLOBAL_TIMEOUT_SECONDS": "soon"}
        with patch.dict(os.environ, env, clear=True):
            settings = CompilerSettings.from_env()
        self.assertEqual(settings.poll_interval_ms, 2000)
        self.assertEqual(settings.global_timeout_seconds, 300.0)

    def test_non_finite_env_timeouts_fall_back_to_defaults(self) -> None:
        env = {
            "MINDBRIDGE_GLOBAL_TIMEOUT_SECONDS": "inf",
            "MINDBRIDGE_RETRIEVAL_TIMEOUT_SECONDS": "nan",
            "MINDBRIDGE_POLL_INTERVAL_MS": "inf",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = CompilerSettings.from_env()
        self.assertEqual(settings.global_timeout_seconds, 300.0)
        self.assertEqual(settings.retrieval_timeout_seconds, 30.0)
        self.assertEqual(settings.poll_interval_ms, 2000)

    def test_non_finite_or_non_positive_timeouts_are_rejected(self) -> None:
        for value in (float("inf"), float("nan"), 0.0, -5.0):
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    CompilerSettings(global_timeout_seconds=value)
        with self.assertRaises(ValueError):
            CompilerSettings().with_overrides(retrieval_timeout_seconds=float("inf"))

    def test_unknown_strategy_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            CompilerSettings(strategy="websocket")

    def test_overrides_ignore_none_and_refresh_origin(self) -> None:
        settings = CompilerSettings().with_overrides(
            strategy=None, compiler_url="https://example.org/tool"
        )
        self.assertEqual(settings.strategy, "dom")
        self.assertEqual(settings.trusted_origin, "https://example.org")

    def test_origin_of_rejects_relative_urls(self) -> None:
        self.assertEqual(origin_of("/tools/compile"), "")


if __name__ == "__main__":
    unittest.main()
