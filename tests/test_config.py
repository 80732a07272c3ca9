"""Tests for netdiag.config -- configuration persistence and typed settings."""

import json
import os
import tempfile
import unittest
from unittest import mock

from netdiag import constants as C
from netdiag.config import (
    DEFAULTS,
    Settings,
    get_config_value,
    load_config,
    save_config,
    set_config_value,
)


class TestConfigDefaults(unittest.TestCase):
    def test_defaults_have_required_keys(self):
        for key in ("ping_count", "ping_timeout_ms", "operation_timeout_ms", "download_max_bytes",
                    "upload_total_bytes", "upload_streams", "run_count", "ping_targets",
                    "dns_domains", "download_urls", "upload_urls"):
            self.assertIn(key, DEFAULTS)

    def test_defaults_match_settings(self):
        settings = Settings()
        for key, value in DEFAULTS.items():
            self.assertEqual(getattr(settings, key), value, key)


class TestLoadSaveConfig(unittest.TestCase):
    def test_load_defaults_when_missing(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with mock.patch("netdiag.config._config_path", return_value=path):
                cfg = load_config()
                self.assertEqual(cfg["ping_count"], 30)
                self.assertEqual(cfg["upload_streams"], 4)

    def test_save_and_load(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "sub", "config.json")
            with mock.patch("netdiag.config._config_path", return_value=path):
                save_config({"ping_count": 10, "ping_targets": ["9.9.9.9"]})
                cfg = load_config()
                self.assertEqual(cfg["ping_count"], 10)
                self.assertEqual(cfg["ping_targets"], ["9.9.9.9"])
                # Defaults still present
                self.assertEqual(cfg["run_count"], 3)
            with open(path, encoding="utf-8") as fh:
                self.assertEqual(json.load(fh)["ping_count"], 10)

    def test_corrupt_file_returns_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with open(path, "w") as f:
                f.write("NOT JSON")
            with mock.patch("netdiag.config._config_path", return_value=path):
                cfg = load_config()
                self.assertEqual(cfg["upload_streams"], 4)

    def test_non_object_file_returns_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with open(path, "w") as f:
                f.write("[1, 2, 3]")
            with mock.patch("netdiag.config._config_path", return_value=path):
                self.assertEqual(load_config(), DEFAULTS)

    def test_get_set_value(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with mock.patch("netdiag.config._config_path", return_value=path):
                set_config_value("run_count", 5)
                self.assertEqual(get_config_value("run_count"), 5)
                self.assertEqual(get_config_value("upload_streams"), 4)


class TestSettings(unittest.TestCase):
    def test_from_config_ignores_unknown_keys(self):
        s = Settings.from_config({"ping_count": 12, "colour": "blue"})
        self.assertEqual(s.ping_count, 12)
        self.assertFalse(hasattr(s, "colour"))

    def test_from_config_converts_numeric_strings(self):
        s = Settings.from_config({"ping_count": "30", "upload_min_elapsed_ms": "250.5"})
        self.assertEqual(s.ping_count, 30)
        self.assertEqual(s.upload_min_elapsed_ms, 250.5)
        s.validate()

    def test_from_config_rejects_bad_types(self):
        for bad in ({"ping_count": "thirty"}, {"run_count": None}, {"ping_targets": "1.1.1.1"},
                    {"upload_streams": True}):
            with self.assertRaises(ValueError):
                Settings.from_config(bad)

    def test_defaults_valid(self):
        Settings().validate()

    def test_ping_count_bounds(self):
        Settings(ping_count=C.MIN_PING_COUNT).validate()
        Settings(ping_count=C.MAX_PING_COUNT).validate()
        with self.assertRaises(ValueError):
            Settings(ping_count=C.MIN_PING_COUNT - 1).validate()
        with self.assertRaises(ValueError):
            Settings(ping_count=C.MAX_PING_COUNT + 1).validate()

    def test_stream_bounds(self):
        with self.assertRaises(ValueError):
            Settings(upload_streams=0).validate()
        with self.assertRaises(ValueError):
            Settings(upload_streams=C.MAX_STREAMS + 1).validate()

    def test_run_count_bounds(self):
        with self.assertRaises(ValueError):
            Settings(run_count=0).validate()

    def test_timeouts_positive(self):
        with self.assertRaises(ValueError):
            Settings(ping_timeout_ms=0).validate()
        with self.assertRaises(ValueError):
            Settings(operation_timeout_ms=-1).validate()

    def test_empty_endpoint_panels(self):
        with self.assertRaises(ValueError):
            Settings(download_urls=[]).validate()
        with self.assertRaises(ValueError):
            Settings(upload_urls=[]).validate()

    def test_panels_are_independent_copies(self):
        a, b = Settings(), Settings()
        a.ping_targets.append("9.9.9.9")
        self.assertNotIn("9.9.9.9", b.ping_targets)
        self.assertNotIn("9.9.9.9", C.PING_TARGETS)


if __name__ == "__main__":
    unittest.main()
