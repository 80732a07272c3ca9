"""Tests for netcheck.py -- argument validation, settings overrides, and exit codes."""

import unittest
from unittest import mock

from netdiag import constants as C
from netdiag.config import DEFAULTS
from netdiag.diagnostics import NetworkDiagnosticsResult


class TestValidation(unittest.TestCase):
    def _validate(self, **kwargs):
        # Import here to avoid triggering side effects at module level
        from netcheck import _validate
        return _validate(**kwargs)

    def test_nothing_overridden(self):
        self._validate()

    def test_ping_count_bounds(self):
        self._validate(ping_count=C.MIN_PING_COUNT)
        self._validate(ping_count=C.MAX_PING_COUNT)
        with self.assertRaises(ValueError):
            self._validate(ping_count=C.MIN_PING_COUNT - 1)
        with self.assertRaises(ValueError):
            self._validate(ping_count=C.MAX_PING_COUNT + 1)

    def test_streams_bounds(self):
        self._validate(streams=C.MIN_STREAMS)
        self._validate(streams=C.MAX_STREAMS)
        with self.assertRaises(ValueError):
            self._validate(streams=C.MAX_STREAMS + 1)

    def test_runs_bounds(self):
        with self.assertRaises(ValueError):
            self._validate(runs=C.MIN_RUN_COUNT - 1)
        with self.assertRaises(ValueError):
            self._validate(runs=C.MAX_RUN_COUNT + 1)

    def test_timeout_positive(self):
        self._validate(timeout=0.5)
        with self.assertRaises(ValueError):
            self._validate(timeout=0)


class TestBuildSettings(unittest.TestCase):
    def _settings(self, argv, config=None):
        from netcheck import build_parser, build_settings
        args = build_parser().parse_args(argv)
        with mock.patch("netcheck.load_config", return_value=dict(config or DEFAULTS)):
            return build_settings(args)

    def test_defaults(self):
        s = self._settings([])
        self.assertEqual(s.ping_count, C.PING_COUNT)
        self.assertEqual(s.upload_streams, C.UPLOAD_STREAMS)

    def test_cli_overrides_config(self):
        config = dict(DEFAULTS, ping_count=10, run_count=5)
        s = self._settings(["--ping-count", "20", "--streams", "8"], config)
        self.assertEqual(s.ping_count, 20)
        self.assertEqual(s.upload_streams, 8)
        self.assertEqual(s.run_count, 5)

    def test_invalid_config_rejected(self):
        with self.assertRaises(ValueError):
            self._settings([], dict(DEFAULTS, upload_urls=[]))


class TestMain(unittest.TestCase):
    def setUp(self):
        patcher = mock.patch("netcheck.configure_logging")
        patcher.start()
        self.addCleanup(patcher.stop)
        patcher = mock.patch("netcheck.load_config", return_value=dict(DEFAULTS))
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_invalid_argument_exit_code(self):
        from netcheck import main
        self.assertEqual(main(["--ping-count", "0"]), 1)

    def test_mistyped_config_value_exit_code(self):
        from netcheck import main
        with mock.patch("netcheck.load_config", return_value=dict(DEFAULTS, ping_count="many")):
            self.assertEqual(main(["--show-config"]), 1)

    def test_numeric_string_config_value(self):
        from netcheck import main
        with mock.patch("netcheck.load_config", return_value=dict(DEFAULTS, ping_count="12")):
            with mock.patch("builtins.print") as printed:
                self.assertEqual(main(["--show-config"]), 0)
        self.assertIn('"ping_count": 12', printed.call_args[0][0])

    def test_show_config(self):
        from netcheck import main
        with mock.patch("builtins.print") as printed:
            self.assertEqual(main(["--show-config"]), 0)
        self.assertIn('"ping_count": 30', printed.call_args[0][0])

    def test_available_report_exit_zero(self):
        from netcheck import main

        async def fake_run(settings, **kwargs):
            self.assertTrue(kwargs["skip_throughput"])
            self.assertEqual(kwargs["timeout"], 30.0)
            return NetworkDiagnosticsResult()

        with mock.patch("netcheck.run_diagnostics", side_effect=fake_run):
            self.assertEqual(main(["--simple", "--skip-throughput", "--timeout", "30"]), 0)

    def test_cancelled_report_exit_one(self):
        from netcheck import main

        async def fake_run(settings, **kwargs):
            return NetworkDiagnosticsResult(available=False, reason="cancelled")

        with mock.patch("netcheck.run_diagnostics", side_effect=fake_run):
            self.assertEqual(main(["--json"]), 1)

    def test_upload_only_exit_codes(self):
        from netcheck import main

        async def ok(settings, **kwargs):
            return 42.0

        async def failed(settings, **kwargs):
            return None

        with mock.patch("netcheck.run_upload_only", side_effect=ok):
            self.assertEqual(main(["--upload-only"]), 0)
        with mock.patch("netcheck.run_upload_only", side_effect=failed):
            self.assertEqual(main(["--upload-only"]), 1)


if __name__ == "__main__":
    unittest.main()
