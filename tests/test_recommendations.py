"""Tests for netdiag.recommendations -- findings, quality tier, speed tier."""

import unittest

from netdiag.diagnostics import NetworkDiagnosticsResult
from netdiag.dns import DnsTestResult
from netdiag.latency import PingMetrics
from netdiag.recommendations import (
    QUALITY_OK,
    QUALITY_PARTIAL,
    QUALITY_SUSPECT,
    SEVERITY_HIGH,
    SEVERITY_INFO,
    SEVERITY_MEDIUM,
    determine_quality,
    generate_recommendations,
    speed_tier,
)
from netdiag.throughput import ThroughputResult


def target(name, loss=0.0, jitter=2.0, available=True):
    m = PingMetrics(target=name, available=available, loss_percent=loss)
    if available:
        m.latency_ms_p50 = 10.0
        m.latency_ms_p95 = 15.0
        m.jitter_ms = jitter
    return m


def dns(domain="example.com", ok=True, ms=20.0):
    return DnsTestResult(domain=domain, success=ok, resolve_ms=ms, ip_count=1 if ok else 0,
                         error=None if ok else "timeout")


def download(mbps):
    return ThroughputResult(download_available=True, download_mbps_median=mbps, download_samples=[mbps])


class TestDetermineQuality(unittest.TestCase):
    def _quality(self, loss, jitter, dns_tests=None):
        r = NetworkDiagnosticsResult(dns_tests=dns_tests or [dns()])
        r.overall_loss_percent = loss
        r.overall_jitter_ms = jitter
        return determine_quality(r)

    def test_suspect_on_loss(self):
        self.assertEqual(self._quality(6.0, 5.0), QUALITY_SUSPECT)

    def test_suspect_on_dns_failure(self):
        self.assertEqual(self._quality(0.0, 1.0, [dns(), dns("x", ok=False)]), QUALITY_SUSPECT)

    def test_partial(self):
        self.assertEqual(self._quality(1.5, 35.0), QUALITY_PARTIAL)

    def test_partial_on_jitter_alone(self):
        self.assertEqual(self._quality(0.0, 31.0), QUALITY_PARTIAL)

    def test_ok(self):
        self.assertEqual(self._quality(0.2, 5.0), QUALITY_OK)

    def test_boundaries_are_exclusive(self):
        self.assertEqual(self._quality(1.0, 30.0), QUALITY_OK)
        self.assertEqual(self._quality(5.0, 0.0), QUALITY_PARTIAL)


class TestGenerateRecommendations(unittest.TestCase):
    def test_clean_network_has_no_findings(self):
        r = NetworkDiagnosticsResult(internet_targets=[target("a")], dns_tests=[dns()])
        self.assertEqual(generate_recommendations(r), [])

    def test_loss_severity(self):
        r = NetworkDiagnosticsResult(internet_targets=[target("a", loss=3.0)])
        [rec] = generate_recommendations(r)
        self.assertEqual(rec.severity, SEVERITY_MEDIUM)
        self.assertIn("Packet loss", rec.text)

        r = NetworkDiagnosticsResult(internet_targets=[target("a", loss=8.0), target("b", loss=4.0)])
        [rec] = generate_recommendations(r)
        self.assertEqual(rec.severity, SEVERITY_HIGH)
        self.assertIn("6.0%", rec.text)

    def test_unavailable_targets_are_ignored(self):
        r = NetworkDiagnosticsResult(
            internet_targets=[target("a", loss=0.0), target("dead", loss=100.0, available=False)]
        )
        self.assertEqual(generate_recommendations(r), [])

    def test_jitter_severity(self):
        r = NetworkDiagnosticsResult(internet_targets=[target("a", jitter=40.0)])
        [rec] = generate_recommendations(r)
        self.assertEqual(rec.severity, SEVERITY_MEDIUM)

        r = NetworkDiagnosticsResult(internet_targets=[target("a", jitter=5.0), target("b", jitter=55.0)])
        [rec] = generate_recommendations(r)
        self.assertEqual(rec.severity, SEVERITY_HIGH)
        self.assertIn("jitter", rec.text)

    def test_dns_failure_cites_count(self):
        r = NetworkDiagnosticsResult(dns_tests=[dns("a"), dns("b", ok=False), dns("c", ok=False)])
        [rec] = generate_recommendations(r)
        self.assertEqual(rec.severity, SEVERITY_HIGH)
        self.assertIn("2/3", rec.text)

    def test_slow_dns(self):
        r = NetworkDiagnosticsResult(dns_tests=[dns("a", ms=40.0), dns("b", ms=300.0)])
        [rec] = generate_recommendations(r)
        self.assertEqual(rec.severity, SEVERITY_MEDIUM)
        self.assertIn("300ms", rec.text)

    def test_download_tiers(self):
        cases = [
            (3.0, SEVERITY_HIGH, "Navigation only"),
            (12.0, SEVERITY_MEDIUM, "Streaming HD possible"),
            (150.0, SEVERITY_INFO, "Excellent"),
        ]
        for mbps, severity, phrase in cases:
            with self.subTest(mbps=mbps):
                r = NetworkDiagnosticsResult(throughput=download(mbps))
                [rec] = generate_recommendations(r)
                self.assertEqual(rec.severity, severity)
                self.assertIn(phrase, rec.text)

    def test_mid_range_download_is_silent(self):
        r = NetworkDiagnosticsResult(throughput=download(50.0))
        self.assertEqual(generate_recommendations(r), [])

    def test_unavailable_download_is_silent(self):
        r = NetworkDiagnosticsResult(throughput=ThroughputResult(download_reason="download_test_failed"))
        self.assertEqual(generate_recommendations(r), [])


class TestSpeedTier(unittest.TestCase):
    def test_tiers(self):
        self.assertEqual(speed_tier(0.0), "Navigation only")
        self.assertEqual(speed_tier(4.99), "Navigation only")
        self.assertEqual(speed_tier(5.0), "Streaming HD possible")
        self.assertEqual(speed_tier(20.0), "Gaming possible")
        self.assertEqual(speed_tier(99.9), "Gaming possible")
        self.assertEqual(speed_tier(100.0), "Gaming and cloud ready")


if __name__ == "__main__":
    unittest.main()
