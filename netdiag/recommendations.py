"""
Recommendations and quality classification.

Pure functions over an aggregated report: they only read the overall
fields and per-target summaries, never raw samples.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Tuple

from .constants import (
    DNS_SLOW_MS,
    DOWNLOAD_EXCELLENT_MBPS,
    DOWNLOAD_LOW_MBPS,
    DOWNLOAD_MODERATE_MBPS,
    JITTER_HIGH_MS,
    JITTER_MEDIUM_MS,
    LOSS_HIGH_PERCENT,
    LOSS_MEDIUM_PERCENT,
    QUALITY_PARTIAL_JITTER_MS,
    QUALITY_PARTIAL_LOSS,
    QUALITY_SUSPECT_LOSS,
)
from .stats import mean_or_zero

if TYPE_CHECKING:
    from .diagnostics import NetworkDiagnosticsResult

SEVERITY_INFO = "info"
SEVERITY_MEDIUM = "medium"
SEVERITY_HIGH = "high"

QUALITY_OK = "ok"
QUALITY_PARTIAL = "partial"
QUALITY_SUSPECT = "suspect"


@dataclass
class NetworkRecommendation:
    """A severity-tagged finding."""

    text: str
    severity: str = SEVERITY_INFO

    def to_dict(self) -> dict:
        return {"text": self.text, "severity": self.severity}


# ---------------------------------------------------------------------------
# Speed tiers
# ---------------------------------------------------------------------------

_TIERS: List[Tuple[float, str]] = [
    (DOWNLOAD_EXCELLENT_MBPS, "Gaming and cloud ready"),
    (DOWNLOAD_MODERATE_MBPS, "Gaming possible"),
    (DOWNLOAD_LOW_MBPS, "Streaming HD possible"),
    (0.0, "Navigation only"),
]


def speed_tier(download_mbps: float) -> str:
    """Coarse usage tier for a download speed."""
    for threshold, label in _TIERS:
        if download_mbps >= threshold:
            return label
    return "Navigation only"


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------

def generate_recommendations(result: NetworkDiagnosticsResult) -> List[NetworkRecommendation]:
    recs: List[NetworkRecommendation] = []
    available = [t for t in result.internet_targets if t.available]

    avg_loss = mean_or_zero([t.loss_percent for t in available])
    if avg_loss > LOSS_MEDIUM_PERCENT:
        recs.append(NetworkRecommendation(
            text=f"Packet loss detected ({avg_loss:.1f}%). Network may be unstable.",
            severity=SEVERITY_HIGH if avg_loss > LOSS_HIGH_PERCENT else SEVERITY_MEDIUM,
        ))

    max_jitter = max((t.jitter_ms or 0.0 for t in available), default=0.0)
    if max_jitter > JITTER_MEDIUM_MS:
        recs.append(NetworkRecommendation(
            text=f"High jitter detected ({max_jitter:.1f}ms). Gaming/streaming may be affected.",
            severity=SEVERITY_HIGH if max_jitter > JITTER_HIGH_MS else SEVERITY_MEDIUM,
        ))

    dns_failures = sum(1 for d in result.dns_tests if not d.success)
    worst_dns = max((d.resolve_ms for d in result.dns_tests if d.success), default=0.0)
    if dns_failures > 0:
        recs.append(NetworkRecommendation(
            text=(
                f"DNS resolution failures ({dns_failures}/{len(result.dns_tests)}). "
                "Check DNS configuration."
            ),
            severity=SEVERITY_HIGH,
        ))
    elif worst_dns > DNS_SLOW_MS:
        recs.append(NetworkRecommendation(
            text=f"Slow DNS resolution ({worst_dns:.0f}ms). Consider using faster DNS.",
            severity=SEVERITY_MEDIUM,
        ))

    throughput = result.throughput
    if throughput.download_available and throughput.download_mbps_median is not None:
        speed = throughput.download_mbps_median
        if speed < DOWNLOAD_LOW_MBPS:
            recs.append(NetworkRecommendation(
                text=f"Low download speed ({speed:.1f} Mbps). Navigation only. Gaming not recommended.",
                severity=SEVERITY_HIGH,
            ))
        elif speed < DOWNLOAD_MODERATE_MBPS:
            recs.append(NetworkRecommendation(
                text=f"Moderate speed ({speed:.1f} Mbps). Streaming HD possible. Gaming may have issues.",
                severity=SEVERITY_MEDIUM,
            ))
        elif speed >= DOWNLOAD_EXCELLENT_MBPS:
            recs.append(NetworkRecommendation(
                text=f"Excellent speed ({speed:.1f} Mbps). Gaming and cloud gaming possible.",
                severity=SEVERITY_INFO,
            ))

    return recs


# ---------------------------------------------------------------------------
# Quality tier
# ---------------------------------------------------------------------------

def determine_quality(result: NetworkDiagnosticsResult) -> str:
    if result.overall_loss_percent > QUALITY_SUSPECT_LOSS or any(
        not d.success for d in result.dns_tests
    ):
        return QUALITY_SUSPECT
    if (
        result.overall_loss_percent > QUALITY_PARTIAL_LOSS
        or result.overall_jitter_ms > QUALITY_PARTIAL_JITTER_MS
    ):
        return QUALITY_PARTIAL
    return QUALITY_OK
