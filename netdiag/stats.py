"""
Network measurement statistics.

Pure functions -- no I/O, no side effects.  Everything here is
deterministic and easy to unit-test.
"""
from __future__ import annotations

import math
import statistics
from typing import List, Optional, Sequence


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """
    Nearest-rank percentile of an ascending sequence.

    Returns the value at index ``ceil(n * p / 100) - 1`` clamped into
    ``[0, n - 1]``, or ``0.0`` for an empty sequence.
    """
    n = len(sorted_values)
    if n == 0:
        return 0.0
    idx = math.ceil(n * p / 100.0) - 1
    return sorted_values[min(max(idx, 0), n - 1)]


def population_stddev(samples: Sequence[float]) -> float:
    """Population standard deviation; 0.0 for fewer than two samples."""
    if len(samples) < 2:
        return 0.0
    return statistics.pstdev(samples)


def middle_value(samples: Sequence[float]) -> Optional[float]:
    """
    Median taken as the element at ``n // 2`` of the sorted pool.

    Always returns a value that was actually measured (the upper middle
    for even-sized pools), or None when there are no samples.
    """
    if not samples:
        return None
    ordered = sorted(samples)
    return ordered[len(ordered) // 2]


def loss_percent(sent: int, received: int) -> float:
    """Fraction of unanswered probes, 0-100, rounded to one decimal."""
    if sent <= 0:
        return 100.0
    return round((sent - received) * 100.0 / sent, 1)


def mbps(byte_count: int, elapsed_ms: float) -> float:
    """Megabits per second for *byte_count* bytes moved in *elapsed_ms*."""
    if elapsed_ms <= 0:
        return 0.0
    return (byte_count * 8.0) / (elapsed_ms * 1000.0)


def mean_or_zero(values: List[float]) -> float:
    return statistics.mean(values) if values else 0.0


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_speed(speed_mbps: float) -> str:
    """Human-readable speed string."""
    if speed_mbps >= 1000:
        return f"{speed_mbps / 1000:.2f} Gbps"
    return f"{speed_mbps:.2f} Mbps"


def format_latency(latency_ms: float) -> str:
    """Human-readable latency string."""
    if latency_ms >= 1000:
        return f"{latency_ms / 1000:.2f} s"
    return f"{latency_ms:.1f} ms"
