"""
ICMP latency measurement via the system ``ping`` command.

Each target receives a short burst of single-echo probes sent one after
another with a small gap, so the link is never flooded.  A probe that
times out or errors counts as lost; only target-level failures (the host
cannot be resolved, ``ping`` is not installed) mark a target unavailable
before the burst completes.
"""
from __future__ import annotations

import asyncio
import logging
import platform
import re
import time
from dataclasses import dataclass
from math import ceil
from typing import Awaitable, Callable, List, Optional, Sequence

from .cancellation import Cancelled, bounded, pause
from .constants import PING_COUNT, PING_INTERVAL_MS, PING_TIMEOUT_MS
from .stats import loss_percent, percentile, population_stddev

logger = logging.getLogger(__name__)

# Extra time granted to the subprocess on top of its own -W/-w timeout.
_SUBPROCESS_GRACE = 0.5

_LESS_THAN = re.compile(r"time<(\d+(?:\.\d+)?)", re.IGNORECASE)
_EQUALS = re.compile(r"time\s*=\s*(\d+(?:\.\d+)?)\s*ms", re.IGNORECASE)
_UNKNOWN_HOST = re.compile(
    r"unknown host|name or service not known|could not find host|"
    r"cannot resolve|temporary failure in name resolution",
    re.IGNORECASE,
)


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------

@dataclass
class LatencySample:
    """One echo probe's outcome."""

    success: bool
    rtt_ms: Optional[float] = None
    error: Optional[str] = None


@dataclass
class PingMetrics:
    """Aggregated latency data for one target."""

    target: str
    available: bool = False
    reason: Optional[str] = None
    sent: int = 0
    received: int = 0
    loss_percent: float = 0.0
    latency_ms_min: Optional[float] = None
    latency_ms_max: Optional[float] = None
    latency_ms_p50: Optional[float] = None
    latency_ms_p95: Optional[float] = None
    jitter_ms: Optional[float] = None

    @classmethod
    def from_samples(cls, target: str, sent: int, rtts: List[float]) -> PingMetrics:
        """Reduce a finished burst into metrics."""
        received = len(rtts)
        metrics = cls(
            target=target,
            sent=sent,
            received=received,
            loss_percent=loss_percent(sent, received),
        )
        if not rtts:
            metrics.reason = "all_packets_lost"
            return metrics

        ordered = sorted(rtts)
        metrics.available = True
        metrics.latency_ms_min = ordered[0]
        metrics.latency_ms_max = ordered[-1]
        metrics.latency_ms_p50 = percentile(ordered, 50)
        metrics.latency_ms_p95 = percentile(ordered, 95)
        metrics.jitter_ms = round(population_stddev(ordered), 2)
        return metrics

    def to_dict(self) -> dict:
        def _r(value: Optional[float], places: int = 1) -> Optional[float]:
            return round(value, places) if value is not None else None

        return {
            "target": self.target,
            "available": self.available,
            "reason": self.reason,
            "sent": self.sent,
            "received": self.received,
            "loss_percent": self.loss_percent,
            "latency_ms_min": _r(self.latency_ms_min),
            "latency_ms_max": _r(self.latency_ms_max),
            "latency_ms_p50": _r(self.latency_ms_p50),
            "latency_ms_p95": _r(self.latency_ms_p95),
            "jitter_ms": _r(self.jitter_ms, 2),
        }


class TargetError(Exception):
    """A target cannot be probed at all (unresolvable, no ping binary)."""


# ---------------------------------------------------------------------------
# System ping
# ---------------------------------------------------------------------------

def parse_ping_latency_ms(output: str) -> Optional[float]:
    """
    Extract the round-trip time from ``ping`` output.

    Handles ``time=12.3 ms`` (Linux/macOS/Windows) and ``time<1ms``
    (Windows sub-millisecond reply, read as half the bound).
    """
    if not output:
        return None

    match = _LESS_THAN.search(output)
    if match:
        return float(match.group(1)) / 2.0

    match = _EQUALS.search(output)
    if match:
        return float(match.group(1))
    return None


def build_ping_command(host: str, timeout_ms: int, system: Optional[str] = None) -> List[str]:
    """Platform-specific single-echo ``ping`` invocation."""
    system = system or platform.system()
    if system == "Windows":
        return ["ping", "-n", "1", "-w", str(timeout_ms), host]
    if system == "Linux":
        return ["ping", "-n", "-c", "1", "-W", str(max(1, ceil(timeout_ms / 1000))), host]
    # macOS/BSD: -W is in milliseconds
    return ["ping", "-n", "-c", "1", "-W", str(timeout_ms), host]


async def system_echo(target: str, timeout_ms: int) -> LatencySample:
    """Send one echo request through the OS ``ping`` command."""
    cmd = build_ping_command(target, timeout_ms)
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except FileNotFoundError as exc:
        raise TargetError("ping command not available") from exc

    try:
        out, _ = await asyncio.wait_for(
            proc.communicate(),
            timeout=timeout_ms / 1000 + _SUBPROCESS_GRACE,
        )
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        return LatencySample(success=False, error="timeout")
    except asyncio.CancelledError:
        if proc.returncode is None:
            proc.kill()
        raise

    text = out.decode(errors="replace") if out else ""
    if proc.returncode != 0:
        if _UNKNOWN_HOST.search(text):
            raise TargetError(f"cannot resolve {target}")
        return LatencySample(success=False, error=f"exit {proc.returncode}")

    rtt = parse_ping_latency_ms(text)
    if rtt is None:
        return LatencySample(success=False, error="unparsed reply")
    return LatencySample(success=True, rtt_ms=rtt)


EchoFunc = Callable[[str, int], Awaitable[LatencySample]]


# ---------------------------------------------------------------------------
# Prober
# ---------------------------------------------------------------------------

class LatencyProber:
    """Measure loss, latency percentiles, and jitter for a list of targets."""

    def __init__(
        self,
        count: int = PING_COUNT,
        timeout_ms: int = PING_TIMEOUT_MS,
        interval_ms: int = PING_INTERVAL_MS,
        echo: Optional[EchoFunc] = None,
        log: Optional[logging.LoggerAdapter] = None,
    ) -> None:
        self.count = count
        self.timeout_ms = timeout_ms
        self.interval_ms = interval_ms
        self._echo = echo or system_echo
        self._log = log or logger

    async def probe(self, targets: Sequence[str], stop: asyncio.Event) -> List[PingMetrics]:
        """One metrics entry per target, in input order; partial when stopped."""
        results: List[PingMetrics] = []
        for target in targets:
            if stop.is_set():
                break
            results.append(await self.probe_target(target, stop))
        return results

    async def probe_target(self, target: str, stop: asyncio.Event) -> PingMetrics:
        sent = 0
        rtts: List[float] = []
        t0 = time.perf_counter()

        try:
            for _ in range(self.count):
                if stop.is_set():
                    break
                sent += 1
                sample = await self._probe_once(target, stop)
                if sample is None:
                    sent -= 1  # abandoned, not lost
                    break
                if sample.success and sample.rtt_ms is not None:
                    rtts.append(sample.rtt_ms)
                if await pause(stop, self.interval_ms / 1000):
                    break
        except Cancelled:
            raise
        except Exception as exc:
            if isinstance(exc, TargetError):
                self._log.warning("Ping %s unavailable: %s", target, exc)
            else:
                self._log.exception("Ping %s failed", target)
            return PingMetrics(
                target=target,
                reason=str(exc) or exc.__class__.__name__,
                sent=sent,
                received=len(rtts),
                loss_percent=loss_percent(sent, len(rtts)),
            )

        metrics = PingMetrics.from_samples(target, sent, rtts)
        self._log.info(
            "Ping %s: %d/%d replies, loss=%.1f%%, p50=%s ms, jitter=%s ms (%.0f ms)",
            target,
            metrics.received,
            metrics.sent,
            metrics.loss_percent,
            metrics.latency_ms_p50,
            metrics.jitter_ms,
            (time.perf_counter() - t0) * 1000,
        )
        return metrics

    async def _probe_once(self, target: str, stop: asyncio.Event) -> Optional[LatencySample]:
        """One probe; None means the run was stopped mid-probe."""
        try:
            return await bounded(
                self._echo(target, self.timeout_ms),
                stop,
                timeout=self.timeout_ms / 1000 + _SUBPROCESS_GRACE * 2,
            )
        except Cancelled:
            return None
        except asyncio.TimeoutError:
            return LatencySample(success=False, error="timeout")
        except OSError as exc:
            return LatencySample(success=False, error=str(exc))
