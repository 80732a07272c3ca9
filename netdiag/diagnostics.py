"""
Diagnostics orchestrator.

Runs the collectors in order under one stop signal::

    gateway -> latency -> DNS -> throughput -> aggregate -> classify

Each step runs under its own deadline (a child of the run's stop signal)
and degrades to whatever it gathered if it fails or runs out of time; one
broken signal never prevents the others from being collected.  Stopping
the run before aggregation yields an unavailable report with
``reason="cancelled"`` that still carries every section gathered so far.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

from .cancellation import Cancelled, step_scope
from .collectors import (
    DnsCollector,
    GatewayCollector,
    LatencyCollector,
    SignalCollector,
    ThroughputCollector,
)
from .config import Settings
from .dns import DnsProber, DnsTestResult, ResolveFunc
from .download import DownloadSampler
from .latency import EchoFunc, LatencyProber, PingMetrics
from .logging_config import EngineLogger, prefixed
from .recommendations import (
    QUALITY_OK,
    NetworkRecommendation,
    determine_quality,
    generate_recommendations,
    speed_tier,
)
from .stats import mean_or_zero, percentile
from .throughput import ThroughputEngine, ThroughputResult
from .transport import Transport
from .upload import ParallelUploadEngine

SOURCE = "NetworkDiagnosticsCollector"
LOG_PREFIX = "NetworkDiagnostics"
CROSS_CHECK_PREFIX = "UploadCrossCheck"

REASON_CANCELLED = "cancelled"


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------

@dataclass
class NetworkDiagnosticsResult:
    """Root aggregate of one diagnostics run."""

    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    available: bool = True
    source: str = SOURCE
    reason: Optional[str] = None
    quality: str = QUALITY_OK
    duration_ms: float = 0.0

    gateway: Optional[str] = None
    internet_targets: List[PingMetrics] = field(default_factory=list)
    dns_tests: List[DnsTestResult] = field(default_factory=list)
    throughput: ThroughputResult = field(default_factory=ThroughputResult)
    recommendations: List[NetworkRecommendation] = field(default_factory=list)

    overall_latency_ms_p50: float = 0.0
    overall_latency_ms_p95: float = 0.0
    overall_loss_percent: float = 0.0
    overall_jitter_ms: float = 0.0
    dns_p95_ms: float = 0.0
    speed_tier: Optional[str] = None

    # step name -> what went wrong inside that step
    errors: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "available": self.available,
            "source": self.source,
            "reason": self.reason,
            "quality": self.quality if self.available else None,
            "duration_ms": round(self.duration_ms),
            "gateway": self.gateway,
            "internet_targets": [t.to_dict() for t in self.internet_targets],
            "dns_tests": [d.to_dict() for d in self.dns_tests],
            "throughput": self.throughput.to_dict(),
            "recommendations": [r.to_dict() for r in self.recommendations],
            "overall": {
                "latency_ms_p50": self.overall_latency_ms_p50,
                "latency_ms_p95": self.overall_latency_ms_p95,
                "loss_percent": self.overall_loss_percent,
                "jitter_ms": self.overall_jitter_ms,
                "dns_p95_ms": self.dns_p95_ms,
            },
            "speed_tier": self.speed_tier,
            "errors": dict(self.errors),
        }


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def calculate_overall_metrics(result: NetworkDiagnosticsResult) -> None:
    """Overall figures from available targets only; unavailable ones are skipped, not zeroed."""
    available = [t for t in result.internet_targets if t.available]
    if available:
        result.overall_latency_ms_p50 = round(
            mean_or_zero([t.latency_ms_p50 or 0.0 for t in available]), 1
        )
        result.overall_latency_ms_p95 = round(max(t.latency_ms_p95 or 0.0 for t in available), 1)
        result.overall_loss_percent = round(mean_or_zero([t.loss_percent for t in available]), 1)
        result.overall_jitter_ms = round(max(t.jitter_ms or 0.0 for t in available), 2)

    resolved = sorted(d.resolve_ms for d in result.dns_tests if d.success)
    if resolved:
        result.dns_p95_ms = round(percentile(resolved, 95), 1)


def finalize(result: NetworkDiagnosticsResult) -> None:
    """Aggregate, then classify.  Reads only the report's own fields."""
    calculate_overall_metrics(result)
    result.recommendations = generate_recommendations(result)
    result.quality = determine_quality(result)
    if result.throughput.download_available and result.throughput.download_mbps_median is not None:
        result.speed_tier = speed_tier(result.throughput.download_mbps_median)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class NetworkDiagnostics:
    """
    Sequence the collectors and assemble the report.

    The HTTP transport is scoped to a single :meth:`collect` call unless one
    is passed in, in which case the caller owns its lifetime.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[Transport] = None,
        collectors: Optional[Sequence[SignalCollector]] = None,
        logger: Optional[EngineLogger] = None,
        echo: Optional[EchoFunc] = None,
        resolver: Optional[ResolveFunc] = None,
        on_step: Optional[Callable[[str], None]] = None,
        skip: Sequence[str] = (),
    ) -> None:
        self.settings = settings or Settings()
        self._transport = transport
        self._collectors = list(collectors) if collectors is not None else None
        self._logger = logger
        self._log = prefixed(logger, LOG_PREFIX)
        self._echo = echo
        self._resolver = resolver
        self.on_step = on_step
        self.skip = set(skip)

    # -- Wiring -------------------------------------------------------------

    def build_collectors(self, transport: Transport) -> List[SignalCollector]:
        s = self.settings
        latency = LatencyProber(
            count=s.ping_count,
            timeout_ms=s.ping_timeout_ms,
            interval_ms=s.ping_interval_ms,
            echo=self._echo,
            log=self._log,
        )
        dns = DnsProber(timeout_ms=s.operation_timeout_ms, resolver=self._resolver, log=self._log)
        throughput = ThroughputEngine(
            self.build_downloader(transport),
            self.build_uploader(transport, self._log),
        )
        return [
            GatewayCollector(),
            LatencyCollector(latency, s.ping_targets),
            DnsCollector(dns, s.dns_domains),
            ThroughputCollector(throughput),
        ]

    def build_downloader(self, transport: Transport) -> DownloadSampler:
        s = self.settings
        return DownloadSampler(
            transport,
            urls=s.download_urls,
            max_bytes=s.download_max_bytes,
            min_bytes=s.download_min_bytes,
            min_elapsed_ms=s.download_min_elapsed_ms,
            target_samples=s.run_count,
            runs_per_url=s.run_count,
            attempt_timeout_ms=s.operation_timeout_ms * 2,
            log=self._log,
        )

    def build_uploader(self, transport: Transport, log: logging.LoggerAdapter) -> ParallelUploadEngine:
        s = self.settings
        return ParallelUploadEngine(
            transport,
            urls=s.upload_urls,
            total_bytes=s.upload_total_bytes,
            streams=s.upload_streams,
            warmup_bytes=s.upload_warmup_bytes,
            min_elapsed_ms=s.upload_min_elapsed_ms,
            runs_per_url=s.run_count,
            run_timeout_ms=s.operation_timeout_ms * 4,
            warmup_timeout_ms=s.operation_timeout_ms,
            log=log,
        )

    async def _enter_transport(self, stack: contextlib.AsyncExitStack) -> Transport:
        if self._transport is not None:
            return self._transport
        return await stack.enter_async_context(Transport(streams=self.settings.upload_streams))

    # -- Full run -----------------------------------------------------------

    async def collect(
        self,
        stop: Optional[asyncio.Event] = None,
        timeout: Optional[float] = None,
    ) -> NetworkDiagnosticsResult:
        """Run every step and return the report.  Never raises."""
        stop = stop or asyncio.Event()
        result = NetworkDiagnosticsResult()
        t0 = time.perf_counter()
        deadline = None
        if timeout is not None:
            deadline = asyncio.get_running_loop().call_later(timeout, stop.set)

        try:
            async with contextlib.AsyncExitStack() as stack:
                collectors = self._collectors
                if collectors is None:
                    collectors = self.build_collectors(await self._enter_transport(stack))

                for collector in collectors:
                    if stop.is_set():
                        raise Cancelled()
                    if collector.name in self.skip:
                        continue
                    await self._run_step(collector, result, stop)

            if stop.is_set():
                raise Cancelled()
            finalize(result)
        except Cancelled:
            result.available = False
            result.reason = REASON_CANCELLED
            self._log.warning("Run cancelled")
        except Exception as exc:  # noqa: BLE001 - run boundary, reported as data
            result.available = False
            result.reason = f"error: {exc}"
            self._log.error("Error: %s", exc, exc_info=True)
        finally:
            if deadline is not None:
                deadline.cancel()

        result.duration_ms = (time.perf_counter() - t0) * 1000
        self._log.info("Completed in %.0fms", result.duration_ms)
        return result

    async def _run_step(
        self,
        collector: SignalCollector,
        result: NetworkDiagnosticsResult,
        stop: asyncio.Event,
    ) -> None:
        if self.on_step:
            self.on_step(collector.name)
        self._log.info("%s: START", collector.name)
        t0 = time.perf_counter()

        async with step_scope(stop, collector.timeout) as step_stop:
            try:
                await collector.collect(result, step_stop)
            except Cancelled:
                pass  # whatever the step stored so far stays in the report
            except Exception as exc:  # noqa: BLE001 - one signal must not sink the others
                result.errors[collector.name] = f"error: {exc}"
                self._log.error("%s: FAIL: %s", collector.name, exc, exc_info=True)

            if step_stop.is_set() and not stop.is_set():
                result.errors.setdefault(collector.name, "timeout")
                self._log.warning(
                    "%s: TIMEOUT after %.0fms; keeping partial results",
                    collector.name,
                    (collector.timeout or 0) * 1000,
                )

        self._log.info(
            "%s: done (%.0fms)", collector.name, (time.perf_counter() - t0) * 1000
        )

    # -- Upload cross-check -------------------------------------------------

    async def collect_upload_only(self, stop: Optional[asyncio.Event] = None) -> Optional[float]:
        """
        Run only the parallel upload engine: no latency, DNS or download.

        Returns the best upload speed in Mbps, or None if every attempt failed.
        """
        stop = stop or asyncio.Event()
        log = prefixed(self._logger, CROSS_CHECK_PREFIX)
        async with contextlib.AsyncExitStack() as stack:
            transport = await self._enter_transport(stack)
            upload = await self.build_uploader(transport, log).run(stop)
        return upload.best_mbps
