"""
Signal collectors driven by the diagnostics orchestrator.

Every measurement step has the same shape: a name, a deadline, and one
``collect`` coroutine that writes its section of the report.  The
orchestrator only knows this interface, so adding a new signal means
adding a collector, not a branch.
"""
from __future__ import annotations

import abc
import asyncio
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence

from .cancellation import bounded
from .constants import (
    DNS_STEP_TIMEOUT,
    GATEWAY_STEP_TIMEOUT,
    LATENCY_STEP_TIMEOUT,
    THROUGHPUT_STEP_TIMEOUT,
)
from .dns import DnsProber
from .gateway import discover_gateway
from .latency import LatencyProber
from .throughput import ThroughputEngine

if TYPE_CHECKING:
    from .diagnostics import NetworkDiagnosticsResult


class SignalCollector(abc.ABC):
    """One step of a diagnostics run."""

    name: str = ""
    timeout: Optional[float] = None

    @abc.abstractmethod
    async def collect(self, report: NetworkDiagnosticsResult, stop: asyncio.Event) -> None:
        """Fill this collector's part of *report*; honour *stop* throughout."""


class GatewayCollector(SignalCollector):
    name = "gateway"
    timeout = GATEWAY_STEP_TIMEOUT

    def __init__(self, discover: Callable[[], Optional[str]] = discover_gateway) -> None:
        self._discover = discover

    async def collect(self, report: NetworkDiagnosticsResult, stop: asyncio.Event) -> None:
        loop = asyncio.get_running_loop()
        try:
            report.gateway = await bounded(
                loop.run_in_executor(None, self._discover),
                stop,
                self.timeout,
            )
        except asyncio.TimeoutError:
            report.gateway = None


class LatencyCollector(SignalCollector):
    """Probe the discovered gateway (if any) followed by the public panel."""

    name = "latency"
    timeout = LATENCY_STEP_TIMEOUT

    def __init__(self, prober: LatencyProber, targets: Sequence[str]) -> None:
        self.prober = prober
        self.targets = list(targets)

    def targets_for(self, report: NetworkDiagnosticsResult) -> List[str]:
        if report.gateway and report.gateway not in self.targets:
            return [report.gateway] + self.targets
        return list(self.targets)

    async def collect(self, report: NetworkDiagnosticsResult, stop: asyncio.Event) -> None:
        report.internet_targets = await self.prober.probe(self.targets_for(report), stop)


class DnsCollector(SignalCollector):
    name = "dns"
    timeout = DNS_STEP_TIMEOUT

    def __init__(self, prober: DnsProber, domains: Sequence[str]) -> None:
        self.prober = prober
        self.domains = list(domains)

    async def collect(self, report: NetworkDiagnosticsResult, stop: asyncio.Event) -> None:
        report.dns_tests = await self.prober.probe(self.domains, stop)


class ThroughputCollector(SignalCollector):
    name = "throughput"
    timeout = THROUGHPUT_STEP_TIMEOUT

    def __init__(self, engine: ThroughputEngine) -> None:
        self.engine = engine

    async def collect(self, report: NetworkDiagnosticsResult, stop: asyncio.Event) -> None:
        report.throughput = await self.engine.measure(stop)
