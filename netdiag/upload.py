"""
Parallel multi-stream upload engine.

A single upload stream underestimates capacity on fast, high-latency
links, so every timed run splits one pre-generated payload into equal
slices and POSTs them concurrently over separate HTTP/1.1 connections.

Per endpoint::

    1. Warmup   -- one small POST per stream slot, fully drained, to prime
                   TCP/TLS and the congestion window.  Failures are ignored.
    2. Timed    -- ``runs_per_url`` back-to-back runs.  All streams share one
                   wall clock; each records the elapsed time at which the
                   server acknowledged its body (response headers arrived).
    3. Score    -- duration = slowest acknowledged stream; bytes = successful
                   streams x slice size; runs faster than ``min_elapsed_ms``
                   are discarded.

Every endpoint is tried, and the reported figure is the single best
accepted sample across all endpoints and runs.
"""
from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import aiohttp

from .cancellation import Cancelled, bounded
from .constants import (
    OPERATION_TIMEOUT_MS,
    RUN_COUNT,
    UPLOAD_CONTENT_TYPE,
    UPLOAD_MIN_ELAPSED_MS,
    UPLOAD_STREAMS,
    UPLOAD_TIMEOUT_FACTOR,
    UPLOAD_TOTAL_BYTES,
    UPLOAD_URLS,
    UPLOAD_WARMUP_BYTES,
)
from .stats import mbps
from .transport import Transport

logger = logging.getLogger(__name__)

_UPLOAD_HEADERS = {"Content-Type": UPLOAD_CONTENT_TYPE}


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------

@dataclass
class StreamOutcome:
    """One stream of one run.

    ``completed_ms`` is set whenever the server answered (even with an
    error status); ``ok`` only for a successful status.
    """

    index: int
    ok: bool = False
    completed_ms: Optional[float] = None
    error: Optional[str] = None


@dataclass
class RunOutcome:
    """A finished timed run, scored."""

    url: str
    streams: List[StreamOutcome] = field(default_factory=list)
    chunk_size: int = 0
    duration_ms: float = 0.0
    success_count: int = 0
    total_bytes: int = 0
    speed_mbps: Optional[float] = None

    @property
    def accepted(self) -> bool:
        return self.speed_mbps is not None


@dataclass
class UploadResult:
    """Reduction over every accepted run of every endpoint."""

    best_mbps: Optional[float] = None
    samples: List[float] = field(default_factory=list)

    @property
    def available(self) -> bool:
        return self.best_mbps is not None


# ---------------------------------------------------------------------------
# Pure scoring
# ---------------------------------------------------------------------------

def score_run(
    url: str,
    streams: List[StreamOutcome],
    chunk_size: int,
    min_elapsed_ms: float,
    fallback_ms: float = 0.0,
) -> RunOutcome:
    """
    Turn per-stream outcomes into a run sample.

    Failed streams contribute no bytes.  The run lasts until its slowest
    acknowledged stream; *fallback_ms* (the whole run's wall time) is used
    only when no stream was acknowledged at all.
    """
    completions = [s.completed_ms for s in streams if s.completed_ms is not None]
    success_count = sum(1 for s in streams if s.ok)
    duration_ms = max(completions) if completions else fallback_ms
    total_bytes = success_count * chunk_size

    run = RunOutcome(
        url=url,
        streams=streams,
        chunk_size=chunk_size,
        duration_ms=duration_ms,
        success_count=success_count,
        total_bytes=total_bytes,
    )
    if success_count > 0 and duration_ms > min_elapsed_ms:
        run.speed_mbps = round(mbps(total_bytes, duration_ms), 2)
    return run


def select_best(samples: Sequence[float]) -> Optional[float]:
    """Best-of-N: the maximum accepted sample, or None."""
    return max(samples) if samples else None


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class ParallelUploadEngine:
    """Best-of-N parallel upload measurement across several endpoints."""

    def __init__(
        self,
        transport: Transport,
        urls: Sequence[str] = UPLOAD_URLS,
        total_bytes: int = UPLOAD_TOTAL_BYTES,
        streams: int = UPLOAD_STREAMS,
        warmup_bytes: int = UPLOAD_WARMUP_BYTES,
        min_elapsed_ms: float = UPLOAD_MIN_ELAPSED_MS,
        runs_per_url: int = RUN_COUNT,
        run_timeout_ms: int = OPERATION_TIMEOUT_MS * UPLOAD_TIMEOUT_FACTOR,
        warmup_timeout_ms: int = OPERATION_TIMEOUT_MS,
        log: Optional[logging.LoggerAdapter] = None,
    ) -> None:
        if streams < 1:
            raise ValueError("streams must be >= 1")
        self.transport = transport
        self.urls = list(urls)
        self.total_bytes = total_bytes
        self.streams = streams
        self.warmup_bytes = warmup_bytes
        self.min_elapsed_ms = min_elapsed_ms
        self.runs_per_url = runs_per_url
        self.run_timeout_ms = run_timeout_ms
        self.warmup_timeout_ms = warmup_timeout_ms
        self.chunk_size = total_bytes // streams
        self._log = log or logger

    # -- Top level ----------------------------------------------------------

    async def run(self, stop: asyncio.Event) -> UploadResult:
        """Try every endpoint and keep the best accepted sample."""
        # Generated once, read-only; streams get zero-copy slices.
        payload = memoryview(os.urandom(self.chunk_size * self.streams))
        samples: List[float] = []

        for url in self.urls:
            if stop.is_set():
                break

            self._log.info("Testing upload to %s ...", url)
            await self.warmup(url, stop)

            # Back-to-back runs: no idle gap, so the congestion window stays open.
            for run_idx in range(self.runs_per_url):
                if stop.is_set():
                    break
                self._log.info(
                    "Upload run %d/%d (%d streams x %.1fMB = %.1fMB total)",
                    run_idx + 1,
                    self.runs_per_url,
                    self.streams,
                    self.chunk_size / (1024 * 1024),
                    self.chunk_size * self.streams / (1024 * 1024),
                )
                run = await self.timed_run(url, payload, stop)
                if run.accepted:
                    samples.append(run.speed_mbps)

        best = select_best(samples)
        if best is None:
            self._log.warning("No valid upload samples collected")
        else:
            self._log.info(
                "FINAL upload: best=%.2f Mbps, all samples=[%s]",
                best,
                ", ".join(f"{s:.2f}" for s in sorted(samples)),
            )
        return UploadResult(best_mbps=best, samples=samples)

    # -- Warmup -------------------------------------------------------------

    async def warmup(self, url: str, stop: asyncio.Event) -> List[StreamOutcome]:
        """Prime one connection per stream slot; failures are only logged."""
        body = bytes(self.warmup_bytes)
        outcomes = await asyncio.gather(
            *[
                self._stream(url, i, body, time.perf_counter(), stop, self.warmup_timeout_ms)
                for i in range(self.streams)
            ]
        )
        failed = [o for o in outcomes if not o.ok]
        if failed:
            self._log.info(
                "Warmup: %d/%d streams failed (%s): %s",
                len(failed),
                self.streams,
                url,
                failed[0].error,
            )
        self._log.info("Warmup done (%d streams, %s)", self.streams, url)
        return list(outcomes)

    # -- Timed run ----------------------------------------------------------

    async def timed_run(self, url: str, payload: memoryview, stop: asyncio.Event) -> RunOutcome:
        chunk = self.chunk_size
        start = time.perf_counter()

        outcomes = await asyncio.gather(
            *[
                self._stream(
                    url,
                    i,
                    payload[i * chunk:(i + 1) * chunk],
                    start,
                    stop,
                    self.run_timeout_ms,
                )
                for i in range(self.streams)
            ]
        )
        wall_ms = (time.perf_counter() - start) * 1000
        run = score_run(url, list(outcomes), chunk, self.min_elapsed_ms, fallback_ms=wall_ms)

        self._log.info(
            "Upload timing: %.0fms, %d/%d streams OK, totalBytes=%d, per-stream=[%s]",
            run.duration_ms,
            run.success_count,
            self.streams,
            run.total_bytes,
            ", ".join(
                f"{o.completed_ms:.0f}ms" for o in outcomes if o.completed_ms is not None
            ),
        )
        if run.accepted:
            self._log.info(
                "Upload sample: %dKB in %.0fms = %.2f Mbps",
                run.total_bytes // 1024,
                run.duration_ms,
                run.speed_mbps,
            )
        elif run.success_count > 0:
            self._log.info(
                "Upload sample discarded (too fast: %.0fms <= %.0fms)",
                run.duration_ms,
                self.min_elapsed_ms,
            )
        else:
            self._log.warning("Upload failed: all streams failed for %s", url)
        return run

    # -- Single stream ------------------------------------------------------

    async def _stream(
        self,
        url: str,
        index: int,
        body,  # noqa: ANN001 (bytes | memoryview)
        clock_start: float,
        stop: asyncio.Event,
        timeout_ms: int,
    ) -> StreamOutcome:
        outcome = StreamOutcome(index=index)
        try:
            await bounded(
                self._post(url, body, clock_start, outcome),
                stop,
                timeout=timeout_ms / 1000,
            )
        except Cancelled:
            outcome.error = "cancelled"
        except asyncio.TimeoutError:
            outcome.error = f"timeout after {timeout_ms} ms"
        except (aiohttp.ClientError, OSError) as exc:
            outcome.error = str(exc) or exc.__class__.__name__
        else:
            return outcome

        # A stream the server already acknowledged keeps its credit even if
        # draining the response failed afterwards.
        if outcome.completed_ms is None:
            outcome.ok = False
        return outcome

    async def _post(self, url: str, body, clock_start: float, outcome: StreamOutcome) -> None:  # noqa: ANN001
        session = self.transport.session
        async with session.post(url, data=body, headers=_UPLOAD_HEADERS) as resp:
            # Headers are back: the server has the whole body.  Stamp the
            # shared clock before draining the response.
            outcome.completed_ms = (time.perf_counter() - clock_start) * 1000
            outcome.ok = resp.status < 400
            if not outcome.ok:
                outcome.error = f"HTTP {resp.status}"
            # Drain so the connection is reused by the next run.
            await resp.read()
