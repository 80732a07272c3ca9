"""
Download throughput sampling.

Streams bytes from a priority-ordered list of endpoints, one transfer at a
time.  Each transfer is capped (the cap only needs to be large enough for a
stable rate estimate) and timed over its read loop.  Transfers that are too
small or too quick to be meaningful are discarded; the rest are reduced to
their median.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence

import aiohttp

from .cancellation import Cancelled, bounded
from .constants import (
    DOWNLOAD_CHUNK_SIZE,
    DOWNLOAD_MAX_BYTES,
    DOWNLOAD_MIN_BYTES,
    DOWNLOAD_MIN_ELAPSED_MS,
    DOWNLOAD_TIMEOUT_FACTOR,
    DOWNLOAD_URLS,
    OPERATION_TIMEOUT_MS,
    RUN_COUNT,
)
from .stats import mbps
from .transport import Transport

logger = logging.getLogger(__name__)


@dataclass
class TransferOutcome:
    """One download attempt: bytes read and read-loop duration, or an error."""

    url: str
    ok: bool = False
    bytes_read: int = 0
    elapsed_ms: float = 0.0
    error: Optional[str] = None


class DownloadSampler:
    """
    Collect download speed samples until ``target_samples`` are accepted.

    Endpoints are tried in order, ``runs_per_url`` attempts each; the
    sampler stops moving to the next endpoint as soon as the pool is full.
    """

    def __init__(
        self,
        transport: Transport,
        urls: Sequence[str] = DOWNLOAD_URLS,
        max_bytes: int = DOWNLOAD_MAX_BYTES,
        min_bytes: int = DOWNLOAD_MIN_BYTES,
        min_elapsed_ms: float = DOWNLOAD_MIN_ELAPSED_MS,
        target_samples: int = RUN_COUNT,
        runs_per_url: int = RUN_COUNT,
        attempt_timeout_ms: int = OPERATION_TIMEOUT_MS * DOWNLOAD_TIMEOUT_FACTOR,
        chunk_size: int = DOWNLOAD_CHUNK_SIZE,
        log: Optional[logging.LoggerAdapter] = None,
    ) -> None:
        self.transport = transport
        self.urls = list(urls)
        self.max_bytes = max_bytes
        self.min_bytes = min_bytes
        self.min_elapsed_ms = min_elapsed_ms
        self.target_samples = target_samples
        self.runs_per_url = runs_per_url
        self.attempt_timeout_ms = attempt_timeout_ms
        self.chunk_size = chunk_size
        self._log = log or logger

    async def sample(self, stop: asyncio.Event) -> List[float]:
        """Accepted Mbps samples, in the order they were measured."""
        samples: List[float] = []

        for url in self.urls:
            if stop.is_set():
                break

            for _ in range(self.runs_per_url):
                if stop.is_set():
                    break
                outcome = await self.attempt(url, stop)
                if not outcome.ok:
                    if outcome.error != "cancelled":
                        self._log.warning("Download test failed (%s): %s", url, outcome.error)
                    continue

                speed = self.accept(outcome)
                if speed is None:
                    self._log.info(
                        "Download sample discarded: %dKB in %.0fms (%s)",
                        outcome.bytes_read // 1024,
                        outcome.elapsed_ms,
                        url,
                    )
                    continue

                samples.append(speed)
                self._log.info(
                    "Download sample: %dKB in %.0fms = %.2f Mbps",
                    outcome.bytes_read // 1024,
                    outcome.elapsed_ms,
                    speed,
                )

            if len(samples) >= self.target_samples:
                break

        return samples

    def accept(self, outcome: TransferOutcome) -> Optional[float]:
        """Mbps for a usable transfer, or None if it is too small or too fast."""
        if outcome.bytes_read < self.min_bytes:
            return None
        if outcome.elapsed_ms < self.min_elapsed_ms or outcome.elapsed_ms <= 0:
            return None
        return round(mbps(outcome.bytes_read, outcome.elapsed_ms), 2)

    async def attempt(self, url: str, stop: asyncio.Event) -> TransferOutcome:
        """One capped, timed transfer.  Never raises for transport errors."""
        try:
            return await bounded(
                self._transfer(url),
                stop,
                timeout=self.attempt_timeout_ms / 1000,
            )
        except Cancelled:
            return TransferOutcome(url=url, error="cancelled")
        except asyncio.TimeoutError:
            return TransferOutcome(url=url, error=f"timeout after {self.attempt_timeout_ms} ms")
        except (aiohttp.ClientError, OSError) as exc:
            return TransferOutcome(url=url, error=str(exc) or exc.__class__.__name__)

    async def _transfer(self, url: str) -> TransferOutcome:
        session = self.transport.session
        async with session.get(url) as resp:
            if resp.status >= 400:
                return TransferOutcome(url=url, error=f"HTTP {resp.status}")

            total = 0
            t0 = time.perf_counter()
            while total < self.max_bytes:
                chunk = await resp.content.read(self.chunk_size)
                if not chunk:
                    break
                total += len(chunk)
            elapsed_ms = (time.perf_counter() - t0) * 1000

        return TransferOutcome(url=url, ok=True, bytes_read=total, elapsed_ms=elapsed_ms)
