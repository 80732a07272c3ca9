"""
DNS resolution timing.

Each domain in the panel gets exactly one timed lookup through the
system resolver.  Repeating lookups would mostly measure the resolver's
cache, so there is no retry.
"""
from __future__ import annotations

import asyncio
import logging
import socket
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence

from .cancellation import Cancelled, bounded
from .constants import OPERATION_TIMEOUT_MS

logger = logging.getLogger(__name__)

ResolveFunc = Callable[[str], Awaitable[List[str]]]


@dataclass
class DnsTestResult:
    """Outcome of one timed lookup."""

    domain: str
    success: bool = False
    resolve_ms: float = 0.0
    ip_count: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "success": self.success,
            "resolve_ms": round(self.resolve_ms, 1),
            "ip_count": self.ip_count,
            "error": self.error,
        }


async def system_resolve(domain: str) -> List[str]:
    """Distinct addresses for *domain* from the OS resolver."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(domain, None, type=socket.SOCK_STREAM)
    seen: List[str] = []
    for _family, _type, _proto, _canon, sockaddr in infos:
        addr = sockaddr[0]
        if addr not in seen:
            seen.append(addr)
    return seen


class DnsProber:
    """Time one resolution per domain; failures never block the rest."""

    def __init__(
        self,
        timeout_ms: int = OPERATION_TIMEOUT_MS,
        resolver: Optional[ResolveFunc] = None,
        log: Optional[logging.LoggerAdapter] = None,
    ) -> None:
        self.timeout_ms = timeout_ms
        self._resolve = resolver or system_resolve
        self._log = log or logger

    async def probe(self, domains: Sequence[str], stop: asyncio.Event) -> List[DnsTestResult]:
        results: List[DnsTestResult] = []
        for domain in domains:
            if stop.is_set():
                break
            try:
                results.append(await self.probe_domain(domain, stop))
            except Cancelled:
                break
        return results

    async def probe_domain(self, domain: str, stop: asyncio.Event) -> DnsTestResult:
        result = DnsTestResult(domain=domain)
        t0 = time.perf_counter()
        try:
            addresses = await bounded(self._resolve(domain), stop, self.timeout_ms / 1000)
        except asyncio.TimeoutError:
            result.resolve_ms = (time.perf_counter() - t0) * 1000
            result.error = f"timeout after {self.timeout_ms} ms"
        except Cancelled:
            raise
        except (OSError, UnicodeError) as exc:
            result.resolve_ms = (time.perf_counter() - t0) * 1000
            result.error = str(exc) or exc.__class__.__name__
        except Exception as exc:
            self._log.exception("DNS %s resolver error", domain)
            result.resolve_ms = (time.perf_counter() - t0) * 1000
            result.error = str(exc) or exc.__class__.__name__
        else:
            result.resolve_ms = (time.perf_counter() - t0) * 1000
            result.ip_count = len(addresses)
            result.success = result.ip_count > 0
            if not result.success:
                result.error = "no addresses returned"

        if result.success:
            self._log.info(
                "DNS %s: %d address(es) in %.1f ms", domain, result.ip_count, result.resolve_ms
            )
        else:
            self._log.warning("DNS %s failed: %s", domain, result.error)
        return result
