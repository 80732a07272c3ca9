"""
HTTP transport shared by the throughput engines.

All transfer work goes through a single ``aiohttp.ClientSession`` owned by
a :class:`Transport`, managed via the async-context-manager protocol
(``async with Transport() as transport: ...``).  The session is created on
entry and closed on exit, so connection pooling lasts exactly as long as
one diagnostics run.
"""
from __future__ import annotations

from typing import Dict, Optional

import aiohttp

from .constants import (
    COMMON_HEADERS,
    CONNECTIONS_PER_STREAM,
    SESSION_TIMEOUT_SECONDS,
    UPLOAD_STREAMS,
)


class Transport:
    """Explicitly owned HTTP client handle."""

    def __init__(
        self,
        streams: int = UPLOAD_STREAMS,
        timeout: float = SESSION_TIMEOUT_SECONDS,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.streams = streams
        self.timeout = timeout
        self.headers = dict(COMMON_HEADERS if headers is None else headers)
        self._session: Optional[aiohttp.ClientSession] = None

    # -- Context manager ----------------------------------------------------

    async def __aenter__(self) -> Transport:
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        await self.close()

    async def open(self) -> None:
        if self._session is not None:
            return
        # One TCP connection per stream (HTTP/1.1), with headroom for the
        # connections opened during warmup.
        limit = max(1, self.streams * CONNECTIONS_PER_STREAM)
        connector = aiohttp.TCPConnector(
            limit=limit,
            limit_per_host=limit,
            force_close=False,
            enable_cleanup_closed=True,
        )
        self._session = aiohttp.ClientSession(
            headers=self.headers,
            connector=connector,
            timeout=aiohttp.ClientTimeout(total=self.timeout, connect=10),
        )

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    # -- Access -------------------------------------------------------------

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError(
                "Transport must be used as an async context manager "
                "(async with Transport() as transport: ...)"
            )
        return self._session

    @property
    def is_open(self) -> bool:
        return self._session is not None
