"""
Cooperative cancellation and deadlines.

A collection run carries a single ``asyncio.Event`` (the *stop* signal).
Every suspension point either checks it or awaits through :func:`bounded`,
which races the operation against both the stop signal and a deadline.
Deadlines for whole steps are modelled as child signals
(:func:`step_scope`) so a step's own deadline always implies its parent's.
"""
from __future__ import annotations

import asyncio
import contextlib
from typing import AsyncIterator, Awaitable, Optional, TypeVar

T = TypeVar("T")


class Cancelled(Exception):
    """The stop signal fired while an operation was still pending."""


async def bounded(
    aw: Awaitable[T],
    stop: asyncio.Event,
    timeout: Optional[float] = None,
) -> T:
    """
    Await *aw* unless *stop* fires or *timeout* seconds elapse first.

    Raises :class:`Cancelled` when stopped and ``asyncio.TimeoutError`` on
    deadline.  The abandoned operation is cancelled and awaited, so no
    task outlives the call.
    """
    task = asyncio.ensure_future(aw)
    if stop.is_set():
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise Cancelled()

    waiter = asyncio.ensure_future(stop.wait())
    try:
        done, _ = await asyncio.wait(
            {task, waiter},
            timeout=timeout,
            return_when=asyncio.FIRST_COMPLETED,
        )
    finally:
        waiter.cancel()
        if not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    if task in done:
        return task.result()
    if stop.is_set():
        raise Cancelled()
    raise asyncio.TimeoutError()


async def pause(stop: asyncio.Event, seconds: float) -> bool:
    """Sleep for *seconds*, waking early if stopped.  Returns True if stopped."""
    if seconds <= 0:
        return stop.is_set()
    try:
        await asyncio.wait_for(stop.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return False
    return True


async def _relay(parent: asyncio.Event, child: asyncio.Event) -> None:
    await parent.wait()
    child.set()


@contextlib.asynccontextmanager
async def step_scope(
    parent: asyncio.Event,
    timeout: Optional[float] = None,
) -> AsyncIterator[asyncio.Event]:
    """Yield a child stop signal that fires with *parent* or after *timeout*."""
    child = asyncio.Event()
    if parent.is_set():
        child.set()

    relay = asyncio.ensure_future(_relay(parent, child))
    handle = None
    if timeout is not None:
        handle = asyncio.get_running_loop().call_later(timeout, child.set)

    try:
        yield child
    finally:
        relay.cancel()
        if handle is not None:
            handle.cancel()
        await asyncio.gather(relay, return_exceptions=True)
