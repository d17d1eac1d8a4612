"""Cooperative cancellation and idle signalling for background pipelines."""

from __future__ import annotations

import asyncio
import inspect
from contextlib import suppress
from typing import Awaitable, TypeVar

T = TypeVar("T")


class OperationCancelled(Exception):
    """Raised when a guarded operation is abandoned because its token fired."""


class CancellationToken:
    """A shared signal checked before every unit of pipeline work."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        The wrapped operation is cancelled and :class:`OperationCancelled`
        raised when cancellation wins the race.
        """

        if self._event.is_set():
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise OperationCancelled()

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task.done():
            return task.result()
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        raise OperationCancelled()

    async def sleep(self, seconds: float) -> bool:
        """Sleep for ``seconds``; return ``True`` if cancelled meanwhile."""

        if seconds <= 0:
            return self._event.is_set()
        with suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        return self._event.is_set()


class IdleSignal:
    """Lets low-priority work wait until the host reports idle time."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def notify(self) -> None:
        self._event.set()

    async def wait(self, timeout: float | None = None) -> bool:
        """Wait for idle time or until ``timeout`` passes.

        Returns ``True`` when the wait ended because the host went idle.
        """

        if timeout is None:
            await self._event.wait()
            return True
        with suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
        return self._event.is_set()
