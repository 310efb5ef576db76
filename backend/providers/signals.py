"""Cancellation signals threaded through every outbound call.

An ``AbortSignal`` is created per client request. Deadlines and composed
signals are derived from it, and ``guard`` runs an awaitable so that the
awaitable is cancelled (aborting any in-flight HTTP request) as soon as the
signal fires.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Iterable, TypeVar

from .errors import AbortedError, ResolverTimeoutError

T = TypeVar("T")


class AbortSignal:
    """One-shot cancellation flag with callbacks and an awaitable event."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._callbacks: list[Callable[[BaseException], None]] = []
        self._timer: asyncio.TimerHandle | None = None
        self.reason: BaseException | None = None

    @property
    def aborted(self) -> bool:
        return self.reason is not None

    def abort(self, reason: BaseException | None = None) -> None:
        if self.aborted:
            return
        self.reason = reason or AbortedError("Operation aborted")
        self._event.set()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(self.reason)

    def add_callback(self, callback: Callable[[BaseException], None]) -> None:
        if self.aborted:
            callback(self.reason)  # type: ignore[arg-type]
            return
        self._callbacks.append(callback)

    def raise_if_aborted(self) -> None:
        if self.reason is None:
            return
        if isinstance(self.reason, AbortedError):
            raise self.reason
        raise AbortedError(str(self.reason))

    def dispose(self) -> None:
        """Cancel a pending deadline timer without firing the signal."""

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def wait(self) -> BaseException:
        await self._event.wait()
        return self.reason  # type: ignore[return-value]

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the signal fires first.

        When the signal wins, the pending task is cancelled and awaited so that
        network resources are released before ``AbortedError`` is raised.
        """

        if self.aborted:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_aborted()

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise

        if task.done():
            waiter.cancel()
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        self.raise_if_aborted()
        raise AbortedError("Operation aborted")  # pragma: no cover - unreachable

    @classmethod
    def timeout(cls, seconds: float, *, message: str | None = None) -> "AbortSignal":
        """Return a signal that aborts itself after ``seconds``."""

        signal = cls()
        loop = asyncio.get_running_loop()
        reason = ResolverTimeoutError(message or f"Deadline of {seconds:g}s exceeded")
        signal._timer = loop.call_later(seconds, signal.abort, reason)
        return signal

    @classmethod
    def any(cls, signals: Iterable["AbortSignal | None"]) -> "AbortSignal":
        """Return a signal that fires as soon as any of ``signals`` fires."""

        combined = cls()
        for parent in signals:
            if parent is None:
                continue
            parent.add_callback(combined.abort)
        return combined


async def guarded(awaitable: Awaitable[T], signal: AbortSignal | None) -> T:
    """Await ``awaitable`` under ``signal`` when one is supplied."""

    if signal is None:
        return await awaitable
    return await signal.guard(awaitable)
