"""Cooperative cancellation tokens and timeout composition."""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Iterator, TypeVar

from compatchat.llm.errors import RequestCancelledError, RequestTimeoutError

T = TypeVar("T")

Listener = Callable[[Any], None]


class CancellationToken:
    """One-shot cancellation signal with a reason and detachable listeners."""

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: Any = None
        self._listeners: list[Listener] = []
        self._event: asyncio.Event | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> Any:
        return self._reason

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def cancel(self, reason: Any = None) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._reason = reason
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            listener(reason)
        if self._event is not None:
            self._event.set()

    def add_listener(self, listener: Listener) -> None:
        if self._cancelled:
            listener(self._reason)
            return
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            return

    async def wait(self) -> None:
        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        await self._event.wait()

    def exception(self) -> BaseException:
        if isinstance(self._reason, RequestCancelledError):
            return self._reason
        if isinstance(self._reason, BaseException):
            error = RequestCancelledError(self._reason)
            error.__cause__ = self._reason
            return error
        return RequestCancelledError(self._reason)


def compose_cancellation(
    token: CancellationToken | None,
    timeout_s: float | None,
) -> tuple[CancellationToken | None, Callable[[], None]]:
    """Merge a caller token with a timeout into one effective token.

    Returns the effective token and a release callback that disarms the timer
    and detaches the propagation listener. Release is idempotent.
    """
    if not timeout_s or timeout_s <= 0:
        return token, _noop

    composed = CancellationToken()

    def propagate(reason: Any) -> None:
        composed.cancel(reason)

    if token is not None:
        token.add_listener(propagate)

    loop = asyncio.get_running_loop()
    timer = loop.call_later(timeout_s, composed.cancel, RequestTimeoutError())
    released = False

    def release() -> None:
        nonlocal released
        if released:
            return
        released = True
        timer.cancel()
        if token is not None:
            token.remove_listener(propagate)

    return composed, release


@contextmanager
def composed_cancellation(
    token: CancellationToken | None,
    timeout_s: float | None,
) -> Iterator[CancellationToken | None]:
    effective, release = compose_cancellation(token, timeout_s)
    try:
        yield effective
    finally:
        release()


async def run_cancellable(awaitable: Awaitable[T], token: CancellationToken | None) -> T:
    """Await ``awaitable`` and abort it when ``token`` fires first."""
    if token is None:
        return await awaitable
    if token.cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise token.exception()

    work = asyncio.ensure_future(awaitable)
    watcher = asyncio.ensure_future(token.wait())
    try:
        await asyncio.wait({work, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        watcher.cancel()
        if not work.done():
            work.cancel()
            await asyncio.gather(work, return_exceptions=True)
    if work.done() and not work.cancelled():
        return work.result()
    raise token.exception()


def _noop() -> None:
    return None
