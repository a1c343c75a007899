"""Cooperative cancellation for client calls.

A :class:`CancellationTokenSource` owns the signal; code that only needs to observe
it receives the read-only :class:`CancellationToken`. Sources can be linked to a
parent token and can schedule their own cancellation, which is how a request's
timeout and a caller's abort are combined into one signal.
"""

from __future__ import annotations

import asyncio
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from pax8_client.utils.logging import get_logger


logger = get_logger(__name__)

T = TypeVar("T")

CancelListener = Callable[["CancellationToken"], None]


class CancellationError(asyncio.CancelledError):
    """A cancellation token fired; ``reason`` is what it was cancelled with."""

    def __init__(self, reason: str | None = None) -> None:
        super().__init__(reason)
        self.reason = reason


@dataclass(slots=True, eq=False)
class _Signal:
    fired: asyncio.Event = field(default_factory=asyncio.Event)
    reason: str | None = None
    listeners: list[CancelListener] = field(default_factory=list)
    tasks: set[asyncio.Task[Any]] = field(default_factory=set)


def _noop() -> None:
    return None


class CancellationToken:
    __slots__ = ("_signal",)

    def __init__(self, signal: _Signal) -> None:
        self._signal = signal

    @property
    def cancelled(self) -> bool:
        return self._signal.fired.is_set()

    @property
    def reason(self) -> str | None:
        return self._signal.reason

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise CancellationError(self._signal.reason)

    async def wait(self) -> None:
        await self._signal.fired.wait()

    def on_cancel(self, listener: CancelListener) -> Callable[[], None]:
        """Call ``listener`` once on cancellation; returns an unsubscribe callable.

        A token that is already cancelled invokes the listener immediately.
        """
        if self.cancelled:
            listener(self)
            return _noop
        listeners = self._signal.listeners
        listeners.append(listener)

        def unsubscribe() -> None:
            with suppress(ValueError):
                listeners.remove(listener)

        return unsubscribe

    def link_task(self, task: asyncio.Task[Any]) -> Callable[[], None]:
        """Cancel ``task`` (with this token's reason) when the token fires."""

        tasks = self._signal.tasks
        tasks.add(task)
        task.add_done_callback(tasks.discard)
        if self.cancelled:
            task.cancel(self._signal.reason)
        return lambda: tasks.discard(task)

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled}, reason={self.reason!r})"


class CancellationTokenSource:
    """Owns a cancellation signal and fires it on request, on a timer or via a parent.

    A source created with ``linked_token`` cancels itself, with the parent's reason,
    whenever the parent is cancelled; a parent that is already cancelled leaves the
    new source cancelled from the start. ``dispose`` detaches from the parent and
    clears any pending timer and must run on every exit path.
    """

    __slots__ = ("_signal", "_token", "_unlink_parent", "_timer")

    def __init__(self, *, linked_token: CancellationToken | None = None) -> None:
        self._signal = _Signal()
        self._token = CancellationToken(self._signal)
        self._timer: asyncio.TimerHandle | None = None
        self._unlink_parent: Callable[[], None] = _noop
        if linked_token is not None:
            self._unlink_parent = linked_token.on_cancel(
                lambda parent: self.cancel(reason=parent.reason)
            )

    @property
    def token(self) -> CancellationToken:
        return self._token

    def cancel(self, *, reason: str | None = None) -> bool:
        """Fire the signal. Returns False when it had already fired."""

        signal = self._signal
        if signal.fired.is_set():
            return False
        signal.reason = reason
        signal.fired.set()
        for listener in list(signal.listeners):
            try:
                listener(self._token)
            except Exception:
                logger.exception("Cancellation listener failed", reason=reason)
        for task in list(signal.tasks):
            task.cancel(reason)
        return True

    def cancel_after(self, delay: float, *, reason: str | None = None) -> None:
        """Fire the signal after ``delay`` seconds unless disposed first."""

        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(delay, lambda: self.cancel(reason=reason))

    def dispose(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        unlink, self._unlink_parent = self._unlink_parent, _noop
        unlink()


async def await_with_cancellation(
    factory: Callable[[], Awaitable[T]],
    token: CancellationToken | None,
) -> T:
    """Run ``factory()`` as a task that ``token`` can cancel.

    The awaitable is only created once the token has been checked, so an
    already-cancelled token never starts the operation. Cancellation by the token
    surfaces as :class:`CancellationError` carrying the token's reason.
    """
    if token is None:
        return await factory()
    token.raise_if_cancelled()
    task = asyncio.ensure_future(factory())
    unlink = token.link_task(task)
    try:
        return await task
    except asyncio.CancelledError:
        token.raise_if_cancelled()
        raise
    finally:
        unlink()


__all__ = [
    "CancellationError",
    "CancellationToken",
    "CancellationTokenSource",
    "await_with_cancellation",
]
