"""Cancellation token and helpers that let awaitables observe it."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, TypeVar

from taskchain.core.errors import OperationCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """
    Monotonic cancellation flag shared by everything running inside one run.

    Setting the flag notifies every registered callback once, in registration
    order. Callbacks added after the flag is set are invoked immediately.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: str | None = None
        self._cancelled_at: datetime | None = None
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        """Whether cancellation was requested."""
        return self._cancelled

    @property
    def reason(self) -> str | None:
        """Reason given to the first ``cancel`` call."""
        return self._reason

    @property
    def cancelled_at(self) -> datetime | None:
        """When the flag was set."""
        return self._cancelled_at

    def cancel(self, reason: str = "Cancel") -> bool:
        """
        Set the flag and notify subscribers.

        Returns:
            True if this call set the flag, False if it was already set
        """
        if self._cancelled:
            return False

        self._cancelled = True
        self._reason = reason
        self._cancelled_at = datetime.now()

        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            self._invoke(callback)
        return True

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Register ``callback`` to run when the token is cancelled.

        Returns:
            A function removing the callback again (safe to call twice)
        """
        if self._cancelled:
            self._invoke(callback)
            return lambda: None

        self._callbacks.append(callback)

        def remove() -> None:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass

        return remove

    async def wait(self) -> None:
        """Suspend until the token is cancelled."""
        if self._cancelled:
            return

        waiter = asyncio.get_running_loop().create_future()
        remove = self.add_callback(lambda: _resolve(waiter))
        try:
            await waiter
        finally:
            remove()

    @staticmethod
    def _invoke(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            logger.exception("Cancellation callback failed")

    def __repr__(self) -> str:
        state = f"cancelled ({self._reason})" if self._cancelled else "armed"
        return f"<CancellationToken {state}>"


def _resolve(future: asyncio.Future) -> None:
    if not future.done():
        future.set_result(None)


async def run_cancellable(
    awaitable: Awaitable[T],
    token: CancellationToken,
    wait_cancelled: bool = False,
) -> T:
    """
    Await ``awaitable`` unless ``token`` is cancelled first.

    On cancellation the inner task is cancelled and ``OperationCancelledError``
    is raised. By default the inner task is not awaited, so foreign code that
    ignores asyncio cancellation keeps running in the background. Pass
    ``wait_cancelled=True`` for callees known to unwind promptly (httpx) so
    their resources are released before this returns.
    """
    if token.cancelled:
        _close(awaitable)
        raise OperationCancelledError(reason=token.reason)

    task: asyncio.Future[Any] = asyncio.ensure_future(awaitable)
    waiter = asyncio.get_running_loop().create_future()
    remove = token.add_callback(lambda: _resolve(waiter))

    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        remove()
        waiter.cancel()

    if task.done():
        return task.result()

    task.cancel()
    if wait_cancelled:
        await asyncio.gather(task, return_exceptions=True)
    else:
        task.add_done_callback(_consume_result)
    raise OperationCancelledError(reason=token.reason)


def _close(awaitable: Awaitable[Any]) -> None:
    # Unawaited coroutines warn on garbage collection.
    close = getattr(awaitable, "close", None)
    if asyncio.iscoroutine(awaitable) and close is not None:
        close()


def _consume_result(task: asyncio.Future) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(f"Abandoned call finished with error after cancellation: {exc!r}")
