"""Per-run control handle passed to every step."""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, MutableMapping

import httpx

from taskchain.core.cancellation import CancellationToken, run_cancellable
from taskchain.core.errors import OperationCancelledError, StepError
from taskchain.core.signals import CancelSignal, CompleteSignal, ErrorSignal
from taskchain.integrations import http

if TYPE_CHECKING:
    from taskchain.core.chain import Chain

logger = logging.getLogger(__name__)


class ChainController:
    """
    Control handle for one run of a chain.

    A step uses it to finish the run early (``complete``), stop it
    (``cancel``), abort it with an error (``raise_error``) and to suspend in
    ways that react to cancellation (``delay``, ``wrap``, ``external_call``).

    The controller is only meaningful while its run is active. Once the run
    has finished the controller is detached and the exit primitives become
    no-ops.
    """

    def __init__(self, chain: Chain):
        self._chain = chain
        self._token = CancellationToken()
        self._attached = True

    @property
    def chain(self) -> Chain:
        return self._chain

    @property
    def token(self) -> CancellationToken:
        """Cancellation token of this run."""
        return self._token

    @property
    def cancelled(self) -> bool:
        return self._token.cancelled

    @property
    def attached(self) -> bool:
        """Whether the owning run is still active."""
        return self._attached

    @property
    def context(self) -> MutableMapping[str, Any]:
        """Context mapping shared by the steps of the chain."""
        return self._chain.context

    def detach(self) -> None:
        """Called by the chain when the run has finished."""
        self._token.cancel("Finished")
        self._attached = False

    def check_cancellation(self) -> None:
        """Raise ``CancelSignal`` if the run was cancelled."""
        if self._token.cancelled:
            raise CancelSignal(self._token.reason)

    def cancel(self) -> None:
        """Cancel the run. Steps after the current one are not executed."""
        if not self._attached:
            logger.debug("cancel() on a finished run ignored")
            return None
        self._token.cancel("Cancel")
        raise CancelSignal(self._token.reason)

    def complete(self, value: Any = None) -> None:
        """Finish the run successfully, using ``value`` as the chain's result."""
        if not self._attached:
            logger.debug("complete() on a finished run ignored")
            return None
        self.check_cancellation()
        self._token.cancel("Complete")
        raise CompleteSignal(value)

    def raise_error(self, error: BaseException | str) -> None:
        """Abort the run and report ``error`` to ``error`` listeners."""
        if not self._attached:
            logger.debug("raise_error() on a finished run ignored")
            return None
        self.check_cancellation()
        if isinstance(error, str):
            error = StepError(error)
        self._token.cancel("Error")
        raise ErrorSignal(error)

    async def delay(self, seconds: float) -> None:
        """
        Sleep for ``seconds``, returning early if the run is cancelled.

        Cancellation does not raise here; the next ``check_cancellation`` (or
        any other primitive) observes it.
        """
        self.check_cancellation()

        loop = asyncio.get_running_loop()
        waiter = loop.create_future()

        def wake() -> None:
            if not waiter.done():
                waiter.set_result(None)

        handle = loop.call_later(max(seconds, 0), wake)
        remove = self._token.add_callback(wake)
        try:
            await waiter
        finally:
            handle.cancel()
            remove()

    async def external_call(self, url: str, method: str = "GET", **options: Any) -> httpx.Response:
        """
        Perform an HTTP request that is aborted when the run is cancelled.

        Raises:
            OperationCancelledError: If cancelled while the request is in flight
        """
        self.check_cancellation()
        settings = self._chain.settings
        return await http.request(
            method,
            url,
            token=self._token,
            client=self._chain.http_client,
            timeout=settings.http.timeout_seconds,
            follow_redirects=settings.http.follow_redirects,
            **options,
        )

    def wrap(self, fn: Callable[..., Any]) -> Callable[..., Awaitable[Any]]:
        """
        Wrap ``fn`` so that calling it stops waiting as soon as the run is cancelled.

        The wrapped function raises ``OperationCancelledError`` when the token
        is set before ``fn``'s result is available. ``fn`` itself is cancelled
        on a best effort basis.
        """
        self.check_cancellation()
        token = self._token

        @functools.wraps(fn)
        async def wrapped(*args: Any, **kwargs: Any) -> Any:
            if token.cancelled:
                raise OperationCancelledError(reason=token.reason)
            result = fn(*args, **kwargs)
            if not inspect.isawaitable(result):
                return result
            return await run_cancellable(result, token)

        return wrapped

    def __repr__(self) -> str:
        state = "attached" if self._attached else "detached"
        return f"<ChainController {state} {self._token!r}>"
