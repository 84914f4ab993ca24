"""HTTP helper that aborts in-flight requests on cancellation."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from taskchain.core.cancellation import CancellationToken, run_cancellable
from taskchain.core.errors import OperationCancelledError

logger = logging.getLogger(__name__)


async def request(
    method: str,
    url: str,
    *,
    token: CancellationToken,
    client: httpx.AsyncClient | None = None,
    timeout: float = 30.0,
    follow_redirects: bool = True,
    **kwargs: Any,
) -> httpx.Response:
    """
    Make an HTTP request that is aborted when ``token`` is cancelled.

    Args:
        method: HTTP method
        url: Target URL
        token: Cancellation token of the calling run
        client: Shared client; a short-lived one is created when omitted
        timeout: Timeout for the short-lived client
        follow_redirects: Redirect policy for the short-lived client
        **kwargs: Passed to ``httpx.AsyncClient.request``

    Returns:
        The response (status is not checked)

    Raises:
        OperationCancelledError: If the token was cancelled before the
            response arrived
    """
    if token.cancelled:
        raise OperationCancelledError(reason=token.reason)

    logger.debug(f"{method} {url}")

    try:
        if client is not None:
            return await run_cancellable(
                client.request(method, url, **kwargs), token, wait_cancelled=True
            )

        async with httpx.AsyncClient(timeout=timeout, follow_redirects=follow_redirects) as owned:
            return await run_cancellable(
                owned.request(method, url, **kwargs), token, wait_cancelled=True
            )
    except OperationCancelledError:
        logger.info(f"Request aborted by cancellation: {method} {url}")
        raise
