"""Unit tests for ChainController primitives."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from taskchain.core import Chain, ChainController, OperationCancelledError


@pytest.mark.asyncio
async def test_token_checked_before_each_step(chain: Chain, recorder) -> None:
    calls: list[int] = []

    def flag(previous: Any, controller: ChainController) -> int:
        calls.append(0)
        controller.token.cancel()
        return 0

    chain.add(flag).add(lambda previous, controller: calls.append(1) or 1)

    assert await chain.run() is None
    assert calls == [0]
    assert recorder.names == ["run", "cancel"]
    assert recorder.of("cancel")[0].last_step_index == 1


@pytest.mark.asyncio
async def test_cancellation_wins_over_complete(chain: Chain, recorder) -> None:
    def step(previous: Any, controller: ChainController) -> None:
        controller.token.cancel()
        controller.complete(5)

    chain.add(step)

    assert await chain.run() is None
    assert recorder.names == ["run", "cancel"]


@pytest.mark.asyncio
async def test_cancellation_wins_over_raise_error(chain: Chain, recorder) -> None:
    def step(previous: Any, controller: ChainController) -> None:
        controller.token.cancel()
        controller.raise_error(RuntimeError("ignored"))

    chain.add(step)
    await chain.run()

    assert recorder.names == ["run", "cancel"]


@pytest.mark.asyncio
async def test_cancel_is_repeatable(chain: Chain, recorder) -> None:
    def step(previous: Any, controller: ChainController) -> None:
        for _ in range(2):
            try:
                controller.cancel()
            except BaseException:
                pass
        controller.cancel()

    chain.add(step)
    await chain.run()

    assert recorder.names == ["run", "cancel"]


@pytest.mark.asyncio
async def test_delay_elapses_and_releases_subscription(chain: Chain) -> None:
    async def wait(previous: Any, controller: ChainController) -> int:
        await controller.delay(0.01)
        assert controller.token._callbacks == []
        return 1

    chain.add(wait)

    assert await chain.run() == 1


@pytest.mark.asyncio
async def test_delay_returns_early_without_raising(chain: Chain, recorder) -> None:
    reached: list[str] = []

    async def wait(previous: Any, controller: ChainController) -> int:
        await controller.delay(10)
        reached.append("after delay")
        assert controller.token._callbacks == []
        return 1

    chain.add(wait).add(lambda previous, controller: 2)

    run = asyncio.create_task(chain.run())
    await asyncio.sleep(0.01)
    await asyncio.wait_for(chain.cancel(), timeout=1)

    assert await run is None
    assert reached == ["after delay"]
    # The following step observes the flag before being invoked.
    assert recorder.of("cancel")[0].last_step_index == 1


@pytest.mark.asyncio
async def test_delay_after_cancellation_raises_cancel(chain: Chain, recorder) -> None:
    async def wait(previous: Any, controller: ChainController) -> None:
        controller.token.cancel()
        await controller.delay(10)

    chain.add(wait)

    await asyncio.wait_for(chain.run(), timeout=1)
    assert recorder.names == ["run", "cancel"]


@pytest.mark.asyncio
async def test_wrap_returns_result(chain: Chain) -> None:
    async def fetch(value: int, factor: int = 2) -> int:
        await asyncio.sleep(0)
        return value * factor

    def plain(value: int) -> int:
        return value + 1

    async def step(previous: Any, controller: ChainController) -> int:
        wrapped = controller.wrap(fetch)
        doubled = await wrapped(previous, factor=3)
        return await controller.wrap(plain)(doubled)

    chain.add(step)

    assert await chain.run(2) == 7


def test_wrap_preserves_metadata(chain: Chain) -> None:
    async def fetch_user() -> None:
        """Fetch a user."""

    wrapped = ChainController(chain).wrap(fetch_user)

    assert wrapped.__name__ == "fetch_user"
    assert wrapped.__doc__ == "Fetch a user."


@pytest.mark.asyncio
async def test_wrap_settles_promptly_when_fn_never_returns(chain: Chain, recorder) -> None:
    outcome: list[str] = []
    never = asyncio.Event()

    async def foreign() -> None:
        await never.wait()

    async def step(previous: Any, controller: ChainController) -> None:
        try:
            await controller.wrap(foreign)()
        except OperationCancelledError:
            outcome.append("cancelled")
            raise

    chain.add(step).add(lambda previous, controller: outcome.append("next"))

    run = asyncio.create_task(chain.run())
    await asyncio.sleep(0.01)
    await asyncio.wait_for(chain.cancel(), timeout=1)

    assert await run is None
    assert outcome == ["cancelled"]
    assert recorder.names == ["run", "cancel"]
    assert recorder.of("cancel")[0].last_step_index == 0


@pytest.mark.asyncio
async def test_wrapped_call_after_cancellation_fails_immediately(chain: Chain, recorder) -> None:
    calls: list[str] = []

    async def foreign() -> str:
        calls.append("foreign")
        return "value"

    async def step(previous: Any, controller: ChainController) -> str:
        wrapped = controller.wrap(foreign)
        controller.token.cancel()
        try:
            return await wrapped()
        except OperationCancelledError:
            return "caught"

    chain.add(step).add(lambda previous, controller: "next")

    assert await chain.run() is None
    assert calls == []
    assert recorder.of("cancel")[0].last_step_index == 1


@pytest.mark.asyncio
async def test_operation_cancelled_without_token_is_an_error(chain: Chain, recorder) -> None:
    def step(previous: Any, controller: ChainController) -> None:
        raise OperationCancelledError("stray")

    chain.add(step)
    await chain.run()

    assert recorder.names == ["run", "error"]
    assert isinstance(recorder.of("error")[0].error, OperationCancelledError)


@pytest.mark.asyncio
async def test_context_accessor_reflects_chain_context(chain: Chain) -> None:
    def step(previous: Any, controller: ChainController) -> bool:
        controller.context["seen"] = True
        return controller.context is controller.chain.context

    chain.add(step)

    assert await chain.run(context={}) is True
    assert chain.context == {"seen": True}
