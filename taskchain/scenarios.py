"""Demonstration chains used by the command line interface."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from taskchain.config import Settings
from taskchain.core import Chain, ChainController, ChainEvent, RunOutcome, RunResult


@dataclass
class ScenarioReport:
    """What a scenario run observed."""

    name: str
    expected: RunOutcome
    result: RunResult | None = None
    lines: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.result is not None and self.result.outcome is self.expected

    def log(self, message: str) -> None:
        self.lines.append(message)


@dataclass
class Scenario:
    """A named demonstration chain."""

    name: str
    description: str
    expected: RunOutcome
    runner: Callable[[Chain, ScenarioReport], Awaitable[Any]]

    async def execute(self, settings: Settings) -> ScenarioReport:
        report = ScenarioReport(name=self.name, expected=self.expected)
        chain = Chain(name=self.name, settings=settings)

        def on_event(event: ChainEvent) -> None:
            detail = f" ({event.error})" if event.error is not None else ""
            report.log(f"event: {event.event.value} at step {event.last_step_index}{detail}")

        for event_name in ("run", "complete", "cancel", "error"):
            chain.on(event_name, on_event)

        value = await self.runner(chain, report)
        report.log(f"result = {value!r}")
        report.result = chain.last_result
        return report


async def _basic(chain: Chain, report: ScenarioReport) -> Any:
    async def first(previous: Any, controller: ChainController) -> int:
        report.log("step 0")
        return 0

    async def second(previous: Any, controller: ChainController) -> int:
        report.log(f"step 1, previous result = {previous}")
        return 1

    async def third(previous: Any, controller: ChainController) -> int:
        report.log("step 2")
        return 2

    chain.add(first).add(second).add(third)
    return await chain.run()


async def _complete(chain: Chain, report: ScenarioReport) -> Any:
    async def finish_early(previous: Any, controller: ChainController) -> int:
        report.log("step 1 completes the chain with 100")
        controller.complete(100)
        return 1

    async def never(previous: Any, controller: ChainController) -> int:
        report.log("never executed")
        return 2

    chain.add(lambda previous, controller: 0).add(finish_early).add(never)
    return await chain.run()


async def _cancel(chain: Chain, report: ScenarioReport) -> Any:
    def stop(previous: Any, controller: ChainController) -> int:
        report.log("step 1 cancels the chain")
        controller.cancel()
        return 1

    def never(previous: Any, controller: ChainController) -> int:
        report.log("never executed")
        return 2

    chain.add(lambda previous, controller: 0).add(stop).add(never)
    return await chain.run()


async def _raise_error(chain: Chain, report: ScenarioReport) -> Any:
    async def fail(previous: Any, controller: ChainController) -> int:
        report.log("step 1 raises an error through the controller")
        controller.raise_error(RuntimeError("custom error"))
        return 1

    chain.add(lambda previous, controller: 0).add(fail).add(lambda previous, controller: 2)
    return await chain.run()


async def _delay_cancel(chain: Chain, report: ScenarioReport) -> Any:
    async def wait(previous: Any, controller: ChainController) -> int:
        report.log("step 1 sleeps for 10 seconds")
        await controller.delay(10)
        controller.check_cancellation()
        return 1

    chain.add(lambda previous, controller: 0).add(wait).add(lambda previous, controller: 2)

    run = asyncio.create_task(chain.run())
    await asyncio.sleep(0.1)
    loop = asyncio.get_running_loop()
    started = loop.time()
    await chain.cancel()
    report.log(f"cancelled after {loop.time() - started:.3f}s")
    return await run


async def _error(chain: Chain, report: ScenarioReport) -> Any:
    async def fail(previous: Any, controller: ChainController) -> int:
        report.log(f"step 1, previous result = {previous}")
        raise RuntimeError("custom error")

    chain.add(lambda previous, controller: 0).add(fail).add(lambda previous, controller: 2)
    return await chain.run()


async def _wrap(chain: Chain, report: ScenarioReport) -> Any:
    async def slow_foreign_call() -> str:
        await asyncio.sleep(5)
        return "done"

    async def call(previous: Any, controller: ChainController) -> str:
        report.log("step 0 awaits a wrapped foreign call")
        return await controller.wrap(slow_foreign_call)()

    async def never(previous: Any, controller: ChainController) -> None:
        report.log("never executed")

    chain.add(call).add(never)

    run = asyncio.create_task(chain.run())
    await asyncio.sleep(0.1)
    await chain.cancel()
    return await run


async def _context(chain: Chain, report: ScenarioReport) -> Any:
    def count(previous: Any, controller: ChainController) -> int:
        controller.context["count"] += 1
        return controller.context["count"]

    chain.add(count).add(count)
    value = await chain.run(context={"count": 0})
    report.log(f"context = {dict(chain.context)}")
    return value


SCENARIOS: dict[str, Scenario] = {
    s.name: s
    for s in (
        Scenario("basic", "three steps passing results along", RunOutcome.COMPLETED, _basic),
        Scenario("complete", "a step completes the chain early", RunOutcome.COMPLETED, _complete),
        Scenario("cancel", "a step cancels the chain", RunOutcome.CANCELLED, _cancel),
        Scenario("raise-error", "a step escalates an error", RunOutcome.ERRORED, _raise_error),
        Scenario("delay-cancel", "external cancel during a long delay", RunOutcome.CANCELLED, _delay_cancel),
        Scenario("error", "a step raises an exception", RunOutcome.ERRORED, _error),
        Scenario("wrap", "external cancel during a wrapped call", RunOutcome.CANCELLED, _wrap),
        Scenario("context", "steps share a context mapping", RunOutcome.COMPLETED, _context),
    )
}
