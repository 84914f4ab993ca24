"""Sequential chain of steps with cooperative cancellation."""

from __future__ import annotations

import asyncio
import inspect
from datetime import datetime
from typing import Any, Callable, MutableMapping

import httpx

from taskchain.config import Settings, get_settings
from taskchain.core.controller import ChainController
from taskchain.core.errors import OperationCancelledError, UsageError
from taskchain.core.events import ChainEvent, ChainEventType, EventEmitter, Listener
from taskchain.core.signals import CancelSignal, CompleteSignal, ErrorSignal
from taskchain.core.state_machine import (
    RunOutcome,
    RunResult,
    RunState,
    RunStateMachine,
    StateTransition,
)
from taskchain.utils.logger import ChainLogger

Step = Callable[[Any, ChainController], Any]


class Chain:
    """
    Ordered list of steps run one after another.

    Each step is called with the previous step's result and the run's
    ``ChainController``, and may be a plain function or a coroutine function.
    A chain runs at most once at a time; every accepted run ends with exactly
    one ``complete``, ``cancel`` or ``error`` event, preceded by ``run``.

    Example:
        chain = Chain()
        chain.add(fetch).add(parse)
        chain.on("complete", lambda event: print(event.chain.return_value))
        result = await chain.run(initial_value)
    """

    def __init__(
        self,
        context: MutableMapping[str, Any] | None = None,
        *,
        name: str | None = None,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._settings = settings or get_settings()
        self._name = name or self._settings.chain.name
        self._steps: list[Step] = []
        self._context: MutableMapping[str, Any] = context if context is not None else {}
        self._http_client = http_client

        self._events = EventEmitter()
        self._log = ChainLogger(self._name)
        self._state_machine = RunStateMachine(
            history_limit=self._settings.chain.history_limit,
            on_transition=self._handle_transition,
        )
        self._controller: ChainController | None = None
        # Created per run so a chain can be reused across event loops.
        self._idle: asyncio.Event | None = None

        self._completed_successfully = False
        self._return_value: Any = None
        self._last_result: RunResult | None = None

    def _handle_transition(self, old_state: RunState, new_state: RunState, message: str) -> None:
        self._log.state_change(old_state.name, new_state.name)

    @property
    def name(self) -> str:
        return self._name

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def http_client(self) -> httpx.AsyncClient | None:
        """Client shared by ``external_call``; None means one client per request."""
        return self._http_client

    @property
    def steps(self) -> list[Step]:
        """Registered steps (a copy)."""
        return list(self._steps)

    @property
    def context(self) -> MutableMapping[str, Any]:
        """Context mapping shared by all steps."""
        return self._context

    @property
    def state(self) -> RunState:
        return self._state_machine.state

    @property
    def is_running(self) -> bool:
        """Whether a run is in progress."""
        return self._state_machine.state is RunState.RUNNING

    @property
    def completed_successfully(self) -> bool:
        """Whether the last run completed (normally or via ``complete``)."""
        return self._completed_successfully

    @property
    def return_value(self) -> Any:
        """Result of the last completed run; None after a cancel or an error."""
        return self._return_value

    @property
    def last_result(self) -> RunResult | None:
        """Terminal record of the last finished run."""
        return self._last_result

    @property
    def transitions(self) -> list[StateTransition]:
        return self._state_machine.transitions

    def add(self, step: Step) -> Chain:
        """
        Append a step.

        Returns:
            The chain itself, for chaining calls
        """
        if not callable(step):
            raise TypeError(f"Step must be callable, got {type(step).__name__}")
        self._steps.append(step)
        return self

    def on(self, event: ChainEventType | str, listener: Listener) -> Callable[[], None]:
        """
        Subscribe to a chain event ("run", "complete", "cancel" or "error").

        Returns:
            Unsubscribe function
        """
        event_type = ChainEventType.parse(event)
        return self._events.on(event_type.value, listener)

    def _emit(self, event: ChainEventType, last_step_index: int, error: BaseException | None = None) -> None:
        self._events.emit(
            event.value,
            ChainEvent(event=event, chain=self, last_step_index=last_step_index, error=error),
        )

    async def run(
        self,
        initial_value: Any = None,
        context: MutableMapping[str, Any] | None = None,
    ) -> Any:
        """
        Run all steps in order.

        Args:
            initial_value: Value passed as previous result to the first step
            context: Replaces the chain's context when given

        Returns:
            The result of the run if it completed, otherwise None. Outcomes
            are reported through events; this never raises for a step's
            failure or cancellation.

        Raises:
            asyncio.CancelledError: The task running this call was cancelled
            BaseException: A step raised a non-``Exception`` error; the run is
                finalized as errored first
        """
        if self.is_running:
            self._log.warning("Run requested while already running, rejected")
            self._emit(ChainEventType.ERROR, -1, UsageError("Already running"))
            return None

        controller = ChainController(self)
        self._controller = controller
        self._state_machine.transition_to(RunState.RUNNING, "Run started")
        self._idle = asyncio.Event()

        self._completed_successfully = False
        self._return_value = None
        if context is not None:
            self._context = context

        started_at = datetime.now()
        self._log.info(f"Run started ({len(self._steps)} steps)")
        self._emit(ChainEventType.RUN, -1)

        previous_result = initial_value
        index = -1

        try:
            # Steps added during the run are picked up when reached.
            while index + 1 < len(self._steps):
                index += 1
                controller.check_cancellation()
                previous_result = await self._invoke(self._steps[index], previous_result, controller)

        except CompleteSignal as signal:
            result = RunResult(RunOutcome.COMPLETED, index, value=signal.value)
        except CancelSignal:
            result = RunResult(RunOutcome.CANCELLED, index)
        except ErrorSignal as signal:
            result = RunResult(RunOutcome.ERRORED, index, error=signal.error)
        except OperationCancelledError as e:
            if controller.cancelled:
                result = RunResult(RunOutcome.CANCELLED, index)
            else:
                result = RunResult(RunOutcome.ERRORED, index, error=e)
        except asyncio.CancelledError:
            task = asyncio.current_task()
            if task is None or not task.cancelling():
                # A future awaited by the step was cancelled, not this run's task.
                result = RunResult(RunOutcome.CANCELLED, index)
            else:
                self._log.warning(f"Run task cancelled at step {index}")
                self._finish(controller, RunResult(RunOutcome.CANCELLED, index, started_at=started_at))
                raise
        except Exception as e:
            self._log.exception(f"Step {index} failed: {e}")
            result = RunResult(RunOutcome.ERRORED, index, error=e)
        except BaseException as e:
            self._log.exception(f"Step {index} raised {type(e).__name__}, aborting run")
            self._finish(controller, RunResult(RunOutcome.ERRORED, index, error=e, started_at=started_at))
            raise
        else:
            result = RunResult(RunOutcome.COMPLETED, index, value=previous_result)

        result.started_at = started_at
        return self._finish(controller, result)

    @staticmethod
    async def _invoke(step: Step, previous_result: Any, controller: ChainController) -> Any:
        result = step(previous_result, controller)
        if inspect.isawaitable(result):
            result = await result
        return result

    def _finish(self, controller: ChainController, result: RunResult) -> Any:
        """Commit the terminal state, then notify listeners."""
        result.finished_at = datetime.now()
        controller.detach()
        if self._controller is controller:
            self._controller = None

        self._completed_successfully = result.success
        self._return_value = result.value if result.success else None
        self._last_result = result
        self._state_machine.transition_to(RunState.IDLE, result.outcome.name)
        if self._idle is not None:
            self._idle.set()

        if result.outcome is RunOutcome.COMPLETED:
            self._log.success(f"Run completed at step {result.last_step_index}")
            self._emit(ChainEventType.COMPLETE, result.last_step_index)
        elif result.outcome is RunOutcome.CANCELLED:
            self._log.info(f"Run cancelled at step {result.last_step_index}")
            self._emit(ChainEventType.CANCEL, result.last_step_index)
        else:
            self._log.error(f"Run failed at step {result.last_step_index}: {result.error!r}")
            self._emit(ChainEventType.ERROR, result.last_step_index, result.error)

        return self._return_value

    async def wait_for_chain_to_finish(self) -> None:
        """Wait until the current run (if any) has finished."""
        idle = self._idle
        if not self.is_running or idle is None:
            return
        await idle.wait()

    async def cancel(self) -> None:
        """
        Cancel the current run and wait for it to finish.

        Does nothing when the chain is idle. The running step observes the
        cancellation at its next check or suspension point.
        """
        controller = self._controller
        if self.is_running and controller is not None:
            self._log.info("Cancellation requested")
            controller.token.cancel("Cancel")
        await self.wait_for_chain_to_finish()

    def __repr__(self) -> str:
        return f"<Chain {self._name!r} steps={len(self._steps)} state={self.state.name}>"
