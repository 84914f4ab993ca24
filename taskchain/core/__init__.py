"""Core module - chain run loop, controller and cancellation."""

from .cancellation import CancellationToken, run_cancellable
from .chain import Chain, Step
from .controller import ChainController
from .errors import ChainError, OperationCancelledError, StepError, UsageError
from .events import ChainEvent, ChainEventType, EventEmitter
from .state_machine import RunOutcome, RunResult, RunState, RunStateMachine

__all__ = [
    "Chain",
    "Step",
    "ChainController",
    "CancellationToken",
    "run_cancellable",
    "ChainEvent",
    "ChainEventType",
    "EventEmitter",
    "RunOutcome",
    "RunResult",
    "RunState",
    "RunStateMachine",
    "ChainError",
    "OperationCancelledError",
    "StepError",
    "UsageError",
]
