"""Run asynchronous steps in order with cooperative cancellation."""

from taskchain.core import (
    CancellationToken,
    Chain,
    ChainController,
    ChainError,
    ChainEvent,
    ChainEventType,
    OperationCancelledError,
    RunOutcome,
    RunResult,
    StepError,
    UsageError,
)

__version__ = "0.1.0"

__all__ = [
    "Chain",
    "ChainController",
    "ChainEvent",
    "ChainEventType",
    "CancellationToken",
    "RunOutcome",
    "RunResult",
    "ChainError",
    "OperationCancelledError",
    "StepError",
    "UsageError",
]
