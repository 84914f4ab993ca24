"""Public exception types raised or reported by a chain."""

from __future__ import annotations


class ChainError(Exception):
    """Base class for errors raised by taskchain."""


class UsageError(ChainError):
    """Chain used in a way its lifecycle does not allow (e.g. run while running)."""


class OperationCancelledError(ChainError):
    """A wrapped call or external request was preempted by cancellation."""

    def __init__(self, message: str = "Cancel", reason: str | None = None):
        super().__init__(message)
        self.reason = reason


class StepError(ChainError):
    """Error raised through ``ChainController.raise_error`` from a plain message."""
