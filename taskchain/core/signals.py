"""Control signals used by a step to leave the run loop early.

The signals derive from ``BaseException`` so a step's own ``except Exception``
handlers do not intercept them. They are raised by ``ChainController`` and
caught only by ``Chain.run``.
"""

from __future__ import annotations

from typing import Any


class ChainSignal(BaseException):
    """Base class for non-local exits out of a running step."""


class CompleteSignal(ChainSignal):
    """Finish the run successfully with ``value`` as its result."""

    def __init__(self, value: Any = None):
        super().__init__("Complete")
        self.value = value


class CancelSignal(ChainSignal):
    """Stop the run and discard its result."""

    def __init__(self, reason: str | None = None):
        super().__init__("Cancel")
        self.reason = reason


class ErrorSignal(ChainSignal):
    """Abort the run and report ``error`` to ``error`` listeners."""

    def __init__(self, error: BaseException):
        super().__init__(str(error))
        self.error = error
