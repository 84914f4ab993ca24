"""Run state machine and terminal run records."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any, Callable


class RunState(Enum):
    """Lifecycle states of a chain."""

    IDLE = auto()
    RUNNING = auto()


class RunOutcome(Enum):
    """Terminal outcome of a single run."""

    COMPLETED = auto()
    CANCELLED = auto()
    ERRORED = auto()

    def is_success(self) -> bool:
        """Check if the run produced a meaningful value."""
        return self is RunOutcome.COMPLETED


# Valid state transitions
VALID_TRANSITIONS: dict[RunState, set[RunState]] = {
    RunState.IDLE: {RunState.RUNNING},
    RunState.RUNNING: {RunState.IDLE},
}


@dataclass
class StateTransition:
    """Record of a state transition."""

    from_state: RunState
    to_state: RunState
    timestamp: datetime
    message: str = ""


@dataclass
class RunResult:
    """Terminal record of one run."""

    outcome: RunOutcome
    last_step_index: int = -1
    value: Any = None
    error: BaseException | None = None
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: datetime = field(default_factory=datetime.now)

    @property
    def success(self) -> bool:
        return self.outcome.is_success()

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> dict:
        """Serialize to dictionary."""
        return {
            "outcome": self.outcome.name,
            "last_step_index": self.last_step_index,
            "value": self.value,
            "error": repr(self.error) if self.error is not None else None,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "duration_seconds": self.duration_seconds,
        }


class RunStateMachine:
    """State machine guarding the IDLE/RUNNING lifecycle of a chain."""

    def __init__(
        self,
        history_limit: int = 100,
        on_transition: Callable[[RunState, RunState, str], None] | None = None,
    ):
        self._state = RunState.IDLE
        self._transitions: deque[StateTransition] = deque(maxlen=history_limit)
        self._on_transition = on_transition

    @property
    def state(self) -> RunState:
        """Current run state."""
        return self._state

    @property
    def transitions(self) -> list[StateTransition]:
        """Most recent transitions, oldest first."""
        return list(self._transitions)

    def can_transition_to(self, new_state: RunState) -> bool:
        """Check if transition to new state is valid."""
        return new_state in VALID_TRANSITIONS.get(self._state, set())

    def transition_to(self, new_state: RunState, message: str = "") -> bool:
        """
        Attempt to transition to a new state.

        Returns True if transition was successful, False otherwise.
        """
        if not self.can_transition_to(new_state):
            return False

        old_state = self._state
        self._transitions.append(
            StateTransition(
                from_state=old_state,
                to_state=new_state,
                timestamp=datetime.now(),
                message=message,
            )
        )
        self._state = new_state

        if self._on_transition:
            self._on_transition(old_state, new_state, message)

        return True
