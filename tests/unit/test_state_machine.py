"""Unit tests for the run state machine."""

from __future__ import annotations

from datetime import datetime, timedelta

from taskchain.core import RunOutcome, RunResult, RunState, RunStateMachine


def test_transition_rejects_illegal_transitions() -> None:
    machine = RunStateMachine()

    assert machine.transition_to(RunState.IDLE) is False
    assert machine.state is RunState.IDLE

    assert machine.transition_to(RunState.RUNNING, "start") is True
    assert machine.transition_to(RunState.RUNNING) is False
    assert machine.state is RunState.RUNNING


def test_transition_callback_and_history_limit() -> None:
    seen: list[tuple[RunState, RunState, str]] = []
    machine = RunStateMachine(
        history_limit=3,
        on_transition=lambda old, new, message: seen.append((old, new, message)),
    )

    for _ in range(2):
        machine.transition_to(RunState.RUNNING, "start")
        machine.transition_to(RunState.IDLE, "stop")

    assert len(seen) == 4
    assert seen[0] == (RunState.IDLE, RunState.RUNNING, "start")
    assert [t.message for t in machine.transitions] == ["stop", "start", "stop"]


def test_run_result_serialization() -> None:
    started = datetime(2025, 1, 1, 12, 0, 0)
    result = RunResult(
        RunOutcome.ERRORED,
        2,
        error=ValueError("bad"),
        started_at=started,
        finished_at=started + timedelta(seconds=1.5),
    )

    assert result.success is False
    assert result.duration_seconds == 1.5
    assert result.to_dict() == {
        "outcome": "ERRORED",
        "last_step_index": 2,
        "value": None,
        "error": "ValueError('bad')",
        "started_at": "2025-01-01T12:00:00",
        "finished_at": "2025-01-01T12:00:01.500000",
        "duration_seconds": 1.5,
    }


def test_only_completed_is_success() -> None:
    assert RunOutcome.COMPLETED.is_success()
    assert not RunOutcome.CANCELLED.is_success()
    assert not RunOutcome.ERRORED.is_success()
