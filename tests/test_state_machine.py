"""Tests for task status transitions and their guards."""

from __future__ import annotations

import pytest

from task_tracker.errors import ErrorKind, TaskError
from task_tracker.task_engine.model import Task, TaskStatus
from task_tracker.task_engine.state_machine import TaskStateMachine

NOW = "2026-01-01T00:00:00Z"


@pytest.fixture
def machine() -> TaskStateMachine:
    return TaskStateMachine(clock=lambda: NOW)


def _task(task_id: int = 1, status: TaskStatus = TaskStatus.PENDING, dod: str | None = "Tests pass") -> Task:
    return Task(id=task_id, title=f"T{task_id}", status=status, dod=dod,
                created_at="2025-01-01T00:00:00Z", last_touched_at="2025-01-01T00:00:00Z")


class TestTransitionTable:
    @pytest.mark.parametrize(
        "current,target,allowed",
        [
            (TaskStatus.PENDING, TaskStatus.IN_PROGRESS, True),
            (TaskStatus.PENDING, TaskStatus.BLOCKED, True),
            (TaskStatus.PENDING, TaskStatus.COMPLETED, False),
            (TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, True),
            (TaskStatus.IN_PROGRESS, TaskStatus.PENDING, True),
            (TaskStatus.BLOCKED, TaskStatus.PENDING, True),
            (TaskStatus.BLOCKED, TaskStatus.IN_PROGRESS, False),
            (TaskStatus.COMPLETED, TaskStatus.PENDING, False),
            (TaskStatus.COMPLETED, TaskStatus.IN_PROGRESS, False),
        ],
    )
    def test_can_transition(self, current: TaskStatus, target: TaskStatus, allowed: bool) -> None:
        assert TaskStateMachine.can_transition(current, target) is allowed

    def test_describe_lists_terminal_state(self) -> None:
        info = TaskStateMachine.describe()
        assert info["terminal"] == ["completed"]
        assert info["transitions"]["completed"] == []
        assert set(info["states"]) == {"pending", "in_progress", "completed", "blocked"}


class TestStart:
    def test_start_sets_timestamps(self, machine: TaskStateMachine) -> None:
        task = _task()
        started = machine.start(task, None, [])
        assert started.status == TaskStatus.IN_PROGRESS
        assert started.started_at == NOW
        assert started.last_touched_at == NOW
        assert task.status == TaskStatus.PENDING

    def test_start_already_active_is_noop(self, machine: TaskStateMachine) -> None:
        task = _task(status=TaskStatus.IN_PROGRESS)
        assert machine.start(task, task, []) is task

    def test_start_with_other_active_fails(self, machine: TaskStateMachine) -> None:
        other = _task(2, TaskStatus.IN_PROGRESS)
        with pytest.raises(TaskError) as exc_info:
            machine.start(_task(), other, [])
        assert exc_info.value.kind == ErrorKind.ANOTHER_TASK_ACTIVE
        assert exc_info.value.details["active_id"] == 2

    def test_start_with_unmet_dependencies_lists_them(self, machine: TaskStateMachine) -> None:
        deps = [_task(5), _task(3, TaskStatus.COMPLETED), _task(4, TaskStatus.BLOCKED)]
        with pytest.raises(TaskError) as exc_info:
            machine.start(_task(), None, deps)
        assert exc_info.value.kind == ErrorKind.UNMET_DEPENDENCIES
        assert exc_info.value.details["dependency_ids"] == [4, 5]

    def test_start_completed_dependencies_ok(self, machine: TaskStateMachine) -> None:
        deps = [_task(2, TaskStatus.COMPLETED)]
        assert machine.start(_task(), None, deps).status == TaskStatus.IN_PROGRESS

    @pytest.mark.parametrize("status", [TaskStatus.BLOCKED, TaskStatus.COMPLETED])
    def test_start_from_wrong_status(self, machine: TaskStateMachine, status: TaskStatus) -> None:
        with pytest.raises(TaskError) as exc_info:
            machine.start(_task(status=status), None, [])
        assert exc_info.value.kind == ErrorKind.INVALID_TRANSITION


class TestStopCompleteBlock:
    def test_stop_keeps_started_at(self, machine: TaskStateMachine) -> None:
        task = _task(status=TaskStatus.IN_PROGRESS)
        task.started_at = "2025-06-01T00:00:00Z"
        stopped = machine.stop(task)
        assert stopped.status == TaskStatus.PENDING
        assert stopped.started_at == "2025-06-01T00:00:00Z"

    def test_stop_requires_in_progress(self, machine: TaskStateMachine) -> None:
        with pytest.raises(TaskError, match="Cannot move #1"):
            machine.stop(_task())

    def test_complete_sets_completed_at(self, machine: TaskStateMachine) -> None:
        done = machine.complete(_task(status=TaskStatus.IN_PROGRESS))
        assert done.status == TaskStatus.COMPLETED
        assert done.completed_at == NOW

    @pytest.mark.parametrize("dod", [None, "", "   "])
    def test_complete_requires_dod(self, machine: TaskStateMachine, dod: str | None) -> None:
        with pytest.raises(TaskError) as exc_info:
            machine.complete(_task(status=TaskStatus.IN_PROGRESS, dod=dod))
        assert exc_info.value.kind == ErrorKind.MISSING_DEFINITION_OF_DONE

    def test_complete_from_pending_is_invalid(self, machine: TaskStateMachine) -> None:
        with pytest.raises(TaskError) as exc_info:
            machine.complete(_task())
        assert exc_info.value.kind == ErrorKind.INVALID_TRANSITION

    def test_block_and_unblock(self, machine: TaskStateMachine) -> None:
        blocked = machine.block(_task(status=TaskStatus.IN_PROGRESS))
        assert blocked.status == TaskStatus.BLOCKED
        assert machine.unblock(blocked).status == TaskStatus.PENDING

    def test_completed_is_terminal(self, machine: TaskStateMachine) -> None:
        done = _task(status=TaskStatus.COMPLETED)
        for action in (machine.block, machine.stop, machine.unblock, machine.complete):
            with pytest.raises(TaskError):
                action(done)
