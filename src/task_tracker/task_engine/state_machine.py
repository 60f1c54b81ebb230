"""Status transitions and their guards.

The machine works on snapshots: every method returns a new :class:`Task`
(or the input unchanged for idempotent calls) and never mutates its
arguments, so a rejected transition leaves nothing half-applied.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable, Optional, Sequence

from ..errors import TaskError
from ..utils import _now_iso
from .model import Task, TaskStatus


# ---------------------------------------------------------------------------
# Valid status transitions
# ---------------------------------------------------------------------------

_VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PENDING: {TaskStatus.IN_PROGRESS, TaskStatus.BLOCKED},
    TaskStatus.IN_PROGRESS: {TaskStatus.PENDING, TaskStatus.COMPLETED, TaskStatus.BLOCKED},
    TaskStatus.BLOCKED: {TaskStatus.PENDING},
    TaskStatus.COMPLETED: set(),  # terminal
}

_GUARDS: dict[str, str] = {
    "in_progress": "No other task is in progress and every dependency is completed.",
    "completed": "The task has a non-empty definition of done.",
}


class TaskStateMachine:
    """Validate one status change and compute its side effects."""

    def __init__(self, clock: Callable[[], str] = _now_iso) -> None:
        self._clock = clock

    @staticmethod
    def can_transition(current: TaskStatus, target: TaskStatus) -> bool:
        return target in _VALID_TRANSITIONS.get(current, set())

    def _check(self, task: Task, target: TaskStatus) -> None:
        if not self.can_transition(task.status, target):
            raise TaskError.invalid_transition(task.id, task.status.value, target.value)

    def _apply(self, task: Task, target: TaskStatus, **changes: Any) -> Task:
        return replace(task, status=target, last_touched_at=self._clock(), **changes)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(
        self,
        task: Task,
        active: Optional[Task],
        dependencies: Sequence[Task],
    ) -> Task:
        """pending -> in_progress.

        *active* is whichever task is currently in progress (if any) and
        *dependencies* are the direct dependencies of *task*.  Starting the
        task that is already active returns it unchanged.
        """
        if task.status == TaskStatus.IN_PROGRESS:
            return task
        self._check(task, TaskStatus.IN_PROGRESS)
        if active is not None and active.id != task.id:
            raise TaskError.another_active(active.id)
        unmet = sorted(d.id for d in dependencies if d.status != TaskStatus.COMPLETED)
        if unmet:
            raise TaskError.unmet_dependencies(task.id, unmet)
        now = self._clock()
        return replace(task, status=TaskStatus.IN_PROGRESS, started_at=now, last_touched_at=now)

    def stop(self, task: Task) -> Task:
        """in_progress -> pending; timestamps are kept."""
        if task.status != TaskStatus.IN_PROGRESS:
            raise TaskError.invalid_transition(task.id, task.status.value, TaskStatus.PENDING.value)
        return self._apply(task, TaskStatus.PENDING)

    def complete(self, task: Task) -> Task:
        """in_progress -> completed, gated on a definition of done."""
        self._check(task, TaskStatus.COMPLETED)
        if not task.has_dod:
            raise TaskError.missing_dod(task.id)
        now = self._clock()
        return replace(task, status=TaskStatus.COMPLETED, completed_at=now, last_touched_at=now)

    def block(self, task: Task) -> Task:
        self._check(task, TaskStatus.BLOCKED)
        return self._apply(task, TaskStatus.BLOCKED)

    def unblock(self, task: Task) -> Task:
        if task.status != TaskStatus.BLOCKED:
            raise TaskError.invalid_transition(task.id, task.status.value, TaskStatus.PENDING.value)
        return self._apply(task, TaskStatus.PENDING)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @staticmethod
    def describe() -> dict[str, Any]:
        """Return states, transitions and guards for front-ends."""
        return {
            "states": [s.value for s in TaskStatus],
            "transitions": {
                src.value: sorted(dst.value for dst in targets)
                for src, targets in _VALID_TRANSITIONS.items()
            },
            "guards": dict(_GUARDS),
            "terminal": [TaskStatus.COMPLETED.value],
        }
