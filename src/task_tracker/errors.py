"""Closed set of error kinds raised by the task tracker.

Every failure the tracker reports is a :class:`TaskError` tagged with one
:class:`ErrorKind`.  Front-ends branch on ``kind`` (and the structured
``details``) rather than on exception subclasses or message text.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Optional


class ErrorKind(str, Enum):
    # Precondition violations
    INVALID_TRANSITION = "invalid_transition"
    UNMET_DEPENDENCIES = "unmet_dependencies"
    MISSING_DEFINITION_OF_DONE = "missing_definition_of_done"
    ANOTHER_TASK_ACTIVE = "another_task_active"
    NO_ACTIVE_TASK = "no_active_task"
    NO_TARGET = "no_target"
    MISSING_POSITION_HINT = "missing_position_hint"
    DEPENDENCY_EXISTS = "dependency_exists"
    DEPENDENCY_NOT_FOUND = "dependency_not_found"
    NOT_INITIALIZED = "not_initialized"
    ALREADY_INITIALIZED = "already_initialized"
    DELETE_UNSUPPORTED = "delete_unsupported"
    CONFLICTING_SCOPE = "conflicting_scope"
    # Structural violations
    CYCLE_DETECTED = "cycle_detected"
    SELF_DEPENDENCY = "self_dependency"
    # Numeric exhaustion
    PRECISION_EXHAUSTED = "precision_exhausted"
    # Lookups and decoding
    TASK_NOT_FOUND = "task_not_found"
    INVALID_STATUS = "invalid_status"

    @property
    def category(self) -> str:
        if self in _STRUCTURAL:
            return "structural"
        if self is ErrorKind.PRECISION_EXHAUSTED:
            return "numeric"
        if self is ErrorKind.TASK_NOT_FOUND:
            return "not_found"
        return "precondition"


_STRUCTURAL = {ErrorKind.CYCLE_DETECTED, ErrorKind.SELF_DEPENDENCY}


def _refs(ids: Iterable[int]) -> str:
    return ", ".join(f"#{i}" for i in ids)


class TaskError(ValueError):
    """A rejected tracker operation.

    Raising never leaves partial state behind: callers raise before any
    mutation is written back to the store.
    """

    def __init__(self, kind: ErrorKind, message: str, **details: Any) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "category": self.kind.category,
            "message": self.message,
            "details": dict(self.details),
        }

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def not_found(cls, task_id: int) -> "TaskError":
        return cls(ErrorKind.TASK_NOT_FOUND, f"Task #{task_id} not found", task_id=task_id)

    @classmethod
    def invalid_transition(cls, task_id: int, from_status: str, to_status: str) -> "TaskError":
        return cls(
            ErrorKind.INVALID_TRANSITION,
            f"Cannot move #{task_id} from {from_status} to {to_status}",
            task_id=task_id,
            from_status=from_status,
            to_status=to_status,
        )

    @classmethod
    def unmet_dependencies(cls, task_id: int, dependency_ids: list[int]) -> "TaskError":
        return cls(
            ErrorKind.UNMET_DEPENDENCIES,
            f"Cannot start #{task_id}: dependencies not completed: {_refs(dependency_ids)}",
            task_id=task_id,
            dependency_ids=list(dependency_ids),
        )

    @classmethod
    def missing_dod(cls, task_id: int) -> "TaskError":
        return cls(
            ErrorKind.MISSING_DEFINITION_OF_DONE,
            f"Task #{task_id} has no definition of done. Set one with `tt edit {task_id} --dod`",
            task_id=task_id,
        )

    @classmethod
    def another_active(cls, active_id: int) -> "TaskError":
        return cls(
            ErrorKind.ANOTHER_TASK_ACTIVE,
            f"Task #{active_id} is already in progress. Finish or stop it first.",
            active_id=active_id,
        )

    @classmethod
    def no_active_task(cls) -> "TaskError":
        return cls(ErrorKind.NO_ACTIVE_TASK, "No task is currently in progress")

    @classmethod
    def no_target(cls) -> "TaskError":
        return cls(ErrorKind.NO_TARGET, "No target set. Use `tt target <id>` first.")

    @classmethod
    def cycle(cls, task_id: int, depends_on: int, path: list[int]) -> "TaskError":
        rendered = " -> ".join(f"#{i}" for i in path)
        return cls(
            ErrorKind.CYCLE_DETECTED,
            f"Adding #{task_id} -> #{depends_on} would create a cycle: {rendered}",
            task_id=task_id,
            depends_on=depends_on,
            path=list(path),
        )

    @classmethod
    def precision_exhausted(cls, lower: float, upper: float) -> "TaskError":
        return cls(
            ErrorKind.PRECISION_EXHAUSTED,
            "Float precision exhausted. Run `tt reindex` to clean up ordering.",
            lower=lower,
            upper=upper,
        )

    @classmethod
    def invalid_status(cls, raw: Optional[str]) -> "TaskError":
        return cls(ErrorKind.INVALID_STATUS, f"Invalid status: {raw!r}", raw=raw)
