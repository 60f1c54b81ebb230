"""Pick the next actionable task toward a target.

The answer is always one of four outcomes.  Reaching the target or finding
everything blocked are ordinary steady states, so they are returned as
values rather than raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Iterable, Optional, Sequence, Union

from ..errors import TaskError
from .graph import OrderConflict, adjacency, dependency_closure, order_conflicts, topological_order
from .model import DependencyInfo, EdgeSet, Task, TaskStatus


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------

@dataclass
class BlockedTask:
    """A remaining task and the dependencies it still waits on."""

    id: int
    title: str
    status: TaskStatus
    waiting_on: list[DependencyInfo] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status.value,
            "waiting_on": [w.to_dict() for w in self.waiting_on],
        }


@dataclass
class NextTask:
    kind: ClassVar[str] = "task"
    task: Task

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "task": self.task.to_dict()}


@dataclass
class TargetReached:
    kind: ClassVar[str] = "target_reached"
    target_id: Optional[int]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "target_id": self.target_id}


@dataclass
class AllBlocked:
    kind: ClassVar[str] = "all_blocked"
    tasks: list[BlockedTask]

    @property
    def ids(self) -> list[int]:
        return [t.id for t in self.tasks]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "tasks": [t.to_dict() for t in self.tasks]}


@dataclass
class NoneReady:
    """Work remains but nothing can be started right now."""

    kind: ClassVar[str] = "none_ready"
    waiting: list[BlockedTask]
    active_id: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "active_id": self.active_id,
            "waiting": [t.to_dict() for t in self.waiting],
        }


NextTaskOutcome = Union[NextTask, TargetReached, AllBlocked, NoneReady]


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------

def _waiting_on(task: Task, deps: Iterable[int], by_id: dict[int, Task]) -> list[DependencyInfo]:
    waiting: list[DependencyInfo] = []
    for dep_id in deps:
        dep = by_id.get(dep_id)
        if dep is not None and dep.status != TaskStatus.COMPLETED:
            waiting.append(DependencyInfo(dep.id, dep.title, dep.status))
    return waiting


def _select(remaining: Sequence[Task], by_id: dict[int, Task], edges: list[tuple[int, int]]) -> NextTaskOutcome:
    ordered = topological_order(remaining, edges)
    adj = adjacency(edges)

    for task in ordered:
        if task.status != TaskStatus.PENDING:
            continue
        # Dependencies are judged by status, including ones outside *remaining*.
        if not _waiting_on(task, adj.get(task.id, ()), by_id):
            return NextTask(task)

    summaries = [
        BlockedTask(t.id, t.title, t.status, _waiting_on(t, adj.get(t.id, ()), by_id))
        for t in ordered
    ]
    if all(t.status == TaskStatus.BLOCKED for t in ordered):
        return AllBlocked(summaries)
    active_id = next((t.id for t in ordered if t.status == TaskStatus.IN_PROGRESS), None)
    return NoneReady([s for s in summaries if s.id != active_id], active_id=active_id)


def next_task(target_id: int, tasks: Sequence[Task], edges: EdgeSet) -> NextTaskOutcome:
    """Return the next task to work on toward *target_id*.

    The candidates are the target and its transitive dependencies minus
    completed tasks, visited in dependency order with ``manual_order`` as the
    tie-breaker.
    """
    by_id = {t.id: t for t in tasks}
    target = by_id.get(target_id)
    if target is None:
        raise TaskError.not_found(target_id)
    if target.is_completed:
        return TargetReached(target_id)

    edge_list = list(edges)
    closure = dependency_closure(target_id, edge_list)
    remaining = [by_id[i] for i in closure if i in by_id and not by_id[i].is_completed]
    if not remaining:
        return TargetReached(target_id)
    return _select(remaining, by_id, edge_list)


def next_in_scope(tasks: Sequence[Task], edges: EdgeSet) -> NextTaskOutcome:
    """Like :func:`next_task` but over every non-completed task."""
    by_id = {t.id: t for t in tasks}
    remaining = [t for t in tasks if not t.is_completed]
    if not remaining:
        return NoneReady([])
    return _select(remaining, by_id, list(edges))


def plan(tasks: Sequence[Task], edges: EdgeSet) -> tuple[list[Task], list[OrderConflict]]:
    """Order *tasks* by dependency and report manual-order disagreements."""
    edge_list = list(edges)
    ordered = topological_order(tasks, edge_list)
    return ordered, order_conflicts(ordered, edge_list)
