"""Task model for the dependency-graph tracker.

Statuses are stored as text but decoded into :class:`TaskStatus` as soon as a
record leaves the store; nothing past :meth:`Task.from_dict` branches on raw
strings.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Iterable, NamedTuple, Optional

from ..errors import TaskError
from ..utils import _now_iso


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TaskStatus(str, Enum):
    """Lifecycle state of a task."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"  # terminal
    BLOCKED = "blocked"

    @property
    def icon(self) -> str:
        return {
            "pending": "○",
            "in_progress": "●",
            "completed": "✓",
            "blocked": "✗",
        }[self.value]

    @classmethod
    def decode(cls, raw: Any) -> "TaskStatus":
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw))
        except ValueError:
            raise TaskError.invalid_status(None if raw is None else str(raw)) from None


# ---------------------------------------------------------------------------
# Edges
# ---------------------------------------------------------------------------

class Dependency(NamedTuple):
    """``task_id`` cannot start until ``depends_on`` is completed."""

    task_id: int
    depends_on: int


EdgeSet = Iterable[tuple[int, int]]


# ---------------------------------------------------------------------------
# Task dataclass
# ---------------------------------------------------------------------------

@dataclass
class Task:
    """A unit of work in the dependency graph.

    ``manual_order`` is a secondary sort key among tasks that the dependency
    graph leaves unordered; it is not required to be unique.
    """

    id: int
    title: str
    description: Optional[str] = None
    dod: Optional[str] = None
    status: TaskStatus = TaskStatus.PENDING
    manual_order: float = 0.0
    created_at: str = field(default_factory=_now_iso)
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    last_touched_at: str = field(default_factory=_now_iso)

    @property
    def has_dod(self) -> bool:
        return bool(self.dod and self.dod.strip())

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    @property
    def sort_key(self) -> tuple[float, int]:
        return (self.manual_order, self.id)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict for YAML/JSON persistence."""
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        """Deserialize from a plain dict, decoding the status strictly."""
        created = str(data.get("created_at") or _now_iso())
        return cls(
            id=int(data["id"]),
            title=str(data.get("title", "")),
            description=data.get("description"),
            dod=data.get("dod"),
            status=TaskStatus.decode(data.get("status", TaskStatus.PENDING.value)),
            manual_order=float(data.get("manual_order", 0.0) or 0.0),
            created_at=created,
            started_at=data.get("started_at"),
            completed_at=data.get("completed_at"),
            last_touched_at=str(data.get("last_touched_at") or created),
        )


@dataclass
class Artifact:
    """A file produced while working on a task."""

    id: int
    task_id: int
    name: str
    file_path: str
    created_at: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Artifact":
        return cls(
            id=int(data["id"]),
            task_id=int(data["task_id"]),
            name=str(data.get("name", "")),
            file_path=str(data.get("file_path", "")),
            created_at=str(data.get("created_at") or _now_iso()),
        )


@dataclass
class DependencyInfo:
    id: int
    title: str
    status: TaskStatus

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "title": self.title, "status": self.status.value}


@dataclass
class TaskDetail:
    """A task together with its neighbourhood in the graph."""

    task: Task
    dependencies: list[DependencyInfo] = field(default_factory=list)
    dependents: list[int] = field(default_factory=list)
    artifacts: list[Artifact] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = self.task.to_dict()
        data["dependencies"] = [d.to_dict() for d in self.dependencies]
        data["dependents"] = list(self.dependents)
        data["artifacts"] = [a.to_dict() for a in self.artifacts]
        return data
