"""File-based task store with exclusive locking.

Tasks, dependency edges, artifacts and the current target live in a single
YAML document (``tasks.yaml``) inside the project's ``.tt/`` directory.  All
reads and writes go through :meth:`TaskStore.transaction`, which holds an
exclusive file lock for the whole read-compute-write cycle so every operation
sees one consistent snapshot.
"""

from __future__ import annotations

from collections import defaultdict
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

from ..constants import STORE_FILE, STORE_LOCK_FILE, STORE_VERSION, TARGET_CONFIG_KEY
from ..errors import ErrorKind, TaskError
from ..io_utils import FileLock, _atomic_write_yaml, _load_data_with_error
from ..utils import _now_iso
from .graph import dependency_closure
from .model import Artifact, Dependency, Task, TaskStatus


# ---------------------------------------------------------------------------
# TaskStore
# ---------------------------------------------------------------------------

class TaskStore:
    """Lock-guarded, file-backed store for tasks and their dependency edges.

    Parameters
    ----------
    state_dir:
        Path to the ``.tt/`` directory for the project.
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = state_dir
        self._store_path = state_dir / STORE_FILE
        self._lock_path = state_dir / STORE_LOCK_FILE

    @property
    def path(self) -> Path:
        return self._store_path

    def is_initialized(self) -> bool:
        return self._store_path.exists()

    def initialize(self) -> None:
        """Create an empty store; refuses to overwrite an existing one."""
        with FileLock(self._lock_path):
            if self._store_path.exists():
                raise TaskError(ErrorKind.ALREADY_INITIALIZED, "Project already initialized")
            self._save(_TaskTx.empty())

    # -- internal helpers ---------------------------------------------------

    def _require_initialized(self) -> None:
        if not self.is_initialized():
            raise TaskError(ErrorKind.NOT_INITIALIZED, "Project not initialized. Run `tt init` first.")

    def _load(self) -> "_TaskTx":
        self._require_initialized()
        data, err = _load_data_with_error(self._store_path, {})
        if err:
            raise RuntimeError(f"Cannot read task store: {err}")
        return _TaskTx.from_dict(data)

    def _save(self, tx: "_TaskTx") -> None:
        _atomic_write_yaml(self._store_path, tx.to_dict())

    # -- public API ---------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator["_TaskTx"]:
        """Acquire the lock, load the snapshot, yield it, and save on exit.

        Nothing is written if the block raises or leaves the snapshot clean.

        Usage::

            with store.transaction() as tx:
                task = tx.require(3)
                tx.put(replace(task, title="New"))
                # saved on exit
        """
        # Checked before locking so a missing project leaves no .tt/ behind.
        self._require_initialized()
        with FileLock(self._lock_path):
            tx = self._load()
            yield tx
            if tx.dirty:
                self._save(tx)

    def read_snapshot(self) -> "_TaskTx":
        """Return a detached snapshot; changes to it are never saved."""
        self._require_initialized()
        with FileLock(self._lock_path):
            return self._load()


class _TaskTx:
    """In-memory snapshot of the whole store.

    Mutations flag the snapshot dirty and are flushed back to disk when the
    ``transaction`` context-manager exits.
    """

    def __init__(
        self,
        tasks: list[Task],
        edges: list[Dependency],
        artifacts: list[Artifact],
        target_id: Optional[int],
        next_task_id: int,
        next_artifact_id: int,
    ) -> None:
        self._tasks: dict[int, Task] = {t.id: t for t in tasks}
        self._edges: list[Dependency] = list(edges)
        self._artifacts = list(artifacts)
        self.target_id = target_id
        self._next_task_id = next_task_id
        self._next_artifact_id = next_artifact_id
        self.dirty = False

    # -- (de)serialization --------------------------------------------------

    @classmethod
    def empty(cls) -> "_TaskTx":
        return cls([], [], [], None, 1, 1)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "_TaskTx":
        tasks = [Task.from_dict(d) for d in data.get("tasks") or []]
        edges = [
            Dependency(int(e["task_id"]), int(e["depends_on"]))
            for e in data.get("dependencies") or []
        ]
        artifacts = [Artifact.from_dict(a) for a in data.get("artifacts") or []]
        raw_target = data.get(TARGET_CONFIG_KEY)
        next_task_id = int(data.get("next_task_id") or 0) or max((t.id for t in tasks), default=0) + 1
        next_artifact_id = int(data.get("next_artifact_id") or 0) or max((a.id for a in artifacts), default=0) + 1
        return cls(
            tasks,
            edges,
            artifacts,
            int(raw_target) if raw_target is not None else None,
            next_task_id,
            next_artifact_id,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": STORE_VERSION,
            "next_task_id": self._next_task_id,
            "next_artifact_id": self._next_artifact_id,
            TARGET_CONFIG_KEY: self.target_id,
            "tasks": [t.to_dict() for t in self.list_all()],
            "dependencies": [e._asdict() for e in self._edges],
            "artifacts": [a.to_dict() for a in self._artifacts],
        }

    # -- task lookups -------------------------------------------------------

    def get(self, task_id: int) -> Optional[Task]:
        return self._tasks.get(task_id)

    def require(self, task_id: int) -> Task:
        task = self.get(task_id)
        if task is None:
            raise TaskError.not_found(task_id)
        return task

    def list_all(self) -> list[Task]:
        return [self._tasks[k] for k in sorted(self._tasks)]

    def find(self, *, status: Optional[TaskStatus] = None, search: Optional[str] = None) -> list[Task]:
        out: list[Task] = []
        for t in self.list_all():
            if status is not None and t.status != status:
                continue
            if search:
                q = search.lower()
                haystack = " ".join(filter(None, [t.title, t.description, t.dod])).lower()
                if q not in haystack:
                    continue
            out.append(t)
        return out

    def active_task(self) -> Optional[Task]:
        """The task currently in progress, found by query rather than a cached flag."""
        for t in self.list_all():
            if t.status == TaskStatus.IN_PROGRESS:
                return t
        return None

    def max_order(self) -> Optional[float]:
        if not self._tasks:
            return None
        return max(t.manual_order for t in self._tasks.values())

    # -- task mutations -----------------------------------------------------

    def create(
        self,
        title: str,
        *,
        description: Optional[str] = None,
        dod: Optional[str] = None,
        manual_order: float,
    ) -> Task:
        now = _now_iso()
        task = Task(
            id=self._next_task_id,
            title=title,
            description=description,
            dod=dod,
            manual_order=manual_order,
            created_at=now,
            last_touched_at=now,
        )
        self._tasks[task.id] = task
        self._next_task_id += 1
        self.dirty = True
        return task

    def put(self, task: Task) -> Task:
        """Replace the stored copy of an existing task."""
        self.require(task.id)
        self._tasks[task.id] = task
        self.dirty = True
        return task

    def set_order(self, task_id: int, order: float) -> Task:
        task = self.require(task_id)
        if task.manual_order != order:
            task.manual_order = order
            task.last_touched_at = _now_iso()
            self.dirty = True
        return task

    # -- edges --------------------------------------------------------------

    def all_edges(self) -> list[Dependency]:
        return list(self._edges)

    def dependencies_of(self, task_id: int) -> list[int]:
        return sorted(e.depends_on for e in self._edges if e.task_id == task_id)

    def dependents_of(self, task_id: int) -> list[int]:
        return sorted(e.task_id for e in self._edges if e.depends_on == task_id)

    def has_edge(self, task_id: int, depends_on: int) -> bool:
        return Dependency(task_id, depends_on) in self._edges

    def add_edge(self, task_id: int, depends_on: int) -> None:
        self._edges.append(Dependency(task_id, depends_on))
        self.dirty = True

    def remove_edge(self, task_id: int, depends_on: int) -> bool:
        edge = Dependency(task_id, depends_on)
        if edge not in self._edges:
            return False
        self._edges.remove(edge)
        self.dirty = True
        return True

    def target_subgraph(self, target_id: int) -> list[Task]:
        """Target plus every transitive dependency, completed ones included."""
        self.require(target_id)
        ids = dependency_closure(target_id, self._edges)
        return [self._tasks[i] for i in sorted(ids) if i in self._tasks]

    # -- target -------------------------------------------------------------

    def set_target(self, task_id: Optional[int]) -> None:
        if self.target_id != task_id:
            self.target_id = task_id
            self.dirty = True

    # -- artifacts ----------------------------------------------------------

    def add_artifact(self, task_id: int, name: str, file_path: str) -> Artifact:
        self.require(task_id)
        artifact = Artifact(id=self._next_artifact_id, task_id=task_id, name=name, file_path=file_path)
        self._artifacts.append(artifact)
        self._next_artifact_id += 1
        self.dirty = True
        return artifact

    def artifacts_for(self, task_id: int) -> list[Artifact]:
        return [a for a in self._artifacts if a.task_id == task_id]

    def artifacts_by_task(self) -> dict[int, list[Artifact]]:
        grouped: dict[int, list[Artifact]] = defaultdict(list)
        for a in self._artifacts:
            grouped[a.task_id].append(a)
        return dict(grouped)
