"""Task engine: the entry-point for every tracker operation.

Each public method runs exactly one :meth:`TaskStore.transaction`: read the
snapshot, compute with the pure helpers (ordering, graph, state machine,
scheduler), write back, return.  Errors are raised before anything is written.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from ..constants import STATE_DIR_NAME
from ..errors import ErrorKind, TaskError
from ..utils import _now_iso
from . import scheduler
from .graph import OrderConflict, adjacency, dependents_map, order_conflicts, would_create_cycle
from .model import Artifact, DependencyInfo, Task, TaskDetail, TaskStatus
from .ordering import OrderAllocator
from .scheduler import NextTaskOutcome
from .state_machine import TaskStateMachine
from .store import TaskStore, _TaskTx


class TaskEngine:
    """Manage tasks, dependencies, ordering and the target for one project.

    Parameters
    ----------
    state_dir:
        Path to the ``.tt/`` directory.
    """

    def __init__(self, state_dir: Path) -> None:
        self.store = TaskStore(state_dir)
        self.allocator = OrderAllocator()
        self.machine = TaskStateMachine()

    @classmethod
    def for_project(cls, project_dir: Path) -> "TaskEngine":
        return cls(project_dir / STATE_DIR_NAME)

    def init(self) -> Path:
        self.store.initialize()
        logger.info("Initialized task store at {}", self.store.path)
        return self.store.path

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create_task(
        self,
        title: str,
        description: Optional[str] = None,
        dod: Optional[str] = None,
        after_id: Optional[int] = None,
        before_id: Optional[int] = None,
    ) -> Task:
        """Create and persist a new pending task, returning it."""
        with self.store.transaction() as tx:
            order = self._position(tx, after_id, before_id)
            task = tx.create(title, description=description, dod=dod, manual_order=order)
        logger.info("Created task #{} (order {}): {}", task.id, order, title)
        return task

    def get_task(self, task_id: int) -> Task:
        return self.store.read_snapshot().require(task_id)

    def task_detail(self, task_id: int) -> TaskDetail:
        tx = self.store.read_snapshot()
        return self._detail(tx, tx.require(task_id))

    def update_task(
        self,
        task_id: int,
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
        dod: Optional[str] = None,
        clear_description: bool = False,
        clear_dod: bool = False,
    ) -> TaskDetail:
        """Apply partial edits to the text fields of a task."""
        changes: dict[str, Any] = {}
        if title is not None:
            changes["title"] = title
        if clear_description:
            changes["description"] = None
        elif description is not None:
            changes["description"] = description
        if clear_dod:
            changes["dod"] = None
        elif dod is not None:
            changes["dod"] = dod

        with self.store.transaction() as tx:
            task = tx.require(task_id)
            if changes:
                task = tx.put(replace(task, last_touched_at=_now_iso(), **changes))
                logger.info("Updated task #{}: {}", task_id, sorted(changes))
            return self._detail(tx, task)

    def delete_task(self, task_id: int) -> None:
        self.store.read_snapshot().require(task_id)
        raise TaskError(
            ErrorKind.DELETE_UNSUPPORTED,
            f"Task #{task_id} cannot be deleted; tasks are never removed",
            task_id=task_id,
        )

    def list_tasks(
        self,
        all_tasks: bool = False,
        status: Optional[TaskStatus] = None,
        search: Optional[str] = None,
    ) -> tuple[list[TaskDetail], list[OrderConflict]]:
        """Return tasks in dependency order with manual-order warnings.

        By default only the target subgraph is listed.  *status* and *search*
        narrow the rows shown; ordering and warnings still cover the whole scope.
        """
        tx = self.store.read_snapshot()
        if all_tasks:
            tasks = tx.list_all()
        else:
            if tx.target_id is None:
                raise TaskError.no_target()
            tasks = tx.target_subgraph(tx.target_id)
        edges = tx.all_edges()
        ordered, conflicts = scheduler.plan(tasks, edges)
        if status is not None or search:
            keep = {t.id for t in tx.find(status=status, search=search)}
            ordered = [t for t in ordered if t.id in keep]

        deps_index = adjacency(edges)
        dependents_index = dependents_map(edges)
        artifacts_index = tx.artifacts_by_task()
        details = [
            self._build_detail(
                tx,
                t,
                deps_index.get(t.id, []),
                dependents_index.get(t.id, []),
                artifacts_index.get(t.id, []),
            )
            for t in ordered
        ]
        return details, conflicts

    # ------------------------------------------------------------------
    # Target & scheduling
    # ------------------------------------------------------------------

    def set_target(self, task_id: int) -> Task:
        with self.store.transaction() as tx:
            task = tx.require(task_id)
            tx.set_target(task_id)
        logger.info("Target set to #{}", task_id)
        return task

    def get_target(self) -> Optional[int]:
        return self.store.read_snapshot().target_id

    def clear_target(self) -> None:
        with self.store.transaction() as tx:
            tx.set_target(None)

    def next_task(self, all_tasks: bool = False, target_id: Optional[int] = None) -> NextTaskOutcome:
        """Answer "what should be worked on next" for the target (or everything)."""
        if all_tasks and target_id is not None:
            raise TaskError(
                ErrorKind.CONFLICTING_SCOPE,
                "Pass either all_tasks or target_id, not both",
                target_id=target_id,
            )
        tx = self.store.read_snapshot()
        tasks = tx.list_all()
        if all_tasks:
            return scheduler.next_in_scope(tasks, tx.all_edges())
        root = target_id if target_id is not None else tx.target_id
        if root is None:
            raise TaskError.no_target()
        return scheduler.next_task(root, tasks, tx.all_edges())

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def start_task(self, task_id: int) -> TaskDetail:
        with self.store.transaction() as tx:
            task = tx.require(task_id)
            deps = [tx.require(d) for d in tx.dependencies_of(task_id)]
            started = self.machine.start(task, tx.active_task(), deps)
            if started is not task:
                tx.put(started)
                logger.info("Started task #{}", task_id)
            return self._detail(tx, started)

    def stop_task(self, task_id: Optional[int] = None) -> TaskDetail:
        with self.store.transaction() as tx:
            task = self._active_or(tx, task_id)
            stopped = tx.put(self.machine.stop(task))
            logger.info("Stopped task #{}", stopped.id)
            return self._detail(tx, stopped)

    def complete_task(self, task_id: Optional[int] = None) -> TaskDetail:
        with self.store.transaction() as tx:
            task = self._active_or(tx, task_id)
            done = tx.put(self.machine.complete(task))
            logger.info("Completed task #{}", done.id)
            return self._detail(tx, done)

    def block_task(self, task_id: int) -> TaskDetail:
        with self.store.transaction() as tx:
            blocked = tx.put(self.machine.block(tx.require(task_id)))
            logger.info("Blocked task #{}", task_id)
            return self._detail(tx, blocked)

    def unblock_task(self, task_id: int) -> TaskDetail:
        with self.store.transaction() as tx:
            pending = tx.put(self.machine.unblock(tx.require(task_id)))
            logger.info("Unblocked task #{}", task_id)
            return self._detail(tx, pending)

    def current_task(self) -> TaskDetail:
        tx = self.store.read_snapshot()
        active = tx.active_task()
        if active is None:
            raise TaskError.no_active_task()
        return self._detail(tx, active)

    # ------------------------------------------------------------------
    # Dependency management
    # ------------------------------------------------------------------

    def add_dependency(self, task_id: int, depends_on: int) -> list[OrderConflict]:
        """Record that ``task_id`` depends on ``depends_on``.

        The cycle check runs against the current edge set before anything is
        written.  Returns manual-order conflicts the new edge introduces; they
        are warnings only.
        """
        if task_id == depends_on:
            raise TaskError(ErrorKind.SELF_DEPENDENCY, "Cannot depend on self", task_id=task_id)

        with self.store.transaction() as tx:
            task = tx.require(task_id)
            dep = tx.require(depends_on)
            if tx.has_edge(task_id, depends_on):
                raise TaskError(
                    ErrorKind.DEPENDENCY_EXISTS,
                    f"#{task_id} already depends on #{depends_on}",
                    task_id=task_id,
                    depends_on=depends_on,
                )
            path = would_create_cycle(tx.all_edges(), task_id, depends_on)
            if path is not None:
                raise TaskError.cycle(task_id, depends_on, path)
            tx.add_edge(task_id, depends_on)

        logger.info("Added dependency #{} -> #{}", task_id, depends_on)
        conflicts = order_conflicts([task, dep], [(task_id, depends_on)])
        for conflict in conflicts:
            logger.warning(conflict.message())
        return conflicts

    def remove_dependency(self, task_id: int, depends_on: int) -> None:
        with self.store.transaction() as tx:
            tx.require(task_id)
            tx.require(depends_on)
            if not tx.remove_edge(task_id, depends_on):
                raise TaskError(
                    ErrorKind.DEPENDENCY_NOT_FOUND,
                    f"#{task_id} does not depend on #{depends_on}",
                    task_id=task_id,
                    depends_on=depends_on,
                )
        logger.info("Removed dependency #{} -> #{}", task_id, depends_on)

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def reorder(self, task_id: int, after_id: Optional[int] = None, before_id: Optional[int] = None) -> float:
        """Move a task next to one or between two others; returns its new order."""
        if after_id is None and before_id is None:
            raise TaskError(
                ErrorKind.MISSING_POSITION_HINT,
                "Cannot modify manual order: need at least one of --after or --before",
            )
        with self.store.transaction() as tx:
            tx.require(task_id)
            order = self._position(tx, after_id, before_id)
            tx.set_order(task_id, order)
        logger.info("Moved task #{} to order {}", task_id, order)
        return order

    def reindex(self) -> int:
        """Renumber every task to clean multiples of the order step."""
        with self.store.transaction() as tx:
            ordered = sorted(tx.list_all(), key=lambda t: t.sort_key)
            mapping = self.allocator.reindex([t.id for t in ordered])
            for task_id, order in mapping:
                tx.set_order(task_id, order)
        logger.info("Reindexed {} tasks", len(mapping))
        return len(mapping)

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    def log_artifact(self, name: str, file_path: str, task_id: Optional[int] = None) -> Artifact:
        with self.store.transaction() as tx:
            owner = tx.require(task_id) if task_id is not None else self._active_or(tx, None)
            artifact = tx.add_artifact(owner.id, name, file_path)
        logger.info("Logged artifact {} for task #{}", name, artifact.task_id)
        return artifact

    def list_artifacts(self, task_id: Optional[int] = None) -> list[Artifact]:
        tx = self.store.read_snapshot()
        owner = tx.require(task_id) if task_id is not None else self._active_or(tx, None)
        return tx.artifacts_for(owner.id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _position(self, tx: _TaskTx, after_id: Optional[int], before_id: Optional[int]) -> float:
        after = tx.require(after_id).manual_order if after_id is not None else None
        before = tx.require(before_id).manual_order if before_id is not None else None
        return self.allocator.position(after=after, before=before, max_existing=tx.max_order())

    @staticmethod
    def _active_or(tx: _TaskTx, task_id: Optional[int]) -> Task:
        if task_id is not None:
            return tx.require(task_id)
        active = tx.active_task()
        if active is None:
            raise TaskError.no_active_task()
        return active

    @classmethod
    def _detail(cls, tx: _TaskTx, task: Task) -> TaskDetail:
        return cls._build_detail(
            tx,
            task,
            tx.dependencies_of(task.id),
            tx.dependents_of(task.id),
            tx.artifacts_for(task.id),
        )

    @staticmethod
    def _build_detail(
        tx: _TaskTx,
        task: Task,
        dependency_ids: list[int],
        dependent_ids: list[int],
        artifacts: list[Artifact],
    ) -> TaskDetail:
        deps = [tx.require(d) for d in dependency_ids]
        return TaskDetail(
            task=task,
            dependencies=[DependencyInfo(d.id, d.title, d.status) for d in deps],
            dependents=list(dependent_ids),
            artifacts=list(artifacts),
        )
