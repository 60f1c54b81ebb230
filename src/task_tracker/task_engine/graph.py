"""Cycle detection and dependency-respecting ordering.

Edges are ``(task_id, depends_on)`` pairs supplied by the caller; nothing here
touches storage.  Adjacency maps are built once per call from the edge set.
"""

from __future__ import annotations

import heapq
from collections import defaultdict, deque
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Optional, Sequence

from ..errors import ErrorKind, TaskError
from .model import EdgeSet, Task


@dataclass
class OrderConflict:
    """``task_id`` sorts before one of its own dependencies by manual order."""

    task_id: int
    task_order: float
    dep_id: int
    dep_order: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def message(self) -> str:
        return (
            f"#{self.task_id} (order {self.task_order:g}) depends on #{self.dep_id} "
            f"(order {self.dep_order:g}) which has higher manual_order"
        )


# ---------------------------------------------------------------------------
# Index helpers
# ---------------------------------------------------------------------------

def adjacency(edges: EdgeSet) -> dict[int, list[int]]:
    """Return ``{task_id: [depends_on, ...]}`` with sorted, de-duplicated targets."""
    adj: dict[int, set[int]] = defaultdict(set)
    for task_id, depends_on in edges:
        adj[task_id].add(depends_on)
    return {k: sorted(v) for k, v in adj.items()}


def dependents_map(edges: EdgeSet) -> dict[int, list[int]]:
    """Return ``{depends_on: [task_id, ...]}`` (reverse of :func:`adjacency`)."""
    rev: dict[int, set[int]] = defaultdict(set)
    for task_id, depends_on in edges:
        rev[depends_on].add(task_id)
    return {k: sorted(v) for k, v in rev.items()}


def dependency_closure(root: int, edges: EdgeSet) -> set[int]:
    """Return *root* plus every task it transitively depends on."""
    adj = adjacency(edges)
    seen: set[int] = {root}
    queue: deque[int] = deque([root])
    while queue:
        current = queue.popleft()
        for dep in adj.get(current, ()):
            if dep not in seen:
                seen.add(dep)
                queue.append(dep)
    return seen


# ---------------------------------------------------------------------------
# Cycle detection
# ---------------------------------------------------------------------------

def would_create_cycle(edges: EdgeSet, new_from: int, new_to: int) -> Optional[list[int]]:
    """Check whether ``new_from`` depending on ``new_to`` would close a loop.

    A loop exists iff ``new_from`` is already reachable from ``new_to`` by
    following depends-on edges.  Returns the loop as
    ``[new_from, new_to, ..., new_from]`` or ``None``.

    The search is iterative and never revisits a node, so it terminates even
    if *edges* already contains a cycle.
    """
    if new_from == new_to:
        return [new_from, new_to]

    adj = adjacency(edges)
    visited: set[int] = {new_to}
    path: list[int] = [new_to]
    stack = [iter(adj.get(new_to, ()))]

    while stack:
        nxt = next(stack[-1], None)
        if nxt is None:
            stack.pop()
            path.pop()
            continue
        if nxt == new_from:
            return [new_from, *path, new_from]
        if nxt in visited:
            continue
        visited.add(nxt)
        path.append(nxt)
        stack.append(iter(adj.get(nxt, ())))
    return None


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------

def topological_order(tasks: Sequence[Task], edges: EdgeSet) -> list[Task]:
    """Kahn's algorithm with a ``(manual_order, id)`` min-heap.

    Among tasks whose dependencies have all been emitted, the lowest
    ``manual_order`` goes first and ``id`` breaks exact ties.  Edges with an
    endpoint outside *tasks* do not count toward in-degree.

    Raises :class:`TaskError` (``CYCLE_DETECTED``) if some tasks could never
    be emitted; its ``ids`` detail lists them.
    """
    by_id: dict[int, Task] = {t.id: t for t in tasks}
    in_degree: dict[int, int] = {tid: 0 for tid in by_id}
    dependents: dict[int, list[int]] = defaultdict(list)

    for task_id, depends_on in set(edges):
        if task_id in by_id and depends_on in by_id:
            dependents[depends_on].append(task_id)
            in_degree[task_id] += 1

    heap: list[tuple[float, int]] = [
        by_id[tid].sort_key for tid, deg in in_degree.items() if deg == 0
    ]
    heapq.heapify(heap)

    ordered: list[Task] = []
    while heap:
        _, tid = heapq.heappop(heap)
        ordered.append(by_id[tid])
        for dependent in dependents.get(tid, ()):
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                heapq.heappush(heap, by_id[dependent].sort_key)

    if len(ordered) < len(by_id):
        # On a loop or downstream of one.
        unsorted = sorted(tid for tid, deg in in_degree.items() if deg > 0)
        raise TaskError(
            ErrorKind.CYCLE_DETECTED,
            f"Dependency cycle blocks ordering of tasks: {', '.join(f'#{i}' for i in unsorted)}",
            ids=unsorted,
        )
    return ordered


def order_conflicts(sorted_tasks: Iterable[Task], edges: EdgeSet) -> list[OrderConflict]:
    """Report edges inside the set whose manual order points the other way."""
    sorted_tasks = list(sorted_tasks)
    orders = {t.id: t.manual_order for t in sorted_tasks}
    adj = adjacency(edges)
    conflicts: list[OrderConflict] = []
    for task in sorted_tasks:
        for dep_id in adj.get(task.id, ()):
            dep_order = orders.get(dep_id)
            if dep_order is not None and task.manual_order < dep_order:
                conflicts.append(OrderConflict(task.id, task.manual_order, dep_id, dep_order))
    return conflicts
