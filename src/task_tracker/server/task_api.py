"""REST endpoints for tasks, dependencies, ordering and the target.

This module provides a FastAPI router mounted under ``/api/tasks`` by the
``create_app`` factory.  Engine errors propagate as
:class:`~task_tracker.errors.TaskError` and are turned into JSON responses by
the app-level exception handler.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from ..task_engine.engine import TaskEngine
from ..task_engine.model import TaskStatus
from ..task_engine.state_machine import TaskStateMachine


# ---------------------------------------------------------------------------
# Pydantic request / response models
# ---------------------------------------------------------------------------

class CreateTaskRequest(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    dod: Optional[str] = None
    after_id: Optional[int] = None
    before_id: Optional[int] = None


class UpdateTaskRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    dod: Optional[str] = None
    clear_description: bool = False
    clear_dod: bool = False


class AddDependencyRequest(BaseModel):
    depends_on: int


class ReorderRequest(BaseModel):
    after_id: Optional[int] = None
    before_id: Optional[int] = None


class TargetRequest(BaseModel):
    task_id: int


class ArtifactRequest(BaseModel):
    name: str = Field(min_length=1)
    file_path: str = Field(min_length=1)


class TaskResponse(BaseModel):
    """Standard wrapper for task responses."""
    task: dict[str, Any]


class TaskListResponse(BaseModel):
    tasks: list[dict[str, Any]]
    total: int
    order_conflicts: list[dict[str, Any]] = Field(default_factory=list)


class TargetResponse(BaseModel):
    target_id: Optional[int]


class StateMachineResponse(BaseModel):
    states: list[str]
    transitions: dict[str, list[str]]
    guards: dict[str, str]
    terminal: list[str]


# ---------------------------------------------------------------------------
# Router factory
# ---------------------------------------------------------------------------

def create_task_router(get_engine: Callable[[Optional[str]], TaskEngine]) -> APIRouter:
    """Create the task API router.

    Parameters
    ----------
    get_engine:
        A callable ``(project_dir_param: str | None) -> TaskEngine`` that
        resolves the engine for the current request's project directory.
    """
    router = APIRouter(prefix="/api/tasks", tags=["tasks"])

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    @router.get("", response_model=TaskListResponse)
    async def list_tasks(
        project_dir: Optional[str] = Query(None),
        all: bool = Query(False, description="List every task instead of the target subgraph"),
        status: Optional[TaskStatus] = Query(None, description="Only tasks with this status"),
        search: Optional[str] = Query(None, description="Case-insensitive text filter"),
    ) -> TaskListResponse:
        engine = get_engine(project_dir)
        details, conflicts = engine.list_tasks(all_tasks=all, status=status, search=search)
        data = [d.to_dict() for d in details]
        return TaskListResponse(
            tasks=data,
            total=len(data),
            order_conflicts=[c.to_dict() for c in conflicts],
        )

    @router.post("", response_model=TaskResponse, status_code=201)
    async def create_task(
        body: CreateTaskRequest,
        project_dir: Optional[str] = Query(None),
    ) -> TaskResponse:
        engine = get_engine(project_dir)
        task = engine.create_task(**body.model_dump())
        return TaskResponse(task=task.to_dict())

    @router.get("/meta/state-machine", response_model=StateMachineResponse)
    async def get_state_machine() -> StateMachineResponse:
        return StateMachineResponse(**TaskStateMachine.describe())

    @router.get("/next")
    async def next_task(
        project_dir: Optional[str] = Query(None),
        all: bool = Query(False),
        target_id: Optional[int] = Query(None),
    ) -> dict[str, Any]:
        engine = get_engine(project_dir)
        return engine.next_task(all_tasks=all, target_id=target_id).to_dict()

    @router.get("/current", response_model=TaskResponse)
    async def current_task(project_dir: Optional[str] = Query(None)) -> TaskResponse:
        engine = get_engine(project_dir)
        return TaskResponse(task=engine.current_task().to_dict())

    @router.post("/reindex")
    async def reindex(project_dir: Optional[str] = Query(None)) -> dict[str, int]:
        engine = get_engine(project_dir)
        return {"reindexed": engine.reindex()}

    # ------------------------------------------------------------------
    # Target
    # ------------------------------------------------------------------

    @router.get("/target", response_model=TargetResponse)
    async def get_target(project_dir: Optional[str] = Query(None)) -> TargetResponse:
        engine = get_engine(project_dir)
        return TargetResponse(target_id=engine.get_target())

    @router.put("/target", response_model=TargetResponse)
    async def set_target(
        body: TargetRequest,
        project_dir: Optional[str] = Query(None),
    ) -> TargetResponse:
        engine = get_engine(project_dir)
        engine.set_target(body.task_id)
        return TargetResponse(target_id=body.task_id)

    @router.delete("/target", response_model=TargetResponse)
    async def clear_target(project_dir: Optional[str] = Query(None)) -> TargetResponse:
        engine = get_engine(project_dir)
        engine.clear_target()
        return TargetResponse(target_id=None)

    # ------------------------------------------------------------------
    # Single task
    # ------------------------------------------------------------------

    @router.get("/{task_id}", response_model=TaskResponse)
    async def get_task(
        task_id: int,
        project_dir: Optional[str] = Query(None),
    ) -> TaskResponse:
        engine = get_engine(project_dir)
        return TaskResponse(task=engine.task_detail(task_id).to_dict())

    @router.patch("/{task_id}", response_model=TaskResponse)
    async def update_task(
        task_id: int,
        body: UpdateTaskRequest,
        project_dir: Optional[str] = Query(None),
    ) -> TaskResponse:
        engine = get_engine(project_dir)
        detail = engine.update_task(task_id, **body.model_dump())
        return TaskResponse(task=detail.to_dict())

    @router.delete("/{task_id}")
    async def delete_task(
        task_id: int,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, str]:
        engine = get_engine(project_dir)
        engine.delete_task(task_id)
        return {"status": "deleted"}

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    @router.post("/{task_id}/start", response_model=TaskResponse)
    async def start_task(task_id: int, project_dir: Optional[str] = Query(None)) -> TaskResponse:
        engine = get_engine(project_dir)
        return TaskResponse(task=engine.start_task(task_id).to_dict())

    @router.post("/{task_id}/stop", response_model=TaskResponse)
    async def stop_task(task_id: int, project_dir: Optional[str] = Query(None)) -> TaskResponse:
        engine = get_engine(project_dir)
        return TaskResponse(task=engine.stop_task(task_id).to_dict())

    @router.post("/{task_id}/complete", response_model=TaskResponse)
    async def complete_task(task_id: int, project_dir: Optional[str] = Query(None)) -> TaskResponse:
        engine = get_engine(project_dir)
        return TaskResponse(task=engine.complete_task(task_id).to_dict())

    @router.post("/{task_id}/block", response_model=TaskResponse)
    async def block_task(task_id: int, project_dir: Optional[str] = Query(None)) -> TaskResponse:
        engine = get_engine(project_dir)
        return TaskResponse(task=engine.block_task(task_id).to_dict())

    @router.post("/{task_id}/unblock", response_model=TaskResponse)
    async def unblock_task(task_id: int, project_dir: Optional[str] = Query(None)) -> TaskResponse:
        engine = get_engine(project_dir)
        return TaskResponse(task=engine.unblock_task(task_id).to_dict())

    @router.post("/{task_id}/reorder")
    async def reorder_task(
        task_id: int,
        body: ReorderRequest,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        engine = get_engine(project_dir)
        order = engine.reorder(task_id, after_id=body.after_id, before_id=body.before_id)
        return {"id": task_id, "manual_order": order}

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    @router.post("/{task_id}/dependencies", status_code=201)
    async def add_dependency(
        task_id: int,
        body: AddDependencyRequest,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        engine = get_engine(project_dir)
        conflicts = engine.add_dependency(task_id, body.depends_on)
        return {"status": "ok", "order_conflicts": [c.to_dict() for c in conflicts]}

    @router.delete("/{task_id}/dependencies/{dep_id}")
    async def remove_dependency(
        task_id: int,
        dep_id: int,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, str]:
        engine = get_engine(project_dir)
        engine.remove_dependency(task_id, dep_id)
        return {"status": "ok"}

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    @router.get("/{task_id}/artifacts")
    async def list_artifacts(task_id: int, project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        engine = get_engine(project_dir)
        return {"artifacts": [a.to_dict() for a in engine.list_artifacts(task_id)]}

    @router.post("/{task_id}/artifacts", status_code=201)
    async def log_artifact(
        task_id: int,
        body: ArtifactRequest,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        engine = get_engine(project_dir)
        artifact = engine.log_artifact(body.name, body.file_path, task_id=task_id)
        return {"artifact": artifact.to_dict()}

    return router
