"""Named tools exposing engine operations to RPC clients.

Each tool pairs a pydantic input model with a handler that takes the
validated input and returns a JSON-ready dict.  :func:`call_tool` is the
single dispatch point used by the HTTP layer and the CLI's ``tools``
listing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

from ..task_engine.engine import TaskEngine
from ..task_engine.model import TaskStatus


# ---------------------------------------------------------------------------
# Input models
# ---------------------------------------------------------------------------

class EmptyInput(BaseModel):
    pass


class CreateTaskInput(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    dod: Optional[str] = Field(default=None, description="Definition of done")
    after_id: Optional[int] = Field(default=None, description="Place right after this task")
    before_id: Optional[int] = Field(default=None, description="Place right before this task")


class TaskIdInput(BaseModel):
    id: int


class ActiveTaskInput(BaseModel):
    id: Optional[int] = Field(default=None, description="Defaults to the task in progress")


class EditTaskInput(BaseModel):
    id: int
    title: Optional[str] = None
    description: Optional[str] = None
    dod: Optional[str] = None
    clear_description: bool = False
    clear_dod: bool = False


class ListTasksInput(BaseModel):
    all: bool = Field(default=False, description="List every task instead of the target subgraph")
    status: Optional[TaskStatus] = Field(default=None, description="Only tasks with this status")
    search: Optional[str] = Field(default=None, description="Case-insensitive text filter")


class NextTaskInput(BaseModel):
    all: bool = False
    target_id: Optional[int] = Field(default=None, description="Overrides the stored target")


class DependencyInput(BaseModel):
    task_id: int
    depends_on: int


class ReorderInput(BaseModel):
    id: int
    after_id: Optional[int] = None
    before_id: Optional[int] = None


class LogArtifactInput(BaseModel):
    name: str = Field(min_length=1)
    file_path: str = Field(min_length=1)
    task_id: Optional[int] = None


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

@dataclass
class Tool:
    name: str
    description: str
    input_model: type[BaseModel]
    handler: Callable[[TaskEngine, Any], dict[str, Any]]

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_model.model_json_schema(),
        }


TOOLS: dict[str, Tool] = {}


def _tool(name: str, description: str, input_model: type[BaseModel] = EmptyInput):
    def register(fn: Callable[[TaskEngine, Any], dict[str, Any]]):
        TOOLS[name] = Tool(name, description, input_model, fn)
        return fn
    return register


class UnknownToolError(LookupError):
    pass


def list_tools() -> list[dict[str, Any]]:
    return [TOOLS[name].describe() for name in sorted(TOOLS)]


def call_tool(engine: TaskEngine, name: str, arguments: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    """Validate *arguments* against the tool's model and run it.

    Raises :class:`UnknownToolError` for unregistered names,
    ``pydantic.ValidationError`` for bad arguments and
    :class:`~task_tracker.errors.TaskError` for rejected operations.
    """
    tool = TOOLS.get(name)
    if tool is None:
        raise UnknownToolError(f"Unknown tool: {name}")
    params = tool.input_model.model_validate(arguments or {})
    return tool.handler(engine, params)


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------

@_tool("create_task", "Create a pending task, optionally positioned next to others", CreateTaskInput)
def _create_task(engine: TaskEngine, p: CreateTaskInput) -> dict[str, Any]:
    task = engine.create_task(p.title, p.description, p.dod, p.after_id, p.before_id)
    return {"task": task.to_dict()}


@_tool("get_task", "Show a task with its dependencies, dependents and artifacts", TaskIdInput)
def _get_task(engine: TaskEngine, p: TaskIdInput) -> dict[str, Any]:
    return {"task": engine.task_detail(p.id).to_dict()}


@_tool("edit_task", "Edit the title, description or definition of done", EditTaskInput)
def _edit_task(engine: TaskEngine, p: EditTaskInput) -> dict[str, Any]:
    detail = engine.update_task(
        p.id,
        title=p.title,
        description=p.description,
        dod=p.dod,
        clear_description=p.clear_description,
        clear_dod=p.clear_dod,
    )
    return {"task": detail.to_dict()}


@_tool("list_tasks", "List tasks in dependency order", ListTasksInput)
def _list_tasks(engine: TaskEngine, p: ListTasksInput) -> dict[str, Any]:
    details, conflicts = engine.list_tasks(all_tasks=p.all, status=p.status, search=p.search)
    return {
        "tasks": [d.to_dict() for d in details],
        "order_conflicts": [c.to_dict() for c in conflicts],
    }


@_tool("set_target", "Make a task the root of the active subgraph", TaskIdInput)
def _set_target(engine: TaskEngine, p: TaskIdInput) -> dict[str, Any]:
    engine.set_target(p.id)
    return {"target_id": p.id}


@_tool("get_target", "Show the current target")
def _get_target(engine: TaskEngine, p: EmptyInput) -> dict[str, Any]:
    return {"target_id": engine.get_target()}


@_tool("clear_target", "Unset the current target")
def _clear_target(engine: TaskEngine, p: EmptyInput) -> dict[str, Any]:
    engine.clear_target()
    return {"target_id": None}


@_tool("next_task", "Pick the next task to work on", NextTaskInput)
def _next_task(engine: TaskEngine, p: NextTaskInput) -> dict[str, Any]:
    return engine.next_task(all_tasks=p.all, target_id=p.target_id).to_dict()


@_tool("start_task", "Start a task whose dependencies are completed", TaskIdInput)
def _start_task(engine: TaskEngine, p: TaskIdInput) -> dict[str, Any]:
    return {"task": engine.start_task(p.id).to_dict()}


@_tool("stop_task", "Return the task in progress to pending", ActiveTaskInput)
def _stop_task(engine: TaskEngine, p: ActiveTaskInput) -> dict[str, Any]:
    return {"task": engine.stop_task(p.id).to_dict()}


@_tool("complete_task", "Complete the task in progress", ActiveTaskInput)
def _complete_task(engine: TaskEngine, p: ActiveTaskInput) -> dict[str, Any]:
    return {"task": engine.complete_task(p.id).to_dict()}


@_tool("current_task", "Show the task in progress")
def _current_task(engine: TaskEngine, p: EmptyInput) -> dict[str, Any]:
    return {"task": engine.current_task().to_dict()}


@_tool("block_task", "Mark a pending or in-progress task as blocked", TaskIdInput)
def _block_task(engine: TaskEngine, p: TaskIdInput) -> dict[str, Any]:
    return {"task": engine.block_task(p.id).to_dict()}


@_tool("unblock_task", "Return a blocked task to pending", TaskIdInput)
def _unblock_task(engine: TaskEngine, p: TaskIdInput) -> dict[str, Any]:
    return {"task": engine.unblock_task(p.id).to_dict()}


@_tool("add_dependency", "Make task_id depend on depends_on", DependencyInput)
def _add_dependency(engine: TaskEngine, p: DependencyInput) -> dict[str, Any]:
    conflicts = engine.add_dependency(p.task_id, p.depends_on)
    return {
        "task_id": p.task_id,
        "depends_on": p.depends_on,
        "order_conflicts": [c.to_dict() for c in conflicts],
    }


@_tool("remove_dependency", "Remove a dependency edge", DependencyInput)
def _remove_dependency(engine: TaskEngine, p: DependencyInput) -> dict[str, Any]:
    engine.remove_dependency(p.task_id, p.depends_on)
    return {"task_id": p.task_id, "depends_on": p.depends_on, "removed": True}


@_tool("reorder_task", "Move a task after and/or before other tasks", ReorderInput)
def _reorder_task(engine: TaskEngine, p: ReorderInput) -> dict[str, Any]:
    order = engine.reorder(p.id, after_id=p.after_id, before_id=p.before_id)
    return {"id": p.id, "manual_order": order}


@_tool("reindex", "Renumber manual order values to clean steps")
def _reindex(engine: TaskEngine, p: EmptyInput) -> dict[str, Any]:
    return {"reindexed": engine.reindex()}


@_tool("log_artifact", "Record a file produced for a task", LogArtifactInput)
def _log_artifact(engine: TaskEngine, p: LogArtifactInput) -> dict[str, Any]:
    return {"artifact": engine.log_artifact(p.name, p.file_path, task_id=p.task_id).to_dict()}


@_tool("list_artifacts", "List artifacts of a task", ActiveTaskInput)
def _list_artifacts(engine: TaskEngine, p: ActiveTaskInput) -> dict[str, Any]:
    return {"artifacts": [a.to_dict() for a in engine.list_artifacts(p.id)]}
