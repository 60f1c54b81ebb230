"""Tests for the task model and the error taxonomy."""

from __future__ import annotations

import pytest

from task_tracker.errors import ErrorKind, TaskError
from task_tracker.task_engine.model import (
    Artifact,
    DependencyInfo,
    Task,
    TaskDetail,
    TaskStatus,
)


class TestTaskStatus:
    def test_decode_known_values(self) -> None:
        assert TaskStatus.decode("in_progress") is TaskStatus.IN_PROGRESS
        assert TaskStatus.decode(TaskStatus.BLOCKED) is TaskStatus.BLOCKED

    @pytest.mark.parametrize("raw", ["done", "", None, 3])
    def test_decode_rejects_unknown(self, raw: object) -> None:
        with pytest.raises(TaskError) as exc_info:
            TaskStatus.decode(raw)
        assert exc_info.value.kind == ErrorKind.INVALID_STATUS

    def test_icons(self) -> None:
        assert TaskStatus.COMPLETED.icon == "✓"
        assert TaskStatus.BLOCKED.icon == "✗"


class TestTask:
    def test_defaults(self) -> None:
        task = Task(id=1, title="Write docs")
        assert task.status == TaskStatus.PENDING
        assert task.started_at is None
        assert task.completed_at is None
        assert not task.has_dod
        assert task.sort_key == (0.0, 1)

    def test_has_dod_ignores_whitespace(self) -> None:
        assert not Task(id=1, title="x", dod="  \n").has_dod
        assert Task(id=1, title="x", dod="Docs published").has_dod

    def test_round_trip(self) -> None:
        task = Task(
            id=4,
            title="Ship",
            description="Release 1.0",
            dod="Tag pushed",
            status=TaskStatus.IN_PROGRESS,
            manual_order=25.5,
            started_at="2026-01-02T00:00:00Z",
        )
        data = task.to_dict()
        assert data["status"] == "in_progress"
        assert Task.from_dict(data) == task

    def test_from_dict_fills_missing_fields(self) -> None:
        task = Task.from_dict({"id": "7", "title": "Old record", "created_at": "2025-01-01T00:00:00Z"})
        assert task.id == 7
        assert task.status == TaskStatus.PENDING
        assert task.manual_order == 0.0
        assert task.last_touched_at == "2025-01-01T00:00:00Z"

    def test_from_dict_rejects_bad_status(self) -> None:
        with pytest.raises(TaskError, match="Invalid status"):
            Task.from_dict({"id": 1, "title": "x", "status": "archived"})


class TestDetail:
    def test_detail_flattens_task(self) -> None:
        detail = TaskDetail(
            task=Task(id=2, title="B"),
            dependencies=[DependencyInfo(1, "A", TaskStatus.COMPLETED)],
            dependents=[3],
            artifacts=[Artifact(id=1, task_id=2, name="report", file_path="out/report.md")],
        )
        data = detail.to_dict()
        assert data["id"] == 2
        assert data["dependencies"] == [{"id": 1, "title": "A", "status": "completed"}]
        assert data["dependents"] == [3]
        assert data["artifacts"][0]["file_path"] == "out/report.md"


class TestErrors:
    @pytest.mark.parametrize(
        "kind,category",
        [
            (ErrorKind.CYCLE_DETECTED, "structural"),
            (ErrorKind.SELF_DEPENDENCY, "structural"),
            (ErrorKind.PRECISION_EXHAUSTED, "numeric"),
            (ErrorKind.TASK_NOT_FOUND, "not_found"),
            (ErrorKind.UNMET_DEPENDENCIES, "precondition"),
            (ErrorKind.NO_TARGET, "precondition"),
        ],
    )
    def test_categories(self, kind: ErrorKind, category: str) -> None:
        assert kind.category == category

    def test_task_error_is_value_error(self) -> None:
        err = TaskError.not_found(12)
        assert isinstance(err, ValueError)
        assert str(err) == "Task #12 not found"

    def test_to_dict(self) -> None:
        err = TaskError.cycle(1, 3, [1, 3, 2, 1])
        data = err.to_dict()
        assert data["kind"] == "cycle_detected"
        assert data["category"] == "structural"
        assert data["details"]["path"] == [1, 3, 2, 1]
        assert "#1 -> #3 -> #2 -> #1" in data["message"]
