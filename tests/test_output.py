"""Tests for rich rendering of tracker results."""

from __future__ import annotations

import pytest
from rich.console import Console

from task_tracker import output
from task_tracker.task_engine.graph import OrderConflict
from task_tracker.task_engine.model import Artifact, DependencyInfo, Task, TaskDetail, TaskStatus
from task_tracker.task_engine.scheduler import AllBlocked, BlockedTask, NextTask, NoneReady, TargetReached


@pytest.fixture
def console() -> Console:
    return Console(record=True, width=120, color_system=None)


def test_task_line_escapes_markup(console: Console) -> None:
    output.print_task(console, Task(id=3, title="Fix [bold]parser[/bold]"), "Created")
    text = console.export_text()
    assert "Created ○ #3 Fix [bold]parser[/bold]" in text


def test_detail_panel(console: Console) -> None:
    detail = TaskDetail(
        task=Task(id=2, title="Docs", dod="Published", started_at="2026-03-01T10:00:00Z"),
        dependencies=[DependencyInfo(1, "Parser", TaskStatus.COMPLETED)],
        dependents=[5],
        artifacts=[Artifact(id=1, task_id=2, name="guide", file_path="docs/guide.md")],
    )
    output.print_detail(console, detail)
    text = console.export_text()
    assert "Published" in text
    assert "2026-03-01 10:00" in text
    assert "#1 Parser" in text
    assert "#5" in text
    assert "docs/guide.md" in text


def test_table_marks_target_and_conflicts(console: Console) -> None:
    details = [TaskDetail(task=Task(id=1, title="A", manual_order=10)), TaskDetail(task=Task(id=2, title="B", manual_order=20))]
    conflicts = [OrderConflict(1, 10, 2, 20)]
    output.print_task_table(console, details, conflicts, target_id=2)
    text = console.export_text()
    assert "(target)" in text
    assert "Warning:" in text


@pytest.mark.parametrize(
    "outcome,expected",
    [
        (NextTask(Task(id=4, title="Next one")), "Next: ○ #4 Next one"),
        (TargetReached(7), "Target reached."),
        (AllBlocked([BlockedTask(1, "Stuck", TaskStatus.BLOCKED)]), "All remaining tasks are blocked"),
        (NoneReady([], active_id=3), "Task #3 is in progress"),
        (NoneReady([]), "Nothing left to do."),
    ],
)
def test_outcomes(console: Console, outcome, expected: str) -> None:
    output.print_outcome(console, outcome)
    assert expected in console.export_text()


def test_no_artifacts(console: Console) -> None:
    output.print_artifacts(console, [])
    assert "No artifacts." in console.export_text()
