"""Render tracker results for the terminal with rich."""

from __future__ import annotations

from typing import Iterable, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .task_engine.graph import OrderConflict
from .task_engine.model import Artifact, Task, TaskDetail, TaskStatus
from .task_engine.scheduler import AllBlocked, NextTask, NextTaskOutcome, NoneReady, TargetReached
from .utils import _short_stamp

_STATUS_STYLE = {
    TaskStatus.PENDING: "white",
    TaskStatus.IN_PROGRESS: "bold yellow",
    TaskStatus.COMPLETED: "green",
    TaskStatus.BLOCKED: "red",
}


def task_line(task: Task) -> str:
    style = _STATUS_STYLE[task.status]
    return f"[{style}]{task.status.icon}[/{style}] #{task.id} {escape(task.title)}"


def print_task(console: Console, task: Task, verb: Optional[str] = None) -> None:
    prefix = f"{verb} " if verb else ""
    console.print(f"{prefix}{task_line(task)}")


def print_detail(console: Console, detail: TaskDetail) -> None:
    task = detail.task
    lines = [
        f"[bold]Status:[/bold] {task.status.value}",
        f"[bold]Order:[/bold] {task.manual_order:g}",
    ]
    if task.description:
        lines.append(f"[bold]Description:[/bold] {escape(task.description)}")
    lines.append(f"[bold]Definition of done:[/bold] {escape(task.dod) if task.dod else '[dim](none)[/dim]'}")
    lines.append(
        f"[bold]Created:[/bold] {_short_stamp(task.created_at)}  "
        f"[bold]Started:[/bold] {_short_stamp(task.started_at)}  "
        f"[bold]Completed:[/bold] {_short_stamp(task.completed_at)}"
    )
    if detail.dependencies:
        lines.append("[bold]Depends on:[/bold]")
        for dep in detail.dependencies:
            lines.append(f"  {dep.status.icon} #{dep.id} {escape(dep.title)} [dim]({dep.status.value})[/dim]")
    if detail.dependents:
        lines.append("[bold]Needed by:[/bold] " + ", ".join(f"#{i}" for i in detail.dependents))
    if detail.artifacts:
        lines.append("[bold]Artifacts:[/bold]")
        for artifact in detail.artifacts:
            lines.append(f"  {escape(artifact.name)}: {escape(artifact.file_path)}")
    console.print(Panel("\n".join(lines), title=f"#{task.id} {escape(task.title)}", expand=False))


def print_task_table(
    console: Console,
    details: Iterable[TaskDetail],
    conflicts: Iterable[OrderConflict] = (),
    target_id: Optional[int] = None,
) -> None:
    table = Table(title="Tasks", show_header=True)
    table.add_column("", width=2)
    table.add_column("ID", justify="right")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Order", justify="right")
    table.add_column("Depends on")
    for detail in details:
        task = detail.task
        style = _STATUS_STYLE[task.status]
        title = escape(task.title)
        if task.id == target_id:
            title += " [bold cyan](target)[/bold cyan]"
        table.add_row(
            task.status.icon,
            str(task.id),
            title,
            f"[{style}]{task.status.value}[/{style}]",
            f"{task.manual_order:g}",
            ", ".join(f"#{d.id}" for d in detail.dependencies),
        )
    console.print(table)
    for conflict in conflicts:
        console.print(f"[yellow]Warning:[/yellow] {conflict.message()}")


def print_outcome(console: Console, outcome: NextTaskOutcome) -> None:
    if isinstance(outcome, NextTask):
        print_task(console, outcome.task, "Next:")
    elif isinstance(outcome, TargetReached):
        console.print(f"[green]Target reached.[/green] All tasks for #{outcome.target_id} are completed.")
    elif isinstance(outcome, AllBlocked):
        console.print("[red]All remaining tasks are blocked:[/red]")
        for blocked in outcome.tasks:
            console.print(f"  ✗ #{blocked.id} {escape(blocked.title)}")
    elif isinstance(outcome, NoneReady):
        if outcome.active_id is not None:
            console.print(f"Task #{outcome.active_id} is in progress; finish or stop it first.")
        if not outcome.waiting and outcome.active_id is None:
            console.print("Nothing left to do.")
        for waiting in outcome.waiting:
            deps = ", ".join(f"#{w.id}" for w in waiting.waiting_on) or "-"
            console.print(f"  {waiting.status.icon} #{waiting.id} {escape(waiting.title)} [dim](waiting on {deps})[/dim]")


def print_artifacts(console: Console, artifacts: Iterable[Artifact]) -> None:
    artifacts = list(artifacts)
    if not artifacts:
        console.print("[dim]No artifacts.[/dim]")
        return
    table = Table(show_header=True)
    table.add_column("ID", justify="right")
    table.add_column("Task", justify="right")
    table.add_column("Name")
    table.add_column("Path")
    for artifact in artifacts:
        table.add_row(str(artifact.id), f"#{artifact.task_id}", escape(artifact.name), escape(artifact.file_path))
    console.print(table)
