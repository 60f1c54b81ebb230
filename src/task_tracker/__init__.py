"""Provide the public `task_tracker` package exports."""

from __future__ import annotations

from .errors import ErrorKind, TaskError
from .task_engine.engine import TaskEngine

__all__ = ["ErrorKind", "TaskEngine", "TaskError"]
__version__ = "0.1.0"
