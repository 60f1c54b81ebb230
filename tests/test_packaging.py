"""Test packaging metadata and installation extras."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def _load_pyproject() -> dict[str, Any]:
    pyproject_path = PROJECT_ROOT / "pyproject.toml"
    raw = pyproject_path.read_text(encoding="utf-8")
    if sys.version_info >= (3, 11):
        import tomllib

        return tomllib.loads(raw)

    import tomli

    return tomli.loads(raw)


def _names(requirements: list[str]) -> set[str]:
    names = set()
    for item in requirements:
        name = str(item).strip().lower()
        for sep in ("<", ">", "=", "!", "~", "[", ";", " "):
            name = name.split(sep, 1)[0]
        names.add(name)
    return names


def test_pyproject_declares_test_extras() -> None:
    """Ensure `pyproject.toml` declares pytest under `[project.optional-dependencies].test`."""
    data = _load_pyproject()
    test_deps = data.get("project", {}).get("optional-dependencies", {}).get("test", [])
    assert {"pytest", "httpx", "anyio"} <= _names(test_deps)


def test_pyproject_declares_runtime_stack() -> None:
    project = _load_pyproject()["project"]
    assert {"loguru", "rich", "pyyaml", "fastapi", "pydantic"} <= _names(project["dependencies"])
    assert "uvicorn" in _names(project["optional-dependencies"]["server"])
    assert project["scripts"]["tt"] == "task_tracker.cli:main"
