"""FastAPI application exposing the tracker over HTTP."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from fastapi import Body, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError

from .. import __version__
from ..errors import ErrorKind, TaskError
from ..task_engine.engine import TaskEngine
from .task_api import create_task_router
from .tools import UnknownToolError, call_tool, list_tools

_CONFLICT_KINDS = {
    ErrorKind.DEPENDENCY_EXISTS,
    ErrorKind.ANOTHER_TASK_ACTIVE,
    ErrorKind.ALREADY_INITIALIZED,
}


def status_for(err: TaskError) -> int:
    """HTTP status code for a rejected operation."""
    category = err.kind.category
    if category == "not_found":
        return 404
    if category == "structural" or err.kind in _CONFLICT_KINDS:
        return 409
    return 400


def create_app(
    project_dir: Optional[Path] = None,
    enable_cors: bool = True,
) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        project_dir: Default project directory.
        enable_cors: Whether to enable CORS.

    Returns:
        Configured FastAPI app.
    """
    app = FastAPI(
        title="DAG Task Tracker",
        description="Dependency-aware task tracking over HTTP",
        version=__version__,
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.state.default_project_dir = project_dir

    def _get_project_dir(project_dir_param: Optional[str] = None) -> Path:
        """Get project directory from parameter or default."""
        if project_dir_param:
            return Path(project_dir_param)
        if app.state.default_project_dir:
            return app.state.default_project_dir
        return Path.cwd()

    def _get_engine(project_dir_param: Optional[str] = None) -> TaskEngine:
        return TaskEngine.for_project(_get_project_dir(project_dir_param))

    @app.exception_handler(TaskError)
    async def _task_error_handler(request: Request, exc: TaskError) -> JSONResponse:
        status = status_for(exc)
        logger.debug("{} {} -> {} {}", request.method, request.url.path, status, exc.kind.value)
        return JSONResponse(status_code=status, content={"error": exc.to_dict()})

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": "DAG Task Tracker",
            "version": __version__,
            "status": "running",
        }

    @app.post("/api/init", status_code=201)
    async def init_project(project_dir: Optional[str] = Query(None, description="Project directory path")):
        engine = _get_engine(project_dir)
        return {"store": str(engine.init())}

    # ------------------------------------------------------------------
    # Named tools
    # ------------------------------------------------------------------

    @app.get("/api/tools")
    async def get_tools():
        return {"tools": list_tools()}

    @app.post("/api/tools/{name}")
    async def run_tool(
        name: str,
        arguments: Optional[dict[str, Any]] = Body(None),
        project_dir: Optional[str] = Query(None, description="Project directory path"),
    ):
        engine = _get_engine(project_dir)
        try:
            result = call_tool(engine, name, arguments)
        except UnknownToolError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=e.errors(include_url=False))
        logger.debug("Tool {} succeeded", name)
        return {"result": result}

    app.include_router(create_task_router(_get_engine))

    return app
