"""Tests for the task REST endpoints and the named-tools RPC surface."""

from __future__ import annotations

from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from task_tracker.server.api import create_app
from task_tracker.task_engine.engine import TaskEngine


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    project = tmp_path / "test_project"
    project.mkdir()
    TaskEngine.for_project(project).init()
    return project


@pytest.fixture
def app(project_dir: Path):
    """Create a test app with a temp project directory."""
    return create_app(project_dir=project_dir, enable_cors=False)


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def _create(client: AsyncClient, title: str, **extra) -> dict:
    resp = await client.post("/api/tasks", json={"title": title, **extra})
    assert resp.status_code == 201
    return resp.json()["task"]


@pytest.mark.anyio
class TestTaskCRUD:
    async def test_list_empty(self, client: AsyncClient) -> None:
        resp = await client.get("/api/tasks", params={"all": True})
        assert resp.status_code == 200
        data = resp.json()
        assert data["tasks"] == []
        assert data["total"] == 0

    async def test_create_and_get(self, client: AsyncClient) -> None:
        task = await _create(client, "Implement auth", description="OAuth2 login", dod="Login works")
        assert task["status"] == "pending"
        assert task["manual_order"] == 10.0

        resp = await client.get(f"/api/tasks/{task['id']}")
        assert resp.status_code == 200
        assert resp.json()["task"]["title"] == "Implement auth"

    async def test_get_nonexistent(self, client: AsyncClient) -> None:
        resp = await client.get("/api/tasks/99")
        assert resp.status_code == 404
        assert resp.json()["error"]["kind"] == "task_not_found"

    async def test_update(self, client: AsyncClient) -> None:
        task = await _create(client, "Old")
        resp = await client.patch(f"/api/tasks/{task['id']}", json={"title": "New", "dod": "Shipped"})
        assert resp.status_code == 200
        assert resp.json()["task"]["title"] == "New"
        assert resp.json()["task"]["dod"] == "Shipped"

    async def test_delete_is_refused(self, client: AsyncClient) -> None:
        task = await _create(client, "Keep me")
        resp = await client.delete(f"/api/tasks/{task['id']}")
        assert resp.status_code == 400
        assert resp.json()["error"]["kind"] == "delete_unsupported"

    async def test_delete_unknown_is_404(self, client: AsyncClient) -> None:
        resp = await client.delete("/api/tasks/99")
        assert resp.status_code == 404
        assert resp.json()["error"]["kind"] == "task_not_found"

    async def test_list_filters(self, client: AsyncClient) -> None:
        await _create(client, "Write parser")
        docs = await _create(client, "Write docs")
        await client.post(f"/api/tasks/{docs['id']}/start")

        resp = await client.get("/api/tasks", params={"all": True, "search": "PARSER"})
        assert [t["title"] for t in resp.json()["tasks"]] == ["Write parser"]

        resp = await client.get("/api/tasks", params={"all": True, "status": "in_progress"})
        assert [t["id"] for t in resp.json()["tasks"]] == [docs["id"]]

        resp = await client.get("/api/tasks", params={"all": True, "status": "paused"})
        assert resp.status_code == 422

    async def test_empty_title_rejected(self, client: AsyncClient) -> None:
        resp = await client.post("/api/tasks", json={"title": ""})
        assert resp.status_code == 422

    async def test_uninitialized_project(self, tmp_path: Path) -> None:
        bare = tmp_path / "bare"
        bare.mkdir()
        app = create_app(project_dir=bare, enable_cors=False)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            resp = await c.get("/api/tasks", params={"all": True})
            assert resp.status_code == 400
            assert resp.json()["error"]["kind"] == "not_initialized"
            resp = await c.get("/api/tasks/target")
            assert resp.status_code == 400
            assert not (bare / ".tt").exists()

            resp = await c.post("/api/init")
            assert resp.status_code == 201
            resp = await c.post("/api/init")
            assert resp.status_code == 409


@pytest.mark.anyio
class TestWorkflow:
    async def test_target_to_completion(self, client: AsyncClient) -> None:
        a = await _create(client, "A", dod="A ok")
        b = await _create(client, "B", dod="B ok")
        resp = await client.post(f"/api/tasks/{b['id']}/dependencies", json={"depends_on": a["id"]})
        assert resp.status_code == 201
        resp = await client.put("/api/tasks/target", json={"task_id": b["id"]})
        assert resp.json() == {"target_id": b["id"]}

        nxt = (await client.get("/api/tasks/next")).json()
        assert nxt["type"] == "task" and nxt["task"]["id"] == a["id"]

        assert (await client.post(f"/api/tasks/{a['id']}/start")).status_code == 200
        assert (await client.get("/api/tasks/current")).json()["task"]["id"] == a["id"]
        assert (await client.post(f"/api/tasks/{a['id']}/complete")).status_code == 200

        nxt = (await client.get("/api/tasks/next")).json()
        assert nxt["task"]["id"] == b["id"]

        await client.post(f"/api/tasks/{b['id']}/start")
        await client.post(f"/api/tasks/{b['id']}/complete")
        assert (await client.get("/api/tasks/next")).json() == {"type": "target_reached", "target_id": b["id"]}

        listed = (await client.get("/api/tasks")).json()
        assert [t["id"] for t in listed["tasks"]] == [a["id"], b["id"]]

    async def test_cycle_conflict(self, client: AsyncClient) -> None:
        a = await _create(client, "A")
        b = await _create(client, "B")
        await client.post(f"/api/tasks/{b['id']}/dependencies", json={"depends_on": a["id"]})
        resp = await client.post(f"/api/tasks/{a['id']}/dependencies", json={"depends_on": b["id"]})
        assert resp.status_code == 409
        error = resp.json()["error"]
        assert error["category"] == "structural"
        assert error["details"]["path"] == [a["id"], b["id"], a["id"]]

    async def test_precondition_errors_are_400(self, client: AsyncClient) -> None:
        a = await _create(client, "A")
        await client.post(f"/api/tasks/{a['id']}/start")
        resp = await client.post(f"/api/tasks/{a['id']}/complete")
        assert resp.status_code == 400
        assert resp.json()["error"]["kind"] == "missing_definition_of_done"

    async def test_another_active_is_409(self, client: AsyncClient) -> None:
        a = await _create(client, "A")
        b = await _create(client, "B")
        await client.post(f"/api/tasks/{a['id']}/start")
        resp = await client.post(f"/api/tasks/{b['id']}/start")
        assert resp.status_code == 409

    async def test_remove_dependency(self, client: AsyncClient) -> None:
        a = await _create(client, "A")
        b = await _create(client, "B")
        await client.post(f"/api/tasks/{b['id']}/dependencies", json={"depends_on": a["id"]})
        resp = await client.delete(f"/api/tasks/{b['id']}/dependencies/{a['id']}")
        assert resp.status_code == 200
        resp = await client.delete(f"/api/tasks/{b['id']}/dependencies/{a['id']}")
        assert resp.json()["error"]["kind"] == "dependency_not_found"

    async def test_reorder_and_reindex(self, client: AsyncClient) -> None:
        a = await _create(client, "A")
        b = await _create(client, "B")
        c = await _create(client, "C")
        resp = await client.post(f"/api/tasks/{c['id']}/reorder", json={"after_id": a["id"], "before_id": b["id"]})
        assert resp.json()["manual_order"] == 15.0
        resp = await client.post("/api/tasks/reindex")
        assert resp.json() == {"reindexed": 3}

    async def test_artifacts(self, client: AsyncClient) -> None:
        a = await _create(client, "A")
        resp = await client.post(f"/api/tasks/{a['id']}/artifacts", json={"name": "log", "file_path": "out/run.log"})
        assert resp.status_code == 201
        resp = await client.get(f"/api/tasks/{a['id']}/artifacts")
        assert [x["name"] for x in resp.json()["artifacts"]] == ["log"]

    async def test_state_machine_meta(self, client: AsyncClient) -> None:
        resp = await client.get("/api/tasks/meta/state-machine")
        assert resp.status_code == 200
        data = resp.json()
        assert data["transitions"]["blocked"] == ["pending"]
        assert data["terminal"] == ["completed"]


@pytest.mark.anyio
class TestTools:
    async def test_list_tools_has_schemas(self, client: AsyncClient) -> None:
        resp = await client.get("/api/tools")
        tools = {t["name"]: t for t in resp.json()["tools"]}
        assert "title" in tools["create_task"]["input_schema"]["properties"]
        assert "reindex" in tools

    async def test_call_tools(self, client: AsyncClient) -> None:
        resp = await client.post("/api/tools/create_task", json={"title": "Via RPC", "dod": "ok"})
        assert resp.status_code == 200
        task_id = resp.json()["result"]["task"]["id"]

        resp = await client.post("/api/tools/next_task", json={"all": True})
        assert resp.json()["result"]["task"]["id"] == task_id

        resp = await client.post("/api/tools/start_task", json={"id": task_id})
        assert resp.json()["result"]["task"]["status"] == "in_progress"
        resp = await client.post("/api/tools/complete_task", json={})
        assert resp.json()["result"]["task"]["status"] == "completed"

    async def test_unknown_tool(self, client: AsyncClient) -> None:
        resp = await client.post("/api/tools/nope", json={})
        assert resp.status_code == 404

    async def test_invalid_arguments(self, client: AsyncClient) -> None:
        resp = await client.post("/api/tools/start_task", json={"id": "abc"})
        assert resp.status_code == 422

    async def test_tool_errors_use_task_error_shape(self, client: AsyncClient) -> None:
        resp = await client.post("/api/tools/get_task", json={"id": 42})
        assert resp.status_code == 404
        assert resp.json()["error"]["kind"] == "task_not_found"
