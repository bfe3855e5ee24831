"""Tests for the HTTP API."""

import json

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from ot_agents.api import create_fastapi_app
from ot_agents.app import Application

MCP_HEADERS = {"Accept": "application/json, text/event-stream", "Content-Type": "application/json"}


@pytest_asyncio.fixture
async def application(monkeypatch, clock):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    app = Application(db_path=":memory:", clock=clock)
    # ASGITransport does not run the lifespan
    await app.start()
    yield app
    await app.stop()


@pytest.fixture
def fastapi_app(application):
    return create_fastapi_app(application)


@pytest_asyncio.fixture
async def client(fastapi_app):
    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


async def rpc(client, method, params=None, request_id=1):
    body = {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params or {}}
    response = await client.post("/mcp/", json=body, headers=MCP_HEADERS)
    assert response.status_code == 200
    return response.json()


class TestMcpTransport:
    """Tests for the MCP endpoint over streamable HTTP."""

    @pytest.mark.asyncio
    async def test_initialize(self, client, fastapi_app):
        """Test the initialize handshake."""
        params = {
            "protocolVersion": "2025-03-26",
            "capabilities": {},
            "clientInfo": {"name": "pytest", "version": "1.0"},
        }
        async with fastapi_app.state.mcp_sessions.run():
            reply = await rpc(client, "initialize", params)

        assert reply["result"]["serverInfo"]["name"] == "ot-assurance-agents"
        assert "tools" in reply["result"]["capabilities"]

    @pytest.mark.asyncio
    async def test_list_includes_facility_tools(self, client, fastapi_app, application):
        """Test that tools added with a facility are listed."""
        await application.add_facility("Plant A", "PA")

        async with fastapi_app.state.mcp_sessions.run():
            reply = await rpc(client, "tools/list")

        names = {tool["name"] for tool in reply["result"]["tools"]}
        assert "PA_get_plant_health" in names
        assert names == set(application.tool_server.tools)

    @pytest.mark.asyncio
    async def test_call(self, client, fastapi_app):
        """Test a successful call and a call to an unknown tool."""
        async with fastapi_app.state.mcp_sessions.run():
            ok = await rpc(client, "tools/call", {"name": "list_facilities", "arguments": {}})
            missing = await rpc(client, "tools/call", {"name": "nope", "arguments": {}}, request_id=2)

        assert ok["result"]["isError"] is False
        assert json.loads(ok["result"]["content"][0]["text"])["count"] == 0
        assert missing["result"]["isError"] is True
        assert "Unknown tool: nope" in missing["result"]["content"][0]["text"]


class TestToolRoutes:
    """Tests for the tool-call endpoints."""

    @pytest.mark.asyncio
    async def test_list_tools(self, client, application):
        """Test listing tools."""
        response = await client.get("/api/tools")

        assert response.status_code == 200
        assert len(response.json()) == len(application.tool_server.tools)

    @pytest.mark.asyncio
    async def test_call_tool(self, client):
        """Test calling a tool and an unknown tool."""
        ok = await client.post("/api/tools/call", json={"name": "list_facilities"})
        missing = await client.post("/api/tools/call", json={"name": "nope", "arguments": {}})

        assert ok.json() == {"success": True, "result": {"count": 0, "facilities": []}, "error": None}
        assert missing.status_code == 200
        assert missing.json()["success"] is False
        assert missing.json()["error"] == "Unknown tool: nope"


class TestFacilityRoutes:
    """Tests for facility endpoints."""

    @pytest.mark.asyncio
    async def test_add_and_list(self, client, plant_assets):
        """Test adding a facility and listing it."""
        response = await client.post(
            "/api/facilities",
            json={"name": "Plant A", "code": "PA", "industry": "refining", "context": {"assets": plant_assets}},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["facility"] == "Plant A"
        assert body["industry"] == "refining"
        assert len(body["sub_agents"]) == 5

        listed = await client.get("/api/facilities")
        assert [f["facility_code"] for f in listed.json()] == ["PA"]

    @pytest.mark.asyncio
    async def test_duplicate(self, client):
        """Test that a duplicate facility is a conflict."""
        await client.post("/api/facilities", json={"name": "Plant A", "code": "PA"})

        response = await client.post("/api/facilities", json={"name": "Plant A"})

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_update_context(self, client, application, plant_assets):
        """Test replacing a facility's assets."""
        await client.post("/api/facilities", json={"name": "Plant A", "code": "PA"})

        response = await client.put("/api/facilities/PA/context", json={"context": {"assets": plant_assets}})
        missing = await client.put("/api/facilities/XX/context", json={"context": {}})

        assert response.status_code == 200
        assert len(application.get_facility("PA").context["assets"]) == len(plant_assets)
        assert missing.status_code == 404


class TestObservabilityRoutes:
    """Tests for message, thread and observation endpoints."""

    @pytest.mark.asyncio
    async def test_messages(self, client, application):
        """Test reading and filtering messages."""
        await application.ask("Who owns Unit 100?")

        response = await client.get("/api/messages", params={"type": "question"})

        assert response.status_code == 200
        assert [m["content"] for m in response.json()] == ["Who owns Unit 100?"]

    @pytest.mark.asyncio
    async def test_messages_bad_since(self, client):
        """Test that an unparseable timestamp is rejected."""
        response = await client.get("/api/messages", params={"since": "yesterday-ish"})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_threads(self, client, application):
        """Test listing threads."""
        await application.ask("Who owns Unit 100?")

        response = await client.get("/api/threads", params={"limit": 5})

        assert response.status_code == 200
        assert any(t["subject"] == "Who owns Unit 100?" for t in response.json())

    @pytest.mark.asyncio
    async def test_observations(self, client, application, safety_controller):
        """Test reading shared observations after a round."""
        await application.add_facility("Plant A", "PA", {"assets": [safety_controller]})
        await application.observe()

        response = await client.get("/api/observations", params={"severity": "critical"})
        bad = await client.get("/api/observations", params={"severity": "dire"})

        assert response.status_code == 200
        assert response.json()
        assert all(o["severity"] == "critical" for o in response.json())
        assert bad.status_code == 400


class TestControlRoutes:
    """Tests for control endpoints."""

    @pytest.mark.asyncio
    async def test_round(self, client):
        """Test running a round over HTTP."""
        await client.post("/api/facilities", json={"name": "Plant A", "code": "PA"})

        response = await client.post("/api/control/round")

        assert response.status_code == 200
        assert response.json()["round"] == 1

    @pytest.mark.asyncio
    async def test_snapshot_and_reset(self, client, application):
        """Test saving a snapshot and resetting."""
        await application.ask("Who owns Unit 100?")

        saved = await client.post("/api/control/snapshot")
        assert saved.status_code == 200
        assert saved.json()["status"] == "ok"
        assert len(await application.store.list_snapshots()) == 1

        reset = await client.post("/api/control/reset")
        assert reset.json() == {"status": "ok"}
        assert application.break_room.messages == []
        assert await application.store.list_snapshots() == []
