"""Tests for Application."""

from datetime import timedelta
from unittest.mock import patch

import pytest
import pytest_asyncio

from ot_agents.app import Application


@pytest.fixture(autouse=True)
def no_api_key(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)


@pytest_asyncio.fixture
async def app(clock):
    application = Application(db_path=":memory:", clock=clock)
    await application.start()
    yield application
    await application.stop()


class TestApplicationStart:
    """Tests for Application.start()."""

    def test_accessors_before_start(self):
        """Test that component accessors raise until started."""
        app = Application(db_path=":memory:")

        for accessor in ("settings", "store", "break_room", "coordinator", "tool_server"):
            with pytest.raises(RuntimeError, match="Application not started"):
                getattr(app, accessor)
        assert app.provider is None

    @pytest.mark.asyncio
    async def test_start_initializes_components(self, app):
        """Test that start wires the bus, coordinator and tool server."""
        assert app.break_room is not None
        assert app.coordinator.break_room is app.break_room
        assert app.coordinator.id in app.break_room.agents
        assert app.tool_server.call_tool is not None
        assert app.provider is None

    @pytest.mark.asyncio
    async def test_settings_from_env(self, monkeypatch):
        """Test that layer settings are read from the environment."""
        monkeypatch.setenv("ESCALATION_WINDOW_SECONDS", "60")
        monkeypatch.setenv("BREAKROOM_MAX_MESSAGES", "500")
        app = Application(db_path=":memory:")
        await app.start()

        assert app.settings.escalation_window == timedelta(seconds=60)
        assert app.break_room.max_messages == 500
        await app.stop()

    @pytest.mark.asyncio
    async def test_provider_with_api_key(self, monkeypatch):
        """Test that the LLM provider is created when a key is set."""
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test_key")

        with patch("ot_agents.app.LLMProvider") as provider_class:
            app = Application(db_path=":memory:")
            await app.start()

        assert app.provider is provider_class.return_value
        assert app.coordinator.provider is provider_class.return_value
        await app.stop()

    @pytest.mark.asyncio
    async def test_injected_provider(self, mock_provider):
        """Test that an injected provider is used as is."""
        app = Application(db_path=":memory:", provider=mock_provider)
        await app.start()

        assert app.coordinator.provider is mock_provider
        await app.stop()

    @pytest.mark.asyncio
    async def test_restores_latest_snapshot(self, tmp_path):
        """Test that a restart restores the break room saved on stop."""
        db_path = str(tmp_path / "agents.db")
        first = Application(db_path=db_path)
        await first.start()
        await first.ask("Is anyone there?")
        room_id = first.break_room.id
        posted = len(first.break_room.messages)
        await first.stop()

        second = Application(db_path=db_path)
        await second.start()

        assert second.break_room.id == room_id
        assert len(second.break_room.messages) >= posted
        await second.stop()


class TestApplicationFacilities:
    """Tests for facility management."""

    @pytest.mark.asyncio
    async def test_add_facility(self, app, plant_assets):
        """Test that adding a facility registers its agents and tools."""
        facility = await app.add_facility("Plant A", "PA", {"assets": plant_assets}, industry="refining")

        assert app.get_facility("PA") is facility
        assert facility.industry == "refining"
        assert "PA_get_plant_health" in app.tool_server.tools
        assert facility.id in app.break_room.agents
        assert all(agent.id in app.break_room.agents for agent in facility.sub_agents.values())

    @pytest.mark.asyncio
    async def test_duplicate_facility(self, app):
        """Test that a facility name or code can only be used once."""
        await app.add_facility("Plant A", "PA")

        with pytest.raises(ValueError):
            await app.add_facility("Plant A")
        with pytest.raises(ValueError):
            await app.add_facility("Plant Z", "PA")

    @pytest.mark.asyncio
    async def test_remove_facility(self, app):
        """Test that removing a facility drops its tools and bus registrations."""
        facility = await app.add_facility("Plant A", "PA")

        await app.remove_facility("PA")

        assert "PA_get_plant_health" not in app.tool_server.tools
        assert facility.id not in app.break_room.agents
        with pytest.raises(KeyError):
            app.get_facility("PA")

    @pytest.mark.asyncio
    async def test_update_context(self, app, plant_assets):
        """Test that context updates reach the specialists."""
        facility = await app.add_facility("Plant A", "PA")

        app.update_facility_context("Plant A", {"assets": plant_assets})

        assert len(facility.context["assets"]) == len(plant_assets)
        with pytest.raises(KeyError):
            app.update_facility_context("missing", {})


class TestApplicationOperations:
    """Tests for rounds, summaries, questions and reset."""

    @pytest.mark.asyncio
    async def test_observe_and_summary(self, app, safety_controller):
        """Test a round over one facility and the executive summary."""
        await app.add_facility("Plant A", "PA", {"assets": [safety_controller]})

        result = await app.observe()
        summary = app.summary()

        assert result["round"] == 1
        assert result["critical"] >= 1
        assert summary["overall_health"]["status"] in ("needs_attention", "critical")

    @pytest.mark.asyncio
    async def test_ask(self, app):
        """Test an analyst question answered by facility agents."""
        facility = await app.add_facility("Plant A", "PA")

        result = await app.ask("What is the status?", target_agent=facility.id)

        assert [r["agent_id"] for r in result["responses"]] == [facility.id]

    @pytest.mark.asyncio
    async def test_reset(self, app):
        """Test that reset clears messages, rounds and snapshots but keeps facilities."""
        await app.add_facility("Plant A", "PA")
        await app.observe()
        await app.save_snapshot()

        await app.reset()

        assert app.break_room.messages == []
        assert app.coordinator.round_count == 0
        assert await app.store.list_snapshots() == []
        assert app.get_facility("PA") is not None

    @pytest.mark.asyncio
    async def test_stop_saves_snapshot(self, clock):
        """Test that stop stores a final snapshot before closing."""
        app = Application(db_path=":memory:", clock=clock)
        await app.start()
        store = app.store

        with patch.object(store, "save_snapshot", wraps=store.save_snapshot) as save:
            await app.stop()

        save.assert_called_once()
