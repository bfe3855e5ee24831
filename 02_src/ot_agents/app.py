"""Application bootstrap and lifecycle management."""

import os
from datetime import datetime
from typing import Callable, Protocol

from .agents import CoordinatorAgent, FacilityAgent
from .bus import BreakRoom
from .config import LayerSettings, resolve_db_path
from .llm import IReasoningProvider, LLMProvider
from .logging_config import get_logger
from .models import utc_now
from .storage import ISnapshotStore, SnapshotStore
from .tools import ToolServer

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Save a final snapshot and shut down in reverse order."""
        ...

    async def reset(self) -> None:
        """Clear the bus, the coordinator's memory and stored snapshots."""
        ...


class Application:
    """Main application bootstrap."""

    def __init__(
        self,
        db_path: str | None = None,
        *,
        settings: LayerSettings | None = None,
        provider: IReasoningProvider | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        env_db_path = os.getenv("DATABASE_URL") if db_path is None else db_path
        self._db_path = resolve_db_path(env_db_path)
        self._clock = clock

        # Set in start()
        self._settings: LayerSettings | None = settings
        self._provider: IReasoningProvider | None = provider
        self._store: ISnapshotStore | None = None
        self._break_room: BreakRoom | None = None
        self._coordinator: CoordinatorAgent | None = None
        self._tool_server: ToolServer | None = None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        if self._settings is None:
            self._settings = LayerSettings.from_env()

        # 1. Snapshot store
        self._store = SnapshotStore(self._db_path)
        await self._store.init()

        # 2. Break room, restored from the latest snapshot
        bus_options = {
            "max_messages": self._settings.max_messages,
            "max_knowledge": self._settings.max_knowledge,
            "max_observations": self._settings.max_observations,
            "clock": self._clock,
        }
        latest = await self._store.load_latest()
        if latest:
            self._break_room = BreakRoom.from_json(latest, **bus_options)
            logger.info(
                "Break room restored with %d messages", len(self._break_room.messages)
            )
        else:
            self._break_room = BreakRoom(**bus_options)

        # 3. Reasoning provider, only with an API key
        if self._provider is None and os.getenv("ANTHROPIC_API_KEY"):
            self._provider = LLMProvider()
            logger.info("LLM provider initialized (%s)", self._provider.model)

        # 4. Coordinator
        self._coordinator = CoordinatorAgent(layer_settings=self._settings, clock=self._clock)
        await self._coordinator.initialize(self._break_room, provider=self._provider)

        # 5. Tool server
        self._tool_server = ToolServer(self._coordinator, self._break_room)
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Save a final snapshot and shut down in reverse order."""
        if self._coordinator:
            self._coordinator.shutdown()
        if self._store:
            if self._break_room:
                await self._store.save_snapshot(self._break_room.to_json())
            await self._store.close()
            logger.info("Snapshot store closed")

    async def reset(self) -> None:
        if self._break_room:
            self._break_room.clear()
        if self._coordinator:
            self._coordinator.reset_state()
        if self._store:
            await self._store.clear()
        logger.info("Reset complete")

    # Facilities

    async def add_facility(
        self,
        name: str,
        code: str | None = None,
        context: dict | None = None,
        industry: str | None = None,
    ) -> FacilityAgent:
        coordinator = self.coordinator
        if coordinator.get_facility(name) is not None or (code and coordinator.get_facility(code)):
            raise ValueError(f"Facility already registered: {code or name}")

        facility = FacilityAgent(
            name,
            code,
            industry=industry,
            layer_settings=self.settings,
            clock=self._clock,
        )
        await facility.initialize(self.break_room, context, self._provider)
        coordinator.add_facility(facility)
        self.tool_server.register_facility(facility)
        return facility

    async def remove_facility(self, key: str) -> bool:
        facility = self.get_facility(key)
        self.coordinator.remove_facility(facility.facility)
        self.tool_server.unregister_facility(facility)
        for agent in (facility, *facility.sub_agents.values()):
            await self.break_room.unregister_agent(agent.id)
        return True

    def get_facility(self, key: str) -> FacilityAgent:
        facility = self.coordinator.get_facility(key)
        if facility is None:
            raise KeyError(f"Facility not found: {key}")
        return facility

    def update_facility_context(self, key: str, context: dict) -> FacilityAgent:
        facility = self.get_facility(key)
        facility.update_context(context)
        return facility

    # Operations

    async def observe(self) -> dict:
        return await self.coordinator.start_observation_round()

    def summary(self, time_range: str = "day") -> dict:
        return self.coordinator.generate_executive_summary(time_range)

    async def ask(self, question: str, target_agent: str = "all", topic: str = "general") -> dict:
        return await self.break_room.submit_question(question, target_agent, topic)

    async def save_snapshot(self) -> str:
        snapshot_id = await self.store.save_snapshot(self.break_room.to_json())
        logger.info("Saved snapshot %s", snapshot_id)
        return snapshot_id

    # Accessors

    @property
    def settings(self) -> LayerSettings:
        if not self._settings or not self._store:
            raise RuntimeError("Application not started")
        return self._settings

    @property
    def provider(self) -> IReasoningProvider | None:
        return self._provider

    @property
    def store(self) -> ISnapshotStore:
        if not self._store:
            raise RuntimeError("Application not started")
        return self._store

    @property
    def break_room(self) -> BreakRoom:
        if not self._break_room:
            raise RuntimeError("Application not started")
        return self._break_room

    @property
    def coordinator(self) -> CoordinatorAgent:
        if not self._coordinator:
            raise RuntimeError("Application not started")
        return self._coordinator

    @property
    def tool_server(self) -> ToolServer:
        if not self._tool_server:
            raise RuntimeError("Application not started")
        return self._tool_server
