"""Pytest configuration and fixtures."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))


class FakeClock:
    """Settable clock injected wherever agents and the bus read the time."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    """Fixed clock starting at 2026-01-15 12:00 UTC."""
    return FakeClock()


@pytest.fixture
def layer_settings():
    """Default layer settings."""
    from ot_agents.config import LayerSettings

    return LayerSettings()


@pytest.fixture
def break_room(clock):
    """Empty in-memory break room on the fake clock."""
    from ot_agents.bus import BreakRoom

    return BreakRoom(clock=clock)


@pytest_asyncio.fixture
async def snapshot_store():
    """Create in-memory snapshot store for testing."""
    from ot_agents.storage import SnapshotStore

    store = SnapshotStore(":memory:")
    await store.init()
    yield store
    await store.close()


@pytest.fixture
def mock_provider():
    """Create mock reasoning provider."""
    from ot_agents.llm import ChatResponse

    provider = Mock()
    provider.chat = AsyncMock(return_value=ChatResponse(content="Provider answer"))
    return provider


@pytest.fixture
def safety_controller():
    """A lone safety controller, critical, in its own unit."""
    return {
        "tag_id": "SIS-101",
        "unit": "Unit 100",
        "device_type": "Safety Controller",
        "manufacturer": "Triconex",
        "model": "Tricon",
        "criticality": "critical",
        "ip_address": "10.10.1.5",
    }


@pytest.fixture
def plant_assets(safety_controller):
    """Small mixed plant: one safety SPOF, a redundant unit and field devices."""
    return [
        safety_controller,
        {
            "tag_id": "PLC-201",
            "unit": "Unit 200",
            "device_type": "PLC",
            "manufacturer": "Siemens",
            "model": "S7-1500",
            "criticality": "high",
            "ip_address": "10.10.2.10",
            "has_security_patches": True,
        },
        {
            "tag_id": "PLC-202",
            "unit": "Unit 200",
            "device_type": "PLC",
            "manufacturer": "Siemens",
            "model": "S7-1500",
            "criticality": "high",
            "ip_address": "10.10.2.11",
            "has_security_patches": True,
        },
        {
            "tag_id": "TT-201",
            "unit": "Unit 200",
            "device_type": "Temperature Transmitter",
            "manufacturer": "Emerson",
            "model": "3144P",
        },
        {
            "tag_id": "FV-201",
            "unit": "Unit 200",
            "device_type": "Control Valve",
            "manufacturer": "Fisher",
            "model": "DVC6200",
        },
    ]


@pytest.fixture
def clean_assets():
    """Well-kept assets: patched, private addresses, no CVEs."""
    return [
        {
            "tag_id": f"HMI-{i}",
            "unit": "Unit 300",
            "device_type": "HMI",
            "manufacturer": "Rockwell",
            "model": "PanelView Plus 7",
            "ip_address": f"10.10.3.{i}",
            "has_security_patches": True,
            "criticality": "medium",
        }
        for i in range(1, 4)
    ]
