"""Agent roles, states and the small value types agents exchange."""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from .evidence import utc_now


class AgentRole(str, Enum):
    PLANT = "plant"
    SECURITY = "security"
    LIFECYCLE = "lifecycle"
    GAP = "gap"
    RISK = "risk"
    DEPENDENCY = "dependency"
    COORDINATOR = "coordinator"


class AgentState(str, Enum):
    IDLE = "idle"
    OBSERVING = "observing"
    ANALYZING = "analyzing"
    COMMUNICATING = "communicating"
    LISTENING = "listening"
    REASONING = "reasoning"


@dataclass
class AgentSettings:
    observation_interval: float = 60.0
    alert_threshold: str = "high"
    verbosity: str = "normal"
    auto_respond: bool = True


@dataclass(frozen=True)
class Reasoning:
    """Answer produced by ``BaseAgent.reason``; source is "llm" or "rules"."""

    content: str
    confidence: float
    source: str


@dataclass(frozen=True)
class Suggestion:
    observation: str
    recommendation: str
    priority: str
    source: str

    def to_dict(self) -> dict:
        return {
            "observation": self.observation,
            "recommendation": self.recommendation,
            "priority": self.priority,
            "source": self.source,
        }


@dataclass(frozen=True)
class Escalation:
    """Payload handed to escalation callbacks."""

    finding: dict[str, Any]
    source: str
    facility: str | None
    description: str
    type: str = "critical_finding"
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "finding": self.finding,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
            "facility": self.facility,
            "description": self.description,
        }


def slugify(text: str) -> str:
    """Lowercase, with every run of non-alphanumerics collapsed to ``-``."""
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
