"""Observation model and the helpers that turn findings into messages."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Iterable

from .evidence import Evidence, new_id, parse_timestamp, utc_now
from .messages import MessageType, Sentiment


class ObservationType(str, Enum):
    STRENGTH = "strength"
    WEAKNESS = "weakness"
    ANOMALY = "anomaly"
    IMPROVEMENT = "improvement"
    PATTERN = "pattern"
    TREND = "trend"


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"
    POSITIVE = "positive"


SEVERITY_ORDER: dict[Severity, int] = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
    Severity.POSITIVE: 4,
    Severity.INFO: 5,
}


def severity_rank(severity: Severity | str) -> int:
    return SEVERITY_ORDER[Severity(severity)]


@dataclass(frozen=True)
class Subject:
    """What an observation is about. Every field is optional."""

    facility: str | None = None
    facility_code: str | None = None
    unit: str | None = None
    asset: str | None = None
    asset_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "facility": self.facility,
            "facility_code": self.facility_code,
            "unit": self.unit,
            "asset": self.asset,
            "asset_id": self.asset_id,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "Subject":
        data = data or {}
        return cls(
            facility=data.get("facility"),
            facility_code=data.get("facility_code"),
            unit=data.get("unit"),
            asset=data.get("asset"),
            asset_id=data.get("asset_id"),
        )


@dataclass(frozen=True)
class Observation:
    """
    A finding produced by an agent.

    Observations are values: aggregation tags a copy via ``tagged`` instead
    of mutating the one the sub-agent owns.
    """

    agent_id: str
    type: ObservationType
    severity: Severity
    description: str
    subject: Subject = field(default_factory=Subject)
    evidence: tuple[Evidence, ...] = ()
    confidence: float = 0.8
    recommendations: tuple[str, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utc_now)
    acknowledged: bool = False
    resolved: bool = False
    source_agent: str | None = None
    source_agent_id: str | None = None

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")
        object.__setattr__(self, "type", ObservationType(self.type))
        object.__setattr__(self, "severity", Severity(self.severity))
        object.__setattr__(self, "evidence", tuple(self.evidence))
        object.__setattr__(self, "recommendations", tuple(self.recommendations))

    @property
    def is_weakness(self) -> bool:
        return self.type in (ObservationType.WEAKNESS, ObservationType.ANOMALY)

    @property
    def is_strength(self) -> bool:
        return self.type == ObservationType.STRENGTH

    def tagged(self, source_agent: str, source_agent_id: str) -> "Observation":
        """Return a copy attributed to the sub-agent that produced it."""
        return replace(self, source_agent=source_agent, source_agent_id=source_agent_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "agent_id": self.agent_id,
            "type": self.type.value,
            "severity": self.severity.value,
            "subject": self.subject.to_dict(),
            "description": self.description,
            "evidence": [e.to_dict() for e in self.evidence],
            "confidence": self.confidence,
            "recommendations": list(self.recommendations),
            "metadata": self.metadata,
            "acknowledged": self.acknowledged,
            "resolved": self.resolved,
            "source_agent": self.source_agent,
            "source_agent_id": self.source_agent_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Observation":
        return cls(
            id=data["id"],
            timestamp=parse_timestamp(data["timestamp"]),
            agent_id=data["agent_id"],
            type=ObservationType(data["type"]),
            severity=Severity(data["severity"]),
            subject=Subject.from_dict(data.get("subject")),
            description=data["description"],
            evidence=tuple(Evidence.from_dict(e) for e in data.get("evidence", [])),
            confidence=float(data.get("confidence", 0.8)),
            recommendations=tuple(data.get("recommendations", [])),
            metadata=dict(data.get("metadata") or {}),
            acknowledged=bool(data.get("acknowledged", False)),
            resolved=bool(data.get("resolved", False)),
            source_agent=data.get("source_agent"),
            source_agent_id=data.get("source_agent_id"),
        )


def sort_observations(observations: Iterable[Observation]) -> list[Observation]:
    """Most severe first; within a severity, newest first."""
    return sorted(
        observations,
        key=lambda o: (severity_rank(o.severity), -o.timestamp.timestamp()),
    )


def determine_sentiment(observation: Observation) -> Sentiment:
    if observation.type == ObservationType.STRENGTH:
        return Sentiment.POSITIVE
    if observation.severity == Severity.CRITICAL:
        return Sentiment.URGENT
    if observation.severity == Severity.POSITIVE:
        return Sentiment.POSITIVE
    if observation.is_weakness:
        return Sentiment.NEGATIVE
    return Sentiment.NEUTRAL


_WEAKNESS_PREFIX = {
    Severity.CRITICAL: "CRITICAL: ",
    Severity.HIGH: "Found a significant issue: ",
    Severity.MEDIUM: "Noticed something concerning: ",
}

_TYPE_PREFIX = {
    ObservationType.STRENGTH: "Good news! ",
    ObservationType.ANOMALY: "Something unusual: ",
    ObservationType.IMPROVEMENT: "Suggestion: ",
    ObservationType.PATTERN: "I've noticed a pattern: ",
    ObservationType.TREND: "Trend detected: ",
}


def observation_to_content(observation: Observation) -> str:
    """Render an observation as break room prose."""
    if observation.type == ObservationType.WEAKNESS:
        prefix = _WEAKNESS_PREFIX.get(observation.severity, "Minor observation: ")
    else:
        prefix = _TYPE_PREFIX.get(observation.type, "")
    return prefix + observation.description


_MESSAGE_TYPE_FOR = {
    ObservationType.STRENGTH: MessageType.COMPLIMENT,
    ObservationType.WEAKNESS: MessageType.CRITIQUE,
    ObservationType.IMPROVEMENT: MessageType.SUGGESTION,
}


def message_type_for(observation: Observation) -> MessageType:
    return _MESSAGE_TYPE_FOR.get(observation.type, MessageType.OBSERVATION)
