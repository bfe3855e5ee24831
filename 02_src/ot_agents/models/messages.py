"""Break room message, thread and knowledge models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from .evidence import Evidence, new_id, parse_timestamp, utc_now


class MessageType(str, Enum):
    """Intent of a posted message."""

    OBSERVATION = "observation"
    COMPLIMENT = "compliment"
    CRITIQUE = "critique"
    QUESTION = "question"
    RESPONSE = "response"
    SUGGESTION = "suggestion"
    ALERT = "alert"
    SUMMARY = "summary"


class Topic(str, Enum):
    """Subject area of a message."""

    VULNERABILITY = "vulnerability"
    LIFECYCLE = "lifecycle"
    GAP = "gap"
    COVERAGE = "coverage"
    RISK = "risk"
    DEPENDENCY = "dependency"
    COMPLIANCE = "compliance"
    GENERAL = "general"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"
    URGENT = "urgent"


class KnowledgeType(str, Enum):
    FACT = "fact"
    PATTERN = "pattern"
    RESOLUTION = "resolution"
    LEARNING = "learning"


@dataclass(frozen=True)
class Message:
    """
    One post on the break room.

    ``role`` is a plain string so that non-agent authors ("system",
    "human") can post alongside agents. Messages are immutable once
    posted; the bus assigns ``thread_id`` before storing.
    """

    agent_id: str
    agent_name: str
    role: str
    type: MessageType
    topic: Topic
    content: str
    sentiment: Sentiment = Sentiment.NEUTRAL
    evidence: tuple[Evidence, ...] = ()
    reply_to: str | None = None
    thread_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        object.__setattr__(self, "type", MessageType(self.type))
        object.__setattr__(self, "topic", Topic(self.topic))
        object.__setattr__(self, "sentiment", Sentiment(self.sentiment))
        object.__setattr__(self, "evidence", tuple(self.evidence))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "agent_id": self.agent_id,
            "agent_name": self.agent_name,
            "role": self.role,
            "type": self.type.value,
            "topic": self.topic.value,
            "content": self.content,
            "sentiment": self.sentiment.value,
            "evidence": [e.to_dict() for e in self.evidence],
            "reply_to": self.reply_to,
            "thread_id": self.thread_id,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        return cls(
            id=data["id"],
            timestamp=parse_timestamp(data["timestamp"]),
            agent_id=data["agent_id"],
            agent_name=data["agent_name"],
            role=data["role"],
            type=MessageType(data["type"]),
            topic=Topic(data["topic"]),
            content=data["content"],
            sentiment=Sentiment(data.get("sentiment", "neutral")),
            evidence=tuple(Evidence.from_dict(e) for e in data.get("evidence", [])),
            reply_to=data.get("reply_to"),
            thread_id=data.get("thread_id"),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class Thread:
    """Conversation grouping; ``messages`` holds message ids in post order."""

    id: str
    topic: Topic
    started_by: str
    subject: str
    participants: list[str] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)
    resolved: bool = False
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "topic": self.topic.value,
            "started_by": self.started_by,
            "subject": self.subject,
            "participants": list(self.participants),
            "messages": list(self.messages),
            "resolved": self.resolved,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Thread":
        return cls(
            id=data["id"],
            topic=Topic(data["topic"]),
            started_by=data["started_by"],
            subject=data.get("subject", ""),
            participants=list(data.get("participants", [])),
            messages=list(data.get("messages", [])),
            resolved=bool(data.get("resolved", False)),
            created_at=parse_timestamp(data["created_at"]),
            updated_at=parse_timestamp(data["updated_at"]),
        )


@dataclass
class KnowledgeEntry:
    """Shared fact, pattern or learning contributed by an agent."""

    type: KnowledgeType
    subject: str
    content: str
    source: str
    confidence: float = 0.8
    tags: list[str] = field(default_factory=list)
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    expires_at: datetime | None = None
    references: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "subject": self.subject,
            "content": self.content,
            "source": self.source,
            "confidence": self.confidence,
            "tags": list(self.tags),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "references": self.references,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "KnowledgeEntry":
        expires = data.get("expires_at")
        return cls(
            id=data["id"],
            type=KnowledgeType(data["type"]),
            subject=data["subject"],
            content=data["content"],
            source=data["source"],
            confidence=float(data.get("confidence", 0.8)),
            tags=list(data.get("tags", [])),
            created_at=parse_timestamp(data["created_at"]),
            updated_at=parse_timestamp(data["updated_at"]),
            expires_at=parse_timestamp(expires) if expires else None,
            references=int(data.get("references", 0)),
        )
