"""Domain models of the agent layer."""

from .agents import (
    AgentRole,
    AgentSettings,
    AgentState,
    Escalation,
    Reasoning,
    Suggestion,
    slugify,
)
from .evidence import Evidence, EvidenceType, new_id, parse_timestamp, utc_now
from .health import (
    AGENT_HEALTH_WEIGHTS,
    FACILITY_HEALTH_WEIGHTS,
    HealthWeights,
    agent_health_status,
    facility_health_status,
)
from .messages import (
    KnowledgeEntry,
    KnowledgeType,
    Message,
    MessageType,
    Sentiment,
    Thread,
    Topic,
)
from .observations import (
    SEVERITY_ORDER,
    Observation,
    ObservationType,
    Severity,
    Subject,
    determine_sentiment,
    message_type_for,
    observation_to_content,
    severity_rank,
    sort_observations,
)

__all__ = [
    "AgentRole",
    "AgentSettings",
    "AgentState",
    "Escalation",
    "Reasoning",
    "Suggestion",
    "slugify",
    "Evidence",
    "EvidenceType",
    "new_id",
    "parse_timestamp",
    "utc_now",
    "AGENT_HEALTH_WEIGHTS",
    "FACILITY_HEALTH_WEIGHTS",
    "HealthWeights",
    "agent_health_status",
    "facility_health_status",
    "KnowledgeEntry",
    "KnowledgeType",
    "Message",
    "MessageType",
    "Sentiment",
    "Thread",
    "Topic",
    "SEVERITY_ORDER",
    "Observation",
    "ObservationType",
    "Severity",
    "Subject",
    "determine_sentiment",
    "message_type_for",
    "observation_to_content",
    "severity_rank",
    "sort_observations",
]
