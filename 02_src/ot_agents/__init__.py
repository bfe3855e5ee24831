"""Agent observation and coordination layer for OT asset assurance."""

from .agents import (
    BaseAgent,
    CoordinatorAgent,
    DependencyAgent,
    DomainAgent,
    DomainAgentRegistry,
    FacilityAgent,
    GapAgent,
    IDomainAgent,
    LifecycleAgent,
    RiskAgent,
    SecurityAgent,
    default_registry,
)
from .app import Application, IApplication
from .bus import BreakRoom, IBreakRoom
from .config import LayerSettings
from .llm import IReasoningProvider, LLMProvider
from .models import (
    AgentRole,
    AgentState,
    Evidence,
    EvidenceType,
    Message,
    MessageType,
    Observation,
    ObservationType,
    Sentiment,
    Severity,
    Thread,
    Topic,
)
from .storage import ISnapshotStore, SnapshotStore
from .tools import ToolServer

__all__ = [
    # Application
    "Application",
    "IApplication",
    "LayerSettings",
    # Models
    "AgentRole",
    "AgentState",
    "Evidence",
    "EvidenceType",
    "Message",
    "MessageType",
    "Observation",
    "ObservationType",
    "Sentiment",
    "Severity",
    "Thread",
    "Topic",
    # Components
    "IBreakRoom",
    "BreakRoom",
    "IReasoningProvider",
    "LLMProvider",
    "ISnapshotStore",
    "SnapshotStore",
    "ToolServer",
    # Agents
    "BaseAgent",
    "DomainAgent",
    "DomainAgentRegistry",
    "IDomainAgent",
    "SecurityAgent",
    "LifecycleAgent",
    "GapAgent",
    "RiskAgent",
    "DependencyAgent",
    "FacilityAgent",
    "CoordinatorAgent",
    "default_registry",
]
