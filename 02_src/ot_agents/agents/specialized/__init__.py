"""Domain specialists composed into every facility agent."""

from ..domain import DomainAgentRegistry
from .dependency import DependencyAgent
from .gap import GapAgent
from .lifecycle import LifecycleAgent
from .risk import RiskAgent
from .security import SecurityAgent

SPECIALIZED_AGENTS = (SecurityAgent, LifecycleAgent, GapAgent, RiskAgent, DependencyAgent)


def default_registry() -> DomainAgentRegistry:
    """A fresh registry with one factory per built-in specialist."""
    registry = DomainAgentRegistry()
    for agent_class in SPECIALIZED_AGENTS:
        registry.register(agent_class.ROLE, agent_class)
    return registry


__all__ = [
    "DependencyAgent",
    "GapAgent",
    "LifecycleAgent",
    "RiskAgent",
    "SecurityAgent",
    "SPECIALIZED_AGENTS",
    "default_registry",
]
