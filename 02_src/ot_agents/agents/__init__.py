"""Agents module."""

from .base import NO_ANSWER, BaseAgent, TermAnswer, answer_from_observations
from .coordinator import CoordinatorAgent, enterprise_health
from .domain import DomainAgent, DomainAgentRegistry, IDomainAgent
from .evidence import asset_evidence, gap_evidence, metric_evidence, risk_evidence
from .facility import FacilityAgent
from .routing import KeywordRoute, RoutingTable
from .specialized import (
    DependencyAgent,
    GapAgent,
    LifecycleAgent,
    RiskAgent,
    SecurityAgent,
    default_registry,
)

__all__ = [
    "NO_ANSWER",
    "BaseAgent",
    "TermAnswer",
    "answer_from_observations",
    "CoordinatorAgent",
    "enterprise_health",
    "DomainAgent",
    "DomainAgentRegistry",
    "IDomainAgent",
    "asset_evidence",
    "gap_evidence",
    "metric_evidence",
    "risk_evidence",
    "FacilityAgent",
    "KeywordRoute",
    "RoutingTable",
    "DependencyAgent",
    "GapAgent",
    "LifecycleAgent",
    "RiskAgent",
    "SecurityAgent",
    "default_registry",
]
