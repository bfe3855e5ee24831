"""FacilityAgent: one site's specialists, their aggregate findings and its health."""

import asyncio
from typing import Any

from ..bus import BreakRoom, IBreakRoom
from ..context import GapAnalysis, GapType, analyze_gaps, analyze_portfolio_risk
from ..llm import IReasoningProvider
from ..logging_config import get_logger
from ..models import (
    AgentRole,
    AgentState,
    MessageType,
    Observation,
    ObservationType,
    Sentiment,
    Severity,
    Topic,
    facility_health_status,
    sort_observations,
)
from .base import BaseAgent
from .domain import DomainAgentRegistry, IDomainAgent
from .evidence import metric_evidence
from .routing import RoutingTable
from .specialized import default_registry

logger = get_logger(__name__)

SUMMARY_TARGET = "summary"
CRITICAL_PATTERN_MIN = 3
UNIT_WEAKNESS_MIN = 5

# Context keys each specialist receives besides "assets".
ROLE_CONTEXT_KEYS: dict[AgentRole, tuple[str, ...]] = {
    AgentRole.SECURITY: ("risk_analysis",),
    AgentRole.LIFECYCLE: (),
    AgentRole.GAP: ("gap_analysis", "match_results", "functional_gaps", "industry"),
    AgentRole.RISK: ("risk_analysis", "dependencies"),
    AgentRole.DEPENDENCY: ("industry", "dependencies"),
}
DEFAULT_CONTEXT_KEYS = ("industry",)


def empty_health() -> dict:
    return {
        "score": 100,
        "status": "healthy",
        "breakdown": {"critical": 0, "high": 0, "medium": 0, "low": 0},
        "by_domain": {},
    }


def gap_flags(analysis: GapAnalysis) -> dict[str, dict]:
    """Per-asset gap flags keyed by tag, as consumed by risk scoring."""
    flags: dict[str, dict] = {}
    kinds = {
        GapType.ORPHAN: "is_orphan",
        GapType.BLIND_SPOT: "is_blind_spot",
        GapType.STALE_DATA: "is_stale",
    }
    for gap in analysis.gaps:
        flag = kinds.get(gap.type)
        if flag and gap.tag_id:
            entry = flags.setdefault(gap.tag_id, {})
            entry[flag] = True
            if gap.type == GapType.STALE_DATA:
                entry["last_seen"] = gap.details.get("last_seen")
    return flags


class FacilityAgent(BaseAgent):
    """
    Plant-level agent for one facility.

    Owns one specialist per registered role, fans observation out to all
    of them, and keeps the tagged union of their findings as its own
    observations together with its cross-domain patterns.
    """

    TOOL_NAMES = (
        "get_plant_health",
        "get_weaknesses",
        "get_strengths",
        "get_recommendations",
        "ask_agent",
        "get_observations",
    )

    QUESTION_ROUTES = RoutingTable.of(
        (("security", "vulnerab", "cve"), AgentRole.SECURITY.value),
        (("lifecycle", "eol", "obsolete"), AgentRole.LIFECYCLE.value),
        (("gap", "blind spot", "orphan"), AgentRole.GAP.value),
        (("risk",), AgentRole.RISK.value),
        (("dependency", "impact"), AgentRole.DEPENDENCY.value),
        (("health", "status", "overview"), SUMMARY_TARGET),
    )

    def __init__(
        self,
        facility: str,
        facility_code: str | None = None,
        *,
        registry: DomainAgentRegistry | None = None,
        industry: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(
            AgentRole.PLANT,
            name=f"{facility} Plant Agent",
            facility=facility,
            facility_code=facility_code,
            description="Coordinates domain specialists for one facility and tracks its health",
            capabilities=("facility_health", "cross_domain_analysis", "question_routing"),
            **kwargs,
        )
        self.industry = industry
        if industry:
            self.context["industry"] = industry

        self._registry = registry if registry is not None else default_registry()
        self.sub_agents: dict[AgentRole, IDomainAgent] = self._registry.create_all(
            facility=facility,
            facility_code=facility_code,
            layer_settings=self._layer,
            clock=self._clock,
        )
        self.health: dict = empty_health()

    async def initialize(
        self,
        break_room: IBreakRoom | None = None,
        context: dict | None = None,
        provider: IReasoningProvider | None = None,
    ) -> None:
        await super().initialize(break_room, None, provider)
        if context:
            self.update_context(context)
        for role, agent in self.sub_agents.items():
            await agent.initialize(break_room, self.context_for(role), provider)

    # Context

    def update_context(self, context: dict) -> None:
        super().update_context(context)
        if context.get("industry"):
            self.industry = context["industry"]
        self._derive_analyses(context)
        for role, agent in self.sub_agents.items():
            agent.update_context(self.context_for(role))

    def _derive_analyses(self, changed: dict) -> None:
        now = self._clock()
        if (
            "gap_analysis" not in changed
            and ("match_results" in changed or "functional_gaps" in changed)
            and self.context.get("match_results")
        ):
            self.context["gap_analysis"] = analyze_gaps(
                self.context["match_results"],
                self.context.get("functional_gaps") or (),
                now,
            )

        if "risk_analysis" not in changed and (
            "assets" in changed or "gap_analysis" in changed or "match_results" in changed
        ):
            gap_analysis = self.context.get("gap_analysis")
            self.context["risk_analysis"] = analyze_portfolio_risk(
                self.context.get("assets") or [],
                self.context.get("dependencies") or (),
                gap_flags(gap_analysis) if gap_analysis is not None else None,
                now,
            )

    def context_for(self, role: AgentRole) -> dict:
        keys = ROLE_CONTEXT_KEYS.get(role, DEFAULT_CONTEXT_KEYS)
        context = {"assets": list(self.context.get("assets") or [])}
        for key in keys:
            if key in self.context:
                context[key] = self.context[key]
        return context

    # Observing

    async def observe(self, context: dict | None = None) -> list[Observation]:
        if self.state == AgentState.OBSERVING:
            logger.warning("%s is already observing, skipping", self.name)
            return list(self.observations)

        if context:
            self.update_context(context)

        with self._in_state(AgentState.OBSERVING):
            roles = list(self.sub_agents)
            results = await asyncio.gather(
                *(self.sub_agents[role].observe() for role in roles),
                return_exceptions=True,
            )

            contributions: dict[AgentRole, list[Observation]] = {}
            failures: dict[AgentRole, str] = {}
            for role, result in zip(roles, results):
                if isinstance(result, Exception):
                    logger.error(
                        "Error in %s agent: %s",
                        role.value,
                        result,
                        extra={"facility": self.facility},
                    )
                    contributions[role] = []
                    failures[role] = str(result)
                else:
                    contributions[role] = result

            self.aggregate_findings(contributions, failures)
            self.generate_facility_observations()
            self.last_observation_at = self._clock()

            await self._post_health_summary()

        logger.info(
            "%s health %s/100 (%s)",
            self.facility,
            self.health["score"],
            self.health["status"],
            extra={"facility": self.facility},
        )
        return list(self.observations)

    def aggregate_findings(
        self,
        contributions: dict[AgentRole, list[Observation]] | None = None,
        failures: dict[AgentRole, str] | None = None,
    ) -> list[Observation]:
        if contributions is None:
            contributions = {role: list(agent.observations) for role, agent in self.sub_agents.items()}
        failures = failures or {}

        tagged = []
        for role, observations in contributions.items():
            agent = self.sub_agents[role]
            tagged.extend(o.tagged(agent.name, agent.id) for o in observations)
        self.observations = sort_observations(tagged)

        weaknesses = self.weaknesses
        breakdown = {
            level: sum(1 for o in weaknesses if o.severity == Severity(level))
            for level in ("critical", "high", "medium", "low")
        }
        score = self._layer.facility_health_weights.score(**breakdown)

        by_domain = {}
        for role, agent in self.sub_agents.items():
            if role in failures:
                by_domain[role.value] = {"status": "error", "error": failures[role]}
            else:
                by_domain[role.value] = agent.get_plant_health()

        self.health = {
            "score": score,
            "status": facility_health_status(score),
            "breakdown": breakdown,
            "by_domain": by_domain,
        }
        return self.observations

    def generate_facility_observations(self) -> list[Observation]:
        weaknesses = self.weaknesses
        strengths = self.strengths
        produced = []

        critical = [o for o in weaknesses if o.severity == Severity.CRITICAL]
        if len(critical) > CRITICAL_PATTERN_MIN:
            produced.append(self.record(
                ObservationType.PATTERN,
                Severity.CRITICAL,
                f"{self.facility} has {len(critical)} critical findings across domains - coordinated response required",
                evidence=[metric_evidence("critical_findings", len(critical))],
                confidence=0.9,
                recommendations=["Convene a cross-functional review of critical findings"],
            ))

        by_unit: dict[str, list[Observation]] = {}
        for observation in weaknesses:
            if observation.subject.unit:
                by_unit.setdefault(observation.subject.unit, []).append(observation)
        for unit, found in by_unit.items():
            if len(found) > UNIT_WEAKNESS_MIN:
                has_critical = any(o.severity == Severity.CRITICAL for o in found)
                produced.append(self.record(
                    ObservationType.PATTERN,
                    Severity.HIGH if has_critical else Severity.MEDIUM,
                    f"{unit} has {len(found)} weaknesses across multiple domains",
                    unit=unit,
                    evidence=[metric_evidence("unit_weaknesses", len(found))],
                    recommendations=[f"Prioritize a focused assessment of {unit}"],
                ))

        if strengths and len(strengths) > len(weaknesses):
            produced.append(self.record(
                ObservationType.STRENGTH,
                Severity.POSITIVE,
                f"{self.facility} shows more strengths ({len(strengths)}) than weaknesses ({len(weaknesses)})",
            ))

        self.observations = sort_observations(self.observations)
        return produced

    async def _post_health_summary(self) -> None:
        breakdown = self.health["breakdown"]
        if breakdown["critical"]:
            sentiment = Sentiment.URGENT
        elif self.health["status"] == "healthy":
            sentiment = Sentiment.POSITIVE
        elif self.health["status"] in ("degraded", "critical"):
            sentiment = Sentiment.NEGATIVE
        else:
            sentiment = Sentiment.NEUTRAL

        await self.speak(
            type=MessageType.SUMMARY,
            topic=Topic.GENERAL,
            content=f"{self.facility} Health: {self.health['score']}/100 ({self.health['status']})",
            sentiment=sentiment,
            metadata={
                "health_score": self.health["score"],
                "status": self.health["status"],
                "critical_count": breakdown["critical"],
                "high_count": breakdown["high"],
            },
        )

    # Questions

    def _route(self, question: str, agent_type: str | None = None) -> tuple[str | None, IDomainAgent | None]:
        target = agent_type or self.QUESTION_ROUTES.resolve(question)
        if target is None or target == SUMMARY_TARGET:
            return target, None
        try:
            return target, self.sub_agents.get(AgentRole(target))
        except ValueError:
            return target, None

    async def generate_answer(self, question: str) -> str:
        target, agent = self._route(question)
        if agent is not None:
            return await agent.generate_answer(question)
        if target == SUMMARY_TARGET:
            return self.health_summary()
        return await super().generate_answer(question)

    def health_summary(self) -> str:
        breakdown = self.health["breakdown"]
        lines = [
            f"{self.facility} Health: {self.health['score']}/100 ({self.health['status']}). "
            f"{breakdown['critical']} critical and {breakdown['high']} high findings; "
            f"{len(self.strengths)} strengths."
        ]
        for observation in self.weaknesses[:3]:
            lines.append(f"- [{observation.severity.value}] {observation.description}")
        return "\n".join(lines)

    # Tool handlers

    def get_plant_health(self, include_details: bool = False) -> dict:
        result = {
            "facility": self.facility,
            "facility_code": self.facility_code,
            "health_score": self.health["score"],
            "status": self.health["status"],
            "breakdown": dict(self.health["breakdown"]),
            "by_domain": self.health["by_domain"],
            "weakness_count": len(self.weaknesses),
            "strength_count": len(self.strengths),
            "last_observation": (
                self.last_observation_at.isoformat() if self.last_observation_at else None
            ),
        }
        if include_details:
            result["weaknesses"] = [o.to_dict() for o in self.weaknesses[:10]]
            result["strengths"] = [o.to_dict() for o in self.strengths[:5]]
        return result

    def get_recommendations(self, limit: int = 10) -> list[dict]:
        return BreakRoom.extract_recommendations(self.weaknesses, limit)

    async def ask_agent(self, question: str, agent_type: str | None = None) -> dict:
        target, agent = self._route(question, agent_type)
        if agent is not None:
            answer = await agent.generate_answer(question)
            return {"agent": agent.name, "agent_id": agent.id, "role": target, "answer": answer}
        return {
            "agent": self.name,
            "agent_id": self.id,
            "role": self.role.value,
            "answer": await self.generate_answer(question),
        }

    def get_observations(
        self,
        severity: str | None = None,
        type: str | None = None,
        agent_type: str | None = None,
        limit: int = 50,
    ) -> list[dict]:
        found = self.observations
        if severity and severity != "all":
            found = [o for o in found if o.severity == Severity(severity)]
        if type:
            found = [o for o in found if o.type == ObservationType(type)]
        if agent_type:
            agent = self.sub_agents.get(AgentRole(agent_type))
            agent_id = agent.id if agent is not None else None
            found = [o for o in found if o.source_agent_id == agent_id]
        return [o.to_dict() for o in found[:limit]]

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "industry": self.industry,
            "health": {k: v for k, v in self.health.items() if k != "by_domain"},
            "sub_agents": [agent.id for agent in self.sub_agents.values()],
        }
