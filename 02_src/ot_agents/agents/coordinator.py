"""CoordinatorAgent: observation rounds, escalation, conflicts and executive summaries."""

import asyncio
import inspect
from datetime import datetime
from typing import Any, Awaitable, Callable

from ..bus import SYSTEM_AGENT_ID, IBreakRoom
from ..llm import IReasoningProvider
from ..logging_config import get_logger
from ..models import (
    AgentRole,
    Escalation,
    Message,
    MessageType,
    Observation,
    Sentiment,
    Severity,
    Topic,
    new_id,
)
from .base import BaseAgent
from .facility import FacilityAgent
from .routing import RoutingTable

logger = get_logger(__name__)

EscalationCallback = Callable[[Escalation], Awaitable[None] | None]

WORST_FACILITY_THRESHOLD = 60
ENTERPRISE_ATTENTION_THRESHOLD = 70

_OPPOSITE_SENTIMENT = {
    Sentiment.POSITIVE: Sentiment.NEGATIVE,
    Sentiment.NEGATIVE: Sentiment.POSITIVE,
}


def enterprise_health(facilities: list[dict]) -> dict:
    """Roll facility rows (``health_score``, ``status``, ``critical_issues``) into one score."""
    if not facilities:
        return {"score": 100, "status": "unknown"}

    score = round(sum(f["health_score"] for f in facilities) / len(facilities))
    statuses = {f["status"] for f in facilities}
    if "critical" in statuses:
        status = "critical"
    elif (
        "degraded" in statuses
        or any(f["critical_issues"] > 0 for f in facilities)
        or score < ENTERPRISE_ATTENTION_THRESHOLD
    ):
        status = "needs_attention"
    else:
        status = "healthy"
    return {"score": score, "status": status}


class CoordinatorAgent(BaseAgent):
    """
    Enterprise-level agent.

    Runs observation rounds over every facility agent, escalates new
    critical findings at most once per escalation window, watches the bus
    for conflicting findings and writes executive summaries.
    """

    ANSWER_ROUTES = RoutingTable.of(
        (("health", "status", "overview", "summary", "enterprise"), "overview"),
    )

    def __init__(self, name: str = "Enterprise Coordinator", **kwargs: Any):
        super().__init__(
            AgentRole.COORDINATOR,
            name=name,
            description=(
                "Orchestrates facility agents, escalates critical findings "
                "and summarizes enterprise posture"
            ),
            capabilities=("orchestration", "escalation", "conflict_detection", "executive_reporting"),
            **kwargs,
        )
        self.facilities: dict[str, FacilityAgent] = {}
        self.round_count = 0
        self._escalated: dict[str, datetime] = {}
        self._flagged_conflicts: dict[tuple[str, str], datetime] = {}
        self._escalation_callbacks: list[EscalationCallback] = []
        self._unsubscribe: Callable[[], None] | None = None

    async def initialize(
        self,
        break_room: IBreakRoom | None = None,
        context: dict | None = None,
        provider: IReasoningProvider | None = None,
    ) -> None:
        await super().initialize(break_room, context, provider)
        if break_room is not None:
            if self._unsubscribe is not None:
                self._unsubscribe()
            self._unsubscribe = break_room.subscribe(self.handle_message)

    def shutdown(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def reset_state(self) -> None:
        """Forget rounds, escalations and flagged conflicts."""
        self.round_count = 0
        self.observations = []
        self._escalated.clear()
        self._flagged_conflicts.clear()

    # Facilities

    def add_facility(self, facility: FacilityAgent) -> None:
        self.facilities[facility.facility] = facility
        logger.info("Coordinator tracking facility %s", facility.facility, extra={"facility": facility.facility})

    def remove_facility(self, name: str) -> FacilityAgent | None:
        return self.facilities.pop(name, None)

    def get_facility(self, key: str) -> FacilityAgent | None:
        """Look a facility up by name or code."""
        if key in self.facilities:
            return self.facilities[key]
        return next((f for f in self.facilities.values() if f.facility_code == key), None)

    # Rounds

    async def start_observation_round(self) -> dict:
        self.round_count += 1
        round_id = new_id()
        names = list(self.facilities)
        log_extra = {"round_id": round_id}

        logger.info("Starting observation round %d over %d facilities", self.round_count, len(names), extra=log_extra)
        await self.speak(
            type=MessageType.OBSERVATION,
            topic=Topic.GENERAL,
            content=f"Starting observation round {self.round_count} across {len(names)} facilities",
            metadata={"event": "round_started", "round_id": round_id},
        )

        results = await asyncio.gather(
            *(self.facilities[name].observe() for name in names),
            return_exceptions=True,
        )

        per_facility: dict[str, list[Observation]] = {}
        errors: dict[str, str] = {}
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                logger.error(
                    "Error observing facility %s: %s",
                    name,
                    result,
                    extra={**log_extra, "facility": name},
                )
                per_facility[name] = []
                errors[name] = str(result)
            else:
                per_facility[name] = result

        escalations = await self.check_escalations(per_facility)

        findings = [o for observations in per_facility.values() for o in observations]
        critical = [o for o in findings if o.severity == Severity.CRITICAL]
        high = [o for o in findings if o.severity == Severity.HIGH]
        strengths = [o for o in findings if o.is_strength]

        lines = [
            f"Observation round {self.round_count} complete: {len(critical)} critical, "
            f"{len(high)} high findings and {len(strengths)} strengths across {len(names)} facilities."
        ]
        if critical:
            lines.append("Top critical issues:")
            lines.extend(f"- {o.subject.facility}: {o.description}" for o in critical[:3])
        if strengths:
            lines.append("Top strengths:")
            lines.extend(f"- {o.subject.facility}: {o.description}" for o in strengths[:3])

        if critical:
            sentiment = Sentiment.URGENT
        elif len(strengths) > len(high):
            sentiment = Sentiment.POSITIVE
        else:
            sentiment = Sentiment.NEUTRAL

        await self.speak(
            type=MessageType.SUMMARY,
            topic=Topic.GENERAL,
            content="\n".join(lines),
            sentiment=sentiment,
            metadata={
                "event": "round_completed",
                "round_id": round_id,
                "critical_count": len(critical),
                "high_count": len(high),
                "strength_count": len(strengths),
            },
        )
        self.last_observation_at = self._clock()

        return {
            "round": self.round_count,
            "round_id": round_id,
            "facilities": {name: len(obs) for name, obs in per_facility.items()},
            "critical": len(critical),
            "high": len(high),
            "strengths": len(strengths),
            "escalations": len(escalations),
            "errors": errors,
        }

    # Escalation

    def on_escalation(self, callback: EscalationCallback) -> Callable[[], None]:
        self._escalation_callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._escalation_callbacks:
                self._escalation_callbacks.remove(callback)

        return unsubscribe

    async def check_escalations(
        self, per_facility: dict[str, list[Observation]] | None = None
    ) -> list[Escalation]:
        if per_facility is None:
            per_facility = {name: f.observations for name, f in self.facilities.items()}

        escalations = []
        for name, observations in per_facility.items():
            for observation in observations:
                if observation.severity != Severity.CRITICAL:
                    continue
                escalation = await self.escalate(observation, facility=name)
                if escalation is not None:
                    escalations.append(escalation)
        return escalations

    async def escalate(self, observation: Observation, facility: str | None = None) -> Escalation | None:
        """Escalate once per observation id within the escalation window."""
        now = self._clock()
        window = self._layer.escalation_window
        self._escalated = {
            oid: at for oid, at in self._escalated.items() if now - at < window
        }
        if observation.id in self._escalated:
            return None
        self._escalated[observation.id] = now

        escalation = Escalation(
            finding=observation.to_dict(),
            source=observation.source_agent or observation.agent_id,
            facility=facility or observation.subject.facility,
            description=observation.description,
            timestamp=now,
        )
        logger.warning(
            "Escalating critical finding: %s",
            observation.description,
            extra={"facility": escalation.facility},
        )

        for callback in list(self._escalation_callbacks):
            try:
                result = callback(escalation)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error("Escalation callback error: %s", e)

        await self.speak(
            type=MessageType.ALERT,
            topic=Topic.GENERAL,
            content=f"ESCALATION ({escalation.facility or 'enterprise'}): {observation.description}",
            sentiment=Sentiment.URGENT,
            metadata={"event": "escalation", "escalated_observation": observation.id},
        )
        return escalation

    # Bus subscriber

    async def handle_message(self, message: Message) -> None:
        if message.agent_id in (SYSTEM_AGENT_ID, self.id):
            return

        if message.type == MessageType.CRITIQUE and message.metadata.get("severity") == Severity.CRITICAL.value:
            await self._acknowledge_critical(message)
        elif message.type == MessageType.QUESTION and message.metadata.get("target_agent", "all") == "all":
            await self._facilitate(message)

        if message.sentiment in _OPPOSITE_SENTIMENT:
            await self._detect_conflict(message)

    async def _acknowledge_critical(self, message: Message) -> None:
        await self.speak(
            type=MessageType.RESPONSE,
            topic=message.topic,
            content=f"Acknowledged critical finding from {message.agent_name}. Escalating for immediate review.",
            reply_to=message.id,
            thread_id=message.thread_id,
            metadata={"event": "acknowledged"},
        )
        observation_id = message.metadata.get("observation_id")
        if observation_id and self._break_room is not None:
            observation = self._break_room.get_observation(observation_id)
            if observation is not None:
                await self.escalate(observation, facility=message.metadata.get("facility"))

    async def _facilitate(self, message: Message) -> None:
        if not self.facilities:
            return
        await self.speak(
            type=MessageType.OBSERVATION,
            topic=message.topic,
            content=(
                f"Gathering input from {len(self.facilities)} facilities on: "
                f"{message.content[:100]}"
            ),
            reply_to=message.id,
            thread_id=message.thread_id,
            metadata={"event": "facilitation"},
        )

    async def _detect_conflict(self, message: Message) -> None:
        if self._break_room is None:
            return

        since = self._clock() - self._layer.conflict_window
        self._flagged_conflicts = {
            pair: flagged_at for pair, flagged_at in self._flagged_conflicts.items() if flagged_at >= since
        }
        facility = message.metadata.get("facility")
        if not facility:
            return

        opposite = _OPPOSITE_SENTIMENT[message.sentiment]
        candidates = [
            m for m in self._break_room.get_messages(
                since=since,
                facility=facility,
                topic=message.topic,
                type=message.type,
                sentiment=opposite,
                limit=50,
            )
            if m.agent_id != message.agent_id and m.id != message.id
        ]
        if not candidates:
            return

        other = candidates[-1]
        pair = (other.id, message.id)
        if pair in self._flagged_conflicts:
            return
        self._flagged_conflicts[pair] = self._clock()

        logger.info(
            "Conflicting %s findings at %s from %s and %s",
            message.topic.value,
            facility,
            other.agent_name,
            message.agent_name,
            extra={"facility": facility},
        )
        await self.speak(
            type=MessageType.QUESTION,
            topic=message.topic,
            content=(
                f"{other.agent_name} and {message.agent_name} have conflicting views on "
                f"{message.topic.value} at {facility}. Can you reconcile these findings?"
            ),
            reply_to=message.id,
            thread_id=message.thread_id,
            metadata={
                "event": "conflict_detected",
                "target_agent": message.agent_id,
                "conflicting_agents": [other.agent_id, message.agent_id],
                "conflicting_messages": [other.id, message.id],
            },
        )

    # Reporting

    def facility_rows(self) -> list[dict]:
        rows = []
        for name, facility in self.facilities.items():
            health = facility.health
            rows.append({
                "facility": name,
                "facility_code": facility.facility_code,
                "health_score": health["score"],
                "status": health["status"],
                "critical_issues": health["breakdown"]["critical"],
                "high_issues": health["breakdown"]["high"],
                "weaknesses": len(facility.weaknesses),
                "strengths": len(facility.strengths),
            })
        rows.sort(key=lambda r: r["health_score"])
        return rows

    def enterprise_health(self) -> dict:
        return enterprise_health(self.facility_rows())

    def generate_executive_summary(self, time_range: str = "day") -> dict:
        bus_summary = self._break_room.summarize(time_range) if self._break_room is not None else {}
        rows = self.facility_rows()
        overall = enterprise_health(rows)

        takeaways = []
        total_critical = sum(r["critical_issues"] for r in rows)
        if total_critical:
            affected = sum(1 for r in rows if r["critical_issues"])
            takeaways.append(
                f"{total_critical} critical issues require immediate attention across {affected} facilities"
            )
        if rows and rows[0]["health_score"] < WORST_FACILITY_THRESHOLD:
            takeaways.append(
                f"{rows[0]['facility']} needs the most attention (health {rows[0]['health_score']}/100)"
            )
        total_strengths = sum(r["strengths"] for r in rows)
        total_weaknesses = sum(r["weaknesses"] for r in rows)
        if total_strengths > total_weaknesses:
            takeaways.append(
                f"Strengths outnumber weaknesses across the enterprise ({total_strengths} vs {total_weaknesses})"
            )
        activity = bus_summary.get("activity") or {}
        if activity.get("active_agents"):
            takeaways.append(
                f"{activity['active_agents']} agents exchanged {activity['messages']} messages this period"
            )
        recommendations = bus_summary.get("recommendations") or []
        if recommendations:
            takeaways.append(f"Top recommendation: {recommendations[0]['text']}")
        if not takeaways:
            takeaways.append("No significant findings this period")

        return {
            "generated_at": self._clock().isoformat(),
            "time_range": time_range,
            "overall_health": overall,
            "facilities": rows,
            "summary": bus_summary,
            "key_takeaways": takeaways,
        }

    async def prompt_discussion(
        self,
        topic: str,
        facilities: list[str] | None = None,
        agents: list[str] | None = None,
    ) -> Message:
        names = facilities or list(self.facilities)
        audience = ", ".join(names) if names else "all facilities"
        return await self.speak(
            type=MessageType.QUESTION,
            topic=_as_topic(topic),
            content=f"Let's discuss {topic}. What are you seeing at {audience}?",
            metadata={
                "target_agent": "all",
                "event": "discussion",
                "facilities": names,
                "agents": list(agents or []),
            },
        )

    async def prompt_comparison(self, topic: str) -> dict:
        needle = topic.lower()
        rows = []
        for name, facility in self.facilities.items():
            related = [o for o in facility.observations if needle in o.description.lower()]
            rows.append({
                "facility": name,
                "health_score": facility.health["score"],
                "status": facility.health["status"],
                "findings": len(related),
                "weaknesses": sum(1 for o in related if o.is_weakness),
                "strengths": sum(1 for o in related if o.is_strength),
            })
        rows.sort(key=lambda r: (r["weaknesses"], -r["health_score"]), reverse=True)

        message = await self.speak(
            type=MessageType.QUESTION,
            topic=_as_topic(topic),
            content=f"How does each facility compare on {topic}? Share what sets your site apart.",
            metadata={"target_agent": "all", "event": "comparison"},
        )
        return {"topic": topic, "thread_id": message.thread_id, "comparison": rows}

    def answer_for(self, target: str) -> str | None:
        if target != "overview":
            return super().answer_for(target)
        overall = self.enterprise_health()
        lines = [
            f"Enterprise health: {overall['score']}/100 ({overall['status']}) "
            f"across {len(self.facilities)} facilities."
        ]
        lines.extend(
            f"- {r['facility']}: {r['health_score']}/100 ({r['status']}), "
            f"{r['critical_issues']} critical"
            for r in self.facility_rows()
        )
        return "\n".join(lines)


def _as_topic(topic: str) -> Topic:
    try:
        return Topic(topic.lower())
    except ValueError:
        return Topic.GENERAL
