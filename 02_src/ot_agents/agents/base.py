"""BaseAgent: identity, bus participation, reasoning and tool handlers."""

import inspect
import json
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable, Iterator

from ..bus import IBreakRoom
from ..config import LayerSettings
from ..llm import IReasoningProvider
from ..logging_config import get_logger
from ..models import (
    AgentRole,
    AgentSettings,
    AgentState,
    Evidence,
    Message,
    MessageType,
    Observation,
    ObservationType,
    Reasoning,
    Sentiment,
    Severity,
    Subject,
    Suggestion,
    Topic,
    agent_health_status,
    determine_sentiment,
    message_type_for,
    observation_to_content,
    parse_timestamp,
    severity_rank,
    slugify,
    sort_observations,
    utc_now,
)
from .routing import RoutingTable

logger = get_logger(__name__)

MessageListener = Callable[[Message], Awaitable[None] | None]

NO_ANSWER = "I don't have enough information to answer that question."


@dataclass(frozen=True)
class TermAnswer:
    """Answer built from the agent's observations mentioning any of ``terms``."""

    terms: tuple[str, ...]
    default: str


def answer_from_observations(
    observations: Iterable[Observation], terms: Iterable[str], default: str
) -> str:
    terms = [t.lower() for t in terms]
    relevant = [
        o.description for o in observations
        if any(t in o.description.lower() for t in terms)
    ]
    return "\n\n".join(relevant) if relevant else default


def default_agent_id(role: AgentRole, facility: str | None) -> str:
    scope = slugify(facility) if facility else "global"
    return f"{role.value}-{scope}-{uuid.uuid4().hex[:8]}"


class BaseAgent:
    """
    A named participant in the break room.

    Subclasses fill ``observations`` from the asset context, share the
    notable ones as messages and answer questions about them. An agent
    without a reasoning provider answers from keyword rules.
    """

    TOOL_NAMES: tuple[str, ...] = (
        "get_plant_health",
        "get_weaknesses",
        "get_strengths",
        "get_recent_observations",
    )

    # Topic used when sharing observations.
    TOPIC: Topic = Topic.GENERAL
    # Topics whose messages trigger process_relevant_message.
    RELEVANT_TOPICS: tuple[Topic, ...] = ()
    ANSWER_ROUTES: RoutingTable = RoutingTable()
    TERM_ANSWERS: dict[str, TermAnswer] = {}

    def __init__(
        self,
        role: AgentRole,
        name: str,
        *,
        facility: str | None = None,
        facility_code: str | None = None,
        description: str = "",
        capabilities: Iterable[str] = (),
        agent_id: str | None = None,
        settings: AgentSettings | None = None,
        layer_settings: LayerSettings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.role = AgentRole(role)
        self.name = name
        self.facility = facility
        self.facility_code = facility_code
        self.description = description
        self.capabilities = list(capabilities)
        self.id = agent_id or default_agent_id(self.role, facility)
        self.settings = settings or AgentSettings()
        self._layer = layer_settings or LayerSettings()
        self._clock = clock

        self.state = AgentState.IDLE
        self.context: dict[str, Any] = {}
        self.observations: list[Observation] = []
        self.messages: list[Message] = []
        self.last_observation_at: datetime | None = None

        self._break_room: IBreakRoom | None = None
        self._provider: IReasoningProvider | None = None
        self._listeners: list[MessageListener] = []

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id}>"

    # Lifecycle

    async def initialize(
        self,
        break_room: IBreakRoom | None = None,
        context: dict | None = None,
        provider: IReasoningProvider | None = None,
    ) -> None:
        if context:
            self.update_context(context)
        if provider is not None:
            self._provider = provider
        if break_room is not None:
            self._break_room = break_room
            await break_room.register_agent(self)
        logger.info("Agent %s initialized", self.name, extra={"agent_id": self.id})

    def update_context(self, context: dict) -> None:
        self.context.update(context)

    @property
    def break_room(self) -> IBreakRoom | None:
        return self._break_room

    @property
    def provider(self) -> IReasoningProvider | None:
        return self._provider

    @contextmanager
    def _in_state(self, state: AgentState) -> Iterator[None]:
        previous = self.state
        self.state = state
        try:
            yield
        finally:
            self.state = previous

    # Observing

    async def observe(self, context: dict | None = None) -> list[Observation]:
        if context:
            self.update_context(context)
        self.observations = []
        self.last_observation_at = self._clock()
        return []

    def record(
        self,
        type: ObservationType,
        severity: Severity,
        description: str,
        *,
        unit: str | None = None,
        asset: str | None = None,
        asset_id: str | None = None,
        evidence: Iterable[Evidence] = (),
        confidence: float = 0.8,
        recommendations: Iterable[str] = (),
        metadata: dict | None = None,
    ) -> Observation:
        """Create an observation about this agent's facility and keep it."""
        observation = Observation(
            agent_id=self.id,
            type=type,
            severity=severity,
            description=description,
            subject=Subject(
                facility=self.facility,
                facility_code=self.facility_code,
                unit=unit,
                asset=asset,
                asset_id=asset_id,
            ),
            evidence=tuple(evidence),
            confidence=confidence,
            recommendations=tuple(recommendations),
            metadata=dict(metadata or {}),
            timestamp=self._clock(),
        )
        self.observations.append(observation)
        return observation

    @property
    def weaknesses(self) -> list[Observation]:
        return [o for o in self.observations if o.is_weakness]

    @property
    def strengths(self) -> list[Observation]:
        return [o for o in self.observations if o.is_strength]

    # Speaking

    def on_message(self, listener: MessageListener) -> Callable[[], None]:
        """Be told about every message this agent speaks."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def speak(
        self,
        type: MessageType,
        topic: Topic,
        content: str,
        sentiment: Sentiment = Sentiment.NEUTRAL,
        evidence: Iterable[Evidence] = (),
        reply_to: str | None = None,
        thread_id: str | None = None,
        metadata: dict | None = None,
    ) -> Message:
        message = Message(
            agent_id=self.id,
            agent_name=self.name,
            role=self.role.value,
            type=type,
            topic=topic,
            content=content,
            sentiment=sentiment,
            evidence=tuple(evidence),
            reply_to=reply_to,
            thread_id=thread_id,
            metadata={
                "facility": self.facility,
                "facility_code": self.facility_code,
                **(metadata or {}),
            },
            timestamp=self._clock(),
        )

        with self._in_state(AgentState.COMMUNICATING):
            if self._break_room is not None:
                message = await self._break_room.post(message)
            self.messages.append(message)

            for listener in list(self._listeners):
                try:
                    result = listener(message)
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    logger.error("Listener error in %s: %s", self.name, e)

        return message

    async def share_observation(self, observation: Observation) -> Message:
        return await self.speak(
            type=message_type_for(observation),
            topic=self.TOPIC,
            content=observation_to_content(observation),
            sentiment=determine_sentiment(observation),
            evidence=observation.evidence,
            metadata={
                "observation_id": observation.id,
                "severity": observation.severity.value,
                "confidence": observation.confidence,
            },
        )

    async def ask_question(
        self,
        question: str,
        target_agent: str = "all",
        topic: Topic = Topic.GENERAL,
    ) -> Message:
        return await self.speak(
            type=MessageType.QUESTION,
            topic=topic,
            content=question,
            metadata={"target_agent": target_agent},
        )

    # Listening

    async def listen(self, message: Message) -> None:
        if message.agent_id == self.id:
            return

        with self._in_state(AgentState.LISTENING):
            if message.type == MessageType.QUESTION and self._is_addressed(message):
                if self.settings.auto_respond:
                    answer = await self.generate_answer(message.content)
                    await self.speak(
                        type=MessageType.RESPONSE,
                        topic=message.topic,
                        content=answer,
                        reply_to=message.id,
                        thread_id=message.thread_id,
                    )
                return

            if message.topic in self.RELEVANT_TOPICS and self._same_facility(message):
                await self.process_relevant_message(message)

    def _is_addressed(self, message: Message) -> bool:
        target = message.metadata.get("target_agent", "all")
        return target in ("all", self.id, self.role.value)

    def _same_facility(self, message: Message) -> bool:
        facility = message.metadata.get("facility")
        return self.facility is None or facility is None or facility == self.facility

    async def process_relevant_message(self, message: Message) -> None:
        logger.debug("%s noted message %s on %s", self.name, message.id, message.topic.value)

    # Reasoning

    def system_prompt(self) -> str:
        return (
            f"You are {self.name}, an AI agent specialized in {self.role.value} analysis "
            f"for OT (Operational Technology) environments.\n"
            f"Your focus is {self.facility or 'enterprise-wide'} operations.\n"
            f"Role: {self.description}\n"
            "Answer concisely, cite the findings you rely on and state uncertainty plainly."
        )

    async def reason(self, prompt: str, context: dict | None = None) -> Reasoning:
        with self._in_state(AgentState.REASONING):
            if self._provider is not None:
                user_content = prompt
                if context:
                    user_content += "\n\nContext:\n" + json.dumps(context, default=str, indent=2)
                try:
                    response = await self._provider.chat(
                        [
                            {"role": "system", "content": self.system_prompt()},
                            {"role": "user", "content": user_content},
                        ],
                        temperature=self._layer.llm_temperature,
                        max_tokens=self._layer.llm_max_tokens,
                    )
                    return Reasoning(content=response.content, confidence=0.9, source="llm")
                except Exception as e:
                    logger.warning(
                        "Reasoning provider failed for %s, using rules: %s", self.name, e
                    )
            return self._rule_based_reasoning(prompt)

    def _rule_based_reasoning(self, prompt: str) -> Reasoning:
        text = prompt.lower()
        if "status" in text or "health" in text:
            return Reasoning(self.get_status_summary(), 0.7, "rules")
        if "weakness" in text or "problem" in text:
            weaknesses = sort_observations(self.weaknesses)
            if weaknesses:
                content = (
                    f"Found {len(weaknesses)} weaknesses. "
                    f"Top issue: {weaknesses[0].description}"
                )
            else:
                content = "No significant weaknesses detected."
            return Reasoning(content, 0.7, "rules")
        return Reasoning(
            f"{self.name} is tracking {len(self.observations)} observations. "
            "Ask about status or weaknesses for specifics.",
            0.5,
            "rules",
        )

    def get_status_summary(self) -> str:
        weaknesses = self.weaknesses
        critical = sum(1 for o in weaknesses if o.severity == Severity.CRITICAL)
        return (
            f"{self.name} Status: {len(self.observations)} observations, "
            f"{len(weaknesses)} weaknesses ({critical} critical), "
            f"{len(self.strengths)} strengths."
        )

    async def suggest(self, topic: str | None = None) -> list[Suggestion]:
        sources = self.weaknesses
        if topic:
            needle = topic.lower()
            sources = [o for o in sources if needle in o.description.lower()]

        suggestions = [
            Suggestion(
                observation=o.description,
                recommendation=rec,
                priority=o.severity.value,
                source="rules",
            )
            for o in sources
            for rec in o.recommendations
        ]
        suggestions.sort(key=lambda s: severity_rank(s.priority))

        if self._provider is not None and sources:
            reasoning = await self.reason(
                f"What is the single most important action to address "
                f"{topic or self.role.value} concerns?",
                {"findings": [o.description for o in sort_observations(sources)[:5]]},
            )
            if reasoning.source == "llm":
                suggestions.append(
                    Suggestion(
                        observation="Overall analysis",
                        recommendation=reasoning.content,
                        priority="high",
                        source="llm",
                    )
                )
        return suggestions

    async def generate_answer(self, question: str) -> str:
        target = self.ANSWER_ROUTES.resolve(question)
        if target is not None:
            answer = self.answer_for(target)
            if answer:
                return answer
        if self._provider is not None:
            return (await self.reason(question)).content
        return NO_ANSWER

    def answer_for(self, target: str) -> str | None:
        term_answer = self.TERM_ANSWERS.get(target)
        if term_answer is None:
            return None
        return answer_from_observations(self.observations, term_answer.terms, term_answer.default)

    # Tool handlers

    def get_plant_health(self, include_details: bool = False) -> dict:
        weaknesses = self.weaknesses
        critical = sum(1 for o in weaknesses if o.severity == Severity.CRITICAL)
        high = sum(1 for o in weaknesses if o.severity == Severity.HIGH)
        medium = sum(1 for o in weaknesses if o.severity == Severity.MEDIUM)
        other = len(weaknesses) - critical - high - medium
        score = self._layer.agent_health_weights.score(
            critical=critical, high=high, medium=medium, low=other
        )

        result = {
            "agent": self.name,
            "agent_id": self.id,
            "role": self.role.value,
            "facility": self.facility,
            "health_score": score,
            "status": agent_health_status(score),
            "critical_count": critical,
            "high_count": high,
            "weakness_count": len(weaknesses),
            "strength_count": len(self.strengths),
            "last_observation": (
                self.last_observation_at.isoformat() if self.last_observation_at else None
            ),
        }
        if include_details:
            result["weaknesses"] = [o.to_dict() for o in sort_observations(weaknesses)[:10]]
            result["strengths"] = [o.to_dict() for o in self.strengths[:5]]
        return result

    def get_weaknesses(self, severity: str | None = None, limit: int = 10) -> list[dict]:
        found = self.weaknesses
        if severity and severity != "all":
            found = [o for o in found if o.severity == Severity(severity)]
        return [o.to_dict() for o in sort_observations(found)[:limit]]

    def get_strengths(self, limit: int = 10) -> list[dict]:
        return [o.to_dict() for o in self.strengths[:limit]]

    def get_recent_observations(
        self,
        since: datetime | str | None = None,
        type: str | None = None,
        limit: int = 20,
    ) -> list[dict]:
        found = self.observations
        if since is not None:
            cutoff = parse_timestamp(since)
            found = [o for o in found if o.timestamp >= cutoff]
        if type:
            found = [o for o in found if o.type == ObservationType(type)]
        found = sorted(found, key=lambda o: o.timestamp, reverse=True)
        return [o.to_dict() for o in found[:limit]]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role.value,
            "facility": self.facility,
            "facility_code": self.facility_code,
            "description": self.description,
            "capabilities": list(self.capabilities),
            "state": self.state.value,
            "observation_count": len(self.observations),
        }
