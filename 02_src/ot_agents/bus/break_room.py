"""Break room: the shared message bus agents post to and listen on."""

import inspect
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Protocol

from ..logging_config import get_logger
from ..models import (
    KnowledgeEntry,
    KnowledgeType,
    Message,
    MessageType,
    Observation,
    ObservationType,
    Sentiment,
    Severity,
    Thread,
    Topic,
    new_id,
    severity_rank,
    sort_observations,
    utc_now,
)

logger = get_logger(__name__)


Subscriber = Callable[[Message], Awaitable[None] | None]
Clock = Callable[[], datetime]

SYSTEM_AGENT_ID = "system"
HUMAN_AGENT_ID = "human"

TIME_RANGES: dict[str, timedelta] = {
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(weeks=1),
}

_OBSERVATION_MESSAGE_TYPES = (
    MessageType.OBSERVATION,
    MessageType.CRITIQUE,
    MessageType.COMPLIMENT,
)

_SENTIMENT_WEIGHT = {
    Sentiment.POSITIVE: 1,
    Sentiment.NEGATIVE: -1,
    Sentiment.URGENT: -2,
}


class IBusParticipant(Protocol):
    """What the break room needs from a registered agent."""

    id: str
    name: str
    role: Any
    facility: str | None
    observations: list[Observation]

    async def listen(self, message: Message) -> None:
        """React to a message posted by someone else."""
        ...

    async def generate_answer(self, question: str) -> str:
        """Answer a free-text question."""
        ...


class IBreakRoom(Protocol):
    """Shared bus: agents post messages, every other participant hears them."""

    async def post(self, message: Message) -> Message:
        """Store, thread and broadcast a message. Returns the stored message."""
        ...

    async def register_agent(self, agent: IBusParticipant) -> None:
        """Add an agent to the broadcast list and announce it."""
        ...

    def subscribe(self, handler: Subscriber) -> Callable[[], None]:
        """Receive every posted message. Returns an unsubscribe callable."""
        ...

    def get_messages(self, **filters) -> list[Message]:
        """Filtered message log, oldest first."""
        ...

    def get_observation(self, observation_id: str) -> Observation | None:
        """Indexed observation by id."""
        ...

    def summarize(self, time_range: str = "day", facility: str | None = None) -> dict:
        """Activity, findings and sentiment over a time range."""
        ...


class BreakRoom:
    """
    In-memory break room.

    Posting is sequential: every listener is awaited in turn before
    ``post`` returns, so what listeners see matches post order.
    """

    def __init__(
        self,
        name: str = "OT Assurance Break Room",
        *,
        id: str | None = None,
        max_messages: int = 10000,
        max_observations: int = 1000,
        max_knowledge: int = 1000,
        clock: Clock = utc_now,
    ):
        self.id = id or new_id()
        self.name = name
        self.max_messages = max_messages
        self.max_observations = max_observations
        self.max_knowledge = max_knowledge
        self._clock = clock

        self.messages: list[Message] = []
        self.threads: dict[str, Thread] = {}
        self.observations: list[Observation] = []
        self.knowledge: list[KnowledgeEntry] = []
        self.agents: dict[str, IBusParticipant] = {}
        self._subscribers: list[Subscriber] = []
        self.stats = self._empty_stats()

    @staticmethod
    def _empty_stats() -> dict[str, int]:
        return {
            "messages_posted": 0,
            "threads_created": 0,
            "observations_shared": 0,
            "questions_asked": 0,
            "questions_answered": 0,
        }

    # Agents

    async def register_agent(self, agent: IBusParticipant) -> None:
        self.agents[agent.id] = agent
        await self._post_system_notice(
            f"{agent.name} has joined the break room", "agent_joined", agent
        )

    async def unregister_agent(self, agent_id: str) -> None:
        agent = self.agents.pop(agent_id, None)
        if agent is None:
            return
        await self._post_system_notice(
            f"{agent.name} has left the break room", "agent_left", agent
        )

    async def _post_system_notice(self, content: str, event: str, agent) -> None:
        role = getattr(agent.role, "value", agent.role)
        await self.post(
            Message(
                agent_id=SYSTEM_AGENT_ID,
                agent_name="Break Room",
                role=SYSTEM_AGENT_ID,
                type=MessageType.OBSERVATION,
                topic=Topic.GENERAL,
                content=content,
                metadata={"event": event, "facility": agent.facility, "role": role},
                timestamp=self._clock(),
            )
        )

    def get_agents(self) -> list[IBusParticipant]:
        return list(self.agents.values())

    def get_agents_by_facility(self, facility: str) -> list[IBusParticipant]:
        return [a for a in self.agents.values() if a.facility == facility]

    def get_agents_by_role(self, role) -> list[IBusParticipant]:
        role = getattr(role, "value", role)
        return [a for a in self.agents.values() if getattr(a.role, "value", a.role) == role]

    # Posting

    def subscribe(self, handler: Subscriber) -> Callable[[], None]:
        self._subscribers.append(handler)

        def unsubscribe() -> None:
            if handler in self._subscribers:
                self._subscribers.remove(handler)

        return unsubscribe

    async def post(self, message: Message) -> Message:
        message = self._resolve_thread(message)
        self.messages.append(message)
        self.stats["messages_posted"] += 1

        if message.thread_id:
            self._track_thread(message)

        if message.type in _OBSERVATION_MESSAGE_TYPES:
            self.stats["observations_shared"] += 1
            self._index_observation(message)
        elif message.type == MessageType.QUESTION:
            self.stats["questions_asked"] += 1
        elif message.type == MessageType.RESPONSE:
            self.stats["questions_answered"] += 1

        if len(self.messages) > self.max_messages:
            evicted = {m.id for m in self.messages[:-self.max_messages]}
            self.messages = self.messages[-self.max_messages:]
            self._prune_threads(evicted)

        await self._broadcast(message)
        return message

    def _resolve_thread(self, message: Message) -> Message:
        """A reply joins its parent's thread; anything else keeps or mints its own."""
        parent = self._find_message(message.reply_to) if message.reply_to else None
        if parent is not None:
            thread_id = parent.thread_id or parent.id
        else:
            thread_id = message.thread_id or new_id()
        if thread_id == message.thread_id:
            return message
        return replace(message, thread_id=thread_id)

    def _find_message(self, message_id: str) -> Message | None:
        for message in reversed(self.messages):
            if message.id == message_id:
                return message
        return None

    def _track_thread(self, message: Message) -> None:
        thread = self.threads.get(message.thread_id)
        if thread is None:
            root = self._find_message(message.thread_id) or message
            thread = Thread(
                id=message.thread_id,
                topic=root.topic,
                started_by=root.agent_id,
                subject=root.content[:100],
                created_at=root.timestamp,
            )
            if root is not message:
                thread.messages.append(root.id)
                thread.participants.append(root.agent_id)
            self.threads[thread.id] = thread
            self.stats["threads_created"] += 1

        thread.messages.append(message.id)
        if message.agent_id not in thread.participants:
            thread.participants.append(message.agent_id)
        thread.updated_at = message.timestamp

    def _prune_threads(self, evicted: set[str]) -> None:
        """Forget evicted message ids; threads left with none are dropped."""
        for thread_id, thread in list(self.threads.items()):
            if not evicted.intersection(thread.messages):
                continue
            thread.messages = [mid for mid in thread.messages if mid not in evicted]
            if not thread.messages:
                del self.threads[thread_id]

    def _index_observation(self, message: Message) -> None:
        observation_id = message.metadata.get("observation_id")
        if not observation_id:
            return
        agent = self.agents.get(message.agent_id)
        if agent is None:
            return
        if any(o.id == observation_id for o in self.observations):
            return
        for observation in agent.observations:
            if observation.id == observation_id:
                self.observations.append(observation)
                break
        if len(self.observations) > self.max_observations:
            self.observations = self.observations[-self.max_observations:]

    async def _broadcast(self, message: Message) -> None:
        for handler in list(self._subscribers):
            try:
                result = handler(message)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error("Subscriber error on message %s: %s", message.id, e)

        for agent in list(self.agents.values()):
            if agent.id == message.agent_id:
                continue
            try:
                await agent.listen(message)
            except Exception as e:
                logger.error("Error dispatching to %s: %s", agent.name, e)

    # Messages

    def get_messages(
        self,
        since: datetime | None = None,
        facility: str | None = None,
        topic: Topic | str | None = None,
        type: MessageType | str | None = None,
        agent_id: str | None = None,
        sentiment: Sentiment | str | None = None,
        limit: int = 100,
    ) -> list[Message]:
        filtered = self.messages
        if since is not None:
            filtered = [m for m in filtered if m.timestamp >= since]
        if facility:
            filtered = [m for m in filtered if m.metadata.get("facility") == facility]
        if topic:
            filtered = [m for m in filtered if m.topic == Topic(topic)]
        if type:
            filtered = [m for m in filtered if m.type == MessageType(type)]
        if agent_id:
            filtered = [m for m in filtered if m.agent_id == agent_id]
        if sentiment:
            filtered = [m for m in filtered if m.sentiment == Sentiment(sentiment)]
        return list(filtered[-limit:]) if limit > 0 else []

    def get_recent_messages(self, limit: int = 50) -> list[Message]:
        return self.messages[-limit:] if limit > 0 else []

    def get_thread(self, thread_id: str) -> Thread | None:
        return self.threads.get(thread_id)

    def get_thread_messages(self, thread_id: str) -> list[Message]:
        thread = self.threads.get(thread_id)
        if thread is None:
            return []
        ids = set(thread.messages)
        return [m for m in self.messages if m.id in ids]

    def get_active_threads(
        self,
        facility: str | None = None,
        resolved: bool | None = None,
        limit: int = 10,
    ) -> list[Thread]:
        threads = list(self.threads.values())
        if facility:
            threads = [
                t for t in threads
                if getattr(self.agents.get(t.started_by), "facility", None) == facility
            ]
        if resolved is not None:
            threads = [t for t in threads if t.resolved == resolved]
        threads.sort(key=lambda t: t.updated_at, reverse=True)
        return threads[:limit]

    def search_messages(self, query: str, limit: int = 20) -> list[Message]:
        needle = query.lower()
        found = [m for m in self.messages if needle in m.content.lower()]
        return found[-limit:] if limit > 0 else []

    # Observations

    def get_observations(
        self,
        facility: str | None = None,
        type: ObservationType | str | None = None,
        severity: Severity | str | None = None,
        since: datetime | None = None,
        limit: int = 50,
    ) -> list[Observation]:
        filtered = self.observations
        if facility:
            filtered = [o for o in filtered if o.subject.facility == facility]
        if type:
            filtered = [o for o in filtered if o.type == ObservationType(type)]
        if severity:
            filtered = [o for o in filtered if o.severity == Severity(severity)]
        if since is not None:
            filtered = [o for o in filtered if o.timestamp >= since]
        return sort_observations(filtered)[:limit]

    def get_observation(self, observation_id: str) -> Observation | None:
        return next((o for o in self.observations if o.id == observation_id), None)

    def get_weaknesses(self, facility: str | None = None, limit: int = 20) -> list[Observation]:
        return self.get_observations(facility=facility, type=ObservationType.WEAKNESS, limit=limit)

    def get_strengths(self, facility: str | None = None, limit: int = 20) -> list[Observation]:
        return self.get_observations(facility=facility, type=ObservationType.STRENGTH, limit=limit)

    # Knowledge

    def add_knowledge(
        self,
        type: KnowledgeType | str,
        subject: str,
        content: str,
        source: str,
        confidence: float = 0.8,
        tags: list[str] | None = None,
        expires_at: datetime | None = None,
    ) -> KnowledgeEntry:
        now = self._clock()
        entry = KnowledgeEntry(
            type=KnowledgeType(type),
            subject=subject,
            content=content,
            source=source,
            confidence=confidence,
            tags=list(tags or []),
            created_at=now,
            updated_at=now,
            expires_at=expires_at,
        )
        self.knowledge.append(entry)
        if len(self.knowledge) > self.max_knowledge:
            self.knowledge = self.knowledge[-self.max_knowledge:]
        return entry

    def query_knowledge(
        self,
        type: KnowledgeType | str | None = None,
        subject: str | None = None,
        tags: list[str] | None = None,
        limit: int = 20,
    ) -> list[KnowledgeEntry]:
        filtered = self.knowledge
        if type:
            filtered = [k for k in filtered if k.type == KnowledgeType(type)]
        if subject:
            needle = subject.lower()
            filtered = [k for k in filtered if needle in k.subject.lower()]
        if tags:
            filtered = [k for k in filtered if any(t in k.tags for t in tags)]
        ranked = sorted(
            filtered,
            key=lambda k: (k.references, k.updated_at.timestamp()),
            reverse=True,
        )
        return ranked[:limit]

    # Summaries

    def summarize(self, time_range: str = "day", facility: str | None = None) -> dict:
        now = self._clock()
        since = now - TIME_RANGES.get(time_range, TIME_RANGES["day"])

        recent_messages = self.get_messages(since=since, facility=facility, limit=len(self.messages))
        recent_observations = self.get_observations(facility=facility, since=since, limit=100)

        weaknesses = [o for o in recent_observations if o.is_weakness]
        strengths = [o for o in recent_observations if o.is_strength]
        patterns = [o for o in recent_observations if o.type == ObservationType.PATTERN]

        active_threads = [
            t for t in self.get_active_threads(facility=facility, limit=len(self.threads))
            if t.updated_at >= since
        ]

        return {
            "time_range": time_range,
            "facility": facility or "All Facilities",
            "period": {"from": since.isoformat(), "to": now.isoformat()},
            "activity": {
                "messages": len(recent_messages),
                "observations": len(recent_observations),
                "active_agents": len({m.agent_id for m in recent_messages}),
                "threads": len(active_threads),
            },
            "findings": {
                "total": len(recent_observations),
                "weaknesses": len(weaknesses),
                "strengths": len(strengths),
                "patterns": len(patterns),
                "critical": sum(1 for o in weaknesses if o.severity == Severity.CRITICAL),
                "high": sum(1 for o in weaknesses if o.severity == Severity.HIGH),
            },
            "top_weaknesses": [
                {
                    "severity": o.severity.value,
                    "description": o.description,
                    "agent": self._agent_name(o.agent_id),
                }
                for o in weaknesses[:5]
            ],
            "top_strengths": [
                {"description": o.description, "agent": self._agent_name(o.agent_id)}
                for o in strengths[:3]
            ],
            "sentiment": self.calculate_sentiment(recent_messages),
            "recommendations": self.extract_recommendations(weaknesses),
        }

    def _agent_name(self, agent_id: str) -> str:
        agent = self.agents.get(agent_id)
        return agent.name if agent is not None else "Unknown"

    @staticmethod
    def calculate_sentiment(messages: list[Message]) -> dict:
        if not messages:
            return {"score": 0.0, "label": "neutral"}
        total = sum(_SENTIMENT_WEIGHT.get(m.sentiment, 0) for m in messages)
        score = max(-1.0, min(1.0, total / len(messages)))
        if score > 0.3:
            label = "positive"
        elif score < -0.3:
            label = "concerning"
        else:
            label = "neutral"
        return {"score": score, "label": label}

    @staticmethod
    def extract_recommendations(observations: list[Observation], limit: int = 10) -> list[dict]:
        """Deduplicate recommendations, most severe source first, then most frequent."""
        found: dict[str, dict] = {}
        for obs in observations:
            for text in obs.recommendations:
                if text in found:
                    found[text]["count"] += 1
                else:
                    found[text] = {"text": text, "count": 1, "priority": obs.severity.value}
        ranked = sorted(
            found.values(),
            key=lambda r: (min(severity_rank(r["priority"]), 3), -r["count"]),
        )
        return ranked[:limit]

    # Questions from humans

    async def submit_question(
        self,
        question: str,
        target_agent: str = "all",
        topic: Topic | str = Topic.GENERAL,
    ) -> dict:
        """
        Post an analyst question and gather answers.

        Agents with auto-respond answer while the question is broadcast;
        targeted agents that stayed silent are asked directly. A failing
        agent is logged and left out of the responses.
        """
        asked = await self.post(
            Message(
                agent_id=HUMAN_AGENT_ID,
                agent_name="Analyst",
                role=HUMAN_AGENT_ID,
                type=MessageType.QUESTION,
                topic=Topic(topic),
                content=question,
                metadata={"target_agent": target_agent},
                timestamp=self._clock(),
            )
        )

        responses: list[dict] = []
        answered: set[str] = set()
        for message in self.messages:
            if message.type == MessageType.RESPONSE and message.reply_to == asked.id:
                agent = self.agents.get(message.agent_id)
                responses.append(
                    {
                        "agent": message.agent_name,
                        "agent_id": message.agent_id,
                        "facility": agent.facility if agent is not None else None,
                        "answer": message.content,
                    }
                )
                answered.add(message.agent_id)

        for agent in list(self.agents.values()):
            if agent.id in answered:
                continue
            if target_agent not in ("all", agent.id):
                continue
            try:
                answer = await agent.generate_answer(question)
            except Exception as e:
                logger.error("Error getting answer from %s: %s", agent.name, e)
                continue
            if answer:
                responses.append(
                    {
                        "agent": agent.name,
                        "agent_id": agent.id,
                        "facility": agent.facility,
                        "answer": answer,
                    }
                )

        return {
            "question": question,
            "responses": responses,
            "timestamp": self._clock().isoformat(),
        }

    # Persistence

    def to_json(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "messages": [m.to_dict() for m in self.messages],
            "threads": {tid: t.to_dict() for tid, t in self.threads.items()},
            "observations": [o.to_dict() for o in self.observations],
            "knowledge": [k.to_dict() for k in self.knowledge],
            "stats": dict(self.stats),
            "agents": list(self.agents.keys()),
            "exported_at": self._clock().isoformat(),
        }

    @classmethod
    def from_json(cls, data: dict, **kwargs) -> "BreakRoom":
        """Rebuild a bus from ``to_json`` output. Agents must re-register."""
        room = cls(name=data.get("name", "OT Assurance Break Room"), id=data.get("id"), **kwargs)
        room.load_json(data)
        return room

    def load_json(self, data: dict) -> None:
        self.messages = [Message.from_dict(m) for m in data.get("messages", [])]
        self.threads = {
            tid: Thread.from_dict(t) for tid, t in (data.get("threads") or {}).items()
        }
        self.observations = [Observation.from_dict(o) for o in data.get("observations", [])]
        self.knowledge = [KnowledgeEntry.from_dict(k) for k in data.get("knowledge", [])]
        self.stats = {**self._empty_stats(), **(data.get("stats") or {})}

    def clear(self) -> None:
        self.messages = []
        self.threads = {}
        self.observations = []
        self.knowledge = []
        self.stats = self._empty_stats()
