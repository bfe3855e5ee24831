"""Domain agent contract, shared observe pipeline and the role-keyed registry."""

from typing import Any, Callable, Protocol

from ..bus import IBreakRoom
from ..context import Asset
from ..llm import IReasoningProvider
from ..logging_config import get_logger
from ..models import AgentRole, AgentState, Observation, Severity, sort_observations
from .base import BaseAgent

logger = get_logger(__name__)

AnalysisPass = Callable[[list[Asset]], None]


class IDomainAgent(Protocol):
    """A facility-scoped specialist the facility agent composes."""

    id: str
    name: str
    role: AgentRole
    observations: list[Observation]

    async def initialize(
        self,
        break_room: IBreakRoom | None = None,
        context: dict | None = None,
        provider: IReasoningProvider | None = None,
    ) -> None:
        """Bind to the bus and provider, merge initial context."""
        ...

    def update_context(self, context: dict) -> None:
        """Merge new asset context."""
        ...

    async def observe(self, context: dict | None = None) -> list[Observation]:
        """Replace the observation set from the current context."""
        ...

    async def generate_answer(self, question: str) -> str:
        """Answer a free-text question from this domain's findings."""
        ...

    def get_plant_health(self, include_details: bool = False) -> dict:
        """Health of this domain from its open weaknesses."""
        ...


class DomainAgent(BaseAgent):
    """
    Shared observe pipeline for specialized agents.

    Subclasses list their analysis passes in order and may add a strengths
    pass; each pass records observations through ``record``. After the
    passes run, the most severe findings and one strength are shared on the
    bus.
    """

    ROLE: AgentRole
    TITLE: str = "Agent"
    DESCRIPTION: str = ""
    CAPABILITIES: tuple[str, ...] = ()
    MAX_SHARED_FINDINGS = 3

    def __init__(
        self,
        facility: str | None = None,
        facility_code: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(
            self.ROLE,
            name=f"{facility} {self.TITLE}" if facility else self.TITLE,
            facility=facility,
            facility_code=facility_code,
            description=self.DESCRIPTION,
            capabilities=self.CAPABILITIES,
            **kwargs,
        )

    @property
    def assets(self) -> list[Asset]:
        return list(self.context.get("assets") or [])

    def analysis_passes(self) -> tuple[AnalysisPass, ...]:
        return ()

    def analyze_strengths(self, assets: list[Asset]) -> None:
        pass

    async def observe(self, context: dict | None = None) -> list[Observation]:
        if context:
            self.update_context(context)

        with self._in_state(AgentState.OBSERVING):
            self.observations = []
            assets = self.assets
            if assets:
                for analysis in self.analysis_passes():
                    analysis(assets)
                self.analyze_strengths(assets)
            self.last_observation_at = self._clock()

            logger.info(
                "%s recorded %d observations",
                self.name,
                len(self.observations),
                extra={"agent_id": self.id, "facility": self.facility},
            )
            await self.share_findings()

        return list(self.observations)

    async def share_findings(self) -> None:
        urgent = [
            o for o in sort_observations(self.observations)
            if o.severity in (Severity.CRITICAL, Severity.HIGH)
        ]
        shared = urgent[: self.MAX_SHARED_FINDINGS]
        strengths = self.strengths
        if strengths:
            shared.append(strengths[0])
        for observation in shared:
            await self.share_observation(observation)


AgentFactory = Callable[..., IDomainAgent]


class DomainAgentRegistry:
    """Role -> factory table the facility agent builds its specialists from."""

    def __init__(self):
        self._factories: dict[AgentRole, AgentFactory] = {}

    def register(self, role: AgentRole | str, factory: AgentFactory) -> None:
        self._factories[AgentRole(role)] = factory

    def unregister(self, role: AgentRole | str) -> None:
        self._factories.pop(AgentRole(role), None)

    @property
    def roles(self) -> list[AgentRole]:
        return list(self._factories)

    def create(self, role: AgentRole | str, **kwargs: Any) -> IDomainAgent:
        role = AgentRole(role)
        if role not in self._factories:
            raise KeyError(f"No agent registered for role: {role.value}")
        return self._factories[role](**kwargs)

    def create_all(self, **kwargs: Any) -> dict[AgentRole, IDomainAgent]:
        return {role: factory(**kwargs) for role, factory in self._factories.items()}

    def __contains__(self, role: object) -> bool:
        try:
            return AgentRole(role) in self._factories
        except ValueError:
            return False

    def __len__(self) -> int:
        return len(self._factories)
