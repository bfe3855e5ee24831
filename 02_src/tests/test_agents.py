"""Tests for the base agent and the domain specialists."""

import pytest

from ot_agents.agents import (
    NO_ANSWER,
    BaseAgent,
    DependencyAgent,
    DomainAgentRegistry,
    GapAgent,
    LifecycleAgent,
    RiskAgent,
    RoutingTable,
    SecurityAgent,
    default_registry,
)
from ot_agents.context import (
    AssetRisk,
    LifecycleAssessment,
    LifecycleStatus,
    PortfolioRisk,
    RiskFactor,
    RiskLevel,
)
from ot_agents.models import (
    AgentRole,
    AgentState,
    EvidenceType,
    MessageType,
    ObservationType,
    Severity,
    Topic,
)


LEVEL_SCORES = {
    RiskLevel.CRITICAL: 80,
    RiskLevel.HIGH: 60,
    RiskLevel.MEDIUM: 40,
    RiskLevel.LOW: 15,
    RiskLevel.INFO: 5,
}


def make_portfolio(levels, factor_frequency=()):
    """Precomputed portfolio with one asset per level."""
    risks = [
        AssetRisk(
            asset={"tag_id": f"A-{i}"},
            asset_id=f"A-{i}",
            raw_score=LEVEL_SCORES[level],
            normalized_score=LEVEL_SCORES[level],
            level=level,
            factors=[],
            device_context=None,
            lifecycle=LifecycleAssessment(),
        )
        for i, level in enumerate(levels)
    ]
    distribution = {level.value: 0 for level in RiskLevel}
    for risk in risks:
        distribution[risk.level.value] += 1
    return PortfolioRisk(
        asset_risks=risks,
        total_assets=len(risks),
        distribution=distribution,
        average_score=round(sum(r.normalized_score for r in risks) / len(risks)),
        factor_frequency=list(factor_frequency),
    )


async def observe_portfolio(clock, portfolio):
    agent = RiskAgent("Plant A", clock=clock)
    assets = [risk.asset for risk in portfolio.asset_risks]
    await agent.observe({"assets": assets, "risk_analysis": portfolio})
    return agent


def with_description(agent, text):
    return [o for o in agent.observations if text in o.description]


class TestBaseAgentHealth:
    """Tests for per-agent health and tool handlers."""

    def test_no_findings_is_healthy(self, clock):
        """Test that an agent without weaknesses scores 100."""
        agent = BaseAgent(AgentRole.SECURITY, "Security", clock=clock)
        health = agent.get_plant_health()

        assert health["health_score"] == 100
        assert health["status"] == "healthy"
        assert health["last_observation"] is None

    def test_critical_findings_never_raise_score(self, clock):
        """Test that each additional critical finding keeps or lowers the score."""
        agent = BaseAgent(AgentRole.SECURITY, "Security", clock=clock)
        scores = [agent.get_plant_health()["health_score"]]
        for i in range(7):
            agent.record(ObservationType.WEAKNESS, Severity.CRITICAL, f"Issue {i}")
            scores.append(agent.get_plant_health()["health_score"])

        assert scores == sorted(scores, reverse=True)
        assert scores[-1] == 0

    def test_strengths_do_not_count(self, clock):
        """Test that strengths leave the score untouched."""
        agent = BaseAgent(AgentRole.SECURITY, "Security", clock=clock)
        agent.record(ObservationType.STRENGTH, Severity.POSITIVE, "Patched")

        health = agent.get_plant_health(include_details=True)
        assert health["health_score"] == 100
        assert health["strength_count"] == 1
        assert health["strengths"][0]["description"] == "Patched"

    def test_weakness_filters(self, clock):
        """Test severity filtering, including 'all'."""
        agent = BaseAgent(AgentRole.SECURITY, "Security", clock=clock)
        agent.record(ObservationType.WEAKNESS, Severity.LOW, "Minor")
        agent.record(ObservationType.WEAKNESS, Severity.CRITICAL, "Major")

        assert [w["description"] for w in agent.get_weaknesses()] == ["Major", "Minor"]
        assert [w["description"] for w in agent.get_weaknesses("critical")] == ["Major"]
        assert len(agent.get_weaknesses("all")) == 2
        assert len(agent.get_weaknesses(limit=1)) == 1

    def test_recent_observations(self, clock):
        """Test the since filter on recent observations."""
        agent = BaseAgent(AgentRole.SECURITY, "Security", clock=clock)
        agent.record(ObservationType.WEAKNESS, Severity.LOW, "Old")
        clock.advance(hours=1)
        cutoff = clock()
        agent.record(ObservationType.PATTERN, Severity.INFO, "New")

        recent = agent.get_recent_observations(since=cutoff)
        assert [o["description"] for o in recent] == ["New"]
        assert agent.get_recent_observations(type="weakness")[0]["description"] == "Old"

    def test_record_subject(self, clock):
        """Test that records carry the agent's facility and the clock time."""
        agent = BaseAgent(
            AgentRole.RISK, "Risk", facility="Plant A", facility_code="PA", clock=clock
        )
        obs = agent.record(ObservationType.WEAKNESS, Severity.HIGH, "X", unit="Unit 1")

        assert obs.subject.facility == "Plant A"
        assert obs.subject.facility_code == "PA"
        assert obs.subject.unit == "Unit 1"
        assert obs.timestamp == clock()
        assert obs.agent_id == agent.id


class TestBaseAgentReasoning:
    """Tests for answers and reasoning fallbacks."""

    @pytest.mark.asyncio
    async def test_no_provider_no_route(self, clock):
        """Test the fixed answer when nothing matches."""
        agent = BaseAgent(AgentRole.SECURITY, "Security", clock=clock)

        assert await agent.generate_answer("What is the weather?") == NO_ANSWER

    @pytest.mark.asyncio
    async def test_provider_answers_unrouted(self, clock, mock_provider):
        """Test that the reasoning provider answers unrouted questions."""
        agent = BaseAgent(AgentRole.SECURITY, "Security", clock=clock)
        await agent.initialize(provider=mock_provider)

        assert await agent.generate_answer("What is the weather?") == "Provider answer"
        messages = mock_provider.chat.call_args.args[0]
        assert messages[0]["role"] == "system"
        assert "Security" in messages[0]["content"]

    @pytest.mark.asyncio
    async def test_provider_failure_falls_back_to_rules(self, clock, mock_provider):
        """Test that a failing provider yields the rule-based reasoning."""
        mock_provider.chat.side_effect = RuntimeError("LLM API error: down")
        agent = BaseAgent(AgentRole.SECURITY, "Security", clock=clock)
        await agent.initialize(provider=mock_provider)

        reasoning = await agent.reason("What is your status?")

        assert reasoning.source == "rules"
        assert reasoning.content.startswith("Security Status:")
        assert agent.state == AgentState.IDLE

    @pytest.mark.asyncio
    async def test_suggestions_sorted_by_priority(self, clock):
        """Test suggestions from recommendations, most severe first."""
        agent = BaseAgent(AgentRole.SECURITY, "Security", clock=clock)
        agent.record(ObservationType.WEAKNESS, Severity.MEDIUM, "Flat network", recommendations=["Segment"])
        agent.record(ObservationType.WEAKNESS, Severity.CRITICAL, "Exposed PLC", recommendations=["Firewall"])

        suggestions = await agent.suggest()

        assert [s.recommendation for s in suggestions] == ["Firewall", "Segment"]
        assert [s.recommendation for s in await agent.suggest("flat")] == ["Segment"]

    @pytest.mark.asyncio
    async def test_auto_respond_to_role(self, break_room, clock):
        """Test that an agent answers questions addressed to its role."""
        security = SecurityAgent("Plant A", clock=clock)
        asker = BaseAgent(AgentRole.COORDINATOR, "Coordinator", clock=clock)
        await security.initialize(break_room)
        await asker.initialize(break_room)

        question = await asker.ask_question("Any CVE findings?", target_agent="security")

        replies = [m for m in break_room.messages if m.reply_to == question.id]
        assert len(replies) == 1
        assert replies[0].agent_id == security.id
        assert replies[0].type == MessageType.RESPONSE
        assert replies[0].content == "No significant vulnerability findings at this time."

    @pytest.mark.asyncio
    async def test_ignores_other_targets(self, break_room, clock):
        """Test that questions for another role get no reply."""
        security = SecurityAgent("Plant A", clock=clock)
        asker = BaseAgent(AgentRole.COORDINATOR, "Coordinator", clock=clock)
        await security.initialize(break_room)
        await asker.initialize(break_room)

        question = await asker.ask_question("Anything obsolete?", target_agent="lifecycle")

        assert [m for m in break_room.messages if m.reply_to == question.id] == []


class TestRegistryAndRouting:
    """Tests for the domain registry and keyword routing."""

    def test_default_registry(self):
        """Test that every built-in specialist is registered."""
        registry = default_registry()

        assert len(registry) == 5
        assert set(registry.roles) == {
            AgentRole.SECURITY,
            AgentRole.LIFECYCLE,
            AgentRole.GAP,
            AgentRole.RISK,
            AgentRole.DEPENDENCY,
        }
        assert "security" in registry
        assert "nonsense" not in registry

    def test_create_unknown_role(self):
        """Test that creating an unregistered role raises KeyError."""
        registry = DomainAgentRegistry()

        with pytest.raises(KeyError):
            registry.create(AgentRole.SECURITY, facility="Plant A")

    def test_register_and_unregister(self, clock):
        """Test swapping factories in and out."""
        registry = DomainAgentRegistry()
        registry.register("risk", RiskAgent)

        agent = registry.create("risk", facility="Plant A", clock=clock)
        assert isinstance(agent, RiskAgent)
        assert agent.name == "Plant A Risk Agent"

        registry.unregister("risk")
        assert len(registry) == 0

    def test_first_route_wins(self):
        """Test ordered keyword routing."""
        table = RoutingTable.of((("risk",), "risk"), (("risk", "security"), "security"))

        assert table.resolve("What is the RISK here?") == "risk"
        assert table.resolve("security posture") == "security"
        assert table.resolve("weather") is None


class TestDependencyAgent:
    """Tests for the dependency specialist."""

    @pytest.mark.asyncio
    async def test_safety_spof(self, clock, safety_controller):
        """Test that a lone safety controller yields one safety-critical SPOF."""
        agent = DependencyAgent("Plant A", clock=clock)

        observations = await agent.observe({"assets": [safety_controller]})

        critical = [o for o in observations if o.severity == Severity.CRITICAL]
        assert len(critical) == 1
        assert critical[0].description == "SAFETY CRITICAL SPOF: Single safety_controller in Unit 100"
        assert critical[0].subject.unit == "Unit 100"
        assert critical[0].evidence[0].type == EvidenceType.ASSET
        assert critical[0].evidence[0].id == "SIS-101"
        assert [o.severity for o in observations if o.severity == Severity.HIGH] == [Severity.HIGH]

    @pytest.mark.parametrize("device_type", ["SIS", "Safety Instrumented System"])
    @pytest.mark.asyncio
    async def test_lone_sis_is_spof(self, clock, device_type):
        """Test that a lone SIS is a SPOF even without critical criticality."""
        asset = {"tag_id": "SIS-101", "unit": "Unit 100", "device_type": device_type, "criticality": "high"}
        agent = DependencyAgent("Plant A", clock=clock)

        await agent.observe({"assets": [asset]})

        critical = [o for o in agent.weaknesses if o.severity == Severity.CRITICAL]
        assert [o.description for o in critical] == ["SAFETY CRITICAL SPOF: Single safety_controller in Unit 100"]

    @pytest.mark.asyncio
    async def test_no_assets_records_nothing(self, clock):
        """Test that an empty context produces no findings but marks the run."""
        agent = DependencyAgent("Plant A", clock=clock)

        assert await agent.observe() == []
        assert agent.last_observation_at == clock()

    @pytest.mark.asyncio
    async def test_redundant_unit_is_strength(self, clock, plant_assets):
        """Test that multiple controllers in a unit count as redundancy."""
        agent = DependencyAgent("Plant A", clock=clock)

        await agent.observe({"assets": plant_assets})

        assert any("Good redundancy" in o.description for o in agent.strengths)

    @pytest.mark.asyncio
    async def test_shares_urgent_findings(self, break_room, clock, safety_controller):
        """Test that critical and high findings are shared on the bus."""
        agent = DependencyAgent("Plant A", clock=clock)
        await agent.initialize(break_room, {"assets": [safety_controller]})

        await agent.observe()

        shared = [m for m in break_room.messages if m.agent_id == agent.id]
        assert len(shared) == 2
        assert shared[0].content.startswith("CRITICAL: SAFETY CRITICAL SPOF")
        assert shared[0].topic == Topic.DEPENDENCY
        assert len(break_room.observations) == 2

    @pytest.mark.asyncio
    async def test_spof_answer(self, clock, safety_controller):
        """Test that SPOF questions are answered from findings."""
        agent = DependencyAgent("Plant A", clock=clock)
        await agent.observe({"assets": [safety_controller]})

        answer = await agent.generate_answer("Where is our biggest single point of failure?")

        assert "SAFETY CRITICAL SPOF" in answer


class TestSecurityAgent:
    """Tests for the security specialist."""

    @pytest.mark.asyncio
    async def test_clean_assets(self, clock, clean_assets):
        """Test that well-kept assets produce strengths only."""
        agent = SecurityAgent("Plant A", clock=clock)

        await agent.observe({"assets": clean_assets})

        assert agent.weaknesses == []
        descriptions = [o.description for o in agent.strengths]
        assert any(d.startswith("Strong patch coverage: 100%") for d in descriptions)
        assert any("private IP addresses" in d for d in descriptions)
        assert agent.get_plant_health()["health_score"] == 100

    @pytest.mark.asyncio
    async def test_public_address(self, clock):
        """Test that an internet-routable asset is a critical finding."""
        agent = SecurityAgent("Plant A", clock=clock)

        await agent.observe({"assets": [{"tag_id": "RTU-1", "device_type": "RTU", "ip_address": "8.8.8.8"}]})

        critical = [o for o in agent.weaknesses if o.severity == Severity.CRITICAL]
        assert critical[0].description == "1 OT assets may have internet-routable IP addresses"

    @pytest.mark.asyncio
    async def test_critical_cve(self, clock):
        """Test critical CVE detection from the vulnerability list."""
        asset = {
            "tag_id": "PLC-9",
            "device_type": "PLC",
            "vulnerabilities": [{"id": "CVE-2024-0001", "severity": "critical"}],
        }
        agent = SecurityAgent("Plant A", clock=clock)

        await agent.observe({"assets": [asset]})

        assert any(
            o.severity == Severity.CRITICAL and o.subject.asset == "PLC-9" for o in agent.weaknesses
        )

    @pytest.mark.asyncio
    async def test_unreadable_cve_count(self, clock):
        """Test that a non-numeric CVE count is a low anomaly and the list is used instead."""
        asset = {
            "tag_id": "PLC-9",
            "device_type": "PLC",
            "ip_address": "8.8.8.8",
            "cve_count": "n/a",
            "vulnerabilities": [{"id": "CVE-2024-0001", "severity": "critical"}],
        }
        agent = SecurityAgent("Plant A", clock=clock)

        await agent.observe({"assets": [asset]})

        anomalies = [o for o in agent.observations if o.type == ObservationType.ANOMALY]
        assert len(anomalies) == 1
        assert anomalies[0].severity == Severity.LOW
        assert anomalies[0].description.startswith("1 assets have unreadable CVE counts")
        assert any("1 CVEs including critical severity" in o.description for o in agent.weaknesses)
        assert any("internet-routable" in o.description for o in agent.weaknesses)

    @pytest.mark.asyncio
    async def test_observe_replaces_findings(self, clock):
        """Test that each observe starts from an empty set."""
        agent = SecurityAgent("Plant A", clock=clock)
        await agent.observe({"assets": [{"tag_id": "RTU-1", "device_type": "RTU", "ip_address": "8.8.8.8"}]})

        await agent.observe({"assets": []})

        assert agent.observations == []


class TestLifecycleAgent:
    """Tests for the lifecycle specialist."""

    @pytest.mark.asyncio
    async def test_obsolete_controller(self, clock):
        """Test that an obsolete product is a critical finding on the clock's date."""
        asset = {"tag_id": "PLC-5", "manufacturer": "Allen-Bradley", "model": "1747-L542", "device_type": "PLC"}
        agent = LifecycleAgent("Plant A", clock=clock)

        await agent.observe({"assets": [asset]})

        critical = [o for o in agent.weaknesses if o.severity == Severity.CRITICAL]
        assert critical[0].description.startswith("1 assets are OBSOLETE")
        answer = await agent.generate_answer("Which devices are obsolete?")
        assert "OBSOLETE" in answer

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "days, expected",
        [
            (179, (ObservationType.WEAKNESS, Severity.HIGH, "within 6 months")),
            (180, (ObservationType.WEAKNESS, Severity.MEDIUM, "within 6-12 months")),
            (364, (ObservationType.WEAKNESS, Severity.MEDIUM, "within 6-12 months")),
            (365, (ObservationType.PATTERN, Severity.LOW, "within 1-2 years")),
        ],
    )
    async def test_approaching_eol_windows(self, clock, monkeypatch, days, expected):
        """Test the severity of each end-of-life window."""
        monkeypatch.setattr(
            "ot_agents.agents.specialized.lifecycle.assess_lifecycle",
            lambda asset, now: LifecycleAssessment(status=LifecycleStatus.APPROACHING_EOL, days_until_eol=days),
        )
        agent = LifecycleAgent("Plant A", clock=clock)

        await agent.observe({"assets": [{"tag_id": "PLC-1"}]})

        found = with_description(agent, "reach End of Life")
        assert [(o.type, o.severity) for o in found] == [expected[:2]]
        assert expected[2] in found[0].description

    @pytest.mark.asyncio
    @pytest.mark.parametrize("age, flagged", [(20, False), (21, True)])
    async def test_very_old_equipment(self, clock, monkeypatch, age, flagged):
        """Test that equipment over 20 years old is a high anomaly."""
        monkeypatch.setattr(
            "ot_agents.agents.specialized.lifecycle.assess_lifecycle",
            lambda asset, now: LifecycleAssessment(estimated_age=age),
        )
        agent = LifecycleAgent("Plant A", clock=clock)

        await agent.observe({"assets": [{"tag_id": "PLC-1"}]})

        found = with_description(agent, "years old")
        assert bool(found) is flagged
        if flagged:
            assert (found[0].type, found[0].severity) == (ObservationType.ANOMALY, Severity.HIGH)

    @pytest.mark.asyncio
    async def test_unsupported_safety_system(self, clock):
        """Test that an obsolete safety system adds a critical safety finding."""
        asset = {
            "tag_id": "SIS-5",
            "manufacturer": "Allen-Bradley",
            "model": "1747-L542",
            "device_type": "Safety PLC",
        }
        agent = LifecycleAgent("Plant A", clock=clock)

        await agent.observe({"assets": [asset]})

        found = with_description(agent, "SAFETY-CRITICAL devices are past end of support")
        assert [o.severity for o in found] == [Severity.CRITICAL]


class TestGapAgent:
    """Tests for the gap specialist."""

    @pytest.mark.asyncio
    async def test_missing_reconciliation_data(self, clock, plant_assets):
        """Test the low-severity anomaly when there is nothing to reconcile."""
        agent = GapAgent("Plant A", clock=clock)

        await agent.observe({"assets": plant_assets})

        assert agent.analysis is None
        assert len(agent.observations) == 1
        assert agent.observations[0].type == ObservationType.ANOMALY
        assert agent.observations[0].severity == Severity.LOW

    @pytest.mark.asyncio
    async def test_critical_blind_spot(self, clock, plant_assets):
        """Test that an undiscovered safety system is a critical finding."""
        match_results = {
            "matched": [],
            "blind_spots": [{"tag_id": "SIS-9", "unit": "Unit 100", "device_type": "SIS"}],
            "orphans": [],
        }
        agent = GapAgent("Plant A", clock=clock)

        await agent.observe({"assets": plant_assets, "match_results": match_results})

        assert agent.analysis is not None
        assert any(o.severity == Severity.CRITICAL for o in agent.weaknesses)


class TestRiskAgent:
    """Tests for the risk specialist."""

    @pytest.mark.asyncio
    async def test_portfolio_loaded(self, clock, plant_assets):
        """Test that the portfolio is scored on observe."""
        agent = RiskAgent("Plant A", clock=clock)

        await agent.observe({"assets": plant_assets})

        assert agent.analysis.total_assets == len(plant_assets)
        assert agent.last_observation_at == clock()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count, expected", [(5, 0), (6, 1)])
    async def test_high_risk_count(self, clock, count, expected):
        """Test that more than five high-risk assets is a high weakness."""
        agent = await observe_portfolio(clock, make_portfolio([RiskLevel.HIGH] * count))

        found = with_description(agent, "assets have HIGH risk scores")
        assert len(found) == expected
        assert all(o.severity == Severity.HIGH for o in found)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("high, flagged", [(3, False), (4, True)])
    async def test_systemic_risk_percent(self, clock, high, flagged):
        """Test that more than 30% high or critical assets is a systemic pattern."""
        levels = [RiskLevel.HIGH] * high + [RiskLevel.LOW] * (10 - high)

        agent = await observe_portfolio(clock, make_portfolio(levels))

        found = with_description(agent, "systemic risk concerns")
        assert bool(found) is flagged
        if flagged:
            assert found[0].type == ObservationType.PATTERN
            assert found[0].severity == Severity.HIGH
            assert found[0].description.startswith("40% of assets")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "count, average, expected",
        [
            (10, 20, None),
            (11, 10, None),
            (11, 12, Severity.MEDIUM),
            (11, 16, Severity.HIGH),
        ],
    )
    async def test_lifecycle_factor_severity(self, clock, count, average, expected):
        """Test that a dominant end-of-life factor escalates above an average of 15."""
        row = {
            "factor": RiskFactor.EOL_STATUS.value,
            "count": count,
            "total_score": count * average,
            "average_contribution": average,
        }

        agent = await observe_portfolio(clock, make_portfolio([RiskLevel.LOW], [row]))

        found = with_description(agent, "end-of-life risk")
        assert [o.severity for o in found] == ([expected] if expected else [])

    @pytest.mark.asyncio
    async def test_critical_assets(self, clock):
        """Test one summary and up to three per-asset findings for critical assets."""
        agent = await observe_portfolio(clock, make_portfolio([RiskLevel.CRITICAL] * 4))

        assert len(with_description(agent, "4 assets have CRITICAL risk scores")) == 1
        assert len(with_description(agent, "Critical risk: A-")) == 3
