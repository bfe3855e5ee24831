"""Tests for domain models."""

from datetime import datetime, timezone

import pytest

from ot_agents.models import (
    AGENT_HEALTH_WEIGHTS,
    FACILITY_HEALTH_WEIGHTS,
    Evidence,
    EvidenceType,
    Message,
    MessageType,
    Observation,
    ObservationType,
    Sentiment,
    Severity,
    Subject,
    Thread,
    Topic,
    determine_sentiment,
    facility_health_status,
    message_type_for,
    observation_to_content,
    slugify,
    sort_observations,
)


def make_observation(severity=Severity.HIGH, type=ObservationType.WEAKNESS, **kwargs):
    return Observation(
        agent_id="security-plant-a",
        type=type,
        severity=severity,
        description=kwargs.pop("description", "Something found"),
        **kwargs,
    )


class TestObservation:
    """Tests for Observation."""

    def test_confidence_out_of_range_rejected(self):
        """Test that confidence outside [0, 1] raises ValueError."""
        with pytest.raises(ValueError):
            make_observation(confidence=1.5)
        with pytest.raises(ValueError):
            make_observation(confidence=-0.1)

    def test_string_enums_coerced(self):
        """Test that type and severity accept plain strings."""
        obs = Observation(
            agent_id="a",
            type="strength",
            severity="positive",
            description="Good",
        )
        assert obs.type == ObservationType.STRENGTH
        assert obs.severity == Severity.POSITIVE
        assert obs.is_strength
        assert not obs.is_weakness

    def test_anomaly_counts_as_weakness(self):
        """Test that anomalies are treated as weaknesses."""
        assert make_observation(type=ObservationType.ANOMALY).is_weakness

    def test_tagged_returns_copy(self):
        """Test that tagging leaves the original untouched and keeps the id."""
        obs = make_observation()
        tagged = obs.tagged("Plant A Security Agent", "security-plant-a")

        assert tagged.id == obs.id
        assert tagged.source_agent_id == "security-plant-a"
        assert obs.source_agent_id is None

    def test_dict_round_trip(self):
        """Test that to_dict/from_dict preserves fields."""
        obs = make_observation(
            subject=Subject(facility="Plant A", unit="Unit 1", asset="PLC-1"),
            evidence=[Evidence(type=EvidenceType.ASSET, id="PLC-1", description="Asset: PLC-1")],
            recommendations=["Patch it"],
        )
        restored = Observation.from_dict(obs.to_dict())

        assert restored == obs


class TestObservationHelpers:
    """Tests for observation ordering and rendering."""

    def test_sort_most_severe_first(self):
        """Test that sorting puts critical before high before positive."""
        low = make_observation(severity=Severity.LOW)
        critical = make_observation(severity=Severity.CRITICAL)
        positive = make_observation(severity=Severity.POSITIVE, type=ObservationType.STRENGTH)

        ordered = sort_observations([positive, low, critical])

        assert [o.severity for o in ordered] == [Severity.CRITICAL, Severity.LOW, Severity.POSITIVE]

    def test_sort_newest_first_within_severity(self):
        """Test that ties on severity are broken by recency."""
        older = make_observation(timestamp=datetime(2026, 1, 1, tzinfo=timezone.utc))
        newer = make_observation(timestamp=datetime(2026, 1, 2, tzinfo=timezone.utc))

        assert sort_observations([older, newer]) == [newer, older]

    def test_sentiment(self):
        """Test sentiment derived from observation type and severity."""
        assert determine_sentiment(make_observation(severity=Severity.CRITICAL)) == Sentiment.URGENT
        assert determine_sentiment(make_observation(severity=Severity.MEDIUM)) == Sentiment.NEGATIVE
        strength = make_observation(severity=Severity.POSITIVE, type=ObservationType.STRENGTH)
        assert determine_sentiment(strength) == Sentiment.POSITIVE
        pattern = make_observation(severity=Severity.INFO, type=ObservationType.PATTERN)
        assert determine_sentiment(pattern) == Sentiment.NEUTRAL

    def test_content_prefixes(self):
        """Test break room phrasing of observations."""
        critical = make_observation(severity=Severity.CRITICAL, description="PLC exposed")
        assert observation_to_content(critical) == "CRITICAL: PLC exposed"

        strength = make_observation(
            severity=Severity.POSITIVE, type=ObservationType.STRENGTH, description="All patched"
        )
        assert observation_to_content(strength) == "Good news! All patched"

    def test_message_types(self):
        """Test message type chosen for each observation type."""
        assert message_type_for(make_observation()) == MessageType.CRITIQUE
        strength = make_observation(severity=Severity.POSITIVE, type=ObservationType.STRENGTH)
        assert message_type_for(strength) == MessageType.COMPLIMENT
        pattern = make_observation(type=ObservationType.PATTERN)
        assert message_type_for(pattern) == MessageType.OBSERVATION


class TestMessage:
    """Tests for Message and Thread."""

    def test_message_round_trip(self):
        """Test that to_dict/from_dict preserves a message."""
        msg = Message(
            agent_id="coordinator",
            agent_name="Enterprise Coordinator",
            role="coordinator",
            type="question",
            topic="risk",
            content="What is the riskiest unit?",
            metadata={"target_agent": "all"},
        )
        restored = Message.from_dict(msg.to_dict())

        assert restored == msg
        assert restored.type == MessageType.QUESTION
        assert restored.topic == Topic.RISK

    def test_thread_round_trip(self):
        """Test that to_dict/from_dict preserves a thread."""
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        thread = Thread(
            id="t1",
            topic=Topic.GENERAL,
            started_by="a",
            subject="Hello",
            participants=["a", "b"],
            messages=["m1", "m2"],
            created_at=now,
            updated_at=now,
        )

        assert Thread.from_dict(thread.to_dict()) == thread


class TestHealth:
    """Tests for health weights and status bands."""

    def test_agent_weights(self):
        """Test per-agent deductions and clamping."""
        assert AGENT_HEALTH_WEIGHTS.score() == 100
        assert AGENT_HEALTH_WEIGHTS.score(critical=1, high=1, medium=1) == 67
        assert AGENT_HEALTH_WEIGHTS.score(critical=10) == 0

    def test_facility_weights_ignore_low(self):
        """Test that low findings do not reduce the facility composite."""
        assert FACILITY_HEALTH_WEIGHTS.score(low=50) == 100
        assert FACILITY_HEALTH_WEIGHTS.score(critical=2, high=1, medium=1) == 100 - 30 - 7 - 2

    @pytest.mark.parametrize(
        "score,status",
        [(95, "healthy"), (80, "healthy"), (65, "needs_attention"), (45, "degraded"), (10, "critical")],
    )
    def test_facility_status(self, score, status):
        """Test facility status bands."""
        assert facility_health_status(score) == status


def test_slugify():
    """Test slug generation for ids and tool prefixes."""
    assert slugify("Baytown Refinery #2") == "baytown-refinery-2"
