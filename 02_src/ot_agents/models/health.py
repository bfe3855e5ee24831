"""Health scoring weights and status thresholds."""

from dataclasses import dataclass


@dataclass(frozen=True)
class HealthWeights:
    """Points deducted from a perfect score of 100 per open finding."""

    critical: int
    high: int
    medium: int
    low: int

    def score(self, critical: int = 0, high: int = 0, medium: int = 0, low: int = 0) -> int:
        """Deduct weighted finding counts from 100, clamped to [0, 100]."""
        raw = (
            100
            - critical * self.critical
            - high * self.high
            - medium * self.medium
            - low * self.low
        )
        return max(0, min(100, raw))


# Single agent: every finding below high costs the same.
AGENT_HEALTH_WEIGHTS = HealthWeights(critical=20, high=10, medium=3, low=3)

# Facility composite: low findings are free.
FACILITY_HEALTH_WEIGHTS = HealthWeights(critical=15, high=7, medium=2, low=0)


def agent_health_status(score: int) -> str:
    if score >= 80:
        return "healthy"
    if score >= 50:
        return "degraded"
    return "critical"


def facility_health_status(score: int) -> str:
    if score >= 80:
        return "healthy"
    if score >= 60:
        return "needs_attention"
    if score >= 40:
        return "degraded"
    return "critical"
