"""Risk agent: portfolio risk scoring, risk concentrations and dominant factors."""

from ...context import Asset, PortfolioRisk, RiskFactor, RiskLevel, analyze_portfolio_risk
from ...models import AgentRole, ObservationType, Severity, Topic
from ..base import TermAnswer
from ..domain import DomainAgent
from ..evidence import metric_evidence, risk_evidence
from ..routing import RoutingTable

HIGH_RISK_COUNT_MIN = 5
SYSTEMIC_RISK_PERCENT = 30
DEVICE_TYPE_AVERAGE_MAX = 60
DEVICE_TYPE_MIN_ASSETS = 3
FACTOR_COUNT_MIN = 10
FACTOR_AVERAGE_MIN = 10
UNIT_VARIANCE_MAX = 30
STRONG_AVERAGE_MAX = 25
LOW_RISK_PERCENT = 70

# factor -> (template, severity, severity when average contribution > 15)
FACTOR_PATTERNS: dict[str, tuple[str, Severity, Severity]] = {
    RiskFactor.EOL_STATUS.value: (
        "Lifecycle risk: {count} assets carry end-of-life risk (avg contribution {avg})",
        Severity.MEDIUM,
        Severity.HIGH,
    ),
    RiskFactor.NETWORK_EXPOSURE.value: (
        "Network exposure: {count} assets are network-connected (avg contribution {avg})",
        Severity.MEDIUM,
        Severity.MEDIUM,
    ),
    RiskFactor.UNDOCUMENTED.value: (
        "Documentation gaps: {count} assets are missing from engineering records",
        Severity.MEDIUM,
        Severity.MEDIUM,
    ),
    RiskFactor.DEVICE_CRITICALITY.value: (
        "Critical devices: {count} assets are high-criticality device types (avg contribution {avg})",
        Severity.MEDIUM,
        Severity.MEDIUM,
    ),
    RiskFactor.SAFETY_RELATED.value: (
        "Safety systems: {count} safety-related assets raise the risk baseline",
        Severity.HIGH,
        Severity.HIGH,
    ),
}
DEFAULT_FACTOR_PATTERN = ("Risk factor {factor} affects {count} assets", Severity.MEDIUM, Severity.MEDIUM)


class RiskAgent(DomainAgent):
    ROLE = AgentRole.RISK
    TITLE = "Risk Agent"
    DESCRIPTION = "Performs holistic risk analysis and identifies high-risk assets"
    CAPABILITIES = ("risk_scoring", "risk_aggregation", "trend_analysis")
    TOPIC = Topic.RISK
    RELEVANT_TOPICS = (Topic.RISK, Topic.VULNERABILITY, Topic.LIFECYCLE, Topic.GAP)

    ANSWER_ROUTES = RoutingTable.of(
        (("critical", "highest risk"), "critical"),
        (("score", "average"), "score"),
        (("factor", "driver"), "factors"),
    )
    TERM_ANSWERS = {
        "critical": TermAnswer(("critical",), "No critical risk assets identified."),
    }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._analysis: PortfolioRisk | None = None

    @property
    def analysis(self) -> PortfolioRisk | None:
        return self._analysis

    def analysis_passes(self):
        return (
            self.load_analysis,
            self.analyze_critical_assets,
            self.analyze_concentration,
            self.analyze_device_types,
            self.analyze_factors,
            self.analyze_units,
        )

    def load_analysis(self, assets: list[Asset]) -> None:
        analysis = self.context.get("risk_analysis")
        if analysis is None:
            analysis = analyze_portfolio_risk(
                assets,
                self.context.get("dependencies") or (),
                reference_date=self._clock(),
            )
        self._analysis = analysis

    def analyze_critical_assets(self, assets: list[Asset]) -> None:
        critical = self._analysis.at_level(RiskLevel.CRITICAL)
        if critical:
            self.record(
                ObservationType.WEAKNESS,
                Severity.CRITICAL,
                f"{len(critical)} assets have CRITICAL risk scores requiring immediate attention",
                evidence=[risk_evidence(r) for r in critical[:5]],
                confidence=0.9,
                recommendations=[
                    "Conduct detailed risk assessment and implement compensating controls",
                ],
            )
            for risk in critical[:3]:
                factors = ", ".join(f.description for f in risk.top_factors)
                self.record(
                    ObservationType.WEAKNESS,
                    Severity.CRITICAL,
                    f"Critical risk: {risk.asset_id} (score: {risk.normalized_score}/100) - {factors}",
                    unit=risk.asset.get("unit"),
                    asset=risk.asset_id,
                    asset_id=risk.asset.get("asset_id"),
                    evidence=[risk_evidence(risk)],
                    recommendations=[f"Mitigate: {f.description}" for f in risk.factors[:2]],
                )

        high = self._analysis.at_level(RiskLevel.HIGH)
        if len(high) > HIGH_RISK_COUNT_MIN:
            self.record(
                ObservationType.WEAKNESS,
                Severity.HIGH,
                f"{len(high)} assets have HIGH risk scores",
                evidence=[risk_evidence(r) for r in high[:5]],
                recommendations=["Schedule risk reduction for high-risk assets"],
            )

    def analyze_concentration(self, assets: list[Asset]) -> None:
        total = self._analysis.total_assets
        if not total:
            return
        distribution = self._analysis.distribution
        risky = distribution[RiskLevel.CRITICAL.value] + distribution[RiskLevel.HIGH.value]
        percent = round(risky / total * 100)
        if percent > SYSTEMIC_RISK_PERCENT:
            self.record(
                ObservationType.PATTERN,
                Severity.HIGH,
                f"{percent}% of assets have high or critical risk - systemic risk concerns",
                evidence=[metric_evidence("high_or_critical_percent", percent)],
                recommendations=["Address common risk drivers across the site"],
            )

    def analyze_device_types(self, assets: list[Asset]) -> None:
        by_type: dict[str, list[int]] = {}
        for risk in self._analysis.asset_risks:
            device_type = risk.asset.get("device_type")
            if device_type:
                by_type.setdefault(str(device_type), []).append(risk.normalized_score)

        for device_type, scores in by_type.items():
            if len(scores) < DEVICE_TYPE_MIN_ASSETS:
                continue
            average = round(sum(scores) / len(scores))
            if average > DEVICE_TYPE_AVERAGE_MAX:
                self.record(
                    ObservationType.WEAKNESS,
                    Severity.MEDIUM,
                    f"{device_type} devices show elevated average risk ({average}/100) across {len(scores)} assets",
                    evidence=[metric_evidence(f"{device_type}_average_risk", average)],
                    recommendations=[f"Review hardening standards for {device_type} devices"],
                )

    def analyze_factors(self, assets: list[Asset]) -> None:
        for row in self._analysis.factor_frequency[:5]:
            if row["count"] <= FACTOR_COUNT_MIN or row["average_contribution"] <= FACTOR_AVERAGE_MIN:
                continue
            template, severity, elevated = FACTOR_PATTERNS.get(row["factor"], DEFAULT_FACTOR_PATTERN)
            self.record(
                ObservationType.PATTERN,
                elevated if row["average_contribution"] > 15 else severity,
                template.format(
                    factor=row["factor"], count=row["count"], avg=row["average_contribution"]
                ),
                evidence=[metric_evidence(row["factor"], row["count"])],
                metadata={"factor": row["factor"]},
            )

    def analyze_units(self, assets: list[Asset]) -> None:
        units = self._analysis.unit_risks
        for unit in [u for u in units if u["critical_count"]][:3]:
            self.record(
                ObservationType.WEAKNESS,
                Severity.HIGH,
                f"{unit['unit']} is a high-risk area: {unit['critical_count']} critical, "
                f"{unit['high_count']} high-risk assets (avg score: {unit['average_score']})",
                unit=unit["unit"],
                evidence=[metric_evidence("unit_average_risk", unit["average_score"])],
                recommendations=[f"Prioritize risk reduction in {unit['unit']}"],
            )

        if len(units) > 3:
            highest = max(units, key=lambda u: u["average_score"])
            lowest = min(units, key=lambda u: u["average_score"])
            if highest["average_score"] - lowest["average_score"] > UNIT_VARIANCE_MAX:
                self.record(
                    ObservationType.PATTERN,
                    Severity.MEDIUM,
                    f"Significant risk variance across units: {highest['unit']} averages "
                    f"{highest['average_score']} vs {lowest['unit']} at {lowest['average_score']}",
                    recommendations=["Apply practices from low-risk units to high-risk units"],
                )

    def analyze_strengths(self, assets: list[Asset]) -> None:
        analysis = self._analysis
        distribution = analysis.distribution
        if not analysis.total_assets:
            return

        if analysis.average_score < STRONG_AVERAGE_MAX:
            self.record(
                ObservationType.STRENGTH,
                Severity.POSITIVE,
                f"Strong risk posture: Average risk score of {analysis.average_score}/100",
                evidence=[metric_evidence("average_risk", analysis.average_score)],
            )

        if distribution[RiskLevel.CRITICAL.value] == 0:
            self.record(
                ObservationType.STRENGTH,
                Severity.POSITIVE,
                "No critical-risk assets identified - good baseline security",
            )

        low = distribution[RiskLevel.LOW.value] + distribution[RiskLevel.INFO.value]
        low_percent = round(low / analysis.total_assets * 100)
        if low_percent >= LOW_RISK_PERCENT:
            self.record(
                ObservationType.STRENGTH,
                Severity.POSITIVE,
                f"{low_percent}% of assets have low risk scores - well-managed environment",
                evidence=[metric_evidence("low_risk_percent", low_percent)],
            )

        self.record(
            ObservationType.PATTERN,
            Severity.INFO,
            f"Risk Summary: {analysis.total_assets} assets, avg score {analysis.average_score}/100. "
            f"Distribution: " + ", ".join(f"{n} {level}" for level, n in distribution.items()),
            evidence=[metric_evidence("risk_distribution", dict(distribution))],
            confidence=0.95,
        )

    def answer_for(self, target: str) -> str | None:
        if target == "score":
            if self._analysis is None:
                return "Risk analysis not yet completed."
            return (
                f"Average risk score: {self._analysis.average_score}/100. "
                f"Total assets: {self._analysis.total_assets}"
            )
        if target == "factors":
            found = [o.description for o in self.observations if "factor" in o.metadata]
            return "\n\n".join(found) if found else "No dominant risk factors identified."
        return super().answer_for(target)
