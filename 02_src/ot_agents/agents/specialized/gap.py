"""Gap agent: blind spots, orphans, missing functions and discovery coverage."""

from ...context import Asset, Gap, GapAnalysis, GapType, analyze_gaps
from ...models import AgentRole, ObservationType, Severity, Topic
from ..base import TermAnswer
from ..domain import DomainAgent
from ..evidence import gap_evidence, metric_evidence
from ..routing import RoutingTable

BLIND_SPOT_HIGH_PERCENT = 30
UNIT_BLIND_SPOT_MIN = 5
EXCELLENT_COVERAGE_PERCENT = 90
INSUFFICIENT_DATA = (
    "Insufficient data for gap analysis - need both engineering baseline and discovery data"
)


class GapAgent(DomainAgent):
    ROLE = AgentRole.GAP
    TITLE = "Gap Agent"
    DESCRIPTION = "Identifies blind spots, orphan devices, and coverage gaps"
    CAPABILITIES = ("gap_analysis", "coverage_tracking", "reconciliation")
    TOPIC = Topic.GAP
    RELEVANT_TOPICS = (Topic.GAP, Topic.COVERAGE)

    ANSWER_ROUTES = RoutingTable.of(
        (("blind spot", "missing"), "blind_spots"),
        (("orphan", "undocumented"), "orphans"),
        (("coverage", "visibility"), "coverage"),
    )
    TERM_ANSWERS = {
        "blind_spots": TermAnswer(
            ("blind spot", "missing", "not discovered"),
            "No significant blind spots identified.",
        ),
        "orphans": TermAnswer(
            ("orphan", "undocumented"), "No orphan devices found on the network."
        ),
        "coverage": TermAnswer(
            ("coverage", "visibility"), "Discovery coverage appears adequate."
        ),
    }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._analysis: GapAnalysis | None = None

    @property
    def analysis(self) -> GapAnalysis | None:
        return self._analysis

    def analysis_passes(self):
        return (
            self.load_analysis,
            self.analyze_blind_spots,
            self.analyze_orphans,
            self.analyze_functional_gaps,
            self.analyze_coverage,
        )

    def load_analysis(self, assets: list[Asset]) -> None:
        analysis = self.context.get("gap_analysis")
        if analysis is None and self.context.get("match_results"):
            analysis = analyze_gaps(
                self.context["match_results"],
                self.context.get("functional_gaps") or (),
                self._clock(),
            )
        self._analysis = analysis
        if analysis is None:
            self.record(
                ObservationType.ANOMALY,
                Severity.LOW,
                INSUFFICIENT_DATA,
                confidence=1.0,
                recommendations=["Provide engineering baseline and discovery results"],
            )

    def analyze_blind_spots(self, assets: list[Asset]) -> None:
        if self._analysis is None:
            return
        blind_spots = self._analysis.of_type(GapType.BLIND_SPOT)
        if not blind_spots:
            return

        critical = [g for g in blind_spots if g.severity == "critical"]
        if critical:
            self.record(
                ObservationType.WEAKNESS,
                Severity.CRITICAL,
                f"{len(critical)} CRITICAL devices in engineering baseline were NOT discovered on the network",
                evidence=[gap_evidence(g) for g in critical[:5]],
                confidence=0.85,
                recommendations=[
                    "Verify these devices are installed and powered",
                    "Extend passive discovery to the affected network segments",
                ],
            )

        baseline = self._analysis.matched_count + len(blind_spots)
        percent = round(len(blind_spots) / baseline * 100)
        self.record(
            ObservationType.WEAKNESS,
            Severity.HIGH if percent > BLIND_SPOT_HIGH_PERCENT else Severity.MEDIUM,
            f"{len(blind_spots)} assets ({percent}% of baseline) are BLIND SPOTS - documented but not discovered",
            evidence=[metric_evidence("blind_spot_percent", percent)],
            recommendations=["Review discovery tool coverage and sensor placement"],
        )

        by_unit: dict[str, list[Gap]] = {}
        for gap in blind_spots:
            if gap.unit:
                by_unit.setdefault(gap.unit, []).append(gap)
        for unit, gaps in by_unit.items():
            if len(gaps) >= UNIT_BLIND_SPOT_MIN:
                self.record(
                    ObservationType.PATTERN,
                    Severity.HIGH,
                    f"{unit} has {len(gaps)} blind spots - possible discovery coverage issue",
                    unit=unit,
                    evidence=[gap_evidence(g) for g in gaps[:5]],
                    recommendations=[f"Check network span and sensor coverage for {unit}"],
                )

    def analyze_orphans(self, assets: list[Asset]) -> None:
        if self._analysis is None:
            return
        orphans = self._analysis.of_type(GapType.ORPHAN)
        important = [
            g for g in orphans
            if g.severity in ("critical", "high") or g.details.get("ip_address")
        ]
        if important:
            self.record(
                ObservationType.WEAKNESS,
                Severity.HIGH,
                f"{len(important)} UNDOCUMENTED devices found on the network - not in engineering baseline",
                evidence=[gap_evidence(g) for g in important[:5]],
                recommendations=[
                    "Investigate and document or remove unauthorized devices",
                    "Update the engineering baseline",
                ],
            )
        remaining = len(orphans) - len(important)
        if remaining > 0:
            self.record(
                ObservationType.WEAKNESS,
                Severity.MEDIUM,
                f"{remaining} additional orphan devices found - may indicate documentation gaps",
                recommendations=["Reconcile discovered devices with engineering records"],
            )

    def analyze_functional_gaps(self, assets: list[Asset]) -> None:
        if self._analysis is None:
            return
        missing = [
            g for g in self._analysis.of_type(GapType.MISSING_FUNCTION)
            if g.severity in ("critical", "high")
        ]
        if missing:
            self.record(
                ObservationType.WEAKNESS,
                Severity.HIGH,
                f"{len(missing)} expected functions are MISSING from process units",
                evidence=[gap_evidence(g) for g in missing[:5]],
                recommendations=["Confirm whether the functions exist but are undocumented"],
            )
            for gap in missing[:5]:
                self.record(
                    ObservationType.ANOMALY,
                    Severity(gap.severity),
                    f"Missing function in {gap.unit or 'Unknown'}: {gap.reason}",
                    unit=gap.unit,
                    evidence=[gap_evidence(gap)],
                )

        no_redundancy = self._analysis.of_type(GapType.NO_REDUNDANCY)
        if no_redundancy:
            self.record(
                ObservationType.WEAKNESS,
                Severity.MEDIUM,
                f"{len(no_redundancy)} critical functions have NO REDUNDANCY - single points of failure",
                evidence=[gap_evidence(g) for g in no_redundancy[:5]],
                recommendations=["Evaluate redundancy for critical control functions"],
            )

    def analyze_coverage(self, assets: list[Asset]) -> None:
        if self._analysis is None:
            return

        findings = (
            (
                GapType.NO_VISIBILITY,
                Severity.HIGH,
                "{n} areas have NO discovery visibility despite documented assets",
                "Deploy discovery sensors in areas without visibility",
            ),
            (
                GapType.NETWORK_BLIND_SPOT,
                Severity.HIGH,
                "{n} network subnets have documented assets but no discovery data",
                "Add the listed subnets to discovery scan scope",
            ),
            (
                GapType.LOW_VISIBILITY,
                Severity.MEDIUM,
                "{n} areas have LOW discovery coverage (<30%)",
                "Improve discovery coverage in low-visibility areas",
            ),
        )
        for gap_type, severity, template, action in findings:
            gaps = self._analysis.of_type(gap_type)
            if gaps:
                self.record(
                    ObservationType.WEAKNESS,
                    severity,
                    template.format(n=len(gaps)),
                    evidence=[gap_evidence(g) for g in gaps[:5]],
                    recommendations=[action],
                )

    def analyze_strengths(self, assets: list[Asset]) -> None:
        if self._analysis is None:
            return
        analysis = self._analysis
        summary = analysis.summary

        if analysis.coverage_percent >= EXCELLENT_COVERAGE_PERCENT:
            self.record(
                ObservationType.STRENGTH,
                Severity.POSITIVE,
                f"Excellent asset reconciliation: {analysis.coverage_percent:g}% of engineering baseline discovered",
                evidence=[metric_evidence("coverage_percent", analysis.coverage_percent)],
            )

        if summary["critical"] == 0 and summary["total"] > 0:
            self.record(
                ObservationType.STRENGTH,
                Severity.POSITIVE,
                "No critical gaps identified - good visibility and documentation",
            )

        if analysis.orphan_count == 0 and len(assets) > 10:
            self.record(
                ObservationType.STRENGTH,
                Severity.POSITIVE,
                "Zero undocumented devices - excellent engineering documentation",
            )

        if self.context.get("industry") and not analysis.of_type(
            GapType.MISSING_FUNCTION, GapType.NO_REDUNDANCY
        ):
            self.record(
                ObservationType.STRENGTH,
                Severity.POSITIVE,
                "All expected functions present across process units",
            )

        self.record(
            ObservationType.PATTERN,
            Severity.INFO,
            f"Gap Summary: {summary['total']} total gaps ({summary['critical']} critical, "
            f"{summary['high']} high). Blind spots: {analysis.blind_spot_count}, "
            f"Orphans: {analysis.orphan_count}",
            evidence=[metric_evidence("gap_summary", summary["by_type"])],
            confidence=0.95,
        )
