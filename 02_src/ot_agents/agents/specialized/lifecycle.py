"""Lifecycle agent: obsolescence, end-of-support and replacement planning."""

from ...context import (
    Asset,
    LifecycleAssessment,
    LifecycleStatus,
    asset_tag,
    assess_lifecycle,
    normalize_vendor,
    summarize_lifecycle,
)
from ...models import AgentRole, ObservationType, Severity, Topic, sort_observations
from ..base import TermAnswer
from ..domain import DomainAgent
from ..evidence import asset_evidence, metric_evidence
from ..routing import RoutingTable

VENDOR_PATTERN_MIN = 3
OLD_EQUIPMENT_YEARS = 20
STRONG_CURRENT_PERCENT = 70
PROACTIVE_PLANNING_PERCENT = 80

Assessed = list[tuple[Asset, LifecycleAssessment]]


def _is_safety_critical(asset: Asset) -> bool:
    device_type = str(asset.get("device_type") or "").lower()
    return (
        "sis" in device_type
        or "safety" in device_type
        or str(asset.get("criticality") or "").lower() == "critical"
    )


def _replacement_note(asset: Asset, lifecycle: LifecycleAssessment) -> str:
    name = f"{asset.get('manufacturer') or ''} {asset.get('model') or ''}".strip()
    if lifecycle.replacement:
        return f"{name} - Replace with {lifecycle.replacement}"
    return f"{name} - No replacement identified"


class LifecycleAgent(DomainAgent):
    ROLE = AgentRole.LIFECYCLE
    TITLE = "Lifecycle Agent"
    DESCRIPTION = "Tracks equipment lifecycle, EOL dates, and replacement planning"
    CAPABILITIES = ("lifecycle_tracking", "eol_monitoring", "replacement_planning")
    TOPIC = Topic.LIFECYCLE
    RELEVANT_TOPICS = (Topic.LIFECYCLE, Topic.RISK)

    ANSWER_ROUTES = RoutingTable.of(
        (("obsolete", "old"), "obsolete"),
        (("eol", "end of life"), "eol"),
        (("replace", "upgrade"), "replacement"),
    )
    TERM_ANSWERS = {
        "obsolete": TermAnswer(
            ("obsolete", "old", "aged"),
            "No significant obsolescence concerns at this time.",
        ),
        "eol": TermAnswer(
            ("eol", "end of life", "end of support"),
            "No imminent end-of-life concerns identified.",
        ),
    }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._assessed: Assessed = []

    def analysis_passes(self):
        return (
            self.assess_assets,
            self.analyze_obsolete,
            self.analyze_end_of_support,
            self.analyze_approaching_eol,
            self.analyze_aging,
        )

    def _with_status(self, *statuses: LifecycleStatus) -> Assessed:
        return [(a, lc) for a, lc in self._assessed if lc.status in statuses]

    def assess_assets(self, assets: list[Asset]) -> None:
        now = self._clock()
        self._assessed = [(asset, assess_lifecycle(asset, now)) for asset in assets]

    def analyze_obsolete(self, assets: list[Asset]) -> None:
        obsolete = self._with_status(LifecycleStatus.OBSOLETE)
        if not obsolete:
            return

        self.record(
            ObservationType.WEAKNESS,
            Severity.CRITICAL,
            f"{len(obsolete)} assets are OBSOLETE - well past end of support with no security updates available",
            evidence=[asset_evidence(a, _replacement_note(a, lc)) for a, lc in obsolete[:5]],
            confidence=0.9,
            recommendations=[
                "Create a migration project for obsolete equipment",
                "Apply compensating controls until replacement",
            ],
        )

        by_vendor: dict[str, Assessed] = {}
        for asset, lifecycle in obsolete:
            vendor = normalize_vendor(asset.get("manufacturer")) or "unknown"
            by_vendor.setdefault(vendor, []).append((asset, lifecycle))

        for vendor, items in by_vendor.items():
            if len(items) < VENDOR_PATTERN_MIN:
                continue
            replacement = next((lc.replacement for _, lc in items if lc.replacement), None)
            if replacement:
                action = f"Contact {vendor} for migration path to {replacement}"
            else:
                action = f"Contact {vendor} for replacement options"
            self.record(
                ObservationType.PATTERN,
                Severity.HIGH,
                f"{len(items)} obsolete {vendor} devices identified",
                evidence=[asset_evidence(a) for a, _ in items[:5]],
                recommendations=[action],
                metadata={"vendor": vendor},
            )

    def analyze_end_of_support(self, assets: list[Asset]) -> None:
        eos = self._with_status(LifecycleStatus.EOS)
        if eos:
            self.record(
                ObservationType.WEAKNESS,
                Severity.HIGH,
                f"{len(eos)} assets are past End of Support - no longer receiving security patches",
                evidence=[asset_evidence(a, _replacement_note(a, lc)) for a, lc in eos[:5]],
                recommendations=[
                    "Implement compensating controls and plan upgrades",
                    "Negotiate extended support where available",
                ],
            )

        unsupported_safety = [
            (a, lc)
            for a, lc in self._with_status(LifecycleStatus.EOS, LifecycleStatus.OBSOLETE)
            if _is_safety_critical(a)
        ]
        if unsupported_safety:
            self.record(
                ObservationType.WEAKNESS,
                Severity.CRITICAL,
                f"{len(unsupported_safety)} SAFETY-CRITICAL devices are past end of support",
                evidence=[asset_evidence(a) for a, _ in unsupported_safety[:5]],
                confidence=0.9,
                recommendations=[
                    "Prioritize replacement of unsupported safety systems",
                    "Review SIL verification for affected safety functions",
                ],
            )

    def analyze_approaching_eol(self, assets: list[Asset]) -> None:
        approaching = [
            (a, lc) for a, lc in self._with_status(LifecycleStatus.APPROACHING_EOL)
            if lc.days_until_eol is not None
        ]
        within_6 = [(a, lc) for a, lc in approaching if lc.days_until_eol < 180]
        within_12 = [(a, lc) for a, lc in approaching if 180 <= lc.days_until_eol < 365]
        within_24 = [(a, lc) for a, lc in approaching if lc.days_until_eol >= 365]

        if within_6:
            self.record(
                ObservationType.WEAKNESS,
                Severity.HIGH,
                f"{len(within_6)} assets reach End of Life within 6 months",
                evidence=[asset_evidence(a, _replacement_note(a, lc)) for a, lc in within_6[:5]],
                recommendations=["Expedite procurement of replacements"],
            )
        if within_12:
            self.record(
                ObservationType.WEAKNESS,
                Severity.MEDIUM,
                f"{len(within_12)} assets reach End of Life within 6-12 months",
                evidence=[asset_evidence(a, _replacement_note(a, lc)) for a, lc in within_12[:5]],
                recommendations=["Budget for replacements in the current fiscal cycle"],
            )
        if within_24:
            self.record(
                ObservationType.PATTERN,
                Severity.LOW,
                f"{len(within_24)} assets reach End of Life within 1-2 years - plan ahead",
                evidence=[asset_evidence(a) for a, _ in within_24[:5]],
                recommendations=["Budget for replacements in the next fiscal cycle"],
            )

    def analyze_aging(self, assets: list[Asset]) -> None:
        exceeded = [
            (a, lc) for a, lc in self._assessed
            if lc.estimated_remaining_life is not None
            and lc.estimated_remaining_life < 0
            and lc.status not in (LifecycleStatus.OBSOLETE, LifecycleStatus.EOS)
        ]
        if exceeded:
            self.record(
                ObservationType.WEAKNESS,
                Severity.MEDIUM,
                f"{len(exceeded)} assets have exceeded their typical equipment lifespan",
                evidence=[asset_evidence(a) for a, _ in exceeded[:5]],
                recommendations=["Assess condition and reliability of aged equipment"],
            )

        very_old = [
            (a, lc) for a, lc in self._assessed
            if lc.estimated_age is not None and lc.estimated_age > OLD_EQUIPMENT_YEARS
        ]
        if very_old:
            self.record(
                ObservationType.ANOMALY,
                Severity.HIGH,
                f"{len(very_old)} assets are over {OLD_EQUIPMENT_YEARS} years old - potential reliability concerns",
                evidence=[
                    asset_evidence(a, f"{asset_tag(a)}: {lc.estimated_age} years old")
                    for a, lc in very_old[:5]
                ],
                recommendations=["Review spare parts availability for legacy equipment"],
            )

    def analyze_strengths(self, assets: list[Asset]) -> None:
        summary = summarize_lifecycle(assets, [lc for _, lc in self._assessed])
        total = summary["total"]

        current_percent = round(summary["current"] / total * 100)
        if current_percent >= STRONG_CURRENT_PERCENT:
            self.record(
                ObservationType.STRENGTH,
                Severity.POSITIVE,
                f"Strong lifecycle position: {current_percent}% of assets are current",
                evidence=[metric_evidence("current_percent", current_percent)],
            )

        if summary["obsolete"] == 0 and summary["eos"] == 0 and total > 10:
            self.record(
                ObservationType.STRENGTH,
                Severity.POSITIVE,
                "Excellent lifecycle management: No obsolete or end-of-support equipment",
            )

        aging = self._with_status(
            LifecycleStatus.EOL,
            LifecycleStatus.EOS,
            LifecycleStatus.OBSOLETE,
            LifecycleStatus.APPROACHING_EOL,
        )
        if aging:
            planned = sum(1 for _, lc in aging if lc.replacement)
            planned_percent = round(planned / len(aging) * 100)
            if planned_percent >= PROACTIVE_PLANNING_PERCENT:
                self.record(
                    ObservationType.STRENGTH,
                    Severity.POSITIVE,
                    f"Proactive planning: {planned_percent}% of aging equipment has an identified replacement path",
                    evidence=[metric_evidence("planned_percent", planned_percent)],
                )

        self.record(
            ObservationType.PATTERN,
            Severity.INFO,
            f"Lifecycle Summary: {summary['current']} current, {summary['mature']} mature, "
            f"{summary['approaching_eol']} approaching EOL, {summary['eol']} EOL, "
            f"{summary['eos']} EOS, {summary['obsolete']} obsolete",
            evidence=[metric_evidence("lifecycle_summary", {k: summary[k] for k in (
                "current", "mature", "approaching_eol", "eol", "eos", "obsolete", "unknown"
            )})],
            confidence=0.95,
        )

    def answer_for(self, target: str) -> str | None:
        if target != "replacement":
            return super().answer_for(target)
        candidates = [o for o in sort_observations(self.weaknesses) if o.recommendations]
        if not candidates:
            return "No immediate replacement needs identified."
        blocks = [
            f"{o.description}\nAction: {'; '.join(o.recommendations)}" for o in candidates[:3]
        ]
        return "Replacement recommendations:\n\n" + "\n\n".join(blocks)
