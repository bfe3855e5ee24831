"""Context-aware risk scoring for OT assets.

An asset's score combines what it is (device criticality, safety role),
where it sits (unit criticality), how old it is (lifecycle), how reachable
it is (network, internet, remote access), how well it is known (gap
context) and what depends on it. Raw points are normalized against the
maximum attainable total of 195.
"""

import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable

from .assets import Asset, DeviceContext, asset_tag, asset_unit, infer_device_context, is_private_ip
from .lifecycle import LifecycleAssessment, assess_lifecycle


class RiskFactor(str, Enum):
    DEVICE_CRITICALITY = "device_criticality"
    SAFETY_RELATED = "safety_related"
    UNIT_CRITICALITY = "unit_criticality"
    EOL_STATUS = "eol_status"
    NETWORK_EXPOSURE = "network_exposure"
    INTERNET_REACHABLE = "internet_reachable"
    REMOTE_ACCESS = "remote_access"
    UNDOCUMENTED = "undocumented"
    NO_DISCOVERY = "no_discovery"
    STALE_DATA = "stale_data"
    SINGLE_POINT_OF_FAILURE = "single_point_of_failure"
    HIGH_DOWNSTREAM_IMPACT = "high_downstream_impact"


class RiskLevel(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def rank(self) -> int:
        return _LEVEL_RANK[self]

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @classmethod
    def for_score(cls, score: int) -> "RiskLevel":
        if score >= 70:
            return cls.CRITICAL
        if score >= 50:
            return cls.HIGH
        if score >= 30:
            return cls.MEDIUM
        if score >= 10:
            return cls.LOW
        return cls.INFO


_LEVEL_RANK = {
    RiskLevel.CRITICAL: 4,
    RiskLevel.HIGH: 3,
    RiskLevel.MEDIUM: 2,
    RiskLevel.LOW: 1,
    RiskLevel.INFO: 0,
}

DEVICE_CRITICALITY_WEIGHTS = {"critical": 25, "high": 15, "medium": 8, "low": 2}
UNIT_CRITICALITY_WEIGHTS = {"critical": 15, "high": 10, "medium": 5, "low": 2}
EOL_STATUS_WEIGHTS = {
    "obsolete": 25,
    "eos": 20,
    "eol": 15,
    "approaching_eol": 10,
    "mature": 3,
    "current": 0,
    "unknown": 5,
}
SAFETY_WEIGHT = 20
NETWORK_EXPOSURE_WEIGHT = 15
INTERNET_REACHABLE_WEIGHT = 30
REMOTE_ACCESS_WEIGHT = 10
UNDOCUMENTED_WEIGHT = 15
NO_DISCOVERY_WEIGHT = 10
STALE_DATA_WEIGHT = 8
SPOF_WEIGHT = 12
DOWNSTREAM_WEIGHT = 10

# device 25 + safety 20 + unit 15 + lifecycle 25 + exposure 45 + remote 10 + gaps 33 + dependency 22
MAX_RISK_SCORE = 195

_REMOTE_HINT = re.compile(r"vpn|remote|jump|bastion", re.IGNORECASE)


@dataclass(frozen=True)
class FactorScore:
    factor: RiskFactor
    score: int
    description: str
    details: str

    def to_dict(self) -> dict:
        return {
            "factor": self.factor.value,
            "score": self.score,
            "description": self.description,
            "details": self.details,
        }


@dataclass
class AssetRisk:
    asset: Asset
    asset_id: str | None
    raw_score: int
    normalized_score: int
    level: RiskLevel
    factors: list[FactorScore]
    device_context: DeviceContext
    lifecycle: LifecycleAssessment
    max_possible_score: int = MAX_RISK_SCORE

    @property
    def top_factors(self) -> list[FactorScore]:
        return self.factors[:3]

    def has_factor(self, factor: RiskFactor, min_score: int = 0) -> bool:
        return any(f.factor == factor and f.score >= min_score for f in self.factors)

    def to_dict(self) -> dict:
        return {
            "asset_id": self.asset_id,
            "raw_score": self.raw_score,
            "max_possible_score": self.max_possible_score,
            "normalized_score": self.normalized_score,
            "level": self.level.value,
            "factors": [f.to_dict() for f in self.factors],
            "top_factors": [f.factor.value for f in self.top_factors],
        }


def calculate_asset_risk(
    asset: Asset,
    dependencies: Iterable[dict] = (),
    gap_info: dict | None = None,
    reference_date: datetime | None = None,
) -> AssetRisk:
    """
    Score one asset.

    ``dependencies`` are edge records ``{from, to, unit, type}``.
    ``gap_info`` may flag ``is_orphan``, ``is_blind_spot`` and ``is_stale``.
    """
    dependencies = list(dependencies)
    device = infer_device_context(asset)
    lifecycle = assess_lifecycle(asset, reference_date)
    factors: list[FactorScore] = []

    def add(factor: RiskFactor, score: int, description: str, details: str) -> None:
        if score > 0:
            factors.append(FactorScore(factor, score, description, details))

    add(
        RiskFactor.DEVICE_CRITICALITY,
        DEVICE_CRITICALITY_WEIGHTS.get(device.criticality, 0),
        f"Device criticality: {device.criticality}",
        f"{device.type or asset.get('device_type')} is classified as {device.criticality} criticality",
    )

    if device.is_safety_related:
        add(
            RiskFactor.SAFETY_RELATED,
            SAFETY_WEIGHT,
            "Safety-related device",
            "This device is involved in safety functions (SIS, ESD, F&G, BMS)",
        )

    unit_criticality = asset.get("unit_criticality")
    if unit_criticality:
        add(
            RiskFactor.UNIT_CRITICALITY,
            UNIT_CRITICALITY_WEIGHTS.get(str(unit_criticality).lower(), 0),
            f"Located in {unit_criticality} criticality unit",
            f"{asset_unit(asset)} is a {unit_criticality} criticality process unit",
        )

    if lifecycle.eos_date:
        lifecycle_details = f"End of support: {lifecycle.eos_date.isoformat()}"
    elif lifecycle.notes:
        lifecycle_details = lifecycle.notes[0]
    else:
        lifecycle_details = "Lifecycle status based on typical equipment lifespan"
    add(
        RiskFactor.EOL_STATUS,
        EOL_STATUS_WEIGHTS.get(lifecycle.status.value, EOL_STATUS_WEIGHTS["unknown"]),
        f"Lifecycle status: {lifecycle.status.value}",
        lifecycle_details,
    )

    ip = asset.get("ip_address")
    if ip:
        add(
            RiskFactor.NETWORK_EXPOSURE,
            NETWORK_EXPOSURE_WEIGHT,
            "Network-connected device",
            f"IP address: {ip}",
        )
        if not is_private_ip(ip):
            add(
                RiskFactor.INTERNET_REACHABLE,
                INTERNET_REACHABLE_WEIGHT,
                "Potentially internet-reachable",
                f"IP {ip} appears to be a public IP address",
            )

    if asset.get("remote_access") or _REMOTE_HINT.search(json.dumps(asset, default=str)):
        add(
            RiskFactor.REMOTE_ACCESS,
            REMOTE_ACCESS_WEIGHT,
            "Remote access enabled",
            "This device may be accessible remotely",
        )

    if gap_info:
        if gap_info.get("is_orphan"):
            add(
                RiskFactor.UNDOCUMENTED,
                UNDOCUMENTED_WEIGHT,
                "Undocumented device",
                "Device was discovered but is not in engineering documentation",
            )
        if gap_info.get("is_blind_spot"):
            add(
                RiskFactor.NO_DISCOVERY,
                NO_DISCOVERY_WEIGHT,
                "No discovery data",
                "Device is documented but was not found by discovery tools",
            )
        if gap_info.get("is_stale"):
            add(
                RiskFactor.STALE_DATA,
                STALE_DATA_WEIGHT,
                "Stale discovery data",
                f"Last seen: {gap_info.get('last_seen') or 'unknown'}",
            )

    asset_id = asset_tag(asset)
    downstream = [d for d in dependencies if d.get("from") == asset_id]
    if len(downstream) > 5:
        add(
            RiskFactor.HIGH_DOWNSTREAM_IMPACT,
            DOWNSTREAM_WEIGHT,
            "High downstream impact",
            f"This device has {len(downstream)} dependent downstream devices",
        )

    if device.is_safety_related or device.criticality == "critical":
        redundant = [
            d for d in dependencies
            if d.get("unit") == asset.get("unit") and d.get("type") == asset.get("device_type")
        ]
        if not redundant:
            add(
                RiskFactor.SINGLE_POINT_OF_FAILURE,
                SPOF_WEIGHT,
                "Single point of failure",
                "No redundant device found for this critical function",
            )

    raw = sum(f.score for f in factors)
    normalized = round(raw / MAX_RISK_SCORE * 100)
    factors.sort(key=lambda f: f.score, reverse=True)

    return AssetRisk(
        asset=asset,
        asset_id=asset_id,
        raw_score=raw,
        normalized_score=normalized,
        level=RiskLevel.for_score(normalized),
        factors=factors,
        device_context=device,
        lifecycle=lifecycle,
    )


@dataclass
class PortfolioRisk:
    asset_risks: list[AssetRisk]
    total_assets: int
    distribution: dict[str, int]
    average_score: int
    factor_frequency: list[dict] = field(default_factory=list)
    unit_risks: list[dict] = field(default_factory=list)
    recommendations: list[dict] = field(default_factory=list)

    @property
    def top_risks(self) -> list[AssetRisk]:
        return self.asset_risks[:10]

    def at_level(self, level: RiskLevel) -> list[AssetRisk]:
        return [r for r in self.asset_risks if r.level == level]

    def to_dict(self) -> dict:
        return {
            "total_assets": self.total_assets,
            "distribution": dict(self.distribution),
            "average_score": self.average_score,
            "top_risks": [r.to_dict() for r in self.top_risks],
            "factor_frequency": self.factor_frequency,
            "unit_risks": self.unit_risks,
            "recommendations": self.recommendations,
        }


def analyze_portfolio_risk(
    assets: Iterable[Asset],
    dependencies: Iterable[dict] = (),
    gap_info: dict[str, dict] | None = None,
    reference_date: datetime | None = None,
) -> PortfolioRisk:
    """Score every asset and roll the scores up by level, factor and unit.

    ``gap_info`` maps an asset tag to its gap flags.
    """
    dependencies = list(dependencies)
    gap_info = gap_info or {}
    risks = [
        calculate_asset_risk(a, dependencies, gap_info.get(asset_tag(a) or ""), reference_date)
        for a in assets
    ]
    risks.sort(key=lambda r: r.normalized_score, reverse=True)

    distribution = {level.value: 0 for level in RiskLevel}
    for risk in risks:
        distribution[risk.level.value] += 1

    average = round(sum(r.normalized_score for r in risks) / len(risks)) if risks else 0

    return PortfolioRisk(
        asset_risks=risks,
        total_assets=len(risks),
        distribution=distribution,
        average_score=average,
        factor_frequency=_factor_frequency(risks),
        unit_risks=_unit_risks(risks),
        recommendations=_recommendations(risks),
    )


def _factor_frequency(risks: list[AssetRisk]) -> list[dict]:
    totals: dict[RiskFactor, dict] = {}
    for risk in risks:
        for f in risk.factors:
            entry = totals.setdefault(f.factor, {"count": 0, "total_score": 0})
            entry["count"] += 1
            entry["total_score"] += f.score
    rows = [
        {
            "factor": factor.value,
            "count": data["count"],
            "total_score": data["total_score"],
            "average_contribution": round(data["total_score"] / data["count"]),
        }
        for factor, data in totals.items()
    ]
    rows.sort(key=lambda r: r["total_score"], reverse=True)
    return rows


def _unit_risks(risks: list[AssetRisk]) -> list[dict]:
    units: dict[str, dict] = {}
    for risk in risks:
        unit = asset_unit(risk.asset)
        entry = units.setdefault(
            unit,
            {"unit": unit, "assets": 0, "total_score": 0, "max_score": 0, "critical_count": 0, "high_count": 0},
        )
        entry["assets"] += 1
        entry["total_score"] += risk.normalized_score
        entry["max_score"] = max(entry["max_score"], risk.normalized_score)
        if risk.level == RiskLevel.CRITICAL:
            entry["critical_count"] += 1
        elif risk.level == RiskLevel.HIGH:
            entry["high_count"] += 1

    rows = []
    for entry in units.values():
        average = round(entry["total_score"] / entry["assets"])
        if entry["critical_count"]:
            level = RiskLevel.CRITICAL
        elif entry["high_count"]:
            level = RiskLevel.HIGH
        elif average > 50:
            level = RiskLevel.MEDIUM
        else:
            level = RiskLevel.LOW
        rows.append({**entry, "average_score": average, "risk_level": level.value})
    rows.sort(key=lambda r: r["max_score"], reverse=True)
    return rows


def _recommendations(risks: list[AssetRisk]) -> list[dict]:
    def ids(selected: list[AssetRisk]) -> list[str | None]:
        return [r.asset_id for r in selected[:5]]

    recommendations = []

    critical = [r for r in risks if r.level == RiskLevel.CRITICAL]
    if critical:
        recommendations.append({
            "priority": "critical",
            "title": f"{len(critical)} assets require immediate attention",
            "description": "These assets have critical risk scores due to combination of high criticality, exposure, and lifecycle concerns",
            "action": "Conduct detailed risk assessment and implement compensating controls",
            "assets": ids(critical),
        })

    eol = [r for r in risks if r.has_factor(RiskFactor.EOL_STATUS, min_score=15)]
    if len(eol) > 5:
        recommendations.append({
            "priority": "high",
            "title": f"{len(eol)} assets have lifecycle concerns",
            "description": "Significant portion of assets are EOL or approaching EOL",
            "action": "Develop technology refresh roadmap for obsolete equipment",
            "assets": ids(eol),
        })

    undocumented = [r for r in risks if r.has_factor(RiskFactor.UNDOCUMENTED)]
    if undocumented:
        recommendations.append({
            "priority": "high",
            "title": f"{len(undocumented)} undocumented devices found",
            "description": "Devices discovered on network without engineering documentation",
            "action": "Investigate and document or remove unauthorized devices",
            "assets": ids(undocumented),
        })

    exposed = [
        r for r in risks
        if r.device_context.criticality == "critical" and r.has_factor(RiskFactor.NETWORK_EXPOSURE)
    ]
    if exposed:
        recommendations.append({
            "priority": "high",
            "title": f"{len(exposed)} critical assets are network-connected",
            "description": "Critical control systems with network exposure require additional hardening",
            "action": "Review network segmentation and implement defense-in-depth controls",
            "assets": ids(exposed),
        })

    return recommendations
