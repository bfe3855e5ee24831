"""Asset and coverage gap analysis over engineering-vs-discovery match results.

``match_results`` comes from an upstream record-linkage step::

    {
        "matched": [{"engineering": {...}, "discovered": {...}}, ...],
        "blind_spots": [...],   # engineering records never discovered
        "orphans": [...],       # discovered records with no engineering record
        "stats": {"coverage_percent": 87.5},
    }
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable

from ..models.evidence import utc_now
from ..models.observations import severity_rank
from .assets import Asset, asset_tag, asset_unit, infer_device_context, parse_date, subnet_of

STALE_AFTER_DAYS = 30
VERY_STALE_AFTER_DAYS = 90
LOW_VISIBILITY_PERCENT = 30
LOW_VISIBILITY_MIN_ASSETS = 5
NETWORK_BLIND_SPOT_MIN_ASSETS = 2


class GapType(str, Enum):
    BLIND_SPOT = "blind_spot"
    ORPHAN = "orphan"
    STALE_DATA = "stale_data"
    MISSING_FUNCTION = "missing_function"
    INSUFFICIENT_COVERAGE = "insufficient_coverage"
    NO_REDUNDANCY = "no_redundancy"
    NO_VISIBILITY = "no_visibility"
    LOW_VISIBILITY = "low_visibility"
    NETWORK_BLIND_SPOT = "network_blind_spot"


@dataclass
class Gap:
    type: GapType
    severity: str
    reason: str
    unit: str | None = None
    asset: Asset | None = None
    subnet: str | None = None
    details: dict = field(default_factory=dict)

    @property
    def tag_id(self) -> str | None:
        return asset_tag(self.asset) if self.asset else None

    def to_dict(self) -> dict:
        return {
            "gap_type": self.type.value,
            "severity": self.severity,
            "reason": self.reason,
            "unit": self.unit,
            "tag_id": self.tag_id,
            "subnet": self.subnet,
            "details": dict(self.details),
        }


@dataclass
class GapAnalysis:
    gaps: list[Gap]
    coverage_percent: float
    matched_count: int
    blind_spot_count: int
    orphan_count: int
    functional_gaps: list[dict] = field(default_factory=list)

    def of_type(self, *types: GapType) -> list[Gap]:
        return [g for g in self.gaps if g.type in types]

    @property
    def summary(self) -> dict:
        counts = {level: 0 for level in ("critical", "high", "medium", "low")}
        for gap in self.gaps:
            if gap.severity in counts:
                counts[gap.severity] += 1
        return {
            "total": len(self.gaps),
            **counts,
            "by_type": {
                "blind_spots": len(self.of_type(GapType.BLIND_SPOT)),
                "orphans": len(self.of_type(GapType.ORPHAN)),
                "stale_data": len(self.of_type(GapType.STALE_DATA)),
                "missing_functions": len(self.of_type(GapType.MISSING_FUNCTION)),
                "insufficient_coverage": len(
                    self.of_type(GapType.INSUFFICIENT_COVERAGE, GapType.LOW_VISIBILITY)
                ),
                "no_visibility": len(
                    self.of_type(GapType.NO_VISIBILITY, GapType.NETWORK_BLIND_SPOT)
                ),
            },
            "affected_units": sorted({g.unit for g in self.gaps if g.unit}),
        }

    def to_dict(self) -> dict:
        return {
            "gaps": [g.to_dict() for g in self.gaps],
            "summary": self.summary,
            "coverage_percent": self.coverage_percent,
            "matched": self.matched_count,
            "blind_spots": self.blind_spot_count,
            "orphans": self.orphan_count,
        }


def analyze_gaps(
    match_results: dict,
    functional_gaps: Iterable[dict] = (),
    reference_date: datetime | None = None,
) -> GapAnalysis:
    """Turn match results into a severity-sorted list of gaps.

    ``functional_gaps`` are appended as supplied; deriving them from an
    industry template happens elsewhere.
    """
    now = reference_date or utc_now()
    matched = list(match_results.get("matched") or [])
    blind_spots = list(match_results.get("blind_spots") or [])
    orphans = list(match_results.get("orphans") or [])

    engineering = [m.get("engineering") or {} for m in matched] + blind_spots
    discovered = [m.get("discovered") or {} for m in matched] + orphans

    gaps: list[Gap] = []
    gaps.extend(_blind_spot_gaps(blind_spots))
    gaps.extend(_orphan_gaps(orphans))
    gaps.extend(_stale_gaps(discovered, now))
    gaps.extend(_coverage_gaps(engineering, discovered))
    gaps.extend(_network_blind_spots(engineering, discovered))

    functional = list(functional_gaps)
    for fg in functional:
        gap_type = GapType.NO_REDUNDANCY if fg.get("gap_type") == "no_redundancy" else GapType.MISSING_FUNCTION
        gaps.append(Gap(
            type=gap_type,
            severity=fg.get("severity", "medium"),
            reason=fg.get("description") or fg.get("reason") or "Expected function not found",
            unit=fg.get("unit"),
            details=dict(fg),
        ))

    gaps.sort(key=lambda g: severity_rank(g.severity))

    stats = match_results.get("stats") or {}
    coverage = stats.get("coverage_percent")
    if coverage is None:
        baseline = len(matched) + len(blind_spots)
        coverage = round(len(matched) / baseline * 100, 1) if baseline else 0.0

    return GapAnalysis(
        gaps=gaps,
        coverage_percent=float(coverage),
        matched_count=len(matched),
        blind_spot_count=len(blind_spots),
        orphan_count=len(orphans),
        functional_gaps=functional,
    )


def _blind_spot_gaps(blind_spots: list[Asset]) -> list[Gap]:
    gaps = []
    for asset in blind_spots:
        criticality = infer_device_context(asset).criticality
        severity = {"critical": "critical", "high": "high"}.get(criticality, "medium")
        gaps.append(Gap(
            type=GapType.BLIND_SPOT,
            severity=severity,
            reason="Asset exists in engineering baseline but was not discovered on the network",
            unit=asset_unit(asset, default=None),
            asset=asset,
            details={"criticality": criticality},
        ))
    return gaps


def _orphan_gaps(orphans: list[Asset]) -> list[Gap]:
    gaps = []
    for asset in orphans:
        device = infer_device_context(asset)
        if device.is_safety_related:
            severity = "critical"
        elif asset.get("ip_address") or asset.get("mac_address"):
            severity = "high"
        else:
            severity = "medium"
        gaps.append(Gap(
            type=GapType.ORPHAN,
            severity=severity,
            reason="Device discovered on the network but not in engineering baseline",
            unit=asset_unit(asset, default=None),
            asset=asset,
            details={"ip_address": asset.get("ip_address")},
        ))
    return gaps


def _stale_gaps(discovered: list[Asset], now: datetime) -> list[Gap]:
    gaps = []
    for asset in discovered:
        last_seen = parse_date(asset.get("last_seen"))
        if last_seen is None:
            continue
        days = (now - last_seen).days
        if days <= STALE_AFTER_DAYS:
            continue
        gaps.append(Gap(
            type=GapType.STALE_DATA,
            severity="high" if days > VERY_STALE_AFTER_DAYS else "medium",
            reason=f"Asset has not been seen on the network for {days} days",
            unit=asset_unit(asset, default=None),
            asset=asset,
            details={"last_seen": last_seen.isoformat(), "days_since_seen": days},
        ))
    return gaps


def _coverage_gaps(engineering: list[Asset], discovered: list[Asset]) -> list[Gap]:
    expected: dict[str, int] = {}
    for asset in engineering:
        unit = asset_unit(asset)
        expected[unit] = expected.get(unit, 0) + 1

    seen: dict[str, int] = {}
    for asset in discovered:
        if asset.get("last_seen") or asset.get("discovered"):
            unit = asset_unit(asset)
            seen[unit] = seen.get(unit, 0) + 1

    gaps = []
    for unit, total in expected.items():
        found = seen.get(unit, 0)
        coverage = round(found / total * 100)
        details = {"engineering_count": total, "discovered_count": found, "coverage_percent": coverage}
        if found == 0:
            gaps.append(Gap(
                type=GapType.NO_VISIBILITY,
                severity="high",
                reason=f"No discovery data for {unit} despite {total} documented assets",
                unit=unit,
                details=details,
            ))
        elif coverage < LOW_VISIBILITY_PERCENT and total > LOW_VISIBILITY_MIN_ASSETS:
            gaps.append(Gap(
                type=GapType.LOW_VISIBILITY,
                severity="medium",
                reason=f"Only {coverage}% of documented assets in {unit} were discovered",
                unit=unit,
                details=details,
            ))
    return gaps


def _network_blind_spots(engineering: list[Asset], discovered: list[Asset]) -> list[Gap]:
    documented: dict[str, int] = {}
    for asset in engineering:
        subnet = subnet_of(asset.get("ip_address"))
        if subnet:
            documented[subnet] = documented.get(subnet, 0) + 1

    live = {
        subnet_of(asset.get("ip_address"))
        for asset in discovered
        if asset.get("ip_address") and asset.get("last_seen")
    }

    return [
        Gap(
            type=GapType.NETWORK_BLIND_SPOT,
            severity="high",
            reason=f"Subnet {subnet}.0/24 has {count} documented assets but no discovery data",
            subnet=f"{subnet}.0/24",
            details={"engineering_count": count},
        )
        for subnet, count in documented.items()
        if count > NETWORK_BLIND_SPOT_MIN_ASSETS and subnet not in live
    ]
