"""Evidence builders agents attach to their observations."""

from ..context import AssetRisk, Gap, asset_tag
from ..context.assets import Asset
from ..models import Evidence, EvidenceType


def asset_evidence(asset: Asset, description: str | None = None) -> Evidence:
    tag = asset_tag(asset) or asset.get("ip_address")
    return Evidence(
        type=EvidenceType.ASSET,
        id=tag,
        description=description or f"Asset: {tag}",
        data={
            "tag_id": asset.get("tag_id"),
            "asset_id": asset.get("asset_id"),
            "device_type": asset.get("device_type"),
            "unit": asset.get("unit"),
            "manufacturer": asset.get("manufacturer"),
            "model": asset.get("model"),
        },
    )


def gap_evidence(gap: Gap) -> Evidence:
    return Evidence(
        type=EvidenceType.GAP,
        id=gap.tag_id or gap.unit or gap.subnet,
        description=gap.reason,
        data={
            "gap_type": gap.type.value,
            "severity": gap.severity,
            "unit": gap.unit,
        },
    )


def risk_evidence(risk: AssetRisk) -> Evidence:
    return Evidence(
        type=EvidenceType.RISK_SCORE,
        id=risk.asset_id,
        description=f"Risk score: {risk.normalized_score}",
        data={
            "score": risk.normalized_score,
            "level": risk.level.value,
            "top_factors": [f.factor.value for f in risk.top_factors],
        },
    )


def metric_evidence(name: str, value, description: str | None = None) -> Evidence:
    return Evidence(
        type=EvidenceType.METRIC,
        id=name,
        description=description or f"{name}: {value}",
        data={"name": name, "value": value},
    )
