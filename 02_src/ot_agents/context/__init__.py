"""Read-only analysis helpers over asset records."""

from .assets import (
    Asset,
    DeviceContext,
    asset_tag,
    asset_unit,
    infer_device_context,
    is_private_ip,
    parse_date,
    subnet_of,
)
from .gaps import Gap, GapAnalysis, GapType, analyze_gaps
from .lifecycle import (
    LifecycleAssessment,
    LifecycleStatus,
    assess_lifecycle,
    normalize_vendor,
    summarize_lifecycle,
)
from .risk import (
    MAX_RISK_SCORE,
    AssetRisk,
    FactorScore,
    PortfolioRisk,
    RiskFactor,
    RiskLevel,
    analyze_portfolio_risk,
    calculate_asset_risk,
)

__all__ = [
    "Asset",
    "DeviceContext",
    "asset_tag",
    "asset_unit",
    "infer_device_context",
    "is_private_ip",
    "parse_date",
    "subnet_of",
    "Gap",
    "GapAnalysis",
    "GapType",
    "analyze_gaps",
    "LifecycleAssessment",
    "LifecycleStatus",
    "assess_lifecycle",
    "normalize_vendor",
    "summarize_lifecycle",
    "MAX_RISK_SCORE",
    "AssetRisk",
    "FactorScore",
    "PortfolioRisk",
    "RiskFactor",
    "RiskLevel",
    "analyze_portfolio_risk",
    "calculate_asset_risk",
]
