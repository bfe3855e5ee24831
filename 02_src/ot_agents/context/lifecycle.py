"""Vendor end-of-life data and per-asset lifecycle assessment."""

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Iterable

from .assets import Asset, asset_tag, parse_date


class LifecycleStatus(str, Enum):
    CURRENT = "current"
    MATURE = "mature"
    APPROACHING_EOL = "approaching_eol"
    EOL = "eol"
    EOS = "eos"
    OBSOLETE = "obsolete"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ProductLifecycle:
    eol: date | None
    eos: date | None
    replacement: str | None
    severity: str
    notes: str | None = None


def _product(eol, eos, replacement, severity, notes=None) -> ProductLifecycle:
    return ProductLifecycle(
        eol=date.fromisoformat(eol) if eol else None,
        eos=date.fromisoformat(eos) if eos else None,
        replacement=replacement,
        severity=severity,
        notes=notes,
    )


VENDOR_EOL_DATABASE: dict[str, dict[str, ProductLifecycle]] = {
    "rockwell": {
        "controllogix_l55": _product("2018-06-01", "2023-06-01", "ControlLogix 5580", "critical"),
        "controllogix_l61": _product("2020-12-01", "2025-12-01", "ControlLogix 5580", "high"),
        "slc_500": _product("2015-01-01", "2020-01-01", "CompactLogix", "critical"),
        "plc_5": _product("2012-01-01", "2017-01-01", "ControlLogix", "critical"),
        "rslogix_5000_v20": _product("2019-01-01", "2024-01-01", "Studio 5000 v32+", "high"),
        "panelview_plus_6": _product("2021-01-01", "2026-01-01", "PanelView Plus 7", "medium"),
    },
    "siemens": {
        "s7_300": _product("2020-10-01", "2023-10-01", "S7-1500", "critical"),
        "s7_400": _product("2020-10-01", "2025-10-01", "S7-1500", "critical"),
        "wincc_v7": _product("2022-01-01", "2027-01-01", "WinCC Unified", "medium"),
        "step7_classic": _product("2017-01-01", "2022-01-01", "TIA Portal", "high"),
    },
    "schneider": {
        "modicon_m340": _product(None, None, None, "low", "Still actively supported"),
        "modicon_premium": _product("2020-12-01", "2025-12-01", "Modicon M580", "high"),
        "quantum": _product("2020-12-01", "2028-12-01", "Modicon M580", "medium"),
    },
    "honeywell": {
        "experion_r400": _product("2019-01-01", "2024-01-01", "Experion PKS R500+", "high"),
        "c300_controller": _product(None, None, None, "low", "Current generation"),
    },
    "emerson": {
        "deltav_v11": _product("2020-01-01", "2025-01-01", "DeltaV v14+", "high"),
        "ovation": _product(None, None, None, "low", "Current generation"),
    },
    "abb": {
        "ac800m": _product(None, None, None, "low", "Current generation"),
        "ac450": _product("2018-01-01", "2023-01-01", "AC800M", "critical"),
    },
    "yokogawa": {
        "centum_vp_r5": _product("2020-01-01", "2025-01-01", "CENTUM VP R6+", "high"),
        "prosafe_rs": _product(None, None, None, "low", "Current generation"),
    },
    "ge": {
        "mark_vie": _product(None, None, None, "low", "Current generation"),
        "mark_v": _product("2015-01-01", "2020-01-01", "Mark VIe", "critical"),
    },
    "cisco": {
        "ie_2000": _product("2020-01-01", "2025-01-01", "IE 3x00 series", "high"),
        "ie_3000": _product("2022-01-01", "2027-01-01", "IE 3x00 series", "medium"),
    },
    "hirschmann": {
        "rs20": _product("2019-01-01", "2024-01-01", "RSP series", "high"),
    },
    "microsoft": {
        "windows_xp": _product("2014-04-08", "2014-04-08", "Windows 10/11", "critical"),
        "windows_7": _product("2020-01-14", "2023-01-10", "Windows 10/11", "critical"),
        "windows_server_2008": _product("2020-01-14", "2023-01-10", "Windows Server 2019+", "critical"),
        "windows_server_2012": _product("2023-10-10", "2026-10-13", "Windows Server 2022", "high"),
    },
}

VENDOR_ALIASES = {
    "allen-bradley": "rockwell",
    "ab": "rockwell",
    "allen bradley": "rockwell",
    "rockwell automation": "rockwell",
    "siemens ag": "siemens",
    "schneider electric": "schneider",
    "modicon": "schneider",
    "honeywell process": "honeywell",
    "emerson process": "emerson",
    "fisher": "emerson",
    "rosemount": "emerson",
    "abb ltd": "abb",
    "yokogawa electric": "yokogawa",
    "general electric": "ge",
    "hirschmann automation": "hirschmann",
    "belden": "hirschmann",
}

# Model-number patterns checked before the family-name fallback.
PRODUCT_FAMILY_PATTERNS: dict[str, tuple[tuple[re.Pattern, str], ...]] = {
    "rockwell": (
        (re.compile(r"1756-l55", re.I), "controllogix_l55"),
        (re.compile(r"1756-l6[1-4]", re.I), "controllogix_l61"),
        (re.compile(r"1747", re.I), "slc_500"),
        (re.compile(r"plc.?5", re.I), "plc_5"),
        (re.compile(r"panelview.*plus.*6", re.I), "panelview_plus_6"),
    ),
    "siemens": (
        (re.compile(r"s7.?300", re.I), "s7_300"),
        (re.compile(r"s7.?400", re.I), "s7_400"),
        (re.compile(r"6es7.?3", re.I), "s7_300"),
        (re.compile(r"6es7.?4", re.I), "s7_400"),
    ),
    "schneider": (
        (re.compile(r"m340", re.I), "modicon_m340"),
        (re.compile(r"premium", re.I), "modicon_premium"),
        (re.compile(r"quantum", re.I), "quantum"),
        (re.compile(r"tsx.?p", re.I), "modicon_premium"),
    ),
    "microsoft": (
        (re.compile(r"xp", re.I), "windows_xp"),
        (re.compile(r"windows.?7", re.I), "windows_7"),
        (re.compile(r"2008", re.I), "windows_server_2008"),
        (re.compile(r"2012", re.I), "windows_server_2012"),
    ),
}


@dataclass(frozen=True)
class Lifespan:
    years_min: int
    years_typical: int
    years_max: int


TYPICAL_LIFESPANS: dict[str, Lifespan] = {
    "plc": Lifespan(10, 15, 20),
    "dcs": Lifespan(15, 20, 25),
    "rtu": Lifespan(10, 15, 20),
    "sis": Lifespan(10, 15, 20),
    "hmi": Lifespan(5, 8, 12),
    "workstation": Lifespan(4, 6, 10),
    "server": Lifespan(4, 6, 8),
    "switch": Lifespan(5, 8, 12),
    "firewall": Lifespan(4, 6, 8),
    "router": Lifespan(5, 8, 12),
    "transmitter": Lifespan(10, 15, 25),
    "analyzer": Lifespan(8, 12, 18),
    "valve": Lifespan(15, 20, 30),
    "drive": Lifespan(10, 15, 20),
}


@dataclass
class LifecycleAssessment:
    status: LifecycleStatus = LifecycleStatus.UNKNOWN
    eol_date: date | None = None
    eos_date: date | None = None
    days_until_eol: int | None = None
    days_until_eos: int | None = None
    replacement: str | None = None
    severity: str = "unknown"
    source: str | None = None
    estimated_age: int | None = None
    estimated_remaining_life: int | None = None
    notes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "eol_date": self.eol_date.isoformat() if self.eol_date else None,
            "eos_date": self.eos_date.isoformat() if self.eos_date else None,
            "days_until_eol": self.days_until_eol,
            "days_until_eos": self.days_until_eos,
            "replacement": self.replacement,
            "severity": self.severity,
            "source": self.source,
            "estimated_age": self.estimated_age,
            "estimated_remaining_life": self.estimated_remaining_life,
            "notes": list(self.notes),
        }


def normalize_vendor(vendor: str | None) -> str | None:
    if not vendor:
        return None
    normalized = vendor.strip().lower()
    return VENDOR_ALIASES.get(normalized, normalized)


def identify_product_family(vendor: str | None, model: str | None) -> str | None:
    if not vendor or not model:
        return None
    for pattern, family in PRODUCT_FAMILY_PATTERNS.get(vendor, ()):
        if pattern.search(model):
            return family
    # Family keys double as names: "experion_r400" matches "Experion R400".
    for family in VENDOR_EOL_DATABASE.get(vendor, {}):
        loose = r"[\s_-]?".join(re.escape(part) for part in family.split("_"))
        if re.search(loose, model, re.I):
            return family
    return None


def assess_lifecycle(asset: Asset, reference_date: datetime | None = None) -> LifecycleAssessment:
    """Lifecycle position of one asset from the vendor database, else from its age."""
    now = reference_date or datetime.now(timezone.utc)
    today = now.date()
    result = LifecycleAssessment()

    vendor = normalize_vendor(asset.get("manufacturer") or asset.get("vendor"))
    model = asset.get("model") or asset.get("product") or ""
    family = identify_product_family(vendor, model)

    if family is not None:
        info = VENDOR_EOL_DATABASE[vendor][family]
        result.source = "vendor_database"
        result.replacement = info.replacement
        result.severity = info.severity
        if info.notes:
            result.notes.append(info.notes)
        if info.eol:
            result.eol_date = info.eol
            result.days_until_eol = (info.eol - today).days
        if info.eos:
            result.eos_date = info.eos
            result.days_until_eos = (info.eos - today).days

    installed = parse_date(
        asset.get("install_date") or asset.get("installation_date") or asset.get("commissioned")
    )
    if installed is not None:
        result.estimated_age = (now - installed).days // 365
        device_type = str(asset.get("device_type") or asset.get("type") or "").lower()
        for kind, lifespan in TYPICAL_LIFESPANS.items():
            if kind in device_type:
                result.estimated_remaining_life = lifespan.years_typical - result.estimated_age
                result.notes.append(f"Typical lifespan for {kind}: {lifespan.years_typical} years")
                break

    if result.days_until_eos is not None:
        if result.days_until_eos < -365 * 3:
            result.status = LifecycleStatus.OBSOLETE
        elif result.days_until_eos < 0:
            result.status = LifecycleStatus.EOS
        elif result.days_until_eol is not None and result.days_until_eol < 0:
            result.status = LifecycleStatus.EOL
        elif result.days_until_eol is not None and result.days_until_eol < 730:
            result.status = LifecycleStatus.APPROACHING_EOL
        elif result.days_until_eol is not None:
            result.status = LifecycleStatus.MATURE
    elif result.estimated_remaining_life is not None:
        remaining = result.estimated_remaining_life
        if remaining < -5:
            result.status, result.severity = LifecycleStatus.OBSOLETE, "high"
        elif remaining < 0:
            result.status, result.severity = LifecycleStatus.EOL, "high"
        elif remaining < 3:
            result.status, result.severity = LifecycleStatus.APPROACHING_EOL, "medium"
        else:
            result.status, result.severity = LifecycleStatus.CURRENT, "low"
        result.source = "estimated"

    return result


def summarize_lifecycle(
    assets: Iterable[Asset],
    assessments: list[LifecycleAssessment] | None = None,
    reference_date: datetime | None = None,
) -> dict:
    """
    Count assets per lifecycle status and list the ones past support.

    ``assessments``, when given, holds precomputed results in asset order.
    """
    assets = list(assets)
    if assessments is None:
        assessments = [assess_lifecycle(asset, reference_date) for asset in assets]
    counts = {status.value: 0 for status in LifecycleStatus}
    critical_items = []

    for asset, lifecycle in zip(assets, assessments):
        counts[lifecycle.status.value] += 1
        if lifecycle.status in (LifecycleStatus.EOS, LifecycleStatus.OBSOLETE):
            critical_items.append(
                {
                    "tag_id": asset_tag(asset),
                    "manufacturer": asset.get("manufacturer"),
                    "model": asset.get("model"),
                    "status": lifecycle.status.value,
                    "replacement": lifecycle.replacement,
                }
            )

    recommendations = []
    if counts["obsolete"]:
        recommendations.append({
            "priority": "critical",
            "message": f"{counts['obsolete']} obsolete assets require immediate replacement planning",
            "action": "Create migration project for obsolete equipment",
        })
    if counts["eos"]:
        recommendations.append({
            "priority": "high",
            "message": f"{counts['eos']} assets are past end-of-support with no security patches",
            "action": "Implement compensating controls and plan upgrades",
        })
    if counts["approaching_eol"]:
        recommendations.append({
            "priority": "medium",
            "message": f"{counts['approaching_eol']} assets approaching end-of-life within 2 years",
            "action": "Budget for replacements in next fiscal cycle",
        })

    return {
        "total": len(assets),
        **counts,
        "critical_items": critical_items,
        "recommendations": recommendations,
    }
