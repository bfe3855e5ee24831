"""Asset record helpers: device-type inference, addressing and dates."""

import ipaddress
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any

Asset = dict[str, Any]

CRITICALITY_ORDER = ("low", "medium", "high", "critical")


@dataclass(frozen=True)
class DevicePattern:
    pattern: re.Pattern
    type: str
    category: str
    criticality: str
    description: str


def _p(regex: str) -> re.Pattern:
    return re.compile(regex, re.IGNORECASE)


# Ordered: safety controllers are checked before generic controllers.
DEVICE_PATTERNS: tuple[DevicePattern, ...] = (
    DevicePattern(_p(r"\b(safety.?(plc|controller)|sil.?plc)\b"), "safety_controller", "safety", "critical", "Safety Controller"),
    DevicePattern(_p(r"\b(sis|safety.?instrumented|esd|emergency.?shutdown)\b"), "sis", "safety", "critical", "Safety Instrumented System"),
    DevicePattern(_p(r"\b(f.?g|fire.?gas|flame|smoke)\b"), "fire_gas", "safety", "critical", "Fire & Gas Detection"),
    DevicePattern(_p(r"\b(bms|burner.?management)\b"), "bms", "safety", "critical", "Burner Management System"),
    DevicePattern(_p(r"\bpsv\b|pressure.?safety.?valve"), "psv", "safety", "critical", "Pressure Safety Valve"),
    DevicePattern(_p(r"\b(plc|pac|rtplc)\b"), "plc", "controller", "critical", "Programmable Logic Controller"),
    DevicePattern(_p(r"\b(dcs|distributed.?control)\b"), "dcs", "controller", "critical", "Distributed Control System"),
    DevicePattern(_p(r"\b(rtu|remote.?terminal)\b"), "rtu", "controller", "high", "Remote Terminal Unit"),
    DevicePattern(_p(r"\b(hmi|human.?machine|operator.?interface)\b"), "hmi", "interface", "high", "Human-Machine Interface"),
    DevicePattern(_p(r"\b(ows|operator.?workstation|console)\b"), "workstation", "interface", "high", "Operator Workstation"),
    DevicePattern(_p(r"\b(ews|engineering.?workstation)\b"), "engineering_ws", "interface", "high", "Engineering Workstation"),
    DevicePattern(_p(r"\b(switch|ethernet.?switch|network.?switch)\b"), "switch", "network", "high", "Network Switch"),
    DevicePattern(_p(r"\b(router|gateway)\b"), "router", "network", "high", "Router/Gateway"),
    DevicePattern(_p(r"\b(firewall|fw)\b"), "firewall", "network", "critical", "Firewall"),
    DevicePattern(_p(r"\b(transmitter|xmtr|tt|pt|ft|lt|at)\b"), "transmitter", "measurement", "medium", "Process Transmitter"),
    DevicePattern(_p(r"\b(analyzer|analyser|chromatograph|spectrometer)\b"), "analyzer", "measurement", "medium", "Process Analyzer"),
    DevicePattern(_p(r"\b(valve|cv|fv|pv|tv|mov|sov)\b"), "valve", "final_element", "medium", "Control/Isolation Valve"),
    DevicePattern(_p(r"\b(vfd|vsd|drive|inverter)\b"), "drive", "motor_control", "medium", "Variable Frequency Drive"),
    DevicePattern(_p(r"\b(mcc|motor.?control.?center)\b"), "mcc", "motor_control", "high", "Motor Control Center"),
    DevicePattern(_p(r"\b(historian|pi.?server|ip21|aspen)\b"), "historian", "server", "high", "Data Historian"),
    DevicePattern(_p(r"\b(opc|opc.?server|opc.?ua)\b"), "opc_server", "server", "high", "OPC Server"),
)

_FIELD_FALLBACKS = (
    ("transmitter", "transmitter", "measurement"),
    ("valve", "valve", "final_element"),
    ("switch", "switch", "network"),
)

_PROTOCOL_HINTS = (
    ("hart", "HART"),
    ("profibus", "PROFIBUS"),
    ("modbus", "Modbus"),
    ("ethernet", "Ethernet/IP"),
    ("foundation", "FF"),
)


@dataclass(frozen=True)
class DeviceContext:
    """What an asset is, inferred from its tag, type, vendor and model."""

    type: str | None = None
    category: str | None = None
    criticality: str = "low"
    is_safety_related: bool = False
    description: str | None = None
    protocol: str | None = None

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "category": self.category,
            "criticality": self.criticality,
            "is_safety_related": self.is_safety_related,
            "description": self.description,
            "protocol": self.protocol,
        }


def max_criticality(*levels: str | None) -> str:
    known = [lvl for lvl in levels if lvl in CRITICALITY_ORDER]
    if not known:
        return "low"
    return max(known, key=CRITICALITY_ORDER.index)


def infer_device_context(asset: Asset) -> DeviceContext:
    """
    Classify an asset record.

    Pattern criticality and an explicit ``criticality`` field are combined,
    keeping the higher of the two. ``safety_related`` on the record marks
    the asset as safety related regardless of the matched pattern.
    """
    device_type = str(asset.get("device_type") or "")
    text = " ".join(
        str(part or "")
        for part in (asset_tag(asset) or asset.get("name"), device_type, asset.get("manufacturer"), asset.get("model"))
    ).lower()

    matched: DevicePattern | None = next(
        (p for p in DEVICE_PATTERNS if p.pattern.search(text)), None
    )

    if matched is not None:
        dtype, category, pattern_level, description = (
            matched.type, matched.category, matched.criticality, matched.description,
        )
    else:
        dtype = category = description = None
        pattern_level = "low"
        lowered = device_type.lower()
        for needle, fallback_type, fallback_category in _FIELD_FALLBACKS:
            if needle in lowered:
                dtype, category = fallback_type, fallback_category
                break

    protocol = next((label for needle, label in _PROTOCOL_HINTS if needle in text), None)

    return DeviceContext(
        type=dtype,
        category=category,
        criticality=max_criticality(pattern_level, asset.get("criticality")),
        is_safety_related=category == "safety" or bool(asset.get("safety_related")),
        description=description,
        protocol=protocol,
    )


def asset_tag(asset: Asset) -> str | None:
    return asset.get("tag_id") or asset.get("asset_id")


def asset_unit(asset: Asset, default: str = "Unknown") -> str:
    return asset.get("unit") or asset.get("area") or default


def is_private_ip(ip: str | None) -> bool:
    """True for RFC 1918 and loopback addresses. Missing or malformed counts as private."""
    if not ip:
        return True
    try:
        addr = ipaddress.IPv4Address(str(ip).strip())
    except ValueError:
        return True
    return any(addr in net for net in _PRIVATE_NETWORKS)


_PRIVATE_NETWORKS = tuple(
    ipaddress.IPv4Network(cidr)
    for cidr in ("10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16", "127.0.0.0/8")
)


def subnet_of(ip: str | None) -> str | None:
    """First three octets of an IPv4 address, e.g. ``10.1.2``."""
    if not ip:
        return None
    parts = str(ip).split(".")
    if len(parts) < 3:
        return None
    return ".".join(parts[:3])


def parse_date(value: Any) -> datetime | None:
    """Accept datetime, date or ISO text; return an aware UTC datetime or None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        result = value
    elif isinstance(value, date):
        result = datetime(value.year, value.month, value.day)
    else:
        try:
            result = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    if result.tzinfo is None:
        result = result.replace(tzinfo=timezone.utc)
    return result
