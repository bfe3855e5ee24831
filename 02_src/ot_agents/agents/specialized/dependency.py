"""Dependency agent: control concentration, single points of failure and blast radius."""

import re

from ...context import Asset, asset_tag, asset_unit, infer_device_context, subnet_of
from ...models import AgentRole, ObservationType, Severity, Topic
from ..base import TermAnswer
from ..domain import DomainAgent
from ..evidence import asset_evidence, metric_evidence
from ..routing import RoutingTable

CONTROLLER = re.compile(r"plc|dcs|rtu|pac|controller", re.IGNORECASE)
FIELD_DEVICE = re.compile(r"transmitter|valve|sensor|actuator|drive", re.IGNORECASE)
CRITICAL_TYPE = re.compile(r"plc|dcs|sis|safety", re.IGNORECASE)
SAFETY_TYPE = re.compile(r"sis|safety", re.IGNORECASE)
NETWORK_DEVICE = re.compile(r"switch|router|firewall", re.IGNORECASE)
UTILITY_UNIT = re.compile(r"utility|utilities|power|steam|air|water|cooling|electrical", re.IGNORECASE)

SINGLE_CONTROLLER_FIELD_MAX = 20
NO_CONTROLLER_FIELD_MIN = 5
CONTROLLER_RATIO_MAX = 50
SUBNET_CRITICAL_MAX = 10
LARGE_SEGMENT_MIN = 50
CONTROLLER_BLAST_RADIUS_MIN = 30
NETWORK_BLAST_RADIUS_MIN = 20
CROWN_JEWEL_MIN_SCORE = 4
DISTRIBUTED_MIN_UNITS = 5
DISTRIBUTED_UNIT_PERCENT = 70

# (pattern over "device_type criticality", points)
CROWN_JEWEL_POINTS: tuple[tuple[re.Pattern, int], ...] = (
    (re.compile(r"\bcritical\b"), 3),
    (re.compile(r"sis|safety|esd"), 4),
    (re.compile(r"(dcs|plc).*\bcritical\b"), 3),
    (re.compile(r"scada|historian|server"), 2),
    (re.compile(r"firewall"), 2),
)

# Checked in order; the first match names the type.
DEVICE_TYPE_ALIASES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("sis", "safety"), "safety_controller"),
    (("plc", "programmable"), "plc"),
    (("dcs", "distributed"), "dcs"),
    (("hmi", "panel"), "hmi"),
    (("switch",), "switch"),
    (("router",), "router"),
    (("firewall",), "firewall"),
)


def normalize_device_type(device_type: str | None) -> str:
    lowered = str(device_type or "").strip().lower()
    if not lowered:
        return "unknown"
    for needles, name in DEVICE_TYPE_ALIASES:
        if any(n in lowered for n in needles):
            return name
    return lowered


def _device_type(asset: Asset) -> str:
    return str(asset.get("device_type") or "")


def is_controller(asset: Asset) -> bool:
    return bool(CONTROLLER.search(_device_type(asset)))


def is_safety_system(asset: Asset) -> bool:
    return bool(SAFETY_TYPE.search(_device_type(asset)))


def is_field_device(asset: Asset) -> bool:
    return bool(FIELD_DEVICE.search(_device_type(asset)))


def crown_jewel_score(asset: Asset) -> int:
    text = f"{_device_type(asset)} {asset.get('criticality') or ''}".lower()
    return sum(points for pattern, points in CROWN_JEWEL_POINTS if pattern.search(text))


class DependencyAgent(DomainAgent):
    ROLE = AgentRole.DEPENDENCY
    TITLE = "Dependency Agent"
    DESCRIPTION = "Analyzes process dependencies and blast radius"
    CAPABILITIES = ("dependency_mapping", "impact_analysis", "critical_path_identification")
    TOPIC = Topic.DEPENDENCY
    RELEVANT_TOPICS = (Topic.DEPENDENCY, Topic.RISK)

    ANSWER_ROUTES = RoutingTable.of(
        (("single point", "spof"), "spof"),
        (("blast", "impact"), "blast_radius"),
        (("crown jewel", "critical asset"), "crown_jewels"),
    )
    TERM_ANSWERS = {
        "spof": TermAnswer(
            ("single point", "spof"), "No significant single points of failure identified."
        ),
        "blast_radius": TermAnswer(
            ("blast radius",), "Blast radius analysis shows no major concerns."
        ),
        "crown_jewels": TermAnswer(
            ("crown jewel",), "Crown jewel identification not yet completed."
        ),
    }

    def analysis_passes(self):
        return (
            self.analyze_control_concentration,
            self.analyze_network_segments,
            self.analyze_utilities,
            self.identify_crown_jewels,
            self.find_single_points_of_failure,
            self.analyze_blast_radius,
        )

    @staticmethod
    def group_by_unit(assets: list[Asset]) -> dict[str, list[Asset]]:
        units: dict[str, list[Asset]] = {}
        for asset in assets:
            units.setdefault(asset_unit(asset), []).append(asset)
        return units

    def analyze_control_concentration(self, assets: list[Asset]) -> None:
        total_controllers = 0
        total_field = 0
        for unit, members in self.group_by_unit(assets).items():
            controllers = [a for a in members if is_controller(a)]
            field = [a for a in members if is_field_device(a)]
            total_controllers += len(controllers)
            total_field += len(field)

            if len(controllers) == 1 and len(field) > SINGLE_CONTROLLER_FIELD_MAX:
                self.record(
                    ObservationType.WEAKNESS,
                    Severity.HIGH,
                    f"{unit} has single controller managing {len(field)} field devices - high dependency concentration",
                    unit=unit,
                    asset=asset_tag(controllers[0]),
                    evidence=[asset_evidence(controllers[0])],
                    recommendations=[
                        f"Evaluate controller redundancy for {unit}",
                        "Distribute I/O across multiple controllers",
                    ],
                )
            elif not controllers and len(field) > NO_CONTROLLER_FIELD_MIN:
                self.record(
                    ObservationType.ANOMALY,
                    Severity.MEDIUM,
                    f"{unit} has {len(field)} field devices but no visible controller",
                    unit=unit,
                    recommendations=[f"Verify how field devices in {unit} are controlled"],
                )

        if total_controllers:
            ratio = round(total_field / total_controllers)
            if ratio > CONTROLLER_RATIO_MAX:
                self.record(
                    ObservationType.PATTERN,
                    Severity.MEDIUM,
                    f"High device-to-controller ratio: {ratio}:1 on average",
                    evidence=[metric_evidence("device_controller_ratio", ratio)],
                )

    def analyze_network_segments(self, assets: list[Asset]) -> None:
        critical_by_subnet: dict[str, list[Asset]] = {}
        for asset in assets:
            subnet = subnet_of(asset.get("ip_address"))
            critical = (
                str(asset.get("criticality") or "").lower() == "critical"
                or CRITICAL_TYPE.search(_device_type(asset))
            )
            if subnet and critical:
                critical_by_subnet.setdefault(subnet, []).append(asset)

        for subnet, members in critical_by_subnet.items():
            if len(members) > SUBNET_CRITICAL_MAX:
                self.record(
                    ObservationType.WEAKNESS,
                    Severity.MEDIUM,
                    f"{len(members)} critical assets on subnet {subnet}.0/24 - "
                    "single network failure could impact multiple control functions",
                    evidence=[asset_evidence(a) for a in members[:5]],
                    recommendations=["Segment critical control assets across redundant networks"],
                )

        segments: dict[str, int] = {}
        for asset in assets:
            segment = str(asset.get("vlan") or asset.get("network_segment") or "default")
            segments[segment] = segments.get(segment, 0) + 1
        for segment, count in segments.items():
            if count > LARGE_SEGMENT_MIN:
                self.record(
                    ObservationType.PATTERN,
                    Severity.LOW,
                    f"Large network segment ({segment}): {count} assets",
                    evidence=[metric_evidence("segment_size", count)],
                    recommendations=["Consider splitting large segments into zones"],
                )

    def analyze_utilities(self, assets: list[Asset]) -> None:
        units = self.group_by_unit(assets)
        utility_units = [u for u in units if UTILITY_UNIT.search(u)]
        if not utility_units:
            return
        process_units = [u for u in units if u not in utility_units]

        self.record(
            ObservationType.PATTERN,
            Severity.INFO,
            f"Utility dependencies: {len(utility_units)} utility units support {len(process_units)} process units",
            evidence=[metric_evidence("utility_units", utility_units)],
        )

        for unit in utility_units:
            control = [a for a in units[unit] if is_controller(a)]
            if control and any(infer_device_context(a).criticality == "critical" for a in control):
                self.record(
                    ObservationType.WEAKNESS,
                    Severity.HIGH,
                    f"{unit} is a critical dependency: {len(control)} control assets support entire plant",
                    unit=unit,
                    evidence=[asset_evidence(a) for a in control[:5]],
                    recommendations=[f"Include {unit} control systems in site-wide contingency planning"],
                )

    def identify_crown_jewels(self, assets: list[Asset]) -> None:
        if not self.context.get("industry"):
            return
        jewels = [a for a in assets if crown_jewel_score(a) >= CROWN_JEWEL_MIN_SCORE]
        if jewels:
            jewels.sort(key=crown_jewel_score, reverse=True)
            self.record(
                ObservationType.PATTERN,
                Severity.HIGH,
                f"Identified {len(jewels)} crown jewel assets critical to plant operations",
                evidence=[asset_evidence(a) for a in jewels[:5]],
                recommendations=["Apply enhanced monitoring and protection to crown jewel assets"],
            )

    def find_single_points_of_failure(self, assets: list[Asset]) -> None:
        groups: dict[str, list[Asset]] = {}
        for asset in assets:
            key = f"{asset_unit(asset)}:{normalize_device_type(asset.get('device_type'))}"
            groups.setdefault(key, []).append(asset)

        spofs: list[tuple[str, str, Asset]] = []
        for key, members in groups.items():
            if len(members) != 1:
                continue
            asset = members[0]
            critical = str(asset.get("criticality") or "").lower() == "critical"
            if critical or is_controller(asset) or is_safety_system(asset):
                unit, device_type = key.split(":", 1)
                spofs.append((unit, device_type, asset))

        if not spofs:
            return

        self.record(
            ObservationType.WEAKNESS,
            Severity.HIGH,
            f"{len(spofs)} single points of failure identified - critical devices with no redundancy",
            evidence=[
                metric_evidence("spof", asset_tag(a), f"Single {t} in {u}") for u, t, a in spofs[:5]
            ],
            recommendations=["Evaluate redundancy for critical control functions"],
        )

        safety = [(u, t, a) for u, t, a in spofs if SAFETY_TYPE.search(t)]
        for unit, device_type, asset in safety[:3]:
            self.record(
                ObservationType.WEAKNESS,
                Severity.CRITICAL,
                f"SAFETY CRITICAL SPOF: Single {device_type} in {unit}",
                unit=unit,
                asset=asset_tag(asset),
                asset_id=asset.get("asset_id"),
                evidence=[asset_evidence(asset)],
                confidence=0.85,
                recommendations=[
                    "Verify safety function redundancy meets the required SIL",
                    "Review failure modes for this safety system",
                ],
            )

    def analyze_blast_radius(self, assets: list[Asset]) -> None:
        for unit, members in self.group_by_unit(assets).items():
            if len(members) <= CONTROLLER_BLAST_RADIUS_MIN:
                continue
            for controller in [a for a in members if is_controller(a)][:1]:
                self.record(
                    ObservationType.WEAKNESS,
                    Severity.MEDIUM,
                    f"High blast radius: {asset_tag(controller)} failure could impact "
                    f"{len(members)} devices in {unit}",
                    unit=unit,
                    asset=asset_tag(controller),
                    evidence=[asset_evidence(controller)],
                    recommendations=["Document failure impact and recovery procedures"],
                )

        by_subnet: dict[str, int] = {}
        for asset in assets:
            subnet = subnet_of(asset.get("ip_address"))
            if subnet:
                by_subnet[subnet] = by_subnet.get(subnet, 0) + 1

        for asset in assets:
            if not NETWORK_DEVICE.search(_device_type(asset)):
                continue
            served = by_subnet.get(subnet_of(asset.get("ip_address")) or "", 0)
            if served > NETWORK_BLAST_RADIUS_MIN:
                self.record(
                    ObservationType.WEAKNESS,
                    Severity.MEDIUM,
                    f"Network infrastructure blast radius: {_device_type(asset)} serves ~{served} devices",
                    asset=asset_tag(asset),
                    evidence=[asset_evidence(asset)],
                    recommendations=["Deploy redundant network infrastructure"],
                )

    def analyze_strengths(self, assets: list[Asset]) -> None:
        units = self.group_by_unit(assets)
        controlled = {u: [a for a in m if is_controller(a)] for u, m in units.items()}

        redundant = [u for u, c in controlled.items() if len(c) >= 2]
        if redundant:
            self.record(
                ObservationType.STRENGTH,
                Severity.POSITIVE,
                f"Good redundancy: {len(redundant)} units have multiple controllers",
                confidence=0.85,
            )

        with_control = [u for u, c in controlled.items() if c]
        if (
            len(with_control) > DISTRIBUTED_MIN_UNITS
            and len(with_control) / len(units) * 100 >= DISTRIBUTED_UNIT_PERCENT
        ):
            self.record(
                ObservationType.STRENGTH,
                Severity.POSITIVE,
                f"Distributed control architecture: {len(with_control)} of {len(units)} units have local control",
            )
