"""Security agent: vulnerabilities, exposure, patching and access control."""

from ...context import Asset, asset_tag, infer_device_context, is_private_ip, parse_date
from ...models import AgentRole, ObservationType, Severity, Topic
from ..base import TermAnswer
from ..domain import DomainAgent
from ..evidence import asset_evidence, metric_evidence
from ..routing import RoutingTable

MANY_CVES_THRESHOLD = 10
LANDSCAPE_HIGH_THRESHOLD = 50
UNMANAGED_HIGH_PERCENT = 30
PATCH_STALE_DAYS = 365
STRONG_PATCH_PERCENT = 80
LOW_VULNERABLE_PERCENT = 10


def reported_cve_count(asset: Asset) -> int | None:
    """The asset's ``cve_count`` as an int, or None when absent or unreadable."""
    value = asset.get("cve_count")
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def has_malformed_cve_count(asset: Asset) -> bool:
    return asset.get("cve_count") not in (None, "") and reported_cve_count(asset) is None


def cve_count(asset: Asset) -> int:
    vulnerabilities = asset.get("vulnerabilities") or []
    return reported_cve_count(asset) or len(vulnerabilities)


def has_critical_cve(asset: Asset) -> bool:
    if str(asset.get("cve_severity") or "").lower() == "critical":
        return True
    return any(
        str(v.get("severity") or "").lower() == "critical"
        for v in asset.get("vulnerabilities") or []
        if isinstance(v, dict)
    )


class SecurityAgent(DomainAgent):
    ROLE = AgentRole.SECURITY
    TITLE = "Security Agent"
    DESCRIPTION = "Analyzes vulnerabilities, network exposure, and security posture"
    CAPABILITIES = ("vulnerability_analysis", "exposure_detection", "patch_tracking")
    TOPIC = Topic.VULNERABILITY
    RELEVANT_TOPICS = (Topic.VULNERABILITY, Topic.RISK, Topic.COMPLIANCE)

    ANSWER_ROUTES = RoutingTable.of(
        (("vulnerab", "cve"), "vulnerabilities"),
        (("patch",), "patches"),
        (("exposure", "network"), "exposure"),
    )
    TERM_ANSWERS = {
        "vulnerabilities": TermAnswer(
            ("vulnerab", "cve"), "No significant vulnerability findings at this time."
        ),
        "patches": TermAnswer(("patch",), "No patch-related findings at this time."),
        "exposure": TermAnswer(
            ("network", "exposure", "ip"),
            "Network exposure analysis shows no significant concerns.",
        ),
    }

    def analysis_passes(self):
        return (
            self.analyze_vulnerabilities,
            self.analyze_exposure,
            self.analyze_patching,
            self.analyze_access_control,
        )

    def analyze_vulnerabilities(self, assets: list[Asset]) -> None:
        malformed = [a for a in assets if has_malformed_cve_count(a)]
        if malformed:
            self.record(
                ObservationType.ANOMALY,
                Severity.LOW,
                f"{len(malformed)} assets have unreadable CVE counts; using their vulnerability lists instead",
                evidence=[asset_evidence(a, f"cve_count: {a.get('cve_count')!r}") for a in malformed[:5]],
                confidence=0.6,
                recommendations=["Correct the CVE count field in the asset inventory"],
            )

        critical = [a for a in assets if has_critical_cve(a)]
        for asset in critical[:5]:
            count = cve_count(asset) or "multiple"
            tag = asset_tag(asset) or asset.get("ip_address")
            self.record(
                ObservationType.WEAKNESS,
                Severity.CRITICAL,
                f"Critical vulnerability on {asset.get('device_type') or 'device'} {tag}: "
                f"{count} CVEs including critical severity",
                unit=asset.get("unit"),
                asset=tag,
                asset_id=asset.get("asset_id"),
                evidence=[asset_evidence(asset)],
                confidence=0.9,
                recommendations=[
                    "Apply vendor security patches or firmware updates",
                    "Isolate the device behind a firewall until remediated",
                ],
            )

        heavily = [a for a in assets if cve_count(a) > MANY_CVES_THRESHOLD]
        if heavily:
            self.record(
                ObservationType.WEAKNESS,
                Severity.HIGH,
                f"{len(heavily)} assets have more than {MANY_CVES_THRESHOLD} known vulnerabilities each",
                evidence=[asset_evidence(a) for a in heavily[:5]],
                recommendations=["Prioritize these assets in the vulnerability remediation plan"],
            )

        vulnerable = [a for a in assets if cve_count(a) > 0]
        if vulnerable:
            total = sum(cve_count(a) for a in vulnerable)
            self.record(
                ObservationType.PATTERN,
                Severity.HIGH if total > LANDSCAPE_HIGH_THRESHOLD else Severity.MEDIUM,
                f"Vulnerability landscape: {len(vulnerable)} assets with {total} total known vulnerabilities",
                evidence=[metric_evidence("total_cves", total)],
                confidence=0.9,
                recommendations=["Establish a risk-based vulnerability management program"],
            )

    def analyze_exposure(self, assets: list[Asset]) -> None:
        exposed_critical = [
            a for a in assets
            if a.get("ip_address") and infer_device_context(a).criticality == "critical"
        ]
        if exposed_critical:
            self.record(
                ObservationType.WEAKNESS,
                Severity.HIGH,
                f"{len(exposed_critical)} critical assets have network exposure",
                evidence=[asset_evidence(a) for a in exposed_critical[:5]],
                recommendations=[
                    "Verify critical controllers sit in a protected control zone",
                    "Restrict access to engineering and operator conduits",
                ],
            )

        public = [a for a in assets if a.get("ip_address") and not is_private_ip(a["ip_address"])]
        if public:
            self.record(
                ObservationType.WEAKNESS,
                Severity.CRITICAL,
                f"{len(public)} OT assets may have internet-routable IP addresses",
                evidence=[asset_evidence(a, f"Public IP: {a['ip_address']}") for a in public[:5]],
                confidence=0.85,
                recommendations=[
                    "Confirm these addresses are not reachable from the internet",
                    "Move OT assets to private address space behind a DMZ",
                ],
            )

    def analyze_patching(self, assets: list[Asset]) -> None:
        unmanaged = [
            a for a in assets
            if a.get("has_security_patches") is False or a.get("is_managed") is False
        ]
        if unmanaged:
            percent = round(len(unmanaged) / len(assets) * 100)
            self.record(
                ObservationType.WEAKNESS,
                Severity.HIGH if percent > UNMANAGED_HIGH_PERCENT else Severity.MEDIUM,
                f"{len(unmanaged)} assets ({percent}%) are not security-managed or have no patches",
                evidence=[metric_evidence("unmanaged_percent", percent)],
                recommendations=["Enroll assets in a patch management program"],
            )

        now = self._clock()
        stale = []
        for asset in assets:
            patched = parse_date(asset.get("last_patch_date"))
            if patched is not None and (now - patched).days > PATCH_STALE_DAYS:
                stale.append(asset)
        if stale:
            self.record(
                ObservationType.WEAKNESS,
                Severity.MEDIUM,
                f"{len(stale)} assets haven't been patched in over a year",
                evidence=[asset_evidence(a) for a in stale[:5]],
                recommendations=["Schedule patching during the next maintenance window"],
            )

    def analyze_access_control(self, assets: list[Asset]) -> None:
        no_auth = [
            a for a in assets
            if a.get("authentication_required") is False or a.get("password_protected") is False
        ]
        if no_auth:
            self.record(
                ObservationType.WEAKNESS,
                Severity.HIGH,
                f"{len(no_auth)} assets have authentication disabled or unprotected",
                evidence=[asset_evidence(a) for a in no_auth[:5]],
                recommendations=["Enable authentication on all configurable devices"],
            )

        default_credentials = [
            a for a in assets
            if a.get("default_credentials") is True or a.get("password_changed") is False
        ]
        if default_credentials:
            self.record(
                ObservationType.WEAKNESS,
                Severity.HIGH,
                f"{len(default_credentials)} assets may be using default credentials",
                evidence=[asset_evidence(a) for a in default_credentials[:5]],
                recommendations=["Change default passwords and store them in a vault"],
            )

    def analyze_strengths(self, assets: list[Asset]) -> None:
        total = len(assets)

        patched = [a for a in assets if a.get("has_security_patches") is True]
        patch_percent = round(len(patched) / total * 100)
        if patch_percent >= STRONG_PATCH_PERCENT:
            self.record(
                ObservationType.STRENGTH,
                Severity.POSITIVE,
                f"Strong patch coverage: {patch_percent}% of assets have security patches applied",
                evidence=[metric_evidence("patch_percent", patch_percent)],
            )

        vulnerable_percent = round(sum(1 for a in assets if cve_count(a) > 0) / total * 100)
        if vulnerable_percent < LOW_VULNERABLE_PERCENT and total > 10:
            self.record(
                ObservationType.STRENGTH,
                Severity.POSITIVE,
                f"Low vulnerability exposure: Only {vulnerable_percent}% of assets have known CVEs",
                evidence=[metric_evidence("vulnerable_percent", vulnerable_percent)],
            )

        networked = [a for a in assets if a.get("ip_address")]
        if networked and all(is_private_ip(a["ip_address"]) for a in networked):
            self.record(
                ObservationType.STRENGTH,
                Severity.POSITIVE,
                "All networked OT assets use private IP addresses - good network isolation",
                evidence=[metric_evidence("networked_assets", len(networked))],
            )
