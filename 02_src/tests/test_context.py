"""Tests for asset analysis helpers."""

from datetime import date, datetime, timezone

import pytest

from ot_agents.context import (
    MAX_RISK_SCORE,
    GapType,
    LifecycleStatus,
    RiskFactor,
    RiskLevel,
    analyze_gaps,
    analyze_portfolio_risk,
    assess_lifecycle,
    calculate_asset_risk,
    infer_device_context,
    is_private_ip,
    normalize_vendor,
    parse_date,
    subnet_of,
    summarize_lifecycle,
)


REFERENCE = datetime(2026, 1, 15, tzinfo=timezone.utc)


class TestDeviceContext:
    """Tests for device classification."""

    def test_safety_controller(self, safety_controller):
        """Test that safety controllers win over generic controller patterns."""
        device = infer_device_context(safety_controller)

        assert device.type == "safety_controller"
        assert device.category == "safety"
        assert device.criticality == "critical"
        assert device.is_safety_related

    def test_explicit_criticality_raises_level(self):
        """Test that an explicit criticality above the pattern level is kept."""
        device = infer_device_context(
            {"tag_id": "TT-9", "device_type": "Temperature Transmitter", "criticality": "critical"}
        )

        assert device.type == "transmitter"
        assert device.criticality == "critical"

    def test_explicit_criticality_never_lowers(self):
        """Test that a lower explicit criticality does not override the pattern."""
        device = infer_device_context({"tag_id": "PLC-1", "device_type": "PLC", "criticality": "low"})

        assert device.criticality == "critical"

    def test_unknown_device(self):
        """Test that unrecognized records fall back to low criticality."""
        device = infer_device_context({"name": "Mystery box"})

        assert device.type is None
        assert device.criticality == "low"
        assert not device.is_safety_related

    def test_safety_flag(self):
        """Test that a safety_related flag marks any device."""
        assert infer_device_context({"device_type": "Valve", "safety_related": True}).is_safety_related


class TestAddressHelpers:
    """Tests for IP and date helpers."""

    @pytest.mark.parametrize(
        "ip,private",
        [
            ("10.1.2.3", True),
            ("172.20.0.1", True),
            ("192.168.1.1", True),
            ("127.0.0.1", True),
            ("8.8.8.8", False),
            ("172.32.0.1", False),
            (None, True),
            ("not-an-ip", True),
        ],
    )
    def test_is_private_ip(self, ip, private):
        """Test RFC 1918 detection."""
        assert is_private_ip(ip) is private

    def test_subnet_of(self):
        """Test /24 prefix extraction."""
        assert subnet_of("10.1.2.3") == "10.1.2"
        assert subnet_of("10.1") is None
        assert subnet_of(None) is None

    def test_parse_date(self):
        """Test that dates come back as aware datetimes."""
        parsed = parse_date("2024-03-01")

        assert parsed.year == 2024
        assert parsed.tzinfo is not None
        assert parse_date("") is None
        assert parse_date(date(2020, 1, 1)).year == 2020


class TestLifecycle:
    """Tests for lifecycle assessment."""

    def test_vendor_aliases(self):
        """Test vendor name normalization."""
        assert normalize_vendor("Allen-Bradley") == "rockwell"
        assert normalize_vendor(" Siemens ") == "siemens"
        assert normalize_vendor(None) is None

    def test_end_of_support(self):
        """Test a product past support but within three years."""
        result = assess_lifecycle(
            {"tag_id": "PLC-1", "manufacturer": "Siemens", "model": "S7-300"}, REFERENCE
        )

        assert result.status == LifecycleStatus.EOS
        assert result.replacement == "S7-1500"
        assert result.source == "vendor_database"
        assert result.days_until_eos < 0

    def test_obsolete(self):
        """Test a product more than three years past support."""
        result = assess_lifecycle(
            {"tag_id": "PLC-2", "manufacturer": "Allen-Bradley", "model": "1747-L542"}, REFERENCE
        )

        assert result.status == LifecycleStatus.OBSOLETE
        assert result.replacement == "CompactLogix"

    def test_estimated_from_age(self):
        """Test age-based assessment when the vendor database has no entry."""
        result = assess_lifecycle({"device_type": "HMI", "install_date": "2000-01-01"}, REFERENCE)

        assert result.status == LifecycleStatus.OBSOLETE
        assert result.source == "estimated"
        assert result.estimated_age == 26

    def test_unknown(self):
        """Test that records with no vendor match or age stay unknown."""
        assert assess_lifecycle({"manufacturer": "Triconex"}, REFERENCE).status == LifecycleStatus.UNKNOWN

    def test_summary(self):
        """Test lifecycle counts and critical items."""
        assets = [
            {"tag_id": "PLC-1", "manufacturer": "Siemens", "model": "S7-300"},
            {"tag_id": "PLC-2", "manufacturer": "Rockwell", "model": "1747-L542"},
            {"tag_id": "X-1"},
        ]

        summary = summarize_lifecycle(assets, reference_date=REFERENCE)

        assert summary["total"] == 3
        assert summary["eos"] == 1
        assert summary["obsolete"] == 1
        assert summary["unknown"] == 1
        assert {item["tag_id"] for item in summary["critical_items"]} == {"PLC-1", "PLC-2"}
        assert summary["recommendations"][0]["priority"] == "critical"


class TestRisk:
    """Tests for risk scoring."""

    @pytest.mark.parametrize(
        "score,level",
        [(70, RiskLevel.CRITICAL), (50, RiskLevel.HIGH), (30, RiskLevel.MEDIUM), (10, RiskLevel.LOW), (9, RiskLevel.INFO)],
    )
    def test_levels(self, score, level):
        """Test risk level thresholds."""
        assert RiskLevel.for_score(score) == level

    def test_safety_spof(self, safety_controller):
        """Test the factors of a lone safety controller."""
        risk = calculate_asset_risk(safety_controller, reference_date=REFERENCE)

        assert risk.asset_id == "SIS-101"
        assert risk.has_factor(RiskFactor.SAFETY_RELATED)
        assert risk.has_factor(RiskFactor.SINGLE_POINT_OF_FAILURE)
        assert risk.has_factor(RiskFactor.NETWORK_EXPOSURE)
        assert not risk.has_factor(RiskFactor.INTERNET_REACHABLE)
        # criticality 25 + safety 20 + unknown lifecycle 5 + network 15 + spof 12
        assert risk.raw_score == 77
        assert risk.normalized_score == round(77 / MAX_RISK_SCORE * 100)
        assert risk.factors[0].factor == RiskFactor.DEVICE_CRITICALITY

    def test_redundancy_clears_spof(self, safety_controller):
        """Test that a peer of the same type in the unit removes the SPOF factor."""
        peers = [{"from": "SIS-102", "to": "FV-1", "unit": "Unit 100", "type": "Safety Controller"}]

        risk = calculate_asset_risk(safety_controller, peers, reference_date=REFERENCE)

        assert not risk.has_factor(RiskFactor.SINGLE_POINT_OF_FAILURE)

    def test_public_ip(self):
        """Test that public addresses add internet reachability."""
        risk = calculate_asset_risk({"tag_id": "RTU-1", "device_type": "RTU", "ip_address": "8.8.8.8"})

        assert risk.has_factor(RiskFactor.INTERNET_REACHABLE)

    def test_gap_flags(self):
        """Test that gap flags add their factors."""
        risk = calculate_asset_risk(
            {"tag_id": "X-1"},
            gap_info={"is_orphan": True, "is_stale": True, "last_seen": "2025-01-01"},
        )

        assert risk.has_factor(RiskFactor.UNDOCUMENTED)
        assert risk.has_factor(RiskFactor.STALE_DATA)
        assert not risk.has_factor(RiskFactor.NO_DISCOVERY)

    def test_portfolio(self, plant_assets):
        """Test portfolio roll-up orders assets by score."""
        portfolio = analyze_portfolio_risk(plant_assets, reference_date=REFERENCE)
        scores = [r.normalized_score for r in portfolio.asset_risks]

        assert portfolio.total_assets == len(plant_assets)
        assert scores == sorted(scores, reverse=True)
        assert sum(portfolio.distribution.values()) == len(plant_assets)
        assert analyze_portfolio_risk([]).average_score == 0


class TestGaps:
    """Tests for gap analysis."""

    def test_gap_kinds_and_order(self):
        """Test blind spots, orphans, stale data and functional gaps, most severe first."""
        match_results = {
            "matched": [
                {
                    "engineering": {"tag_id": "PLC-1", "unit": "U1", "device_type": "PLC"},
                    "discovered": {"tag_id": "PLC-1", "unit": "U1", "last_seen": "2025-09-01"},
                }
            ],
            "blind_spots": [{"tag_id": "SIS-9", "unit": "U1", "device_type": "SIS"}],
            "orphans": [{"ip_address": "10.0.0.99"}],
        }
        functional = [{"gap_type": "no_redundancy", "unit": "U1", "description": "Single BMS", "severity": "high"}]

        analysis = analyze_gaps(match_results, functional, reference_date=REFERENCE)

        assert analysis.coverage_percent == 50.0
        assert analysis.gaps[0].type == GapType.BLIND_SPOT
        assert analysis.gaps[0].severity == "critical"
        assert analysis.of_type(GapType.ORPHAN)[0].severity == "high"
        assert analysis.of_type(GapType.STALE_DATA)[0].severity == "high"
        assert analysis.of_type(GapType.NO_REDUNDANCY)[0].reason == "Single BMS"
        assert analysis.summary["total"] == 4
        assert analysis.summary["affected_units"] == ["U1"]

    def test_reported_coverage_wins(self):
        """Test that a coverage figure in the match stats is used as is."""
        analysis = analyze_gaps({"stats": {"coverage_percent": 87.5}})

        assert analysis.coverage_percent == 87.5
        assert analysis.gaps == []

    def test_unit_without_visibility(self):
        """Test that a unit with documented assets and no discovery is flagged."""
        match_results = {"blind_spots": [{"tag_id": f"TT-{i}", "unit": "U7"} for i in range(3)]}

        analysis = analyze_gaps(match_results, reference_date=REFERENCE)

        assert analysis.coverage_percent == 0.0
        assert len(analysis.of_type(GapType.NO_VISIBILITY)) == 1
