"""Unit tests for core/risk.py — sub-assessors and the weighted composite."""

from datetime import timedelta

from core.compliance import perform_compliance_check
from core.models import (
    PRIORITY_ORDER,
    DistinguishedName,
    Likelihood,
    Priority,
    PublicKeyInfo,
    RiskLevel,
    Severity,
    Vulnerability,
    VulnerabilityReport,
)
from core.risk import (
    WEIGHTS,
    assess_configuration_risk,
    assess_exposure_risk,
    assess_vulnerability_risk,
    perform_risk_assessment,
    risk_level_for,
)
from core.vulnerabilities import check_vulnerabilities


def _vuln(vuln_id: str, severity: Severity) -> Vulnerability:
    return Vulnerability(
        id=vuln_id,
        title=f"Finding {vuln_id}",
        description="desc",
        severity=severity,
        recommendation="fix it",
    )


def _assess(snapshot, subdomain_count=0):
    vulns = check_vulnerabilities(snapshot)
    compliance = perform_compliance_check(snapshot)
    return perform_risk_assessment(vulns, compliance, snapshot, subdomain_count)


class TestVulnerabilityRisk:
    def test_penalties_by_severity(self):
        report = VulnerabilityReport(
            critical=(_vuln("C1", Severity.critical),),
            high=(_vuln("H1", Severity.high),),
            medium=(_vuln("M1", Severity.medium),),
            low=(_vuln("L1", Severity.low),),
        )
        score, vectors = assess_vulnerability_risk(report)
        assert score == 100 - 25 - 15 - 8
        assert [v.id for v in vectors] == ["C1", "H1", "M1", "L1"]

    def test_vector_profile_follows_severity(self):
        _, vectors = assess_vulnerability_risk(VulnerabilityReport(critical=(_vuln("C1", Severity.critical),)))
        vector = vectors[0]
        assert vector.likelihood == Likelihood.very_high
        assert vector.impact == Severity.critical
        assert vector.mitigation == "fix it"

    def test_score_floors_at_zero(self):
        report = VulnerabilityReport(critical=tuple(_vuln(f"C{i}", Severity.critical) for i in range(6)))
        score, _ = assess_vulnerability_risk(report)
        assert score == 0


class TestConfigurationRisk:
    def test_tls13_is_perfect(self, make_snapshot):
        score, actions = assess_configuration_risk(make_snapshot())
        assert score == 100
        assert actions == []

    def test_tls12(self, make_snapshot):
        score, actions = assess_configuration_risk(make_snapshot(tls_version="TLS 1.2"))
        assert score == 90
        assert actions == []

    def test_tls11(self, make_snapshot):
        score, actions = assess_configuration_risk(make_snapshot(tls_version="TLS 1.1"))
        assert score == 60
        assert [a.id for a in actions] == ["CONFIG_TLS11"]

    def test_tls10_with_weak_key(self, make_snapshot):
        snapshot = make_snapshot(tls_version="TLS 1.0", public_key=PublicKeyInfo("RSA", 1024))
        score, actions = assess_configuration_risk(snapshot)
        assert score == 20
        assert [a.id for a in actions] == ["CONFIG_TLS10", "CONFIG_KEYSIZE"]
        assert actions[0].priority == Priority.critical

    def test_expiring_soon(self, make_snapshot):
        score, actions = assess_configuration_risk(make_snapshot(days_left=10))
        assert score == 85
        assert [a.id for a in actions] == ["CONFIG_EXPIRING"]

    def test_expired(self, make_snapshot):
        score, actions = assess_configuration_risk(make_snapshot(days_left=-3))
        assert score == 70
        assert [a.id for a in actions] == ["CONFIG_EXPIRED"]
        assert actions[0].priority == Priority.critical

    def test_expired_within_the_last_day(self, make_snapshot, now):
        snapshot = make_snapshot(valid_to=now - timedelta(hours=12))
        assert snapshot.days_remaining == 0
        assert not snapshot.is_expiring_soon
        score, actions = assess_configuration_risk(snapshot)
        assert score == 70
        assert [a.id for a in actions] == ["CONFIG_EXPIRED"]

    def test_self_signed(self, make_snapshot):
        snapshot = make_snapshot(issuer=DistinguishedName(common_name="example.com"))
        score, actions = assess_configuration_risk(snapshot)
        assert score == 75
        assert [a.id for a in actions] == ["CONFIG_SELFSIGNED"]

    def test_score_floors_at_zero(self, make_snapshot):
        snapshot = make_snapshot(
            tls_version="SSL 3.0",
            public_key=PublicKeyInfo("RSA", 512),
            issuer=DistinguishedName(common_name="example.com"),
        )
        score, _ = assess_configuration_risk(snapshot)
        assert score == 0


class TestExposureRisk:
    def test_wildcard_with_many_subdomains(self, make_snapshot):
        snapshot = make_snapshot(
            subject=DistinguishedName(common_name="*.example.com"),
            subject_alt_names=("*.example.com", "example.com"),
        )
        score, actions = assess_exposure_risk(snapshot, subdomain_count=25)
        assert score == 75
        assert [a.id for a in actions] == ["EXPOSURE_WILDCARD", "EXPOSURE_SUBDOMAINS"]
        assert "25 subdomains" in actions[1].description

    def test_many_sans_penalized_without_action(self, make_snapshot):
        sans = tuple(f"host{i}.example.com" for i in range(11))
        score, actions = assess_exposure_risk(make_snapshot(subject_alt_names=sans), subdomain_count=0)
        assert score == 95
        assert actions == []

    def test_twenty_subdomains_is_under_threshold(self, make_snapshot):
        score, _ = assess_exposure_risk(make_snapshot(), subdomain_count=20)
        assert score == 100


class TestComposite:
    def test_weights_sum_to_one(self):
        assert abs(sum(WEIGHTS.values()) - 1.0) < 1e-9

    def test_baseline_is_minimal_risk(self, make_snapshot):
        risk = _assess(make_snapshot())
        assert risk.risk_factors.vulnerabilities == 100
        assert risk.risk_factors.compliance == 92
        assert risk.risk_factors.configuration == 100
        assert risk.risk_factors.exposure == 100
        assert risk.overall_risk_score == 98
        assert risk.risk_level == RiskLevel.minimal
        assert risk.business_impact.confidentiality == RiskLevel.minimal

    def test_overall_independent_of_finding_order(self, make_snapshot):
        snapshot = make_snapshot()
        compliance = perform_compliance_check(snapshot)
        a, b, c = _vuln("A", Severity.high), _vuln("B", Severity.high), _vuln("C", Severity.medium)
        first = perform_risk_assessment(VulnerabilityReport(high=(a, b), medium=(c,)), compliance, snapshot)
        second = perform_risk_assessment(VulnerabilityReport(high=(b, a), medium=(c,)), compliance, snapshot)
        assert first.overall_risk_score == second.overall_risk_score
        assert first.risk_level == second.risk_level

    def test_actions_sorted_by_priority_and_stable(self, make_snapshot):
        snapshot = make_snapshot(
            tls_version="TLS 1.0",
            public_key=PublicKeyInfo("RSA", 1024),
            subject=DistinguishedName(common_name="*.example.com"),
        )
        actions = _assess(snapshot).remediation_actions
        ranks = [PRIORITY_ORDER[a.priority] for a in actions]
        assert ranks == sorted(ranks)

        ids = [a.id for a in actions]
        assert ids[0] == "CONFIG_TLS10"
        # compliance actions keep report order ahead of the configuration key action
        assert ids[1] == "PCI-4.1"
        assert ids[-2] == "CONFIG_KEYSIZE"
        assert ids[-1] == "EXPOSURE_WILDCARD"

    def test_compliance_actions_reference_standard(self, make_snapshot):
        actions = _assess(make_snapshot(tls_version="TLS 1.1")).remediation_actions
        titles = [a.title for a in actions]
        assert "PCI DSS: Strong Encryption for Data Transmission" in titles

    def test_attack_vectors_mirror_findings(self, make_snapshot):
        risk = _assess(make_snapshot(tls_version="SSL 3.0", cipher_suite="RC4-SHA"))
        assert [v.id for v in risk.attack_vectors] == ["CVE-2014-3566", "CVE-2015-2808"]


class TestRiskLevel:
    def test_thresholds(self):
        assert risk_level_for(90) == RiskLevel.minimal
        assert risk_level_for(89) == RiskLevel.low
        assert risk_level_for(75) == RiskLevel.low
        assert risk_level_for(74) == RiskLevel.medium
        assert risk_level_for(60) == RiskLevel.medium
        assert risk_level_for(59) == RiskLevel.high
        assert risk_level_for(40) == RiskLevel.high
        assert risk_level_for(39) == RiskLevel.critical
        assert risk_level_for(0) == RiskLevel.critical
