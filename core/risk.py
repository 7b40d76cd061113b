"""
risk.py — Composite risk assessment.

Combines the vulnerability report, the compliance assessment and raw
certificate/exposure attributes into four sub-scores (higher is safer), a
weighted overall score, a business-impact triad, attack vectors and a
prioritized remediation plan.
"""

import logging

from .models import (
    PRIORITY_ORDER,
    AttackVector,
    BusinessImpact,
    CertificateSnapshot,
    ComplianceAssessment,
    ComplianceStatus,
    Effort,
    Likelihood,
    Priority,
    RemediationAction,
    RiskAssessment,
    RiskFactors,
    RiskLevel,
    Severity,
    VulnerabilityReport,
    round_half_up,
)

logger = logging.getLogger("certdossier.risk")

# Weights of the four risk factors in the overall score. Must sum to 1.
WEIGHTS = {
    "vulnerabilities": 0.35,
    "compliance": 0.25,
    "configuration": 0.25,
    "exposure": 0.15,
}

# severity -> (score penalty, likelihood, impact, exploitability narrative)
_SEVERITY_PROFILE: dict[Severity, tuple[int, Likelihood, Severity, str]] = {
    Severity.critical: (
        25,
        Likelihood.very_high,
        Severity.critical,
        "Publicly known exploits exist. Automated scanning tools actively detect this vulnerability.",
    ),
    Severity.high: (
        15,
        Likelihood.high,
        Severity.high,
        "Well-documented attack methods available. Requires moderate technical skill.",
    ),
    Severity.medium: (
        8,
        Likelihood.medium,
        Severity.medium,
        "Exploitation requires specific conditions or advanced techniques.",
    ),
    Severity.low: (
        0,
        Likelihood.low,
        Severity.low,
        "Exploitation is theoretical or requires a privileged network position.",
    ),
}

_SAN_COUNT_THRESHOLD = 10
_SUBDOMAIN_COUNT_THRESHOLD = 20


def risk_level_for(score: float) -> RiskLevel:
    """Map a 0-100 safety score to a risk level (higher score, lower risk)."""
    if score >= 90:
        return RiskLevel.minimal
    if score >= 75:
        return RiskLevel.low
    if score >= 60:
        return RiskLevel.medium
    if score >= 40:
        return RiskLevel.high
    return RiskLevel.critical


# ---------------------------------------------------------------------------
# Sub-assessors
# ---------------------------------------------------------------------------


def assess_vulnerability_risk(report: VulnerabilityReport) -> tuple[int, list[AttackVector]]:
    """Return (score, attack vectors). One vector per finding, most severe first."""
    score = 100
    vectors: list[AttackVector] = []
    for vuln in report.all():
        penalty, likelihood, impact, exploitability = _SEVERITY_PROFILE[vuln.severity]
        score -= penalty
        vectors.append(
            AttackVector(
                id=vuln.id,
                name=vuln.title,
                likelihood=likelihood,
                impact=impact,
                description=vuln.description,
                exploitability=exploitability,
                mitigation=vuln.recommendation,
            )
        )
    return max(0, score), vectors


def vulnerability_score(report: VulnerabilityReport) -> int:
    score, _ = assess_vulnerability_risk(report)
    return score


def assess_compliance_risk(assessment: ComplianceAssessment) -> tuple[int, list[RemediationAction]]:
    """Return (score, actions). The score is the assessment's overall compliance."""
    actions = [
        RemediationAction(
            id=req.id,
            priority=Priority.high,
            title=f"{report.standard.value}: {req.requirement}",
            description=req.details,
            effort=Effort.medium,
            timeframe="1-2 weeks",
            benefit=f"Achieve {report.standard.value} compliance requirement",
        )
        for report in assessment.reports
        for req in report.requirements
        if req.status == ComplianceStatus.non_compliant
    ]
    return assessment.overall_compliance, actions


def assess_configuration_risk(snapshot: CertificateSnapshot) -> tuple[int, list[RemediationAction]]:
    score = 100
    actions: list[RemediationAction] = []
    protocol = snapshot.tls_version.strip()

    if protocol == "TLS 1.3":
        score = 100
    elif protocol == "TLS 1.2":
        score = 90
    elif protocol == "TLS 1.1":
        score = 60
        actions.append(
            RemediationAction(
                id="CONFIG_TLS11",
                priority=Priority.high,
                title="Upgrade to TLS 1.2 or TLS 1.3",
                description="TLS 1.1 is deprecated and lacks modern security features",
                effort=Effort.medium,
                timeframe="1 week",
                benefit="Prevent protocol downgrade attacks and enable modern cipher suites",
            )
        )
    elif protocol == "TLS 1.0":
        score = 40
        actions.append(
            RemediationAction(
                id="CONFIG_TLS10",
                priority=Priority.critical,
                title="Upgrade to TLS 1.2 or TLS 1.3 immediately",
                description="TLS 1.0 has known vulnerabilities (BEAST, CRIME) and is no longer considered secure",
                effort=Effort.medium,
                timeframe="Immediate",
                benefit="Protect against known protocol-level attacks",
            )
        )
    elif "SSL" in protocol.upper():
        score = 10
        actions.append(
            RemediationAction(
                id="CONFIG_SSL",
                priority=Priority.critical,
                title="Disable SSL protocols immediately",
                description="SSL 2.0 and SSL 3.0 are critically vulnerable and must not be used",
                effort=Effort.low,
                timeframe="Immediate",
                benefit="Prevent POODLE, DROWN, and other SSL-specific attacks",
            )
        )
    else:
        logger.debug("No protocol tier for %r; configuration base score left at 100", protocol)

    if snapshot.public_key.effective_bits < 2048:
        score -= 20
        actions.append(
            RemediationAction(
                id="CONFIG_KEYSIZE",
                priority=Priority.high,
                title="Upgrade to 2048-bit or 4096-bit keys",
                description=f"Current {snapshot.public_key.bits}-bit key size is below industry standards",
                effort=Effort.high,
                timeframe="2-4 weeks",
                benefit="Meet compliance requirements and protect against brute-force attacks",
            )
        )

    if snapshot.is_expired:
        score -= 30
        actions.append(
            RemediationAction(
                id="CONFIG_EXPIRED",
                priority=Priority.critical,
                title="Replace the expired certificate",
                description=f"Certificate expired {abs(snapshot.days_remaining)} days ago",
                effort=Effort.low,
                timeframe="Immediate",
                benefit="Restore trusted connections and stop browser security errors",
            )
        )
    elif snapshot.is_expiring_soon:
        score -= 15
        actions.append(
            RemediationAction(
                id="CONFIG_EXPIRING",
                priority=Priority.high,
                title="Renew certificate before expiration",
                description=f"Certificate expires in {snapshot.days_remaining} days",
                effort=Effort.low,
                timeframe="This week",
                benefit="Prevent service disruption and maintain user trust",
            )
        )

    if snapshot.is_self_signed:
        score -= 25
        actions.append(
            RemediationAction(
                id="CONFIG_SELFSIGNED",
                priority=Priority.critical,
                title="Replace self-signed certificate with CA-issued certificate",
                description="Self-signed certificates trigger browser warnings and are not trusted by default",
                effort=Effort.low,
                timeframe="1-2 days",
                benefit="Eliminate browser warnings and establish trust with users",
            )
        )

    return max(0, score), actions


def assess_exposure_risk(snapshot: CertificateSnapshot, subdomain_count: int) -> tuple[int, list[RemediationAction]]:
    score = 100
    actions: list[RemediationAction] = []

    if snapshot.is_wildcard:
        score -= 10
        actions.append(
            RemediationAction(
                id="EXPOSURE_WILDCARD",
                priority=Priority.medium,
                title="Review wildcard certificate usage",
                description="Wildcard certificates increase attack surface if private key is compromised",
                effort=Effort.medium,
                timeframe="2-4 weeks",
                benefit="Limit blast radius of potential key compromise",
            )
        )

    if len(snapshot.subject_alt_names) > _SAN_COUNT_THRESHOLD:
        score -= 5

    if subdomain_count > _SUBDOMAIN_COUNT_THRESHOLD:
        score -= 15
        actions.append(
            RemediationAction(
                id="EXPOSURE_SUBDOMAINS",
                priority=Priority.medium,
                title="Audit and secure all subdomains",
                description=f"{subdomain_count} subdomains discovered. Each is a potential entry point.",
                effort=Effort.high,
                timeframe="4-8 weeks",
                benefit="Reduce attack surface and prevent subdomain takeover",
            )
        )

    return max(0, score), actions


# ---------------------------------------------------------------------------
# Composite
# ---------------------------------------------------------------------------


def _impact(score_a: int, score_b: int) -> RiskLevel:
    return risk_level_for((score_a + score_b) / 2)


def perform_risk_assessment(
    vuln_report: VulnerabilityReport,
    compliance: ComplianceAssessment,
    snapshot: CertificateSnapshot,
    subdomain_count: int = 0,
) -> RiskAssessment:
    """Combine every risk factor into one RiskAssessment.

    Remediation actions from the compliance, configuration and exposure
    assessors are concatenated in that order and then stably sorted by
    priority, so equal-priority actions keep their discovery order.
    """
    vuln_score, vectors = assess_vulnerability_risk(vuln_report)
    compliance_score, compliance_actions = assess_compliance_risk(compliance)
    config_score, config_actions = assess_configuration_risk(snapshot)
    exposure_score, exposure_actions = assess_exposure_risk(snapshot, subdomain_count)

    factors = RiskFactors(
        vulnerabilities=vuln_score,
        compliance=compliance_score,
        configuration=config_score,
        exposure=exposure_score,
    )

    overall = round_half_up(
        vuln_score * WEIGHTS["vulnerabilities"]
        + compliance_score * WEIGHTS["compliance"]
        + config_score * WEIGHTS["configuration"]
        + exposure_score * WEIGHTS["exposure"]
    )

    actions = sorted(
        [*compliance_actions, *config_actions, *exposure_actions],
        key=lambda action: PRIORITY_ORDER[action.priority],
    )

    impact = BusinessImpact(
        confidentiality=_impact(vuln_score, compliance_score),
        integrity=_impact(config_score, vuln_score),
        availability=_impact(config_score, exposure_score),
    )

    return RiskAssessment(
        overall_risk_score=overall,
        risk_level=risk_level_for(overall),
        risk_factors=factors,
        business_impact=impact,
        attack_vectors=tuple(vectors),
        remediation_actions=tuple(actions),
    )
