"""
compliance.py — Evaluates a certificate snapshot against PCI DSS, HIPAA,
GDPR and SOC 2 transport-security requirements.

Each standard is a fixed, ordered table of rules. A rule's evaluator returns
(status, details) for one snapshot; requirements that a certificate-only
assessment cannot speak to always return not-applicable and are excluded
from the scoring denominator.
"""

from dataclasses import dataclass
from typing import Callable

from .models import (
    CertificateSnapshot,
    ComplianceAssessment,
    ComplianceReport,
    ComplianceRequirement,
    ComplianceStandard,
    ComplianceStatus,
    OverallComplianceStatus,
    round_half_up,
)

Evaluation = tuple[ComplianceStatus, str]

_COMPLIANT = ComplianceStatus.compliant
_NON_COMPLIANT = ComplianceStatus.non_compliant
_PARTIAL = ComplianceStatus.partial
_NOT_APPLICABLE = ComplianceStatus.not_applicable

_MODERN_TLS = ("TLS 1.2", "TLS 1.3")
_MIN_KEY_BITS = 2048

# ---------------------------------------------------------------------------
# Shared predicates
# ---------------------------------------------------------------------------


def _has_modern_tls(s: CertificateSnapshot) -> bool:
    return s.tls_version.strip() in _MODERN_TLS


def _has_strong_key(s: CertificateSnapshot) -> bool:
    return s.public_key.effective_bits >= _MIN_KEY_BITS


def _cipher_contains_any(s: CertificateSnapshot, markers: tuple[str, ...]) -> bool:
    cipher = s.cipher_suite.upper()
    return any(m in cipher for m in markers)


def _signature_contains_any(s: CertificateSnapshot, markers: tuple[str, ...]) -> bool:
    algorithm = s.signature_algorithm.upper()
    return any(m in algorithm for m in markers)


def _key_label(s: CertificateSnapshot) -> str:
    return f"{s.public_key.bits}-bit {s.public_key.algorithm}"


@dataclass(frozen=True)
class ComplianceRule:
    id: str
    requirement: str
    description: str
    reference: str
    evaluate: Callable[[CertificateSnapshot], Evaluation]


def _always(status: ComplianceStatus, details: str) -> Callable[[CertificateSnapshot], Evaluation]:
    return lambda _s: (status, details)


# ---------------------------------------------------------------------------
# PCI DSS
# ---------------------------------------------------------------------------

_PCI_WEAK_CIPHERS = ("RC4", "DES", "3DES", "NULL", "ANON", "EXPORT")
_PCI_WEAK_SIGNATURES = ("MD5", "SHA-1", "SHA1")


def _pci_tls(s: CertificateSnapshot) -> Evaluation:
    if _has_modern_tls(s):
        return _COMPLIANT, f"Using {s.tls_version}, which meets PCI DSS requirements"
    return _NON_COMPLIANT, f"Using {s.tls_version or 'an unknown protocol'}. PCI DSS requires TLS 1.2 or TLS 1.3"


def _pci_ciphers(s: CertificateSnapshot) -> Evaluation:
    if _cipher_contains_any(s, _PCI_WEAK_CIPHERS):
        return _NON_COMPLIANT, f"Weak cipher detected: {s.cipher_suite}"
    return _COMPLIANT, "No weak ciphers detected in cipher suite"


def _pci_key(s: CertificateSnapshot) -> Evaluation:
    if _has_strong_key(s):
        return _COMPLIANT, f"Using {_key_label(s)} key"
    return _NON_COMPLIANT, f"Using {s.public_key.bits}-bit key. PCI DSS requires minimum 2048-bit"


def _pci_expiration(s: CertificateSnapshot) -> Evaluation:
    if s.is_expired:
        return _NON_COMPLIANT, "Certificate has expired. Expiration is not being managed."
    if s.is_expiring_soon:
        return _PARTIAL, "Certificate is expiring soon. Renew before expiration."
    return _COMPLIANT, "Certificate expiration is being properly managed"


def _pci_signature(s: CertificateSnapshot) -> Evaluation:
    if _signature_contains_any(s, _PCI_WEAK_SIGNATURES):
        return _NON_COMPLIANT, f"Weak signature algorithm: {s.signature_algorithm}"
    return _COMPLIANT, f"Using {s.signature_algorithm}, which is acceptable"


PCI_DSS_RULES: tuple[ComplianceRule, ...] = (
    ComplianceRule(
        "PCI-4.1",
        "Strong Encryption for Data Transmission",
        "Use TLS 1.2 or higher for all transmission of cardholder data over open networks",
        "PCI DSS Requirement 4.1",
        _pci_tls,
    ),
    ComplianceRule(
        "PCI-4.1.1",
        "No Weak Cipher Suites",
        "Do not use weak cryptographic algorithms such as DES, 3DES, RC4",
        "PCI DSS Requirement 4.1.1",
        _pci_ciphers,
    ),
    ComplianceRule(
        "PCI-4.1.2",
        "Minimum 2048-bit Key Size",
        "Use a minimum of 2048-bit RSA keys or equivalent strength",
        "PCI DSS Requirement 4.1.2",
        _pci_key,
    ),
    ComplianceRule(
        "PCI-6.5.4",
        "Certificate Expiration Management",
        "Monitor and manage certificate expiration dates",
        "PCI DSS Requirement 6.5.4",
        _pci_expiration,
    ),
    ComplianceRule(
        "PCI-4.1.3",
        "Strong Signature Algorithms",
        "Use SHA-256 or stronger signature algorithms",
        "PCI DSS Requirement 4.1.3",
        _pci_signature,
    ),
)

# ---------------------------------------------------------------------------
# HIPAA
# ---------------------------------------------------------------------------


def _hipaa_transmission(s: CertificateSnapshot) -> Evaluation:
    if _has_modern_tls(s):
        return _COMPLIANT, f"Using {s.tls_version} for secure transmission"
    return _NON_COMPLIANT, f"Using {s.tls_version or 'an unknown protocol'}. HIPAA requires TLS 1.2 or higher"


def _hipaa_integrity(s: CertificateSnapshot) -> Evaluation:
    if _cipher_contains_any(s, ("NULL", "EXPORT")):
        return _NON_COMPLIANT, "Cipher suite lacks proper integrity controls"
    return _COMPLIANT, "Cipher suite provides integrity protection"


def _hipaa_encryption(s: CertificateSnapshot) -> Evaluation:
    if _has_strong_key(s) and not _cipher_contains_any(s, ("RC4", "DES", "NULL")):
        return _COMPLIANT, f"Strong encryption with {s.public_key.bits}-bit keys"
    return _NON_COMPLIANT, "Encryption strength does not meet HIPAA guidelines"


HIPAA_RULES: tuple[ComplianceRule, ...] = (
    ComplianceRule(
        "HIPAA-164.312(e)(1)",
        "Transmission Security",
        "Implement technical security measures to guard against unauthorized access to ePHI "
        "transmitted over electronic networks",
        "45 CFR § 164.312(e)(1)",
        _hipaa_transmission,
    ),
    ComplianceRule(
        "HIPAA-164.312(e)(2)(i)",
        "Integrity Controls",
        "Implement security measures to ensure ePHI is not improperly altered or destroyed",
        "45 CFR § 164.312(e)(2)(i)",
        _hipaa_integrity,
    ),
    ComplianceRule(
        "HIPAA-164.312(e)(2)(ii)",
        "Encryption",
        "Implement a mechanism to encrypt ePHI whenever deemed appropriate",
        "45 CFR § 164.312(e)(2)(ii)",
        _hipaa_encryption,
    ),
    ComplianceRule(
        "HIPAA-164.308(a)(7)(ii)(A)",
        "Data Backup Plan",
        "Establish procedures to create and maintain retrievable exact copies of ePHI",
        "45 CFR § 164.308(a)(7)(ii)(A)",
        _always(_NOT_APPLICABLE, "Certificate validation does not assess backup procedures"),
    ),
)

# ---------------------------------------------------------------------------
# GDPR
# ---------------------------------------------------------------------------


def _gdpr_processing(s: CertificateSnapshot) -> Evaluation:
    if _has_modern_tls(s) and _has_strong_key(s):
        return _COMPLIANT, "Encryption meets GDPR security standards"
    return _NON_COMPLIANT, "Encryption does not meet GDPR Article 32 requirements"


def _gdpr_encryption(s: CertificateSnapshot) -> Evaluation:
    if _cipher_contains_any(s, ("RC4", "DES", "NULL", "EXPORT")):
        return _NON_COMPLIANT, "Weak encryption detected. GDPR requires appropriate encryption"
    return _COMPLIANT, "Strong encryption algorithms in use"


GDPR_RULES: tuple[ComplianceRule, ...] = (
    ComplianceRule(
        "GDPR-32",
        "Security of Processing",
        "Implement appropriate technical measures including encryption of personal data",
        "GDPR Article 32",
        _gdpr_processing,
    ),
    ComplianceRule(
        "GDPR-32(1)(a)",
        "Encryption of Personal Data",
        "The encryption of personal data as appropriate",
        "GDPR Article 32(1)(a)",
        _gdpr_encryption,
    ),
    ComplianceRule(
        "GDPR-32(1)(b)",
        "Ongoing Confidentiality",
        "Ability to ensure ongoing confidentiality of processing systems and services",
        "GDPR Article 32(1)(b)",
        _always(_PARTIAL, "Certificate provides confidentiality but requires regular monitoring"),
    ),
    ComplianceRule(
        "GDPR-25",
        "Data Protection by Design",
        "Implement appropriate technical measures to ensure data protection principles",
        "GDPR Article 25",
        _always(_NOT_APPLICABLE, "Certificate validation does not assess design-level protections"),
    ),
)

# ---------------------------------------------------------------------------
# SOC 2
# ---------------------------------------------------------------------------


def _soc2_access(s: CertificateSnapshot) -> Evaluation:
    if _has_modern_tls(s):
        return _COMPLIANT, f"Access controls enforced via {s.tls_version}"
    return _NON_COMPLIANT, "Insufficient access controls. SOC 2 requires modern TLS"


def _soc2_encryption(s: CertificateSnapshot) -> Evaluation:
    if _has_strong_key(s) and not _cipher_contains_any(s, ("RC4", "DES", "NULL")):
        return _COMPLIANT, "Strong encryption protects data in transit"
    return _NON_COMPLIANT, "Weak encryption detected. SOC 2 requires strong cryptography"


def _soc2_transmission(s: CertificateSnapshot) -> Evaluation:
    if _signature_contains_any(s, ("MD5", "SHA-1", "SHA1")):
        return _PARTIAL, "Weak signature algorithm. Consider upgrading to SHA-256 or higher"
    return _COMPLIANT, "Secure signature algorithms protect transmission integrity"


def _soc2_monitoring(s: CertificateSnapshot) -> Evaluation:
    if s.is_expired:
        return _NON_COMPLIANT, "Certificate has expired. Monitoring did not trigger renewal"
    if s.is_expiring_soon:
        return _PARTIAL, "Certificate expiring soon. Monitoring should trigger renewal"
    return _COMPLIANT, "Certificate monitoring appears adequate"


SOC2_RULES: tuple[ComplianceRule, ...] = (
    ComplianceRule(
        "SOC2-CC6.1",
        "Logical and Physical Access Controls",
        "Implement controls to restrict access to sensitive data",
        "SOC 2 Trust Service Criteria CC6.1",
        _soc2_access,
    ),
    ComplianceRule(
        "SOC2-CC6.6",
        "Encryption of Data in Transit",
        "Protect data in transit using encryption",
        "SOC 2 Trust Service Criteria CC6.6",
        _soc2_encryption,
    ),
    ComplianceRule(
        "SOC2-CC6.7",
        "Secure Data Transmission",
        "Implement measures to protect data during transmission",
        "SOC 2 Trust Service Criteria CC6.7",
        _soc2_transmission,
    ),
    ComplianceRule(
        "SOC2-CC7.2",
        "System Monitoring",
        "Monitor system components and detect anomalies",
        "SOC 2 Trust Service Criteria CC7.2",
        _soc2_monitoring,
    ),
)

# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


def overall_status_for(score: int) -> OverallComplianceStatus:
    if score == 100:
        return OverallComplianceStatus.compliant
    if score >= 75:
        return OverallComplianceStatus.partial
    return OverallComplianceStatus.non_compliant


def _evaluate_standard(
    standard: ComplianceStandard, rules: tuple[ComplianceRule, ...], snapshot: CertificateSnapshot
) -> ComplianceReport:
    requirements = []
    for rule in rules:
        status, details = rule.evaluate(snapshot)
        requirements.append(
            ComplianceRequirement(
                id=rule.id,
                standard=standard,
                requirement=rule.requirement,
                description=rule.description,
                status=status,
                details=details,
                reference=rule.reference,
            )
        )

    compliant = sum(1 for r in requirements if r.status == _COMPLIANT)
    applicable = sum(1 for r in requirements if r.status != _NOT_APPLICABLE)
    score = round_half_up(100 * compliant / applicable) if applicable else 0

    return ComplianceReport(
        standard=standard,
        compliant_requirements=compliant,
        total_requirements=applicable,
        compliance_score=score,
        requirements=tuple(requirements),
        overall_status=overall_status_for(score),
    )


def check_pci_dss(snapshot: CertificateSnapshot) -> ComplianceReport:
    return _evaluate_standard(ComplianceStandard.pci_dss, PCI_DSS_RULES, snapshot)


def check_hipaa(snapshot: CertificateSnapshot) -> ComplianceReport:
    return _evaluate_standard(ComplianceStandard.hipaa, HIPAA_RULES, snapshot)


def check_gdpr(snapshot: CertificateSnapshot) -> ComplianceReport:
    return _evaluate_standard(ComplianceStandard.gdpr, GDPR_RULES, snapshot)


def check_soc2(snapshot: CertificateSnapshot) -> ComplianceReport:
    return _evaluate_standard(ComplianceStandard.soc2, SOC2_RULES, snapshot)


def perform_compliance_check(snapshot: CertificateSnapshot) -> ComplianceAssessment:
    """Run all four standards and roll them up into one assessment.

    overall_compliance is the rounded mean of the per-standard scores.
    critical_issues lists every non-compliant requirement as
    "<Standard>: <Requirement>", in report order.
    """
    reports = (
        check_pci_dss(snapshot),
        check_hipaa(snapshot),
        check_gdpr(snapshot),
        check_soc2(snapshot),
    )
    overall = round_half_up(sum(r.compliance_score for r in reports) / len(reports))

    critical_issues = tuple(
        f"{report.standard.value}: {req.requirement}"
        for report in reports
        for req in report.requirements
        if req.status == _NON_COMPLIANT
    )

    return ComplianceAssessment(reports=reports, overall_compliance=overall, critical_issues=critical_issues)
