"""
grading.py — Headline security grade and the per-category score breakdown.

The grade is a deliberately simple penalty scorer shown to end users; it is
independent of the weighted risk engine in risk.py and uses its own
penalties. The breakdown explains the certificate in five fixed categories
for the detailed report.
"""

from datetime import datetime
from typing import Optional

from .models import CertificateSnapshot, Grade, ScoreBreakdown, ScoreItem, SecurityGrade

# (minimum score, grade), checked top-down.
GRADE_THRESHOLDS: tuple[tuple[int, Grade], ...] = (
    (95, Grade.a_plus),
    (90, Grade.a),
    (80, Grade.b),
    (70, Grade.c),
    (60, Grade.d),
)

# CA/Browser Forum maximum for publicly trusted certificates.
MAX_VALIDITY_DAYS = 398


def grade_for_score(score: int) -> Grade:
    for minimum, grade in GRADE_THRESHOLDS:
        if score >= minimum:
            return grade
    return Grade.f


def _mentions_sha1(signature_algorithm: str) -> bool:
    algorithm = signature_algorithm.lower()
    return "sha1" in algorithm or "sha-1" in algorithm


def calculate_security_grade(snapshot: CertificateSnapshot) -> SecurityGrade:
    """Score the certificate from 100 down and map the result to a letter grade."""
    score = 100
    issues: list[str] = []

    if "1.3" not in snapshot.tls_version:
        score -= 10
        issues.append("Not using TLS 1.3")

    if snapshot.public_key.effective_bits < 2048:
        score -= 20
        issues.append("Key size less than 2048 bits")

    days = snapshot.days_remaining
    if days < 7:
        score -= 15
        issues.append("Certificate has expired" if snapshot.is_expired else "Expires in less than 7 days")
    elif days < 30:
        score -= 5
        issues.append("Expires in less than 30 days")

    if snapshot.is_self_signed:
        score -= 50
        issues.append("Self-signed certificate")

    if _mentions_sha1(snapshot.signature_algorithm):
        score -= 30
        issues.append("Using deprecated SHA-1")

    final = max(0, score)
    return SecurityGrade(grade=grade_for_score(final), score=final, issues=tuple(issues))


# ---------------------------------------------------------------------------
# Score breakdown
# ---------------------------------------------------------------------------


def _protocol_item(snapshot: CertificateSnapshot) -> ScoreItem:
    protocol = snapshot.tls_version.strip()
    if protocol == "TLS 1.3":
        score, detail = 25, "Using latest TLS 1.3 protocol"
    elif protocol == "TLS 1.2":
        score, detail = 20, "Using secure TLS 1.2 protocol"
    elif protocol == "TLS 1.1":
        score, detail = 10, "Using outdated TLS 1.1 protocol"
    else:
        score, detail = 0, "Using insecure or outdated protocol"
    return ScoreItem(
        category="Protocol Security",
        score=score,
        max_score=25,
        description="Evaluation of the TLS/SSL protocol version in use",
        details=(detail,),
    )


def _encryption_item(snapshot: CertificateSnapshot) -> ScoreItem:
    bits = snapshot.public_key.effective_bits
    if bits >= 4096:
        score, detail = 25, "Exceptional key size (4096+ bits)"
    elif bits >= 2048:
        score, detail = 20, "Strong key size (2048+ bits)"
    elif bits >= 1024:
        score, detail = 10, "Weak key size (1024 bits)"
    else:
        score, detail = 0, "Insecure key size"

    details = [detail]
    algorithm = snapshot.public_key.algorithm
    if algorithm in ("RSA", "ECDSA", "EC"):
        details.append(f"Modern {algorithm} algorithm")

    return ScoreItem(
        category="Encryption Strength",
        score=score,
        max_score=25,
        description="Assessment of key size and cryptographic algorithms",
        details=tuple(details),
    )


def _trust_item(snapshot: CertificateSnapshot) -> ScoreItem:
    if snapshot.is_self_signed:
        score, details = 0, ("Self-signed certificate (not trusted)",)
    else:
        ca = snapshot.issuer.organization or snapshot.issuer.common_name or "Unknown"
        score, details = 20, ("Issued by trusted Certificate Authority", f"CA: {ca}")
    return ScoreItem(
        category="Certificate Authority Trust",
        score=score,
        max_score=20,
        description="Verification of certificate issuer trustworthiness",
        details=details,
    )


def _validity_days(valid_from: datetime, valid_to: datetime) -> int:
    return (valid_to - valid_from).days


def _validity_item(snapshot: CertificateSnapshot) -> ScoreItem:
    days = snapshot.days_remaining
    if snapshot.is_expired:
        score, detail = 0, "Certificate has expired"
    elif days > 30:
        score, detail = 15, f"Valid for {days} more days"
    elif days > 7:
        score, detail = 10, f"Expires soon ({days} days remaining)"
    else:
        score, detail = 5, f"Expires very soon ({days} days remaining)"

    details = [detail]
    if _validity_days(snapshot.valid_from, snapshot.valid_to) <= MAX_VALIDITY_DAYS:
        details.append(f"Appropriate validity period (≤{MAX_VALIDITY_DAYS} days)")
    else:
        details.append("Excessive validity period")

    return ScoreItem(
        category="Certificate Validity",
        score=score,
        max_score=15,
        description="Current validity status and expiration timeline",
        details=tuple(details),
    )


def _configuration_item(snapshot: CertificateSnapshot, issues: tuple[str, ...]) -> ScoreItem:
    score = 0
    details: list[str] = []

    algorithm = snapshot.signature_algorithm.upper()
    if any(sha2 in algorithm for sha2 in ("SHA256", "SHA384", "SHA512")):
        score += 5
        details.append("Using secure SHA-2 signature algorithm")
    else:
        details.append("Weak signature algorithm detected")

    if snapshot.is_wildcard:
        score += 3
        details.append("Wildcard certificate supports subdomains")

    if len(snapshot.subject_alt_names) > 1:
        score += 3
        details.append(f"{len(snapshot.subject_alt_names)} domains protected")

    if not issues:
        score += 4
        details.append("No security issues detected")
    else:
        details.append(f"{len(issues)} security issue(s) found")

    return ScoreItem(
        category="Configuration & Best Practices",
        score=score,
        max_score=15,
        description="Adherence to security standards and recommendations",
        details=tuple(details),
    )


def calculate_score_breakdown(
    snapshot: CertificateSnapshot, issues: Optional[tuple[str, ...]] = None
) -> ScoreBreakdown:
    """Break the certificate down into five weighted categories (100 points total).

    issues defaults to the headline grade's issue list, which feeds the
    configuration category.
    """
    if issues is None:
        issues = calculate_security_grade(snapshot).issues

    items = (
        _protocol_item(snapshot),
        _encryption_item(snapshot),
        _trust_item(snapshot),
        _validity_item(snapshot),
        _configuration_item(snapshot, issues),
    )
    return ScoreBreakdown(
        items=items,
        total_score=sum(item.score for item in items),
        max_total_score=sum(item.max_score for item in items),
    )
