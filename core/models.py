import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

# Canonical hostname format. A domain rule -- not an API contract.
# All layers (api/, CLI) that need to validate domains import from here.
DOMAIN_PATTERN = r"^[a-z0-9]+([\-.][a-z0-9]+)*\.[a-z]{2,}$"

SECONDS_PER_DAY = 60 * 60 * 24

# A certificate is "expiring soon" inside this window (days, exclusive).
EXPIRY_WARNING_DAYS = 30


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive scores (Python's round() is banker's rounding)."""
    return math.floor(value + 0.5)


# ---------------------------------------------------------------------------
# Closed enumerations
# ---------------------------------------------------------------------------


class Severity(str, Enum):
    critical = "critical"
    high = "high"
    medium = "medium"
    low = "low"


class Priority(str, Enum):
    critical = "critical"
    high = "high"
    medium = "medium"
    low = "low"


class Effort(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class Likelihood(str, Enum):
    very_high = "very-high"
    high = "high"
    medium = "medium"
    low = "low"
    very_low = "very-low"


class ComplianceStandard(str, Enum):
    pci_dss = "PCI DSS"
    hipaa = "HIPAA"
    gdpr = "GDPR"
    soc2 = "SOC 2"


class ComplianceStatus(str, Enum):
    compliant = "compliant"
    non_compliant = "non-compliant"
    partial = "partial"
    not_applicable = "not-applicable"


class OverallComplianceStatus(str, Enum):
    compliant = "compliant"
    non_compliant = "non-compliant"
    partial = "partial"


class RiskLevel(str, Enum):
    minimal = "minimal"
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class Grade(str, Enum):
    a_plus = "A+"
    a = "A"
    b = "B"
    c = "C"
    d = "D"
    f = "F"


# Sort rank for remediation ordering: lower sorts first.
PRIORITY_ORDER: dict[Priority, int] = {
    Priority.critical: 0,
    Priority.high: 1,
    Priority.medium: 2,
    Priority.low: 3,
}


# ---------------------------------------------------------------------------
# Certificate snapshot
# ---------------------------------------------------------------------------

# NIST SP 800-57 comparable strengths: EC field size -> RSA modulus size.
_EC_RSA_EQUIVALENT = ((512, 15360), (384, 7680), (256, 3072), (224, 2048), (160, 1024))


@dataclass(frozen=True)
class DistinguishedName:
    common_name: str = ""
    organization: str = ""
    country: str = ""


@dataclass(frozen=True)
class PublicKeyInfo:
    algorithm: str = "Unknown"
    bits: int = 0

    @property
    def effective_bits(self) -> int:
        """RSA-equivalent strength, so one 2048-bit threshold works for every key type."""
        algorithm = self.algorithm.upper()
        if algorithm == "ED25519":
            return 3072
        if algorithm == "ED448":
            return 7680
        if algorithm.startswith("EC"):
            for field_bits, rsa_bits in _EC_RSA_EQUIVALENT:
                if self.bits >= field_bits:
                    return rsa_bits
        return self.bits


@dataclass(frozen=True)
class ChainCertificate:
    subject: str
    issuer: str
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    fingerprint_sha256: str = ""


@dataclass(frozen=True)
class CertificateSnapshot:
    """Everything the analysis engine needs to know about one served certificate.

    checked_at pins "now" so every derived value (days remaining, expiry
    flags) is reproducible for a given snapshot.
    """

    domain: str
    tls_version: str
    cipher_suite: str
    signature_algorithm: str
    public_key: PublicKeyInfo
    subject: DistinguishedName
    issuer: DistinguishedName
    valid_from: datetime
    valid_to: datetime
    checked_at: datetime
    subject_alt_names: tuple[str, ...] = ()
    serial_number: str = ""
    fingerprint_sha1: str = ""
    fingerprint_sha256: str = ""
    version: int = 3
    certificate_chain: tuple[ChainCertificate, ...] = ()

    @property
    def days_remaining(self) -> int:
        seconds = (self.valid_to - self.checked_at).total_seconds()
        return math.ceil(seconds / SECONDS_PER_DAY)

    @property
    def is_expired(self) -> bool:
        return self.valid_to < self.checked_at

    @property
    def is_expiring_soon(self) -> bool:
        return not self.is_expired and self.days_remaining < EXPIRY_WARNING_DAYS

    @property
    def is_self_signed(self) -> bool:
        cn = self.subject.common_name
        return bool(cn) and cn == self.issuer.common_name

    @property
    def is_wildcard(self) -> bool:
        names = (self.subject.common_name, *self.subject_alt_names)
        return any(name.startswith("*.") for name in names)


# ---------------------------------------------------------------------------
# Vulnerabilities
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Vulnerability:
    id: str
    title: str
    description: str
    severity: Severity
    recommendation: str
    cve: Optional[str] = None


@dataclass(frozen=True)
class VulnerabilityReport:
    critical: tuple[Vulnerability, ...] = ()
    high: tuple[Vulnerability, ...] = ()
    medium: tuple[Vulnerability, ...] = ()
    low: tuple[Vulnerability, ...] = ()

    @property
    def total_vulnerabilities(self) -> int:
        return len(self.critical) + len(self.high) + len(self.medium) + len(self.low)

    def all(self) -> list[Vulnerability]:
        """Every finding, most severe first."""
        return [*self.critical, *self.high, *self.medium, *self.low]


# ---------------------------------------------------------------------------
# Compliance
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ComplianceRequirement:
    id: str
    standard: ComplianceStandard
    requirement: str
    description: str
    status: ComplianceStatus
    details: str
    reference: Optional[str] = None


@dataclass(frozen=True)
class ComplianceReport:
    standard: ComplianceStandard
    compliant_requirements: int
    total_requirements: int  # applicable requirements only
    compliance_score: int
    requirements: tuple[ComplianceRequirement, ...]
    overall_status: OverallComplianceStatus


@dataclass(frozen=True)
class ComplianceAssessment:
    reports: tuple[ComplianceReport, ...]
    overall_compliance: int
    critical_issues: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Risk
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AttackVector:
    id: str
    name: str
    likelihood: Likelihood
    impact: Severity
    description: str
    exploitability: str
    mitigation: str


@dataclass(frozen=True)
class RemediationAction:
    id: str
    priority: Priority
    title: str
    description: str
    effort: Effort
    timeframe: str
    benefit: str


@dataclass(frozen=True)
class RiskFactors:
    vulnerabilities: int
    compliance: int
    configuration: int
    exposure: int


@dataclass(frozen=True)
class BusinessImpact:
    confidentiality: RiskLevel
    integrity: RiskLevel
    availability: RiskLevel


@dataclass(frozen=True)
class RiskAssessment:
    overall_risk_score: int  # 0-100, higher is safer
    risk_level: RiskLevel
    risk_factors: RiskFactors
    business_impact: BusinessImpact
    attack_vectors: tuple[AttackVector, ...] = ()
    remediation_actions: tuple[RemediationAction, ...] = ()


# ---------------------------------------------------------------------------
# Grade
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SecurityGrade:
    grade: Grade
    score: int
    issues: tuple[str, ...] = ()


@dataclass(frozen=True)
class ScoreItem:
    category: str
    score: int
    max_score: int
    description: str
    details: tuple[str, ...] = ()


@dataclass(frozen=True)
class ScoreBreakdown:
    items: tuple[ScoreItem, ...]
    total_score: int
    max_total_score: int


# ---------------------------------------------------------------------------
# Certificate Transparency
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CTLogEntry:
    """One raw row as returned by the CT search service (crt.sh JSON)."""

    id: str = ""
    issuer_name: str = ""
    common_name: str = ""
    name_value: str = ""
    serial_number: str = ""
    not_before: str = ""
    not_after: str = ""
    entry_timestamp: str = ""

    @classmethod
    def from_dict(cls, raw: dict) -> "CTLogEntry":
        def text(key: str) -> str:
            value = raw.get(key)
            return "" if value is None else str(value)

        return cls(
            id=text("id"),
            issuer_name=text("issuer_name"),
            common_name=text("common_name"),
            name_value=text("name_value"),
            serial_number=text("serial_number"),
            not_before=text("not_before"),
            not_after=text("not_after"),
            entry_timestamp=text("entry_timestamp"),
        )


@dataclass(frozen=True)
class CTLogCertificate:
    id: str
    logged_at: datetime
    not_before: datetime
    not_after: datetime
    issuer_common_name: str
    issuer_organization: str
    common_name: str
    subject_alt_names: tuple[str, ...]
    serial_number: str
    is_current: bool
    is_expired: bool


@dataclass(frozen=True)
class RenewalPattern:
    detected: bool
    interval_days: Optional[int] = None
    is_automated: Optional[bool] = None


@dataclass(frozen=True)
class IssuerHistory:
    issuer: str
    first_seen: datetime
    last_seen: datetime
    count: int


@dataclass(frozen=True)
class CTLogStats:
    average_validity_days: int = 0
    most_recent_issuer: str = ""
    certificate_authorities: tuple[str, ...] = ()


@dataclass(frozen=True)
class CTLogData:
    domain: str
    total_certificates: int = 0
    certificates: tuple[CTLogCertificate, ...] = ()
    subdomains: tuple[str, ...] = ()
    renewal_pattern: RenewalPattern = field(default_factory=lambda: RenewalPattern(detected=False))
    issuer_history: tuple[IssuerHistory, ...] = ()
    stats: CTLogStats = field(default_factory=CTLogStats)


# ---------------------------------------------------------------------------
# Dossier
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SecurityDossier:
    domain: str
    generated_at: datetime
    certificate: CertificateSnapshot
    grade: SecurityGrade
    score_breakdown: ScoreBreakdown
    vulnerabilities: VulnerabilityReport
    compliance: ComplianceAssessment
    risk: RiskAssessment
    ct_logs: CTLogData
    ct_logs_available: bool = True
