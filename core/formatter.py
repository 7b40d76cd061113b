"""
formatter.py — Renders SecurityDossier to terminal output, JSON or Markdown.
"""

import json
import os
import re
import sys
from dataclasses import asdict, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from .models import CertificateSnapshot, Grade, RiskLevel, SecurityDossier, Severity

W = 68  # output width

# ---------------------------------------------------------------------------
# ANSI color control
# ---------------------------------------------------------------------------

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


def strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences from a string."""
    return _ANSI_RE.sub("", text)


def _use_color() -> bool:
    """Return True if stdout is a TTY and color has not been disabled.

    Respects NO_COLOR env var (https://no-color.org) and checks sys.stdout.isatty().
    Can be overridden by calling disable_color().
    """
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("FORCE_COLOR"):
        return True
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


_color_enabled: Optional[bool] = None  # None = auto-detect


def disable_color() -> None:
    """Force-disable color output (called when --no-color flag is set)."""
    global _color_enabled
    _color_enabled = False


def _color_active() -> bool:
    if _color_enabled is not None:
        return _color_enabled
    return _use_color()


# ---------------------------------------------------------------------------
# ANSI code helpers — return empty string when color is off
# ---------------------------------------------------------------------------

_RED = "\033[91m"
_YELLOW = "\033[93m"
_BLUE = "\033[94m"
_GREEN = "\033[92m"

GRADE_COLORS = {
    Grade.a_plus: _GREEN,
    Grade.a: _GREEN,
    Grade.b: _BLUE,
    Grade.c: _YELLOW,
    Grade.d: _YELLOW,
    Grade.f: _RED,
}

SEVERITY_COLORS = {
    Severity.critical: _RED,
    Severity.high: _RED,
    Severity.medium: _YELLOW,
    Severity.low: _BLUE,
}

RISK_COLORS = {
    RiskLevel.minimal: _GREEN,
    RiskLevel.low: _GREEN,
    RiskLevel.medium: _YELLOW,
    RiskLevel.high: _RED,
    RiskLevel.critical: _RED,
}


def _reset() -> str:
    return "\033[0m" if _color_active() else ""


def _bold() -> str:
    return "\033[1m" if _color_active() else ""


def _dim() -> str:
    return "\033[2m" if _color_active() else ""


def _color(code: str) -> str:
    return code if _color_active() else ""


# ---------------------------------------------------------------------------
# Layout helpers
# ---------------------------------------------------------------------------


def _bar(char: str = "═") -> str:
    return char * W


def _section(title: str) -> str:
    bold = _bold()
    reset = _reset()
    return f"\n  {bold}{title}{reset}\n  {'─' * (W - 2)}"


def _wrap(text: str, indent: int = 4, width: int = W) -> str:
    """Simple word-wrap at `width` chars with leading indent."""
    words = text.split()
    lines = []
    line = " " * indent
    for word in words:
        if len(line) + len(word) + 1 > width:
            lines.append(line)
            line = " " * indent + word
        else:
            line += ("" if line.strip() == "" else " ") + word
    if line.strip():
        lines.append(line)
    return "\n".join(lines)


def _date(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d") if value else "-"


def _expiry_text(cert: CertificateSnapshot) -> str:
    days = cert.days_remaining
    if cert.is_expired:
        return f"{_color(_RED)}EXPIRED {abs(days)} days ago{_reset()}"
    if cert.is_expiring_soon:
        return f"{_color(_YELLOW)}{days} days remaining{_reset()}"
    return f"{days} days remaining"


# ---------------------------------------------------------------------------
# Terminal renderer
# ---------------------------------------------------------------------------


def print_terminal(dossier: SecurityDossier) -> None:
    bold = _bold()
    reset = _reset()
    cert = dossier.certificate
    grade = dossier.grade
    g_color = _color(GRADE_COLORS[grade.grade])

    # -- Header ---------------------------------------------------------------
    print(f"\n{bold}{_bar()}{reset}")
    print(f"  {bold}{dossier.domain}{reset}  │  Grade {g_color}{bold}{grade.grade.value}{reset} ({grade.score}/100)")
    print(f"{bold}{_bar()}{reset}")

    if grade.issues:
        for issue in grade.issues:
            print(f"    • {issue}")
    else:
        print("    No grading issues found.")

    # -- Certificate ----------------------------------------------------------
    print(_section("CERTIFICATE"))
    key = cert.public_key
    key_text = f"{key.algorithm} ({key.bits} bits)" if key.bits else key.algorithm
    for label, val in [
        ("Subject", cert.subject.common_name or "-"),
        ("Issuer", cert.issuer.organization or cert.issuer.common_name or "-"),
        ("Valid from", _date(cert.valid_from)),
        ("Valid until", f"{_date(cert.valid_to)}  ({_expiry_text(cert)})"),
        ("Protocol", cert.tls_version),
        ("Cipher", cert.cipher_suite),
        ("Key", key_text),
        ("Signature", cert.signature_algorithm),
        ("Serial", cert.serial_number or "-"),
        ("SHA-256", cert.fingerprint_sha256 or "-"),
    ]:
        print(f"    {label:<14} {val}")
    if cert.subject_alt_names:
        print(f"    {'SANs':<14} {len(cert.subject_alt_names)} name(s)")
        for san in cert.subject_alt_names[:8]:
            print(f"      • {san}")
    if cert.is_self_signed:
        print(f"    {_color(_RED)}{bold}Self-signed certificate{reset}")

    # -- Trust chain ----------------------------------------------------------
    if cert.certificate_chain:
        print(_section("TRUST CHAIN"))
        for depth, link in enumerate(cert.certificate_chain, 1):
            print(_wrap(f"{depth}. {link.subject}", indent=4))

    # -- Score breakdown ------------------------------------------------------
    breakdown = dossier.score_breakdown
    print(_section(f"SCORE BREAKDOWN — {breakdown.total_score}/{breakdown.max_total_score}"))
    for item in breakdown.items:
        print(f"    {item.category:<34} {item.score:>3}/{item.max_score}")
        dim = _dim()
        for detail in item.details:
            print(f"      {dim}{detail}{reset}")

    # -- Vulnerabilities ------------------------------------------------------
    vulns = dossier.vulnerabilities
    print(_section(f"VULNERABILITIES — {vulns.total_vulnerabilities} found"))
    if not vulns.total_vulnerabilities:
        print("    None detected.")
    for vuln in vulns.all():
        s_color = _color(SEVERITY_COLORS[vuln.severity])
        print(f"\n    {s_color}{bold}[{vuln.severity.value.upper():<8}]{reset} {bold}{vuln.title}{reset}")
        print(_wrap(vuln.description, indent=8))
        print(_wrap(f"Fix: {vuln.recommendation}", indent=8))

    # -- Compliance -----------------------------------------------------------
    compliance = dossier.compliance
    print(_section(f"COMPLIANCE — {compliance.overall_compliance}% overall"))
    for report in compliance.reports:
        print(
            f"    {report.standard.value:<10} {report.compliance_score:>3}%  "
            f"{report.overall_status.value:<14} "
            f"({report.compliant_requirements}/{report.total_requirements} requirements)"
        )
    for issue in compliance.critical_issues:
        print(f"      {_color(_RED)}✗{reset} {issue}")

    # -- Risk -----------------------------------------------------------------
    risk = dossier.risk
    r_color = _color(RISK_COLORS[risk.risk_level])
    print(_section("RISK ASSESSMENT"))
    print(f"    Overall        {risk.overall_risk_score}/100  {r_color}{bold}{risk.risk_level.value.upper()}{reset} risk")
    factors = risk.risk_factors
    for label, val in [
        ("Vulnerabilities", factors.vulnerabilities),
        ("Compliance", factors.compliance),
        ("Configuration", factors.configuration),
        ("Exposure", factors.exposure),
    ]:
        print(f"    {label:<18} {val:>3}")
    impact = risk.business_impact
    print(
        f"    Impact         C:{impact.confidentiality.value}  I:{impact.integrity.value}  "
        f"A:{impact.availability.value}"
    )

    if risk.remediation_actions:
        print(_section("WHAT DO I DO?"))
        for i, action in enumerate(risk.remediation_actions, 1):
            tag = f"[{action.priority.value.upper():<8}]"
            print(f"\n    {i}. {bold}{tag}{reset} {action.title}")
            print(_wrap(f"{action.description} (effort: {action.effort.value}, {action.timeframe})", indent=8))

    # -- Certificate Transparency ---------------------------------------------
    print(_section("CERTIFICATE TRANSPARENCY"))
    ct = dossier.ct_logs
    if not dossier.ct_logs_available:
        print(f"    {_dim()}CT log history unavailable.{reset}")
    elif not ct.total_certificates:
        print("    No logged certificates found.")
    else:
        print(f"    Certificates logged   {ct.total_certificates}")
        print(f"    Average validity      {ct.stats.average_validity_days} days")
        print(f"    Most recent issuer    {ct.stats.most_recent_issuer or '-'}")
        pattern = ct.renewal_pattern
        if pattern.detected:
            auto = " (automated)" if pattern.is_automated else ""
            print(f"    Renewal cadence       every ~{pattern.interval_days} days{auto}")
        else:
            print("    Renewal cadence       no regular pattern")
        if ct.subdomains:
            print(f"    Subdomains            {len(ct.subdomains)}")
            for sub in ct.subdomains[:10]:
                print(f"      • {sub}")
            if len(ct.subdomains) > 10:
                print(f"      … and {len(ct.subdomains) - 10} more")

    print(f"\n{_bar()}\n")


# ---------------------------------------------------------------------------
# Summary table renderer
# ---------------------------------------------------------------------------


def print_summary(dossiers: list[SecurityDossier]) -> None:
    """Print a one-line-per-domain summary, worst grade first."""
    bold = _bold()
    reset = _reset()

    ranked = sorted(dossiers, key=lambda d: d.grade.score)

    print(f"\n{bold}{_bar()}{reset}")
    print(f"  {bold}SUMMARY — {len(dossiers)} domains analysed{reset}")
    print(f"{bold}{_bar()}{reset}")
    print(f"  {'Domain':<30} {'Grade':<6} {'Risk':<9} {'Vulns':>5} {'Expires':>8}")
    print(f"  {'─' * (W - 2)}")
    for d in ranked:
        g_color = _color(GRADE_COLORS[d.grade.grade])
        grade = f"{d.grade.grade.value:<6}"
        print(
            f"  {d.domain[:30]:<30} {g_color}{bold}{grade}{reset} {d.risk.risk_level.value:<9} "
            f"{d.vulnerabilities.total_vulnerabilities:>5} {d.certificate.days_remaining:>7}d"
        )
    print(f"\n{_bar()}\n")


# ---------------------------------------------------------------------------
# JSON export
# ---------------------------------------------------------------------------


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def snapshot_to_dict(cert: CertificateSnapshot) -> dict[str, Any]:
    """Snapshot fields plus the derived expiry/trust flags, JSON-ready."""
    d = _jsonable(asdict(cert))
    d.update(
        days_remaining=cert.days_remaining,
        is_expired=cert.is_expired,
        is_expiring_soon=cert.is_expiring_soon,
        is_self_signed=cert.is_self_signed,
        is_wildcard=cert.is_wildcard,
    )
    return d


def to_dict(obj: Any) -> Any:
    """Convert any result dataclass to plain JSON types (enums by value, datetimes ISO 8601)."""
    if isinstance(obj, SecurityDossier):
        d = _jsonable(asdict(obj))
        d["certificate"] = snapshot_to_dict(obj.certificate)
        d["vulnerabilities"]["total_vulnerabilities"] = obj.vulnerabilities.total_vulnerabilities
        return d
    if isinstance(obj, CertificateSnapshot):
        return snapshot_to_dict(obj)
    if is_dataclass(obj):
        return _jsonable(asdict(obj))
    return _jsonable(obj)


def to_json(dossier: SecurityDossier) -> str:
    return json.dumps(to_dict(dossier), indent=2)


# ---------------------------------------------------------------------------
# Markdown export
# ---------------------------------------------------------------------------


def to_markdown(results: list) -> str:
    """Render a list of SecurityDossier as a Markdown summary table.

    Suitable for Slack, GitHub issues, and documentation.
    """
    header = "| Domain | Grade | Score | Risk | Vulns | Compliance | Expires | Issuer |"
    separator = "|--------|-------|-------|------|-------|------------|---------|--------|"
    lines = [header, separator]

    for r in results:
        cert = r.certificate
        expires = "expired" if cert.is_expired else f"{cert.days_remaining}d"
        # Escape pipe characters in any free-text field to avoid breaking table layout.
        domain = r.domain.replace("|", "\\|")
        issuer = (cert.issuer.organization or cert.issuer.common_name or "-").replace("|", "\\|")
        lines.append(
            f"| {domain} | {r.grade.grade.value} | {r.grade.score} | {r.risk.risk_level.value} | "
            f"{r.vulnerabilities.total_vulnerabilities} | {r.compliance.overall_compliance}% | {expires} | {issuer} |"
        )

    return "\n".join(lines) + "\n"
