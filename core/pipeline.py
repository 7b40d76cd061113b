"""
core/pipeline.py — Domain fetch-and-analyze pipeline.

No print statements. Designed to be called by both the CLI (via main.py)
and the REST API (via api/routes/v1/certificate.py).
"""

import logging
import re
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Optional

from core.compliance import perform_compliance_check
from core.config import get_settings
from core.ctlogs import aggregate_ct_logs, empty_ct_log_data
from core.fetcher import fetch_certificate, fetch_ct_logs
from core.grading import calculate_score_breakdown, calculate_security_grade
from core.models import DOMAIN_PATTERN, CertificateSnapshot, CTLogEntry, SecurityDossier
from core.risk import perform_risk_assessment
from core.vulnerabilities import check_vulnerabilities

logger = logging.getLogger("certdossier.pipeline")

_DOMAIN_RE = re.compile(DOMAIN_PATTERN)
_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.\-]*://", re.IGNORECASE)


def normalize_domain(raw: str) -> str:
    """Reduce user input (URL, host:port, trailing dot) to a bare lowercase hostname.

    Raises ValueError if the result is not a valid domain name.
    """
    domain = (raw or "").strip()
    if not domain:
        raise ValueError("Domain is required")
    domain = _SCHEME_RE.sub("", domain)
    domain = domain.split("/", 1)[0]
    domain = domain.split(":", 1)[0]
    domain = domain.rstrip(".").lower()

    if not _DOMAIN_RE.match(domain):
        raise ValueError(f"Invalid domain format: {raw.strip()}")
    return domain


def dedupe_domains(raw_domains: Iterable[str]) -> list[str]:
    """Case-insensitive dedupe preserving first-occurrence order. Input is not validated."""
    seen: set[str] = set()
    result: list[str] = []
    for raw in raw_domains:
        key = raw.strip().lower()
        if key and key not in seen:
            seen.add(key)
            result.append(raw.strip())
    return result


def build_dossier(
    snapshot: CertificateSnapshot,
    ct_entries: Optional[list[CTLogEntry]],
    now: Optional[datetime] = None,
    ct_limit: int = 100,
) -> SecurityDossier:
    """Run every analysis over an already-fetched certificate and CT rows.

    Pure: no I/O. ct_entries=None means the CT query failed; the dossier then
    carries an empty CT result and ct_logs_available=False.
    """
    now = now or snapshot.checked_at

    if ct_entries is None:
        ct_logs = empty_ct_log_data(snapshot.domain)
    else:
        ct_logs = aggregate_ct_logs(ct_entries, snapshot.domain, now=now, limit=ct_limit)

    grade = calculate_security_grade(snapshot)
    vulnerabilities = check_vulnerabilities(snapshot)
    compliance = perform_compliance_check(snapshot)
    risk = perform_risk_assessment(vulnerabilities, compliance, snapshot, len(ct_logs.subdomains))

    return SecurityDossier(
        domain=snapshot.domain,
        generated_at=now,
        certificate=snapshot,
        grade=grade,
        score_breakdown=calculate_score_breakdown(snapshot, grade.issues),
        vulnerabilities=vulnerabilities,
        compliance=compliance,
        risk=risk,
        ct_logs=ct_logs,
        ct_logs_available=ct_entries is not None,
    )


def analyze_domain(raw_domain: str, include_ct: bool = True) -> SecurityDossier:
    """Fetch the certificate and CT history for a domain and build its dossier.

    The two fetches run concurrently. Raises ValueError for malformed input
    and CertificateFetchError when the certificate cannot be retrieved. CT
    failures only mark the dossier's CT section unavailable.
    """
    domain = normalize_domain(raw_domain)
    settings = get_settings()

    pool = ThreadPoolExecutor(max_workers=2)
    cert_future = pool.submit(fetch_certificate, domain)
    ct_future = pool.submit(fetch_ct_logs, domain) if include_ct else None
    try:
        snapshot = cert_future.result()
    except Exception:
        # A failed certificate fetch is fatal; do not wait out the CT retries.
        pool.shutdown(wait=False, cancel_futures=True)
        raise
    ct_entries = ct_future.result() if ct_future is not None else None
    pool.shutdown()

    if include_ct and ct_entries is None:
        logger.info("Building dossier for %s without CT history", domain)

    return build_dossier(snapshot, ct_entries, ct_limit=settings.ct_log_max_certificates)
