"""
ctlogs.py — Turns raw Certificate Transparency log rows into issuance history.

Pure data processing: deduplication, subdomain discovery, issuer history,
validity statistics and renewal-cadence detection. Works only on rows that
have already been fetched; see fetcher.fetch_ct_logs for retrieval.
"""

import logging
import re
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Optional

from .models import (
    SECONDS_PER_DAY,
    CTLogCertificate,
    CTLogData,
    CTLogEntry,
    CTLogStats,
    IssuerHistory,
    RenewalPattern,
    round_half_up,
)

logger = logging.getLogger("certdossier.ctlogs")

DEFAULT_LIMIT = 100

# Renewal detection
MIN_CERTIFICATES_FOR_PATTERN = 3
MAX_RENEWAL_GAPS = 10
MIN_RENEWAL_INTERVAL_DAYS = 30
MAX_GAP_DEVIATION_DAYS = 10
# A steady ~90-day cadence is the signature of ACME clients (e.g. Let's Encrypt).
AUTOMATED_INTERVAL_DAYS = (85, 95)

_CN_RE = re.compile(r"CN=([^,]+)")
_O_RE = re.compile(r"O=([^,]+)")
# Fractional seconds after hh:mm:ss; crt.sh emits anywhere from 1 to 7 digits.
_FRACTION_RE = re.compile(r"(?<=:\d\d)\.(\d+)")


def extract_cn(distinguished_name: str) -> str:
    match = _CN_RE.search(distinguished_name)
    return match.group(1).strip() if match else distinguished_name


def extract_o(distinguished_name: str) -> str:
    match = _O_RE.search(distinguished_name)
    return match.group(1).strip() if match else ""


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp. Naive values are treated as UTC. Returns None when unparseable."""
    if not value:
        return None
    try:
        text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value.strip())
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def whole_days(later: datetime, earlier: datetime) -> int:
    """Full days between two instants, truncated toward zero."""
    return int((later - earlier).total_seconds() / SECONDS_PER_DAY)


def empty_ct_log_data(domain: str) -> CTLogData:
    """The zero-value result used whenever CT data is unavailable."""
    return CTLogData(domain=domain)


# ---------------------------------------------------------------------------
# Per-entry processing
# ---------------------------------------------------------------------------


def _dedupe_key(entry: CTLogEntry) -> str:
    return entry.serial_number or f"id:{entry.id}"


def _to_certificate(entry: CTLogEntry, now: datetime) -> Optional[CTLogCertificate]:
    not_before = parse_timestamp(entry.not_before)
    not_after = parse_timestamp(entry.not_after)
    if not_before is None or not_after is None:
        logger.warning("Skipping CT entry %s: unparseable validity dates", entry.id or entry.serial_number)
        return None

    logged_at = parse_timestamp(entry.entry_timestamp) or not_before
    sans = tuple(line.strip() for line in entry.name_value.split("\n") if line.strip())
    if not sans and entry.common_name:
        sans = (entry.common_name,)

    return CTLogCertificate(
        id=entry.id,
        logged_at=logged_at,
        not_before=not_before,
        not_after=not_after,
        issuer_common_name=extract_cn(entry.issuer_name),
        issuer_organization=extract_o(entry.issuer_name),
        common_name=entry.common_name,
        subject_alt_names=sans,
        serial_number=entry.serial_number,
        is_current=not_before <= now <= not_after,
        is_expired=not_after < now,
    )


# ---------------------------------------------------------------------------
# Aggregations
# ---------------------------------------------------------------------------


def collect_subdomains(certificates: Iterable[CTLogCertificate], domain: str) -> tuple[str, ...]:
    domain = domain.lower()
    found: set[str] = set()
    for cert in certificates:
        for san in cert.subject_alt_names:
            name = san.lower()
            if domain in name and name != domain and not name.startswith("*"):
                found.add(name)
    return tuple(sorted(found))


def build_issuer_history(certificates: Iterable[CTLogCertificate]) -> tuple[IssuerHistory, ...]:
    grouped: dict[str, tuple[datetime, datetime, int]] = {}
    for cert in certificates:
        issuer = cert.issuer_common_name
        if issuer in grouped:
            first, last, count = grouped[issuer]
            grouped[issuer] = (min(first, cert.logged_at), max(last, cert.logged_at), count + 1)
        else:
            grouped[issuer] = (cert.logged_at, cert.logged_at, 1)

    history = [
        IssuerHistory(issuer=issuer, first_seen=first, last_seen=last, count=count)
        for issuer, (first, last, count) in grouped.items()
    ]
    history.sort(key=lambda h: h.last_seen, reverse=True)
    return tuple(history)


def average_validity_days(certificates: list[CTLogCertificate]) -> int:
    if not certificates:
        return 0
    spans = [whole_days(c.not_after, c.not_before) for c in certificates]
    return round_half_up(sum(spans) / len(spans))


def detect_renewal_pattern(certificates: list[CTLogCertificate]) -> RenewalPattern:
    """Detect a regular issuance cadence from certificates sorted newest first.

    Gaps are measured between up to ten most-recent consecutive pairs. A
    pattern exists when the average gap exceeds 30 days and no gap deviates
    from that average by 10 days or more.
    """
    if len(certificates) < MIN_CERTIFICATES_FOR_PATTERN:
        return RenewalPattern(detected=False)

    recent = certificates[: MAX_RENEWAL_GAPS + 1]
    gaps = [abs(whole_days(newer.logged_at, older.logged_at)) for newer, older in zip(recent, recent[1:])]
    if not gaps:
        return RenewalPattern(detected=False)

    average = round_half_up(sum(gaps) / len(gaps))
    consistent = all(abs(gap - average) < MAX_GAP_DEVIATION_DAYS for gap in gaps)

    if consistent and average > MIN_RENEWAL_INTERVAL_DAYS:
        low, high = AUTOMATED_INTERVAL_DAYS
        return RenewalPattern(detected=True, interval_days=average, is_automated=low <= average <= high)
    return RenewalPattern(detected=False)


def aggregate_ct_logs(
    entries: Iterable[CTLogEntry],
    domain: str,
    now: Optional[datetime] = None,
    limit: int = DEFAULT_LIMIT,
) -> CTLogData:
    """Build the CT history for a domain from raw log rows.

    Rows are deduplicated by serial number (first occurrence wins) and sorted
    newest first by log timestamp. total_certificates counts every unique
    certificate; the certificates list itself is capped at `limit`.
    """
    now = now or datetime.now(timezone.utc)

    seen: set[str] = set()
    certificates: list[CTLogCertificate] = []
    for entry in entries:
        key = _dedupe_key(entry)
        if key in seen:
            continue
        seen.add(key)
        cert = _to_certificate(entry, now)
        if cert is not None:
            certificates.append(cert)

    if not certificates:
        return empty_ct_log_data(domain)

    certificates.sort(key=lambda c: c.logged_at, reverse=True)

    authorities = tuple(dict.fromkeys(c.issuer_common_name for c in certificates))
    stats = CTLogStats(
        average_validity_days=average_validity_days(certificates),
        most_recent_issuer=certificates[0].issuer_common_name,
        certificate_authorities=authorities,
    )

    return CTLogData(
        domain=domain,
        total_certificates=len(certificates),
        certificates=tuple(certificates[:limit]),
        subdomains=collect_subdomains(certificates, domain),
        renewal_pattern=detect_renewal_pattern(certificates),
        issuer_history=build_issuer_history(certificates),
        stats=stats,
    )
