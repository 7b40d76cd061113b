"""
fetcher.py -- All external data fetching.

Two sources: the domain's own TLS endpoint (leaf certificate plus the issuer
chain reachable through AIA "CA Issuers" links) and the crt.sh Certificate
Transparency search API. Both are free and unauthenticated.

Failure policy differs by source:
  fetch_certificate raises CertificateFetchError -- no certificate, no analysis.
  fetch_ct_logs never raises -- CT history is optional enrichment.
"""

import logging
import socket
import ssl
import time
from typing import Any, Optional

import requests
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.serialization import pkcs7
from cryptography.x509.oid import AuthorityInformationAccessOID, ExtensionOID

from .certificate import build_snapshot
from .config import get_settings
from .errors import CertificateFetchError
from .models import CertificateSnapshot, CTLogEntry

logger = logging.getLogger("certdossier.fetcher")

TLS_PORT = 443

# Module-level session shared across all fetcher calls for connection pooling.
# max_redirects=3 replaces the requests default of 30 -- AIA and crt.sh URLs
# should answer directly; 3 hops is generous and limits redirect-chain SSRF.
_session = requests.Session()
_session.max_redirects = 3


# ---------------------------------------------------------------------------
# TLS handshake
# ---------------------------------------------------------------------------


def _inspection_context() -> ssl.SSLContext:
    """Context that completes the handshake with any certificate.

    Expired, self-signed and mismatched certificates are exactly what the
    analysis needs to see, so verification is off.
    """
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


def _handshake(domain: str, timeout: float) -> tuple[bytes, Optional[str], Optional[str]]:
    """Return (leaf DER, negotiated protocol, cipher name)."""
    with socket.create_connection((domain, TLS_PORT), timeout=timeout) as sock:
        with _inspection_context().wrap_socket(sock, server_hostname=domain) as ssock:
            der = ssock.getpeercert(binary_form=True)
            cipher = ssock.cipher()
            protocol = ssock.version()
    if not der:
        raise ValueError("server presented no certificate")
    return der, protocol, cipher[0] if cipher else None


# ---------------------------------------------------------------------------
# Issuer chain (AIA walking)
# ---------------------------------------------------------------------------


def _ca_issuers_url(cert: x509.Certificate) -> Optional[str]:
    try:
        aia = cert.extensions.get_extension_for_oid(ExtensionOID.AUTHORITY_INFORMATION_ACCESS).value
    except x509.ExtensionNotFound:
        return None
    for desc in aia:
        if desc.access_method == AuthorityInformationAccessOID.CA_ISSUERS and isinstance(
            desc.access_location, x509.UniformResourceIdentifier
        ):
            return desc.access_location.value
    return None


def _parse_issuer(data: bytes) -> x509.Certificate:
    if b"-----BEGIN CERTIFICATE-----" in data:
        return x509.load_pem_x509_certificate(data)
    try:
        return x509.load_der_x509_certificate(data)
    except ValueError:
        # Some CAs publish a PKCS#7 bundle (.p7c) instead of a bare certificate.
        bundle = pkcs7.load_der_pkcs7_certificates(data)
        if not bundle:
            raise
        return bundle[0]


def _download_issuer(url: str) -> Optional[x509.Certificate]:
    settings = get_settings()
    try:
        resp = _session.get(url, timeout=settings.tls_timeout_seconds, headers={"User-Agent": settings.user_agent})
        resp.raise_for_status()
        return _parse_issuer(resp.content)
    except requests.RequestException as e:
        logger.warning("AIA fetch failed for %s: %s", url, e)
    except ValueError as e:
        logger.warning("Could not parse issuer certificate from %s: %s", url, e)
    return None


def fetch_issuer_chain(leaf: x509.Certificate, max_depth: Optional[int] = None) -> list[x509.Certificate]:
    """Follow AIA "CA Issuers" links upward from the leaf.

    Stops at max_depth certificates, at a self-issued certificate, when a
    fingerprint repeats, or at the first link that cannot be fetched. A
    partial chain is not an error.
    """
    if max_depth is None:
        max_depth = get_settings().max_chain_depth

    chain: list[x509.Certificate] = []
    seen = {leaf.fingerprint(hashes.SHA256())}
    current = leaf
    while len(chain) < max_depth:
        if current.issuer == current.subject:
            break
        url = _ca_issuers_url(current)
        if not url:
            break
        issuer = _download_issuer(url)
        if issuer is None:
            break
        fingerprint = issuer.fingerprint(hashes.SHA256())
        if fingerprint in seen:
            logger.debug("Chain loop detected at %s", url)
            break
        seen.add(fingerprint)
        chain.append(issuer)
        current = issuer
    return chain


def fetch_certificate(domain: str) -> CertificateSnapshot:
    """Handshake with domain:443 and return a snapshot of the served certificate.

    Raises CertificateFetchError on any connection, TLS or parse failure.
    """
    settings = get_settings()
    try:
        der, protocol, cipher = _handshake(domain, settings.tls_timeout_seconds)
        leaf = x509.load_der_x509_certificate(der)
    except socket.timeout as e:
        raise CertificateFetchError(domain, "connection timed out") from e
    except socket.gaierror as e:
        raise CertificateFetchError(domain, "could not resolve domain name") from e
    except ssl.SSLError as e:
        # reason is OpenSSL's short code, e.g. WRONG_VERSION_NUMBER
        raise CertificateFetchError(domain, getattr(e, "reason", None) or e.strerror or str(e)) from e
    except (OSError, ValueError) as e:
        raise CertificateFetchError(domain, str(e) or type(e).__name__) from e

    logger.info("Fetched certificate for %s (%s, %s)", domain, protocol, cipher)
    chain = fetch_issuer_chain(leaf, settings.max_chain_depth)
    return build_snapshot(leaf, domain, protocol, cipher, chain)


# ---------------------------------------------------------------------------
# Certificate Transparency (crt.sh)
# ---------------------------------------------------------------------------


def _ct_query(domain: str, include_subdomains: bool) -> dict[str, str]:
    return {"q": f"%.{domain}" if include_subdomains else domain, "output": "json"}


def _get_with_retries(url: str, params: dict[str, str]) -> Optional[requests.Response]:
    """GET with linear backoff (backoff * attempt). Returns None when every attempt fails."""
    settings = get_settings()
    attempts = settings.ct_log_attempts
    for attempt in range(1, attempts + 1):
        try:
            resp = _session.get(
                url,
                params=params,
                timeout=settings.ct_log_timeout_seconds,
                headers={"User-Agent": settings.user_agent},
            )
            resp.raise_for_status()
            return resp
        except requests.RequestException as e:
            logger.warning("CT log query attempt %d/%d failed: %s", attempt, attempts, e)
            if attempt < attempts:
                time.sleep(settings.ct_log_backoff_seconds * attempt)
    return None


def fetch_ct_logs(domain: str, include_subdomains: bool = True) -> Optional[list[CTLogEntry]]:
    """Query crt.sh for every logged certificate matching the domain.

    Returns None when the query failed (all attempts errored, or the body was
    not JSON), and an empty list when crt.sh simply has no rows. Never raises.
    """
    resp = _get_with_retries(get_settings().ct_log_url, _ct_query(domain, include_subdomains))
    if resp is None:
        logger.warning("CT logs unavailable for %s", domain)
        return None

    try:
        rows: Any = resp.json()
    except ValueError:
        logger.warning("CT log response for %s was not JSON", domain)
        return None

    if not isinstance(rows, list):
        logger.warning("Unexpected CT log payload for %s: %s", domain, type(rows).__name__)
        return None
    return [CTLogEntry.from_dict(row) for row in rows if isinstance(row, dict)]
