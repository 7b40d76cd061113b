"""
vulnerabilities.py — Maps static certificate and handshake attributes to a
catalog of known TLS weaknesses.

Every signature is evaluated independently; several may fire for one
certificate. Severity is fixed per signature, never computed.
"""

from dataclasses import dataclass
from typing import Callable

from .models import CertificateSnapshot, Severity, Vulnerability, VulnerabilityReport

# ---------------------------------------------------------------------------
# Match helpers: case-insensitive, empty input never matches
# ---------------------------------------------------------------------------

_TRIPLE_DES_MARKERS = ("3DES", "DES-CBC3", "DES_EDE")
_ANON_MARKERS = ("ANON", "ADH", "AECDH")
_SHA1_MARKERS = ("SHA1", "SHA-1")


def _protocol_is(*versions: str) -> Callable[[CertificateSnapshot], bool]:
    wanted = {v.upper() for v in versions}
    return lambda s: s.tls_version.strip().upper() in wanted


def _cipher_has(*markers: str) -> Callable[[CertificateSnapshot], bool]:
    return lambda s: any(m in s.cipher_suite.upper() for m in markers)


def _is_triple_des(s: CertificateSnapshot) -> bool:
    return any(m in s.cipher_suite.upper() for m in _TRIPLE_DES_MARKERS)


def _is_single_des(s: CertificateSnapshot) -> bool:
    return "DES" in s.cipher_suite.upper() and not _is_triple_des(s)


def _signature_has(*markers: str) -> Callable[[CertificateSnapshot], bool]:
    return lambda s: any(m in s.signature_algorithm.upper() for m in markers)


def _key_between(low: int, high: int) -> Callable[[CertificateSnapshot], bool]:
    # 0 bits means the key size is unknown, which is not evidence of a weak key.
    return lambda s: s.public_key.bits > 0 and low <= s.public_key.effective_bits < high


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VulnerabilitySignature:
    vulnerability: Vulnerability
    matches: Callable[[CertificateSnapshot], bool]


CATALOG: tuple[VulnerabilitySignature, ...] = (
    # -- Protocol ------------------------------------------------------------
    VulnerabilitySignature(
        Vulnerability(
            id="CVE-2016-0800",
            title="SSL 2.0 Enabled (DROWN)",
            description="SSL 2.0 is fundamentally broken. Its use allows complete protocol compromise "
            "and lets attackers decrypt even TLS sessions that share the same key.",
            severity=Severity.critical,
            recommendation="Disable SSL 2.0 on every service that shares this key. Serve TLS 1.2 or TLS 1.3 only.",
            cve="CVE-2016-0800",
        ),
        _protocol_is("SSL 2.0"),
    ),
    VulnerabilitySignature(
        Vulnerability(
            id="CVE-2014-3566",
            title="SSL 3.0 Enabled (POODLE)",
            description="SSL 3.0 uses CBC padding that cannot be authenticated, allowing complete "
            "protocol compromise through padding-oracle attacks.",
            severity=Severity.critical,
            recommendation="Disable SSL 3.0. Serve TLS 1.2 or TLS 1.3 only.",
            cve="CVE-2014-3566",
        ),
        _protocol_is("SSL 3.0"),
    ),
    VulnerabilitySignature(
        Vulnerability(
            id="CVE-2011-3389",
            title="TLS 1.0 in Use (BEAST)",
            description="TLS 1.0 is exposed to the BEAST chosen-plaintext attack and to protocol "
            "downgrade attacks. It was formally deprecated by RFC 8996.",
            severity=Severity.high,
            recommendation="Disable TLS 1.0 and negotiate TLS 1.2 or TLS 1.3.",
            cve="CVE-2011-3389",
        ),
        _protocol_is("TLS 1.0"),
    ),
    VulnerabilitySignature(
        Vulnerability(
            id="TLS11-DEPRECATED",
            title="Deprecated TLS 1.1 in Use",
            description="TLS 1.1 is deprecated (RFC 8996) and lacks AEAD cipher suites. Modern browsers refuse it.",
            severity=Severity.medium,
            recommendation="Disable TLS 1.1 and negotiate TLS 1.2 or TLS 1.3.",
        ),
        _protocol_is("TLS 1.1"),
    ),
    # -- Cipher suite --------------------------------------------------------
    VulnerabilitySignature(
        Vulnerability(
            id="NULL-CIPHER",
            title="NULL Cipher Negotiated",
            description="The negotiated cipher suite performs no encryption. Traffic is readable by anyone on the path.",
            severity=Severity.critical,
            recommendation="Remove all NULL cipher suites from the server configuration.",
        ),
        _cipher_has("NULL"),
    ),
    VulnerabilitySignature(
        Vulnerability(
            id="ANON-KEY-EXCHANGE",
            title="Anonymous Key Exchange",
            description="The cipher suite uses unauthenticated (anonymous) Diffie-Hellman, which allows "
            "trivial man-in-the-middle attacks.",
            severity=Severity.critical,
            recommendation="Remove anonymous (ADH/AECDH) cipher suites from the server configuration.",
        ),
        _cipher_has(*_ANON_MARKERS),
    ),
    VulnerabilitySignature(
        Vulnerability(
            id="CVE-2015-0204",
            title="Export-Grade Cipher (FREAK)",
            description="Export-grade cipher suites use deliberately weakened keys that can be factored "
            "in hours, exposing the session to decryption.",
            severity=Severity.critical,
            recommendation="Remove all EXPORT cipher suites from the server configuration.",
            cve="CVE-2015-0204",
        ),
        _cipher_has("EXPORT"),
    ),
    VulnerabilitySignature(
        Vulnerability(
            id="CVE-2015-2808",
            title="RC4 Cipher in Use (Bar Mitzvah)",
            description="RC4 keystream biases allow plaintext recovery from long-lived or repeated traffic.",
            severity=Severity.high,
            recommendation="Disable RC4 and prefer AES-GCM or ChaCha20-Poly1305 cipher suites.",
            cve="CVE-2015-2808",
        ),
        _cipher_has("RC4"),
    ),
    VulnerabilitySignature(
        Vulnerability(
            id="CVE-2016-2183",
            title="Triple-DES Cipher in Use (SWEET32)",
            description="3DES has a 64-bit block size. Birthday attacks recover plaintext from long sessions.",
            severity=Severity.high,
            recommendation="Disable 3DES cipher suites and prefer AES-GCM or ChaCha20-Poly1305.",
            cve="CVE-2016-2183",
        ),
        _is_triple_des,
    ),
    VulnerabilitySignature(
        Vulnerability(
            id="WEAK-DES-CIPHER",
            title="Single DES Cipher in Use",
            description="Single DES uses a 56-bit key that can be brute-forced with commodity hardware.",
            severity=Severity.high,
            recommendation="Disable DES cipher suites and prefer AES-GCM or ChaCha20-Poly1305.",
        ),
        _is_single_des,
    ),
    # -- Signature -----------------------------------------------------------
    VulnerabilitySignature(
        Vulnerability(
            id="CVE-2004-2761",
            title="MD5 Signature Algorithm",
            description="MD5 is vulnerable to practical collision attacks. Forged certificates with MD5 "
            "signatures have been demonstrated against real CAs.",
            severity=Severity.critical,
            recommendation="Reissue the certificate with a SHA-256 (or stronger) signature.",
            cve="CVE-2004-2761",
        ),
        _signature_has("MD5"),
    ),
    VulnerabilitySignature(
        Vulnerability(
            id="SHA1-SIGNATURE",
            title="SHA-1 Signature Algorithm",
            description="SHA-1 collisions are practical (SHAttered). Browsers no longer trust SHA-1 signed certificates.",
            severity=Severity.high,
            recommendation="Reissue the certificate with a SHA-256 (or stronger) signature.",
        ),
        _signature_has(*_SHA1_MARKERS),
    ),
    # -- Key size ------------------------------------------------------------
    VulnerabilitySignature(
        Vulnerability(
            id="WEAK-KEY-CRITICAL",
            title="Critically Short Public Key",
            description="The public key is shorter than 1024 bits (RSA-equivalent) and can be factored with modest resources.",
            severity=Severity.critical,
            recommendation="Generate a new key pair of at least 2048-bit RSA or P-256 ECDSA and reissue the certificate.",
        ),
        _key_between(1, 1024),
    ),
    VulnerabilitySignature(
        Vulnerability(
            id="WEAK-KEY-HIGH",
            title="Short Public Key",
            description="The public key is below the 2048-bit (RSA-equivalent) industry minimum.",
            severity=Severity.high,
            recommendation="Generate a new key pair of at least 2048-bit RSA or P-256 ECDSA and reissue the certificate.",
        ),
        _key_between(1024, 2048),
    ),
)


def check_vulnerabilities(snapshot: CertificateSnapshot) -> VulnerabilityReport:
    """Evaluate every catalog signature and bucket the findings by severity."""
    buckets: dict[Severity, list[Vulnerability]] = {severity: [] for severity in Severity}
    for signature in CATALOG:
        if signature.matches(snapshot):
            buckets[signature.vulnerability.severity].append(signature.vulnerability)

    return VulnerabilityReport(
        critical=tuple(buckets[Severity.critical]),
        high=tuple(buckets[Severity.high]),
        medium=tuple(buckets[Severity.medium]),
        low=tuple(buckets[Severity.low]),
    )
