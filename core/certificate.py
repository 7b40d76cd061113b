"""
certificate.py — Builds a CertificateSnapshot from a parsed X.509 certificate.

Only reads what the certificate states; nothing here validates signatures or
trust. Missing or unrecognised attributes degrade to defaults ("Unknown",
empty tuples, 0 bits) rather than failing the analysis.
"""

from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Optional

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed448, ed25519, rsa
from cryptography.x509.oid import ExtensionOID, NameOID

from .models import CertificateSnapshot, ChainCertificate, DistinguishedName, PublicKeyInfo

# ssl.SSLSocket.version() spelling -> display spelling
_PROTOCOL_NAMES = {
    "TLSV1.3": "TLS 1.3",
    "TLSV1.2": "TLS 1.2",
    "TLSV1.1": "TLS 1.1",
    "TLSV1": "TLS 1.0",
    "TLSV1.0": "TLS 1.0",
    "SSLV3": "SSL 3.0",
    "SSLV2": "SSL 2.0",
}


def normalize_protocol(raw: Optional[str]) -> str:
    """'TLSv1.3' -> 'TLS 1.3', 'SSLv3' -> 'SSL 3.0'. Already-normalized names pass through."""
    if not raw:
        return "Unknown"
    return _PROTOCOL_NAMES.get(raw.strip().upper(), raw.strip())


def describe_public_key(cert: x509.Certificate) -> PublicKeyInfo:
    try:
        key = cert.public_key()
    except (ValueError, TypeError):
        # Unsupported key algorithm in the installed backend
        return PublicKeyInfo()

    if isinstance(key, rsa.RSAPublicKey):
        return PublicKeyInfo("RSA", key.key_size)
    if isinstance(key, ec.EllipticCurvePublicKey):
        return PublicKeyInfo("ECDSA", key.curve.key_size)
    if isinstance(key, ed25519.Ed25519PublicKey):
        return PublicKeyInfo("Ed25519", 256)
    if isinstance(key, ed448.Ed448PublicKey):
        return PublicKeyInfo("Ed448", 456)
    if isinstance(key, dsa.DSAPublicKey):
        return PublicKeyInfo("DSA", key.key_size)
    return PublicKeyInfo()


def signature_algorithm_name(cert: x509.Certificate) -> str:
    """Human-readable signature algorithm, e.g. 'sha256WithRSAEncryption' or 'ecdsa-with-SHA384'."""
    oid = cert.signature_algorithm_oid
    name = getattr(oid, "_name", "")
    if name and name != "Unknown OID":
        return name
    return oid.dotted_string


def extract_sans(cert: x509.Certificate) -> tuple[str, ...]:
    try:
        ext = cert.extensions.get_extension_for_oid(ExtensionOID.SUBJECT_ALTERNATIVE_NAME)
    except x509.ExtensionNotFound:
        return ()
    return tuple(ext.value.get_values_for_type(x509.DNSName))


def _first_attribute(name: x509.Name, oid: x509.ObjectIdentifier) -> str:
    attrs = name.get_attributes_for_oid(oid)
    if not attrs:
        return ""
    value = attrs[0].value
    return value if isinstance(value, str) else value.decode("utf-8", errors="replace")


def name_to_dn(name: x509.Name) -> DistinguishedName:
    return DistinguishedName(
        common_name=_first_attribute(name, NameOID.COMMON_NAME),
        organization=_first_attribute(name, NameOID.ORGANIZATION_NAME),
        country=_first_attribute(name, NameOID.COUNTRY_NAME),
    )


def _fingerprint(cert: x509.Certificate, algorithm: hashes.HashAlgorithm) -> str:
    return cert.fingerprint(algorithm).hex(":").upper()


def _serial(cert: x509.Certificate) -> str:
    return format(cert.serial_number, "X")


def to_chain_certificate(cert: x509.Certificate) -> ChainCertificate:
    return ChainCertificate(
        subject=cert.subject.rfc4514_string(),
        issuer=cert.issuer.rfc4514_string(),
        valid_from=cert.not_valid_before_utc,
        valid_to=cert.not_valid_after_utc,
        fingerprint_sha256=_fingerprint(cert, hashes.SHA256()),
    )


def build_snapshot(
    cert: x509.Certificate,
    domain: str,
    tls_version: Optional[str],
    cipher_suite: Optional[str],
    chain: Sequence[x509.Certificate] = (),
    checked_at: Optional[datetime] = None,
) -> CertificateSnapshot:
    """Assemble the immutable snapshot the analysis engine consumes.

    chain holds the issuer certificates above the leaf, nearest first.
    checked_at defaults to the current UTC time.
    """
    return CertificateSnapshot(
        domain=domain,
        tls_version=normalize_protocol(tls_version),
        cipher_suite=cipher_suite or "Unknown",
        signature_algorithm=signature_algorithm_name(cert),
        public_key=describe_public_key(cert),
        subject=name_to_dn(cert.subject),
        issuer=name_to_dn(cert.issuer),
        valid_from=cert.not_valid_before_utc,
        valid_to=cert.not_valid_after_utc,
        checked_at=checked_at or datetime.now(timezone.utc),
        subject_alt_names=extract_sans(cert),
        serial_number=_serial(cert),
        fingerprint_sha1=_fingerprint(cert, hashes.SHA1()),
        fingerprint_sha256=_fingerprint(cert, hashes.SHA256()),
        version=cert.version.value + 1,
        certificate_chain=tuple(to_chain_certificate(c) for c in chain),
    )
