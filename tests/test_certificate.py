"""Unit tests for core/certificate.py — X.509 to CertificateSnapshot.

Certificates are generated in-process with cryptography, so no network or
fixture files are needed.
"""

from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa
from cryptography.x509.oid import NameOID

from core.certificate import (
    build_snapshot,
    describe_public_key,
    extract_sans,
    name_to_dn,
    normalize_protocol,
    signature_algorithm_name,
    to_chain_certificate,
)

NOT_BEFORE = datetime(2024, 4, 1, tzinfo=timezone.utc)
NOT_AFTER = datetime(2024, 6, 30, tzinfo=timezone.utc)
CHECKED_AT = datetime(2024, 6, 1, tzinfo=timezone.utc)


def _name(cn, org=None, country=None):
    attrs = []
    if country:
        attrs.append(x509.NameAttribute(NameOID.COUNTRY_NAME, country))
    if org:
        attrs.append(x509.NameAttribute(NameOID.ORGANIZATION_NAME, org))
    attrs.append(x509.NameAttribute(NameOID.COMMON_NAME, cn))
    return x509.Name(attrs)


def _make_cert(key, subject, issuer=None, sans=(), signing_key=None, algorithm=hashes.SHA256(), serial=0x03A1B2):
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer or subject)
        .public_key(key.public_key())
        .serial_number(serial)
        .not_valid_before(NOT_BEFORE)
        .not_valid_after(NOT_AFTER)
    )
    if sans:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.DNSName(s) for s in sans]),
            critical=False,
        )
    return builder.sign(signing_key or key, algorithm)


@pytest.fixture(scope="module")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="module")
def ca_cert(rsa_key):
    return _make_cert(rsa_key, _name("Test Root CA", "Test CA Inc", "US"))


@pytest.fixture(scope="module")
def leaf_cert(rsa_key):
    leaf_key = ec.generate_private_key(ec.SECP256R1())
    return _make_cert(
        leaf_key,
        _name("example.com"),
        issuer=_name("Test Root CA", "Test CA Inc", "US"),
        sans=("example.com", "www.example.com"),
        signing_key=rsa_key,
    )


class TestNormalizeProtocol:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("TLSv1.3", "TLS 1.3"),
            ("TLSv1.2", "TLS 1.2"),
            ("TLSv1.1", "TLS 1.1"),
            ("TLSv1", "TLS 1.0"),
            ("SSLv3", "SSL 3.0"),
            ("TLS 1.2", "TLS 1.2"),
            (None, "Unknown"),
            ("", "Unknown"),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_protocol(raw) == expected


class TestPublicKey:
    def test_rsa(self, ca_cert):
        info = describe_public_key(ca_cert)
        assert (info.algorithm, info.bits) == ("RSA", 2048)

    def test_ecdsa_reports_curve_size(self, leaf_cert):
        info = describe_public_key(leaf_cert)
        assert (info.algorithm, info.bits) == ("ECDSA", 256)
        assert info.effective_bits == 3072

    def test_ed25519(self):
        key = ed25519.Ed25519PrivateKey.generate()
        cert = _make_cert(key, _name("ed.example.com"), algorithm=None)
        info = describe_public_key(cert)
        assert (info.algorithm, info.bits) == ("Ed25519", 256)


class TestFields:
    def test_signature_algorithm_name(self, leaf_cert, ca_cert):
        assert signature_algorithm_name(leaf_cert) == "sha256WithRSAEncryption"
        ec_key = ec.generate_private_key(ec.SECP384R1())
        ec_cert = _make_cert(ec_key, _name("ec.example.com"), algorithm=hashes.SHA384())
        assert signature_algorithm_name(ec_cert) == "ecdsa-with-SHA384"

    def test_sans(self, leaf_cert, ca_cert):
        assert extract_sans(leaf_cert) == ("example.com", "www.example.com")
        assert extract_sans(ca_cert) == ()

    def test_name_to_dn(self, ca_cert):
        dn = name_to_dn(ca_cert.subject)
        assert dn.common_name == "Test Root CA"
        assert dn.organization == "Test CA Inc"
        assert dn.country == "US"

    def test_missing_attributes_are_empty(self, leaf_cert):
        dn = name_to_dn(leaf_cert.subject)
        assert dn.organization == ""
        assert dn.country == ""


class TestBuildSnapshot:
    def test_snapshot_fields(self, leaf_cert, ca_cert):
        snapshot = build_snapshot(
            leaf_cert,
            "example.com",
            "TLSv1.3",
            "TLS_AES_128_GCM_SHA256",
            chain=[ca_cert],
            checked_at=CHECKED_AT,
        )
        assert snapshot.domain == "example.com"
        assert snapshot.tls_version == "TLS 1.3"
        assert snapshot.cipher_suite == "TLS_AES_128_GCM_SHA256"
        assert snapshot.subject.common_name == "example.com"
        assert snapshot.issuer.organization == "Test CA Inc"
        assert snapshot.valid_from == NOT_BEFORE
        assert snapshot.valid_to == NOT_AFTER
        assert snapshot.days_remaining == 29
        assert snapshot.serial_number == "3A1B2"
        assert snapshot.version == 3
        assert not snapshot.is_self_signed

    def test_fingerprint_format(self, leaf_cert):
        snapshot = build_snapshot(leaf_cert, "example.com", "TLSv1.2", None, checked_at=CHECKED_AT)
        # 32 bytes -> 64 hex digits + 31 colons
        assert len(snapshot.fingerprint_sha256) == 95
        assert len(snapshot.fingerprint_sha1) == 59
        assert snapshot.fingerprint_sha256 == snapshot.fingerprint_sha256.upper()
        assert snapshot.cipher_suite == "Unknown"

    def test_self_signed_certificate(self, ca_cert):
        snapshot = build_snapshot(ca_cert, "ca.test", "TLSv1.2", "AES128-SHA", checked_at=CHECKED_AT)
        assert snapshot.is_self_signed
        assert snapshot.certificate_chain == ()

    def test_chain_conversion(self, ca_cert):
        chain_cert = to_chain_certificate(ca_cert)
        assert chain_cert.subject == "CN=Test Root CA,O=Test CA Inc,C=US"
        assert chain_cert.issuer == chain_cert.subject
        assert chain_cert.valid_to == NOT_AFTER
        assert len(chain_cert.fingerprint_sha256) == 95

    def test_checked_at_defaults_to_now(self, leaf_cert):
        before = datetime.now(timezone.utc)
        snapshot = build_snapshot(leaf_cert, "example.com", "TLSv1.3", "X")
        assert snapshot.checked_at - before < timedelta(minutes=1)
