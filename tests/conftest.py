"""
tests/conftest.py -- Shared test fixtures for CertDossier tests.

This module provides:
  - make_snapshot: factory for CertificateSnapshot with a healthy baseline
  - make_ct_entry: factory for raw crt.sh rows
  - api_client: TestClient against the real FastAPI app, rate limiting off

Every snapshot is pinned to NOW so expiry-derived values are deterministic.
The baseline certificate grades 100/A+: TLS 1.3, AES-GCM, SHA-256/RSA,
2048-bit key, CA-issued, 60 days remaining of a 90-day validity.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from datetime import datetime, timedelta, timezone

# ALLOWED_HOSTS must be set before api.main is imported: TrustedHostMiddleware
# reads it once from get_settings() at import time.
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from core.models import CertificateSnapshot, CTLogEntry, DistinguishedName, PublicKeyInfo

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _snapshot(days_left: int = 60, validity_days: int = 90, **overrides) -> CertificateSnapshot:
    valid_to = NOW + timedelta(days=days_left)
    fields = {
        "domain": "example.com",
        "tls_version": "TLS 1.3",
        "cipher_suite": "TLS_AES_256_GCM_SHA384",
        "signature_algorithm": "sha256WithRSAEncryption",
        "public_key": PublicKeyInfo("RSA", 2048),
        "subject": DistinguishedName(common_name="example.com"),
        "issuer": DistinguishedName(common_name="R3", organization="Let's Encrypt", country="US"),
        "valid_from": valid_to - timedelta(days=validity_days),
        "valid_to": valid_to,
        "checked_at": NOW,
        "subject_alt_names": ("example.com", "www.example.com"),
        "serial_number": "03A1B2C3D4",
    }
    fields.update(overrides)
    return CertificateSnapshot(**fields)


def _ct_entry(
    serial: str,
    logged_days: int,
    issuer: str = "C=US, O=Let's Encrypt, CN=R3",
    names: str = "example.com\nwww.example.com",
    validity_days: int = 90,
    entry_id: str = "",
) -> CTLogEntry:
    """A crt.sh row logged `logged_days` after 2023-01-01 and valid from that moment."""
    logged = datetime(2023, 1, 1) + timedelta(days=logged_days)
    return CTLogEntry(
        id=entry_id or serial,
        issuer_name=issuer,
        common_name=names.split("\n")[0],
        name_value=names,
        serial_number=serial,
        not_before=logged.isoformat(),
        not_after=(logged + timedelta(days=validity_days)).isoformat(),
        entry_timestamp=logged.isoformat(),
    )


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_snapshot():
    return _snapshot


@pytest.fixture
def make_ct_entry():
    return _ct_entry


@pytest.fixture(scope="module")
def api_client() -> Generator[TestClient, None, None]:
    """Yield a TestClient for API integration tests.

    Rate limiting is disabled so per-route limits do not leak between tests
    that share the in-memory limiter store.
    """
    limiter.enabled = False
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client
    limiter.enabled = True
