"""Unit tests for core/config.py — Settings validation."""

import pytest
from pydantic import ValidationError

from core.config import Settings


def test_defaults_are_valid():
    settings = Settings(_env_file=None)
    assert settings.ct_log_url == "https://crt.sh/"
    assert settings.ct_log_attempts == 3
    assert settings.max_chain_depth == 10


def test_log_level_is_normalized_to_upper_case():
    assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"


def test_unknown_log_level_rejected():
    with pytest.raises(ValidationError, match="LOG_LEVEL"):
        Settings(_env_file=None, log_level="verbose")


@pytest.mark.parametrize(
    "field,value",
    [
        ("ct_log_attempts", 0),
        ("tls_timeout_seconds", 0),
        ("ct_log_timeout_seconds", -1),
        ("max_chain_depth", 0),
        ("ct_log_max_certificates", 0),
        ("ct_log_backoff_seconds", -0.5),
    ],
)
def test_unusable_limits_rejected(field, value):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{field: value})


def test_zero_backoff_allowed():
    assert Settings(_env_file=None, ct_log_backoff_seconds=0).ct_log_backoff_seconds == 0


def test_list_settings_read_from_env_as_json(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", '["https://certs.example.com"]')
    assert Settings(_env_file=None).cors_origins == ["https://certs.example.com"]
