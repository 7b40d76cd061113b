"""Tests for the command-line entry point in main.py.

analyze_domain is patched so no network access happens. Progress output goes
to stderr; rendered results go to stdout.
"""

import json
import sys
from unittest.mock import patch

import pytest

import main
from core.errors import CertificateFetchError
from core.pipeline import build_dossier


@pytest.fixture(autouse=True)
def no_color(monkeypatch):
    monkeypatch.setattr("core.formatter._color_enabled", False)


def _run(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["certdossier", *argv])
    main.main()


def test_json_output(monkeypatch, capsys, make_snapshot):
    dossier = build_dossier(make_snapshot(), None)
    with patch("main.analyze_domain", return_value=dossier) as mock_analyze:
        _run(monkeypatch, "example.com", "--json", "--no-ct")

    mock_analyze.assert_called_once_with("example.com", include_ct=False)
    out, err = capsys.readouterr()
    assert json.loads(out)["grade"]["grade"] == "A+"
    assert "Analyzing example.com" in err


def test_markdown_for_multiple_domains(monkeypatch, capsys, make_snapshot):
    def fake(domain, include_ct=True):
        return build_dossier(make_snapshot(domain=domain), None)

    with patch("main.analyze_domain", side_effect=fake):
        _run(monkeypatch, "a.example.com", "b.example.com", "A.example.com", "--format", "markdown")

    out = capsys.readouterr().out
    assert out.count("example.com |") == 2


def test_file_input_skips_comments(monkeypatch, capsys, tmp_path, make_snapshot):
    path = tmp_path / "domains.txt"
    path.write_text("# prod\nexample.com\n\nexample.com\nother.org\n")
    seen = []

    def fake(domain, include_ct=True):
        seen.append(domain)
        return build_dossier(make_snapshot(domain=domain), None)

    with patch("main.analyze_domain", side_effect=fake):
        _run(monkeypatch, "--file", str(path))

    assert seen == ["example.com", "other.org"]
    out, err = capsys.readouterr()
    assert "1 duplicate(s) removed" in err
    assert "SUMMARY" in out


def test_failure_exits_nonzero(monkeypatch, capsys, make_snapshot):
    def fake(domain, include_ct=True):
        if domain == "down.example.com":
            raise CertificateFetchError(domain, "connection timed out")
        return build_dossier(make_snapshot(domain=domain), None)

    with patch("main.analyze_domain", side_effect=fake):
        with pytest.raises(SystemExit) as exc_info:
            _run(monkeypatch, "example.com", "down.example.com")

    assert exc_info.value.code == 1
    err = capsys.readouterr().err
    assert "connection timed out" in err
    assert "1 domain(s) could not be analyzed" in err


def test_invalid_domain_reported(monkeypatch, capsys):
    with patch("main.analyze_domain", side_effect=ValueError("Invalid domain format: nope")):
        with pytest.raises(SystemExit):
            _run(monkeypatch, "nope")
    assert "Invalid domain format: nope" in capsys.readouterr().err


def test_no_domains_prints_help(monkeypatch, capsys):
    _run(monkeypatch)
    assert "usage:" in capsys.readouterr().out


def test_no_color_overrides_force_color(monkeypatch, capsys, make_snapshot):
    monkeypatch.setattr("core.formatter._color_enabled", None)
    monkeypatch.setenv("FORCE_COLOR", "1")
    dossier = build_dossier(make_snapshot(), None)
    with patch("main.analyze_domain", return_value=dossier):
        _run(monkeypatch, "example.com", "--no-color")
    assert "\x1b[" not in capsys.readouterr().out


def test_force_color_without_flag(monkeypatch, capsys, make_snapshot):
    monkeypatch.setattr("core.formatter._color_enabled", None)
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.setenv("FORCE_COLOR", "1")
    dossier = build_dossier(make_snapshot(), None)
    with patch("main.analyze_domain", return_value=dossier):
        _run(monkeypatch, "example.com")
    assert "\x1b[" in capsys.readouterr().out
