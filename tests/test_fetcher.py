"""Unit tests for core/fetcher.py — network I/O is mocked throughout."""

import socket
import ssl
from unittest.mock import MagicMock, patch

import pytest
import requests

from core.errors import CertificateFetchError
from core.fetcher import fetch_certificate, fetch_ct_logs, fetch_issuer_chain

CRT_ROW = {
    "id": 123,
    "issuer_name": "C=US, O=Let's Encrypt, CN=R3",
    "common_name": "example.com",
    "name_value": "example.com\nwww.example.com",
    "serial_number": "03a1b2",
    "not_before": "2024-01-01T00:00:00",
    "not_after": "2024-03-31T00:00:00",
    "entry_timestamp": "2024-01-01T00:05:00.123",
}

HANDSHAKE_FAILURE = "[SSL: SSLV3_ALERT_HANDSHAKE_FAILURE] sslv3 alert handshake failure"


def _response(payload=None, status=200, json_error=False):
    resp = MagicMock()
    resp.status_code = status
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status} error")
    if json_error:
        resp.json.side_effect = ValueError("not json")
    else:
        resp.json.return_value = payload
    return resp


class TestFetchCTLogs:
    @patch("core.fetcher.time.sleep")
    @patch("core.fetcher._session")
    def test_success(self, mock_session, mock_sleep):
        mock_session.get.return_value = _response([CRT_ROW])
        entries = fetch_ct_logs("example.com")

        assert len(entries) == 1
        assert entries[0].id == "123"
        assert entries[0].serial_number == "03a1b2"
        _, kwargs = mock_session.get.call_args
        assert kwargs["params"] == {"q": "%.example.com", "output": "json"}
        mock_sleep.assert_not_called()

    @patch("core.fetcher._session")
    def test_exact_domain_query(self, mock_session):
        mock_session.get.return_value = _response([])
        fetch_ct_logs("example.com", include_subdomains=False)
        _, kwargs = mock_session.get.call_args
        assert kwargs["params"]["q"] == "example.com"

    @patch("core.fetcher._session")
    def test_no_rows_is_empty_list(self, mock_session):
        mock_session.get.return_value = _response([])
        assert fetch_ct_logs("example.com") == []

    @patch("core.fetcher.time.sleep")
    @patch("core.fetcher._session")
    def test_non_json_body_is_unavailable_without_retry(self, mock_session, mock_sleep):
        mock_session.get.return_value = _response(json_error=True)
        assert fetch_ct_logs("example.com") is None
        assert mock_session.get.call_count == 1
        mock_sleep.assert_not_called()

    @patch("core.fetcher._session")
    def test_unexpected_payload_shape(self, mock_session):
        mock_session.get.return_value = _response({"error": "nope"})
        assert fetch_ct_logs("example.com") is None

    @patch("core.fetcher._session")
    def test_non_dict_rows_are_ignored(self, mock_session):
        mock_session.get.return_value = _response([CRT_ROW, "junk", None])
        assert len(fetch_ct_logs("example.com")) == 1

    @patch("core.fetcher.time.sleep")
    @patch("core.fetcher._session")
    def test_all_attempts_fail(self, mock_session, mock_sleep):
        mock_session.get.side_effect = requests.ConnectionError("down")
        assert fetch_ct_logs("example.com") is None
        assert mock_session.get.call_count == 3
        # linear backoff, nothing after the final attempt
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]

    @patch("core.fetcher.time.sleep")
    @patch("core.fetcher._session")
    def test_retry_then_success(self, mock_session, mock_sleep):
        mock_session.get.side_effect = [_response(status=503), _response([CRT_ROW])]
        entries = fetch_ct_logs("example.com")
        assert len(entries) == 1
        assert mock_session.get.call_count == 2
        mock_sleep.assert_called_once_with(1.0)


class TestFetchCertificate:
    @pytest.mark.parametrize(
        "error,reason",
        [
            (socket.timeout("timed out"), "connection timed out"),
            (socket.gaierror(-2, "Name or service not known"), "could not resolve domain name"),
            (ConnectionRefusedError(111, "Connection refused"), "[Errno 111] Connection refused"),
            (ssl.SSLError(1, HANDSHAKE_FAILURE), HANDSHAKE_FAILURE),
            (ValueError("server presented no certificate"), "server presented no certificate"),
        ],
    )
    def test_errors_become_fetch_errors(self, error, reason):
        with patch("core.fetcher._handshake", side_effect=error):
            with pytest.raises(CertificateFetchError) as exc_info:
                fetch_certificate("example.com")
        assert exc_info.value.domain == "example.com"
        assert exc_info.value.reason == reason

    def test_ssl_error_prefers_openssl_reason(self):
        error = ssl.SSLError(1, "[SSL: WRONG_VERSION_NUMBER] wrong version number (_ssl.c:1006)")
        error.reason = "WRONG_VERSION_NUMBER"
        with patch("core.fetcher._handshake", side_effect=error):
            with pytest.raises(CertificateFetchError) as exc_info:
                fetch_certificate("example.com")
        assert exc_info.value.reason == "WRONG_VERSION_NUMBER"

    def test_unparseable_certificate(self):
        with patch("core.fetcher._handshake", return_value=(b"not der", "TLSv1.3", "X")):
            with pytest.raises(CertificateFetchError):
                fetch_certificate("example.com")

    def test_success_builds_snapshot(self):
        leaf = MagicMock()
        sentinel = object()
        with (
            patch("core.fetcher._handshake", return_value=(b"der", "TLSv1.3", "TLS_AES_256_GCM_SHA384")),
            patch("core.fetcher.x509.load_der_x509_certificate", return_value=leaf),
            patch("core.fetcher.fetch_issuer_chain", return_value=[]) as mock_chain,
            patch("core.fetcher.build_snapshot", return_value=sentinel) as mock_build,
        ):
            assert fetch_certificate("example.com") is sentinel

        mock_chain.assert_called_once_with(leaf, 10)
        mock_build.assert_called_once_with(leaf, "example.com", "TLSv1.3", "TLS_AES_256_GCM_SHA384", [])


def _fake_cert(name, issuer, url=None):
    """Stand-in with just the surface fetch_issuer_chain touches."""
    cert = MagicMock()
    cert.subject = name
    cert.issuer = issuer
    cert.fingerprint.return_value = f"fp-{name}".encode()
    cert.url = url
    return cert


class TestIssuerChain:
    def _walk(self, leaf, certs_by_url, max_depth=10):
        with (
            patch("core.fetcher._ca_issuers_url", side_effect=lambda c: c.url),
            patch("core.fetcher._download_issuer", side_effect=lambda u: certs_by_url.get(u)),
        ):
            return fetch_issuer_chain(leaf, max_depth=max_depth)

    def test_walks_to_self_issued_root(self):
        root = _fake_cert("root", "root", url="http://never-fetched")
        intermediate = _fake_cert("int", "root", url="http://root")
        leaf = _fake_cert("leaf", "int", url="http://int")
        chain = self._walk(leaf, {"http://int": intermediate, "http://root": root})
        assert chain == [intermediate, root]

    def test_stops_without_aia_url(self):
        intermediate = _fake_cert("int", "root", url=None)
        leaf = _fake_cert("leaf", "int", url="http://int")
        assert self._walk(leaf, {"http://int": intermediate}) == [intermediate]

    def test_stops_on_download_failure(self):
        leaf = _fake_cert("leaf", "int", url="http://int")
        assert self._walk(leaf, {}) == []

    def test_stops_on_loop(self):
        a = _fake_cert("a", "b", url="http://b")
        b = _fake_cert("b", "a", url="http://a")
        leaf = _fake_cert("leaf", "a", url="http://a")
        assert self._walk(leaf, {"http://a": a, "http://b": b}) == [a, b]

    def test_respects_max_depth(self):
        certs = {f"http://{i}": _fake_cert(str(i), str(i + 1), url=f"http://{i + 1}") for i in range(20)}
        leaf = _fake_cert("leaf", "0", url="http://0")
        assert len(self._walk(leaf, certs, max_depth=3)) == 3

    def test_self_signed_leaf_has_no_chain(self):
        leaf = _fake_cert("leaf", "leaf", url="http://anything")
        assert self._walk(leaf, {"http://anything": _fake_cert("x", "y")}) == []
