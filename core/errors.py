"""
errors.py -- Exceptions raised at the collaborator boundary.

The analysis functions themselves never raise for well-formed input; only
certificate acquisition can fail an analysis outright.
"""


class CertificateFetchError(Exception):
    """The TLS handshake or certificate parse failed. Fatal for the analysis."""

    def __init__(self, domain: str, reason: str) -> None:
        self.domain = domain
        self.reason = reason
        super().__init__(f"Could not retrieve certificate for {domain}: {reason}")
