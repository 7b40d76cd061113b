"""
api/routes/v1/certificate.py -- Certificate inspection route handlers.

Rate limits are applied via slowapi. The @limiter.limit() decorator must sit
ABOVE @router.get/post so that slowapi can attach the limit string to the
function object before FastAPI wraps it.

Handlers are plain `def` so FastAPI runs them in its thread pool; the
pipeline performs blocking socket and HTTP I/O.
"""

from fastapi import APIRouter, HTTPException, Request

from api.limiter import limiter
from api.models import AnalyzeRequest, CheckCertRequest, CTLogsRequest, CTLogsResponse, ErrorDetail
from core.config import get_settings
from core.ctlogs import aggregate_ct_logs, empty_ct_log_data
from core.fetcher import fetch_certificate, fetch_ct_logs
from core.formatter import snapshot_to_dict, to_dict
from core.grading import calculate_score_breakdown, calculate_security_grade
from core.pipeline import analyze_domain, normalize_domain

router = APIRouter()

_RATE_LIMIT = get_settings().analyze_rate_limit


def _validated_domain(raw: str) -> str:
    """Normalize the domain or raise a 400 before any network I/O happens."""
    try:
        return normalize_domain(raw)
    except ValueError as exc:
        raise HTTPException(
            status_code=400,
            detail=ErrorDetail(
                code="invalid_domain",
                message="Invalid domain format.",
                detail=str(exc)[:200],
            ).model_dump(),
        ) from exc


@limiter.limit(_RATE_LIMIT)
@router.post("/check-cert")
def post_check_cert(request: Request, body: CheckCertRequest) -> dict:
    """Fetch the served certificate and return it with its grade and score breakdown.

    CertificateFetchError propagates to the 502 handler in api/main.py.
    """
    domain = _validated_domain(body.domain)
    snapshot = fetch_certificate(domain)
    grade = calculate_security_grade(snapshot)
    return {
        "certificate": snapshot_to_dict(snapshot),
        "grade": to_dict(grade),
        "score_breakdown": to_dict(calculate_score_breakdown(snapshot, grade.issues)),
    }


@limiter.limit(_RATE_LIMIT)
@router.post("/ct-logs", response_model=CTLogsResponse)
def post_ct_logs(request: Request, body: CTLogsRequest) -> CTLogsResponse:
    """Return the Certificate Transparency history for a domain.

    Never fails because crt.sh is down: the response then carries
    available=false and the empty result.
    """
    domain = _validated_domain(body.domain)
    entries = fetch_ct_logs(domain, include_subdomains=body.include_subdomains)
    if entries is None:
        data = empty_ct_log_data(domain)
    else:
        data = aggregate_ct_logs(entries, domain, limit=body.limit)
    return CTLogsResponse(available=entries is not None, data=to_dict(data))


@limiter.limit(_RATE_LIMIT)
@router.post("/analyze")
def post_analyze(request: Request, body: AnalyzeRequest) -> dict:
    """Build the full security dossier: grade, vulnerabilities, compliance, risk and CT history."""
    domain = _validated_domain(body.domain)
    dossier = analyze_domain(domain, include_ct=body.include_ct)
    return to_dict(dossier)
