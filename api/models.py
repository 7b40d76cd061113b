"""
API request and response models for CertDossier REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in core/models.py, which
own the internal domain representation. Route handlers map between the two.

Separation of concerns: core/ models = domain truth; api/ models = API contract.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class DomainRequest(BaseModel):
    """Base body for every domain-scoped endpoint.

    The field_validator only tidies the raw input (whitespace, case). Full
    normalization -- stripping scheme, path and port, then the DOMAIN_PATTERN
    check -- happens in the route via core.pipeline.normalize_domain so that
    a malformed domain is reported as 400 invalid_domain rather than 422.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    domain: str = Field(
        max_length=2048,
        description="Domain or URL to inspect, e.g. example.com or https://example.com/path.",
    )

    @field_validator("domain", mode="before")
    @classmethod
    def tidy_domain(cls, value: Any) -> str:
        return str(value).strip().lower() if value is not None else ""


class CheckCertRequest(DomainRequest):
    """Request body for POST /api/v1/check-cert."""


class CTLogsRequest(DomainRequest):
    """Request body for POST /api/v1/ct-logs."""

    include_subdomains: bool = True
    limit: int = Field(default=100, ge=1, le=1000, description="Maximum certificates returned. Max 1000.")


class AnalyzeRequest(DomainRequest):
    """Request body for POST /api/v1/analyze."""

    include_ct: bool = True


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class CTLogsResponse(BaseModel):
    """Response for POST /api/v1/ct-logs.

    available is False when crt.sh could not be queried; data is then the
    empty result rather than an error.
    """

    model_config = ConfigDict(frozen=True)

    available: bool
    data: dict[str, Any]


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
