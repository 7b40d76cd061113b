"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for CertDossier happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. tls_timeout_seconds -> TLS_TIMEOUT_SECONDS). Type coercion and
      validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Rejects settings that would make fetchers
      hang or never run (non-positive timeouts, zero attempts).

Layer rule: core/ is the kernel. This module may not import from api/.
"""

from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    log_level: str = "INFO"
    user_agent: str = "CertDossier/1.0"

    # ------------------------------------------------------------------
    # TLS acquisition
    # ------------------------------------------------------------------

    tls_timeout_seconds: float = 10.0
    # Upper bound on AIA "CA Issuers" hops followed above the leaf.
    max_chain_depth: int = 10

    # ------------------------------------------------------------------
    # Certificate Transparency (crt.sh)
    # ------------------------------------------------------------------

    ct_log_url: str = "https://crt.sh/"
    ct_log_timeout_seconds: float = 30.0
    ct_log_attempts: int = 3
    # Linear backoff: attempt N waits N * ct_log_backoff_seconds before retrying.
    ct_log_backoff_seconds: float = 1.0
    ct_log_max_certificates: int = 100

    # ------------------------------------------------------------------
    # API
    # ------------------------------------------------------------------

    analyze_rate_limit: str = "10/minute"
    # List values are read from the environment as JSON, e.g. ALLOWED_HOSTS='["certs.example.com"]'
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost:8000", "http://127.0.0.1:8000"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_limits(self) -> "Settings":
        """Reject configurations the fetchers cannot run with.

        LOG_LEVEL must be a standard logging level name (case-insensitive).
        Timeouts must be positive; CT attempts, chain depth and the
        certificate cap must be at least 1. Backoff may be 0 (no waiting).
        """
        level = self.log_level.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {sorted(_LOG_LEVELS)}, got {self.log_level!r}.")
        self.log_level = level

        if self.tls_timeout_seconds <= 0 or self.ct_log_timeout_seconds <= 0:
            raise ValueError("TLS_TIMEOUT_SECONDS and CT_LOG_TIMEOUT_SECONDS must be positive.")
        if self.ct_log_attempts < 1:
            raise ValueError("CT_LOG_ATTEMPTS must be at least 1.")
        if self.max_chain_depth < 1 or self.ct_log_max_certificates < 1:
            raise ValueError("MAX_CHAIN_DEPTH and CT_LOG_MAX_CERTIFICATES must be at least 1.")
        if self.ct_log_backoff_seconds < 0:
            raise ValueError("CT_LOG_BACKOFF_SECONDS must not be negative.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    All modules should call get_settings() rather than constructing Settings() directly.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
