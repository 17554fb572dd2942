"""
receiptit.config
~~~~~~~~~~~~~~~~
Central configuration for the receiptit library.

All values have sensible defaults that work out of the box (local SQLite
profile, no hosted backend). Override any field via a ``.env`` file or
environment variables — pydantic-settings picks them up automatically.

Usage::

    from receiptit.config import cfg

    print(cfg.budget_limit)             # 2500.0
    print(cfg.get_backend_config())     # typed BackendConfig dataclass
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# ---------------------------------------------------------------------------
# Typed return value for the hosted backend
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BackendConfig:
    """Immutable snapshot of the hosted backend settings."""

    base_url: str
    api_key: str
    bucket: str
    timeout: int
    max_retries: int
    poll_interval: float


# ---------------------------------------------------------------------------
# Main settings class
# ---------------------------------------------------------------------------

class Config(BaseSettings):
    """
    Runtime configuration for receiptit.

    Reads from (in priority order):
      1. Environment variables (prefixed with ``RECEIPTIT_``)
      2. A ``.env`` file in the working directory
      3. The defaults defined below
    """

    model_config = SettingsConfigDict(
        env_prefix="RECEIPTIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Insights
    # ------------------------------------------------------------------

    budget_limit: float = Field(
        default=2500.0,
        gt=0,
        description="Monthly spending limit the budget status is measured against.",
    )
    currency_symbol: str = Field(
        default="£",
        min_length=1,
        max_length=4,
        description="Currency symbol used when a receipt does not carry one.",
    )
    trend_months: int = Field(
        default=6,
        ge=1,
        le=24,
        description="Number of calendar months in the spending trend.",
    )
    spam_multiplier: int = Field(
        default=12,
        ge=0,
        description="Promotional emails assumed blocked per captured receipt.",
    )

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    alias_domain: str = Field(
        default="receiptit.app",
        description="Domain of the generated receipt-forwarding email aliases.",
    )
    user_id: str = Field(
        default="local",
        description="User scope used by the CLI and the local API server.",
    )
    profile: Optional[str] = Field(
        default=None,
        description="Local profile name under ~/.receiptit/ (default: 'default').",
    )
    db_path: Optional[str] = Field(
        default=None,
        description="Explicit SQLite database path; overrides the profile's database.",
    )

    # ------------------------------------------------------------------
    # Hosted backend
    # ------------------------------------------------------------------

    backend_url: Optional[str] = Field(
        default=None,
        description="Base URL of the hosted backend. Unset = local SQLite only.",
    )
    backend_key: Optional[str] = Field(
        default=None,
        description="Public API key sent with every backend request.",
    )
    storage_bucket: str = Field(
        default="receipts",
        description="Object-storage bucket for uploaded receipt images.",
    )
    request_timeout: int = Field(
        default=30,
        ge=1,
        description="HTTP request timeout in seconds.",
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Number of retry attempts for backend calls.",
    )
    poll_interval: float = Field(
        default=5.0,
        gt=0,
        description="Seconds between change-feed polls against the backend.",
    )
    upload_max_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1,
        description="Largest accepted receipt image upload.",
    )

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("backend_url")
    @classmethod
    def _strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip().rstrip("/") or None

    @field_validator("alias_domain")
    @classmethod
    def _normalise_domain(cls, v: str) -> str:
        domain = v.strip().lstrip("@").lower()
        if not domain or "." not in domain:
            raise ValueError("alias_domain must be a domain such as 'receiptit.app'.")
        return domain

    @model_validator(mode="after")
    def _require_key_with_url(self) -> "Config":
        if self.backend_url and not self.backend_key:
            raise ValueError("backend_key is required when backend_url is set.")
        return self

    # ------------------------------------------------------------------
    # Helper methods
    # ------------------------------------------------------------------

    @property
    def has_backend(self) -> bool:
        return bool(self.backend_url and self.backend_key)

    def get_backend_config(self) -> BackendConfig:
        """Return an immutable, typed snapshot of the backend configuration."""
        if not self.has_backend:
            raise ValueError("No hosted backend configured (set RECEIPTIT_BACKEND_URL).")
        return BackendConfig(
            base_url=self.backend_url,
            api_key=self.backend_key,
            bucket=self.storage_bucket,
            timeout=self.request_timeout,
            max_retries=self.max_retries,
            poll_interval=self.poll_interval,
        )


# ---------------------------------------------------------------------------
# Module-level singleton, import this everywhere
# ---------------------------------------------------------------------------

cfg = Config()

__all__ = ["BackendConfig", "Config", "cfg"]
