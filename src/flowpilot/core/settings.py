"""Settings for flowpilot clients, tasks and triggers.

Configuration is read from ``FLOWPILOT_``-prefixed environment variables and
an optional ``.env`` file, validated by pydantic at startup.

Fields
──────
api_url          : Base URL of the orchestration API (trailing slashes stripped)
tenant_id        : Tenant used when a task does not override it
api_token        : Bearer token (mutually exclusive with username/password)
username         : HTTP Basic username
password         : HTTP Basic password
timeout_seconds  : Per-request HTTP timeout
storage_dir      : Directory where STORE fetches write their ``.jsonl`` files
log_level        : structlog level
json_logs        : JSON rendering (None = auto-detect from tty)

Examples:
    >>> settings = FlowpilotSettings(api_url="http://kestra:8080/")
    >>> settings.api_url
    'http://kestra:8080'
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_URL = "http://localhost:8080"


class FlowpilotSettings(BaseSettings):
    """Environment-driven settings shared by every flowpilot entry point."""

    model_config = SettingsConfigDict(
        env_prefix="FLOWPILOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Remote API ───────────────────────────────────────────────
    api_url: str = DEFAULT_API_URL
    tenant_id: str = "main"
    timeout_seconds: float = Field(default=30.0, gt=0)

    # ── Credentials ──────────────────────────────────────────────
    api_token: SecretStr | None = None
    username: str | None = None
    password: SecretStr | None = None

    # ── Storage ──────────────────────────────────────────────────
    storage_dir: Path = Field(
        default_factory=lambda: Path.home() / ".flowpilot" / "storage",
        description="Directory for STORE fetch outputs",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None

    @field_validator("api_url")
    @classmethod
    def _normalize_url(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        return value or DEFAULT_API_URL

    @model_validator(mode="after")
    def _check_credentials(self) -> FlowpilotSettings:
        if self.api_token is not None and (self.username is not None or self.password is not None):
            raise ValueError("Cannot use both API token authentication and HTTP Basic authentication")
        if (self.username is None) != (self.password is None):
            raise ValueError("Both username and password are required for HTTP Basic authentication")
        return self
