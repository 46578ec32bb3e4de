from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Environment
    env: str = "local"
    log_level: str = "INFO"

    # HTTP front door
    host: str = "0.0.0.0"
    port: int = 4000
    max_body_bytes: int = 1024 * 1024

    # MCP identity
    server_name: str = "erp-mcp-adapter"
    server_version: str = "1.0.0"
    server_description: str = "MCP server for ERP indent management"
    default_protocol_version: str = "2025-06-18"

    # Upstream ERP
    erp_base: str = ""
    erp_token: str | None = None
    allow_base_url_override: bool = False

    # Timeouts / retries
    upstream_timeout_seconds: float = Field(default=15.0, gt=0)
    call_deadline_seconds: float | None = Field(default=None, gt=0)
    max_retries: int = Field(default=2, ge=0)
    transport_backoff_base_ms: int = Field(default=300, ge=0)
    status_backoff_base_ms: int = Field(default=500, ge=0)
    retry_after_cap_ms: int = Field(default=30_000, ge=0)
    # Read timeouts on POST/PUT/PATCH may mean the ERP already applied the write.
    retry_mutating_on_timeout: bool = False

    # Normalization
    breadcrumb_separator: str = " > "

    # Audit log (JSONL); disabled when unset
    audit_dir: Path | None = None

    @field_validator("erp_base")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    return Settings()
