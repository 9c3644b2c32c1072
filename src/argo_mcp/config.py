"""Configuration for the Argo Workflows MCP server."""

from __future__ import annotations

from typing import List, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="", env_file=".env", case_sensitive=False, extra="ignore")

    service_name: str = Field(default="argo-workflows-mcp")
    log_level: str = Field(default="INFO")

    transport_type: str = Field(default="streamable-http")
    http_host: str = Field(default="127.0.0.1")
    http_port: int = Field(default=8080, gt=0)
    http_path: str = Field(default="/mcp")
    http_auth_token: Optional[str] = Field(default=None)
    http_allowed_origins: str = Field(
        default=(
            "http://localhost,https://localhost,"
            "http://localhost:3000,https://localhost:3000,"
            "http://localhost:8080,https://localhost:8080"
        )
    )

    argo_server_url: str
    argo_token: Optional[str] = Field(default=None)
    argo_namespace: str = Field(default="default")
    argo_insecure_skip_verify: bool = Field(default=False)

    api_timeout_seconds: float = Field(default=30, gt=0)
    api_retry_attempts: int = Field(default=3, ge=0, le=10)
    api_retry_delay_seconds: float = Field(default=1, gt=0)
    api_retry_max_delay_seconds: float = Field(default=10, gt=0)

    schema_path: str = Field(default="./schema/argo-openapi.json")

    @field_validator("argo_server_url")
    @classmethod
    def _check_server_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("must be an http(s) URL")
        return value.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.upper()

    @field_validator("transport_type")
    @classmethod
    def _check_transport(cls, value: str) -> str:
        transport = value.lower()
        if transport not in {"stdio", "http", "streamable-http", "streamablehttp", "sse"}:
            raise ValueError(f"unsupported transport: {value}")
        return transport

    def allowed_origins(self) -> List[str]:
        return [item.strip() for item in self.http_allowed_origins.split(",") if item.strip()]


def load_settings(**overrides: object) -> Settings:
    """Build a fresh ``Settings`` from the environment plus explicit overrides."""
    try:
        return Settings(**overrides)  # type: ignore[arg-type]
    except ValidationError as exc:
        problems = ", ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from exc
