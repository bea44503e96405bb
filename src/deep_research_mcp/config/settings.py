"""Environment-based configuration using pydantic-settings.

Provides type-safe, validated configuration from environment variables
(and `.env` / `.env.local` files) with sensible defaults.

Example:
    >>> from deep_research_mcp.config import get_settings
    >>> settings = get_settings()
    >>> settings.cache.ttl_seconds
    600.0
    >>> settings.server.http_mode
    False

    # Or with environment variables:
    # MCP_HTTP_MODE=true
    # PROVIDER_CACHE_TTL_MS=120000
    # MCP_API_KEY=s3cret
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import (
    AliasChoices,
    Field,
    PositiveInt,
    SecretStr,
    computed_field,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

MIN_CACHE_TTL_MS = 1_000
MAX_CACHE_TTL_MS = 86_400_000  # 24h
SIGNED_URL_TTL_SECONDS = 7 * 24 * 60 * 60

SERVER_NAME = "deep-research"
SERVER_VERSION = "1.0.0"

_ENV_FILES = (".env", ".env.local")


def _config(prefix: str = "") -> SettingsConfigDict:
    return SettingsConfigDict(
        env_prefix=prefix,
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


def clamp_ttl_ms(value: int) -> int:
    """Clamp a TTL into [1s, 24h] so a typo can neither disable nor pin the cache."""
    return max(MIN_CACHE_TTL_MS, min(MAX_CACHE_TTL_MS, value))


class ServerSettings(BaseSettings):
    """Transport selection and HTTP exposure."""

    model_config = _config("MCP_")

    http_mode: bool = Field(default=False, description="Serve over HTTP/SSE instead of stdio")
    host: str = "0.0.0.0"
    port: PositiveInt = Field(default=8080, validation_alias=AliasChoices("PORT", "MCP_PORT"))
    api_key: SecretStr | None = Field(default=None, description="Absent = authentication disabled")

    @field_validator("api_key", mode="before")
    @classmethod
    def _blank_is_unset(cls, v: object) -> object:
        return None if isinstance(v, str) and not v.strip() else v

    @computed_field
    @property
    def mode(self) -> Literal["http", "stdio"]:
        return "http" if self.http_mode else "stdio"


class CacheSettings(BaseSettings):
    """Result cache configuration."""

    model_config = _config()

    ttl_ms: int = Field(default=600_000, validation_alias=AliasChoices("PROVIDER_CACHE_TTL_MS"))
    max_entries: PositiveInt = Field(default=50, validation_alias=AliasChoices("MCP_CACHE_MAX_ENTRIES"))

    @field_validator("ttl_ms", mode="after")
    @classmethod
    def _clamp(cls, v: int) -> int:
        return clamp_ttl_ms(v)

    @computed_field
    @property
    def ttl_seconds(self) -> float:
        return self.ttl_ms / 1000


class StorageSettings(BaseSettings):
    """Object storage for offloaded reports (S3-compatible)."""

    model_config = _config("REPORT_STORAGE_")

    bucket: str = Field(
        default="deep-research-reports",
        validation_alias=AliasChoices("GCS_BUCKET_NAME", "REPORT_BUCKET_NAME"),
    )
    prefix: str = "reports/"
    endpoint_url: str | None = Field(default=None, description="Custom endpoint (GCS interop, MinIO)")
    region: str | None = None

    @computed_field
    @property
    def signed_url_ttl(self) -> int:
        return SIGNED_URL_TTL_SECONDS


class FeatureSettings(BaseSettings):
    """Pipeline feature flags surfaced by the capabilities resource."""

    model_config = _config()

    gemini_model: str = Field(default="gemini-2.5-flash", validation_alias=AliasChoices("GEMINI_MODEL"))
    google_search: bool = Field(
        default=True, validation_alias=AliasChoices("ENABLE_GEMINI_GOOGLE_SEARCH"))
    url_context: bool = Field(default=True, validation_alias=AliasChoices("ENABLE_URL_CONTEXT"))
    functions: bool = Field(default=False, validation_alias=AliasChoices("ENABLE_GEMINI_FUNCTIONS"))
    code_execution: bool = Field(
        default=False, validation_alias=AliasChoices("ENABLE_GEMINI_CODE_EXECUTION"))


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = _config("LOG_")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json", "none"] = "console"

    @field_validator("level", "format", mode="before")
    @classmethod
    def _normalize(cls, v: object) -> object:
        if not isinstance(v, str):
            return v
        return v.upper() if v.lower() not in ("console", "json", "none") else v.lower()


class PipelineSettings(BaseSettings):
    """Import strings (`module:attribute`) for the external research collaborators."""

    model_config = _config("DEEP_RESEARCH_")

    pipeline: str | None = Field(default=None, description="Research pipeline callable")
    report_writer: str | None = Field(default=None, description="Report writer callable (CLI only)")


class DeepResearchSettings(BaseSettings):
    """Root settings.

    Each group loads its own environment variables; see the group classes
    for the exact names. Nested overrides use DRMCP_<GROUP>__<FIELD>.
    """

    model_config = SettingsConfigDict(
        env_prefix="DRMCP_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    name: str = SERVER_NAME
    version: str = SERVER_VERSION

    server: ServerSettings = Field(default_factory=ServerSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    features: FeatureSettings = Field(default_factory=FeatureSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)


@lru_cache(maxsize=1)
def get_settings() -> DeepResearchSettings:
    """Get the process-wide settings instance (cached)."""
    return DeepResearchSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache so the next get_settings() re-reads the environment."""
    get_settings.cache_clear()
