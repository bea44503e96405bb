"""Configuration management using pydantic-settings."""

from .settings import (
    MAX_CACHE_TTL_MS,
    MIN_CACHE_TTL_MS,
    SERVER_NAME,
    SERVER_VERSION,
    SIGNED_URL_TTL_SECONDS,
    CacheSettings,
    DeepResearchSettings,
    FeatureSettings,
    LoggingSettings,
    PipelineSettings,
    ServerSettings,
    StorageSettings,
    clamp_ttl_ms,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "MAX_CACHE_TTL_MS",
    "MIN_CACHE_TTL_MS",
    "SERVER_NAME",
    "SERVER_VERSION",
    "SIGNED_URL_TTL_SECONDS",
    "CacheSettings",
    "DeepResearchSettings",
    "FeatureSettings",
    "LoggingSettings",
    "PipelineSettings",
    "ServerSettings",
    "StorageSettings",
    "clamp_ttl_ms",
    "clear_settings_cache",
    "get_settings",
]
