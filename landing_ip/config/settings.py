"""Pydantic Settings for the landing-IP service.

All environment variables use the LANDING_ prefix. Run defaults live in the
nested ``probe`` model and use a double-underscore delimiter.
Example: LANDING_PORT=8002, LANDING_PROBE__CONCURRENCY=8
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings

from landing_ip.middleware.error_handler import ConfigurationError

# Argument names used by operator scripts, mapped onto option fields.
_ARGUMENT_NAMES: dict[str, str] = {
    "timeout": "timeout_ms",
    "cacheHours": "cache_hours",
    "cleanupCache": "cleanup_cache",
    "forceRefresh": "force_refresh",
    "cacheOnly": "cache_only",
    "httpMetaUrl": "http_meta_url",
    "probeTimeoutMs": "probe_timeout_ms",
    "startupDelayMs": "startup_delay_ms",
    "connectRetries": "connect_retries",
    "retryIntervalMs": "retry_interval_ms",
    "stopTimeoutMs": "stop_timeout_ms",
    "showIsp": "show_isp",
    "showCity": "show_city",
    "keepFlag": "keep_flag",
    "failTag": "fail_tag",
    "queryUrl": "query_url",
}

DIRECT_ENGINE = "node"


class ProbeOptions(BaseModel):
    """Immutable snapshot of one run's configuration.

    Durations are milliseconds. ``engine == "node"`` probes every node
    directly; any other value routes probes through a shared gateway session.
    """

    # Pool and timeouts
    concurrency: int = Field(default=6, ge=1, le=256)
    timeout_ms: int = Field(default=12000, ge=1)

    # Cache behaviour
    cache_hours: int = Field(default=24, ge=1)
    cleanup_cache: bool = True
    force_refresh: bool = False
    cache_only: bool = False

    # Labels
    rename: bool = True
    position: Literal["prefix", "suffix"] = "suffix"
    show_isp: bool = True
    show_city: bool = False
    keep_flag: bool = True
    fail_tag: str = "❌落地失败"

    # Probing strategy
    engine: str = "http-meta"
    http_meta_url: str = "http://127.0.0.1:9876"
    probe_timeout_ms: int = Field(default=45000, ge=1)
    startup_delay_ms: int = Field(default=250, ge=0)
    connect_retries: int = Field(default=8, ge=1)
    retry_interval_ms: int = Field(default=180, ge=0)
    stop_timeout_ms: int = Field(default=3000, ge=1)
    query_url: str = "https://api.ip.sb/geoip"

    model_config = {"frozen": True, "extra": "forbid"}

    @model_validator(mode="before")
    @classmethod
    def _accept_argument_names(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            return {_ARGUMENT_NAMES.get(key, key): value for key, value in data.items()}
        return data

    @field_validator("position", mode="before")
    @classmethod
    def _normalize_position(cls, value: Any) -> str:
        return "prefix" if str(value).strip().lower() == "prefix" else "suffix"

    @field_validator("engine", mode="before")
    @classmethod
    def _normalize_engine(cls, value: Any) -> str:
        return str(value).strip().lower()

    @property
    def ttl_ms(self) -> int:
        """Cache time-to-live in milliseconds."""
        return self.cache_hours * 3600 * 1000

    @property
    def uses_gateway(self) -> bool:
        """True when probes go through a shared gateway session."""
        return self.engine != DIRECT_ENGINE

    def with_overrides(self, overrides: Mapping[str, Any] | None) -> ProbeOptions:
        """Return a new snapshot with *overrides* applied on top of this one.

        Raises
        ------
        ConfigurationError
            If the merged options fail validation.
        """
        if not overrides:
            return self
        merged: dict[str, Any] = self.model_dump()
        merged.update(overrides)
        try:
            return ProbeOptions.model_validate(merged)
        except ValidationError as exc:
            raise ConfigurationError(
                "Invalid probe options",
                fields=[
                    {
                        "field": ".".join(str(loc) for loc in err["loc"]),
                        "message": err["msg"],
                    }
                    for err in exc.errors()
                ],
            ) from exc


class LandingSettings(BaseSettings):
    """Service configuration validated from environment variables."""

    # Service
    port: int = 8002
    log_level: str = "INFO"

    # Persistent result cache (JSON file store)
    cache_path: str = "landing_cache.json"

    # Named run profiles
    profiles_path: str = "landing_ip/config/profiles.yaml"

    # Default run options, overridable per request
    probe: ProbeOptions = ProbeOptions()

    model_config = {"env_prefix": "LANDING_", "env_nested_delimiter": "__"}
