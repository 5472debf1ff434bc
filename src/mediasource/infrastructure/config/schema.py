"""Pydantic configuration models with validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from mediasource.domain.entities.site import ProviderRequirements

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]
CacheBackend = Literal["memory", "diskcache"]


def _normalize_path(value: Any) -> Path:
    """
    Normalize a path-like value without causing filesystem side-effects.

    This function MUST NOT create directories or files.
    """
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise TypeError(f"Expected path-like value, got: {type(value)!r}")


def _split_names(value: Any) -> Any:
    """Accept ``"a, b"`` (env style) as well as lists."""
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


class CacheConfig(BaseModel):
    """Cache configuration (backend-agnostic)."""

    backend: CacheBackend = Field(
        default="memory",
        description="Cache backend: 'memory' (in-process) or 'diskcache' (SQLite)",
    )
    directory: Path = Field(
        default=Path("./.cache/mediasource"),
        validation_alias=AliasChoices("directory", "dir"),
        description="Diskcache SQLite DB path",
    )
    ttl_seconds: int = Field(
        default=3600,
        description="Default TTL for cache entries (seconds)",
    )
    max_concurrent: int = Field(
        default=10,
        description="Max parallel cache ops (semaphore limit)",
    )

    @field_validator("directory", mode="before")
    @classmethod
    def _validate_directory(cls, v: Any) -> Path:
        return _normalize_path(v)

    @field_validator("ttl_seconds")
    @classmethod
    def _validate_ttl(cls, v: int) -> int:
        if v < 0:
            raise ValueError("ttl_seconds must be >= 0")
        return v


class MirrorsConfig(BaseModel):
    """Mirror probing and per-site mirror overrides."""

    probe_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout of a single mirror probe (seconds).",
    )
    cache_ttl_seconds: int = Field(
        default=7 * 24 * 3600,
        description="Age after which a remembered working mirror is re-probed.",
    )
    overrides: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Replacement mirror lists keyed by site value.",
    )

    @field_validator("probe_timeout_seconds")
    @classmethod
    def _validate_probe_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("probe_timeout_seconds must be > 0")
        return v


class ResolutionConfig(BaseModel):
    """Orchestrator behaviour."""

    default_timeout_seconds: Optional[float] = Field(
        default=30.0,
        description="Timeout applied when a caller passes none. None = unbounded.",
    )
    max_concurrent_adapters: int = Field(
        default=8,
        description="Max adapters invoked in parallel for one request.",
    )
    granted: list[str] = Field(
        default_factory=list,
        description="ProviderRequirements flag names the caller holds.",
    )
    circuit_breaker_threshold: int = Field(
        default=5,
        description="Consecutive failures before an adapter is skipped. 0 = disabled.",
    )
    circuit_breaker_cooldown_seconds: float = Field(
        default=60.0,
        description="How long a tripped adapter is skipped (seconds).",
    )
    result_max_age_seconds: int = Field(
        default=600,
        description="Max age of cached listing results (seconds). 0 = no expiry.",
    )

    @field_validator("granted", mode="before")
    @classmethod
    def _split_granted(cls, v: Any) -> Any:
        return _split_names(v)

    @field_validator("granted")
    @classmethod
    def _validate_granted(cls, v: list[str]) -> list[str]:
        known = {flag.name for flag in ProviderRequirements}
        unknown = [name for name in v if name.strip().upper() not in known]
        if unknown:
            raise ValueError(f"unknown requirement names: {unknown}")
        return [name.strip().upper() for name in v]

    @field_validator("max_concurrent_adapters")
    @classmethod
    def _validate_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_concurrent_adapters must be >= 1")
        return v

    @property
    def granted_requirements(self) -> ProviderRequirements:
        return ProviderRequirements.from_names(self.granted)


class AdaptersConfig(BaseModel):
    """Which adapters are built, and their credentials."""

    enabled: Optional[list[str]] = Field(
        default=None,
        description="Site values of adapters to build. None = all built-ins.",
    )
    tmdb_api_key: Optional[str] = Field(
        default=None,
        description="TMDb API key; the trailers adapter is skipped without it.",
    )
    player_hosts: dict[str, dict[str, Any]] = Field(
        default_factory=dict,
        description="Extra or overridden PlayerJS hosts keyed by site value.",
    )

    @field_validator("enabled", mode="before")
    @classmethod
    def _split_enabled(cls, v: Any) -> Any:
        return _split_names(v)


class AppConfig(BaseModel):
    """
    Canonical engine configuration (validated, final).

    Note:
    - YAML is expected to be sectioned (http/logging/cache/mirrors/resolution/adapters).
    - Environment variables are handled by EnvOverrides(BaseSettings) to allow strict
      precedence control (defaults < YAML < ENV < overrides) in load.py.
    """

    # General
    app_name: str = Field(default="mediasource", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    # HTTP (YAML section: http.*)
    http_timeout_seconds: float = Field(
        default=15.0,
        validation_alias=AliasChoices(
            "http_timeout_seconds",
            AliasPath("http", "timeout_seconds"),
        ),
        description="Default HTTP timeout in seconds.",
    )
    http_follow_redirects: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "http_follow_redirects",
            AliasPath("http", "follow_redirects"),
        ),
        description="Whether the shared HTTP client follows redirects.",
    )
    http_user_agent: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "http_user_agent",
            AliasPath("http", "user_agent"),
        ),
        description="User-Agent for outgoing requests (adapters may override).",
    )

    # Logging (YAML section: logging.*)
    log_level: LogLevel = Field(
        default="INFO",
        validation_alias=AliasChoices(
            "log_level",
            AliasPath("logging", "level"),
        ),
        description="Log level.",
    )
    log_format: Optional[LogFormat] = Field(
        default=None,
        validation_alias=AliasChoices(
            "log_format",
            AliasPath("logging", "format"),
        ),
        description=(
            "Log renderer format (console/json). If unset, derived from environment."
        ),
    )

    cache: CacheConfig = Field(default_factory=CacheConfig)
    mirrors: MirrorsConfig = Field(default_factory=MirrorsConfig)
    resolution: ResolutionConfig = Field(default_factory=ResolutionConfig)
    adapters: AdaptersConfig = Field(default_factory=AdaptersConfig)

    @field_validator("http_timeout_seconds")
    @classmethod
    def _validate_http_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("http_timeout_seconds must be > 0")
        return v

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self

    def to_sectioned_dict(self) -> dict[str, Any]:
        """
        Dump configuration in the sectioned shape used by config.yaml/docs.
        """
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "http": {
                "timeout_seconds": self.http_timeout_seconds,
                "follow_redirects": self.http_follow_redirects,
                "user_agent": self.http_user_agent,
            },
            "logging": {"level": self.log_level, "format": self.log_format},
            "cache": {
                "backend": self.cache.backend,
                "dir": str(self.cache.directory),
                "ttl_seconds": self.cache.ttl_seconds,
                "max_concurrent": self.cache.max_concurrent,
            },
            "mirrors": self.mirrors.model_dump(),
            "resolution": self.resolution.model_dump(),
            "adapters": self.adapters.model_dump(),
        }


class EnvOverrides(BaseSettings):
    """
    Environment-variable overrides (all optional).

    Intended usage:
    - load.py creates EnvOverrides() to read MEDIASOURCE_* variables,
      converts to dict of set values, merges into YAML/defaults,
      then validates AppConfig.

    Supported env var examples (flat, explicit):
    - MEDIASOURCE_HTTP_TIMEOUT_SECONDS
    - MEDIASOURCE_CACHE_BACKEND
    - MEDIASOURCE_GRANTED_REQUIREMENTS=PRO_FOR_ANY,ACCOUNT_FOR_ANY
    - MEDIASOURCE_TMDB_API_KEY
    """

    model_config = SettingsConfigDict(
        env_prefix="MEDIASOURCE_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    http_timeout_seconds: Optional[float] = None
    http_follow_redirects: Optional[bool] = None
    http_user_agent: Optional[str] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    cache_backend: Optional[CacheBackend] = None
    cache_dir: Optional[Path] = None
    cache_ttl_seconds: Optional[int] = None

    mirror_probe_timeout_seconds: Optional[float] = None

    resolution_timeout_seconds: Optional[float] = None
    max_concurrent_adapters: Optional[int] = None
    granted_requirements: Optional[str] = None

    enabled_adapters: Optional[str] = None
    tmdb_api_key: Optional[str] = None

    @field_validator("cache_dir", mode="before")
    @classmethod
    def _validate_paths(cls, v: Any) -> Any:
        if v is None:
            return None
        return _normalize_path(v)

    def to_update_dict(self) -> dict[str, Any]:
        """
        Return only values that were actually provided (non-None), for merging.
        """
        return self.model_dump(exclude_none=True)
