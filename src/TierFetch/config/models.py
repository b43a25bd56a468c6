"""
Pydantic v2 Configuration Models for TierFetch

Provides strict, typed configuration for the acquisition chain and the
fetch cache:
- Ordered acquisition sources (probe / import)
- Per-source deadline
- Cache TTL
- HTTP client settings for the default transport
- Telemetry and logging settings
- Top-level TierFetchConfig as single source of truth

All models use extra="forbid" for strict validation. Environment variables
and CLI overrides follow: file < env < CLI precedence.
"""

from __future__ import annotations

import hashlib
import json
from typing import ClassVar, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# ============================================================================
# Acquisition
# ============================================================================


class SourceConfig(BaseModel):
    """One acquisition source in fallback priority order."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(description="Source identifier reported in outcomes")
    kind: Literal["probe", "import"] = Field(description="Acquisition strategy")
    url: Optional[str] = Field(default=None, description="Base URL for probe sources")
    probe_path: str = Field(default="", description="Path appended to url when probing")
    target: Optional[str] = Field(
        default=None, description="'module:attribute' factory for import sources"
    )

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("source id must be non-empty")
        return v.strip()

    @model_validator(mode="after")
    def validate_kind_fields(self) -> "SourceConfig":
        if self.kind == "probe" and not self.url:
            raise ValueError(f"probe source '{self.id}' requires url")
        if self.kind == "import":
            if not self.target or ":" not in self.target:
                raise ValueError(f"import source '{self.id}' requires target 'module:attribute'")
        return self


# ============================================================================
# Cache / HTTP / Telemetry / Logging
# ============================================================================


class CacheConfig(BaseModel):
    """Fetch cache configuration."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    ttl_ms: int = Field(default=300_000, description="Entry time-to-live in ms")

    @field_validator("ttl_ms")
    @classmethod
    def validate_ttl(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("ttl_ms must be > 0")
        return v


class HttpConfig(BaseModel):
    """Configuration for the httpx-backed default transport."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    timeout_s: float = Field(default=20.0, description="Request timeout in seconds")
    user_agent: str = Field(default="TierFetch/1.0", description="User-Agent string")
    headers: Dict[str, str] = Field(default_factory=dict, description="Extra request headers")

    @field_validator("timeout_s")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout_s must be > 0")
        return v


class TelemetryConfig(BaseModel):
    """Attempt telemetry sinks."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    jsonl_path: Optional[str] = Field(
        default=None, description="Append one JSON line per source attempt"
    )
    log_attempts: bool = Field(default=True, description="Log attempts via logging")


class LoggingConfig(BaseModel):
    """Logging setup used by the CLI."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    json_logs: bool = Field(default=False, description="Emit JSON lines instead of text")
    log_file: Optional[str] = Field(default=None, description="Optional log file path")

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        return str(v).upper()


# ============================================================================
# Top level
# ============================================================================


class TierFetchConfig(BaseModel):
    """Top-level configuration for acquisition and caching."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    sources: List[SourceConfig] = Field(default_factory=list)
    per_source_timeout_ms: int = Field(default=5_000, description="Deadline per source in ms")
    cache: CacheConfig = Field(default_factory=CacheConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("sources")
    @classmethod
    def validate_unique_ids(cls, v: List[SourceConfig]) -> List[SourceConfig]:
        seen = set()
        for source in v:
            if source.id in seen:
                raise ValueError(f"duplicate source id: {source.id}")
            seen.add(source.id)
        return v

    def source_ids(self) -> List[str]:
        """Source identifiers in fallback priority order."""
        return [source.id for source in self.sources]

    def config_hash(self) -> str:
        """
        Compute deterministic SHA256 hash of config for reproducibility.

        Returns:
            Hex-encoded SHA256 hash of normalized config JSON.
        """
        normalized = json.dumps(self.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(normalized.encode()).hexdigest()


__all__ = [
    "CacheConfig",
    "HttpConfig",
    "LoggingConfig",
    "SourceConfig",
    "TelemetryConfig",
    "TierFetchConfig",
]
