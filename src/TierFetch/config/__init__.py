"""Configuration models and loading for TierFetch."""

from TierFetch.config.loader import (
    ENV_PREFIX,
    export_config_schema,
    load_config,
    validate_config_file,
)
from TierFetch.config.models import (
    CacheConfig,
    HttpConfig,
    LoggingConfig,
    SourceConfig,
    TelemetryConfig,
    TierFetchConfig,
)

__all__ = [
    "CacheConfig",
    "ENV_PREFIX",
    "HttpConfig",
    "LoggingConfig",
    "SourceConfig",
    "TelemetryConfig",
    "TierFetchConfig",
    "export_config_schema",
    "load_config",
    "validate_config_file",
]
