"""Build a validated :class:`TierFetchConfig` from a file, the environment and CLI flags.

Later layers win: file, then ``TIERFETCH_*`` variables, then CLI overrides.
A double underscore in a variable name descends one level, so
``TIERFETCH_CACHE__TTL_MS=60000`` sets ``cache.ttl_ms``. Values that parse as
JSON (numbers, booleans, lists such as a whole ``TIERFETCH_SOURCES`` chain)
are used as parsed; anything else stays a string.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]
from pydantic import ValidationError

from TierFetch.config.models import TierFetchConfig
from TierFetch.errors import ConfigurationError

_LOGGER = logging.getLogger(__name__)

ENV_PREFIX = "TIERFETCH_"

# Prefixed variables read by the CLI itself (e.g. TIERFETCH_CONFIG).
_RESERVED_ENV_KEYS = frozenset({"config"})

_YAML_SUFFIXES = (".yaml", ".yml")


def _parse_text(text: str, suffix: str, path: str) -> Any:
    if suffix in _YAML_SUFFIXES:
        try:
            return yaml.safe_load(text) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc
    if suffix == ".json":
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Invalid JSON in {path}: {exc}") from exc
    raise ConfigurationError(f"Unsupported file format: {suffix}. Use .yaml or .json")


def _read_file(path: str) -> dict[str, Any]:
    """Parse a ``.yaml``/``.yml``/``.json`` file whose root must be a mapping."""
    source = Path(path)
    if not source.exists():
        raise ConfigurationError(f"Config file not found: {path}")
    try:
        text = source.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Cannot read config file {path}: {exc}") from exc

    data = _parse_text(text, source.suffix.lower(), path)
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config root must be a mapping in {path}")
    return data


def _assign_nested(data: dict[str, Any], dotted_key: str, value: Any) -> None:
    *parents, leaf = dotted_key.split(".")
    node = data
    for part in parents:
        if not isinstance(node.get(part), dict):
            node[part] = {}
        node = node[part]
    node[leaf] = value


def _coerce_env_value(value: str) -> Any:
    try:
        return json.loads(value)
    except ValueError:
        pass
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    return value


def _merge_env_overrides(data: dict[str, Any], env_prefix: str = ENV_PREFIX) -> dict[str, Any]:
    """Apply every ``env_prefix`` variable to ``data`` in sorted name order."""
    for name, raw in sorted(os.environ.items()):
        if not name.startswith(env_prefix):
            continue
        relative = name[len(env_prefix) :].lower()
        if not relative or relative in _RESERVED_ENV_KEYS:
            continue
        dotted_key = relative.replace("__", ".")
        value = _coerce_env_value(raw)
        _assign_nested(data, dotted_key, value)
        _LOGGER.debug("Environment override %s -> %s = %r", name, dotted_key, value)
    return data


def _merge_cli_overrides(
    data: dict[str, Any], cli_overrides: Mapping[str, Any] | None
) -> dict[str, Any]:
    """Deep-merge nested mappings; any other override replaces the value."""
    for key, value in (cli_overrides or {}).items():
        if isinstance(value, Mapping) and isinstance(data.get(key), dict):
            data[key] = _merge_cli_overrides(data[key], value)
        else:
            data[key] = value
        _LOGGER.debug("CLI override %s = %r", key, value)
    return data


def load_config(
    path: str | None = None,
    env_prefix: str = ENV_PREFIX,
    cli_overrides: Mapping[str, Any] | None = None,
) -> TierFetchConfig:
    """Merge the three layers and validate the result.

    Raises :class:`ConfigurationError` for unreadable files and for any
    validation failure, with pydantic's message attached.
    """
    data: dict[str, Any] = _read_file(path) if path else {}
    if path:
        _LOGGER.info("Loaded config from %s", path)

    _merge_env_overrides(data, env_prefix)
    _merge_cli_overrides(data, cli_overrides)

    try:
        config = TierFetchConfig.model_validate(data)
    except ValidationError as exc:
        _LOGGER.error("Configuration validation failed: %s", exc)
        raise ConfigurationError(str(exc)) from exc

    _LOGGER.info("Configuration ready (hash %s)", config.config_hash()[:8])
    return config


def validate_config_file(path: str) -> bool:
    load_config(path=path)
    return True


def export_config_schema() -> dict[str, Any]:
    return TierFetchConfig.model_json_schema()


__all__ = [
    "ENV_PREFIX",
    "export_config_schema",
    "load_config",
    "validate_config_file",
]
