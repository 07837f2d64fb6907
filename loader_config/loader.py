"""
Settings loader (``loader_config.loader``).

Parses the YAML settings file into ``loader_config.schema`` types. Runtime
callers go through ``loader_config.get_active_settings()``; the functions
here are the parsing steps it is built from.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong value types  -> ``ValueError`` naming the offending key.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from loader_config.schema import EntityLoadDefaults, LoaderSettings, LoggingSettings
from loader_kernel.domain.types import LoadOptions

_OPTION_KEYS = frozenset({"dry_run", "skip_duplicates", "update_only_fields", "batch_metadata"})
_ENTITY_KEYS = frozenset({"lookup_fields", "skip_duplicates", "dry_run", "update_only_fields"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Top level of {path} must be a mapping, got {type(data).__name__}")
    return data


def _bool(data: Mapping[str, Any], key: str, default: bool | None) -> bool | None:
    value = data.get(key, default)
    if value is None or isinstance(value, bool):
        return value
    raise ValueError(f"'{key}' must be true or false, got {value!r}")


def _str_tuple(data: Mapping[str, Any], key: str) -> tuple[str, ...] | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ValueError(f"'{key}' must be a list of field names, got {value!r}")
    if not all(isinstance(item, str) and item for item in value):
        raise ValueError(f"'{key}' entries must be non-empty strings")
    return tuple(value)


def _check_keys(data: Mapping[str, Any], allowed: frozenset[str], where: str) -> None:
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ValueError(f"Unknown keys in {where}: {unknown}")


def parse_load_options(data: Mapping[str, Any]) -> LoadOptions:
    """Parse the global ``defaults`` section."""
    _check_keys(data, _OPTION_KEYS, "defaults")
    batch_metadata = data.get("batch_metadata") or {}
    if not isinstance(batch_metadata, dict):
        raise ValueError("'batch_metadata' must be a mapping")
    return LoadOptions(
        dry_run=bool(_bool(data, "dry_run", False)),
        skip_duplicates=bool(_bool(data, "skip_duplicates", False)),
        update_only_fields=_str_tuple(data, "update_only_fields"),
        batch_metadata=dict(batch_metadata),
    )


def parse_entity_defaults(entity_type: str, data: Mapping[str, Any] | None) -> EntityLoadDefaults:
    """Parse one entry of the ``entities`` section."""
    data = data or {}
    if not isinstance(data, Mapping):
        raise ValueError(f"entities.{entity_type} must be a mapping")
    _check_keys(data, _ENTITY_KEYS, f"entities.{entity_type}")
    return EntityLoadDefaults(
        entity_type=entity_type,
        lookup_fields=_str_tuple(data, "lookup_fields"),
        skip_duplicates=_bool(data, "skip_duplicates", None),
        dry_run=_bool(data, "dry_run", None),
        update_only_fields=_str_tuple(data, "update_only_fields"),
    )


def parse_logging(data: Mapping[str, Any] | None) -> LoggingSettings:
    data = data or {}
    level = str(data.get("level", "INFO")).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(f"Unknown logging level {level!r}")
    return LoggingSettings(level=level)


def parse_settings(data: Mapping[str, Any]) -> LoaderSettings:
    """
    Parse the whole settings document.

    Postconditions:
        - Returns a frozen ``LoaderSettings`` carrying the checksum of ``data``.
    Raises:
        ValueError: if any section has the wrong shape.
    """
    version = data.get("version", 1)
    if not isinstance(version, int) or isinstance(version, bool):
        raise ValueError(f"'version' must be an integer, got {version!r}")

    entities_raw = data.get("entities") or {}
    if not isinstance(entities_raw, Mapping):
        raise ValueError("'entities' must be a mapping of entity_type to defaults")

    return LoaderSettings(
        version=version,
        defaults=parse_load_options(data.get("defaults") or {}),
        entities=tuple(
            parse_entity_defaults(str(entity_type), entry)
            for entity_type, entry in entities_raw.items()
        ),
        logging=parse_logging(data.get("logging")),
        checksum=compute_checksum(dict(data)),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization; deterministic for equal data."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
