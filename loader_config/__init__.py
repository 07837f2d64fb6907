"""
loader_config -- single public entrypoint for loader settings.

Responsibility:
    ``get_active_settings()`` is the only way to obtain load defaults at
    runtime. ``build_loader_context()`` turns those defaults into the
    ``LoaderContext`` of one batch.

Architecture position:
    Configuration. Sits above ``loader_kernel``; the kernel MUST NEVER
    import from ``loader_config``.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``ConfigurationError`` -- the file is not valid YAML or has the wrong
      shape.

Audit relevance:
    Every successful ``get_active_settings()`` call emits a
    ``LOADER_CONFIG_TRACE`` log entry with the source path, version and
    checksum, tying each batch back to the settings that shaped it.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

from loader_config.loader import load_yaml_file, parse_settings
from loader_config.schema import EntityLoadDefaults, LoaderSettings, LoggingSettings
from loader_kernel.domain.types import (
    LoaderContext,
    LoaderMetadata,
    LoadOptions,
    RequestContext,
    TargetOperation,
)
from loader_kernel.exceptions import ConfigurationError
from loader_kernel.logging_config import get_logger

__all__ = [
    "CONFIG_ENV_VAR",
    "EntityLoadDefaults",
    "LoaderSettings",
    "LoggingSettings",
    "build_loader_context",
    "get_active_settings",
]

_logger = get_logger("config")

CONFIG_ENV_VAR = "ENTITY_LOADER_CONFIG"

_DEFAULT_SETTINGS_FILE = Path(__file__).parent / "sets" / "default.yaml"


def get_active_settings(path: Path | str | None = None) -> LoaderSettings:
    """The ONLY public settings entrypoint.

    Resolution order for the file: ``path``, then the ``ENTITY_LOADER_CONFIG``
    environment variable, then ``loader_config/sets/default.yaml``.

    Raises:
        FileNotFoundError: If the resolved file does not exist.
        ConfigurationError: If the file is malformed.
    """
    source = Path(path or os.environ.get(CONFIG_ENV_VAR) or _DEFAULT_SETTINGS_FILE)

    try:
        settings = parse_settings(load_yaml_file(source))
    except FileNotFoundError:
        raise
    except (yaml.YAMLError, ValueError, TypeError) as exc:
        raise ConfigurationError(str(source), str(exc)) from exc

    _logger.info(
        "LOADER_CONFIG_TRACE",
        extra={
            "trace_type": "LOADER_CONFIG_TRACE",
            "config_source": str(source),
            "config_version": settings.version,
            "checksum": settings.checksum,
            "entity_default_count": len(settings.entities),
        },
    )
    return settings


def build_loader_context(
    settings: LoaderSettings,
    ctx: RequestContext,
    entity_type: str,
    operation: TargetOperation | str,
    lookup_fields: tuple[str, ...] | list[str] | None = None,
    *,
    metadata: LoaderMetadata | None = None,
    **overrides: Any,
) -> LoaderContext:
    """Build the per-batch context from settings.

    Precedence, highest first: explicit arguments and ``overrides``
    (``dry_run``, ``skip_duplicates``, ``update_only_fields``,
    ``batch_metadata``), the entity's defaults, the global defaults. Lookup
    fields fall back to ``metadata.lookup_fields`` when neither the caller
    nor the entity defaults name any.

    Raises:
        TypeError: If ``overrides`` holds an unknown option.
    """
    unknown = set(overrides) - {"dry_run", "skip_duplicates", "update_only_fields", "batch_metadata"}
    if unknown:
        raise TypeError(f"Unknown load options: {sorted(unknown)}")

    base = settings.defaults
    entity = settings.for_entity(entity_type) or EntityLoadDefaults(entity_type=entity_type)

    def pick(name: str) -> Any:
        if overrides.get(name) is not None:
            return overrides[name]
        entity_value = getattr(entity, name, None)
        if entity_value is not None:
            return entity_value
        return getattr(base, name)

    update_only = pick("update_only_fields")
    options = LoadOptions(
        dry_run=bool(pick("dry_run")),
        skip_duplicates=bool(pick("skip_duplicates")),
        update_only_fields=tuple(update_only) if update_only is not None else None,
        batch_metadata={**base.batch_metadata, **(overrides.get("batch_metadata") or {})},
    )

    if lookup_fields is None:
        lookup_fields = entity.lookup_fields
    if lookup_fields is None:
        lookup_fields = metadata.lookup_fields if metadata is not None else ()

    return LoaderContext(
        ctx=ctx,
        operation=TargetOperation(operation),
        lookup_fields=tuple(lookup_fields),
        options=options,
    )
