"""
Loader settings schema.

Typed, frozen view of the YAML settings file. The loader parses YAML into
these types; ``build_loader_context`` turns them into a per-batch
``LoaderContext``.

A ``None`` field on ``EntityLoadDefaults`` means "not set here": the global
defaults apply.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from loader_kernel.domain.types import LoadOptions

# ---------------------------------------------------------------------------
# Per-entity defaults
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EntityLoadDefaults:
    """Defaults for every batch of one entity type."""

    entity_type: str
    lookup_fields: tuple[str, ...] | None = None
    skip_duplicates: bool | None = None
    dry_run: bool | None = None
    update_only_fields: tuple[str, ...] | None = None


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"

    @property
    def numeric_level(self) -> int:
        return logging.getLevelName(self.level.upper())


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoaderSettings:
    """Root settings object returned by ``get_active_settings()``."""

    version: int = 1
    defaults: LoadOptions = field(default_factory=LoadOptions)
    entities: tuple[EntityLoadDefaults, ...] = ()
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    checksum: str = ""

    def for_entity(self, entity_type: str) -> EntityLoadDefaults | None:
        for entry in self.entities:
            if entry.entity_type == entity_type:
                return entry
        return None
