"""
LookupResolver -- ordered, declarative strategies for finding an existing entity.

Each policy configures one resolver at construction time::

    resolver = (
        LookupResolver("facet")
        .add_filter_strategy("code", "code", service.find_all)
        .add_id_strategy(service.find_one)
        .add_filter_strategy("name", "name", service.find_all)
    )

Invariants:
    - Strategies run in registration order; the first match wins and no later
      strategy runs.
    - A filter strategy takes the first item of the page it gets back. More
      than one match is not an error: the first is treated as canonical.
    - Strategies only read. They never mutate the record or the context.
    - String values are trimmed before matching; a blank value never triggers
      a strategy.
"""

from __future__ import annotations

from collections.abc import Callable, Collection, Mapping
from dataclasses import dataclass
from typing import Any

from loader_kernel.domain.types import (
    EntityId,
    ExistingEntityLookupResult,
    InputRecord,
    ListQuery,
    PaginatedList,
    RequestContext,
)
from loader_kernel.logging_config import get_logger

logger = get_logger("domain.lookup")

FetchFn = Callable[[RequestContext, ListQuery], PaginatedList]
FetchByIdFn = Callable[[RequestContext, EntityId], Any]

ID_FIELD = "id"


def lookup_value(value: Any) -> Any:
    """Strings are matched trimmed, the form policies store natural keys in."""
    return value.strip() if isinstance(value, str) else value


def entity_id_of(entity: Any) -> EntityId:
    """Read the identifier from an ORM object or a mapping."""
    if isinstance(entity, Mapping):
        return entity[ID_FIELD]
    return getattr(entity, ID_FIELD)


@dataclass(frozen=True)
class LookupStrategy:
    """One named rule: if ``trigger_field`` is requested and present, run ``resolve``."""

    name: str
    trigger_field: str
    resolve: Callable[[RequestContext, Any], ExistingEntityLookupResult | None]

    def applies(self, lookup_fields: Collection[str], record: InputRecord) -> bool:
        return self.trigger_field in lookup_fields and bool(lookup_value(record.get(self.trigger_field)))


class LookupResolver:
    """Holds the ordered lookup strategies of one entity type."""

    def __init__(self, entity_type: str = "") -> None:
        self._entity_type = entity_type
        self._strategies: list[LookupStrategy] = []

    @property
    def strategy_names(self) -> tuple[str, ...]:
        return tuple(s.name for s in self._strategies)

    def add_filter_strategy(
        self,
        trigger_field: str,
        filter_field: str,
        fetch: FetchFn,
    ) -> LookupResolver:
        """Match on ``filter_field == record[trigger_field]``; first item of the page wins."""

        def _resolve(ctx: RequestContext, value: Any) -> ExistingEntityLookupResult | None:
            page = fetch(ctx, ListQuery(filter={filter_field: value}, take=1))
            if not page.items:
                return None
            first = page.items[0]
            return ExistingEntityLookupResult(id=entity_id_of(first), entity=first)

        self._strategies.append(
            LookupStrategy(name=f"by_{trigger_field}", trigger_field=trigger_field, resolve=_resolve)
        )
        return self

    def add_id_strategy(self, fetch_by_id: FetchByIdFn) -> LookupResolver:
        """Match on the record's own ``id`` when ``"id"`` is a requested lookup field."""

        def _resolve(ctx: RequestContext, value: Any) -> ExistingEntityLookupResult | None:
            entity = fetch_by_id(ctx, value)
            if entity is None:
                return None
            return ExistingEntityLookupResult(id=entity_id_of(entity), entity=entity)

        self._strategies.append(LookupStrategy(name="by_id", trigger_field=ID_FIELD, resolve=_resolve))
        return self

    def find_existing(
        self,
        ctx: RequestContext,
        lookup_fields: Collection[str],
        record: InputRecord,
    ) -> ExistingEntityLookupResult | None:
        for strategy in self._strategies:
            if not strategy.applies(lookup_fields, record):
                continue
            match = strategy.resolve(ctx, lookup_value(record[strategy.trigger_field]))
            if match is not None:
                logger.debug(
                    "existing_entity_matched",
                    extra={
                        "lookup_entity_type": self._entity_type,
                        "strategy": strategy.name,
                        "entity_id": str(match.id),
                    },
                )
                return match
        return None
