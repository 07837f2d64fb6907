"""
loader_kernel.domain.types -- Pure frozen dataclasses for the load engine.

ZERO I/O. The session on RequestContext is carried, never used, here.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

InputRecord = Mapping[str, Any]
EntityId = UUID | int | str


# =============================================================================
# Operations
# =============================================================================


class TargetOperation(str, Enum):
    """What a batch does with each record. Immutable per load call."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    UPSERT = "UPSERT"
    DELETE = "DELETE"


CREATE_OPERATIONS: frozenset[TargetOperation] = frozenset(
    {TargetOperation.CREATE, TargetOperation.UPSERT}
)


# =============================================================================
# Loader descriptor
# =============================================================================


@dataclass(frozen=True)
class LoaderMetadata:
    """Static descriptor of one entity-type policy. Read-only to the engine."""

    entity_type: str
    name: str
    description: str
    supported_operations: tuple[TargetOperation, ...]
    lookup_fields: tuple[str, ...] = ()
    required_fields: tuple[str, ...] = ()


# =============================================================================
# Per-batch context
# =============================================================================


@dataclass(frozen=True)
class RequestContext:
    """Ambient request context: the session every hook reads and writes through."""

    session: Session
    actor_id: UUID
    channel: str | None = None
    correlation_id: str | None = None


@dataclass(frozen=True)
class LoadOptions:
    """Options bag for one batch."""

    dry_run: bool = False
    skip_duplicates: bool = False
    update_only_fields: tuple[str, ...] | None = None
    batch_metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class LoaderContext:
    """Everything a load() call needs besides the records. Read-only during the run."""

    ctx: RequestContext
    operation: TargetOperation
    lookup_fields: tuple[str, ...] = ()
    options: LoadOptions = field(default_factory=LoadOptions)

    @property
    def dry_run(self) -> bool:
        return self.options.dry_run


# =============================================================================
# Lookup
# =============================================================================


@dataclass(frozen=True)
class ExistingEntityLookupResult:
    """A match found by a lookup strategy. Transient, never persisted."""

    id: EntityId
    entity: Any


@dataclass(frozen=True)
class ListQuery:
    """Filtered list request passed to a lookup fetch function."""

    filter: dict[str, Any] = field(default_factory=dict)
    take: int | None = None
    skip: int = 0


@dataclass(frozen=True)
class PaginatedList:
    """One page of results from the persistence collaborator."""

    items: tuple[Any, ...] = ()
    total_items: int = 0

    @classmethod
    def of(cls, items: Sequence[Any], total_items: int | None = None) -> PaginatedList:
        return cls(
            items=tuple(items),
            total_items=len(items) if total_items is None else total_items,
        )


# =============================================================================
# Validation
# =============================================================================


@dataclass(frozen=True)
class LoaderValidationError:
    """Single field-level validation error."""

    field: str
    message: str
    code: str | None = None


@dataclass(frozen=True)
class LoaderValidationWarning:
    """Single field-level warning. Never affects validity."""

    field: str
    message: str


@dataclass(frozen=True)
class EntityValidationResult:
    """Outcome of validating one record."""

    valid: bool
    errors: tuple[LoaderValidationError, ...] = ()
    warnings: tuple[LoaderValidationWarning, ...] = ()

    def __bool__(self) -> bool:
        return self.valid


# =============================================================================
# Load result
# =============================================================================


@dataclass(frozen=True)
class RecordLoadError:
    """Why one record of a batch was not loaded."""

    record: InputRecord
    message: str
    code: str | None = None
    recoverable: bool = False
    details: tuple[LoaderValidationError, ...] = ()


@dataclass(frozen=True)
class EntityLoadResult:
    """Batch-level aggregate handed back by load(). Never mutated afterward."""

    succeeded: int = 0
    failed: int = 0
    created: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0
    errors: tuple[RecordLoadError, ...] = ()
    affected_ids: tuple[EntityId, ...] = ()

    @property
    def total(self) -> int:
        return self.succeeded + self.failed + self.skipped
