"""In-memory policy used to exercise the orchestrator without a database."""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

import pytest

from loader_kernel.domain import (
    EntityFieldSchema,
    EntityValidationResult,
    ExistingEntityLookupResult,
    FieldDefinition,
    FieldType,
    InputRecord,
    ListQuery,
    LoadOptions,
    LoaderContext,
    LoaderMetadata,
    LookupResolver,
    PaginatedList,
    RequestContext,
    TargetOperation,
    ValidationBuilder,
    select_update_fields,
)

ALL_OPERATIONS = (
    TargetOperation.CREATE,
    TargetOperation.UPDATE,
    TargetOperation.UPSERT,
    TargetOperation.DELETE,
)


@dataclass
class InMemoryStore:
    rows: dict[str, dict[str, Any]] = field(default_factory=dict)
    calls: list[tuple[str, Any]] = field(default_factory=list)

    def find_all(self, ctx: RequestContext, query: ListQuery) -> PaginatedList:
        self.calls.append(("find_all", dict(query.filter)))
        matches = [
            row for row in self.rows.values()
            if all(row.get(k) == v for k, v in query.filter.items())
        ]
        page = matches[: query.take] if query.take is not None else matches
        return PaginatedList.of(page, total_items=len(matches))

    def find_one(self, ctx: RequestContext, entity_id: Any) -> dict[str, Any] | None:
        self.calls.append(("find_one", entity_id))
        return self.rows.get(entity_id)

    def add(self, **values: Any) -> dict[str, Any]:
        row = {"id": values.pop("id", None) or str(uuid4()), **values}
        self.rows[row["id"]] = row
        return row


class InMemoryPolicy:
    """Code/id/name keyed widgets without DELETE support. Hooks can be swapped per test."""

    def __init__(
        self,
        store: InMemoryStore | None = None,
        supported_operations: tuple[TargetOperation, ...] = ALL_OPERATIONS,
    ):
        self.store = store or InMemoryStore()
        self.mutations: list[tuple[str, Any]] = []
        self.create_hook: Callable[[InputRecord], Any] | None = None
        self.update_hook: Callable[[InputRecord], None] | None = None
        self._metadata = LoaderMetadata(
            entity_type="widget",
            name="Widgets",
            description="Test widgets",
            supported_operations=supported_operations,
            lookup_fields=("code", "id", "name"),
            required_fields=("code",),
        )
        self._resolver = (
            LookupResolver("widget")
            .add_filter_strategy("code", "code", self.store.find_all)
            .add_id_strategy(self.store.find_one)
            .add_filter_strategy("name", "name", self.store.find_all)
        )

    @property
    def metadata(self) -> LoaderMetadata:
        return self._metadata

    def validate(self, ctx, record, operation) -> EntityValidationResult:
        return (
            ValidationBuilder()
            .require_string_for_create("code", record.get("code"), operation, "Code is required")
            .build()
        )

    def find_existing(self, ctx, lookup_fields: Sequence[str], record) -> ExistingEntityLookupResult | None:
        return self._resolver.find_existing(ctx, lookup_fields, record)

    def create_entity(self, context: LoaderContext, record):
        self.mutations.append(("create", record.get("code")))
        if self.create_hook is not None:
            return self.create_hook(record)
        row = self.store.add(code=record.get("code"), name=record.get("name"))
        return row["id"]

    def update_entity(self, context: LoaderContext, entity_id, record) -> None:
        self.mutations.append(("update", entity_id))
        if self.update_hook is not None:
            self.update_hook(record)
        values = select_update_fields(record, ("code", "name"), context.options.update_only_fields)
        self.store.rows[entity_id].update(values)

    def get_field_schema(self) -> EntityFieldSchema:
        return EntityFieldSchema(
            entity_type="widget",
            fields=(
                FieldDefinition(key="code", label="Code", type=FieldType.STRING, required=True, lookupable=True),
                FieldDefinition(key="name", label="Name", type=FieldType.STRING, lookupable=True),
            ),
        )

    def get_duplicate_error_message(self, record) -> str:
        return f'Widget "{record.get("code")}" already exists'


class DeletablePolicy(InMemoryPolicy):
    def delete_entity(self, context: LoaderContext, entity_id) -> None:
        self.mutations.append(("delete", entity_id))
        del self.store.rows[entity_id]


@pytest.fixture
def memory_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def widget_policy(memory_store) -> DeletablePolicy:
    return DeletablePolicy(memory_store)


@pytest.fixture
def plain_context():
    """LoaderContext factory without a database session."""
    request = RequestContext(session=None, actor_id=uuid4(), correlation_id="corr-1")

    def _make(operation=TargetOperation.UPSERT, lookup_fields=("code", "id"), **options) -> LoaderContext:
        return LoaderContext(
            ctx=request,
            operation=operation,
            lookup_fields=tuple(lookup_fields),
            options=LoadOptions(**options),
        )

    return _make


@pytest.fixture
def make_policy(memory_store):
    """Build a widget policy: ``make_policy(deletable=False, supported_operations=(...))``."""

    def _make(deletable: bool = True, supported_operations=ALL_OPERATIONS) -> InMemoryPolicy:
        cls = DeletablePolicy if deletable else InMemoryPolicy
        return cls(memory_store, supported_operations=supported_operations)

    return _make
