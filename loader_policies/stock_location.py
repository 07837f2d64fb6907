"""Stock location policy: records -> StockLocation rows. Lookup order: name, id."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from loader_kernel.domain import (
    EntityFieldSchema,
    EntityValidationResult,
    ExistingEntityLookupResult,
    FieldDefinition,
    FieldType,
    InputRecord,
    LoaderContext,
    LoaderMetadata,
    LookupResolver,
    RequestContext,
    TargetOperation,
    ValidationBuilder,
    select_update_fields,
)
from loader_kernel.domain.types import EntityId
from loader_kernel.services.entity_service import EntityService
from loader_policies._helpers import _optional_str, _str
from loader_policies.models import StockLocation

STOCK_LOCATION_LOADER_METADATA = LoaderMetadata(
    entity_type="stock_location",
    name="Stock Locations",
    description="Import warehouses and other places stock is held",
    supported_operations=(TargetOperation.CREATE, TargetOperation.UPDATE, TargetOperation.UPSERT),
    lookup_fields=("name", "id"),
    required_fields=("name",),
)


class StockLocationPolicy:
    def __init__(self, service: EntityService[StockLocation] | None = None):
        self._service = service or EntityService(StockLocation, "stock_location")
        self._resolver = (
            LookupResolver("stock_location")
            .add_filter_strategy("name", "name", self._service.find_all)
            .add_id_strategy(self._service.find_one)
        )

    @property
    def metadata(self) -> LoaderMetadata:
        return STOCK_LOCATION_LOADER_METADATA

    def get_duplicate_error_message(self, record: InputRecord) -> str:
        return f'Stock location "{record.get("name")}" already exists'

    def find_existing(
        self,
        ctx: RequestContext,
        lookup_fields: Sequence[str],
        record: InputRecord,
    ) -> ExistingEntityLookupResult | None:
        return self._resolver.find_existing(ctx, lookup_fields, record)

    def validate(
        self,
        ctx: RequestContext,
        record: InputRecord,
        operation: TargetOperation,
    ) -> EntityValidationResult:
        return (
            ValidationBuilder()
            .require_string_for_create("name", record.get("name"), operation, "Stock location name is required")
            .build()
        )

    def get_field_schema(self) -> EntityFieldSchema:
        return EntityFieldSchema(
            entity_type="stock_location",
            fields=(
                FieldDefinition(
                    key="name",
                    label="Location Name",
                    type=FieldType.STRING,
                    required=True,
                    lookupable=True,
                    example="Main Warehouse",
                ),
                FieldDefinition(key="description", label="Description", type=FieldType.STRING),
            ),
        )

    def create_entity(self, context: LoaderContext, record: InputRecord) -> EntityId | None:
        location = self._service.create(
            context.ctx,
            name=_str(record, "name"),
            description=_optional_str(record, "description"),
        )
        return location.id

    def update_entity(self, context: LoaderContext, entity_id: EntityId, record: InputRecord) -> None:
        values: dict[str, Any] = select_update_fields(
            record, ("name", "description"), context.options.update_only_fields
        )
        if "name" in values:
            values["name"] = _str(values, "name")
        if "description" in values:
            values["description"] = _optional_str(values, "description")
        self._service.update(context.ctx, entity_id, values)
