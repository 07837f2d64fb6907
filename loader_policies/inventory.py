"""
Inventory policy: records -> StockLevel rows of existing product variants.

A record names a variant by ``sku`` and a location by
``stock_location_name`` or ``stock_location_id``; without either, the first
stock location is used. ``stock_on_hand`` is the absolute level to set.

Variants are never created here: UPSERT of an unknown SKU fails the record
with CREATE_FAILED. Location names resolve through a cache scoped to this
policy instance and cleared at the start of each batch, so concurrent
batches must each obtain their own instance (``LoaderRegistry.create``).
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any
from uuid import UUID

from loader_kernel.domain import (
    EntityFieldSchema,
    EntityValidationResult,
    ExistingEntityLookupResult,
    FieldDefinition,
    FieldType,
    InputRecord,
    ListQuery,
    LoaderContext,
    LoaderMetadata,
    LookupResolver,
    RequestContext,
    TargetOperation,
    ValidationBuilder,
    ValidationErrorCode,
)
from loader_kernel.domain.types import EntityId
from loader_kernel.exceptions import EntityNotFoundError
from loader_kernel.logging_config import get_logger
from loader_kernel.services.entity_service import EntityService
from loader_policies._helpers import _optional_decimal, _optional_int, _optional_str
from loader_policies.models import ProductVariant, StockLevel, StockLocation

logger = get_logger("policies.inventory")

INVENTORY_LOADER_METADATA = LoaderMetadata(
    entity_type="inventory",
    name="Inventory",
    description="Set stock on hand of existing product variants per location",
    supported_operations=(TargetOperation.UPDATE, TargetOperation.UPSERT),
    lookup_fields=("sku",),
    required_fields=("sku", "stock_on_hand"),
)

_SKU_LOOKUP = ("sku",)


class InventoryPolicy:
    """Loads stock levels. Entity type: inventory."""

    def __init__(
        self,
        variant_service: EntityService[ProductVariant] | None = None,
        location_service: EntityService[StockLocation] | None = None,
        stock_service: EntityService[StockLevel] | None = None,
    ):
        self._variant_service = variant_service or EntityService(ProductVariant, "product_variant")
        self._location_service = location_service or EntityService(StockLocation, "stock_location")
        self._stock_service = stock_service or EntityService(StockLevel, "stock_level")
        self._resolver = LookupResolver("inventory").add_filter_strategy(
            "sku", "sku", self._variant_service.find_all
        )
        self._location_cache: dict[str, UUID] = {}

    @property
    def metadata(self) -> LoaderMetadata:
        return INVENTORY_LOADER_METADATA

    def preprocess_records(self, records: list[InputRecord]) -> list[InputRecord]:
        self._location_cache.clear()
        return records

    def get_duplicate_error_message(self, record: InputRecord) -> str:
        return f'Inventory record for SKU "{record.get("sku")}" already exists'

    def find_existing(
        self,
        ctx: RequestContext,
        lookup_fields: Sequence[str],
        record: InputRecord,
    ) -> ExistingEntityLookupResult | None:
        # Stock always hangs off the variant; the SKU is the only key.
        return self._resolver.find_existing(ctx, _SKU_LOOKUP, record)

    def validate(
        self,
        ctx: RequestContext,
        record: InputRecord,
        operation: TargetOperation,
    ) -> EntityValidationResult:
        stock = record.get("stock_on_hand")
        builder = (
            ValidationBuilder()
            .require_string("sku", record.get("sku"), "Product SKU is required")
            .require_positive_number(
                "stock_on_hand", stock, "Stock on hand must be a non-negative number"
            )
        )
        builder.add_error_if(
            not builder.has_errors()
            and _optional_int(record, "stock_on_hand") != _optional_decimal(record, "stock_on_hand"),
            "stock_on_hand",
            "Stock on hand must be a whole number",
            ValidationErrorCode.INVALID_VALUE.value,
        )
        return builder.build()

    def get_field_schema(self) -> EntityFieldSchema:
        return EntityFieldSchema(
            entity_type="inventory",
            fields=(
                FieldDefinition(
                    key="sku",
                    label="Product SKU",
                    type=FieldType.STRING,
                    required=True,
                    lookupable=True,
                    description="SKU of the product variant to update",
                    example="PROD-001-BLK-M",
                ),
                FieldDefinition(
                    key="stock_on_hand",
                    label="Stock On Hand",
                    type=FieldType.NUMBER,
                    required=True,
                    description="New stock level (absolute value)",
                    example=100,
                ),
                FieldDefinition(
                    key="stock_location_name",
                    label="Stock Location Name",
                    type=FieldType.STRING,
                    description="Name of the stock location (first location if omitted)",
                    example="Main Warehouse",
                ),
                FieldDefinition(
                    key="stock_location_id",
                    label="Stock Location ID",
                    type=FieldType.ID,
                    description="ID of the stock location (alternative to name)",
                ),
                FieldDefinition(
                    key="reason",
                    label="Adjustment Reason",
                    type=FieldType.STRING,
                    example="Inventory sync from ERP",
                ),
            ),
        )

    def create_entity(self, context: LoaderContext, record: InputRecord) -> EntityId | None:
        logger.warning("inventory_variant_missing", extra={"sku": record.get("sku")})
        return None

    def update_entity(self, context: LoaderContext, entity_id: EntityId, record: InputRecord) -> None:
        location_id = self._resolve_location_id(context.ctx, record)
        stock_on_hand = _optional_int(record, "stock_on_hand")
        reason = _optional_str(record, "reason")

        level = self._stock_service.find_one_by(
            context.ctx, variant_id=_as_uuid(entity_id), stock_location_id=location_id
        )
        if level is None:
            self._stock_service.create(
                context.ctx,
                variant_id=_as_uuid(entity_id),
                stock_location_id=location_id,
                stock_on_hand=stock_on_hand,
                reason=reason,
            )
        else:
            self._stock_service.update(
                context.ctx, level.id, {"stock_on_hand": stock_on_hand, "reason": reason}
            )
        logger.info(
            "stock_level_set",
            extra={
                "sku": record.get("sku"),
                "stock_location_id": str(location_id),
                "stock_on_hand": stock_on_hand,
            },
        )

    def _resolve_location_id(self, ctx: RequestContext, record: InputRecord) -> UUID:
        """
        Raises:
            EntityNotFoundError: If the named location, the given id, or any
                location at all is missing.
        """
        location_id = _optional_str(record, "stock_location_id")
        if location_id:
            location = self._location_service.find_one(ctx, location_id)
            if location is None:
                raise EntityNotFoundError("stock_location", location_id)
            return location.id

        name = _optional_str(record, "stock_location_name")
        if name:
            cached = self._location_cache.get(name)
            if cached is not None:
                return cached
            location = self._location_service.find_one_by(ctx, name=name)
            if location is None:
                raise EntityNotFoundError("stock_location", name)
            self._location_cache[name] = location.id
            return location.id

        page = self._location_service.find_all(ctx, ListQuery(take=1))
        if not page.items:
            raise EntityNotFoundError("stock_location", "default")
        return page.items[0].id


def _as_uuid(entity_id: EntityId) -> Any:
    return UUID(entity_id) if isinstance(entity_id, str) else entity_id
