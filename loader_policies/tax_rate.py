"""
Tax rate policy: records -> TaxRate rows.

Lookup order: name, id. ``value`` is a percentage between 0 and 100.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
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
    ValidationErrorCode,
    select_update_fields,
)
from loader_kernel.domain.types import CREATE_OPERATIONS, EntityId
from loader_kernel.logging_config import get_logger
from loader_kernel.services.entity_service import EntityService
from loader_policies._helpers import _bool, _optional_decimal, _optional_str, _str
from loader_policies.models import TaxRate

logger = get_logger("policies.tax_rate")

MAX_TAX_RATE = Decimal("100")

TAX_RATE_LOADER_METADATA = LoaderMetadata(
    entity_type="tax_rate",
    name="Tax Rates",
    description="Import tax rates per tax category and zone",
    supported_operations=(TargetOperation.CREATE, TargetOperation.UPDATE, TargetOperation.UPSERT),
    lookup_fields=("name", "id"),
    required_fields=("name", "value"),
)

_UPDATABLE = ("name", "value", "enabled", "tax_category_code", "zone_code")


class TaxRatePolicy:
    """Loads tax rates. Entity type: tax_rate."""

    def __init__(self, service: EntityService[TaxRate] | None = None):
        self._service = service or EntityService(TaxRate, "tax_rate")
        self._resolver = (
            LookupResolver("tax_rate")
            .add_filter_strategy("name", "name", self._service.find_all)
            .add_id_strategy(self._service.find_one)
        )

    @property
    def metadata(self) -> LoaderMetadata:
        return TAX_RATE_LOADER_METADATA

    def get_duplicate_error_message(self, record: InputRecord) -> str:
        return f'Tax rate "{record.get("name")}" already exists'

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
        builder = ValidationBuilder().require_string_for_create(
            "name", record.get("name"), operation, "Tax rate name is required"
        )
        # Value is mandatory on create, checked whenever present otherwise.
        if operation in CREATE_OPERATIONS or record.get("value") is not None:
            before = len(builder.get_errors())
            builder.require_positive_number("value", record.get("value"))
            value = _optional_decimal(record, "value")
            builder.add_error_if(
                len(builder.get_errors()) == before and value is not None and value > MAX_TAX_RATE,
                "value",
                "Tax rate value must be a number between 0 and 100",
                ValidationErrorCode.INVALID_VALUE.value,
            )
        return builder.build()

    def get_field_schema(self) -> EntityFieldSchema:
        return EntityFieldSchema(
            entity_type="tax_rate",
            fields=(
                FieldDefinition(
                    key="name",
                    label="Tax Rate Name",
                    type=FieldType.STRING,
                    required=True,
                    lookupable=True,
                    description='Display name (e.g. "Standard Rate")',
                    example="Standard Rate",
                ),
                FieldDefinition(
                    key="value",
                    label="Rate (%)",
                    type=FieldType.NUMBER,
                    required=True,
                    description="Tax rate percentage (0-100)",
                    example=20,
                ),
                FieldDefinition(key="enabled", label="Enabled", type=FieldType.BOOLEAN),
                FieldDefinition(key="tax_category_code", label="Tax Category Code", type=FieldType.STRING),
                FieldDefinition(key="zone_code", label="Zone Code", type=FieldType.STRING),
            ),
        )

    def create_entity(self, context: LoaderContext, record: InputRecord) -> EntityId | None:
        tax_rate = self._service.create(
            context.ctx,
            name=_str(record, "name"),
            value=_optional_decimal(record, "value"),
            enabled=_bool(record, "enabled", default=True),
            tax_category_code=_optional_str(record, "tax_category_code"),
            zone_code=_optional_str(record, "zone_code"),
        )
        logger.info("tax_rate_created", extra={"entity_id": str(tax_rate.id), "rate": tax_rate.value})
        return tax_rate.id

    def update_entity(self, context: LoaderContext, entity_id: EntityId, record: InputRecord) -> None:
        values: dict[str, Any] = select_update_fields(record, _UPDATABLE, context.options.update_only_fields)
        if "value" in values:
            values["value"] = _optional_decimal(values, "value")
            if values["value"] is None:
                del values["value"]
        if "enabled" in values:
            values["enabled"] = _bool(values, "enabled", default=True)
        if "name" in values:
            values["name"] = _str(values, "name")
        for key in ("tax_category_code", "zone_code"):
            if key in values:
                values[key] = _optional_str(values, key)
        self._service.update(context.ctx, entity_id, values)
