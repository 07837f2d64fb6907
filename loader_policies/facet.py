"""
Facet policy: records -> Facet rows.

Lookup order: code, id, name. Codes are restricted to letters, digits,
hyphens and underscores on create.
"""

from __future__ import annotations

import re
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
    ValidationErrorCode,
    select_update_fields,
)
from loader_kernel.domain.types import CREATE_OPERATIONS, EntityId
from loader_kernel.logging_config import get_logger
from loader_kernel.services.entity_service import EntityService
from loader_policies._helpers import _bool, _str
from loader_policies.models import Facet

logger = get_logger("policies.facet")

FACET_CODE_RE = re.compile(r"^[a-z0-9_-]+$", re.IGNORECASE)

FACET_LOADER_METADATA = LoaderMetadata(
    entity_type="facet",
    name="Facets",
    description="Import facets used to filter and group products",
    supported_operations=(TargetOperation.CREATE, TargetOperation.UPDATE, TargetOperation.UPSERT),
    lookup_fields=("code", "id", "name"),
    required_fields=("name", "code"),
)

_UPDATABLE = ("code", "name", "is_private", "custom_fields")


class FacetPolicy:
    """Loads facets. Entity type: facet."""

    def __init__(self, service: EntityService[Facet] | None = None):
        self._service = service or EntityService(Facet, "facet")
        self._resolver = (
            LookupResolver("facet")
            .add_filter_strategy("code", "code", self._service.find_all)
            .add_id_strategy(self._service.find_one)
            .add_filter_strategy("name", "name", self._service.find_all)
        )

    @property
    def metadata(self) -> LoaderMetadata:
        return FACET_LOADER_METADATA

    def get_duplicate_error_message(self, record: InputRecord) -> str:
        return f'Facet with code "{record.get("code")}" already exists'

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
        code = record.get("code")
        builder = (
            ValidationBuilder()
            .require_string_for_create("name", record.get("name"), operation, "Facet name is required")
            .require_string_for_create("code", code, operation, "Facet code is required")
        )
        builder.add_error_if(
            operation in CREATE_OPERATIONS
            and isinstance(code, str)
            and code.strip() != ""
            and FACET_CODE_RE.match(code) is None,
            "code",
            "Code must contain only letters, numbers, hyphens, and underscores",
            ValidationErrorCode.INVALID_FORMAT.value,
        )
        return builder.build()

    def get_field_schema(self) -> EntityFieldSchema:
        return EntityFieldSchema(
            entity_type="facet",
            fields=(
                FieldDefinition(
                    key="name",
                    label="Facet Name",
                    type=FieldType.STRING,
                    required=True,
                    translatable=True,
                    description='Display name for the facet (e.g. "Color", "Brand")',
                    example="Color",
                ),
                FieldDefinition(
                    key="code",
                    label="Code",
                    type=FieldType.STRING,
                    required=True,
                    lookupable=True,
                    description="Unique identifier code (letters, digits, - and _)",
                    example="color",
                ),
                FieldDefinition(
                    key="is_private",
                    label="Private",
                    type=FieldType.BOOLEAN,
                    description="If true, the facet is not visible to customers",
                ),
                FieldDefinition(
                    key="custom_fields",
                    label="Custom Fields",
                    type=FieldType.OBJECT,
                    description="Custom field values",
                ),
            ),
        )

    def create_entity(self, context: LoaderContext, record: InputRecord) -> EntityId | None:
        facet = self._service.create(
            context.ctx,
            code=_str(record, "code"),
            name=_str(record, "name"),
            is_private=_bool(record, "is_private"),
            custom_fields=record.get("custom_fields"),
        )
        logger.info("facet_created", extra={"code": facet.code, "entity_id": str(facet.id)})
        return facet.id

    def update_entity(self, context: LoaderContext, entity_id: EntityId, record: InputRecord) -> None:
        values: dict[str, Any] = select_update_fields(record, _UPDATABLE, context.options.update_only_fields)
        if "is_private" in values:
            values["is_private"] = _bool(values, "is_private")
        for key in ("code", "name"):
            if key in values:
                values[key] = _str(values, key)
        self._service.update(context.ctx, entity_id, values)
        logger.debug("facet_updated", extra={"entity_id": str(entity_id), "fields": sorted(values)})
