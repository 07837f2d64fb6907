"""
Customer group policy: records -> CustomerGroup rows.

Lookup order: name, id. ``customer_emails`` adds existing customers to the
group; malformed addresses are warnings, unknown customers are logged.
Supports DELETE.
"""

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
    is_valid_email,
    select_update_fields,
    should_update_field,
)
from loader_kernel.domain.types import EntityId
from loader_kernel.logging_config import get_logger
from loader_kernel.services.entity_service import EntityService
from loader_policies._helpers import _str, _str_list
from loader_policies.models import Customer, CustomerGroup

logger = get_logger("policies.customer_group")

CUSTOMER_GROUP_LOADER_METADATA = LoaderMetadata(
    entity_type="customer_group",
    name="Customer Groups",
    description="Import customer groups and their members",
    supported_operations=(
        TargetOperation.CREATE,
        TargetOperation.UPDATE,
        TargetOperation.UPSERT,
        TargetOperation.DELETE,
    ),
    lookup_fields=("name", "id"),
    required_fields=("name",),
)

_UPDATABLE = ("name", "custom_fields")


class CustomerGroupPolicy:
    """Loads customer groups. Entity type: customer_group."""

    def __init__(
        self,
        service: EntityService[CustomerGroup] | None = None,
        customer_service: EntityService[Customer] | None = None,
    ):
        self._service = service or EntityService(CustomerGroup, "customer_group")
        self._customer_service = customer_service or EntityService(Customer, "customer")
        self._resolver = (
            LookupResolver("customer_group")
            .add_filter_strategy("name", "name", self._service.find_all)
            .add_id_strategy(self._service.find_one)
        )

    @property
    def metadata(self) -> LoaderMetadata:
        return CUSTOMER_GROUP_LOADER_METADATA

    def get_duplicate_error_message(self, record: InputRecord) -> str:
        return f'Customer group "{record.get("name")}" already exists'

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
            "name", record.get("name"), operation, "Customer group name is required"
        )
        emails = record.get("customer_emails")
        if isinstance(emails, Sequence) and not isinstance(emails, str):
            for index, email in enumerate(emails):
                builder.add_warning_if(
                    not is_valid_email(email),
                    f"customer_emails[{index}]",
                    f"Invalid email format: {email}",
                )
        return builder.build()

    def get_field_schema(self) -> EntityFieldSchema:
        return EntityFieldSchema(
            entity_type="customer_group",
            fields=(
                FieldDefinition(
                    key="name",
                    label="Group Name",
                    type=FieldType.STRING,
                    required=True,
                    lookupable=True,
                    description="Unique name for the customer group",
                    example="VIP Customers",
                ),
                FieldDefinition(
                    key="customer_emails",
                    label="Customer Emails",
                    type=FieldType.ARRAY,
                    description="Email addresses of customers to add to this group",
                    example=["john@example.com", "jane@example.com"],
                ),
                FieldDefinition(key="custom_fields", label="Custom Fields", type=FieldType.OBJECT),
            ),
        )

    def create_entity(self, context: LoaderContext, record: InputRecord) -> EntityId | None:
        group = self._service.create(
            context.ctx,
            name=_str(record, "name"),
            custom_fields=record.get("custom_fields"),
        )
        self._add_members(context, group, _str_list(record, "customer_emails"))
        logger.info("customer_group_created", extra={"entity_id": str(group.id)})
        return group.id

    def update_entity(self, context: LoaderContext, entity_id: EntityId, record: InputRecord) -> None:
        update_only = context.options.update_only_fields
        values: dict[str, Any] = select_update_fields(record, _UPDATABLE, update_only)
        if "name" in values:
            values["name"] = _str(values, "name")
        group = self._service.update(context.ctx, entity_id, values)

        if "customer_emails" in record and should_update_field("customer_emails", update_only):
            self._add_members(context, group, _str_list(record, "customer_emails"))
        logger.debug("customer_group_updated", extra={"entity_id": str(entity_id), "fields": sorted(values)})

    def delete_entity(self, context: LoaderContext, entity_id: EntityId) -> None:
        self._service.delete(context.ctx, entity_id)
        logger.info("customer_group_deleted", extra={"entity_id": str(entity_id)})

    def _add_members(self, context: LoaderContext, group: CustomerGroup, emails: list[str]) -> None:
        for email in emails:
            if not is_valid_email(email):
                continue
            customer = self._customer_service.find_one_by(context.ctx, email_address=email)
            if customer is None:
                logger.warning("customer_not_found", extra={"email_address": email})
                continue
            if customer not in group.customers:
                group.customers.append(customer)
        if emails:
            context.ctx.session.flush()
