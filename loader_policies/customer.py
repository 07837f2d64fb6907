"""
Customer policy: records -> Customer rows.

Lookup order: email_address, id. ``group_names`` attaches the customer to
existing customer groups; unknown group names are logged and ignored.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
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
    is_valid_email,
    select_update_fields,
    should_update_field,
)
from loader_kernel.domain.types import CREATE_OPERATIONS, EntityId
from loader_kernel.logging_config import get_logger
from loader_kernel.services.entity_service import EntityService
from loader_policies._helpers import _optional_str, _str, _str_list
from loader_policies.models import Customer, CustomerGroup

logger = get_logger("policies.customer")

CUSTOMER_LOADER_METADATA = LoaderMetadata(
    entity_type="customer",
    name="Customers",
    description="Import customer accounts with addresses and group memberships",
    supported_operations=(TargetOperation.CREATE, TargetOperation.UPDATE, TargetOperation.UPSERT),
    lookup_fields=("email_address", "id"),
    required_fields=("email_address", "first_name", "last_name"),
)

_UPDATABLE = ("first_name", "last_name", "phone_number", "title", "custom_fields")

_ADDRESS_KEYS = (
    "full_name",
    "street_line1",
    "street_line2",
    "city",
    "province",
    "postal_code",
    "country_code",
    "phone_number",
    "default_shipping_address",
    "default_billing_address",
)


def _normalize_addresses(addresses: Any) -> list[dict[str, Any]]:
    if not addresses:
        return []
    return [
        {key: address[key] for key in _ADDRESS_KEYS if address.get(key) is not None}
        for address in addresses
        if isinstance(address, Mapping)
    ]


class CustomerPolicy:
    """Loads customers. Entity type: customer."""

    def __init__(
        self,
        service: EntityService[Customer] | None = None,
        group_service: EntityService[CustomerGroup] | None = None,
    ):
        self._service = service or EntityService(Customer, "customer")
        self._group_service = group_service or EntityService(CustomerGroup, "customer_group")
        self._resolver = (
            LookupResolver("customer")
            .add_filter_strategy("email_address", "email_address", self._service.find_all)
            .add_id_strategy(self._service.find_one)
        )

    @property
    def metadata(self) -> LoaderMetadata:
        return CUSTOMER_LOADER_METADATA

    def get_duplicate_error_message(self, record: InputRecord) -> str:
        return f'Customer with email "{record.get("email_address")}" already exists'

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
        email = record.get("email_address")
        builder = (
            ValidationBuilder()
            .require_email_for_create("email_address", email, operation)
            .require_string_for_create("first_name", record.get("first_name"), operation, "First name is required")
            .require_string_for_create("last_name", record.get("last_name"), operation, "Last name is required")
        )
        # Updates may still carry an email for lookup; it must be well formed.
        builder.add_error_if(
            operation not in CREATE_OPERATIONS and email not in (None, "") and not is_valid_email(email),
            "email_address",
            "Invalid email format",
            ValidationErrorCode.INVALID_FORMAT.value,
        )

        addresses = record.get("addresses")
        if isinstance(addresses, Sequence) and not isinstance(addresses, str):
            for index, address in enumerate(addresses):
                if not isinstance(address, Mapping):
                    builder.add_error(
                        f"addresses[{index}]",
                        "Address must be an object",
                        ValidationErrorCode.INVALID_FORMAT.value,
                    )
                    continue
                builder.validate_address(address, f"addresses[{index}]")

        builder.add_warning_if(
            operation in CREATE_OPERATIONS and not record.get("phone_number"),
            "phone_number",
            "No phone number provided",
        )
        return builder.build()

    def get_field_schema(self) -> EntityFieldSchema:
        address_fields = (
            FieldDefinition(key="full_name", label="Full Name", type=FieldType.STRING),
            FieldDefinition(key="street_line1", label="Street Line 1", type=FieldType.STRING, required=True),
            FieldDefinition(key="street_line2", label="Street Line 2", type=FieldType.STRING),
            FieldDefinition(key="city", label="City", type=FieldType.STRING, required=True),
            FieldDefinition(key="province", label="Province/State", type=FieldType.STRING),
            FieldDefinition(key="postal_code", label="Postal Code", type=FieldType.STRING, required=True),
            FieldDefinition(key="country_code", label="Country Code", type=FieldType.STRING, required=True),
            FieldDefinition(key="phone_number", label="Phone Number", type=FieldType.STRING),
            FieldDefinition(key="default_shipping_address", label="Default Shipping", type=FieldType.BOOLEAN),
            FieldDefinition(key="default_billing_address", label="Default Billing", type=FieldType.BOOLEAN),
        )
        return EntityFieldSchema(
            entity_type="customer",
            fields=(
                FieldDefinition(
                    key="email_address",
                    label="Email Address",
                    type=FieldType.STRING,
                    required=True,
                    lookupable=True,
                    description="Unique email address",
                    example="john.doe@example.com",
                ),
                FieldDefinition(key="first_name", label="First Name", type=FieldType.STRING, required=True),
                FieldDefinition(key="last_name", label="Last Name", type=FieldType.STRING, required=True),
                FieldDefinition(key="phone_number", label="Phone Number", type=FieldType.STRING),
                FieldDefinition(key="title", label="Title", type=FieldType.STRING, description="Mr, Mrs, etc."),
                FieldDefinition(
                    key="group_names",
                    label="Customer Groups",
                    type=FieldType.ARRAY,
                    description="Names of existing customer groups to join",
                    example=["VIP", "Wholesale"],
                ),
                FieldDefinition(
                    key="addresses",
                    label="Addresses",
                    type=FieldType.ARRAY,
                    description="Postal addresses",
                    children=address_fields,
                ),
                FieldDefinition(key="custom_fields", label="Custom Fields", type=FieldType.OBJECT),
            ),
        )

    def create_entity(self, context: LoaderContext, record: InputRecord) -> EntityId | None:
        customer = self._service.create(
            context.ctx,
            email_address=_str(record, "email_address"),
            first_name=_str(record, "first_name"),
            last_name=_str(record, "last_name"),
            phone_number=_optional_str(record, "phone_number"),
            title=_optional_str(record, "title"),
            addresses=_normalize_addresses(record.get("addresses")) or None,
            custom_fields=record.get("custom_fields"),
        )
        self._assign_groups(context, customer, _str_list(record, "group_names"))
        logger.info("customer_created", extra={"entity_id": str(customer.id)})
        return customer.id

    def update_entity(self, context: LoaderContext, entity_id: EntityId, record: InputRecord) -> None:
        update_only = context.options.update_only_fields
        values: dict[str, Any] = select_update_fields(record, _UPDATABLE, update_only)
        for key in ("first_name", "last_name"):
            if key in values:
                values[key] = _str(values, key)
        for key in ("phone_number", "title"):
            if key in values:
                values[key] = _optional_str(values, key)
        if "addresses" in record and should_update_field("addresses", update_only):
            values["addresses"] = _normalize_addresses(record.get("addresses")) or None
        customer = self._service.update(context.ctx, entity_id, values)

        if "group_names" in record and should_update_field("group_names", update_only):
            self._assign_groups(context, customer, _str_list(record, "group_names"))
        logger.debug("customer_updated", extra={"entity_id": str(entity_id), "fields": sorted(values)})

    def _assign_groups(self, context: LoaderContext, customer: Customer, group_names: list[str]) -> None:
        for group_name in group_names:
            group = self._group_service.find_one_by(context.ctx, name=group_name)
            if group is None:
                logger.warning("customer_group_not_found", extra={"group_name": group_name})
                continue
            if group not in customer.groups:
                customer.groups.append(group)
        if group_names:
            context.ctx.session.flush()
