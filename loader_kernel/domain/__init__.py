"""Pure functional core of the loader kernel: types, validation, lookup. ZERO I/O."""

from loader_kernel.domain.errors import ValidationErrorCode, is_recoverable_error
from loader_kernel.domain.field_schema import EntityFieldSchema, FieldDefinition, FieldType
from loader_kernel.domain.lookup import LookupResolver, LookupStrategy, entity_id_of
from loader_kernel.domain.types import (
    EntityLoadResult,
    EntityValidationResult,
    ExistingEntityLookupResult,
    InputRecord,
    ListQuery,
    LoaderContext,
    LoaderMetadata,
    LoaderValidationError,
    LoaderValidationWarning,
    LoadOptions,
    PaginatedList,
    RecordLoadError,
    RequestContext,
    TargetOperation,
)
from loader_kernel.domain.updates import select_update_fields, should_update_field
from loader_kernel.domain.validation import (
    ValidationBuilder,
    create_validation_result,
    is_valid_email,
)

__all__ = [
    "EntityFieldSchema",
    "EntityLoadResult",
    "EntityValidationResult",
    "ExistingEntityLookupResult",
    "FieldDefinition",
    "FieldType",
    "InputRecord",
    "ListQuery",
    "LoadOptions",
    "LoaderContext",
    "LoaderMetadata",
    "LoaderValidationError",
    "LoaderValidationWarning",
    "LookupResolver",
    "LookupStrategy",
    "PaginatedList",
    "RecordLoadError",
    "RequestContext",
    "TargetOperation",
    "ValidationBuilder",
    "ValidationErrorCode",
    "create_validation_result",
    "entity_id_of",
    "is_recoverable_error",
    "is_valid_email",
    "select_update_fields",
    "should_update_field",
]
