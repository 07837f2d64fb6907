"""
Fluent validation builder for per-record loader validation.

One builder per validate() call. Each rule appends zero or more field errors;
warnings accumulate separately and never affect validity. Rules with a
``_for_create`` suffix only fire for CREATE and UPSERT, so a partial UPDATE
never fails a required-field check for a field it does not touch.

Usage::

    return (
        ValidationBuilder()
        .require_string_for_create("name", record.get("name"), operation)
        .require_email_for_create("email_address", record.get("email_address"), operation)
        .add_warning_if(not record.get("phone_number"), "phone_number", "No phone number")
        .build()
    )
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from decimal import Decimal, InvalidOperation
from typing import Any, TypeVar

from loader_kernel.domain.errors import ValidationErrorCode
from loader_kernel.domain.types import (
    CREATE_OPERATIONS,
    EntityValidationResult,
    LoaderValidationError,
    LoaderValidationWarning,
    TargetOperation,
)

T = TypeVar("T")

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

_ADDRESS_REQUIRED: tuple[tuple[str, str], ...] = (
    ("street_line1", "Street line 1 is required"),
    ("city", "City is required"),
    ("postal_code", "Postal code is required"),
    ("country_code", "Country code is required"),
)


def is_valid_email(value: Any) -> bool:
    """True when value is a string shaped like local@domain.tld."""
    return isinstance(value, str) and _EMAIL_RE.match(value.strip()) is not None


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or value.strip() == ""


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


class ValidationBuilder:
    """Accumulates field errors and warnings, then builds an EntityValidationResult."""

    def __init__(self) -> None:
        self._errors: list[LoaderValidationError] = []
        self._warnings: list[LoaderValidationWarning] = []

    # -------------------------------------------------------------------------
    # Generic
    # -------------------------------------------------------------------------

    def add_error(self, field: str, message: str, code: str | None = None) -> ValidationBuilder:
        self._errors.append(LoaderValidationError(field=field, message=message, code=code))
        return self

    def add_warning(self, field: str, message: str) -> ValidationBuilder:
        self._warnings.append(LoaderValidationWarning(field=field, message=message))
        return self

    def add_error_if(
        self,
        condition: bool,
        field: str,
        message: str,
        code: str | None = None,
    ) -> ValidationBuilder:
        if condition:
            self.add_error(field, message, code)
        return self

    def add_warning_if(self, condition: bool, field: str, message: str) -> ValidationBuilder:
        if condition:
            self.add_warning(field, message)
        return self

    # -------------------------------------------------------------------------
    # Required values
    # -------------------------------------------------------------------------

    def require_string(self, field: str, value: Any, message: str | None = None) -> ValidationBuilder:
        """Require a non-empty, non-blank string."""
        if _is_blank(value):
            self.add_error(field, message or f"{field} is required", ValidationErrorCode.REQUIRED.value)
        return self

    def require_string_for_create(
        self,
        field: str,
        value: Any,
        operation: TargetOperation,
        message: str | None = None,
    ) -> ValidationBuilder:
        if operation in CREATE_OPERATIONS:
            return self.require_string(field, value, message)
        return self

    def require_email(self, field: str, value: Any, message: str | None = None) -> ValidationBuilder:
        """Require a syntactically valid email address."""
        if _is_blank(value):
            self.add_error(field, message or "Email address is required", ValidationErrorCode.REQUIRED.value)
            return self
        if not is_valid_email(value):
            self.add_error(field, "Invalid email format", ValidationErrorCode.INVALID_FORMAT.value)
        return self

    def require_email_for_create(
        self,
        field: str,
        value: Any,
        operation: TargetOperation,
        message: str | None = None,
    ) -> ValidationBuilder:
        if operation in CREATE_OPERATIONS:
            return self.require_email(field, value, message)
        return self

    def require_array_not_empty(self, field: str, value: Any, message: str | None = None) -> ValidationBuilder:
        if not _is_sequence(value) or len(value) == 0:
            self.add_error(field, message or f"{field} must not be empty", ValidationErrorCode.REQUIRED.value)
        return self

    def require_array_for_create(
        self,
        field: str,
        value: Any,
        operation: TargetOperation,
        message: str | None = None,
    ) -> ValidationBuilder:
        if operation in CREATE_OPERATIONS:
            return self.require_array_not_empty(field, value, message)
        return self

    def require_positive_number(self, field: str, value: Any, message: str | None = None) -> ValidationBuilder:
        """Require a number >= 0. Numeric strings are accepted."""
        if value is None:
            self.add_error(field, message or f"{field} is required", ValidationErrorCode.REQUIRED.value)
            return self
        try:
            if isinstance(value, bool):
                raise TypeError("bool is not a number")
            number = Decimal(str(value).strip())
        except (InvalidOperation, TypeError, ValueError):
            number = None
        if number is None or not number.is_finite() or number < 0:
            self.add_error(
                field,
                message or f"{field} must be a positive number",
                ValidationErrorCode.INVALID_VALUE.value,
            )
        return self

    # -------------------------------------------------------------------------
    # Nested structures
    # -------------------------------------------------------------------------

    def validate_array_items(
        self,
        field: str,
        items: Sequence[T] | None,
        validator: Callable[[T, int], Iterable[LoaderValidationError]],
    ) -> ValidationBuilder:
        """Run ``validator`` on every element; errors are reported as ``field[i].sub``."""
        if not _is_sequence(items):
            return self
        for index, item in enumerate(items):
            for error in validator(item, index):
                self.add_error(f"{field}[{index}].{error.field}", error.message, error.code)
        return self

    def validate_address(self, address: Mapping[str, Any] | None, prefix: str) -> ValidationBuilder:
        """Postal address sanity check; absent addresses are not an error."""
        if not address:
            return self
        for key, message in _ADDRESS_REQUIRED:
            if not address.get(key):
                self.add_error(f"{prefix}.{key}", message, ValidationErrorCode.REQUIRED.value)
        return self

    # -------------------------------------------------------------------------
    # Merge / inspect
    # -------------------------------------------------------------------------

    def merge_errors(self, errors: Iterable[LoaderValidationError]) -> ValidationBuilder:
        self._errors.extend(errors)
        return self

    def merge_warnings(self, warnings: Iterable[LoaderValidationWarning]) -> ValidationBuilder:
        self._warnings.extend(warnings)
        return self

    def get_errors(self) -> list[LoaderValidationError]:
        return list(self._errors)

    def has_errors(self) -> bool:
        return bool(self._errors)

    def build(self) -> EntityValidationResult:
        return EntityValidationResult(
            valid=not self._errors,
            errors=tuple(self._errors),
            warnings=tuple(self._warnings),
        )


def create_validation_result(
    errors: Iterable[LoaderValidationError] = (),
    warnings: Iterable[LoaderValidationWarning] = (),
) -> EntityValidationResult:
    """Build a validation result directly, without a builder."""
    errors = tuple(errors)
    return EntityValidationResult(valid=not errors, errors=errors, warnings=tuple(warnings))
