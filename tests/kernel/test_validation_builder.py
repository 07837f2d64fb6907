"""Tests for ValidationBuilder and the validation helpers."""

import pytest

from loader_kernel.domain import (
    LoaderValidationError,
    LoaderValidationWarning,
    TargetOperation,
    ValidationBuilder,
    ValidationErrorCode,
    create_validation_result,
    is_valid_email,
)


class TestRequiredStrings:
    @pytest.mark.parametrize("value", [None, "", "   ", 42, ["a"]])
    def test_require_string_rejects_missing_or_blank(self, value):
        result = ValidationBuilder().require_string("name", value).build()

        assert not result.valid
        assert result.errors == (
            LoaderValidationError(field="name", message="name is required", code="REQUIRED"),
        )

    def test_require_string_accepts_text(self):
        assert ValidationBuilder().require_string("name", "Color").build().valid

    def test_custom_message(self):
        result = ValidationBuilder().require_string("name", "", "Facet name is required").build()
        assert result.errors[0].message == "Facet name is required"

    @pytest.mark.parametrize("operation", [TargetOperation.CREATE, TargetOperation.UPSERT])
    def test_create_rule_fires_for_create_operations(self, operation):
        result = ValidationBuilder().require_string_for_create("name", None, operation).build()
        assert not result.valid

    @pytest.mark.parametrize("operation", [TargetOperation.UPDATE, TargetOperation.DELETE])
    def test_create_rule_skipped_for_other_operations(self, operation):
        result = ValidationBuilder().require_string_for_create("name", None, operation).build()
        assert result.valid
        assert result.errors == ()


class TestEmail:
    def test_missing_email_is_required(self):
        result = ValidationBuilder().require_email("email_address", None).build()
        assert result.errors[0].code == ValidationErrorCode.REQUIRED.value
        assert result.errors[0].message == "Email address is required"

    def test_malformed_email_is_invalid_format(self):
        result = ValidationBuilder().require_email("email_address", "not-an-email").build()
        assert result.errors[0].code == "INVALID_FORMAT"
        assert result.errors[0].message == "Invalid email format"

    def test_valid_email(self):
        assert ValidationBuilder().require_email("email_address", "ada@example.com").build().valid

    def test_email_for_create_skipped_on_update(self):
        result = ValidationBuilder().require_email_for_create(
            "email_address", "bad", TargetOperation.UPDATE
        ).build()
        assert result.valid

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("a@b.co", True),
            (" a@b.co ", True),
            ("a@b", False),
            ("a b@c.de", False),
            ("@b.co", False),
            (None, False),
            (123, False),
        ],
    )
    def test_is_valid_email(self, value, expected):
        assert is_valid_email(value) is expected


class TestArraysAndNumbers:
    @pytest.mark.parametrize("value", [None, [], (), "abc"])
    def test_require_array_not_empty(self, value):
        result = ValidationBuilder().require_array_not_empty("tags", value).build()
        assert result.errors[0].message == "tags must not be empty"
        assert result.errors[0].code == "REQUIRED"

    def test_require_array_for_create_skipped_on_update(self):
        assert ValidationBuilder().require_array_for_create("tags", [], TargetOperation.UPDATE).build().valid

    @pytest.mark.parametrize("value", [0, 5, "12.5", 3.25])
    def test_positive_number_accepts(self, value):
        assert ValidationBuilder().require_positive_number("value", value).build().valid

    def test_positive_number_missing(self):
        result = ValidationBuilder().require_positive_number("value", None).build()
        assert result.errors[0].code == "REQUIRED"

    @pytest.mark.parametrize("value", [-1, "abc", True, float("nan"), float("inf"), [1]])
    def test_positive_number_rejects(self, value):
        result = ValidationBuilder().require_positive_number("value", value).build()
        assert result.errors[0].code == "INVALID_VALUE"


class TestNested:
    def test_array_item_errors_are_prefixed_with_index(self):
        def check(item, index):
            if not item.get("sku"):
                yield LoaderValidationError(field="sku", message="SKU is required", code="REQUIRED")

        result = (
            ValidationBuilder()
            .validate_array_items("variants", [{"sku": "A"}, {}, {"sku": ""}], check)
            .build()
        )

        assert [e.field for e in result.errors] == ["variants[1].sku", "variants[2].sku"]

    def test_array_items_ignores_non_sequences(self):
        result = ValidationBuilder().validate_array_items("variants", None, lambda i, n: []).build()
        assert result.valid

    def test_address_requires_core_fields(self):
        result = ValidationBuilder().validate_address({"city": "Oslo"}, "addresses[0]").build()

        assert [e.field for e in result.errors] == [
            "addresses[0].street_line1",
            "addresses[0].postal_code",
            "addresses[0].country_code",
        ]

    def test_absent_address_is_fine(self):
        assert ValidationBuilder().validate_address(None, "billing").build().valid


class TestAccumulation:
    def test_warnings_never_affect_validity(self):
        result = (
            ValidationBuilder()
            .add_warning("phone_number", "No phone number")
            .add_warning_if(True, "title", "No title")
            .add_warning_if(False, "ignored", "never")
            .build()
        )

        assert result.valid
        assert bool(result) is True
        assert result.warnings == (
            LoaderValidationWarning(field="phone_number", message="No phone number"),
            LoaderValidationWarning(field="title", message="No title"),
        )

    def test_errors_keep_insertion_order(self):
        builder = (
            ValidationBuilder()
            .add_error("b", "second")
            .add_error_if(True, "a", "third", "INVALID_VALUE")
            .add_error_if(False, "c", "skipped")
        )
        builder.merge_errors([LoaderValidationError(field="d", message="merged")])

        assert builder.has_errors()
        assert [e.field for e in builder.get_errors()] == ["b", "a", "d"]
        assert not builder.build().valid

    def test_merge_warnings(self):
        result = (
            ValidationBuilder()
            .merge_warnings([LoaderValidationWarning(field="x", message="w")])
            .build()
        )
        assert result.valid
        assert len(result.warnings) == 1

    def test_get_errors_returns_a_copy(self):
        builder = ValidationBuilder().add_error("a", "x")
        builder.get_errors().clear()
        assert builder.has_errors()

    def test_create_validation_result(self):
        assert create_validation_result().valid
        result = create_validation_result([LoaderValidationError(field="a", message="x")])
        assert not result.valid
        assert result.warnings == ()
