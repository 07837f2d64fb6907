"""Tests for the exception hierarchy and the transient-failure classifier."""

import pytest
from sqlalchemy.exc import DisconnectionError, OperationalError

from loader_kernel.domain import ValidationErrorCode, is_recoverable_error
from loader_kernel.exceptions import (
    ConfigurationError,
    EntityNotFoundError,
    LoadError,
    LoaderKernelError,
    LoaderNotRegisteredError,
    LoaderRegistrationError,
    RegistryError,
    TransientLoadError,
    UnsupportedOperationError,
)


class TestClassifier:
    @pytest.mark.parametrize(
        "error",
        [
            TransientLoadError("pool exhausted"),
            TimeoutError(),
            ConnectionResetError(),
            DisconnectionError("gone"),
            RuntimeError("Query timed out"),
            RuntimeError("read ECONNRESET"),
            RuntimeError("connect ECONNREFUSED 127.0.0.1:5432"),
            RuntimeError("Service Unavailable"),
            RuntimeError("FATAL: too many connections for role"),
            RuntimeError("deadlock detected"),
            RuntimeError("could not serialize access due to concurrent update"),
        ],
    )
    def test_transient(self, error):
        assert is_recoverable_error(error) is True

    @pytest.mark.parametrize(
        "error",
        [
            ValueError("invalid literal"),
            KeyError("sku"),
            EntityNotFoundError("facet", "1"),
            RuntimeError("duplicate key value violates unique constraint"),
        ],
    )
    def test_permanent(self, error):
        assert is_recoverable_error(error) is False

    def test_operational_error_with_invalidated_connection(self):
        error = OperationalError("SELECT 1", {}, Exception("server closed the connection"), connection_invalidated=True)
        assert is_recoverable_error(error) is True

    def test_operational_error_judged_by_message_otherwise(self):
        error = OperationalError("SELECT 1", {}, Exception("no such table: facets"))
        assert is_recoverable_error(error) is False


class TestHierarchy:
    @pytest.mark.parametrize(
        "exc, parent, code",
        [
            (LoaderNotRegisteredError("x"), RegistryError, "LOADER_NOT_REGISTERED"),
            (LoaderRegistrationError("x", "boom"), RegistryError, "LOADER_REGISTRATION_FAILED"),
            (UnsupportedOperationError("x", "DELETE"), LoadError, "UNSUPPORTED_OPERATION"),
            (EntityNotFoundError("x", 1), LoadError, "ENTITY_NOT_FOUND"),
            (TransientLoadError("later"), LoadError, "TRANSIENT_LOAD_FAILURE"),
            (ConfigurationError("a.yaml", "bad"), LoaderKernelError, "LOADER_CONFIG_INVALID"),
        ],
    )
    def test_codes_and_parents(self, exc, parent, code):
        assert isinstance(exc, parent)
        assert isinstance(exc, LoaderKernelError)
        assert exc.code == code

    def test_not_registered_lists_available(self):
        exc = LoaderNotRegisteredError("product", ("facet", "customer"))
        assert exc.available == ("facet", "customer")
        assert "['customer', 'facet']" in str(exc)

    def test_unsupported_operation_message(self):
        exc = UnsupportedOperationError("inventory", "CREATE", ("UPDATE", "UPSERT"))
        assert str(exc) == "Loader 'inventory' does not support operation CREATE. Supported: ['UPDATE', 'UPSERT']"


def test_validation_error_codes_are_strings():
    assert ValidationErrorCode.DUPLICATE == "DUPLICATE"
    assert {c.value for c in ValidationErrorCode} == {
        "REQUIRED", "INVALID_FORMAT", "INVALID_VALUE", "DUPLICATE", "NOT_FOUND", "CREATE_FAILED",
    }
