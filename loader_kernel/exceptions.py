"""
Typed exception hierarchy for the loader kernel.

Every exception carries a class-level ``code`` (machine-readable, API-safe)
and stores its context as attributes, so callers catch by type and report by
code instead of parsing messages.

    LoaderKernelError (base)
    |
    +-- RegistryError
    |   +-- LoaderNotRegisteredError
    |   +-- LoaderRegistrationError
    |
    +-- LoadError
    |   +-- UnsupportedOperationError
    |   +-- EntityNotFoundError
    |   +-- TransientLoadError
    |
    +-- ConfigurationError

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Registry        | LOADER_NOT_REGISTERED       | No loader for the requested entity type
                | LOADER_REGISTRATION_FAILED  | A policy factory could not be resolved
----------------|-----------------------------|-----------------------------------------
Load            | UNSUPPORTED_OPERATION       | Operation not offered by the loader
                | ENTITY_NOT_FOUND            | Update/delete target vanished mid-batch
                | TRANSIENT_LOAD_FAILURE      | Persistence temporarily unavailable
----------------|-----------------------------|-----------------------------------------
Config          | LOADER_CONFIG_INVALID       | Settings file is malformed

Registry and configuration errors are fatal: they propagate out of startup.
Load errors raised by a policy hook are caught per record by the orchestrator
and reported in ``EntityLoadResult.errors``; ``UnsupportedOperationError`` is
raised by the orchestrator itself before any record is touched.
"""


class LoaderKernelError(Exception):
    """
    Base exception for all loader kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LOADER_KERNEL_ERROR"


# Registry exceptions


class RegistryError(LoaderKernelError):
    """Base exception for loader registry errors."""

    code: str = "REGISTRY_ERROR"


class LoaderNotRegisteredError(RegistryError):
    """No loader is registered for the entity type."""

    code: str = "LOADER_NOT_REGISTERED"

    def __init__(self, entity_type: str, available: tuple[str, ...] = ()):
        self.entity_type = entity_type
        self.available = available
        super().__init__(
            f"No loader registered for entity type '{entity_type}'. "
            f"Available: {sorted(available)}"
        )


class LoaderRegistrationError(RegistryError):
    """A policy factory failed while the registry was being built."""

    code: str = "LOADER_REGISTRATION_FAILED"

    def __init__(self, entity_type: str, reason: str):
        self.entity_type = entity_type
        self.reason = reason
        super().__init__(
            f"Failed to register loader for '{entity_type}': {reason}"
        )


# Load exceptions


class LoadError(LoaderKernelError):
    """Base exception for errors raised while loading a batch."""

    code: str = "LOAD_ERROR"


class UnsupportedOperationError(LoadError):
    """The loader does not support the requested target operation."""

    code: str = "UNSUPPORTED_OPERATION"

    def __init__(self, entity_type: str, operation: str, supported: tuple[str, ...] = ()):
        self.entity_type = entity_type
        self.operation = operation
        self.supported = supported
        super().__init__(
            f"Loader '{entity_type}' does not support operation {operation}. "
            f"Supported: {list(supported)}"
        )


class EntityNotFoundError(LoadError):
    """The entity a hook was asked to update or delete does not exist."""

    code: str = "ENTITY_NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: object):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(f"{entity_type} not found: {entity_id}")


class TransientLoadError(LoadError):
    """
    The persistence collaborator is temporarily unavailable.

    Always classified as recoverable: the same record may succeed on a later
    run without any change to its data.
    """

    code: str = "TRANSIENT_LOAD_FAILURE"

    def __init__(self, message: str):
        self.reason = message
        super().__init__(message)


# Configuration exceptions


class ConfigurationError(LoaderKernelError):
    """Loader settings could not be parsed."""

    code: str = "LOADER_CONFIG_INVALID"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid loader configuration in {source}: {reason}")
