"""
LoaderRegistry -- the set of active entity-type loaders.

Contract:
    Built once at process start from an explicit static table
    (``entity_type -> policy factory``) by ``build_loader_registry()`` and
    handed to the application as a value. There is no module-level registry.
    Callers resolve loaders by entity type and read field schemas, metadata
    and category groupings for listing UIs.

Invariants enforced:
    - One loader per entity type. Re-registration logs a warning and the last
      registration wins.
    - A policy factory failure during ``initialize()`` propagates: a
      misconfigured policy set must prevent serving any entity type.
    - A registration callback failure is logged and does not stop the
      callbacks after it.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from loader_kernel.domain.field_schema import EntityFieldSchema
from loader_kernel.domain.types import TargetOperation
from loader_kernel.exceptions import LoaderNotRegisteredError, LoaderRegistrationError
from loader_kernel.logging_config import get_logger
from loader_kernel.services.orchestrator import EntityLoadOrchestrator, LoaderPolicy

logger = get_logger("services.loader_registry")

PolicyFactory = Callable[[], LoaderPolicy]
LoaderRegistrationCallback = Callable[["LoaderRegistry"], None]

# Fixed human taxonomy for listing UIs; anything else lands in "Other".
LOADER_CATEGORIES: dict[str, tuple[str, ...]] = {
    "Products": ("product", "product_variant"),
    "Customers": ("customer", "customer_group"),
    "Catalog": ("collection", "facet", "facet_value"),
    "Commerce": ("promotion", "order", "shipping_method", "payment_method"),
    "Inventory": ("stock_location", "inventory"),
    "Media": ("asset",),
    "Configuration": ("tax_rate", "channel"),
}
OTHER_CATEGORY = "Other"


class LoaderRegistry:
    """Registry mapping entity_type strings to EntityLoadOrchestrator instances.

    Contract:
        - ``initialize()`` resolves every factory of the static table, then
          runs registration callbacks in the order they were added.
        - ``register()`` adds or overwrites a loader.
        - ``get()`` returns None for unknown types; ``require()`` raises.
        - ``create()`` builds a fresh orchestrator from the factory, for
          batches that run concurrently with others of the same type.
    """

    def __init__(self, policy_table: Mapping[str, PolicyFactory] | None = None) -> None:
        self._factories: dict[str, PolicyFactory] = dict(policy_table or {})
        self._loaders: dict[str, EntityLoadOrchestrator] = {}
        self._callbacks: list[LoaderRegistrationCallback] = []

    # -------------------------------------------------------------------------
    # Startup
    # -------------------------------------------------------------------------

    def add_registration_callback(self, callback: LoaderRegistrationCallback) -> None:
        self._callbacks.append(callback)

    def initialize(self) -> None:
        """Auto-register the static table, then run host callbacks.

        Raises:
            LoaderRegistrationError: If a factory raises or returns a policy
                for a different entity type than its table key.
        """
        for entity_type, factory in self._factories.items():
            self.register(EntityLoadOrchestrator(self._resolve(entity_type, factory)))

        for callback in self._callbacks:
            try:
                callback(self)
            except Exception as exc:
                logger.error(
                    "loader_registration_callback_failed",
                    exc_info=exc,
                    extra={"callback": getattr(callback, "__name__", repr(callback))},
                )

        logger.info(
            "loader_registry_initialized",
            extra={"loader_count": len(self._loaders), "entity_types": list(self._loaders)},
        )

    def register(self, loader: EntityLoadOrchestrator | LoaderPolicy) -> None:
        """Register a loader (a bare policy is wrapped). Last registration wins."""
        if not isinstance(loader, EntityLoadOrchestrator):
            loader = EntityLoadOrchestrator(loader)
        entity_type = loader.entity_type
        if entity_type in self._loaders:
            logger.warning("loader_overwritten", extra={"registered_entity_type": entity_type})
        self._loaders[entity_type] = loader
        logger.debug(
            "loader_registered",
            extra={"registered_entity_type": entity_type, "loader_name": loader.name},
        )

    def register_factory(self, entity_type: str, factory: PolicyFactory) -> None:
        """Add a factory after construction and register its loader now."""
        self._factories[entity_type] = factory
        self.register(EntityLoadOrchestrator(self._resolve(entity_type, factory)))

    @staticmethod
    def _resolve(entity_type: str, factory: PolicyFactory) -> LoaderPolicy:
        try:
            policy = factory()
        except Exception as exc:
            raise LoaderRegistrationError(entity_type, str(exc)) from exc
        if policy.metadata.entity_type != entity_type:
            raise LoaderRegistrationError(
                entity_type,
                f"factory produced a policy for '{policy.metadata.entity_type}'",
            )
        return policy

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get(self, entity_type: str) -> EntityLoadOrchestrator | None:
        return self._loaders.get(entity_type)

    def require(self, entity_type: str) -> EntityLoadOrchestrator:
        """Retrieve a loader by entity type.

        Raises:
            LoaderNotRegisteredError: If nothing is registered for it.
        """
        loader = self._loaders.get(entity_type)
        if loader is None:
            raise LoaderNotRegisteredError(entity_type, tuple(self._loaders))
        return loader

    def create(self, entity_type: str) -> EntityLoadOrchestrator:
        """Fresh orchestrator with its own policy instance (and its own caches).

        Loaders registered without a factory are returned as registered.
        """
        factory = self._factories.get(entity_type)
        if factory is None:
            return self.require(entity_type)
        return EntityLoadOrchestrator(self._resolve(entity_type, factory))

    def get_all(self) -> list[EntityLoadOrchestrator]:
        return list(self._loaders.values())

    def has(self, entity_type: str) -> bool:
        return entity_type in self._loaders

    def get_registered_types(self) -> list[str]:
        return list(self._loaders)

    def supports_operation(self, entity_type: str, operation: TargetOperation | str) -> bool:
        loader = self.get(entity_type)
        return loader is not None and loader.supports(operation)

    def __len__(self) -> int:
        return len(self._loaders)

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self._loaders

    # -------------------------------------------------------------------------
    # Schemas and listings
    # -------------------------------------------------------------------------

    def get_field_schema(self, entity_type: str) -> EntityFieldSchema | None:
        loader = self.get(entity_type)
        return loader.get_field_schema() if loader is not None else None

    def get_all_field_schemas(self) -> dict[str, EntityFieldSchema]:
        return {loader.entity_type: loader.get_field_schema() for loader in self._loaders.values()}

    def get_loader_metadata(self) -> list[dict[str, Any]]:
        """Flattened summary of every loader, for listing UIs."""
        return [
            {
                "entity_type": loader.entity_type,
                "name": loader.name,
                "description": loader.description,
                "supported_operations": [op.value for op in loader.supported_operations],
                "lookup_fields": list(loader.lookup_fields),
                "required_fields": list(loader.required_fields),
            }
            for loader in self._loaders.values()
        ]

    def get_loaders_by_category(self) -> dict[str, list[dict[str, str]]]:
        """Group registered loaders into the fixed taxonomy plus "Other"."""
        result: dict[str, list[dict[str, str]]] = {}
        for category, entity_types in LOADER_CATEGORIES.items():
            result[category] = [
                self._summary(self._loaders[t]) for t in entity_types if t in self._loaders
            ]

        categorized = {t for types in LOADER_CATEGORIES.values() for t in types}
        uncategorized = [t for t in self._loaders if t not in categorized]
        if uncategorized:
            result[OTHER_CATEGORY] = [self._summary(self._loaders[t]) for t in uncategorized]
        return result

    @staticmethod
    def _summary(loader: EntityLoadOrchestrator) -> dict[str, str]:
        return {
            "entity_type": loader.entity_type,
            "name": loader.name,
            "description": loader.description,
        }


def build_loader_registry(
    policy_table: Mapping[str, PolicyFactory],
    callbacks: Iterable[LoaderRegistrationCallback] = (),
) -> LoaderRegistry:
    """Startup routine: construct, add callbacks, initialize, return the handle."""
    registry = LoaderRegistry(policy_table)
    for callback in callbacks:
        registry.add_registration_callback(callback)
    registry.initialize()
    return registry
