"""Load orchestration, the loader registry and the persistence collaborator."""

from loader_kernel.services.entity_service import EntityService
from loader_kernel.services.orchestrator import EntityLoadOrchestrator, LoaderPolicy
from loader_kernel.services.registry import (
    LOADER_CATEGORIES,
    OTHER_CATEGORY,
    LoaderRegistry,
    PolicyFactory,
    build_loader_registry,
)

__all__ = [
    "LOADER_CATEGORIES",
    "OTHER_CATEGORY",
    "EntityLoadOrchestrator",
    "EntityService",
    "LoaderPolicy",
    "LoaderRegistry",
    "PolicyFactory",
    "build_loader_registry",
]
