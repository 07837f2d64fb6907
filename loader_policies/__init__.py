"""
Bundled loader policies and the static table the registry is built from.

Usage::

    from loader_kernel.services import build_loader_registry
    from loader_policies import default_policy_table

    registry = build_loader_registry(default_policy_table())
"""

from __future__ import annotations

from loader_kernel.services.registry import PolicyFactory
from loader_policies.customer import CUSTOMER_LOADER_METADATA, CustomerPolicy
from loader_policies.customer_group import CUSTOMER_GROUP_LOADER_METADATA, CustomerGroupPolicy
from loader_policies.facet import FACET_LOADER_METADATA, FacetPolicy
from loader_policies.inventory import INVENTORY_LOADER_METADATA, InventoryPolicy
from loader_policies.stock_location import STOCK_LOCATION_LOADER_METADATA, StockLocationPolicy
from loader_policies.tax_rate import TAX_RATE_LOADER_METADATA, TaxRatePolicy

__all__ = [
    "CUSTOMER_GROUP_LOADER_METADATA",
    "CUSTOMER_LOADER_METADATA",
    "FACET_LOADER_METADATA",
    "INVENTORY_LOADER_METADATA",
    "STOCK_LOCATION_LOADER_METADATA",
    "TAX_RATE_LOADER_METADATA",
    "CustomerGroupPolicy",
    "CustomerPolicy",
    "FacetPolicy",
    "InventoryPolicy",
    "StockLocationPolicy",
    "TaxRatePolicy",
    "default_policy_table",
]


def default_policy_table() -> dict[str, PolicyFactory]:
    """entity_type -> policy factory, in registration order."""
    return {
        "facet": FacetPolicy,
        "customer": CustomerPolicy,
        "customer_group": CustomerGroupPolicy,
        "stock_location": StockLocationPolicy,
        "tax_rate": TaxRatePolicy,
        "inventory": InventoryPolicy,
    }
