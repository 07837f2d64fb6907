"""Fixtures for loading through the bundled policies against the test database."""

import pytest

from loader_kernel.domain import TargetOperation
from loader_kernel.services import build_loader_registry
from loader_policies import default_policy_table


@pytest.fixture
def registry():
    return build_loader_registry(default_policy_table())


@pytest.fixture
def run_load(registry, loader_context):
    """Load a batch through a fresh loader of ``entity_type``.

    Lookup fields default to the loader's own lookup order.

    Usage::

        result = run_load("facet", "UPSERT", [{"code": "color", "name": "Color"}])
    """

    def _run(entity_type, operation, records, lookup_fields=None, **options):
        loader = registry.create(entity_type)
        if lookup_fields is None:
            lookup_fields = loader.lookup_fields
        context = loader_context(TargetOperation(operation), lookup_fields, **options)
        return loader.load(context, records)

    return _run


@pytest.fixture
def add_row(session, test_actor_id):
    """Insert one ORM row directly, bypassing the policies."""

    def _add(model, **values):
        row = model(created_by_id=test_actor_id, **values)
        session.add(row)
        session.flush()
        return row

    return _add
