"""Partial-update rule shared by every policy's update hook."""

from __future__ import annotations

from collections.abc import Collection, Iterable
from typing import Any

from loader_kernel.domain.types import InputRecord


def should_update_field(field: str, update_only_fields: Collection[str] | None) -> bool:
    """An empty or absent restriction means every provided field is eligible."""
    if not update_only_fields:
        return True
    return field in update_only_fields


def select_update_fields(
    record: InputRecord,
    candidate_fields: Iterable[str],
    update_only_fields: Collection[str] | None,
) -> dict[str, Any]:
    """Values of ``candidate_fields`` the record provides and the batch allows writing."""
    return {
        name: record[name]
        for name in candidate_fields
        if name in record and should_update_field(name, update_only_fields)
    }
