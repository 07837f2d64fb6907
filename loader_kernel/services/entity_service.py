"""
EntityService -- the persistence collaborator loader policies call into.

Contract:
    One service per ORM model. Reads and writes go through the session on the
    RequestContext. Methods flush so generated ids are available, and never
    commit: the caller's session owns the transaction.

Non-goals:
    - Not a query engine. ``find_all`` supports equality filters, ordering by
      insertion time and take/skip paging; nothing else.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import func, select

from loader_kernel.db.base import TrackedBase
from loader_kernel.domain.types import EntityId, ListQuery, PaginatedList, RequestContext
from loader_kernel.exceptions import EntityNotFoundError
from loader_kernel.logging_config import get_logger

logger = get_logger("services.entity_service")

M = TypeVar("M", bound=TrackedBase)


class EntityService(Generic[M]):
    """Generic list/find/create/update/delete over one ORM model."""

    def __init__(self, model: type[M], entity_type: str | None = None):
        self._model = model
        self._entity_type = entity_type or model.__tablename__

    @property
    def model(self) -> type[M]:
        return self._model

    def _column(self, name: str) -> Any:
        column = getattr(self._model, name, None)
        if column is None:
            raise ValueError(f"{self._model.__name__} has no column {name!r}")
        return column

    def find_all(self, ctx: RequestContext, query: ListQuery | None = None) -> PaginatedList:
        query = query or ListQuery()
        conditions = [self._column(name) == value for name, value in query.filter.items()]

        stmt = select(self._model).where(*conditions).order_by(self._model.created_at, self._model.id)
        if query.skip:
            stmt = stmt.offset(query.skip)
        if query.take is not None:
            stmt = stmt.limit(query.take)
        items = list(ctx.session.scalars(stmt))

        count_stmt = select(func.count()).select_from(self._model).where(*conditions)
        total = ctx.session.scalar(count_stmt) or 0
        return PaginatedList.of(items, total_items=total)

    def find_one(self, ctx: RequestContext, entity_id: EntityId) -> M | None:
        return ctx.session.get(self._model, _coerce_id(entity_id))

    def find_one_by(self, ctx: RequestContext, **filters: Any) -> M | None:
        page = self.find_all(ctx, ListQuery(filter=filters, take=1))
        return page.items[0] if page.items else None

    def create(self, ctx: RequestContext, **values: Any) -> M:
        entity = self._model(**values, created_by_id=ctx.actor_id, updated_by_id=None)
        ctx.session.add(entity)
        ctx.session.flush()
        logger.debug("entity_created", extra={"model": self._entity_type, "entity_id": str(entity.id)})
        return entity

    def update(self, ctx: RequestContext, entity_id: EntityId, values: Mapping[str, Any]) -> M:
        """Apply ``values`` to an existing row.

        Raises:
            EntityNotFoundError: If the row no longer exists.
        """
        entity = self.find_one(ctx, entity_id)
        if entity is None:
            raise EntityNotFoundError(self._entity_type, entity_id)
        for name, value in values.items():
            self._column(name)
            setattr(entity, name, value)
        entity.updated_by_id = ctx.actor_id
        ctx.session.flush()
        logger.debug(
            "entity_updated",
            extra={"model": self._entity_type, "entity_id": str(entity.id), "fields": sorted(values)},
        )
        return entity

    def delete(self, ctx: RequestContext, entity_id: EntityId) -> None:
        """
        Raises:
            EntityNotFoundError: If the row no longer exists.
        """
        entity = self.find_one(ctx, entity_id)
        if entity is None:
            raise EntityNotFoundError(self._entity_type, entity_id)
        ctx.session.delete(entity)
        ctx.session.flush()
        logger.debug("entity_deleted", extra={"model": self._entity_type, "entity_id": str(entity_id)})


def _coerce_id(entity_id: EntityId) -> Any:
    """Record ids arrive as strings from parsers; primary keys are UUIDs."""
    if isinstance(entity_id, str):
        try:
            return UUID(entity_id)
        except ValueError:
            return entity_id
    return entity_id
