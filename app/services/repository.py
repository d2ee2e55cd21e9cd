"""
Scoped Repository

The data-access interface used by the workflow engine and the publish
coordinator. Every statement is built from the request's
OrganizationContext; updates and deletes are conditional on the expected
status so racing transitions are detected instead of overwritten.

The repository never commits: callers own the unit of work.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ConcurrentModificationError
from app.services.access_filter import scoped_filter
from app.services.tenancy import OrganizationContext

logger = logging.getLogger(__name__)


class ScopedRepository:
    """Organization-scoped create/read/update/delete."""

    def __init__(self, db: AsyncSession, context: OrganizationContext):
        self.db = db
        self.context = context

    async def find(
        self,
        model: type,
        *criteria,
        order_by=None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list:
        query = select(model).where(scoped_filter(self.context, model, *criteria).clause())
        if order_by is not None:
            query = query.order_by(*order_by) if isinstance(order_by, (list, tuple)) else query.order_by(order_by)
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get(self, model: type, entity_id: int, *criteria):
        rows = await self.find(model, model.id == entity_id, *criteria, limit=1)
        return rows[0] if rows else None

    async def count(self, model: type, *criteria) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(model).where(scoped_filter(self.context, model, *criteria).clause())
        )
        return int(result.scalar_one())

    def create(self, model: type, **data: Any):
        """Stage a new row in the context's organization."""
        organization_id = data.pop("organization_id", self.context.organization_id)
        if organization_id != self.context.organization_id:
            raise ValueError("Cannot create a row in another organization")
        entity = model(organization_id=self.context.organization_id, **data)
        self.db.add(entity)
        return entity

    async def update(
        self,
        model: type,
        entity_id: int,
        data: dict[str, Any],
        expected_status=None,
        expected_version: int | None = None,
    ):
        """
        Conditionally update one row and return it freshly loaded.

        Raises ConcurrentModificationError when the row no longer matches
        the expected status/version (or is not visible in this organization).
        """
        if "organization_id" in data:
            raise ValueError("organization_id cannot be changed")

        criteria = [model.id == entity_id]
        if expected_status is not None:
            criteria.append(model.status == expected_status)
        if expected_version is not None:
            criteria.append(model.row_version == expected_version)

        values = dict(data)
        if hasattr(model, "row_version"):
            values["row_version"] = model.row_version + 1

        result = await self.db.execute(
            update(model)
            .where(scoped_filter(self.context, model, *criteria).clause())
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.info(
                "Conditional update missed: %s id=%s expected_status=%s org=%d",
                model.__name__,
                entity_id,
                getattr(expected_status, "value", expected_status),
                self.context.organization_id,
            )
            raise ConcurrentModificationError(
                model.__name__,
                entity_id,
                getattr(expected_status, "value", expected_status),
            )
        return await self.db.get(model, entity_id, populate_existing=True)

    async def delete(self, model: type, entity_id: int, expected_status=None) -> None:
        criteria = [model.id == entity_id]
        if expected_status is not None:
            criteria.append(model.status == expected_status)
        result = await self.db.execute(
            delete(model)
            .where(scoped_filter(self.context, model, *criteria).clause())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrentModificationError(
                model.__name__,
                entity_id,
                getattr(expected_status, "value", expected_status),
            )
