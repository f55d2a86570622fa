from typing import Iterable, Sequence, TypeVar
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.shared.exceptions import NotFoundError

ModelT = TypeVar("ModelT")


class TenantScope:
    """All reads of user-owned rows go through here.

    A row owned by another user is reported exactly like a missing row, so
    callers cannot probe for foreign ids.
    """

    def __init__(self, db: AsyncSession, user_id: UUID):
        self.db = db
        self.user_id = user_id

    def select(self, model: type[ModelT]) -> Select:
        return select(model).where(model.user_id == self.user_id)

    async def get(self, model: type[ModelT], object_id: UUID, *, for_update: bool = False) -> ModelT:
        query = self.select(model).where(model.id == object_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query.execution_options(populate_existing=True))
        obj = result.scalars().first()
        if obj is None:
            raise NotFoundError(f"{model.__name__} not found")
        return obj

    async def get_many(self, model: type[ModelT], object_ids: Iterable[UUID]) -> Sequence[ModelT]:
        ids = list(dict.fromkeys(object_ids))
        if not ids:
            return []
        result = await self.db.execute(self.select(model).where(model.id.in_(ids)))
        rows = list(result.scalars().all())
        if len(rows) != len(ids):
            raise NotFoundError(f"{model.__name__} not found")
        by_id = {row.id: row for row in rows}
        return [by_id[i] for i in ids]
