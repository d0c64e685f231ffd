from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from tortoise.models import Model
from tortoise.queryset import QuerySet

from carwash.responses import Page, Pagination

ModelT = TypeVar("ModelT", bound=Model)
SchemaT = TypeVar("SchemaT", bound=BaseModel)


async def fetch_map(model: type[ModelT], ids: Iterable[Any]) -> dict[Any, ModelT]:
    """Bulk-load rows by primary key; returns {id: row}."""
    wanted = {i for i in ids if i is not None}
    if not wanted:
        return {}
    rows = await model.filter(id__in=list(wanted))
    return {row.pk: row for row in rows}


class CRUD(Generic[ModelT, SchemaT]):
    """
    Thin persistence gateway shared by the domain CRUD classes.
    Subclasses add the domain operations; this class only knows how to look
    rows up, page through them and convert them to their response schema.
    """

    def __init__(self, model: type[ModelT], schema: type[SchemaT]) -> None:
        self.model = model
        self.schema = schema

    def to_schema(self, inst: ModelT) -> SchemaT:
        return self.schema.model_validate(inst, from_attributes=True)

    async def get_by(self, **filters: Any) -> SchemaT | None:
        inst = await self.model.get_or_none(**filters)
        return self.to_schema(inst) if inst else None

    async def delete_by(self, **filters: Any) -> bool:
        deleted = await self.model.filter(**filters).delete()
        return deleted > 0

    async def paginate(
        self,
        qs: QuerySet[ModelT],
        page: int,
        limit: int,
    ) -> tuple[list[ModelT], Pagination]:
        """Return one page of `qs` plus the pagination block."""
        total = await qs.count()
        rows = await qs.offset((page - 1) * limit).limit(limit)
        return rows, Pagination.build(page, limit, total)

    async def page_of(self, qs: QuerySet[ModelT], page: int, limit: int) -> Page[SchemaT]:
        rows, pagination = await self.paginate(qs, page, limit)
        return Page[self.schema](  # type: ignore[name-defined]
            items=[self.to_schema(r) for r in rows], pagination=pagination
        )
