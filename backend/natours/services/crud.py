"""
Natours Backend — Generic CRUD Service
=======================================

What:  The handler-factory layer. One CRUDService per resource provides
       get_all / get_one / create_one / update_one / delete_one so the four
       resources share identical envelope, 404 and validation behaviour.
How:   Resource services subclass it and set `model`, the schemas, the API
       field map, and `base_filters()` for rows that must never be visible
       (secret tours, deactivated users).

Flush policy:
    Writes are flushed inside the service call so unique-constraint
    violations surface while the route handler is still running and reach
    the error handler as a 400, instead of failing later at commit.
"""

import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional, Sequence, Type

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from natours.exceptions import NotFoundError, ValidationError
from natours.services.api_features import APIFeatures

logger = logging.getLogger(__name__)


def parse_id(value: Any) -> uuid.UUID:
    """Parse a path id; malformed ids are a client error, not a 404."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid id: {value}", field="id")


class CRUDService:
    model: Any = None
    out_schema: Type[BaseModel] = BaseModel
    create_schema: Optional[Type[BaseModel]] = None
    update_schema: Optional[Type[BaseModel]] = None
    resource_name = "document"
    api_fields: Mapping[str, Any] = {}
    default_sort = "-createdAt"

    def base_filters(self) -> List[Any]:
        return []

    def base_statement(self):
        return select(self.model).where(*self.base_filters())

    # ── Serialization ─────────────────────────────────────────────────────
    def serialize(self, obj: Any) -> Dict[str, Any]:
        return self.out_schema.model_validate(obj).model_dump(by_alias=True, mode="json")

    def validate_create(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        model = self.create_schema.model_validate(dict(data))
        return model.model_dump()

    def validate_update(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        model = self.update_schema.model_validate(dict(data))
        return model.model_dump(exclude_unset=True)

    # ── Operations ────────────────────────────────────────────────────────
    async def get_all(
        self,
        db: AsyncSession,
        query: Mapping[str, Any],
        filters: Sequence[Any] = (),
    ) -> List[Dict[str, Any]]:
        statement = self.base_statement().where(*filters)
        features = (
            APIFeatures(statement, query, self.api_fields, default_sort=self.default_sort)
            .filter()
            .sort()
            .limit_fields()
            .paginate()
        )
        result = await db.execute(features.statement)
        rows = result.unique().scalars().all()
        return features.project_all(self.serialize(row) for row in rows)

    async def find(self, db: AsyncSession, object_id: Any) -> Any:
        statement = self.base_statement().where(self.model.id == parse_id(object_id))
        result = await db.execute(statement)
        obj = result.unique().scalar_one_or_none()
        if obj is None:
            raise NotFoundError(resource=self.resource_name, resource_id=str(object_id))
        return obj

    async def get_one(self, db: AsyncSession, object_id: Any) -> Any:
        return await self.find(db, object_id)

    async def create_one(self, db: AsyncSession, data: Mapping[str, Any]) -> Any:
        values = self.validate_create(data)
        obj = self.build(values)
        db.add(obj)
        await db.flush()
        await db.refresh(obj)
        logger.info("Created %s %s", self.resource_name, obj.id)
        return obj

    def build(self, values: Dict[str, Any]) -> Any:
        return self.model(**values)

    async def update_one(self, db: AsyncSession, object_id: Any, data: Mapping[str, Any]) -> Any:
        values = self.validate_update(data)
        obj = await self.find(db, object_id)
        self.apply(obj, values)
        await db.flush()
        await db.refresh(obj)
        return obj

    def apply(self, obj: Any, values: Dict[str, Any]) -> None:
        for key, value in values.items():
            setattr(obj, key, value)

    async def delete_one(self, db: AsyncSession, object_id: Any) -> None:
        obj = await self.find(db, object_id)
        await db.delete(obj)
        await db.flush()
        logger.info("Deleted %s %s", self.resource_name, obj.id)
