"""
Base CRUD Repository Pattern
Generic repository with common database operations
"""

from typing import Any, Dict, Generic, List, Optional, Type, TypeVar, Union
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from pydantic import BaseModel
import structlog

from rbac_admin.core.database import Base
from rbac_admin.models.base import is_soft_deletable, utcnow

logger = structlog.get_logger()

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """
    Base CRUD repository with generic database operations.

    Writes only flush; the calling service owns the transaction and commits
    once per operation.
    """

    def __init__(self, model: Type[ModelType]):
        self.model = model

    def _base_query(self, include_deleted: bool = False):
        query = select(self.model)
        if is_soft_deletable(self.model) and not include_deleted:
            query = query.where(self.model.active())
        return query

    def _apply_filters(self, query, filters: Optional[Dict[str, Any]]):
        for field, value in (filters or {}).items():
            if value is None or not hasattr(self.model, field):
                continue
            column = getattr(self.model, field)
            if isinstance(value, list):
                query = query.where(column.in_(value))
            elif isinstance(value, dict) and 'like' in value:
                query = query.where(column.ilike(f"%{value['like']}%"))
            else:
                query = query.where(column == value)
        return query

    async def get(
        self,
        db: AsyncSession,
        id: Union[UUID, str],
        include_deleted: bool = False
    ) -> Optional[ModelType]:
        """
        Get a single record by ID

        Args:
            db: Database session
            id: Record ID
            include_deleted: Include soft-deleted records

        Returns:
            Model instance or None
        """
        try:
            query = self._base_query(include_deleted).where(self.model.id == id)
            result = await db.execute(query)
            record = result.scalar_one_or_none()

            if record is None:
                logger.debug("Record not found", model=self.model.__name__, id=str(id))
            return record

        except Exception as e:
            logger.error("Error retrieving record", model=self.model.__name__, id=str(id), error=str(e))
            raise

    async def get_many(self, db: AsyncSession, ids: List[UUID]) -> List[ModelType]:
        if not ids:
            return []
        result = await db.execute(self._base_query().where(self.model.id.in_(ids)))
        return list(result.scalars().all())

    async def get_multi(
        self,
        db: AsyncSession,
        *,
        skip: int = 0,
        limit: int = 100,
        filters: Optional[Dict[str, Any]] = None,
        search: Optional[str] = None,
        search_fields: Optional[List[str]] = None,
        order_by: Optional[str] = None,
        include_deleted: bool = False
    ) -> tuple[List[ModelType], int]:
        """
        Get a page of records plus the total matching count

        Args:
            db: Database session
            skip: Number of records to skip
            limit: Maximum number of records to return
            filters: Field equality / list / ``{"like": ...}`` filters
            search: Free-text query matched against ``search_fields``
            order_by: Field to order by, ``-field`` for descending
            include_deleted: Include soft-deleted records
        """
        try:
            query = self._apply_filters(self._base_query(include_deleted), filters)

            if search and search_fields:
                like = f"%{search.strip()}%"
                conditions = [
                    getattr(self.model, field).ilike(like)
                    for field in search_fields
                    if hasattr(self.model, field)
                ]
                if conditions:
                    query = query.where(or_(*conditions))

            count_query = select(func.count()).select_from(query.subquery())
            total = (await db.execute(count_query)).scalar() or 0

            if order_by:
                descending = order_by.startswith('-')
                column = getattr(self.model, order_by.lstrip('-'), None)
                if column is not None:
                    query = query.order_by(column.desc() if descending else column.asc())
            elif hasattr(self.model, 'created_at'):
                query = query.order_by(self.model.created_at.desc())

            result = await db.execute(query.offset(skip).limit(limit))
            records = list(result.scalars().all())

            logger.debug(
                "Multiple records retrieved",
                model=self.model.__name__,
                count=len(records),
                total=total,
                skip=skip,
                limit=limit
            )
            return records, total

        except Exception as e:
            logger.error("Error retrieving multiple records", model=self.model.__name__, error=str(e))
            raise

    async def create(
        self,
        db: AsyncSession,
        *,
        obj_in: Union[CreateSchemaType, Dict[str, Any]]
    ) -> ModelType:
        """Add a new record and flush so its id is populated"""
        data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump()
        db_obj = self.model(**data)
        db.add(db_obj)
        await db.flush()
        logger.debug("Record created", model=self.model.__name__, id=str(db_obj.id))
        return db_obj

    async def update(
        self,
        db: AsyncSession,
        *,
        db_obj: ModelType,
        obj_in: Union[UpdateSchemaType, Dict[str, Any]]
    ) -> ModelType:
        """Apply only the fields that were explicitly set"""
        if isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = obj_in.model_dump(exclude_unset=True)

        for field, value in update_data.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)

        await db.flush()
        logger.debug("Record updated", model=self.model.__name__, id=str(db_obj.id))
        return db_obj

    async def remove(self, db: AsyncSession, *, db_obj: ModelType) -> ModelType:
        """Soft-delete when the model supports it, hard-delete otherwise"""
        if is_soft_deletable(self.model):
            db_obj.mark_deleted(utcnow())
        else:
            await db.delete(db_obj)
        await db.flush()
        logger.debug(
            "Record deleted",
            model=self.model.__name__,
            id=str(db_obj.id),
            soft_delete=is_soft_deletable(self.model),
        )
        return db_obj
