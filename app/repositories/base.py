"""Base CRUD Repository. Parent class for all domain repositories.

Provides generic Create, Read, Update, Delete operations.

Usage:
    class VenueRepository(BaseRepository[Venue]):
        def __init__(self) -> None:
            super().__init__(Venue)
"""

from typing import Any, Generic, Sequence, TypeVar
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.interfaces import ORMOption

from app.database import Base
from app.utils.pagination import paginate

# Generic type variable representing a SQLAlchemy model
ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Generic CRUD repository providing common database operations.

    Attributes:
        model: The SQLAlchemy model class
    """

    def __init__(self, model: type[ModelType]) -> None:
        self.model: type[ModelType] = model

    async def get_by_id(
        self,
        db: AsyncSession,
        record_id: UUID,
        options: Sequence[ORMOption] = (),
    ) -> ModelType | None:
        """Retrieve a single record by its UUID.

        Args:
            db: Async database session
            record_id: UUID of the record to retrieve
            options: Loader options (e.g. selectinload) applied to the query

        Returns:
            ModelType | None: Found record or None
        """
        query: Select = select(self.model).where(self.model.id == record_id)
        if options:
            # Repopulate relationships on instances already in the identity map
            query = query.options(*options).execution_options(populate_existing=True)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_ids(self, db: AsyncSession, record_ids: Sequence[UUID]) -> Sequence[ModelType]:
        """Retrieve every record whose id is in ``record_ids``."""
        if not record_ids:
            return []
        result = await db.execute(select(self.model).where(self.model.id.in_(record_ids)))
        return result.scalars().all()

    async def get_all(
        self,
        db: AsyncSession,
        filters: dict[str, Any] | None = None,
        order_by: Any | None = None,
    ) -> Sequence[ModelType]:
        """Retrieve all records matching equality filters.

        Args:
            db: Async database session
            filters: {'column_name': value}; None values are skipped
            order_by: Column to order by

        Returns:
            Sequence[ModelType]: Matching records
        """
        query: Select = select(self.model)

        if filters:
            for column_name, value in filters.items():
                if hasattr(self.model, column_name) and value is not None:
                    query = query.where(getattr(self.model, column_name) == value)

        if order_by is not None:
            query = query.order_by(order_by)

        result = await db.execute(query)
        return result.scalars().all()

    async def get_paginated(
        self,
        db: AsyncSession,
        query: Select,
        page: int = 1,
        per_page: int = 10,
    ) -> tuple[Sequence[ModelType], int]:
        """Retrieve a page of ``query`` and the total row count."""
        return await paginate(db, query, page, per_page)

    async def create(
        self,
        db: AsyncSession,
        obj_data: dict[str, Any],
    ) -> ModelType:
        """Create a new record and flush it so generated fields are populated."""
        db_obj: ModelType = self.model(**obj_data)
        db.add(db_obj)
        await db.flush()
        await db.refresh(db_obj)
        return db_obj

    async def update(
        self,
        db: AsyncSession,
        db_obj: ModelType,
        update_data: dict[str, Any],
    ) -> ModelType:
        """Apply ``update_data`` to a loaded record.

        Fields passed via Pydantic ``exclude_unset`` are all written,
        including explicit None values.
        """
        for field, value in update_data.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)

        await db.flush()
        return db_obj

    async def delete(self, db: AsyncSession, db_obj: ModelType) -> None:
        """Hard-delete a loaded record."""
        await db.delete(db_obj)
        await db.flush()

    async def exists(
        self,
        db: AsyncSession,
        filters: dict[str, Any],
    ) -> bool:
        """Check if a record matching the given equality filters exists."""
        query: Select = select(func.count()).select_from(self.model)
        for column_name, value in filters.items():
            if hasattr(self.model, column_name):
                query = query.where(getattr(self.model, column_name) == value)

        count: int = (await db.execute(query)).scalar() or 0
        return count > 0
