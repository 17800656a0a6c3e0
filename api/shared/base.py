"""Base repository shared by the persistence layer."""
from abc import ABC
from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy import delete, func, select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Executable

from api.shared.entities.base import BaseEntity, is_storable_id
from api.shared.exceptions import StoreUnavailableError

T = TypeVar("T", bound=BaseEntity)


class BaseRepository(ABC, Generic[T]):
    """Base repository with common CRUD operations.

    Every statement goes through `_execute`, which turns driver-level
    connectivity failures into `StoreUnavailableError`. Integrity errors are
    left alone for callers that give them domain meaning.
    Ids outside the column range match no row and never reach the driver.
    """

    model: Type[T]

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _execute(self, stmt: Executable) -> Any:
        try:
            return await self.session.execute(stmt)
        except IntegrityError:
            raise
        except DBAPIError as e:
            raise StoreUnavailableError(
                "Database operation failed", {"reason": str(e.orig or e)}
            ) from e

    async def _flush(self) -> None:
        try:
            await self.session.flush()
        except IntegrityError:
            raise
        except DBAPIError as e:
            raise StoreUnavailableError(
                "Database operation failed", {"reason": str(e.orig or e)}
            ) from e

    async def create(self, entity: T) -> T:
        """Create new entity."""
        self.session.add(entity)
        await self._flush()
        return entity

    async def get_by_id(self, entity_id: int) -> Optional[T]:
        """Get entity by ID."""
        if not is_storable_id(entity_id):
            return None
        stmt = select(self.model).where(self.model.id == entity_id)
        result = await self._execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_field(
        self, field_name: str, value: Any, limit: Optional[int] = None
    ) -> List[T]:
        """Get entities by field value."""
        field = getattr(self.model, field_name)
        stmt = select(self.model).where(field == value).order_by(self.model.id)

        if limit:
            stmt = stmt.limit(limit)

        result = await self._execute(stmt)
        return list(result.scalars().all())

    async def delete(self, entity_id: int) -> bool:
        """Delete entity by ID."""
        if not is_storable_id(entity_id):
            return False
        stmt = delete(self.model).where(self.model.id == entity_id)
        result = await self._execute(stmt)
        return result.rowcount > 0

    async def delete_by_field(self, field_name: str, value: Any) -> int:
        """Delete entities by field value."""
        field = getattr(self.model, field_name)
        stmt = delete(self.model).where(field == value)
        result = await self._execute(stmt)
        return result.rowcount

    async def exists(self, entity_id: int) -> bool:
        """Check if entity exists."""
        if not is_storable_id(entity_id):
            return False
        stmt = select(self.model.id).where(self.model.id == entity_id)
        result = await self._execute(stmt)
        return result.scalar_one_or_none() is not None

    async def count(self) -> int:
        """Count all rows."""
        stmt = select(func.count(self.model.id))
        result = await self._execute(stmt)
        return int(result.scalar() or 0)


class BaseService(ABC):
    """Base service class: owns transaction boundaries for its operations."""

    @staticmethod
    async def _commit(session: AsyncSession) -> None:
        """Commit, mapping connectivity failures to `StoreUnavailableError`."""
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            raise
        except DBAPIError as e:
            await session.rollback()
            raise StoreUnavailableError(
                "Database commit failed", {"reason": str(e.orig or e)}
            ) from e
