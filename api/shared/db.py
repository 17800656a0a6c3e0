"""Request-scoped database session for FastAPI routers."""
from typing import AsyncIterator

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.di.container import ApplicationContainer
from infra.resources import DatabaseResource


@inject
async def get_db_session(
    database: DatabaseResource = Depends(
        Provide[ApplicationContainer.infrastructure.database]
    ),
) -> AsyncIterator[AsyncSession]:
    """One session per request.

    Services commit their own steps; whatever is still pending when the
    request ends is rolled back by `close()`.
    """
    async with database.get_session() as session:
        yield session
