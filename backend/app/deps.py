from typing import AsyncIterator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .database import async_session
from .infrastructure.repositories import SqlAlchemyServiceRepository, SqlAlchemyTimeSlotRepository


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


async def get_service_repo(session: AsyncSession = Depends(get_session)) -> SqlAlchemyServiceRepository:
    return SqlAlchemyServiceRepository(session)


async def get_slot_repo(session: AsyncSession = Depends(get_session)) -> SqlAlchemyTimeSlotRepository:
    return SqlAlchemyTimeSlotRepository(session)
