# redditpulse/api/deps.py
from typing import AsyncGenerator, Annotated, TypeAlias

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from redditpulse.db.database import async_session_maker
from redditpulse.core.logger import logger


async def get_db_async() -> AsyncGenerator[AsyncSession, None]:
    """Async DB dependency."""
    async with async_session_maker() as db:
        try:
            yield db
        except Exception:
            logger.error("Async DB session error", exc_info=True)
            raise


AsyncDbDep: TypeAlias = Annotated[AsyncSession, Depends(get_db_async)]
