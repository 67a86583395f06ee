# linkhub/infrastructure/database.py
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import structlog
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine

from linkhub.config import get_settings

logger = structlog.get_logger(__name__)

engine: AsyncEngine = create_async_engine(get_settings().database_url, echo=False)


async def init_db(bind: Optional[AsyncEngine] = None) -> None:
    async with (bind or engine).begin() as connection:
        await connection.run_sync(SQLModel.metadata.create_all)
    logger.info("db_tables_ready")


@asynccontextmanager
async def get_session(bind: Optional[AsyncEngine] = None) -> AsyncIterator[AsyncSession]:
    async with AsyncSession(bind or engine, expire_on_commit=False) as session:
        yield session
