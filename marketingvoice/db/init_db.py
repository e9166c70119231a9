# marketingvoice/db/init_db.py
import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.sql import text
from tenacity import retry, stop_after_attempt, wait_exponential

from . import models  # noqa: F401  registers the tables on Base.metadata
from .session import Base, engine

logger = logging.getLogger(__name__)


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=4, max=10),
    reraise=True
)
async def verify_db_connection(db_engine: AsyncEngine = engine) -> bool:
    try:
        async with db_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {e}")
        raise


async def init_db(db_engine: AsyncEngine = engine) -> None:
    """Create all tables that do not exist yet."""
    await verify_db_connection(db_engine)

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables created successfully")


if __name__ == "__main__":
    asyncio.run(init_db())
