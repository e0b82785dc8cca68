import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession


logger = logging.getLogger(__name__)

T = TypeVar("T")


class SQLAlchemyTransactionManager:
    """Run a unit of work on an AsyncSession and commit or roll back as a whole."""

    async def run(self, session: AsyncSession, work: Callable[[], Awaitable[T]]) -> T:
        try:
            result = await work()
            await session.commit()
        except Exception:
            await session.rollback()
            logger.info("Transaction rolled back")
            raise

        return result
