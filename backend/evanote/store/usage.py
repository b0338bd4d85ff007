from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from loguru import logger

from ..exceptions import PersistenceError
from ..metrics import UsageMetrics
from ..models import UsageMetric


class UsageStore:
    """Append-only usage accounting."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def record(self, metrics: UsageMetrics) -> UsageMetric:
        try:
            async with self.session_factory() as session:
                row = UsageMetric(**metrics.to_dict())
                session.add(row)
                await session.commit()
                return row
        except SQLAlchemyError as e:
            logger.error(f"Error recording usage for visit {metrics.visit_id}: {type(e).__name__}")
            raise PersistenceError(context={"visit_id": metrics.visit_id}) from e
