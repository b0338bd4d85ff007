from typing import Optional
import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from loguru import logger

from ..exceptions import PersistenceError
from ..models import Profile


class ProfileStore:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def find_by_external_id(self, external_user_id: str) -> Optional[Profile]:
        async with self.session_factory() as session:
            result = await session.execute(
                sa.select(Profile).where(Profile.external_user_id == external_user_id)
            )
            return result.scalar_one_or_none()

    async def create(self, external_user_id: str, full_name: Optional[str] = None) -> Profile:
        try:
            async with self.session_factory() as session:
                profile = Profile(external_user_id=external_user_id, full_name=full_name)
                session.add(profile)
                await session.commit()
                return profile
        except SQLAlchemyError as e:
            logger.error(f"Error creating profile: {type(e).__name__}")
            raise PersistenceError() from e
