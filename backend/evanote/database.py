from typing import Optional, Tuple
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from .config import get_settings
from .models import Base


def create_session_factory(database_url: Optional[str] = None) -> Tuple[AsyncEngine, async_sessionmaker]:
    """
    Create the async engine and a session factory bound to it.

    Args:
        database_url: Connection string, defaults to DATABASE_URL from settings

    Returns:
        (engine, session factory)
    """
    url = database_url or get_settings().DATABASE_URL
    engine = create_async_engine(url)

    if url.startswith("sqlite"):
        # SQLite ignores foreign keys (and the cascades) unless asked.
        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    session_factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    return engine, session_factory


# Function to create DB tables asynchronously
async def init_db(engine: AsyncEngine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
