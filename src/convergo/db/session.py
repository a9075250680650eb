"""Async database engine and session management."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from convergo.config import get_settings

# DATABASE_URL, or data/convergo.db at the project root
DATABASE_URL = get_settings().database_url

engine = create_async_engine(DATABASE_URL, echo=False)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncSession:
    """Get a new async database session."""
    async with async_session() as session:
        yield session
