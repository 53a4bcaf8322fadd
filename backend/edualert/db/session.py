from typing import AsyncIterator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool, StaticPool
from edualert.core.config import settings
from edualert.core.exceptions import PersistenceError

db_url = settings.DATABASE_URL
engine_kwargs = {"future": True}

if db_url.startswith("sqlite"):
    # Single shared connection so in-memory databases survive across sessions
    engine_kwargs.update(
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
else:
    # For Supabase/PostgreSQL with asyncpg, SSL is specified in the URL, not connect_args
    if "supabase" in db_url and "ssl=" not in db_url:
        db_url = db_url + ("&" if "?" in db_url else "?") + "ssl=require"
    engine_kwargs["poolclass"] = NullPool

engine = create_async_engine(db_url, **engine_kwargs)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

async def get_db() -> AsyncIterator[AsyncSession]:
    """
    Dependency for getting an async database session.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()

async def commit_or_raise(session: AsyncSession) -> None:
    """
    Commit a primary write. Failures roll back and surface as PersistenceError.
    """
    try:
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        raise PersistenceError(str(getattr(e, "orig", None) or e), code=getattr(e, "code", None)) from e
