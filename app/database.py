"""Database engine, session factory, and base model."""
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.config import settings


# SQLite picks its own pool class; pool sizing only applies to Postgres.
_pool_options = {} if settings.database_url.startswith("sqlite") else {
    "pool_size": 5,
    "max_overflow": 10,
    "pool_timeout": 30,
    "pool_recycle": 1800,
}

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **_pool_options,
)
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass
