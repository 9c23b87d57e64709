"""Database configuration and async SQLAlchemy setup."""
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from app.config import settings

# Base class for models
Base = declarative_base()


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; pool tuning only applies to server databases."""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo, future=True)
    return create_async_engine(
        url,
        echo=echo,
        future=True,
        pool_pre_ping=True,
        pool_recycle=1800,
    )


def build_session_factory(bind: AsyncEngine) -> sessionmaker:
    """Session factory bound to an engine. Sessions never expire on commit."""
    return sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        future=True,
    )


engine = build_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
AsyncSessionLocal = build_session_factory(engine)


async def create_tables(bind: AsyncEngine = engine) -> None:
    """Create all tables. Development shortcut; production runs Alembic."""
    # Register models on Base.metadata
    import app.models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    """Dependency to get database session."""
    async with AsyncSessionLocal() as session:
        yield session
