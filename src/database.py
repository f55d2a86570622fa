from typing import Any, AsyncGenerator, Dict

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from src.config import settings


def engine_options(url: str) -> Dict[str, Any]:
    """SQLite keeps the driver defaults; server databases ping before reuse."""
    options: Dict[str, Any] = {"echo": False}
    if not url.startswith("sqlite"):
        options["pool_pre_ping"] = True
    return options


engine = create_async_engine(
    settings.SQLALCHEMY_DATABASE_URI,
    **engine_options(settings.SQLALCHEMY_DATABASE_URI),
)
AsyncSessionLocal = sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One session per request; anything left uncommitted by a failed request is rolled back."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
