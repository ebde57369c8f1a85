from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import DeclarativeBase, Session

from src.config import get_settings

settings = get_settings()


class Base(DeclarativeBase):
    pass


engine = create_async_engine(settings.database_url, echo=settings.debug)


def _ensure_sqlite_dir(url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    if not url.startswith("sqlite") or ":memory:" in url:
        return
    path = url.split("///", 1)[-1]
    Path(path).parent.mkdir(parents=True, exist_ok=True)


async def init_db() -> None:
    # Import models so they register on Base.metadata
    import src.models  # noqa: F401

    _ensure_sqlite_dir(settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@lru_cache
def get_sync_engine() -> Engine:
    url = settings.sync_database_url
    _ensure_sqlite_dir(url)
    return create_engine(url)


def get_sync_session() -> Session:
    """同步 Session（給排程與 CLI 使用）"""
    return Session(get_sync_engine())
