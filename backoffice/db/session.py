# backoffice/db/session.py
# 异步引擎 + 会话工厂（进程内单例）
from __future__ import annotations

import re
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from backoffice.core.config import get_settings
from backoffice.db.engine import create_async_engine_safe

SessionFactory = async_sessionmaker[AsyncSession]


def normalize_async_dsn(url: str) -> str:
    """把各种写法的 DSN 统一到 psycopg3 / aiosqlite。"""
    url = url.strip()
    if (url.startswith('"') and url.endswith('"')) or (url.startswith("'") and url.endswith("'")):
        url = url[1:-1].strip()
    if url.startswith("sqlite:///"):
        return "sqlite+aiosqlite://" + url[len("sqlite:///") - 1 :]
    if url.startswith("postgresql+asyncpg://") or url.startswith("postgres+asyncpg://"):
        return re.sub(r"^postgres(?:ql)?\+asyncpg://", "postgresql+psycopg://", url)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def make_session_factory(engine: AsyncEngine) -> SessionFactory:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


_engine: Optional[AsyncEngine] = None
_factory: Optional[SessionFactory] = None


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        s = get_settings()
        _engine = create_async_engine_safe(normalize_async_dsn(s.DATABASE_URL), echo=s.SQL_ECHO)
    return _engine


def get_session_factory() -> SessionFactory:
    global _factory
    if _factory is None:
        _factory = make_session_factory(get_engine())
    return _factory


async def close_engine() -> None:
    global _engine, _factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _factory = None
