# backoffice/db/dialect.py
# PG / SQLite 共用的 INSERT ... ON CONFLICT 构造入口
from __future__ import annotations

from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession


def dialect_name(session: AsyncSession) -> str:
    return session.get_bind().dialect.name


def upsert_insert(session: AsyncSession, target: Any):
    """按当前连接的方言返回支持 on_conflict_* 的 insert()。"""
    name = dialect_name(session)
    if name == "postgresql":
        return pg_insert(target)
    if name == "sqlite":
        return sqlite_insert(target)
    raise NotImplementedError(f"unsupported dialect for upsert: {name}")
