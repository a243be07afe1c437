# backoffice/db/engine.py
# 统一引擎工厂：按后端注入 connect_args
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

__all__ = ["create_async_engine_safe"]

# SQLite 写锁等待（秒）；BEGIN IMMEDIATE 依赖它排队而不是立刻报 database is locked
SQLITE_BUSY_TIMEOUT = 30


def _connect_args_for(url_str: str) -> dict[str, Any]:
    """
    返回后端专属 connect_args：
    - PostgreSQL(psycopg): application_name
    - SQLite: check_same_thread + timeout
    """
    backend = make_url(url_str).get_backend_name()

    if backend.startswith("postgresql"):
        return {"application_name": "backoffice"}

    if backend.startswith("sqlite"):
        return {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT}

    return {}


def _sqlite_pragmas(dbapi_conn, _record) -> None:
    # 关掉 pysqlite 的隐式 BEGIN，事务边界交给下面的 begin 事件
    dbapi_conn.isolation_level = None
    cur = dbapi_conn.cursor()
    cur.execute("PRAGMA foreign_keys=ON")
    cur.close()


def _sqlite_begin_immediate(conn) -> None:
    # 事务一开始就拿写锁：单据状态读取与台账写入在同一把锁内
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_async_engine_safe(url_str: str, *, echo: bool = False, **extra: Any) -> AsyncEngine:
    """Async 引擎（'postgresql+psycopg' 或 'sqlite+aiosqlite'）。"""
    connect_args = _connect_args_for(url_str)
    backend = make_url(url_str).get_backend_name()

    kwargs: dict[str, Any] = {"echo": echo, **extra}
    if backend.startswith("postgresql"):
        kwargs["pool_pre_ping"] = True
    if connect_args:
        kwargs["connect_args"] = connect_args

    engine = create_async_engine(url_str, **kwargs)
    if backend.startswith("sqlite"):
        event.listen(engine.sync_engine, "connect", _sqlite_pragmas)
        event.listen(engine.sync_engine, "begin", _sqlite_begin_immediate)
    return engine
