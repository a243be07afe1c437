# tests/conftest.py
from __future__ import annotations

from typing import AsyncGenerator, Awaitable, Callable

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from backoffice.api.deps import Services, build_services
from backoffice.db.base import Base, init_models
from backoffice.db.engine import create_async_engine_safe
from backoffice.db.session import make_session_factory
from backoffice.models.enums import MovementType
from backoffice.services.uow import UnitOfWork
from tests.helpers.seed import seed_reference_data


# =========================================
# 每用例独立 SQLite 文件 + NullPool
# =========================================
@pytest_asyncio.fixture(scope="function")
async def async_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    init_models()
    engine = create_async_engine_safe(f"sqlite+aiosqlite:///{tmp_path / 'backoffice.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await seed_reference_data(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(async_engine)


@pytest_asyncio.fixture(scope="function")
async def session(async_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """
    只读断言用的 Session：独立引擎、pysqlite 隐式事务（SELECT 不开事务），
    不会像业务引擎的 BEGIN IMMEDIATE 那样在用例期间一直占着写锁。
    """
    observer = create_async_engine(async_engine.url, poolclass=NullPool, connect_args={"timeout": 30})
    try:
        async with AsyncSession(observer, expire_on_commit=False) as sess:
            yield sess
    finally:
        await observer.dispose()


@pytest.fixture(scope="function")
def services(session_factory) -> Services:
    return build_services(session_factory)


@pytest.fixture
def put_stock(services: Services) -> Callable[[int, int, int], Awaitable[None]]:
    """
    直接经 ledger 铺初始库存（不经过调整单）：
        await put_stock(product_id, warehouse_id, qty)
    """

    async def _put(product_id: int, warehouse_id: int, qty: int) -> None:
        async with UnitOfWork(services.session_factory) as uow:
            await services.ledger.mutate(
                uow.session,
                product_id=product_id,
                warehouse_id=warehouse_id,
                delta=qty,
                movement_type=MovementType.ADJUST_IN,
                reference_type="TestSeed",
                reference_no=f"SEED-{product_id}-{warehouse_id}",
                actor="test",
            )

    return _put


@pytest.fixture
def on_hand(services: Services) -> Callable[[int, int], Awaitable[int]]:
    async def _q(product_id: int, warehouse_id: int) -> int:
        async with services.session_factory() as s:
            return await services.ledger.get_on_hand(s, product_id, warehouse_id)

    return _q


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[httpx.AsyncClient, None]:
    from backoffice.main import create_app

    app = create_app(session_factory)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
