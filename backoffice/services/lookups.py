# backoffice/services/lookups.py
# 通用取数：不存在 → NotFound；单据状态校验前先 FOR UPDATE 锁行
from __future__ import annotations

from typing import Iterable, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.models.reference import Product, Supplier, Warehouse
from backoffice.services.errors import NotFound

T = TypeVar("T")


async def require(session: AsyncSession, model: Type[T], id: int, entity: str) -> T:
    obj = await session.get(model, id)
    if obj is None:
        raise NotFound(entity, id)
    return obj


async def lock_document(session: AsyncSession, model: Type[T], id: int, entity: str) -> T:
    """读单据头并加行锁，刷新 identity map 中的旧状态。"""
    q = (
        select(model)
        .where(model.id == id)  # type: ignore[attr-defined]
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    obj = (await session.execute(q)).scalars().first()
    if obj is None:
        raise NotFound(entity, id)
    return obj


async def require_warehouse(session: AsyncSession, warehouse_id: int) -> Warehouse:
    return await require(session, Warehouse, warehouse_id, "warehouse")


async def require_supplier(session: AsyncSession, supplier_id: int) -> Supplier:
    return await require(session, Supplier, supplier_id, "supplier")


async def require_products(session: AsyncSession, product_ids: Iterable[int]) -> dict[int, Product]:
    ids = sorted(set(int(p) for p in product_ids))
    if not ids:
        return {}
    rows = (await session.execute(select(Product).where(Product.id.in_(ids)))).scalars().all()
    found = {p.id: p for p in rows}
    for pid in ids:
        if pid not in found:
            raise NotFound("product", pid)
    return found
