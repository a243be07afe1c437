# tests/unit/test_inventory_ledger.py
import asyncio

import pytest
from sqlalchemy import func, select

from backoffice.models.enums import AdjustmentReason, MovementType
from backoffice.models.inventory import InventoryRecord, MovementRecord
from backoffice.services.adjustment_service import AdjustmentLine
from backoffice.services.errors import InsufficientStock, InvalidDocument
from backoffice.services.events import LOW_STOCK_DETECTED
from backoffice.services.uow import UnitOfWork
from tests.helpers.seed import P_CHIPS, P_COLA, P_RETIRED, P_WATER, WH_MAIN, WH_STORE


async def _movement_count(session, product_id: int, wh: int) -> int:
    r = await session.execute(
        select(func.count())
        .select_from(MovementRecord)
        .where(MovementRecord.product_id == product_id, MovementRecord.warehouse_id == wh)
    )
    return int(r.scalar_one())


@pytest.mark.asyncio
async def test_mutate_creates_record_lazily_and_appends_movement(services, session):
    """首次入库惰性建余额行；台账 quantity = delta，before/after 连续。"""
    assert await services.ledger.get_on_hand(session, P_WATER, WH_MAIN) == 0

    async with UnitOfWork(services.session_factory) as uow:
        r1 = await services.ledger.mutate(
            uow.session,
            product_id=P_WATER,
            warehouse_id=WH_MAIN,
            delta=30,
            movement_type=MovementType.ADJUST_IN,
            reference_type="UT",
            reference_no="UT-1",
            actor="tester",
        )
        r2 = await services.ledger.mutate(
            uow.session,
            product_id=P_WATER,
            warehouse_id=WH_MAIN,
            delta=-12,
            movement_type=MovementType.ADJUST_OUT,
            reference_type="UT",
            reference_no="UT-2",
            actor="tester",
        )

    assert (r1.before, r1.after) == (0, 30)
    assert (r2.before, r2.after) == (30, 18)
    assert r2.movement_id > r1.movement_id

    rows = await services.ledger.list_movements(session, P_WATER, WH_MAIN)
    assert [m.quantity for m in rows] == [30, -12]
    assert [m.movement_type for m in rows] == [MovementType.ADJUST_IN, MovementType.ADJUST_OUT]
    assert all(m.after_qty == m.before_qty + m.quantity for m in rows)

    rec = (
        await session.execute(
            select(InventoryRecord).where(
                InventoryRecord.product_id == P_WATER, InventoryRecord.warehouse_id == WH_MAIN
            )
        )
    ).scalar_one()
    assert rec.quantity == 18
    assert rec.version == 2


@pytest.mark.asyncio
async def test_mutate_rejects_negative_without_writing(services, session, put_stock, on_hand):
    """after < 0 → InsufficientStock，余额和台账都不变。"""
    await put_stock(P_WATER, WH_MAIN, 5)

    with pytest.raises(InsufficientStock) as ei:
        async with UnitOfWork(services.session_factory) as uow:
            await services.ledger.mutate(
                uow.session,
                product_id=P_WATER,
                warehouse_id=WH_MAIN,
                delta=-6,
                movement_type=MovementType.ADJUST_OUT,
                reference_type="UT",
                reference_no="UT-NEG",
                actor="tester",
            )

    assert ei.value.context == {
        "product_id": P_WATER,
        "warehouse_id": WH_MAIN,
        "requested": 6,
        "available": 5,
    }
    assert await on_hand(P_WATER, WH_MAIN) == 5
    assert await _movement_count(session, P_WATER, WH_MAIN) == 1


@pytest.mark.asyncio
async def test_mutate_outbound_on_missing_record_fails_fast(services, session):
    """没有余额行时出库：available=0，且不会留下空的余额行。"""
    with pytest.raises(InsufficientStock) as ei:
        async with UnitOfWork(services.session_factory) as uow:
            await services.ledger.mutate(
                uow.session,
                product_id=P_COLA,
                warehouse_id=WH_STORE,
                delta=-1,
                movement_type=MovementType.RETURN_OUT,
                reference_type="UT",
                reference_no="UT-MISSING",
                actor="tester",
            )
    assert ei.value.available == 0

    n = (
        await session.execute(
            select(func.count()).select_from(InventoryRecord).where(InventoryRecord.warehouse_id == WH_STORE)
        )
    ).scalar_one()
    assert n == 0


@pytest.mark.asyncio
async def test_mutate_zero_delta_is_invalid(services):
    with pytest.raises(InvalidDocument):
        async with UnitOfWork(services.session_factory) as uow:
            await services.ledger.mutate(
                uow.session,
                product_id=P_WATER,
                warehouse_id=WH_MAIN,
                delta=0,
                movement_type=MovementType.ADJUST_IN,
                reference_type="UT",
                reference_no="UT-ZERO",
                actor="tester",
            )


@pytest.mark.asyncio
async def test_lock_and_validate_checks_aggregated_batch(services, put_stock):
    """按商品汇总后校验：同一商品两行 -6、-6 对 10 的库存应整体拒绝。"""
    await put_stock(P_COLA, WH_MAIN, 10)
    await put_stock(P_WATER, WH_MAIN, 3)

    async with UnitOfWork(services.session_factory) as uow:
        avail = await services.ledger.lock_and_validate(uow.session, WH_MAIN, {P_COLA: -10, P_WATER: -3})
    assert avail == {P_COLA: 10, P_WATER: 3}

    with pytest.raises(InsufficientStock) as ei:
        async with UnitOfWork(services.session_factory) as uow:
            await services.ledger.lock_and_validate(uow.session, WH_MAIN, {P_COLA: -12})
    assert ei.value.requested == 12
    assert ei.value.available == 10


@pytest.mark.asyncio
async def test_verify_key_replays_movements(services, session, put_stock):
    await put_stock(P_WATER, WH_MAIN, 7)
    async with UnitOfWork(services.session_factory) as uow:
        await services.ledger.mutate(
            uow.session,
            product_id=P_WATER,
            warehouse_id=WH_MAIN,
            delta=-2,
            movement_type=MovementType.TRANSFER_OUT,
            reference_type="UT",
            reference_no="UT-V",
            actor="tester",
        )

    r = await services.ledger.verify_key(session, P_WATER, WH_MAIN)
    assert r.stored == 5
    assert r.replayed == 5
    assert r.movements == 2
    assert r.ok


@pytest.mark.asyncio
async def test_low_stock_event_only_when_crossing_safety(services, put_stock):
    """可乐安全库存 100：120 → 90 触发，90 → 80 不再触发；停用商品不触发。"""
    await put_stock(P_COLA, WH_MAIN, 120)
    await put_stock(P_RETIRED, WH_MAIN, 20)

    async def _out(product_id, delta, ref):
        async with UnitOfWork(services.session_factory) as uow:
            await services.ledger.mutate(
                uow.session,
                product_id=product_id,
                warehouse_id=WH_MAIN,
                delta=delta,
                movement_type=MovementType.ADJUST_OUT,
                reference_type="UT",
                reference_no=ref,
                actor="tester",
                on_event=uow.add_event,
            )
            return uow.events

    crossed = await _out(P_COLA, -30, "UT-LOW-1")
    assert [e.name for e in crossed] == [LOW_STOCK_DETECTED]
    assert crossed[0].payload["quantity"] == 90
    assert crossed[0].payload["safety_stock"] == 100

    assert await _out(P_COLA, -10, "UT-LOW-2") == []
    assert await _out(P_RETIRED, -15, "UT-LOW-3") == []


@pytest.mark.asyncio
async def test_concurrent_adjustments_serialize_on_one_key(services, on_hand, session):
    """N 个并发 +1 调整：最终数量 N，台账恰好 N 条。"""
    n = 8

    async def _one(i: int):
        return await services.adjustments.create_adjustment(
            warehouse_id=WH_MAIN,
            reason=AdjustmentReason.FOUND,
            lines=[AdjustmentLine(product_id=P_CHIPS, delta=1)],
            actor=f"clerk-{i}",
        )

    results = await asyncio.gather(*[_one(i) for i in range(n)])

    assert await on_hand(P_CHIPS, WH_MAIN) == n
    assert await _movement_count(session, P_CHIPS, WH_MAIN) == n
    numbers = {docs[0].adjustment_no for docs in results}
    assert len(numbers) == n

    r = await services.ledger.verify_key(session, P_CHIPS, WH_MAIN)
    assert r.ok
