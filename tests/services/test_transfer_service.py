# tests/services/test_transfer_service.py
import asyncio

import pytest
from sqlalchemy import select
from backoffice.models.enums import MovementType, TransferStatus
from backoffice.models.inventory import MovementRecord
from backoffice.services.errors import (
    InsufficientStock,
    InvalidDocument,
    InvalidStateTransition,
    InvalidTransfer,
    NotFound,
)
from backoffice.services.transfer_service import TransferLineInput
from tests.helpers.seed import P_CHIPS, P_COLA, WH_MAIN, WH_STORE

async def _create(services, *lines):
    return await services.transfers.create(
        from_warehouse_id=WH_MAIN,
        to_warehouse_id=WH_STORE,
        lines=[TransferLineInput(product_id=p, qty=q) for p, q in lines],
        actor="planner",
    )

@pytest.mark.asyncio
async def test_transfer_full_lifecycle_moves_stock(services, session, put_stock, on_hand):
    """调出仓 50 → 30，调入仓 10 → 30。"""
    await put_stock(P_COLA, WH_MAIN, 50)
    await put_stock(P_COLA, WH_STORE, 10)
    t = await _create(services, (P_COLA, 20))
    assert t.status == TransferStatus.DRAFT
    assert t.transfer_no.startswith("TRF")
    t = await services.transfers.approve(t.id, actor="boss")
    assert (t.status, t.approved_by) == (TransferStatus.APPROVED, "boss")
    # 审批不动库存
    assert await on_hand(P_COLA, WH_MAIN) == 50

    t = await services.transfers.ship(t.id, actor="porter")
    assert t.status == TransferStatus.IN_TRANSIT
    assert t.shipped_at is not None
    assert await on_hand(P_COLA, WH_MAIN) == 30
    assert await on_hand(P_COLA, WH_STORE) == 10

    t = await services.transfers.receive(t.id, actor="keeper")
    assert t.status == TransferStatus.COMPLETED
    assert t.received_by == "keeper"
    assert await on_hand(P_COLA, WH_MAIN) == 30
    assert await on_hand(P_COLA, WH_STORE) == 30

    types = (
        await session.execute(
            select(MovementRecord.movement_type)
            .where(MovementRecord.reference_no == t.transfer_no)
            .order_by(MovementRecord.id)
        )
    ).scalars().all()
    assert types == [MovementType.TRANSFER_OUT, MovementType.TRANSFER_IN]

@pytest.mark.asyncio
async def test_transfer_same_warehouse_rejected(services):
    with pytest.raises(InvalidTransfer):
        await services.transfers.create(
            from_warehouse_id=WH_MAIN,
            to_warehouse_id=WH_MAIN,
            lines=[TransferLineInput(product_id=P_COLA, qty=1)],
            actor="planner",
        )

@pytest.mark.asyncio
async def test_transfer_rejects_non_positive_qty(services):
    with pytest.raises(InvalidDocument):
        await _create(services, (P_COLA, 0))

@pytest.mark.asyncio
async def test_ship_insufficient_stock_keeps_status(services, put_stock, on_hand):
    await put_stock(P_COLA, WH_MAIN, 50)
    await put_stock(P_CHIPS, WH_MAIN, 5)
    t = await _create(services, (P_COLA, 10), (P_CHIPS, 6))
    await services.transfers.approve(t.id, actor="boss")

    with pytest.raises(InsufficientStock):
        await services.transfers.ship(t.id, actor="porter")
    t = await services.transfers.get(t.id)
    assert t.status == TransferStatus.APPROVED
    assert await on_hand(P_COLA, WH_MAIN) == 50
    assert await on_hand(P_CHIPS, WH_MAIN) == 5

@pytest.mark.asyncio
async def test_cancel_in_transit_reverses_source_stock(services, session, put_stock, on_hand):
    await put_stock(P_COLA, WH_MAIN, 50)
    t = await _create(services, (P_COLA, 20))
    await services.transfers.approve(t.id, actor="boss")
    await services.transfers.ship(t.id, actor="porter")
    assert await on_hand(P_COLA, WH_MAIN) == 30
    t = await services.transfers.cancel(t.id, actor="boss", reason="车辆故障")
    assert t.status == TransferStatus.CANCELLED
    assert t.cancelled_at is not None
    assert "车辆故障" in (t.notes or "")
    assert await on_hand(P_COLA, WH_MAIN) == 50
    assert await on_hand(P_COLA, WH_STORE) == 0

    reversal = (
        await session.execute(
            select(MovementRecord).where(MovementRecord.reference_type == "StockTransferReversal")
        )
    ).scalar_one()
    assert reversal.movement_type == MovementType.TRANSFER_IN
    assert reversal.quantity == 20
    assert reversal.warehouse_id == WH_MAIN

@pytest.mark.asyncio
async def test_cancel_draft_has_no_stock_effect(services, session, put_stock, on_hand):
    await put_stock(P_COLA, WH_MAIN, 50)
    t = await _create(services, (P_COLA, 20))
    t = await services.transfers.cancel(t.id, actor="planner")
    assert t.status == TransferStatus.CANCELLED
    assert await on_hand(P_COLA, WH_MAIN) == 50

    rows = (
        await session.execute(select(MovementRecord).where(MovementRecord.reference_no == t.transfer_no))
    ).scalars().all()
    assert rows == []

@pytest.mark.asyncio
async def test_illegal_transitions_are_rejected(services, put_stock):
    await put_stock(P_COLA, WH_MAIN, 50)
    t = await _create(services, (P_COLA, 5))
    # 未审批不能发货
    with pytest.raises(InvalidStateTransition) as ei:
        await services.transfers.ship(t.id, actor="porter")
    assert ei.value.from_status == "DRAFT"
    assert ei.value.to_status == "IN_TRANSIT"
    await services.transfers.approve(t.id, actor="boss")
    await services.transfers.ship(t.id, actor="porter")
    await services.transfers.receive(t.id, actor="keeper")
    with pytest.raises(InvalidStateTransition):
        await services.transfers.cancel(t.id, actor="boss")
    with pytest.raises(InvalidStateTransition):
        await services.transfers.receive(t.id, actor="keeper")

@pytest.mark.asyncio
async def test_unknown_transfer(services):
    with pytest.raises(NotFound):
        await services.transfers.approve(424242, actor="boss")

@pytest.mark.asyncio
async def test_concurrent_ship_debits_source_once(services, put_stock, on_hand):
    """同一调拨单并发发货：只有一次成功，调出仓只扣一次。"""
    await put_stock(P_COLA, WH_MAIN, 50)
    t = await _create(services, (P_COLA, 20))
    t = await services.transfers.approve(t.id, actor="boss")

    results = await asyncio.gather(
        services.transfers.ship(t.id, actor="porter-1"),
        services.transfers.ship(t.id, actor="porter-2"),
        return_exceptions=True,
    )

    shipped = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, Exception)]
    assert [s.status for s in shipped] == [TransferStatus.IN_TRANSIT]
    assert len(rejected) == 1 and isinstance(rejected[0], InvalidStateTransition)
    assert await on_hand(P_COLA, WH_MAIN) == 30
