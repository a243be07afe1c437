# tests/services/test_adjustment_service.py
import pytest
from sqlalchemy import func, select

from backoffice.models.enums import AdjustmentReason, AdjustmentStatus, MovementType
from backoffice.models.inventory import MovementRecord
from backoffice.models.stock_adjustment import StockAdjustment
from backoffice.services.adjustment_service import AdjustmentLine
from backoffice.services.errors import InsufficientStock, InvalidDocument, NotFound
from tests.helpers.seed import P_CHIPS, P_COLA, P_WATER, WH_MAIN


async def _count(session, model) -> int:
    return int((await session.execute(select(func.count()).select_from(model))).scalar_one())


@pytest.mark.asyncio
async def test_adjustment_posts_one_document_per_line(services, session, put_stock, on_hand):
    await put_stock(P_COLA, WH_MAIN, 50)

    docs = await services.adjustments.create_adjustment(
        warehouse_id=WH_MAIN,
        reason=AdjustmentReason.DAMAGE,
        lines=[
            AdjustmentLine(product_id=P_COLA, delta=-5, notes="破损"),
            AdjustmentLine(product_id=P_WATER, delta=12),
        ],
        actor="clerk",
    )

    assert len(docs) == 2
    assert docs[0].adjustment_no != docs[1].adjustment_no
    assert all(d.adjustment_no.startswith("ADJ") for d in docs)
    assert all(d.status == AdjustmentStatus.COMPLETED for d in docs)
    assert (docs[0].before_qty, docs[0].after_qty, docs[0].delta) == (50, 45, -5)
    assert (docs[1].before_qty, docs[1].after_qty) == (0, 12)

    assert await on_hand(P_COLA, WH_MAIN) == 45
    assert await on_hand(P_WATER, WH_MAIN) == 12

    mv = (
        await session.execute(
            select(MovementRecord).where(MovementRecord.reference_no == docs[0].adjustment_no)
        )
    ).scalar_one()
    assert mv.movement_type == MovementType.ADJUST_OUT
    assert mv.reference_type == "StockAdjustment"
    assert mv.quantity == -5


@pytest.mark.asyncio
async def test_adjustment_is_all_or_nothing(services, session, put_stock, on_hand):
    """第二行库存不足：第一行也不能落账。"""
    await put_stock(P_COLA, WH_MAIN, 50)
    await put_stock(P_CHIPS, WH_MAIN, 3)
    movements_before = await _count(session, MovementRecord)

    with pytest.raises(InsufficientStock) as ei:
        await services.adjustments.create_adjustment(
            warehouse_id=WH_MAIN,
            reason=AdjustmentReason.LOST,
            lines=[
                AdjustmentLine(product_id=P_COLA, delta=-10),
                AdjustmentLine(product_id=P_CHIPS, delta=-4),
            ],
            actor="clerk",
        )

    assert ei.value.product_id == P_CHIPS
    assert ei.value.available == 3
    assert await on_hand(P_COLA, WH_MAIN) == 50
    assert await on_hand(P_CHIPS, WH_MAIN) == 3
    assert await _count(session, MovementRecord) == movements_before
    assert await _count(session, StockAdjustment) == 0


@pytest.mark.asyncio
async def test_adjustment_checks_same_product_lines_together(services, put_stock, on_hand):
    await put_stock(P_COLA, WH_MAIN, 10)

    with pytest.raises(InsufficientStock):
        await services.adjustments.create_adjustment(
            warehouse_id=WH_MAIN,
            reason=AdjustmentReason.DAMAGE,
            lines=[
                AdjustmentLine(product_id=P_COLA, delta=-6),
                AdjustmentLine(product_id=P_COLA, delta=-6),
            ],
            actor="clerk",
        )
    assert await on_hand(P_COLA, WH_MAIN) == 10


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "lines",
    [
        [],
        [AdjustmentLine(product_id=P_COLA, delta=0)],
    ],
)
async def test_adjustment_rejects_empty_or_zero_lines(services, lines):
    with pytest.raises(InvalidDocument):
        await services.adjustments.create_adjustment(
            warehouse_id=WH_MAIN, reason=AdjustmentReason.OTHER, lines=lines, actor="clerk"
        )


@pytest.mark.asyncio
async def test_adjustment_unknown_product_or_warehouse(services):
    with pytest.raises(NotFound):
        await services.adjustments.create_adjustment(
            warehouse_id=WH_MAIN,
            reason=AdjustmentReason.FOUND,
            lines=[AdjustmentLine(product_id=999, delta=1)],
            actor="clerk",
        )
    with pytest.raises(NotFound):
        await services.adjustments.create_adjustment(
            warehouse_id=999,
            reason=AdjustmentReason.FOUND,
            lines=[AdjustmentLine(product_id=P_COLA, delta=1)],
            actor="clerk",
        )
