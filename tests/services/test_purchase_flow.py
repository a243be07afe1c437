# tests/services/test_purchase_flow.py
import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import select

from backoffice.models.enums import (
    HandlingMethod,
    MovementType,
    PurchaseOrderStatus,
    PurchaseReturnStatus,
    ReturnReason,
)
from backoffice.models.inventory import MovementRecord
from backoffice.services.errors import (
    InsufficientStock,
    InvalidDocument,
    InvalidStateTransition,
    QuantityExceedsPending,
)
from backoffice.services.purchase_order_service import PurchaseLineInput, price_line
from backoffice.services.purchase_receipt_service import ReceiptLineInput
from backoffice.services.purchase_return_service import ReturnLineInput
from tests.helpers.seed import P_CHIPS, P_COLA, S_INACTIVE, S_PRIMARY, WH_MAIN


async def _approved_po(services, *lines):
    po = await services.purchase_orders.create(
        supplier_id=S_PRIMARY,
        warehouse_id=WH_MAIN,
        lines=[PurchaseLineInput(product_id=p, qty=q, unit_price=Decimal(price)) for p, q, price in lines],
        actor="buyer",
    )
    return await services.purchase_orders.approve(po.id, actor="boss")


def _receive(services, po, qty, *, arrived=None, rejected=0):
    line = po.lines[0]
    return services.receipts.create_receipt(
        po_id=po.id,
        lines=[
            ReceiptLineInput(
                po_item_id=line.id,
                arrived_qty=arrived if arrived is not None else qty + rejected,
                received_qty=qty,
                rejected_qty=rejected,
            )
        ],
        actor="keeper",
    )


def test_price_line_rounds_half_up():
    assert price_line(100, Decimal("9.00"), Decimal("0.05")) == (Decimal("900.00"), Decimal("45.00"))
    assert price_line(7, Decimal("1.13"), Decimal("0.05")) == (Decimal("7.91"), Decimal("0.40"))


@pytest.mark.asyncio
async def test_create_purchase_order_totals(services):
    po = await services.purchase_orders.create(
        supplier_id=S_PRIMARY,
        warehouse_id=WH_MAIN,
        lines=[
            PurchaseLineInput(product_id=P_COLA, qty=100, unit_price=Decimal("9.00")),
            PurchaseLineInput(product_id=P_CHIPS, qty=7, unit_price=Decimal("1.13")),
        ],
        actor="buyer",
    )
    assert po.po_no.startswith("PO")
    assert po.status == PurchaseOrderStatus.PENDING
    assert po.subtotal == Decimal("907.91")
    assert po.tax_amount == Decimal("45.40")
    assert po.total_amount == Decimal("953.31")
    assert po.expected_date > po.order_date


@pytest.mark.asyncio
async def test_create_purchase_order_rejects_inactive_supplier(services):
    with pytest.raises(InvalidDocument):
        await services.purchase_orders.create(
            supplier_id=S_INACTIVE,
            warehouse_id=WH_MAIN,
            lines=[PurchaseLineInput(product_id=P_COLA, qty=1, unit_price=Decimal("1"))],
            actor="buyer",
        )


@pytest.mark.asyncio
async def test_partial_then_full_receiving(services, session, on_hand):
    """100 件：先收 40 → PARTIAL，再收 60 → COMPLETED，之后再收 → QuantityExceedsPending。"""
    po = await _approved_po(services, (P_COLA, 100, "9.00"))

    r1 = await _receive(services, po, 40)
    assert r1.receipt_no.startswith("GR")
    assert r1.total_received == 40
    po = await services.purchase_orders.get(po.id)
    assert po.status == PurchaseOrderStatus.PARTIAL
    assert po.lines[0].received_qty == 40
    assert await on_hand(P_COLA, WH_MAIN) == 40

    r2 = await _receive(services, po, 60, rejected=5)
    assert r2.lines[0].previously_received_qty == 40
    assert r2.lines[0].pending_qty == 60
    assert r2.total_rejected == 5
    po = await services.purchase_orders.get(po.id)
    assert po.status == PurchaseOrderStatus.COMPLETED
    assert po.lines[0].received_qty == 100
    assert await on_hand(P_COLA, WH_MAIN) == 100

    with pytest.raises(QuantityExceedsPending) as ei:
        await _receive(services, po, 1)
    assert ei.value.context["pending"] == 0
    assert await on_hand(P_COLA, WH_MAIN) == 100

    mv = (
        await session.execute(
            select(MovementRecord).where(MovementRecord.reference_no == r1.receipt_no)
        )
    ).scalar_one()
    assert mv.movement_type == MovementType.PURCHASE_IN
    assert mv.unit_cost == Decimal("9.00")


@pytest.mark.asyncio
async def test_over_receipt_rejects_whole_receipt(services, on_hand):
    po = await _approved_po(services, (P_COLA, 10, "9.00"), (P_CHIPS, 5, "4.00"))
    cola, chips = po.lines

    with pytest.raises(QuantityExceedsPending):
        await services.receipts.create_receipt(
            po_id=po.id,
            lines=[
                ReceiptLineInput(po_item_id=cola.id, arrived_qty=10, received_qty=10),
                ReceiptLineInput(po_item_id=chips.id, arrived_qty=6, received_qty=6),
            ],
            actor="keeper",
        )

    po = await services.purchase_orders.get(po.id)
    assert po.status == PurchaseOrderStatus.APPROVED
    assert [ln.received_qty for ln in po.lines] == [0, 0]
    assert await on_hand(P_COLA, WH_MAIN) == 0


@pytest.mark.asyncio
async def test_concurrent_receipts_respect_pending_qty(services, on_hand):
    """100 件的采购单并发两张 60 件验收：后到的一张按剩余 40 拒收，台账与已收数一致。"""
    po = await _approved_po(services, (P_COLA, 100, "9.00"))

    results = await asyncio.gather(
        _receive(services, po, 60),
        _receive(services, po, 60),
        return_exceptions=True,
    )

    accepted = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, Exception)]
    assert len(accepted) == 1
    assert len(rejected) == 1 and isinstance(rejected[0], QuantityExceedsPending)
    assert rejected[0].context["pending"] == 40

    po = await services.purchase_orders.get(po.id)
    assert po.status == PurchaseOrderStatus.PARTIAL
    assert po.lines[0].received_qty == 60
    assert await on_hand(P_COLA, WH_MAIN) == 60


@pytest.mark.asyncio
async def test_receipt_requires_approved_po(services):
    po = await services.purchase_orders.create(
        supplier_id=S_PRIMARY,
        warehouse_id=WH_MAIN,
        lines=[PurchaseLineInput(product_id=P_COLA, qty=10, unit_price=Decimal("9.00"))],
        actor="buyer",
    )
    with pytest.raises(InvalidStateTransition):
        await _receive(services, po, 1)


@pytest.mark.asyncio
async def test_receipt_line_validation(services):
    po = await _approved_po(services, (P_COLA, 10, "9.00"))
    with pytest.raises(InvalidDocument):
        await _receive(services, po, 5, arrived=3)
    with pytest.raises(InvalidDocument):
        await services.receipts.create_receipt(
            po_id=po.id,
            lines=[ReceiptLineInput(po_item_id=999, arrived_qty=1, received_qty=1)],
            actor="keeper",
        )


@pytest.mark.asyncio
async def test_cancel_and_close_rules(services):
    pending = await services.purchase_orders.create(
        supplier_id=S_PRIMARY,
        warehouse_id=WH_MAIN,
        lines=[PurchaseLineInput(product_id=P_COLA, qty=10, unit_price=Decimal("9.00"))],
        actor="buyer",
    )
    cancelled = await services.purchase_orders.cancel(pending.id, actor="boss")
    assert cancelled.status == PurchaseOrderStatus.CANCELLED
    with pytest.raises(InvalidStateTransition):
        await services.purchase_orders.approve(pending.id, actor="boss")

    po = await _approved_po(services, (P_COLA, 10, "9.00"))
    await _receive(services, po, 4)
    # 已有收货不能取消，只能短收结案
    with pytest.raises(InvalidStateTransition):
        await services.purchase_orders.cancel(po.id, actor="boss")
    closed = await services.purchase_orders.close(po.id, actor="boss")
    assert closed.status == PurchaseOrderStatus.CLOSED
    assert closed.closed_at is not None

    with pytest.raises(InvalidStateTransition):
        await _receive(services, closed, 1)


@pytest.mark.asyncio
async def test_purchase_return_completion_deducts_stock(services, session, put_stock, on_hand):
    await put_stock(P_COLA, WH_MAIN, 30)
    doc = await services.returns.create(
        supplier_id=S_PRIMARY,
        warehouse_id=WH_MAIN,
        reason=ReturnReason.DEFECT,
        handling=HandlingMethod.REFUND,
        lines=[ReturnLineInput(product_id=P_COLA, qty=8, unit_price=Decimal("9.00"))],
        actor="buyer",
    )
    assert doc.return_no.startswith("PR")
    assert doc.total_qty == 8
    assert doc.total_amount == Decimal("72.00")

    # 未审批不能完成
    with pytest.raises(InvalidStateTransition):
        await services.returns.complete(doc.id, actor="keeper")

    await services.returns.approve(doc.id, actor="boss")
    doc = await services.returns.complete(doc.id, actor="keeper")
    assert doc.status == PurchaseReturnStatus.COMPLETED
    assert await on_hand(P_COLA, WH_MAIN) == 22

    mv = (
        await session.execute(select(MovementRecord).where(MovementRecord.reference_no == doc.return_no))
    ).scalar_one()
    assert mv.movement_type == MovementType.RETURN_OUT
    assert mv.quantity == -8

    with pytest.raises(InvalidStateTransition):
        await services.returns.cancel(doc.id, actor="boss")


@pytest.mark.asyncio
async def test_purchase_return_without_stock_fails_fast(services):
    """没有库存记录时完成退货：直接 InsufficientStock，单据保持 APPROVED。"""
    doc = await services.returns.create(
        supplier_id=S_PRIMARY,
        warehouse_id=WH_MAIN,
        reason=ReturnReason.EXCESS,
        lines=[ReturnLineInput(product_id=P_CHIPS, qty=3)],
        actor="buyer",
    )
    # 未给单价时取商品成本价
    assert doc.lines[0].unit_price == Decimal("4.50")
    await services.returns.approve(doc.id, actor="boss")

    with pytest.raises(InsufficientStock) as ei:
        await services.returns.complete(doc.id, actor="keeper")
    assert ei.value.available == 0

    doc = await services.returns.get(doc.id)
    assert doc.status == PurchaseReturnStatus.APPROVED
