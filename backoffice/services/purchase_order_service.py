# backoffice/services/purchase_order_service.py
"""
采购单

    PENDING → APPROVED → PARTIAL → COMPLETED → CLOSED
    PENDING / APPROVED / PARTIAL → CANCELLED（前提：任何行都未收货）
    PARTIAL / COMPLETED → CLOSED（短收结案）

收货推进状态见 purchase_receipt_service。
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backoffice.core.config import get_settings
from backoffice.metrics import WORKFLOW_TRANSITIONS
from backoffice.models.enums import PURCHASE_ORDER_TRANSITIONS, DocumentType, PurchaseOrderStatus
from backoffice.models.purchase_order import PurchaseOrder, PurchaseOrderLine
from backoffice.services.errors import InvalidDocument, InvalidStateTransition
from backoffice.services.events import InventoryEventBus
from backoffice.services.lookups import (
    lock_document,
    require,
    require_products,
    require_supplier,
    require_warehouse,
)
from backoffice.services.sequence_service import flush_document, generate_number
from backoffice.services.transitions import ensure_transition
from backoffice.services.uow import UnitOfWork

logger = logging.getLogger("backoffice.purchase")

CENT = Decimal("0.01")


@dataclass(frozen=True)
class PurchaseLineInput:
    product_id: int
    qty: int
    unit_price: Decimal
    notes: Optional[str] = None


def money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def price_line(qty: int, unit_price: Decimal, tax_rate: Decimal) -> Tuple[Decimal, Decimal]:
    """返回 (金额, 税额)；税额 = round(金额 × 税率, 2)。"""
    amount = money(Decimal(int(qty)) * Decimal(unit_price))
    return amount, money(amount * Decimal(tax_rate))


def derive_receiving_status(lines: Sequence[PurchaseOrderLine]) -> Optional[PurchaseOrderStatus]:
    """全部收满 → COMPLETED；有任何收货 → PARTIAL；一行未收 → None。"""
    if lines and all(int(ln.received_qty or 0) >= int(ln.ordered_qty) for ln in lines):
        return PurchaseOrderStatus.COMPLETED
    if any(int(ln.received_qty or 0) > 0 for ln in lines):
        return PurchaseOrderStatus.PARTIAL
    return None


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def build_purchase_order(
    session: AsyncSession,
    *,
    supplier_id: int,
    warehouse_id: int,
    lines: Sequence[PurchaseLineInput],
    actor: str,
    expected_date: Optional[date] = None,
    notes: Optional[str] = None,
) -> PurchaseOrder:
    """事务内建单（补货建议批量生成采购单时复用）。"""
    if not lines:
        raise InvalidDocument("采购单至少需要一行")
    for i, ln in enumerate(lines):
        if int(ln.qty) <= 0:
            raise InvalidDocument(
                "采购数量必须大于 0", context={"line": i, "product_id": ln.product_id, "qty": ln.qty}
            )
        if Decimal(ln.unit_price) < 0:
            raise InvalidDocument(
                "单价不能为负", context={"line": i, "product_id": ln.product_id}
            )

    supplier = await require_supplier(session, supplier_id)
    if not supplier.is_active:
        raise InvalidDocument("供应商已停用", context={"supplier_id": supplier_id})
    await require_warehouse(session, warehouse_id)
    await require_products(session, [ln.product_id for ln in lines])

    settings = get_settings()
    rate = Decimal(settings.PURCHASE_TAX_RATE)
    order_date = date.today()

    po_lines: List[PurchaseOrderLine] = []
    subtotal = Decimal("0")
    tax_total = Decimal("0")
    for ln in lines:
        amount, tax = price_line(ln.qty, ln.unit_price, rate)
        subtotal += amount
        tax_total += tax
        po_lines.append(
            PurchaseOrderLine(
                product_id=ln.product_id,
                ordered_qty=int(ln.qty),
                received_qty=0,
                unit_price=money(ln.unit_price),
                tax_amount=tax,
                subtotal=amount,
                notes=ln.notes,
            )
        )

    po_no = await generate_number(session, DocumentType.PURCHASE_ORDER, order_date)
    po = PurchaseOrder(
        po_no=po_no,
        supplier_id=supplier_id,
        warehouse_id=warehouse_id,
        order_date=order_date,
        expected_date=expected_date or order_date + timedelta(days=settings.PO_DEFAULT_LEAD_DAYS),
        status=PurchaseOrderStatus.PENDING,
        subtotal=money(subtotal),
        tax_amount=money(tax_total),
        total_amount=money(subtotal + tax_total),
        notes=notes,
        buyer=actor,
        lines=po_lines,
    )
    session.add(po)
    await flush_document(session, DocumentType.PURCHASE_ORDER, po_no)
    WORKFLOW_TRANSITIONS.labels(DocumentType.PURCHASE_ORDER.value, PurchaseOrderStatus.PENDING.value).inc()
    return po


class PurchaseOrderService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        bus: Optional[InventoryEventBus] = None,
    ) -> None:
        self._session_factory = session_factory
        self._bus = bus

    def _uow(self) -> UnitOfWork:
        return UnitOfWork(self._session_factory, bus=self._bus)

    async def get(self, po_id: int) -> PurchaseOrder:
        async with self._uow() as uow:
            return await require(uow.session, PurchaseOrder, po_id, "purchase_order")

    async def create(
        self,
        *,
        supplier_id: int,
        warehouse_id: int,
        lines: Sequence[PurchaseLineInput],
        actor: str,
        expected_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> PurchaseOrder:
        async with self._uow() as uow:
            po = await build_purchase_order(
                uow.session,
                supplier_id=supplier_id,
                warehouse_id=warehouse_id,
                lines=lines,
                actor=actor,
                expected_date=expected_date,
                notes=notes,
            )
        logger.info("purchase order created %s total=%s", po.po_no, po.total_amount)
        return po

    async def _transition(self, po_id: int, target: PurchaseOrderStatus, actor: str) -> PurchaseOrder:
        async with self._uow() as uow:
            po = await lock_document(uow.session, PurchaseOrder, po_id, "purchase_order")
            ensure_transition(
                PURCHASE_ORDER_TRANSITIONS,
                entity="purchase_order",
                id=po.po_no,
                current=po.status,
                target=target,
            )
            if target == PurchaseOrderStatus.CANCELLED and any(
                int(ln.received_qty or 0) > 0 for ln in po.lines
            ):
                logger.warning("reject cancel %s: lines already received", po.po_no)
                raise InvalidStateTransition("purchase_order", po.po_no, str(po.status), str(target))

            po.status = target
            if target == PurchaseOrderStatus.APPROVED:
                po.approved_by = actor
                po.approved_at = _now()
            elif target == PurchaseOrderStatus.CLOSED:
                po.closed_at = _now()

        WORKFLOW_TRANSITIONS.labels(DocumentType.PURCHASE_ORDER.value, target.value).inc()
        logger.info("purchase order %s -> %s by %s", po.po_no, target, actor)
        return po

    async def approve(self, po_id: int, *, actor: str) -> PurchaseOrder:
        return await self._transition(po_id, PurchaseOrderStatus.APPROVED, actor)

    async def cancel(self, po_id: int, *, actor: str) -> PurchaseOrder:
        return await self._transition(po_id, PurchaseOrderStatus.CANCELLED, actor)

    async def close(self, po_id: int, *, actor: str) -> PurchaseOrder:
        return await self._transition(po_id, PurchaseOrderStatus.CLOSED, actor)
