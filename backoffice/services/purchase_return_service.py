# backoffice/services/purchase_return_service.py
"""
采购退货（退回供应商）

    PENDING → APPROVED → COMPLETED
    PENDING / APPROVED → CANCELLED

complete：先按商品汇总校验退货仓库存（无库存记录视为 0，直接拒绝），
再逐行 RETURN_OUT。
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backoffice.metrics import WORKFLOW_TRANSITIONS
from backoffice.models.enums import (
    PURCHASE_RETURN_TRANSITIONS,
    DocumentType,
    HandlingMethod,
    MovementType,
    PurchaseReturnStatus,
    ReturnReason,
)
from backoffice.models.purchase_return import PurchaseReturn, PurchaseReturnLine
from backoffice.services.errors import InvalidDocument
from backoffice.services.events import InventoryEventBus
from backoffice.services.inventory_ledger import InventoryLedger
from backoffice.services.lookups import (
    lock_document,
    require,
    require_products,
    require_supplier,
    require_warehouse,
)
from backoffice.services.purchase_order_service import money
from backoffice.services.sequence_service import flush_document, generate_number
from backoffice.services.transitions import ensure_transition
from backoffice.services.uow import UnitOfWork

logger = logging.getLogger("backoffice.purchase_return")

REFERENCE_TYPE = "PurchaseReturn"


@dataclass(frozen=True)
class ReturnLineInput:
    product_id: int
    qty: int
    unit_price: Optional[Decimal] = None
    notes: Optional[str] = None


class PurchaseReturnService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        bus: Optional[InventoryEventBus] = None,
        ledger: Optional[InventoryLedger] = None,
    ) -> None:
        self._session_factory = session_factory
        self._bus = bus
        self.ledger = ledger or InventoryLedger()

    def _uow(self) -> UnitOfWork:
        return UnitOfWork(self._session_factory, bus=self._bus)

    async def get(self, return_id: int) -> PurchaseReturn:
        async with self._uow() as uow:
            return await require(uow.session, PurchaseReturn, return_id, "purchase_return")

    async def create(
        self,
        *,
        supplier_id: int,
        warehouse_id: int,
        reason: ReturnReason,
        lines: Sequence[ReturnLineInput],
        actor: str,
        handling: HandlingMethod = HandlingMethod.CREDIT,
        po_no: Optional[str] = None,
        receipt_no: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> PurchaseReturn:
        if not lines:
            raise InvalidDocument("退货单至少需要一行")
        for i, ln in enumerate(lines):
            if int(ln.qty) <= 0:
                raise InvalidDocument(
                    "退货数量必须大于 0", context={"line": i, "product_id": ln.product_id, "qty": ln.qty}
                )

        async with self._uow() as uow:
            s = uow.session
            await require_supplier(s, supplier_id)
            await require_warehouse(s, warehouse_id)
            products = await require_products(s, [ln.product_id for ln in lines])

            return_no = await generate_number(s, DocumentType.PURCHASE_RETURN)
            doc_lines = []
            for ln in lines:
                price = ln.unit_price
                if price is None:
                    price = products[ln.product_id].cost_price or Decimal("0")
                doc_lines.append(
                    PurchaseReturnLine(
                        product_id=ln.product_id,
                        qty=int(ln.qty),
                        unit_price=money(price),
                        amount=money(Decimal(int(ln.qty)) * Decimal(price)),
                        notes=ln.notes,
                    )
                )

            doc = PurchaseReturn(
                return_no=return_no,
                supplier_id=supplier_id,
                warehouse_id=warehouse_id,
                return_date=date.today(),
                po_no=po_no,
                receipt_no=receipt_no,
                reason=ReturnReason(reason),
                handling=HandlingMethod(handling),
                status=PurchaseReturnStatus.PENDING,
                total_qty=sum(x.qty for x in doc_lines),
                total_amount=money(sum((x.amount for x in doc_lines), Decimal("0"))),
                notes=notes,
                created_by=actor,
                lines=doc_lines,
            )
            s.add(doc)
            await flush_document(s, DocumentType.PURCHASE_RETURN, return_no)

        WORKFLOW_TRANSITIONS.labels(DocumentType.PURCHASE_RETURN.value, PurchaseReturnStatus.PENDING.value).inc()
        logger.info("purchase return created %s qty=%s", return_no, doc.total_qty)
        return doc

    async def _lock(self, session: AsyncSession, return_id: int, target: PurchaseReturnStatus) -> PurchaseReturn:
        doc = await lock_document(session, PurchaseReturn, return_id, "purchase_return")
        ensure_transition(
            PURCHASE_RETURN_TRANSITIONS,
            entity="purchase_return",
            id=doc.return_no,
            current=doc.status,
            target=target,
        )
        return doc

    async def approve(self, return_id: int, *, actor: str) -> PurchaseReturn:
        async with self._uow() as uow:
            doc = await self._lock(uow.session, return_id, PurchaseReturnStatus.APPROVED)
            doc.status = PurchaseReturnStatus.APPROVED
            doc.approved_by = actor

        WORKFLOW_TRANSITIONS.labels(DocumentType.PURCHASE_RETURN.value, PurchaseReturnStatus.APPROVED.value).inc()
        logger.info("purchase return approved %s by %s", doc.return_no, actor)
        return doc

    async def complete(self, return_id: int, *, actor: str) -> PurchaseReturn:
        async with self._uow() as uow:
            s = uow.session
            doc = await self._lock(s, return_id, PurchaseReturnStatus.COMPLETED)

            agg: Dict[int, int] = defaultdict(int)
            for ln in doc.lines:
                agg[int(ln.product_id)] -= int(ln.qty)
            await self.ledger.lock_and_validate(s, doc.warehouse_id, agg)

            doc.status = PurchaseReturnStatus.COMPLETED
            doc.completed_by = actor
            doc.completed_at = datetime.now(timezone.utc)
            await s.flush()

            for ln in doc.lines:
                await self.ledger.mutate(
                    s,
                    product_id=ln.product_id,
                    warehouse_id=doc.warehouse_id,
                    delta=-int(ln.qty),
                    movement_type=MovementType.RETURN_OUT,
                    reference_type=REFERENCE_TYPE,
                    reference_no=doc.return_no,
                    unit_cost=ln.unit_price,
                    actor=actor,
                    notes=ln.notes,
                    on_event=uow.add_event,
                )

        WORKFLOW_TRANSITIONS.labels(DocumentType.PURCHASE_RETURN.value, PurchaseReturnStatus.COMPLETED.value).inc()
        logger.info("purchase return completed %s qty=%s", doc.return_no, doc.total_qty)
        return doc

    async def cancel(self, return_id: int, *, actor: str) -> PurchaseReturn:
        async with self._uow() as uow:
            doc = await self._lock(uow.session, return_id, PurchaseReturnStatus.CANCELLED)
            doc.status = PurchaseReturnStatus.CANCELLED

        WORKFLOW_TRANSITIONS.labels(DocumentType.PURCHASE_RETURN.value, PurchaseReturnStatus.CANCELLED.value).inc()
        logger.info("purchase return cancelled %s by %s", doc.return_no, actor)
        return doc
