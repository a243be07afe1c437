# backoffice/services/purchase_receipt_service.py
"""
采购验收入库

整张验收单先全部校验（行归属 / 非负 / 不超待收，按采购行汇总），
通过后才：累加采购行已收数 → 逐行 PURCHASE_IN → 落验收单 → 重算采购单状态。
任一行不合法整单拒绝，不产生任何写入。
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backoffice.metrics import WORKFLOW_TRANSITIONS
from backoffice.models.enums import DocumentType, MovementType, PurchaseOrderStatus
from backoffice.models.purchase_order import PurchaseOrder
from backoffice.models.purchase_receipt import PurchaseReceipt, PurchaseReceiptLine
from backoffice.services.errors import InvalidDocument, InvalidStateTransition, QuantityExceedsPending
from backoffice.services.events import PURCHASE_RECEIVED, InventoryEvent, InventoryEventBus
from backoffice.services.inventory_ledger import InventoryLedger
from backoffice.services.lookups import lock_document, require
from backoffice.services.purchase_order_service import derive_receiving_status, money
from backoffice.services.sequence_service import flush_document, generate_number
from backoffice.services.uow import UnitOfWork

logger = logging.getLogger("backoffice.receipt")

REFERENCE_TYPE = "PurchaseReceipt"

RECEIVABLE = (PurchaseOrderStatus.APPROVED, PurchaseOrderStatus.PARTIAL)
# 已收满：先做数量校验（超收 → QuantityExceedsPending），全为 0 才报状态错误
FULLY_RECEIVED = PurchaseOrderStatus.COMPLETED


@dataclass(frozen=True)
class ReceiptLineInput:
    po_item_id: int
    arrived_qty: int
    received_qty: int
    rejected_qty: int = 0
    reason: Optional[str] = None


class PurchaseReceiptService:
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

    async def get(self, receipt_id: int) -> PurchaseReceipt:
        async with UnitOfWork(self._session_factory) as uow:
            return await require(uow.session, PurchaseReceipt, receipt_id, "purchase_receipt")

    @staticmethod
    def _reject_status(po: PurchaseOrder) -> None:
        logger.warning("reject receipt for %s: status=%s", po.po_no, po.status)
        raise InvalidStateTransition("purchase_order", po.po_no, str(po.status), PurchaseOrderStatus.PARTIAL.value)

    async def create_receipt(
        self,
        *,
        po_id: int,
        lines: Sequence[ReceiptLineInput],
        actor: str,
        receipt_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> PurchaseReceipt:
        if not lines:
            raise InvalidDocument("验收单至少需要一行")

        async with UnitOfWork(self._session_factory, bus=self._bus) as uow:
            s = uow.session
            po = await lock_document(s, PurchaseOrder, po_id, "purchase_order")
            if po.status not in RECEIVABLE and po.status != FULLY_RECEIVED:
                self._reject_status(po)

            po_lines = {ln.id: ln for ln in po.lines}
            requested: Dict[int, int] = defaultdict(int)
            for i, ln in enumerate(lines):
                if ln.po_item_id not in po_lines:
                    raise InvalidDocument(
                        "采购行不属于该采购单",
                        context={"line": i, "po_item_id": ln.po_item_id, "po_no": po.po_no},
                    )
                if min(int(ln.arrived_qty), int(ln.received_qty), int(ln.rejected_qty)) < 0:
                    raise InvalidDocument("验收数量不能为负", context={"line": i, "po_item_id": ln.po_item_id})
                if int(ln.received_qty) > int(ln.arrived_qty):
                    raise InvalidDocument(
                        "合格数量不能超过到货数量",
                        context={"line": i, "po_item_id": ln.po_item_id},
                    )
                requested[ln.po_item_id] += int(ln.received_qty)

            for po_item_id, qty in requested.items():
                pending = po_lines[po_item_id].pending_qty
                if qty > pending:
                    logger.warning(
                        "reject receipt for %s: item=%s requested=%s pending=%s",
                        po.po_no, po_item_id, qty, pending,
                    )
                    raise QuantityExceedsPending(po_item_id=po_item_id, requested=qty, pending=pending)

            if po.status == FULLY_RECEIVED:
                self._reject_status(po)

            # ---- 校验通过，开始写 ----
            today = receipt_date or date.today()
            receipt_no = await generate_number(s, DocumentType.PURCHASE_RECEIPT)

            receipt_lines: List[PurchaseReceiptLine] = []
            total_amount = Decimal("0")
            for ln in lines:
                pol = po_lines[ln.po_item_id]
                previously = int(pol.received_qty or 0)
                receipt_lines.append(
                    PurchaseReceiptLine(
                        po_item_id=pol.id,
                        product_id=pol.product_id,
                        ordered_qty=int(pol.ordered_qty),
                        previously_received_qty=previously,
                        pending_qty=int(pol.ordered_qty) - previously,
                        arrived_qty=int(ln.arrived_qty),
                        received_qty=int(ln.received_qty),
                        rejected_qty=int(ln.rejected_qty),
                        reject_reason=ln.reason,
                        unit_price=pol.unit_price,
                    )
                )
                pol.received_qty = previously + int(ln.received_qty)
                total_amount += Decimal(int(ln.received_qty)) * Decimal(pol.unit_price)

                if int(ln.received_qty) > 0:
                    await self.ledger.mutate(
                        s,
                        product_id=pol.product_id,
                        warehouse_id=po.warehouse_id,
                        delta=int(ln.received_qty),
                        movement_type=MovementType.PURCHASE_IN,
                        reference_type=REFERENCE_TYPE,
                        reference_no=receipt_no,
                        unit_cost=pol.unit_price,
                        actor=actor,
                        notes=po.po_no,
                    )

            receipt = PurchaseReceipt(
                receipt_no=receipt_no,
                po_id=po.id,
                po_no=po.po_no,
                supplier_id=po.supplier_id,
                warehouse_id=po.warehouse_id,
                receipt_date=today,
                total_arrived=sum(int(x.arrived_qty) for x in lines),
                total_received=sum(int(x.received_qty) for x in lines),
                total_rejected=sum(int(x.rejected_qty) for x in lines),
                total_amount=money(total_amount),
                notes=notes,
                received_by=actor,
                lines=receipt_lines,
            )
            s.add(receipt)

            new_status = derive_receiving_status(po.lines)
            if new_status is not None:
                po.status = new_status
            po.last_received_at = datetime.now(timezone.utc)
            await flush_document(s, DocumentType.PURCHASE_RECEIPT, receipt_no)

            uow.add_event(
                InventoryEvent(
                    name=PURCHASE_RECEIVED,
                    ref=receipt_no,
                    payload={
                        "po_no": po.po_no,
                        "warehouse_id": po.warehouse_id,
                        "total_received": receipt.total_received,
                        "po_status": str(po.status),
                    },
                )
            )

        WORKFLOW_TRANSITIONS.labels(DocumentType.PURCHASE_ORDER.value, str(po.status)).inc()
        logger.info(
            "receipt %s for %s received=%s po_status=%s",
            receipt_no, po.po_no, receipt.total_received, po.status,
        )
        return receipt

