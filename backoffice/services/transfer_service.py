# backoffice/services/transfer_service.py
"""
仓间调拨

    DRAFT → APPROVED → IN_TRANSIT → COMPLETED
    DRAFT / APPROVED / IN_TRANSIT → CANCELLED

- ship：整单预校验调出仓后逐行 TRANSFER_OUT
- receive：逐行 TRANSFER_IN 到调入仓
- 在途取消：逐行 TRANSFER_IN 冲回调出仓（reference_type = StockTransferReversal）
状态校验与库存变动在同一事务内，单据头 FOR UPDATE 读取。
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Dict, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backoffice.metrics import WORKFLOW_TRANSITIONS
from backoffice.models.enums import TRANSFER_TRANSITIONS, DocumentType, MovementType, TransferStatus
from backoffice.models.stock_transfer import StockTransfer, StockTransferLine
from backoffice.services.errors import InvalidDocument, InvalidTransfer
from backoffice.services.events import TRANSFER_COMPLETED, InventoryEvent, InventoryEventBus
from backoffice.services.inventory_ledger import InventoryLedger
from backoffice.services.lookups import lock_document, require, require_products, require_warehouse
from backoffice.services.sequence_service import flush_document, generate_number
from backoffice.services.transitions import ensure_transition
from backoffice.services.uow import UnitOfWork

logger = logging.getLogger("backoffice.transfer")

REFERENCE_TYPE = "StockTransfer"
REVERSAL_REFERENCE_TYPE = "StockTransferReversal"


@dataclass(frozen=True)
class TransferLineInput:
    product_id: int
    qty: int
    notes: Optional[str] = None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _aggregate(lines: Sequence[StockTransferLine], sign: int) -> Dict[int, int]:
    agg: Dict[int, int] = defaultdict(int)
    for ln in lines:
        agg[int(ln.product_id)] += sign * int(ln.requested_qty)
    return dict(agg)


class TransferService:
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

    async def get(self, transfer_id: int) -> StockTransfer:
        async with self._uow() as uow:
            return await require(uow.session, StockTransfer, transfer_id, "transfer")

    async def create(
        self,
        *,
        from_warehouse_id: int,
        to_warehouse_id: int,
        lines: Sequence[TransferLineInput],
        actor: str,
        notes: Optional[str] = None,
        request_date: Optional[date] = None,
    ) -> StockTransfer:
        if from_warehouse_id == to_warehouse_id:
            logger.warning("reject transfer: same warehouse %s", from_warehouse_id)
            raise InvalidTransfer(
                "调出仓与调入仓不能相同",
                context={"from_warehouse_id": from_warehouse_id, "to_warehouse_id": to_warehouse_id},
            )
        if not lines:
            raise InvalidDocument("调拨单至少需要一行")
        for i, ln in enumerate(lines):
            if int(ln.qty) <= 0:
                raise InvalidDocument(
                    "调拨数量必须大于 0", context={"line": i, "product_id": ln.product_id, "qty": ln.qty}
                )

        async with self._uow() as uow:
            s = uow.session
            await require_warehouse(s, from_warehouse_id)
            await require_warehouse(s, to_warehouse_id)
            await require_products(s, [ln.product_id for ln in lines])

            transfer_no = await generate_number(s, DocumentType.TRANSFER)
            transfer = StockTransfer(
                transfer_no=transfer_no,
                from_warehouse_id=from_warehouse_id,
                to_warehouse_id=to_warehouse_id,
                request_date=request_date or date.today(),
                status=TransferStatus.DRAFT,
                notes=notes,
                requested_by=actor,
                lines=[
                    StockTransferLine(product_id=ln.product_id, requested_qty=int(ln.qty), notes=ln.notes)
                    for ln in lines
                ],
            )
            s.add(transfer)
            await flush_document(s, DocumentType.TRANSFER, transfer_no)

        WORKFLOW_TRANSITIONS.labels(DocumentType.TRANSFER.value, TransferStatus.DRAFT.value).inc()
        logger.info("transfer created %s %s->%s", transfer_no, from_warehouse_id, to_warehouse_id)
        return transfer

    async def _lock(self, session: AsyncSession, transfer_id: int, target: TransferStatus) -> StockTransfer:
        transfer = await lock_document(session, StockTransfer, transfer_id, "transfer")
        ensure_transition(
            TRANSFER_TRANSITIONS,
            entity="transfer",
            id=transfer.transfer_no,
            current=transfer.status,
            target=target,
        )
        return transfer

    async def approve(self, transfer_id: int, *, actor: str) -> StockTransfer:
        async with self._uow() as uow:
            transfer = await self._lock(uow.session, transfer_id, TransferStatus.APPROVED)
            transfer.status = TransferStatus.APPROVED
            transfer.approved_by = actor

        WORKFLOW_TRANSITIONS.labels(DocumentType.TRANSFER.value, TransferStatus.APPROVED.value).inc()
        logger.info("transfer approved %s by %s", transfer.transfer_no, actor)
        return transfer

    async def ship(self, transfer_id: int, *, actor: str) -> StockTransfer:
        async with self._uow() as uow:
            s = uow.session
            transfer = await self._lock(s, transfer_id, TransferStatus.IN_TRANSIT)
            await self.ledger.lock_and_validate(s, transfer.from_warehouse_id, _aggregate(transfer.lines, -1))

            transfer.status = TransferStatus.IN_TRANSIT
            transfer.shipped_by = actor
            transfer.shipped_at = _now()
            await s.flush()

            for ln in transfer.lines:
                await self.ledger.mutate(
                    s,
                    product_id=ln.product_id,
                    warehouse_id=transfer.from_warehouse_id,
                    delta=-int(ln.requested_qty),
                    movement_type=MovementType.TRANSFER_OUT,
                    reference_type=REFERENCE_TYPE,
                    reference_no=transfer.transfer_no,
                    actor=actor,
                    notes=ln.notes,
                    on_event=uow.add_event,
                )

        WORKFLOW_TRANSITIONS.labels(DocumentType.TRANSFER.value, TransferStatus.IN_TRANSIT.value).inc()
        logger.info("transfer shipped %s qty=%s", transfer.transfer_no, transfer.total_qty)
        return transfer

    async def receive(self, transfer_id: int, *, actor: str) -> StockTransfer:
        async with self._uow() as uow:
            s = uow.session
            transfer = await self._lock(s, transfer_id, TransferStatus.COMPLETED)

            transfer.status = TransferStatus.COMPLETED
            transfer.received_by = actor
            transfer.received_at = _now()
            await s.flush()

            for ln in transfer.lines:
                await self.ledger.mutate(
                    s,
                    product_id=ln.product_id,
                    warehouse_id=transfer.to_warehouse_id,
                    delta=int(ln.requested_qty),
                    movement_type=MovementType.TRANSFER_IN,
                    reference_type=REFERENCE_TYPE,
                    reference_no=transfer.transfer_no,
                    actor=actor,
                    notes=ln.notes,
                )

            uow.add_event(
                InventoryEvent(
                    name=TRANSFER_COMPLETED,
                    ref=transfer.transfer_no,
                    payload={
                        "from_warehouse_id": transfer.from_warehouse_id,
                        "to_warehouse_id": transfer.to_warehouse_id,
                        "total_qty": transfer.total_qty,
                        "lines": len(transfer.lines),
                    },
                )
            )

        WORKFLOW_TRANSITIONS.labels(DocumentType.TRANSFER.value, TransferStatus.COMPLETED.value).inc()
        logger.info("transfer received %s qty=%s", transfer.transfer_no, transfer.total_qty)
        return transfer

    async def cancel(self, transfer_id: int, *, actor: str, reason: Optional[str] = None) -> StockTransfer:
        async with self._uow() as uow:
            s = uow.session
            transfer = await self._lock(s, transfer_id, TransferStatus.CANCELLED)
            was_in_transit = transfer.status == TransferStatus.IN_TRANSIT

            transfer.status = TransferStatus.CANCELLED
            transfer.cancelled_at = _now()
            if reason:
                transfer.notes = f"{transfer.notes or ''} [取消] {reason}".strip()
            await s.flush()

            if was_in_transit:
                for ln in transfer.lines:
                    await self.ledger.mutate(
                        s,
                        product_id=ln.product_id,
                        warehouse_id=transfer.from_warehouse_id,
                        delta=int(ln.requested_qty),
                        movement_type=MovementType.TRANSFER_IN,
                        reference_type=REVERSAL_REFERENCE_TYPE,
                        reference_no=transfer.transfer_no,
                        actor=actor,
                        notes=reason,
                    )

        WORKFLOW_TRANSITIONS.labels(DocumentType.TRANSFER.value, TransferStatus.CANCELLED.value).inc()
        logger.info(
            "transfer cancelled %s by %s (reversed=%s)", transfer.transfer_no, actor, was_in_transit
        )
        return transfer
