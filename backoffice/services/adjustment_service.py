# backoffice/services/adjustment_service.py
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backoffice.metrics import WORKFLOW_TRANSITIONS
from backoffice.models.enums import AdjustmentReason, AdjustmentStatus, DocumentType, MovementType
from backoffice.models.stock_adjustment import StockAdjustment
from backoffice.services.errors import InvalidDocument
from backoffice.services.events import ADJUSTMENT_POSTED, InventoryEvent, InventoryEventBus
from backoffice.services.inventory_ledger import InventoryLedger
from backoffice.services.lookups import require_products, require_warehouse
from backoffice.services.sequence_service import flush_document, generate_number
from backoffice.services.uow import UnitOfWork

logger = logging.getLogger("backoffice.adjustment")

REFERENCE_TYPE = "StockAdjustment"
# 盘点差异过账：台账引用盘点单号
COUNT_REFERENCE_TYPE = "StockCount"


@dataclass(frozen=True)
class AdjustmentLine:
    product_id: int
    delta: int
    notes: Optional[str] = None


def aggregate_deltas(lines: Sequence[AdjustmentLine]) -> Dict[int, int]:
    agg: Dict[int, int] = defaultdict(int)
    for ln in lines:
        agg[int(ln.product_id)] += int(ln.delta)
    return dict(agg)


class AdjustmentService:
    """
    库存调整：整批校验通过后才逐行过账，任一行失败整批回滚。

    每个调整行生成一张独立单号的 StockAdjustment（状态直接 COMPLETED）。
    """

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

    async def create_adjustment(
        self,
        *,
        warehouse_id: int,
        reason: AdjustmentReason,
        lines: Sequence[AdjustmentLine],
        actor: str,
        notes: Optional[str] = None,
    ) -> List[StockAdjustment]:
        if not lines:
            raise InvalidDocument("调整单至少需要一行")
        for i, ln in enumerate(lines):
            if int(ln.delta) == 0:
                raise InvalidDocument(
                    "调整数量不能为 0", context={"line": i, "product_id": ln.product_id}
                )
        reason = AdjustmentReason(reason)

        async with UnitOfWork(self._session_factory, bus=self._bus) as uow:
            await require_warehouse(uow.session, warehouse_id)
            await require_products(uow.session, [ln.product_id for ln in lines])
            docs = await self.post_lines(
                uow,
                warehouse_id=warehouse_id,
                reason=reason,
                lines=lines,
                actor=actor,
                notes=notes,
            )

        logger.info(
            "adjustment posted wh=%s reason=%s docs=%s",
            warehouse_id, reason, [d.adjustment_no for d in docs],
        )
        return docs

    async def post_lines(
        self,
        uow: UnitOfWork,
        *,
        warehouse_id: int,
        reason: AdjustmentReason,
        lines: Sequence[AdjustmentLine],
        actor: str,
        notes: Optional[str] = None,
        source_ref: Optional[str] = None,
    ) -> List[StockAdjustment]:
        """
        事务内入口（盘点完成时复用）：
        先按商品汇总加锁校验，再逐行 mutate + 落调整单。
        带 source_ref 时台账流水引用来源单号（StockCount），否则引用调整单号。
        """
        session = uow.session
        assert session is not None

        await self.ledger.lock_and_validate(session, warehouse_id, aggregate_deltas(lines))

        today = date.today()
        docs: List[StockAdjustment] = []
        for ln in lines:
            adjustment_no = await generate_number(session, DocumentType.ADJUSTMENT, today)
            result = await self.ledger.mutate(
                session,
                product_id=ln.product_id,
                warehouse_id=warehouse_id,
                delta=ln.delta,
                movement_type=MovementType.adjust_for(ln.delta),
                reference_type=COUNT_REFERENCE_TYPE if source_ref else REFERENCE_TYPE,
                reference_no=source_ref or adjustment_no,
                actor=actor,
                notes=ln.notes or notes,
                on_event=uow.add_event,
            )
            doc = StockAdjustment(
                adjustment_no=adjustment_no,
                warehouse_id=warehouse_id,
                product_id=ln.product_id,
                adjustment_date=today,
                before_qty=result.before,
                after_qty=result.after,
                delta=int(ln.delta),
                reason=reason,
                notes=ln.notes or notes,
                source_ref=source_ref,
                status=AdjustmentStatus.COMPLETED,
                created_by=actor,
            )
            session.add(doc)
            await flush_document(session, DocumentType.ADJUSTMENT, adjustment_no)
            docs.append(doc)

            uow.add_event(
                InventoryEvent(
                    name=ADJUSTMENT_POSTED,
                    ref=adjustment_no,
                    payload={
                        "warehouse_id": warehouse_id,
                        "product_id": ln.product_id,
                        "delta": int(ln.delta),
                        "reason": str(reason),
                        "source_ref": source_ref,
                    },
                )
            )
            WORKFLOW_TRANSITIONS.labels(DocumentType.ADJUSTMENT.value, AdjustmentStatus.COMPLETED.value).inc()

        return docs
