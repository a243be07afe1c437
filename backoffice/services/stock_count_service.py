# backoffice/services/stock_count_service.py
"""
盘点

    DRAFT → IN_PROGRESS → (PENDING_REVIEW) → COMPLETED
    DRAFT / IN_PROGRESS / PENDING_REVIEW → CANCELLED

- create：快照每个商品的在库数量为 system_qty
- record_count：仅 IN_PROGRESS；同一明细可重复录入（覆盖），已盘数只在首次录入时 +1
- complete：必须全部盘完；每个差异明细生成一张调整单（source_ref = count_no）
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backoffice.metrics import WORKFLOW_TRANSITIONS
from backoffice.models.enums import (
    STOCK_COUNT_TRANSITIONS,
    AdjustmentReason,
    DocumentType,
    StockCountStatus,
    StockCountType,
)
from backoffice.models.inventory import InventoryRecord
from backoffice.models.reference import Product
from backoffice.models.stock_count import StockCount, StockCountItem
from backoffice.services.adjustment_service import AdjustmentLine, AdjustmentService
from backoffice.services.errors import IncompleteCount, InvalidDocument, InvalidStateTransition, NotFound
from backoffice.services.events import InventoryEventBus
from backoffice.services.lookups import lock_document, require, require_products, require_warehouse
from backoffice.services.purchase_order_service import money
from backoffice.services.sequence_service import flush_document, generate_number
from backoffice.services.transitions import ensure_transition
from backoffice.services.uow import UnitOfWork

logger = logging.getLogger("backoffice.stock_count")

DEFAULT_VARIANCE_REASON = AdjustmentReason.ERROR


def _now() -> datetime:
    return datetime.now(timezone.utc)


def recompute_tallies(count: StockCount) -> None:
    counted = [it for it in count.items if it.is_counted]
    count.total_items = len(count.items)
    count.counted_items = len(counted)
    count.variance_items = sum(1 for it in counted if int(it.variance_qty) != 0)
    count.variance_amount = money(sum((Decimal(it.variance_amount) for it in counted), Decimal("0")))


class StockCountService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        bus: Optional[InventoryEventBus] = None,
        adjustments: Optional[AdjustmentService] = None,
    ) -> None:
        self._session_factory = session_factory
        self._bus = bus
        self.adjustments = adjustments or AdjustmentService(session_factory, bus=bus)

    def _uow(self) -> UnitOfWork:
        return UnitOfWork(self._session_factory, bus=self._bus)

    async def get(self, count_id: int) -> StockCount:
        async with self._uow() as uow:
            return await require(uow.session, StockCount, count_id, "stock_count")

    async def create(
        self,
        *,
        warehouse_id: int,
        actor: str,
        count_type: StockCountType = StockCountType.FULL,
        scope: Optional[str] = None,
        product_ids: Optional[Sequence[int]] = None,
        notes: Optional[str] = None,
    ) -> StockCount:
        async with self._uow() as uow:
            s = uow.session
            await require_warehouse(s, warehouse_id)

            if product_ids:
                products = await require_products(s, product_ids)
                on_hand = dict(
                    (
                        await s.execute(
                            select(InventoryRecord.product_id, InventoryRecord.quantity).where(
                                InventoryRecord.warehouse_id == warehouse_id,
                                InventoryRecord.product_id.in_(list(products)),
                            )
                        )
                    ).all()
                )
                snapshot = [(pid, int(on_hand.get(pid, 0)), products[pid].cost_price) for pid in sorted(products)]
            else:
                rows = (
                    await s.execute(
                        select(InventoryRecord.product_id, InventoryRecord.quantity, Product.cost_price)
                        .join(Product, Product.id == InventoryRecord.product_id)
                        .where(InventoryRecord.warehouse_id == warehouse_id)
                        .order_by(InventoryRecord.product_id)
                    )
                ).all()
                snapshot = [(int(r[0]), int(r[1]), r[2]) for r in rows]

            count_no = await generate_number(s, DocumentType.STOCK_COUNT)
            count = StockCount(
                count_no=count_no,
                warehouse_id=warehouse_id,
                count_date=date.today(),
                count_type=StockCountType(count_type),
                scope=scope,
                status=StockCountStatus.DRAFT,
                notes=notes,
                created_by=actor,
                items=[
                    StockCountItem(
                        product_id=pid,
                        system_qty=qty,
                        unit_cost=money(cost or Decimal("0")),
                    )
                    for pid, qty, cost in snapshot
                ],
            )
            recompute_tallies(count)
            s.add(count)
            await flush_document(s, DocumentType.STOCK_COUNT, count_no)

        WORKFLOW_TRANSITIONS.labels(DocumentType.STOCK_COUNT.value, StockCountStatus.DRAFT.value).inc()
        logger.info("stock count created %s wh=%s items=%s", count_no, warehouse_id, count.total_items)
        return count

    async def _lock(self, session: AsyncSession, count_id: int, target: StockCountStatus) -> StockCount:
        count = await lock_document(session, StockCount, count_id, "stock_count")
        ensure_transition(
            STOCK_COUNT_TRANSITIONS,
            entity="stock_count",
            id=count.count_no,
            current=count.status,
            target=target,
        )
        return count

    async def start(self, count_id: int, *, actor: str) -> StockCount:
        async with self._uow() as uow:
            count = await self._lock(uow.session, count_id, StockCountStatus.IN_PROGRESS)
            if not count.items:
                raise InvalidDocument("盘点单没有明细，无法开始", context={"count_no": count.count_no})
            count.status = StockCountStatus.IN_PROGRESS
            count.started_at = _now()

        WORKFLOW_TRANSITIONS.labels(DocumentType.STOCK_COUNT.value, StockCountStatus.IN_PROGRESS.value).inc()
        logger.info("stock count started %s by %s", count.count_no, actor)
        return count

    async def record_count(
        self,
        count_id: int,
        item_id: int,
        *,
        counted_qty: int,
        actor: str,
        reason: Optional[AdjustmentReason] = None,
        notes: Optional[str] = None,
    ) -> StockCountItem:
        if int(counted_qty) < 0:
            raise InvalidDocument("盘点数量不能为负", context={"item_id": item_id, "counted_qty": counted_qty})

        async with self._uow() as uow:
            count = await lock_document(uow.session, StockCount, count_id, "stock_count")
            if count.status != StockCountStatus.IN_PROGRESS:
                logger.warning("reject record_count on %s: status=%s", count.count_no, count.status)
                raise InvalidStateTransition(
                    "stock_count", count.count_no, str(count.status), StockCountStatus.IN_PROGRESS.value
                )

            item = next((it for it in count.items if it.id == item_id), None)
            if item is None:
                raise NotFound("stock_count_item", item_id)

            item.counted_qty = int(counted_qty)
            item.variance_qty = int(counted_qty) - int(item.system_qty)
            item.variance_amount = money(Decimal(item.variance_qty) * Decimal(item.unit_cost))
            item.reason = AdjustmentReason(reason) if reason else None
            item.notes = notes
            item.counted_by = actor
            item.counted_at = _now()
            recompute_tallies(count)

        logger.info(
            "count recorded %s item=%s counted=%s variance=%s",
            count.count_no, item_id, counted_qty, item.variance_qty,
        )
        return item

    async def submit_for_review(self, count_id: int, *, actor: str) -> StockCount:
        async with self._uow() as uow:
            count = await self._lock(uow.session, count_id, StockCountStatus.PENDING_REVIEW)
            count.status = StockCountStatus.PENDING_REVIEW

        WORKFLOW_TRANSITIONS.labels(DocumentType.STOCK_COUNT.value, StockCountStatus.PENDING_REVIEW.value).inc()
        logger.info("stock count submitted %s by %s", count.count_no, actor)
        return count

    async def complete(self, count_id: int, *, actor: str) -> StockCount:
        async with self._uow() as uow:
            s = uow.session
            count = await self._lock(s, count_id, StockCountStatus.COMPLETED)
            if count.counted_items < count.total_items:
                logger.warning(
                    "reject complete %s: counted %s/%s", count.count_no, count.counted_items, count.total_items
                )
                raise IncompleteCount(
                    count_no=count.count_no, counted=count.counted_items, total=count.total_items
                )

            count.status = StockCountStatus.COMPLETED
            count.completed_by = actor
            count.completed_at = _now()
            await s.flush()

            variances: List[StockCountItem] = [it for it in count.items if int(it.variance_qty) != 0]
            # 按差异原因分组过账，一个明细一张调整单
            for reason in sorted({it.reason or DEFAULT_VARIANCE_REASON for it in variances}):
                lines = [
                    AdjustmentLine(product_id=it.product_id, delta=int(it.variance_qty), notes=it.notes)
                    for it in variances
                    if (it.reason or DEFAULT_VARIANCE_REASON) == reason
                ]
                await self.adjustments.post_lines(
                    uow,
                    warehouse_id=count.warehouse_id,
                    reason=reason,
                    lines=lines,
                    actor=actor,
                    notes=f"盘点差异 {count.count_no}",
                    source_ref=count.count_no,
                )

        WORKFLOW_TRANSITIONS.labels(DocumentType.STOCK_COUNT.value, StockCountStatus.COMPLETED.value).inc()
        logger.info("stock count completed %s adjustments=%s", count.count_no, len(variances))
        return count

    async def cancel(self, count_id: int, *, actor: str) -> StockCount:
        async with self._uow() as uow:
            count = await self._lock(uow.session, count_id, StockCountStatus.CANCELLED)
            count.status = StockCountStatus.CANCELLED

        WORKFLOW_TRANSITIONS.labels(DocumentType.STOCK_COUNT.value, StockCountStatus.CANCELLED.value).inc()
        logger.info("stock count cancelled %s by %s", count.count_no, actor)
        return count
