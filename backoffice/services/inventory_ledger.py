# backoffice/services/inventory_ledger.py
"""
库存台账（唯一写 inventories.quantity 的地方）

每次 mutate 在调用方事务内完成：
  1) 确保 (product_id, warehouse_id) 余额行存在（INSERT ... ON CONFLICT DO NOTHING）
  2) 加锁读取（SELECT ... FOR UPDATE；SQLite 下事务以 BEGIN IMMEDIATE 开始，整库写锁串行）
  3) after = before + delta，after < 0 → InsufficientStock，不写任何东西
  4) 版本号 CAS 写回余额（冲突重试 LEDGER_MAX_RETRIES 次，仍失败 → TransactionFailed）
  5) 追加一条台账：quantity = delta，after_qty = before_qty + quantity
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Mapping, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.config import get_settings
from backoffice.db.dialect import upsert_insert
from backoffice.metrics import LEDGER_MUTATIONS, LEDGER_REJECTIONS
from backoffice.models.enums import MovementType
from backoffice.models.inventory import InventoryRecord, MovementRecord
from backoffice.models.reference import Product
from backoffice.services.errors import InsufficientStock, InvalidDocument, TransactionFailed
from backoffice.services.events import LOW_STOCK_DETECTED, InventoryEvent

logger = logging.getLogger("backoffice.ledger")

EventSink = Callable[[InventoryEvent], None]


@dataclass(frozen=True)
class MutationResult:
    before: int
    after: int
    movement_id: int


@dataclass(frozen=True)
class LedgerDrift:
    product_id: int
    warehouse_id: int
    stored: int
    replayed: int
    movements: int
    chain_ok: bool

    @property
    def drift(self) -> int:
        return self.stored - self.replayed

    @property
    def ok(self) -> bool:
        return self.drift == 0 and self.chain_ok


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InventoryLedger:
    def __init__(self, *, max_retries: Optional[int] = None) -> None:
        self.max_retries = int(max_retries or get_settings().LEDGER_MAX_RETRIES)

    # ---------------- 读 ----------------

    async def get_on_hand(self, session: AsyncSession, product_id: int, warehouse_id: int) -> int:
        q = select(InventoryRecord.quantity).where(
            InventoryRecord.product_id == product_id,
            InventoryRecord.warehouse_id == warehouse_id,
        )
        qty = (await session.execute(q)).scalar_one_or_none()
        return int(qty or 0)

    async def list_movements(
        self, session: AsyncSession, product_id: int, warehouse_id: int
    ) -> List[MovementRecord]:
        q = (
            select(MovementRecord)
            .where(
                MovementRecord.product_id == product_id,
                MovementRecord.warehouse_id == warehouse_id,
            )
            .order_by(MovementRecord.id)
        )
        return list((await session.execute(q)).scalars().all())

    async def verify_key(self, session: AsyncSession, product_id: int, warehouse_id: int) -> LedgerDrift:
        """台账回放 vs 余额：drift ≠ 0 或前后数量断链都视为异常。"""
        stored = await self.get_on_hand(session, product_id, warehouse_id)
        movements = await self.list_movements(session, product_id, warehouse_id)

        replayed = 0
        chain_ok = True
        for mv in movements:
            if int(mv.before_qty) != replayed:
                chain_ok = False
            replayed += int(mv.quantity)
            if int(mv.after_qty) != replayed:
                chain_ok = False

        result = LedgerDrift(
            product_id=product_id,
            warehouse_id=warehouse_id,
            stored=stored,
            replayed=replayed,
            movements=len(movements),
            chain_ok=chain_ok,
        )
        if not result.ok:
            logger.warning(
                "ledger drift product=%s wh=%s stored=%s replayed=%s chain_ok=%s",
                product_id, warehouse_id, stored, replayed, chain_ok,
            )
        return result

    # ---------------- 批量预校验 ----------------

    async def lock_and_validate(
        self,
        session: AsyncSession,
        warehouse_id: int,
        deltas: Mapping[int, int],
    ) -> Dict[int, int]:
        """
        按 product_id 升序加锁并校验整批（deltas 为按商品汇总后的变动量）。

        任一商品 available + delta < 0 → InsufficientStock，此时尚未写入任何行。
        返回 {product_id: 当前在库}。
        """
        available: Dict[int, int] = {}
        for product_id in sorted(deltas):
            delta = int(deltas[product_id])
            q = (
                select(InventoryRecord.quantity)
                .where(
                    InventoryRecord.product_id == product_id,
                    InventoryRecord.warehouse_id == warehouse_id,
                )
                .with_for_update()
            )
            qty = int((await session.execute(q)).scalar_one_or_none() or 0)
            available[product_id] = qty
            if qty + delta < 0:
                LEDGER_REJECTIONS.labels("insufficient_stock").inc()
                logger.warning(
                    "batch rejected: product=%s wh=%s requested=%s available=%s",
                    product_id, warehouse_id, -delta, qty,
                )
                raise InsufficientStock(
                    product_id=product_id,
                    warehouse_id=warehouse_id,
                    requested=-delta,
                    available=qty,
                )
        return available

    # ---------------- 写 ----------------

    async def _ensure_record(self, session: AsyncSession, product_id: int, warehouse_id: int) -> None:
        now = _utcnow()
        stmt = (
            upsert_insert(session, InventoryRecord)
            .values(
                product_id=product_id,
                warehouse_id=warehouse_id,
                quantity=0,
                version=0,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["product_id", "warehouse_id"])
        )
        await session.execute(stmt)

    async def mutate(
        self,
        session: AsyncSession,
        *,
        product_id: int,
        warehouse_id: int,
        delta: int,
        movement_type: MovementType,
        reference_type: str,
        reference_no: str,
        actor: str,
        unit_cost: Optional[Decimal] = None,
        notes: Optional[str] = None,
        on_event: Optional[EventSink] = None,
    ) -> MutationResult:
        delta = int(delta)
        if delta == 0:
            raise InvalidDocument("库存变动量不能为 0", context={"reference_no": reference_no})

        before = after = 0
        applied = False
        for attempt in range(1, self.max_retries + 1):
            if delta > 0:
                await self._ensure_record(session, product_id, warehouse_id)

            row = (
                await session.execute(
                    select(InventoryRecord.id, InventoryRecord.quantity, InventoryRecord.version)
                    .where(
                        InventoryRecord.product_id == product_id,
                        InventoryRecord.warehouse_id == warehouse_id,
                    )
                    .with_for_update()
                )
            ).first()

            before = int(row.quantity) if row is not None else 0
            after = before + delta
            if after < 0 or row is None:
                LEDGER_REJECTIONS.labels("insufficient_stock").inc()
                logger.warning(
                    "mutate rejected: product=%s wh=%s delta=%s before=%s ref=%s",
                    product_id, warehouse_id, delta, before, reference_no,
                )
                raise InsufficientStock(
                    product_id=product_id,
                    warehouse_id=warehouse_id,
                    requested=-delta,
                    available=before,
                )

            res = await session.execute(
                update(InventoryRecord)
                .where(InventoryRecord.id == row.id, InventoryRecord.version == row.version)
                .values(quantity=after, version=row.version + 1, updated_at=_utcnow())
                .execution_options(synchronize_session=False)
            )
            if res.rowcount == 1:
                applied = True
                break
            logger.info(
                "version conflict product=%s wh=%s attempt=%s/%s",
                product_id, warehouse_id, attempt, self.max_retries,
            )

        if not applied:
            LEDGER_REJECTIONS.labels("version_conflict").inc()
            raise TransactionFailed(
                "库存版本冲突，重试次数已用尽",
                context={"product_id": product_id, "warehouse_id": warehouse_id, "retries": self.max_retries},
            )

        movement_id = (
            await session.execute(
                insert(MovementRecord)
                .values(
                    product_id=product_id,
                    warehouse_id=warehouse_id,
                    movement_type=MovementType(movement_type),
                    quantity=delta,
                    before_qty=before,
                    after_qty=after,
                    reference_type=reference_type,
                    reference_no=reference_no,
                    unit_cost=unit_cost,
                    notes=notes,
                    actor=actor,
                    created_at=_utcnow(),
                )
                .returning(MovementRecord.id)
            )
        ).scalar_one()

        LEDGER_MUTATIONS.labels(str(movement_type)).inc()
        logger.debug(
            "mutate %s product=%s wh=%s %s -> %s ref=%s",
            movement_type, product_id, warehouse_id, before, after, reference_no,
        )

        if on_event is not None and delta < 0:
            event = await self._low_stock_event(session, product_id, warehouse_id, before, after, reference_no)
            if event is not None:
                on_event(event)

        return MutationResult(before=before, after=after, movement_id=int(movement_id))

    async def _low_stock_event(
        self,
        session: AsyncSession,
        product_id: int,
        warehouse_id: int,
        before: int,
        after: int,
        reference_no: str,
    ) -> Optional[InventoryEvent]:
        row = (
            await session.execute(
                select(Product.safety_stock, Product.is_active).where(Product.id == product_id)
            )
        ).first()
        if row is None or not row.is_active:
            return None
        safety = int(row.safety_stock or 0)
        if safety <= 0 or not (before >= safety > after):
            return None
        return InventoryEvent(
            name=LOW_STOCK_DETECTED,
            ref=reference_no,
            payload={
                "product_id": product_id,
                "warehouse_id": warehouse_id,
                "quantity": after,
                "safety_stock": safety,
            },
        )

