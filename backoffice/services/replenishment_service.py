# backoffice/services/replenishment_service.py
"""
补货建议（只读）+ 按建议批量生成采购单。

- 低于安全库存：inventories.quantity < products.safety_stock（仅启用商品）
- 首选报价：当日有效、供应商启用；主供应商优先，其次单价最低
- 建议量 = max(缺口, 最小订购量)
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backoffice.core.config import get_settings
from backoffice.models.enums import UrgencyLevel
from backoffice.models.inventory import InventoryRecord
from backoffice.models.purchase_order import PurchaseOrder, PurchaseOrderLine
from backoffice.models.reference import Product, Supplier, SupplierPrice, Warehouse
from backoffice.services.events import InventoryEventBus
from backoffice.services.purchase_order_service import PurchaseLineInput, build_purchase_order, money
from backoffice.services.uow import UnitOfWork

logger = logging.getLogger("backoffice.replenishment")

DEFAULT_PO_NOTES = "由补货建议自动生成"


@dataclass(frozen=True)
class ReplenishmentSuggestion:
    product_id: int
    sku: str
    product_name: str
    warehouse_id: int
    warehouse_name: str
    current_stock: int
    safety_stock: int
    shortage: int
    suggested_qty: int
    urgency: UrgencyLevel
    preferred_supplier_id: Optional[int] = None
    preferred_supplier_name: Optional[str] = None
    reference_price: Optional[Decimal] = None
    estimated_amount: Optional[Decimal] = None
    last_purchase_date: Optional[date] = None


@dataclass(frozen=True)
class ReplenishmentSummary:
    critical: int
    warning: int
    normal: int
    estimated_total: Decimal
    suppliers: int

    @property
    def total(self) -> int:
        return self.critical + self.warning + self.normal


def classify_urgency(
    quantity: int,
    safety_stock: int,
    *,
    critical_ratio: Optional[float] = None,
    warning_ratio: Optional[float] = None,
) -> UrgencyLevel:
    s = get_settings()
    critical_ratio = s.REPLENISH_CRITICAL_RATIO if critical_ratio is None else critical_ratio
    warning_ratio = s.REPLENISH_WARNING_RATIO if warning_ratio is None else warning_ratio

    if quantity <= 0 or safety_stock <= 0:
        return UrgencyLevel.CRITICAL
    ratio = quantity / safety_stock
    if ratio <= critical_ratio:
        return UrgencyLevel.CRITICAL
    if ratio <= warning_ratio:
        return UrgencyLevel.WARNING
    return UrgencyLevel.NORMAL


def pick_preferred(prices: Iterable[SupplierPrice]) -> Optional[SupplierPrice]:
    ordered = sorted(prices, key=lambda p: (not p.is_primary, Decimal(p.unit_price), p.id))
    return ordered[0] if ordered else None


class ReplenishmentService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        bus: Optional[InventoryEventBus] = None,
    ) -> None:
        self._session_factory = session_factory
        self._bus = bus

    # ---------------- 查询 ----------------

    async def _low_stock_rows(
        self,
        session: AsyncSession,
        *,
        warehouse_id: Optional[int] = None,
        product_ids: Optional[Sequence[int]] = None,
    ):
        q = (
            select(InventoryRecord, Product, Warehouse)
            .join(Product, Product.id == InventoryRecord.product_id)
            .join(Warehouse, Warehouse.id == InventoryRecord.warehouse_id)
            .where(InventoryRecord.quantity < Product.safety_stock, Product.is_active.is_(True))
            .order_by(InventoryRecord.product_id, InventoryRecord.warehouse_id)
        )
        if warehouse_id is not None:
            q = q.where(InventoryRecord.warehouse_id == warehouse_id)
        if product_ids is not None:
            q = q.where(InventoryRecord.product_id.in_(list(product_ids)))
        return (await session.execute(q)).all()

    async def _effective_prices(
        self, session: AsyncSession, product_ids: Sequence[int], today: date
    ) -> Dict[int, List[SupplierPrice]]:
        if not product_ids:
            return {}
        q = (
            select(SupplierPrice)
            .join(Supplier, Supplier.id == SupplierPrice.supplier_id)
            .where(
                SupplierPrice.product_id.in_(list(product_ids)),
                SupplierPrice.effective_date <= today,
                or_(SupplierPrice.expiry_date.is_(None), SupplierPrice.expiry_date >= today),
                Supplier.is_active.is_(True),
            )
        )
        out: Dict[int, List[SupplierPrice]] = {}
        for sp in (await session.execute(q)).scalars().all():
            out.setdefault(sp.product_id, []).append(sp)
        return out

    async def _last_purchase_dates(self, session: AsyncSession, product_ids: Sequence[int]) -> Dict[int, date]:
        if not product_ids:
            return {}
        q = (
            select(PurchaseOrderLine.product_id, func.max(PurchaseOrder.order_date))
            .join(PurchaseOrder, PurchaseOrder.id == PurchaseOrderLine.po_id)
            .where(PurchaseOrderLine.product_id.in_(list(product_ids)))
            .group_by(PurchaseOrderLine.product_id)
        )
        return {int(pid): d for pid, d in (await session.execute(q)).all()}

    async def suggest(
        self,
        *,
        warehouse_id: Optional[int] = None,
        supplier_id: Optional[int] = None,
    ) -> List[ReplenishmentSuggestion]:
        today = date.today()
        async with UnitOfWork(self._session_factory) as uow:
            s = uow.session
            rows = await self._low_stock_rows(s, warehouse_id=warehouse_id)
            product_ids = sorted({inv.product_id for inv, _, _ in rows})
            prices = await self._effective_prices(s, product_ids, today)
            last_dates = await self._last_purchase_dates(s, product_ids)

        if supplier_id is not None:
            quoted = {pid for pid, sps in prices.items() if any(sp.supplier_id == supplier_id for sp in sps)}
            rows = [r for r in rows if r[0].product_id in quoted]

        out: List[ReplenishmentSuggestion] = []
        for inv, product, wh in rows:
            shortage = int(product.safety_stock) - int(inv.quantity)
            suggested = max(shortage, int(product.min_order_qty or 0))
            preferred = pick_preferred(prices.get(inv.product_id, []))
            out.append(
                ReplenishmentSuggestion(
                    product_id=inv.product_id,
                    sku=product.sku,
                    product_name=product.name,
                    warehouse_id=inv.warehouse_id,
                    warehouse_name=wh.name,
                    current_stock=int(inv.quantity),
                    safety_stock=int(product.safety_stock),
                    shortage=shortage,
                    suggested_qty=suggested,
                    urgency=classify_urgency(int(inv.quantity), int(product.safety_stock)),
                    preferred_supplier_id=preferred.supplier_id if preferred else None,
                    preferred_supplier_name=preferred.supplier.name if preferred else None,
                    reference_price=preferred.unit_price if preferred else None,
                    estimated_amount=money(Decimal(preferred.unit_price) * suggested) if preferred else None,
                    last_purchase_date=last_dates.get(inv.product_id),
                )
            )

        out.sort(key=lambda x: (-x.urgency.rank, -x.shortage, x.product_id, x.warehouse_id))
        return out

    async def summarize(self, *, warehouse_id: Optional[int] = None) -> ReplenishmentSummary:
        suggestions = await self.suggest(warehouse_id=warehouse_id)
        counts = {lvl: 0 for lvl in UrgencyLevel}
        total = Decimal("0")
        suppliers = set()
        for sg in suggestions:
            counts[sg.urgency] += 1
            if sg.estimated_amount is not None:
                total += sg.estimated_amount
            if sg.preferred_supplier_id is not None:
                suppliers.add(sg.preferred_supplier_id)
        return ReplenishmentSummary(
            critical=counts[UrgencyLevel.CRITICAL],
            warning=counts[UrgencyLevel.WARNING],
            normal=counts[UrgencyLevel.NORMAL],
            estimated_total=money(total),
            suppliers=len(suppliers),
        )

    # ---------------- 生成采购单 ----------------

    async def generate_purchase_orders(
        self,
        *,
        product_ids: Sequence[int],
        actor: str,
        warehouse_id: Optional[int] = None,
        group_by_supplier: bool = True,
        expected_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> List[PurchaseOrder]:
        """
        按建议生成采购单（同一事务内全部建单）。

        - group_by_supplier：每个首选供应商一张；否则一张单，供应商取第一个有报价的商品
        - 目标仓：默认仓，否则第一条命中的库存记录所在仓
        - 没有有效报价的商品跳过并记日志
        """
        today = date.today()
        created: List[PurchaseOrder] = []

        async with UnitOfWork(self._session_factory, bus=self._bus) as uow:
            s = uow.session
            rows = await self._low_stock_rows(s, warehouse_id=warehouse_id, product_ids=product_ids)
            if not rows:
                logger.warning("generate POs: no low-stock rows for products=%s", list(product_ids))
                return created

            ids = sorted({inv.product_id for inv, _, _ in rows})
            prices = await self._effective_prices(s, ids, today)

            default_wh = (
                await s.execute(select(Warehouse.id).where(Warehouse.is_default.is_(True)).order_by(Warehouse.id))
            ).scalars().first()
            target_wh = default_wh if default_wh is not None else rows[0][0].warehouse_id

            groups: "OrderedDict[int, List[PurchaseLineInput]]" = OrderedDict()
            for inv, product, _ in rows:
                preferred = pick_preferred(prices.get(inv.product_id, []))
                if preferred is None:
                    logger.warning("product %s has no effective supplier price, skipped", inv.product_id)
                    continue
                shortage = int(product.safety_stock) - int(inv.quantity)
                line = PurchaseLineInput(
                    product_id=inv.product_id,
                    qty=max(shortage, int(product.min_order_qty or 0)),
                    unit_price=Decimal(preferred.unit_price),
                )
                key = preferred.supplier_id if group_by_supplier else next(iter(groups), preferred.supplier_id)
                groups.setdefault(key, []).append(line)

            for supplier_id, lines in groups.items():
                po = await build_purchase_order(
                    s,
                    supplier_id=supplier_id,
                    warehouse_id=target_wh,
                    lines=lines,
                    actor=actor,
                    expected_date=expected_date,
                    notes=notes or DEFAULT_PO_NOTES,
                )
                created.append(po)
                logger.info("generated PO %s supplier=%s lines=%s", po.po_no, supplier_id, len(lines))

        logger.info("generated %d purchase orders from suggestions", len(created))
        return created
