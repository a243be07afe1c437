# tests/services/test_replenishment_service.py
from decimal import Decimal

import pytest
import pytest_asyncio

from backoffice.models.enums import PurchaseOrderStatus, UrgencyLevel
from backoffice.models.reference import Product
from backoffice.services.replenishment_service import DEFAULT_PO_NOTES, classify_urgency
from tests.helpers.seed import (
    P_CHIPS,
    P_COLA,
    P_RETIRED,
    P_WATER,
    S_CHEAP,
    S_PRIMARY,
    WH_MAIN,
    WH_STORE,
)


@pytest.mark.parametrize(
    "qty, expected",
    [
        (0, UrgencyLevel.CRITICAL),
        (25, UrgencyLevel.CRITICAL),
        (30, UrgencyLevel.CRITICAL),
        (50, UrgencyLevel.WARNING),
        (70, UrgencyLevel.WARNING),
        (80, UrgencyLevel.NORMAL),
    ],
)
def test_classify_urgency_against_safety_100(qty, expected):
    assert classify_urgency(qty, 100) is expected


def test_classify_urgency_without_safety_stock_is_critical():
    assert classify_urgency(5, 0) is UrgencyLevel.CRITICAL


@pytest_asyncio.fixture
async def low_stock(put_stock):
    """可乐总仓 25（紧急）、薯片总仓 10（警告）、可乐门店 80（一般）。"""
    await put_stock(P_COLA, WH_MAIN, 25)
    await put_stock(P_CHIPS, WH_MAIN, 10)
    await put_stock(P_COLA, WH_STORE, 80)
    await put_stock(P_WATER, WH_MAIN, 1)
    await put_stock(P_RETIRED, WH_MAIN, 2)


@pytest.mark.asyncio
async def test_suggestions_ordered_by_urgency_with_preferred_supplier(services, low_stock):
    rows = await services.replenishment.suggest()

    assert [(r.product_id, r.warehouse_id, r.urgency) for r in rows] == [
        (P_COLA, WH_MAIN, UrgencyLevel.CRITICAL),
        (P_CHIPS, WH_MAIN, UrgencyLevel.WARNING),
        (P_COLA, WH_STORE, UrgencyLevel.NORMAL),
    ]

    cola, chips, cola_store = rows
    # 建议量 = max(缺口, 最小订购量)
    assert (cola.shortage, cola.suggested_qty) == (75, 75)
    assert (chips.shortage, chips.suggested_qty) == (10, 50)
    assert (cola_store.shortage, cola_store.suggested_qty) == (20, 24)

    # 主供应商优先（即使更贵）
    assert cola.preferred_supplier_id == S_PRIMARY
    assert cola.reference_price == Decimal("9.00")
    assert cola.estimated_amount == Decimal("675.00")
    # 过期报价与停用供应商不参与
    assert chips.preferred_supplier_id == S_CHEAP
    assert chips.preferred_supplier_name == "低价供应商"
    assert chips.estimated_amount == Decimal("200.00")


@pytest.mark.asyncio
async def test_suggestions_filter_by_warehouse_and_supplier(services, low_stock):
    main_only = await services.replenishment.suggest(warehouse_id=WH_MAIN)
    assert {r.warehouse_id for r in main_only} == {WH_MAIN}

    primary = await services.replenishment.suggest(supplier_id=S_PRIMARY)
    assert {r.product_id for r in primary} == {P_COLA}

    cheap = await services.replenishment.suggest(supplier_id=S_CHEAP)
    assert {r.product_id for r in cheap} == {P_COLA, P_CHIPS}


@pytest.mark.asyncio
async def test_summary_counts_levels(services, low_stock):
    summary = await services.replenishment.summarize()
    assert (summary.critical, summary.warning, summary.normal) == (1, 1, 1)
    assert summary.total == 3
    assert summary.estimated_total == Decimal("1091.00")
    assert summary.suppliers == 2


@pytest.mark.asyncio
async def test_generate_purchase_orders_grouped_by_supplier(services, low_stock):
    orders = await services.replenishment.generate_purchase_orders(
        product_ids=[P_COLA, P_CHIPS], warehouse_id=WH_MAIN, actor="planner"
    )

    assert len(orders) == 2
    by_supplier = {po.supplier_id: po for po in orders}
    assert set(by_supplier) == {S_PRIMARY, S_CHEAP}

    cola_po = by_supplier[S_PRIMARY]
    assert cola_po.status == PurchaseOrderStatus.PENDING
    assert cola_po.warehouse_id == WH_MAIN
    assert cola_po.notes == DEFAULT_PO_NOTES
    assert [(ln.product_id, ln.ordered_qty, ln.unit_price) for ln in cola_po.lines] == [
        (P_COLA, 75, Decimal("9.00"))
    ]
    assert [(ln.product_id, ln.ordered_qty) for ln in by_supplier[S_CHEAP].lines] == [(P_CHIPS, 50)]

    # 采购单落库后，建议里带出最近采购日期
    rows = await services.replenishment.suggest(warehouse_id=WH_MAIN)
    assert all(r.last_purchase_date is not None for r in rows)


@pytest.mark.asyncio
async def test_generate_single_purchase_order(services, low_stock):
    orders = await services.replenishment.generate_purchase_orders(
        product_ids=[P_COLA, P_CHIPS], warehouse_id=WH_MAIN, actor="planner", group_by_supplier=False
    )
    assert len(orders) == 1
    assert orders[0].supplier_id == S_PRIMARY
    assert sorted(ln.product_id for ln in orders[0].lines) == [P_COLA, P_CHIPS]


@pytest.mark.asyncio
async def test_generate_skips_products_without_price(services, session_factory, put_stock):
    async with session_factory() as s:
        s.add(Product(id=5, sku="SKU-NOPRICE", name="无报价商品", safety_stock=10, min_order_qty=1))
        await s.commit()
    await put_stock(5, WH_MAIN, 2)

    assert await services.replenishment.generate_purchase_orders(product_ids=[5], actor="planner") == []
    assert await services.replenishment.generate_purchase_orders(product_ids=[P_WATER], actor="planner") == []
