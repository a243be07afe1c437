# tests/helpers/seed.py
"""
测试用最小参考数据：两个仓、四个商品、三个供应商及报价。

各测试文件直接 import 这些常量，不依赖 conftest 的模块名。
"""
from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncEngine

from backoffice.models.reference import Product, Supplier, SupplierPrice, Warehouse

WH_MAIN = 1  # 默认仓
WH_STORE = 2

P_COLA = 1  # 安全库存 100
P_CHIPS = 2  # 安全库存 20
P_WATER = 3  # 无安全库存
P_RETIRED = 4  # 已停用

S_PRIMARY = 1
S_CHEAP = 2
S_INACTIVE = 3


async def seed_reference_data(engine: AsyncEngine) -> None:
    today = date.today()
    async with engine.begin() as conn:
        await conn.execute(
            insert(Warehouse),
            [
                {"id": WH_MAIN, "name": "总仓", "is_default": True},
                {"id": WH_STORE, "name": "门店仓", "is_default": False},
            ],
        )
        await conn.execute(
            insert(Product),
            [
                {"id": P_COLA, "sku": "SKU-COLA", "name": "可乐", "safety_stock": 100,
                 "min_order_qty": 24, "cost_price": Decimal("10.00"), "is_active": True},
                {"id": P_CHIPS, "sku": "SKU-CHIPS", "name": "薯片", "safety_stock": 20,
                 "min_order_qty": 50, "cost_price": Decimal("4.50"), "is_active": True},
                {"id": P_WATER, "sku": "SKU-WATER", "name": "矿泉水", "safety_stock": 0,
                 "min_order_qty": 1, "cost_price": Decimal("1.00"), "is_active": True},
                {"id": P_RETIRED, "sku": "SKU-OLD", "name": "停产商品", "safety_stock": 10,
                 "min_order_qty": 1, "cost_price": Decimal("2.00"), "is_active": False},
            ],
        )
        await conn.execute(
            insert(Supplier),
            [
                {"id": S_PRIMARY, "name": "主供应商", "is_active": True},
                {"id": S_CHEAP, "name": "低价供应商", "is_active": True},
                {"id": S_INACTIVE, "name": "停用供应商", "is_active": False},
            ],
        )
        await conn.execute(
            insert(SupplierPrice),
            [
                # 可乐：主供应商虽然更贵仍优先
                {"supplier_id": S_PRIMARY, "product_id": P_COLA, "unit_price": Decimal("9.00"),
                 "is_primary": True, "effective_date": today - timedelta(days=30), "expiry_date": None},
                {"supplier_id": S_CHEAP, "product_id": P_COLA, "unit_price": Decimal("8.00"),
                 "is_primary": False, "effective_date": today - timedelta(days=30), "expiry_date": None},
                # 薯片：已过期报价 + 停用供应商报价都不算，只剩低价供应商
                {"supplier_id": S_PRIMARY, "product_id": P_CHIPS, "unit_price": Decimal("3.00"),
                 "is_primary": True, "effective_date": today - timedelta(days=60),
                 "expiry_date": today - timedelta(days=1)},
                {"supplier_id": S_INACTIVE, "product_id": P_CHIPS, "unit_price": Decimal("2.00"),
                 "is_primary": False, "effective_date": today - timedelta(days=30), "expiry_date": None},
                {"supplier_id": S_CHEAP, "product_id": P_CHIPS, "unit_price": Decimal("4.00"),
                 "is_primary": False, "effective_date": today - timedelta(days=30), "expiry_date": None},
            ],
        )
