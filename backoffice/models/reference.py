# backoffice/models/reference.py
"""
主数据（只读）：商品 / 仓库 / 供应商 / 供应商报价。

本核心只读取这些表；维护由外部 CRUD 负责。
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.db.base import Base


class Product(Base):
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    sku: Mapped[str] = mapped_column(sa.String(64), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)

    safety_stock: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    min_order_qty: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=1)
    cost_price: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(14, 2), nullable=True)
    tax_rate: Mapped[Decimal] = mapped_column(sa.Numeric(5, 4), nullable=False, default=Decimal("0.05"))
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} safety={self.safety_stock}>"


class Warehouse(Base):
    __tablename__ = "warehouses"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    is_default: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Warehouse id={self.id} name={self.name!r} default={self.is_default}>"


class Supplier(Base):
    __tablename__ = "suppliers"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)


class SupplierPrice(Base):
    """
    供应商报价：effective_date <= today <= expiry_date（expiry 为空表示长期有效）时生效。
    """

    __tablename__ = "supplier_prices"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    supplier_id: Mapped[int] = mapped_column(
        sa.Integer, sa.ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(
        sa.Integer, sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    unit_price: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), nullable=False)
    is_primary: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    effective_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    expiry_date: Mapped[Optional[date]] = mapped_column(sa.Date, nullable=True)
    min_order_qty: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=1)
    lead_time_days: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=7)

    supplier = relationship("Supplier", lazy="selectin")
