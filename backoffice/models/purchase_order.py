# backoffice/models/purchase_order.py
from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.db.base import Base
from backoffice.models.enums import PurchaseOrderStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PurchaseOrder(Base):
    """
    采购单头表

    - 数量 / 金额以行表为事实来源，头表只保存汇总
    - status 由行 received_qty 聚合推导：全部收满 → COMPLETED，部分 → PARTIAL
    """

    __tablename__ = "purchase_orders"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    po_no: Mapped[str] = mapped_column(sa.String(32), nullable=False, unique=True)
    supplier_id: Mapped[int] = mapped_column(sa.Integer, nullable=False, index=True)
    warehouse_id: Mapped[int] = mapped_column(sa.Integer, nullable=False, index=True)

    order_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    expected_date: Mapped[Optional[date]] = mapped_column(sa.Date, nullable=True)

    status: Mapped[PurchaseOrderStatus] = mapped_column(
        sa.Enum(PurchaseOrderStatus, native_enum=False, length=16),
        nullable=False,
        default=PurchaseOrderStatus.PENDING,
    )

    subtotal: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), nullable=False, default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), nullable=False, default=Decimal("0"))
    notes: Mapped[Optional[str]] = mapped_column(sa.String(255), nullable=True)

    buyer: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    approved_by: Mapped[Optional[str]] = mapped_column(sa.String(64), nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    last_received_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    lines: Mapped[List["PurchaseOrderLine"]] = relationship(
        "PurchaseOrderLine",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PurchaseOrderLine.id",
    )

    __table_args__ = (sa.Index("ix_purchase_orders_wh_status", "warehouse_id", "status"),)

    def __repr__(self) -> str:
        return (
            f"<PO {self.po_no} supplier={self.supplier_id} wh={self.warehouse_id} "
            f"status={self.status} total={self.total_amount}>"
        )


class PurchaseOrderLine(Base):
    __tablename__ = "purchase_order_lines"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    po_id: Mapped[int] = mapped_column(
        sa.Integer, sa.ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    ordered_qty: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    received_qty: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    unit_price: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), nullable=False, default=Decimal("0"))
    subtotal: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), nullable=False, default=Decimal("0"))
    notes: Mapped[Optional[str]] = mapped_column(sa.String(255), nullable=True)

    order: Mapped["PurchaseOrder"] = relationship("PurchaseOrder", back_populates="lines")

    __table_args__ = (
        sa.CheckConstraint("ordered_qty > 0", name="ck_po_lines_ordered_positive"),
        sa.CheckConstraint(
            "received_qty >= 0 AND received_qty <= ordered_qty", name="ck_po_lines_received_range"
        ),
    )

    @property
    def pending_qty(self) -> int:
        return int(self.ordered_qty) - int(self.received_qty or 0)
