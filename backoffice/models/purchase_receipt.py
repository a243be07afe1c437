# backoffice/models/purchase_receipt.py
from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.db.base import Base


class PurchaseReceipt(Base):
    """
    采购验收单（创建即生效，不可修改）

    行上快照下单数 / 已收数 / 待收数，便于事后追溯当次验收的上下文。
    """

    __tablename__ = "purchase_receipts"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    receipt_no: Mapped[str] = mapped_column(sa.String(32), nullable=False, unique=True)
    po_id: Mapped[int] = mapped_column(
        sa.Integer, sa.ForeignKey("purchase_orders.id"), nullable=False, index=True
    )
    po_no: Mapped[str] = mapped_column(sa.String(32), nullable=False)
    supplier_id: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    warehouse_id: Mapped[int] = mapped_column(sa.Integer, nullable=False, index=True)
    receipt_date: Mapped[date] = mapped_column(sa.Date, nullable=False)

    total_arrived: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    total_received: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    total_rejected: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    total_amount: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), nullable=False, default=Decimal("0"))
    notes: Mapped[Optional[str]] = mapped_column(sa.String(255), nullable=True)

    received_by: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    lines: Mapped[List["PurchaseReceiptLine"]] = relationship(
        "PurchaseReceiptLine",
        back_populates="receipt",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PurchaseReceiptLine.id",
    )

    def __repr__(self) -> str:
        return (
            f"<Receipt {self.receipt_no} po={self.po_no} "
            f"received={self.total_received} rejected={self.total_rejected}>"
        )


class PurchaseReceiptLine(Base):
    __tablename__ = "purchase_receipt_lines"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    receipt_id: Mapped[int] = mapped_column(
        sa.Integer, sa.ForeignKey("purchase_receipts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    po_item_id: Mapped[int] = mapped_column(
        sa.Integer, sa.ForeignKey("purchase_order_lines.id"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(sa.Integer, nullable=False)

    # 验收时刻的快照
    ordered_qty: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    previously_received_qty: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    pending_qty: Mapped[int] = mapped_column(sa.Integer, nullable=False)

    arrived_qty: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    received_qty: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    rejected_qty: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    reject_reason: Mapped[Optional[str]] = mapped_column(sa.String(255), nullable=True)
    unit_price: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), nullable=False)

    receipt: Mapped["PurchaseReceipt"] = relationship("PurchaseReceipt", back_populates="lines")

    __table_args__ = (
        sa.CheckConstraint(
            "arrived_qty >= 0 AND received_qty >= 0 AND rejected_qty >= 0",
            name="ck_receipt_lines_non_negative",
        ),
    )
