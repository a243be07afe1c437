# backoffice/models/purchase_return.py
from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.db.base import Base
from backoffice.models.enums import HandlingMethod, PurchaseReturnStatus, ReturnReason


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PurchaseReturn(Base):
    """
    采购退货单（退回供应商）

    PENDING → APPROVED → COMPLETED；完成时按行扣减退货仓库存（RETURN_OUT）。
    """

    __tablename__ = "purchase_returns"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    return_no: Mapped[str] = mapped_column(sa.String(32), nullable=False, unique=True)
    supplier_id: Mapped[int] = mapped_column(sa.Integer, nullable=False, index=True)
    warehouse_id: Mapped[int] = mapped_column(sa.Integer, nullable=False, index=True)
    return_date: Mapped[date] = mapped_column(sa.Date, nullable=False)

    po_no: Mapped[Optional[str]] = mapped_column(sa.String(32), nullable=True)
    receipt_no: Mapped[Optional[str]] = mapped_column(sa.String(32), nullable=True)

    reason: Mapped[ReturnReason] = mapped_column(
        sa.Enum(ReturnReason, native_enum=False, length=16), nullable=False
    )
    handling: Mapped[HandlingMethod] = mapped_column(
        sa.Enum(HandlingMethod, native_enum=False, length=16),
        nullable=False,
        default=HandlingMethod.CREDIT,
    )
    status: Mapped[PurchaseReturnStatus] = mapped_column(
        sa.Enum(PurchaseReturnStatus, native_enum=False, length=16),
        nullable=False,
        default=PurchaseReturnStatus.PENDING,
    )

    total_qty: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    total_amount: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), nullable=False, default=Decimal("0"))
    notes: Mapped[Optional[str]] = mapped_column(sa.String(255), nullable=True)

    created_by: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    approved_by: Mapped[Optional[str]] = mapped_column(sa.String(64), nullable=True)
    completed_by: Mapped[Optional[str]] = mapped_column(sa.String(64), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    lines: Mapped[List["PurchaseReturnLine"]] = relationship(
        "PurchaseReturnLine",
        back_populates="purchase_return",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PurchaseReturnLine.id",
    )

    def __repr__(self) -> str:
        return f"<PurchaseReturn {self.return_no} supplier={self.supplier_id} status={self.status}>"


class PurchaseReturnLine(Base):
    __tablename__ = "purchase_return_lines"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    return_id: Mapped[int] = mapped_column(
        sa.Integer, sa.ForeignKey("purchase_returns.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    qty: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), nullable=False)
    amount: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(sa.String(255), nullable=True)

    purchase_return: Mapped["PurchaseReturn"] = relationship("PurchaseReturn", back_populates="lines")

    __table_args__ = (sa.CheckConstraint("qty > 0", name="ck_return_lines_qty_positive"),)
