# backoffice/models/stock_transfer.py
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.db.base import Base
from backoffice.models.enums import TransferStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StockTransfer(Base):
    """
    仓间调拨单

    DRAFT → APPROVED → IN_TRANSIT → COMPLETED
    DRAFT / APPROVED / IN_TRANSIT → CANCELLED（在途取消会冲回出库）
    """

    __tablename__ = "stock_transfers"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    transfer_no: Mapped[str] = mapped_column(sa.String(32), nullable=False, unique=True)
    from_warehouse_id: Mapped[int] = mapped_column(sa.Integer, nullable=False, index=True)
    to_warehouse_id: Mapped[int] = mapped_column(sa.Integer, nullable=False, index=True)
    request_date: Mapped[date] = mapped_column(sa.Date, nullable=False)

    status: Mapped[TransferStatus] = mapped_column(
        sa.Enum(TransferStatus, native_enum=False, length=16),
        nullable=False,
        default=TransferStatus.DRAFT,
    )
    notes: Mapped[Optional[str]] = mapped_column(sa.String(255), nullable=True)

    requested_by: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    approved_by: Mapped[Optional[str]] = mapped_column(sa.String(64), nullable=True)
    shipped_by: Mapped[Optional[str]] = mapped_column(sa.String(64), nullable=True)
    received_by: Mapped[Optional[str]] = mapped_column(sa.String(64), nullable=True)
    shipped_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    received_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    lines: Mapped[List["StockTransferLine"]] = relationship(
        "StockTransferLine",
        back_populates="transfer",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="StockTransferLine.id",
    )

    __table_args__ = (
        sa.CheckConstraint("from_warehouse_id <> to_warehouse_id", name="ck_transfers_distinct_wh"),
    )

    @property
    def total_qty(self) -> int:
        return sum(int(ln.requested_qty) for ln in self.lines)

    def __repr__(self) -> str:
        return (
            f"<Transfer {self.transfer_no} {self.from_warehouse_id}->{self.to_warehouse_id} "
            f"status={self.status}>"
        )


class StockTransferLine(Base):
    __tablename__ = "stock_transfer_lines"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    transfer_id: Mapped[int] = mapped_column(
        sa.Integer, sa.ForeignKey("stock_transfers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    requested_qty: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(sa.String(255), nullable=True)

    transfer: Mapped["StockTransfer"] = relationship("StockTransfer", back_populates="lines")

    __table_args__ = (sa.CheckConstraint("requested_qty > 0", name="ck_transfer_lines_qty_positive"),)
