# backoffice/models/stock_count.py
from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.db.base import Base
from backoffice.models.enums import AdjustmentReason, StockCountStatus, StockCountType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StockCount(Base):
    """
    盘点单头表

    - system_qty 在建单时快照，之后库存变化不回写
    - 完成时按差异逐项生成调整单（source_ref = count_no）
    """

    __tablename__ = "stock_counts"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    count_no: Mapped[str] = mapped_column(sa.String(32), nullable=False, unique=True)
    warehouse_id: Mapped[int] = mapped_column(sa.Integer, nullable=False, index=True)
    count_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    count_type: Mapped[StockCountType] = mapped_column(
        sa.Enum(StockCountType, native_enum=False, length=16),
        nullable=False,
        default=StockCountType.FULL,
    )
    scope: Mapped[Optional[str]] = mapped_column(sa.String(255), nullable=True)
    status: Mapped[StockCountStatus] = mapped_column(
        sa.Enum(StockCountStatus, native_enum=False, length=16),
        nullable=False,
        default=StockCountStatus.DRAFT,
    )

    total_items: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    counted_items: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    variance_items: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    variance_amount: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), nullable=False, default=Decimal("0"))
    notes: Mapped[Optional[str]] = mapped_column(sa.String(255), nullable=True)

    created_by: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    started_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    completed_by: Mapped[Optional[str]] = mapped_column(sa.String(64), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    items: Mapped[List["StockCountItem"]] = relationship(
        "StockCountItem",
        back_populates="count",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="StockCountItem.id",
    )

    def __repr__(self) -> str:
        return (
            f"<StockCount {self.count_no} wh={self.warehouse_id} status={self.status} "
            f"counted={self.counted_items}/{self.total_items}>"
        )


class StockCountItem(Base):
    __tablename__ = "stock_count_items"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    count_id: Mapped[int] = mapped_column(
        sa.Integer, sa.ForeignKey("stock_counts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(sa.Integer, nullable=False)

    system_qty: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    counted_qty: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True)
    variance_qty: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    unit_cost: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), nullable=False, default=Decimal("0"))
    variance_amount: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), nullable=False, default=Decimal("0"))

    reason: Mapped[Optional[AdjustmentReason]] = mapped_column(
        sa.Enum(AdjustmentReason, native_enum=False, length=16), nullable=True
    )
    notes: Mapped[Optional[str]] = mapped_column(sa.String(255), nullable=True)
    counted_by: Mapped[Optional[str]] = mapped_column(sa.String(64), nullable=True)
    counted_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True), nullable=True)

    count: Mapped["StockCount"] = relationship("StockCount", back_populates="items")

    __table_args__ = (
        sa.UniqueConstraint("count_id", "product_id", name="uq_stock_count_items_product"),
        sa.CheckConstraint("counted_qty IS NULL OR counted_qty >= 0", name="ck_count_items_counted"),
    )

    @property
    def is_counted(self) -> bool:
        return self.counted_qty is not None
