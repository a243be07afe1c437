# backoffice/models/stock_adjustment.py
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from backoffice.db.base import Base
from backoffice.models.enums import AdjustmentReason, AdjustmentStatus


class StockAdjustment(Base):
    """
    库存调整单（每个调整商品一张，单号独立）

    - 创建即 COMPLETED，与台账写入处于同一事务
    - source_ref：由盘点等上游单据触发时记录来源单号
    """

    __tablename__ = "stock_adjustments"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    adjustment_no: Mapped[str] = mapped_column(sa.String(32), nullable=False, unique=True)
    warehouse_id: Mapped[int] = mapped_column(sa.Integer, nullable=False, index=True)
    product_id: Mapped[int] = mapped_column(sa.Integer, nullable=False, index=True)
    adjustment_date: Mapped[date] = mapped_column(sa.Date, nullable=False)

    before_qty: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    after_qty: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    delta: Mapped[int] = mapped_column(sa.Integer, nullable=False)

    reason: Mapped[AdjustmentReason] = mapped_column(
        sa.Enum(AdjustmentReason, native_enum=False, length=16), nullable=False
    )
    notes: Mapped[Optional[str]] = mapped_column(sa.String(255), nullable=True)
    source_ref: Mapped[Optional[str]] = mapped_column(sa.String(64), nullable=True, index=True)
    status: Mapped[AdjustmentStatus] = mapped_column(
        sa.Enum(AdjustmentStatus, native_enum=False, length=16),
        nullable=False,
        default=AdjustmentStatus.COMPLETED,
    )

    created_by: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self) -> str:
        return (
            f"<Adjustment {self.adjustment_no} wh={self.warehouse_id} product={self.product_id} "
            f"delta={self.delta} reason={self.reason}>"
        )
