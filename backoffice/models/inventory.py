# backoffice/models/inventory.py
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from backoffice.db.base import Base
from backoffice.models.enums import MovementType

UTC = timezone.utc


def _utcnow() -> datetime:
    return datetime.now(UTC)


class InventoryRecord(Base):
    """
    库存余额维度 (product_id, warehouse_id)

    - quantity 为唯一真实在库数量，只允许 InventoryLedger.mutate 写入
    - version 为乐观锁计数器（每次写入 +1）
    - 首次变动时惰性创建，被引用期间不删除
    """

    __tablename__ = "inventories"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(
        sa.Integer, sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    warehouse_id: Mapped[int] = mapped_column(
        sa.Integer, sa.ForeignKey("warehouses.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    quantity: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        sa.UniqueConstraint("product_id", "warehouse_id", name="uq_inventories_product_wh"),
        sa.CheckConstraint("quantity >= 0", name="ck_inventories_quantity_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<Inventory product={self.product_id} wh={self.warehouse_id} "
            f"qty={self.quantity} v={self.version}>"
        )


class MovementRecord(Base):
    """
    库存台账（只增不改）

    - quantity 为带符号变动量：after_qty = before_qty + quantity
    - 同一 (product_id, warehouse_id) 的全部台账按 id 顺序回放即得当前在库
    """

    __tablename__ = "inventory_movements"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    warehouse_id: Mapped[int] = mapped_column(sa.Integer, nullable=False)

    movement_type: Mapped[MovementType] = mapped_column(
        sa.Enum(MovementType, native_enum=False, length=32), nullable=False
    )
    quantity: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    before_qty: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    after_qty: Mapped[int] = mapped_column(sa.Integer, nullable=False)

    reference_type: Mapped[str] = mapped_column(sa.String(32), nullable=False)
    reference_no: Mapped[str] = mapped_column(sa.String(64), nullable=False, index=True)
    unit_cost: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(14, 2), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(sa.String(255), nullable=True)

    actor: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        sa.CheckConstraint("after_qty = before_qty + quantity", name="ck_movements_arithmetic"),
        sa.Index("ix_movements_dims", "product_id", "warehouse_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Movement {self.movement_type} product={self.product_id} wh={self.warehouse_id} "
            f"delta={self.quantity} {self.before_qty}->{self.after_qty} ref={self.reference_no}>"
        )
