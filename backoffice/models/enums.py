# backoffice/models/enums.py
from __future__ import annotations

from enum import StrEnum
from typing import Mapping


class MovementType(StrEnum):
    """
    库存台账 inventory_movements.movement_type（落库值即名称）：

    入库方向（delta > 0）：
    - ADJUST_IN     手工调整 / 盘盈
    - TRANSFER_IN   调拨入库（含在途取消的冲回）
    - PURCHASE_IN   采购验收入库

    出库方向（delta < 0）：
    - ADJUST_OUT    手工调整 / 盘亏
    - TRANSFER_OUT  调拨出库
    - RETURN_OUT    采购退货（退回供应商）
    """

    ADJUST_IN = "ADJUST_IN"
    ADJUST_OUT = "ADJUST_OUT"
    TRANSFER_IN = "TRANSFER_IN"
    TRANSFER_OUT = "TRANSFER_OUT"
    PURCHASE_IN = "PURCHASE_IN"
    RETURN_OUT = "RETURN_OUT"

    @classmethod
    def adjust_for(cls, delta: int) -> "MovementType":
        return cls.ADJUST_IN if delta > 0 else cls.ADJUST_OUT


class DocumentType(StrEnum):
    """单号类型；值即单号前缀。"""

    ADJUSTMENT = "ADJ"
    TRANSFER = "TRF"
    PURCHASE_ORDER = "PO"
    PURCHASE_RECEIPT = "GR"
    PURCHASE_RETURN = "PR"
    STOCK_COUNT = "SC"


class AdjustmentReason(StrEnum):
    DAMAGE = "DAMAGE"
    EXPIRE = "EXPIRE"
    LOST = "LOST"
    FOUND = "FOUND"
    ERROR = "ERROR"
    GIFT = "GIFT"
    SAMPLE = "SAMPLE"
    OTHER = "OTHER"


class AdjustmentStatus(StrEnum):
    # 调整单创建即完成，没有待审状态
    COMPLETED = "COMPLETED"


class TransferStatus(StrEnum):
    DRAFT = "DRAFT"
    APPROVED = "APPROVED"
    IN_TRANSIT = "IN_TRANSIT"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PurchaseOrderStatus(StrEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    PARTIAL = "PARTIAL"
    COMPLETED = "COMPLETED"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


class PurchaseReturnStatus(StrEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ReturnReason(StrEnum):
    DEFECT = "DEFECT"
    DAMAGE = "DAMAGE"
    WRONG = "WRONG"
    EXPIRE = "EXPIRE"
    EXCESS = "EXCESS"
    QUALITY = "QUALITY"
    OTHER = "OTHER"


class HandlingMethod(StrEnum):
    CREDIT = "CREDIT"
    EXCHANGE = "EXCHANGE"
    REFUND = "REFUND"


class StockCountStatus(StrEnum):
    DRAFT = "DRAFT"
    IN_PROGRESS = "IN_PROGRESS"
    PENDING_REVIEW = "PENDING_REVIEW"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class StockCountType(StrEnum):
    FULL = "FULL"
    CATEGORY = "CATEGORY"
    SPOT = "SPOT"
    CYCLE = "CYCLE"


class UrgencyLevel(StrEnum):
    CRITICAL = "CRITICAL"
    WARNING = "WARNING"
    NORMAL = "NORMAL"

    @property
    def rank(self) -> int:
        return {"CRITICAL": 3, "WARNING": 2, "NORMAL": 1}[self.value]


# ---------------------------------------------------------------------------
# 状态迁移表：key = 当前状态，value = 允许到达的状态集合
# 不在表内的迁移一律视为非法（见 services.transitions.ensure_transition）
# ---------------------------------------------------------------------------

TRANSFER_TRANSITIONS: Mapping[TransferStatus, frozenset[TransferStatus]] = {
    TransferStatus.DRAFT: frozenset({TransferStatus.APPROVED, TransferStatus.CANCELLED}),
    TransferStatus.APPROVED: frozenset({TransferStatus.IN_TRANSIT, TransferStatus.CANCELLED}),
    TransferStatus.IN_TRANSIT: frozenset({TransferStatus.COMPLETED, TransferStatus.CANCELLED}),
    TransferStatus.COMPLETED: frozenset(),
    TransferStatus.CANCELLED: frozenset(),
}

PURCHASE_ORDER_TRANSITIONS: Mapping[PurchaseOrderStatus, frozenset[PurchaseOrderStatus]] = {
    PurchaseOrderStatus.PENDING: frozenset(
        {PurchaseOrderStatus.APPROVED, PurchaseOrderStatus.CANCELLED}
    ),
    PurchaseOrderStatus.APPROVED: frozenset(
        {
            PurchaseOrderStatus.PARTIAL,
            PurchaseOrderStatus.COMPLETED,
            PurchaseOrderStatus.CANCELLED,
        }
    ),
    PurchaseOrderStatus.PARTIAL: frozenset(
        {
            PurchaseOrderStatus.PARTIAL,
            PurchaseOrderStatus.COMPLETED,
            PurchaseOrderStatus.CLOSED,
            PurchaseOrderStatus.CANCELLED,
        }
    ),
    PurchaseOrderStatus.COMPLETED: frozenset({PurchaseOrderStatus.CLOSED}),
    PurchaseOrderStatus.CLOSED: frozenset(),
    PurchaseOrderStatus.CANCELLED: frozenset(),
}

PURCHASE_RETURN_TRANSITIONS: Mapping[PurchaseReturnStatus, frozenset[PurchaseReturnStatus]] = {
    PurchaseReturnStatus.PENDING: frozenset(
        {PurchaseReturnStatus.APPROVED, PurchaseReturnStatus.CANCELLED}
    ),
    PurchaseReturnStatus.APPROVED: frozenset(
        {PurchaseReturnStatus.COMPLETED, PurchaseReturnStatus.CANCELLED}
    ),
    PurchaseReturnStatus.COMPLETED: frozenset(),
    PurchaseReturnStatus.CANCELLED: frozenset(),
}

STOCK_COUNT_TRANSITIONS: Mapping[StockCountStatus, frozenset[StockCountStatus]] = {
    StockCountStatus.DRAFT: frozenset({StockCountStatus.IN_PROGRESS, StockCountStatus.CANCELLED}),
    StockCountStatus.IN_PROGRESS: frozenset(
        {
            StockCountStatus.PENDING_REVIEW,
            StockCountStatus.COMPLETED,
            StockCountStatus.CANCELLED,
        }
    ),
    StockCountStatus.PENDING_REVIEW: frozenset(
        {StockCountStatus.COMPLETED, StockCountStatus.CANCELLED}
    ),
    StockCountStatus.COMPLETED: frozenset(),
    StockCountStatus.CANCELLED: frozenset(),
}


__all__ = [
    "MovementType",
    "DocumentType",
    "AdjustmentReason",
    "AdjustmentStatus",
    "TransferStatus",
    "PurchaseOrderStatus",
    "PurchaseReturnStatus",
    "ReturnReason",
    "HandlingMethod",
    "StockCountStatus",
    "StockCountType",
    "UrgencyLevel",
    "TRANSFER_TRANSITIONS",
    "PURCHASE_ORDER_TRANSITIONS",
    "PURCHASE_RETURN_TRANSITIONS",
    "STOCK_COUNT_TRANSITIONS",
]
