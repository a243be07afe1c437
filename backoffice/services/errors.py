# backoffice/services/errors.py
"""
库存核心的领域异常。

- 每个异常自带 code / http_status / context，API 层原样翻译为 Problem
- 服务层只抛这些异常；SQLAlchemy 异常由 UnitOfWork 统一包装为 TransactionFailed
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class InventoryError(Exception):
    code = "inventory_error"
    http_status = 400

    def __init__(self, message: str, *, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = dict(context or {})

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "context": self.context}


class NotFound(InventoryError):
    code = "not_found"
    http_status = 404

    def __init__(self, entity: str, id: Any) -> None:
        super().__init__(f"{entity} {id} 不存在", context={"entity": entity, "id": id})
        self.entity = entity
        self.id = id


class InvalidStateTransition(InventoryError):
    code = "invalid_state_transition"
    http_status = 409

    def __init__(self, entity: str, id: Any, from_status: str, to_status: str) -> None:
        super().__init__(
            f"{entity} {id} 不允许从 {from_status} 变更为 {to_status}",
            context={"entity": entity, "id": id, "from": str(from_status), "to": str(to_status)},
        )
        self.from_status = str(from_status)
        self.to_status = str(to_status)


class InsufficientStock(InventoryError):
    code = "insufficient_stock"
    http_status = 409

    def __init__(self, *, product_id: int, warehouse_id: int, requested: int, available: int) -> None:
        super().__init__(
            f"库存不足：product={product_id} warehouse={warehouse_id} "
            f"requested={requested} available={available}",
            context={
                "product_id": product_id,
                "warehouse_id": warehouse_id,
                "requested": requested,
                "available": available,
            },
        )
        self.product_id = product_id
        self.warehouse_id = warehouse_id
        self.requested = requested
        self.available = available


class InvalidTransfer(InventoryError):
    code = "invalid_transfer"
    http_status = 422


class IncompleteCount(InventoryError):
    code = "incomplete_count"
    http_status = 409

    def __init__(self, *, count_no: str, counted: int, total: int) -> None:
        super().__init__(
            f"盘点单 {count_no} 尚未盘完：{counted}/{total}",
            context={"count_no": count_no, "counted": counted, "total": total},
        )


class QuantityExceedsPending(InventoryError):
    code = "quantity_exceeds_pending"
    http_status = 409

    def __init__(self, *, po_item_id: int, requested: int, pending: int) -> None:
        super().__init__(
            f"采购行 {po_item_id} 验收数量 {requested} 超过待收 {pending}",
            context={"po_item_id": po_item_id, "requested": requested, "pending": pending},
        )


class DuplicateDocumentNumber(InventoryError):
    code = "duplicate_document_number"
    http_status = 409

    def __init__(self, *, document_type: str, number: str) -> None:
        super().__init__(
            f"单号重复：{number}",
            context={"document_type": str(document_type), "number": number},
        )


class InvalidDocument(InventoryError):
    code = "invalid_document"
    http_status = 422


class TransactionFailed(InventoryError):
    code = "transaction_failed"
    http_status = 500


__all__ = [
    "InventoryError",
    "NotFound",
    "InvalidStateTransition",
    "InsufficientStock",
    "InvalidTransfer",
    "IncompleteCount",
    "QuantityExceedsPending",
    "DuplicateDocumentNumber",
    "InvalidDocument",
    "TransactionFailed",
]
