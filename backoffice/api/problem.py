# backoffice/api/problem.py
"""
统一错误体（Problem JSON）：

    {"error_code": "insufficient_stock", "message": "...", "http_status": 409,
     "context": {"product_id": 1, "warehouse_id": 1, "requested": 20, "available": 5, ...},
     "trace_id": "t_..."}

error_code 取值：
- 领域异常：InventoryError.code（not_found / invalid_state_transition / insufficient_stock /
  invalid_transfer / incomplete_count / quantity_exceeds_pending / duplicate_document_number /
  invalid_document / transaction_failed）
- 请求体校验失败：request_validation_error，逐字段原因放在 details
- 其它：http_error / internal_error
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, TypedDict

from backoffice.services.errors import InventoryError


class ProblemDetail(TypedDict, total=False):
    type: str  # pydantic 错误类型：missing / greater_than / enum ...
    path: str  # body.lines.0.qty
    reason: str


@dataclass(frozen=True)
class Problem:
    error_code: str
    message: str
    http_status: int
    context: Optional[Dict[str, Any]] = None
    details: Optional[List[ProblemDetail]] = None
    trace_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "error_code": self.error_code,
            "message": self.message,
            "http_status": self.http_status,
        }
        if self.context:
            out["context"] = self.context
        if self.details:
            out["details"] = self.details
        if self.trace_id:
            out["trace_id"] = self.trace_id
        return out


def make_problem(
    *,
    status_code: int,
    error_code: str,
    message: str,
    context: Optional[Dict[str, Any]] = None,
    details: Optional[Sequence[ProblemDetail]] = None,
    trace_id: Optional[str] = None,
) -> Dict[str, Any]:
    return Problem(
        error_code=str(error_code),
        message=str(message),
        http_status=int(status_code),
        context=context,
        details=list(details) if details else None,
        trace_id=trace_id,
    ).to_dict()


def problem_from_error(
    exc: InventoryError, *, request_context: Dict[str, Any], trace_id: str
) -> Dict[str, Any]:
    """领域异常 → Problem；异常自带的 context 覆盖在请求上下文（path/method）之上。"""
    return make_problem(
        status_code=exc.http_status,
        error_code=exc.code,
        message=exc.message,
        context={**request_context, **exc.context},
        trace_id=trace_id,
    )
