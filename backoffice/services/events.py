# backoffice/services/events.py
"""
库存领域事件 + 轻量事件总线。

- 事件由 UnitOfWork 在事务内收集，提交成功后才发布
- 订阅者失败只记日志，不影响已提交的业务数据
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List

logger = logging.getLogger("backoffice.events")

LOW_STOCK_DETECTED = "LowStockDetected"
TRANSFER_COMPLETED = "TransferCompleted"
PURCHASE_RECEIVED = "PurchaseReceived"
ADJUSTMENT_POSTED = "AdjustmentPosted"


@dataclass(frozen=True)
class InventoryEvent:
    name: str
    ref: str
    payload: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


EventHandler = Callable[[InventoryEvent], Awaitable[None]]


class InventoryEventBus:
    def __init__(self, handlers: Iterable[EventHandler] = ()) -> None:
        self._handlers: List[EventHandler] = list(handlers)

    def subscribe(self, handler: EventHandler) -> None:
        self._handlers.append(handler)

    async def publish(self, events: Iterable[InventoryEvent]) -> None:
        for ev in events:
            for handler in self._handlers:
                try:
                    await handler(ev)
                except Exception:
                    logger.exception("event handler %r failed for %s ref=%s", handler, ev.name, ev.ref)


async def log_event(event: InventoryEvent) -> None:
    logger.info("event %s ref=%s payload=%s", event.name, event.ref, event.payload)


def jsonable(value: Any) -> Any:
    """payload / context 转成可 JSON 序列化的结构（Decimal、日期等转字符串）。"""
    if isinstance(value, dict):
        return {str(k): jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [jsonable(v) for v in value]
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)
