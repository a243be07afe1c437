# backoffice/services/audit_writer.py
from __future__ import annotations

import logging
from typing import Any, Dict

from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backoffice.models.audit_event import AuditEvent
from backoffice.services.events import InventoryEvent, jsonable

logger = logging.getLogger("backoffice.audit")


class AuditEventWriter:
    """
    事件总线订阅者：每个领域事件落一行 audit_events。

    - category = 事件名
    - ref      = 单号 / 业务引用
    - meta     = 事件 payload（Decimal / 日期转为字符串）

    使用独立会话写入，业务事务已提交，这里失败只记日志。
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def __call__(self, event: InventoryEvent) -> None:
        meta: Dict[str, Any] = jsonable(dict(event.payload))
        meta.setdefault("event", event.name)
        meta.setdefault("occurred_at", event.occurred_at.isoformat())
        try:
            async with self._session_factory() as session:
                await session.execute(
                    insert(AuditEvent).values(category=event.name, ref=event.ref, meta=meta)
                )
                await session.commit()
        except Exception as e:
            logger.debug("audit_events insert failed: %s", e)
            logger.info("[audit-fallback] %s | %s | %s", event.name, event.ref, meta)
