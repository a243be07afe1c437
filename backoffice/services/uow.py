# backoffice/services/uow.py
"""
Unit of Work（UoW）：统一管理 AsyncSession 的生命周期与事务边界。

    async with UnitOfWork(session_factory, bus=bus) as uow:
        await ledger.mutate(uow.session, ...)
        uow.add_event(InventoryEvent(...))

- 无异常 → commit；有异常 → rollback
- SQLAlchemy 异常（含 commit 阶段）统一包装为 TransactionFailed，领域异常原样抛出
- 事务内收集的事件只在 commit 成功后发布；发布失败只记日志
- 只有 UoW 自己创建的 session 才负责 close
"""
from __future__ import annotations

import logging
from typing import Callable, List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.services.errors import InventoryError, TransactionFailed
from backoffice.services.events import InventoryEvent, InventoryEventBus

logger = logging.getLogger("backoffice.uow")

AsyncSessionFactory = Callable[[], AsyncSession]
SessionOrFactory = Union[AsyncSession, AsyncSessionFactory]


class UnitOfWork:
    def __init__(
        self,
        session_or_factory: SessionOrFactory,
        *,
        bus: Optional[InventoryEventBus] = None,
    ) -> None:
        self._session_or_factory = session_or_factory
        self._bus = bus
        self.session: Optional[AsyncSession] = None
        self._owns_session = False
        self._events: List[InventoryEvent] = []

    def add_event(self, event: InventoryEvent) -> None:
        self._events.append(event)

    @property
    def events(self) -> List[InventoryEvent]:
        return list(self._events)

    async def __aenter__(self) -> "UnitOfWork":
        if isinstance(self._session_or_factory, AsyncSession):
            self.session = self._session_or_factory
            self._owns_session = False
        else:
            factory = self._session_or_factory
            if not callable(factory):
                raise TypeError("UnitOfWork 期望传入 AsyncSession 或 async_session 工厂。")
            self.session = factory()
            self._owns_session = True

        if not isinstance(self.session, AsyncSession):
            raise TypeError("使用 async with UnitOfWork(...) 时，需要 AsyncSession。")
        self._events = []
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if self.session is None:
            return False

        committed = False
        try:
            if exc_type is not None:
                await self.session.rollback()
            else:
                try:
                    await self.session.commit()
                    committed = True
                except SQLAlchemyError as e:
                    await self.session.rollback()
                    logger.warning("commit failed: %s", e)
                    raise TransactionFailed(f"事务提交失败：{e.__class__.__name__}") from e
        finally:
            if self._owns_session:
                try:
                    await self.session.close()
                finally:
                    self.session = None

        if exc_type is not None:
            self._events = []
            if isinstance(exc, SQLAlchemyError) and not isinstance(exc, InventoryError):
                logger.warning("transaction rolled back on storage error: %s", exc)
                raise TransactionFailed(f"存储异常：{exc.__class__.__name__}") from exc
            return False

        if committed and self._events:
            await self._publish()
        return False

    async def _publish(self) -> None:
        events, self._events = self._events, []
        if self._bus is None:
            return
        try:
            await self._bus.publish(events)
        except Exception:
            logger.exception("publish %d events failed after commit", len(events))
