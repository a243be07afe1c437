# tests/unit/test_unit_of_work.py
import pytest
from sqlalchemy import select, text
from sqlalchemy.exc import OperationalError

from backoffice.models.audit_event import AuditEvent
from backoffice.models.reference import Warehouse
from backoffice.services.errors import NotFound, TransactionFailed
from backoffice.services.events import InventoryEvent, InventoryEventBus
from backoffice.services.uow import UnitOfWork


class _Recorder:
    def __init__(self):
        self.seen = []

    async def __call__(self, event):
        self.seen.append(event)


@pytest.mark.asyncio
async def test_commit_on_success_and_publish_after(session_factory, session):
    rec = _Recorder()
    bus = InventoryEventBus([rec])

    async with UnitOfWork(session_factory, bus=bus) as uow:
        uow.session.add(Warehouse(id=10, name="临时仓", is_default=False))
        uow.add_event(InventoryEvent(name="Probe", ref="WH-10"))
        # 提交前订阅者看不到事件
        assert rec.seen == []

    assert [e.ref for e in rec.seen] == ["WH-10"]
    assert (await session.get(Warehouse, 10)) is not None


@pytest.mark.asyncio
async def test_rollback_drops_writes_and_events(session_factory, session):
    rec = _Recorder()
    bus = InventoryEventBus([rec])

    with pytest.raises(NotFound):
        async with UnitOfWork(session_factory, bus=bus) as uow:
            uow.session.add(Warehouse(id=11, name="回滚仓", is_default=False))
            await uow.session.flush()
            uow.add_event(InventoryEvent(name="Probe", ref="WH-11"))
            raise NotFound("Warehouse", 999)

    assert rec.seen == []
    assert (await session.get(Warehouse, 11)) is None


@pytest.mark.asyncio
async def test_storage_error_becomes_transaction_failed(session_factory):
    with pytest.raises(TransactionFailed) as ei:
        async with UnitOfWork(session_factory) as uow:
            await uow.session.execute(text("SELECT * FROM no_such_table"))
    assert isinstance(ei.value.__cause__, OperationalError)


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_break_commit(session_factory, session):
    rec = _Recorder()

    async def _boom(event):
        raise RuntimeError("sink down")

    bus = InventoryEventBus([_boom])
    bus.subscribe(rec)
    async with UnitOfWork(session_factory, bus=bus) as uow:
        uow.session.add(Warehouse(id=12, name="事件仓", is_default=False))
        uow.add_event(InventoryEvent(name="Probe", ref="WH-12"))

    # 后续订阅者照常收到，数据已提交
    assert [e.ref for e in rec.seen] == ["WH-12"]
    assert (await session.get(Warehouse, 12)) is not None


@pytest.mark.asyncio
async def test_external_session_is_not_closed(session_factory):
    async with session_factory() as s:
        async with UnitOfWork(s) as uow:
            assert uow.session is s
        # 外部传入的 session 仍可继续使用
        wh = (await s.execute(select(Warehouse).where(Warehouse.id == 1))).scalar_one()
        assert wh.is_default is True


@pytest.mark.asyncio
async def test_audit_writer_records_published_events(services, session):
    async with UnitOfWork(services.session_factory, bus=services.bus) as uow:
        uow.add_event(InventoryEvent(name="Probe", ref="REF-1", payload={"qty": 3}))

    rows = (await session.execute(select(AuditEvent).where(AuditEvent.ref == "REF-1"))).scalars().all()
    assert len(rows) == 1
    assert rows[0].category == "Probe"
    assert rows[0].meta["qty"] == 3
    assert rows[0].meta["event"] == "Probe"
