# backoffice/api/deps.py
from __future__ import annotations

from dataclasses import dataclass

from fastapi import Header, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backoffice.services.adjustment_service import AdjustmentService
from backoffice.services.audit_writer import AuditEventWriter
from backoffice.services.events import InventoryEventBus, log_event
from backoffice.services.inventory_ledger import InventoryLedger
from backoffice.services.purchase_order_service import PurchaseOrderService
from backoffice.services.purchase_receipt_service import PurchaseReceiptService
from backoffice.services.purchase_return_service import PurchaseReturnService
from backoffice.services.replenishment_service import ReplenishmentService
from backoffice.services.stock_count_service import StockCountService
from backoffice.services.transfer_service import TransferService


@dataclass
class Services:
    session_factory: async_sessionmaker[AsyncSession]
    bus: InventoryEventBus
    ledger: InventoryLedger
    adjustments: AdjustmentService
    transfers: TransferService
    purchase_orders: PurchaseOrderService
    receipts: PurchaseReceiptService
    returns: PurchaseReturnService
    stock_counts: StockCountService
    replenishment: ReplenishmentService


def build_services(session_factory: async_sessionmaker[AsyncSession]) -> Services:
    """装配服务：同一个 ledger / 事件总线在各工作流之间共享。"""
    bus = InventoryEventBus([log_event, AuditEventWriter(session_factory)])
    ledger = InventoryLedger()
    adjustments = AdjustmentService(session_factory, bus=bus, ledger=ledger)
    return Services(
        session_factory=session_factory,
        bus=bus,
        ledger=ledger,
        adjustments=adjustments,
        transfers=TransferService(session_factory, bus=bus, ledger=ledger),
        purchase_orders=PurchaseOrderService(session_factory, bus=bus),
        receipts=PurchaseReceiptService(session_factory, bus=bus, ledger=ledger),
        returns=PurchaseReturnService(session_factory, bus=bus, ledger=ledger),
        stock_counts=StockCountService(session_factory, bus=bus, adjustments=adjustments),
        replenishment=ReplenishmentService(session_factory, bus=bus),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_actor(x_actor: str = Header(default="system", alias="X-Actor")) -> str:
    return x_actor.strip() or "system"
