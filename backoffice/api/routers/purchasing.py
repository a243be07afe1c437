# backoffice/api/routers/purchasing.py
from __future__ import annotations

from fastapi import APIRouter, Depends

from backoffice.api.deps import Services, get_actor, get_services
from backoffice.schemas.purchasing import (
    PurchaseOrderCreateIn,
    PurchaseOrderOut,
    ReceiptCreateIn,
    ReceiptOut,
    ReturnCreateIn,
    ReturnOut,
)
from backoffice.services.purchase_order_service import PurchaseLineInput
from backoffice.services.purchase_receipt_service import ReceiptLineInput
from backoffice.services.purchase_return_service import ReturnLineInput

router = APIRouter(tags=["purchasing"])

# ----- 采购单 -----


@router.post("/purchase-orders", response_model=PurchaseOrderOut, status_code=201)
async def create_purchase_order(
    body: PurchaseOrderCreateIn,
    svc: Services = Depends(get_services),
    actor: str = Depends(get_actor),
) -> PurchaseOrderOut:
    po = await svc.purchase_orders.create(
        supplier_id=body.supplier_id,
        warehouse_id=body.warehouse_id,
        lines=[
            PurchaseLineInput(product_id=ln.product_id, qty=ln.qty, unit_price=ln.unit_price, notes=ln.notes)
            for ln in body.lines
        ],
        actor=actor,
        expected_date=body.expected_date,
        notes=body.notes,
    )
    return PurchaseOrderOut.model_validate(po)


@router.get("/purchase-orders/{po_id}", response_model=PurchaseOrderOut)
async def get_purchase_order(po_id: int, svc: Services = Depends(get_services)) -> PurchaseOrderOut:
    return PurchaseOrderOut.model_validate(await svc.purchase_orders.get(po_id))


@router.post("/purchase-orders/{po_id}/approve", response_model=PurchaseOrderOut)
async def approve_purchase_order(
    po_id: int,
    svc: Services = Depends(get_services),
    actor: str = Depends(get_actor),
) -> PurchaseOrderOut:
    return PurchaseOrderOut.model_validate(await svc.purchase_orders.approve(po_id, actor=actor))


@router.post("/purchase-orders/{po_id}/cancel", response_model=PurchaseOrderOut)
async def cancel_purchase_order(
    po_id: int,
    svc: Services = Depends(get_services),
    actor: str = Depends(get_actor),
) -> PurchaseOrderOut:
    return PurchaseOrderOut.model_validate(await svc.purchase_orders.cancel(po_id, actor=actor))


@router.post("/purchase-orders/{po_id}/close", response_model=PurchaseOrderOut)
async def close_purchase_order(
    po_id: int,
    svc: Services = Depends(get_services),
    actor: str = Depends(get_actor),
) -> PurchaseOrderOut:
    return PurchaseOrderOut.model_validate(await svc.purchase_orders.close(po_id, actor=actor))


# ----- 验收单 -----


@router.post("/purchase-receipts", response_model=ReceiptOut, status_code=201)
async def create_receipt(
    body: ReceiptCreateIn,
    svc: Services = Depends(get_services),
    actor: str = Depends(get_actor),
) -> ReceiptOut:
    r = await svc.receipts.create_receipt(
        po_id=body.po_id,
        lines=[
            ReceiptLineInput(
                po_item_id=ln.po_item_id,
                arrived_qty=ln.arrived_qty,
                received_qty=ln.received_qty,
                rejected_qty=ln.rejected_qty,
                reason=ln.reason,
            )
            for ln in body.lines
        ],
        actor=actor,
        receipt_date=body.receipt_date,
        notes=body.notes,
    )
    return ReceiptOut.model_validate(r)


@router.get("/purchase-receipts/{receipt_id}", response_model=ReceiptOut)
async def get_receipt(receipt_id: int, svc: Services = Depends(get_services)) -> ReceiptOut:
    return ReceiptOut.model_validate(await svc.receipts.get(receipt_id))


# ----- 退货单 -----


@router.post("/purchase-returns", response_model=ReturnOut, status_code=201)
async def create_return(
    body: ReturnCreateIn,
    svc: Services = Depends(get_services),
    actor: str = Depends(get_actor),
) -> ReturnOut:
    doc = await svc.returns.create(
        supplier_id=body.supplier_id,
        warehouse_id=body.warehouse_id,
        reason=body.reason,
        handling=body.handling,
        lines=[
            ReturnLineInput(product_id=ln.product_id, qty=ln.qty, unit_price=ln.unit_price, notes=ln.notes)
            for ln in body.lines
        ],
        actor=actor,
        po_no=body.po_no,
        receipt_no=body.receipt_no,
        notes=body.notes,
    )
    return ReturnOut.model_validate(doc)


@router.get("/purchase-returns/{return_id}", response_model=ReturnOut)
async def get_return(return_id: int, svc: Services = Depends(get_services)) -> ReturnOut:
    return ReturnOut.model_validate(await svc.returns.get(return_id))


@router.post("/purchase-returns/{return_id}/approve", response_model=ReturnOut)
async def approve_return(
    return_id: int,
    svc: Services = Depends(get_services),
    actor: str = Depends(get_actor),
) -> ReturnOut:
    return ReturnOut.model_validate(await svc.returns.approve(return_id, actor=actor))


@router.post("/purchase-returns/{return_id}/complete", response_model=ReturnOut)
async def complete_return(
    return_id: int,
    svc: Services = Depends(get_services),
    actor: str = Depends(get_actor),
) -> ReturnOut:
    return ReturnOut.model_validate(await svc.returns.complete(return_id, actor=actor))


@router.post("/purchase-returns/{return_id}/cancel", response_model=ReturnOut)
async def cancel_return(
    return_id: int,
    svc: Services = Depends(get_services),
    actor: str = Depends(get_actor),
) -> ReturnOut:
    return ReturnOut.model_validate(await svc.returns.cancel(return_id, actor=actor))
