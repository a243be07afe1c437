# backoffice/api/routers/transfers.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from backoffice.api.deps import Services, get_actor, get_services
from backoffice.schemas.transfer import TransferCancelIn, TransferCreateIn, TransferOut
from backoffice.services.transfer_service import TransferLineInput

router = APIRouter(prefix="/transfers", tags=["transfers"])


@router.post("", response_model=TransferOut, status_code=201)
async def create_transfer(
    body: TransferCreateIn,
    svc: Services = Depends(get_services),
    actor: str = Depends(get_actor),
) -> TransferOut:
    t = await svc.transfers.create(
        from_warehouse_id=body.from_warehouse_id,
        to_warehouse_id=body.to_warehouse_id,
        lines=[TransferLineInput(product_id=ln.product_id, qty=ln.qty, notes=ln.notes) for ln in body.lines],
        actor=actor,
        notes=body.notes,
        request_date=body.request_date,
    )
    return TransferOut.model_validate(t)


@router.get("/{transfer_id}", response_model=TransferOut)
async def get_transfer(transfer_id: int, svc: Services = Depends(get_services)) -> TransferOut:
    return TransferOut.model_validate(await svc.transfers.get(transfer_id))


@router.post("/{transfer_id}/approve", response_model=TransferOut)
async def approve_transfer(
    transfer_id: int,
    svc: Services = Depends(get_services),
    actor: str = Depends(get_actor),
) -> TransferOut:
    return TransferOut.model_validate(await svc.transfers.approve(transfer_id, actor=actor))


@router.post("/{transfer_id}/ship", response_model=TransferOut)
async def ship_transfer(
    transfer_id: int,
    svc: Services = Depends(get_services),
    actor: str = Depends(get_actor),
) -> TransferOut:
    return TransferOut.model_validate(await svc.transfers.ship(transfer_id, actor=actor))


@router.post("/{transfer_id}/receive", response_model=TransferOut)
async def receive_transfer(
    transfer_id: int,
    svc: Services = Depends(get_services),
    actor: str = Depends(get_actor),
) -> TransferOut:
    return TransferOut.model_validate(await svc.transfers.receive(transfer_id, actor=actor))


@router.post("/{transfer_id}/cancel", response_model=TransferOut)
async def cancel_transfer(
    transfer_id: int,
    body: Optional[TransferCancelIn] = None,
    svc: Services = Depends(get_services),
    actor: str = Depends(get_actor),
) -> TransferOut:
    t = await svc.transfers.cancel(transfer_id, actor=actor, reason=body.reason if body else None)
    return TransferOut.model_validate(t)
