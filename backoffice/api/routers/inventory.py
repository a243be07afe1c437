# backoffice/api/routers/inventory.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from backoffice.api.deps import Services, get_actor, get_services
from backoffice.schemas.inventory import (
    AdjustmentCreateIn,
    AdjustmentOut,
    LedgerVerifyOut,
    MovementOut,
    OnHandOut,
)
from backoffice.services.adjustment_service import AdjustmentLine
from backoffice.services.uow import UnitOfWork

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.get("/{warehouse_id}/{product_id}", response_model=OnHandOut)
async def get_on_hand(
    warehouse_id: int,
    product_id: int,
    svc: Services = Depends(get_services),
) -> OnHandOut:
    async with UnitOfWork(svc.session_factory) as uow:
        qty = await svc.ledger.get_on_hand(uow.session, product_id, warehouse_id)
    return OnHandOut(product_id=product_id, warehouse_id=warehouse_id, quantity=qty)


@router.get("/{warehouse_id}/{product_id}/movements", response_model=List[MovementOut])
async def list_movements(
    warehouse_id: int,
    product_id: int,
    svc: Services = Depends(get_services),
) -> List[MovementOut]:
    async with UnitOfWork(svc.session_factory) as uow:
        rows = await svc.ledger.list_movements(uow.session, product_id, warehouse_id)
    return [MovementOut.model_validate(r) for r in rows]


@router.get("/{warehouse_id}/{product_id}/verify", response_model=LedgerVerifyOut)
async def verify_key(
    warehouse_id: int,
    product_id: int,
    svc: Services = Depends(get_services),
) -> LedgerVerifyOut:
    async with UnitOfWork(svc.session_factory) as uow:
        r = await svc.ledger.verify_key(uow.session, product_id, warehouse_id)
    return LedgerVerifyOut(
        product_id=r.product_id,
        warehouse_id=r.warehouse_id,
        stored=r.stored,
        replayed=r.replayed,
        drift=r.drift,
        movements=r.movements,
        chain_ok=r.chain_ok,
        ok=r.ok,
    )


@router.post("/adjustments", response_model=List[AdjustmentOut], status_code=201)
async def create_adjustment(
    body: AdjustmentCreateIn,
    svc: Services = Depends(get_services),
    actor: str = Depends(get_actor),
) -> List[AdjustmentOut]:
    docs = await svc.adjustments.create_adjustment(
        warehouse_id=body.warehouse_id,
        reason=body.reason,
        lines=[AdjustmentLine(product_id=ln.product_id, delta=ln.delta, notes=ln.notes) for ln in body.lines],
        actor=actor,
        notes=body.notes,
    )
    return [AdjustmentOut.model_validate(d) for d in docs]
