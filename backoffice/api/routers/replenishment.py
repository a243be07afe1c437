# backoffice/api/routers/replenishment.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from backoffice.api.deps import Services, get_actor, get_services
from backoffice.schemas.replenishment import GeneratedOrderOut, GenerateOrdersIn, SuggestionOut, SummaryOut

router = APIRouter(prefix="/replenishment", tags=["replenishment"])


@router.get("/suggestions", response_model=List[SuggestionOut])
async def list_suggestions(
    warehouse_id: Optional[int] = Query(None),
    supplier_id: Optional[int] = Query(None),
    svc: Services = Depends(get_services),
) -> List[SuggestionOut]:
    rows = await svc.replenishment.suggest(warehouse_id=warehouse_id, supplier_id=supplier_id)
    return [SuggestionOut.model_validate(r) for r in rows]


@router.get("/summary", response_model=SummaryOut)
async def get_summary(
    warehouse_id: Optional[int] = Query(None),
    svc: Services = Depends(get_services),
) -> SummaryOut:
    return SummaryOut.model_validate(await svc.replenishment.summarize(warehouse_id=warehouse_id))


@router.post("/purchase-orders", response_model=List[GeneratedOrderOut], status_code=201)
async def generate_purchase_orders(
    body: GenerateOrdersIn,
    svc: Services = Depends(get_services),
    actor: str = Depends(get_actor),
) -> List[GeneratedOrderOut]:
    pos = await svc.replenishment.generate_purchase_orders(
        product_ids=body.product_ids,
        actor=actor,
        warehouse_id=body.warehouse_id,
        group_by_supplier=body.group_by_supplier,
        expected_date=body.expected_date,
        notes=body.notes,
    )
    return [GeneratedOrderOut.model_validate(p) for p in pos]
