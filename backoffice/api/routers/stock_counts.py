# backoffice/api/routers/stock_counts.py
from __future__ import annotations

from fastapi import APIRouter, Depends

from backoffice.api.deps import Services, get_actor, get_services
from backoffice.schemas.stock_count import RecordCountIn, StockCountCreateIn, StockCountItemOut, StockCountOut

router = APIRouter(prefix="/stock-counts", tags=["stock-counts"])


@router.post("", response_model=StockCountOut, status_code=201)
async def create_count(
    body: StockCountCreateIn,
    svc: Services = Depends(get_services),
    actor: str = Depends(get_actor),
) -> StockCountOut:
    c = await svc.stock_counts.create(
        warehouse_id=body.warehouse_id,
        actor=actor,
        count_type=body.count_type,
        scope=body.scope,
        product_ids=body.product_ids,
        notes=body.notes,
    )
    return StockCountOut.model_validate(c)


@router.get("/{count_id}", response_model=StockCountOut)
async def get_count(count_id: int, svc: Services = Depends(get_services)) -> StockCountOut:
    return StockCountOut.model_validate(await svc.stock_counts.get(count_id))


@router.post("/{count_id}/start", response_model=StockCountOut)
async def start_count(
    count_id: int,
    svc: Services = Depends(get_services),
    actor: str = Depends(get_actor),
) -> StockCountOut:
    return StockCountOut.model_validate(await svc.stock_counts.start(count_id, actor=actor))


@router.put("/{count_id}/items/{item_id}", response_model=StockCountItemOut)
async def record_count(
    count_id: int,
    item_id: int,
    body: RecordCountIn,
    svc: Services = Depends(get_services),
    actor: str = Depends(get_actor),
) -> StockCountItemOut:
    item = await svc.stock_counts.record_count(
        count_id,
        item_id,
        counted_qty=body.counted_qty,
        actor=actor,
        reason=body.reason,
        notes=body.notes,
    )
    return StockCountItemOut.model_validate(item)


@router.post("/{count_id}/submit", response_model=StockCountOut)
async def submit_count(
    count_id: int,
    svc: Services = Depends(get_services),
    actor: str = Depends(get_actor),
) -> StockCountOut:
    return StockCountOut.model_validate(await svc.stock_counts.submit_for_review(count_id, actor=actor))


@router.post("/{count_id}/complete", response_model=StockCountOut)
async def complete_count(
    count_id: int,
    svc: Services = Depends(get_services),
    actor: str = Depends(get_actor),
) -> StockCountOut:
    return StockCountOut.model_validate(await svc.stock_counts.complete(count_id, actor=actor))


@router.post("/{count_id}/cancel", response_model=StockCountOut)
async def cancel_count(
    count_id: int,
    svc: Services = Depends(get_services),
    actor: str = Depends(get_actor),
) -> StockCountOut:
    return StockCountOut.model_validate(await svc.stock_counts.cancel(count_id, actor=actor))
