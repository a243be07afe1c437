# backoffice/schemas/stock_count.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from backoffice.models.enums import AdjustmentReason, StockCountStatus, StockCountType


class StockCountCreateIn(BaseModel):
    warehouse_id: int
    count_type: StockCountType = StockCountType.FULL
    scope: Optional[str] = None
    product_ids: Optional[List[int]] = Field(None, description="为空时盘点该仓全部库存记录")
    notes: Optional[str] = None


class RecordCountIn(BaseModel):
    counted_qty: int = Field(..., ge=0)
    reason: Optional[AdjustmentReason] = None
    notes: Optional[str] = None


class StockCountItemOut(BaseModel):
    id: int
    product_id: int
    system_qty: int
    counted_qty: Optional[int] = None
    variance_qty: int
    unit_cost: Decimal
    variance_amount: Decimal
    reason: Optional[AdjustmentReason] = None
    notes: Optional[str] = None
    counted_by: Optional[str] = None
    counted_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class StockCountOut(BaseModel):
    id: int
    count_no: str
    warehouse_id: int
    count_date: date
    count_type: StockCountType
    scope: Optional[str] = None
    status: StockCountStatus
    total_items: int
    counted_items: int
    variance_items: int
    variance_amount: Decimal
    created_by: str
    completed_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    items: List[StockCountItemOut]

    model_config = ConfigDict(from_attributes=True)
