# backoffice/schemas/inventory.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from backoffice.models.enums import AdjustmentReason, MovementType


class OnHandOut(BaseModel):
    product_id: int
    warehouse_id: int
    quantity: int


class MovementOut(BaseModel):
    id: int
    product_id: int
    warehouse_id: int
    movement_type: MovementType
    quantity: int = Field(..., description="带符号变动量")
    before_qty: int
    after_qty: int
    reference_type: str
    reference_no: str
    unit_cost: Optional[Decimal] = None
    notes: Optional[str] = None
    actor: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LedgerVerifyOut(BaseModel):
    product_id: int
    warehouse_id: int
    stored: int
    replayed: int
    drift: int
    movements: int
    chain_ok: bool
    ok: bool


class AdjustmentLineIn(BaseModel):
    product_id: int
    delta: int = Field(..., description="正数盘盈 / 负数盘亏，不能为 0")
    notes: Optional[str] = None


class AdjustmentCreateIn(BaseModel):
    warehouse_id: int
    reason: AdjustmentReason
    lines: List[AdjustmentLineIn] = Field(..., min_length=1)
    notes: Optional[str] = None


class AdjustmentOut(BaseModel):
    id: int
    adjustment_no: str
    warehouse_id: int
    product_id: int
    adjustment_date: date
    before_qty: int
    after_qty: int
    delta: int
    reason: AdjustmentReason
    notes: Optional[str] = None
    source_ref: Optional[str] = None
    status: str
    created_by: str

    model_config = ConfigDict(from_attributes=True)
