# backoffice/schemas/transfer.py
from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from backoffice.models.enums import TransferStatus


class TransferLineIn(BaseModel):
    product_id: int
    qty: int = Field(..., gt=0)
    notes: Optional[str] = None


class TransferCreateIn(BaseModel):
    from_warehouse_id: int
    to_warehouse_id: int
    lines: List[TransferLineIn] = Field(..., min_length=1)
    request_date: Optional[date] = None
    notes: Optional[str] = None


class TransferCancelIn(BaseModel):
    reason: Optional[str] = None


class TransferLineOut(BaseModel):
    id: int
    product_id: int
    requested_qty: int
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class TransferOut(BaseModel):
    id: int
    transfer_no: str
    from_warehouse_id: int
    to_warehouse_id: int
    request_date: date
    status: TransferStatus
    notes: Optional[str] = None
    requested_by: str
    approved_by: Optional[str] = None
    shipped_by: Optional[str] = None
    received_by: Optional[str] = None
    shipped_at: Optional[datetime] = None
    received_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    lines: List[TransferLineOut]

    model_config = ConfigDict(from_attributes=True)
