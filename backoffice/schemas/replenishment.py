# backoffice/schemas/replenishment.py
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from backoffice.models.enums import UrgencyLevel


class SuggestionOut(BaseModel):
    product_id: int
    sku: str
    product_name: str
    warehouse_id: int
    warehouse_name: str
    current_stock: int
    safety_stock: int
    shortage: int
    suggested_qty: int
    urgency: UrgencyLevel
    preferred_supplier_id: Optional[int] = None
    preferred_supplier_name: Optional[str] = None
    reference_price: Optional[Decimal] = None
    estimated_amount: Optional[Decimal] = None
    last_purchase_date: Optional[date] = None

    model_config = ConfigDict(from_attributes=True)


class SummaryOut(BaseModel):
    critical: int
    warning: int
    normal: int
    total: int
    estimated_total: Decimal
    suppliers: int

    model_config = ConfigDict(from_attributes=True)


class GenerateOrdersIn(BaseModel):
    product_ids: List[int] = Field(..., min_length=1)
    warehouse_id: Optional[int] = None
    group_by_supplier: bool = True
    expected_date: Optional[date] = None
    notes: Optional[str] = None


class GeneratedOrderOut(BaseModel):
    id: int
    po_no: str
    supplier_id: int
    warehouse_id: int
    total_amount: Decimal

    model_config = ConfigDict(from_attributes=True)
