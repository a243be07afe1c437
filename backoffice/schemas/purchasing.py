# backoffice/schemas/purchasing.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from backoffice.models.enums import HandlingMethod, PurchaseOrderStatus, PurchaseReturnStatus, ReturnReason

# ----- 采购单 -----


class PurchaseOrderLineIn(BaseModel):
    product_id: int
    qty: int = Field(..., gt=0, description="订购数量")
    unit_price: Decimal = Field(..., ge=0)
    notes: Optional[str] = None


class PurchaseOrderCreateIn(BaseModel):
    supplier_id: int
    warehouse_id: int
    lines: List[PurchaseOrderLineIn] = Field(..., min_length=1)
    expected_date: Optional[date] = None
    notes: Optional[str] = None


class PurchaseOrderLineOut(BaseModel):
    id: int
    product_id: int
    ordered_qty: int
    received_qty: int
    pending_qty: int
    unit_price: Decimal
    tax_amount: Decimal
    subtotal: Decimal
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class PurchaseOrderOut(BaseModel):
    """采购单详情（头 + 行）。"""

    id: int
    po_no: str
    supplier_id: int
    warehouse_id: int
    order_date: date
    expected_date: Optional[date] = None
    status: PurchaseOrderStatus
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    notes: Optional[str] = None
    buyer: str
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    lines: List[PurchaseOrderLineOut]

    model_config = ConfigDict(from_attributes=True)


# ----- 验收单 -----


class ReceiptLineIn(BaseModel):
    po_item_id: int
    arrived_qty: int = Field(..., ge=0)
    received_qty: int = Field(..., ge=0)
    rejected_qty: int = Field(0, ge=0)
    reason: Optional[str] = None


class ReceiptCreateIn(BaseModel):
    po_id: int
    lines: List[ReceiptLineIn] = Field(..., min_length=1)
    receipt_date: Optional[date] = None
    notes: Optional[str] = None


class ReceiptLineOut(BaseModel):
    id: int
    po_item_id: int
    product_id: int
    ordered_qty: int
    previously_received_qty: int
    pending_qty: int
    arrived_qty: int
    received_qty: int
    rejected_qty: int
    reject_reason: Optional[str] = None
    unit_price: Decimal

    model_config = ConfigDict(from_attributes=True)


class ReceiptOut(BaseModel):
    id: int
    receipt_no: str
    po_id: int
    po_no: str
    warehouse_id: int
    receipt_date: date
    total_arrived: int
    total_received: int
    total_rejected: int
    total_amount: Decimal
    received_by: str
    lines: List[ReceiptLineOut]

    model_config = ConfigDict(from_attributes=True)


# ----- 退货单 -----


class ReturnLineIn(BaseModel):
    product_id: int
    qty: int = Field(..., gt=0)
    unit_price: Optional[Decimal] = Field(None, ge=0, description="为空时取商品成本价")
    notes: Optional[str] = None


class ReturnCreateIn(BaseModel):
    supplier_id: int
    warehouse_id: int
    reason: ReturnReason
    handling: HandlingMethod = HandlingMethod.CREDIT
    lines: List[ReturnLineIn] = Field(..., min_length=1)
    po_no: Optional[str] = None
    receipt_no: Optional[str] = None
    notes: Optional[str] = None


class ReturnLineOut(BaseModel):
    id: int
    product_id: int
    qty: int
    unit_price: Decimal
    amount: Decimal
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ReturnOut(BaseModel):
    id: int
    return_no: str
    supplier_id: int
    warehouse_id: int
    return_date: date
    po_no: Optional[str] = None
    receipt_no: Optional[str] = None
    reason: ReturnReason
    handling: HandlingMethod
    status: PurchaseReturnStatus
    total_qty: int
    total_amount: Decimal
    created_by: str
    approved_by: Optional[str] = None
    completed_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    lines: List[ReturnLineOut]

    model_config = ConfigDict(from_attributes=True)
