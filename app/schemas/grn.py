# FILE: app/schemas/grn.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class GRNCreate(BaseModel):
    pr_numbers: List[str] = Field(min_length=1)
    remarks: str = ""


class GRNItemOut(BaseModel):
    id: int
    order_item_id: Optional[int] = None
    product_code: str
    product_name: str
    size: str
    ordered_quantity: int
    delivered_quantity: int
    rejected_quantity: int
    condition: str

    model_config = ConfigDict(from_attributes=True)


class GRNOut(BaseModel):
    id: int
    grn_number: str
    company_id: int
    vendor_id: int
    po_number: str
    pr_numbers: Optional[List[str]] = None
    status: str
    grn_status: str
    unified_status: Optional[str] = None
    current_stage: Optional[str] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    grn_acknowledged_by_company: bool
    rejection_reason: Optional[str] = None
    remarks: str
    created_at: datetime
    items: List[GRNItemOut] = []

    model_config = ConfigDict(from_attributes=True)
