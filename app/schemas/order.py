# FILE: app/schemas/order.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.utils.validators import is_valid_pincode


class OrderItemIn(BaseModel):
    product_id: int
    size: str = Field(min_length=1, max_length=20)
    quantity: int = Field(ge=1, le=10)


class OrderCreate(BaseModel):
    employee_id: int
    items: List[OrderItemIn] = Field(min_length=1)
    delivery_option: Literal["OFFICE", "HOME"] = "OFFICE"
    shipping_address: Optional[str] = None
    shipping_city: Optional[str] = None
    shipping_state: Optional[str] = None
    shipping_pincode: Optional[str] = None

    @field_validator("shipping_pincode")
    @classmethod
    def _pincode(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        v = v.strip()
        if not is_valid_pincode(v):
            raise ValueError("Pincode must be 6 digits and cannot start with 0")
        return v


class OrderItemOut(BaseModel):
    id: int
    product_id: int
    product_name: str
    category: str
    size: str
    quantity: int
    price: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    id: int
    order_number: str
    pr_number: Optional[str] = None
    pr_date: Optional[datetime] = None
    po_number: Optional[str] = None
    company_id: int
    employee_id: int
    vendor_id: Optional[int] = None
    location_id: Optional[int] = None
    total: Decimal
    status: str
    unified_status: Optional[str] = None
    current_stage: Optional[str] = None
    delivery_option: str
    shipping_address: str
    shipping_city: str
    shipping_state: str
    shipping_pincode: Optional[str] = None
    estimated_delivery_time: str
    source: str
    dispatch_status: str
    delivery_status: str
    dispatched_date: Optional[datetime] = None
    delivered_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    rejection_remarks: Optional[str] = None
    created_at: datetime
    items: List[OrderItemOut] = []

    model_config = ConfigDict(from_attributes=True)


class MarkDeliveredIn(BaseModel):
    received_by: Optional[str] = None
    delivery_remarks: Optional[str] = None
