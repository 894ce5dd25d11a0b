# FILE: app/schemas/invoice.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class InvoiceCreate(BaseModel):
    grn_number: str
    vendor_invoice_number: str = Field(min_length=1, max_length=100)
    vendor_invoice_date: Optional[date] = None
    invoice_amount: Decimal = Field(ge=0)
    tax_amount: Decimal = Field(default=Decimal("0"), ge=0)
    remarks: str = ""


class InvoiceOut(BaseModel):
    id: int
    invoice_number: str
    invoice_date: datetime
    vendor_invoice_number: str
    vendor_invoice_date: Optional[date] = None
    company_id: int
    vendor_id: int
    grn_number: str
    po_number: Optional[str] = None
    invoice_amount: Decimal
    tax_amount: Decimal
    invoice_status: str
    unified_status: Optional[str] = None
    current_stage: Optional[str] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    remarks: str

    model_config = ConfigDict(from_attributes=True)
