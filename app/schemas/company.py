# FILE: app/schemas/company.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.utils.validators import is_valid_pincode


class CompanyCreate(BaseModel):
    code: str = Field(min_length=2, max_length=20)
    name: str = Field(min_length=1, max_length=200)
    enable_pr_po_workflow: bool = False
    shipment_mode: str = "MANUAL"

    @field_validator("code")
    @classmethod
    def _code_upper(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("shipment_mode")
    @classmethod
    def _mode(cls, v: str) -> str:
        v = (v or "MANUAL").strip().upper()
        if v != "MANUAL":
            raise ValueError("Only MANUAL shipment mode is supported")
        return v


class CompanyOut(BaseModel):
    id: int
    code: str
    name: str
    enable_pr_po_workflow: bool
    shipment_mode: str
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LocationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    address: str = ""
    city: str = ""
    state: str = ""
    pincode: str
    admin_user_id: Optional[int] = None

    @field_validator("pincode")
    @classmethod
    def _pincode(cls, v: str) -> str:
        v = (v or "").strip()
        if not is_valid_pincode(v):
            raise ValueError("Pincode must be 6 digits and cannot start with 0")
        return v


class LocationOut(BaseModel):
    id: int
    company_id: int
    name: str
    address: str
    city: str
    state: str
    pincode: str
    admin_user_id: Optional[int] = None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)
