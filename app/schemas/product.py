# FILE: app/schemas/product.py
from __future__ import annotations

from decimal import Decimal
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProductCreate(BaseModel):
    vendor_id: int
    sku: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=200)
    category: Literal["shirt", "pant", "shoe", "jacket", "accessory"]
    gender: Literal["male", "female", "unisex"] = "unisex"
    sizes: List[str] = Field(default_factory=list)
    price: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator("sizes")
    @classmethod
    def _sizes(cls, v: List[str]) -> List[str]:
        return [s.strip().upper() for s in v if s and s.strip()]


class ProductOut(BaseModel):
    id: int
    company_id: int
    vendor_id: int
    sku: str
    name: str
    category: str
    gender: str
    size_list: List[str]
    price: Decimal
    is_active: bool

    model_config = ConfigDict(from_attributes=True)
