# FILE: app/models/product.py
from __future__ import annotations

from datetime import datetime
from typing import List

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Numeric, ForeignKey
)
from sqlalchemy.orm import relationship

from app.db.base import Base

Money = Numeric(14, 2)


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)

    sku = Column(String(50), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    # shirt / pant / shoe / jacket / accessory
    category = Column(String(30), nullable=False)
    # male / female / unisex
    gender = Column(String(10), nullable=False, default="unisex")
    sizes = Column(String(255), nullable=False, default="")  # CSV: "S,M,L,XL"
    price = Column(Money, nullable=False, default=0)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    vendor = relationship("Vendor")

    @property
    def size_list(self) -> List[str]:
        return [s.strip() for s in (self.sizes or "").split(",") if s.strip()]
