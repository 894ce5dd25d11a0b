# FILE: app/models/employee.py
from __future__ import annotations

from datetime import datetime
from typing import Dict

from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship

from app.db.base import Base

CATEGORIES = ("shirt", "pant", "shoe", "jacket")


class Employee(Base):
    __tablename__ = "employees"
    __table_args__ = (
        UniqueConstraint("company_id", "employee_code", name="uq_employee_company_code"),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=True, index=True)

    employee_code = Column(String(50), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False, default="")
    email = Column(String(191), nullable=True)
    # stored normalized (+91XXXXXXXXXX)
    phone = Column(String(20), nullable=True, index=True)

    gender = Column(String(10), nullable=False, default="male")
    designation = Column(String(100), nullable=False, default="")
    address = Column(String(500), nullable=False, default="")
    dispatch_preference = Column(String(20), nullable=False, default="OFFICE")
    status = Column(String(20), nullable=False, default="active")

    # Yearly entitlement per category
    eligibility_shirt = Column(Integer, nullable=False, default=0)
    eligibility_pant = Column(Integer, nullable=False, default=0)
    eligibility_shoe = Column(Integer, nullable=False, default=0)
    eligibility_jacket = Column(Integer, nullable=False, default=0)

    consumed_shirt = Column(Integer, nullable=False, default=0)
    consumed_pant = Column(Integer, nullable=False, default=0)
    consumed_shoe = Column(Integer, nullable=False, default=0)
    consumed_jacket = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    company = relationship("Company")
    location = relationship("Location")

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def remaining_eligibility(self) -> Dict[str, int]:
        out: Dict[str, int] = {}
        for cat in CATEGORIES:
            total = int(getattr(self, f"eligibility_{cat}") or 0)
            used = int(getattr(self, f"consumed_{cat}") or 0)
            out[cat] = max(0, total - used)
        return out
