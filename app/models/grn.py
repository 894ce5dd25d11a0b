# FILE: app/models/grn.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, Text, JSON
)
from sqlalchemy.orm import relationship

from app.db.base import Base


class GRN(Base):
    __tablename__ = "grns"

    id = Column(Integer, primary_key=True, index=True)
    grn_number = Column(String(50), unique=True, nullable=False, index=True)

    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)
    po_number = Column(String(100), nullable=False, default="")
    pr_numbers = Column(JSON, nullable=True)

    # CREATED / ACKNOWLEDGED / INVOICED / CLOSED
    status = Column(String(20), nullable=False, default="CREATED")
    # RAISED / APPROVED
    grn_status = Column(String(20), nullable=False, default="RAISED")
    unified_status = Column(String(60), nullable=True, index=True)
    unified_status_updated_at = Column(DateTime, nullable=True)
    unified_status_updated_by = Column(Integer, nullable=True)
    current_stage = Column(String(60), nullable=True)

    grn_raised_by_vendor = Column(Boolean, nullable=False, default=True)
    approved_by = Column(Integer, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    grn_acknowledged_by_company = Column(Boolean, nullable=False, default=False)
    grn_acknowledged_by = Column(Integer, nullable=True)
    grn_acknowledged_date = Column(DateTime, nullable=True)

    rejection_reason = Column(String(255), nullable=True)
    rejection_remarks = Column(Text, nullable=True)
    rejected_by = Column(Integer, nullable=True)
    rejected_at = Column(DateTime, nullable=True)

    remarks = Column(String(1000), nullable=False, default="")

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    vendor = relationship("Vendor")
    items = relationship("GRNItem", back_populates="grn", cascade="all, delete-orphan")


class GRNItem(Base):
    __tablename__ = "grn_items"

    id = Column(Integer, primary_key=True, index=True)
    grn_id = Column(Integer, ForeignKey("grns.id", ondelete="CASCADE"), nullable=False, index=True)
    order_item_id = Column(Integer, ForeignKey("order_items.id"), nullable=True)

    product_code = Column(String(50), nullable=False)
    product_name = Column(String(200), nullable=False, default="")
    size = Column(String(20), nullable=False, default="")
    ordered_quantity = Column(Integer, nullable=False, default=0)
    delivered_quantity = Column(Integer, nullable=False, default=0)
    rejected_quantity = Column(Integer, nullable=False, default=0)
    # ACCEPTED / PARTIAL / REJECTED
    condition = Column(String(20), nullable=False, default="ACCEPTED")
    remarks = Column(String(500), nullable=False, default="")

    grn = relationship("GRN", back_populates="items")
