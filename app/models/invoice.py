# FILE: app/models/invoice.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, DateTime, Date, Numeric, ForeignKey, Text
)
from sqlalchemy.orm import relationship

from app.db.base import Base

Money = Numeric(14, 2)


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(50), unique=True, nullable=False, index=True)
    invoice_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    vendor_invoice_number = Column(String(100), nullable=False)
    vendor_invoice_date = Column(Date, nullable=True)

    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)
    # one invoice per GRN
    grn_id = Column(Integer, ForeignKey("grns.id"), nullable=False, unique=True)
    grn_number = Column(String(50), nullable=False)
    po_number = Column(String(100), nullable=True)

    invoice_amount = Column(Money, nullable=False, default=0)
    tax_amount = Column(Money, nullable=False, default=0)

    # RAISED / APPROVED / REJECTED
    invoice_status = Column(String(20), nullable=False, default="RAISED")
    unified_status = Column(String(60), nullable=True, index=True)
    unified_status_updated_at = Column(DateTime, nullable=True)
    unified_status_updated_by = Column(Integer, nullable=True)
    current_stage = Column(String(60), nullable=True)

    approved_by = Column(Integer, nullable=True)
    approved_at = Column(DateTime, nullable=True)

    rejection_reason = Column(String(255), nullable=True)
    rejection_remarks = Column(Text, nullable=True)
    rejected_by = Column(Integer, nullable=True)
    rejected_at = Column(DateTime, nullable=True)

    remarks = Column(String(1000), nullable=False, default="")

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    vendor = relationship("Vendor")
    grn = relationship("GRN")
