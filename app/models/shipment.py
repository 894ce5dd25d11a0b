# FILE: app/models/shipment.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from app.db.base import Base


class Shipment(Base):
    __tablename__ = "shipments"

    id = Column(Integer, primary_key=True, index=True)
    # SHM + base36, uppercase, <= 15 chars
    shipment_id = Column(String(15), unique=True, nullable=False, index=True)

    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)
    pr_number = Column(String(100), nullable=False)
    po_number = Column(String(100), nullable=True)

    shipment_mode = Column(String(10), nullable=False, default="MANUAL")
    # COURIER / DIRECT / HAND_DELIVERY
    mode_of_transport = Column(String(20), nullable=False)
    courier_provider = Column(String(100), nullable=True)
    # AWB / docket number
    shipment_number = Column(String(100), nullable=True)
    tracking_url = Column(String(500), nullable=True)

    # CREATED / IN_TRANSIT / DELIVERED / FAILED
    shipment_status = Column(String(20), nullable=False, default="CREATED")
    dispatched_date = Column(DateTime, nullable=False)
    delivered_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    order = relationship("Order")
