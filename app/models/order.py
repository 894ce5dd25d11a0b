# FILE: app/models/order.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, DateTime, Numeric, ForeignKey, Text, Index
)
from sqlalchemy.orm import relationship

from app.db.base import Base

Money = Numeric(14, 2)


class OrderStatus:
    """Legacy order status shown on the employee / vendor screens."""
    AWAITING_APPROVAL = "Awaiting approval"
    AWAITING_FULFILMENT = "Awaiting fulfilment"
    DISPATCHED = "Dispatched"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        Index("ix_orders_company_status", "company_id", "unified_status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(50), unique=True, nullable=False, index=True)
    pr_number = Column(String(100), nullable=True, index=True)
    pr_date = Column(DateTime, nullable=True)
    po_number = Column(String(100), nullable=True, index=True)

    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=True, index=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=True)

    total = Column(Money, nullable=False, default=0)

    status = Column(String(40), nullable=False, default=OrderStatus.AWAITING_APPROVAL)
    unified_status = Column(String(60), nullable=True, index=True)
    unified_status_updated_at = Column(DateTime, nullable=True)
    unified_status_updated_by = Column(Integer, nullable=True)
    current_stage = Column(String(60), nullable=True)

    # OFFICE / HOME
    delivery_option = Column(String(10), nullable=False, default="OFFICE")
    shipping_address = Column(String(500), nullable=False, default="")
    shipping_city = Column(String(100), nullable=False, default="")
    shipping_state = Column(String(100), nullable=False, default="")
    shipping_pincode = Column(String(6), nullable=True)
    shipping_country = Column(String(60), nullable=False, default="India")
    estimated_delivery_time = Column(String(50), nullable=False, default="7-10 business days")

    # WEB / WHATSAPP / BULK
    source = Column(String(20), nullable=False, default="WEB")

    site_admin_approved_by = Column(Integer, nullable=True)
    site_admin_approved_at = Column(DateTime, nullable=True)
    company_admin_approved_by = Column(Integer, nullable=True)
    company_admin_approved_at = Column(DateTime, nullable=True)

    rejection_reason = Column(String(255), nullable=True)
    rejection_remarks = Column(Text, nullable=True)
    rejected_by = Column(Integer, nullable=True)
    rejected_at = Column(DateTime, nullable=True)

    dispatch_status = Column(String(30), nullable=False, default="AWAITING_FULFILMENT")
    dispatched_date = Column(DateTime, nullable=True)
    delivery_status = Column(String(30), nullable=False, default="NOT_DELIVERED")
    delivered_date = Column(DateTime, nullable=True)
    received_by = Column(String(120), nullable=True)
    delivery_remarks = Column(String(500), nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    employee = relationship("Employee")
    vendor = relationship("Vendor")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)

    product_name = Column(String(200), nullable=False)
    category = Column(String(30), nullable=False)
    size = Column(String(20), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    price = Column(Money, nullable=False, default=0)

    dispatched_quantity = Column(Integer, nullable=False, default=0)
    delivered_quantity = Column(Integer, nullable=False, default=0)

    order = relationship("Order", back_populates="items")
