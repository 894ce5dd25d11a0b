from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from app.db.base import Base


class User(Base):
    __tablename__ = "users"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    email = Column(String(191), unique=True,
                   nullable=False)  # <= 191, no index=True
    password_hash = Column(String(255), nullable=False)

    # SUPER_ADMIN / COMPANY_ADMIN / LOCATION_ADMIN / SITE_ADMIN /
    # FINANCE_ADMIN / VENDOR / EMPLOYEE
    role = Column(String(30), nullable=False, default="EMPLOYEE")

    # super admins have no company
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=True, index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=True)

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    company = relationship("Company")
    vendor = relationship("Vendor")
    employee = relationship("Employee", foreign_keys=[employee_id])
