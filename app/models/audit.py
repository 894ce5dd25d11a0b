from datetime import datetime

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    JSON,
)

from app.db.base import Base


class AuditLog(Base):
    """
    Row-level change log for companies, employees, orders, shipments,
    GRNs, invoices and workflow configurations.
    """
    __tablename__ = "audit_logs"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)

    company_id = Column(Integer, nullable=True, index=True)
    user_id = Column(Integer, nullable=True)  # WhatsApp / queue jobs may be null
    action = Column(String(20), nullable=False)  # CREATE / UPDATE / DELETE / APPROVE / REJECT

    table_name = Column(String(100), nullable=False)
    record_id = Column(String(100), nullable=False)

    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)

    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
