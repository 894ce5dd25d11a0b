from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime

from app.db.base import Base


class Vendor(Base):
    __tablename__ = "vendors"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(20), unique=True, nullable=False)
    name = Column(String(200), nullable=False)
    email = Column(String(191), nullable=True)
    phone = Column(String(20), nullable=True)
    gstin = Column(String(20), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
