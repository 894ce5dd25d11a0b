from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON

from app.db.base import Base


class WhatsAppSession(Base):
    """One conversational session per (normalized) phone number."""
    __tablename__ = "whatsapp_sessions"

    id = Column(Integer, primary_key=True, index=True)
    phone = Column(String(20), unique=True, nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=True)

    state = Column(String(30), nullable=False, default="MAIN_MENU")
    # [{product_id, name, size, quantity, price, category}]
    cart = Column(JSON, nullable=True)
    # selected product / size / delivery option / address
    context = Column(JSON, nullable=True)

    last_activity = Column(DateTime, default=datetime.utcnow, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
