# app/db/base.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """All tables (companies, orders, workflow, notifications, ...) inherit from this."""
    pass


# Import all models so metadata is complete for create_all()
from app.models import (  # noqa: F401,E402
    company,
    user,
    employee,
    vendor,
    product,
    order,
    shipment,
    grn,
    invoice,
    workflow,
    notification,
    whatsapp,
    audit,
)
