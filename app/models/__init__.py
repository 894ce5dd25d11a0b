# app/models/__init__.py
from .company import Company, Location
from .user import User
from .employee import Employee
from .vendor import Vendor
from .product import Product
from .order import Order, OrderItem
from .shipment import Shipment
from .grn import GRN, GRNItem
from .invoice import Invoice
from .workflow import WorkflowConfiguration, WorkflowApprovalAudit, WorkflowRejection
from .notification import (
    NotificationEvent, NotificationTemplate, NotificationQueue, NotificationLog,
    CompanyNotificationConfig, WorkflowNotificationMapping,
)
from .whatsapp import WhatsAppSession
from .audit import AuditLog

__all__ = [
    "Company",
    "Location",
    "User",
    "Employee",
    "Vendor",
    "Product",
    "Order",
    "OrderItem",
    "Shipment",
    "GRN",
    "GRNItem",
    "Invoice",
    "WorkflowConfiguration",
    "WorkflowApprovalAudit",
    "WorkflowRejection",
    "NotificationEvent",
    "NotificationTemplate",
    "NotificationQueue",
    "NotificationLog",
    "CompanyNotificationConfig",
    "WorkflowNotificationMapping",
    "WhatsAppSession",
    "AuditLog",
]
