# FILE: app/api/router.py
from fastapi import APIRouter
from app.api import (
    # Core
    routes_auth,
    routes_companies,
    routes_locations,
    routes_vendors,
    routes_employees,
    routes_products,
    routes_audit_logs,

    # Orders / fulfilment
    routes_orders,
    routes_shipments,
    routes_grns,
    routes_invoices,

    # Workflow
    routes_workflow,
    routes_workflow_configs,

    # Notifications / WhatsApp
    routes_notifications,
    routes_whatsapp,
)

api_router = APIRouter()

# ---- Core
api_router.include_router(routes_auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(routes_companies.router, prefix="/companies", tags=["companies"])
api_router.include_router(routes_locations.router, prefix="/locations", tags=["locations"])
api_router.include_router(routes_vendors.router, prefix="/vendors", tags=["vendors"])
api_router.include_router(routes_employees.router, prefix="/employees", tags=["employees"])
api_router.include_router(routes_products.router, prefix="/products", tags=["products"])
api_router.include_router(routes_audit_logs.router,
                          prefix="/audit-logs",
                          tags=["audit-logs"])

# ---- Orders / fulfilment
api_router.include_router(routes_orders.router, prefix="/orders", tags=["orders"])
api_router.include_router(routes_shipments.router, prefix="/shipments", tags=["shipments"])
api_router.include_router(routes_grns.router, prefix="/grns", tags=["grns"])
api_router.include_router(routes_invoices.router, prefix="/invoices", tags=["invoices"])

# ---- Workflow
api_router.include_router(routes_workflow.router, prefix="/workflow", tags=["workflow"])
api_router.include_router(routes_workflow_configs.router,
                          prefix="/workflow-configs",
                          tags=["workflow"])

# ---- Notifications / WhatsApp
api_router.include_router(routes_notifications.router,
                          prefix="/notifications",
                          tags=["notifications"])
api_router.include_router(routes_whatsapp.router, prefix="/whatsapp", tags=["whatsapp"])
