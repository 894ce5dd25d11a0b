# FILE: app/api/routes_orders.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session, selectinload

from app.api.deps import company_scope, current_user, get_db, require_company, require_roles
from app.core.rbac import Roles, role_of
from app.models.company import Location
from app.models.employee import Employee
from app.models.order import Order
from app.models.product import Product
from app.models.user import User
from app.schemas.order import MarkDeliveredIn, OrderCreate, OrderOut
from app.services import order_service
from app.services.audit_logger import log_audit
from app.services.excel_export import build_bulk_order_template

logger = logging.getLogger(__name__)

router = APIRouter()

ORDER_ADMINS = (Roles.COMPANY_ADMIN, Roles.LOCATION_ADMIN, Roles.SITE_ADMIN, Roles.ADMIN)
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _can_see(user: User, order: Order) -> bool:
    role = role_of(user)
    if role == Roles.SUPER_ADMIN:
        return True
    if role == Roles.VENDOR:
        return order.vendor_id == user.vendor_id
    if order.company_id != user.company_id:
        return False
    if role == Roles.EMPLOYEE:
        return order.employee_id == user.employee_id
    return True


@router.post("", response_model=OrderOut, status_code=201)
def create_order(
    payload: OrderCreate,
    company_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_company),
):
    cid = company_scope(user, company_id)
    role = role_of(user)
    if role == Roles.EMPLOYEE:
        if user.employee_id != payload.employee_id:
            raise HTTPException(status_code=403, detail="Employees can only order for themselves")
    elif role not in ORDER_ADMINS and role != Roles.SUPER_ADMIN:
        raise HTTPException(status_code=403, detail="Not permitted")

    emp = order_service.get_employee_or_404(db, cid, payload.employee_id)
    order = order_service.create_order(
        db,
        company_id=cid,
        employee=emp,
        items=payload.items,
        created_by=user.id,
        delivery_option=payload.delivery_option,
        shipping_address=payload.shipping_address,
        shipping_city=payload.shipping_city,
        shipping_state=payload.shipping_state,
        shipping_pincode=payload.shipping_pincode,
    )
    log_audit(db, user_id=user.id, action="CREATE", table_name="orders",
              record_id=order.order_number, company_id=cid,
              new_values={"employee_id": emp.id, "total": str(order.total),
                          "items": len(order.items)})
    return order


@router.get("", response_model=List[OrderOut])
def list_orders(
    company_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    employee_id: Optional[int] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    role = role_of(user)
    if role == Roles.VENDOR:
        if not user.vendor_id:
            raise HTTPException(status_code=403, detail="Vendor access only")
        q = (
            db.query(Order)
            .options(selectinload(Order.items))
            .filter(Order.vendor_id == user.vendor_id)
        )
        if status:
            q = q.filter((Order.status == status) | (Order.unified_status == status))
        return q.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()

    cid = company_scope(user, company_id)
    if role == Roles.EMPLOYEE:
        employee_id = user.employee_id
    return order_service.list_orders(db, cid, status=status, employee_id=employee_id, limit=limit)


@router.get("/bulk-template")
def download_bulk_order_template(
    company_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(Roles.COMPANY_ADMIN)),
):
    cid = company_scope(user, company_id)
    employees = (
        db.query(Employee)
        .filter(Employee.company_id == cid, Employee.status == "active")
        .order_by(Employee.employee_code.asc())
        .all()
    )
    products = (
        db.query(Product)
        .options(selectinload(Product.vendor))
        .filter(Product.company_id == cid, Product.is_active.is_(True))
        .order_by(Product.category.asc(), Product.name.asc())
        .all()
    )
    location_names = {
        loc.id: loc.name
        for loc in db.query(Location).filter(Location.company_id == cid).all()
    }

    content = build_bulk_order_template(employees, products, location_names)
    filename = f"bulk_order_template_{datetime.utcnow():%Y%m%d}.xlsx"
    logger.info("Bulk order template generated for company %s (%s employees, %s products)",
                cid, len(employees), len(products))
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{order_ref}", response_model=OrderOut)
def get_order(
    order_ref: str,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    order = order_service.get_order_or_404(db, None, order_ref)
    if not _can_see(user, order):
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.post("/{order_ref}/mark-delivered", response_model=OrderOut)
def mark_order_delivered(
    order_ref: str,
    payload: MarkDeliveredIn,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    order = order_service.get_order_or_404(db, None, order_ref)
    role = role_of(user)
    allowed = _can_see(user, order) and (
        role in ORDER_ADMINS or role in (Roles.SUPER_ADMIN, Roles.VENDOR)
        or (role == Roles.EMPLOYEE and order.employee_id == user.employee_id)
    )
    if not allowed:
        raise HTTPException(status_code=404, detail="Order not found")

    order = order_service.mark_delivered(
        db, order,
        user_id=user.id,
        received_by=payload.received_by,
        delivery_remarks=payload.delivery_remarks,
    )
    log_audit(db, user_id=user.id, action="UPDATE", table_name="orders",
              record_id=order.order_number, company_id=order.company_id,
              new_values={"status": order.status})
    return order
