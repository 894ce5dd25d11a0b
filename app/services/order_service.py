# FILE: app/services/order_service.py
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session, selectinload

from app.models.company import Company, Location
from app.models.employee import CATEGORIES, Employee
from app.models.order import Order, OrderItem, OrderStatus
from app.models.product import Product
from app.models.shipment import Shipment
from app.schemas.order import OrderItemIn
from app.services.notification_queue import enqueue_order_notification
from app.services.notification_service import NotificationEvents
from app.utils.ids import generate_audit_id, next_daily_number
from app.workflow.engine import initialize_workflow

logger = logging.getLogger(__name__)

DEFAULT_ESTIMATED_DELIVERY = "7-10 business days"


def _d(x) -> Decimal:
    return Decimal(str(x or 0))


# -------------------------
# Lookups
# -------------------------
def get_employee_or_404(db: Session, company_id: int, employee_id: int) -> Employee:
    emp = db.get(Employee, employee_id)
    if not emp or emp.company_id != company_id:
        raise HTTPException(status_code=404, detail="Employee not found")
    return emp


def get_order_or_404(db: Session, company_id: Optional[int], order_ref: str) -> Order:
    q = db.query(Order).options(selectinload(Order.items))
    o = q.filter(Order.order_number == order_ref).first()
    if o is None:
        o = q.filter(Order.pr_number == order_ref).first()
    if o is None and str(order_ref).isdigit():
        o = q.filter(Order.id == int(order_ref)).first()
    if not o or (company_id is not None and o.company_id != company_id):
        raise HTTPException(status_code=404, detail="Order not found")
    return o


def find_employee_by_phone(db: Session, phone: str) -> Optional[Employee]:
    return (
        db.query(Employee)
        .filter(Employee.phone == phone, Employee.status == "active")
        .first()
    )


# -------------------------
# Eligibility
# -------------------------
def _gender_ok(product: Product, employee: Employee) -> bool:
    return product.gender == "unisex" or product.gender == employee.gender


def eligible_products(db: Session, employee: Employee) -> List[Product]:
    remaining = employee.remaining_eligibility()
    rows = (
        db.query(Product)
        .filter(Product.company_id == employee.company_id, Product.is_active.is_(True))
        .order_by(Product.category.asc(), Product.name.asc())
        .all()
    )
    out = []
    for p in rows:
        if not _gender_ok(p, employee):
            continue
        if p.category in CATEGORIES and remaining.get(p.category, 0) <= 0:
            continue
        out.append(p)
    return out


def check_eligibility(employee: Employee, wanted: Dict[str, int]) -> List[str]:
    """
    wanted: category -> quantity. Returns human readable problems (empty = ok).
    """
    remaining = employee.remaining_eligibility()
    problems = []
    for cat, qty in wanted.items():
        if cat not in CATEGORIES:
            continue
        if qty > remaining.get(cat, 0):
            problems.append(
                f"Eligibility exceeded for {cat}: requested {qty}, remaining {remaining.get(cat, 0)}"
            )
    return problems


def consume_eligibility(employee: Employee, wanted: Dict[str, int]) -> None:
    for cat, qty in wanted.items():
        if cat in CATEGORIES:
            attr = f"consumed_{cat}"
            setattr(employee, attr, int(getattr(employee, attr) or 0) + qty)


# -------------------------
# Create
# -------------------------
def _resolve_items(
    db: Session, company_id: int, employee: Employee, items: Iterable[OrderItemIn]
) -> List[tuple]:
    resolved = []
    for it in items:
        p = db.get(Product, it.product_id)
        if not p or p.company_id != company_id or not p.is_active:
            raise HTTPException(status_code=400, detail=f"Product {it.product_id} is not available")
        if not _gender_ok(p, employee):
            raise HTTPException(status_code=400, detail=f"{p.name} is not available for this employee")
        size = it.size.strip().upper()
        if p.size_list and size not in [s.upper() for s in p.size_list]:
            raise HTTPException(
                status_code=400,
                detail=f"Size {it.size} is not available for {p.name}. Sizes: {', '.join(p.size_list)}",
            )
        resolved.append((p, size, int(it.quantity)))
    return resolved


def create_order(
    db: Session,
    *,
    company_id: int,
    employee: Employee,
    items: List[OrderItemIn],
    created_by: Optional[int] = None,
    delivery_option: str = "OFFICE",
    shipping_address: Optional[str] = None,
    shipping_city: Optional[str] = None,
    shipping_state: Optional[str] = None,
    shipping_pincode: Optional[str] = None,
    source: str = "WEB",
) -> Order:
    if employee.company_id != company_id:
        raise HTTPException(status_code=404, detail="Employee not found")
    if employee.status != "active":
        raise HTTPException(status_code=400, detail="Employee is not active")
    if not items:
        raise HTTPException(status_code=400, detail="Order must have at least 1 item")

    resolved = _resolve_items(db, company_id, employee, items)

    vendors = {p.vendor_id for p, _, _ in resolved}
    if len(vendors) > 1:
        raise HTTPException(status_code=400, detail="All items in an order must come from the same vendor")

    wanted: Dict[str, int] = defaultdict(int)
    for p, _, qty in resolved:
        wanted[p.category] += qty
    problems = check_eligibility(employee, wanted)
    if problems:
        raise HTTPException(status_code=400, detail="; ".join(problems))

    company = db.get(Company, company_id)
    location = db.get(Location, employee.location_id) if employee.location_id else None

    if delivery_option == "HOME":
        address = (shipping_address or employee.address or "").strip()
        if not address:
            raise HTTPException(status_code=400, detail="Shipping address is required for HOME delivery")
        city, state, pincode = shipping_city or "", shipping_state or "", shipping_pincode
    else:
        address = location.address if location else ""
        city = location.city if location else ""
        state = location.state if location else ""
        pincode = location.pincode if location else None

    now = datetime.utcnow()
    order = Order(
        order_number=generate_audit_id("ORD"),
        company_id=company_id,
        employee_id=employee.id,
        vendor_id=next(iter(vendors)),
        location_id=employee.location_id,
        status=OrderStatus.AWAITING_APPROVAL,
        delivery_option=delivery_option,
        shipping_address=address,
        shipping_city=city,
        shipping_state=state,
        shipping_pincode=pincode,
        estimated_delivery_time=DEFAULT_ESTIMATED_DELIVERY,
        source=source,
        created_by=created_by,
    )
    if company and company.enable_pr_po_workflow:
        order.pr_number = next_daily_number(db, Order.pr_number, "PR", on=now)
        order.pr_date = now

    total = Decimal("0")
    for p, size, qty in resolved:
        price = _d(p.price)
        order.items.append(OrderItem(
            product_id=p.id,
            product_name=p.name,
            category=p.category,
            size=size,
            quantity=qty,
            price=price,
        ))
        total += price * qty
    order.total = total.quantize(Decimal("0.01"))

    try:
        db.add(order)
        db.flush()
        consume_eligibility(employee, wanted)
        if not initialize_workflow(db, "ORDER", order, company_id=company_id, user_id=created_by):
            order.unified_status = "PENDING_APPROVAL"
        enqueue_order_notification(db, NotificationEvents.ORDER_STATUS_CHANGED, order)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Order creation failed for employee %s", employee.id)
        raise

    db.refresh(order)
    logger.info("Order %s created for employee %s (%s items, source=%s)",
                order.order_number, employee.id, len(resolved), source)
    return order


# -------------------------
# List / deliver
# -------------------------
def list_orders(
    db: Session,
    company_id: int,
    *,
    status: Optional[str] = None,
    employee_id: Optional[int] = None,
    vendor_id: Optional[int] = None,
    limit: int = 100,
) -> List[Order]:
    q = (
        db.query(Order)
        .options(selectinload(Order.items))
        .filter(Order.company_id == company_id)
    )
    if status:
        q = q.filter((Order.status == status) | (Order.unified_status == status))
    if employee_id:
        q = q.filter(Order.employee_id == employee_id)
    if vendor_id:
        q = q.filter(Order.vendor_id == vendor_id)
    return q.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()


def open_orders_for_employee(db: Session, employee_id: int) -> List[Order]:
    return (
        db.query(Order)
        .filter(
            Order.employee_id == employee_id,
            Order.status.notin_([OrderStatus.DELIVERED, OrderStatus.CANCELLED]),
        )
        .order_by(Order.created_at.desc())
        .all()
    )


def mark_delivered(
    db: Session,
    order: Order,
    *,
    user_id: Optional[int],
    received_by: Optional[str] = None,
    delivery_remarks: Optional[str] = None,
) -> Order:
    if order.status != OrderStatus.DISPATCHED:
        raise HTTPException(status_code=409, detail=f"Order is {order.status}; only dispatched orders can be delivered")

    now = datetime.utcnow()
    order.status = OrderStatus.DELIVERED
    order.delivery_status = "DELIVERED"
    order.delivered_date = now
    order.received_by = received_by
    order.delivery_remarks = delivery_remarks
    order.unified_status = "DELIVERED"
    order.unified_status_updated_at = now
    order.unified_status_updated_by = user_id
    for it in order.items:
        it.delivered_quantity = it.quantity

    for sh in db.query(Shipment).filter(Shipment.order_id == order.id).all():
        sh.shipment_status = "DELIVERED"
        sh.delivered_date = now

    enqueue_order_notification(db, NotificationEvents.ORDER_MARKED_DELIVERED, order,
                               delivered_date=now.strftime("%d %b %Y"),
                               received_by=received_by or "")
    db.commit()
    db.refresh(order)
    logger.info("Order %s marked delivered by %s", order.order_number, user_id)
    return order


def on_order_fully_approved(db: Session, order: Order) -> None:
    """
    Terminal approval hook: raise the PO for PR/PO companies and tell the
    vendor. Commits.
    """
    company = db.get(Company, order.company_id)
    if company and company.enable_pr_po_workflow and not order.po_number:
        order.po_number = next_daily_number(db, Order.po_number, "PO")
        enqueue_order_notification(db, NotificationEvents.PO_GENERATED, order,
                                   recipient_type="VENDOR")
        logger.info("PO %s generated for order %s", order.po_number, order.order_number)
    enqueue_order_notification(db, NotificationEvents.ORDER_STATUS_CHANGED, order)
    db.commit()
