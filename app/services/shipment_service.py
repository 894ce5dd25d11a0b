# FILE: app/services/shipment_service.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Tuple

from sqlalchemy.orm import Session

from app.models.order import Order, OrderStatus
from app.models.shipment import Shipment
from app.schemas.shipment import ManualShipmentIn
from app.services.notification_queue import enqueue_order_notification
from app.services.notification_service import NotificationEvents
from app.utils.ids import generate_shipment_id

logger = logging.getLogger(__name__)

READY_STATUSES = {"APPROVED", "IN_FULFILMENT"}


def _find_order(db: Session, pr_number: str) -> Order:
    o = (
        db.query(Order)
        .filter((Order.pr_number == pr_number) | (Order.order_number == pr_number))
        .first()
    )
    if not o:
        raise LookupError("Order not found")
    return o


def _check_ready(order: Order, vendor_id: int) -> None:
    if order.vendor_id != vendor_id:
        raise PermissionError("Order does not belong to this vendor")
    if order.dispatch_status == "DISPATCHED" or order.status in (
        OrderStatus.DISPATCHED, OrderStatus.DELIVERED
    ):
        raise ValueError("Order is already dispatched")
    ready = (order.unified_status or "").upper() in READY_STATUSES \
        or order.status == OrderStatus.AWAITING_FULFILMENT
    if not ready:
        raise ValueError(f"Order is not ready for dispatch (status: {order.unified_status or order.status})")


def create_manual_shipments(
    db: Session, *, vendor_id: int, payload: ManualShipmentIn
) -> Tuple[List[Shipment], List[dict]]:
    """
    One shipment per PR. A bad PR is reported in errors and does not
    stop the others.
    """
    created: List[Shipment] = []
    errors: List[dict] = []
    dispatched_at = payload.dispatched_date or datetime.utcnow()

    for pr in payload.pr_numbers:
        pr = (pr or "").strip()
        try:
            order = _find_order(db, pr)
            _check_ready(order, vendor_id)
        except (LookupError, PermissionError, ValueError) as e:
            logger.warning("Shipment for %s skipped: %s", pr, e)
            errors.append({"pr_number": pr, "error": str(e)})
            continue

        sh = Shipment(
            shipment_id=generate_shipment_id("SHM"),
            order_id=order.id,
            company_id=order.company_id,
            vendor_id=vendor_id,
            pr_number=order.pr_number or order.order_number,
            po_number=order.po_number,
            shipment_mode="MANUAL",
            mode_of_transport=payload.mode_of_transport,
            courier_provider=(payload.courier_provider or None)
            if payload.mode_of_transport == "COURIER" else None,
            shipment_number=payload.shipment_number,
            tracking_url=payload.tracking_url,
            shipment_status="IN_TRANSIT",
            dispatched_date=dispatched_at,
        )
        db.add(sh)

        order.status = OrderStatus.DISPATCHED
        order.dispatch_status = "DISPATCHED"
        order.dispatched_date = dispatched_at
        order.unified_status = "DISPATCHED"
        order.unified_status_updated_at = datetime.utcnow()
        for it in order.items:
            it.dispatched_quantity = it.quantity

        enqueue_order_notification(db, NotificationEvents.ORDER_STATUS_CHANGED, order)
        try:
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Shipment for %s failed", pr)
            errors.append({"pr_number": pr, "error": "Failed to save shipment"})
            continue

        db.refresh(sh)
        created.append(sh)
        logger.info("Shipment %s created for %s (%s)", sh.shipment_id, pr, payload.mode_of_transport)

    return created, errors


def list_vendor_shipments(db: Session, vendor_id: int, limit: int = 200) -> List[Shipment]:
    return (
        db.query(Shipment)
        .filter(Shipment.vendor_id == vendor_id)
        .order_by(Shipment.created_at.desc(), Shipment.id.desc())
        .limit(limit)
        .all()
    )
