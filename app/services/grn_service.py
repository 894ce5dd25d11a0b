# FILE: app/services/grn_service.py
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session, selectinload

from app.models.grn import GRN, GRNItem
from app.models.order import Order, OrderStatus
from app.models.product import Product
from app.utils.ids import next_daily_number
from app.workflow.engine import initialize_workflow

logger = logging.getLogger(__name__)


def _already_in_grn(db: Session, vendor_id: int, pr_numbers: List[str]) -> List[str]:
    """PRs already on a live GRN; rejected GRNs release their PRs."""
    taken = set()
    rows = db.query(GRN.pr_numbers, GRN.unified_status).filter(GRN.vendor_id == vendor_id).all()
    for prs, unified_status in rows:
        if "REJECTED" in (unified_status or "").upper():
            continue
        taken.update(prs or [])
    return [p for p in pr_numbers if p in taken]


def raise_grn(
    db: Session,
    *,
    vendor_id: int,
    pr_numbers: List[str],
    user_id: Optional[int],
    remarks: str = "",
) -> GRN:
    prs = list(dict.fromkeys(p.strip() for p in pr_numbers if p and p.strip()))
    if not prs:
        raise HTTPException(status_code=400, detail="At least one PR number is required")

    dup = _already_in_grn(db, vendor_id, prs)
    if dup:
        raise HTTPException(status_code=409, detail=f"GRN already raised for: {', '.join(dup)}")

    orders: List[Order] = []
    for pr in prs:
        o = (
            db.query(Order)
            .options(selectinload(Order.items))
            .filter((Order.pr_number == pr) | (Order.order_number == pr))
            .first()
        )
        if not o or o.vendor_id != vendor_id:
            raise HTTPException(status_code=404, detail=f"Order {pr} not found")
        if o.status != OrderStatus.DELIVERED:
            raise HTTPException(status_code=400, detail=f"Order {pr} is not delivered yet")
        orders.append(o)

    companies = {o.company_id for o in orders}
    if len(companies) > 1:
        raise HTTPException(status_code=400, detail="All orders in a GRN must belong to one company")
    company_id = companies.pop()

    grn = GRN(
        grn_number=next_daily_number(db, GRN.grn_number, "GRN"),
        company_id=company_id,
        vendor_id=vendor_id,
        po_number=orders[0].po_number or "",
        pr_numbers=prs,
        remarks=remarks or "",
        created_by=user_id,
    )
    for o in orders:
        for it in o.items:
            product = db.get(Product, it.product_id)
            grn.items.append(GRNItem(
                order_item_id=it.id,
                product_code=product.sku if product else str(it.product_id),
                product_name=it.product_name,
                size=it.size,
                ordered_quantity=it.quantity,
                delivered_quantity=it.delivered_quantity or it.quantity,
                rejected_quantity=0,
                condition="ACCEPTED",
            ))

    try:
        db.add(grn)
        db.flush()
        if not initialize_workflow(db, "GRN", grn, company_id=company_id, user_id=user_id):
            grn.unified_status = "RAISED"
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("GRN creation failed for vendor %s", vendor_id)
        raise

    db.refresh(grn)
    logger.info("GRN %s raised by vendor %s for %s", grn.grn_number, vendor_id, ", ".join(prs))
    return grn


def list_grns(
    db: Session, *, company_id: Optional[int] = None, vendor_id: Optional[int] = None
) -> List[GRN]:
    q = db.query(GRN).options(selectinload(GRN.items))
    if company_id is not None:
        q = q.filter(GRN.company_id == company_id)
    if vendor_id is not None:
        q = q.filter(GRN.vendor_id == vendor_id)
    return q.order_by(GRN.created_at.desc(), GRN.id.desc()).all()
