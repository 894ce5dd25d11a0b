# FILE: app/services/invoice_service.py
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models.grn import GRN
from app.models.invoice import Invoice
from app.schemas.invoice import InvoiceCreate
from app.utils.ids import next_daily_number
from app.workflow.engine import initialize_workflow

logger = logging.getLogger(__name__)


def raise_invoice(
    db: Session, *, vendor_id: int, payload: InvoiceCreate, user_id: Optional[int]
) -> Invoice:
    grn = db.query(GRN).filter(GRN.grn_number == payload.grn_number).first()
    if not grn or grn.vendor_id != vendor_id:
        raise HTTPException(status_code=404, detail="GRN not found")

    approved = (grn.unified_status or "").upper() == "APPROVED" or grn.grn_status == "APPROVED"
    if not approved:
        raise HTTPException(status_code=400, detail="GRN must be approved before invoicing")

    if db.query(Invoice.id).filter(Invoice.grn_id == grn.id).first():
        raise HTTPException(status_code=409, detail="Invoice already raised for this GRN")

    inv = Invoice(
        invoice_number=next_daily_number(db, Invoice.invoice_number, "INV"),
        vendor_invoice_number=payload.vendor_invoice_number,
        vendor_invoice_date=payload.vendor_invoice_date,
        company_id=grn.company_id,
        vendor_id=vendor_id,
        grn_id=grn.id,
        grn_number=grn.grn_number,
        po_number=grn.po_number or None,
        invoice_amount=payload.invoice_amount,
        tax_amount=payload.tax_amount,
        remarks=payload.remarks or "",
        created_by=user_id,
    )

    try:
        db.add(inv)
        db.flush()
        if not initialize_workflow(db, "INVOICE", inv, company_id=grn.company_id, user_id=user_id):
            inv.unified_status = "RAISED"
        grn.status = "INVOICED"
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Invoice creation failed for GRN %s", grn.grn_number)
        raise

    db.refresh(inv)
    logger.info("Invoice %s raised for GRN %s", inv.invoice_number, grn.grn_number)
    return inv


def list_invoices(
    db: Session, *, company_id: Optional[int] = None, vendor_id: Optional[int] = None
) -> List[Invoice]:
    q = db.query(Invoice)
    if company_id is not None:
        q = q.filter(Invoice.company_id == company_id)
    if vendor_id is not None:
        q = q.filter(Invoice.vendor_id == vendor_id)
    return q.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()
