# FILE: app/api/routes_invoices.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import company_scope, current_user, get_db, require_vendor
from app.core.rbac import Roles, role_of
from app.models.user import User
from app.schemas.invoice import InvoiceCreate, InvoiceOut
from app.services.audit_logger import log_audit
from app.services.invoice_service import list_invoices, raise_invoice

router = APIRouter()


@router.post("", response_model=InvoiceOut, status_code=201)
def create_invoice(
    payload: InvoiceCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_vendor),
):
    inv = raise_invoice(db, vendor_id=user.vendor_id, payload=payload, user_id=user.id)
    log_audit(db, user_id=user.id, action="CREATE", table_name="invoices",
              record_id=inv.invoice_number, company_id=inv.company_id,
              new_values={"grn_number": inv.grn_number,
                          "invoice_amount": str(inv.invoice_amount)})
    return inv


@router.get("", response_model=List[InvoiceOut])
def get_invoices(
    company_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    if role_of(user) == Roles.VENDOR:
        return list_invoices(db, vendor_id=user.vendor_id)
    return list_invoices(db, company_id=company_scope(user, company_id))
