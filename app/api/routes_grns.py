# FILE: app/api/routes_grns.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import company_scope, current_user, get_db, require_vendor
from app.core.rbac import Roles, role_of
from app.models.user import User
from app.schemas.grn import GRNCreate, GRNOut
from app.services.audit_logger import log_audit
from app.services.grn_service import list_grns, raise_grn

router = APIRouter()


@router.post("", response_model=GRNOut, status_code=201)
def create_grn(
    payload: GRNCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_vendor),
):
    grn = raise_grn(
        db,
        vendor_id=user.vendor_id,
        pr_numbers=payload.pr_numbers,
        user_id=user.id,
        remarks=payload.remarks,
    )
    log_audit(db, user_id=user.id, action="CREATE", table_name="grns",
              record_id=grn.grn_number, company_id=grn.company_id,
              new_values={"pr_numbers": grn.pr_numbers})
    return grn


@router.get("", response_model=List[GRNOut])
def get_grns(
    company_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    if role_of(user) == Roles.VENDOR:
        return list_grns(db, vendor_id=user.vendor_id)
    return list_grns(db, company_id=company_scope(user, company_id))
