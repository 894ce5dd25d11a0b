# FILE: app/api/routes_vendors.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.deps import current_user, get_db, require_roles
from app.core.rbac import Roles
from app.models.user import User
from app.models.vendor import Vendor
from app.schemas.vendor import VendorCreate, VendorOut
from app.services.audit_logger import log_audit

router = APIRouter()


@router.post("", response_model=VendorOut, status_code=201)
def create_vendor(
    payload: VendorCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(Roles.COMPANY_ADMIN)),
):
    code = payload.code.strip().upper()
    if db.query(Vendor.id).filter(Vendor.code == code).first():
        raise HTTPException(status_code=409, detail="Vendor code already exists")

    data = payload.model_dump()
    data["code"] = code
    v = Vendor(**data)
    db.add(v)
    db.commit()
    db.refresh(v)

    log_audit(db, user_id=user.id, action="CREATE", table_name="vendors",
              record_id=v.id, company_id=user.company_id, new_values=data)
    return v


@router.get("", response_model=List[VendorOut])
def list_vendors(
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    return db.query(Vendor).filter(Vendor.is_active.is_(True)).order_by(Vendor.name.asc()).all()


@router.get("/{vendor_id}", response_model=VendorOut)
def get_vendor(
    vendor_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    v = db.get(Vendor, vendor_id)
    if not v:
        raise HTTPException(status_code=404, detail="Vendor not found")
    return v
