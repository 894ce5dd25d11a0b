# FILE: app/api/routes_companies.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.deps import current_user, get_db, require_roles
from app.core.rbac import Roles, is_super_admin
from app.models.company import Company
from app.models.user import User
from app.schemas.company import CompanyCreate, CompanyOut
from app.services.audit_logger import log_audit

router = APIRouter()


@router.post("", response_model=CompanyOut, status_code=201)
def create_company(
    payload: CompanyCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(Roles.SUPER_ADMIN)),
):
    if db.query(Company.id).filter(Company.code == payload.code).first():
        raise HTTPException(status_code=409, detail="Company code already exists")

    c = Company(**payload.model_dump())
    db.add(c)
    db.commit()
    db.refresh(c)

    log_audit(db, user_id=user.id, action="CREATE", table_name="companies",
              record_id=c.id, company_id=c.id, new_values=payload.model_dump())
    return c


@router.get("", response_model=List[CompanyOut])
def list_companies(
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    q = db.query(Company)
    if not is_super_admin(user):
        q = q.filter(Company.id == user.company_id)
    return q.order_by(Company.name.asc()).all()


@router.get("/{company_id}", response_model=CompanyOut)
def get_company(
    company_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    if not is_super_admin(user) and user.company_id != company_id:
        raise HTTPException(status_code=404, detail="Company not found")
    c = db.get(Company, company_id)
    if not c:
        raise HTTPException(status_code=404, detail="Company not found")
    return c
