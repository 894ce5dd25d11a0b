# FILE: app/api/routes_employees.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.deps import company_scope, get_db, require_company, require_roles
from app.core.rbac import Roles, role_of
from app.models.employee import Employee
from app.models.user import User
from app.schemas.employee import EligibilityOut, EmployeeCreate, EmployeeOut
from app.services.audit_logger import log_audit
from app.services.order_service import get_employee_or_404

router = APIRouter()


def _visible_employee(db: Session, user: User, employee_id: int, company_id: Optional[int]) -> Employee:
    emp = get_employee_or_404(db, company_scope(user, company_id), employee_id)
    if role_of(user) == Roles.EMPLOYEE and user.employee_id != emp.id:
        raise HTTPException(status_code=404, detail="Employee not found")
    return emp


@router.post("", response_model=EmployeeOut, status_code=201)
def create_employee(
    payload: EmployeeCreate,
    company_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(Roles.COMPANY_ADMIN)),
):
    cid = company_scope(user, company_id)
    dup = (
        db.query(Employee.id)
        .filter(Employee.company_id == cid, Employee.employee_code == payload.employee_code)
        .first()
    )
    if dup:
        raise HTTPException(status_code=409, detail="Employee code already exists")

    emp = Employee(company_id=cid, **payload.model_dump())
    db.add(emp)
    db.commit()
    db.refresh(emp)

    log_audit(db, user_id=user.id, action="CREATE", table_name="employees",
              record_id=emp.id, company_id=cid,
              new_values=payload.model_dump(mode="json"))
    return emp


@router.get("", response_model=List[EmployeeOut])
def list_employees(
    company_id: Optional[int] = Query(None),
    location_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(Roles.COMPANY_ADMIN, Roles.LOCATION_ADMIN,
                                       Roles.SITE_ADMIN, Roles.ADMIN)),
):
    cid = company_scope(user, company_id)
    q = db.query(Employee).filter(Employee.company_id == cid)
    if location_id:
        q = q.filter(Employee.location_id == location_id)
    if status:
        q = q.filter(Employee.status == status)
    return q.order_by(Employee.employee_code.asc()).offset(offset).limit(limit).all()


@router.get("/{employee_id}", response_model=EmployeeOut)
def get_employee(
    employee_id: int,
    company_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_company),
):
    return _visible_employee(db, user, employee_id, company_id)


@router.get("/{employee_id}/eligibility", response_model=EligibilityOut)
def employee_eligibility(
    employee_id: int,
    company_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_company),
):
    emp = _visible_employee(db, user, employee_id, company_id)
    return EligibilityOut(employee_id=emp.id, remaining=emp.remaining_eligibility())
