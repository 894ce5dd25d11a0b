# FILE: app/api/routes_products.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.deps import company_scope, get_db, require_company, require_roles
from app.core.rbac import Roles, role_of
from app.models.product import Product
from app.models.user import User
from app.models.vendor import Vendor
from app.schemas.product import ProductCreate, ProductOut
from app.services.audit_logger import log_audit
from app.services.order_service import eligible_products, get_employee_or_404

router = APIRouter()


@router.post("", response_model=ProductOut, status_code=201)
def create_product(
    payload: ProductCreate,
    company_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(Roles.COMPANY_ADMIN)),
):
    cid = company_scope(user, company_id)
    if not db.get(Vendor, payload.vendor_id):
        raise HTTPException(status_code=400, detail="Vendor not found")

    data = payload.model_dump(exclude={"sizes"})
    p = Product(company_id=cid, sizes=",".join(payload.sizes), **data)
    db.add(p)
    db.commit()
    db.refresh(p)

    log_audit(db, user_id=user.id, action="CREATE", table_name="products",
              record_id=p.id, company_id=cid, new_values=payload.model_dump(mode="json"))
    return p


@router.get("", response_model=List[ProductOut])
def list_products(
    company_id: Optional[int] = Query(None),
    category: Optional[str] = Query(None),
    vendor_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_company),
):
    cid = company_scope(user, company_id)
    q = db.query(Product).filter(Product.company_id == cid, Product.is_active.is_(True))
    if category:
        q = q.filter(Product.category == category.lower())
    if vendor_id:
        q = q.filter(Product.vendor_id == vendor_id)
    return q.order_by(Product.category.asc(), Product.name.asc()).all()


@router.get("/eligible/{employee_id}", response_model=List[ProductOut])
def list_eligible_products(
    employee_id: int,
    company_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_company),
):
    emp = get_employee_or_404(db, company_scope(user, company_id), employee_id)
    if role_of(user) == Roles.EMPLOYEE and user.employee_id != emp.id:
        raise HTTPException(status_code=404, detail="Employee not found")
    return eligible_products(db, emp)
