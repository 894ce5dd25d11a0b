# FILE: app/api/routes_locations.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import company_scope, get_db, require_company, require_roles
from app.core.rbac import Roles
from app.models.company import Location
from app.models.user import User
from app.schemas.company import LocationCreate, LocationOut
from app.services.audit_logger import log_audit

router = APIRouter()


@router.post("", response_model=LocationOut, status_code=201)
def create_location(
    payload: LocationCreate,
    company_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(Roles.COMPANY_ADMIN)),
):
    cid = company_scope(user, company_id)
    loc = Location(company_id=cid, **payload.model_dump())
    db.add(loc)
    db.commit()
    db.refresh(loc)

    log_audit(db, user_id=user.id, action="CREATE", table_name="locations",
              record_id=loc.id, company_id=cid, new_values=payload.model_dump())
    return loc


@router.get("", response_model=List[LocationOut])
def list_locations(
    company_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_company),
):
    cid = company_scope(user, company_id)
    return (
        db.query(Location)
        .filter(Location.company_id == cid)
        .order_by(Location.name.asc())
        .all()
    )
