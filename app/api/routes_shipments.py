# FILE: app/api/routes_shipments.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_vendor
from app.models.user import User
from app.schemas.shipment import ManualShipmentIn, ManualShipmentResult, ShipmentOut
from app.services.audit_logger import log_audit
from app.services.shipment_service import create_manual_shipments, list_vendor_shipments

router = APIRouter()


@router.post("/manual", response_model=ManualShipmentResult)
def create_manual(
    payload: ManualShipmentIn,
    db: Session = Depends(get_db),
    user: User = Depends(require_vendor),
):
    """
    Record a manual dispatch for one or more PRs.
    Per-PR failures come back in `errors`; the rest are still created.
    """
    created, errors = create_manual_shipments(db, vendor_id=user.vendor_id, payload=payload)
    for sh in created:
        log_audit(db, user_id=user.id, action="CREATE", table_name="shipments",
                  record_id=sh.shipment_id, company_id=sh.company_id,
                  new_values={"pr_number": sh.pr_number,
                              "mode_of_transport": sh.mode_of_transport})
    return ManualShipmentResult(
        shipments=[ShipmentOut.model_validate(s) for s in created],
        errors=errors,
    )


@router.get("", response_model=List[ShipmentOut])
def list_shipments(
    db: Session = Depends(get_db),
    user: User = Depends(require_vendor),
):
    return list_vendor_shipments(db, user.vendor_id)
