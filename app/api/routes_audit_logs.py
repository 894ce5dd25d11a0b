# FILE: app/api/routes_audit_logs.py
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import company_scope, get_db, require_roles
from app.core.rbac import Roles, is_super_admin
from app.models.audit import AuditLog
from app.models.user import User
from app.schemas.audit import AuditLogOut

router = APIRouter()


@router.get("", response_model=List[AuditLogOut])
def list_audit_logs(
    table_name: Optional[str] = Query(None, description="Table name, e.g. 'orders'"),
    record_id: Optional[str] = Query(None, description="Record id / public number in that table"),
    user_id: Optional[int] = Query(None, description="User who performed the action"),
    action: Optional[str] = Query(None, description="CREATE / UPDATE / DELETE / APPROVE / REJECT"),
    company_id: Optional[int] = Query(None),
    from_date: Optional[date] = Query(None, description="created_at >= from_date"),
    to_date: Optional[date] = Query(None, description="created_at <= to_date"),
    limit: int = Query(30, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(Roles.COMPANY_ADMIN)),
):
    """
    GET /api/v1/audit-logs?table_name=orders&record_id=ORD-...&limit=30
    """
    qry = db.query(AuditLog)

    # super admins see everything unless they narrow to a company
    if not is_super_admin(user) or company_id:
        qry = qry.filter(AuditLog.company_id == company_scope(user, company_id))

    if table_name:
        qry = qry.filter(AuditLog.table_name == table_name)
    if record_id is not None:
        qry = qry.filter(AuditLog.record_id == record_id)
    if user_id is not None:
        qry = qry.filter(AuditLog.user_id == user_id)
    if action:
        qry = qry.filter(AuditLog.action == action.upper())

    if from_date:
        start_dt = datetime.combine(from_date, datetime.min.time())
        qry = qry.filter(AuditLog.created_at >= start_dt)
    if to_date:
        end_dt = datetime.combine(to_date + timedelta(days=1), datetime.min.time())
        qry = qry.filter(AuditLog.created_at < end_dt)

    logs = qry.order_by(AuditLog.id.desc()).offset(offset).limit(limit).all()
    return [AuditLogOut.model_validate(l, from_attributes=True) for l in logs]
