# FILE: app/api/routes_notifications.py
from __future__ import annotations

import logging
from dataclasses import asdict
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.api.deps import company_scope, get_db, require_roles
from app.api.response import paged
from app.core.config import settings
from app.core.rbac import Roles, role_of
from app.models.notification import (
    NotificationEvent,
    NotificationLog,
    NotificationTemplate,
    WorkflowNotificationMapping,
)
from app.models.order import OrderStatus
from app.models.user import User
from app.schemas.notification import (
    CompanyEventConfigOut,
    CompanyNotificationConfigOut,
    CompanyNotificationConfigUpdate,
    EventConfigUpdate,
    NotificationEventOut,
    NotificationLogOut,
    NotificationSendOut,
    NotificationTemplateCreate,
    NotificationTemplateOut,
    NotificationTemplateUpdate,
    OrderNotificationSend,
    QueueRunOut,
    WorkflowNotificationMappingCreate,
    WorkflowNotificationMappingOut,
    WorkflowNotificationMappingUpdate,
)
from app.services.audit_logger import log_audit
from app.services.company_notification_config import (
    branding,
    get_company_config,
    list_event_configs,
    set_event_config,
    upsert_company_config,
)
from app.services.notification_queue import process_queue
from app.services.notification_service import (
    NotificationError,
    send_order_delivered_notification,
    send_order_status_notification,
    send_po_generated_notification,
)
from app.services.order_service import get_order_or_404
from app.workflow.notification_events import RECIPIENT_RESOLVERS

logger = logging.getLogger(__name__)

router = APIRouter()

_viewer = require_roles(Roles.COMPANY_ADMIN)
_super = require_roles(Roles.SUPER_ADMIN)


def _template_or_404(db: Session, template_id: int) -> NotificationTemplate:
    tpl = db.get(NotificationTemplate, template_id)
    if not tpl:
        raise HTTPException(status_code=404, detail="Template not found")
    return tpl


# -------------------------
# Events
# -------------------------
@router.get("/events", response_model=List[NotificationEventOut])
def list_events(
    db: Session = Depends(get_db),
    user: User = Depends(_viewer),
):
    return db.query(NotificationEvent).order_by(NotificationEvent.event_code.asc()).all()


# -------------------------
# Templates
# -------------------------
@router.get("/templates", response_model=List[NotificationTemplateOut])
def list_templates(
    event_code: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(_viewer),
):
    q = db.query(NotificationTemplate)
    if event_code:
        q = q.join(NotificationEvent, NotificationEvent.id == NotificationTemplate.event_id) \
             .filter(NotificationEvent.event_code == event_code.upper())
    return q.order_by(NotificationTemplate.id.asc()).all()


@router.post("/templates", response_model=NotificationTemplateOut, status_code=201)
def create_template(
    payload: NotificationTemplateCreate,
    db: Session = Depends(get_db),
    user: User = Depends(_super),
):
    ev = (
        db.query(NotificationEvent)
        .filter(NotificationEvent.event_code == payload.event_code.upper())
        .first()
    )
    if not ev:
        raise HTTPException(status_code=400, detail=f"Unknown event {payload.event_code}")

    tpl = NotificationTemplate(
        event_id=ev.id,
        **payload.model_dump(exclude={"event_code"}),
    )
    db.add(tpl)
    db.commit()
    db.refresh(tpl)

    log_audit(db, user_id=user.id, action="CREATE", table_name="notification_templates",
              record_id=tpl.id, new_values=payload.model_dump())
    return tpl


@router.get("/templates/{template_id}", response_model=NotificationTemplateOut)
def get_template(
    template_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(_viewer),
):
    return _template_or_404(db, template_id)


@router.put("/templates/{template_id}", response_model=NotificationTemplateOut)
def update_template(
    template_id: int,
    payload: NotificationTemplateUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(_super),
):
    tpl = _template_or_404(db, template_id)
    data = payload.model_dump(exclude_unset=True)
    for k, v in data.items():
        setattr(tpl, k, v)
    db.commit()
    db.refresh(tpl)

    log_audit(db, user_id=user.id, action="UPDATE", table_name="notification_templates",
              record_id=tpl.id, new_values=data)
    return tpl


@router.delete("/templates/{template_id}", status_code=204)
def delete_template(
    template_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(_super),
):
    tpl = _template_or_404(db, template_id)
    db.delete(tpl)
    db.commit()
    log_audit(db, user_id=user.id, action="DELETE", table_name="notification_templates",
              record_id=template_id)


# -------------------------
# Logs
# -------------------------
@router.get("/logs")
def list_logs(
    status: Optional[str] = Query(None),
    event_code: Optional[str] = Query(None),
    recipient: Optional[str] = Query(None),
    company_id: Optional[int] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    user: User = Depends(_viewer),
):
    """Company admins see their own company's logs; super admins see all unless filtered."""
    q = db.query(NotificationLog)
    if role_of(user) == Roles.SUPER_ADMIN:
        if company_id:
            q = q.filter(NotificationLog.company_id == company_id)
    else:
        q = q.filter(NotificationLog.company_id == company_scope(user, company_id))
    if status:
        q = q.filter(NotificationLog.status == status.upper())
    if event_code:
        q = q.filter(NotificationLog.event_code == event_code.upper())
    if recipient:
        q = q.filter(NotificationLog.recipient_email.ilike(f"%{recipient}%"))

    total = q.count()
    rows = q.order_by(NotificationLog.id.desc()).offset(offset).limit(limit).all()
    items = [NotificationLogOut.model_validate(r) for r in rows]
    return paged(items, total=total, limit=limit, offset=offset)


# -------------------------
# Queue
# -------------------------
@router.post("/process-queue", response_model=QueueRunOut)
def run_queue(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    db: Session = Depends(get_db),
    user: User = Depends(_super),
):
    counts = process_queue(db, limit=limit)
    logger.info("Queue processed on demand by user %s: %s", user.id, counts)
    return QueueRunOut(**counts)


# -------------------------
# Send now
# -------------------------
_ORDER_SENDERS = {
    "STATUS": send_order_status_notification,
    "PO": send_po_generated_notification,
    "DELIVERED": send_order_delivered_notification,
}


@router.post("/orders/{order_ref}/send", response_model=NotificationSendOut)
def send_order_notification_now(
    order_ref: str,
    payload: OrderNotificationSend,
    company_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(_viewer),
):
    """Send an order notification immediately, bypassing the queue."""
    order = get_order_or_404(db, company_scope(user, company_id), order_ref)
    if payload.kind == "PO" and not order.po_number:
        raise HTTPException(status_code=400, detail="Order has no PO yet")
    if payload.kind == "DELIVERED" and order.status != OrderStatus.DELIVERED:
        raise HTTPException(status_code=400, detail="Order is not delivered")

    try:
        result = _ORDER_SENDERS[payload.kind](db, order)
    except NotificationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    log_audit(db, user_id=user.id, action="SEND", table_name="notification_logs",
              record_id=result.log_id, company_id=order.company_id,
              new_values={"order": order.order_number, "kind": payload.kind, "status": result.status})
    return NotificationSendOut(**asdict(result))


# -------------------------
# Company config
# -------------------------
def _config_out(db: Session, company_id: int) -> CompanyNotificationConfigOut:
    config = get_company_config(db, company_id)
    if config is None:
        brand = branding(None)
        return CompanyNotificationConfigOut(
            company_id=company_id,
            notifications_enabled=True,
            event_configs=[],
            brand_name=brand["brand_name"],
            brand_color=brand["brand_color"],
            quiet_hours_enabled=False,
            quiet_hours_timezone=settings.NOTIFICATION_TIMEZONE,
        )
    return CompanyNotificationConfigOut.model_validate(config)


@router.get("/company-config", response_model=CompanyNotificationConfigOut)
def read_company_config(
    company_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(_viewer),
):
    return _config_out(db, company_scope(user, company_id))


@router.put("/company-config", response_model=CompanyNotificationConfigOut)
def update_company_config(
    payload: CompanyNotificationConfigUpdate,
    company_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(_viewer),
):
    cid = company_scope(user, company_id)
    data = payload.model_dump(exclude_unset=True)
    if "quiet_hours_timezone" in data and data["quiet_hours_timezone"]:
        try:
            ZoneInfo(data["quiet_hours_timezone"])
        except (ZoneInfoNotFoundError, ValueError):
            raise HTTPException(status_code=400,
                                detail=f"Unknown timezone {data['quiet_hours_timezone']}")
    upsert_company_config(db, cid, data, user.id)

    log_audit(db, user_id=user.id, action="UPDATE", table_name="company_notification_configs",
              record_id=cid, company_id=cid, new_values=data)
    return _config_out(db, cid)


@router.get("/company-config/events", response_model=List[CompanyEventConfigOut])
def read_company_event_configs(
    company_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(_viewer),
):
    return list_event_configs(db, company_scope(user, company_id))


@router.put("/company-config/events/{event_code}", response_model=CompanyNotificationConfigOut)
def update_company_event_config(
    event_code: str,
    payload: EventConfigUpdate,
    company_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(_viewer),
):
    cid = company_scope(user, company_id)
    code = event_code.upper()
    if not db.query(NotificationEvent).filter(NotificationEvent.event_code == code).first():
        raise HTTPException(status_code=404, detail=f"Unknown event {code}")

    data = payload.model_dump(exclude_unset=True)
    set_event_config(db, cid, code, data, user.id)
    log_audit(db, user_id=user.id, action="UPDATE", table_name="company_notification_configs",
              record_id=cid, company_id=cid, new_values={"event_code": code, **data})
    return _config_out(db, cid)


# -------------------------
# Workflow notification mappings
# -------------------------
def _check_mapping_refs(db: Session, resolvers: Optional[List[str]], template_event_code: Optional[str]) -> None:
    unknown = [r for r in resolvers or [] if r not in RECIPIENT_RESOLVERS]
    if unknown:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown recipient resolvers {unknown}; expected one of {list(RECIPIENT_RESOLVERS)}",
        )
    if template_event_code:
        exists = (
            db.query(NotificationEvent.id)
            .filter(NotificationEvent.event_code == template_event_code.upper())
            .first()
        )
        if not exists:
            raise HTTPException(status_code=400, detail=f"Unknown event {template_event_code}")


def _mapping_or_404(
    db: Session, user: User, mapping_id: str, *, write: bool = False
) -> WorkflowNotificationMapping:
    m = (
        db.query(WorkflowNotificationMapping)
        .filter(WorkflowNotificationMapping.mapping_id == mapping_id)
        .first()
    )
    if not m:
        raise HTTPException(status_code=404, detail="Mapping not found")
    if role_of(user) == Roles.SUPER_ADMIN:
        return m
    if m.company_id is None:
        if write:
            raise HTTPException(status_code=403, detail="Global mappings are managed by super admins")
        return m
    if m.company_id != user.company_id:
        raise HTTPException(status_code=404, detail="Mapping not found")
    return m


@router.get("/workflow-mappings", response_model=List[WorkflowNotificationMappingOut])
def list_workflow_mappings(
    event_code: Optional[str] = Query(None),
    company_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(_viewer),
):
    """The company's own mappings plus the global ones."""
    cid = company_scope(user, company_id)
    q = db.query(WorkflowNotificationMapping).filter(
        or_(
            WorkflowNotificationMapping.company_id == cid,
            WorkflowNotificationMapping.company_id.is_(None),
        )
    )
    if event_code:
        q = q.filter(WorkflowNotificationMapping.event_code == event_code.upper())
    return q.order_by(
        WorkflowNotificationMapping.event_code.asc(),
        WorkflowNotificationMapping.priority.desc(),
        WorkflowNotificationMapping.id.asc(),
    ).all()


@router.post("/workflow-mappings", response_model=WorkflowNotificationMappingOut, status_code=201)
def create_workflow_mapping(
    payload: WorkflowNotificationMappingCreate,
    company_id: Optional[int] = Query(None),
    global_mapping: bool = Query(False),
    db: Session = Depends(get_db),
    user: User = Depends(_viewer),
):
    if global_mapping:
        if role_of(user) != Roles.SUPER_ADMIN:
            raise HTTPException(status_code=403, detail="Global mappings are managed by super admins")
        cid = None
    else:
        cid = company_scope(user, company_id)

    _check_mapping_refs(db, payload.recipient_resolvers, payload.template_event_code)
    exists = (
        db.query(WorkflowNotificationMapping.id)
        .filter(WorkflowNotificationMapping.mapping_id == payload.mapping_id)
        .first()
    )
    if exists:
        raise HTTPException(status_code=409, detail=f"Mapping {payload.mapping_id} already exists")

    data = payload.model_dump()
    if data.get("template_event_code"):
        data["template_event_code"] = data["template_event_code"].upper()
    m = WorkflowNotificationMapping(company_id=cid, **data)
    db.add(m)
    db.commit()
    db.refresh(m)

    logger.info("Notification mapping %s created for company %s by user %s",
                m.mapping_id, cid, user.id)
    log_audit(db, user_id=user.id, action="CREATE", table_name="workflow_notification_mappings",
              record_id=m.mapping_id, company_id=cid, new_values=payload.model_dump())
    return m


@router.put("/workflow-mappings/{mapping_id}", response_model=WorkflowNotificationMappingOut)
def update_workflow_mapping(
    mapping_id: str,
    payload: WorkflowNotificationMappingUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(_viewer),
):
    m = _mapping_or_404(db, user, mapping_id, write=True)
    data = payload.model_dump(exclude_unset=True)
    _check_mapping_refs(db, data.get("recipient_resolvers"), data.get("template_event_code"))
    if data.get("template_event_code"):
        data["template_event_code"] = data["template_event_code"].upper()
    for k, v in data.items():
        setattr(m, k, v)
    db.commit()
    db.refresh(m)

    log_audit(db, user_id=user.id, action="UPDATE", table_name="workflow_notification_mappings",
              record_id=m.mapping_id, company_id=m.company_id, new_values=data)
    return m


@router.delete("/workflow-mappings/{mapping_id}", status_code=204)
def delete_workflow_mapping(
    mapping_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(_viewer),
):
    m = _mapping_or_404(db, user, mapping_id, write=True)
    cid = m.company_id
    db.delete(m)
    db.commit()
    log_audit(db, user_id=user.id, action="DELETE", table_name="workflow_notification_mappings",
              record_id=mapping_id, company_id=cid)
