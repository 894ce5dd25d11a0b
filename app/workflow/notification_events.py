# app/workflow/notification_events.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.models.notification import WorkflowNotificationMapping
from app.models.user import User
from app.services.notification_queue import enqueue_notification, recipients_for_roles
from app.workflow.engine import (
    ApprovalResult,
    RejectionResult,
    WorkflowActor,
    get_active_workflow,
)
from app.workflow.repository import get_repository

logger = logging.getLogger(__name__)


class WorkflowEvents:
    ORDER_APPROVED_AT_STAGE = "ORDER_APPROVED_AT_STAGE"
    ORDER_FULLY_APPROVED = "ORDER_FULLY_APPROVED"
    GRN_APPROVED = "GRN_APPROVED"
    INVOICE_APPROVED_AT_STAGE = "INVOICE_APPROVED_AT_STAGE"
    INVOICE_FULLY_APPROVED = "INVOICE_FULLY_APPROVED"
    ORDER_REJECTED = "ORDER_REJECTED"
    GRN_REJECTED = "GRN_REJECTED"
    INVOICE_REJECTED = "INVOICE_REJECTED"

    ENTITY_APPROVED = "ENTITY_APPROVED"
    ENTITY_REJECTED = "ENTITY_REJECTED"


_APPROVAL_EVENTS = {
    ("ORDER", False): WorkflowEvents.ORDER_APPROVED_AT_STAGE,
    ("ORDER", True): WorkflowEvents.ORDER_FULLY_APPROVED,
    ("GRN", False): WorkflowEvents.GRN_APPROVED,
    ("GRN", True): WorkflowEvents.GRN_APPROVED,
    ("INVOICE", False): WorkflowEvents.INVOICE_APPROVED_AT_STAGE,
    ("INVOICE", True): WorkflowEvents.INVOICE_FULLY_APPROVED,
}

_REJECTION_EVENTS = {
    "ORDER": WorkflowEvents.ORDER_REJECTED,
    "GRN": WorkflowEvents.GRN_REJECTED,
    "INVOICE": WorkflowEvents.INVOICE_REJECTED,
}

ALL_WORKFLOW_EVENTS = (
    WorkflowEvents.ORDER_APPROVED_AT_STAGE,
    WorkflowEvents.ORDER_FULLY_APPROVED,
    WorkflowEvents.GRN_APPROVED,
    WorkflowEvents.INVOICE_APPROVED_AT_STAGE,
    WorkflowEvents.INVOICE_FULLY_APPROVED,
    WorkflowEvents.ORDER_REJECTED,
    WorkflowEvents.GRN_REJECTED,
    WorkflowEvents.INVOICE_REJECTED,
    WorkflowEvents.ENTITY_APPROVED,
    WorkflowEvents.ENTITY_REJECTED,
)


def approval_event_code(entity_type: str, is_terminal: bool) -> str:
    return _APPROVAL_EVENTS.get((entity_type, is_terminal), WorkflowEvents.ENTITY_APPROVED)


def rejection_event_code(entity_type: str) -> str:
    return _REJECTION_EVENTS.get(entity_type, WorkflowEvents.ENTITY_REJECTED)


def build_approval_payload(
    result: ApprovalResult,
    actor: WorkflowActor,
    *,
    entity_number: Optional[str] = None,
    remarks: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "event_code": approval_event_code(result.entity_type, result.is_terminal),
        "entity_type": result.entity_type,
        "entity_id": result.entity_id,
        "entity_number": entity_number or result.entity_id,
        "stage": result.previous_stage,
        "next_stage": result.new_stage,
        "previous_status": result.previous_status,
        "new_status": result.new_status,
        "is_fully_approved": result.is_terminal,
        "action_by_user_id": actor.user_id,
        "action_by_name": actor.name or "",
        "action_by_role": actor.role,
        "remarks": remarks or "",
        "timestamp": (result.approved_at or datetime.utcnow()).isoformat(),
    }


def build_rejection_payload(
    result: RejectionResult,
    actor: WorkflowActor,
    *,
    entity_number: Optional[str] = None,
    reason_label: Optional[str] = None,
    remarks: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "event_code": rejection_event_code(result.entity_type),
        "entity_type": result.entity_type,
        "entity_id": result.entity_id,
        "entity_number": entity_number or result.entity_id,
        "stage": result.previous_stage,
        "previous_status": result.previous_status,
        "new_status": result.new_status,
        "reason_code": result.reason_code,
        "reason_label": reason_label or result.reason_code,
        "remarks": remarks or "",
        "action_by_user_id": actor.user_id,
        "action_by_name": actor.name or "",
        "action_by_role": actor.role,
        "timestamp": (result.rejected_at or datetime.utcnow()).isoformat(),
    }


# -------------------------
# Recipients
# -------------------------
RECIPIENT_RESOLVERS = (
    "REQUESTOR",
    "ENTITY_OWNER",
    "CURRENT_STAGE_ROLE",
    "NEXT_STAGE_ROLE",
    "ACTION_PERFORMER",
    "COMPANY_ADMIN",
    "LOCATION_ADMIN",
    "FINANCE_ADMIN",
    "VENDOR",
    "CUSTOM",
)

# resolver names that mean "the employee the entity was raised for"
_EMPLOYEE_ALIASES = {"REQUESTOR": "EMPLOYEE", "ENTITY_OWNER": "EMPLOYEE"}


def _as_role(name: str) -> str:
    return _EMPLOYEE_ALIASES.get(name, name)


def _dedupe(values: List[str]) -> List[str]:
    out: List[str] = []
    for v in values:
        if v not in out:
            out.append(v)
    return out


def recipient_roles(*, is_terminal: bool) -> List[str]:
    """Default approval recipients when no mapping is configured."""
    if is_terminal:
        return ["EMPLOYEE", "VENDOR"]
    return ["COMPANY_ADMIN"]


def rejection_recipient_roles(result: RejectionResult) -> List[str]:
    """Default rejection recipients: the stage's notify roles minus its exclusions."""
    excluded = {_as_role(r) for r in result.rejection_config.exclude_from_notification or []}
    return _dedupe([_as_role(r) for r in result.notify_roles if _as_role(r) not in excluded])


@dataclass
class NotificationPlan:
    event_code: str
    roles: List[str]
    custom_emails: List[str] = field(default_factory=list)
    include_action_performer: bool = False
    exclude_action_performer: bool = False
    mapping_id: Optional[str] = None


def find_mappings(
    db: Session,
    *,
    company_id: int,
    entity_type: str,
    event_code: str,
    stage_key: Optional[str],
) -> List[WorkflowNotificationMapping]:
    """
    Active mappings for the event, highest priority first. Company rows
    replace the global (company_id NULL) ones when any exist.
    """
    rows = (
        db.query(WorkflowNotificationMapping)
        .filter(
            WorkflowNotificationMapping.is_active.is_(True),
            WorkflowNotificationMapping.event_code == event_code,
            WorkflowNotificationMapping.entity_type.in_([entity_type, "*"]),
            or_(
                WorkflowNotificationMapping.company_id == company_id,
                WorkflowNotificationMapping.company_id.is_(None),
            ),
        )
        .order_by(WorkflowNotificationMapping.priority.desc(), WorkflowNotificationMapping.id.asc())
        .all()
    )
    rows = [m for m in rows if not m.stage_key or m.stage_key == stage_key]
    own = [m for m in rows if m.company_id == company_id]
    return own or [m for m in rows if m.company_id is None]


def mapping_applies(
    mapping: WorkflowNotificationMapping, *, status: Optional[str], actor_role: str
) -> bool:
    conditions = mapping.conditions or {}
    statuses = conditions.get("entity_statuses") or []
    if statuses and status not in statuses:
        return False
    roles = conditions.get("roles") or []
    if roles and actor_role not in roles:
        return False
    return True


def plan_notifications(
    db: Session,
    *,
    company_id: int,
    entity_type: str,
    event_code: str,
    stage_key: Optional[str],
    status: Optional[str],
    actor_role: str,
    default_roles: List[str],
    current_roles: Optional[List[str]] = None,
    next_roles: Optional[List[str]] = None,
) -> List[NotificationPlan]:
    mappings = find_mappings(db, company_id=company_id, entity_type=entity_type,
                             event_code=event_code, stage_key=stage_key)
    if not mappings:
        return [NotificationPlan(event_code=event_code, roles=list(default_roles))]

    plans: List[NotificationPlan] = []
    for m in mappings:
        if not mapping_applies(m, status=status, actor_role=actor_role):
            logger.debug("Mapping %s skipped for %s: conditions not met", m.mapping_id, event_code)
            continue
        resolvers = list(m.recipient_resolvers or [])
        roles: List[str] = []
        for r in resolvers:
            if r == "CURRENT_STAGE_ROLE":
                roles.extend(current_roles or [])
            elif r == "NEXT_STAGE_ROLE":
                roles.extend(next_roles or [])
            elif r not in ("ACTION_PERFORMER", "CUSTOM"):
                roles.append(_as_role(r))
        plans.append(NotificationPlan(
            event_code=m.template_event_code or event_code,
            roles=_dedupe(roles),
            custom_emails=list(m.custom_recipients or []) if "CUSTOM" in resolvers else [],
            include_action_performer="ACTION_PERFORMER" in resolvers,
            exclude_action_performer=bool(m.exclude_action_performer),
            mapping_id=m.mapping_id,
        ))
    return plans


def dispatch_workflow_notifications(
    db: Session,
    *,
    entity_type: str,
    entity_id: str,
    payload: Dict[str, Any],
    actor: WorkflowActor,
    default_roles: List[str],
    stage_key: Optional[str],
    next_stage_key: Optional[str] = None,
) -> int:
    """
    Queue the notifications for one workflow event. Flushes only; the
    caller commits. Returns the number of queued rows.
    """
    row = get_repository(entity_type).find_row(db, entity_id)
    if row is None:
        return 0
    company_id = row.company_id
    config = get_active_workflow(db, company_id, entity_type)

    def _stage_roles(key: Optional[str]) -> List[str]:
        stage = config.stage_by_key(key) if config else None
        return list(stage.allowed_roles) if stage else []

    plans = plan_notifications(
        db,
        company_id=company_id,
        entity_type=entity_type,
        event_code=payload["event_code"],
        stage_key=stage_key,
        status=payload.get("new_status"),
        actor_role=actor.role,
        default_roles=default_roles,
        current_roles=_stage_roles(stage_key),
        next_roles=_stage_roles(next_stage_key),
    )

    performer = db.get(User, actor.user_id)
    performer_email = performer.email if performer else None
    queued = 0
    for plan in plans:
        recipients = recipients_for_roles(
            db,
            company_id=company_id,
            roles=plan.roles,
            employee_id=getattr(row, "employee_id", None),
            vendor_id=getattr(row, "vendor_id", None),
        )
        if plan.include_action_performer and performer_email:
            recipients.append({"email": performer_email, "type": actor.role})
        recipients.extend({"email": e, "type": "CUSTOM"} for e in plan.custom_emails)

        seen = set()
        for r in recipients:
            email = r["email"]
            if email in seen or (plan.exclude_action_performer and email == performer_email):
                continue
            seen.add(email)
            if enqueue_notification(db, plan.event_code, email, r["type"], payload,
                                    company_id=company_id):
                queued += 1
    logger.info("Queued %s notification(s) for %s %s %s",
                queued, payload["event_code"], entity_type, entity_id)
    return queued
