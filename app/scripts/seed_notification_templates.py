# FILE: app/scripts/seed_notification_templates.py
"""
Seed notification events and their default English templates.
Safe to run repeatedly: existing events / templates are left untouched.

  python -m app.scripts.seed_notification_templates
"""
from __future__ import annotations

import argparse
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.models.notification import NotificationEvent, NotificationTemplate
from app.services.notification_service import NotificationEvents
from app.workflow.notification_events import WorkflowEvents

# event_code -> (description, priority, subject, body)
DEFAULT_EVENTS: Dict[str, Tuple[str, str, str, str]] = {
    NotificationEvents.ORDER_STATUS_CHANGED: (
        "Order status changed",
        "MEDIUM",
        "Order {{order_id}} is now {{status}}",
        "Hello {{employee_name}},\n\n"
        "Your uniform order {{order_id}} is now: {{status}}.\n"
        "Items: {{item_count}}  Total: {{total}}\n"
        "Estimated delivery: {{estimated_delivery_time}}\n\n"
        "{{company_name}}",
    ),
    NotificationEvents.PO_GENERATED: (
        "Purchase order generated for an approved order",
        "HIGH",
        "PO {{po_number}} raised for order {{order_id}}",
        "Dear {{vendor_name}},\n\n"
        "Purchase order {{po_number}} (PR {{pr_number}}) has been raised for "
        "{{employee_name}} ({{employee_code}}).\n"
        "Items: {{item_count}}  Total: {{total}}\n\n"
        "Please dispatch at the earliest.\n\n{{company_name}}",
    ),
    NotificationEvents.ORDER_MARKED_DELIVERED: (
        "Order delivered",
        "MEDIUM",
        "Order {{order_id}} delivered",
        "Hello {{employee_name}},\n\n"
        "Your order {{order_id}} was delivered on {{delivered_date}}.\n"
        "Received by: {{received_by}}\n\n{{company_name}}",
    ),
}

_APPROVAL_SUBJECT = "{{entity_type}} {{entity_number}} approved ({{new_status}})"
_APPROVAL_BODY = (
    "{{entity_type}} {{entity_number}} was approved at stage {{stage}} "
    "by {{action_by_name}} ({{action_by_role}}).\n"
    "Status: {{previous_status}} -> {{new_status}}\n"
    "Remarks: {{remarks}}"
)
_REJECTION_SUBJECT = "{{entity_type}} {{entity_number}} rejected"
_REJECTION_BODY = (
    "{{entity_type}} {{entity_number}} was rejected at stage {{stage}} "
    "by {{action_by_name}} ({{action_by_role}}).\n"
    "Reason: {{reason_label}} ({{reason_code}})\n"
    "Remarks: {{remarks}}"
)

for _code in (
    WorkflowEvents.ORDER_APPROVED_AT_STAGE,
    WorkflowEvents.ORDER_FULLY_APPROVED,
    WorkflowEvents.GRN_APPROVED,
    WorkflowEvents.INVOICE_APPROVED_AT_STAGE,
    WorkflowEvents.INVOICE_FULLY_APPROVED,
    WorkflowEvents.ENTITY_APPROVED,
):
    DEFAULT_EVENTS[_code] = (
        _code.replace("_", " ").capitalize(), "MEDIUM", _APPROVAL_SUBJECT, _APPROVAL_BODY)

for _code in (
    WorkflowEvents.ORDER_REJECTED,
    WorkflowEvents.GRN_REJECTED,
    WorkflowEvents.INVOICE_REJECTED,
    WorkflowEvents.ENTITY_REJECTED,
):
    DEFAULT_EVENTS[_code] = (
        _code.replace("_", " ").capitalize(), "HIGH", _REJECTION_SUBJECT, _REJECTION_BODY)


def seed_notifications(db: Session) -> Dict[str, int]:
    stats = {"events": 0, "templates": 0}
    for code, (description, priority, subject, body) in DEFAULT_EVENTS.items():
        ev = db.query(NotificationEvent).filter(NotificationEvent.event_code == code).first()
        if ev is None:
            ev = NotificationEvent(event_code=code, description=description,
                                   default_priority=priority, is_active=True)
            db.add(ev)
            db.flush()
            stats["events"] += 1

        has_template = (
            db.query(NotificationTemplate.id)
            .filter(NotificationTemplate.event_id == ev.id, NotificationTemplate.language == "en")
            .first()
        )
        if not has_template:
            db.add(NotificationTemplate(
                event_id=ev.id,
                template_name=f"{code} (default)",
                subject_template=subject,
                body_template=body,
                language="en",
                is_active=True,
            ))
            stats["templates"] += 1
    db.commit()
    return stats


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Seed notification events and templates.")
    parser.parse_args(argv)

    db = SessionLocal()
    try:
        stats = seed_notifications(db)
        print(f"Notification seed done: {stats['events']} events, {stats['templates']} templates added")
    finally:
        db.close()


if __name__ == "__main__":
    main()
