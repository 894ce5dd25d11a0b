# FILE: app/services/notification_service.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.emailer import send_email
from app.models.notification import NotificationEvent, NotificationLog, NotificationTemplate
from app.models.order import Order
from app.services.company_notification_config import (
    branding,
    get_company_config,
    is_event_enabled,
    template_override,
)
from app.utils.ids import generate_audit_id

logger = logging.getLogger(__name__)


class NotificationError(RuntimeError):
    """Missing event / template / recipient."""


class NotificationEvents:
    ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED"
    PO_GENERATED = "PO_GENERATED"
    ORDER_MARKED_DELIVERED = "ORDER_MARKED_DELIVERED"


# -------------------------
# Rendering
# -------------------------
_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")

# HTML wrapper only; admin-edited subject/body text never reaches Jinja
TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates" / "email"
_email_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
)


def render_template(text: str, context: Optional[Dict[str, Any]]) -> str:
    """Replace {{key}}; unknown keys stay as the literal placeholder."""
    if not text:
        return ""
    ctx = context or {}
    missing = []

    def _sub(m: "re.Match[str]") -> str:
        key = m.group(1)
        if key not in ctx:
            missing.append(key)
            return m.group(0)
        value = ctx[key]
        return "" if value is None else str(value)

    out = _PLACEHOLDER.sub(_sub, text)
    if missing:
        logger.warning("Template placeholders without values: %s", ", ".join(sorted(set(missing))))
    return out


def render_email_html(subject: str, body: str, brand: Dict[str, str]) -> str:
    paragraphs = [p.strip() for p in (body or "").split("\n\n") if p.strip()]
    return _email_env.get_template("notification.html").render(
        subject=subject, paragraphs=paragraphs, **brand)


# -------------------------
# Lookup
# -------------------------
def get_active_event(db: Session, event_code: str) -> NotificationEvent:
    ev = (
        db.query(NotificationEvent)
        .filter(NotificationEvent.event_code == event_code)
        .first()
    )
    if not ev:
        raise NotificationError(f"Notification event {event_code} not found")
    if not ev.is_active:
        raise NotificationError(f"Notification event {event_code} is inactive")
    return ev


def get_active_template(
    db: Session, event: NotificationEvent, language: str = "en"
) -> NotificationTemplate:
    tpl = (
        db.query(NotificationTemplate)
        .filter(
            NotificationTemplate.event_id == event.id,
            NotificationTemplate.language == language,
            NotificationTemplate.is_active.is_(True),
        )
        .order_by(NotificationTemplate.id.desc())
        .first()
    )
    if not tpl:
        raise NotificationError(f"No active template for event {event.event_code} ({language})")
    return tpl


# -------------------------
# Send
# -------------------------
@dataclass
class NotificationResult:
    log_id: str
    status: str  # SENT / FAILED / REJECTED
    subject: str
    provider_message_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.status == "REJECTED"


def _is_duplicate(
    db: Session,
    event: NotificationEvent,
    recipient_email: str,
    context: Dict[str, Any],
) -> bool:
    order_id = str(context.get("order_id") or "")
    if not order_id:
        return False
    status = str(context.get("status") or "")

    since = datetime.utcnow() - timedelta(minutes=settings.NOTIFICATION_DUPLICATE_WINDOW_MINUTES)
    recent = (
        db.query(NotificationLog.subject)
        .filter(
            NotificationLog.event_id == event.id,
            NotificationLog.recipient_email == recipient_email,
            NotificationLog.status == "SENT",
            NotificationLog.sent_at >= since,
        )
        .all()
    )
    for (subject,) in recent:
        subject = subject or ""
        if order_id in subject and (not status or status in subject):
            return True
    return False


def _write_log(
    db: Session,
    *,
    log_id: str,
    event: NotificationEvent,
    recipient_email: str,
    recipient_type: str,
    subject: str,
    status: str,
    queue_id: Optional[int] = None,
    company_id: Optional[int] = None,
    error_message: Optional[str] = None,
    provider_message_id: Optional[str] = None,
) -> NotificationLog:
    row = NotificationLog(
        log_id=log_id,
        queue_id=queue_id,
        company_id=company_id,
        event_id=event.id,
        event_code=event.event_code,
        recipient_email=recipient_email,
        recipient_type=recipient_type,
        subject=(subject or "")[:500],
        status=status,
        error_message=error_message[:1000] if error_message else None,
        provider_message_id=provider_message_id,
        sent_at=datetime.utcnow(),
    )
    db.add(row)
    db.commit()
    return row


def send_notification(
    db: Session,
    event_code: str,
    recipient_email: Optional[str],
    recipient_type: str,
    context: Optional[Dict[str, Any]] = None,
    *,
    queue_id: Optional[int] = None,
    company_id: Optional[int] = None,
) -> NotificationResult:
    """
    Resolve event + template, render, de-duplicate and send over SMTP.

    With a company_id the company's switches, template overrides and
    branding apply; a disabled event is logged REJECTED and skipped.

    Raises NotificationError when the event, template or recipient is
    missing. SMTP failures do not raise: they come back as a FAILED
    result (and a FAILED log row) so the queue can retry.
    """
    if not (recipient_email or "").strip():
        raise NotificationError(f"No recipient email for event {event_code}")
    recipient_email = recipient_email.strip()
    ctx = dict(context or {})

    event = get_active_event(db, event_code)
    template = get_active_template(db, event)
    company_config = get_company_config(db, company_id)
    custom_subject, custom_body = template_override(company_config, event_code)

    subject = render_template(custom_subject or template.subject_template, ctx)
    body = render_template(custom_body or template.body_template, ctx)
    log_id = generate_audit_id("NOTIF")

    def _log(status: str, **extra: Any) -> None:
        _write_log(
            db,
            log_id=log_id,
            event=event,
            recipient_email=recipient_email,
            recipient_type=recipient_type,
            subject=subject,
            status=status,
            queue_id=queue_id,
            company_id=company_id,
            **extra,
        )

    if not is_event_enabled(company_config, event_code):
        logger.info("[%s] %s disabled for company %s", log_id, event_code, company_id)
        _log("REJECTED", error_message="EVENT_DISABLED")
        return NotificationResult(log_id=log_id, status="REJECTED", subject=subject,
                                  error="EVENT_DISABLED")

    if _is_duplicate(db, event, recipient_email, ctx):
        logger.info("[%s] duplicate %s to %s skipped", log_id, event_code, recipient_email)
        _log("REJECTED", error_message="DUPLICATE_SKIPPED")
        return NotificationResult(log_id=log_id, status="REJECTED", subject=subject,
                                  error="DUPLICATE_SKIPPED")

    html = render_email_html(subject, body, branding(company_config))
    try:
        message_id = send_email(recipient_email, subject, body, html=html)
    except Exception as e:
        logger.exception("[%s] sending %s to %s failed", log_id, event_code, recipient_email)
        _log("FAILED", error_message=str(e))
        return NotificationResult(log_id=log_id, status="FAILED", subject=subject, error=str(e))

    _log("SENT", provider_message_id=message_id)
    logger.info("[%s] %s sent to %s", log_id, event_code, recipient_email)
    return NotificationResult(log_id=log_id, status="SENT", subject=subject,
                              provider_message_id=message_id)


# -------------------------
# Order helpers
# -------------------------
def build_order_context(order: Order, **extra: Any) -> Dict[str, Any]:
    emp = order.employee
    vendor = order.vendor
    ctx: Dict[str, Any] = {
        "order_id": order.order_number,
        "pr_number": order.pr_number or "",
        "po_number": order.po_number or "",
        "status": order.status,
        "unified_status": order.unified_status or "",
        "employee_name": emp.full_name if emp else "",
        "employee_code": emp.employee_code if emp else "",
        "vendor_name": vendor.name if vendor else "",
        "total": f"{float(order.total or 0):.2f}",
        "item_count": len(order.items or []),
        "estimated_delivery_time": order.estimated_delivery_time,
        "company_name": settings.PROJECT_NAME,
    }
    ctx.update(extra)
    return ctx


def send_order_status_notification(db: Session, order: Order) -> NotificationResult:
    email = order.employee.email if order.employee else None
    return send_notification(
        db,
        NotificationEvents.ORDER_STATUS_CHANGED,
        email,
        "EMPLOYEE",
        build_order_context(order),
        company_id=order.company_id,
    )


def send_po_generated_notification(db: Session, order: Order) -> NotificationResult:
    email = order.vendor.email if order.vendor else None
    return send_notification(
        db,
        NotificationEvents.PO_GENERATED,
        email,
        "VENDOR",
        build_order_context(order),
        company_id=order.company_id,
    )


def send_order_delivered_notification(db: Session, order: Order) -> NotificationResult:
    email = order.employee.email if order.employee else None
    return send_notification(
        db,
        NotificationEvents.ORDER_MARKED_DELIVERED,
        email,
        "EMPLOYEE",
        build_order_context(
            order,
            delivered_date=order.delivered_date.strftime("%d %b %Y") if order.delivered_date else "",
            received_by=order.received_by or "",
        ),
        company_id=order.company_id,
    )
