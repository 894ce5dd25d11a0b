# FILE: app/services/notification_queue.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.employee import Employee
from app.models.notification import NotificationQueue
from app.models.order import Order
from app.models.user import User
from app.models.vendor import Vendor
from app.services.company_notification_config import (
    get_company_config,
    is_event_enabled,
    quiet_hours_end,
)
from app.services.notification_service import (
    NotificationError,
    build_order_context,
    send_notification,
)

logger = logging.getLogger(__name__)


def enqueue_notification(
    db: Session,
    event_code: str,
    recipient_email: Optional[str],
    recipient_type: str,
    context: Optional[Dict[str, Any]] = None,
    *,
    company_id: Optional[int] = None,
    delay_seconds: int = 0,
    now: Optional[datetime] = None,
) -> Optional[NotificationQueue]:
    """
    Add a PENDING row. Flushes only; the caller owns the transaction.
    Returns None (and logs) when there is nobody to send to or the
    company switched the event off. Rows created inside the company's
    quiet hours become due when the quiet hours end.
    """
    email = (recipient_email or "").strip()
    if not email:
        logger.warning("Not queueing %s: no %s recipient email", event_code, recipient_type)
        return None

    config = get_company_config(db, company_id)
    if not is_event_enabled(config, event_code):
        logger.info("Not queueing %s: disabled for company %s", event_code, company_id)
        return None

    due = (now or datetime.utcnow()) + timedelta(seconds=delay_seconds)
    quiet_until = quiet_hours_end(config, due)
    if quiet_until is not None:
        logger.info("Company %s in quiet hours; %s to %s held until %s",
                    company_id, event_code, email, quiet_until)
        due = quiet_until

    row = NotificationQueue(
        company_id=company_id,
        event_code=event_code,
        recipient_email=email,
        recipient_type=recipient_type,
        context=context or {},
        status="PENDING",
        attempts=0,
        max_attempts=settings.NOTIFICATION_MAX_ATTEMPTS,
        next_attempt_at=due,
    )
    db.add(row)
    db.flush()
    return row


def enqueue_order_notification(
    db: Session, event_code: str, order: Order, *, recipient_type: str = "EMPLOYEE", **extra: Any
) -> Optional[NotificationQueue]:
    if recipient_type == "VENDOR":
        email = order.vendor.email if order.vendor else None
    else:
        email = order.employee.email if order.employee else None
    return enqueue_notification(
        db, event_code, email, recipient_type, build_order_context(order, **extra),
        company_id=order.company_id,
    )


def recipients_for_roles(
    db: Session,
    *,
    company_id: int,
    roles: Iterable[str],
    employee_id: Optional[int] = None,
    vendor_id: Optional[int] = None,
) -> List[Dict[str, str]]:
    """
    Resolve workflow recipient roles to (email, type) pairs.
    EMPLOYEE -> the requesting employee, VENDOR -> the entity's vendor,
    any admin role -> active users with that role in the company.
    """
    out: List[Dict[str, str]] = []
    seen = set()

    def _add(email: Optional[str], rtype: str) -> None:
        if email and email not in seen:
            seen.add(email)
            out.append({"email": email, "type": rtype})

    for role in roles:
        if role == "EMPLOYEE":
            if employee_id:
                emp = db.get(Employee, employee_id)
                _add(emp.email if emp else None, role)
        elif role == "VENDOR":
            if vendor_id:
                vendor = db.get(Vendor, vendor_id)
                _add(vendor.email if vendor else None, role)
        else:
            users = (
                db.query(User)
                .filter(
                    User.company_id == company_id,
                    User.role == role,
                    User.is_active.is_(True),
                )
                .all()
            )
            for u in users:
                _add(u.email, role)
    return out


# -------------------------
# Processing
# -------------------------
def _due_rows(db: Session, now: datetime, limit: int) -> List[NotificationQueue]:
    return (
        db.query(NotificationQueue)
        .filter(
            NotificationQueue.status == "PENDING",
            NotificationQueue.next_attempt_at <= now,
        )
        .order_by(NotificationQueue.next_attempt_at.asc(), NotificationQueue.id.asc())
        .limit(limit)
        .all()
    )


def _record_failure(row: NotificationQueue, error: str, now: datetime, counts: Dict[str, int]) -> None:
    row.attempts = int(row.attempts or 0) + 1
    row.last_error = (error or "")[:1000]
    if row.attempts >= int(row.max_attempts or settings.NOTIFICATION_MAX_ATTEMPTS):
        row.status = "FAILED"
        counts["failed"] += 1
        logger.warning("Notification %s failed permanently after %s attempts: %s",
                       row.id, row.attempts, error)
    else:
        # linear backoff
        row.status = "PENDING"
        row.next_attempt_at = now + timedelta(
            seconds=settings.NOTIFICATION_RETRY_BACKOFF_SECONDS * row.attempts)
        counts["retried"] += 1
        logger.info("Notification %s retry %s scheduled at %s",
                    row.id, row.attempts, row.next_attempt_at)


def process_queue(
    db: Session, *, limit: Optional[int] = None, now: Optional[datetime] = None
) -> Dict[str, int]:
    now = now or datetime.utcnow()
    limit = limit or settings.NOTIFICATION_QUEUE_BATCH
    counts = {"processed": 0, "sent": 0, "failed": 0, "retried": 0, "skipped": 0}

    rows = _due_rows(db, now, limit)
    for row in rows:
        row.status = "PROCESSING"
        db.commit()
        counts["processed"] += 1

        try:
            result = send_notification(
                db,
                row.event_code,
                row.recipient_email,
                row.recipient_type,
                row.context or {},
                queue_id=row.id,
                company_id=row.company_id,
            )
        except NotificationError as e:
            # config problem, retrying will not help
            row.attempts = int(row.attempts or 0) + 1
            row.last_error = str(e)[:1000]
            row.status = "FAILED"
            counts["failed"] += 1
            logger.warning("Notification %s not sendable: %s", row.id, e)
            db.commit()
            continue
        except Exception as e:
            # one broken row must not stall the batch or stay PROCESSING
            db.rollback()
            logger.exception("Notification %s crashed while sending", row.id)
            _record_failure(row, f"{type(e).__name__}: {e}", now, counts)
            db.commit()
            continue

        if result.status == "SENT":
            row.status = "SENT"
            row.attempts = int(row.attempts or 0) + 1
            row.last_error = None
            counts["sent"] += 1
        elif result.skipped:
            row.status = "SENT"
            row.last_error = result.error
            counts["skipped"] += 1
        else:
            _record_failure(row, result.error or "send failed", now, counts)
        db.commit()

    if rows:
        logger.info("Notification queue run: %s", counts)
    return counts
