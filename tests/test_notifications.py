import smtplib
from datetime import datetime, timedelta

import pytest

from app.models.notification import (
    NotificationEvent,
    NotificationLog,
    NotificationQueue,
    NotificationTemplate,
)
from app.services.notification_queue import (
    enqueue_notification,
    process_queue,
    recipients_for_roles,
)
from app.services.notification_service import (
    NotificationError,
    render_template,
    send_notification,
)


def test_render_keeps_unknown_placeholders():
    out = render_template("Hi {{name}}, order {{order_id}} is {{status}}",
                          {"name": "Asha", "status": None})

    assert out == "Hi Asha, order {{order_id}} is "


def test_render_empty_template():
    assert render_template("", {"a": 1}) == ""


def test_seed_is_idempotent(db, notifications):
    from app.scripts.seed_notification_templates import seed_notifications

    assert notifications["events"] > 0
    assert notifications["templates"] == notifications["events"]
    assert seed_notifications(db) == {"events": 0, "templates": 0}


def test_send_renders_and_logs(db, notifications, sent_emails):
    result = send_notification(
        db, "ORDER_STATUS_CHANGED", "asha@acme.test", "EMPLOYEE",
        {"order_id": "ORD-1", "status": "Dispatched", "employee_name": "Asha"},
    )

    assert result.status == "SENT"
    assert result.subject == "Order ORD-1 is now Dispatched"
    assert sent_emails[0]["to"] == "asha@acme.test"
    assert "Hello Asha" in sent_emails[0]["body"]

    log = db.query(NotificationLog).one()
    assert log.status == "SENT"
    assert log.log_id == result.log_id
    assert log.log_id.startswith("NOTIF-")
    assert log.provider_message_id == result.provider_message_id


def test_duplicate_within_window_is_skipped(db, notifications, sent_emails):
    ctx = {"order_id": "ORD-7", "status": "Dispatched"}
    send_notification(db, "ORDER_STATUS_CHANGED", "asha@acme.test", "EMPLOYEE", ctx)
    again = send_notification(db, "ORDER_STATUS_CHANGED", "asha@acme.test", "EMPLOYEE", ctx)

    assert again.skipped
    assert again.error == "DUPLICATE_SKIPPED"
    assert len(sent_emails) == 1

    other_status = send_notification(db, "ORDER_STATUS_CHANGED", "asha@acme.test", "EMPLOYEE",
                                     {"order_id": "ORD-7", "status": "Delivered"})
    assert other_status.status == "SENT"


def test_missing_event_or_recipient(db, notifications):
    with pytest.raises(NotificationError):
        send_notification(db, "NO_SUCH_EVENT", "a@b.test", "EMPLOYEE", {})
    with pytest.raises(NotificationError):
        send_notification(db, "ORDER_STATUS_CHANGED", "  ", "EMPLOYEE", {})


def test_inactive_template(db, notifications):
    db.query(NotificationTemplate).update({"is_active": False})
    db.commit()

    with pytest.raises(NotificationError):
        send_notification(db, "ORDER_STATUS_CHANGED", "a@b.test", "EMPLOYEE", {})


def test_smtp_failure_returns_failed(db, notifications, monkeypatch):
    def _boom(*args, **kwargs):
        raise smtplib.SMTPException("relay down")

    monkeypatch.setattr("app.services.notification_service.send_email", _boom)

    result = send_notification(db, "PO_GENERATED", "orders@unifab.test", "VENDOR",
                               {"po_number": "PO1", "order_id": "ORD-1"})

    assert result.status == "FAILED"
    assert "relay down" in result.error
    assert db.query(NotificationLog).one().status == "FAILED"


def test_enqueue_without_recipient_is_dropped(db):
    assert enqueue_notification(db, "ORDER_STATUS_CHANGED", None, "EMPLOYEE", {}) is None
    assert db.query(NotificationQueue).count() == 0


def test_queue_sends_due_rows(db, notifications, sent_emails):
    enqueue_notification(db, "ORDER_STATUS_CHANGED", "asha@acme.test", "EMPLOYEE",
                         {"order_id": "ORD-9", "status": "Delivered"})
    enqueue_notification(db, "ORDER_STATUS_CHANGED", "asha@acme.test", "EMPLOYEE",
                         {"order_id": "ORD-10", "status": "Delivered"}, delay_seconds=3600)
    db.commit()

    counts = process_queue(db)

    assert counts["processed"] == 1
    assert counts["sent"] == 1
    rows = db.query(NotificationQueue).order_by(NotificationQueue.id).all()
    assert rows[0].status == "SENT"
    assert rows[0].attempts == 1
    assert rows[1].status == "PENDING"
    assert db.query(NotificationLog).one().queue_id == rows[0].id


def test_queue_retries_with_backoff_then_fails(db, notifications, monkeypatch):
    def _boom(*args, **kwargs):
        raise smtplib.SMTPException("timeout")

    monkeypatch.setattr("app.services.notification_service.send_email", _boom)
    row = enqueue_notification(db, "ORDER_STATUS_CHANGED", "asha@acme.test", "EMPLOYEE",
                               {"order_id": "ORD-3"})
    db.commit()

    now = datetime.utcnow() + timedelta(seconds=1)
    counts = process_queue(db, now=now)
    assert counts["retried"] == 1
    db.refresh(row)
    assert row.status == "PENDING"
    assert row.attempts == 1
    assert row.next_attempt_at > now
    assert row.last_error == "timeout"

    # not due yet
    assert process_queue(db, now=now)["processed"] == 0

    for hours in (1, 2):
        process_queue(db, now=now + timedelta(hours=hours))

    db.refresh(row)
    assert row.status == "FAILED"
    assert row.attempts == row.max_attempts == 3


def test_queue_fails_unsendable_rows_immediately(db, notifications, sent_emails):
    row = enqueue_notification(db, "NOT_CONFIGURED", "asha@acme.test", "EMPLOYEE", {})
    db.commit()

    counts = process_queue(db)

    assert counts["failed"] == 1
    db.refresh(row)
    assert row.status == "FAILED"
    assert "not found" in row.last_error
    assert sent_emails == []


def test_recipients_for_roles(db, world):
    out = recipients_for_roles(
        db,
        company_id=world.company.id,
        roles=["EMPLOYEE", "VENDOR", "COMPANY_ADMIN", "EMPLOYEE"],
        employee_id=world.employee.id,
        vendor_id=world.vendor.id,
    )

    assert out == [
        {"email": "asha@acme.test", "type": "EMPLOYEE"},
        {"email": "orders@unifab.test", "type": "VENDOR"},
        {"email": "admin@acme.test", "type": "COMPANY_ADMIN"},
    ]


def test_render_leaves_foreign_syntax_alone():
    out = render_template("Dear {{employee.name}} {% done {{ name }}", {"name": "Asha"})

    assert out == "Dear {{employee.name}} {% done Asha"


def test_admin_template_with_unsupported_placeholder_still_sends(db, notifications, sent_emails):
    tpl = (
        db.query(NotificationTemplate)
        .join(NotificationEvent, NotificationEvent.id == NotificationTemplate.event_id)
        .filter(NotificationEvent.event_code == "ORDER_STATUS_CHANGED")
        .one()
    )
    tpl.subject_template = "Order {{order.id}} update"
    tpl.body_template = "Status {{status}} {% endif"
    db.commit()

    result = send_notification(db, "ORDER_STATUS_CHANGED", "asha@acme.test", "EMPLOYEE",
                               {"order_id": "ORD-8", "status": "Dispatched"})

    assert result.status == "SENT"
    assert result.subject == "Order {{order.id}} update"
    assert sent_emails[0]["body"] == "Status Dispatched {% endif"


def test_queue_keeps_going_when_one_row_crashes(db, notifications, sent_emails, monkeypatch):
    from app.services import notification_queue

    real_send = notification_queue.send_notification

    def _flaky(db, event_code, email, *args, **kwargs):
        if email == "broken@acme.test":
            raise RuntimeError("renderer exploded")
        return real_send(db, event_code, email, *args, **kwargs)

    monkeypatch.setattr("app.services.notification_queue.send_notification", _flaky)
    broken = enqueue_notification(db, "ORDER_STATUS_CHANGED", "broken@acme.test", "EMPLOYEE",
                                  {"order_id": "ORD-11", "status": "Delivered"})
    fine = enqueue_notification(db, "ORDER_STATUS_CHANGED", "asha@acme.test", "EMPLOYEE",
                                {"order_id": "ORD-12", "status": "Delivered"})
    db.commit()

    counts = process_queue(db)

    assert counts["processed"] == 2
    assert counts["sent"] == 1
    assert counts["retried"] == 1
    db.refresh(broken)
    db.refresh(fine)
    assert broken.status == "PENDING"
    assert broken.attempts == 1
    assert "RuntimeError" in broken.last_error
    assert fine.status == "SENT"
    assert [m["to"] for m in sent_emails] == ["asha@acme.test"]


def test_logs_are_scoped_to_company(client, db, world, notifications, sent_emails, headers):
    from app.models.company import Company
    from app.models.user import User

    beta = Company(code="BETA", name="Beta Foods")
    db.add(beta)
    db.flush()
    beta_admin = User(name="Bea Admin", email="admin@beta.test", password_hash="x",
                      role="COMPANY_ADMIN", company_id=beta.id, is_active=True)
    db.add(beta_admin)
    db.commit()
    send_notification(db, "ORDER_STATUS_CHANGED", "asha@acme.test", "EMPLOYEE",
                      {"order_id": "ORD-21", "status": "Dispatched"},
                      company_id=world.company.id)

    r = client.get("/api/v1/notifications/logs", headers=headers(beta_admin))
    assert r.status_code == 200
    assert r.json()["data"] == []
    assert r.json()["meta"]["total"] == 0

    r = client.get("/api/v1/notifications/logs", params={"company_id": world.company.id},
                   headers=headers(beta_admin))
    assert r.status_code == 403

    r = client.get("/api/v1/notifications/logs", headers=headers(world.users.company_admin))
    rows = r.json()["data"]
    assert [row["recipient_email"] for row in rows] == ["asha@acme.test"]
    assert rows[0]["company_id"] == world.company.id

    root = headers(world.users.super_admin)
    assert client.get("/api/v1/notifications/logs", headers=root).json()["meta"]["total"] == 1
    r = client.get("/api/v1/notifications/logs", params={"company_id": beta.id}, headers=root)
    assert r.json()["meta"]["total"] == 0


def test_send_order_notification_now(client, db, workflows, notifications, sent_emails,
                                     headers):
    from app.schemas.order import OrderItemIn
    from app.services import order_service

    order = order_service.create_order(
        db,
        company_id=workflows.company.id,
        employee=workflows.employee,
        items=[OrderItemIn(product_id=workflows.products.shoe.id, size="9", quantity=1)],
        created_by=workflows.users.employee.id,
    )
    h = headers(workflows.users.company_admin)
    url = f"/api/v1/notifications/orders/{order.pr_number}/send"

    r = client.post(url, json={"kind": "status"}, headers=h)
    assert r.status_code == 200
    assert r.json()["status"] == "SENT"
    assert r.json()["subject"] == f"Order {order.order_number} is now Awaiting approval"
    assert sent_emails[0]["to"] == "asha@acme.test"
    assert db.query(NotificationLog).one().company_id == workflows.company.id

    r = client.post(url, json={"kind": "PO"}, headers=h)
    assert r.status_code == 400

    r = client.post(url, json={"kind": "SHRUG"}, headers=h)
    assert r.status_code == 422

    r = client.post(url, json={"kind": "STATUS"}, headers=headers(workflows.users.employee))
    assert r.status_code == 403
