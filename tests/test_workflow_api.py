from app.models.notification import NotificationQueue
from app.models.order import Order
from app.schemas.order import OrderItemIn
from app.services import order_service

API = "/api/v1/workflow"


def _order(db, world):
    return order_service.create_order(
        db,
        company_id=world.company.id,
        employee=world.employee,
        items=[OrderItemIn(product_id=world.products.shoe.id, size="9", quantity=1)],
        created_by=world.users.employee.id,
    )


def test_requires_authentication(client, workflows):
    r = client.post(f"{API}/approve", json={"entity_type": "ORDER", "entity_id": "X"})

    assert r.status_code == 401
    body = r.json()
    assert body["success"] is False
    assert body["error"]["code"] == "API_E001"


def test_invalid_token(client, workflows):
    r = client.post(f"{API}/approve", json={"entity_type": "ORDER", "entity_id": "X"},
                    headers={"Authorization": "Bearer not-a-token"})

    assert r.status_code == 401
    assert r.json()["error"]["code"] == "API_E003"


def test_request_validation(client, workflows, headers):
    h = headers(workflows.users.company_admin)

    r = client.post(f"{API}/approve", json={"entity_type": "TIMESHEET", "entity_id": "X"},
                    headers=h)
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "API_E012"

    r = client.post(f"{API}/approve", json={"entity_type": "ORDER", "entity_id": "bad id!"},
                    headers=h)
    assert r.json()["error"]["code"] == "API_E013"

    r = client.post(f"{API}/reject", json={"entity_type": "ORDER", "entity_id": "ORD-1"},
                    headers=h)
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "API_E011"

    r = client.post(f"{API}/reject", json={"entity_type": "ORDER", "entity_id": "ORD-1",
                                          "reason_code": "OTHER", "action": "SHRED"},
                    headers=h)
    assert r.json()["error"]["code"] == "API_E010"


def test_approve_flow_over_http(client, db, workflows, headers, notifications):
    order = _order(db, workflows)

    r = client.post(f"{API}/approve",
                    json={"entity_type": "order", "entity_id": order.order_number,
                          "remarks": "looks fine"},
                    headers=headers(workflows.users.location_admin))
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["data"]["action"] == "APPROVED"
    assert body["data"]["new_stage"] == "COMPANY_APPROVAL"
    assert body["data"]["is_fully_approved"] is False
    assert "timestamp" in body

    queued = db.query(NotificationQueue).filter(
        NotificationQueue.event_code == "ORDER_APPROVED_AT_STAGE").all()
    assert [q.recipient_email for q in queued] == ["admin@acme.test"]

    r = client.post(f"{API}/approve",
                    json={"entity_type": "ORDER", "entity_id": order.order_number},
                    headers=headers(workflows.users.company_admin))
    assert r.status_code == 200
    assert r.json()["data"]["is_fully_approved"] is True
    assert r.json()["data"]["new_status"] == "APPROVED"

    db.expire_all()
    order = db.get(Order, order.id)
    # PR/PO company: terminal approval raises the PO
    assert order.po_number and order.po_number.startswith("PO")

    events = {q.event_code for q in db.query(NotificationQueue).all()}
    assert {"ORDER_FULLY_APPROVED", "PO_GENERATED"} <= events


def test_workflow_errors_use_envelope(client, db, workflows, headers):
    order = _order(db, workflows)

    r = client.post(f"{API}/approve",
                    json={"entity_type": "ORDER", "entity_id": order.order_number},
                    headers=headers(workflows.users.finance_admin))
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "WF_E030"

    r = client.post(f"{API}/approve",
                    json={"entity_type": "ORDER", "entity_id": "ORD-NOT-THERE"},
                    headers=headers(workflows.users.company_admin))
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "WF_E001"


def test_reject_over_http(client, db, workflows, headers):
    order = _order(db, workflows)

    r = client.post(f"{API}/reject",
                    json={"entity_type": "ORDER", "entity_id": order.order_number,
                          "reason_code": "BUDGET_EXCEEDED", "reason_label": "Budget exceeded",
                          "remarks": "Over the quarterly limit"},
                    headers=headers(workflows.users.location_admin))

    assert r.status_code == 200
    data = r.json()["data"]
    assert data["action"] == "REJECTED"
    assert data["stage"] == "LOCATION_APPROVAL"
    assert data["new_status"] == "REJECTED"
    assert data["resubmission_strategy"] == "NEW_ENTITY"
    assert data["rejection_id"].startswith("REJ-")

    queued = db.query(NotificationQueue).filter(
        NotificationQueue.event_code == "ORDER_REJECTED").all()
    assert [q.recipient_email for q in queued] == ["asha@acme.test"]
    assert queued[0].context["reason_label"] == "Budget exceeded"

    r = client.post(f"{API}/reject",
                    json={"entity_type": "ORDER", "entity_id": order.order_number,
                          "reason_code": "OTHER"},
                    headers=headers(workflows.users.location_admin))
    assert r.status_code == 422
    assert r.json()["error"]["code"] == "WF_E041"


def test_get_actions(client, db, workflows, headers):
    order = _order(db, workflows)

    r = client.get(f"{API}/actions",
                   params={"entity_type": "ORDER", "entity_id": order.order_number},
                   headers=headers(workflows.users.location_admin))

    assert r.status_code == 200
    data = r.json()["data"]
    assert data["current_stage"] == "LOCATION_APPROVAL"
    assert data["actions"]["can_approve"] is True
    assert data["actions"]["can_reject"] is True
    info = data["workflow_info"]
    assert info["total_stages"] == 2
    assert info["next_stage_name"] == "Company Admin Approval"

    r = client.get(f"{API}/actions",
                   params={"entity_type": "ORDER", "entity_id": order.order_number},
                   headers=headers(workflows.users.company_admin))
    actions = r.json()["data"]["actions"]
    assert actions["can_approve"] is False
    assert actions["approve_disabled_reason"]


def test_get_actions_requires_params(client, workflows, headers):
    r = client.get(f"{API}/actions", headers=headers(workflows.users.company_admin))

    assert r.status_code == 400
    assert r.json()["error"]["code"] == "API_E011"


def test_get_ui_rules(client, db, workflows, headers):
    order = _order(db, workflows)

    r = client.get(f"{API}/ui-rules",
                   params={"entity_type": "ORDER", "entity_id": order.order_number},
                   headers=headers(workflows.users.location_admin))

    assert r.status_code == 200
    data = r.json()["data"]
    assert data["workflow_state"] == "IN_WORKFLOW"
    assert data["actions"]["can_approve"]["allowed"] is True
    assert data["workflow_progress"]["percent_complete"] == 0


def test_unregistered_entity_type_is_rejected(client, workflows, headers):
    r = client.post(f"{API}/approve",
                    json={"entity_type": "PURCHASE_ORDER", "entity_id": "PO-1"},
                    headers=headers(workflows.users.company_admin))

    assert r.status_code == 400
    error = r.json()["error"]
    assert error["code"] == "API_E012"
    assert "ORDER" in error["message"]


def test_other_vendor_cannot_see_order(client, db, workflows, headers):
    from app.models.user import User
    from app.models.vendor import Vendor

    other = Vendor(code="OTHER", name="Other Garments", email="sales@other.test")
    db.add(other)
    db.flush()
    stranger = User(name="Other Desk", email="desk@other.test", password_hash="x",
                    role="VENDOR", vendor_id=other.id, is_active=True)
    db.add(stranger)
    db.commit()
    order = _order(db, workflows)
    params = {"entity_type": "ORDER", "entity_id": order.order_number}

    r = client.get(f"{API}/ui-rules", params=params, headers=headers(stranger))
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["entity_status"] == "NOT_FOUND"
    assert data["actions"]["can_view"]["allowed"] is False

    r = client.get(f"{API}/actions", params=params, headers=headers(stranger))
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "WF_E001"

    r = client.get(f"{API}/ui-rules", params=params, headers=headers(workflows.users.vendor))
    assert r.json()["data"]["entity_status"] != "NOT_FOUND"


def _set_rejection_config(db, *, global_config=None, first_stage=None):
    from app.models.workflow import WorkflowConfiguration

    row = db.query(WorkflowConfiguration).filter(
        WorkflowConfiguration.config_id == "WF-ORDER-ACME-2STAGE").one()
    if global_config is not None:
        row.rejection_config = global_config
    if first_stage is not None:
        stages = [dict(s) for s in row.stages]
        stages[0]["rejection_config"] = first_stage
        row.stages = stages
    db.commit()


def _reject(client, headers, user, order):
    return client.post(f"{API}/reject",
                       json={"entity_type": "ORDER", "entity_id": order.order_number,
                             "reason_code": "BUDGET_EXCEEDED", "remarks": "too much"},
                       headers=headers(user))


def _rejection_recipients(db):
    rows = db.query(NotificationQueue).filter(
        NotificationQueue.event_code == "ORDER_REJECTED").order_by(NotificationQueue.id).all()
    return [q.recipient_email for q in rows]


def test_rejection_recipients_follow_config(client, db, workflows, headers):
    _set_rejection_config(
        db, global_config={"default_notify_roles_on_reject": ["REQUESTOR", "COMPANY_ADMIN"]})
    order = _order(db, workflows)

    r = _reject(client, headers, workflows.users.location_admin, order)

    assert r.status_code == 200
    assert _rejection_recipients(db) == ["asha@acme.test", "admin@acme.test"]


def test_rejection_exclusions_drop_recipients(client, db, workflows, headers):
    _set_rejection_config(
        db,
        global_config={"default_notify_roles_on_reject": ["REQUESTOR", "COMPANY_ADMIN"]},
        first_stage={"exclude_from_notification": ["REQUESTOR"]},
    )
    order = _order(db, workflows)

    r = _reject(client, headers, workflows.users.location_admin, order)

    assert r.status_code == 200
    assert _rejection_recipients(db) == ["admin@acme.test"]


def test_po_generation_failure_does_not_fail_approval(client, db, workflows, headers,
                                                      monkeypatch):
    def _broken(db, order):
        raise RuntimeError("PO series locked")

    monkeypatch.setattr("app.api.routes_workflow.on_order_fully_approved", _broken)
    order = _order(db, workflows)

    for user in (workflows.users.location_admin, workflows.users.company_admin):
        r = client.post(f"{API}/approve",
                        json={"entity_type": "ORDER", "entity_id": order.order_number},
                        headers=headers(user))
        assert r.status_code == 200
        assert r.json()["success"] is True

    db.expire_all()
    order = db.get(Order, order.id)
    assert order.unified_status == "APPROVED"
    assert order.po_number is None
