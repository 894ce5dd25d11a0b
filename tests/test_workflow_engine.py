import pytest

from app.models.order import OrderStatus
from app.models.workflow import WorkflowApprovalAudit, WorkflowConfiguration, WorkflowRejection
from app.schemas.order import OrderItemIn
from app.services import order_service
from app.workflow.engine import (
    actor_from_user,
    approve_entity,
    can_user_approve,
    can_user_reject,
    get_workflow_state,
    reject_entity,
)
from app.workflow.errors import WorkflowError, WorkflowErrorCode


def _order(db, world, **kwargs):
    return order_service.create_order(
        db,
        company_id=world.company.id,
        employee=world.employee,
        items=[OrderItemIn(product_id=world.products.shirt.id, size="M", quantity=1)],
        created_by=world.users.employee.id,
        **kwargs,
    )


def test_new_order_starts_on_first_stage(db, workflows):
    order = _order(db, workflows)

    assert order.current_stage == "LOCATION_APPROVAL"
    assert order.unified_status == "PENDING_LOCATION_APPROVAL"
    assert order.status == OrderStatus.AWAITING_APPROVAL
    assert order.pr_number.startswith("PR")


def test_order_without_workflow_is_pending_approval(db, world):
    order = _order(db, world)

    assert order.current_stage is None
    assert order.unified_status == "PENDING_APPROVAL"


def test_two_stage_approval_reaches_approved(db, workflows):
    order = _order(db, workflows)
    site = actor_from_user(workflows.users.location_admin)
    admin = actor_from_user(workflows.users.company_admin)

    first = approve_entity(db, entity_type="ORDER", entity_id=order.order_number, actor=site)
    assert first.is_terminal is False
    assert first.previous_stage == "LOCATION_APPROVAL"
    assert first.new_stage == "COMPANY_APPROVAL"
    assert first.new_status == "PENDING_COMPANY_APPROVAL"

    db.refresh(order)
    assert order.site_admin_approved_by == workflows.users.location_admin.id

    second = approve_entity(db, entity_type="ORDER", entity_id=order.order_number,
                            actor=admin, remarks="ok")
    assert second.is_terminal is True
    assert second.new_stage is None
    assert second.new_status == "APPROVED"

    db.refresh(order)
    assert order.status == OrderStatus.AWAITING_FULFILMENT
    assert order.company_admin_approved_by == workflows.users.company_admin.id

    audits = (
        db.query(WorkflowApprovalAudit)
        .filter(WorkflowApprovalAudit.entity_id == order.order_number)
        .order_by(WorkflowApprovalAudit.id)
        .all()
    )
    assert [a.from_stage for a in audits] == ["LOCATION_APPROVAL", "COMPANY_APPROVAL"]
    assert audits[1].to_stage is None
    assert audits[1].remarks == "ok"
    assert audits[0].audit_id.startswith("APR-")
    assert audits[0].entity_snapshot["employee_id"] == workflows.employee.id


def test_entity_can_be_found_by_pr_number(db, workflows):
    order = _order(db, workflows)
    site = actor_from_user(workflows.users.location_admin)

    result = approve_entity(db, entity_type="ORDER", entity_id=order.pr_number, actor=site)

    assert result.entity_id == order.order_number


def test_wrong_role_cannot_approve(db, workflows):
    order = _order(db, workflows)
    finance = actor_from_user(workflows.users.finance_admin)

    with pytest.raises(WorkflowError) as exc:
        approve_entity(db, entity_type="ORDER", entity_id=order.order_number, actor=finance)

    assert exc.value.code == WorkflowErrorCode.ROLE_NOT_ALLOWED
    assert exc.value.http_status == 403
    assert "LOCATION_ADMIN" in exc.value.details["allowed_roles"]


def test_approving_completed_entity_fails(db, workflows):
    order = _order(db, workflows)
    approve_entity(db, entity_type="ORDER", entity_id=order.order_number,
                   actor=actor_from_user(workflows.users.location_admin))
    approve_entity(db, entity_type="ORDER", entity_id=order.order_number,
                   actor=actor_from_user(workflows.users.company_admin))

    with pytest.raises(WorkflowError) as exc:
        approve_entity(db, entity_type="ORDER", entity_id=order.order_number,
                       actor=actor_from_user(workflows.users.company_admin))
    assert exc.value.code == WorkflowErrorCode.ALREADY_APPROVED


def test_unknown_entity(db, workflows):
    with pytest.raises(WorkflowError) as exc:
        approve_entity(db, entity_type="ORDER", entity_id="ORD-NOPE",
                       actor=actor_from_user(workflows.users.company_admin))
    assert exc.value.code == WorkflowErrorCode.ENTITY_NOT_FOUND
    assert exc.value.http_status == 404


def test_other_company_entity_is_not_found(db, workflows):
    from app.models.company import Company
    from app.models.user import User

    other = Company(code="OTHER", name="Other Co")
    db.add(other)
    db.flush()
    outsider = User(name="Out", email="out@other.test", password_hash="x",
                    role="COMPANY_ADMIN", company_id=other.id, is_active=True)
    db.add(outsider)
    db.commit()

    order = _order(db, workflows)
    with pytest.raises(WorkflowError) as exc:
        approve_entity(db, entity_type="ORDER", entity_id=order.order_number,
                       actor=actor_from_user(outsider))
    assert exc.value.code == WorkflowErrorCode.ENTITY_NOT_FOUND


def test_inactive_workflow(db, workflows):
    order = _order(db, workflows)
    db.query(WorkflowConfiguration).filter(
        WorkflowConfiguration.entity_type == "ORDER"
    ).update({"is_active": False})
    db.commit()

    with pytest.raises(WorkflowError) as exc:
        approve_entity(db, entity_type="ORDER", entity_id=order.order_number,
                       actor=actor_from_user(workflows.users.location_admin))
    assert exc.value.code == WorkflowErrorCode.WORKFLOW_INACTIVE


def test_missing_workflow(db, world):
    order = _order(db, world)

    with pytest.raises(WorkflowError) as exc:
        approve_entity(db, entity_type="ORDER", entity_id=order.order_number,
                       actor=actor_from_user(world.users.company_admin))
    assert exc.value.code == WorkflowErrorCode.WORKFLOW_NOT_FOUND


def test_malformed_config_is_reported(db, workflows):
    order = _order(db, workflows)
    row = db.query(WorkflowConfiguration).filter(
        WorkflowConfiguration.entity_type == "ORDER").one()
    row.stages = [{"stage_key": "LOCATION_APPROVAL"}]
    db.commit()

    with pytest.raises(WorkflowError) as exc:
        approve_entity(db, entity_type="ORDER", entity_id=order.order_number,
                       actor=actor_from_user(workflows.users.location_admin))
    assert exc.value.code == WorkflowErrorCode.WORKFLOW_INVALID


def test_reject_is_terminal_by_default(db, workflows):
    order = _order(db, workflows)
    site = actor_from_user(workflows.users.location_admin)

    result = reject_entity(db, entity_type="ORDER", entity_id=order.order_number, actor=site,
                           reason_code="INCORRECT_DETAILS", reason_label="Incorrect details",
                           remarks="Wrong size")

    assert result.is_terminal is True
    assert result.new_status == "REJECTED"
    assert result.previous_stage == "LOCATION_APPROVAL"
    assert result.rejection_id.startswith("REJ-")

    db.refresh(order)
    assert order.unified_status == "REJECTED"
    assert order.current_stage is None
    assert order.rejection_reason == "Incorrect details"
    assert order.rejection_remarks == "Wrong size"
    assert order.rejected_by == workflows.users.location_admin.id

    row = db.query(WorkflowRejection).filter(
        WorkflowRejection.rejection_id == result.rejection_id).one()
    assert row.workflow_config_id == "WF-ORDER-ACME-2STAGE"
    assert row.reason_code == "INCORRECT_DETAILS"
    assert row.metadata_json["rejection_config"]["is_terminal_on_reject"] is True

    with pytest.raises(WorkflowError) as exc:
        approve_entity(db, entity_type="ORDER", entity_id=order.order_number,
                       actor=actor_from_user(workflows.users.company_admin))
    assert exc.value.code == WorkflowErrorCode.ALREADY_REJECTED


def test_reject_requires_reason_code(db, workflows):
    order = _order(db, workflows)

    with pytest.raises(WorkflowError) as exc:
        reject_entity(db, entity_type="ORDER", entity_id=order.order_number,
                      actor=actor_from_user(workflows.users.location_admin),
                      reason_code="  ")
    assert exc.value.details["field"] == "reason_code"


def test_stage_rejection_overrides(db, workflows):
    row = db.query(WorkflowConfiguration).filter(
        WorkflowConfiguration.entity_type == "ORDER").one()
    stages = [dict(s) for s in row.stages]
    stages[0]["rejection_config"] = {
        "is_terminal_on_reject": False,
        "is_remarks_mandatory": True,
        "max_remarks_length": 20,
        "allowed_reason_codes": ["BUDGET_EXCEEDED"],
        "rejected_status": "SENT_BACK",
    }
    row.stages = stages
    db.commit()

    order = _order(db, workflows)
    site = actor_from_user(workflows.users.location_admin)

    with pytest.raises(WorkflowError) as exc:
        reject_entity(db, entity_type="ORDER", entity_id=order.order_number, actor=site,
                      reason_code="BUDGET_EXCEEDED")
    assert exc.value.details["field"] == "remarks"

    with pytest.raises(WorkflowError) as exc:
        reject_entity(db, entity_type="ORDER", entity_id=order.order_number, actor=site,
                      reason_code="BUDGET_EXCEEDED", remarks="x" * 21)
    assert exc.value.details["max_length"] == 20

    with pytest.raises(WorkflowError) as exc:
        reject_entity(db, entity_type="ORDER", entity_id=order.order_number, actor=site,
                      reason_code="OTHER", remarks="too pricey")
    assert exc.value.details["allowed"] == ["BUDGET_EXCEEDED"]

    result = reject_entity(db, entity_type="ORDER", entity_id=order.order_number, actor=site,
                           reason_code="BUDGET_EXCEEDED", remarks="too pricey")
    assert result.is_terminal is False
    assert result.new_status == "SENT_BACK"

    db.refresh(order)
    # non-terminal rejection keeps the entity on its stage
    assert order.current_stage == "LOCATION_APPROVAL"


def test_direct_rejection_without_workflow(db, world):
    order = _order(db, world)

    result = reject_entity(db, entity_type="ORDER", entity_id=order.order_number,
                           actor=actor_from_user(world.users.company_admin),
                           reason_code="DUPLICATE_REQUEST")

    assert result.previous_stage == "DIRECT_REJECTION"
    assert result.new_status == "REJECTED"
    row = db.query(WorkflowRejection).one()
    assert row.workflow_config_id == "NO_WORKFLOW"
    assert row.workflow_version == 0


def test_direct_rejection_needs_admin_role(db, world):
    order = _order(db, world)

    with pytest.raises(WorkflowError) as exc:
        reject_entity(db, entity_type="ORDER", entity_id=order.order_number,
                      actor=actor_from_user(world.users.finance_admin),
                      reason_code="DUPLICATE_REQUEST")
    assert exc.value.code == WorkflowErrorCode.WORKFLOW_NOT_FOUND


def test_can_user_checks_do_not_raise(db, workflows):
    order = _order(db, workflows)

    ok, reason = can_user_approve(db, entity_type="ORDER", entity_id=order.order_number,
                                  actor=actor_from_user(workflows.users.location_admin))
    assert ok is True and reason is None

    ok, reason = can_user_reject(db, entity_type="ORDER", entity_id=order.order_number,
                                 actor=actor_from_user(workflows.users.company_admin))
    assert ok is False
    assert "not allowed to reject" in reason


def test_workflow_state(db, workflows):
    order = _order(db, workflows)

    state = get_workflow_state(db, entity_type="ORDER", entity_id=order.order_number,
                               actor=actor_from_user(workflows.users.company_admin))

    assert state.current_stage.stage_key == "LOCATION_APPROVAL"
    assert state.next_stage.stage_key == "COMPANY_APPROVAL"
    assert state.is_terminal is False

    missing = get_workflow_state(db, entity_type="ORDER", entity_id="nope",
                                 actor=actor_from_user(workflows.users.company_admin))
    assert missing.entity is None


def _stranger_vendor(db):
    from app.models.user import User
    from app.models.vendor import Vendor

    other = Vendor(code="OTHER", name="Other Garments", email="sales@other.test")
    db.add(other)
    db.flush()
    user = User(name="Other Desk", email="desk@other.test", password_hash="x",
                role="VENDOR", vendor_id=other.id, is_active=True)
    db.add(user)
    db.commit()
    return user


def test_vendor_only_reaches_own_entities(db, workflows):
    order = _order(db, workflows)
    stranger = actor_from_user(_stranger_vendor(db))

    with pytest.raises(WorkflowError) as exc:
        approve_entity(db, entity_type="ORDER", entity_id=order.order_number, actor=stranger)
    assert exc.value.code == WorkflowErrorCode.ENTITY_NOT_FOUND

    ok, reason = can_user_reject(db, entity_type="ORDER", entity_id=order.order_number,
                                 actor=stranger)
    assert ok is False
    assert "not found" in reason

    state = get_workflow_state(db, entity_type="ORDER", entity_id=order.order_number,
                               actor=stranger)
    assert state.entity is None

    own = get_workflow_state(db, entity_type="ORDER", entity_id=order.order_number,
                             actor=actor_from_user(workflows.users.vendor))
    assert own.entity is not None


def test_actor_without_company_sees_nothing(db, workflows):
    from app.models.user import User

    loose = User(name="Loose", email="loose@acme.test", password_hash="x",
                 role="COMPANY_ADMIN", company_id=None, is_active=True)
    db.add(loose)
    db.commit()
    order = _order(db, workflows)

    with pytest.raises(WorkflowError) as exc:
        approve_entity(db, entity_type="ORDER", entity_id=order.order_number,
                       actor=actor_from_user(loose))
    assert exc.value.code == WorkflowErrorCode.ENTITY_NOT_FOUND


def test_approve_without_resolved_config_raises_workflow_error(db, workflows, monkeypatch):
    from types import SimpleNamespace

    order = _order(db, workflows)
    monkeypatch.setattr("app.workflow.engine._validate_approval",
                        lambda db, entity, actor: SimpleNamespace(config=None, stage=None))

    with pytest.raises(WorkflowError) as exc:
        approve_entity(db, entity_type="ORDER", entity_id=order.order_number,
                       actor=actor_from_user(workflows.users.location_admin))
    assert exc.value.code == WorkflowErrorCode.WORKFLOW_NOT_FOUND
