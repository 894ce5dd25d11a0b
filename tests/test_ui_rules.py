from app.schemas.order import OrderItemIn
from app.services import order_service
from app.workflow.engine import actor_from_user, approve_entity, reject_entity
from app.workflow.ui_rules import (
    COMPLETED,
    IN_WORKFLOW,
    NO_WORKFLOW_CONFIG,
    REJECTED,
    evaluate_ui_rules,
    get_default_reason_codes,
    workflow_state_for,
)


def _order(db, world):
    return order_service.create_order(
        db,
        company_id=world.company.id,
        employee=world.employee,
        items=[OrderItemIn(product_id=world.products.pant.id, size="32", quantity=1)],
        created_by=world.users.employee.id,
    )


def test_workflow_state_for():
    assert workflow_state_for("REJECTED", None) == REJECTED
    assert workflow_state_for("CANCELLED", None) == REJECTED
    assert workflow_state_for("APPROVED", None) == COMPLETED
    assert workflow_state_for("PENDING_COMPANY_APPROVAL", None) == IN_WORKFLOW
    assert workflow_state_for("Awaiting approval", None) == IN_WORKFLOW


def test_approver_sees_approve_and_reject(db, workflows):
    order = _order(db, workflows)
    actor = actor_from_user(workflows.users.location_admin)

    rules = evaluate_ui_rules(db, entity_type="ORDER", entity_id=order.order_number, actor=actor)

    assert rules.workflow_state == IN_WORKFLOW
    assert rules.current_stage == "LOCATION_APPROVAL"
    assert rules.actions.can_approve.allowed is True
    assert rules.actions.can_approve.requires_confirmation is False
    assert rules.actions.can_reject.allowed is True
    assert rules.actions.can_reject.requires_confirmation is True
    assert rules.actions.can_resubmit.allowed is False
    assert rules.rejection_config.is_allowed is True
    assert rules.rejection_config.reason_codes
    assert rules.user_role_info.is_allowed_at_current_stage is True
    assert rules.workflow_progress.total_stages == 2
    assert rules.workflow_progress.stages[0].status == "CURRENT"


def test_final_stage_asks_for_confirmation(db, workflows):
    order = _order(db, workflows)
    approve_entity(db, entity_type="ORDER", entity_id=order.order_number,
                   actor=actor_from_user(workflows.users.location_admin))

    rules = evaluate_ui_rules(db, entity_type="ORDER", entity_id=order.order_number,
                              actor=actor_from_user(workflows.users.company_admin))

    assert rules.current_stage == "COMPANY_APPROVAL"
    assert rules.actions.can_approve.allowed is True
    assert rules.actions.can_approve.requires_confirmation is True
    assert rules.workflow_progress.completed_stages == 1


def test_other_role_is_told_why(db, workflows):
    order = _order(db, workflows)

    rules = evaluate_ui_rules(db, entity_type="ORDER", entity_id=order.order_number,
                              actor=actor_from_user(workflows.users.finance_admin))

    assert rules.actions.can_approve.allowed is False
    assert "FINANCE_ADMIN" in rules.actions.can_approve.reason
    assert rules.rejection_config.is_allowed is False
    assert rules.user_role_info.allowed_roles_at_current_stage == ["LOCATION_ADMIN", "SITE_ADMIN"]


def test_rejected_entity_can_be_resubmitted_by_requestor(db, workflows):
    order = _order(db, workflows)
    reject_entity(db, entity_type="ORDER", entity_id=order.order_number,
                  actor=actor_from_user(workflows.users.location_admin),
                  reason_code="INCORRECT_DETAILS")

    owner = evaluate_ui_rules(db, entity_type="ORDER", entity_id=order.order_number,
                              actor=actor_from_user(workflows.users.employee))
    assert owner.workflow_state == REJECTED
    assert owner.actions.can_approve.allowed is False
    assert owner.actions.can_resubmit.allowed is True
    # default strategy is NEW_ENTITY: a fresh request is needed
    assert owner.actions.can_resubmit.requires_confirmation is True
    assert owner.actions.can_edit.allowed is False
    assert owner.actions.can_cancel.allowed is False

    finance = evaluate_ui_rules(db, entity_type="ORDER", entity_id=order.order_number,
                                actor=actor_from_user(workflows.users.finance_admin))
    assert finance.actions.can_resubmit.allowed is False


def test_owner_can_cancel_while_pending(db, workflows):
    order = _order(db, workflows)

    rules = evaluate_ui_rules(db, entity_type="ORDER", entity_id=order.order_number,
                              actor=actor_from_user(workflows.users.employee))

    assert rules.actions.can_cancel.allowed is True
    assert rules.actions.can_approve.allowed is False


def test_no_workflow_config(db, world):
    order = _order(db, world)

    rules = evaluate_ui_rules(db, entity_type="ORDER", entity_id=order.order_number,
                              actor=actor_from_user(world.users.company_admin))

    assert rules.workflow_state == NO_WORKFLOW_CONFIG
    assert rules.actions.can_approve.allowed is False
    assert rules.actions.can_view.allowed is True


def test_missing_entity(db, workflows):
    rules = evaluate_ui_rules(db, entity_type="ORDER", entity_id="ORD-MISSING",
                              actor=actor_from_user(workflows.users.company_admin))

    assert rules.entity_status == "NOT_FOUND"
    assert rules.actions.can_view.allowed is False


def test_reason_codes_per_entity_type():
    order_codes = {c.code for c in get_default_reason_codes("ORDER")}
    invoice_codes = {c.code for c in get_default_reason_codes("INVOICE")}

    assert "OTHER" in order_codes
    assert order_codes != invoice_codes
