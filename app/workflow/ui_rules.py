# app/workflow/ui_rules.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.workflow.config import (
    RESUBMISSION_NEW_ENTITY,
    RESUBMISSION_SAME_ENTITY,
    EffectiveRejectionConfig,
    WorkflowConfigData,
    WorkflowStage,
    get_effective_rejection_config,
)
from app.workflow.engine import WorkflowActor, find_scoped_entity, get_active_workflow
from app.workflow.repository import WorkflowEntity, get_repository

logger = logging.getLogger(__name__)

# workflow states
IN_WORKFLOW = "IN_WORKFLOW"
COMPLETED = "COMPLETED"
REJECTED = "REJECTED"
NOT_IN_WORKFLOW = "NOT_IN_WORKFLOW"
NO_WORKFLOW_CONFIG = "NO_WORKFLOW_CONFIG"

MAX_REMARKS_FALLBACK = 2000


class ActionRule(BaseModel):
    allowed: bool
    reason: str
    requires_confirmation: bool = False
    confirmation_message: Optional[str] = None


class UIActions(BaseModel):
    can_approve: ActionRule
    can_reject: ActionRule
    can_resubmit: ActionRule
    can_cancel: ActionRule
    can_view: ActionRule
    can_edit: ActionRule


class ReasonCode(BaseModel):
    code: str
    label: str
    description: Optional[str] = None
    requires_remarks: bool = False


class RejectionActionOption(BaseModel):
    code: str
    label: str


class UIRejectionConfig(BaseModel):
    is_allowed: bool
    is_reason_code_mandatory: bool = True
    is_remarks_mandatory: bool = False
    max_remarks_length: int = MAX_REMARKS_FALLBACK
    reason_codes: List[ReasonCode] = Field(default_factory=list)
    rejection_actions: List[RejectionActionOption] = Field(default_factory=list)


class StageProgress(BaseModel):
    stage_key: str
    stage_name: str
    order: int
    status: str  # COMPLETED / CURRENT / PENDING
    is_terminal: bool


class WorkflowProgress(BaseModel):
    total_stages: int
    completed_stages: int
    current_stage_order: int
    percent_complete: int
    stages: List[StageProgress]


class UIMessages(BaseModel):
    status_message: str
    informational_message: str
    next_action_hint: Optional[str] = None


class UserRoleInfo(BaseModel):
    current_role: str
    is_allowed_at_current_stage: bool
    allowed_roles_at_current_stage: List[str] = Field(default_factory=list)


class UIRulesResult(BaseModel):
    entity_id: str
    entity_type: str
    entity_status: str
    current_stage: Optional[str] = None
    current_stage_name: Optional[str] = None
    workflow_state: str
    actions: UIActions
    rejection_config: UIRejectionConfig
    workflow_progress: Optional[WorkflowProgress] = None
    messages: UIMessages
    user_role_info: UserRoleInfo
    evaluated_at: datetime


# -------------------------
# Reason codes
# -------------------------
def _rc(code: str, label: str, description: str, requires_remarks: bool = False) -> ReasonCode:
    return ReasonCode(code=code, label=label, description=description,
                      requires_remarks=requires_remarks)


COMMON_REASON_CODES = [
    _rc("INCOMPLETE_INFORMATION", "Incomplete Information", "Required information is missing"),
    _rc("INVALID_DATA", "Invalid Data", "Data provided is incorrect or invalid"),
    _rc("DUPLICATE_REQUEST", "Duplicate Request", "This request already exists"),
    _rc("POLICY_VIOLATION", "Policy Violation", "Request violates company policy", True),
    _rc("UNAUTHORIZED_REQUEST", "Unauthorized Request", "Requestor is not authorized"),
    _rc("OTHER", "Other", "Other reason (please specify in remarks)", True),
]

ENTITY_REASON_CODES: Dict[str, List[ReasonCode]] = {
    "ORDER": [
        _rc("ELIGIBILITY_EXHAUSTED", "Eligibility Exhausted", "Employee has exhausted eligibility"),
        _rc("EMPLOYEE_NOT_ELIGIBLE", "Employee Not Eligible", "Employee is not eligible for this item"),
        _rc("INVALID_QUANTITY", "Invalid Quantity", "Requested quantity is invalid"),
        _rc("PRODUCT_UNAVAILABLE", "Product Unavailable", "Product is not available"),
        _rc("BUDGET_EXCEEDED", "Budget Exceeded", "Order exceeds the allowed budget"),
        _rc("DELIVERY_ADDRESS_INVALID", "Invalid Delivery Address", "Delivery address is invalid"),
        _rc("SIZE_MISMATCH", "Size Mismatch", "Requested size is not valid for the employee"),
    ],
    "GRN": [
        _rc("QUANTITY_MISMATCH", "Quantity Mismatch", "Received quantity does not match", True),
        _rc("QUALITY_ISSUE", "Quality Issue", "Items have quality issues", True),
        _rc("DAMAGED_GOODS", "Damaged Goods", "Items were received damaged", True),
        _rc("WRONG_ITEMS", "Wrong Items", "Wrong items were delivered"),
        _rc("MISSING_DOCUMENTATION", "Missing Documentation", "Supporting documents are missing"),
    ],
    "INVOICE": [
        _rc("PRICING_DISCREPANCY", "Pricing Discrepancy", "Prices do not match the PO", True),
        _rc("TAX_CALCULATION_ERROR", "Tax Calculation Error", "Tax has been calculated incorrectly"),
        _rc("PO_MISMATCH", "PO Mismatch", "Invoice does not match the PO"),
        _rc("GRN_NOT_APPROVED", "GRN Not Approved", "The linked GRN is not yet approved"),
        _rc("AMOUNT_EXCEEDS_LIMIT", "Amount Exceeds Limit", "Invoice amount exceeds the limit"),
    ],
    "PURCHASE_ORDER": [
        _rc("VENDOR_ISSUE", "Vendor Issue", "Issue with the selected vendor"),
        _rc("PRICING_ISSUE", "Pricing Issue", "Pricing needs to be reviewed"),
    ],
    "RETURN_REQUEST": [
        _rc("ITEM_NOT_ELIGIBLE", "Item Not Eligible", "Item is not eligible for return"),
        _rc("RETURN_WINDOW_EXPIRED", "Return Window Expired", "The return window has passed"),
        _rc("ITEM_CONDITION", "Item Condition", "Item condition does not allow return", True),
    ],
}

DEFAULT_REJECTION_ACTIONS = [
    RejectionActionOption(code="REJECT", label="Reject"),
    RejectionActionOption(code="SEND_BACK", label="Send Back for Correction"),
    RejectionActionOption(code="HOLD", label="Put on Hold"),
]


def get_default_reason_codes(entity_type: str) -> List[ReasonCode]:
    specific = ENTITY_REASON_CODES.get((entity_type or "").upper(), [])
    return [*specific, *COMMON_REASON_CODES]


def get_default_rejection_actions() -> List[RejectionActionOption]:
    return list(DEFAULT_REJECTION_ACTIONS)


# -------------------------
# helpers
# -------------------------
def _rule(allowed: bool, reason: str, confirmation: Optional[str] = None) -> ActionRule:
    return ActionRule(
        allowed=allowed,
        reason=reason,
        requires_confirmation=bool(confirmation),
        confirmation_message=confirmation,
    )


def workflow_state_for(status: str, stage: Optional[WorkflowStage]) -> str:
    s = (status or "").upper()
    if "REJECTED" in s or s == "CANCELLED":
        return REJECTED
    if s in {"APPROVED", "COMPLETED", "CLOSED", "DELIVERED"}:
        return COMPLETED
    if "PENDING" in s or "AWAITING" in s:
        return IN_WORKFLOW
    if stage is None:
        return NOT_IN_WORKFLOW
    return IN_WORKFLOW


def _resolve_stage(entity: WorkflowEntity, config: WorkflowConfigData) -> Optional[WorkflowStage]:
    if entity.current_stage:
        stage = config.stage_by_key(entity.current_stage)
        if stage:
            return stage

    status = (entity.status or "").upper()
    for stage in config.sorted_stages():
        if stage.stage_key in status:
            return stage
    if "PENDING" in status or "AWAITING" in status:
        return config.first_stage()
    return None


def _is_owner(entity: WorkflowEntity, actor: WorkflowActor) -> bool:
    if entity.created_by is not None and entity.created_by == actor.user_id:
        return True
    return bool(
        actor.employee_id is not None
        and entity.owner_employee_id is not None
        and actor.employee_id == entity.owner_employee_id
    )


def _can_resubmit_role(
    rc: EffectiveRejectionConfig, actor: WorkflowActor, is_owner: bool
) -> bool:
    roles = rc.resubmission_allowed_roles or []
    if actor.role in roles:
        return True
    if "REQUESTOR" in roles and is_owner:
        return True
    return actor.role == "COMPANY_ADMIN"


def _approve_rule(state: str, stage: Optional[WorkflowStage], actor: WorkflowActor,
                  config: WorkflowConfigData) -> ActionRule:
    if state == COMPLETED:
        return _rule(False, "Entity is already fully approved")
    if state == REJECTED:
        return _rule(False, "Entity has been rejected")
    if stage is None:
        return _rule(False, "Entity is not in an approval workflow")
    if not stage.can_approve:
        return _rule(False, f'Stage "{stage.stage_name}" does not allow approval')
    if actor.role not in stage.allowed_roles:
        return _rule(
            False,
            f"Your role ({actor.role}) is not authorized to approve at this stage. "
            f"Allowed roles: {', '.join(stage.allowed_roles)}",
        )
    if config.is_terminal(stage.stage_key):
        return _rule(
            True,
            "You can give final approval for this entity",
            "This is the final approval. The entity will be marked as approved. Continue?",
        )
    return _rule(True, "You can approve and move to next stage")


def _reject_rule(state: str, stage: Optional[WorkflowStage], actor: WorkflowActor) -> ActionRule:
    if state == COMPLETED:
        return _rule(False, "Entity is already fully approved")
    if state == REJECTED:
        return _rule(False, "Entity has been rejected")
    if stage is None:
        return _rule(False, "Entity is not in an approval workflow")
    if not stage.can_reject:
        return _rule(False, f'Stage "{stage.stage_name}" does not allow rejection')
    if actor.role not in stage.allowed_roles:
        return _rule(
            False,
            f"Your role ({actor.role}) is not authorized to reject at this stage. "
            f"Allowed roles: {', '.join(stage.allowed_roles)}",
        )
    return _rule(
        True,
        "You can reject this entity with a reason",
        "Are you sure you want to reject this entity? This action will notify the submitter.",
    )


def _resubmit_rule(state: str, rc: EffectiveRejectionConfig, actor: WorkflowActor,
                   is_owner: bool) -> ActionRule:
    if state != REJECTED:
        return _rule(False, "Entity is not rejected")
    if not rc.allow_resubmission:
        return _rule(False, "Resubmission is not allowed for this rejection")
    if not _can_resubmit_role(rc, actor, is_owner):
        roles = " or ".join(rc.resubmission_allowed_roles or ["REQUESTOR"])
        return _rule(False, f"Only {roles} can resubmit rejected entities")
    if rc.resubmission_strategy == RESUBMISSION_SAME_ENTITY:
        return _rule(True, "You can resubmit this entity for approval")
    return _rule(
        True,
        "You must create a new request to resubmit",
        "This will create a new request. The rejected request will remain in history. Continue?",
    )


def _cancel_rule(state: str, actor: WorkflowActor, is_owner: bool) -> ActionRule:
    if state in (COMPLETED, REJECTED):
        return _rule(False, "Entity cannot be cancelled in current state")
    if is_owner or actor.role in ("COMPANY_ADMIN", "SUPER_ADMIN"):
        return _rule(
            True,
            "You can cancel this entity",
            "Are you sure you want to cancel? This action cannot be undone.",
        )
    return _rule(False, "Only the owner or admin can cancel")


def _edit_rule(state: str, rc: EffectiveRejectionConfig, actor: WorkflowActor,
               is_owner: bool) -> ActionRule:
    if state != REJECTED:
        return _rule(False, "Entity cannot be edited in current state")
    if not rc.allow_resubmission or rc.resubmission_strategy == RESUBMISSION_NEW_ENTITY:
        return _rule(
            False,
            "This rejection requires creating a new request. The original cannot be edited.",
        )
    if _can_resubmit_role(rc, actor, is_owner):
        return _rule(True, "You can edit this rejected entity before resubmitting")
    roles = " or ".join(rc.resubmission_allowed_roles or ["REQUESTOR"])
    return _rule(False, f"Only {roles} can edit rejected entities")


def _progress(config: WorkflowConfigData, stage: Optional[WorkflowStage],
              state: str) -> WorkflowProgress:
    ordered = config.sorted_stages()
    total = len(ordered)
    order = 0
    if stage is not None:
        for idx, s in enumerate(ordered):
            if s.stage_key == stage.stage_key:
                order = idx + 1
                break

    if state == COMPLETED:
        completed = total
    else:
        completed = max(order - 1, 0)

    rows = []
    for idx, s in enumerate(ordered):
        if state == COMPLETED or idx < order - 1:
            status = "COMPLETED"
        elif idx == order - 1:
            status = "CURRENT"
        else:
            status = "PENDING"
        rows.append(StageProgress(
            stage_key=s.stage_key,
            stage_name=s.stage_name,
            order=s.order,
            status=status,
            is_terminal=s.is_terminal,
        ))

    percent = 100 if state == COMPLETED else (round(completed / total * 100) if total else 0)
    return WorkflowProgress(
        total_stages=total,
        completed_stages=completed,
        current_stage_order=order,
        percent_complete=percent,
        stages=rows,
    )


def _messages(state: str, stage: Optional[WorkflowStage], actor: WorkflowActor,
              config: WorkflowConfigData) -> UIMessages:
    if state == COMPLETED:
        status_message = "This entity has been fully approved"
    elif state == REJECTED:
        status_message = "This entity has been rejected"
    elif state == IN_WORKFLOW:
        status_message = f"Pending {stage.stage_name}" if stage else "In approval workflow"
    else:
        status_message = "Not yet submitted for approval"

    role_allowed = bool(stage and actor.role in stage.allowed_roles)
    if stage is None:
        info = status_message
    elif role_allowed:
        info = f"You can approve or reject this entity as {actor.role}"
    else:
        info = f"Waiting for {' or '.join(stage.allowed_roles)} to take action"

    hint = None
    if state == REJECTED:
        hint = "Edit the entity and resubmit for approval"
    elif state == IN_WORKFLOW and role_allowed and stage is not None:
        nxt = config.next_stage(stage.stage_key)
        if nxt is not None and not stage.is_terminal:
            hint = f"Approve to move to {nxt.stage_name}, or reject with a reason"
        else:
            hint = "Approve to complete the workflow, or reject with a reason"

    return UIMessages(status_message=status_message, informational_message=info,
                      next_action_hint=hint)


def _filtered_reason_codes(entity_type: str, rc: EffectiveRejectionConfig) -> List[ReasonCode]:
    codes = get_default_reason_codes(entity_type)
    if rc.allowed_reason_codes:
        allowed = set(rc.allowed_reason_codes)
        codes = [c for c in codes if c.code in allowed]
    return codes


# -------------------------
# not-found / no-config variants
# -------------------------
def _not_found(entity_type: str, entity_id: str, actor: WorkflowActor) -> UIRulesResult:
    disabled = _rule(False, "Entity not found")
    return UIRulesResult(
        entity_id=entity_id,
        entity_type=entity_type,
        entity_status="NOT_FOUND",
        workflow_state=NOT_IN_WORKFLOW,
        actions=UIActions(
            can_approve=disabled, can_reject=disabled, can_resubmit=disabled,
            can_cancel=disabled, can_view=disabled, can_edit=disabled,
        ),
        rejection_config=UIRejectionConfig(is_allowed=False),
        messages=UIMessages(
            status_message="Entity not found or access denied",
            informational_message="Entity not found",
        ),
        user_role_info=UserRoleInfo(current_role=actor.role, is_allowed_at_current_stage=False),
        evaluated_at=datetime.utcnow(),
    )


def _no_config(entity: WorkflowEntity, actor: WorkflowActor) -> UIRulesResult:
    none_configured = _rule(False, "No workflow configured for this entity type")
    return UIRulesResult(
        entity_id=entity.id,
        entity_type=entity.entity_type,
        entity_status=entity.status,
        current_stage=entity.current_stage,
        workflow_state=NO_WORKFLOW_CONFIG,
        actions=UIActions(
            can_approve=none_configured,
            can_reject=none_configured,
            can_resubmit=none_configured,
            can_cancel=_rule(True, "You can cancel this entity"),
            can_view=_rule(True, "You can view this entity"),
            can_edit=_rule(True, "You can edit this entity"),
        ),
        rejection_config=UIRejectionConfig(is_allowed=False),
        messages=UIMessages(
            status_message="No workflow configured",
            informational_message="No approval workflow is configured for this entity type",
            next_action_hint="Contact administrator to configure workflow",
        ),
        user_role_info=UserRoleInfo(current_role=actor.role, is_allowed_at_current_stage=False),
        evaluated_at=datetime.utcnow(),
    )


# -------------------------
# main entry
# -------------------------
def evaluate_ui_rules(
    db: Session, *, entity_type: str, entity_id: str, actor: WorkflowActor
) -> UIRulesResult:
    repo = get_repository(entity_type)
    entity = find_scoped_entity(db, repo, entity_id, actor)
    if entity is None:
        return _not_found(repo.entity_type, entity_id, actor)

    config = get_active_workflow(db, entity.company_id, repo.entity_type)
    if config is None:
        return _no_config(entity, actor)

    stage = _resolve_stage(entity, config)
    state = workflow_state_for(entity.status, stage)
    rc = get_effective_rejection_config(config, stage.stage_key if stage else None)
    owner = _is_owner(entity, actor)

    actions = UIActions(
        can_approve=_approve_rule(state, stage, actor, config),
        can_reject=_reject_rule(state, stage, actor),
        can_resubmit=_resubmit_rule(state, rc, actor, owner),
        can_cancel=_cancel_rule(state, actor, owner),
        can_view=_rule(True, "User can view this entity"),
        can_edit=_edit_rule(state, rc, actor, owner),
    )

    logger.debug("UI rules for %s %s: state=%s stage=%s role=%s",
                 entity.entity_type, entity.id, state,
                 stage.stage_key if stage else None, actor.role)

    return UIRulesResult(
        entity_id=entity.id,
        entity_type=entity.entity_type,
        entity_status=entity.status,
        current_stage=stage.stage_key if stage else None,
        current_stage_name=stage.stage_name if stage else None,
        workflow_state=state,
        actions=actions,
        rejection_config=UIRejectionConfig(
            is_allowed=actions.can_reject.allowed,
            is_reason_code_mandatory=True,
            is_remarks_mandatory=rc.is_remarks_mandatory,
            max_remarks_length=rc.max_remarks_length,
            reason_codes=_filtered_reason_codes(entity.entity_type, rc),
            rejection_actions=get_default_rejection_actions(),
        ),
        workflow_progress=_progress(config, stage, state),
        messages=_messages(state, stage, actor, config),
        user_role_info=UserRoleInfo(
            current_role=actor.role,
            is_allowed_at_current_stage=bool(stage and actor.role in stage.allowed_roles),
            allowed_roles_at_current_stage=list(stage.allowed_roles) if stage else [],
        ),
        evaluated_at=datetime.utcnow(),
    )
